"""
Room registry
房间注册表 - 按房间ID保存所有房间，首次加入时创建，最后一人离开时销毁
"""

import logging
from typing import Callable, Dict, List, Optional

from cvauction.core.exceptions import EmptyRoomId, TooManyRooms
from cvauction.models.room import Room
from cvauction.schemas.game import AuctionConfig, RoomSummary

logger = logging.getLogger(__name__)


class RoomRegistry:
    """房间表；不同房间之间不共享任何可变状态"""

    def __init__(self, max_rooms: int, config_factory: Callable[[], AuctionConfig]):
        self.max_rooms = max_rooms
        self.config_factory = config_factory
        self.rooms: Dict[str, Room] = {}

    def get(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def get_or_create(self, room_id: str) -> Room:
        room_id = (room_id or "").strip()
        if not room_id:
            raise EmptyRoomId("房间ID不能为空")

        room = self.rooms.get(room_id)
        if room:
            return room

        if len(self.rooms) >= self.max_rooms:
            raise TooManyRooms(f"房间数量已达上限（{self.max_rooms}）")

        room = Room(room_id, self.config_factory())
        self.rooms[room_id] = room
        logger.info(f"Room {room_id} created")
        return room

    def remove(self, room_id: str) -> Optional[Room]:
        """销毁房间并作废其计时器"""
        room = self.rooms.pop(room_id, None)
        if room:
            room.cancel_timer()
            logger.info(f"Room {room_id} torn down")
        return room

    def list_rooms(self) -> List[RoomSummary]:
        return [
            RoomSummary(
                id=room.id,
                state=room.state,
                player_count=len(room.participants),
                spectator_count=len(room.spectators),
                max_players=room.config.max_players,
                current_round_number=room.current_round_number,
                total_rounds=room.total_rounds
            )
            for room in self.rooms.values()
        ]

    def __len__(self):
        return len(self.rooms)
