"""
Player registry
玩家注册表 - 房间成员、房主分配与迁移
"""

import logging
from typing import NamedTuple, Optional

from cvauction.core.exceptions import AlreadyJoined, GameAlreadyStarted, RoomFull
from cvauction.models.player import Player
from cvauction.models.room import Room
from cvauction.schemas.game import RoomState

logger = logging.getLogger(__name__)


class LeaveResult(NamedTuple):
    """离开房间的结果"""
    player: Optional[Player]
    new_host: Optional[Player]


class PlayerRegistry:
    """管理房间内的玩家和观众"""

    def join(self, room: Room, connection_id: str, name: Optional[str]) -> Player:
        """
        加入房间
        名字为空时以观众身份加入；玩家只能在等待阶段加入，且受房间人数上限限制
        """
        if room.get_player(connection_id):
            raise AlreadyJoined("您已经加入了该房间")

        display_name = (name or "").strip()
        if not display_name:
            room.spectator_count += 1
            spectator = Player(connection_id, f"观众 {room.spectator_count}", is_spectator=True)
            room.players.append(spectator)
            logger.info(f"Connection {connection_id} joined room {room.id} as spectator")
            return spectator

        if room.state != RoomState.WAITING:
            raise GameAlreadyStarted("游戏已经开始，无法加入")

        if len(room.participants) >= room.config.max_players:
            raise RoomFull(f"房间已满（最多{room.config.max_players}人）")

        player = Player(connection_id, display_name)
        room.players.append(player)

        # 第一个加入的玩家成为房主
        if room.host_id is None:
            self._assign_host(room, player)

        logger.info(f"Player {display_name} ({connection_id}) joined room {room.id}")
        return player

    def leave(self, room: Room, connection_id: str) -> LeaveResult:
        """离开房间；房主离开时按加入顺序转移给下一位玩家"""
        player = room.get_player(connection_id)
        if not player:
            return LeaveResult(None, None)

        room.players.remove(player)
        new_host = None

        if player.id == room.host_id:
            player.is_host = False
            room.host_id = None
            successor = next(iter(room.participants), None)
            if successor:
                self._assign_host(room, successor)
                new_host = successor

        logger.info(f"{player.name} ({connection_id}) left room {room.id}")
        return LeaveResult(player, new_host)

    def _assign_host(self, room: Room, player: Player) -> None:
        for p in room.players:
            p.is_host = False
        player.is_host = True
        room.host_id = player.id
        logger.info(f"Host of room {room.id} is now {player.name}")
