"""
Auction error taxonomy
拍卖错误类型 - 所有面向玩家的失败都以带类型的错误消息返回给触发它的连接
"""

from typing import Any, Dict


class AuctionError(Exception):
    """Base class for player-visible failures; never changes room state"""

    kind = "error"
    silent = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": "error",
            "data": {"kind": self.kind, "message": self.message}
        }


# 输入错误：格式或取值非法
class InvalidInput(AuctionError):
    kind = "invalid_input"


class InvalidBid(InvalidInput):
    kind = "invalid_bid"


class EmptyRoomId(InvalidInput):
    kind = "empty_room_id"


class RoomNotFound(InvalidInput):
    kind = "room_not_found"


# 非法状态转换：在错误的阶段发送了动作
class IllegalTransition(AuctionError):
    kind = "illegal_transition"


class GameAlreadyStarted(IllegalTransition):
    kind = "game_already_started"


class RoundNotActive(IllegalTransition):
    kind = "round_not_active"


class DuplicateBid(IllegalTransition):
    """Repeated bid in the same round; dropped without telling the client"""

    kind = "duplicate_bid"
    silent = True


class NotHost(IllegalTransition):
    kind = "not_host"


class NotInRoom(IllegalTransition):
    kind = "not_in_room"


class AlreadyJoined(IllegalTransition):
    kind = "already_joined"


class SpectatorAction(IllegalTransition):
    kind = "spectator_action"


class NotSeller(IllegalTransition):
    kind = "not_seller"


class ResaleNotActive(IllegalTransition):
    kind = "resale_not_active"


class NotReadyPhase(IllegalTransition):
    kind = "not_ready_phase"


class GameFinished(IllegalTransition):
    kind = "game_finished"


# 容量错误
class CapacityExceeded(AuctionError):
    kind = "capacity_exceeded"


class RoomFull(CapacityExceeded):
    kind = "room_full"


class PlayerCountOutOfRange(CapacityExceeded):
    kind = "player_count_out_of_range"


class TooManyRooms(CapacityExceeded):
    kind = "too_many_rooms"
