"""
Room model
房间内存模型 - 单一状态字段加上与之匹配的阶段数据
"""

from typing import Dict, List, Optional, Set, Any
from datetime import datetime

from cvauction.models.player import Player
from cvauction.models.round import Round, ResaleState
from cvauction.schemas.game import (
    AuctionConfig, RoomState, RoundSettlement, RankingEntry, FinishReason
)


class LobbyPhase:
    """等待玩家加入"""


class BiddingPhase:
    """本轮出价中"""

    def __init__(self, deadline: datetime):
        self.deadline = deadline


class ResaleOfferPhase:
    """已结算，等待获胜者决定是否转售"""

    def __init__(self, settlement: RoundSettlement, deadline: datetime):
        self.settlement = settlement
        self.deadline = deadline

    @property
    def seller_id(self) -> str:
        return self.settlement.winner_id


class ResaleBiddingPhase:
    """转售子拍卖出价中"""

    def __init__(self, settlement: RoundSettlement, resale: ResaleState, deadline: datetime):
        self.settlement = settlement
        self.resale = resale
        self.deadline = deadline


class ReadyCheckPhase:
    """等待所有玩家确认进入下一轮"""

    def __init__(self, deadline: datetime):
        self.deadline = deadline
        self.ready: Set[str] = set()
        self.advancing = False


class FinishedPhase:
    """游戏结束（终态）"""

    def __init__(self, reason: FinishReason, ranking: List[RankingEntry]):
        self.reason = reason
        self.ranking = ranking


PHASE_TYPES = {
    RoomState.WAITING: LobbyPhase,
    RoomState.IN_PROGRESS: BiddingPhase,
    RoomState.RESALE_OFFER: ResaleOfferPhase,
    RoomState.RESALE_BIDDING: ResaleBiddingPhase,
    RoomState.ROUND_OVER: ReadyCheckPhase,
    RoomState.FINISHED: FinishedPhase,
}


class Room:
    """一局游戏的全部状态；房间拥有所有子对象"""

    def __init__(self, room_id: str, config: AuctionConfig):
        self.id = room_id
        self.config = config
        self.players: List[Player] = []  # 按加入顺序
        self.host_id: Optional[str] = None
        self.current_round_number = 0
        self.total_rounds = 0
        self.current_round: Optional[Round] = None
        self.rounds: List[Round] = []
        self.log: List[str] = []
        self.spectator_count = 0  # 观众编号只增不减
        self.created_at = datetime.utcnow()
        self._state = RoomState.WAITING
        self._phase: Any = LobbyPhase()
        self.timer = None

    def __repr__(self):
        return f"<Room(id={self.id}, state={self._state.value}, players={len(self.players)})>"

    @property
    def state(self) -> RoomState:
        return self._state

    @property
    def phase(self):
        return self._phase

    def transition(self, state: RoomState, phase) -> None:
        """切换状态，阶段数据类型必须与状态匹配"""
        expected = PHASE_TYPES[state]
        if not isinstance(phase, expected):
            raise TypeError(f"State {state.value} requires {expected.__name__}, got {type(phase).__name__}")
        if self._state == RoomState.FINISHED:
            raise RuntimeError(f"Room {self.id} is finished")
        self._state = state
        self._phase = phase

    def set_timer(self, timer) -> None:
        """替换当前阶段计时器，旧计时器立即作废"""
        self.cancel_timer()
        self.timer = timer

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    @property
    def is_playing(self) -> bool:
        return self._state not in (RoomState.WAITING, RoomState.FINISHED)

    @property
    def participants(self) -> List[Player]:
        """参与出价的玩家（不含观众）"""
        return [p for p in self.players if not p.is_spectator]

    @property
    def spectators(self) -> List[Player]:
        return [p for p in self.players if p.is_spectator]

    @property
    def is_empty(self) -> bool:
        return not self.players

    def get_player(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    def totals(self) -> Dict[str, float]:
        return {p.id: p.total_payoff for p in self.participants}

    def ranking(self) -> List[RankingEntry]:
        ordered = sorted(self.participants, key=lambda p: p.total_payoff, reverse=True)
        return [
            RankingEntry(rank=i + 1, player_id=p.id, name=p.name, total_payoff=p.total_payoff)
            for i, p in enumerate(ordered)
        ]
