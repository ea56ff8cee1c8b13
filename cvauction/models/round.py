"""
Round model
拍卖轮次内存模型
"""

from typing import Dict, Optional, List
from datetime import datetime

from cvauction.schemas.game import RoundSettlement, ResaleOutcome


class ResaleState:
    """转售阶段的状态，仅在转售出价期间存在"""

    def __init__(self, seller_id: str, bidder_ids: List[str]):
        self.seller_id = seller_id
        self.offer_accepted = True
        self.bidder_ids = list(bidder_ids)
        self.bids: Dict[str, float] = {}
        self.winner_id: Optional[str] = None
        self.payment: Optional[float] = None

    def has_bid(self, player_id: str) -> bool:
        return player_id in self.bids

    def all_bids_in(self) -> bool:
        return all(pid in self.bids for pid in self.bidder_ids)

    def withdraw(self, player_id: str) -> None:
        """移除离开的出价者"""
        if player_id in self.bidder_ids:
            self.bidder_ids.remove(player_id)
        self.bids.pop(player_id, None)


class Round:
    """一轮拍卖；结算后保留在房间历史中"""

    def __init__(self, number: int, true_value: float, signals: Dict[str, float]):
        self.number = number
        self.true_value = true_value
        self.signals = dict(signals)
        self.bids: Dict[str, float] = {}
        self.winner_info: Optional[RoundSettlement] = None
        self.resale_outcome: Optional[ResaleOutcome] = None
        self.started_at = datetime.utcnow()
        self.deadline: Optional[datetime] = None

    @property
    def is_settled(self) -> bool:
        return self.winner_info is not None

    def signal_for(self, player_id: str) -> Optional[float]:
        return self.signals.get(player_id)

    def __repr__(self):
        return f"<Round(number={self.number}, bids={len(self.bids)}, settled={self.is_settled})>"
