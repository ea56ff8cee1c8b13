"""
Player model
玩家内存模型
"""

from typing import Optional
from datetime import datetime

from cvauction.schemas.game import PlayerPublic


class Player:
    """
    房间中的一个连接
    id 即连接ID，在连接存续期间保持不变；观众也有记录但不参与出价和收益
    """

    def __init__(self, player_id: str, name: str, is_spectator: bool = False):
        self.id = player_id
        self.name = name
        self.is_host = False
        self.is_spectator = is_spectator
        self.total_payoff = 0.0
        self.current_bid: Optional[float] = None
        self.joined_at = datetime.utcnow()

    @property
    def has_bid(self) -> bool:
        return self.current_bid is not None

    def add_payoff(self, amount: float) -> None:
        """累计收益，只在结算时调用"""
        self.total_payoff += amount

    def to_public(self) -> PlayerPublic:
        return PlayerPublic(
            id=self.id,
            name=self.name,
            is_host=self.is_host,
            is_spectator=self.is_spectator,
            total_payoff=self.total_payoff,
            has_bid=self.has_bid
        )

    def __repr__(self):
        return f"<Player(id={self.id}, name={self.name}, host={self.is_host}, spectator={self.is_spectator})>"
