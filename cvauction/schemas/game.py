"""
Game Pydantic schemas
拍卖游戏数据验证和序列化模型
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict
from datetime import datetime
from enum import Enum


class RoomState(str, Enum):
    """房间状态枚举"""
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    RESALE_OFFER = "resale_offer"
    RESALE_BIDDING = "resale_bidding"
    ROUND_OVER = "round_over"
    FINISHED = "finished"


class PricingRule(str, Enum):
    """成交价格规则"""
    SECOND_PRICE = "second_price"
    MEDIAN_PRICE = "median_price"


class TiePayment(str, Enum):
    """并列最高价时获胜者的支付方式"""
    PRICING_RULE = "pricing_rule"  # 仍按价格规则计算
    OWN_BID = "own_bid"            # 支付自己的（最高）出价


class FinishReason(str, Enum):
    """游戏结束原因"""
    COMPLETED = "completed"
    QUORUM_LOST = "quorum_lost"


class AuctionConfig(BaseModel):
    """单个房间的拍卖参数，创建房间时固定"""
    true_value_min: float = Field(default=50.0, description="真实价值下限")
    true_value_max: float = Field(default=150.0, description="真实价值上限")
    signal_noise: float = Field(default=20.0, ge=0, description="私有信号误差幅度")
    bid_ceiling: float = Field(default=190.0, gt=0, description="出价上限")
    min_players: int = Field(default=2, ge=2, description="开始游戏的最少玩家数")
    max_players: int = Field(default=12, ge=2, description="房间最多玩家数")
    round_time_limit: float = Field(default=60, gt=0, description="出价时间限制(秒)")
    resale_decision_time_limit: float = Field(default=20, gt=0, description="转售决定时间限制(秒)")
    resale_bid_time_limit: float = Field(default=30, gt=0, description="转售出价时间限制(秒)")
    ready_time_limit: float = Field(default=60, gt=0, description="准备下一轮时间限制(秒)")
    next_round_delay: float = Field(default=0, ge=0, description="进入下一轮前的展示延迟(秒)")
    pricing_rule: PricingRule = PricingRule.SECOND_PRICE
    tie_payment: TiePayment = TiePayment.PRICING_RULE
    resale_enabled: bool = True

    class Config:
        frozen = True

    @model_validator(mode="after")
    def validate_ranges(self):
        """验证区间设置"""
        if self.true_value_min > self.true_value_max:
            raise ValueError('真实价值下限不能大于上限')
        if self.min_players > self.max_players:
            raise ValueError('最少玩家数不能大于最多玩家数')
        return self

    @classmethod
    def from_settings(cls, settings) -> "AuctionConfig":
        return cls(
            true_value_min=settings.TRUE_VALUE_MIN,
            true_value_max=settings.TRUE_VALUE_MAX,
            signal_noise=settings.SIGNAL_NOISE,
            bid_ceiling=settings.BID_CEILING,
            min_players=settings.MIN_PLAYERS,
            max_players=settings.MAX_PLAYERS,
            round_time_limit=settings.ROUND_TIME_LIMIT,
            resale_decision_time_limit=settings.RESALE_DECISION_TIME_LIMIT,
            resale_bid_time_limit=settings.RESALE_BID_TIME_LIMIT,
            ready_time_limit=settings.READY_TIME_LIMIT,
            next_round_delay=settings.NEXT_ROUND_DELAY,
            pricing_rule=PricingRule(settings.PRICING_RULE),
            tie_payment=TiePayment(settings.TIE_PAYMENT),
            resale_enabled=settings.RESALE_ENABLED,
        )


class PlayerPublic(BaseModel):
    """公开的玩家信息（不含私有信号和出价金额）"""
    id: str
    name: str
    is_host: bool = False
    is_spectator: bool = False
    total_payoff: float = 0.0
    has_bid: bool = False


class BidEntry(BaseModel):
    """一条已公开的出价"""
    player_id: str
    name: str
    amount: float


class RoundSettlement(BaseModel):
    """一轮拍卖的结算结果"""
    round_number: int
    true_value: float
    sorted_bids: List[BidEntry]
    highest_bid: float
    second_highest_bid: Optional[float] = None
    winner_id: str
    winner_name: str
    payment: float
    payoff: float
    tie_break: bool = False
    tied_player_ids: List[str] = Field(default_factory=list)
    pricing_rule: PricingRule
    totals: Dict[str, float] = Field(default_factory=dict)


class ResaleOutcome(BaseModel):
    """转售子拍卖的结果"""
    round_number: int
    success: bool
    reason: Optional[str] = None  # insufficient_bids | seller_left
    seller_id: str
    seller_name: str
    buyer_id: Optional[str] = None
    buyer_name: Optional[str] = None
    original_payment: float
    resale_payment: Optional[float] = None
    seller_round_payoff: float
    buyer_payoff: Optional[float] = None
    sorted_bids: List[BidEntry] = Field(default_factory=list)
    tie_break: bool = False
    totals: Dict[str, float] = Field(default_factory=dict)


class RankingEntry(BaseModel):
    """最终排名"""
    rank: int
    player_id: str
    name: str
    total_payoff: float


class ViewerInfo(BaseModel):
    """请求快照的连接自己的视图"""
    player_id: str
    is_spectator: bool
    is_host: bool
    private_signal: Optional[float] = None
    has_bid: bool = False
    awaiting_bid: bool = False
    can_decide_resale: bool = False
    awaiting_resale_bid: bool = False
    is_ready: bool = False


class GameSnapshot(BaseModel):
    """房间状态快照，足以渲染当前阶段，不泄露他人信号或未公开的真实价值"""
    room_id: str
    state: RoomState
    host_id: Optional[str] = None
    players: List[PlayerPublic]
    current_round_number: int = 0
    total_rounds: int = 0
    phase_deadline: Optional[datetime] = None
    pricing_rule: PricingRule
    resale_enabled: bool
    bid_ceiling: float
    viewer: Optional[ViewerInfo] = None
    last_settlement: Optional[RoundSettlement] = None
    resale_seller_id: Optional[str] = None
    resale_outcome: Optional[ResaleOutcome] = None
    ready_player_ids: List[str] = Field(default_factory=list)
    finish_reason: Optional[FinishReason] = None
    ranking: List[RankingEntry] = Field(default_factory=list)
    log: List[str] = Field(default_factory=list)


class RoomSummary(BaseModel):
    """房间列表项"""
    id: str
    state: RoomState
    player_count: int
    spectator_count: int
    max_players: int
    current_round_number: int
    total_rounds: int
