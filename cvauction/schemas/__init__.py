# Pydantic schemas
from .game import (
    RoomState, PricingRule, TiePayment, FinishReason, AuctionConfig,
    PlayerPublic, BidEntry, RoundSettlement, ResaleOutcome, RankingEntry,
    ViewerInfo, GameSnapshot, RoomSummary
)
from .messages import (
    InboundType, WebSocketMessage, JoinRoomData, BidData, ResaleDecisionData
)

__all__ = [
    # Game schemas
    "RoomState", "PricingRule", "TiePayment", "FinishReason", "AuctionConfig",
    "PlayerPublic", "BidEntry", "RoundSettlement", "ResaleOutcome", "RankingEntry",
    "ViewerInfo", "GameSnapshot", "RoomSummary",

    # Message schemas
    "InboundType", "WebSocketMessage", "JoinRoomData", "BidData", "ResaleDecisionData"
]
