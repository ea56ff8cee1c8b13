# In-memory domain models
from .player import Player
from .round import Round, ResaleState
from .room import (
    Room, LobbyPhase, BiddingPhase, ResaleOfferPhase, ResaleBiddingPhase,
    ReadyCheckPhase, FinishedPhase, PHASE_TYPES
)

__all__ = [
    "Player",
    "Round", "ResaleState",
    "Room", "LobbyPhase", "BiddingPhase", "ResaleOfferPhase", "ResaleBiddingPhase",
    "ReadyCheckPhase", "FinishedPhase", "PHASE_TYPES"
]
