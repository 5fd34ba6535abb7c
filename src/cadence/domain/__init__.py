# Domain Package
from .models import Card, CardState, MemoryState, Rating
from .ports import CardRepository
from .session import ReviewRecord, ReviewSession

__all__ = [
    "Card",
    "CardState",
    "MemoryState",
    "Rating",
    "CardRepository",
    "ReviewRecord",
    "ReviewSession",
]
