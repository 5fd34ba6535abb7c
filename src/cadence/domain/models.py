"""
Domain models for flashcards and their scheduling state.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, IntEnum

from .constants import EASE_SEED
from .errors import InvalidRatingError


class Rating(IntEnum):
    """Recall quality reported by the reviewer, ordered worst to best."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @property
    def is_success(self) -> bool:
        return self is not Rating.AGAIN

    @classmethod
    def parse(cls, value: "Rating | int | str") -> "Rating":
        """
        Coerce a caller-supplied value into a Rating.

        Accepts a Rating, an integer 1-4, or a case-insensitive name.
        Anything else is a caller bug and raises InvalidRatingError.
        """
        if isinstance(value, Rating):
            return value
        if isinstance(value, bool):
            raise InvalidRatingError(value)
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidRatingError(value) from None
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls[name]
            if name.isdigit() and int(name) in cls._value2member_map_:
                return cls(int(name))
        raise InvalidRatingError(value)


class CardState(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"

    @property
    def is_short_term(self) -> bool:
        """Learning and relearning cards cycle within the same session."""
        return self in (CardState.LEARNING, CardState.RELEARNING)


@dataclass(frozen=True)
class MemoryState:
    """
    Scheduling state embedded in every flashcard.

    Owned exclusively by the scheduler; every transition produces a new
    instance instead of mutating this one.

    Attributes:
        state: Position in the New/Learning/Review/Relearning machine.
        step: Index on the learning or relearning ladder (0 elsewhere).
        interval: Days until the next review while in Review (0 for sub-day steps).
        ease: Multiplier governing how fast Review intervals grow.
        stability: Days until recall probability decays to 90%. 0 until first rated.
        difficulty: Card difficulty on a 1-10 scale. 0 until first rated.
        reps: Successful (non-Again) ratings.
        lapses: Again ratings issued while in Review or Relearning.
        next_review: When the card is due. None means due immediately.
        last_review: Time of the most recent rating, None if never reviewed.
    """

    state: CardState = CardState.NEW
    step: int = 0
    interval: int = 0
    ease: float = EASE_SEED
    stability: float = 0.0
    difficulty: float = 0.0
    reps: int = 0
    lapses: int = 0
    next_review: datetime | None = None
    last_review: datetime | None = None

    def evolve(self, **changes) -> "MemoryState":
        return replace(self, **changes)


@dataclass
class Card:
    """
    A flashcard: content owned by the content collaborator plus its MemoryState.

    `version` is the optimistic-concurrency token; stores bump it on every write.
    """

    id: str
    front: str
    back: str
    tags: list[str] = field(default_factory=list)
    topic: str | None = None
    difficulty_label: str | None = None  # Content difficulty, not memory difficulty
    memory: MemoryState = field(default_factory=MemoryState)
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def state(self) -> CardState:
        return self.memory.state

    def with_memory(self, memory: MemoryState, updated_at: datetime | None = None) -> "Card":
        """Return a copy carrying a new memory state. Content fields are untouched."""
        return replace(self, memory=memory, updated_at=updated_at or self.updated_at)
