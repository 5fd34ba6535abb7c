"""
Review session log.

An append-only record of one sitting, kept for session summaries and
analytics. It stores the scheduler's before/after snapshots and never
feeds back into scheduling.
"""

from dataclasses import dataclass, field
from datetime import datetime

from .models import CardState, MemoryState, Rating


@dataclass(frozen=True)
class ReviewRecord:
    """
    A single rating event.

    Attributes:
        card_id: The card that was rated.
        rating: Button pressed.
        reviewed_at: When the rating was applied.
        time_spent_ms: Time from reveal to rating.
        previous: Memory state before the rating.
        new: Memory state after the rating.
    """

    card_id: str
    rating: Rating
    reviewed_at: datetime
    time_spent_ms: int
    previous: MemoryState
    new: MemoryState

    @property
    def previous_state(self) -> CardState:
        return self.previous.state

    @property
    def new_state(self) -> CardState:
        return self.new.state


@dataclass
class ReviewSession:
    id: str
    started_at: datetime
    ended_at: datetime | None = None
    records: list[ReviewRecord] = field(default_factory=list)

    def log(self, record: ReviewRecord) -> None:
        if self.ended_at is not None:
            raise RuntimeError(f"Session {self.id} has already ended")
        self.records.append(record)

    def end(self, now: datetime) -> None:
        if self.ended_at is None:
            self.ended_at = now

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    @property
    def cards_reviewed(self) -> int:
        return len(self.records)

    @property
    def cards_correct(self) -> int:
        return sum(1 for r in self.records if r.rating.is_success)

    @property
    def cards_failed(self) -> int:
        return sum(1 for r in self.records if not r.rating.is_success)

    @property
    def accuracy(self) -> float | None:
        if not self.records:
            return None
        return self.cards_correct / self.cards_reviewed
