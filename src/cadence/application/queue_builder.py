"""
Queue builder for study sessions.

Builds ordered due-card queues by:
1. Narrowing the collection with an optional display filter
2. Keeping only cards that are due
3. Ordering short-term (learning/relearning) cards first, then reviews, then new cards

Filters only narrow what is shown; they never change what is scheduled.
"""

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from cadence.domain.models import Card, CardState

logger = logging.getLogger(__name__)

_GROUP_ORDER = {
    CardState.LEARNING: 0,
    CardState.RELEARNING: 0,
    CardState.REVIEW: 1,
    CardState.NEW: 2,
}


@dataclass
class CardFilter:
    """
    Display filter for the due queue.

    All criteria are optional. An empty list means that criterion is not checked.
    """

    tags: list[str] = field(default_factory=list)  # Any overlap matches
    topics: list[str] = field(default_factory=list)
    states: list[CardState] = field(default_factory=list)
    difficulties: list[str] = field(default_factory=list)  # Content difficulty labels

    @property
    def is_empty(self) -> bool:
        return not (self.tags or self.topics or self.states or self.difficulties)

    def matches(self, card: Card) -> bool:
        if self.tags and not any(t in self.tags for t in card.tags):
            return False
        if self.topics and card.topic not in self.topics:
            return False
        if self.states and card.state not in self.states:
            return False
        if self.difficulties and card.difficulty_label not in self.difficulties:
            return False
        return True

    def apply(self, cards: Iterable[Card]) -> list[Card]:
        if self.is_empty:
            return list(cards)
        return [c for c in cards if self.matches(c)]

    @staticmethod
    def available_tags(cards: Iterable[Card]) -> list[str]:
        return sorted({t for c in cards for t in c.tags})

    @staticmethod
    def available_topics(cards: Iterable[Card]) -> list[str]:
        return sorted({c.topic for c in cards if c.topic})


def is_due(card: Card, now: datetime) -> bool:
    """New cards and cards without a next_review are always due."""
    memory = card.memory
    if memory.state is CardState.NEW or memory.next_review is None:
        return True
    return memory.next_review <= now


def due_cards(
    cards: Iterable[Card],
    now: datetime,
    card_filter: CardFilter | None = None,
) -> list[Card]:
    """
    Return the cards due at `now`, in presentation order.

    Learning/relearning cards come first, then reviews (earliest due first),
    then new cards in their original order. An empty result is normal.
    """
    pool = card_filter.apply(cards) if card_filter else list(cards)
    due = [c for c in pool if is_due(c, now)]

    def sort_key(indexed: tuple[int, Card]) -> tuple:
        index, card = indexed
        group = _GROUP_ORDER[card.state]
        if card.state is CardState.NEW or card.memory.next_review is None:
            return (group, 0.0, index)
        return (group, card.memory.next_review.timestamp(), index)

    ordered = [card for _, card in sorted(enumerate(due), key=sort_key)]
    logger.debug(f"{len(ordered)} of {len(pool)} cards due")
    return ordered


class StudyQueue:
    """
    The due queue for one sitting.

    A card that is still learning or relearning after being rated goes to the
    back of the queue so the same sitting cycles it again. Any other outcome
    removes it for the rest of the session.
    """

    def __init__(self, cards: Iterable[Card]):
        self._queue: deque[Card] = deque(cards)

    @classmethod
    def build(
        cls,
        cards: Iterable[Card],
        now: datetime,
        card_filter: CardFilter | None = None,
    ) -> "StudyQueue":
        return cls(due_cards(cards, now, card_filter))

    def __len__(self) -> int:
        return len(self._queue)

    def __iter__(self):
        return iter(list(self._queue))

    @property
    def is_empty(self) -> bool:
        return not self._queue

    @property
    def current(self) -> Card | None:
        return self._queue[0] if self._queue else None

    def visible(self, card_filter: CardFilter | None = None) -> list[Card]:
        """Filtered view of the queue. The queue itself is not modified."""
        if card_filter is None:
            return list(self._queue)
        return card_filter.apply(self._queue)

    def record(self, updated: Card) -> None:
        """
        Re-queue or drop a card after it has been rated.

        `updated` is the card carrying its post-rating memory state.
        """
        for i, queued in enumerate(self._queue):
            if queued.id == updated.id:
                del self._queue[i]
                break
        else:
            logger.debug(f"Card {updated.id} rated outside the session queue")
            return

        if updated.state.is_short_term:
            self._queue.append(updated)
