"""
Metrics calculator for dashboard statistics.

This is a pure computation module with no I/O. Every figure is derived
from the card collection passed in; nothing is cached between calls.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Literal

from cadence.application.queue_builder import is_due
from cadence.domain.constants import (
    EASE_SEED,
    MATURE_INTERVAL_DAYS,
    MODERATE_RETENTION,
    SECONDS_PER_DAY,
    STRONG_RETENTION,
)
from cadence.domain.memory import retrievability
from cadence.domain.models import Card, CardState

Strength = Literal["strong", "moderate", "weak", "new"]


@dataclass
class DeckStats:
    """Aggregate counts over a card collection."""

    total_cards: int = 0
    new_cards: int = 0
    learning_cards: int = 0
    relearning_cards: int = 0
    review_cards: int = 0
    due_now: int = 0
    due_today: int = 0  # Due before the end of the current calendar day
    mature_cards: int = 0
    total_lapses: int = 0
    average_ease: float = EASE_SEED
    retention_rate: float = 0.0


@dataclass
class EnrichedCard:
    """
    A card's scheduling state enriched with computed metrics.
    """

    card_id: str
    state: CardState
    interval: int
    ease: float
    stability: float
    difficulty: float
    reps: int
    lapses: int

    # Computed metrics
    current_retrievability: float | None
    lapse_rate: float | None  # lapses / reps
    days_overdue: int | None  # Negative if not yet due


@dataclass
class TopicPerformance:
    topic: str
    total_cards: int
    reviewed_cards: int
    correct_count: int
    incorrect_count: int
    average_ease: float
    retention_rate: float
    strength: Strength


def end_of_day(now: datetime) -> datetime:
    """Last instant of `now`'s calendar day, in `now`'s timezone."""
    midnight = datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=now.tzinfo)
    return midnight - timedelta(microseconds=1)


def _retention(reps: int, lapses: int) -> float:
    attempts = reps + lapses
    return reps / attempts if attempts > 0 else 0.0


def calculate_stats(cards: Iterable[Card], now: datetime) -> DeckStats:
    """
    Reduce a card collection to dashboard counts.

    An empty collection yields all-zero counts.
    """
    stats = DeckStats()
    cutoff = end_of_day(now)
    reviewed_eases: list[float] = []
    total_reps = 0

    for card in cards:
        memory = card.memory
        stats.total_cards += 1

        if memory.state is CardState.NEW:
            stats.new_cards += 1
        elif memory.state is CardState.LEARNING:
            stats.learning_cards += 1
        elif memory.state is CardState.RELEARNING:
            stats.relearning_cards += 1
        else:
            stats.review_cards += 1
            if memory.interval >= MATURE_INTERVAL_DAYS:
                stats.mature_cards += 1

        if is_due(card, now):
            stats.due_now += 1
        if is_due(card, cutoff):
            stats.due_today += 1

        stats.total_lapses += memory.lapses
        total_reps += memory.reps
        if memory.reps > 0:
            reviewed_eases.append(memory.ease)

    if reviewed_eases:
        stats.average_ease = sum(reviewed_eases) / len(reviewed_eases)
    stats.retention_rate = _retention(total_reps, stats.total_lapses)
    return stats


def topic_performance(cards: Iterable[Card]) -> list[TopicPerformance]:
    """
    Per-topic recall performance, weakest topic first.

    Cards without a topic are ignored.
    """
    by_topic: dict[str, list[Card]] = {}
    for card in cards:
        if card.topic:
            by_topic.setdefault(card.topic, []).append(card)

    results = []
    for topic, topic_cards in by_topic.items():
        reviewed = [c for c in topic_cards if c.memory.reps > 0]
        correct = sum(c.memory.reps for c in reviewed)
        incorrect = sum(c.memory.lapses for c in reviewed)
        average_ease = (
            sum(c.memory.ease for c in reviewed) / len(reviewed) if reviewed else EASE_SEED
        )
        retention = _retention(correct, incorrect)

        strength: Strength
        if not reviewed:
            strength = "new"
        elif retention >= STRONG_RETENTION:
            strength = "strong"
        elif retention >= MODERATE_RETENTION:
            strength = "moderate"
        else:
            strength = "weak"

        results.append(
            TopicPerformance(
                topic=topic,
                total_cards=len(topic_cards),
                reviewed_cards=len(reviewed),
                correct_count=correct,
                incorrect_count=incorrect,
                average_ease=average_ease,
                retention_rate=retention,
                strength=strength,
            )
        )

    return sorted(results, key=lambda p: p.retention_rate)


class MetricsCalculator:
    """
    Computes derived per-card metrics.

    Stateless and side-effect free.
    """

    def enrich(self, card: Card, now: datetime) -> EnrichedCard:
        memory = card.memory
        return EnrichedCard(
            card_id=card.id,
            state=memory.state,
            interval=memory.interval,
            ease=memory.ease,
            stability=memory.stability,
            difficulty=memory.difficulty,
            reps=memory.reps,
            lapses=memory.lapses,
            current_retrievability=self._compute_retrievability(card, now),
            lapse_rate=self._compute_lapse_rate(card),
            days_overdue=self._compute_days_overdue(card, now),
        )

    def _compute_retrievability(self, card: Card, now: datetime) -> float | None:
        """
        Current recall probability from the power forgetting curve.
        """
        memory = card.memory
        if memory.last_review is None or memory.stability <= 0:
            return None
        elapsed = (now - memory.last_review).total_seconds() / SECONDS_PER_DAY
        return retrievability(memory.stability, elapsed)

    def _compute_lapse_rate(self, card: Card) -> float | None:
        if card.memory.reps == 0:
            return None
        return card.memory.lapses / card.memory.reps

    def _compute_days_overdue(self, card: Card, now: datetime) -> int | None:
        """
        Whole days past next_review (negative if not yet due).
        """
        if card.memory.next_review is None or card.memory.state is CardState.NEW:
            return None
        return int((now - card.memory.next_review).total_seconds() // SECONDS_PER_DAY)
