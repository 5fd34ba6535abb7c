"""
Deck Stats Service: Application layer orchestrator.

Coordinates reading cards from the repository and reducing them to dashboard metrics.
"""

import logging
from datetime import datetime

from cadence.domain.ports import CardRepository

from .metrics_calculator import (
    DeckStats,
    EnrichedCard,
    MetricsCalculator,
    TopicPerformance,
    calculate_stats,
    topic_performance,
)

logger = logging.getLogger(__name__)


class DeckStatsService:
    """
    Application service for dashboard statistics.

    Follows Dependency Inversion: depends on the CardRepository abstraction,
    not concrete adapter implementations. Holds no state of its own, so every
    call reflects the repository as it is now.
    """

    def __init__(
        self,
        repository: CardRepository,
        calculator: MetricsCalculator | None = None,
    ):
        """
        Args:
            repository: The repository (port) for reading cards.
            calculator: Optional custom calculator; uses default if not provided.
        """
        self._repo = repository
        self._calc = calculator or MetricsCalculator()

    async def get_stats(self, now: datetime) -> DeckStats:
        cards = await self._repo.list_cards()
        return calculate_stats(cards, now)

    async def get_topic_performance(self) -> list[TopicPerformance]:
        cards = await self._repo.list_cards()
        return topic_performance(cards)

    async def get_enriched(self, now: datetime) -> list[EnrichedCard]:
        cards = await self._repo.list_cards()
        return [self._calc.enrich(card, now) for card in cards]

    async def get_weak_cards(
        self,
        now: datetime,
        stability_threshold: float = 7.0,
        lapse_threshold: int = 1,
        retrievability_threshold: float = 0.7,
    ) -> list[EnrichedCard]:
        """
        Identify reviewed cards that are "weak" based on configurable thresholds.

        A card is weak if:
        - stability < threshold, OR
        - lapses >= lapse_threshold, OR
        - retrievability < retrievability_threshold

        New cards are never weak; they have no memory to judge yet.
        """
        weak = []
        for card in await self.get_enriched(now):
            if card.reps == 0 and card.lapses == 0:
                continue

            is_weak = (
                card.stability < stability_threshold
                or card.lapses >= lapse_threshold
                or (
                    card.current_retrievability is not None
                    and card.current_retrievability < retrievability_threshold
                )
            )
            if is_weak:
                weak.append(card)

        logger.debug(f"{len(weak)} weak cards found")
        return weak
