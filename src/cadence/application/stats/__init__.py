# Application Stats Package
from .metrics_calculator import (
    DeckStats,
    EnrichedCard,
    MetricsCalculator,
    TopicPerformance,
    calculate_stats,
    topic_performance,
)
from .service import DeckStatsService

__all__ = [
    "DeckStats",
    "EnrichedCard",
    "MetricsCalculator",
    "TopicPerformance",
    "calculate_stats",
    "topic_performance",
    "DeckStatsService",
]
