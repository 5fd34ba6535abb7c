from datetime import datetime, timedelta, timezone

import pytest

from cadence.application.config import SchedulerParameters
from cadence.application.scheduler import Scheduler
from cadence.domain.models import Card, CardState, MemoryState

NOON = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """A fixed, timezone-aware 'now' at midday so same-day checks are unambiguous."""
    return NOON


@pytest.fixture
def scheduler():
    return Scheduler()


@pytest.fixture
def plain_scheduler():
    """Scheduler without interval fuzz, for exact interval assertions."""
    return Scheduler(SchedulerParameters(enable_fuzz=False))


@pytest.fixture
def make_card():
    """Factory for cards with sensible defaults."""

    def _make(card_id="c1", memory=None, tags=None, topic=None, difficulty_label=None, version=0):
        return Card(
            id=card_id,
            front=f"Front {card_id}",
            back=f"Back {card_id}",
            tags=tags or [],
            topic=topic,
            difficulty_label=difficulty_label,
            memory=memory or MemoryState(),
            version=version,
        )

    return _make


@pytest.fixture
def review_memory(now):
    """A mature-ish card in Review, last seen ten days ago and due now."""
    return MemoryState(
        state=CardState.REVIEW,
        interval=10,
        ease=2.5,
        stability=10.0,
        difficulty=5.0,
        reps=5,
        lapses=0,
        last_review=now - timedelta(days=10),
        next_review=now,
    )


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config files
    monkeypatch.setenv("HOME", str(home))
    return home
