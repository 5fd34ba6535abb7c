"""
Spaced-repetition scheduler.

Maps (memory state, rating, now) to the next memory state. Pure and total:
no I/O, and the only randomness (interval fuzz) is seeded from the card's
own pre-rating state so preview and commit always agree.

Card states: New -> Learning -> Review
                                  -> Relearning (on lapse) -> Review
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta

from cadence.application.config import SchedulerParameters
from cadence.domain.constants import (
    EASE_SEED,
    EASY_INTERVAL_BONUS,
    FUZZ_RANGE,
    MIN_REVIEW_INTERVAL,
    SECONDS_PER_DAY,
)
from cadence.domain.errors import CadenceError
from cadence.domain.memory import (
    initial_difficulty,
    initial_stability,
    interval_for_retention,
    lapse_stability,
    next_difficulty,
    next_ease,
    retrievability,
    sanitize,
    short_term_stability,
    success_stability,
)
from cadence.domain.models import Card, CardState, MemoryState, Rating

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleResult:
    """
    Outcome of rating a card.

    Attributes:
        memory: The new memory state to persist.
        previous: The (sanitized) state the rating was applied to.
        rating: The rating that was applied.
        scheduled_days: Whole days until the next review; 0 for same-day steps.
    """

    memory: MemoryState
    previous: MemoryState
    rating: Rating
    scheduled_days: int

    @property
    def next_review(self) -> datetime:
        if self.memory.next_review is None:
            raise CadenceError("Scheduled memory state has no next review time")
        return self.memory.next_review


class Scheduler:
    """
    Applies ratings to memory states.

    Stateless apart from its immutable parameters; safe to share.
    """

    def __init__(self, parameters: SchedulerParameters | None = None):
        self.parameters = parameters or SchedulerParameters()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def schedule(
        self, memory: MemoryState, rating: Rating | int | str, now: datetime
    ) -> ScheduleResult:
        """
        Compute the memory state that follows `rating`.

        Raises:
            InvalidRatingError: `rating` is not one of the four ratings.
        """
        rating = Rating.parse(rating)
        previous = sanitize(memory)

        if previous.state is CardState.NEW:
            new = self._from_new(previous, rating, now)
        elif previous.state is CardState.LEARNING:
            new = self._from_learning(previous, rating, now)
        elif previous.state is CardState.REVIEW:
            new = self._from_review(previous, rating, now)
        else:
            new = self._from_relearning(previous, rating, now)

        logger.debug(
            f"{previous.state.value} --{rating.name.lower()}--> {new.state.value} "
            f"(interval={new.interval}d, stability={new.stability:.2f}, ease={new.ease:.2f})"
        )
        return ScheduleResult(
            memory=new, previous=previous, rating=rating, scheduled_days=new.interval
        )

    def preview_schedule(self, memory: MemoryState, now: datetime) -> dict[Rating, int]:
        """
        Days until the next review for every possible rating, without committing any.

        Uses the same code path as `schedule`, so the values always match.
        """
        return {r: self.schedule(memory, r, now).scheduled_days for r in Rating}

    def preview_labels(self, memory: MemoryState, now: datetime) -> dict[Rating, str]:
        """Human-readable preview ("10m", "4d", "3mo", "1.2y") for answer buttons."""
        labels = {}
        for r in Rating:
            result = self.schedule(memory, r, now)
            labels[r] = format_interval(result.next_review - now)
        return labels

    def apply(self, card: Card, rating: Rating | int | str, now: datetime) -> Card:
        """Return a copy of `card` with the rating applied to its memory state."""
        result = self.schedule(card.memory, rating, now)
        return card.with_memory(result.memory, updated_at=now)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _from_new(self, prev: MemoryState, rating: Rating, now: datetime) -> MemoryState:
        stability = initial_stability(rating)
        difficulty = initial_difficulty(rating)
        reps = prev.reps + 1 if rating.is_success else prev.reps

        if rating is Rating.EASY:
            return self._graduate(prev, rating, now, stability, difficulty, prev.ease, reps)

        step = 1 if rating is Rating.GOOD else 0
        if step >= len(self.parameters.learning_steps):
            return self._graduate(prev, rating, now, stability, difficulty, prev.ease, reps)

        return self._step(
            prev, CardState.LEARNING, step, now, stability, difficulty, prev.ease, reps, prev.lapses
        )

    def _from_learning(self, prev: MemoryState, rating: Rating, now: datetime) -> MemoryState:
        steps = self.parameters.learning_steps
        current = min(prev.step, len(steps) - 1)
        stability = short_term_stability(prev.stability, rating)
        difficulty = next_difficulty(prev.difficulty, rating)

        if rating is Rating.AGAIN:
            # Not yet graduated, so this is not a lapse
            return self._step(
                prev, CardState.LEARNING, 0, now, stability, difficulty, prev.ease,
                prev.reps, prev.lapses,
            )

        reps = prev.reps + 1
        if rating is Rating.HARD:
            step = current
        elif rating is Rating.GOOD:
            step = current + 1
        else:
            step = len(steps)

        if step >= len(steps):
            return self._graduate(prev, rating, now, stability, difficulty, prev.ease, reps)

        return self._step(
            prev, CardState.LEARNING, step, now, stability, difficulty, prev.ease, reps, prev.lapses
        )

    def _from_review(self, prev: MemoryState, rating: Rating, now: datetime) -> MemoryState:
        recall = retrievability(prev.stability, self._elapsed_days(prev, now))
        difficulty = next_difficulty(prev.difficulty, rating)
        ease = next_ease(prev.ease, rating)

        if rating is Rating.AGAIN:
            stability = lapse_stability(prev.stability, prev.difficulty, recall)
            return self._step(
                prev, CardState.RELEARNING, 0, now, stability, difficulty, ease,
                prev.reps, prev.lapses + 1,
            )

        stability = success_stability(prev.stability, prev.difficulty, recall, rating)
        return self._graduate(prev, rating, now, stability, difficulty, ease, prev.reps + 1)

    def _from_relearning(self, prev: MemoryState, rating: Rating, now: datetime) -> MemoryState:
        stability = short_term_stability(prev.stability, rating)
        difficulty = next_difficulty(prev.difficulty, rating)

        if rating is Rating.AGAIN:
            return self._step(
                prev, CardState.RELEARNING, 0, now, stability, difficulty,
                next_ease(prev.ease, rating), prev.reps, prev.lapses + 1,
            )

        return self._graduate(prev, rating, now, stability, difficulty, prev.ease, prev.reps + 1)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _step(
        self,
        prev: MemoryState,
        state: CardState,
        step: int,
        now: datetime,
        stability: float,
        difficulty: float,
        ease: float,
        reps: int,
        lapses: int,
    ) -> MemoryState:
        """Keep the card on a sub-day ladder."""
        ladder = (
            self.parameters.learning_steps
            if state is CardState.LEARNING
            else self.parameters.relearning_steps
        )
        return prev.evolve(
            state=state,
            step=step,
            interval=0,
            ease=ease,
            stability=stability,
            difficulty=difficulty,
            reps=reps,
            lapses=lapses,
            last_review=now,
            next_review=now + timedelta(minutes=ladder[step]),
        )

    def _graduate(
        self,
        prev: MemoryState,
        rating: Rating,
        now: datetime,
        stability: float,
        difficulty: float,
        ease: float,
        reps: int,
    ) -> MemoryState:
        """Move the card to (or keep it in) Review with a whole-day interval."""
        interval = self._review_interval(stability, ease, rating, self._fuzz_factor(prev))
        return prev.evolve(
            state=CardState.REVIEW,
            step=0,
            interval=interval,
            ease=ease,
            stability=stability,
            difficulty=difficulty,
            reps=reps,
            last_review=now,
            next_review=now + timedelta(days=interval),
        )

    def _review_interval(
        self, stability: float, ease: float, rating: Rating, fuzz: float
    ) -> int:
        base = interval_for_retention(stability, self.parameters.desired_retention)
        bonus = EASY_INTERVAL_BONUS if rating is Rating.EASY else 1.0
        days = round(base * ease / EASE_SEED * bonus * fuzz)
        return int(min(max(days, MIN_REVIEW_INTERVAL), self.parameters.maximum_interval))

    def _fuzz_factor(self, prev: MemoryState) -> float:
        """
        Deterministic per-state fuzz factor in [1 - FUZZ_RANGE, 1 + FUZZ_RANGE].

        Seeded only from the pre-rating state, so every rating of the same
        state shares one factor and relative ordering is preserved.
        """
        if not self.parameters.enable_fuzz:
            return 1.0
        last = prev.last_review.isoformat() if prev.last_review else "-"
        rng = random.Random(f"{self.parameters.fuzz_seed}:{prev.reps}:{prev.lapses}:{last}")
        return rng.uniform(1 - FUZZ_RANGE, 1 + FUZZ_RANGE)

    @staticmethod
    def _elapsed_days(prev: MemoryState, now: datetime) -> float:
        if prev.last_review is None:
            return float(prev.interval)
        return max(0.0, (now - prev.last_review).total_seconds() / SECONDS_PER_DAY)


def format_interval(delta: timedelta) -> str:
    """Short label for a time until review: minutes, hours, days, months or years."""
    minutes = max(1, round(delta.total_seconds() / 60))
    if minutes < 60:
        return f"{minutes}m"
    if minutes < 24 * 60:
        return f"{round(minutes / 60)}h"
    days = round(delta.total_seconds() / SECONDS_PER_DAY)
    if days < 30:
        return f"{days}d"
    if days < 365:
        return f"{round(days / 30)}mo"
    return f"{round(days / 365, 1)}y"
