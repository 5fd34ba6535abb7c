"""
Card memory model: the numeric rules behind every scheduling transition.

A two-parameter stability/difficulty model with a power forgetting curve,
plus the legacy ease factor. Pure functions only; every result is clamped
to the bounds in `constants` so repeated updates cannot drift out of range.
"""

import logging
import math

from .constants import (
    DECAY,
    DIFFICULTY_DEFAULT,
    DIFFICULTY_LAPSE_STEP,
    DIFFICULTY_MAX,
    DIFFICULTY_MIN,
    DIFFICULTY_SUCCESS_STEPS,
    EASE_EASY_BONUS,
    EASE_HARD_PENALTY,
    EASE_LAPSE_PENALTY,
    EASE_MAX,
    EASE_MIN,
    EASE_SEED,
    EASY_BONUS,
    FACTOR,
    HARD_PENALTY,
    INITIAL_DIFFICULTY_BASE,
    INITIAL_DIFFICULTY_STEP,
    INITIAL_STABILITY,
    LAPSE_DIFFICULTY_POWER,
    LAPSE_RETRIEVABILITY_WEIGHT,
    LAPSE_STABILITY_CAP,
    LAPSE_STABILITY_POWER,
    LAPSE_WEIGHT,
    SHORT_TERM_OFFSET,
    SHORT_TERM_WEIGHT,
    STABILITY_MAX,
    STABILITY_MIN,
    SUCCESS_GROWTH_WEIGHT,
    SUCCESS_RETRIEVABILITY_WEIGHT,
    SUCCESS_STABILITY_POWER,
)
from .models import CardState, MemoryState, Rating

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_ease(ease: float) -> float:
    return _clamp(ease, EASE_MIN, EASE_MAX)


def clamp_stability(stability: float) -> float:
    return _clamp(stability, STABILITY_MIN, STABILITY_MAX)


def clamp_difficulty(difficulty: float) -> float:
    return _clamp(difficulty, DIFFICULTY_MIN, DIFFICULTY_MAX)


# ---------------------------------------------------------------------------
# Forgetting curve
# ---------------------------------------------------------------------------


def retrievability(stability: float, elapsed_days: float) -> float:
    """
    Probability of recall after `elapsed_days`.

    R = (1 + FACTOR * t / S) ^ DECAY, which equals 0.9 when t == S.
    """
    if stability <= 0:
        return 1.0
    elapsed_days = max(0.0, elapsed_days)
    return (1 + FACTOR * elapsed_days / stability) ** DECAY


def interval_for_retention(stability: float, desired_retention: float) -> float:
    """Days until retrievability decays to `desired_retention` (unrounded)."""
    return stability / FACTOR * (desired_retention ** (1 / DECAY) - 1)


# ---------------------------------------------------------------------------
# Seeding (first rating of a New card)
# ---------------------------------------------------------------------------


def initial_stability(rating: Rating) -> float:
    return clamp_stability(INITIAL_STABILITY[int(rating)])


def initial_difficulty(rating: Rating) -> float:
    return clamp_difficulty(INITIAL_DIFFICULTY_BASE - (int(rating) - 3) * INITIAL_DIFFICULTY_STEP)


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------


def next_difficulty(difficulty: float, rating: Rating) -> float:
    """Difficulty rises on a lapse and drifts down slightly on success."""
    if rating is Rating.AGAIN:
        return clamp_difficulty(difficulty + DIFFICULTY_LAPSE_STEP)
    return clamp_difficulty(difficulty - DIFFICULTY_SUCCESS_STEPS[int(rating)])


def next_ease(ease: float, rating: Rating) -> float:
    if rating is Rating.AGAIN:
        # A lapse can only lower ease
        return min(ease, clamp_ease(ease - EASE_LAPSE_PENALTY))
    if rating is Rating.HARD:
        return clamp_ease(ease - EASE_HARD_PENALTY)
    if rating is Rating.EASY:
        return clamp_ease(ease + EASE_EASY_BONUS)
    return clamp_ease(ease)


def success_stability(
    stability: float, difficulty: float, recall: float, rating: Rating
) -> float:
    """
    Stability after a successful review.

    Growth is larger for easier cards, for cards reviewed closer to being
    forgotten, and for better ratings. Never smaller than the input.
    """
    growth = (
        SUCCESS_GROWTH_WEIGHT
        * (11 - difficulty)
        * stability ** (-SUCCESS_STABILITY_POWER)
        * (math.exp(SUCCESS_RETRIEVABILITY_WEIGHT * (1 - recall)) - 1)
    )
    if rating is Rating.HARD:
        growth *= HARD_PENALTY
    elif rating is Rating.EASY:
        growth *= EASY_BONUS
    return clamp_stability(max(stability, stability * (1 + growth)))


def lapse_stability(stability: float, difficulty: float, recall: float) -> float:
    """Stability after a failed review: a sharp drop, deeper for difficult cards."""
    forgotten = (
        LAPSE_WEIGHT
        * difficulty ** (-LAPSE_DIFFICULTY_POWER)
        * ((stability + 1) ** LAPSE_STABILITY_POWER - 1)
        * math.exp(LAPSE_RETRIEVABILITY_WEIGHT * (1 - recall))
    )
    return clamp_stability(min(forgotten, stability * LAPSE_STABILITY_CAP))


def short_term_stability(stability: float, rating: Rating) -> float:
    """Same-day update applied on learning and relearning steps."""
    return clamp_stability(
        stability * math.exp(SHORT_TERM_WEIGHT * (int(rating) - 3 + SHORT_TERM_OFFSET))
    )


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------


def _sanitize_float(value: float, low: float, high: float, default: float) -> float:
    if math.isnan(value):
        return default
    return _clamp(value, low, high)


def sanitize(memory: MemoryState) -> MemoryState:
    """
    Clamp corrupted stored state to the nearest valid value.

    Bad historical data is repaired, never raised on. Stability and
    difficulty of a New card may legitimately be 0 (not yet seeded).
    """
    fixes: dict[str, object] = {}

    if memory.interval < 0:
        fixes["interval"] = 0
    if memory.step < 0:
        fixes["step"] = 0
    if memory.reps < 0:
        fixes["reps"] = 0
    if memory.lapses < 0:
        fixes["lapses"] = 0

    ease = _sanitize_float(memory.ease, EASE_MIN, EASE_MAX, EASE_SEED)
    if ease != memory.ease:
        fixes["ease"] = ease

    if memory.state is CardState.NEW:
        stability = _sanitize_float(memory.stability, 0.0, STABILITY_MAX, 0.0)
        difficulty = _sanitize_float(memory.difficulty, 0.0, DIFFICULTY_MAX, 0.0)
    else:
        stability = _sanitize_float(
            memory.stability, STABILITY_MIN, STABILITY_MAX, STABILITY_MIN
        )
        difficulty = _sanitize_float(
            memory.difficulty, DIFFICULTY_MIN, DIFFICULTY_MAX, DIFFICULTY_DEFAULT
        )
    # NaN compares unequal to everything, so it always lands here
    if stability != memory.stability:
        fixes["stability"] = stability
    if difficulty != memory.difficulty:
        fixes["difficulty"] = difficulty

    if not fixes:
        return memory

    logger.warning(f"Clamped corrupted memory state fields: {sorted(fixes)}")
    return memory.evolve(**fixes)
