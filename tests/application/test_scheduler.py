"""Tests for the scheduler: state transitions, preview, bounds and corrupted input."""

import math
from datetime import timedelta

import pytest

from cadence.application.config import SchedulerParameters
from cadence.application.scheduler import ScheduleResult, Scheduler, format_interval
from cadence.domain.constants import DIFFICULTY_MAX, EASE_MIN, EASE_SEED, STABILITY_MIN
from cadence.domain.errors import CadenceError, InvalidRatingError
from cadence.domain.models import CardState, MemoryState, Rating

# --- New cards ---


def test_new_again_enters_learning_without_rep(scheduler, now):
    result = scheduler.schedule(MemoryState(), Rating.AGAIN, now)

    assert result.memory.state is CardState.LEARNING
    assert result.memory.reps == 0
    assert result.memory.lapses == 0
    assert result.memory.next_review == now + timedelta(minutes=1)
    assert result.scheduled_days == 0


def test_new_good_enters_learning_second_step(scheduler, now):
    result = scheduler.schedule(MemoryState(), Rating.GOOD, now)

    assert result.memory.state is CardState.LEARNING
    assert result.memory.step == 1
    assert result.memory.reps == 1
    assert result.memory.next_review == now + timedelta(minutes=10)


def test_new_hard_enters_learning_first_step(scheduler, now):
    result = scheduler.schedule(MemoryState(), Rating.HARD, now)

    assert result.memory.state is CardState.LEARNING
    assert result.memory.step == 0
    assert result.memory.reps == 1


def test_new_easy_goes_straight_to_review(scheduler, now):
    result = scheduler.schedule(MemoryState(), Rating.EASY, now)

    assert result.memory.state is CardState.REVIEW
    assert result.memory.reps == 1
    assert result.memory.interval >= 1
    assert result.memory.next_review == now + timedelta(days=result.memory.interval)


def test_new_card_is_seeded(scheduler, now):
    result = scheduler.schedule(MemoryState(), Rating.GOOD, now)

    assert result.memory.stability > 0
    assert 1 <= result.memory.difficulty <= 10
    assert result.memory.ease == EASE_SEED
    assert result.memory.last_review == now


def test_single_learning_step_graduates_on_good(now):
    scheduler = Scheduler(SchedulerParameters(learning_steps=(10,)))
    result = scheduler.schedule(MemoryState(), Rating.GOOD, now)

    assert result.memory.state is CardState.REVIEW
    assert result.memory.interval >= 1


# --- Learning ---


def test_learning_again_restarts_without_lapse(scheduler, now):
    learning = scheduler.schedule(MemoryState(), Rating.GOOD, now).memory
    result = scheduler.schedule(learning, Rating.AGAIN, now + timedelta(minutes=10))

    assert result.memory.state is CardState.LEARNING
    assert result.memory.step == 0
    assert result.memory.lapses == 0
    assert result.memory.reps == learning.reps


def test_learning_hard_repeats_step(scheduler, now):
    learning = scheduler.schedule(MemoryState(), Rating.HARD, now).memory
    later = now + timedelta(minutes=1)
    result = scheduler.schedule(learning, Rating.HARD, later)

    assert result.memory.state is CardState.LEARNING
    assert result.memory.step == learning.step
    assert result.memory.next_review == later + timedelta(minutes=1)
    assert result.memory.reps == learning.reps + 1


def test_learning_good_advances_through_ladder(scheduler, now):
    learning = scheduler.schedule(MemoryState(), Rating.AGAIN, now).memory
    assert learning.step == 0

    step_two = scheduler.schedule(learning, Rating.GOOD, now + timedelta(minutes=1)).memory
    assert step_two.state is CardState.LEARNING
    assert step_two.step == 1

    graduated = scheduler.schedule(step_two, Rating.GOOD, now + timedelta(minutes=11)).memory
    assert graduated.state is CardState.REVIEW
    assert graduated.interval >= 1


def test_learning_easy_graduates_immediately(scheduler, now):
    learning = scheduler.schedule(MemoryState(), Rating.AGAIN, now).memory
    result = scheduler.schedule(learning, Rating.EASY, now + timedelta(minutes=1))

    assert result.memory.state is CardState.REVIEW
    assert result.memory.interval >= 1


def test_learning_steps_stay_within_the_day(scheduler, now):
    memory = MemoryState()
    for rating in (Rating.AGAIN, Rating.HARD, Rating.AGAIN, Rating.GOOD):
        result = scheduler.schedule(memory, rating, now)
        if result.memory.state is CardState.LEARNING:
            assert result.memory.next_review - now < timedelta(days=1)
            assert result.scheduled_days == 0
        memory = result.memory


# --- Review ---


def test_review_again_lapses(scheduler, review_memory, now):
    result = scheduler.schedule(review_memory, Rating.AGAIN, now)

    assert result.memory.state is CardState.RELEARNING
    assert result.memory.lapses == review_memory.lapses + 1
    assert result.memory.reps == review_memory.reps
    assert result.memory.ease < review_memory.ease
    assert result.memory.stability < review_memory.stability
    assert result.memory.difficulty > review_memory.difficulty
    assert result.memory.interval == 0
    assert result.memory.next_review == now + timedelta(minutes=10)


def test_review_success_stays_in_review(scheduler, review_memory, now):
    for rating in (Rating.HARD, Rating.GOOD, Rating.EASY):
        result = scheduler.schedule(review_memory, rating, now)
        assert result.memory.state is CardState.REVIEW
        assert result.memory.reps == review_memory.reps + 1
        assert result.memory.lapses == review_memory.lapses
        assert result.memory.stability >= review_memory.stability
        assert result.memory.difficulty <= review_memory.difficulty
        assert result.memory.next_review == now + timedelta(days=result.memory.interval)


def test_review_ease_adjustments(scheduler, review_memory, now):
    hard = scheduler.schedule(review_memory, Rating.HARD, now).memory
    good = scheduler.schedule(review_memory, Rating.GOOD, now).memory
    easy = scheduler.schedule(review_memory, Rating.EASY, now).memory

    assert hard.ease < review_memory.ease
    assert good.ease == review_memory.ease
    assert easy.ease > review_memory.ease


def test_review_stability_grows_more_for_easy(scheduler, review_memory, now):
    hard = scheduler.schedule(review_memory, Rating.HARD, now).memory
    easy = scheduler.schedule(review_memory, Rating.EASY, now).memory

    assert easy.stability > hard.stability


def test_review_good_grows_interval_when_due(plain_scheduler, review_memory, now):
    result = plain_scheduler.schedule(review_memory, Rating.GOOD, now)
    assert result.memory.interval > review_memory.interval


def test_review_interval_respects_maximum(now, review_memory):
    scheduler = Scheduler(SchedulerParameters(maximum_interval=5))
    result = scheduler.schedule(review_memory, Rating.EASY, now)
    assert result.memory.interval == 5


# --- Relearning ---


def test_relearning_again_counts_lapse(scheduler, review_memory, now):
    relearning = scheduler.schedule(review_memory, Rating.AGAIN, now).memory
    result = scheduler.schedule(relearning, Rating.AGAIN, now + timedelta(minutes=10))

    assert result.memory.state is CardState.RELEARNING
    assert result.memory.lapses == relearning.lapses + 1
    assert result.memory.step == 0
    assert result.memory.ease <= relearning.ease


def test_relearning_success_returns_to_review(scheduler, review_memory, now):
    relearning = scheduler.schedule(review_memory, Rating.AGAIN, now).memory
    for rating in (Rating.HARD, Rating.GOOD, Rating.EASY):
        result = scheduler.schedule(relearning, rating, now + timedelta(minutes=10))
        assert result.memory.state is CardState.REVIEW
        assert result.memory.reps == relearning.reps + 1
        assert result.memory.interval >= 1


# --- End-to-end scenario ---


def test_full_lifecycle_scenario(scheduler, now):
    # New -> Good: learning, due later today
    first = scheduler.schedule(MemoryState(), Rating.GOOD, now).memory
    assert first.state is CardState.LEARNING
    assert first.next_review.date() == now.date()
    assert first.reps == 1

    # Good again: graduates
    t2 = first.next_review
    second = scheduler.schedule(first, Rating.GOOD, t2).memory
    assert second.state is CardState.REVIEW
    assert second.interval >= 1
    assert second.reps == 2

    # Forgot it when due: relearning
    t3 = second.next_review
    third = scheduler.schedule(second, Rating.AGAIN, t3).memory
    assert third.state is CardState.RELEARNING
    assert third.lapses == 1
    assert third.ease < second.ease
    assert third.interval == 0
    assert third.next_review - t3 < timedelta(days=1)
    assert third.stability < second.stability

    # Recovered: back to review from the lowered stability
    fourth = scheduler.schedule(third, Rating.GOOD, third.next_review).memory
    assert fourth.state is CardState.REVIEW
    assert fourth.reps == 3
    assert fourth.interval >= 1
    assert fourth.stability < second.stability


# --- Preview ---


def test_preview_matches_schedule(scheduler, review_memory, now):
    preview = scheduler.preview_schedule(review_memory, now)

    assert set(preview) == set(Rating)
    for rating, days in preview.items():
        assert scheduler.schedule(review_memory, rating, now).scheduled_days == days


def test_preview_new_card(scheduler, now):
    preview = scheduler.preview_schedule(MemoryState(), now)

    assert preview[Rating.AGAIN] == 0
    assert preview[Rating.HARD] == 0
    assert preview[Rating.GOOD] == 0
    assert preview[Rating.EASY] >= 1


def test_preview_does_not_mutate(scheduler, review_memory, now):
    before = review_memory
    scheduler.preview_schedule(review_memory, now)
    assert review_memory == before


def test_preview_labels(scheduler, now):
    labels = scheduler.preview_labels(MemoryState(), now)

    assert labels[Rating.AGAIN] == "1m"
    assert labels[Rating.GOOD] == "10m"
    assert labels[Rating.EASY].endswith("d")


# --- Fuzz ---


def test_fuzz_is_deterministic(review_memory, now):
    a = Scheduler(SchedulerParameters(fuzz_seed=7))
    b = Scheduler(SchedulerParameters(fuzz_seed=7))

    assert a.schedule(review_memory, Rating.GOOD, now) == b.schedule(
        review_memory, Rating.GOOD, now
    )


def test_fuzz_stays_within_range(review_memory, now):
    plain = Scheduler(SchedulerParameters(enable_fuzz=False))
    base = plain.schedule(review_memory, Rating.GOOD, now).scheduled_days

    for seed in range(20):
        fuzzed = Scheduler(SchedulerParameters(fuzz_seed=seed))
        days = fuzzed.schedule(review_memory, Rating.GOOD, now).scheduled_days
        assert abs(days - base) <= math.ceil(base * 0.05) + 1


# --- Input validation ---


@pytest.mark.parametrize("bad", [0, 5, -1, "meh", None, 2.5, True])
def test_invalid_rating_fails_fast(scheduler, now, bad):
    with pytest.raises(InvalidRatingError):
        scheduler.schedule(MemoryState(), bad, now)


@pytest.mark.parametrize(
    "value,expected",
    [(1, Rating.AGAIN), ("good", Rating.GOOD), ("EASY", Rating.EASY), ("2", Rating.HARD)],
)
def test_rating_coercion(scheduler, now, value, expected):
    assert scheduler.schedule(MemoryState(), value, now).rating is expected


def test_corrupted_state_is_clamped(scheduler, now):
    corrupted = MemoryState(
        state=CardState.REVIEW,
        interval=-5,
        ease=0.4,
        stability=float("nan"),
        difficulty=float("inf"),
        reps=-2,
        lapses=-1,
        last_review=now - timedelta(days=3),
    )

    result = scheduler.schedule(corrupted, Rating.GOOD, now)

    assert result.previous.interval == 0
    assert result.previous.ease == EASE_MIN
    assert result.previous.stability == STABILITY_MIN
    assert result.previous.difficulty == DIFFICULTY_MAX
    assert result.previous.reps == 0
    assert result.previous.lapses == 0
    assert result.memory.state is CardState.REVIEW
    assert result.memory.interval >= 1
    assert math.isfinite(result.memory.stability)


def test_out_of_range_learning_step_is_clamped(scheduler, now):
    memory = MemoryState(state=CardState.LEARNING, step=9, stability=1.0, difficulty=5.0)
    result = scheduler.schedule(memory, Rating.HARD, now)

    assert result.memory.state is CardState.LEARNING
    assert result.memory.step == 1


def test_apply_keeps_content(scheduler, make_card, now):
    card = make_card(tags=["cardio"], topic="Heart")
    updated = scheduler.apply(card, Rating.GOOD, now)

    assert updated.front == card.front
    assert updated.tags == ["cardio"]
    assert updated.memory.state is CardState.LEARNING
    assert card.memory.state is CardState.NEW


# --- Labels ---


@pytest.mark.parametrize(
    "delta,label",
    [
        (timedelta(seconds=20), "1m"),
        (timedelta(minutes=10), "10m"),
        (timedelta(hours=3), "3h"),
        (timedelta(days=4), "4d"),
        (timedelta(days=90), "3mo"),
        (timedelta(days=730), "2.0y"),
    ],
)
def test_format_interval(delta, label):
    assert format_interval(delta) == label


def test_schedule_result_without_next_review_raises(now):
    result = ScheduleResult(
        memory=MemoryState(), previous=MemoryState(), rating=Rating.GOOD, scheduled_days=0
    )

    with pytest.raises(CadenceError, match="no next review"):
        result.next_review


def test_schedule_result_next_review(scheduler, now):
    assert scheduler.schedule(MemoryState(), Rating.GOOD, now).next_review == now + timedelta(
        minutes=10
    )
