"""
Review Service: the read / schedule / write cycle for one rating.

The scheduler itself never touches storage. This service reads the card,
asks the scheduler for the next state, and writes it back with an
optimistic version check:

- a stale write (someone else wrote first) re-reads and recomputes, unless
  the stored card already holds this very result;
- an unreachable backend retries the same write with exponential backoff,
  then parks it in the fallback store if one is configured;
- repeated unavailability opens a circuit breaker, and while it is open
  writes go straight to the fallback store;
- if nothing could be written, the computed result is still returned so the
  caller can retry the write without rescheduling.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

from cadence.application.circuit_breaker import CircuitBreaker
from cadence.application.queue_builder import CardFilter, StudyQueue
from cadence.application.scheduler import ScheduleResult, Scheduler
from cadence.domain.constants import (
    DEFAULT_MAX_WRITE_ATTEMPTS,
    DEFAULT_RETRY_BASE_DELAY,
    MAX_RETRY_DELAY,
)
from cadence.domain.errors import RepositoryError, RepositoryUnavailableError, StaleWriteError
from cadence.domain.models import Card, Rating
from cadence.domain.ports import CardRepository
from cadence.domain.session import ReviewRecord, ReviewSession

logger = logging.getLogger(__name__)


@dataclass
class ReviewOutcome:
    """Result of rating a card, including where (if anywhere) it was stored."""

    card: Card  # Card carrying the new memory state
    result: ScheduleResult
    persisted: bool
    stored_in: Literal["primary", "fallback"] | None
    attempts: int
    error: Exception | None = None


class ReviewService:
    """
    Application service applying ratings to stored cards.

    Follows Dependency Inversion: depends on the CardRepository abstraction,
    never on a concrete store.
    """

    def __init__(
        self,
        repository: CardRepository,
        scheduler: Scheduler | None = None,
        fallback: CardRepository | None = None,
        max_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        breaker: CircuitBreaker | None = None,
    ):
        """
        Args:
            repository: Primary store (port).
            scheduler: Scheduler to use; default parameters if not provided.
            fallback: Optional store that receives writes the primary rejected.
            max_attempts: Upper bound for both stale-write recomputes and
                unavailable-backend retries.
            retry_base_delay: First backoff delay in seconds (doubles per retry).
            breaker: Circuit breaker for primary writes; share one across
                services to share its state.
        """
        self._repo = repository
        self._fallback = fallback
        self.scheduler = scheduler or Scheduler()
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay = retry_base_delay
        self.breaker = breaker or CircuitBreaker()

    async def due_queue(
        self, now: datetime | None = None, card_filter: CardFilter | None = None
    ) -> StudyQueue:
        now = now or datetime.now(timezone.utc)
        cards = await self._repo.list_cards()
        return StudyQueue.build(cards, now, card_filter)

    async def preview(self, card_id: str, now: datetime | None = None) -> dict[Rating, int]:
        now = now or datetime.now(timezone.utc)
        card = await self._repo.get_card(card_id)
        return self.scheduler.preview_schedule(card.memory, now)

    async def rate(
        self,
        card_id: str,
        rating: Rating | int | str,
        now: datetime | None = None,
        session: ReviewSession | None = None,
        time_spent_ms: int = 0,
    ) -> ReviewOutcome:
        """
        Rate a card and persist its new memory state.

        Raises:
            InvalidRatingError: Before any I/O, if `rating` is invalid.
            CardNotFoundError: The card does not exist in the primary store.
        """
        rating = Rating.parse(rating)
        now = now or datetime.now(timezone.utc)

        card = await self._repo.get_card(card_id)
        result = self.scheduler.schedule(card.memory, rating, now)

        if self.breaker.allow():
            outcome = await self._persist(card, result, now)
        else:
            logger.warning(f"Circuit breaker open, not writing card {card_id} to primary store")
            error = RepositoryUnavailableError("Primary store circuit breaker is open")
            outcome = await self._fall_back(card, result, now, 0, error)

        if session is not None:
            session.log(
                ReviewRecord(
                    card_id=card_id,
                    rating=rating,
                    reviewed_at=now,
                    time_spent_ms=time_spent_ms,
                    previous=outcome.result.previous,
                    new=outcome.result.memory,
                )
            )
        return outcome

    async def _persist(self, card: Card, result: ScheduleResult, now: datetime) -> ReviewOutcome:
        """
        Write `result` for `card`, recomputing from fresh state on stale writes.

        A stale write is checked against the stored card first: a write that
        committed but whose response was lost (timeout, dropped connection)
        looks stale on retry, and re-applying the rating would count it twice.
        """
        attempt = 1
        while True:
            try:
                stored = await self._write_with_retry(card, result)
            except RepositoryUnavailableError as e:
                self.breaker.record_failure()
                return await self._fall_back(card, result, now, attempt, e)
            except StaleWriteError as e:
                try:
                    fresh = await self._repo.get_card(card.id)
                except RepositoryUnavailableError as read_error:
                    self.breaker.record_failure()
                    return await self._fall_back(card, result, now, attempt, read_error)
                except RepositoryError as read_error:
                    logger.error(f"Re-reading card {card.id} after {e} failed: {read_error}")
                    return self._unpersisted(card, result, now, attempt, read_error)

                self.breaker.record_success()
                if fresh.memory == result.memory:
                    logger.info(f"Card {card.id} already holds this review; not applying it again")
                    return ReviewOutcome(fresh, result, True, "primary", attempt)
                if attempt >= self.max_attempts:
                    logger.error(f"{e}; giving up after {attempt} attempts")
                    return self._unpersisted(card, result, now, attempt, e)

                logger.warning(f"{e}; re-reading and recomputing (attempt {attempt})")
                card = fresh
                result = self.scheduler.schedule(card.memory, result.rating, now)
                attempt += 1
            else:
                self.breaker.record_success()
                return ReviewOutcome(stored, result, True, "primary", attempt)

    async def _write_with_retry(self, card: Card, result: ScheduleResult) -> Card:
        """
        Write one computed result, retrying only while the backend is unreachable.

        A half-open breaker allows a single trial write.
        """
        budget = 1 if self.breaker.state == "half_open" else self.max_attempts
        retry = 0
        while True:
            try:
                return await self._repo.save_memory(card.id, result.memory, card.version)
            except RepositoryUnavailableError as e:
                retry += 1
                if retry >= budget:
                    logger.error(f"Write for card {card.id} failed after {retry} attempts")
                    raise
                delay = min(self.retry_base_delay * (2 ** (retry - 1)), MAX_RETRY_DELAY)
                logger.warning(f"Write for card {card.id} failed ({e}), retrying in {delay:.2f}s")
                await asyncio.sleep(delay)

    async def _fall_back(
        self,
        card: Card,
        result: ScheduleResult,
        now: datetime,
        attempt: int,
        error: Exception,
    ) -> ReviewOutcome:
        if self._fallback is None:
            return self._unpersisted(card, result, now, attempt, error)

        logger.warning(f"Primary store unavailable, saving card {card.id} to fallback store")
        try:
            stored = await self._fallback.put_card(card.with_memory(result.memory, updated_at=now))
        except RepositoryError as e:
            logger.error(f"Fallback write for card {card.id} failed: {e}")
            return self._unpersisted(card, result, now, attempt, e)
        return ReviewOutcome(stored, result, True, "fallback", attempt, error)

    @staticmethod
    def _unpersisted(
        card: Card, result: ScheduleResult, now: datetime, attempt: int, error: Exception
    ) -> ReviewOutcome:
        return ReviewOutcome(
            card.with_memory(result.memory, updated_at=now), result, False, None, attempt, error
        )
