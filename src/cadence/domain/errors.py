"""Error taxonomy for the scheduling engine and its storage ports."""


class CadenceError(Exception):
    """Base class for every error raised by cadence."""


class InvalidRatingError(CadenceError, ValueError):
    """A rating outside the closed Again/Hard/Good/Easy set reached the scheduler."""

    def __init__(self, value: object):
        super().__init__(f"Invalid rating: {value!r} (expected again, hard, good or easy)")
        self.value = value


class RepositoryError(CadenceError):
    """Base class for storage adapter failures."""


class CardNotFoundError(RepositoryError):
    def __init__(self, card_id: str):
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id


class StaleWriteError(RepositoryError):
    """The stored card changed since it was read; recompute from fresh state."""

    def __init__(self, card_id: str, expected_version: int, actual_version: int | None = None):
        detail = f" (stored version {actual_version})" if actual_version is not None else ""
        super().__init__(
            f"Stale write for card {card_id}: expected version {expected_version}{detail}"
        )
        self.card_id = card_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class RepositoryUnavailableError(RepositoryError):
    """The backend could not be reached. The write may be retried as-is."""
