"""
Ports (interfaces) for card persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import Card, MemoryState


class CardRepository(ABC):
    """
    Port for reading cards and writing back their scheduling state.

    Implementations:
        - LocalCardRepository: JSON file on the local machine (fallback store).
        - RemoteCardRepository: Hosted database over its REST API.
    """

    @abstractmethod
    async def list_cards(self) -> list[Card]:
        """Return every card in the store, in insertion order."""
        pass

    @abstractmethod
    async def get_card(self, card_id: str) -> Card:
        """
        Fetch a single card.

        Raises:
            CardNotFoundError: No card with this id exists.
        """
        pass

    @abstractmethod
    async def save_memory(
        self, card_id: str, memory: MemoryState, expected_version: int
    ) -> Card:
        """
        Write the card's memory state if the stored version still matches.

        Args:
            card_id: Card to update.
            memory: The scheduler's output.
            expected_version: Version the caller read before scheduling.

        Returns:
            The stored card with its bumped version.

        Raises:
            StaleWriteError: Another writer got there first.
            RepositoryUnavailableError: The backend could not be reached.
        """
        pass

    @abstractmethod
    async def add_card(self, card: Card) -> Card:
        """Insert a new card and return it as stored."""
        pass

    @abstractmethod
    async def put_card(self, card: Card) -> Card:
        """
        Insert or overwrite a whole card without a version check.

        Last write wins. Used to park a write in a fallback store;
        reconciling it with the primary store is the store's concern.
        """
        pass
