"""
Remote Card Repository: Infrastructure adapter for the hosted database.

Talks to a PostgREST-style REST endpoint (`/rest/v1/<table>`) over httpx.
Optimistic concurrency is enforced server-side by filtering the PATCH on
the version the caller read.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from cadence.domain.constants import DEFAULT_REMOTE_TABLE, REQUEST_TIMEOUT
from cadence.domain.errors import (
    CardNotFoundError,
    RepositoryError,
    RepositoryUnavailableError,
    StaleWriteError,
)
from cadence.domain.models import Card, MemoryState
from cadence.domain.ports import CardRepository

from .records import card_from_record, card_to_record, memory_to_record

logger = logging.getLogger(__name__)


class RemoteCardRepository(CardRepository):
    """Adapter for the hosted card table (HTTP API)."""

    def __init__(
        self,
        url: str,
        api_key: str,
        access_token: str | None = None,
        table: str = DEFAULT_REMOTE_TABLE,
        client: httpx.AsyncClient | None = None,
    ):
        self.endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self.api_key = api_key
        self.access_token = access_token
        self._client = client
        logger.debug(f"RemoteCardRepository initialized with endpoint={self.endpoint}")

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        params: dict[str, str] | None = None,
        payload: Any = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)

        try:
            resp = await self._client.request(
                method,
                self.endpoint,
                params=params,
                json=payload,
                headers=self._headers(prefer),
            )
        except httpx.TransportError as e:
            raise RepositoryUnavailableError(f"{method} {self.endpoint} failed: {e}") from e

        if resp.status_code >= 500 or resp.status_code == 429:
            raise RepositoryUnavailableError(
                f"{method} {self.endpoint} returned {resp.status_code}"
            )
        if resp.is_error:
            raise RepositoryError(
                f"{method} {self.endpoint} returned {resp.status_code}: {resp.text}"
            )
        if not resp.content:
            return []
        data = resp.json()
        return data if isinstance(data, list) else [data]

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # CardRepository
    # ------------------------------------------------------------------

    async def list_cards(self) -> list[Card]:
        rows = await self._request("GET", params={"select": "*", "order": "created_at.asc"})
        return [card_from_record(r) for r in rows]

    async def get_card(self, card_id: str) -> Card:
        rows = await self._request("GET", params={"select": "*", "id": f"eq.{card_id}"})
        if not rows:
            raise CardNotFoundError(card_id)
        return card_from_record(rows[0])

    async def save_memory(
        self, card_id: str, memory: MemoryState, expected_version: int
    ) -> Card:
        rows = await self._request(
            "PATCH",
            params={"id": f"eq.{card_id}", "version": f"eq.{expected_version}"},
            payload={
                "spaced_repetition": memory_to_record(memory),
                "version": expected_version + 1,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            prefer="return=representation",
        )
        if rows:
            return card_from_record(rows[0])

        # Nothing matched: either the card is gone or someone else wrote first
        current = await self.get_card(card_id)
        raise StaleWriteError(card_id, expected_version, current.version)

    async def add_card(self, card: Card) -> Card:
        record = card_to_record(card)
        record["created_at"] = record["created_at"] or datetime.now(timezone.utc).isoformat()
        rows = await self._request("POST", payload=record, prefer="return=representation")
        return card_from_record(rows[0]) if rows else card

    async def put_card(self, card: Card) -> Card:
        rows = await self._request(
            "POST",
            payload=card_to_record(card),
            prefer="resolution=merge-duplicates,return=representation",
        )
        return card_from_record(rows[0]) if rows else card
