"""
Local Card Repository: Infrastructure adapter for a JSON file on disk.

The fallback store used when the user is not signed in or the hosted
database is unreachable. Implements CardRepository.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cadence.domain.errors import CardNotFoundError, RepositoryError, StaleWriteError
from cadence.domain.models import Card, MemoryState
from cadence.domain.ports import CardRepository

from .records import card_from_record, card_to_record, coerce_int, memory_to_record

logger = logging.getLogger(__name__)


class LocalCardRepository(CardRepository):
    """
    Stores cards in a single JSON document: {"cards": [...]}.

    A missing file is an empty collection. Writes go to a sibling temp file
    which then replaces the original, so a crash never leaves half a file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    # ------------------------------------------------------------------
    # File access
    # ------------------------------------------------------------------

    def _load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise RepositoryError(f"Corrupted card file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise RepositoryError(f"Corrupted card file {self.path}: expected a JSON object")
        cards = data.get("cards", [])
        if not isinstance(cards, list) or not all(isinstance(r, dict) for r in cards):
            raise RepositoryError(f"Corrupted card file {self.path}: 'cards' must be a list")
        return cards

    def _dump(self, records: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps({"cards": records}, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    # ------------------------------------------------------------------
    # CardRepository
    # ------------------------------------------------------------------

    async def list_cards(self) -> list[Card]:
        return [card_from_record(r) for r in self._load()]

    async def get_card(self, card_id: str) -> Card:
        for record in self._load():
            if record.get("id") == card_id:
                return card_from_record(record)
        raise CardNotFoundError(card_id)

    async def save_memory(
        self, card_id: str, memory: MemoryState, expected_version: int
    ) -> Card:
        records = self._load()
        for record in records:
            if record.get("id") != card_id:
                continue

            stored_version = coerce_int(record, "version")
            if stored_version != expected_version:
                raise StaleWriteError(card_id, expected_version, stored_version)

            record["spaced_repetition"] = memory_to_record(memory)
            record["version"] = stored_version + 1
            record["updated_at"] = datetime.now(timezone.utc).isoformat()
            self._dump(records)
            logger.debug(f"Saved card {card_id} locally (version {record['version']})")
            return card_from_record(record)

        raise CardNotFoundError(card_id)

    async def add_card(self, card: Card) -> Card:
        records = self._load()
        if any(r.get("id") == card.id for r in records):
            raise RepositoryError(f"Card already exists: {card.id}")

        now = datetime.now(timezone.utc)
        record = card_to_record(card)
        record["created_at"] = record["created_at"] or now.isoformat()
        record["updated_at"] = now.isoformat()
        records.append(record)
        self._dump(records)
        return card_from_record(record)

    async def put_card(self, card: Card) -> Card:
        """Insert or overwrite a card wholesale; the stored version keeps increasing."""
        records = self._load()
        record = card_to_record(card)
        for i, existing in enumerate(records):
            if existing.get("id") == card.id:
                record["version"] = max(card.version, coerce_int(existing, "version")) + 1
                records[i] = record
                break
        else:
            records.append(record)
        self._dump(records)
        return card_from_record(record)
