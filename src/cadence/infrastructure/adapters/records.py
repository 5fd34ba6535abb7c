"""
Mapping between domain cards and the plain records the stores persist.

Stored records are historical data: a field that cannot be read is replaced
by its default with a warning instead of failing the whole read. Float
fields keep non-finite values so the scheduler's sanitizer can clamp them.
"""

import logging
import math
from datetime import datetime
from typing import Any

from cadence.domain.constants import EASE_SEED
from cadence.domain.models import Card, CardState, MemoryState

logger = logging.getLogger(__name__)


def coerce_int(data: dict[str, Any], key: str, default: int = 0) -> int:
    """Read an integer field; unparsable or non-finite values become `default`."""
    value = data.get(key)
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Unreadable {key}={value!r} in stored record, using {default}")
        return default
    if not math.isfinite(number):
        logger.warning(f"Non-finite {key}={value!r} in stored record, using {default}")
        return default
    return int(number)


def coerce_float(data: dict[str, Any], key: str, default: float) -> float:
    """Read a float field; unparsable values become `default`, NaN and inf pass through."""
    value = data.get(key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Unreadable {key}={value!r} in stored record, using {default}")
        return default


def _dt_to_str(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dt_from_str(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        # Hosted databases commonly return a trailing Z for UTC
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unreadable timestamp {value!r} in stored record, ignoring it")
        return None


def memory_to_record(memory: MemoryState) -> dict[str, Any]:
    return {
        "state": memory.state.value,
        "step": memory.step,
        "interval": memory.interval,
        "ease": memory.ease,
        "stability": memory.stability,
        "difficulty": memory.difficulty,
        "reps": memory.reps,
        "lapses": memory.lapses,
        "next_review": _dt_to_str(memory.next_review),
        "last_review": _dt_to_str(memory.last_review),
    }


def memory_from_record(data: dict[str, Any] | None) -> MemoryState:
    """
    Build a MemoryState from a stored record.

    Missing or unreadable fields take their defaults and an unknown state
    string is read as New; numeric range repair is left to the scheduler's
    sanitizer.
    """
    if not isinstance(data, dict) or not data:
        return MemoryState()
    try:
        state = CardState(data.get("state") or CardState.NEW.value)
    except ValueError:
        state = CardState.NEW
    return MemoryState(
        state=state,
        step=coerce_int(data, "step"),
        interval=coerce_int(data, "interval"),
        ease=coerce_float(data, "ease", EASE_SEED),
        stability=coerce_float(data, "stability", 0.0),
        difficulty=coerce_float(data, "difficulty", 0.0),
        reps=coerce_int(data, "reps"),
        lapses=coerce_int(data, "lapses"),
        next_review=_dt_from_str(data.get("next_review")),
        last_review=_dt_from_str(data.get("last_review")),
    )


def card_to_record(card: Card) -> dict[str, Any]:
    return {
        "id": card.id,
        "front": card.front,
        "back": card.back,
        "tags": list(card.tags),
        "topic": card.topic,
        "difficulty_label": card.difficulty_label,
        "spaced_repetition": memory_to_record(card.memory),
        "version": card.version,
        "created_at": _dt_to_str(card.created_at),
        "updated_at": _dt_to_str(card.updated_at),
    }


def card_from_record(data: dict[str, Any]) -> Card:
    return Card(
        id=str(data["id"]),
        front=data.get("front", ""),
        back=data.get("back", ""),
        tags=list(data.get("tags") or []),
        topic=data.get("topic"),
        difficulty_label=data.get("difficulty_label"),
        memory=memory_from_record(data.get("spaced_repetition")),
        version=coerce_int(data, "version"),
        created_at=_dt_from_str(data.get("created_at")),
        updated_at=_dt_from_str(data.get("updated_at")),
    )
