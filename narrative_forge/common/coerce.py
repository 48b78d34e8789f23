"""
Normalisers used by ``from_mapping`` constructors to accept loosely-typed JSON payloads.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence


def coerce_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def coerce_optional_str(value: Any) -> str | None:
    if value is None:
        return None

    text = str(value).strip()
    return text or None


def coerce_int(value: Any, default: int) -> int:
    if value is None or value == "" or isinstance(value, bool):
        return default

    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def coerce_optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None

    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected an integer-compatible value, got {value!r}") from exc


def coerce_float(value: Any, default: float) -> float:
    if value is None or value == "" or isinstance(value, bool):
        return default

    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def coerce_bool(value: Any, default: bool | None = None) -> bool | None:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
        return default
    return bool(value)


def string_list(value: Any) -> tuple[str, ...]:
    """
    Normalise a comma-separated string or a sequence into a tuple of non-empty strings.
    """
    if value is None:
        return ()

    if isinstance(value, str):
        parts = [item.strip() for item in value.split(",")]
    elif isinstance(value, Sequence):
        parts = [str(item).strip() for item in value if item is not None]
    else:
        raise TypeError("Expected a string or sequence of strings.")

    return tuple(filter(None, parts))


def mapping_list(value: Any) -> tuple[dict[str, Any], ...]:
    """
    Keep only mapping entries of a sequence, copied into plain dicts.
    """
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        return ()
    return tuple(dict(item) for item in value if isinstance(item, Mapping))


def as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def first_present(data: Mapping[str, Any], *keys: str) -> Any:
    """Return the value of the first key present (and not None) in ``data``."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def count_words(text: str) -> int:
    return len(text.split())


def reading_time_minutes(word_count: int, words_per_minute: int = 200) -> int:
    return math.ceil(word_count / words_per_minute) if word_count > 0 else 0
