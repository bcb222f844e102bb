"""
Timestamp coercion shared by request bodies and query filters.

Numbers and digit-only strings are millisecond epochs. Everything else must be
an ISO-8601 string; a trailing ``Z`` is accepted. Results are timezone-aware
and normalized to UTC.
"""

from datetime import UTC, datetime
from typing import Any


def parse_timestamp(value: Any) -> datetime:
    """Coerce ``value`` to an aware UTC datetime or raise ``ValueError``."""
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")

    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, int | float):
            parsed = datetime.fromtimestamp(value / 1000, UTC)
        elif isinstance(value, str):
            text = value.strip()
            if text.lstrip("-").isdigit():
                parsed = datetime.fromtimestamp(int(text) / 1000, UTC)
            else:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        else:
            raise ValueError(f"Not a timestamp: {value!r}")
    except (OverflowError, OSError) as e:
        # Epochs outside the platform's datetime range
        raise ValueError(f"Timestamp out of range: {value!r}") from e

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
