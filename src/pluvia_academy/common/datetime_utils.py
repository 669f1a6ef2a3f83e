from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def now_utc() -> datetime:
    """Current UTC time as a naive datetime (MySQL DATETIME has no zone).

    Note: Wrapped so services can take a clock and tests can pin it.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string into a naive UTC datetime."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
