from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import datetime, time
from enum import Enum
from typing import Any

from cafehoppr.models.enums import Weekday

logger = logging.getLogger(__name__)


class OpenStatus(str, Enum):
    open = "open"
    closed = "closed"
    unknown = "unknown"


def _split_days(raw: str) -> list[str]:
    text = raw.strip()
    if not text:
        return []
    if text.startswith("["):
        try:
            loaded = json.loads(text)
        except ValueError:
            logger.warning("Unparseable operational_days JSON: %r", raw)
            return []
        return [str(x) for x in loaded] if isinstance(loaded, list) else []
    # Postgres array literal: {MON,TUE,"WED"}
    if text.startswith("{") and text.endswith("}"):
        text = text[1:-1]
    return [part.strip().strip('"') for part in text.split(",")]


def parse_operational_days(value: Any) -> list[Weekday]:
    """Normalise every stored encoding of operational days into day codes.

    Accepts a list, a JSON array string, a Postgres array literal or a
    comma-separated string. Unknown codes are dropped, duplicates removed and
    the result ordered Monday first.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = _split_days(value)
    else:
        items = value

    seen: set[Weekday] = set()
    for item in items:
        code = item.value if isinstance(item, Weekday) else str(item).strip().upper()[:3]
        try:
            seen.add(Weekday(code))
        except ValueError:
            logger.debug("Skip unknown weekday code: %r", item)
    return [day for day in Weekday if day in seen]


def days_to_csv(days: Iterable[Any]) -> str:
    return ",".join(day.value for day in parse_operational_days(list(days)))


def parse_hour(value: Any) -> time | None:
    """Read ``HH:MM`` / ``HH:MM:SS`` / ISO datetime strings or ``time`` objects."""
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if isinstance(value, datetime):
        return value.time().replace(second=0, microsecond=0)
    text = str(value).strip()
    if "T" in text:
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).time().replace(second=0, microsecond=0)
        except ValueError:
            return None
    try:
        return time.fromisoformat(text).replace(second=0, microsecond=0)
    except ValueError:
        return None


def format_hour(value: time | None) -> str:
    return value.strftime("%H:%M") if value else ""


def open_status(operational_days: Any, opening: Any, closing: Any, *, now: datetime | None = None) -> OpenStatus:
    days = parse_operational_days(operational_days)
    opening_at = parse_hour(opening)
    closing_at = parse_hour(closing)
    if not days or opening_at is None or closing_at is None:
        return OpenStatus.unknown

    now = now or datetime.now()
    today = Weekday.from_index(now.weekday())
    current = now.time().replace(second=0, microsecond=0)

    if today in days and opening_at <= current < closing_at:
        return OpenStatus.open
    return OpenStatus.closed
