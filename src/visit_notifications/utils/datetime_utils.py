from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from dateutil import parser

DIGEST_TIME_FORMAT = "%d/%m/%Y %H:%M"


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return to_utc(value)

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if value.lstrip("-").isdigit():
            return parse_timestamp(int(value))
        try:
            return to_utc(parser.parse(value))
        except (ValueError, TypeError, OverflowError):
            return None

    return None


def format_timestamp(value: Any) -> str:
    moment = parse_timestamp(value)
    if moment is None:
        return "unknown"
    return moment.strftime(DIGEST_TIME_FORMAT)
