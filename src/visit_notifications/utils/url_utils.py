from __future__ import annotations

from urllib.parse import urlsplit

UNKNOWN_REFERER = "unknown"


def is_valid_url(url: str | None) -> bool:
    value = (url or "").strip()
    if not value or any(char.isspace() for char in value):
        return False

    try:
        parsed = urlsplit(value)
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def normalize_referer(referer: str | None) -> str:
    value = (referer or "").strip()
    return value if is_valid_url(value) else UNKNOWN_REFERER
