from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from visit_notifications.config import LocationSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Location:
    location: str
    timezone: str | None


class IpApiLocator:
    """Looks up city/country and timezone for an (anonymized) IP via ipapi.co.

    The lookup is best effort: any failure returns None so the visit is
    recorded without location data.
    """

    def __init__(self, settings: LocationSettings) -> None:
        self.endpoint = settings.endpoint
        self.timeout_seconds = settings.timeout_seconds

    def lookup(self, ip: str) -> Location | None:
        url = self.endpoint.format(ip=ip)
        try:
            response = requests.get(url, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            logger.debug("Location lookup for %s failed: %s", ip, exc)
            return None

        if response.status_code != 200:
            logger.debug("Location lookup for %s returned %d", ip, response.status_code)
            return None

        try:
            body = response.json()
        except ValueError:
            return None

        if not isinstance(body, dict) or body.get("error"):
            return None

        parts = [str(body[key]) for key in ("city", "country_name") if body.get(key)]
        if not parts:
            return None

        timezone = body.get("timezone")
        return Location(location=", ".join(parts), timezone=str(timezone) if timezone else None)
