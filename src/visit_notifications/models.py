from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from visit_notifications.utils.datetime_utils import parse_timestamp


class TargetKind(str, Enum):
    POST = "post"
    TERM = "term"


class Schedule(str, Enum):
    ON_VISIT = "visit"
    HOURLY = "hourly"
    DAILY = "daily"

    @property
    def is_batched(self) -> bool:
        return self is not Schedule.ON_VISIT


class LoggedInPolicy(str, Enum):
    GLOBAL = "global"
    ON = "on"
    OFF = "off"


class GraceContext(str, Enum):
    SITE = "site"
    POST = "post"


class PageKind(str, Enum):
    SINGULAR = "singular"
    ARCHIVE = "archive"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class Target:
    kind: TargetKind
    object_id: int
    title: str = field(default="", compare=False)

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.object_id}"

    @property
    def display_name(self) -> str:
        return self.title or self.key

    @classmethod
    def parse(cls, value: str, title: str = "") -> Target:
        """Parse a ``post:12`` / ``term:7`` reference."""
        kind_text, _, id_text = value.strip().partition(":")
        try:
            kind = TargetKind(kind_text.lower())
            object_id = int(id_text)
        except ValueError as exc:
            raise ValueError(f"Invalid target reference: {value!r}") from exc
        return cls(kind=kind, object_id=object_id, title=title)


@dataclass(frozen=True, slots=True)
class VisitRecord:
    timestamp: int
    user_agent: str
    referer: str = "unknown"
    anonymized_ip: str | None = None
    location: str | None = None
    timezone: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "time": self.timestamp,
            "user_agent": self.user_agent,
            "referer": self.referer,
        }
        if self.anonymized_ip is not None:
            data["ip_addr"] = self.anonymized_ip
        if self.location is not None:
            data["location"] = self.location
        if self.timezone is not None:
            data["timezone"] = self.timezone
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VisitRecord:
        moment = parse_timestamp(data.get("time"))
        return cls(
            timestamp=int(moment.timestamp()) if moment else 0,
            user_agent=str(data.get("user_agent") or "unknown"),
            referer=str(data.get("referer") or "unknown"),
            anonymized_ip=data.get("ip_addr"),
            location=data.get("location"),
            timezone=data.get("timezone"),
        )


@dataclass(slots=True)
class RequestContext:
    target: Target | None
    page_kind: PageKind
    is_admin_context: bool = False
    user_agent: str | None = None
    is_logged_in: bool = False
    raw_ip: str | None = None
    referer: str | None = None
