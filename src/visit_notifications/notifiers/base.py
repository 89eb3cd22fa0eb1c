from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from visit_notifications.models import Schedule, Target, VisitRecord


class NotificationError(RuntimeError):
    """Raised when a notification could not be delivered."""


class TemplateKind(str, Enum):
    SINGLE = "single"
    GROUPED = "grouped"


@dataclass(frozen=True, slots=True)
class SingleVisitPayload:
    target: Target
    record: VisitRecord
    schedule: Schedule = Schedule.ON_VISIT


@dataclass(frozen=True, slots=True)
class GroupedVisitPayload:
    target: Target
    records: list[VisitRecord] = field(default_factory=list)
    schedule: Schedule = Schedule.HOURLY


VisitPayload = SingleVisitPayload | GroupedVisitPayload


class Notifier(ABC):
    @abstractmethod
    def send(self, subject: str, payload: VisitPayload, template_kind: TemplateKind) -> None:
        """Deliver a visit notification; raise NotificationError on failure."""
