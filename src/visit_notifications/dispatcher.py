from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from visit_notifications.batch import BatchAccumulator
from visit_notifications.models import Schedule, Target, VisitRecord
from visit_notifications.notifiers import (
    GroupedVisitPayload,
    NotificationError,
    Notifier,
    SingleVisitPayload,
    VisitPayload,
    build_subject,
    template_kind_for,
)
from visit_notifications.settings import SettingsStore
from visit_notifications.store import StorageError

logger = logging.getLogger(__name__)


class Delivery(str, Enum):
    SENT = "sent"
    BATCHED = "batched"
    FAILED = "failed"


@dataclass(slots=True)
class TickStats:
    frequency: Schedule
    checked: int = 0
    notified: int = 0
    visits_reported: int = 0
    skipped_empty: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class NotificationDispatcher:
    def __init__(
        self,
        *,
        settings: SettingsStore,
        accumulator: BatchAccumulator,
        notifier: Notifier,
        site_name: str,
    ) -> None:
        self.settings = settings
        self.accumulator = accumulator
        self.notifier = notifier
        self.site_name = site_name

    def handle_visit(self, target: Target, record: VisitRecord) -> Delivery:
        """Send ``record`` now or queue it, depending on the target's schedule.

        Delivery failures for immediate notifications are logged and reported
        as ``Delivery.FAILED``; storage failures while queueing propagate.
        """
        schedule = self.settings.target_options(target).schedule

        if schedule.is_batched:
            self.accumulator.append(target, record)
            return Delivery.BATCHED

        try:
            self._emit(SingleVisitPayload(target=target, record=record, schedule=schedule))
        except NotificationError:
            logger.exception("Failed to send visit notification for %s", target.key)
            return Delivery.FAILED
        return Delivery.SENT

    def handle_tick(self, frequency: Schedule) -> TickStats:
        if not frequency.is_batched:
            raise ValueError(f"Ticks run hourly or daily, not {frequency.value!r}")

        stats = TickStats(frequency=frequency)

        try:
            targets = self.settings.targets_for_schedule(frequency)
        except StorageError as exc:
            message = f"failed to list {frequency.value} targets: {exc}"
            logger.exception(message)
            stats.errors.append(message)
            return stats

        for target in targets:
            stats.checked += 1

            try:
                if self.accumulator.is_empty(target):
                    stats.skipped_empty += 1
                    continue

                records = self.accumulator.flush(
                    target,
                    emit=lambda batch, target=target: self._emit(
                        GroupedVisitPayload(target=target, records=batch, schedule=frequency)
                    ),
                )
            except NotificationError as exc:
                message = f"failed to send {frequency.value} report for {target.key}: {exc}"
                logger.exception(message)
                stats.errors.append(message)
                continue
            except StorageError as exc:
                message = f"storage failure during {frequency.value} report for {target.key}: {exc}"
                logger.exception(message)
                stats.errors.append(message)
                continue

            stats.notified += 1
            stats.visits_reported += len(records)
            logger.info("Sent %s report for %s (%d visits)", frequency.value, target.key, len(records))

        return stats

    def _emit(self, payload: VisitPayload) -> None:
        subject = build_subject(self.site_name, payload)
        self.notifier.send(subject, payload, template_kind_for(payload))
