from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from visit_notifications.batch import BatchAccumulator
from visit_notifications.config import AppConfig
from visit_notifications.dispatcher import Delivery, NotificationDispatcher, TickStats
from visit_notifications.gate import DenyReason, GateDecision, VisitGate, deny
from visit_notifications.grace import Clock, GracePeriodTracker
from visit_notifications.location import IpApiLocator
from visit_notifications.models import RequestContext, Schedule, VisitRecord
from visit_notifications.notifiers import Notifier, create_notifier
from visit_notifications.scheduler import SchedulerTrigger
from visit_notifications.settings import SettingsStore
from visit_notifications.store import MemoryStore, SQLiteStore, Store
from visit_notifications.utils.ip_utils import anonymize_ip
from visit_notifications.utils.url_utils import normalize_referer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class VisitOutcome:
    decision: GateDecision
    record: VisitRecord | None = None
    delivery: Delivery | None = None

    @property
    def allowed(self) -> bool:
        return self.decision.allowed


class VisitNotificationService:
    """Application context: owns every component and is passed explicitly.

    Built once per process, either directly (tests) or via ``build_service``.
    """

    def __init__(
        self,
        *,
        settings: SettingsStore,
        store: Store,
        notifier: Notifier,
        site_name: str,
        locator: IpApiLocator | None = None,
        clock: Clock = time.time,
    ) -> None:
        self.settings = settings
        self.store = store
        self.clock = clock
        self.locator = locator
        self.grace_tracker = GracePeriodTracker(store, clock=clock)
        self.gate = VisitGate(settings, self.grace_tracker)
        self.accumulator = BatchAccumulator(store)
        self.dispatcher = NotificationDispatcher(
            settings=settings,
            accumulator=self.accumulator,
            notifier=notifier,
            site_name=site_name,
        )
        self.scheduler = SchedulerTrigger(self.dispatcher, store, clock=clock)

    def process_visit(self, context: RequestContext) -> VisitOutcome:
        if not self.settings.get("enable_notifications"):
            return VisitOutcome(decision=deny(DenyReason.NOTIFICATIONS_DISABLED))

        decision = self.gate.decide(context)
        if not decision.allowed:
            logger.debug("Visit denied: %s", decision.reason_text())
            return VisitOutcome(decision=decision)

        target = context.target
        if target is None:
            return VisitOutcome(decision=deny(DenyReason.TARGET_NOT_FOUND))

        record = self.build_record(context)
        delivery = self.dispatcher.handle_visit(target, record)

        logger.info("Recorded visit to %s (%s)", target.key, delivery.value)
        return VisitOutcome(decision=decision, record=record, delivery=delivery)

    def build_record(self, context: RequestContext) -> VisitRecord:
        anonymized_ip = anonymize_ip(context.raw_ip)

        location = None
        if anonymized_ip is not None and self.locator is not None:
            location = self.locator.lookup(anonymized_ip)

        return VisitRecord(
            timestamp=int(self.clock()),
            user_agent=(context.user_agent or "").strip() or "unknown",
            referer=normalize_referer(context.referer),
            anonymized_ip=anonymized_ip,
            location=location.location if location else None,
            timezone=location.timezone if location else None,
        )

    def run_tick(self, frequency: Schedule) -> TickStats:
        if not self.settings.get("enable_notifications"):
            logger.info("Notifications disabled; skipping %s tick", frequency.value)
            return TickStats(frequency=frequency)
        return self.scheduler.fire(frequency)

    def run_pending_ticks(self) -> list[TickStats]:
        if not self.settings.get("enable_notifications"):
            logger.info("Notifications disabled; skipping scheduled reports")
            return []
        return self.scheduler.run_pending()


def build_store(config: AppConfig) -> Store:
    if config.storage.type == "memory":
        return MemoryStore()
    return SQLiteStore(config.storage.path)


def build_service(
    config: AppConfig,
    *,
    store: Store | None = None,
    notifier: Notifier | None = None,
) -> VisitNotificationService:
    store = store or build_store(config)
    store.init_db()

    return VisitNotificationService(
        settings=SettingsStore(config.settings, store),
        store=store,
        notifier=notifier or create_notifier(config.notifier),
        site_name=config.site_name,
        locator=IpApiLocator(config.location) if config.location.enabled else None,
    )
