from __future__ import annotations

import logging
import time

from visit_notifications.dispatcher import NotificationDispatcher, TickStats
from visit_notifications.grace import Clock
from visit_notifications.models import Schedule
from visit_notifications.store import Store
from visit_notifications.store.base import option_lock_name

logger = logging.getLogger(__name__)

TICK_INTERVALS = {
    Schedule.HOURLY: 60 * 60,
    Schedule.DAILY: 24 * 60 * 60,
}


def last_tick_key(frequency: Schedule) -> str:
    return f"visitnotifications_last_tick_{frequency.value}"


class SchedulerTrigger:
    """Runs the hourly and daily digests when their interval has elapsed.

    The host calls ``run_pending`` as often as it likes (a system cron entry,
    a loop); each frequency keeps its own last-run time in the option store.
    """

    def __init__(self, dispatcher: NotificationDispatcher, store: Store, clock: Clock = time.time) -> None:
        self.dispatcher = dispatcher
        self.store = store
        self.clock = clock

    def fire(self, frequency: Schedule) -> TickStats:
        stats = self.dispatcher.handle_tick(frequency)
        self.store.set_option(last_tick_key(frequency), int(self.clock()))
        return stats

    def is_due(self, frequency: Schedule) -> bool:
        last_run = self.store.get_option(last_tick_key(frequency))
        if last_run is None:
            return True
        return self.clock() - float(last_run) >= TICK_INTERVALS[frequency]

    def run_pending(self) -> list[TickStats]:
        results: list[TickStats] = []
        for frequency in TICK_INTERVALS:
            # Claim the slot under the lock so overlapping runners do not both fire.
            with self.store.lock(option_lock_name(last_tick_key(frequency))):
                if not self.is_due(frequency):
                    continue
                self.store.set_option(last_tick_key(frequency), int(self.clock()))
            results.append(self.fire(frequency))
        return results

    def clear(self) -> None:
        clear_schedule(self.store)


def clear_schedule(store: Store) -> None:
    for frequency in TICK_INTERVALS:
        store.delete_option(last_tick_key(frequency))
    logger.info("Cleared scheduled visit reports")
