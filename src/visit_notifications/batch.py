from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any

from visit_notifications.models import Target, VisitRecord
from visit_notifications.store import Store
from visit_notifications.store.base import target_lock_name

logger = logging.getLogger(__name__)

VISITORS_KEY = "visitnotifications_visitors"
VISIT_ID_FIELD = "visit_id"

Emitter = Callable[[list[VisitRecord]], None]


class BatchAccumulator:
    """Per-target list of pending visits, stored as a list of visit dicts.

    Each stored dict carries a ``visit_id`` so a flush removes exactly the
    entries it emitted, even when two visits have identical fields.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    def append(self, target: Target, record: VisitRecord) -> None:
        with self.store.lock(target_lock_name(target, VISITORS_KEY)):
            visitors = self._load(target)
            item = record.to_dict()
            item[VISIT_ID_FIELD] = uuid.uuid4().hex
            visitors.append(item)
            self.store.set_meta(target, VISITORS_KEY, visitors)
        logger.debug("Batched visit for %s (%d pending)", target.key, len(visitors))

    def pending(self, target: Target) -> list[VisitRecord]:
        return [VisitRecord.from_dict(item) for item in self._load(target)]

    def is_empty(self, target: Target) -> bool:
        return not self._load(target)

    def flush(self, target: Target, emit: Emitter | None = None) -> list[VisitRecord]:
        """Return the pending records and remove them from storage.

        Without ``emit`` the batch is taken and cleared in one locked step.
        With ``emit`` the records are handed over first and only removed once
        ``emit`` returns; if it raises, the batch is left untouched. Visits
        appended while ``emit`` runs stay queued for the next flush.
        """
        lock_name = target_lock_name(target, VISITORS_KEY)

        if emit is None:
            with self.store.lock(lock_name):
                visitors = self._load(target)
                if visitors:
                    self.store.set_meta(target, VISITORS_KEY, [])
            return [VisitRecord.from_dict(item) for item in visitors]

        with self.store.lock(lock_name):
            snapshot = self._load(target)
        if not snapshot:
            return []

        records = [VisitRecord.from_dict(item) for item in snapshot]
        emit(records)

        with self.store.lock(lock_name):
            current = self._load(target)
            if current[: len(snapshot)] == snapshot:
                remaining = current[len(snapshot) :]
            else:
                # Another flush got there first; drop only what was emitted here.
                emitted = {item.get(VISIT_ID_FIELD) for item in snapshot} - {None}
                remaining = [item for item in current if item.get(VISIT_ID_FIELD) not in emitted]
            self.store.set_meta(target, VISITORS_KEY, remaining)
        return records

    def _load(self, target: Target) -> list[dict[str, Any]]:
        raw = self.store.get_meta(target, VISITORS_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Discarding malformed visitor batch for %s", target.key)
            return []
        return [item for item in raw if isinstance(item, dict)]
