from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from visit_notifications.models import GraceContext, Target, TargetKind
from visit_notifications.store import Store
from visit_notifications.store.base import option_lock_name, target_lock_name

logger = logging.getLogger(__name__)

GRACE_PERIOD_KEY = "visitnotifications_ip_grace_period_data"

Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class GraceScope:
    """Either the single site-wide mapping (``target`` is None) or one target's mapping."""

    target: Target | None = None

    @property
    def is_site(self) -> bool:
        return self.target is None

    @property
    def lock_name(self) -> str:
        if self.target is None:
            return option_lock_name(GRACE_PERIOD_KEY)
        return target_lock_name(self.target, GRACE_PERIOD_KEY)


SITE_SCOPE = GraceScope()


def resolve_scope(context: GraceContext | None, target: Target | None) -> GraceScope | None:
    """Map the configured grace context onto a storage scope.

    Returns None when no scope applies: an unrecognized context, or a per-post
    context on something other than a post. Callers treat None as "no grace
    period in effect".
    """
    if context is GraceContext.SITE:
        return SITE_SCOPE
    if context is GraceContext.POST:
        if target is None or target.kind is not TargetKind.POST:
            return None
        return GraceScope(target=target)
    return None


class GracePeriodTracker:
    def __init__(self, store: Store, clock: Clock = time.time) -> None:
        self.store = store
        self.clock = clock

    def is_active(self, scope: GraceScope, key: str) -> bool:
        with self.store.lock(scope.lock_name):
            entries = self.prune(scope)
        return key in entries

    def record(self, scope: GraceScope, key: str, duration_seconds: int) -> None:
        expiry = int(self.clock()) + max(0, int(duration_seconds))
        with self.store.lock(scope.lock_name):
            entries = self._load(scope)
            if entries.get(key) == expiry:
                return
            entries[key] = expiry
            self._save(scope, entries)
        logger.debug("Grace period for %s in %s scope until %d", key, _scope_label(scope), expiry)

    def claim(self, scope: GraceScope, key: str, duration_seconds: int) -> bool:
        """Start a grace period for ``key`` unless one is already running.

        Pruning, the membership test and the write happen under one lock, so
        concurrent callers for the same key see exactly one ``True``.
        """
        with self.store.lock(scope.lock_name):
            if key in self.prune(scope):
                return False
            self.record(scope, key, duration_seconds)
        return True

    def prune(self, scope: GraceScope) -> dict[str, int]:
        now = self.clock()
        with self.store.lock(scope.lock_name):
            entries = self._load(scope)
            surviving = {key: expiry for key, expiry in entries.items() if expiry > now}
            if len(surviving) != len(entries):
                self._save(scope, surviving)
                logger.debug(
                    "Pruned %d expired grace entries from %s scope",
                    len(entries) - len(surviving),
                    _scope_label(scope),
                )
        return surviving

    def _load(self, scope: GraceScope) -> dict[str, int]:
        if scope.target is None:
            raw = self.store.get_option(GRACE_PERIOD_KEY, {})
        else:
            raw = self.store.get_meta(scope.target, GRACE_PERIOD_KEY, {})

        if not isinstance(raw, dict):
            return {}

        entries: dict[str, int] = {}
        for key, value in raw.items():
            try:
                entries[str(key)] = int(value)
            except (TypeError, ValueError):
                continue
        return entries

    def _save(self, scope: GraceScope, entries: dict[str, int]) -> None:
        if scope.target is None:
            self.store.set_option(GRACE_PERIOD_KEY, entries)
        else:
            self.store.set_meta(scope.target, GRACE_PERIOD_KEY, entries)


def _scope_label(scope: GraceScope) -> str:
    return "site" if scope.target is None else scope.target.key
