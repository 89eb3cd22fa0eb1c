from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from visit_notifications.config import ConfigError, NotificationSettings, as_bool, coerce_enum
from visit_notifications.models import LoggedInPolicy, Schedule, Target
from visit_notifications.store import Store
from visit_notifications.store.base import TITLE_META_KEY

logger = logging.getLogger(__name__)

ENABLED_META_KEY = "vn_enable_notifications"
SCHEDULE_META_KEY = "vn_schedule"
LOGGED_IN_META_KEY = "vn_logged_in"

_SETTING_NAMES = frozenset(item.name for item in fields(NotificationSettings))
_OVERRIDABLE_SETTINGS = {"enable_logged_in_users": LOGGED_IN_META_KEY}


class UnknownSettingError(KeyError):
    """Raised when a setting name has not been defined."""


class BulkAction(str, Enum):
    ENABLE_ON_VISIT = "enable-vn-visit"
    ENABLE_HOURLY = "enable-vn-hourly"
    ENABLE_DAILY = "enable-vn-daily"
    DISABLE = "disable-vn"

    @property
    def enables(self) -> bool:
        return self is not BulkAction.DISABLE

    @property
    def schedule(self) -> Schedule | None:
        return {
            BulkAction.ENABLE_ON_VISIT: Schedule.ON_VISIT,
            BulkAction.ENABLE_HOURLY: Schedule.HOURLY,
            BulkAction.ENABLE_DAILY: Schedule.DAILY,
        }.get(self)


@dataclass(frozen=True, slots=True)
class TargetOptions:
    enabled: bool = False
    schedule: Schedule = Schedule.ON_VISIT
    logged_in: LoggedInPolicy = LoggedInPolicy.GLOBAL


class SettingsStore:
    """Typed read access to global settings and per-target configuration.

    Stored per-target values may be loose strings (``"1"``, ``"on"``,
    ``"hourly"``); they are coerced here so callers only see booleans and enums.
    """

    def __init__(self, settings: NotificationSettings, store: Store) -> None:
        self.settings = settings
        self.store = store

    def get(self, name: str) -> Any:
        if name not in _SETTING_NAMES:
            raise UnknownSettingError(f"Unknown option '{name}'. This id has not been defined.")
        return getattr(self.settings, name)

    def get_target_override(self, target: Target, name: str) -> Any:
        """Return the per-target value for ``name``, or None when the global setting applies."""
        if name not in _SETTING_NAMES:
            raise UnknownSettingError(f"Unknown option '{name}'. This id has not been defined.")

        meta_key = _OVERRIDABLE_SETTINGS.get(name)
        if meta_key is None:
            return None

        policy = coerce_enum(
            self.store.get_meta(target, meta_key),
            LoggedInPolicy,
            LoggedInPolicy.GLOBAL,
            field_name=f"{target.key}.{meta_key}",
        )
        if policy is LoggedInPolicy.GLOBAL:
            return None
        return policy is LoggedInPolicy.ON

    def effective(self, target: Target, name: str) -> Any:
        override = self.get_target_override(target, name)
        return self.get(name) if override is None else override

    def target_options(self, target: Target) -> TargetOptions:
        return read_target_options(self.store, target)

    def set_target_options(
        self,
        target: Target,
        *,
        enabled: bool | None = None,
        schedule: Schedule | None = None,
        logged_in: LoggedInPolicy | None = None,
    ) -> None:
        if target.title:
            self.store.set_meta(target, TITLE_META_KEY, target.title)
        if enabled is not None:
            self.store.set_meta(target, ENABLED_META_KEY, bool(enabled))
        if schedule is not None:
            self.store.set_meta(target, SCHEDULE_META_KEY, Schedule(schedule).value)
        if logged_in is not None:
            self.store.set_meta(target, LOGGED_IN_META_KEY, LoggedInPolicy(logged_in).value)

    def apply_bulk_action(self, targets: list[Target], action: BulkAction) -> int:
        for target in targets:
            self.set_target_options(target, enabled=action.enables, schedule=action.schedule)
        logger.info(
            "%s visit notifications for %d targets",
            "Enabled" if action.enables else "Disabled",
            len(targets),
        )
        return len(targets)

    def targets_for_schedule(self, schedule: Schedule) -> list[Target]:
        """Enabled targets whose schedule is ``schedule``.

        Candidates come from a scan of the stored schedule key and each one is
        read through ``target_options``, so a target counts here exactly when
        the gate would batch its visits.
        """
        matches: list[Target] = []
        for target in self.store.find_targets(SCHEDULE_META_KEY):
            options = self.target_options(target)
            if options.enabled and options.schedule is schedule:
                matches.append(target)
        return matches

    def describe(self, target: Target) -> str:
        options = self.target_options(target)
        if not options.enabled:
            return "Disabled"
        label = "On Visit" if options.schedule is Schedule.ON_VISIT else options.schedule.value.capitalize()
        return f"Enabled ({label})"


def read_target_options(store: Store, target: Target) -> TargetOptions:
    raw_enabled = store.get_meta(target, ENABLED_META_KEY, False)
    try:
        enabled = as_bool(raw_enabled, field_name=f"{target.key}.{ENABLED_META_KEY}")
    except ConfigError:
        logger.warning("Ignoring invalid %s value %r for %s", ENABLED_META_KEY, raw_enabled, target.key)
        enabled = False

    return TargetOptions(
        enabled=enabled,
        schedule=coerce_enum(
            store.get_meta(target, SCHEDULE_META_KEY),
            Schedule,
            Schedule.ON_VISIT,
            field_name=f"{target.key}.{SCHEDULE_META_KEY}",
        ),
        logged_in=coerce_enum(
            store.get_meta(target, LOGGED_IN_META_KEY),
            LoggedInPolicy,
            LoggedInPolicy.GLOBAL,
            field_name=f"{target.key}.{LOGGED_IN_META_KEY}",
        ),
    )


def normalize_target_options(store: Store) -> int:
    """Rewrite loosely stored per-target flags as canonical values.

    Returns the number of targets that had at least one value rewritten.
    """
    targets: dict[str, Target] = {}
    for key in (ENABLED_META_KEY, SCHEDULE_META_KEY, LOGGED_IN_META_KEY):
        for target in store.find_targets(key):
            targets.setdefault(target.key, target)

    rewritten = 0
    for target in targets.values():
        options = read_target_options(store, target)
        canonical = {
            ENABLED_META_KEY: options.enabled,
            SCHEDULE_META_KEY: options.schedule.value,
            LOGGED_IN_META_KEY: options.logged_in.value,
        }
        changed = False
        for key, value in canonical.items():
            stored = store.get_meta(target, key)
            if stored is not None and stored != value:
                store.set_meta(target, key, value)
                changed = True
        rewritten += changed
    if rewritten:
        logger.info("Normalized stored notification options for %d targets", rewritten)
    return rewritten
