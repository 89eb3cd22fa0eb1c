from __future__ import annotations

import pytest

from conftest import make_settings
from visit_notifications import __version__
from visit_notifications.migrations import VERSION_OPTION, check_versions
from visit_notifications.models import LoggedInPolicy, Schedule
from visit_notifications.settings import (
    ENABLED_META_KEY,
    LOGGED_IN_META_KEY,
    SCHEDULE_META_KEY,
    BulkAction,
    TargetOptions,
    UnknownSettingError,
)


def test_get_rejects_unknown_names(store) -> None:
    settings = make_settings(store)

    assert settings.get("disable_crawlers") is True
    with pytest.raises(UnknownSettingError):
        settings.get("does_not_exist")


def test_unconfigured_target_has_default_options(store, post) -> None:
    assert make_settings(store).target_options(post) == TargetOptions()


def test_unknown_stored_schedule_falls_back_to_on_visit(store, post) -> None:
    store.set_meta(post, SCHEDULE_META_KEY, "default")

    assert make_settings(store).target_options(post).schedule is Schedule.ON_VISIT


def test_logged_in_override(store, post) -> None:
    settings = make_settings(store, enable_logged_in_users=False)

    assert settings.get_target_override(post, "enable_logged_in_users") is None
    assert settings.effective(post, "enable_logged_in_users") is False

    store.set_meta(post, LOGGED_IN_META_KEY, "on")

    assert settings.get_target_override(post, "enable_logged_in_users") is True
    assert settings.effective(post, "enable_logged_in_users") is True
    assert settings.get_target_override(post, "disable_crawlers") is None


def test_bulk_enable_sets_schedule_and_disable_keeps_it(store, post, term) -> None:
    settings = make_settings(store)

    assert settings.apply_bulk_action([post, term], BulkAction.ENABLE_HOURLY) == 2
    assert settings.target_options(term) == TargetOptions(enabled=True, schedule=Schedule.HOURLY)

    settings.apply_bulk_action([post], BulkAction.DISABLE)

    assert settings.target_options(post).enabled is False
    assert settings.target_options(post).schedule is Schedule.HOURLY
    assert settings.target_options(post).logged_in is LoggedInPolicy.GLOBAL


def test_describe(store, post) -> None:
    settings = make_settings(store)

    assert settings.describe(post) == "Disabled"

    settings.apply_bulk_action([post], BulkAction.ENABLE_ON_VISIT)
    assert settings.describe(post) == "Enabled (On Visit)"

    settings.apply_bulk_action([post], BulkAction.ENABLE_DAILY)
    assert settings.describe(post) == "Enabled (Daily)"


def test_schedule_lookup_coerces_stored_values_like_the_gate(store, post, term) -> None:
    store.set_meta(post, ENABLED_META_KEY, "on")
    store.set_meta(post, SCHEDULE_META_KEY, " HOURLY ")
    store.set_meta(term, ENABLED_META_KEY, "0")
    store.set_meta(term, SCHEDULE_META_KEY, "hourly")

    assert make_settings(store).targets_for_schedule(Schedule.HOURLY) == [post]


def test_version_change_normalizes_stored_options(store, post, term) -> None:
    store.set_meta(post, ENABLED_META_KEY, "1")
    store.set_meta(post, SCHEDULE_META_KEY, "Daily")
    store.set_meta(term, LOGGED_IN_META_KEY, "ON")

    assert check_versions(store) is None

    assert store.get_option(VERSION_OPTION) == __version__
    assert store.get_meta(post, ENABLED_META_KEY) is True
    assert store.get_meta(post, SCHEDULE_META_KEY) == "daily"
    assert store.get_meta(term, LOGGED_IN_META_KEY) == "on"
    assert store.get_meta(term, ENABLED_META_KEY) is None
