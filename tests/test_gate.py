from __future__ import annotations

import pytest

from conftest import make_settings
from visit_notifications.gate import DenyReason, VisitGate
from visit_notifications.grace import SITE_SCOPE, GracePeriodTracker, GraceScope
from visit_notifications.models import GraceContext, LoggedInPolicy, PageKind, RequestContext
from visit_notifications.settings import ENABLED_META_KEY
from visit_notifications.utils.ip_utils import anonymize_ip, grace_key

BROWSER = "Mozilla/5.0 (X11; Linux x86_64) Firefox/120.0"


def _gate(store, clock, **settings: object) -> VisitGate:
    return VisitGate(make_settings(store, **settings), GracePeriodTracker(store, clock=clock))


def _context(target, **overrides: object) -> RequestContext:
    context = RequestContext(
        target=target,
        page_kind=PageKind.SINGULAR,
        user_agent=BROWSER,
        raw_ip="203.0.113.5",
    )
    for key, value in overrides.items():
        setattr(context, key, value)
    return context


@pytest.fixture
def enabled_post(store, post):
    make_settings(store).set_target_options(post, enabled=True)
    return post


def test_allows_ordinary_visit(store, clock, enabled_post) -> None:
    decision = _gate(store, clock).decide(_context(enabled_post))

    assert decision.allowed is True
    assert decision.reason is None


def test_admin_context_denies_before_any_other_check(store, clock, enabled_post) -> None:
    gate = _gate(store, clock, disable_crawlers=False)

    decision = gate.decide(_context(enabled_post, is_admin_context=True))

    assert decision.allowed is False
    assert decision.reason is DenyReason.ADMIN_CONTEXT


def test_admin_context_denies_even_without_target(store, clock) -> None:
    decision = _gate(store, clock).decide(
        _context(None, is_admin_context=True, page_kind=PageKind.OTHER)
    )

    assert decision.reason is DenyReason.ADMIN_CONTEXT


def test_other_pages_are_ignored(store, clock, enabled_post) -> None:
    decision = _gate(store, clock).decide(_context(enabled_post, page_kind=PageKind.OTHER))

    assert decision.reason is DenyReason.UNSUPPORTED_PAGE


def test_archive_without_term_is_denied(store, clock) -> None:
    decision = _gate(store, clock).decide(_context(None, page_kind=PageKind.ARCHIVE))

    assert decision.reason is DenyReason.TARGET_NOT_FOUND


def test_archive_term_is_allowed_when_enabled(store, clock, term) -> None:
    make_settings(store).set_target_options(term, enabled=True)

    decision = _gate(store, clock).decide(_context(term, page_kind=PageKind.ARCHIVE))

    assert decision.allowed is True


def test_target_with_notifications_disabled_is_denied(store, clock, post) -> None:
    decision = _gate(store, clock).decide(_context(post))

    assert decision.reason is DenyReason.TARGET_DISABLED


def test_loose_stored_enabled_flag_is_coerced(store, clock, post) -> None:
    store.set_meta(post, ENABLED_META_KEY, "1")

    assert _gate(store, clock).decide(_context(post)).allowed is True


def test_crawler_denied_when_crawlers_disabled(store, clock, enabled_post) -> None:
    context = _context(enabled_post, user_agent="Mozilla/5.0 (compatible; Googlebot/2.1)")

    decision = _gate(store, clock, disable_crawlers=True).decide(context)

    assert decision.allowed is False
    assert decision.reason is DenyReason.CRAWLER


def test_crawler_allowed_when_crawler_filter_off(store, clock, enabled_post) -> None:
    context = _context(enabled_post, user_agent="Mozilla/5.0 (compatible; Googlebot/2.1)")

    assert _gate(store, clock, disable_crawlers=False).decide(context).allowed is True


def test_missing_user_agent_is_not_a_crawler(store, clock, enabled_post) -> None:
    assert _gate(store, clock).decide(_context(enabled_post, user_agent=None)).allowed is True


@pytest.mark.parametrize(
    ("global_setting", "override", "allowed"),
    [
        (True, LoggedInPolicy.GLOBAL, True),
        (False, LoggedInPolicy.GLOBAL, False),
        (False, LoggedInPolicy.ON, True),
        (True, LoggedInPolicy.OFF, False),
    ],
)
def test_logged_in_policy(store, clock, post, global_setting, override, allowed) -> None:
    make_settings(store).set_target_options(post, enabled=True, logged_in=override)
    gate = _gate(store, clock, enable_logged_in_users=global_setting)

    decision = gate.decide(_context(post, is_logged_in=True))

    assert decision.allowed is allowed
    if not allowed:
        assert decision.reason is DenyReason.LOGGED_IN


def test_anonymous_visitors_ignore_logged_in_policy(store, clock, enabled_post) -> None:
    gate = _gate(store, clock, enable_logged_in_users=False)

    assert gate.decide(_context(enabled_post, is_logged_in=False)).allowed is True


def test_grace_period_denies_known_ip(store, clock, enabled_post) -> None:
    gate = _gate(store, clock, ip_grace_period=True)
    gate.grace_tracker.record(SITE_SCOPE, grace_key(anonymize_ip("203.0.113.5")), 300)

    decision = gate.decide(_context(enabled_post, raw_ip="203.0.113.99"))

    assert decision.reason is DenyReason.GRACE_PERIOD


def test_grace_period_ignored_when_setting_off(store, clock, enabled_post) -> None:
    gate = _gate(store, clock, ip_grace_period=False)
    gate.grace_tracker.record(SITE_SCOPE, grace_key(anonymize_ip("203.0.113.5")), 300)

    assert gate.decide(_context(enabled_post)).allowed is True


@pytest.mark.parametrize("raw_ip", [None, "", "not-an-ip"])
def test_invalid_ip_skips_grace_check(store, clock, enabled_post, raw_ip) -> None:
    gate = _gate(store, clock, ip_grace_period=True)

    assert gate.decide(_context(enabled_post, raw_ip=raw_ip)).allowed is True


def test_post_context_uses_per_target_mapping(store, clock, enabled_post) -> None:
    gate = _gate(
        store,
        clock,
        ip_grace_period=True,
        ip_grace_period_context=GraceContext.POST,
    )
    key = grace_key(anonymize_ip("203.0.113.5"))
    gate.grace_tracker.record(SITE_SCOPE, key, 300)

    assert gate.decide(_context(enabled_post)).allowed is True

    gate.grace_tracker.record(GraceScope(target=enabled_post), key, 300)

    assert gate.decide(_context(enabled_post)).reason is DenyReason.GRACE_PERIOD


def test_post_context_does_not_apply_to_terms(store, clock, term) -> None:
    make_settings(store).set_target_options(term, enabled=True)
    gate = _gate(
        store,
        clock,
        ip_grace_period=True,
        ip_grace_period_context=GraceContext.POST,
    )
    gate.grace_tracker.record(GraceScope(target=term), grace_key("203.0.113.0"), 300)

    decision = gate.decide(_context(term, page_kind=PageKind.ARCHIVE))

    assert decision.allowed is True


def test_allowed_visit_starts_grace_period(store, clock, enabled_post) -> None:
    gate = _gate(store, clock, ip_grace_period=True, ip_grace_period_duration=60)

    assert gate.decide(_context(enabled_post)).allowed is True
    assert gate.decide(_context(enabled_post)).reason is DenyReason.GRACE_PERIOD

    clock.advance(60)

    assert gate.decide(_context(enabled_post)).allowed is True


def test_denied_visit_does_not_start_grace_period(store, clock, enabled_post) -> None:
    gate = _gate(store, clock, ip_grace_period=True, disable_crawlers=True)

    crawler = gate.decide(_context(enabled_post, user_agent="Googlebot/2.1"))

    assert crawler.reason is DenyReason.CRAWLER
    assert gate.decide(_context(enabled_post)).allowed is True
