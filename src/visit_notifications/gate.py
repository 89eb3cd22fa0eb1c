from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from visit_notifications.grace import GracePeriodTracker, resolve_scope
from visit_notifications.models import PageKind, RequestContext
from visit_notifications.settings import SettingsStore
from visit_notifications.utils.ip_utils import anonymize_ip, grace_key

logger = logging.getLogger(__name__)

CRAWLER_MARKER = "bot"


class DenyReason(str, Enum):
    NOTIFICATIONS_DISABLED = "notifications disabled"
    ADMIN_CONTEXT = "admin context"
    UNSUPPORTED_PAGE = "not a singular or archive page"
    TARGET_NOT_FOUND = "no target for request"
    TARGET_DISABLED = "target notifications disabled"
    CRAWLER = "crawler user agent"
    LOGGED_IN = "logged in user"
    GRACE_PERIOD = "ip within grace period"


@dataclass(frozen=True, slots=True)
class GateDecision:
    allowed: bool
    reason: DenyReason | None = None

    def reason_text(self) -> str:
        return self.reason.value if self.reason else "allowed"


ALLOW = GateDecision(allowed=True)


def deny(reason: DenyReason) -> GateDecision:
    return GateDecision(allowed=False, reason=reason)


class VisitGate:
    """Decides whether a page view counts as a notification-worthy visit.

    Checks short-circuit in a fixed order: request-shape checks, then the
    target's own flag, then crawler and login checks, and the grace period
    last because it reads and may write storage.
    """

    def __init__(self, settings: SettingsStore, grace_tracker: GracePeriodTracker) -> None:
        self.settings = settings
        self.grace_tracker = grace_tracker

    def decide(self, context: RequestContext) -> GateDecision:
        if context.is_admin_context:
            return deny(DenyReason.ADMIN_CONTEXT)

        if context.page_kind not in (PageKind.SINGULAR, PageKind.ARCHIVE):
            return deny(DenyReason.UNSUPPORTED_PAGE)

        target = context.target
        if target is None:
            logger.info("Could not resolve a target for %s request", context.page_kind.value)
            return deny(DenyReason.TARGET_NOT_FOUND)

        if not self.settings.target_options(target).enabled:
            return deny(DenyReason.TARGET_DISABLED)

        if self.settings.get("disable_crawlers") and _looks_like_crawler(context.user_agent):
            return deny(DenyReason.CRAWLER)

        if context.is_logged_in and not self.settings.effective(target, "enable_logged_in_users"):
            return deny(DenyReason.LOGGED_IN)

        if self.settings.get("ip_grace_period") and not self._claim_grace_period(context):
            return deny(DenyReason.GRACE_PERIOD)

        return ALLOW

    def _claim_grace_period(self, context: RequestContext) -> bool:
        """Return False while the visitor's IP is inside a running grace period.

        An allowed visit starts a new grace period in the same locked step.
        """
        anonymized = anonymize_ip(context.raw_ip)
        if anonymized is None:
            # Missing or malformed IPs bypass the grace period entirely.
            return True

        scope = resolve_scope(self.settings.get("ip_grace_period_context"), context.target)
        if scope is None:
            return True
        return self.grace_tracker.claim(
            scope,
            grace_key(anonymized),
            self.settings.get("ip_grace_period_duration"),
        )


def _looks_like_crawler(user_agent: str | None) -> bool:
    return CRAWLER_MARKER in (user_agent or "").lower()
