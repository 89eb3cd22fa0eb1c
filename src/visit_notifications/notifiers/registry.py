from __future__ import annotations

import os
from typing import Callable

from visit_notifications.config import NotifierSettings

from .base import Notifier
from .email_smtp import SmtpEmailNotifier
from .slack_webhook import SlackWebhookNotifier

NotifierFactory = Callable[[NotifierSettings], Notifier]

_REGISTRY: dict[str, NotifierFactory] = {}


class NotifierRegistrationError(ValueError):
    """Raised when an unknown notifier type is used or it cannot be configured."""


def register_notifier(notifier_type: str) -> Callable[[NotifierFactory], NotifierFactory]:
    def decorator(factory: NotifierFactory) -> NotifierFactory:
        _REGISTRY[notifier_type] = factory
        return factory

    return decorator


def create_notifier(settings: NotifierSettings) -> Notifier:
    factory = _REGISTRY.get(settings.type)
    if factory is None:
        available = ", ".join(sorted(_REGISTRY)) or "none"
        raise NotifierRegistrationError(
            f"Unknown notifier type '{settings.type}'. Registered notifier types: {available}"
        )
    return factory(settings)


def registered_notifier_types() -> list[str]:
    return sorted(_REGISTRY)


@register_notifier("email")
def _create_email_notifier(settings: NotifierSettings) -> Notifier:
    if not settings.recipient:
        raise NotifierRegistrationError("notifier.recipient is required for email notifications")
    return SmtpEmailNotifier(
        recipient=settings.recipient,
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        smtp_user=settings.smtp_user,
        smtp_password=os.getenv(settings.smtp_password_env_var, "").strip() or None,
        from_email=settings.from_email,
        use_tls=settings.use_tls,
        timeout_seconds=settings.timeout_seconds,
    )


@register_notifier("webhook")
def _create_webhook_notifier(settings: NotifierSettings) -> Notifier:
    webhook_url = os.getenv(settings.webhook_env_var, "").strip()
    if not webhook_url:
        raise NotifierRegistrationError(
            f"Missing webhook URL in environment variable {settings.webhook_env_var}"
        )
    return SlackWebhookNotifier(webhook_url=webhook_url, timeout_seconds=settings.timeout_seconds)
