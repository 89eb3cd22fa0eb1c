"""Notifier implementations."""

from .base import (
    GroupedVisitPayload,
    NotificationError,
    Notifier,
    SingleVisitPayload,
    TemplateKind,
    VisitPayload,
)
from .email_smtp import SmtpEmailNotifier
from .registry import NotifierRegistrationError, create_notifier, registered_notifier_types
from .rendering import build_subject, render_text, template_kind_for
from .slack_webhook import SlackWebhookNotifier

__all__ = [
    "GroupedVisitPayload",
    "NotificationError",
    "Notifier",
    "NotifierRegistrationError",
    "SingleVisitPayload",
    "SlackWebhookNotifier",
    "SmtpEmailNotifier",
    "TemplateKind",
    "VisitPayload",
    "build_subject",
    "create_notifier",
    "registered_notifier_types",
    "render_text",
    "template_kind_for",
]
