from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate

from .base import NotificationError, Notifier, TemplateKind, VisitPayload
from .rendering import render_html, render_text

logger = logging.getLogger(__name__)


class SmtpEmailNotifier(Notifier):
    def __init__(
        self,
        *,
        recipient: str,
        smtp_host: str,
        smtp_port: int = 587,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        from_email: str | None = None,
        use_tls: bool = True,
        timeout_seconds: int = 15,
    ) -> None:
        self.recipient = recipient
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_user or recipient
        self.use_tls = use_tls
        self.timeout_seconds = timeout_seconds

    def send(self, subject: str, payload: VisitPayload, template_kind: TemplateKind) -> None:
        message = build_email_message(
            subject=subject,
            payload=payload,
            sender=self.from_email,
            recipient=self.recipient,
        )

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout_seconds) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"SMTP delivery to {self.recipient} failed: {exc}") from exc

        logger.info("Sent %s visit email to %s: %s", template_kind.value, self.recipient, subject)


def build_email_message(
    *,
    subject: str,
    payload: VisitPayload,
    sender: str,
    recipient: str,
) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = sender
    message["To"] = recipient
    message["Date"] = formatdate(localtime=True)
    message.attach(MIMEText(render_text(payload), "plain", "utf-8"))
    message.attach(MIMEText(render_html(payload), "html", "utf-8"))
    return message
