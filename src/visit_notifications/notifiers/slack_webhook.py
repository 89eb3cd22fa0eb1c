from __future__ import annotations

import requests

from .base import NotificationError, Notifier, SingleVisitPayload, TemplateKind, VisitPayload
from .rendering import heading, summary_sentence, visit_lines

# Slack rejects messages with more than 50 blocks.
MAX_VISIT_BLOCKS = 45


class SlackWebhookNotifier(Notifier):
    def __init__(self, webhook_url: str, timeout_seconds: int = 15) -> None:
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds

    def send(self, subject: str, payload: VisitPayload, template_kind: TemplateKind) -> None:
        body = build_slack_payload(subject, payload)
        try:
            response = requests.post(
                self.webhook_url,
                json=body,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise NotificationError(f"Webhook request failed: {exc}") from exc

        if response.status_code >= 400:
            raise NotificationError(
                f"Webhook returned {response.status_code}: {response.text}"
            )


def build_slack_payload(subject: str, payload: VisitPayload) -> dict:
    blocks: list[dict] = [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"*{heading(payload)}*",
            },
        }
    ]

    if isinstance(payload, SingleVisitPayload):
        blocks.append(_visit_block(payload.record))
    else:
        blocks.append(
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": summary_sentence(payload),
                },
            }
        )
        shown = payload.records[:MAX_VISIT_BLOCKS]
        blocks.extend(_visit_block(record) for record in shown)

        hidden = len(payload.records) - len(shown)
        if hidden > 0:
            blocks.append(
                {
                    "type": "context",
                    "elements": [
                        {
                            "type": "mrkdwn",
                            "text": f"...and {hidden} more not shown",
                        }
                    ],
                }
            )

    return {"text": subject, "blocks": blocks}


def _visit_block(record) -> dict:
    return {
        "type": "section",
        "text": {
            "type": "mrkdwn",
            "text": "\n".join(f"*{label}:* {value}" for label, value in visit_lines(record)),
        },
    }
