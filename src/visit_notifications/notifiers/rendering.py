from __future__ import annotations

from html import escape

from visit_notifications.models import Schedule, VisitRecord
from visit_notifications.utils.datetime_utils import format_timestamp

from .base import GroupedVisitPayload, SingleVisitPayload, TemplateKind, VisitPayload


def build_subject(site_name: str, payload: VisitPayload) -> str:
    title = payload.target.display_name
    if isinstance(payload, GroupedVisitPayload):
        return f"[{site_name}] Visitor Report for {title}"
    return f"[{site_name}] New Visitor on {title}"


def template_kind_for(payload: VisitPayload) -> TemplateKind:
    if isinstance(payload, GroupedVisitPayload):
        return TemplateKind.GROUPED
    return TemplateKind.SINGLE


def visit_lines(record: VisitRecord) -> list[tuple[str, str]]:
    lines = [
        ("Access Time", format_timestamp(record.timestamp)),
        ("User Agent", record.user_agent),
        ("Referer", record.referer),
    ]
    if record.anonymized_ip:
        lines.append(("IP Address", record.anonymized_ip))
    if record.location:
        lines.append(("Location", record.location))
    if record.timezone:
        lines.append(("Timezone", record.timezone))
    return lines


def heading(payload: VisitPayload) -> str:
    if isinstance(payload, GroupedVisitPayload):
        return f"Visitor Report for {payload.target.display_name}"
    return f"New Visitor on {payload.target.display_name}"


def summary_sentence(payload: GroupedVisitPayload) -> str:
    window = "day" if payload.schedule is Schedule.DAILY else "hour"
    return (
        f"Within the past {window}, {len(payload.records)} different visitors "
        "have accessed this page."
    )


def render_text(payload: VisitPayload) -> str:
    lines = [heading(payload)]

    if isinstance(payload, SingleVisitPayload):
        lines.extend(f"{label}: {value}" for label, value in visit_lines(payload.record))
        return "\n".join(lines)

    lines.append(summary_sentence(payload))
    for record in payload.records:
        lines.append("")
        lines.extend(f"- {label}: {value}" for label, value in visit_lines(record))
    return "\n".join(lines)


def render_html(payload: VisitPayload) -> str:
    parts = [f"<h2>{escape(heading(payload))}</h2>"]

    if isinstance(payload, SingleVisitPayload):
        parts.append(_html_visit_list(payload.record))
        return "\n".join(parts)

    parts.append(f"<p>{escape(summary_sentence(payload))}</p>")
    parts.append("<ul>")
    for record in payload.records:
        parts.append(f"<li>{_html_visit_list(record)}</li>")
    parts.append("</ul>")
    return "\n".join(parts)


def _html_visit_list(record: VisitRecord) -> str:
    items = "".join(
        f"<li><strong>{escape(label)}: </strong>{escape(value)}</li>"
        for label, value in visit_lines(record)
    )
    return f"<ul>{items}</ul>"
