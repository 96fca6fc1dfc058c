"""
Alert E-mail Templates
======================

HTML bodies for alert and digest e-mails. All interpolated values are
escaped.
"""

from datetime import date
from html import escape
from typing import Optional, Sequence, Tuple

from sla_service.alerts.domain import Alert
from sla_service.config import AlertLevel
from sla_service.sla.domain import Person, SlaRequest

_LEVEL_COLOURS = {
    AlertLevel.CRITICO: "#c0392b",
    AlertLevel.ALTO: "#e67e22",
    AlertLevel.MEDIO: "#2980b9",
}


def _fmt_date(value: Optional[date]) -> str:
    return value.strftime("%d/%m/%Y") if value else "-"


def _row(label: str, value: object) -> str:
    return (
        f"<tr><td style='padding:4px 12px;font-weight:bold'>{escape(label)}</td>"
        f"<td style='padding:4px 12px'>{escape(str(value))}</td></tr>"
    )


def alert_subject(alert: Alert) -> str:
    if alert.level == AlertLevel.CRITICO:
        return f"[CRITICAL SLA ALERT] Request #{alert.request_id} needs URGENT attention"
    return f"[SLA ALERT {alert.level}] Request #{alert.request_id}"


def render_alert_email(
    alert: Alert,
    request: SlaRequest,
    person: Optional[Person]
) -> Tuple[str, str]:
    """
    Build subject and HTML body for an alert e-mail.

    Returns:
        (subject, html_body)
    """
    colour = _LEVEL_COLOURS.get(alert.level, "#2c3e50")
    created = alert.created_at.strftime("%d/%m/%Y %H:%M") if alert.created_at else "-"

    sections = [
        f"<h2 style='color:{colour}'>SLA alert: {escape(alert.level)}</h2>",
        f"<p>{escape(alert.message)}</p>",
        "<h3>Alert</h3><table>",
        _row("Type", alert.kind),
        _row("Level", alert.level),
        _row("Raised", created),
        "</table>",
        "<h3>Request</h3><table>",
        _row("Request", f"#{request.id}"),
        _row("Submitted", _fmt_date(request.submitted_date)),
        _row("Closed", _fmt_date(request.closed_date)),
        _row("Days used", request.days_used),
        _row("SLA state", request.lifecycle_state),
        _row("Compliance", request.compliance_tag),
        _row("Summary", request.summary or "-"),
        "</table>",
    ]
    if person is not None:
        sections += [
            "<h3>Assignee</h3><table>",
            _row("Name", person.full_name),
            _row("E-mail", person.corporate_email or "-"),
            "</table>",
        ]
    sections.append("<p style='color:#7f8c8d;font-size:12px'>Automatic message, do not reply.</p>")

    body = "<html><body style='font-family:Arial,sans-serif'>" + "".join(sections) + "</body></html>"
    return alert_subject(alert), body


def render_digest_email(alerts: Sequence[Alert], run_date: date) -> Tuple[str, str]:
    """Build subject and HTML body of the daily alert digest."""
    critical = sum(1 for alert in alerts if alert.level == AlertLevel.CRITICO)
    subject = (
        f"[SLA DIGEST] {_fmt_date(run_date)}: {critical} critical, "
        f"{len(alerts) - critical} high"
    )

    rows = "".join(
        "<tr>"
        f"<td style='padding:4px 8px'>#{alert.request_id}</td>"
        f"<td style='padding:4px 8px;color:{_LEVEL_COLOURS.get(alert.level, '#2c3e50')}'>{escape(alert.level)}</td>"
        f"<td style='padding:4px 8px'>{escape(alert.message)}</td>"
        f"<td style='padding:4px 8px'>{'yes' if alert.email_sent else 'no'}</td>"
        "</tr>"
        for alert in alerts
    )
    body = (
        "<html><body style='font-family:Arial,sans-serif'>"
        f"<h2>SLA alert digest for {_fmt_date(run_date)}</h2>"
        "<table border='1' cellspacing='0'>"
        "<tr><th>Request</th><th>Level</th><th>Message</th><th>Assignee e-mailed</th></tr>"
        f"{rows}</table></body></html>"
    )
    return subject, body
