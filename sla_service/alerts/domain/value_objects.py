"""
Alert Value Objects
===================

Alert classification and reconciliation rules.

- AlertPolicy: thresholds loaded from YAML (hot-reloadable)
- build_alert_message: text shown to the assignee
- AlertReconciler: decides create/update/no-op and whether to e-mail
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from sla_service.alerts.domain.entities import Alert
from sla_service.config import AlertKind, AlertLevel, AlertStatus, VALID_ALERT_LEVELS


class AlertPolicy(BaseModel):
    """
    Alert thresholds loaded from YAML.

    This is a value object - immutable and defined by its attributes.
    """
    critical_days: int = Field(
        default=2,
        ge=0,
        description="Days remaining at or below which an alert is CRITICO"
    )
    high_days: int = Field(
        default=5,
        ge=0,
        description="Days remaining at or below which an alert is ALTO"
    )
    notify_levels: List[str] = Field(
        default_factory=lambda: [AlertLevel.CRITICO],
        description="Levels that trigger an e-mail on escalation"
    )

    model_config = {"frozen": True}

    @field_validator("notify_levels")
    @classmethod
    def validate_notify_levels(cls, v: List[str]) -> List[str]:
        """Only known levels may trigger e-mails."""
        levels = [level.upper() for level in v]
        unknown = [level for level in levels if level not in VALID_ALERT_LEVELS]
        if unknown:
            raise ValueError(f"unknown alert levels: {unknown}")
        return levels

    @model_validator(mode="after")
    def validate_ordering(self) -> "AlertPolicy":
        if self.critical_days > self.high_days:
            raise ValueError("critical_days must not exceed high_days")
        return self

    def classify(self, days_remaining: int) -> str:
        """Map days remaining (negative once overdue) to an alert level."""
        if days_remaining < 0:
            return AlertLevel.CRITICO
        if days_remaining <= self.critical_days:
            return AlertLevel.CRITICO
        if days_remaining <= self.high_days:
            return AlertLevel.ALTO
        return AlertLevel.MEDIO

    def should_notify(self, level: str) -> bool:
        return level in self.notify_levels


def build_alert_message(
    request_id: int,
    days_remaining: int,
    threshold_days: int,
    kind: str,
    critical_days: int = 2
) -> str:
    """Assignee-facing alert text."""
    if days_remaining < 0:
        return (
            f"URGENT: request #{request_id} is OVERDUE. "
            f"SLA exceeded by {abs(days_remaining)} day(s)."
        )
    if days_remaining == 0:
        return f"ATTENTION: request #{request_id} is due TODAY. Immediate action required."
    if days_remaining <= critical_days:
        return (
            f"CRITICAL: request #{request_id} is about to breach its SLA. "
            f"Only {days_remaining} day(s) left."
        )
    prefix = "New request" if kind == AlertKind.NUEVA else "Follow-up on request"
    return (
        f"{prefix} #{request_id}. Due in {days_remaining} day(s) "
        f"(SLA: {threshold_days} days)."
    )


class ReconcileAction(str):
    """What reconciliation did to the stored alert."""
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ReconcileDecision:
    """Outcome of reconciling one request's alert."""
    alert: Alert
    action: str
    should_notify: bool


class AlertReconciler:
    """
    Pure reconciliation rules.

    An existing alert is touched only when its level changes or it is
    critical and nobody has been e-mailed yet. An e-mail is due only for a
    critical alert whose e-mail has not gone out, so each escalation to
    critical produces at most one successful e-mail.
    """

    @staticmethod
    def reconcile(
        request_id: int,
        existing: Optional[Alert],
        level: str,
        message: str,
        kind: str,
        now: datetime,
        notify_levels: Optional[List[str]] = None
    ) -> ReconcileDecision:
        notify_levels = notify_levels or [AlertLevel.CRITICO]

        if existing is None:
            alert = Alert(
                id=None,
                request_id=request_id,
                kind=kind,
                level=level,
                message=message,
                status=AlertStatus.NUEVA,
                email_sent=False,
                created_at=now,
                updated_at=now,
            )
            return ReconcileDecision(alert, ReconcileAction.CREATED, level in notify_levels)

        pending_email = level in notify_levels and not existing.email_sent
        if existing.level == level and not pending_email:
            return ReconcileDecision(existing, ReconcileAction.UNCHANGED, False)

        updated = replace(existing, level=level, message=message, updated_at=now)
        return ReconcileDecision(updated, ReconcileAction.UPDATED, pending_email)
