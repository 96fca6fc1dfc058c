"""
Alerts Domain Layer
===================

Alert entity and the pure classification/reconciliation rules.
"""

from sla_service.alerts.domain.entities import Alert
from sla_service.alerts.domain.value_objects import (
    AlertPolicy,
    AlertReconciler,
    ReconcileAction,
    ReconcileDecision,
    build_alert_message,
)

__all__ = [
    "Alert",
    "AlertPolicy",
    "AlertReconciler",
    "ReconcileAction",
    "ReconcileDecision",
    "build_alert_message",
]
