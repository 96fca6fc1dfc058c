"""
Alerts Application Layer
========================

Services orchestrating alert reconciliation and notification, and the DTOs
of the alerts API.
"""

from sla_service.alerts.application.dto import (
    AlertCreateDTO,
    AlertListResponse,
    AlertOutcome,
    AlertResponse,
)
from sla_service.alerts.application.services import (
    AlertDigestService,
    AlertEngine,
    AlertService,
    IAlertPolicyProvider,
    NotificationDispatcher,
    StaticAlertPolicyProvider,
)

__all__ = [
    # DTOs
    "AlertCreateDTO",
    "AlertListResponse",
    "AlertOutcome",
    "AlertResponse",
    # Services
    "AlertDigestService",
    "AlertEngine",
    "AlertService",
    "IAlertPolicyProvider",
    "NotificationDispatcher",
    "StaticAlertPolicyProvider",
]
