"""
Alerts Infrastructure Layer
===========================

- Models: SQLAlchemy ORM model for alerts
- External: e-mail notifier, circuit breaker, alert policy file manager
"""

from sla_service.alerts.infrastructure.external import (
    AlertPolicyManager,
    CircuitBreaker,
    CircuitState,
    HttpEmailNotifier,
)
from sla_service.alerts.infrastructure.models import AlertModel

__all__ = [
    "AlertModel",
    "AlertPolicyManager",
    "CircuitBreaker",
    "CircuitState",
    "HttpEmailNotifier",
]
