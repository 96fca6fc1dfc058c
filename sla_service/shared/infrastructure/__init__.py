"""
Infrastructure Layer
=====================

Low-level technical concerns shared by every bounded context:
- Logging setup
- Operating clock
- Daily job scheduling
"""

from sla_service.shared.infrastructure.clock import Clock, OperatingClock
from sla_service.shared.infrastructure.scheduler import (
    DailyJob,
    DailyTrigger,
    JobScheduler,
    TriggerDecision,
    TriggerReason,
)

__all__ = [
    "Clock",
    "OperatingClock",
    "DailyJob",
    "DailyTrigger",
    "JobScheduler",
    "TriggerDecision",
    "TriggerReason",
]
