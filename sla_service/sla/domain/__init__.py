"""
SLA Domain Layer
================

Domain layer for SLA tracking.

Contains:
- Entities: SlaRequest, SlaPolicy, Person, RoleTag, RequestKey
- Value Objects & Services: SlaEvaluation, SlaEvaluator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from sla_service.sla.domain.entities import (
    Person,
    RequestKey,
    RoleTag,
    SlaPolicy,
    SlaRequest,
)
from sla_service.sla.domain.value_objects import SlaEvaluation, SlaEvaluator

__all__ = [
    # Entities
    "Person",
    "RequestKey",
    "RoleTag",
    "SlaPolicy",
    "SlaRequest",
    # Value Objects & Services
    "SlaEvaluation",
    "SlaEvaluator",
]
