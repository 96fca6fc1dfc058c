"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA tracking:
- Models: SQLAlchemy ORM models
- Repositories: the SQLAlchemy store
"""

from sla_service.sla.infrastructure.models import (
    PersonModel,
    RequestModel,
    RoleTagModel,
    SlaPolicyModel,
)
from sla_service.sla.infrastructure.repositories import SQLAlchemySlaStore

__all__ = [
    "PersonModel",
    "RequestModel",
    "RoleTagModel",
    "SlaPolicyModel",
    "SQLAlchemySlaStore",
]
