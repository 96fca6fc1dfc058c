"""
SLA Application Layer
======================

Application layer for SLA tracking.

Contains:
- Services: request commands and the daily recompute pass
- Ports: store and notifier interfaces
- DTOs: data transfer objects for API serialization

This layer depends on the domain layer and port interfaces,
but not on concrete infrastructure implementations.
"""

from sla_service.sla.application.dto import (
    CommandError,
    CommandErrorKind,
    RecomputeRequestDTO,
    RecomputeResponse,
    RecomputeSummary,
    RequestCommandResponse,
    RequestCommandResult,
    RequestCreateDTO,
    RequestListResponse,
    RequestResponse,
    RequestUpdateDTO,
)
from sla_service.sla.application.ports import INotifier, ISlaStore
from sla_service.sla.application.services import RequestService, SlaRecomputeService

__all__ = [
    # DTOs
    "CommandError",
    "CommandErrorKind",
    "RecomputeRequestDTO",
    "RecomputeResponse",
    "RecomputeSummary",
    "RequestCommandResponse",
    "RequestCommandResult",
    "RequestCreateDTO",
    "RequestListResponse",
    "RequestResponse",
    "RequestUpdateDTO",
    # Ports
    "INotifier",
    "ISlaStore",
    # Services
    "RequestService",
    "SlaRecomputeService",
]
