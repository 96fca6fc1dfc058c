"""
SLA Application DTOs
=====================

Pydantic models for the SLA API, plus the plain result types returned by the
request commands.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from sla_service.alerts.domain import Alert
from sla_service.sla.domain import SlaRequest


# ========== Type Aliases for Literals ==========
AssignableStatusStr = Literal["ACTIVO", "INACTIVO"]


# ========== Request DTOs ==========

class RequestWriteDTO(BaseModel):
    """Fields shared by create and update."""
    person_id: int = Field(..., ge=1, description="Assigned person")
    sla_policy_id: int = Field(..., ge=1, description="SLA policy")
    role_tag_id: int = Field(..., ge=1, description="Role tag")
    submitted_date: date = Field(..., description="Date the request was submitted")
    closed_date: Optional[date] = Field(None, description="Date the request was closed")
    summary: Optional[str] = Field(
        None,
        max_length=2000,
        description="Custom summary; generated from the SLA outcome when omitted"
    )
    origin: Optional[str] = Field(None, max_length=50, description="Origin tag")
    status: AssignableStatusStr = Field(default="ACTIVO", description="Record status")


class RequestCreateDTO(RequestWriteDTO):
    """DTO for creating a single request."""
    created_by_user_id: int = Field(..., ge=1, description="User registering the request")


class RequestUpdateDTO(RequestWriteDTO):
    """DTO for replacing the editable fields of a request."""


class RecomputeRequestDTO(BaseModel):
    """Optional date override for a manual recompute pass."""
    run_date: Optional[date] = Field(None, description="Evaluate as of this date (default: today)")


# ========== Response DTOs ==========

class RequestResponse(BaseModel):
    """A request with its derived SLA state."""
    id: int
    person_id: int
    sla_policy_id: int
    role_tag_id: int
    created_by_user_id: int
    submitted_date: date
    closed_date: Optional[date]
    days_used: int
    compliance_tag: str
    lifecycle_state: str
    summary: str
    closed_at_sla_limit: bool
    origin: Optional[str]
    status: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_entity(cls, request: SlaRequest) -> "RequestResponse":
        return cls(
            id=request.id,
            person_id=request.person_id,
            sla_policy_id=request.sla_policy_id,
            role_tag_id=request.role_tag_id,
            created_by_user_id=request.created_by_user_id,
            submitted_date=request.submitted_date,
            closed_date=request.closed_date,
            days_used=request.days_used,
            compliance_tag=request.compliance_tag,
            lifecycle_state=request.lifecycle_state,
            summary=request.summary,
            closed_at_sla_limit=request.closed_at_sla_limit,
            origin=request.origin,
            status=request.status,
            created_at=request.created_at,
            updated_at=request.updated_at,
        )


class RequestCommandResponse(BaseModel):
    """Response of create/update."""
    request: RequestResponse
    alert_level: Optional[str] = None
    notified: bool = False
    notification_error: Optional[str] = None


class RecomputeResponse(BaseModel):
    """Counters of a recompute pass."""
    run_date: date
    evaluated: int
    updated: int
    failed: int
    alerts_created: int
    alerts_updated: int
    notifications_sent: int
    completed: bool


class RequestListResponse(BaseModel):
    requests: List[RequestResponse]
    total_count: int


# ========== Command Results ==========

class CommandErrorKind(str):
    """Expected, recoverable reasons a command is refused."""
    VALIDATION = "VALIDATION"
    DUPLICATE = "DUPLICATE"
    REFERENTIAL = "REFERENTIAL"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class CommandError:
    kind: str
    message: str


@dataclass
class RequestCommandResult:
    """
    Outcome of a request command.

    ``notification_error`` is set when a forced send failed; the request and
    alert writes are kept regardless.
    """
    request: Optional[SlaRequest] = None
    error: Optional[CommandError] = None
    alert: Optional[Alert] = None
    notified: bool = False
    notification_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, kind: str, message: str) -> "RequestCommandResult":
        return cls(error=CommandError(kind, message))


@dataclass
class RecomputeSummary:
    """Counters of one daily recompute pass."""
    run_date: date
    evaluated: int = 0
    updated: int = 0
    failed: int = 0
    alerts_created: int = 0
    alerts_updated: int = 0
    notifications_sent: int = 0
    completed: bool = True
