"""
SLA Domain Entities
====================

Pure Python domain entities for SLA tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from sla_service.config import LifecycleState, RecordStatus
from sla_service.core import InvalidDateRangeException


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RequestKey:
    """
    Natural key of a request: (person, policy, role tag, submitted date).

    Two requests with the same key are duplicates regardless of how they
    entered the system.
    """
    person_id: int
    sla_policy_id: int
    role_tag_id: int
    submitted_date: date

    def __str__(self) -> str:
        return (
            f"{self.person_id}|{self.sla_policy_id}|{self.role_tag_id}|"
            f"{self.submitted_date.isoformat()}"
        )


@dataclass
class SlaPolicy:
    """An SLA policy: a compliance code and a day threshold."""

    id: Optional[int]
    code: str
    threshold_days: int
    request_type: str
    description: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.threshold_days < 0:
            raise ValueError("threshold_days cannot be negative")

    @property
    def compliance_code(self) -> str:
        """Code used in compliance tags; falls back to SLA<id> when blank."""
        if self.code and self.code.strip():
            return self.code.strip()
        return f"SLA{self.id}"


@dataclass
class Person:
    """A person requests are assigned to and alerts are mailed to."""

    id: Optional[int]
    document_id: str
    first_names: str
    last_names: str
    corporate_email: Optional[str] = None
    status: str = RecordStatus.ACTIVO
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_names, self.last_names) if part).strip()


@dataclass
class RoleTag:
    """Role/category label attached to a request."""

    id: Optional[int]
    name: str
    tech_block: Optional[str] = None
    description: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class SlaRequest:
    """
    A tracked request.

    ``days_used``, ``compliance_tag``, ``lifecycle_state`` and ``summary`` are
    derived by the SLA evaluator and must never be set by hand. ``summary`` is
    left alone when ``summary_is_custom`` is set. ``closed_at_sla_limit`` marks a
    request closed automatically on import once already overdue; it stays
    overdue for as long as its closed date is not edited.
    """

    id: Optional[int]
    person_id: int
    sla_policy_id: int
    role_tag_id: int
    created_by_user_id: int
    submitted_date: date
    closed_date: Optional[date] = None

    # Derived state
    days_used: int = 0
    compliance_tag: str = ""
    lifecycle_state: str = LifecycleState.EN_PROCESO
    summary: str = ""
    summary_is_custom: bool = False
    closed_at_sla_limit: bool = False

    origin: Optional[str] = None
    status: str = RecordStatus.ACTIVO
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate request on initialization."""
        if self.closed_date is not None and self.closed_date < self.submitted_date:
            raise InvalidDateRangeException(self.submitted_date, self.closed_date)

    @property
    def key(self) -> RequestKey:
        return RequestKey(
            person_id=self.person_id,
            sla_policy_id=self.sla_policy_id,
            role_tag_id=self.role_tag_id,
            submitted_date=self.submitted_date,
        )

    @property
    def is_deleted(self) -> bool:
        return self.status == RecordStatus.ELIMINADO

    @property
    def is_open(self) -> bool:
        """Open requests are the ones the daily pass recomputes."""
        return self.status == RecordStatus.ACTIVO and self.closed_date is None

    def apply_evaluation(self, evaluation) -> bool:
        """
        Copy derived fields from an SlaEvaluation.

        Returns:
            True if any derived field changed
        """
        before = (self.days_used, self.compliance_tag, self.lifecycle_state, self.summary)
        self.days_used = evaluation.days_used
        self.compliance_tag = evaluation.compliance_tag
        self.lifecycle_state = evaluation.lifecycle_state
        self.summary = evaluation.summary
        return before != (self.days_used, self.compliance_tag, self.lifecycle_state, self.summary)

    def mark_deleted(self, timestamp: Optional[datetime] = None) -> None:
        """Logical delete; requests are never physically removed."""
        self.status = RecordStatus.ELIMINADO
        self.updated_at = timestamp or _utcnow()
