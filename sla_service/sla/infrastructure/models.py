"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for the SLA module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from sla_service.config import LifecycleState, RecordStatus
from sla_service.infrastructure.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SlaPolicyModel(Base):
    """Maps to the 'sla_policies' table."""
    __tablename__ = "sla_policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    threshold_days: Mapped[int] = mapped_column(Integer, nullable=False)
    request_type: Mapped[str] = mapped_column(String(100), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class PersonModel(Base):
    """Maps to the 'persons' table."""
    __tablename__ = "persons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    first_names: Mapped[str] = mapped_column(String(200), nullable=False)
    last_names: Mapped[str] = mapped_column(String(200), nullable=False)
    corporate_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RecordStatus.ACTIVO)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class RoleTagModel(Base):
    """Maps to the 'role_tags' table."""
    __tablename__ = "role_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, index=True, nullable=False)
    tech_block: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class RequestModel(Base):
    """
    Maps to the 'sla_requests' table.

    The natural key is unique at storage level as well, so a duplicate that
    slips past the application check fails on insert.
    """
    __tablename__ = "sla_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    person_id: Mapped[int] = mapped_column(ForeignKey("persons.id"), nullable=False, index=True)
    sla_policy_id: Mapped[int] = mapped_column(ForeignKey("sla_policies.id"), nullable=False)
    role_tag_id: Mapped[int] = mapped_column(ForeignKey("role_tags.id"), nullable=False)
    created_by_user_id: Mapped[int] = mapped_column(Integer, nullable=False)

    submitted_date: Mapped[date] = mapped_column(Date, nullable=False)
    closed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Derived SLA state
    days_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    compliance_tag: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    lifecycle_state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LifecycleState.EN_PROCESO, index=True
    )
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    summary_is_custom: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    closed_at_sla_limit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    origin: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RecordStatus.ACTIVO, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint(
            "person_id", "sla_policy_id", "role_tag_id", "submitted_date",
            name="uq_sla_requests_natural_key"
        ),
    )
