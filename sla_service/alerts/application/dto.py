"""
Alert Application DTOs
======================

API models for alerts and the result of a reconciliation.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from sla_service.alerts.domain import Alert

AlertLevelStr = Literal["MEDIO", "ALTO", "CRITICO"]
AlertKindStr = Literal["NUEVA", "ACTUALIZACION_DIARIA"]


class AlertCreateDTO(BaseModel):
    """Manually raised alert."""
    request_id: int = Field(..., ge=1)
    kind: AlertKindStr = "NUEVA"
    level: AlertLevelStr
    message: str = Field(..., min_length=1, max_length=1000)


class AlertResponse(BaseModel):
    id: int
    request_id: int
    kind: str
    level: str
    message: str
    status: str
    email_sent: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    read_at: Optional[datetime]

    @classmethod
    def from_entity(cls, alert: Alert) -> "AlertResponse":
        return cls(
            id=alert.id,
            request_id=alert.request_id,
            kind=alert.kind,
            level=alert.level,
            message=alert.message,
            status=alert.status,
            email_sent=alert.email_sent,
            created_at=alert.created_at,
            updated_at=alert.updated_at,
            read_at=alert.read_at,
        )


class AlertListResponse(BaseModel):
    alerts: List[AlertResponse]
    total_count: int


@dataclass(frozen=True)
class AlertOutcome:
    """What one reconciliation did."""
    alert: Alert
    action: str
    notification_attempted: bool = False
    notified: bool = False
