"""
Alert Domain Entities
=====================

An alert tracks how close a request is to its SLA deadline and whether the
assignee has been e-mailed about the current escalation.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sla_service.config import AlertStatus


@dataclass
class Alert:
    """
    Alert entity.

    One live alert exists per (request, kind); reconciliation updates it in
    place instead of stacking new rows.
    """

    id: Optional[int]
    request_id: int
    kind: str
    level: str
    message: str
    status: str = AlertStatus.NUEVA
    email_sent: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.status == AlertStatus.ELIMINADA

    def mark_read(self, timestamp: datetime) -> None:
        self.status = AlertStatus.LEIDA
        self.read_at = timestamp
        self.updated_at = timestamp

    def mark_deleted(self, timestamp: datetime) -> None:
        self.status = AlertStatus.ELIMINADA
        self.updated_at = timestamp

    def mark_email_sent(self, timestamp: datetime) -> None:
        self.email_sent = True
        self.updated_at = timestamp
