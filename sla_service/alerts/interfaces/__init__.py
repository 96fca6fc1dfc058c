"""Alert API routes."""

from sla_service.alerts.interfaces.controllers import router

__all__ = ["router"]
