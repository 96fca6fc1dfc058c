"""SLA API routes."""

from sla_service.sla.interfaces.controllers import router

__all__ = ["router"]
