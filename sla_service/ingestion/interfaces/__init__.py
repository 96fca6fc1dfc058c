"""Bulk ingestion API routes."""

from sla_service.ingestion.interfaces.controllers import router

__all__ = ["router"]
