"""
Ingestion Application Layer
===========================

The batch ingestion pipeline and the DTOs of the upload API.
"""

from sla_service.ingestion.application.dto import (
    IngestionReport,
    IngestionRequestDTO,
    IngestionRow,
    IngestionRowError,
)
from sla_service.ingestion.application.services import (
    BatchIngestionPipeline,
    parse_date,
    parse_threshold,
)

__all__ = [
    # DTOs
    "IngestionReport",
    "IngestionRequestDTO",
    "IngestionRow",
    "IngestionRowError",
    # Services
    "BatchIngestionPipeline",
    "parse_date",
    "parse_threshold",
]
