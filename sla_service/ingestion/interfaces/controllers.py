"""
Ingestion Controllers (API Routes)
===================================

Bulk upload of spreadsheet rows.
"""

from fastapi import APIRouter, Depends

from sla_service.ingestion.application import (
    BatchIngestionPipeline,
    IngestionReport,
    IngestionRequestDTO,
)
from sla_service.shared.api.dependencies import get_ingestion_pipeline
from sla_service.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/ingestion", tags=["Bulk Ingestion"])


INGESTION_REPORT_EXAMPLE = {
    "totalRows": 3,
    "successCount": 2,
    "errorCount": 1,
    "errors": [{"rowIndex": 3, "message": "duplicate request"}]
}


@router.post(
    "/requests",
    response_model=IngestionReport,
    response_model_by_alias=True,
    summary="Bulk upload requests",
    description="""
    Ingest spreadsheet rows in order. Persons, SLA policies and role tags are
    matched by document, code and name (case-insensitive) and created when
    missing. Re-uploading the same rows creates nothing: every row comes back
    as `duplicate request`.

    Row errors carry the 1-based row index; a failed row leaves no data behind.
    Only a storage outage fails the whole call (503).
    """,
    responses={
        200: {
            "description": "Batch processed",
            "content": {"application/json": {"example": INGESTION_REPORT_EXAMPLE}}
        },
        503: {"description": "Storage unavailable"}
    }
)
async def ingest_requests(
    payload: IngestionRequestDTO,
    pipeline: BatchIngestionPipeline = Depends(get_ingestion_pipeline)
):
    logger.info("Bulk upload received", extra={"rows": len(payload.rows), "acting_user_id": payload.acting_user_id})
    return await pipeline.process(payload.rows, payload.acting_user_id)
