"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA requests and the manual recompute pass.

Controllers are thin - they delegate to application services.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from sla_service.shared.api.dependencies import (
    command_error_to_http,
    get_clock,
    get_recompute_service,
    get_request_service,
)
from sla_service.shared.infrastructure.clock import Clock
from sla_service.shared.infrastructure.logging import get_logger
from sla_service.sla.application import (
    RecomputeRequestDTO,
    RecomputeResponse,
    RequestCommandResponse,
    RequestCommandResult,
    RequestCreateDTO,
    RequestListResponse,
    RequestResponse,
    RequestService,
    RequestUpdateDTO,
    SlaRecomputeService,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA Requests"])


# ========== Example payloads for Swagger ==========

REQUEST_CREATE_EXAMPLE = {
    "person_id": 1,
    "sla_policy_id": 1,
    "role_tag_id": 1,
    "created_by_user_id": 1,
    "submitted_date": "2024-01-01",
    "closed_date": None,
    "summary": None,
    "origin": "MANUAL",
    "status": "ACTIVO"
}

REQUEST_COMMAND_RESPONSE_EXAMPLE = {
    "request": {
        "id": 12,
        "person_id": 1,
        "sla_policy_id": 1,
        "role_tag_id": 1,
        "created_by_user_id": 1,
        "submitted_date": "2024-01-01",
        "closed_date": None,
        "days_used": 9,
        "compliance_tag": "NO_CUMPLE_SLA1",
        "lifecycle_state": "VENCIDA",
        "summary": "Request overdue and still open (9 of 5 days)",
        "closed_at_sla_limit": False,
        "origin": "MANUAL",
        "status": "ACTIVO",
        "created_at": "2024-01-10T09:00:00Z",
        "updated_at": "2024-01-10T09:00:00Z"
    },
    "alert_level": "CRITICO",
    "notified": True,
    "notification_error": None
}


# ========== Helpers ==========

def _command_response(result: RequestCommandResult):
    """Build the response of create/update; a failed forced send answers 502 with the stored request."""
    body = RequestCommandResponse(
        request=RequestResponse.from_entity(result.request),
        alert_level=result.alert.level if result.alert else None,
        notified=result.notified,
        notification_error=result.notification_error,
    )
    if result.notification_error:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=body.model_dump(mode="json"),
        )
    return body


# ========== Route Handlers ==========

@router.post(
    "/requests",
    response_model=RequestCommandResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a request",
    description="""
    Register a single request, derive its SLA state and raise its alert.

    - **422**: invalid dates or unknown person / SLA policy / role tag
    - **409**: a request with the same person, SLA, role and submitted date exists
    - **502**: `force_send` was requested and the e-mail could not be delivered;
      the request is stored regardless
    """,
    responses={
        201: {
            "description": "Request registered",
            "content": {"application/json": {"example": REQUEST_COMMAND_RESPONSE_EXAMPLE}}
        },
        409: {"description": "Duplicate request"},
        422: {"description": "Invalid request"},
        502: {"description": "Forced notification failed"}
    }
)
async def create_request(
    payload: RequestCreateDTO = Body(..., examples=[REQUEST_CREATE_EXAMPLE]),
    force_send: bool = Query(False, description="E-mail the assignee regardless of alert level"),
    service: RequestService = Depends(get_request_service)
):
    result = await service.create(payload, force_send=force_send)
    if not result.ok:
        raise command_error_to_http(result.error)
    return _command_response(result)


@router.get(
    "/requests",
    response_model=RequestListResponse,
    summary="List requests"
)
async def list_requests(
    include_deleted: bool = Query(False, description="Include logically deleted requests"),
    service: RequestService = Depends(get_request_service)
):
    requests = await service.list(include_deleted=include_deleted)
    return RequestListResponse(
        requests=[RequestResponse.from_entity(r) for r in requests],
        total_count=len(requests),
    )


@router.get(
    "/requests/{request_id}",
    response_model=RequestResponse,
    summary="Get a request",
    responses={404: {"description": "Request not found"}}
)
async def get_request(
    request_id: int,
    service: RequestService = Depends(get_request_service)
):
    request = await service.get(request_id)
    if request is None:
        raise HTTPException(status_code=404, detail=f"Request {request_id} not found")
    return RequestResponse.from_entity(request)


@router.put(
    "/requests/{request_id}",
    response_model=RequestCommandResponse,
    summary="Update a request",
    description="""
    Replace the editable fields of a request. The SLA state is recomputed in
    full and the alert reconciled against the new state.
    """,
    responses={
        404: {"description": "Request not found"},
        409: {"description": "Duplicate request"},
        422: {"description": "Invalid request"},
        502: {"description": "Forced notification failed"}
    }
)
async def update_request(
    request_id: int,
    payload: RequestUpdateDTO,
    force_send: bool = Query(False, description="E-mail the assignee regardless of alert level"),
    service: RequestService = Depends(get_request_service)
):
    result = await service.update(request_id, payload, force_send=force_send)
    if not result.ok:
        raise command_error_to_http(result.error)
    return _command_response(result)


@router.delete(
    "/requests/{request_id}",
    response_model=RequestResponse,
    summary="Delete a request",
    description="Logical delete: the request and its alerts are marked deleted.",
    responses={404: {"description": "Request not found"}}
)
async def delete_request(
    request_id: int,
    service: RequestService = Depends(get_request_service)
):
    result = await service.delete(request_id)
    if not result.ok:
        raise command_error_to_http(result.error)
    return RequestResponse.from_entity(result.request)


@router.post(
    "/recompute",
    response_model=RecomputeResponse,
    summary="Run the daily recompute pass now",
    description="""
    Re-evaluate every open request and refresh its daily-update alert, as the
    scheduled job does. `run_date` defaults to today in the operating timezone.
    """
)
async def recompute(
    payload: Optional[RecomputeRequestDTO] = Body(None),
    service: SlaRecomputeService = Depends(get_recompute_service),
    clock: Clock = Depends(get_clock)
):
    run_date = (payload.run_date if payload else None) or clock.today()
    logger.info("Manual recompute requested", extra={"run_date": run_date.isoformat()})

    summary = await service.run_daily_pass(run_date)
    return RecomputeResponse(
        run_date=summary.run_date,
        evaluated=summary.evaluated,
        updated=summary.updated,
        failed=summary.failed,
        alerts_created=summary.alerts_created,
        alerts_updated=summary.alerts_updated,
        notifications_sent=summary.notifications_sent,
        completed=summary.completed,
    )
