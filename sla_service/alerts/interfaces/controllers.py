"""
Alert Controllers (API Routes)
===============================

FastAPI routes for listing, raising, reading, deleting and re-sending alerts.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from sla_service.alerts.application import (
    AlertCreateDTO,
    AlertListResponse,
    AlertResponse,
    AlertService,
)
from sla_service.config import VALID_ALERT_LEVELS
from sla_service.shared.api.dependencies import command_error_to_http, get_alert_service
from sla_service.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/alerts", tags=["SLA Alerts"])


def _not_found(alert_id: int) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Alert {alert_id} not found")


@router.get(
    "",
    response_model=AlertListResponse,
    summary="List alerts",
    description="""
    Alerts of one request (newest first) when `request_id` is given, otherwise
    all non-deleted alerts, optionally filtered by `level`.
    """
)
async def list_alerts(
    request_id: Optional[int] = Query(None, ge=1, description="Only alerts of this request"),
    level: Optional[List[str]] = Query(None, description="Filter by level (MEDIO, ALTO, CRITICO)"),
    include_deleted: bool = Query(False, description="Include deleted alerts of the request"),
    service: AlertService = Depends(get_alert_service)
):
    levels = None
    if level:
        levels = [value.upper() for value in level]
        unknown = [value for value in levels if value not in VALID_ALERT_LEVELS]
        if unknown:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Unknown alert level(s): {', '.join(unknown)}"
            )

    if request_id is not None:
        alerts = await service.list_for_request(request_id, include_deleted=include_deleted)
        if levels:
            alerts = [alert for alert in alerts if alert.level in levels]
    else:
        alerts = await service.list_active(levels=levels)

    return AlertListResponse(
        alerts=[AlertResponse.from_entity(a) for a in alerts],
        total_count=len(alerts),
    )


@router.post(
    "",
    response_model=AlertResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Raise an alert by hand",
    responses={422: {"description": "Request does not exist"}}
)
async def create_alert(
    payload: AlertCreateDTO,
    service: AlertService = Depends(get_alert_service)
):
    alert, error = await service.create(payload)
    if error:
        raise command_error_to_http(error)
    return AlertResponse.from_entity(alert)


@router.patch(
    "/{alert_id}/read",
    response_model=AlertResponse,
    summary="Mark an alert as read",
    responses={404: {"description": "Alert not found"}}
)
async def mark_alert_read(
    alert_id: int,
    service: AlertService = Depends(get_alert_service)
):
    alert = await service.mark_read(alert_id)
    if alert is None:
        raise _not_found(alert_id)
    return AlertResponse.from_entity(alert)


@router.delete(
    "/{alert_id}",
    response_model=AlertResponse,
    summary="Delete an alert",
    responses={404: {"description": "Alert not found"}}
)
async def delete_alert(
    alert_id: int,
    service: AlertService = Depends(get_alert_service)
):
    alert = await service.delete(alert_id)
    if alert is None:
        raise _not_found(alert_id)
    return AlertResponse.from_entity(alert)


@router.post(
    "/{alert_id}/send",
    response_model=AlertResponse,
    summary="Send the alert e-mail now",
    description="Delivery failures answer 502; the alert is left unchanged.",
    responses={
        404: {"description": "Alert not found"},
        502: {"description": "E-mail delivery failed"}
    }
)
async def send_alert(
    alert_id: int,
    service: AlertService = Depends(get_alert_service)
):
    alert = await service.resend(alert_id)
    if alert is None:
        raise _not_found(alert_id)
    logger.info("Alert e-mail sent on demand", extra={"alert_id": alert_id})
    return AlertResponse.from_entity(alert)
