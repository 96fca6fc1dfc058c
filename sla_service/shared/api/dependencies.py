"""
API Dependencies
================

FastAPI dependency providers wiring the store, clock and notifier into the
application services, and the mapping of command errors to HTTP errors.

Long-lived collaborators (clock, notifier, alert policy) live on
``app.state``; the store is built per request on the request's session.
"""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from sla_service.alerts.application import (
    AlertEngine,
    AlertService,
    IAlertPolicyProvider,
    NotificationDispatcher,
)
from sla_service.config import settings
from sla_service.infrastructure.database import get_session
from sla_service.ingestion.application import BatchIngestionPipeline
from sla_service.shared.infrastructure.clock import Clock
from sla_service.sla.application import (
    CommandError,
    CommandErrorKind,
    INotifier,
    ISlaStore,
    RequestService,
    SlaRecomputeService,
)
from sla_service.sla.infrastructure import SQLAlchemySlaStore

_STATUS_BY_KIND = {
    CommandErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    CommandErrorKind.REFERENTIAL: status.HTTP_422_UNPROCESSABLE_ENTITY,
    CommandErrorKind.DUPLICATE: status.HTTP_409_CONFLICT,
    CommandErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def command_error_to_http(error: CommandError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_KIND.get(error.kind, status.HTTP_400_BAD_REQUEST),
        detail={"kind": error.kind, "message": error.message},
    )


# ========== Collaborators ==========

async def get_store(session: AsyncSession = Depends(get_session)) -> ISlaStore:
    return SQLAlchemySlaStore(session)


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_notifier(request: Request) -> INotifier:
    return request.app.state.notifier


def get_alert_policy_provider(request: Request) -> IAlertPolicyProvider:
    return request.app.state.alert_policy


# ========== Services ==========

def get_dispatcher(notifier: INotifier = Depends(get_notifier)) -> NotificationDispatcher:
    return NotificationDispatcher(notifier)


def get_alert_engine(
    store: ISlaStore = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    policy_provider: IAlertPolicyProvider = Depends(get_alert_policy_provider),
    clock: Clock = Depends(get_clock)
) -> AlertEngine:
    return AlertEngine(store, dispatcher, policy_provider, clock)


def get_request_service(
    store: ISlaStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    alert_engine: AlertEngine = Depends(get_alert_engine)
) -> RequestService:
    return RequestService(store, clock, alert_engine)


def get_recompute_service(
    store: ISlaStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    alert_engine: AlertEngine = Depends(get_alert_engine)
) -> SlaRecomputeService:
    return SlaRecomputeService(store, clock, alert_engine)


def get_alert_service(
    store: ISlaStore = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Clock = Depends(get_clock)
) -> AlertService:
    return AlertService(store, dispatcher, clock)


def get_ingestion_pipeline(
    store: ISlaStore = Depends(get_store),
    clock: Clock = Depends(get_clock)
) -> BatchIngestionPipeline:
    return BatchIngestionPipeline(store, clock, auto_close_overdue=settings.ingestion_auto_close_overdue)
