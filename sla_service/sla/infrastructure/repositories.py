"""
SLA Infrastructure Repositories
=================================

SQLAlchemy implementation of the store port.

Driver errors are translated at this boundary: constraint and data errors
become RepositoryException (recoverable, scoped to one operation),
connection-level errors become StorageUnavailableException.
"""

import functools
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import (
    DataError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from sla_service.alerts.domain import Alert
from sla_service.alerts.infrastructure.models import AlertModel
from sla_service.config import AlertStatus, RecordStatus
from sla_service.core import RepositoryException, StorageUnavailableException
from sla_service.shared.infrastructure.logging import get_logger
from sla_service.sla.application.ports import ISlaStore
from sla_service.sla.domain import Person, RequestKey, RoleTag, SlaPolicy, SlaRequest
from sla_service.sla.infrastructure.models import (
    PersonModel,
    RequestModel,
    RoleTagModel,
    SlaPolicyModel,
)

logger = get_logger(__name__)

_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, DisconnectionError, ConnectionError, OSError)


def _driver_message(error: SQLAlchemyError) -> str:
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else str(error)


def translate_errors(operation: str):
    """Decorator mapping driver errors of a store method to the core hierarchy."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except _UNAVAILABLE_ERRORS as e:
                logger.error("Storage unavailable", extra={"operation": operation, "error": str(e)})
                raise StorageUnavailableException(
                    f"storage unavailable during {operation}", {"error": str(e)}
                ) from e
            except (IntegrityError, DataError) as e:
                raise RepositoryException(_driver_message(e), {"operation": operation}) from e
            except SQLAlchemyError as e:
                raise RepositoryException(_driver_message(e), {"operation": operation}) from e

        return wrapper

    return decorator


# ========== Mapping ==========

def _to_policy(model: SlaPolicyModel) -> SlaPolicy:
    return SlaPolicy(
        id=model.id,
        code=model.code,
        threshold_days=model.threshold_days,
        request_type=model.request_type,
        description=model.description,
        active=model.active,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_person(model: PersonModel) -> Person:
    return Person(
        id=model.id,
        document_id=model.document_id,
        first_names=model.first_names,
        last_names=model.last_names,
        corporate_email=model.corporate_email,
        status=model.status,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_role_tag(model: RoleTagModel) -> RoleTag:
    return RoleTag(
        id=model.id,
        name=model.name,
        tech_block=model.tech_block,
        description=model.description,
        active=model.active,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_request(model: RequestModel) -> SlaRequest:
    return SlaRequest(
        id=model.id,
        person_id=model.person_id,
        sla_policy_id=model.sla_policy_id,
        role_tag_id=model.role_tag_id,
        created_by_user_id=model.created_by_user_id,
        submitted_date=model.submitted_date,
        closed_date=model.closed_date,
        days_used=model.days_used,
        compliance_tag=model.compliance_tag,
        lifecycle_state=model.lifecycle_state,
        summary=model.summary,
        summary_is_custom=model.summary_is_custom,
        closed_at_sla_limit=model.closed_at_sla_limit,
        origin=model.origin,
        status=model.status,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _copy_request(request: SlaRequest, model: RequestModel) -> None:
    model.person_id = request.person_id
    model.sla_policy_id = request.sla_policy_id
    model.role_tag_id = request.role_tag_id
    model.created_by_user_id = request.created_by_user_id
    model.submitted_date = request.submitted_date
    model.closed_date = request.closed_date
    model.days_used = request.days_used
    model.compliance_tag = request.compliance_tag
    model.lifecycle_state = request.lifecycle_state
    model.summary = request.summary
    model.summary_is_custom = request.summary_is_custom
    model.closed_at_sla_limit = request.closed_at_sla_limit
    model.origin = request.origin
    model.status = request.status
    if request.created_at is not None:
        model.created_at = request.created_at
    if request.updated_at is not None:
        model.updated_at = request.updated_at


def _to_alert(model: AlertModel) -> Alert:
    return Alert(
        id=model.id,
        request_id=model.request_id,
        kind=model.kind,
        level=model.level,
        message=model.message,
        status=model.status,
        email_sent=model.email_sent,
        created_at=model.created_at,
        updated_at=model.updated_at,
        read_at=model.read_at,
    )


def _copy_alert(alert: Alert, model: AlertModel) -> None:
    model.request_id = alert.request_id
    model.kind = alert.kind
    model.level = alert.level
    model.message = alert.message
    model.status = alert.status
    model.email_sent = alert.email_sent
    model.read_at = alert.read_at
    if alert.created_at is not None:
        model.created_at = alert.created_at
    if alert.updated_at is not None:
        model.updated_at = alert.updated_at


def _normalized(value: str) -> str:
    return value.strip().lower()


class SQLAlchemySlaStore(ISlaStore):
    """
    SQLAlchemy implementation of the store.

    Works inside the caller's session. The final commit is the caller's job
    (``get_session`` for HTTP requests, ``get_session_context`` for jobs);
    ``commit()`` lets long passes make progress durable as they go.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    # ========== Requests ==========

    @translate_errors("list_open_requests")
    async def list_open_requests(self) -> List[SlaRequest]:
        stmt = (
            select(RequestModel)
            .where(
                RequestModel.status == RecordStatus.ACTIVO,
                RequestModel.closed_date.is_(None),
            )
            .order_by(RequestModel.id)
        )
        result = await self._session.execute(stmt)
        return [_to_request(model) for model in result.scalars().all()]

    @translate_errors("list_requests")
    async def list_requests(self, include_deleted: bool = True) -> List[SlaRequest]:
        stmt = select(RequestModel).order_by(RequestModel.id)
        if not include_deleted:
            stmt = stmt.where(RequestModel.status != RecordStatus.ELIMINADO)
        result = await self._session.execute(stmt)
        return [_to_request(model) for model in result.scalars().all()]

    @translate_errors("get_request_by_id")
    async def get_request_by_id(self, request_id: int) -> Optional[SlaRequest]:
        model = await self._session.get(RequestModel, request_id)
        return _to_request(model) if model else None

    @translate_errors("find_request_by_key")
    async def find_request_by_key(self, key: RequestKey) -> Optional[SlaRequest]:
        stmt = select(RequestModel).where(
            RequestModel.person_id == key.person_id,
            RequestModel.sla_policy_id == key.sla_policy_id,
            RequestModel.role_tag_id == key.role_tag_id,
            RequestModel.submitted_date == key.submitted_date,
        )
        result = await self._session.execute(stmt)
        model = result.scalars().first()
        return _to_request(model) if model else None

    @translate_errors("create_request")
    async def create_request(self, request: SlaRequest) -> SlaRequest:
        model = RequestModel()
        _copy_request(request, model)
        self._session.add(model)
        await self._session.flush()
        return _to_request(model)

    @translate_errors("update_request")
    async def update_request(self, request: SlaRequest) -> SlaRequest:
        model = await self._session.get(RequestModel, request.id)
        if model is None:
            raise RepositoryException(f"request {request.id} not found")
        _copy_request(request, model)
        await self._session.flush()
        return _to_request(model)

    # ========== SLA Policies ==========

    @translate_errors("list_policies")
    async def list_policies(self) -> List[SlaPolicy]:
        result = await self._session.execute(select(SlaPolicyModel).order_by(SlaPolicyModel.id))
        return [_to_policy(model) for model in result.scalars().all()]

    @translate_errors("get_policy_by_id")
    async def get_policy_by_id(self, policy_id: int) -> Optional[SlaPolicy]:
        model = await self._session.get(SlaPolicyModel, policy_id)
        return _to_policy(model) if model else None

    @translate_errors("find_policy_by_code")
    async def find_policy_by_code(self, code: str) -> Optional[SlaPolicy]:
        stmt = select(SlaPolicyModel).where(func.lower(SlaPolicyModel.code) == _normalized(code))
        result = await self._session.execute(stmt)
        model = result.scalars().first()
        return _to_policy(model) if model else None

    @translate_errors("create_policy")
    async def create_policy(self, policy: SlaPolicy) -> SlaPolicy:
        model = SlaPolicyModel(
            code=policy.code,
            description=policy.description,
            threshold_days=policy.threshold_days,
            request_type=policy.request_type,
            active=policy.active,
        )
        self._session.add(model)
        await self._session.flush()
        return _to_policy(model)

    # ========== Role Tags ==========

    @translate_errors("list_role_tags")
    async def list_role_tags(self) -> List[RoleTag]:
        result = await self._session.execute(select(RoleTagModel).order_by(RoleTagModel.id))
        return [_to_role_tag(model) for model in result.scalars().all()]

    @translate_errors("get_role_tag_by_id")
    async def get_role_tag_by_id(self, role_tag_id: int) -> Optional[RoleTag]:
        model = await self._session.get(RoleTagModel, role_tag_id)
        return _to_role_tag(model) if model else None

    @translate_errors("find_role_tag_by_name")
    async def find_role_tag_by_name(self, name: str) -> Optional[RoleTag]:
        stmt = select(RoleTagModel).where(func.lower(RoleTagModel.name) == _normalized(name))
        result = await self._session.execute(stmt)
        model = result.scalars().first()
        return _to_role_tag(model) if model else None

    @translate_errors("create_role_tag")
    async def create_role_tag(self, role_tag: RoleTag) -> RoleTag:
        model = RoleTagModel(
            name=role_tag.name,
            tech_block=role_tag.tech_block,
            description=role_tag.description,
            active=role_tag.active,
        )
        self._session.add(model)
        await self._session.flush()
        return _to_role_tag(model)

    # ========== People ==========

    @translate_errors("list_persons")
    async def list_persons(self) -> List[Person]:
        result = await self._session.execute(select(PersonModel).order_by(PersonModel.id))
        return [_to_person(model) for model in result.scalars().all()]

    @translate_errors("get_person_by_id")
    async def get_person_by_id(self, person_id: int) -> Optional[Person]:
        model = await self._session.get(PersonModel, person_id)
        return _to_person(model) if model else None

    @translate_errors("find_person_by_document")
    async def find_person_by_document(self, document_id: str) -> Optional[Person]:
        stmt = select(PersonModel).where(func.lower(PersonModel.document_id) == _normalized(document_id))
        result = await self._session.execute(stmt)
        model = result.scalars().first()
        return _to_person(model) if model else None

    @translate_errors("create_person")
    async def create_person(self, person: Person) -> Person:
        model = PersonModel(
            document_id=person.document_id,
            first_names=person.first_names,
            last_names=person.last_names,
            corporate_email=person.corporate_email,
            status=person.status,
        )
        self._session.add(model)
        await self._session.flush()
        return _to_person(model)

    # ========== Alerts ==========

    @translate_errors("get_alerts_for_request")
    async def get_alerts_for_request(self, request_id: int) -> List[Alert]:
        stmt = (
            select(AlertModel)
            .where(AlertModel.request_id == request_id)
            .order_by(AlertModel.created_at.desc(), AlertModel.id.desc())
        )
        result = await self._session.execute(stmt)
        return [_to_alert(model) for model in result.scalars().all()]

    @translate_errors("list_alerts")
    async def list_alerts(
        self,
        levels: Optional[Sequence[str]] = None,
        include_deleted: bool = False
    ) -> List[Alert]:
        stmt = select(AlertModel).order_by(AlertModel.created_at.desc(), AlertModel.id.desc())
        if levels:
            stmt = stmt.where(AlertModel.level.in_(list(levels)))
        if not include_deleted:
            stmt = stmt.where(AlertModel.status != AlertStatus.ELIMINADA)
        result = await self._session.execute(stmt)
        return [_to_alert(model) for model in result.scalars().all()]

    @translate_errors("get_alert_by_id")
    async def get_alert_by_id(self, alert_id: int) -> Optional[Alert]:
        model = await self._session.get(AlertModel, alert_id)
        return _to_alert(model) if model else None

    @translate_errors("create_alert")
    async def create_alert(self, alert: Alert) -> Alert:
        model = AlertModel()
        _copy_alert(alert, model)
        self._session.add(model)
        await self._session.flush()
        return _to_alert(model)

    @translate_errors("update_alert")
    async def update_alert(self, alert: Alert) -> Alert:
        model = await self._session.get(AlertModel, alert.id)
        if model is None:
            raise RepositoryException(f"alert {alert.id} not found")
        _copy_alert(alert, model)
        await self._session.flush()
        return _to_alert(model)

    # ========== Transactions ==========

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        async with self._session.begin_nested():
            yield

    @translate_errors("commit")
    async def commit(self) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError:
            await self._session.rollback()
            raise
