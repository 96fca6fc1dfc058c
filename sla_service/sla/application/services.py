"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and the store.

- RequestService: single-request create/update/delete
- SlaRecomputeService: the daily pass over open requests
"""

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from sla_service.alerts.domain import Alert, ReconcileAction
from sla_service.config import AlertKind, OriginTag
from sla_service.core import (
    NotificationException,
    ResourceNotFoundException,
    StorageUnavailableException,
)
from sla_service.shared.infrastructure.clock import Clock
from sla_service.shared.infrastructure.logging import get_logger, log_latency
from sla_service.sla.application.dto import (
    CommandError,
    CommandErrorKind,
    RecomputeSummary,
    RequestCommandResult,
    RequestCreateDTO,
    RequestUpdateDTO,
    RequestWriteDTO,
)
from sla_service.sla.application.ports import ISlaStore
from sla_service.sla.domain import (
    Person,
    RequestKey,
    RoleTag,
    SlaEvaluation,
    SlaEvaluator,
    SlaPolicy,
    SlaRequest,
)

if TYPE_CHECKING:
    from sla_service.alerts.application.services import AlertEngine

logger = get_logger(__name__)


@dataclass(frozen=True)
class _References:
    policy: SlaPolicy
    person: Person
    role_tag: RoleTag


def _custom_summary(summary: Optional[str]) -> Optional[str]:
    if summary is not None and summary.strip():
        return summary.strip()
    return None


class RequestService:
    """
    Service for single-request commands.

    Expected refusals (bad dates, unknown references, duplicates, unknown
    ids) come back as ``RequestCommandResult.error``; nothing is written in
    that case.
    """

    def __init__(
        self,
        store: ISlaStore,
        clock: Clock,
        alert_engine: Optional["AlertEngine"] = None
    ):
        self._store = store
        self._clock = clock
        self._alert_engine = alert_engine

    async def get(self, request_id: int) -> Optional[SlaRequest]:
        request = await self._store.get_request_by_id(request_id)
        if request is None or request.is_deleted:
            return None
        return request

    async def list(self, include_deleted: bool = False) -> List[SlaRequest]:
        return await self._store.list_requests(include_deleted=include_deleted)

    async def create(
        self,
        dto: RequestCreateDTO,
        force_send: bool = False
    ) -> RequestCommandResult:
        """
        Register a request, derive its SLA state and reconcile its alert.

        Args:
            dto: Request fields
            force_send: E-mail the assignee even if the alert level would not

        Returns:
            RequestCommandResult
        """
        today = self._clock.today()
        error = self._validate_dates(dto, today)
        if error:
            return RequestCommandResult(error=error)

        refs, error = await self._load_references(dto)
        if error:
            return RequestCommandResult(error=error)

        key = RequestKey(dto.person_id, dto.sla_policy_id, dto.role_tag_id, dto.submitted_date)
        if await self._store.find_request_by_key(key) is not None:
            return RequestCommandResult.failure(CommandErrorKind.DUPLICATE, f"duplicate request {key}")

        now = self._clock.now()
        custom_summary = _custom_summary(dto.summary)
        request = SlaRequest(
            id=None,
            person_id=dto.person_id,
            sla_policy_id=dto.sla_policy_id,
            role_tag_id=dto.role_tag_id,
            created_by_user_id=dto.created_by_user_id,
            submitted_date=dto.submitted_date,
            closed_date=dto.closed_date,
            summary=custom_summary or "",
            summary_is_custom=custom_summary is not None,
            origin=dto.origin or OriginTag.MANUAL,
            status=dto.status,
            created_at=now,
            updated_at=now,
        )
        evaluation = SlaEvaluator.evaluate_request(request, refs.policy, today)
        request.apply_evaluation(evaluation)
        request = await self._store.create_request(request)

        logger.info(
            "Request created",
            extra={
                "request_id": request.id,
                "lifecycle_state": request.lifecycle_state,
                "compliance_tag": request.compliance_tag,
            }
        )

        return await self._reconcile_alert(request, evaluation, refs.person, force_send)

    async def update(
        self,
        request_id: int,
        dto: RequestUpdateDTO,
        force_send: bool = False
    ) -> RequestCommandResult:
        """Replace the editable fields of a request and recompute it in full."""
        request = await self.get(request_id)
        if request is None:
            return RequestCommandResult.failure(
                CommandErrorKind.NOT_FOUND, f"request {request_id} not found"
            )

        today = self._clock.today()
        error = self._validate_dates(dto, today)
        if error:
            return RequestCommandResult(error=error)

        refs, error = await self._load_references(dto)
        if error:
            return RequestCommandResult(error=error)

        key = RequestKey(dto.person_id, dto.sla_policy_id, dto.role_tag_id, dto.submitted_date)
        holder = await self._store.find_request_by_key(key)
        if holder is not None and holder.id != request.id:
            return RequestCommandResult.failure(CommandErrorKind.DUPLICATE, f"duplicate request {key}")

        custom_summary = _custom_summary(dto.summary)
        if dto.closed_date != request.closed_date:
            request.closed_at_sla_limit = False
        request.person_id = dto.person_id
        request.sla_policy_id = dto.sla_policy_id
        request.role_tag_id = dto.role_tag_id
        request.submitted_date = dto.submitted_date
        request.closed_date = dto.closed_date
        request.summary = custom_summary or ""
        request.summary_is_custom = custom_summary is not None
        request.origin = dto.origin or request.origin
        request.status = dto.status
        request.updated_at = self._clock.now()

        evaluation = SlaEvaluator.evaluate_request(request, refs.policy, today)
        request.apply_evaluation(evaluation)
        request = await self._store.update_request(request)

        logger.info(
            "Request updated",
            extra={
                "request_id": request.id,
                "lifecycle_state": request.lifecycle_state,
                "compliance_tag": request.compliance_tag,
            }
        )

        return await self._reconcile_alert(request, evaluation, refs.person, force_send)

    async def delete(self, request_id: int) -> RequestCommandResult:
        """Logically delete a request together with its alerts."""
        request = await self.get(request_id)
        if request is None:
            return RequestCommandResult.failure(
                CommandErrorKind.NOT_FOUND, f"request {request_id} not found"
            )

        now = self._clock.now()
        request.mark_deleted(now)
        request = await self._store.update_request(request)

        for alert in await self._store.get_alerts_for_request(request_id):
            if not alert.is_deleted:
                alert.mark_deleted(now)
                await self._store.update_alert(alert)

        logger.info("Request deleted", extra={"request_id": request_id})
        return RequestCommandResult(request=request)

    # ========== Helpers ==========

    @staticmethod
    def _validate_dates(dto: RequestWriteDTO, today: date) -> Optional[CommandError]:
        if dto.submitted_date > today:
            return CommandError(
                CommandErrorKind.VALIDATION,
                f"submitted date {dto.submitted_date.isoformat()} is in the future"
            )
        if dto.closed_date is not None and dto.closed_date < dto.submitted_date:
            return CommandError(
                CommandErrorKind.VALIDATION,
                "closed date cannot be before submitted date"
            )
        return None

    async def _load_references(
        self,
        dto: RequestWriteDTO
    ) -> Tuple[Optional[_References], Optional[CommandError]]:
        policy = await self._store.get_policy_by_id(dto.sla_policy_id)
        if policy is None:
            return None, CommandError(
                CommandErrorKind.REFERENTIAL, f"SLA policy {dto.sla_policy_id} does not exist"
            )
        person = await self._store.get_person_by_id(dto.person_id)
        if person is None:
            return None, CommandError(
                CommandErrorKind.REFERENTIAL, f"person {dto.person_id} does not exist"
            )
        role_tag = await self._store.get_role_tag_by_id(dto.role_tag_id)
        if role_tag is None:
            return None, CommandError(
                CommandErrorKind.REFERENTIAL, f"role tag {dto.role_tag_id} does not exist"
            )
        return _References(policy, person, role_tag), None

    async def _reconcile_alert(
        self,
        request: SlaRequest,
        evaluation: SlaEvaluation,
        person: Person,
        force_send: bool
    ) -> RequestCommandResult:
        result = RequestCommandResult(request=request)

        if self._alert_engine is None:
            return result
        if not request.is_open:
            if force_send:
                result.notification_error = "request is closed; there is no alert to send"
            return result

        try:
            outcome = await self._alert_engine.reconcile(
                request, evaluation, AlertKind.NUEVA, person=person, force_send=force_send
            )
        except NotificationException as e:
            # The alert write is kept; report its stored state with the failure
            result.notification_error = e.message
            result.alert = await self._current_alert(request.id, AlertKind.NUEVA)
            return result

        result.alert = outcome.alert
        result.notified = outcome.notified
        return result

    async def _current_alert(self, request_id: int, kind: str) -> Optional[Alert]:
        for alert in await self._store.get_alerts_for_request(request_id):
            if alert.kind == kind and not alert.is_deleted:
                return alert
        return None


class SlaRecomputeService:
    """
    The daily pass: re-evaluate every open request and refresh its
    daily-update alert.

    A failure on one request is logged and skipped. A storage outage aborts
    the pass and propagates so the job is retried later.
    Each request's writes, including its ``email_sent`` flag, are committed
    before the next request starts.
    """

    def __init__(
        self,
        store: ISlaStore,
        clock: Clock,
        alert_engine: Optional["AlertEngine"] = None
    ):
        self._store = store
        self._clock = clock
        self._alert_engine = alert_engine

    async def run_daily_pass(
        self,
        today: date,
        should_stop: Optional[Callable[[], bool]] = None
    ) -> RecomputeSummary:
        """
        Recompute all open requests as of ``today``.

        Args:
            today: Evaluation date in the operating timezone
            should_stop: Checked before each request; True abandons the pass

        Returns:
            RecomputeSummary, ``completed`` is False if the pass was abandoned
        """
        summary = RecomputeSummary(run_date=today)

        requests = await self._store.list_open_requests()
        policies = {policy.id: policy for policy in await self._store.list_policies()}
        persons = {person.id: person for person in await self._store.list_persons()}

        with log_latency(logger, "sla_daily_recompute", run_date=today.isoformat(), requests=len(requests)):
            for request in requests:
                if should_stop is not None and should_stop():
                    summary.completed = False
                    logger.warning(
                        "SLA daily pass interrupted",
                        extra={"run_date": today.isoformat(), "evaluated": summary.evaluated}
                    )
                    break

                try:
                    async with self._store.savepoint():
                        await self._recompute_one(request, policies, persons, today, summary)
                    # Sent e-mails are recorded before the next request is touched
                    await self._store.commit()
                except StorageUnavailableException:
                    raise
                except Exception as e:
                    summary.failed += 1
                    logger.exception(
                        "Request recompute failed, skipping",
                        extra={"request_id": request.id, "error": str(e)}
                    )

        logger.info(
            "SLA daily pass finished",
            extra={
                "run_date": today.isoformat(),
                "evaluated": summary.evaluated,
                "updated": summary.updated,
                "failed": summary.failed,
                "notifications_sent": summary.notifications_sent,
                "completed": summary.completed,
            }
        )
        return summary

    async def _recompute_one(
        self,
        request: SlaRequest,
        policies: Dict[int, SlaPolicy],
        persons: Dict[int, Person],
        today: date,
        summary: RecomputeSummary
    ) -> None:
        policy = policies.get(request.sla_policy_id)
        if policy is None:
            raise ResourceNotFoundException("SlaPolicy", str(request.sla_policy_id))

        evaluation = SlaEvaluator.evaluate_request(request, policy, today)
        summary.evaluated += 1

        if request.apply_evaluation(evaluation):
            request.updated_at = self._clock.now()
            request = await self._store.update_request(request)
            summary.updated += 1

        if self._alert_engine is None:
            return

        outcome = await self._alert_engine.reconcile(
            request,
            evaluation,
            AlertKind.ACTUALIZACION_DIARIA,
            person=persons.get(request.person_id),
        )
        if outcome.action == ReconcileAction.CREATED:
            summary.alerts_created += 1
        elif outcome.action == ReconcileAction.UPDATED:
            summary.alerts_updated += 1
        if outcome.notified:
            summary.notifications_sent += 1
