"""
Alert Application Services
==========================

- NotificationDispatcher: best-effort delivery boundary around INotifier
- AlertEngine: classify, reconcile, persist and notify
- AlertService: alert commands for the API (read, delete, resend)
- AlertDigestService: daily digest of high/critical alerts for an administrator
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Sequence, Tuple

from sla_service.alerts.application.dto import AlertCreateDTO, AlertOutcome
from sla_service.alerts.application.templates import render_alert_email, render_digest_email
from sla_service.alerts.domain import (
    Alert,
    AlertPolicy,
    AlertReconciler,
    ReconcileAction,
    build_alert_message,
)
from sla_service.config import AlertLevel, AlertStatus
from sla_service.core import NotificationException
from sla_service.shared.infrastructure.clock import Clock
from sla_service.shared.infrastructure.logging import get_logger
from sla_service.sla.application.dto import CommandError, CommandErrorKind
from sla_service.sla.application.ports import INotifier, ISlaStore
from sla_service.sla.domain import Person, SlaEvaluation, SlaRequest

logger = get_logger(__name__)


class IAlertPolicyProvider(ABC):
    """Interface for alert policy access."""

    @abstractmethod
    def get_policy(self) -> AlertPolicy:
        """Get current alert policy."""


class StaticAlertPolicyProvider(IAlertPolicyProvider):
    """Fixed policy, used when no YAML file is configured."""

    def __init__(self, policy: Optional[AlertPolicy] = None):
        self._policy = policy or AlertPolicy()

    def get_policy(self) -> AlertPolicy:
        return self._policy


# ========== Notification ==========

class NotificationDispatcher:
    """
    Turns alerts into e-mails.

    Delivery problems of any kind become ``False``; a
    ``NotificationException`` is raised only when the caller asked for it.
    """

    def __init__(self, notifier: INotifier):
        self._notifier = notifier

    async def _deliver(self, to: str, subject: str, body: str) -> Tuple[bool, Optional[str]]:
        try:
            sent = await self._notifier.send(to, subject, body)
        except Exception as e:
            logger.error(
                "Notifier raised while sending",
                extra={"recipient": to, "error": str(e)}
            )
            return False, str(e)
        return sent, None if sent else "notifier reported failure"

    async def dispatch_alert(
        self,
        alert: Alert,
        request: SlaRequest,
        person: Optional[Person],
        raise_on_failure: bool = False
    ) -> bool:
        """
        E-mail an alert to the request's assignee.

        Returns:
            True if the message was accepted by the provider

        Raises:
            NotificationException: delivery failed and raise_on_failure is set
        """
        recipient = person.corporate_email if person else None
        if not recipient:
            logger.warning(
                "No recipient for alert",
                extra={"alert_id": alert.id, "request_id": request.id}
            )
            if raise_on_failure:
                raise NotificationException(
                    f"request {request.id} has no assignee e-mail",
                    {"alert_id": alert.id}
                )
            return False

        subject, body = render_alert_email(alert, request, person)
        sent, error = await self._deliver(recipient, subject, body)

        if sent:
            logger.info(
                "Alert e-mail sent",
                extra={"alert_id": alert.id, "request_id": request.id, "level": alert.level}
            )
            return True

        logger.warning(
            "Alert e-mail not delivered",
            extra={"alert_id": alert.id, "request_id": request.id, "error": error}
        )
        if raise_on_failure:
            raise NotificationException(
                f"alert e-mail for request {request.id} was not delivered: {error}",
                {"alert_id": alert.id}
            )
        return False

    async def dispatch_digest(self, recipient: str, alerts: Sequence[Alert], run_date: date) -> bool:
        subject, body = render_digest_email(alerts, run_date)
        sent, error = await self._deliver(recipient, subject, body)
        if not sent:
            logger.warning("Alert digest not delivered", extra={"recipient": recipient, "error": error})
        return sent


# ========== Alert Engine ==========

class AlertEngine:
    """
    Keeps each open request's alert in line with its SLA state.

    The notify decision comes from AlertReconciler; ``email_sent`` is only
    flipped after a successful send, so a failed send is retried by the next
    reconciliation.
    """

    def __init__(
        self,
        store: ISlaStore,
        dispatcher: NotificationDispatcher,
        policy_provider: IAlertPolicyProvider,
        clock: Clock
    ):
        self._store = store
        self._dispatcher = dispatcher
        self._policy_provider = policy_provider
        self._clock = clock

    async def reconcile(
        self,
        request: SlaRequest,
        evaluation: SlaEvaluation,
        kind: str,
        person: Optional[Person] = None,
        force_send: bool = False
    ) -> AlertOutcome:
        """
        Classify and reconcile the request's alert of the given kind.

        Args:
            request: The (persisted) request
            evaluation: Its current SLA evaluation
            kind: AlertKind of the flow calling in
            person: Assignee, looked up when omitted
            force_send: Send regardless of gating and raise if it fails

        Raises:
            NotificationException: only when force_send is set and delivery failed
        """
        policy = self._policy_provider.get_policy()
        now = self._clock.now()

        days_remaining = evaluation.days_remaining
        level = policy.classify(days_remaining)
        message = build_alert_message(
            request.id, days_remaining, evaluation.threshold_days, kind, policy.critical_days
        )

        existing = next(
            (
                alert for alert in await self._store.get_alerts_for_request(request.id)
                if alert.kind == kind and not alert.is_deleted
            ),
            None
        )
        decision = AlertReconciler.reconcile(
            request.id, existing, level, message, kind, now, policy.notify_levels
        )

        alert = decision.alert
        if decision.action == ReconcileAction.CREATED:
            alert = await self._store.create_alert(alert)
        elif decision.action == ReconcileAction.UPDATED:
            alert = await self._store.update_alert(alert)

        if decision.action != ReconcileAction.UNCHANGED:
            logger.info(
                "Alert reconciled",
                extra={
                    "request_id": request.id,
                    "alert_id": alert.id,
                    "action": decision.action,
                    "level": level,
                    "days_remaining": days_remaining,
                }
            )

        if not (decision.should_notify or force_send):
            return AlertOutcome(alert, decision.action)

        if person is None:
            person = await self._store.get_person_by_id(request.person_id)

        notified = await self._dispatcher.dispatch_alert(
            alert, request, person, raise_on_failure=force_send
        )
        if notified:
            alert.mark_email_sent(self._clock.now())
            alert = await self._store.update_alert(alert)

        return AlertOutcome(alert, decision.action, notification_attempted=True, notified=notified)


# ========== Alert Commands ==========

class AlertService:
    """Alert commands used by the API."""

    def __init__(
        self,
        store: ISlaStore,
        dispatcher: NotificationDispatcher,
        clock: Clock
    ):
        self._store = store
        self._dispatcher = dispatcher
        self._clock = clock

    async def list_for_request(self, request_id: int, include_deleted: bool = False) -> List[Alert]:
        alerts = await self._store.get_alerts_for_request(request_id)
        if include_deleted:
            return alerts
        return [alert for alert in alerts if not alert.is_deleted]

    async def list_active(self, levels: Optional[Sequence[str]] = None) -> List[Alert]:
        return await self._store.list_alerts(levels=levels)

    async def create(self, dto: AlertCreateDTO) -> Tuple[Optional[Alert], Optional[CommandError]]:
        """Raise an alert by hand; the request must exist and not be deleted."""
        request = await self._store.get_request_by_id(dto.request_id)
        if request is None or request.is_deleted:
            return None, CommandError(
                CommandErrorKind.REFERENTIAL, f"request {dto.request_id} does not exist"
            )

        now = self._clock.now()
        alert = await self._store.create_alert(
            Alert(
                id=None,
                request_id=dto.request_id,
                kind=dto.kind,
                level=dto.level,
                message=dto.message,
                status=AlertStatus.NUEVA,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Alert created manually", extra={"alert_id": alert.id, "request_id": alert.request_id})
        return alert, None

    async def mark_read(self, alert_id: int) -> Optional[Alert]:
        alert = await self._store.get_alert_by_id(alert_id)
        if alert is None or alert.is_deleted:
            return None
        alert.mark_read(self._clock.now())
        return await self._store.update_alert(alert)

    async def delete(self, alert_id: int) -> Optional[Alert]:
        alert = await self._store.get_alert_by_id(alert_id)
        if alert is None or alert.is_deleted:
            return None
        alert.mark_deleted(self._clock.now())
        return await self._store.update_alert(alert)

    async def resend(self, alert_id: int) -> Optional[Alert]:
        """
        Send an alert e-mail on demand.

        Returns:
            The alert, or None if it does not exist

        Raises:
            NotificationException: delivery failed
        """
        alert = await self._store.get_alert_by_id(alert_id)
        if alert is None or alert.is_deleted:
            return None

        request = await self._store.get_request_by_id(alert.request_id)
        if request is None:
            return None
        person = await self._store.get_person_by_id(request.person_id)

        await self._dispatcher.dispatch_alert(alert, request, person, raise_on_failure=True)
        alert.mark_email_sent(self._clock.now())
        return await self._store.update_alert(alert)


# ========== Daily Digest ==========

DIGEST_LEVELS = (AlertLevel.CRITICO, AlertLevel.ALTO)


class AlertDigestService:
    """Daily summary of high and critical alerts for an administrator."""

    def __init__(
        self,
        store: ISlaStore,
        dispatcher: NotificationDispatcher,
        recipient: Optional[str]
    ):
        self._store = store
        self._dispatcher = dispatcher
        self._recipient = recipient

    async def send_daily_digest(self, run_date: date) -> bool:
        """
        Returns:
            True when the day's digest is done (sent, or nothing to send)
        """
        if not self._recipient:
            logger.warning("Alert digest recipient not configured, skipping")
            return True

        open_ids = {request.id for request in await self._store.list_open_requests()}
        alerts = [
            alert for alert in await self._store.list_alerts(levels=DIGEST_LEVELS)
            if alert.request_id in open_ids
        ]
        if not alerts:
            logger.info("No high or critical alerts for digest", extra={"run_date": run_date.isoformat()})
            return True

        # Critical first, then by request
        alerts.sort(key=lambda alert: (alert.level != AlertLevel.CRITICO, alert.request_id))
        sent = await self._dispatcher.dispatch_digest(self._recipient, alerts, run_date)
        logger.info(
            "Alert digest processed",
            extra={"run_date": run_date.isoformat(), "alerts": len(alerts), "sent": sent}
        )
        return sent
