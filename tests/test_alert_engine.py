"""
Tests for alert classification, reconciliation, notification and the digest.
"""

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from sla_service.alerts.application import AlertCreateDTO, AlertDigestService
from sla_service.alerts.domain import (
    Alert,
    AlertPolicy,
    AlertReconciler,
    ReconcileAction,
    build_alert_message,
)
from sla_service.config import AlertKind, AlertLevel, AlertStatus
from sla_service.core import NotificationException
from sla_service.sla.application import CommandErrorKind
from sla_service.sla.domain import Person, SlaEvaluator, SlaPolicy, SlaRequest


NOW = datetime(2024, 1, 10, 14, 0, tzinfo=timezone.utc)


async def _open_request(store, master, submitted, policy=None, closed=None, person=None):
    policy = policy or master["policy"]
    request = SlaRequest(
        id=None,
        person_id=(person or master["person"]).id,
        sla_policy_id=policy.id,
        role_tag_id=master["role_tag"].id,
        created_by_user_id=1,
        submitted_date=submitted,
        closed_date=closed,
    )
    return await store.create_request(request)


class TestAlertPolicy:
    """Escalation levels by days remaining."""

    @pytest.mark.parametrize(
        "days_remaining,expected",
        [
            (10, AlertLevel.MEDIO),
            (6, AlertLevel.MEDIO),
            (5, AlertLevel.ALTO),
            (3, AlertLevel.ALTO),
            (2, AlertLevel.CRITICO),
            (0, AlertLevel.CRITICO),
            (-1, AlertLevel.CRITICO),
        ],
    )
    def test_default_classification(self, days_remaining, expected):
        assert AlertPolicy().classify(days_remaining) == expected

    def test_custom_thresholds(self):
        policy = AlertPolicy(critical_days=1, high_days=3)
        assert policy.classify(2) == AlertLevel.ALTO
        assert policy.classify(4) == AlertLevel.MEDIO

    def test_critical_above_high_rejected(self):
        with pytest.raises(ValidationError):
            AlertPolicy(critical_days=6, high_days=5)

    def test_unknown_notify_level_rejected(self):
        with pytest.raises(ValidationError):
            AlertPolicy(notify_levels=["URGENTE"])

    def test_notify_levels_are_uppercased(self):
        policy = AlertPolicy(notify_levels=["critico", "alto"])
        assert policy.should_notify(AlertLevel.ALTO)
        assert not policy.should_notify(AlertLevel.MEDIO)


class TestAlertMessage:

    def test_overdue(self):
        assert "OVERDUE" in build_alert_message(7, -3, 5, AlertKind.ACTUALIZACION_DIARIA)
        assert "exceeded by 3 day(s)" in build_alert_message(7, -3, 5, AlertKind.ACTUALIZACION_DIARIA)

    def test_due_today(self):
        assert "due TODAY" in build_alert_message(7, 0, 5, AlertKind.NUEVA)

    def test_critical(self):
        assert build_alert_message(7, 2, 5, AlertKind.NUEVA).startswith("CRITICAL")

    def test_new_and_follow_up(self):
        assert build_alert_message(7, 4, 5, AlertKind.NUEVA).startswith("New request #7")
        assert build_alert_message(7, 4, 5, AlertKind.ACTUALIZACION_DIARIA).startswith("Follow-up on request #7")


class TestAlertReconciler:

    def _existing(self, level, email_sent=False):
        return Alert(
            id=3, request_id=1, kind=AlertKind.NUEVA, level=level, message="old",
            email_sent=email_sent, created_at=NOW, updated_at=NOW
        )

    def test_creates_when_missing(self):
        decision = AlertReconciler.reconcile(1, None, AlertLevel.ALTO, "m", AlertKind.NUEVA, NOW)

        assert decision.action == ReconcileAction.CREATED
        assert decision.alert.status == AlertStatus.NUEVA
        assert decision.should_notify is False

    def test_new_critical_alert_notifies(self):
        decision = AlertReconciler.reconcile(1, None, AlertLevel.CRITICO, "m", AlertKind.NUEVA, NOW)
        assert decision.should_notify is True

    def test_same_level_is_noop(self):
        existing = self._existing(AlertLevel.ALTO)
        decision = AlertReconciler.reconcile(1, existing, AlertLevel.ALTO, "new text", AlertKind.NUEVA, NOW)

        assert decision.action == ReconcileAction.UNCHANGED
        assert decision.alert.message == "old"

    def test_level_change_updates_in_place(self):
        existing = self._existing(AlertLevel.MEDIO)
        decision = AlertReconciler.reconcile(1, existing, AlertLevel.ALTO, "new text", AlertKind.NUEVA, NOW)

        assert decision.action == ReconcileAction.UPDATED
        assert decision.alert.id == 3
        assert decision.alert.message == "new text"
        assert decision.should_notify is False

    def test_critical_already_mailed_is_quiet(self):
        existing = self._existing(AlertLevel.CRITICO, email_sent=True)
        decision = AlertReconciler.reconcile(1, existing, AlertLevel.CRITICO, "m", AlertKind.NUEVA, NOW)

        assert decision.action == ReconcileAction.UNCHANGED
        assert decision.should_notify is False

    def test_critical_not_yet_mailed_retries(self):
        existing = self._existing(AlertLevel.CRITICO, email_sent=False)
        decision = AlertReconciler.reconcile(1, existing, AlertLevel.CRITICO, "m", AlertKind.NUEVA, NOW)

        assert decision.action == ReconcileAction.UPDATED
        assert decision.should_notify is True


class TestEscalation:
    """Daily passes walking a request towards and past its deadline."""

    @pytest.mark.asyncio
    async def test_single_email_per_escalation(self, store, clock, notifier, recompute_service, master_data):
        policy = await store.create_policy(
            SlaPolicy(id=None, code="SLA-10", threshold_days=10, request_type="X")
        )
        request = await _open_request(store, master_data, date(2024, 1, 1), policy=policy)

        levels = []
        for day in (date(2024, 1, 1), date(2024, 1, 6), date(2024, 1, 9), date(2024, 1, 12)):
            clock.set(day)
            await recompute_service.run_daily_pass(day)
            alerts = await store.get_alerts_for_request(request.id)
            assert len(alerts) == 1
            levels.append(alerts[0].level)

        assert levels == [AlertLevel.MEDIO, AlertLevel.ALTO, AlertLevel.CRITICO, AlertLevel.CRITICO]
        assert len(notifier.sent) == 1
        assert notifier.sent[0]["to"] == "ana.quispe@example.com"
        assert "CRITICAL" in notifier.sent[0]["subject"]

    @pytest.mark.asyncio
    async def test_failed_send_is_retried_next_pass(self, store, clock, notifier, recompute_service, master_data):
        request = await _open_request(store, master_data, date(2024, 1, 6))
        notifier.succeed = False

        summary = await recompute_service.run_daily_pass(date(2024, 1, 10))
        alert = (await store.get_alerts_for_request(request.id))[0]
        assert alert.level == AlertLevel.CRITICO
        assert alert.email_sent is False
        assert summary.notifications_sent == 0

        notifier.succeed = True
        clock.set(date(2024, 1, 11))
        summary = await recompute_service.run_daily_pass(date(2024, 1, 11))
        alert = (await store.get_alerts_for_request(request.id))[0]
        assert alert.email_sent is True
        assert summary.notifications_sent == 1
        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_notifier_exception_does_not_abort_pass(self, store, notifier, recompute_service, master_data):
        await _open_request(store, master_data, date(2024, 1, 6))
        await _open_request(store, master_data, date(2024, 1, 7))
        notifier.error = RuntimeError("smtp down")

        summary = await recompute_service.run_daily_pass(date(2024, 1, 10))

        assert summary.evaluated == 2
        assert summary.failed == 0
        assert summary.alerts_created == 2
        assert len(store.alerts) == 2


class TestAlertEngine:

    @pytest.mark.asyncio
    async def test_force_send_failure_raises_and_keeps_alert(self, store, clock, notifier, alert_engine, master_data):
        request = await _open_request(store, master_data, date(2024, 1, 9))
        evaluation = SlaEvaluator.evaluate_request(request, master_data["policy"], clock.today())
        notifier.succeed = False

        with pytest.raises(NotificationException):
            await alert_engine.reconcile(request, evaluation, AlertKind.NUEVA, force_send=True)

        alerts = await store.get_alerts_for_request(request.id)
        assert len(alerts) == 1
        assert alerts[0].email_sent is False

    @pytest.mark.asyncio
    async def test_force_send_for_non_critical_level(self, store, clock, notifier, alert_engine, master_data):
        request = await _open_request(store, master_data, date(2024, 1, 10))
        evaluation = SlaEvaluator.evaluate_request(request, master_data["policy"], clock.today())

        outcome = await alert_engine.reconcile(request, evaluation, AlertKind.NUEVA, force_send=True)

        assert outcome.alert.level == AlertLevel.ALTO
        assert outcome.notified is True
        assert outcome.alert.email_sent is True
        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_missing_recipient_skips_send(self, store, clock, notifier, alert_engine, master_data):
        person = await store.create_person(
            Person(id=None, document_id="DNI-002", first_names="Luis", last_names="Rojas", corporate_email=None)
        )
        request = await _open_request(store, master_data, date(2024, 1, 1), person=person)
        evaluation = SlaEvaluator.evaluate_request(request, master_data["policy"], clock.today())

        outcome = await alert_engine.reconcile(request, evaluation, AlertKind.NUEVA)

        assert outcome.alert.level == AlertLevel.CRITICO
        assert outcome.notification_attempted is True
        assert outcome.notified is False
        assert notifier.attempts == 0

    @pytest.mark.asyncio
    async def test_kinds_are_reconciled_separately(self, store, clock, alert_engine, master_data):
        request = await _open_request(store, master_data, date(2024, 1, 9))
        evaluation = SlaEvaluator.evaluate_request(request, master_data["policy"], clock.today())

        await alert_engine.reconcile(request, evaluation, AlertKind.NUEVA)
        await alert_engine.reconcile(request, evaluation, AlertKind.ACTUALIZACION_DIARIA)

        kinds = sorted(alert.kind for alert in await store.get_alerts_for_request(request.id))
        assert kinds == [AlertKind.ACTUALIZACION_DIARIA, AlertKind.NUEVA]


class TestAlertService:

    @pytest.mark.asyncio
    async def test_create_requires_existing_request(self, alert_service):
        alert, error = await alert_service.create(
            AlertCreateDTO(request_id=99, level="ALTO", message="manual")
        )
        assert alert is None
        assert error.kind == CommandErrorKind.REFERENTIAL

    @pytest.mark.asyncio
    async def test_read_and_delete(self, store, alert_service, master_data):
        request = await _open_request(store, master_data, date(2024, 1, 9))
        alert, _ = await alert_service.create(
            AlertCreateDTO(request_id=request.id, level="MEDIO", message="manual")
        )

        read = await alert_service.mark_read(alert.id)
        assert read.status == AlertStatus.LEIDA
        assert read.read_at is not None

        deleted = await alert_service.delete(alert.id)
        assert deleted.status == AlertStatus.ELIMINADA
        assert await alert_service.mark_read(alert.id) is None
        assert await alert_service.list_for_request(request.id) == []

    @pytest.mark.asyncio
    async def test_resend_failure_raises(self, store, notifier, alert_service, master_data):
        request = await _open_request(store, master_data, date(2024, 1, 9))
        alert, _ = await alert_service.create(
            AlertCreateDTO(request_id=request.id, level="CRITICO", message="manual")
        )
        notifier.succeed = False

        with pytest.raises(NotificationException):
            await alert_service.resend(alert.id)
        assert (await store.get_alert_by_id(alert.id)).email_sent is False

    @pytest.mark.asyncio
    async def test_resend_marks_email_sent(self, store, notifier, alert_service, master_data):
        request = await _open_request(store, master_data, date(2024, 1, 9))
        alert, _ = await alert_service.create(
            AlertCreateDTO(request_id=request.id, level="ALTO", message="manual")
        )

        sent = await alert_service.resend(alert.id)

        assert sent.email_sent is True
        assert len(notifier.sent) == 1


class TestAlertDigest:

    @pytest.mark.asyncio
    async def test_digest_lists_open_high_and_critical(self, store, dispatcher, notifier, master_data):
        open_request = await _open_request(store, master_data, date(2024, 1, 9))
        closed_request = await _open_request(store, master_data, date(2024, 1, 2), closed=date(2024, 1, 3))
        for request_id, level in (
            (open_request.id, AlertLevel.CRITICO),
            (open_request.id, AlertLevel.MEDIO),
            (closed_request.id, AlertLevel.CRITICO),
        ):
            await store.create_alert(
                Alert(id=None, request_id=request_id, kind=AlertKind.NUEVA, level=level,
                      message="m", created_at=NOW, updated_at=NOW)
            )

        digest = AlertDigestService(store, dispatcher, "admin@example.com")
        assert await digest.send_daily_digest(date(2024, 1, 10)) is True

        assert len(notifier.sent) == 1
        assert notifier.sent[0]["to"] == "admin@example.com"
        assert notifier.sent[0]["subject"] == "[SLA DIGEST] 10/01/2024: 1 critical, 0 high"

    @pytest.mark.asyncio
    async def test_digest_without_recipient_is_done(self, store, dispatcher, notifier):
        digest = AlertDigestService(store, dispatcher, None)
        assert await digest.send_daily_digest(date(2024, 1, 10)) is True
        assert notifier.attempts == 0

    @pytest.mark.asyncio
    async def test_digest_send_failure_reports_false(self, store, dispatcher, notifier, master_data):
        request = await _open_request(store, master_data, date(2024, 1, 9))
        await store.create_alert(
            Alert(id=None, request_id=request.id, kind=AlertKind.NUEVA, level=AlertLevel.ALTO,
                  message="m", created_at=NOW, updated_at=NOW)
        )
        notifier.succeed = False

        digest = AlertDigestService(store, dispatcher, "admin@example.com")
        assert await digest.send_daily_digest(date(2024, 1, 10)) is False
