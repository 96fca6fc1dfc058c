"""
Tests for the alert policy file and the HTTP e-mail notifier.
"""

import json

import httpx
import pytest

from sla_service.alerts.infrastructure import (
    AlertPolicyManager,
    CircuitBreaker,
    CircuitState,
    HttpEmailNotifier,
)
from sla_service.config import AlertLevel
from sla_service.core import ConfigurationException

API_URL = "https://mail.example.com/emails"


class TestAlertPolicyManager:

    def test_missing_file_uses_defaults(self, tmp_path):
        manager = AlertPolicyManager()
        policy = manager.load(tmp_path / "absent.yaml")

        assert policy.critical_days == 2
        assert policy.high_days == 5
        assert policy.notify_levels == [AlertLevel.CRITICO]

    def test_load_and_reload(self, tmp_path):
        path = tmp_path / "alert_policy.yaml"
        path.write_text("critical_days: 1\nhigh_days: 4\nnotify_levels: [critico, alto]\n")

        manager = AlertPolicyManager()
        manager.load(path)
        assert manager.get_policy().notify_levels == ["CRITICO", "ALTO"]

        path.write_text("critical_days: 3\nhigh_days: 7\n")
        assert manager.reload() is True
        assert manager.get_policy().high_days == 7

    def test_invalid_file_fails_first_load(self, tmp_path):
        path = tmp_path / "alert_policy.yaml"
        path.write_text("critical_days: 9\nhigh_days: 2\n")

        with pytest.raises(ConfigurationException):
            AlertPolicyManager().load(path)

    def test_invalid_reload_keeps_previous_policy(self, tmp_path):
        path = tmp_path / "alert_policy.yaml"
        path.write_text("critical_days: 1\nhigh_days: 4\n")
        manager = AlertPolicyManager()
        manager.load(path)

        path.write_text("notify_levels: [URGENTE]\n")

        assert manager.reload() is False
        assert manager.get_policy().critical_days == 1

    def test_policy_required_before_use(self):
        with pytest.raises(RuntimeError):
            AlertPolicyManager().get_policy()


class TestCircuitBreaker:

    def test_opens_after_threshold_and_recovers(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=0)

        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED
        breaker.record_failure()

        # Zero recovery timeout moves straight to a trial send
        assert breaker.state == CircuitState.HALF_OPEN
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED


def _notifier(handler, **kwargs) -> HttpEmailNotifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpEmailNotifier(
        api_url=API_URL, api_key="secret", sender="sla@example.com",
        backoff_seconds=0, http_client=client, **kwargs
    )


class TestHttpEmailNotifier:

    @pytest.mark.asyncio
    async def test_posts_payload_with_bearer_auth(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "msg-1"})

        notifier = _notifier(handler)
        assert await notifier.send("ana@example.com", "Alert", "<p>hi</p>") is True
        await notifier.close()

        request = seen[0]
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.url == API_URL
        body = json.loads(request.content)
        assert body == {"from": "sla@example.com", "to": ["ana@example.com"], "subject": "Alert", "html": "<p>hi</p>"}

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        statuses = [503, 502, 200]

        def handler(request):
            return httpx.Response(statuses.pop(0))

        notifier = _notifier(handler, max_retries=3)

        assert await notifier.send("ana@example.com", "Alert", "body") is True
        assert statuses == []

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(422, json={"error": "invalid recipient"})

        notifier = _notifier(handler, max_retries=3)

        assert await notifier.send("not-an-email", "Alert", "body") is False
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transport_errors_open_the_circuit(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        notifier = _notifier(handler, max_retries=2, circuit_breaker=CircuitBreaker(failure_threshold=1))

        assert await notifier.send("ana@example.com", "Alert", "body") is False
        assert len(calls) == 2

        assert await notifier.send("ana@example.com", "Alert", "body") is False
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_unconfigured_notifier_skips(self):
        notifier = HttpEmailNotifier(api_url=None)

        assert notifier.is_configured is False
        assert await notifier.send("ana@example.com", "Alert", "body") is False
