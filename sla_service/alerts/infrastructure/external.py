"""
Alert External Integrations
===========================

- HttpEmailNotifier: transactional e-mail over HTTP (httpx) with retry and a
  circuit breaker
- AlertPolicyManager: alert thresholds from YAML, hot-reloaded with watchdog
"""

import asyncio
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import yaml
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from sla_service.alerts.application.services import IAlertPolicyProvider
from sla_service.alerts.domain import AlertPolicy
from sla_service.core import ConfigurationException
from sla_service.shared.infrastructure.logging import get_logger
from sla_service.sla.application.ports import INotifier

logger = get_logger(__name__)


# ========== Alert Policy (YAML + hot reload) ==========

class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog handler reloading the policy when its file changes."""

    def __init__(self, manager: "AlertPolicyManager", path: Path):
        super().__init__()
        self._manager = manager
        self._path = path.resolve()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self._path:
            logger.info("Alert policy file changed", extra={"path": str(self._path)})
            self._manager.reload()

    on_created = on_modified


class AlertPolicyManager(IAlertPolicyProvider):
    """
    Thread-safe alert policy holder.

    A missing file means defaults. A file that fails to parse is an error on
    first load and ignored (previous policy kept) on reload.
    """

    def __init__(self):
        self._policy: Optional[AlertPolicy] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer: Optional[Observer] = None

    def load(self, path: Path) -> AlertPolicy:
        """Initial load; raises ConfigurationException on an invalid file."""
        self._path = Path(path)
        try:
            policy = self._read(self._path)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                f"invalid alert policy file {self._path}", {"error": str(e)}
            ) from e
        with self._lock:
            self._policy = policy
        logger.info(
            "Alert policy loaded",
            extra={
                "path": str(self._path),
                "critical_days": policy.critical_days,
                "high_days": policy.high_days,
            }
        )
        return policy

    @staticmethod
    def _read(path: Path) -> AlertPolicy:
        if not path.exists():
            logger.warning("Alert policy file not found, using defaults", extra={"path": str(path)})
            return AlertPolicy()
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return AlertPolicy(**data)

    def reload(self) -> bool:
        """Re-read the file; keeps the current policy if the new one is invalid."""
        if self._path is None:
            return False
        try:
            policy = self._read(self._path)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            logger.error("Failed to reload alert policy", extra={"path": str(self._path), "error": str(e)})
            return False
        with self._lock:
            self._policy = policy
        logger.info("Alert policy reloaded", extra={"path": str(self._path)})
        return True

    def start_watching(self) -> None:
        """Watch the policy file's directory; a no-op if it does not exist."""
        if self._path is None:
            raise RuntimeError("Policy not loaded. Call load() first.")

        directory = self._path.resolve().parent
        if not directory.exists():
            logger.info("Alert policy directory missing, not watching", extra={"path": str(directory)})
            return

        try:
            self._observer = Observer()
            self._observer.schedule(PolicyFileHandler(self, self._path), str(directory), recursive=False)
            self._observer.start()
            logger.info("Watching alert policy file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static policy", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def get_policy(self) -> AlertPolicy:
        with self._lock:
            if self._policy is None:
                raise RuntimeError("Alert policy not loaded")
            return self._policy


# ========== Circuit Breaker ==========

class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Stops calling a failing provider for a while.

    CLOSED lets calls through; after ``failure_threshold`` consecutive failed
    sends it goes OPEN for ``recovery_timeout`` seconds, then HALF_OPEN lets a
    single trial send through.
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if time.monotonic() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state != CircuitState.OPEN

    def record_success(self) -> None:
        self._failure_count = 0
        self._opened_at = None
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = time.monotonic()
            logger.warning(
                "E-mail circuit breaker opened",
                extra={"failure_count": self._failure_count, "recovery_timeout": self.recovery_timeout}
            )


# ========== E-mail Notifier ==========

class HttpEmailNotifier(INotifier):
    """
    E-mail notifier posting JSON to a transactional e-mail API.

    Payload: ``{"from", "to", "subject", "html"}`` with bearer auth. Returns
    False (never raises) when the provider is not configured, the circuit
    is open, or every attempt failed.
    """

    def __init__(
        self,
        api_url: Optional[str],
        api_key: Optional[str] = None,
        sender: str = "sla-alerts@example.com",
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._api_url = api_url
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout_seconds
        self._max_retries = max(1, max_retries)
        self._backoff = backoff_seconds
        self._circuit_breaker = circuit_breaker or CircuitBreaker()
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self._api_url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def send(self, to: str, subject: str, html_body: str) -> bool:
        if not self.is_configured:
            logger.debug("E-mail API URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning("E-mail circuit breaker open, skipping notification", extra={"recipient": to})
            return False

        payload: Dict[str, Any] = {
            "from": self._sender,
            "to": [to],
            "subject": subject,
            "html": html_body,
        }

        for attempt in range(self._max_retries):
            try:
                response = await self._get_client().post(
                    self._api_url, json=payload, headers=self._headers()
                )
                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.info("E-mail sent", extra={"recipient": to, "subject": subject})
                    return True

                logger.warning(
                    "E-mail API returned an error status",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
                if 400 <= response.status_code < 500 and response.status_code != 429:
                    # Client errors will not succeed on retry
                    break

            except httpx.HTTPError as e:
                logger.error(
                    "E-mail request failed",
                    extra={"error": str(e), "attempt": attempt + 1, "recipient": to}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff * (2 ** attempt))

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
