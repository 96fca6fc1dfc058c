"""
Shared fixtures for the SLA service test suite.

Provides:
- InMemorySlaStore: dict-backed ISlaStore with working savepoints and fault hooks
- FixedClock: settable clock in the operating timezone
- RecordingNotifier: INotifier that records messages and can be told to fail
"""

import copy
import itertools
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

from sla_service.alerts.application import (
    AlertEngine,
    AlertService,
    NotificationDispatcher,
    StaticAlertPolicyProvider,
)
from sla_service.alerts.domain import Alert
from sla_service.config import AlertStatus, RecordStatus
from sla_service.ingestion.application import BatchIngestionPipeline
from sla_service.shared.infrastructure.clock import Clock
from sla_service.sla.application import INotifier, ISlaStore, RequestService, SlaRecomputeService
from sla_service.sla.domain import Person, RequestKey, RoleTag, SlaPolicy, SlaRequest

LIMA = ZoneInfo("America/Lima")


def _norm(value: str) -> str:
    return value.strip().lower()


class InMemorySlaStore(ISlaStore):
    """
    Dict-backed store.

    Entities are copied on the way in and out so callers cannot mutate
    stored state behind the store's back.

    Fault hooks:
        on_create_request: called with each request before insert; may raise
        unavailable: every call raises the given exception when set

    ``commits`` counts commit() calls.
    """

    def __init__(self):
        self.requests: Dict[int, SlaRequest] = {}
        self.policies: Dict[int, SlaPolicy] = {}
        self.role_tags: Dict[int, RoleTag] = {}
        self.persons: Dict[int, Person] = {}
        self.alerts: Dict[int, Alert] = {}
        self._ids = {name: itertools.count(1) for name in ("request", "policy", "role_tag", "person", "alert")}
        self.on_create_request: Optional[Callable[[SlaRequest], None]] = None
        self.unavailable: Optional[Exception] = None
        self.commits = 0

    def _check(self) -> None:
        if self.unavailable is not None:
            raise self.unavailable

    # ========== Requests ==========

    async def list_open_requests(self) -> List[SlaRequest]:
        self._check()
        return [copy.deepcopy(r) for r in sorted(self.requests.values(), key=lambda r: r.id) if r.is_open]

    async def list_requests(self, include_deleted: bool = True) -> List[SlaRequest]:
        self._check()
        return [
            copy.deepcopy(r) for r in sorted(self.requests.values(), key=lambda r: r.id)
            if include_deleted or not r.is_deleted
        ]

    async def get_request_by_id(self, request_id: int) -> Optional[SlaRequest]:
        self._check()
        request = self.requests.get(request_id)
        return copy.deepcopy(request) if request else None

    async def find_request_by_key(self, key: RequestKey) -> Optional[SlaRequest]:
        self._check()
        for request in self.requests.values():
            if request.key == key:
                return copy.deepcopy(request)
        return None

    async def create_request(self, request: SlaRequest) -> SlaRequest:
        self._check()
        if self.on_create_request is not None:
            self.on_create_request(request)
        stored = copy.deepcopy(request)
        stored.id = next(self._ids["request"])
        self.requests[stored.id] = stored
        return copy.deepcopy(stored)

    async def update_request(self, request: SlaRequest) -> SlaRequest:
        self._check()
        self.requests[request.id] = copy.deepcopy(request)
        return copy.deepcopy(request)

    # ========== SLA Policies ==========

    async def list_policies(self) -> List[SlaPolicy]:
        self._check()
        return [copy.deepcopy(p) for p in self.policies.values()]

    async def get_policy_by_id(self, policy_id: int) -> Optional[SlaPolicy]:
        self._check()
        policy = self.policies.get(policy_id)
        return copy.deepcopy(policy) if policy else None

    async def find_policy_by_code(self, code: str) -> Optional[SlaPolicy]:
        self._check()
        return next((copy.deepcopy(p) for p in self.policies.values() if _norm(p.code) == _norm(code)), None)

    async def create_policy(self, policy: SlaPolicy) -> SlaPolicy:
        self._check()
        stored = copy.deepcopy(policy)
        stored.id = next(self._ids["policy"])
        self.policies[stored.id] = stored
        return copy.deepcopy(stored)

    # ========== Role Tags ==========

    async def list_role_tags(self) -> List[RoleTag]:
        self._check()
        return [copy.deepcopy(r) for r in self.role_tags.values()]

    async def get_role_tag_by_id(self, role_tag_id: int) -> Optional[RoleTag]:
        self._check()
        role_tag = self.role_tags.get(role_tag_id)
        return copy.deepcopy(role_tag) if role_tag else None

    async def find_role_tag_by_name(self, name: str) -> Optional[RoleTag]:
        self._check()
        return next((copy.deepcopy(r) for r in self.role_tags.values() if _norm(r.name) == _norm(name)), None)

    async def create_role_tag(self, role_tag: RoleTag) -> RoleTag:
        self._check()
        stored = copy.deepcopy(role_tag)
        stored.id = next(self._ids["role_tag"])
        self.role_tags[stored.id] = stored
        return copy.deepcopy(stored)

    # ========== People ==========

    async def list_persons(self) -> List[Person]:
        self._check()
        return [copy.deepcopy(p) for p in self.persons.values()]

    async def get_person_by_id(self, person_id: int) -> Optional[Person]:
        self._check()
        person = self.persons.get(person_id)
        return copy.deepcopy(person) if person else None

    async def find_person_by_document(self, document_id: str) -> Optional[Person]:
        self._check()
        return next(
            (copy.deepcopy(p) for p in self.persons.values() if _norm(p.document_id) == _norm(document_id)),
            None
        )

    async def create_person(self, person: Person) -> Person:
        self._check()
        stored = copy.deepcopy(person)
        stored.id = next(self._ids["person"])
        self.persons[stored.id] = stored
        return copy.deepcopy(stored)

    # ========== Alerts ==========

    def _newest_first(self, alerts) -> List[Alert]:
        return [copy.deepcopy(a) for a in sorted(alerts, key=lambda a: (a.created_at, a.id), reverse=True)]

    async def get_alerts_for_request(self, request_id: int) -> List[Alert]:
        self._check()
        return self._newest_first(a for a in self.alerts.values() if a.request_id == request_id)

    async def list_alerts(
        self,
        levels: Optional[Sequence[str]] = None,
        include_deleted: bool = False
    ) -> List[Alert]:
        self._check()
        return self._newest_first(
            a for a in self.alerts.values()
            if (not levels or a.level in levels) and (include_deleted or a.status != AlertStatus.ELIMINADA)
        )

    async def get_alert_by_id(self, alert_id: int) -> Optional[Alert]:
        self._check()
        alert = self.alerts.get(alert_id)
        return copy.deepcopy(alert) if alert else None

    async def create_alert(self, alert: Alert) -> Alert:
        self._check()
        stored = copy.deepcopy(alert)
        stored.id = next(self._ids["alert"])
        self.alerts[stored.id] = stored
        return copy.deepcopy(stored)

    async def update_alert(self, alert: Alert) -> Alert:
        self._check()
        self.alerts[alert.id] = copy.deepcopy(alert)
        return copy.deepcopy(alert)

    # ========== Transactions ==========

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        snapshot = copy.deepcopy((self.requests, self.policies, self.role_tags, self.persons, self.alerts))
        try:
            yield
        except BaseException:
            self.requests, self.policies, self.role_tags, self.persons, self.alerts = snapshot
            raise

    async def commit(self) -> None:
        self._check()
        self.commits += 1


class FixedClock(Clock):
    """Clock frozen at a settable instant in America/Lima."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def set(self, day: date, at: time = time(9, 0)) -> None:
        self.current = datetime.combine(day, at, tzinfo=LIMA)

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class RecordingNotifier(INotifier):
    """Records sent messages; ``succeed`` and ``error`` control the outcome."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.error: Optional[Exception] = None
        self.sent: List[dict] = []
        self.attempts = 0

    async def send(self, to: str, subject: str, html_body: str) -> bool:
        self.attempts += 1
        if self.error is not None:
            raise self.error
        if not self.succeed:
            return False
        self.sent.append({"to": to, "subject": subject, "html": html_body})
        return True


# ========== Fixtures ==========

@pytest.fixture
def store() -> InMemorySlaStore:
    return InMemorySlaStore()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 10, 9, 0, tzinfo=LIMA))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def policy_provider() -> StaticAlertPolicyProvider:
    return StaticAlertPolicyProvider()


@pytest.fixture
def dispatcher(notifier) -> NotificationDispatcher:
    return NotificationDispatcher(notifier)


@pytest.fixture
def alert_engine(store, dispatcher, policy_provider, clock) -> AlertEngine:
    return AlertEngine(store, dispatcher, policy_provider, clock)


@pytest.fixture
def request_service(store, clock, alert_engine) -> RequestService:
    return RequestService(store, clock, alert_engine)


@pytest.fixture
def recompute_service(store, clock, alert_engine) -> SlaRecomputeService:
    return SlaRecomputeService(store, clock, alert_engine)


@pytest.fixture
def alert_service(store, dispatcher, clock) -> AlertService:
    return AlertService(store, dispatcher, clock)


@pytest.fixture
def pipeline(store, clock) -> BatchIngestionPipeline:
    return BatchIngestionPipeline(store, clock)


@pytest_asyncio.fixture
async def master_data(store):
    """One policy (5 days), one person with e-mail and one role tag."""
    policy = await store.create_policy(
        SlaPolicy(id=None, code="SLA-REC", threshold_days=5, request_type="RECRUITMENT")
    )
    person = await store.create_person(
        Person(
            id=None,
            document_id="DNI-001",
            first_names="Ana",
            last_names="Quispe",
            corporate_email="ana.quispe@example.com",
            status=RecordStatus.ACTIVO,
        )
    )
    role_tag = await store.create_role_tag(RoleTag(id=None, name="Backend", tech_block="Core"))
    return {"policy": policy, "person": person, "role_tag": role_tag}
