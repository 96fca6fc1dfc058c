"""
SLA Application Ports
=====================

Abstract interfaces the application layer depends on (Dependency Inversion).
Concrete adapters live in the infrastructure layers; tests provide fakes.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, List, Optional, Sequence

from sla_service.alerts.domain import Alert
from sla_service.sla.domain import Person, RequestKey, RoleTag, SlaPolicy, SlaRequest


class ISlaStore(ABC):
    """
    Interface for all persistent state of the service.

    Recoverable failures surface as RepositoryException; a store that cannot
    be reached raises StorageUnavailableException.
    """

    # ========== Requests ==========

    @abstractmethod
    async def list_open_requests(self) -> List[SlaRequest]:
        """Active requests without a closed date."""

    @abstractmethod
    async def list_requests(self, include_deleted: bool = True) -> List[SlaRequest]:
        """All requests."""

    @abstractmethod
    async def get_request_by_id(self, request_id: int) -> Optional[SlaRequest]:
        """Get request by ID."""

    @abstractmethod
    async def find_request_by_key(self, key: RequestKey) -> Optional[SlaRequest]:
        """Get the request holding a natural key, deleted ones included."""

    @abstractmethod
    async def create_request(self, request: SlaRequest) -> SlaRequest:
        """Insert a request and return it with its ID."""

    @abstractmethod
    async def update_request(self, request: SlaRequest) -> SlaRequest:
        """Persist all fields of an existing request."""

    # ========== SLA Policies ==========

    @abstractmethod
    async def list_policies(self) -> List[SlaPolicy]:
        """All policies."""

    @abstractmethod
    async def get_policy_by_id(self, policy_id: int) -> Optional[SlaPolicy]:
        """Get policy by ID."""

    @abstractmethod
    async def find_policy_by_code(self, code: str) -> Optional[SlaPolicy]:
        """Case-insensitive lookup by code."""

    @abstractmethod
    async def create_policy(self, policy: SlaPolicy) -> SlaPolicy:
        """Insert a policy."""

    # ========== Role Tags ==========

    @abstractmethod
    async def list_role_tags(self) -> List[RoleTag]:
        """All role tags."""

    @abstractmethod
    async def get_role_tag_by_id(self, role_tag_id: int) -> Optional[RoleTag]:
        """Get role tag by ID."""

    @abstractmethod
    async def find_role_tag_by_name(self, name: str) -> Optional[RoleTag]:
        """Case-insensitive lookup by name."""

    @abstractmethod
    async def create_role_tag(self, role_tag: RoleTag) -> RoleTag:
        """Insert a role tag."""

    # ========== People ==========

    @abstractmethod
    async def list_persons(self) -> List[Person]:
        """All people."""

    @abstractmethod
    async def get_person_by_id(self, person_id: int) -> Optional[Person]:
        """Get person by ID."""

    @abstractmethod
    async def find_person_by_document(self, document_id: str) -> Optional[Person]:
        """Case-insensitive lookup by identity document."""

    @abstractmethod
    async def create_person(self, person: Person) -> Person:
        """Insert a person."""

    # ========== Alerts ==========

    @abstractmethod
    async def get_alerts_for_request(self, request_id: int) -> List[Alert]:
        """All alerts of a request, newest first."""

    @abstractmethod
    async def list_alerts(
        self,
        levels: Optional[Sequence[str]] = None,
        include_deleted: bool = False
    ) -> List[Alert]:
        """Alerts filtered by level, newest first."""

    @abstractmethod
    async def get_alert_by_id(self, alert_id: int) -> Optional[Alert]:
        """Get alert by ID."""

    @abstractmethod
    async def create_alert(self, alert: Alert) -> Alert:
        """Insert an alert."""

    @abstractmethod
    async def update_alert(self, alert: Alert) -> Alert:
        """Persist all fields of an existing alert."""

    # ========== Transactions ==========

    @abstractmethod
    def savepoint(self) -> AsyncContextManager[None]:
        """
        Nested transaction scope.

        Writes inside are rolled back if the block raises; the exception
        still propagates.
        """

    @abstractmethod
    async def commit(self) -> None:
        """Make the writes so far durable; later writes start a new transaction."""


class INotifier(ABC):
    """Interface for the outbound e-mail channel."""

    @abstractmethod
    async def send(self, to: str, subject: str, html_body: str) -> bool:
        """Deliver one message. Returns False on failure."""
