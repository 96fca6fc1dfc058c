"""
Batch Ingestion Pipeline
========================

Bulk import of requests from spreadsheet rows.

Per row, in input order:
1. Validate required fields, dates and the optional threshold/state
2. Resolve-or-create person, SLA policy and role tag by natural key
3. Reject a request whose natural key already exists
4. Evaluate SLA state and store the request

Each row runs in its own savepoint: a failed row leaves no trace, earlier
rows stay stored, and only a storage outage stops the batch.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Sequence, Set

from pydantic import ValidationError

from sla_service.config import ASSIGNABLE_RECORD_STATUSES, OriginTag, RecordStatus
from sla_service.core import ApplicationException, StorageUnavailableException
from sla_service.ingestion.application.dto import IngestionReport, IngestionRow
from sla_service.shared.infrastructure.clock import Clock
from sla_service.shared.infrastructure.logging import get_logger, log_latency
from sla_service.sla.application.ports import ISlaStore
from sla_service.sla.domain import (
    Person,
    RequestKey,
    RoleTag,
    SlaEvaluator,
    SlaPolicy,
    SlaRequest,
)

logger = get_logger(__name__)

DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y", "%d-%m-%Y")


def parse_date(value: str) -> Optional[date]:
    """Parse a spreadsheet date; None if no known format matches."""
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_threshold(value: str) -> Optional[int]:
    """Non-negative whole number of days, tolerating "5.0"."""
    try:
        number = float(value)
    except ValueError:
        return None
    if not number.is_integer() or number < 0:
        return None
    return int(number)


def _key(value: str) -> str:
    return value.strip().casefold()


@dataclass
class _Catalog:
    """Master data and request keys known to the batch, by normalized natural key."""
    persons: Dict[str, Person]
    policies: Dict[str, SlaPolicy]
    role_tags: Dict[str, RoleTag]
    request_keys: Set[RequestKey]


@dataclass
class _RowWrites:
    """Records created by the current row; published to the catalog on success."""
    persons: Dict[str, Person] = field(default_factory=dict)
    policies: Dict[str, SlaPolicy] = field(default_factory=dict)
    role_tags: Dict[str, RoleTag] = field(default_factory=dict)
    request_key: Optional[RequestKey] = None

    def publish(self, catalog: _Catalog) -> None:
        catalog.persons.update(self.persons)
        catalog.policies.update(self.policies)
        catalog.role_tags.update(self.role_tags)
        if self.request_key is not None:
            catalog.request_keys.add(self.request_key)


@dataclass(frozen=True)
class _ParsedRow:
    row: IngestionRow
    submitted: date
    closed: Optional[date]
    threshold_days: Optional[int]
    status: str


class BatchIngestionPipeline:
    """
    Idempotent bulk ingestion.

    Re-submitting the same rows creates nothing new: master data is matched
    by natural key and requests are rejected as duplicates.
    """

    def __init__(
        self,
        store: ISlaStore,
        clock: Clock,
        auto_close_overdue: bool = True
    ):
        self._store = store
        self._clock = clock
        self._auto_close_overdue = auto_close_overdue

    async def process(
        self,
        rows: Sequence[Any],
        acting_user_id: int
    ) -> IngestionReport:
        """
        Ingest rows in order.

        Args:
            rows: Row mappings as read from the spreadsheet
            acting_user_id: User recorded as creator of every request

        Returns:
            IngestionReport with 1-based row indexes in its errors

        Raises:
            StorageUnavailableException: storage went away; rows already
                stored stay stored
        """
        report = IngestionReport(total_rows=len(rows))
        today = self._clock.today()

        with log_latency(logger, "bulk_ingestion", rows=len(rows)):
            catalog = await self._preload()

            for index, raw in enumerate(rows, start=1):
                error = await self._process_row(raw, acting_user_id, today, catalog)
                if error is None:
                    report.success_count += 1
                else:
                    report.add_error(index, error)
                    logger.info("Ingestion row rejected", extra={"row_index": index, "reason": error})

        logger.info(
            "Bulk ingestion finished",
            extra={
                "total_rows": report.total_rows,
                "success_count": report.success_count,
                "error_count": report.error_count,
            }
        )
        return report

    async def _preload(self) -> _Catalog:
        return _Catalog(
            persons={_key(p.document_id): p for p in await self._store.list_persons()},
            policies={_key(p.code): p for p in await self._store.list_policies()},
            role_tags={_key(r.name): r for r in await self._store.list_role_tags()},
            request_keys={r.key for r in await self._store.list_requests()},
        )

    # ========== Row Processing ==========

    async def _process_row(
        self,
        raw: Any,
        acting_user_id: int,
        today: date,
        catalog: _Catalog
    ) -> Optional[str]:
        """Store one row. Returns the error message, or None on success."""
        parsed = self._parse_row(raw, today)
        if isinstance(parsed, str):
            return parsed

        writes = _RowWrites()
        try:
            async with self._store.savepoint():
                error = await self._store_row(parsed, acting_user_id, today, catalog, writes)
        except StorageUnavailableException:
            raise
        except ApplicationException as e:
            # RepositoryException (constraint violations) and domain errors
            return e.message

        if error is None:
            writes.publish(catalog)
        return error

    @staticmethod
    def _parse_row(raw: Any, today: date) -> "_ParsedRow | str":
        try:
            row = IngestionRow.model_validate(raw)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ())) or "row"
            return f"invalid row ({location}): {first.get('msg')}"

        missing = row.missing_fields()
        if missing:
            return "missing required fields: " + ", ".join(missing)

        submitted = parse_date(row.submitted_date)
        if submitted is None:
            return f"invalid submitted date '{row.submitted_date}'"

        closed = None
        if row.closed_date is not None:
            closed = parse_date(row.closed_date)
            if closed is None:
                return f"invalid closed date '{row.closed_date}'"

        if submitted > today:
            return f"submitted date {submitted.isoformat()} is in the future"
        if closed is not None and closed < submitted:
            return "closed date cannot be before submitted date"

        threshold_days = None
        if row.sla_threshold_days is not None:
            threshold_days = parse_threshold(row.sla_threshold_days)
            if threshold_days is None:
                return f"invalid SLA threshold days '{row.sla_threshold_days}'"

        status = RecordStatus.ACTIVO
        if row.request_state is not None:
            status = row.request_state.upper()
            if status not in ASSIGNABLE_RECORD_STATUSES:
                return f"invalid request state '{row.request_state}'"

        return _ParsedRow(row, submitted, closed, threshold_days, status)

    async def _store_row(
        self,
        parsed: _ParsedRow,
        acting_user_id: int,
        today: date,
        catalog: _Catalog,
        writes: _RowWrites
    ) -> Optional[str]:
        row = parsed.row

        person = catalog.persons.get(_key(row.person_document))
        policy = catalog.policies.get(_key(row.sla_code))
        role_tag = catalog.role_tags.get(_key(row.role_name))

        if policy is None and parsed.threshold_days is None:
            return f"SLA threshold days required to create policy '{row.sla_code}'"

        if person is not None and policy is not None and role_tag is not None:
            key = RequestKey(person.id, policy.id, role_tag.id, parsed.submitted)
            if key in catalog.request_keys:
                return "duplicate request"

        if person is None:
            person = await self._store.create_person(
                Person(
                    id=None,
                    document_id=row.person_document,
                    first_names=row.person_first_names,
                    last_names=row.person_last_names,
                    corporate_email=row.person_email,
                    status=RecordStatus.ACTIVO,
                )
            )
            writes.persons[_key(person.document_id)] = person

        if policy is None:
            policy = await self._store.create_policy(
                SlaPolicy(
                    id=None,
                    code=row.sla_code,
                    threshold_days=parsed.threshold_days,
                    request_type=row.sla_request_type,
                    description=row.sla_description,
                )
            )
            writes.policies[_key(policy.code)] = policy

        if role_tag is None:
            role_tag = await self._store.create_role_tag(
                RoleTag(
                    id=None,
                    name=row.role_name,
                    tech_block=row.role_tech_block,
                    description=row.role_description,
                )
            )
            writes.role_tags[_key(role_tag.name)] = role_tag

        request = self._build_request(parsed, person, policy, role_tag, acting_user_id, today)
        writes.request_key = request.key
        await self._store.create_request(request)
        return None

    def _build_request(
        self,
        parsed: _ParsedRow,
        person: Person,
        policy: SlaPolicy,
        role_tag: RoleTag,
        acting_user_id: int,
        today: date
    ) -> SlaRequest:
        row = parsed.row
        now = self._clock.now()
        custom_summary = row.summary

        request = SlaRequest(
            id=None,
            person_id=person.id,
            sla_policy_id=policy.id,
            role_tag_id=role_tag.id,
            created_by_user_id=acting_user_id,
            submitted_date=parsed.submitted,
            closed_date=parsed.closed,
            summary=custom_summary or "",
            summary_is_custom=custom_summary is not None,
            origin=row.origin or OriginTag.IMPORT,
            status=parsed.status,
            created_at=now,
            updated_at=now,
        )
        evaluation = SlaEvaluator.evaluate_request(request, policy, today)
        request.apply_evaluation(evaluation)

        if self._auto_close_overdue and request.closed_date is None and evaluation.is_overdue:
            # Close at the SLA limit; state stays VENCIDA / NO_CUMPLE
            request.closed_date = request.submitted_date + timedelta(days=policy.threshold_days)
            request.closed_at_sla_limit = True
            request.apply_evaluation(SlaEvaluator.evaluate_request(request, policy, today))

        return request

