"""
SLA Value Objects
==================

The SLA evaluator: a pure, date-only state machine deriving a request's
compliance state from its dates and its policy threshold.

Every path that writes a request (single create/update, bulk ingestion and
the daily recompute) goes through ``SlaEvaluator`` so they cannot drift.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sla_service.config import ComplianceOutcome, LifecycleState
from sla_service.core import InvalidDateRangeException, ValidationException
from sla_service.sla.domain.entities import SlaPolicy, SlaRequest


@dataclass(frozen=True)
class SlaEvaluation:
    """
    Result of one evaluation.

    ``days_used`` is clamped at zero for display; ``raw_days_used`` keeps the
    sign so that a submitted date after "today" is still visible to callers.
    """
    days_used: int
    raw_days_used: int
    compliance_tag: str
    lifecycle_state: str
    summary: str
    threshold_days: int

    @property
    def days_remaining(self) -> int:
        """Days left before the threshold; negative once overdue."""
        return self.threshold_days - self.raw_days_used

    @property
    def is_overdue(self) -> bool:
        return self.lifecycle_state == LifecycleState.VENCIDA

    @property
    def is_closed(self) -> bool:
        return self.lifecycle_state == LifecycleState.INACTIVA


class SlaEvaluator:
    """
    Pure functions for SLA evaluation.

    Day counts are whole calendar days between dates; time of day never
    enters the calculation.
    """

    @staticmethod
    def evaluate(
        submitted: date,
        closed: Optional[date],
        threshold_days: int,
        today: date,
        code: str,
        summary_override: Optional[str] = None,
        closed_at_sla_limit: bool = False
    ) -> SlaEvaluation:
        """
        Derive the SLA state of a request.

        Args:
            submitted: Date the request was submitted
            closed: Date it was closed, or None while open
            threshold_days: Policy threshold in days
            today: Current date in the operating timezone
            code: Compliance code used to build the tag
            summary_override: Caller-provided summary kept verbatim
            closed_at_sla_limit: The closed date was set at the SLA limit of an
                already overdue request; the outcome stays overdue

        Returns:
            SlaEvaluation

        Raises:
            InvalidDateRangeException: closed is before submitted
            ValidationException: threshold is negative
        """
        if threshold_days < 0:
            raise ValidationException(
                "threshold_days cannot be negative",
                {"threshold_days": threshold_days}
            )

        if closed is None:
            raw_days = (today - submitted).days
            if raw_days > threshold_days:
                state, outcome = LifecycleState.VENCIDA, ComplianceOutcome.NO_CUMPLE
            else:
                state, outcome = LifecycleState.EN_PROCESO, ComplianceOutcome.EN_PROCESO
        else:
            if closed < submitted:
                raise InvalidDateRangeException(submitted, closed)
            raw_days = (closed - submitted).days
            if raw_days <= threshold_days and not closed_at_sla_limit:
                state, outcome = LifecycleState.INACTIVA, ComplianceOutcome.CUMPLE
            else:
                state, outcome = LifecycleState.VENCIDA, ComplianceOutcome.NO_CUMPLE

        days_used = max(raw_days, 0)

        if summary_override is not None and summary_override.strip():
            summary = summary_override.strip()
        else:
            summary = SlaEvaluator.describe(
                state, closed is not None, days_used, threshold_days, closed_at_sla_limit
            )

        return SlaEvaluation(
            days_used=days_used,
            raw_days_used=raw_days,
            compliance_tag=f"{outcome}_{code}",
            lifecycle_state=state,
            summary=summary,
            threshold_days=threshold_days,
        )

    @staticmethod
    def describe(
        state: str,
        is_closed: bool,
        days_used: int,
        threshold_days: int,
        closed_at_sla_limit: bool = False
    ) -> str:
        """Human-readable summary of an outcome."""
        span = f"{days_used} of {threshold_days} days"
        if closed_at_sla_limit and is_closed:
            return f"Request closed automatically at the SLA limit on import ({span}, overdue)"
        if state == LifecycleState.INACTIVA:
            return f"Request attended within SLA ({span})"
        if state == LifecycleState.VENCIDA and is_closed:
            return f"Request attended outside SLA ({span})"
        if state == LifecycleState.VENCIDA:
            return f"Request overdue and still open ({span})"
        return f"Request in progress ({span})"

    @staticmethod
    def evaluate_request(request: SlaRequest, policy: SlaPolicy, today: date) -> SlaEvaluation:
        """Evaluate a stored request, keeping its summary if it was set by hand."""
        return SlaEvaluator.evaluate(
            submitted=request.submitted_date,
            closed=request.closed_date,
            threshold_days=policy.threshold_days,
            today=today,
            code=policy.compliance_code,
            summary_override=request.summary if request.summary_is_custom else None,
            closed_at_sla_limit=request.closed_at_sla_limit,
        )
