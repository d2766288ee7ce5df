"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from ph_payroll.errors import InvalidTransitionError, SegregationOfDutiesError

if TYPE_CHECKING:
    from ph_payroll.models import PayrollRun


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "DRAFT"
    COMPUTING = "COMPUTING"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    RELEASED = "RELEASED"
    CANCELLED = "CANCELLED"


def _value(status: str) -> str:
    return status.value if isinstance(status, Enum) else status


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - DRAFT → COMPUTING (compute)
    - DRAFT → CANCELLED
    - COMPUTING → REVIEW (compute finished)
    - COMPUTING → DRAFT (compute crashed, prior status restored)
    - REVIEW → COMPUTING (recompute)
    - REVIEW → APPROVED
    - REVIEW → CANCELLED
    - APPROVED → RELEASED
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.COMPUTING, PayrollRunStatus.CANCELLED],
        PayrollRunStatus.COMPUTING: [PayrollRunStatus.REVIEW, PayrollRunStatus.DRAFT],
        PayrollRunStatus.REVIEW: [
            PayrollRunStatus.COMPUTING,
            PayrollRunStatus.APPROVED,
            PayrollRunStatus.CANCELLED,
        ],
        PayrollRunStatus.APPROVED: [PayrollRunStatus.RELEASED],
        PayrollRunStatus.RELEASED: [],  # Terminal state
        PayrollRunStatus.CANCELLED: [],  # Terminal state
    }

    # Statuses where compute/recompute may start
    CALCULATION_ALLOWED = {
        PayrollRunStatus.DRAFT,
        PayrollRunStatus.REVIEW,
    }

    # Statuses where inputs (adjustments) can be modified
    INPUTS_MUTABLE = {
        PayrollRunStatus.DRAFT,
        PayrollRunStatus.REVIEW,
    }

    # Statuses that hold attendance locks
    FINAL_STATUSES = {
        PayrollRunStatus.APPROVED,
        PayrollRunStatus.RELEASED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_value(from_status), _value(to_status))

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        """Check if compute/recompute is allowed in this status."""
        return status in cls.CALCULATION_ALLOWED

    @classmethod
    def can_modify_inputs(cls, status: str) -> bool:
        """Check if manual adjustments can be added or removed."""
        return status in cls.INPUTS_MUTABLE

    @classmethod
    def validate_approval(
        cls,
        run: PayrollRun,
        approver_id: UUID,
        checklist_acknowledged: bool,
    ) -> None:
        """Raise if the run cannot be approved by this user."""
        cls.validate_transition(run.status, PayrollRunStatus.APPROVED)
        if run.created_by == approver_id:
            raise SegregationOfDutiesError(
                _value(run.status), PayrollRunStatus.APPROVED.value, approver_id
            )
        errors = cls.validate_run_for_transition(run, PayrollRunStatus.APPROVED)
        if not checklist_acknowledged:
            errors.insert(0, "approval checklist has not been acknowledged")
        if errors:
            raise InvalidTransitionError(
                _value(run.status), PayrollRunStatus.APPROVED.value, "; ".join(errors)
            )

    @classmethod
    def validate_run_for_transition(cls, run: PayrollRun, to_status: str) -> list[str]:
        """Validate a run for a specific transition, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = run.status

        # Basic transition check
        if not cls.can_transition(from_status, to_status):
            errors.append(
                f"Cannot transition from '{_value(from_status)}' to '{_value(to_status)}'"
            )
            return errors

        # Transition-specific validations
        if to_status == PayrollRunStatus.APPROVED:
            if run.employee_count == 0:
                errors.append("Payroll run has no payslips")
            if run.failed_count:
                errors.append(f"{run.failed_count} payslip(s) failed to compute")

        return errors
