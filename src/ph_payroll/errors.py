"""Error taxonomy for payroll computation and run management.

Every error carries a stable ``code`` used for per-row error summaries and
for HTTP error bodies.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for all payroll domain errors."""

    code = "PAYROLL_ERROR"


class InvalidRateConfigError(PayrollError):
    """Raised when a pay profile cannot produce usable rates."""

    code = "INVALID_RATE_CONFIG"

    def __init__(
        self,
        reason: str,
        employee_id: UUID | None = None,
        wage_type: str | None = None,
        base_rate: Decimal | None = None,
    ):
        self.reason = reason
        self.employee_id = employee_id
        self.wage_type = wage_type
        self.base_rate = base_rate
        msg = f"Invalid rate configuration: {reason}"
        if employee_id:
            msg += f" (employee {employee_id})"
        super().__init__(msg)


class InvalidTransitionError(PayrollError):
    """Raised when an invalid run state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class SegregationOfDutiesError(InvalidTransitionError):
    """Raised when the run creator attempts to approve their own run."""

    def __init__(self, from_status: str, to_status: str, user_id: UUID):
        self.user_id = user_id
        super().__init__(
            from_status,
            to_status,
            f"user {user_id} created this run and cannot approve it",
        )


class LockedRecordConflictError(PayrollError):
    """Raised on any mutation that would alter locked payroll inputs."""

    code = "LOCKED_RECORD_CONFLICT"

    def __init__(self, entity_type: str, entity_id: Any, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id} is locked: {reason}")


class DuplicateCalendarEventError(PayrollError):
    """Raised when a calendar already has an event on the date."""

    code = "DUPLICATE_CALENDAR_EVENT"

    def __init__(self, calendar_id: UUID, event_date: date):
        self.calendar_id = calendar_id
        self.event_date = event_date
        super().__init__(f"Calendar {calendar_id} already has an event on {event_date}")


class IncompleteAttendanceError(PayrollError):
    """A clock-in without clock-out (or vice versa). Reported, never fatal to a run."""

    code = "INCOMPLETE_ATTENDANCE"

    def __init__(self, employee_id: UUID, attendance_date: date):
        self.employee_id = employee_id
        self.attendance_date = attendance_date
        super().__init__(
            f"Incomplete attendance for employee {employee_id} on {attendance_date}"
        )


class StatutoryLookupMissError(PayrollError):
    """Raised when an amount falls outside a configured bracket table."""

    code = "STATUTORY_LOOKUP_MISS"

    def __init__(self, table: str, amount: Decimal, version: str | None = None):
        self.table = table
        self.amount = amount
        self.version = version
        msg = f"No {table} bracket covers amount {amount}"
        if version:
            msg += f" (table version {version})"
        super().__init__(msg)


class InvalidAdjustmentError(PayrollError):
    """Raised when a manual adjustment is malformed."""

    code = "INVALID_ADJUSTMENT"


class NotFoundError(PayrollError):
    """Raised when a referenced entity does not exist in the caller's scope."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class InvalidCalendarEventError(PayrollError):
    """Raised when an event date falls outside its calendar's year."""

    code = "INVALID_CALENDAR_EVENT"

    def __init__(self, calendar_id: UUID, year: int, event_date: date):
        self.calendar_id = calendar_id
        self.year = year
        self.event_date = event_date
        super().__init__(f"Event date {event_date} is outside calendar {calendar_id} year {year}")


class InvalidPenaltyError(PayrollError):
    """Raised when a penalty is malformed or cannot change state."""

    code = "INVALID_PENALTY"
