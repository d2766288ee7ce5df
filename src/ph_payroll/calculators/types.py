"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class DayType(str, Enum):
    """Resolved classification of an attendance day."""

    WORKDAY = "WORKDAY"
    REST_DAY = "REST_DAY"
    REGULAR_HOLIDAY = "REGULAR_HOLIDAY"
    SPECIAL_HOLIDAY = "SPECIAL_HOLIDAY"

    @property
    def is_holiday(self) -> bool:
        return self in (DayType.REGULAR_HOLIDAY, DayType.SPECIAL_HOLIDAY)


class CalendarDayType(str, Enum):
    """Day types a calendar event may declare."""

    REGULAR_HOLIDAY = "REGULAR_HOLIDAY"
    SPECIAL_HOLIDAY = "SPECIAL_HOLIDAY"
    SPECIAL_WORKING = "SPECIAL_WORKING"
    REST_DAY = "REST_DAY"


class AttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    HALF_DAY = "HALF_DAY"
    ON_LEAVE = "ON_LEAVE"
    REST_DAY = "REST_DAY"
    HOLIDAY = "HOLIDAY"
    ABSENT = "ABSENT"
    NO_DATA = "NO_DATA"
    INCOMPLETE = "INCOMPLETE"


class WageType(str, Enum):
    MONTHLY = "MONTHLY"
    DAILY = "DAILY"
    HOURLY = "HOURLY"


class PayFrequency(str, Enum):
    MONTHLY = "MONTHLY"
    SEMI_MONTHLY = "SEMI_MONTHLY"
    BI_WEEKLY = "BI_WEEKLY"
    WEEKLY = "WEEKLY"


# Used to pro-rate monthly amounts (allowances, statutory contributions)
PERIODS_PER_MONTH: dict[PayFrequency, Decimal] = {
    PayFrequency.MONTHLY: Decimal("1"),
    PayFrequency.SEMI_MONTHLY: Decimal("2"),
    PayFrequency.BI_WEEKLY: Decimal("2.17"),
    PayFrequency.WEEKLY: Decimal("4.33"),
}


class LineKind(str, Enum):
    """Payslip line kinds (drive sign and net inclusion)."""

    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"
    EMPLOYER_CONTRIBUTION = "EMPLOYER_CONTRIBUTION"


class LineCategory(str, Enum):
    BASIC_PAY = "BASIC_PAY"
    HOLIDAY_PAY = "HOLIDAY_PAY"
    REST_DAY_PAY = "REST_DAY_PAY"
    OVERTIME_REGULAR = "OVERTIME_REGULAR"
    OVERTIME_REST_DAY = "OVERTIME_REST_DAY"
    OVERTIME_HOLIDAY = "OVERTIME_HOLIDAY"
    NIGHT_DIFFERENTIAL = "NIGHT_DIFFERENTIAL"
    ALLOWANCE = "ALLOWANCE"
    ADJUSTMENT_ADD = "ADJUSTMENT_ADD"
    LATE_UT_DEDUCTION = "LATE_UT_DEDUCTION"
    ABSENT_DEDUCTION = "ABSENT_DEDUCTION"
    SSS_EE = "SSS_EE"
    SSS_ER = "SSS_ER"
    PHILHEALTH_EE = "PHILHEALTH_EE"
    PHILHEALTH_ER = "PHILHEALTH_ER"
    PAGIBIG_EE = "PAGIBIG_EE"
    PAGIBIG_ER = "PAGIBIG_ER"
    WITHHOLDING_TAX = "WITHHOLDING_TAX"
    PENALTY_DEDUCTION = "PENALTY_DEDUCTION"
    ADJUSTMENT_DEDUCT = "ADJUSTMENT_DEDUCT"


OVERTIME_CATEGORIES = frozenset(
    {
        LineCategory.OVERTIME_REGULAR,
        LineCategory.OVERTIME_REST_DAY,
        LineCategory.OVERTIME_HOLIDAY,
    }
)


class AdjustmentType(str, Enum):
    EARNING = "EARNING"
    COMMISSION = "COMMISSION"
    INCENTIVE = "INCENTIVE"
    REIMBURSEMENT = "REIMBURSEMENT"
    DEDUCTION = "DEDUCTION"
    CASH_ADVANCE = "CASH_ADVANCE"
    LOAN = "LOAN"


# ===== Time resolution inputs/outputs =====


@dataclass(frozen=True)
class ShiftSchedule:
    """Shift template values needed to resolve a day."""

    start_time: time
    end_time: time
    is_overnight: bool = False
    break_minutes: int = 60
    grace_minutes_late: int = 0
    grace_minutes_early_out: int = 0
    break_start: time | None = None
    break_end: time | None = None

    @property
    def scheduled_break_minutes(self) -> int:
        """Break length; a fixed break window takes precedence over break_minutes."""
        if self.break_start is None or self.break_end is None:
            return self.break_minutes
        start = self.break_start.hour * 60 + self.break_start.minute
        end = self.break_end.hour * 60 + self.break_end.minute
        if end < start:
            end += 24 * 60
        return end - start

    @property
    def span_minutes(self) -> int:
        start = self.start_time.hour * 60 + self.start_time.minute
        end = self.end_time.hour * 60 + self.end_time.minute
        if self.is_overnight or end <= start:
            end += 24 * 60
        return end - start

    @property
    def work_minutes(self) -> int:
        """Scheduled work minutes (shift span minus break)."""
        return max(0, self.span_minutes - self.scheduled_break_minutes)


@dataclass(frozen=True)
class CalendarDay:
    """Calendar event falling on the date."""

    day_type: CalendarDayType
    name: str = ""
    calendar_event_id: UUID | None = None


@dataclass(frozen=True)
class LeaveDay:
    """Leave record covering the date."""

    leave_type: str
    status: str = "APPROVED"
    is_paid: bool = True


@dataclass(frozen=True)
class DayOverrides:
    """Manual per-day overrides carried on the attendance record."""

    day_type: DayType | None = None
    schedule_start: datetime | None = None
    schedule_end: datetime | None = None
    break_minutes: int | None = None
    early_in_approved: bool = False
    late_out_approved: bool = False
    late_in_approved: bool = False
    early_out_approved: bool = False
    daily_rate_override: Decimal | None = None


@dataclass(frozen=True)
class DayInput:
    """Everything the time resolver needs for one employee-day."""

    attendance_date: date
    shift: ShiftSchedule | None = None
    time_in: datetime | None = None
    time_out: datetime | None = None
    calendar_event: CalendarDay | None = None
    leave: LeaveDay | None = None
    rest_days: frozenset[int] = frozenset({5, 6})
    overrides: DayOverrides = field(default_factory=DayOverrides)
    today: date | None = None
    allow_partial_logs: bool = True


@dataclass
class ResolvedDay:
    """Resolved attendance for one employee-day, with derived minute buckets."""

    attendance_date: date
    day_type: DayType
    is_rest_day: bool
    status: AttendanceStatus
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    time_in: datetime | None = None
    time_out: datetime | None = None
    standard_minutes: int = 480
    is_paid_leave: bool = False
    is_incomplete: bool = False

    late_minutes: int = 0
    undertime_minutes: int = 0
    ot_early_in_minutes: int = 0
    ot_late_out_minutes: int = 0
    ot_break_minutes: int = 0
    overtime_rest_day_minutes: int = 0
    overtime_holiday_minutes: int = 0
    night_diff_minutes: int = 0
    night_diff_early_in_minutes: int = 0
    night_diff_late_out_minutes: int = 0
    break_minutes_applied: int = 0
    worked_minutes: int = 0

    early_in_approved: bool = False
    late_out_approved: bool = False
    # Excused late arrival and early departure are not deducted
    late_in_approved: bool = False
    early_out_approved: bool = False
    daily_rate_override: Decimal | None = None
    calendar_event_id: UUID | None = None

    # Names of the rules that decided day type and status
    trace: list[str] = field(default_factory=list)


# ===== Payslip computation inputs =====


@dataclass(frozen=True)
class AllowanceSnapshot:
    name: str
    monthly_amount: Decimal
    is_taxable: bool = False


@dataclass(frozen=True)
class StatutoryOverride:
    """Declared wage used for contributions and withholding instead of the pay rate."""

    wage_type: WageType
    base_rate: Decimal


@dataclass(frozen=True)
class ProfileSnapshot:
    """Pay profile values captured at computation time."""

    wage_type: WageType
    base_rate: Decimal
    pay_frequency: PayFrequency
    is_benefits_eligible: bool = True
    is_ot_eligible: bool = True
    is_nd_eligible: bool = True
    allowances: tuple[AllowanceSnapshot, ...] = ()
    statutory_override: StatutoryOverride | None = None


@dataclass(frozen=True)
class AdjustmentInput:
    adjustment_type: AdjustmentType
    description: str
    amount: Decimal
    is_taxable: bool = False


@dataclass(frozen=True)
class PenaltyDeduction:
    """Next pending installment of an active penalty."""

    installment_id: UUID
    description: str
    amount: Decimal


@dataclass(frozen=True)
class YtdTotals:
    """Year-to-date figures from the latest finalized payslip."""

    taxable_income: Decimal = Decimal("0")
    tax_withheld: Decimal = Decimal("0")


@dataclass
class EmployeePayInput:
    """Context for calculating a single employee's payslip."""

    employee_id: UUID
    employment_type: str
    regularization_date: date | None
    profile: ProfileSnapshot | None
    period_start: date
    period_end: date
    days: list[ResolvedDay] = field(default_factory=list)
    adjustments: list[AdjustmentInput] = field(default_factory=list)
    penalties: list[PenaltyDeduction] = field(default_factory=list)
    ytd: YtdTotals = field(default_factory=YtdTotals)

    @property
    def is_statutory_eligible(self) -> bool:
        if self.profile is None or not self.profile.is_benefits_eligible:
            return False
        if self.employment_type == "REGULAR":
            return True
        return (
            self.regularization_date is not None
            and self.regularization_date <= self.period_end
        )


# ===== Lines and results =====


@dataclass
class LineCandidate:
    """A candidate payslip line before persistence."""

    category: LineCategory
    kind: LineKind
    description: str
    amount: Decimal  # Final amount (signed per conventions)
    sort_order: int
    rule_code: str

    quantity: Decimal | None = None
    rate: Decimal | None = None
    multiplier: Decimal | None = None
    is_taxable: bool = True

    # Traceability: unrounded per-day contributions
    contributions: list[tuple[date, Decimal]] = field(default_factory=list)
    penalty_installment_id: UUID | None = None

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "category": self.category.value,
            "kind": self.kind.value,
            "description": self.description,
            "rule_code": self.rule_code,
            "sort_order": self.sort_order,
            "quantity": str(self.quantity) if self.quantity is not None else None,
            "rate": str(self.rate) if self.rate is not None else None,
            "multiplier": str(self.multiplier) if self.multiplier is not None else None,
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class IssueCandidate:
    code: str
    message: str
    severity: str = "ERROR"
    attendance_date: date | None = None


@dataclass(frozen=True)
class TaxBracket:
    """Tax bracket for progressive taxation."""

    min_amount: Decimal
    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.20 for 20%
    flat_amount: Decimal = Decimal("0")  # Flat amount at bracket start


@dataclass
class PayslipResult:
    """Computed payslip for one employee."""

    employee_id: UUID
    lines: list[LineCandidate] = field(default_factory=list)
    issues: list[IssueCandidate] = field(default_factory=list)

    gross_pay: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")
    net_pay: Decimal = Decimal("0")
    basic_pay: Decimal = Decimal("0")
    taxable_income: Decimal = Decimal("0")
    withholding_tax: Decimal = Decimal("0")
    total_overtime_minutes: int = 0

    daily_rate: Decimal | None = None
    minute_rate: Decimal | None = None
    statutory_version: str | None = None
    lines_hash: str | None = None

    ytd_taxable_income: Decimal = Decimal("0")
    ytd_tax_withheld: Decimal = Decimal("0")

    error_code: str | None = None
    error_message: str | None = None

    @property
    def is_failed(self) -> bool:
        return self.error_code is not None

    def amount_for(self, category: LineCategory) -> Decimal:
        return sum((ln.amount for ln in self.lines if ln.category == category), Decimal("0"))
