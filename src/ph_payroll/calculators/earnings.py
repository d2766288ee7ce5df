"""Earnings and attendance deductions from resolved attendance days.

Per-day contributions are kept unrounded and grouped by rule code; each group
becomes one payslip line whose amount is the rounded sum of its contributions,
so category totals always reconcile to the per-day figures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.multipliers import (
    BASIC,
    NIGHT_DIFF_RATE,
    OT_PREMIUM,
    premium_for,
)
from ph_payroll.calculators.rates import DerivedRates
from ph_payroll.calculators.time_resolver import night_minutes
from ph_payroll.calculators.types import (
    PERIODS_PER_MONTH,
    AttendanceStatus,
    DayType,
    LineCandidate,
    LineCategory,
    PayFrequency,
    ProfileSnapshot,
    ResolvedDay,
    WageType,
)

PAID_PRESENCE = frozenset(
    {AttendanceStatus.PRESENT, AttendanceStatus.HALF_DAY, AttendanceStatus.INCOMPLETE}
)

# rule code -> (category, description, is deduction)
_RULES: dict[str, tuple[LineCategory, str, bool]] = {
    "BASIC": (LineCategory.BASIC_PAY, "Basic Pay", False),
    "REG_HOL": (LineCategory.HOLIDAY_PAY, "Regular Holiday Pay", False),
    "REG_HOL_UNWORKED": (LineCategory.HOLIDAY_PAY, "Regular Holiday Pay (Unworked)", False),
    "SPEC_HOL": (LineCategory.HOLIDAY_PAY, "Special Holiday Pay", False),
    "REST": (LineCategory.REST_DAY_PAY, "Rest Day Pay", False),
    "OT_REG": (LineCategory.OVERTIME_REGULAR, "Regular Overtime", False),
    "OT_REST": (LineCategory.OVERTIME_REST_DAY, "Rest Day Overtime", False),
    "OT_HOL": (LineCategory.OVERTIME_HOLIDAY, "Holiday Overtime", False),
    "ND": (LineCategory.NIGHT_DIFFERENTIAL, "Night Differential", False),
    "LATE_UT": (LineCategory.LATE_UT_DEDUCTION, "Late/Undertime", True),
    "ABSENT": (LineCategory.ABSENT_DEDUCTION, "Absences", True),
}


@dataclass
class _Bucket:
    """Running total for one rule code."""

    quantity: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")
    rates: set[Decimal] = field(default_factory=set)
    multipliers: set[Decimal] = field(default_factory=set)
    contributions: list[tuple[date, Decimal]] = field(default_factory=list)

    def add(
        self, on_date: date, quantity: Decimal, rate: Decimal, multiplier: Decimal
    ) -> None:
        amount = quantity * rate * multiplier
        self.quantity += quantity
        self.amount += amount
        self.rates.add(rate)
        self.multipliers.add(multiplier)
        self.contributions.append((on_date, amount))


@dataclass
class EarningsResult:
    lines: list[LineCandidate]
    basic_pay: Decimal
    late_ut_deduction: Decimal
    absent_deduction: Decimal
    overtime_minutes: int


class EarningsCalculator:
    """Accumulates per-day earnings for one employee and builds lines."""

    def __init__(self, rates: DerivedRates, profile: ProfileSnapshot):
        self.rates = rates
        self.profile = profile
        self._buckets: dict[str, _Bucket] = {}
        self._overtime_minutes = 0

    def _add(
        self,
        rule_code: str,
        on_date: date,
        quantity: Decimal | int,
        rate: Decimal,
        multiplier: Decimal = BASIC,
    ) -> None:
        if not quantity or not multiplier:
            return
        bucket = self._buckets.setdefault(rule_code, _Bucket())
        bucket.add(on_date, Decimal(quantity), rate, multiplier)

    def add_day(self, day: ResolvedDay) -> None:
        rates = self.rates.with_daily_override(day.daily_rate_override)
        if day.day_type == DayType.WORKDAY:
            self._add_workday(day, rates)
        else:
            self._add_premium_day(day, rates)
        if self.profile.is_nd_eligible and day.night_diff_minutes:
            self._add_night_diff(day, rates)

    def _add_workday(self, day: ResolvedDay, rates: DerivedRates) -> None:
        on_date = day.attendance_date
        is_unpaid_leave = day.status == AttendanceStatus.ON_LEAVE and not day.is_paid_leave

        if self.rates.wage_type == WageType.MONTHLY:
            if day.status != AttendanceStatus.NO_DATA:
                self._add("BASIC", on_date, 1, rates.daily_rate)
            if day.status == AttendanceStatus.ABSENT or is_unpaid_leave:
                self._add("ABSENT", on_date, 1, rates.daily_rate)
        elif day.status in PAID_PRESENCE or (
            day.status == AttendanceStatus.ON_LEAVE and day.is_paid_leave
        ):
            self._add("BASIC", on_date, 1, rates.daily_rate)

        late = 0 if day.late_in_approved else day.late_minutes
        undertime = 0 if day.early_out_approved else day.undertime_minutes
        self._add("LATE_UT", on_date, late + undertime, rates.minute_rate)

        if self.profile.is_ot_eligible:
            ot_minutes = day.ot_break_minutes
            if day.early_in_approved:
                ot_minutes += day.ot_early_in_minutes
            if day.late_out_approved:
                ot_minutes += day.ot_late_out_minutes
            self._add("OT_REG", on_date, ot_minutes, rates.minute_rate, OT_PREMIUM)
            self._overtime_minutes += ot_minutes

    def _add_premium_day(self, day: ResolvedDay, rates: DerivedRates) -> None:
        on_date = day.attendance_date
        premium = premium_for(day.day_type, day.is_rest_day)

        if day.worked_minutes > 0:
            regular = min(day.worked_minutes, day.standard_minutes)
            excess = day.worked_minutes - regular
            if day.day_type == DayType.REST_DAY:
                pay_code, ot_code = "REST", "OT_REST"
            elif day.day_type == DayType.REGULAR_HOLIDAY:
                pay_code, ot_code = "REG_HOL", "OT_HOL"
            else:
                pay_code, ot_code = "SPEC_HOL", "OT_HOL"
            self._add(pay_code, on_date, regular, rates.minute_rate, premium.basic)
            if self.profile.is_ot_eligible and excess:
                self._add(ot_code, on_date, excess, rates.minute_rate, premium.overtime)
                self._overtime_minutes += excess
        elif day.day_type == DayType.REGULAR_HOLIDAY:
            self._add("REG_HOL_UNWORKED", on_date, 1, rates.daily_rate)

    def _add_night_diff(self, day: ResolvedDay, rates: DerivedRates) -> None:
        """Night premium on top of whatever multiplier applies to those minutes."""
        if day.day_type == DayType.WORKDAY:
            self._add_workday_night_diff(day, rates)
        else:
            self._add_premium_day_night_diff(day, rates)

    def _add_workday_night_diff(self, day: ResolvedDay, rates: DerivedRates) -> None:
        premium = premium_for(day.day_type, day.is_rest_day)
        ot_ok = self.profile.is_ot_eligible

        early_m = premium.overtime if ot_ok and day.early_in_approved else 0
        late_m = premium.overtime if ot_ok and day.late_out_approved else 0
        inside = (
            day.night_diff_minutes
            - day.night_diff_early_in_minutes
            - day.night_diff_late_out_minutes
        )

        on_date = day.attendance_date
        minute = rates.minute_rate
        self._add("ND", on_date, inside, minute, NIGHT_DIFF_RATE * premium.basic)
        self._add("ND", on_date, day.night_diff_early_in_minutes, minute, NIGHT_DIFF_RATE * early_m)
        self._add("ND", on_date, day.night_diff_late_out_minutes, minute, NIGHT_DIFF_RATE * late_m)

    def _add_premium_day_night_diff(self, day: ResolvedDay, rates: DerivedRates) -> None:
        # Rest-day and holiday overtime is the tail of the day past the standard minutes
        premium = premium_for(day.day_type, day.is_rest_day)
        excess = day.overtime_rest_day_minutes + day.overtime_holiday_minutes
        ot_night = 0
        if excess and day.time_out is not None:
            ot_night = night_minutes(day.time_out - timedelta(minutes=excess), day.time_out)
        ot_m = premium.overtime if self.profile.is_ot_eligible else 0

        on_date = day.attendance_date
        minute = rates.minute_rate
        regular_night = day.night_diff_minutes - ot_night
        self._add("ND", on_date, regular_night, minute, NIGHT_DIFF_RATE * premium.basic)
        self._add("ND", on_date, ot_night, minute, NIGHT_DIFF_RATE * ot_m)

    def allowance_lines(self, frequency: PayFrequency) -> list[LineCandidate]:
        per_month = PERIODS_PER_MONTH[frequency]
        lines = []
        for i, allowance in enumerate(self.profile.allowances):
            if allowance.monthly_amount <= 0:
                continue
            lines.append(
                LineItemBuilder.create_earning_line(
                    LineCategory.ALLOWANCE,
                    "ALLOWANCE",
                    allowance.name,
                    allowance.monthly_amount / per_month,
                    index=i,
                    is_taxable=allowance.is_taxable,
                )
            )
        return lines

    def build(self) -> EarningsResult:
        lines: list[LineCandidate] = []
        for rule_code, bucket in self._buckets.items():
            category, description, is_deduction = _RULES[rule_code]
            rate = next(iter(bucket.rates)) if len(bucket.rates) == 1 else None
            multiplier = (
                next(iter(bucket.multipliers)) if len(bucket.multipliers) == 1 else None
            )
            if is_deduction:
                line = LineItemBuilder.create_deduction_line(
                    category,
                    rule_code,
                    description,
                    bucket.amount,
                    quantity=bucket.quantity,
                    rate=rate,
                    contributions=bucket.contributions,
                )
            else:
                line = LineItemBuilder.create_earning_line(
                    category,
                    rule_code,
                    description,
                    bucket.amount,
                    quantity=bucket.quantity,
                    rate=rate,
                    multiplier=multiplier,
                    contributions=bucket.contributions,
                )
            if line.amount:
                lines.append(line)

        def total(code: str) -> Decimal:
            bucket = self._buckets.get(code)
            return LineItemBuilder.round_to_cents(bucket.amount) if bucket else Decimal("0.00")

        return EarningsResult(
            lines=lines,
            basic_pay=total("BASIC"),
            late_ut_deduction=total("LATE_UT"),
            absent_deduction=total("ABSENT"),
            overtime_minutes=self._overtime_minutes,
        )


def compute_earnings(
    days: list[ResolvedDay], rates: DerivedRates, profile: ProfileSnapshot
) -> EarningsResult:
    """Earnings, overtime, night differential, and attendance deductions for a period."""
    calculator = EarningsCalculator(rates, profile)
    for day in sorted(days, key=lambda d: d.attendance_date):
        calculator.add_day(day)
    result = calculator.build()
    result.lines.extend(calculator.allowance_lines(profile.pay_frequency))
    return result
