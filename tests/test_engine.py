"""Unit tests for PayrollEngine.

Inputs are built in memory; no database involved.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from ph_payroll.calculators.engine import PayrollEngine
from ph_payroll.calculators.time_resolver import resolve_day
from ph_payroll.calculators.types import (
    AdjustmentInput,
    AdjustmentType,
    CalendarDay,
    CalendarDayType,
    DayInput,
    EmployeePayInput,
    LineCategory,
    LineKind,
    PayFrequency,
    PenaltyDeduction,
    ProfileSnapshot,
    ShiftSchedule,
    StatutoryOverride,
    WageType,
    YtdTotals,
)
from ph_payroll.errors import InvalidRateConfigError

DAY_SHIFT = ShiftSchedule(time(8, 0), time(17, 0), break_minutes=60, grace_minutes_late=15)
PERIOD_START = date(2026, 1, 1)
PERIOD_END = date(2026, 1, 15)
NEW_YEAR = CalendarDay(CalendarDayType.REGULAR_HOLIDAY, "New Year's Day")
MONTHLY = ProfileSnapshot(WageType.MONTHLY, Decimal("26000"), PayFrequency.SEMI_MONTHLY)

STATUTORY = {
    LineCategory.SSS_EE,
    LineCategory.SSS_ER,
    LineCategory.PHILHEALTH_EE,
    LineCategory.PHILHEALTH_ER,
    LineCategory.PAGIBIG_EE,
    LineCategory.PAGIBIG_ER,
}


def period_days(clock_out_missing_on=None):
    """Jan 1-15: every weekday worked 08:00-17:00 except the New Year holiday."""
    days = []
    current = PERIOD_START
    while current <= PERIOD_END:
        time_in = time_out = None
        event = None
        if current == PERIOD_START:
            event = NEW_YEAR
        elif current.weekday() < 5:
            time_in = datetime.combine(current, time(8, 0))
            time_out = datetime.combine(current, time(17, 0))
            if current == clock_out_missing_on:
                time_out = None
        days.append(
            resolve_day(
                DayInput(
                    attendance_date=current,
                    shift=DAY_SHIFT,
                    time_in=time_in,
                    time_out=time_out,
                    calendar_event=event,
                )
            )
        )
        current += timedelta(days=1)
    return days


def pay_input(
    employment_type="REGULAR",
    regularization_date=None,
    profile=MONTHLY,
    days=None,
    adjustments=None,
    ytd=None,
    period_start=PERIOD_START,
    penalties=None,
):
    return EmployeePayInput(
        employee_id=uuid4(),
        employment_type=employment_type,
        regularization_date=regularization_date,
        profile=profile,
        period_start=period_start,
        period_end=PERIOD_END,
        days=period_days() if days is None else days,
        adjustments=adjustments or [],
        ytd=ytd or YtdTotals(),
        penalties=penalties or [],
    )


@pytest.fixture
def engine() -> PayrollEngine:
    return PayrollEngine()


class TestEmployeePayslip:
    def test_full_period(self, engine):
        """Ten worked days plus the unworked New Year holiday."""
        result = engine.compute_employee_payslip(pay_input())

        assert result.amount_for(LineCategory.BASIC_PAY) == Decimal("10000.00")
        assert result.amount_for(LineCategory.HOLIDAY_PAY) == Decimal("1000.00")
        assert result.gross_pay == Decimal("11000.00")
        assert result.total_deductions == Decimal("1075.00")
        assert result.net_pay == Decimal("9925.00")
        assert result.taxable_income == Decimal("8925.00")
        assert result.withholding_tax == Decimal("0.00")
        assert result.statutory_version == "PH-2026.1"
        assert result.daily_rate == Decimal("1000")
        assert not result.is_failed
        assert result.issues == []

    def test_employer_shares_do_not_reduce_net(self, engine):
        result = engine.compute_employee_payslip(pay_input())

        employer = [ln for ln in result.lines if ln.kind == LineKind.EMPLOYER_CONTRIBUTION]
        assert {ln.category for ln in employer} == {
            LineCategory.SSS_ER,
            LineCategory.PHILHEALTH_ER,
            LineCategory.PAGIBIG_ER,
        }
        assert result.net_pay == result.gross_pay - result.total_deductions

    def test_lines_sorted(self, engine):
        result = engine.compute_employee_payslip(pay_input())
        orders = [ln.sort_order for ln in result.lines]
        assert orders == sorted(orders)

    def test_probationary_not_statutory_eligible(self, engine):
        result = engine.compute_employee_payslip(pay_input(employment_type="PROBATIONARY"))

        assert not STATUTORY & {ln.category for ln in result.lines}
        assert result.net_pay == Decimal("11000.00")
        assert result.taxable_income == Decimal("0")
        assert result.statutory_version is None

    def test_probationary_regularized_within_period(self, engine):
        result = engine.compute_employee_payslip(
            pay_input(employment_type="PROBATIONARY", regularization_date=date(2026, 1, 10))
        )
        assert STATUTORY <= {ln.category for ln in result.lines}

    def test_benefits_ineligible_profile(self, engine):
        profile = ProfileSnapshot(
            WageType.MONTHLY,
            Decimal("26000"),
            PayFrequency.SEMI_MONTHLY,
            is_benefits_eligible=False,
        )
        result = engine.compute_employee_payslip(pay_input(profile=profile))
        assert result.total_deductions == Decimal("0.00")

    def test_missing_profile(self, engine):
        with pytest.raises(InvalidRateConfigError, match="no pay profile"):
            engine.compute_employee_payslip(pay_input(profile=None))

    def test_adjustments_merged(self, engine):
        adjustments = [
            AdjustmentInput(AdjustmentType.INCENTIVE, "Perfect attendance", Decimal("500")),
            AdjustmentInput(AdjustmentType.CASH_ADVANCE, "Advance", Decimal("1000")),
        ]
        result = engine.compute_employee_payslip(pay_input(adjustments=adjustments))

        assert result.gross_pay == Decimal("11500.00")
        assert result.total_deductions == Decimal("2075.00")
        assert result.net_pay == Decimal("9425.00")
        # Non-taxable adjustments leave the tax base alone
        assert result.taxable_income == Decimal("8925.00")

    def test_incomplete_attendance_warning(self, engine):
        missing = date(2026, 1, 7)
        result = engine.compute_employee_payslip(
            pay_input(days=period_days(clock_out_missing_on=missing))
        )

        assert len(result.issues) == 1
        issue = result.issues[0]
        assert issue.code == "INCOMPLETE_ATTENDANCE"
        assert issue.severity == "WARNING"
        assert issue.attendance_date == missing
        assert not result.is_failed

    def test_ytd_carried_forward(self, engine):
        """Feb 1-15 is the third semi-monthly period of the year.

        (60000 + 8925) / 3 * 24 = 551400 projected; annual tax 52780,
        due to date 52780 / 24 * 3 = 6597.50, less 500 already withheld.
        """
        ytd = YtdTotals(taxable_income=Decimal("60000.00"), tax_withheld=Decimal("500.00"))
        result = engine.compute_employee_payslip(
            pay_input(ytd=ytd, period_start=date(2026, 2, 1))
        )

        assert result.taxable_income == Decimal("8925.00")
        assert result.withholding_tax == Decimal("6097.50")
        assert result.ytd_taxable_income == Decimal("68925.00")
        assert result.ytd_tax_withheld == Decimal("6597.50")

    def test_ytd_included_in_projection(self, engine):
        ytd = YtdTotals(taxable_income=Decimal("8925.00"))
        result = engine.compute_employee_payslip(pay_input(ytd=ytd))

        # 17850 * 24 = 428400 projected; (22500 + 28400 * 0.20) / 24 = 1174.17
        assert result.withholding_tax == Decimal("1174.17")

    def test_high_earner_withholds_tax(self, engine):
        profile = ProfileSnapshot(WageType.MONTHLY, Decimal("100000"), PayFrequency.SEMI_MONTHLY)
        result = engine.compute_employee_payslip(pay_input(profile=profile))

        assert result.withholding_tax > 0
        assert result.amount_for(LineCategory.WITHHOLDING_TAX) == -result.withholding_tax

    def test_tax_on_full_earnings(self):
        engine = PayrollEngine(tax_on_full_earnings=True)
        result = engine.compute_employee_payslip(pay_input())
        assert result.taxable_income == Decimal("9925.00")

    def test_penalty_installment_deducted(self, engine):
        installment_id = uuid4()
        penalty = PenaltyDeduction(installment_id, "Lost ID (1/4)", Decimal("250.00"))
        result = engine.compute_employee_payslip(pay_input(penalties=[penalty]))

        line = next(ln for ln in result.lines if ln.category == LineCategory.PENALTY_DEDUCTION)
        assert line.amount == Decimal("-250.00")
        assert line.penalty_installment_id == installment_id
        assert result.total_deductions == Decimal("1325.00")
        assert result.net_pay == Decimal("9675.00")
        assert result.taxable_income == Decimal("8925.00")


DECLARED = ProfileSnapshot(
    WageType.MONTHLY,
    Decimal("26000"),
    PayFrequency.SEMI_MONTHLY,
    statutory_override=StatutoryOverride(WageType.DAILY, Decimal("500")),
)


class TestDeclaredWage:
    def test_contributions_and_tax_use_declared_wage(self, engine):
        """Declared 500/day is 13000/month for contributions; pay stays on 26000."""
        result = engine.compute_employee_payslip(pay_input(profile=DECLARED))

        assert result.gross_pay == Decimal("11000.00")
        assert result.amount_for(LineCategory.SSS_EE) == Decimal("-325.00")
        assert result.amount_for(LineCategory.PHILHEALTH_EE) == Decimal("-162.50")
        assert result.amount_for(LineCategory.PAGIBIG_EE) == Decimal("-100.00")
        assert result.total_deductions == Decimal("587.50")
        assert result.net_pay == Decimal("10412.50")
        # 10 days x 500 less contributions
        assert result.taxable_income == Decimal("4412.50")
        assert result.withholding_tax == Decimal("0.00")

    def test_full_earnings_tax_base(self):
        engine = PayrollEngine(tax_on_full_earnings=True)
        result = engine.compute_employee_payslip(pay_input(profile=DECLARED))
        assert result.taxable_income == Decimal("10412.50")


class TestDeterminism:
    def test_same_inputs_same_hash(self, engine):
        inp = pay_input()

        first = engine.compute_employee_payslip(inp)
        second = engine.compute_employee_payslip(inp)

        assert first.lines_hash == second.lines_hash
        assert first.net_pay == second.net_pay

    def test_changed_input_changes_hash(self, engine):
        base = engine.compute_employee_payslip(pay_input())
        adjusted = engine.compute_employee_payslip(
            pay_input(
                adjustments=[AdjustmentInput(AdjustmentType.EARNING, "Bonus", Decimal("1"))]
            )
        )
        assert base.lines_hash != adjusted.lines_hash


class TestComputePayroll:
    def test_failure_isolated(self, engine):
        good = pay_input()
        bad = pay_input(profile=None)

        outcome = engine.compute_payroll([good, bad])

        assert len(outcome.results) == 2
        assert outcome.failed_count == 1
        failed = outcome.results[1]
        assert failed.is_failed
        assert failed.error_code == "INVALID_RATE_CONFIG"
        assert failed.employee_id == bad.employee_id
        assert failed.issues[0].code == "INVALID_RATE_CONFIG"
        assert outcome.total_gross == Decimal("11000.00")
        assert outcome.total_net == Decimal("9925.00")

    def test_totals_across_employees(self, engine):
        outcome = engine.compute_payroll([pay_input(), pay_input()])

        assert outcome.failed_count == 0
        assert outcome.total_gross == Decimal("22000.00")
        assert outcome.total_deductions == Decimal("2150.00")
        assert outcome.total_net == Decimal("19850.00")
