"""Payroll calculation engine - per-employee pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from ph_payroll.calculators.adjustments import merge_adjustments, penalty_lines
from ph_payroll.calculators.earnings import compute_earnings
from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.rates import DerivedRates, RateDeriver
from ph_payroll.calculators.statutory import StatutoryCalculator, tax_period_number
from ph_payroll.calculators.statutory_tables import DEFAULT_TABLES, StatutoryTables
from ph_payroll.calculators.types import (
    AttendanceStatus,
    EmployeePayInput,
    IssueCandidate,
    LineCandidate,
    LineKind,
    PayslipResult,
    ProfileSnapshot,
)
from ph_payroll.errors import IncompleteAttendanceError, InvalidRateConfigError, PayrollError

logger = logging.getLogger(__name__)


@dataclass
class PayrollCalculationResult:
    """Result of calculating every employee of a run."""

    results: list[PayslipResult] = field(default_factory=list)
    total_gross: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")
    total_net: Decimal = Decimal("0")
    failed_count: int = 0


class PayrollEngine:
    """Pure payslip calculator.

    Calculation pipeline (stable order per employee):
    1) Derive rates from the pay profile snapshot
    2) Earnings, premiums, night differential, and attendance deductions
    3) Allowances
    4) Statutory contributions (eligible employees only), on the declared
       wage when the profile carries a statutory override
    5) Withholding tax on the period's taxable income
    6) Manual adjustments and penalty installments
    7) Sort, total, and hash lines
    """

    def __init__(
        self,
        tables: StatutoryTables = DEFAULT_TABLES,
        tax_on_full_earnings: bool = False,
    ):
        self.statutory = StatutoryCalculator(tables)
        self.tax_on_full_earnings = tax_on_full_earnings

    def compute_employee_payslip(self, inp: EmployeePayInput) -> PayslipResult:
        """Compute one payslip.

        Raises:
            InvalidRateConfigError: Missing profile or non-positive base rate
            StatutoryLookupMissError: Salary outside a configured bracket table
        """
        if inp.profile is None:
            raise InvalidRateConfigError(
                f"no pay profile effective on or before {inp.period_end}",
                employee_id=inp.employee_id,
            )
        profile = inp.profile
        rates = RateDeriver.derive(profile.wage_type, profile.base_rate, inp.employee_id)

        result = PayslipResult(
            employee_id=inp.employee_id,
            daily_rate=rates.daily_rate,
            minute_rate=rates.minute_rate,
        )
        for day in inp.days:
            if day.status == AttendanceStatus.INCOMPLETE or day.is_incomplete:
                warning = IncompleteAttendanceError(inp.employee_id, day.attendance_date)
                result.issues.append(
                    IssueCandidate(
                        code=warning.code,
                        message=str(warning),
                        severity="WARNING",
                        attendance_date=day.attendance_date,
                    )
                )

        earnings = compute_earnings(inp.days, rates, profile)
        lines: list[LineCandidate] = list(earnings.lines)
        result.basic_pay = earnings.basic_pay
        result.total_overtime_minutes = earnings.overtime_minutes

        lines.extend(merge_adjustments(inp.adjustments))
        lines.extend(penalty_lines(inp.penalties))

        total_ee = Decimal("0")
        if inp.is_statutory_eligible:
            statutory_rates = self._statutory_rates(profile, rates, inp.employee_id)
            contribs = self.statutory.contributions(
                statutory_rates.monthly_rate, profile.pay_frequency
            )
            lines.extend(self.statutory.contribution_lines(contribs))
            total_ee = contribs.total_ee
            result.statutory_version = contribs.version

            # Declared wage replaces the pay rate in the basic-pay tax base
            tax_earnings = earnings
            if statutory_rates is not rates:
                tax_earnings = compute_earnings(inp.days, statutory_rates, profile)
            taxable = self._taxable_income(lines, tax_earnings, total_ee)
            period_number = tax_period_number(inp.period_start, profile.pay_frequency)
            withholding = self.statutory.withholding_tax(
                taxable, inp.ytd, period_number, profile.pay_frequency
            )
            tax_line = self.statutory.tax_line(withholding)
            if tax_line is not None:
                lines.append(tax_line)
            result.taxable_income = taxable
            result.withholding_tax = withholding

        result.lines = LineItemBuilder.sort_lines(lines)
        sign_errors = LineItemBuilder.validate_line_signs(result.lines)
        if sign_errors:
            raise PayrollError("; ".join(sign_errors))

        result.gross_pay = LineItemBuilder.calculate_gross_from_lines(result.lines)
        result.total_deductions = LineItemBuilder.calculate_deductions_from_lines(result.lines)
        result.net_pay = LineItemBuilder.calculate_net_from_lines(result.lines)
        result.lines_hash = LineItemBuilder.compute_lines_hash(result.lines)
        result.ytd_taxable_income = inp.ytd.taxable_income + result.taxable_income
        result.ytd_tax_withheld = inp.ytd.tax_withheld + result.withholding_tax
        return result

    @staticmethod
    def _statutory_rates(
        profile: ProfileSnapshot, rates: DerivedRates, employee_id: UUID
    ) -> DerivedRates:
        override = profile.statutory_override
        if override is None:
            return rates
        return RateDeriver.derive(override.wage_type, override.base_rate, employee_id)

    def _taxable_income(self, lines, earnings, total_ee: Decimal) -> Decimal:
        if self.tax_on_full_earnings:
            base = sum(
                (
                    line.amount
                    for line in lines
                    if line.kind == LineKind.EARNING and line.is_taxable
                ),
                Decimal("0"),
            )
        else:
            base = earnings.basic_pay - earnings.late_ut_deduction - earnings.absent_deduction
        return LineItemBuilder.round_to_cents(max(Decimal("0"), base - total_ee))

    def compute_payroll(self, inputs: list[EmployeePayInput]) -> PayrollCalculationResult:
        """Compute every employee; one failure never stops the others."""
        outcome = PayrollCalculationResult()
        for inp in inputs:
            try:
                result = self.compute_employee_payslip(inp)
            except PayrollError as exc:
                logger.warning("Payslip for employee %s failed: %s", inp.employee_id, exc)
                result = self.failed_result(inp.employee_id, exc.code, str(exc))
            except Exception as exc:
                logger.exception("Unexpected error computing employee %s", inp.employee_id)
                result = self.failed_result(inp.employee_id, "UNEXPECTED_ERROR", str(exc))

            outcome.results.append(result)
            if result.is_failed:
                outcome.failed_count += 1
                continue
            outcome.total_gross += result.gross_pay
            outcome.total_deductions += result.total_deductions
            outcome.total_net += result.net_pay
        return outcome

    @staticmethod
    def failed_result(employee_id: UUID, code: str, message: str) -> PayslipResult:
        result = PayslipResult(employee_id=employee_id, error_code=code, error_message=message)
        result.issues.append(IssueCandidate(code=code, message=message))
        return result
