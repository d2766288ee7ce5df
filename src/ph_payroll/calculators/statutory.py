"""SSS, PhilHealth, Pag-IBIG contributions and BIR withholding tax.

Deterministic: the same monthly salary credit and table version always
produce the same figures.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.statutory_tables import DEFAULT_TABLES, StatutoryTables
from ph_payroll.calculators.types import (
    PERIODS_PER_MONTH,
    LineCandidate,
    LineCategory,
    PayFrequency,
    YtdTotals,
)
from ph_payroll.errors import StatutoryLookupMissError

MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class Contribution:
    """Monthly employee and employer shares."""

    ee: Decimal
    er: Decimal


@dataclass(frozen=True)
class StatutoryContributions:
    """Per-period shares, rounded to centavos."""

    sss_ee: Decimal
    sss_er: Decimal
    philhealth_ee: Decimal
    philhealth_er: Decimal
    pagibig_ee: Decimal
    pagibig_er: Decimal
    version: str

    @property
    def total_ee(self) -> Decimal:
        return self.sss_ee + self.philhealth_ee + self.pagibig_ee

    @property
    def total_er(self) -> Decimal:
        return self.sss_er + self.philhealth_er + self.pagibig_er


def periods_per_year(frequency: PayFrequency) -> Decimal:
    return PERIODS_PER_MONTH[frequency] * MONTHS_PER_YEAR


def tax_period_number(period_start: date, frequency: PayFrequency) -> int:
    """Ordinal of the pay period within its calendar year (1-based).

    Semi-monthly: day 1-15 is the first half. Weekly: week of the month.
    """
    per_month = PERIODS_PER_MONTH[frequency]
    within_month = 1
    if per_month == 2:
        within_month = 1 if period_start.day <= 15 else 2
    elif per_month >= 4:
        within_month = min(math.ceil(period_start.day / 7), math.floor(per_month))
    completed = (period_start.month - 1) * per_month
    return max(1, math.floor(completed + within_month))


class StatutoryCalculator:
    """Looks up contributions and withholding tax in one table version."""

    def __init__(self, tables: StatutoryTables = DEFAULT_TABLES):
        self.tables = tables

    @property
    def version(self) -> str:
        return self.tables.version

    def _require_positive(self, table: str, salary: Decimal) -> None:
        if salary <= 0:
            raise StatutoryLookupMissError(table, salary, self.version)

    def sss(self, monthly_salary: Decimal) -> Contribution:
        self._require_positive("SSS", monthly_salary)
        salary = LineItemBuilder.round_to_cents(monthly_salary)
        for bracket in self.tables.sss:
            if bracket.covers(salary):
                return Contribution(ee=bracket.total_ee, er=bracket.total_er)
        raise StatutoryLookupMissError("SSS", salary, self.version)

    def philhealth(self, monthly_salary: Decimal) -> Contribution:
        self._require_positive("PhilHealth", monthly_salary)
        table = self.tables.philhealth
        base = min(max(monthly_salary, table.floor), table.ceiling)
        premium = base * table.rate
        ee = premium * table.employee_share
        return Contribution(ee=ee, er=premium - ee)

    def pagibig(self, monthly_salary: Decimal) -> Contribution:
        self._require_positive("Pag-IBIG", monthly_salary)
        table = self.tables.pagibig
        base = min(monthly_salary, table.max_base)
        ee_rate = table.ee_low_rate if monthly_salary <= table.low_threshold else table.ee_rate
        return Contribution(ee=base * ee_rate, er=base * table.er_rate)

    def contributions(
        self, monthly_salary: Decimal, frequency: PayFrequency
    ) -> StatutoryContributions:
        """Per-period contributions for a monthly salary credit."""
        per_month = PERIODS_PER_MONTH[frequency]
        sss = self.sss(monthly_salary)
        ph = self.philhealth(monthly_salary)
        pi = self.pagibig(monthly_salary)

        def per_period(amount: Decimal) -> Decimal:
            return LineItemBuilder.round_to_cents(amount / per_month)

        return StatutoryContributions(
            sss_ee=per_period(sss.ee),
            sss_er=per_period(sss.er),
            philhealth_ee=per_period(ph.ee),
            philhealth_er=per_period(ph.er),
            pagibig_ee=per_period(pi.ee),
            pagibig_er=per_period(pi.er),
            version=self.version,
        )

    def annual_tax(self, annual_income: Decimal) -> Decimal:
        """Annual income tax from the graduated brackets (unrounded)."""
        if annual_income <= 0:
            return Decimal("0")
        for bracket in self.tables.tax_brackets:
            above_min = annual_income > bracket.min_amount
            below_max = bracket.max_amount is None or annual_income <= bracket.max_amount
            if above_min and below_max:
                return bracket.flat_amount + (annual_income - bracket.min_amount) * bracket.rate
        raise StatutoryLookupMissError("BIR", annual_income, self.version)

    def withholding_tax(
        self,
        current_taxable: Decimal,
        ytd: YtdTotals,
        period_number: int,
        frequency: PayFrequency,
    ) -> Decimal:
        """Withholding for the period by the cumulative projected-annual method.

        The period number is forced to 1 for an employee with no taxable
        history this year, so a first payslip late in the year is not
        projected as a tiny annual income.
        """
        if ytd.taxable_income <= 0:
            period_number = 1
        total_periods = periods_per_year(frequency)
        cumulative = ytd.taxable_income + max(Decimal("0"), current_taxable)
        projected = cumulative / period_number * total_periods
        due_to_date = self.annual_tax(projected) / total_periods * period_number
        return LineItemBuilder.round_to_cents(max(Decimal("0"), due_to_date - ytd.tax_withheld))

    def contribution_lines(self, contribs: StatutoryContributions) -> list[LineCandidate]:
        pairs = (
            ("SSS_EE", LineCategory.SSS_EE, "SSS Contribution", contribs.sss_ee, False),
            ("SSS_ER", LineCategory.SSS_ER, "SSS Contribution (Employer)", contribs.sss_er, True),
            ("PH_EE", LineCategory.PHILHEALTH_EE, "PhilHealth Contribution", contribs.philhealth_ee, False),
            ("PH_ER", LineCategory.PHILHEALTH_ER, "PhilHealth Contribution (Employer)", contribs.philhealth_er, True),
            ("PAGIBIG_EE", LineCategory.PAGIBIG_EE, "Pag-IBIG Contribution", contribs.pagibig_ee, False),
            ("PAGIBIG_ER", LineCategory.PAGIBIG_ER, "Pag-IBIG Contribution (Employer)", contribs.pagibig_er, True),
        )
        lines = []
        for rule_code, category, description, amount, is_employer in pairs:
            if not amount:
                continue
            if is_employer:
                lines.append(
                    LineItemBuilder.create_employer_line(category, rule_code, description, amount)
                )
            else:
                lines.append(
                    LineItemBuilder.create_deduction_line(category, rule_code, description, amount)
                )
        return lines

    def tax_line(self, amount: Decimal) -> LineCandidate | None:
        if amount <= 0:
            return None
        return LineItemBuilder.create_deduction_line(
            LineCategory.WITHHOLDING_TAX, "TAX", "Withholding Tax", amount
        )
