"""Payslip line builder with idempotent hashing."""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from ph_payroll.calculators.types import LineCandidate, LineCategory, LineKind

# Rule code -> base sort order. Repeatable lines (allowances, adjustments) add their index.
SORT_ORDERS: dict[str, int] = {
    "BASIC": 100,
    "REG_HOL": 110,
    "REG_HOL_UNWORKED": 111,
    "SPEC_HOL": 120,
    "REST": 130,
    "OT_REG": 200,
    "OT_REST": 210,
    "OT_HOL": 220,
    "ND": 300,
    "ALLOWANCE": 400,
    "ADJ_ADD": 800,
    "LATE_UT": 1015,
    "ABSENT": 1020,
    "SSS_EE": 1100,
    "SSS_ER": 1101,
    "PH_EE": 1110,
    "PH_ER": 1111,
    "PAGIBIG_EE": 1120,
    "PAGIBIG_ER": 1121,
    "TAX": 1200,
    "PENALTY": 1350,
    "ADJ_DEDUCT": 1400,
}


class LineItemBuilder:
    """Builds payslip lines with deterministic hashing for idempotency.

    Sign conventions (non-negotiable):
    - EARNING: positive
    - DEDUCTION (employee): negative
    - EMPLOYER_CONTRIBUTION: positive, excluded from net

    Rounding:
    - PHP to 2 decimals, once per aggregated line
    - Internal compute unrounded (minute-rate products)
    """

    PRECISION = Decimal("0.0001")  # 4 decimal places for quantities and rates
    OUTPUT_PRECISION = Decimal("0.01")  # 2 decimal places for persistence

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (centavos)."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def compute_lines_hash(lines: list[LineCandidate]) -> str:
        """Hash of the ordered canonical lines of a payslip."""
        canonical = [line.to_canonical_dict() for line in lines]
        json_str = json.dumps(canonical, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()

    @staticmethod
    def create_earning_line(
        category: LineCategory,
        rule_code: str,
        description: str,
        amount: Decimal,
        quantity: Decimal | None = None,
        rate: Decimal | None = None,
        multiplier: Decimal | None = None,
        index: int = 0,
        is_taxable: bool = True,
        contributions: list[tuple[date, Decimal]] | None = None,
    ) -> LineCandidate:
        """Create an earning line (positive amount)."""
        return LineCandidate(
            category=category,
            kind=LineKind.EARNING,
            description=description,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            sort_order=SORT_ORDERS[rule_code] + index,
            rule_code=rule_code,
            quantity=LineItemBuilder._quantize(quantity),
            rate=rate,
            multiplier=multiplier,
            is_taxable=is_taxable,
            contributions=contributions or [],
        )

    @staticmethod
    def create_deduction_line(
        category: LineCategory,
        rule_code: str,
        description: str,
        amount: Decimal,
        quantity: Decimal | None = None,
        rate: Decimal | None = None,
        index: int = 0,
        contributions: list[tuple[date, Decimal]] | None = None,
    ) -> LineCandidate:
        """Create an employee deduction line (negative amount)."""
        return LineCandidate(
            category=category,
            kind=LineKind.DEDUCTION,
            description=description,
            amount=-LineItemBuilder.round_to_cents(abs(amount)),
            sort_order=SORT_ORDERS[rule_code] + index,
            rule_code=rule_code,
            quantity=LineItemBuilder._quantize(quantity),
            rate=rate,
            is_taxable=False,
            contributions=contributions or [],
        )

    @staticmethod
    def create_employer_line(
        category: LineCategory,
        rule_code: str,
        description: str,
        amount: Decimal,
    ) -> LineCandidate:
        """Create an employer contribution line (positive amount, liability)."""
        return LineCandidate(
            category=category,
            kind=LineKind.EMPLOYER_CONTRIBUTION,
            description=description,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            sort_order=SORT_ORDERS[rule_code],
            rule_code=rule_code,
            is_taxable=False,
        )

    @staticmethod
    def _quantize(value: Decimal | None) -> Decimal | None:
        if value is None:
            return None
        return value.quantize(LineItemBuilder.PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def sort_lines(lines: list[LineCandidate]) -> list[LineCandidate]:
        return sorted(lines, key=lambda ln: (ln.sort_order, ln.rule_code, ln.description))

    @staticmethod
    def calculate_gross_from_lines(lines: list[LineCandidate]) -> Decimal:
        """GROSS = sum of EARNING lines."""
        gross = sum(
            (line.amount for line in lines if line.kind == LineKind.EARNING), Decimal("0")
        )
        return LineItemBuilder.round_to_cents(gross)

    @staticmethod
    def calculate_deductions_from_lines(lines: list[LineCandidate]) -> Decimal:
        """Total employee deductions as a positive amount."""
        total = sum(
            (line.amount for line in lines if line.kind == LineKind.DEDUCTION), Decimal("0")
        )
        return LineItemBuilder.round_to_cents(-total)

    @staticmethod
    def calculate_net_from_lines(lines: list[LineCandidate]) -> Decimal:
        """NET = sum(EARNING) + sum(DEDUCTION).

        Note: EMPLOYER_CONTRIBUTION is excluded from net calculation.
        """
        net = sum(
            (line.amount for line in lines if line.kind != LineKind.EMPLOYER_CONTRIBUTION),
            Decimal("0"),
        )
        return LineItemBuilder.round_to_cents(net)

    @staticmethod
    def validate_line_signs(lines: list[LineCandidate]) -> list[str]:
        """Validate that all lines have correct signs.

        Returns list of error messages (empty if all valid).
        """
        errors: list[str] = []

        for i, line in enumerate(lines):
            if line.kind == LineKind.DEDUCTION:
                if line.amount > 0:
                    errors.append(
                        f"Line {i} ({line.category.value}) has positive amount {line.amount}, expected negative"
                    )
            elif line.amount < 0:
                errors.append(
                    f"Line {i} ({line.category.value}) has negative amount {line.amount}, expected positive"
                )

        return errors
