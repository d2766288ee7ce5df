"""Tests for line item builder."""

from datetime import date
from decimal import Decimal

from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.types import LineCategory, LineKind


class TestLineItemBuilder:
    """Test line item builder functionality."""

    def test_round_to_cents(self):
        """Half-up rounding to centavos."""
        assert LineItemBuilder.round_to_cents(Decimal("10.125")) == Decimal("10.13")
        assert LineItemBuilder.round_to_cents(Decimal("10.124")) == Decimal("10.12")
        assert LineItemBuilder.round_to_cents(Decimal("10.135")) == Decimal("10.14")

    def test_create_earning_line(self):
        """Earning lines are positive and carry their per-day contributions."""
        contributions = [(date(2026, 1, 2), Decimal("1000"))]
        line = LineItemBuilder.create_earning_line(
            LineCategory.BASIC_PAY,
            "BASIC",
            "Basic Pay",
            Decimal("1000.004"),
            quantity=Decimal("1"),
            rate=Decimal("1000"),
            contributions=contributions,
        )

        assert line.kind == LineKind.EARNING
        assert line.amount == Decimal("1000.00")
        assert line.quantity == Decimal("1.0000")
        assert line.sort_order == 100
        assert line.contributions == contributions

    def test_create_deduction_line(self):
        """Employee deductions are always negative, whatever sign is passed."""
        line = LineItemBuilder.create_deduction_line(
            LineCategory.SSS_EE, "SSS_EE", "SSS Contribution", Decimal("650")
        )
        negative_input = LineItemBuilder.create_deduction_line(
            LineCategory.SSS_EE, "SSS_EE", "SSS Contribution", Decimal("-650")
        )

        assert line.kind == LineKind.DEDUCTION
        assert line.amount == Decimal("-650.00")
        assert negative_input.amount == line.amount
        assert line.is_taxable is False

    def test_create_employer_line(self):
        """Employer shares are positive."""
        line = LineItemBuilder.create_employer_line(
            LineCategory.SSS_ER, "SSS_ER", "SSS Contribution (Employer)", Decimal("1330")
        )

        assert line.kind == LineKind.EMPLOYER_CONTRIBUTION
        assert line.amount == Decimal("1330.00")

    def test_indexed_lines_sort_after_base(self):
        first = LineItemBuilder.create_earning_line(
            LineCategory.ALLOWANCE, "ALLOWANCE", "Rice", Decimal("1000"), index=0
        )
        second = LineItemBuilder.create_earning_line(
            LineCategory.ALLOWANCE, "ALLOWANCE", "Transport", Decimal("500"), index=1
        )
        assert second.sort_order == first.sort_order + 1

    def test_sort_lines(self):
        """Earnings before deductions, regardless of input order."""
        tax = LineItemBuilder.create_deduction_line(
            LineCategory.WITHHOLDING_TAX, "TAX", "Withholding Tax", Decimal("100")
        )
        basic = LineItemBuilder.create_earning_line(
            LineCategory.BASIC_PAY, "BASIC", "Basic Pay", Decimal("10000")
        )
        overtime = LineItemBuilder.create_earning_line(
            LineCategory.OVERTIME_REGULAR, "OT_REG", "Regular Overtime", Decimal("300")
        )

        ordered = LineItemBuilder.sort_lines([tax, overtime, basic])
        assert [line.rule_code for line in ordered] == ["BASIC", "OT_REG", "TAX"]


class TestTotals:
    """Gross, deductions, and net from signed lines."""

    def _lines(self):
        return [
            LineItemBuilder.create_earning_line(
                LineCategory.BASIC_PAY, "BASIC", "Basic Pay", Decimal("10000")
            ),
            LineItemBuilder.create_earning_line(
                LineCategory.HOLIDAY_PAY, "REG_HOL_UNWORKED", "Regular Holiday Pay", Decimal("1000")
            ),
            LineItemBuilder.create_deduction_line(
                LineCategory.SSS_EE, "SSS_EE", "SSS Contribution", Decimal("650")
            ),
            LineItemBuilder.create_employer_line(
                LineCategory.SSS_ER, "SSS_ER", "SSS Contribution (Employer)", Decimal("1330")
            ),
            LineItemBuilder.create_deduction_line(
                LineCategory.WITHHOLDING_TAX, "TAX", "Withholding Tax", Decimal("125.50")
            ),
        ]

    def test_gross(self):
        assert LineItemBuilder.calculate_gross_from_lines(self._lines()) == Decimal("11000.00")

    def test_deductions_reported_positive(self):
        assert LineItemBuilder.calculate_deductions_from_lines(self._lines()) == Decimal("775.50")

    def test_net_excludes_employer_contributions(self):
        """NET = earnings + (negative) deductions; employer shares do not count."""
        assert LineItemBuilder.calculate_net_from_lines(self._lines()) == Decimal("10224.50")

    def test_validate_line_signs(self):
        lines = self._lines()
        assert LineItemBuilder.validate_line_signs(lines) == []

        lines[0].amount = Decimal("-1")
        errors = LineItemBuilder.validate_line_signs(lines)
        assert len(errors) == 1
        assert "BASIC_PAY" in errors[0]


class TestHashing:
    """Hashes make recomputation idempotency checkable."""

    def test_same_lines_same_hash(self):
        def build():
            return [
                LineItemBuilder.create_earning_line(
                    LineCategory.BASIC_PAY, "BASIC", "Basic Pay", Decimal("10000")
                ),
                LineItemBuilder.create_deduction_line(
                    LineCategory.PAGIBIG_EE, "PAGIBIG_EE", "Pag-IBIG Contribution", Decimal("100")
                ),
            ]

        assert LineItemBuilder.compute_lines_hash(build()) == LineItemBuilder.compute_lines_hash(
            build()
        )

    def test_amount_change_changes_hash(self):
        a = LineItemBuilder.create_earning_line(
            LineCategory.BASIC_PAY, "BASIC", "Basic Pay", Decimal("10000")
        )
        b = LineItemBuilder.create_earning_line(
            LineCategory.BASIC_PAY, "BASIC", "Basic Pay", Decimal("10000.01")
        )

        assert LineItemBuilder.compute_lines_hash([a]) != LineItemBuilder.compute_lines_hash([b])
