"""Merge manual adjustments into payslip lines."""

from __future__ import annotations

from decimal import Decimal

from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.types import (
    AdjustmentInput,
    AdjustmentType,
    LineCandidate,
    LineCategory,
    PenaltyDeduction,
)
from ph_payroll.errors import InvalidAdjustmentError

EARNING_TYPES = frozenset(
    {
        AdjustmentType.EARNING,
        AdjustmentType.COMMISSION,
        AdjustmentType.INCENTIVE,
        AdjustmentType.REIMBURSEMENT,
    }
)
DEDUCTION_TYPES = frozenset(
    {AdjustmentType.DEDUCTION, AdjustmentType.CASH_ADVANCE, AdjustmentType.LOAN}
)


def validate_adjustment(
    adjustment_type: str, description: str, amount: Decimal
) -> AdjustmentType:
    """Check an adjustment before it is stored; returns the parsed type."""
    try:
        parsed = AdjustmentType(adjustment_type)
    except ValueError:
        raise InvalidAdjustmentError(f"Unknown adjustment type {adjustment_type!r}") from None
    if not description or not description.strip():
        raise InvalidAdjustmentError("Adjustment description is required")
    if amount is None or amount <= 0:
        raise InvalidAdjustmentError(f"Adjustment amount must be positive, got {amount}")
    return parsed


def merge_adjustments(adjustments: list[AdjustmentInput]) -> list[LineCandidate]:
    """One ADJUSTMENT_ADD or ADJUSTMENT_DEDUCT line per adjustment, in input order."""
    lines: list[LineCandidate] = []
    add_index = 0
    deduct_index = 0
    for adj in adjustments:
        adj_type = validate_adjustment(adj.adjustment_type, adj.description, adj.amount)
        if adj_type in EARNING_TYPES:
            lines.append(
                LineItemBuilder.create_earning_line(
                    LineCategory.ADJUSTMENT_ADD,
                    "ADJ_ADD",
                    adj.description,
                    adj.amount,
                    index=add_index,
                    is_taxable=adj.is_taxable,
                )
            )
            add_index += 1
        else:
            lines.append(
                LineItemBuilder.create_deduction_line(
                    LineCategory.ADJUSTMENT_DEDUCT,
                    "ADJ_DEDUCT",
                    adj.description,
                    adj.amount,
                    index=deduct_index,
                )
            )
            deduct_index += 1
    return lines


def penalty_lines(penalties: list[PenaltyDeduction]) -> list[LineCandidate]:
    """One PENALTY_DEDUCTION line per pending installment."""
    lines: list[LineCandidate] = []
    for index, penalty in enumerate(penalties):
        line = LineItemBuilder.create_deduction_line(
            LineCategory.PENALTY_DEDUCTION,
            "PENALTY",
            penalty.description,
            penalty.amount,
            index=index,
        )
        line.penalty_installment_id = penalty.installment_id
        lines.append(line)
    return lines
