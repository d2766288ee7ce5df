"""Compare two runs' payslips and flag anomalies for review."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID


class DiffFlag(str, Enum):
    NEW = "NEW"
    LARGE_CHANGE = "LARGE_CHANGE"
    DECREASED = "DECREASED"
    HIGH_OT = "HIGH_OT"


@dataclass(frozen=True)
class PayslipSummary:
    employee_id: UUID
    employee_name: str
    gross_pay: Decimal
    overtime_minutes: int = 0


@dataclass
class EmployeeDiff:
    employee_id: UUID
    employee_name: str
    current_gross: Decimal
    previous_gross: Decimal | None
    delta: Decimal
    delta_ratio: Decimal | None
    overtime_minutes: int
    flags: list[DiffFlag] = field(default_factory=list)


@dataclass
class DiffTotals:
    current_gross: Decimal = Decimal("0")
    previous_gross: Decimal = Decimal("0")
    delta: Decimal = Decimal("0")
    new_count: int = 0
    removed_count: int = 0
    flagged_count: int = 0


@dataclass
class PayslipDiff:
    rows: list[EmployeeDiff]
    removed: list[PayslipSummary]
    totals: DiffTotals


def diff_payslips(
    current: list[PayslipSummary],
    previous: list[PayslipSummary],
    large_change_ratio: Decimal = Decimal("0.10"),
    high_ot_threshold_minutes: int = 600,
) -> PayslipDiff:
    """Join payslips by employee and flag NEW, LARGE_CHANGE, DECREASED, HIGH_OT.

    Side-effect free; the result is advisory and never blocks approval.
    """
    prior = {p.employee_id: p for p in previous}
    current_ids = {c.employee_id for c in current}
    totals = DiffTotals()
    rows: list[EmployeeDiff] = []

    for slip in sorted(current, key=lambda s: (s.employee_name, str(s.employee_id))):
        flags: list[DiffFlag] = []
        before = prior.get(slip.employee_id)
        if before is None:
            flags.append(DiffFlag.NEW)
            previous_gross = None
            delta = slip.gross_pay
            ratio = None
            totals.new_count += 1
        else:
            previous_gross = before.gross_pay
            delta = slip.gross_pay - previous_gross
            ratio = None
            if previous_gross > 0:
                ratio = (delta / previous_gross).quantize(
                    Decimal("0.0001"), rounding=ROUND_HALF_UP
                )
                if abs(delta) / previous_gross > large_change_ratio:
                    flags.append(DiffFlag.LARGE_CHANGE)
            if delta < 0:
                flags.append(DiffFlag.DECREASED)

        if slip.overtime_minutes > high_ot_threshold_minutes:
            flags.append(DiffFlag.HIGH_OT)
        if flags:
            totals.flagged_count += 1

        totals.current_gross += slip.gross_pay
        rows.append(
            EmployeeDiff(
                employee_id=slip.employee_id,
                employee_name=slip.employee_name,
                current_gross=slip.gross_pay,
                previous_gross=previous_gross,
                delta=delta,
                delta_ratio=ratio,
                overtime_minutes=slip.overtime_minutes,
                flags=flags,
            )
        )

    removed = [p for p in previous if p.employee_id not in current_ids]
    totals.removed_count = len(removed)
    totals.previous_gross = sum((p.gross_pay for p in previous), Decimal("0"))
    totals.delta = totals.current_gross - totals.previous_gross

    return PayslipDiff(rows=rows, removed=removed, totals=totals)
