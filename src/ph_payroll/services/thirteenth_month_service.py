"""13th-month pay from finalized payslips."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.types import LineCategory
from ph_payroll.context import RequestContext
from ph_payroll.models import Employee, PayPeriod, PayrollRun, Payslip, PayslipLine
from ph_payroll.services.audit import AuditEmitter, default_emitter
from ph_payroll.services.state_machine import PayrollRunStateMachine

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = Decimal("12")

# Earned basic pay: BASIC_PAY less lateness/undertime and absences (both stored negative)
BASIC_CATEGORIES = [
    LineCategory.BASIC_PAY.value,
    LineCategory.LATE_UT_DEDUCTION.value,
    LineCategory.ABSENT_DEDUCTION.value,
]


@dataclass(frozen=True)
class ThirteenthMonthPay:
    employee_id: UUID
    employee_name: str
    basic_total: Decimal
    amount: Decimal


class ThirteenthMonthService:
    def __init__(self, session: AsyncSession, audit: AuditEmitter | None = None):
        self.session = session
        self.audit = audit or default_emitter

    async def compute(self, year: int, ctx: RequestContext) -> list[ThirteenthMonthPay]:
        """Total earned basic pay / 12 per employee, over approved or released
        runs whose pay period ends within the year.
        """
        final_statuses = [s.value for s in PayrollRunStateMachine.FINAL_STATUSES]
        result = await self.session.execute(
            select(Payslip.employee_id, PayslipLine.amount)
            .join(PayslipLine, PayslipLine.payslip_id == Payslip.payslip_id)
            .join(PayrollRun, PayrollRun.payroll_run_id == Payslip.payroll_run_id)
            .join(PayPeriod, PayPeriod.pay_period_id == PayrollRun.pay_period_id)
            .where(
                PayrollRun.company_id == ctx.company_id,
                PayrollRun.status.in_(final_statuses),
                Payslip.status == "COMPUTED",
                PayPeriod.end_date >= date(year, 1, 1),
                PayPeriod.end_date <= date(year, 12, 31),
                PayslipLine.category.in_(BASIC_CATEGORIES),
            )
        )
        totals: dict[UUID, Decimal] = {}
        for employee_id, amount in result.all():
            totals[employee_id] = totals.get(employee_id, Decimal("0")) + Decimal(amount)

        employees = await self.session.execute(
            select(Employee)
            .where(Employee.company_id == ctx.company_id, Employee.employee_id.in_(list(totals)))
            .order_by(Employee.last_name, Employee.first_name)
        )
        pay = [
            ThirteenthMonthPay(
                employee_id=employee.employee_id,
                employee_name=employee.full_name,
                basic_total=LineItemBuilder.round_to_cents(totals[employee.employee_id]),
                amount=LineItemBuilder.round_to_cents(
                    max(Decimal("0"), totals[employee.employee_id]) / MONTHS_PER_YEAR
                ),
            )
            for employee in employees.scalars()
        ]

        logger.info("13th-month pay for %d: %d employees", year, len(pay))
        self.audit.record(
            ctx,
            "thirteenth_month.computed",
            "Company",
            ctx.company_id,
            after={"year": year, "employee_count": len(pay)},
        )
        return pay
