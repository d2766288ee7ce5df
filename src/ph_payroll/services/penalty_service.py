"""Penalties deducted from pay in installments."""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_DOWN, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.calculators.types import PenaltyDeduction
from ph_payroll.context import RequestContext
from ph_payroll.errors import InvalidPenaltyError, InvalidTransitionError, NotFoundError
from ph_payroll.models import (
    Employee,
    PayrollRun,
    Payslip,
    PayslipLine,
    Penalty,
    PenaltyInstallment,
)
from ph_payroll.models.base import utcnow
from ph_payroll.services.audit import AuditEmitter, default_emitter

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def split_installments(total: Decimal, count: int) -> list[Decimal]:
    """Even split rounded down to the centavo; the last installment takes the remainder."""
    base = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    return [base] * (count - 1) + [total - base * (count - 1)]


class PenaltyService:
    """Issue and cancel penalties, and settle their installments on approval.

    Each compute deducts the next pending installment of every active
    penalty effective by the end of the pay period. Approving the run marks
    the deducted installments so later runs move on to the next one.
    """

    def __init__(self, session: AsyncSession, audit: AuditEmitter | None = None):
        self.session = session
        self.audit = audit or default_emitter

    async def get_penalty(self, penalty_id: UUID, ctx: RequestContext) -> Penalty:
        result = await self.session.execute(
            select(Penalty)
            .join(Employee, Employee.employee_id == Penalty.employee_id)
            .where(Penalty.penalty_id == penalty_id, Employee.company_id == ctx.company_id)
        )
        penalty = result.scalar_one_or_none()
        if penalty is None:
            raise NotFoundError("Penalty", penalty_id)
        return penalty

    async def list_penalties(self, employee_id: UUID, ctx: RequestContext) -> list[Penalty]:
        await self._employee(employee_id, ctx)
        result = await self.session.execute(
            select(Penalty)
            .where(Penalty.employee_id == employee_id)
            .order_by(Penalty.effective_date.desc(), Penalty.created_at.desc())
        )
        return list(result.scalars())

    async def create_penalty(
        self,
        employee_id: UUID,
        description: str,
        total_amount: Decimal,
        installment_count: int,
        effective_date: date,
        ctx: RequestContext,
        remarks: str | None = None,
    ) -> Penalty:
        """Issue a penalty with its installment schedule.

        Raises:
            InvalidPenaltyError: Blank description, non-positive amount or
                count, or an amount too small to give every installment a centavo
        """
        employee = await self._employee(employee_id, ctx)
        if not description or not description.strip():
            raise InvalidPenaltyError("Penalty description is required")
        if total_amount is None or total_amount <= 0:
            raise InvalidPenaltyError(f"Penalty amount must be positive, got {total_amount}")
        if installment_count < 1:
            raise InvalidPenaltyError(
                f"Installment count must be at least 1, got {installment_count}"
            )
        total_amount = total_amount.quantize(CENT)
        amounts = split_installments(total_amount, installment_count)
        if amounts[0] <= 0:
            raise InvalidPenaltyError(
                f"Amount {total_amount} cannot be split into {installment_count} installments"
            )

        penalty = Penalty(
            employee_id=employee.employee_id,
            description=description.strip(),
            total_amount=total_amount,
            installment_count=installment_count,
            installment_amount=amounts[0],
            total_deducted=Decimal("0"),
            effective_date=effective_date,
            status="ACTIVE",
            remarks=remarks,
            created_by=ctx.user_id,
            installments=[
                PenaltyInstallment(installment_number=number, amount=amount)
                for number, amount in enumerate(amounts, start=1)
            ],
        )
        self.session.add(penalty)
        await self.session.flush()
        self.audit.record(
            ctx,
            "penalty.created",
            "Penalty",
            penalty.penalty_id,
            after={
                "employee_id": str(employee_id),
                "total_amount": str(total_amount),
                "installment_count": installment_count,
            },
        )
        return penalty

    async def cancel_penalty(self, penalty_id: UUID, reason: str, ctx: RequestContext) -> Penalty:
        """Stop further deductions. Installments already deducted stay deducted."""
        penalty = await self.get_penalty(penalty_id, ctx)
        before = {"status": penalty.status}
        try:
            if not reason or not reason.strip():
                raise InvalidPenaltyError("Cancellation reason is required")
            if penalty.status != "ACTIVE":
                raise InvalidPenaltyError(
                    f"Only active penalties can be cancelled, not {penalty.status}"
                )
        except InvalidPenaltyError as exc:
            self.audit.rejected(
                ctx, "penalty.cancelled", "Penalty", penalty_id, reason=str(exc), before=before
            )
            raise

        penalty.status = "CANCELLED"
        penalty.cancelled_at = utcnow()
        penalty.cancel_reason = reason.strip()
        await self.session.flush()
        self.audit.record(
            ctx,
            "penalty.cancelled",
            "Penalty",
            penalty_id,
            before=before,
            after={"status": penalty.status, "cancel_reason": penalty.cancel_reason},
        )
        return penalty

    async def pending_deductions(
        self, company_id: UUID, period_end: date
    ) -> dict[UUID, list[PenaltyDeduction]]:
        """Employee id -> next pending installment of each active penalty."""
        result = await self.session.execute(
            select(PenaltyInstallment, Penalty)
            .join(Penalty, Penalty.penalty_id == PenaltyInstallment.penalty_id)
            .join(Employee, Employee.employee_id == Penalty.employee_id)
            .where(
                Employee.company_id == company_id,
                Penalty.status == "ACTIVE",
                Penalty.effective_date <= period_end,
                PenaltyInstallment.is_deducted.is_(False),
            )
            .order_by(
                Penalty.effective_date,
                Penalty.created_at,
                Penalty.penalty_id,
                PenaltyInstallment.installment_number,
            )
        )
        grouped: dict[UUID, list[PenaltyDeduction]] = {}
        seen: set[UUID] = set()
        for installment, penalty in result.all():
            if penalty.penalty_id in seen:
                continue
            seen.add(penalty.penalty_id)
            grouped.setdefault(penalty.employee_id, []).append(
                PenaltyDeduction(
                    installment_id=installment.installment_id,
                    description=(
                        f"{penalty.description} "
                        f"({installment.installment_number}/{penalty.installment_count})"
                    ),
                    amount=installment.amount,
                )
            )
        return grouped

    async def settle_run(self, run: PayrollRun) -> int:
        """Mark the installments deducted by the run's payslips.

        Raises:
            InvalidTransitionError: An installment was already settled by
                another run; the run must be recomputed first
        """
        result = await self.session.execute(
            select(PenaltyInstallment, Penalty)
            .join(Penalty, Penalty.penalty_id == PenaltyInstallment.penalty_id)
            .join(
                PayslipLine,
                PayslipLine.penalty_installment_id == PenaltyInstallment.installment_id,
            )
            .join(Payslip, Payslip.payslip_id == PayslipLine.payslip_id)
            .where(Payslip.payroll_run_id == run.payroll_run_id, Payslip.status == "COMPUTED")
        )
        rows = result.all()
        stale = [i for i, _ in rows if i.is_deducted]
        if stale:
            raise InvalidTransitionError(
                run.status,
                "APPROVED",
                f"{len(stale)} penalty installment(s) were already deducted by another run",
            )

        now = utcnow()
        for installment, penalty in rows:
            installment.is_deducted = True
            installment.deducted_at = now
            installment.payroll_run_id = run.payroll_run_id
            penalty.total_deducted += installment.amount
            if all(i.is_deducted for i in penalty.installments):
                penalty.status = "COMPLETED"
                penalty.completed_at = now
        await self.session.flush()
        if rows:
            logger.info(
                "Payroll run %s settled %d penalty installments", run.payroll_run_id, len(rows)
            )
        return len(rows)

    async def _employee(self, employee_id: UUID, ctx: RequestContext) -> Employee:
        employee = await self.session.get(Employee, employee_id)
        if employee is None or employee.company_id != ctx.company_id:
            raise NotFoundError("Employee", employee_id)
        return employee
