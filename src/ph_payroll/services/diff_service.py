"""Loads two runs' payslips for review-stage comparison."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.calculators.diff import PayslipDiff, PayslipSummary, diff_payslips
from ph_payroll.config import Settings, get_settings
from ph_payroll.context import RequestContext
from ph_payroll.errors import NotFoundError
from ph_payroll.models import PayPeriod, PayrollRun, Payslip
from ph_payroll.services.state_machine import PayrollRunStatus

COMPARABLE_STATUSES = [
    PayrollRunStatus.REVIEW.value,
    PayrollRunStatus.APPROVED.value,
    PayrollRunStatus.RELEASED.value,
]


@dataclass
class RunComparison:
    current_run_id: UUID
    previous_run_id: UUID | None
    diff: PayslipDiff


class DiffService:
    """Read-only comparison of a run against an earlier run."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    async def compare_runs(
        self,
        current_run_id: UUID,
        ctx: RequestContext,
        previous_run_id: UUID | None = None,
    ) -> RunComparison:
        """Compare with previous_run_id, or with the latest computed run of an earlier period.

        With no earlier run every employee is flagged NEW.
        """
        current = await self._run(current_run_id, ctx)
        previous = (
            await self._run(previous_run_id, ctx)
            if previous_run_id is not None
            else await self._latest_before(current)
        )

        diff = diff_payslips(
            await self._summaries(current.payroll_run_id),
            await self._summaries(previous.payroll_run_id) if previous is not None else [],
            large_change_ratio=self.settings.large_change_ratio,
            high_ot_threshold_minutes=self.settings.high_ot_threshold_minutes,
        )
        return RunComparison(
            current_run_id=current.payroll_run_id,
            previous_run_id=previous.payroll_run_id if previous is not None else None,
            diff=diff,
        )

    async def _run(self, run_id: UUID, ctx: RequestContext) -> PayrollRun:
        run = await self.session.get(PayrollRun, run_id)
        if run is None or run.company_id != ctx.company_id:
            raise NotFoundError("PayrollRun", run_id)
        return run

    async def _latest_before(self, current: PayrollRun) -> PayrollRun | None:
        result = await self.session.execute(
            select(PayrollRun)
            .join(PayPeriod, PayPeriod.pay_period_id == PayrollRun.pay_period_id)
            .where(
                PayrollRun.company_id == current.company_id,
                PayrollRun.payroll_run_id != current.payroll_run_id,
                PayrollRun.status.in_(COMPARABLE_STATUSES),
                PayPeriod.start_date < current.pay_period.start_date,
            )
            .order_by(PayPeriod.start_date.desc(), PayrollRun.computed_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _summaries(self, run_id: UUID) -> list[PayslipSummary]:
        result = await self.session.execute(
            select(Payslip).where(Payslip.payroll_run_id == run_id, Payslip.status == "COMPUTED")
        )
        return [
            PayslipSummary(
                employee_id=slip.employee_id,
                employee_name=slip.employee.full_name,
                gross_pay=slip.gross_pay,
                overtime_minutes=slip.total_overtime_minutes,
            )
            for slip in result.scalars()
        ]
