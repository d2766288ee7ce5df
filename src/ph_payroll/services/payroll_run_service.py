"""Payroll run service - orchestrator for the run lifecycle."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.calculators.adjustments import validate_adjustment
from ph_payroll.calculators.engine import PayrollEngine
from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.statutory_tables import StatutoryTables, cached_tables
from ph_payroll.calculators.types import (
    AdjustmentInput,
    AdjustmentType,
    AllowanceSnapshot,
    EmployeePayInput,
    LineCategory,
    PayFrequency,
    PayslipResult,
    PenaltyDeduction,
    ProfileSnapshot,
    StatutoryOverride,
    WageType,
    YtdTotals,
)
from ph_payroll.config import Settings, get_settings
from ph_payroll.context import RequestContext
from ph_payroll.errors import (
    InvalidTransitionError,
    LockedRecordConflictError,
    NotFoundError,
    PayrollError,
)
from ph_payroll.models import (
    AttendanceDayRecord,
    Employee,
    ManualAdjustmentItem,
    PayPeriod,
    PayrollRun,
    Payslip,
    PayslipIssue,
    PayslipLine,
)
from ph_payroll.models.base import utcnow
from ph_payroll.services.attendance_service import AttendanceService, record_to_resolved
from ph_payroll.services.audit import AuditEmitter, default_emitter
from ph_payroll.services.locking_service import LockingService
from ph_payroll.services.penalty_service import PenaltyService
from ph_payroll.services.state_machine import PayrollRunStateMachine, PayrollRunStatus

logger = logging.getLogger(__name__)

FINAL_STATUS_VALUES = [s.value for s in PayrollRunStateMachine.FINAL_STATUSES]


class PayrollRunService:
    """Service for managing payroll run lifecycle.

    Operations:
    - create_run: New DRAFT run for a pay period
    - compute / recompute: Resolve attendance and regenerate every payslip
    - approve: Segregation of duties, checklist, attendance locking
    - release: Mark an approved run disbursed
    - cancel: Discard a DRAFT/REVIEW run and its payslips
    - add_adjustment / remove_adjustment: Manual items while inputs are mutable

    Penalty installments are read at compute time and settled on approval.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        audit: AuditEmitter | None = None,
        tables: StatutoryTables | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.audit = audit or default_emitter
        if tables is None:
            tables = cached_tables(self.settings.statutory_tables_path)
        self.engine = PayrollEngine(tables, tax_on_full_earnings=self.settings.tax_on_full_earnings)
        self.locking = LockingService(session)
        self.penalties = PenaltyService(session, audit=self.audit)
        self.attendance = AttendanceService(
            session, audit=self.audit, allow_partial_logs=self.settings.allow_partial_logs
        )

    async def get_run(self, run_id: UUID, ctx: RequestContext) -> PayrollRun:
        """Load a run in the caller's company, or raise NotFoundError."""
        result = await self.session.execute(
            select(PayrollRun).where(
                PayrollRun.payroll_run_id == run_id,
                PayrollRun.company_id == ctx.company_id,
            )
        )
        run = result.scalar_one_or_none()
        if run is None:
            raise NotFoundError("PayrollRun", run_id)
        return run

    async def create_run(self, pay_period_id: UUID, ctx: RequestContext) -> PayrollRun:
        period = await self.session.get(PayPeriod, pay_period_id)
        if period is None or period.company_id != ctx.company_id:
            raise NotFoundError("PayPeriod", pay_period_id)

        run = PayrollRun(
            company_id=ctx.company_id,
            pay_period=period,
            status=PayrollRunStatus.DRAFT.value,
            created_by=ctx.user_id,
        )
        self.session.add(run)
        await self.session.flush()
        self.audit.record(
            ctx,
            "payroll_run.created",
            "PayrollRun",
            run.payroll_run_id,
            after={"status": run.status, "pay_period_id": str(pay_period_id)},
        )
        return run

    # ===== Computation =====

    async def compute(self, run_id: UUID, ctx: RequestContext) -> PayrollRun:
        """Compute every in-scope employee and move the run to REVIEW."""
        return await self._compute(run_id, ctx, "payroll_run.compute")

    async def recompute(self, run_id: UUID, ctx: RequestContext) -> PayrollRun:
        """Discard and regenerate all payslips of a DRAFT/REVIEW run."""
        return await self._compute(run_id, ctx, "payroll_run.recompute")

    async def _compute(self, run_id: UUID, ctx: RequestContext, action: str) -> PayrollRun:
        run = await self.get_run(run_id, ctx)
        prior = run.status

        if not PayrollRunStateMachine.can_calculate(prior):
            exc = InvalidTransitionError(
                prior,
                PayrollRunStatus.COMPUTING.value,
                "computation is allowed only in DRAFT or REVIEW",
            )
            self.audit.rejected(
                ctx, action, "PayrollRun", run_id, reason=str(exc), before={"status": prior}
            )
            raise exc

        # Conditional update serializes concurrent compute calls
        result = await self.session.execute(
            update(PayrollRun)
            .where(PayrollRun.payroll_run_id == run_id, PayrollRun.status == prior)
            .values(status=PayrollRunStatus.COMPUTING.value)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError(
                prior, PayrollRunStatus.COMPUTING.value, "run is already being computed"
            )
        await self.session.commit()
        logger.info("Computing payroll run %s (from %s)", run_id, prior)

        try:
            await self._compute_payslips(run, ctx)
        except Exception as exc:
            logger.exception("Payroll run %s failed; restoring status %s", run_id, prior)
            await self.session.rollback()
            await self.session.execute(
                update(PayrollRun)
                .where(PayrollRun.payroll_run_id == run_id)
                .values(status=prior)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            await self.session.refresh(run)
            self.audit.rejected(
                ctx,
                action,
                "PayrollRun",
                run_id,
                reason=str(exc),
                before={"status": PayrollRunStatus.COMPUTING.value},
                after={"status": prior},
            )
            raise

        run.status = PayrollRunStatus.REVIEW.value
        run.computed_at = utcnow()
        await self.session.flush()
        logger.info(
            "Payroll run %s computed: %d payslips, %d failed",
            run_id,
            run.employee_count,
            run.failed_count,
        )
        self.audit.record(
            ctx,
            action,
            "PayrollRun",
            run_id,
            before={"status": prior},
            after={
                "status": run.status,
                "employee_count": run.employee_count,
                "failed_count": run.failed_count,
                "total_net": str(run.total_net),
            },
        )
        return run

    async def _compute_payslips(self, run: PayrollRun, ctx: RequestContext) -> None:
        period = run.pay_period
        await self._delete_payslips(run.payroll_run_id)

        employees = await self._employees_in_scope(run.company_id, period)
        adjustments = await self._adjustments_by_employee(run.payroll_run_id)
        penalties = await self.penalties.pending_deductions(run.company_id, period.end_date)

        inputs: list[EmployeePayInput] = []
        failures: list[PayslipResult] = []
        for employee in employees:
            try:
                records = await self.attendance.resolve_period(
                    employee, period.start_date, period.end_date, ctx
                )
                inputs.append(
                    await self._employee_input(
                        employee,
                        period,
                        records,
                        adjustments.get(employee.employee_id, []),
                        penalties.get(employee.employee_id, []),
                    )
                )
            except PayrollError as exc:
                logger.warning("Could not prepare employee %s: %s", employee.employee_id, exc)
                failures.append(
                    self.engine.failed_result(employee.employee_id, exc.code, str(exc))
                )

        outcome = self.engine.compute_payroll(inputs)
        snapshots = {inp.employee_id: inp.profile for inp in inputs}
        by_id = {e.employee_id: e for e in employees}
        results = outcome.results + failures

        for result in results:
            self.session.add(
                self._to_payslip(
                    run, result, by_id[result.employee_id], snapshots.get(result.employee_id)
                )
            )

        run.total_gross = LineItemBuilder.round_to_cents(outcome.total_gross)
        run.total_deductions = LineItemBuilder.round_to_cents(outcome.total_deductions)
        run.total_net = LineItemBuilder.round_to_cents(outcome.total_net)
        run.employee_count = len(results)
        run.failed_count = outcome.failed_count + len(failures)
        await self.session.flush()

    async def _employee_input(
        self,
        employee: Employee,
        period: PayPeriod,
        records: list[AttendanceDayRecord],
        adjustments: list[ManualAdjustmentItem],
        penalties: list[PenaltyDeduction],
    ) -> EmployeePayInput:
        profile = employee.profile_as_of(period.end_date)
        snapshot = None
        if profile is not None:
            snapshot = ProfileSnapshot(
                wage_type=WageType(profile.wage_type),
                base_rate=profile.base_rate,
                pay_frequency=PayFrequency(profile.pay_frequency),
                is_benefits_eligible=profile.is_benefits_eligible,
                is_ot_eligible=profile.is_ot_eligible,
                is_nd_eligible=profile.is_nd_eligible,
                allowances=tuple(
                    AllowanceSnapshot(a.name, a.monthly_amount, a.is_taxable)
                    for a in profile.allowances
                ),
                statutory_override=(
                    StatutoryOverride(
                        WageType(profile.declared_wage_type), profile.declared_base_rate
                    )
                    if profile.declared_wage_type is not None
                    else None
                ),
            )

        return EmployeePayInput(
            employee_id=employee.employee_id,
            employment_type=employee.employment_type,
            regularization_date=employee.regularization_date,
            profile=snapshot,
            period_start=period.start_date,
            period_end=period.end_date,
            days=[record_to_resolved(r) for r in records],
            adjustments=[
                AdjustmentInput(
                    adjustment_type=AdjustmentType(a.adjustment_type),
                    description=a.description,
                    amount=a.amount,
                    is_taxable=a.is_taxable,
                )
                for a in adjustments
            ],
            penalties=penalties,
            ytd=await self._ytd(employee.employee_id, employee.company_id, period),
        )

    async def _ytd(self, employee_id: UUID, company_id: UUID, period: PayPeriod) -> YtdTotals:
        """Year-to-date figures from the latest finalized payslip of the same year."""
        result = await self.session.execute(
            select(Payslip.ytd_taxable_income, Payslip.ytd_tax_withheld)
            .join(PayrollRun, PayrollRun.payroll_run_id == Payslip.payroll_run_id)
            .join(PayPeriod, PayPeriod.pay_period_id == PayrollRun.pay_period_id)
            .where(
                Payslip.employee_id == employee_id,
                Payslip.status == "COMPUTED",
                PayrollRun.company_id == company_id,
                PayrollRun.status.in_(FINAL_STATUS_VALUES),
                PayPeriod.end_date < period.start_date,
                PayPeriod.end_date >= date(period.start_date.year, 1, 1),
            )
            .order_by(PayPeriod.end_date.desc())
            .limit(1)
        )
        row = result.first()
        if row is None:
            return YtdTotals()
        return YtdTotals(taxable_income=row[0], tax_withheld=row[1])

    def _to_payslip(
        self,
        run: PayrollRun,
        result: PayslipResult,
        employee: Employee,
        snapshot: ProfileSnapshot | None,
    ) -> Payslip:
        def deducted(category: LineCategory) -> Decimal:
            return -result.amount_for(category)

        return Payslip(
            payroll_run_id=run.payroll_run_id,
            employee=employee,
            status="FAILED" if result.is_failed else "COMPUTED",
            wage_type=snapshot.wage_type.value if snapshot else None,
            base_rate=snapshot.base_rate if snapshot else None,
            pay_frequency=snapshot.pay_frequency.value if snapshot else None,
            is_benefits_eligible=snapshot.is_benefits_eligible if snapshot else False,
            daily_rate=result.daily_rate,
            minute_rate=result.minute_rate,
            statutory_version=result.statutory_version,
            gross_pay=result.gross_pay,
            total_deductions=result.total_deductions,
            net_pay=result.net_pay,
            basic_pay=result.basic_pay,
            taxable_income=result.taxable_income,
            withholding_tax=result.withholding_tax,
            sss_ee=deducted(LineCategory.SSS_EE),
            sss_er=result.amount_for(LineCategory.SSS_ER),
            philhealth_ee=deducted(LineCategory.PHILHEALTH_EE),
            philhealth_er=result.amount_for(LineCategory.PHILHEALTH_ER),
            pagibig_ee=deducted(LineCategory.PAGIBIG_EE),
            pagibig_er=result.amount_for(LineCategory.PAGIBIG_ER),
            ytd_taxable_income=result.ytd_taxable_income,
            ytd_tax_withheld=result.ytd_tax_withheld,
            total_overtime_minutes=result.total_overtime_minutes,
            lines_hash=result.lines_hash,
            error_code=result.error_code,
            error_message=result.error_message,
            lines=[
                PayslipLine(
                    category=line.category.value,
                    kind=line.kind.value,
                    description=line.description,
                    quantity=line.quantity,
                    rate=line.rate,
                    multiplier=line.multiplier,
                    amount=line.amount,
                    sort_order=line.sort_order,
                    rule_code=line.rule_code,
                    details=[
                        {"date": day.isoformat(), "amount": str(amount)}
                        for day, amount in line.contributions
                    ],
                    penalty_installment_id=line.penalty_installment_id,
                )
                for line in result.lines
            ],
            issues=[
                PayslipIssue(
                    code=issue.code,
                    message=issue.message,
                    severity=issue.severity,
                    attendance_date=issue.attendance_date,
                )
                for issue in result.issues
            ],
        )

    async def _employees_in_scope(self, company_id: UUID, period: PayPeriod) -> list[Employee]:
        result = await self.session.execute(
            select(Employee)
            .where(
                Employee.company_id == company_id,
                Employee.is_active.is_(True),
                Employee.hire_date <= period.end_date,
                or_(
                    Employee.separation_date.is_(None),
                    Employee.separation_date >= period.start_date,
                ),
            )
            .order_by(Employee.last_name, Employee.first_name, Employee.employee_code)
        )
        return list(result.scalars())

    async def _adjustments_by_employee(
        self, run_id: UUID
    ) -> dict[UUID, list[ManualAdjustmentItem]]:
        result = await self.session.execute(
            select(ManualAdjustmentItem)
            .where(ManualAdjustmentItem.payroll_run_id == run_id)
            .order_by(ManualAdjustmentItem.created_at, ManualAdjustmentItem.adjustment_id)
        )
        grouped: dict[UUID, list[ManualAdjustmentItem]] = {}
        for item in result.scalars():
            grouped.setdefault(item.employee_id, []).append(item)
        return grouped

    async def _delete_payslips(self, run_id: UUID) -> int:
        """Delete a run's payslips with their lines and issues."""
        payslip_ids = select(Payslip.payslip_id).where(Payslip.payroll_run_id == run_id)
        await self.session.execute(delete(PayslipLine).where(PayslipLine.payslip_id.in_(payslip_ids)))
        await self.session.execute(
            delete(PayslipIssue).where(PayslipIssue.payslip_id.in_(payslip_ids))
        )
        result = await self.session.execute(delete(Payslip).where(Payslip.payroll_run_id == run_id))
        return result.rowcount or 0

    # ===== Transitions =====

    async def approve(
        self,
        run_id: UUID,
        ctx: RequestContext,
        checklist_acknowledged: bool = False,
    ) -> PayrollRun:
        """Approve a REVIEW run, settling its penalty installments and locking
        its attendance in the same flush.

        Raises:
            SegregationOfDutiesError: Approver created the run
            InvalidTransitionError: Wrong status, checklist not acknowledged,
                failed or missing payslips, another final run for the period,
                or a penalty installment already settled by another run
        """
        run = await self.get_run(run_id, ctx)
        before = {"status": run.status}
        try:
            PayrollRunStateMachine.validate_approval(run, ctx.user_id, checklist_acknowledged)
            await self._ensure_only_final_run(run)
            settled = await self.penalties.settle_run(run)
        except InvalidTransitionError as exc:
            self.audit.rejected(
                ctx, "payroll_run.approve", "PayrollRun", run_id, reason=str(exc), before=before
            )
            raise

        locked = await self.locking.lock_attendance_for_run(run)
        now = utcnow()
        run.status = PayrollRunStatus.APPROVED.value
        run.approved_by = ctx.user_id
        run.approved_at = now
        run.checklist_acknowledged_at = now
        await self.session.flush()

        logger.info("Payroll run %s approved; %d attendance records locked", run_id, locked)
        self.audit.record(
            ctx,
            "payroll_run.approve",
            "PayrollRun",
            run_id,
            before=before,
            after={
                "status": run.status,
                "locked_records": locked,
                "penalty_installments": settled,
            },
        )
        return run

    async def release(self, run_id: UUID, ctx: RequestContext) -> PayrollRun:
        run = await self.get_run(run_id, ctx)
        before = {"status": run.status}
        self._validate(ctx, "payroll_run.release", run, PayrollRunStatus.RELEASED)

        run.status = PayrollRunStatus.RELEASED.value
        run.released_by = ctx.user_id
        run.released_at = utcnow()
        await self.session.flush()
        self.audit.record(
            ctx, "payroll_run.release", "PayrollRun", run_id, before=before, after={"status": run.status}
        )
        return run

    async def cancel(self, run_id: UUID, ctx: RequestContext) -> PayrollRun:
        """Cancel a DRAFT/REVIEW run, deleting its payslips.

        Attendance is left as is; it was never locked by this run.
        """
        run = await self.get_run(run_id, ctx)
        before = {"status": run.status}
        self._validate(ctx, "payroll_run.cancel", run, PayrollRunStatus.CANCELLED)

        deleted = await self._delete_payslips(run.payroll_run_id)
        run.status = PayrollRunStatus.CANCELLED.value
        run.cancelled_at = utcnow()
        await self.session.flush()
        self.audit.record(
            ctx,
            "payroll_run.cancel",
            "PayrollRun",
            run_id,
            before=before,
            after={"status": run.status, "payslips_deleted": deleted},
        )
        return run

    def _validate(
        self, ctx: RequestContext, action: str, run: PayrollRun, to_status: PayrollRunStatus
    ) -> None:
        try:
            PayrollRunStateMachine.validate_transition(run.status, to_status)
        except InvalidTransitionError as exc:
            self.audit.rejected(
                ctx,
                action,
                "PayrollRun",
                run.payroll_run_id,
                reason=str(exc),
                before={"status": run.status},
            )
            raise

    async def _ensure_only_final_run(self, run: PayrollRun) -> None:
        other_final = await self.session.scalar(
            select(
                exists().where(
                    PayrollRun.pay_period_id == run.pay_period_id,
                    PayrollRun.payroll_run_id != run.payroll_run_id,
                    PayrollRun.status.in_(FINAL_STATUS_VALUES),
                )
            )
        )
        if other_final:
            raise InvalidTransitionError(
                run.status,
                PayrollRunStatus.APPROVED.value,
                "another run of this pay period is already approved or released",
            )

    # ===== Queries =====

    async def error_summary(self, run_id: UUID, ctx: RequestContext) -> dict[str, int]:
        """Issue code -> number of issues across the run's payslips."""
        await self.get_run(run_id, ctx)
        result = await self.session.execute(
            select(PayslipIssue.code, func.count())
            .join(Payslip, Payslip.payslip_id == PayslipIssue.payslip_id)
            .where(Payslip.payroll_run_id == run_id)
            .group_by(PayslipIssue.code)
            .order_by(PayslipIssue.code)
        )
        return {code: count for code, count in result.all()}

    async def list_payslips(self, run_id: UUID, ctx: RequestContext) -> list[Payslip]:
        await self.get_run(run_id, ctx)
        result = await self.session.execute(
            select(Payslip)
            .join(Employee, Employee.employee_id == Payslip.employee_id)
            .where(Payslip.payroll_run_id == run_id)
            .order_by(Employee.last_name, Employee.first_name, Employee.employee_code)
        )
        return list(result.scalars())

    # ===== Manual adjustments =====

    async def add_adjustment(
        self,
        run_id: UUID,
        employee_id: UUID,
        adjustment_type: str,
        description: str,
        amount: Decimal,
        ctx: RequestContext,
        is_taxable: bool = False,
    ) -> ManualAdjustmentItem:
        """Attach a manual earning or deduction; takes effect on the next compute."""
        run = await self.get_run(run_id, ctx)
        self._ensure_inputs_mutable(ctx, "adjustment.created", run)
        parsed = validate_adjustment(adjustment_type, description, amount)

        employee = await self.session.get(Employee, employee_id)
        if employee is None or employee.company_id != ctx.company_id:
            raise NotFoundError("Employee", employee_id)

        item = ManualAdjustmentItem(
            payroll_run_id=run_id,
            employee_id=employee_id,
            adjustment_type=parsed.value,
            description=description.strip(),
            amount=amount,
            is_taxable=is_taxable,
            created_by=ctx.user_id,
        )
        self.session.add(item)
        await self.session.flush()
        self.audit.record(
            ctx,
            "adjustment.created",
            "ManualAdjustmentItem",
            item.adjustment_id,
            after={
                "payroll_run_id": str(run_id),
                "employee_id": str(employee_id),
                "adjustment_type": item.adjustment_type,
                "amount": str(item.amount),
            },
        )
        return item

    async def remove_adjustment(self, adjustment_id: UUID, ctx: RequestContext) -> None:
        item = await self.session.get(ManualAdjustmentItem, adjustment_id)
        if item is None:
            raise NotFoundError("ManualAdjustmentItem", adjustment_id)
        run = await self.get_run(item.payroll_run_id, ctx)
        self._ensure_inputs_mutable(ctx, "adjustment.deleted", run)

        before = {"adjustment_type": item.adjustment_type, "amount": str(item.amount)}
        await self.session.delete(item)
        await self.session.flush()
        self.audit.record(
            ctx, "adjustment.deleted", "ManualAdjustmentItem", adjustment_id, before=before
        )

    def _ensure_inputs_mutable(self, ctx: RequestContext, action: str, run: PayrollRun) -> None:
        if PayrollRunStateMachine.can_modify_inputs(run.status):
            return
        exc = LockedRecordConflictError(
            "PayrollRun", run.payroll_run_id, f"inputs cannot change in status {run.status}"
        )
        self.audit.rejected(ctx, action, "PayrollRun", run.payroll_run_id, reason=str(exc))
        raise exc
