"""Penalty installments: issuing, cancelling, and settling through payroll runs."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ph_payroll.errors import InvalidPenaltyError, InvalidTransitionError, NotFoundError
from ph_payroll.services import AuditOutcome, PayrollRunStatus, PenaltyService
from ph_payroll.services.penalty_service import split_installments

from .conftest import workday_rows


@pytest.fixture
def penalty_service(session, audit) -> PenaltyService:
    return PenaltyService(session, audit=audit)


@pytest.fixture
async def lost_id(penalty_service, employee, ctx):
    """1,000 over three periods, effective from the first period."""
    return await penalty_service.create_penalty(
        employee.employee_id, "Lost company ID", Decimal("1000"), 3, date(2026, 1, 1), ctx
    )


@pytest.fixture
async def second_period_attendance(attendance_service, employee, second_pay_period, ctx):
    rows = workday_rows(
        employee.employee_code, second_pay_period.start_date, second_pay_period.end_date
    )
    assert not (await attendance_service.import_rows(rows, ctx)).errors


def penalty_lines(payslip):
    return [ln for ln in payslip.lines if ln.category == "PENALTY_DEDUCTION"]


class TestSplitInstallments:
    def test_remainder_on_last(self):
        assert split_installments(Decimal("1000.00"), 3) == [
            Decimal("333.33"),
            Decimal("333.33"),
            Decimal("333.34"),
        ]

    def test_single(self):
        assert split_installments(Decimal("150.50"), 1) == [Decimal("150.50")]

    def test_always_sums_to_total(self):
        amounts = split_installments(Decimal("100.00"), 7)
        assert sum(amounts) == Decimal("100.00")
        assert amounts[-1] == Decimal("14.32")


class TestCreatePenalty:
    async def test_schedule_created(self, lost_id, audit_log):
        assert lost_id.status == "ACTIVE"
        assert lost_id.installment_amount == Decimal("333.33")
        assert lost_id.total_deducted == Decimal("0")
        assert [i.installment_number for i in lost_id.installments] == [1, 2, 3]
        assert lost_id.installments[-1].amount == Decimal("333.34")
        assert audit_log.actions() == ["penalty.created"]

    @pytest.mark.parametrize(
        "description,amount,count",
        [
            ("", Decimal("100"), 1),
            ("Damage", Decimal("0"), 1),
            ("Damage", Decimal("-5"), 1),
            ("Damage", Decimal("100"), 0),
            ("Damage", Decimal("0.05"), 10),
        ],
    )
    async def test_rejected(self, penalty_service, employee, ctx, description, amount, count):
        with pytest.raises(InvalidPenaltyError):
            await penalty_service.create_penalty(
                employee.employee_id, description, amount, count, date(2026, 1, 1), ctx
            )

    async def test_unknown_employee(self, penalty_service, ctx):
        with pytest.raises(NotFoundError):
            await penalty_service.create_penalty(
                uuid4(), "Damage", Decimal("100"), 1, date(2026, 1, 1), ctx
            )


class TestCancelPenalty:
    async def test_cancel(self, penalty_service, lost_id, ctx, audit_log):
        penalty = await penalty_service.cancel_penalty(lost_id.penalty_id, "Waived by HR", ctx)

        assert penalty.status == "CANCELLED"
        assert penalty.cancel_reason == "Waived by HR"
        assert audit_log.actions() == ["penalty.created", "penalty.cancelled"]

    async def test_reason_required(self, penalty_service, lost_id, ctx, audit_log):
        with pytest.raises(InvalidPenaltyError, match="reason"):
            await penalty_service.cancel_penalty(lost_id.penalty_id, "  ", ctx)

        assert lost_id.status == "ACTIVE"
        assert audit_log.actions(AuditOutcome.REJECTED) == ["penalty.cancelled"]

    async def test_already_cancelled(self, penalty_service, lost_id, ctx):
        await penalty_service.cancel_penalty(lost_id.penalty_id, "Waived", ctx)

        with pytest.raises(InvalidPenaltyError, match="CANCELLED"):
            await penalty_service.cancel_penalty(lost_id.penalty_id, "Again", ctx)

    async def test_cancelled_not_deducted(self, penalty_service, lost_id, company, ctx):
        await penalty_service.cancel_penalty(lost_id.penalty_id, "Waived", ctx)
        assert await penalty_service.pending_deductions(company.company_id, date(2026, 1, 15)) == {}


class TestPendingDeductions:
    async def test_first_installment_only(self, penalty_service, lost_id, employee, company):
        pending = await penalty_service.pending_deductions(company.company_id, date(2026, 1, 15))

        [deduction] = pending[employee.employee_id]
        assert deduction.installment_id == lost_id.installments[0].installment_id
        assert deduction.amount == Decimal("333.33")
        assert deduction.description == "Lost company ID (1/3)"

    async def test_not_yet_effective(self, penalty_service, employee, company, ctx):
        await penalty_service.create_penalty(
            employee.employee_id, "Uniform", Decimal("200"), 1, date(2026, 1, 20), ctx
        )

        assert await penalty_service.pending_deductions(company.company_id, date(2026, 1, 15)) == {}
        later = await penalty_service.pending_deductions(company.company_id, date(2026, 1, 31))
        assert len(later[employee.employee_id]) == 1

    async def test_one_line_per_penalty(self, penalty_service, lost_id, employee, company, ctx):
        await penalty_service.create_penalty(
            employee.employee_id, "Uniform", Decimal("200"), 2, date(2026, 1, 1), ctx
        )

        pending = await penalty_service.pending_deductions(company.company_id, date(2026, 1, 15))
        assert [d.description for d in pending[employee.employee_id]] == [
            "Lost company ID (1/3)",
            "Uniform (1/2)",
        ]


class TestPayrollSettlement:
    async def test_payslip_carries_installment(self, lost_id, reviewed_run, run_service, ctx):
        slip = (await run_service.list_payslips(reviewed_run.payroll_run_id, ctx))[0]

        [line] = penalty_lines(slip)
        assert line.amount == Decimal("-333.33")
        assert line.penalty_installment_id == lost_id.installments[0].installment_id
        assert slip.net_pay == Decimal("9591.67")

    async def test_approval_settles_installment(
        self, lost_id, reviewed_run, run_service, approver_ctx, audit_log
    ):
        await run_service.approve(
            reviewed_run.payroll_run_id, approver_ctx, checklist_acknowledged=True
        )

        first = lost_id.installments[0]
        assert first.is_deducted is True
        assert first.payroll_run_id == reviewed_run.payroll_run_id
        assert lost_id.total_deducted == Decimal("333.33")
        assert lost_id.status == "ACTIVE"
        assert audit_log.records[-1].after["penalty_installments"] == 1

    async def test_next_run_takes_next_installment(
        self,
        lost_id,
        approved_run,
        run_service,
        second_pay_period,
        second_period_attendance,
        ctx,
    ):
        run = await run_service.create_run(second_pay_period.pay_period_id, ctx)
        await run_service.compute(run.payroll_run_id, ctx)

        slip = (await run_service.list_payslips(run.payroll_run_id, ctx))[0]
        [line] = penalty_lines(slip)
        assert line.description == "Lost company ID (2/3)"
        assert line.penalty_installment_id == lost_id.installments[1].installment_id

    async def test_single_installment_completes(
        self, penalty_service, employee, reviewed_run, run_service, approver_ctx, ctx
    ):
        penalty = await penalty_service.create_penalty(
            employee.employee_id, "Damaged tool", Decimal("450"), 1, date(2026, 1, 5), ctx
        )
        await run_service.recompute(reviewed_run.payroll_run_id, ctx)

        await run_service.approve(
            reviewed_run.payroll_run_id, approver_ctx, checklist_acknowledged=True
        )

        assert penalty.status == "COMPLETED"
        assert penalty.completed_at is not None
        assert penalty.total_deducted == Decimal("450.00")

    async def test_stale_installment_blocks_approval(
        self,
        lost_id,
        reviewed_run,
        run_service,
        second_pay_period,
        second_period_attendance,
        ctx,
        approver_ctx,
        audit_log,
    ):
        """Both runs picked installment 1 before either was approved."""
        other = await run_service.create_run(second_pay_period.pay_period_id, ctx)
        await run_service.compute(other.payroll_run_id, ctx)
        await run_service.approve(
            reviewed_run.payroll_run_id, approver_ctx, checklist_acknowledged=True
        )

        with pytest.raises(InvalidTransitionError, match="already deducted"):
            await run_service.approve(
                other.payroll_run_id, approver_ctx, checklist_acknowledged=True
            )

        assert other.status == PayrollRunStatus.REVIEW.value
        assert audit_log.actions(AuditOutcome.REJECTED) == ["payroll_run.approve"]
        assert lost_id.installments[0].payroll_run_id == reviewed_run.payroll_run_id
