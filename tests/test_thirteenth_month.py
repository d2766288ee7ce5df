"""13th-month pay and run comparison over finalized runs."""

from datetime import date, time
from decimal import Decimal
from uuid import uuid4

import pytest

from ph_payroll.calculators.diff import DiffFlag
from ph_payroll.errors import NotFoundError
from ph_payroll.services import AttendanceImportRow, DiffService, ThirteenthMonthService

from .conftest import NEW_YEAR, workday_rows


@pytest.fixture
def thirteenth_month(session, audit) -> ThirteenthMonthService:
    return ThirteenthMonthService(session, audit=audit)


@pytest.fixture
def diff_service(session, settings) -> DiffService:
    return DiffService(session, settings)


class TestThirteenthMonth:
    async def test_approved_run_counts(self, thirteenth_month, approved_run, employee, ctx, audit_log):
        pay = await thirteenth_month.compute(2026, ctx)

        assert len(pay) == 1
        assert pay[0].employee_id == employee.employee_id
        assert pay[0].employee_name == "Juan Dela Cruz"
        assert pay[0].basic_total == Decimal("10000.00")
        assert pay[0].amount == Decimal("833.33")
        assert audit_log.records[-1].action == "thirteenth_month.computed"

    async def test_review_run_ignored(self, thirteenth_month, reviewed_run, ctx):
        assert await thirteenth_month.compute(2026, ctx) == []

    async def test_other_year(self, thirteenth_month, approved_run, ctx):
        assert await thirteenth_month.compute(2025, ctx) == []

    async def test_lateness_reduces_basic(
        self, run_service, attendance_service, thirteenth_month, pay_period, holiday_calendar,
        employee, ctx, approver_ctx,
    ):
        """One day 30 minutes late (15 past grace) lowers the earned basic."""
        late_day = date(2026, 1, 2)
        rows = workday_rows(
            employee.employee_code,
            pay_period.start_date,
            pay_period.end_date,
            skip=frozenset({NEW_YEAR, late_day}),
        )
        rows.append(AttendanceImportRow(employee.employee_code, late_day, time(8, 30), time(17, 0)))
        await attendance_service.import_rows(rows, ctx)

        run = await run_service.create_run(pay_period.pay_period_id, ctx)
        await run_service.compute(run.payroll_run_id, ctx)
        await run_service.approve(run.payroll_run_id, approver_ctx, checklist_acknowledged=True)

        pay = await thirteenth_month.compute(2026, ctx)

        # 15 minutes at 125/60 per minute = 31.25
        assert pay[0].basic_total == Decimal("9968.75")
        assert pay[0].amount == Decimal("830.73")


class TestRunComparison:
    async def test_first_run_all_new(self, diff_service, reviewed_run, ctx):
        comparison = await diff_service.compare_runs(reviewed_run.payroll_run_id, ctx)

        assert comparison.previous_run_id is None
        assert [row.flags for row in comparison.diff.rows] == [[DiffFlag.NEW]]
        assert comparison.diff.totals.new_count == 1

    async def test_compares_with_previous_period(
        self, diff_service, run_service, attendance_service, approved_run, second_pay_period,
        employee, ctx,
    ):
        rows = workday_rows(
            employee.employee_code, second_pay_period.start_date, second_pay_period.end_date
        )
        await attendance_service.import_rows(rows, ctx)
        run = await run_service.create_run(second_pay_period.pay_period_id, ctx)
        await run_service.compute(run.payroll_run_id, ctx)

        comparison = await diff_service.compare_runs(run.payroll_run_id, ctx)

        assert comparison.previous_run_id == approved_run.payroll_run_id
        row = comparison.diff.rows[0]
        assert row.previous_gross == Decimal("11000.00")
        assert DiffFlag.NEW not in row.flags
        assert comparison.diff.removed == []

    async def test_unknown_run(self, diff_service, ctx):
        with pytest.raises(NotFoundError):
            await diff_service.compare_runs(uuid4(), ctx)
