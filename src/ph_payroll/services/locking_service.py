"""Attendance locking for payroll run approval."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.errors import LockedRecordConflictError
from ph_payroll.models import AttendanceDayRecord, Employee, Payslip, PayrollRun
from ph_payroll.models.base import utcnow


class LockingService:
    """Service for locking attendance at approval time.

    When a payroll run is approved, every attendance day of the period that
    belongs to an employee with a payslip in the run is marked locked and
    stamped with the run id. Locks are never released: calendar and shift
    edits that would change a locked day are rejected instead.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_attendance_for_run(self, run: PayrollRun) -> int:
        """Lock the attendance days referenced by the run's payslips.

        Returns count of newly locked records.
        """
        if run.pay_period is None:
            raise ValueError("Payroll run must have a pay period to lock attendance")

        employee_ids = select(Payslip.employee_id).where(
            Payslip.payroll_run_id == run.payroll_run_id
        )
        result = await self.session.execute(
            update(AttendanceDayRecord)
            .where(
                AttendanceDayRecord.employee_id.in_(employee_ids),
                AttendanceDayRecord.attendance_date >= run.pay_period.start_date,
                AttendanceDayRecord.attendance_date <= run.pay_period.end_date,
                AttendanceDayRecord.is_locked.is_(False),
            )
            .values(
                is_locked=True,
                locked_by_run_id=run.payroll_run_id,
                locked_at=utcnow(),
            )
        )
        return result.rowcount or 0

    async def has_locked_on_date(self, company_id: UUID, on_date: date) -> bool:
        """Whether any employee of the company has a locked day on the date."""
        company_employees = select(Employee.employee_id).where(Employee.company_id == company_id)
        stmt = select(
            exists().where(
                AttendanceDayRecord.employee_id.in_(company_employees),
                AttendanceDayRecord.attendance_date == on_date,
                AttendanceDayRecord.is_locked.is_(True),
            )
        )
        return bool(await self.session.scalar(stmt))

    async def has_locked_for_event(self, calendar_event_id: UUID) -> bool:
        stmt = select(
            exists().where(
                AttendanceDayRecord.calendar_event_id == calendar_event_id,
                AttendanceDayRecord.is_locked.is_(True),
            )
        )
        return bool(await self.session.scalar(stmt))

    async def is_event_referenced(self, calendar_event_id: UUID) -> bool:
        stmt = select(
            exists().where(AttendanceDayRecord.calendar_event_id == calendar_event_id)
        )
        return bool(await self.session.scalar(stmt))

    async def has_locked_for_shift(self, shift_template_id: UUID) -> bool:
        """Whether a locked day was resolved against the shift template.

        A day uses its own shift when one was imported with it, otherwise the
        employee's assigned shift.
        """
        assigned = select(Employee.employee_id).where(
            Employee.shift_template_id == shift_template_id
        )
        stmt = select(
            exists().where(
                AttendanceDayRecord.is_locked.is_(True),
                (AttendanceDayRecord.shift_template_id == shift_template_id)
                | (
                    AttendanceDayRecord.shift_template_id.is_(None)
                    & AttendanceDayRecord.employee_id.in_(assigned)
                ),
            )
        )
        return bool(await self.session.scalar(stmt))

    @staticmethod
    def ensure_unlocked(record: AttendanceDayRecord) -> None:
        """Raise LockedRecordConflictError if the record is locked."""
        if record.is_locked:
            raise LockedRecordConflictError(
                "AttendanceDayRecord",
                record.attendance_record_id,
                f"locked by payroll run {record.locked_by_run_id}",
            )
