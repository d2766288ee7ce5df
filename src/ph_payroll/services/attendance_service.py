"""Attendance import, manual overrides, and period resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.calculators.time_resolver import resolve_day
from ph_payroll.calculators.types import (
    AttendanceStatus,
    CalendarDay,
    CalendarDayType,
    DayInput,
    DayOverrides,
    DayType,
    LeaveDay,
    ResolvedDay,
    ShiftSchedule,
)
from ph_payroll.context import RequestContext
from ph_payroll.errors import LockedRecordConflictError, NotFoundError
from ph_payroll.models import (
    AttendanceDayRecord,
    CalendarEvent,
    Company,
    Employee,
    HolidayCalendar,
    LeaveRecord,
    ShiftTemplate,
)
from ph_payroll.services.audit import AuditEmitter, default_emitter
from ph_payroll.services.locking_service import LockingService

logger = logging.getLogger(__name__)

# Fields a user may change through update_record
EDITABLE_FIELDS = frozenset(
    {
        "actual_time_in",
        "actual_time_out",
        "day_type_override",
        "schedule_override_start",
        "schedule_override_end",
        "break_minutes_override",
        "early_in_approved",
        "late_out_approved",
        "late_in_approved",
        "early_out_approved",
        "daily_rate_override",
        "remarks",
    }
)

_RESOLVED_MINUTE_FIELDS = (
    "late_minutes",
    "undertime_minutes",
    "ot_early_in_minutes",
    "ot_late_out_minutes",
    "ot_break_minutes",
    "overtime_rest_day_minutes",
    "overtime_holiday_minutes",
    "night_diff_minutes",
    "night_diff_early_in_minutes",
    "night_diff_late_out_minutes",
    "break_minutes_applied",
    "worked_minutes",
    "standard_minutes",
)


@dataclass(frozen=True)
class AttendanceImportRow:
    """One validated row from an attendance import."""

    employee_code: str
    attendance_date: date
    time_in: time | None = None
    time_out: time | None = None
    shift_code: str | None = None
    remarks: str | None = None


@dataclass
class ImportResult:
    created: int = 0
    updated: int = 0
    # (row index, error code, message)
    errors: list[tuple[int, str, str]] = field(default_factory=list)


def to_shift_schedule(template: ShiftTemplate) -> ShiftSchedule:
    return ShiftSchedule(
        start_time=template.start_time,
        end_time=template.end_time,
        is_overnight=template.is_overnight,
        break_minutes=template.break_minutes,
        grace_minutes_late=template.grace_minutes_late,
        grace_minutes_early_out=template.grace_minutes_early_out,
        break_start=template.break_start_time,
        break_end=template.break_end_time,
    )


def clock_datetimes(
    on_date: date, time_in: time | None, time_out: time | None
) -> tuple[datetime | None, datetime | None]:
    """Combine import clock times with the date; a time-out before the time-in is next-day."""
    clock_in = datetime.combine(on_date, time_in) if time_in is not None else None
    clock_out = datetime.combine(on_date, time_out) if time_out is not None else None
    if clock_in is not None and clock_out is not None and clock_out < clock_in:
        clock_out += timedelta(days=1)
    return clock_in, clock_out


def apply_resolution(record: AttendanceDayRecord, day: ResolvedDay) -> None:
    """Write a resolved day onto its stored record."""
    record.day_type = day.day_type.value
    record.is_rest_day = day.is_rest_day
    record.attendance_status = day.status.value
    record.is_paid_leave = day.is_paid_leave
    record.is_incomplete = day.is_incomplete
    record.scheduled_start = day.scheduled_start
    record.scheduled_end = day.scheduled_end
    record.calendar_event_id = day.calendar_event_id
    for name in _RESOLVED_MINUTE_FIELDS:
        setattr(record, name, getattr(day, name))


def record_to_resolved(record: AttendanceDayRecord) -> ResolvedDay:
    """Rebuild the calculator view of a stored (possibly locked) record."""
    day = ResolvedDay(
        attendance_date=record.attendance_date,
        day_type=DayType(record.day_type),
        is_rest_day=record.is_rest_day,
        status=AttendanceStatus(record.attendance_status),
        scheduled_start=record.scheduled_start,
        scheduled_end=record.scheduled_end,
        time_in=record.actual_time_in,
        time_out=record.actual_time_out,
        is_paid_leave=record.is_paid_leave,
        is_incomplete=record.is_incomplete,
        early_in_approved=record.early_in_approved,
        late_out_approved=record.late_out_approved,
        late_in_approved=record.late_in_approved,
        early_out_approved=record.early_out_approved,
        daily_rate_override=record.daily_rate_override,
        calendar_event_id=record.calendar_event_id,
    )
    for name in _RESOLVED_MINUTE_FIELDS:
        setattr(day, name, getattr(record, name))
    return day


def _jsonable(value: Any) -> Any:
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _snapshot(record: AttendanceDayRecord, fields: list[str] | frozenset[str]) -> dict[str, Any]:
    return {name: _jsonable(getattr(record, name)) for name in sorted(fields)}


class AttendanceService:
    """Stores clock events and overrides, and resolves them into attendance days.

    Locked days are never rewritten: updates to them are audited as rejected
    and raise LockedRecordConflictError, and period resolution leaves them
    exactly as the approving run saw them.
    """

    def __init__(
        self,
        session: AsyncSession,
        audit: AuditEmitter | None = None,
        allow_partial_logs: bool = True,
    ):
        self.session = session
        self.audit = audit or default_emitter
        self.allow_partial_logs = allow_partial_logs
        self.locking = LockingService(session)

    async def import_rows(
        self, rows: list[AttendanceImportRow], ctx: RequestContext
    ) -> ImportResult:
        """Store imported clock events.

        Rows are independent: an unknown employee or shift code, or a locked
        day, is reported against its row index and the rest still import.
        Derived minutes are filled in by resolve_period.
        """
        result = ImportResult()
        employees: dict[str, Employee | None] = {}
        shifts: dict[str, ShiftTemplate | None] = {}

        for index, row in enumerate(rows):
            if row.employee_code not in employees:
                employees[row.employee_code] = await self._employee_by_code(
                    ctx.company_id, row.employee_code
                )
            employee = employees[row.employee_code]
            if employee is None:
                result.errors.append(
                    (index, NotFoundError.code, f"Unknown employee code {row.employee_code!r}")
                )
                continue

            template = None
            if row.shift_code:
                if row.shift_code not in shifts:
                    shifts[row.shift_code] = await self._shift_by_code(
                        ctx.company_id, row.shift_code
                    )
                template = shifts[row.shift_code]
                if template is None:
                    result.errors.append(
                        (index, NotFoundError.code, f"Unknown shift code {row.shift_code!r}")
                    )
                    continue

            clock_in, clock_out = clock_datetimes(row.attendance_date, row.time_in, row.time_out)
            record = await self._record_for(employee.employee_id, row.attendance_date)
            if record is not None and record.is_locked:
                exc = LockedRecordConflictError(
                    "AttendanceDayRecord", record.attendance_record_id, "imported over a locked day"
                )
                self.audit.rejected(
                    ctx,
                    "attendance.import",
                    "AttendanceDayRecord",
                    record.attendance_record_id,
                    reason=str(exc),
                )
                result.errors.append((index, exc.code, str(exc)))
                continue

            if record is None:
                record = AttendanceDayRecord(
                    employee_id=employee.employee_id,
                    attendance_date=row.attendance_date,
                    shift_template=template,
                    actual_time_in=clock_in,
                    actual_time_out=clock_out,
                    source="IMPORT",
                    remarks=row.remarks,
                )
                self.session.add(record)
                await self.session.flush()
                result.created += 1
                action = "attendance.created"
                before = None
            else:
                before = _snapshot(record, ["actual_time_in", "actual_time_out", "remarks"])
                record.actual_time_in = clock_in
                record.actual_time_out = clock_out
                if template is not None:
                    record.shift_template = template
                record.remarks = row.remarks
                record.source = "IMPORT"
                result.updated += 1
                action = "attendance.updated"

            self.audit.record(
                ctx,
                action,
                "AttendanceDayRecord",
                record.attendance_record_id,
                before=before,
                after=_snapshot(record, ["actual_time_in", "actual_time_out", "remarks"]),
            )

        await self.session.flush()
        logger.info(
            "Imported attendance: %d created, %d updated, %d rejected",
            result.created,
            result.updated,
            len(result.errors),
        )
        return result

    async def update_record(
        self, record_id: UUID, changes: dict[str, Any], ctx: RequestContext
    ) -> AttendanceDayRecord:
        """Apply manual overrides to one day and re-resolve it.

        Raises:
            NotFoundError: Record missing or outside the caller's company
            LockedRecordConflictError: Record is locked by an approved run
            ValueError: A field that cannot be edited
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        record = await self.session.get(AttendanceDayRecord, record_id)
        employee = (
            await self.session.get(Employee, record.employee_id) if record is not None else None
        )
        if record is None or employee is None or employee.company_id != ctx.company_id:
            raise NotFoundError("AttendanceDayRecord", record_id)

        before = _snapshot(record, frozenset(changes))
        try:
            self.locking.ensure_unlocked(record)
        except LockedRecordConflictError as exc:
            self.audit.rejected(
                ctx,
                "attendance.updated",
                "AttendanceDayRecord",
                record_id,
                reason=str(exc),
                before=before,
                after={k: _jsonable(v) for k, v in changes.items()},
            )
            raise

        for name, value in changes.items():
            if name == "day_type_override" and value is not None:
                value = DayType(value).value
            setattr(record, name, value)
        record.source = "MANUAL"

        await self.resolve_period(employee, record.attendance_date, record.attendance_date, ctx)
        self.audit.record(
            ctx,
            "attendance.updated",
            "AttendanceDayRecord",
            record_id,
            before=before,
            after=_snapshot(record, frozenset(changes)),
        )
        return record

    async def resolve_period(
        self, employee: Employee, start: date, end: date, ctx: RequestContext
    ) -> list[AttendanceDayRecord]:
        """Resolve every date in [start, end] for the employee.

        Missing days are created; unlocked days are recomputed from their clock
        events, shift, calendar, leave, and overrides. Locked days are returned
        unchanged.
        """
        existing = await self.session.execute(
            select(AttendanceDayRecord).where(
                AttendanceDayRecord.employee_id == employee.employee_id,
                AttendanceDayRecord.attendance_date >= start,
                AttendanceDayRecord.attendance_date <= end,
            )
        )
        records = {r.attendance_date: r for r in existing.scalars()}
        events = await self._calendar_events(employee.company_id, start, end)
        leaves = await self._leaves(employee.employee_id, start, end)
        rest_days = await self._rest_days(employee)

        resolved: list[AttendanceDayRecord] = []
        current = start
        while current <= end:
            record = records.get(current)
            if record is None:
                record = AttendanceDayRecord(
                    employee_id=employee.employee_id,
                    attendance_date=current,
                    source="SYSTEM",
                    shift_template=None,
                    is_locked=False,
                    early_in_approved=False,
                    late_out_approved=False,
                )
                self.session.add(record)
            if not record.is_locked:
                inp = self._day_input(record, employee, events.get(current), leaves, rest_days, ctx)
                apply_resolution(record, resolve_day(inp))
            resolved.append(record)
            current += timedelta(days=1)

        await self.session.flush()
        return resolved

    def _day_input(
        self,
        record: AttendanceDayRecord,
        employee: Employee,
        event: CalendarEvent | None,
        leaves: list[LeaveRecord],
        rest_days: frozenset[int],
        ctx: RequestContext,
    ) -> DayInput:
        on_date = record.attendance_date
        template = record.shift_template or employee.shift_template

        covering = [lv for lv in leaves if lv.covers(on_date)]
        leave = next((lv for lv in covering if lv.status == "APPROVED"), None)
        if leave is None and covering:
            leave = covering[0]

        return DayInput(
            attendance_date=on_date,
            shift=to_shift_schedule(template) if template is not None else None,
            time_in=record.actual_time_in,
            time_out=record.actual_time_out,
            calendar_event=(
                CalendarDay(
                    day_type=CalendarDayType(event.day_type),
                    name=event.name,
                    calendar_event_id=event.calendar_event_id,
                )
                if event is not None
                else None
            ),
            leave=(
                LeaveDay(leave_type=leave.leave_type, status=leave.status, is_paid=leave.is_paid)
                if leave is not None
                else None
            ),
            rest_days=rest_days,
            overrides=DayOverrides(
                day_type=DayType(record.day_type_override) if record.day_type_override else None,
                schedule_start=record.schedule_override_start,
                schedule_end=record.schedule_override_end,
                break_minutes=record.break_minutes_override,
                early_in_approved=bool(record.early_in_approved),
                late_out_approved=bool(record.late_out_approved),
                late_in_approved=bool(record.late_in_approved),
                early_out_approved=bool(record.early_out_approved),
                daily_rate_override=record.daily_rate_override,
            ),
            today=ctx.as_of,
            allow_partial_logs=self.allow_partial_logs,
        )

    async def _record_for(self, employee_id: UUID, on_date: date) -> AttendanceDayRecord | None:
        result = await self.session.execute(
            select(AttendanceDayRecord).where(
                AttendanceDayRecord.employee_id == employee_id,
                AttendanceDayRecord.attendance_date == on_date,
            )
        )
        return result.scalar_one_or_none()

    async def _employee_by_code(self, company_id: UUID, code: str) -> Employee | None:
        result = await self.session.execute(
            select(Employee).where(Employee.company_id == company_id, Employee.employee_code == code)
        )
        return result.scalar_one_or_none()

    async def _shift_by_code(self, company_id: UUID, code: str) -> ShiftTemplate | None:
        result = await self.session.execute(
            select(ShiftTemplate).where(
                ShiftTemplate.company_id == company_id, ShiftTemplate.code == code
            )
        )
        return result.scalar_one_or_none()

    async def _calendar_events(
        self, company_id: UUID, start: date, end: date
    ) -> dict[date, CalendarEvent]:
        result = await self.session.execute(
            select(CalendarEvent)
            .join(HolidayCalendar, HolidayCalendar.calendar_id == CalendarEvent.calendar_id)
            .where(
                HolidayCalendar.company_id == company_id,
                HolidayCalendar.is_active.is_(True),
                CalendarEvent.event_date >= start,
                CalendarEvent.event_date <= end,
            )
        )
        return {event.event_date: event for event in result.scalars()}

    async def _leaves(self, employee_id: UUID, start: date, end: date) -> list[LeaveRecord]:
        result = await self.session.execute(
            select(LeaveRecord)
            .where(
                LeaveRecord.employee_id == employee_id,
                LeaveRecord.start_date <= end,
                LeaveRecord.end_date >= start,
            )
            .order_by(LeaveRecord.start_date)
        )
        return list(result.scalars())

    async def _rest_days(self, employee: Employee) -> frozenset[int]:
        if employee.rest_days is not None:
            return frozenset(employee.rest_days)
        company = await self.session.get(Company, employee.company_id)
        return frozenset(company.default_rest_days if company is not None else (5, 6))

