"""Resolve one employee-day of attendance into derived minute buckets.

Day type and attendance status are decided by ordered rule lists evaluated
short-circuit; the first rule that returns a decision wins. Every minute
computation runs on a single continuous timeline anchored to the shift's
calendar date, so overnight shifts need no special casing beyond pushing the
scheduled end to the next day.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from ph_payroll.calculators.types import (
    AttendanceStatus,
    CalendarDayType,
    DayInput,
    DayType,
    ResolvedDay,
)

DEFAULT_STANDARD_MINUTES = 480
NIGHT_START = time(22, 0)
NIGHT_END = time(6, 0)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end (negative when end precedes start)."""
    return int((end - start).total_seconds() // 60)


def overlap_minutes(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> int:
    start = max(a_start, b_start)
    end = min(a_end, b_end)
    return max(0, minutes_between(start, end))


def night_minutes(start: datetime, end: datetime) -> int:
    """Minutes of [start, end] falling inside any 22:00-06:00 window."""
    if end <= start:
        return 0
    total = 0
    day = start.date() - timedelta(days=1)
    while day <= end.date():
        window_start = datetime.combine(day, NIGHT_START, tzinfo=start.tzinfo)
        window_end = datetime.combine(day + timedelta(days=1), NIGHT_END, tzinfo=start.tzinfo)
        total += overlap_minutes(start, end, window_start, window_end)
        day += timedelta(days=1)
    return total


# ===== Day type rules =====


@dataclass(frozen=True)
class DayTypeDecision:
    day_type: DayType
    is_rest_day: bool


class ManualOverrideRule:
    """An override stored on the record is authoritative."""

    name = "manual_override"

    def apply(self, inp: DayInput) -> DayTypeDecision | None:
        override = inp.overrides.day_type
        if override is None:
            return None
        override = DayType(override)
        if override == DayType.REST_DAY:
            return DayTypeDecision(override, True)
        if override == DayType.WORKDAY:
            return DayTypeDecision(override, False)
        return DayTypeDecision(override, _is_weekly_rest_day(inp))


class CalendarEventRule:
    name = "calendar_event"

    def apply(self, inp: DayInput) -> DayTypeDecision | None:
        event = inp.calendar_event
        if event is None:
            return None
        event_type = CalendarDayType(event.day_type)
        if event_type == CalendarDayType.SPECIAL_WORKING:
            return DayTypeDecision(DayType.WORKDAY, False)
        if event_type == CalendarDayType.REST_DAY:
            return DayTypeDecision(DayType.REST_DAY, True)
        return DayTypeDecision(DayType(event_type.value), _is_weekly_rest_day(inp))


class WeeklyRestDayRule:
    name = "weekly_rest_day"

    def apply(self, inp: DayInput) -> DayTypeDecision | None:
        if _is_weekly_rest_day(inp):
            return DayTypeDecision(DayType.REST_DAY, True)
        return None


class DefaultWorkdayRule:
    name = "default_workday"

    def apply(self, inp: DayInput) -> DayTypeDecision | None:
        return DayTypeDecision(DayType.WORKDAY, False)


DAY_TYPE_RULES = (
    ManualOverrideRule(),
    CalendarEventRule(),
    WeeklyRestDayRule(),
    DefaultWorkdayRule(),
)


def _is_weekly_rest_day(inp: DayInput) -> bool:
    return inp.attendance_date.weekday() in inp.rest_days


# ===== Status rules =====


@dataclass(frozen=True)
class StatusContext:
    """Facts available to status rules after the day type is known."""

    inp: DayInput
    day_type: DayType
    has_schedule: bool
    worked_minutes: int
    scheduled_work_minutes: int


class TimeLogsRule:
    """Explicit time logs win over everything else."""

    name = "time_logs"

    def apply(self, ctx: StatusContext) -> AttendanceStatus | None:
        inp = ctx.inp
        if inp.time_in is None and inp.time_out is None:
            return None
        if inp.time_in is None or inp.time_out is None:
            if inp.allow_partial_logs:
                return AttendanceStatus.PRESENT
            return AttendanceStatus.INCOMPLETE
        if (
            ctx.day_type == DayType.WORKDAY
            and ctx.scheduled_work_minutes > 0
            and ctx.worked_minutes * 2 <= ctx.scheduled_work_minutes
        ):
            return AttendanceStatus.HALF_DAY
        return AttendanceStatus.PRESENT


class ApprovedLeaveRule:
    name = "approved_leave"

    def apply(self, ctx: StatusContext) -> AttendanceStatus | None:
        leave = ctx.inp.leave
        if leave is not None and leave.status == "APPROVED":
            return AttendanceStatus.ON_LEAVE
        return None


class NonWorkingDayRule:
    name = "non_working_day"

    def apply(self, ctx: StatusContext) -> AttendanceStatus | None:
        if ctx.day_type == DayType.REST_DAY:
            return AttendanceStatus.REST_DAY
        if ctx.day_type.is_holiday:
            return AttendanceStatus.HOLIDAY
        return None


class FutureDateRule:
    name = "future_date"

    def apply(self, ctx: StatusContext) -> AttendanceStatus | None:
        today = ctx.inp.today
        if today is not None and ctx.inp.attendance_date > today:
            return AttendanceStatus.NO_DATA
        return None


class AbsentRule:
    """A scheduled workday with nothing recorded is an absence.

    Without any schedule the day is undetermined.
    """

    name = "absent"

    def apply(self, ctx: StatusContext) -> AttendanceStatus | None:
        if not ctx.has_schedule:
            return AttendanceStatus.NO_DATA
        return AttendanceStatus.ABSENT


STATUS_RULES = (
    TimeLogsRule(),
    ApprovedLeaveRule(),
    NonWorkingDayRule(),
    FutureDateRule(),
    AbsentRule(),
)


# ===== Resolver =====


def resolve_day_type(inp: DayInput) -> tuple[DayTypeDecision, str]:
    for rule in DAY_TYPE_RULES:
        decision = rule.apply(inp)
        if decision is not None:
            return decision, rule.name
    raise AssertionError("DefaultWorkdayRule always decides")


def resolve_status(ctx: StatusContext) -> tuple[AttendanceStatus, str]:
    for rule in STATUS_RULES:
        status = rule.apply(ctx)
        if status is not None:
            return status, rule.name
    raise AssertionError("AbsentRule always decides")


def scheduled_window(inp: DayInput) -> tuple[datetime | None, datetime | None]:
    """Scheduled start/end for the day, overrides first."""
    overrides = inp.overrides
    if overrides.schedule_start is not None and overrides.schedule_end is not None:
        return overrides.schedule_start, overrides.schedule_end
    if inp.shift is None:
        return None, None
    start = datetime.combine(inp.attendance_date, inp.shift.start_time)
    end = datetime.combine(inp.attendance_date, inp.shift.end_time)
    if inp.shift.is_overnight or end <= start:
        end += timedelta(days=1)
    return start, end


def resolve_day(inp: DayInput) -> ResolvedDay:
    """Resolve one employee-day.

    Args:
        inp: Shift, clock events, calendar event, leave, and overrides for the date

    Returns:
        ResolvedDay with day type, status, and every derived minute bucket
    """
    decision, day_rule = resolve_day_type(inp)
    day_type = decision.day_type

    sched_start, sched_end = scheduled_window(inp)
    has_schedule = sched_start is not None and sched_end is not None

    shift_break = inp.shift.scheduled_break_minutes if inp.shift is not None else 0
    break_policy = (
        inp.overrides.break_minutes if inp.overrides.break_minutes is not None else shift_break
    )

    if has_schedule:
        if inp.overrides.schedule_start is not None and inp.overrides.schedule_end is not None:
            scheduled_work = max(0, minutes_between(sched_start, sched_end) - shift_break)
        else:
            scheduled_work = inp.shift.work_minutes
    else:
        scheduled_work = 0
    standard_minutes = scheduled_work or DEFAULT_STANDARD_MINUTES

    day = ResolvedDay(
        attendance_date=inp.attendance_date,
        day_type=day_type,
        is_rest_day=decision.is_rest_day,
        status=AttendanceStatus.NO_DATA,
        scheduled_start=sched_start,
        scheduled_end=sched_end,
        time_in=inp.time_in,
        time_out=inp.time_out,
        standard_minutes=standard_minutes,
        early_in_approved=inp.overrides.early_in_approved,
        late_out_approved=inp.overrides.late_out_approved,
        late_in_approved=inp.overrides.late_in_approved,
        early_out_approved=inp.overrides.early_out_approved,
        daily_rate_override=inp.overrides.daily_rate_override,
        calendar_event_id=(
            inp.calendar_event.calendar_event_id if inp.calendar_event is not None else None
        ),
    )

    has_both_logs = inp.time_in is not None and inp.time_out is not None
    if has_both_logs:
        day.break_minutes_applied = break_policy
        day.worked_minutes = max(0, minutes_between(inp.time_in, inp.time_out) - break_policy)
    day.is_incomplete = (inp.time_in is None) != (inp.time_out is None)

    status, status_rule = resolve_status(
        StatusContext(
            inp=inp,
            day_type=day_type,
            has_schedule=has_schedule,
            worked_minutes=day.worked_minutes,
            scheduled_work_minutes=scheduled_work,
        )
    )
    day.status = status
    day.trace = [f"day_type:{day_rule}", f"status:{status_rule}"]

    if status == AttendanceStatus.ON_LEAVE:
        day.is_paid_leave = inp.leave.is_paid

    if day_type == DayType.WORKDAY and has_schedule:
        _apply_workday_minutes(day, inp, shift_break)
    elif has_both_logs:
        excess = max(0, day.worked_minutes - standard_minutes)
        if day_type == DayType.REST_DAY:
            day.overtime_rest_day_minutes = excess
        elif day_type.is_holiday:
            day.overtime_holiday_minutes = excess

    if has_both_logs:
        _apply_night_minutes(day)

    return day


def _apply_workday_minutes(day: ResolvedDay, inp: DayInput, shift_break: int) -> None:
    sched_start, sched_end = day.scheduled_start, day.scheduled_end
    grace_late = inp.shift.grace_minutes_late if inp.shift is not None else 0
    grace_early = inp.shift.grace_minutes_early_out if inp.shift is not None else 0

    if inp.time_in is not None:
        day.late_minutes = max(0, minutes_between(sched_start, inp.time_in) - grace_late)
        day.ot_early_in_minutes = max(0, minutes_between(inp.time_in, sched_start))

    if inp.time_out is not None:
        day.ot_late_out_minutes = max(0, minutes_between(sched_end, inp.time_out))

    if inp.time_in is not None and inp.time_out is not None:
        early_out = max(0, minutes_between(inp.time_out, sched_end) - grace_early)
        # Leaving early by the break minutes skipped is not undertime
        break_shortened = max(0, shift_break - day.break_minutes_applied)
        day.undertime_minutes = max(0, early_out - break_shortened)
        if inp.time_out >= sched_end:
            day.ot_break_minutes = break_shortened


def _apply_night_minutes(day: ResolvedDay) -> None:
    time_in, time_out = day.time_in, day.time_out
    day.night_diff_minutes = night_minutes(time_in, time_out)
    if day.scheduled_start is None or day.scheduled_end is None:
        return
    if time_in < day.scheduled_start:
        day.night_diff_early_in_minutes = night_minutes(
            time_in, min(time_out, day.scheduled_start)
        )
    if time_out > day.scheduled_end:
        day.night_diff_late_out_minutes = night_minutes(
            max(time_in, day.scheduled_end), time_out
        )
