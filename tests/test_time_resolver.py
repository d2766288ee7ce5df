"""Tests for attendance day resolution."""

from datetime import date, datetime, time, timedelta
from uuid import uuid4

from hypothesis import given, settings, strategies as st

from ph_payroll.calculators.time_resolver import night_minutes, resolve_day
from ph_payroll.calculators.types import (
    AttendanceStatus,
    CalendarDay,
    CalendarDayType,
    DayInput,
    DayOverrides,
    DayType,
    LeaveDay,
    ShiftSchedule,
)

DAY_SHIFT = ShiftSchedule(
    start_time=time(8, 0), end_time=time(17, 0), break_minutes=60, grace_minutes_late=15
)
NIGHT_SHIFT = ShiftSchedule(
    start_time=time(22, 0), end_time=time(6, 0), is_overnight=True, break_minutes=60
)
WEDNESDAY = date(2026, 1, 7)
SATURDAY = date(2026, 1, 10)


def at(on_date: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(on_date, time(hour, minute))


def day_input(on_date=WEDNESDAY, time_in=None, time_out=None, shift=DAY_SHIFT, **kwargs) -> DayInput:
    return DayInput(
        attendance_date=on_date, shift=shift, time_in=time_in, time_out=time_out, **kwargs
    )


class TestDayType:
    """Ordered day-type rules: override, calendar, weekly rest day, workday."""

    def test_plain_weekday_is_workday(self):
        day = resolve_day(day_input())
        assert day.day_type == DayType.WORKDAY
        assert day.is_rest_day is False
        assert day.trace[0] == "day_type:default_workday"

    def test_weekly_rest_day(self):
        day = resolve_day(day_input(on_date=SATURDAY))
        assert day.day_type == DayType.REST_DAY
        assert day.is_rest_day is True
        assert day.status == AttendanceStatus.REST_DAY

    def test_custom_rest_days(self):
        """Wednesday off for an employee with a Wednesday rest pattern."""
        day = resolve_day(day_input(rest_days=frozenset({2})))
        assert day.day_type == DayType.REST_DAY

    def test_calendar_holiday(self):
        event = CalendarDay(CalendarDayType.REGULAR_HOLIDAY, "Rizal Day")
        day = resolve_day(day_input(calendar_event=event))

        assert day.day_type == DayType.REGULAR_HOLIDAY
        assert day.is_rest_day is False
        assert day.status == AttendanceStatus.HOLIDAY

    def test_holiday_on_rest_day_keeps_rest_day_flag(self):
        event = CalendarDay(CalendarDayType.SPECIAL_HOLIDAY, "Special non-working day")
        day = resolve_day(day_input(on_date=SATURDAY, calendar_event=event))

        assert day.day_type == DayType.SPECIAL_HOLIDAY
        assert day.is_rest_day is True

    def test_special_working_day_overrides_rest_day(self):
        event = CalendarDay(CalendarDayType.SPECIAL_WORKING, "Make-up workday")
        day = resolve_day(day_input(on_date=SATURDAY, calendar_event=event))

        assert day.day_type == DayType.WORKDAY
        assert day.status == AttendanceStatus.ABSENT

    def test_manual_override_beats_calendar(self):
        event = CalendarDay(CalendarDayType.REGULAR_HOLIDAY, "Labor Day")
        day = resolve_day(
            day_input(calendar_event=event, overrides=DayOverrides(day_type=DayType.WORKDAY))
        )

        assert day.day_type == DayType.WORKDAY
        assert day.trace[0] == "day_type:manual_override"

    def test_calendar_event_id_carried(self):
        event_id = uuid4()
        event = CalendarDay(CalendarDayType.REGULAR_HOLIDAY, "Independence Day", event_id)
        assert resolve_day(day_input(calendar_event=event)).calendar_event_id == event_id


class TestStatus:
    """Ordered status rules."""

    def test_full_day_present(self):
        day = resolve_day(day_input(time_in=at(WEDNESDAY, 8), time_out=at(WEDNESDAY, 17)))

        assert day.status == AttendanceStatus.PRESENT
        assert day.worked_minutes == 480
        assert day.standard_minutes == 480
        assert day.late_minutes == 0
        assert day.undertime_minutes == 0
        assert day.trace == ["day_type:default_workday", "status:time_logs"]

    def test_half_day(self):
        """Working half the scheduled minutes or less is a half day."""
        day = resolve_day(day_input(time_in=at(WEDNESDAY, 8), time_out=at(WEDNESDAY, 12)))

        assert day.status == AttendanceStatus.HALF_DAY
        assert day.worked_minutes == 180

    def test_no_logs_on_workday_is_absent(self):
        assert resolve_day(day_input()).status == AttendanceStatus.ABSENT

    def test_future_date_is_no_data(self):
        day = resolve_day(day_input(today=WEDNESDAY - timedelta(days=1)))
        assert day.status == AttendanceStatus.NO_DATA

    def test_no_schedule_is_no_data(self):
        assert resolve_day(day_input(shift=None)).status == AttendanceStatus.NO_DATA

    def test_approved_leave(self):
        day = resolve_day(day_input(leave=LeaveDay("VACATION", "APPROVED", is_paid=True)))

        assert day.status == AttendanceStatus.ON_LEAVE
        assert day.is_paid_leave is True

    def test_unpaid_leave(self):
        day = resolve_day(day_input(leave=LeaveDay("PERSONAL", "APPROVED", is_paid=False)))

        assert day.status == AttendanceStatus.ON_LEAVE
        assert day.is_paid_leave is False

    def test_pending_leave_does_not_excuse(self):
        day = resolve_day(day_input(leave=LeaveDay("VACATION", "PENDING")))
        assert day.status == AttendanceStatus.ABSENT

    def test_logs_win_over_leave(self):
        day = resolve_day(
            day_input(
                time_in=at(WEDNESDAY, 8),
                time_out=at(WEDNESDAY, 17),
                leave=LeaveDay("VACATION", "APPROVED"),
            )
        )
        assert day.status == AttendanceStatus.PRESENT

    def test_partial_logs_allowed(self):
        day = resolve_day(day_input(time_in=at(WEDNESDAY, 8)))

        assert day.status == AttendanceStatus.PRESENT
        assert day.is_incomplete is True
        assert day.worked_minutes == 0
        assert day.undertime_minutes == 0

    def test_partial_logs_disallowed(self):
        day = resolve_day(day_input(time_out=at(WEDNESDAY, 17), allow_partial_logs=False))

        assert day.status == AttendanceStatus.INCOMPLETE
        assert day.is_incomplete is True


class TestLateAndUndertime:
    def test_clock_in_within_grace(self):
        """08:05 against an 08:00 start with 15 minutes grace is not late."""
        day = resolve_day(day_input(time_in=at(WEDNESDAY, 8, 5), time_out=at(WEDNESDAY, 17)))
        assert day.late_minutes == 0

    def test_clock_in_past_grace(self):
        """08:20 with 15 minutes grace is 5 minutes late."""
        day = resolve_day(day_input(time_in=at(WEDNESDAY, 8, 20), time_out=at(WEDNESDAY, 17)))
        assert day.late_minutes == 5

    def test_undertime(self):
        day = resolve_day(day_input(time_in=at(WEDNESDAY, 8), time_out=at(WEDNESDAY, 16, 30)))

        assert day.undertime_minutes == 30
        assert day.ot_late_out_minutes == 0

    def test_early_out_grace(self):
        shift = ShiftSchedule(time(8, 0), time(17, 0), break_minutes=60, grace_minutes_early_out=10)
        day = resolve_day(
            day_input(time_in=at(WEDNESDAY, 8), time_out=at(WEDNESDAY, 16, 45), shift=shift)
        )
        assert day.undertime_minutes == 5

    def test_skipped_break_offsets_early_out(self):
        """Leaving an hour early after skipping the hour break is not undertime."""
        day = resolve_day(
            day_input(
                time_in=at(WEDNESDAY, 8),
                time_out=at(WEDNESDAY, 16),
                overrides=DayOverrides(break_minutes=0),
            )
        )

        assert day.worked_minutes == 480
        assert day.undertime_minutes == 0
        assert day.ot_break_minutes == 0

    def test_skipped_break_with_full_day_is_overtime(self):
        day = resolve_day(
            day_input(
                time_in=at(WEDNESDAY, 8),
                time_out=at(WEDNESDAY, 17),
                overrides=DayOverrides(break_minutes=0),
            )
        )

        assert day.worked_minutes == 540
        assert day.ot_break_minutes == 60

    def test_break_window_sets_break_length(self):
        shift = ShiftSchedule(
            time(8, 0), time(17, 0), break_minutes=60, break_start=time(12, 0), break_end=time(12, 30)
        )
        day = resolve_day(
            day_input(time_in=at(WEDNESDAY, 8), time_out=at(WEDNESDAY, 17), shift=shift)
        )

        assert shift.work_minutes == 510
        assert day.standard_minutes == 510
        assert day.worked_minutes == 510
        assert day.break_minutes_applied == 30
        assert day.undertime_minutes == 0

    def test_break_window_across_midnight(self):
        shift = ShiftSchedule(
            time(22, 0), time(6, 0), is_overnight=True, break_start=time(23, 30), break_end=time(0, 15)
        )
        assert shift.scheduled_break_minutes == 45
        assert shift.work_minutes == 435

    @given(offset=st.integers(min_value=-180, max_value=300), grace=st.integers(0, 60))
    @settings(max_examples=200)
    def test_late_formula(self, offset, grace):
        """late = max(0, clock-in - start - grace) for any clock-in."""
        shift = ShiftSchedule(time(8, 0), time(17, 0), break_minutes=60, grace_minutes_late=grace)
        time_in = at(WEDNESDAY, 8) + timedelta(minutes=offset)
        day = resolve_day(day_input(time_in=time_in, time_out=at(WEDNESDAY, 17), shift=shift))

        assert day.late_minutes == max(0, offset - grace)


class TestOvertimeMinutes:
    def test_early_in_and_late_out(self):
        day = resolve_day(day_input(time_in=at(WEDNESDAY, 7), time_out=at(WEDNESDAY, 19)))

        assert day.ot_early_in_minutes == 60
        assert day.ot_late_out_minutes == 120
        assert day.late_minutes == 0

    def test_rest_day_excess_over_standard(self):
        day = resolve_day(
            day_input(on_date=SATURDAY, time_in=at(SATURDAY, 8), time_out=at(SATURDAY, 19))
        )

        assert day.status == AttendanceStatus.PRESENT
        assert day.worked_minutes == 600
        assert day.overtime_rest_day_minutes == 120
        assert day.ot_late_out_minutes == 0

    def test_holiday_excess_over_standard(self):
        event = CalendarDay(CalendarDayType.SPECIAL_HOLIDAY, "Ninoy Aquino Day")
        day = resolve_day(
            day_input(calendar_event=event, time_in=at(WEDNESDAY, 8), time_out=at(WEDNESDAY, 19))
        )
        assert day.overtime_holiday_minutes == 120


class TestNightDifferential:
    def test_night_minutes_window(self):
        assert night_minutes(at(WEDNESDAY, 18), at(WEDNESDAY, 23)) == 60
        assert night_minutes(at(WEDNESDAY, 5), at(WEDNESDAY, 7)) == 60
        assert night_minutes(at(WEDNESDAY, 8), at(WEDNESDAY, 17)) == 0

    def test_overnight_shift(self):
        thursday = WEDNESDAY + timedelta(days=1)
        day = resolve_day(
            day_input(time_in=at(WEDNESDAY, 22), time_out=at(thursday, 6), shift=NIGHT_SHIFT)
        )

        assert day.scheduled_end == at(thursday, 6)
        assert day.status == AttendanceStatus.PRESENT
        assert day.worked_minutes == 420
        assert day.late_minutes == 0
        assert day.night_diff_minutes == 480
        assert day.night_diff_early_in_minutes == 0
        assert day.night_diff_late_out_minutes == 0

    def test_late_out_night_minutes_split(self):
        shift = ShiftSchedule(time(14, 0), time(22, 0), break_minutes=60)
        thursday = WEDNESDAY + timedelta(days=1)
        day = resolve_day(
            day_input(time_in=at(WEDNESDAY, 14), time_out=at(thursday, 0), shift=shift)
        )

        assert day.night_diff_minutes == 120
        assert day.night_diff_late_out_minutes == 120
        assert day.ot_late_out_minutes == 120

    @given(
        start=st.integers(min_value=0, max_value=24 * 60),
        length=st.integers(min_value=0, max_value=16 * 60),
        break_minutes=st.integers(min_value=0, max_value=120),
    )
    @settings(max_examples=200)
    def test_minute_buckets_bounded(self, start, length, break_minutes):
        """Derived minutes never exceed the logged span."""
        shift = ShiftSchedule(time(8, 0), time(17, 0), break_minutes=break_minutes)
        time_in = datetime.combine(WEDNESDAY, time(0, 0)) + timedelta(minutes=start)
        time_out = time_in + timedelta(minutes=length)
        day = resolve_day(day_input(time_in=time_in, time_out=time_out, shift=shift))

        assert 0 <= day.worked_minutes <= length
        assert 0 <= day.night_diff_minutes <= length
        assert (
            day.night_diff_early_in_minutes + day.night_diff_late_out_minutes
            <= day.night_diff_minutes
        )
