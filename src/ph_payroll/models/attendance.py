"""Shift template, attendance day, and holiday calendar models."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.models.base import Base, TimestampMixin


# ===== Shifts =====


class ShiftTemplate(Base, TimestampMixin):
    """Reusable shift schedule."""

    __tablename__ = "shift_template"

    shift_template_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_overnight: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    break_start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    break_end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    grace_minutes_late: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    grace_minutes_early_out: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="shift_template_company_code_unique"),
        CheckConstraint("break_minutes >= 0", name="shift_template_break_check"),
        CheckConstraint(
            "grace_minutes_late >= 0 AND grace_minutes_early_out >= 0",
            name="shift_template_grace_check",
        ),
    )


# ===== Holiday calendars =====


class HolidayCalendar(Base, TimestampMixin):
    """One calendar per company and year."""

    __tablename__ = "holiday_calendar"

    calendar_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("company_id", "year", name="holiday_calendar_company_year_unique"),
    )

    # Relationships
    events: Mapped[list[CalendarEvent]] = relationship(
        back_populates="calendar",
        order_by="CalendarEvent.event_date",
    )


class CalendarEvent(Base, TimestampMixin):
    """Holiday or special day in a calendar."""

    __tablename__ = "calendar_event"

    calendar_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    calendar_id: Mapped[UUID] = mapped_column(
        ForeignKey("holiday_calendar.calendar_id", ondelete="CASCADE"),
        nullable=False,
    )
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    day_type: Mapped[str] = mapped_column(String, nullable=False)
    is_national: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("calendar_id", "event_date", name="calendar_event_one_per_date"),
        CheckConstraint(
            "day_type IN ('REGULAR_HOLIDAY', 'SPECIAL_HOLIDAY', 'SPECIAL_WORKING', 'REST_DAY')",
            name="calendar_event_day_type_check",
        ),
    )

    # Relationships
    calendar: Mapped[HolidayCalendar] = relationship(back_populates="events")


# ===== Attendance =====


class AttendanceDayRecord(Base, TimestampMixin):
    """Resolved attendance for one employee on one date."""

    __tablename__ = "attendance_day_record"

    attendance_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False)
    shift_template_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("shift_template.shift_template_id"),
        nullable=True,
    )
    calendar_event_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("calendar_event.calendar_event_id", ondelete="RESTRICT"),
        nullable=True,
    )

    # Schedule (copied from shift at resolution time)
    scheduled_start: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    scheduled_end: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Raw clock events
    actual_time_in: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actual_time_out: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Resolved classification
    day_type: Mapped[str] = mapped_column(String, nullable=False, default="WORKDAY")
    is_rest_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attendance_status: Mapped[str] = mapped_column(String, nullable=False, default="NO_DATA")
    is_paid_leave: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_incomplete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Derived minute buckets
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    undertime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ot_early_in_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ot_late_out_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ot_break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_rest_day_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_holiday_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    night_diff_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    night_diff_early_in_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    night_diff_late_out_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    break_minutes_applied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    worked_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    standard_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=480)

    # Manual overrides
    day_type_override: Mapped[str | None] = mapped_column(String, nullable=True)
    schedule_override_start: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    schedule_override_end: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    break_minutes_override: Mapped[int | None] = mapped_column(Integer, nullable=True)
    daily_rate_override: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    early_in_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    late_out_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    late_in_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    early_out_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Locking
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_by_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id"),
        nullable=True,
    )
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)

    source: Mapped[str] = mapped_column(String, nullable=False, default="SYSTEM")
    remarks: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "attendance_date", name="attendance_employee_date_unique"),
        CheckConstraint(
            "day_type IN ('WORKDAY', 'REST_DAY', 'REGULAR_HOLIDAY', 'SPECIAL_HOLIDAY')",
            name="attendance_day_type_check",
        ),
        CheckConstraint(
            "day_type_override IS NULL OR day_type_override IN "
            "('WORKDAY', 'REST_DAY', 'REGULAR_HOLIDAY', 'SPECIAL_HOLIDAY')",
            name="attendance_day_type_override_check",
        ),
        CheckConstraint(
            "break_minutes_override IS NULL OR break_minutes_override >= 0",
            name="attendance_break_override_check",
        ),
        CheckConstraint("worked_minutes >= 0", name="attendance_worked_minutes_check"),
    )

    # Relationships
    shift_template: Mapped[ShiftTemplate | None] = relationship(lazy="selectin")
