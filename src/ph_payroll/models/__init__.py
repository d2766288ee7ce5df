"""ORM models."""

from ph_payroll.models.attendance import (
    AttendanceDayRecord,
    CalendarEvent,
    HolidayCalendar,
    ShiftTemplate,
)
from ph_payroll.models.base import Base, TimestampMixin
from ph_payroll.models.company import Company
from ph_payroll.models.employee import Employee, LeaveRecord, PayProfile, PayProfileAllowance
from ph_payroll.models.payroll import (
    ManualAdjustmentItem,
    PayPeriod,
    PayrollRun,
    Payslip,
    PayslipIssue,
    PayslipLine,
)
from ph_payroll.models.penalty import Penalty, PenaltyInstallment

__all__ = [
    "AttendanceDayRecord",
    "Base",
    "CalendarEvent",
    "Company",
    "Employee",
    "HolidayCalendar",
    "LeaveRecord",
    "ManualAdjustmentItem",
    "PayPeriod",
    "PayProfile",
    "PayProfileAllowance",
    "PayrollRun",
    "Payslip",
    "PayslipIssue",
    "PayslipLine",
    "Penalty",
    "PenaltyInstallment",
    "ShiftTemplate",
    "TimestampMixin",
]
