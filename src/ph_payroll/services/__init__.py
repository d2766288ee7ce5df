"""Payroll services."""

from ph_payroll.services.attendance_service import AttendanceImportRow, AttendanceService
from ph_payroll.services.audit import AuditCollector, AuditEmitter, AuditOutcome, AuditRecord
from ph_payroll.services.calendar_service import CalendarService
from ph_payroll.services.diff_service import DiffService, RunComparison
from ph_payroll.services.locking_service import LockingService
from ph_payroll.services.payroll_run_service import PayrollRunService
from ph_payroll.services.penalty_service import PenaltyService
from ph_payroll.services.shift_service import ShiftTemplateService
from ph_payroll.services.state_machine import PayrollRunStateMachine, PayrollRunStatus
from ph_payroll.services.thirteenth_month_service import ThirteenthMonthPay, ThirteenthMonthService

__all__ = [
    "AttendanceImportRow",
    "AttendanceService",
    "AuditCollector",
    "AuditEmitter",
    "AuditOutcome",
    "AuditRecord",
    "CalendarService",
    "DiffService",
    "LockingService",
    "PayrollRunService",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "PenaltyService",
    "RunComparison",
    "ShiftTemplateService",
    "ThirteenthMonthPay",
    "ThirteenthMonthService",
]
