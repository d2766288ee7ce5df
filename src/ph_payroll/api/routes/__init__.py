"""API routes."""

from ph_payroll.api.routes.calendars import router as calendars_router
from ph_payroll.api.routes.health import router as health_router
from ph_payroll.api.routes.payroll_runs import router as payroll_runs_router
from ph_payroll.api.routes.penalties import router as penalties_router
from ph_payroll.api.routes.thirteenth_month import router as thirteenth_month_router

__all__ = [
    "calendars_router",
    "health_router",
    "payroll_runs_router",
    "penalties_router",
    "thirteenth_month_router",
]
