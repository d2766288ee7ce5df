"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from datetime import date, time, timedelta
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from ph_payroll.config import Settings
from ph_payroll.context import RequestContext
from ph_payroll.database import create_session_factory
from ph_payroll.models import (
    Base,
    CalendarEvent,
    Company,
    Employee,
    HolidayCalendar,
    PayPeriod,
    PayProfile,
    PayrollRun,
    ShiftTemplate,
)
from ph_payroll.services import (
    AttendanceImportRow,
    AttendanceService,
    AuditCollector,
    AuditEmitter,
    PayrollRunService,
)

# In-memory SQLite shared by every session of a test (StaticPool keeps one connection)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PERIOD_START = date(2026, 1, 1)
PERIOD_END = date(2026, 1, 15)
NEW_YEAR = date(2026, 1, 1)


@pytest.fixture
async def engine():
    """Create test database engine with a fresh schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with create_session_factory(engine)() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        large_change_ratio=Decimal("0.10"),
        high_ot_threshold_minutes=600,
        allow_partial_logs=True,
        tax_on_full_earnings=False,
        statutory_tables_path=None,
    )


@pytest.fixture
def audit_log() -> AuditCollector:
    """Collects every audit record emitted during the test."""
    return AuditCollector()


@pytest.fixture
def audit(audit_log: AuditCollector) -> AuditEmitter:
    emitter = AuditEmitter()
    emitter.on(audit_log)
    return emitter


# ============================================================================
# Reference data
# ============================================================================


@pytest.fixture
async def company(session: AsyncSession) -> Company:
    company = Company(company_id=uuid4(), name="Mabuhay Trading Corp", default_rest_days=[5, 6])
    session.add(company)
    await session.flush()
    return company


@pytest.fixture
async def day_shift(session: AsyncSession, company: Company) -> ShiftTemplate:
    """08:00-17:00 with a one-hour break and 15 minutes of late grace."""
    shift = ShiftTemplate(
        company_id=company.company_id,
        code="DAY",
        name="Day shift",
        start_time=time(8, 0),
        end_time=time(17, 0),
        is_overnight=False,
        break_minutes=60,
        grace_minutes_late=15,
        grace_minutes_early_out=0,
    )
    session.add(shift)
    await session.flush()
    return shift


def _employee(
    company: Company,
    shift: ShiftTemplate | None,
    code: str,
    first_name: str,
    last_name: str,
    base_rate: Decimal | None = Decimal("26000"),
) -> Employee:
    profiles = []
    if base_rate is not None:
        profiles.append(
            PayProfile(
                effective_date=date(2025, 1, 1),
                wage_type="MONTHLY",
                base_rate=base_rate,
                pay_frequency="SEMI_MONTHLY",
                allowances=[],
            )
        )
    return Employee(
        company_id=company.company_id,
        employee_code=code,
        first_name=first_name,
        last_name=last_name,
        employment_type="REGULAR",
        hire_date=date(2025, 1, 6),
        shift_template=shift,
        pay_profiles=profiles,
    )


@pytest.fixture
async def employee(session: AsyncSession, company: Company, day_shift: ShiftTemplate) -> Employee:
    """Regular employee on a 26,000 monthly wage, paid semi-monthly."""
    employee = _employee(company, day_shift, "E-001", "Juan", "Dela Cruz")
    session.add(employee)
    await session.flush()
    return employee


@pytest.fixture
async def employee_without_profile(
    session: AsyncSession, company: Company, day_shift: ShiftTemplate
) -> Employee:
    employee = _employee(company, day_shift, "E-002", "Maria", "Santos", base_rate=None)
    session.add(employee)
    await session.flush()
    return employee


@pytest.fixture
async def pay_period(session: AsyncSession, company: Company) -> PayPeriod:
    """First half of January 2026."""
    period = PayPeriod(
        company_id=company.company_id,
        start_date=PERIOD_START,
        end_date=PERIOD_END,
        pay_date=date(2026, 1, 20),
        pay_frequency="SEMI_MONTHLY",
    )
    session.add(period)
    await session.flush()
    return period


@pytest.fixture
async def second_pay_period(session: AsyncSession, company: Company) -> PayPeriod:
    period = PayPeriod(
        company_id=company.company_id,
        start_date=date(2026, 1, 16),
        end_date=date(2026, 1, 31),
        pay_date=date(2026, 2, 5),
        pay_frequency="SEMI_MONTHLY",
    )
    session.add(period)
    await session.flush()
    return period


@pytest.fixture
async def holiday_calendar(session: AsyncSession, company: Company) -> HolidayCalendar:
    """2026 calendar with New Year's Day as a regular holiday."""
    calendar = HolidayCalendar(
        company_id=company.company_id,
        year=2026,
        name="Philippine holidays 2026",
        is_active=True,
        events=[
            CalendarEvent(
                event_date=NEW_YEAR,
                name="New Year's Day",
                day_type="REGULAR_HOLIDAY",
                is_national=True,
            )
        ],
    )
    session.add(calendar)
    await session.flush()
    return calendar


@pytest.fixture
def ctx(company: Company) -> RequestContext:
    """Payroll preparer."""
    return RequestContext(company_id=company.company_id, user_id=uuid4(), as_of=date(2026, 2, 15))


@pytest.fixture
def approver_ctx(ctx: RequestContext) -> RequestContext:
    """A second user of the same company, allowed to approve."""
    return RequestContext(company_id=ctx.company_id, user_id=uuid4(), as_of=ctx.as_of)


# ============================================================================
# Services and prepared runs
# ============================================================================


@pytest.fixture
def run_service(session: AsyncSession, settings: Settings, audit: AuditEmitter) -> PayrollRunService:
    return PayrollRunService(session, settings=settings, audit=audit)


@pytest.fixture
def attendance_service(session: AsyncSession, audit: AuditEmitter) -> AttendanceService:
    return AttendanceService(session, audit=audit)


def workday_rows(
    employee_code: str,
    start: date,
    end: date,
    skip: frozenset[date] = frozenset(),
    time_in: time = time(8, 0),
    time_out: time = time(17, 0),
) -> list[AttendanceImportRow]:
    """Full-day clock events for every Monday-Friday in [start, end]."""
    rows = []
    current = start
    while current <= end:
        if current.weekday() < 5 and current not in skip:
            rows.append(AttendanceImportRow(employee_code, current, time_in, time_out))
        current += timedelta(days=1)
    return rows


@pytest.fixture
async def present_attendance(
    attendance_service: AttendanceService,
    employee: Employee,
    pay_period: PayPeriod,
    holiday_calendar: HolidayCalendar,
    ctx: RequestContext,
) -> None:
    """Employee worked every regular workday of the period, 08:00-17:00."""
    rows = workday_rows(
        employee.employee_code, pay_period.start_date, pay_period.end_date, skip=frozenset({NEW_YEAR})
    )
    result = await attendance_service.import_rows(rows, ctx)
    assert not result.errors


@pytest.fixture
async def reviewed_run(
    run_service: PayrollRunService,
    pay_period: PayPeriod,
    present_attendance: None,
    ctx: RequestContext,
) -> PayrollRun:
    run = await run_service.create_run(pay_period.pay_period_id, ctx)
    return await run_service.compute(run.payroll_run_id, ctx)


@pytest.fixture
async def approved_run(
    run_service: PayrollRunService,
    reviewed_run: PayrollRun,
    approver_ctx: RequestContext,
) -> PayrollRun:
    return await run_service.approve(
        reviewed_run.payroll_run_id, approver_ctx, checklist_acknowledged=True
    )
