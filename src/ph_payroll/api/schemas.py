"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from ph_payroll.calculators.types import AdjustmentType, CalendarDayType


# ============================================================================
# Payroll run schemas
# ============================================================================


class PayrollRunCreate(BaseModel):
    """Schema for creating a new payroll run."""

    pay_period_id: UUID


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    company_id: UUID
    pay_period_id: UUID
    status: str
    created_by: UUID
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    released_by: UUID | None = None
    released_at: datetime | None = None
    cancelled_at: datetime | None = None
    computed_at: datetime | None = None
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    employee_count: int
    failed_count: int
    created_at: datetime


class ApprovalRequest(BaseModel):
    """Schema for approval request."""

    checklist_acknowledged: bool = False


# ============================================================================
# Payslip schemas
# ============================================================================


class PayslipLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: str
    kind: str
    description: str
    quantity: Decimal | None = None
    rate: Decimal | None = None
    multiplier: Decimal | None = None
    amount: Decimal
    sort_order: int
    rule_code: str | None = None
    details: list[dict[str, Any]] = []
    penalty_installment_id: UUID | None = None


class PayslipIssueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    message: str
    severity: str
    attendance_date: date | None = None


class PayslipResponse(BaseModel):
    """Schema for payslip response."""

    model_config = ConfigDict(from_attributes=True)

    payslip_id: UUID
    employee_id: UUID
    employee_name: str | None = None
    status: str
    wage_type: str | None = None
    base_rate: Decimal | None = None
    pay_frequency: str | None = None
    daily_rate: Decimal | None = None
    statutory_version: str | None = None
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    taxable_income: Decimal
    withholding_tax: Decimal
    total_overtime_minutes: int
    lines_hash: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    lines: list[PayslipLineResponse] = []
    issues: list[PayslipIssueResponse] = []


class ErrorSummaryResponse(BaseModel):
    payroll_run_id: UUID
    errors: dict[str, int]


# ============================================================================
# Comparison schemas
# ============================================================================


class ComparisonRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    employee_name: str
    current_gross: Decimal
    previous_gross: Decimal | None = None
    delta: Decimal
    delta_ratio: Decimal | None = None
    overtime_minutes: int
    flags: list[str]


class ComparisonTotals(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_gross: Decimal
    previous_gross: Decimal
    delta: Decimal
    new_count: int
    removed_count: int
    flagged_count: int


class ComparisonResponse(BaseModel):
    """Review-stage comparison against an earlier run."""

    current_run_id: UUID
    previous_run_id: UUID | None = None
    rows: list[ComparisonRow]
    removed_employee_ids: list[UUID]
    totals: ComparisonTotals


# ============================================================================
# Adjustment schemas
# ============================================================================


class AdjustmentCreate(BaseModel):
    employee_id: UUID
    adjustment_type: AdjustmentType
    description: str
    amount: Decimal
    is_taxable: bool = False


class AdjustmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    adjustment_id: UUID
    payroll_run_id: UUID
    employee_id: UUID
    adjustment_type: str
    description: str
    amount: Decimal
    is_taxable: bool


# ============================================================================
# Calendar schemas
# ============================================================================


class CalendarEventCreate(BaseModel):
    event_date: date
    name: str
    day_type: CalendarDayType
    is_national: bool = True


class CalendarEventUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    event_date: date | None = None
    name: str | None = None
    day_type: CalendarDayType | None = None
    is_national: bool | None = None


class CalendarEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    calendar_event_id: UUID
    calendar_id: UUID
    event_date: date
    name: str
    day_type: str
    is_national: bool


# ============================================================================
# Penalty schemas
# ============================================================================


class PenaltyCreate(BaseModel):
    description: str
    total_amount: Decimal
    installment_count: int = 1
    effective_date: date
    remarks: str | None = None


class PenaltyCancel(BaseModel):
    reason: str


class PenaltyInstallmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    installment_id: UUID
    installment_number: int
    amount: Decimal
    is_deducted: bool
    deducted_at: datetime | None = None
    payroll_run_id: UUID | None = None


class PenaltyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    penalty_id: UUID
    employee_id: UUID
    description: str
    total_amount: Decimal
    installment_count: int
    installment_amount: Decimal
    total_deducted: Decimal
    effective_date: date
    status: str
    remarks: str | None = None
    cancel_reason: str | None = None
    installments: list[PenaltyInstallmentResponse]


# ============================================================================
# 13th-month schemas
# ============================================================================


class ThirteenthMonthItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    employee_name: str
    basic_total: Decimal
    amount: Decimal


class ThirteenthMonthResponse(BaseModel):
    year: int
    items: list[ThirteenthMonthItem]
    total: Decimal


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
