"""Payroll run API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from ph_payroll.api.dependencies import AppSettings, Context, DbSession
from ph_payroll.api.schemas import (
    AdjustmentCreate,
    AdjustmentResponse,
    ApprovalRequest,
    ComparisonResponse,
    ComparisonRow,
    ComparisonTotals,
    ErrorResponse,
    ErrorSummaryResponse,
    PayrollRunCreate,
    PayrollRunResponse,
    PayslipResponse,
)
from ph_payroll.services.diff_service import DiffService
from ph_payroll.services.payroll_run_service import PayrollRunService

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])

RunId = Annotated[UUID, Path()]


# ============================================================================
# Payroll run CRUD
# ============================================================================


@router.post(
    "",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def create_payroll_run(
    db: DbSession, ctx: Context, settings: AppSettings, payload: PayrollRunCreate
) -> PayrollRunResponse:
    """Create a new payroll run in DRAFT status."""
    run = await PayrollRunService(db, settings).create_run(payload.pay_period_id, ctx)
    return PayrollRunResponse.model_validate(run)


@router.get(
    "/{run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    db: DbSession, ctx: Context, settings: AppSettings, run_id: RunId
) -> PayrollRunResponse:
    run = await PayrollRunService(db, settings).get_run(run_id, ctx)
    return PayrollRunResponse.model_validate(run)


# ============================================================================
# State transitions
# ============================================================================


@router.post(
    "/{run_id}/compute",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def compute_payroll_run(
    db: DbSession, ctx: Context, settings: AppSettings, run_id: RunId
) -> PayrollRunResponse:
    """Compute every employee; the run ends in REVIEW even if some payslips fail."""
    run = await PayrollRunService(db, settings).compute(run_id, ctx)
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/{run_id}/recompute",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def recompute_payroll_run(
    db: DbSession, ctx: Context, settings: AppSettings, run_id: RunId
) -> PayrollRunResponse:
    run = await PayrollRunService(db, settings).recompute(run_id, ctx)
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/{run_id}/approve",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_payroll_run(
    db: DbSession,
    ctx: Context,
    settings: AppSettings,
    run_id: RunId,
    payload: ApprovalRequest,
) -> PayrollRunResponse:
    """Approve a run and lock its attendance. The approver must not be the creator."""
    run = await PayrollRunService(db, settings).approve(
        run_id, ctx, checklist_acknowledged=payload.checklist_acknowledged
    )
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/{run_id}/release",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def release_payroll_run(
    db: DbSession, ctx: Context, settings: AppSettings, run_id: RunId
) -> PayrollRunResponse:
    run = await PayrollRunService(db, settings).release(run_id, ctx)
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/{run_id}/cancel",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_payroll_run(
    db: DbSession, ctx: Context, settings: AppSettings, run_id: RunId
) -> PayrollRunResponse:
    run = await PayrollRunService(db, settings).cancel(run_id, ctx)
    return PayrollRunResponse.model_validate(run)


# ============================================================================
# Results
# ============================================================================


@router.get(
    "/{run_id}/payslips",
    response_model=list[PayslipResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_payslips(
    db: DbSession, ctx: Context, settings: AppSettings, run_id: RunId
) -> list[PayslipResponse]:
    payslips = await PayrollRunService(db, settings).list_payslips(run_id, ctx)
    return [PayslipResponse.model_validate(p) for p in payslips]


@router.get(
    "/{run_id}/errors",
    response_model=ErrorSummaryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def error_summary(
    db: DbSession, ctx: Context, settings: AppSettings, run_id: RunId
) -> ErrorSummaryResponse:
    """Issue code -> affected payslip issue count."""
    errors = await PayrollRunService(db, settings).error_summary(run_id, ctx)
    return ErrorSummaryResponse(payroll_run_id=run_id, errors=errors)


@router.get(
    "/{run_id}/comparison",
    response_model=ComparisonResponse,
    responses={404: {"model": ErrorResponse}},
)
async def compare_payroll_run(
    db: DbSession,
    ctx: Context,
    settings: AppSettings,
    run_id: RunId,
    previous_run_id: Annotated[UUID | None, Query()] = None,
) -> ComparisonResponse:
    """Advisory comparison with the previous period's run; never blocks approval."""
    comparison = await DiffService(db, settings).compare_runs(run_id, ctx, previous_run_id)
    diff = comparison.diff
    return ComparisonResponse(
        current_run_id=comparison.current_run_id,
        previous_run_id=comparison.previous_run_id,
        rows=[
            ComparisonRow(
                employee_id=row.employee_id,
                employee_name=row.employee_name,
                current_gross=row.current_gross,
                previous_gross=row.previous_gross,
                delta=row.delta,
                delta_ratio=row.delta_ratio,
                overtime_minutes=row.overtime_minutes,
                flags=[flag.value for flag in row.flags],
            )
            for row in diff.rows
        ],
        removed_employee_ids=[p.employee_id for p in diff.removed],
        totals=ComparisonTotals.model_validate(diff.totals),
    )


# ============================================================================
# Manual adjustments
# ============================================================================


@router.post(
    "/{run_id}/adjustments",
    response_model=AdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def add_adjustment(
    db: DbSession,
    ctx: Context,
    settings: AppSettings,
    run_id: RunId,
    payload: AdjustmentCreate,
) -> AdjustmentResponse:
    item = await PayrollRunService(db, settings).add_adjustment(
        run_id,
        payload.employee_id,
        payload.adjustment_type.value,
        payload.description,
        payload.amount,
        ctx,
        is_taxable=payload.is_taxable,
    )
    return AdjustmentResponse.model_validate(item)
