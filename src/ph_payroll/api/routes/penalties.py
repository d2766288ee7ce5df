"""Employee penalty API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from ph_payroll.api.dependencies import Context, DbSession
from ph_payroll.api.schemas import ErrorResponse, PenaltyCancel, PenaltyCreate, PenaltyResponse
from ph_payroll.services.penalty_service import PenaltyService

router = APIRouter(tags=["penalties"])


@router.post(
    "/employees/{employee_id}/penalties",
    response_model=PenaltyResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_penalty(
    db: DbSession,
    ctx: Context,
    employee_id: Annotated[UUID, Path()],
    payload: PenaltyCreate,
) -> PenaltyResponse:
    penalty = await PenaltyService(db).create_penalty(
        employee_id,
        payload.description,
        payload.total_amount,
        payload.installment_count,
        payload.effective_date,
        ctx,
        remarks=payload.remarks,
    )
    return PenaltyResponse.model_validate(penalty)


@router.get(
    "/employees/{employee_id}/penalties",
    response_model=list[PenaltyResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_penalties(
    db: DbSession,
    ctx: Context,
    employee_id: Annotated[UUID, Path()],
) -> list[PenaltyResponse]:
    penalties = await PenaltyService(db).list_penalties(employee_id, ctx)
    return [PenaltyResponse.model_validate(p) for p in penalties]


@router.post(
    "/penalties/{penalty_id}/cancel",
    response_model=PenaltyResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def cancel_penalty(
    db: DbSession,
    ctx: Context,
    penalty_id: Annotated[UUID, Path()],
    payload: PenaltyCancel,
) -> PenaltyResponse:
    """Stop further deductions; installments already settled are kept."""
    penalty = await PenaltyService(db).cancel_penalty(penalty_id, payload.reason, ctx)
    return PenaltyResponse.model_validate(penalty)
