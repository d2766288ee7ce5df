"""13th-month pay endpoint."""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Path

from ph_payroll.api.dependencies import Context, DbSession
from ph_payroll.api.schemas import ThirteenthMonthItem, ThirteenthMonthResponse
from ph_payroll.services.thirteenth_month_service import ThirteenthMonthService

router = APIRouter(prefix="/thirteenth-month", tags=["thirteenth-month"])


@router.post("/{year}", response_model=ThirteenthMonthResponse)
async def compute_thirteenth_month(
    db: DbSession,
    ctx: Context,
    year: Annotated[int, Path(ge=2000, le=2100)],
) -> ThirteenthMonthResponse:
    pay = await ThirteenthMonthService(db).compute(year, ctx)
    return ThirteenthMonthResponse(
        year=year,
        items=[ThirteenthMonthItem.model_validate(p) for p in pay],
        total=sum((p.amount for p in pay), Decimal("0")),
    )
