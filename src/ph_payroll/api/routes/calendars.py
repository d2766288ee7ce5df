"""Holiday calendar API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Response, status

from ph_payroll.api.dependencies import Context, DbSession
from ph_payroll.api.schemas import (
    CalendarEventCreate,
    CalendarEventResponse,
    CalendarEventUpdate,
    ErrorResponse,
)
from ph_payroll.services.calendar_service import CalendarService

router = APIRouter(tags=["calendars"])


@router.post(
    "/calendars/{calendar_id}/events",
    response_model=CalendarEventResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def create_calendar_event(
    db: DbSession,
    ctx: Context,
    calendar_id: Annotated[UUID, Path()],
    payload: CalendarEventCreate,
) -> CalendarEventResponse:
    event = await CalendarService(db).create_event(
        calendar_id,
        payload.event_date,
        payload.name,
        payload.day_type.value,
        ctx,
        is_national=payload.is_national,
    )
    return CalendarEventResponse.model_validate(event)


@router.patch(
    "/calendar-events/{event_id}",
    response_model=CalendarEventResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def update_calendar_event(
    db: DbSession,
    ctx: Context,
    event_id: Annotated[UUID, Path()],
    payload: CalendarEventUpdate,
) -> CalendarEventResponse:
    """Rename freely; day type or date changes are refused once attendance is locked."""
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "day_type" in changes:
        changes["day_type"] = changes["day_type"].value
    event = await CalendarService(db).update_event(event_id, changes, ctx)
    return CalendarEventResponse.model_validate(event)


@router.delete(
    "/calendar-events/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_calendar_event(
    db: DbSession,
    ctx: Context,
    event_id: Annotated[UUID, Path()],
) -> Response:
    await CalendarService(db).delete_event(event_id, ctx)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
