"""Holiday calendar maintenance with locked-attendance guards."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.calculators.types import CalendarDayType
from ph_payroll.context import RequestContext
from ph_payroll.errors import (
    DuplicateCalendarEventError,
    InvalidCalendarEventError,
    LockedRecordConflictError,
    NotFoundError,
)
from ph_payroll.models import CalendarEvent, HolidayCalendar
from ph_payroll.services.audit import AuditEmitter, default_emitter
from ph_payroll.services.locking_service import LockingService

logger = logging.getLogger(__name__)

# Changing these would reclassify attendance days that reference the event
CLASSIFYING_FIELDS = frozenset({"day_type", "event_date"})
EDITABLE_FIELDS = CLASSIFYING_FIELDS | {"name", "is_national"}


def _event_state(event: CalendarEvent) -> dict[str, Any]:
    return {
        "event_date": event.event_date.isoformat(),
        "name": event.name,
        "day_type": event.day_type,
        "is_national": event.is_national,
    }


class CalendarService:
    """Create, edit, and delete calendar events.

    Every attempt is audited. Edits that would change how an already locked
    attendance day was classified are rejected with LockedRecordConflictError.
    """

    def __init__(self, session: AsyncSession, audit: AuditEmitter | None = None):
        self.session = session
        self.audit = audit or default_emitter
        self.locking = LockingService(session)

    async def get_calendar(self, calendar_id: UUID, ctx: RequestContext) -> HolidayCalendar:
        calendar = await self.session.get(HolidayCalendar, calendar_id)
        if calendar is None or calendar.company_id != ctx.company_id:
            raise NotFoundError("HolidayCalendar", calendar_id)
        return calendar

    async def get_event(self, event_id: UUID, ctx: RequestContext) -> CalendarEvent:
        result = await self.session.execute(
            select(CalendarEvent)
            .join(HolidayCalendar, HolidayCalendar.calendar_id == CalendarEvent.calendar_id)
            .where(
                CalendarEvent.calendar_event_id == event_id,
                HolidayCalendar.company_id == ctx.company_id,
            )
        )
        event = result.scalar_one_or_none()
        if event is None:
            raise NotFoundError("CalendarEvent", event_id)
        return event

    async def create_event(
        self,
        calendar_id: UUID,
        event_date: date,
        name: str,
        day_type: str,
        ctx: RequestContext,
        is_national: bool = True,
    ) -> CalendarEvent:
        """Add an event to a calendar.

        Raises:
            InvalidCalendarEventError: The date is outside the calendar year
            DuplicateCalendarEventError: The calendar already has an event on the date
            LockedRecordConflictError: Locked attendance exists on the date
        """
        calendar = await self.get_calendar(calendar_id, ctx)
        parsed = CalendarDayType(day_type)
        after = {
            "event_date": event_date.isoformat(),
            "name": name,
            "day_type": parsed.value,
            "is_national": is_national,
        }

        try:
            _ensure_in_year(calendar, event_date)
            await self._ensure_date_free(calendar.calendar_id, event_date)
            await self._ensure_date_unlocked(ctx.company_id, event_date, "CalendarEvent", None)
        except (
            InvalidCalendarEventError,
            DuplicateCalendarEventError,
            LockedRecordConflictError,
        ) as exc:
            self.audit.rejected(
                ctx, "calendar_event.created", "CalendarEvent", None, reason=str(exc), after=after
            )
            raise

        event = CalendarEvent(
            calendar_id=calendar.calendar_id,
            event_date=event_date,
            name=name,
            day_type=parsed.value,
            is_national=is_national,
        )
        self.session.add(event)
        await self.session.flush()
        self.audit.record(
            ctx, "calendar_event.created", "CalendarEvent", event.calendar_event_id, after=after
        )
        return event

    async def update_event(
        self, event_id: UUID, changes: dict[str, Any], ctx: RequestContext
    ) -> CalendarEvent:
        """Edit an event.

        Name and is_national edits are always accepted. A day type or date
        change is rejected while any attendance day referencing the event is
        locked, or when the new date falls outside the calendar year or already
        has an event or locked attendance.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        event = await self.get_event(event_id, ctx)
        before = _event_state(event)
        if "day_type" in changes:
            changes = {**changes, "day_type": CalendarDayType(changes["day_type"]).value}

        reclassifies = any(
            name in CLASSIFYING_FIELDS and changes[name] != getattr(event, name)
            for name in changes
        )
        if reclassifies:
            try:
                if await self.locking.has_locked_for_event(event_id):
                    raise LockedRecordConflictError(
                        "CalendarEvent",
                        event_id,
                        "referenced by attendance locked by an approved payroll run",
                    )
                new_date = changes.get("event_date", event.event_date)
                if new_date != event.event_date:
                    calendar = await self.session.get(HolidayCalendar, event.calendar_id)
                    _ensure_in_year(calendar, new_date)
                    await self._ensure_date_free(event.calendar_id, new_date)
                    await self._ensure_date_unlocked(
                        ctx.company_id, new_date, "CalendarEvent", event_id
                    )
            except (
                InvalidCalendarEventError,
                DuplicateCalendarEventError,
                LockedRecordConflictError,
            ) as exc:
                self.audit.rejected(
                    ctx,
                    "calendar_event.updated",
                    "CalendarEvent",
                    event_id,
                    reason=str(exc),
                    before=before,
                    after={**before, **_jsonable(changes)},
                )
                raise

        for name, value in changes.items():
            setattr(event, name, value)
        await self.session.flush()
        self.audit.record(
            ctx,
            "calendar_event.updated",
            "CalendarEvent",
            event_id,
            before=before,
            after=_event_state(event),
        )
        return event

    async def delete_event(self, event_id: UUID, ctx: RequestContext) -> None:
        """Delete an event no attendance day references."""
        event = await self.get_event(event_id, ctx)
        before = _event_state(event)
        if await self.locking.is_event_referenced(event_id):
            exc = LockedRecordConflictError(
                "CalendarEvent", event_id, "referenced by resolved attendance"
            )
            self.audit.rejected(
                ctx, "calendar_event.deleted", "CalendarEvent", event_id, reason=str(exc), before=before
            )
            raise exc

        await self.session.delete(event)
        await self.session.flush()
        self.audit.record(ctx, "calendar_event.deleted", "CalendarEvent", event_id, before=before)

    async def _ensure_date_free(self, calendar_id: UUID, event_date: date) -> None:
        result = await self.session.execute(
            select(CalendarEvent.calendar_event_id).where(
                CalendarEvent.calendar_id == calendar_id,
                CalendarEvent.event_date == event_date,
            )
        )
        if result.first() is not None:
            raise DuplicateCalendarEventError(calendar_id, event_date)

    async def _ensure_date_unlocked(
        self, company_id: UUID, on_date: date, entity_type: str, entity_id: UUID | None
    ) -> None:
        if await self.locking.has_locked_on_date(company_id, on_date):
            raise LockedRecordConflictError(
                entity_type, entity_id, f"attendance on {on_date} is locked"
            )


def _ensure_in_year(calendar: HolidayCalendar, event_date: date) -> None:
    if event_date.year != calendar.year:
        raise InvalidCalendarEventError(calendar.calendar_id, calendar.year, event_date)


def _jsonable(changes: dict[str, Any]) -> dict[str, Any]:
    return {k: v.isoformat() if isinstance(v, date) else v for k, v in changes.items()}
