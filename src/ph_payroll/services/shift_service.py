"""Shift template edits guarded against locked attendance."""

from __future__ import annotations

from datetime import time
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.context import RequestContext
from ph_payroll.errors import LockedRecordConflictError, NotFoundError
from ph_payroll.models import ShiftTemplate
from ph_payroll.services.audit import AuditEmitter, default_emitter
from ph_payroll.services.locking_service import LockingService

SCHEDULE_FIELDS = frozenset(
    {
        "start_time",
        "end_time",
        "is_overnight",
        "break_minutes",
        "break_start_time",
        "break_end_time",
        "grace_minutes_late",
        "grace_minutes_early_out",
    }
)
EDITABLE_FIELDS = SCHEDULE_FIELDS | {"name"}


def _state(template: ShiftTemplate, fields: frozenset[str] | set[str]) -> dict[str, Any]:
    out = {}
    for name in sorted(fields):
        value = getattr(template, name)
        out[name] = value.isoformat() if isinstance(value, time) else value
    return out


class ShiftTemplateService:
    def __init__(self, session: AsyncSession, audit: AuditEmitter | None = None):
        self.session = session
        self.audit = audit or default_emitter
        self.locking = LockingService(session)

    async def update_template(
        self, shift_template_id: UUID, changes: dict[str, Any], ctx: RequestContext
    ) -> ShiftTemplate:
        """Edit a shift template.

        Renames are always accepted. Schedule edits are rejected while any
        locked attendance day was resolved against the template.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        template = await self.session.get(ShiftTemplate, shift_template_id)
        if template is None or template.company_id != ctx.company_id:
            raise NotFoundError("ShiftTemplate", shift_template_id)

        before = _state(template, set(changes))
        schedule_changes = {
            name
            for name in changes
            if name in SCHEDULE_FIELDS and changes[name] != getattr(template, name)
        }
        if schedule_changes and await self.locking.has_locked_for_shift(shift_template_id):
            exc = LockedRecordConflictError(
                "ShiftTemplate",
                shift_template_id,
                "schedule is referenced by attendance locked by an approved payroll run",
            )
            self.audit.rejected(
                ctx,
                "shift_template.updated",
                "ShiftTemplate",
                shift_template_id,
                reason=str(exc),
                before=before,
            )
            raise exc

        for name, value in changes.items():
            setattr(template, name, value)
        await self.session.flush()
        self.audit.record(
            ctx,
            "shift_template.updated",
            "ShiftTemplate",
            shift_template_id,
            before=before,
            after=_state(template, set(changes)),
        )
        return template
