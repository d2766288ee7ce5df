"""Audit record emitter.

Every run transition and every mutation attempt on payroll inputs (accepted or
rejected) is published as an immutable ``AuditRecord``. The emitter logs each
record and fans it out to subscribed handlers; persisting the trail is a
handler's job.

Handlers are isolated: a failing handler is logged and never breaks the
operation that emitted the record, nor the other handlers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable
from uuid import UUID

from ph_payroll.context import RequestContext
from ph_payroll.models.base import utcnow

logger = logging.getLogger(__name__)


class AuditOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class AuditRecord:
    """Structured record of (actor, action, entity, before/after)."""

    actor_id: UUID
    company_id: UUID
    action: str
    entity_type: str
    entity_id: Any
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    outcome: AuditOutcome = AuditOutcome.SUCCESS
    reason: str | None = None
    occurred_at: datetime = field(default_factory=utcnow)


@runtime_checkable
class AuditHandler(Protocol):
    """Protocol for audit record handlers."""

    def __call__(self, record: AuditRecord) -> None:
        ...


class AuditEmitter:
    """Synchronous audit emitter.

    Usage:
        emitter = AuditEmitter()
        emitter.on(store_record)
        emitter.emit(record)
    """

    def __init__(self) -> None:
        self._handlers: list[AuditHandler | Callable[[AuditRecord], None]] = []

    def on(self, handler: AuditHandler | Callable[[AuditRecord], None]) -> None:
        """Register a handler for every record."""
        self._handlers.append(handler)

    def off(self, handler: AuditHandler | Callable[[AuditRecord], None]) -> None:
        """Unregister a handler."""
        self._handlers = [h for h in self._handlers if h is not handler]

    def emit(self, record: AuditRecord) -> list[Exception]:
        """Publish a record to all handlers.

        Returns list of any exceptions raised by handlers.
        """
        logger.info(
            "audit %s %s %s/%s by %s",
            record.outcome.value,
            record.action,
            record.entity_type,
            record.entity_id,
            record.actor_id,
        )
        errors: list[Exception] = []
        for handler in self._handlers:
            try:
                handler(record)
            except Exception as e:
                logger.exception("Audit handler %s failed for action %s", handler, record.action)
                errors.append(e)
        return errors

    def record(
        self,
        ctx: RequestContext,
        action: str,
        entity_type: str,
        entity_id: Any,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        outcome: AuditOutcome = AuditOutcome.SUCCESS,
        reason: str | None = None,
    ) -> AuditRecord:
        """Build and emit a record for the caller in ``ctx``."""
        record = AuditRecord(
            actor_id=ctx.user_id,
            company_id=ctx.company_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            before=before,
            after=after,
            outcome=outcome,
            reason=reason,
        )
        self.emit(record)
        return record

    def rejected(
        self,
        ctx: RequestContext,
        action: str,
        entity_type: str,
        entity_id: Any,
        reason: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> AuditRecord:
        return self.record(
            ctx,
            action,
            entity_type,
            entity_id,
            before=before,
            after=after,
            outcome=AuditOutcome.REJECTED,
            reason=reason,
        )


class AuditCollector:
    """Handler that keeps records in memory (tests, local inspection)."""

    def __init__(self) -> None:
        self.records: list[AuditRecord] = []

    def __call__(self, record: AuditRecord) -> None:
        self.records.append(record)

    def actions(self, outcome: AuditOutcome | None = None) -> list[str]:
        return [r.action for r in self.records if outcome is None or r.outcome == outcome]


default_emitter = AuditEmitter()
