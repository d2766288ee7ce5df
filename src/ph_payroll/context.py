"""Explicit request context passed into every core operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from uuid import UUID


@dataclass(frozen=True)
class RequestContext:
    """Company scope and acting user for a single operation.

    ``as_of`` is the caller's notion of "today"; dates after it resolve to
    NO_DATA rather than ABSENT.
    """

    company_id: UUID
    user_id: UUID
    as_of: date = field(default_factory=date.today)
