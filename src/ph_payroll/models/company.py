"""Company model (multi-company scoping root)."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from ph_payroll.models.base import Base, TimestampMixin


class Company(Base, TimestampMixin):
    """Employer company."""

    __tablename__ = "company"

    company_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # Default weekly rest days (Python weekday numbers, Monday=0)
    default_rest_days: Mapped[list[int]] = mapped_column(
        JSON, nullable=False, default=lambda: [5, 6]
    )
