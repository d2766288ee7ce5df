"""Employee penalties deducted from pay in installments."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from ph_payroll.models.employee import Employee


class Penalty(Base, TimestampMixin):
    """A penalty amount split evenly over a number of pay periods.

    The last installment absorbs the rounding remainder, so installments
    always sum to total_amount.
    """

    __tablename__ = "penalty"

    penalty_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    installment_count: Mapped[int] = mapped_column(Integer, nullable=False)
    installment_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_deducted: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="ACTIVE")
    remarks: Mapped[str | None] = mapped_column(String, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("total_amount > 0", name="penalty_amount_check"),
        CheckConstraint("installment_count >= 1", name="penalty_installment_count_check"),
        CheckConstraint(
            "status IN ('ACTIVE', 'COMPLETED', 'CANCELLED')", name="penalty_status_check"
        ),
    )

    employee: Mapped[Employee] = relationship(lazy="selectin")
    installments: Mapped[list[PenaltyInstallment]] = relationship(
        back_populates="penalty",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PenaltyInstallment.installment_number",
    )


class PenaltyInstallment(Base):
    """One scheduled deduction of a penalty."""

    __tablename__ = "penalty_installment"

    installment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    penalty_id: Mapped[UUID] = mapped_column(
        ForeignKey("penalty.penalty_id", ondelete="CASCADE"),
        nullable=False,
    )
    installment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    is_deducted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deducted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    # Released run whose payslip carried the deduction
    payroll_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("penalty_id", "installment_number", name="penalty_installment_unique"),
        CheckConstraint("amount > 0", name="penalty_installment_amount_check"),
    )

    penalty: Mapped[Penalty] = relationship(back_populates="installments")
