"""Employee, pay profile, and leave models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from ph_payroll.models.attendance import ShiftTemplate


class Employee(Base, TimestampMixin):
    """Employee record."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_code: Mapped[str] = mapped_column(String, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    employment_type: Mapped[str] = mapped_column(String, nullable=False, default="PROBATIONARY")
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)
    regularization_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    separation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Assigned shift; None means no schedule obligations
    shift_template_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("shift_template.shift_template_id"),
        nullable=True,
    )
    # Overrides the company rest-day pattern when set
    rest_days: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("company_id", "employee_code", name="employee_company_code_unique"),
        CheckConstraint(
            "employment_type IN ('REGULAR', 'PROBATIONARY', 'CONTRACTUAL', 'CONSULTANT', 'INTERN')",
            name="employee_employment_type_check",
        ),
    )

    # Relationships
    shift_template: Mapped[ShiftTemplate | None] = relationship(lazy="selectin")
    pay_profiles: Mapped[list[PayProfile]] = relationship(
        back_populates="employee",
        lazy="selectin",
        order_by="PayProfile.effective_date",
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"

    def profile_as_of(self, as_of_date: date) -> PayProfile | None:
        """Latest pay profile version effective on the date."""
        effective = [p for p in self.pay_profiles if p.effective_date <= as_of_date]
        return effective[-1] if effective else None


class PayProfile(Base, TimestampMixin):
    """Versioned pay profile (wage type, base rate, frequency)."""

    __tablename__ = "pay_profile"

    pay_profile_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    wage_type: Mapped[str] = mapped_column(String, nullable=False)
    base_rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String, nullable=False, default="SEMI_MONTHLY")
    is_benefits_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_ot_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_nd_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Declared wage for contributions and withholding; actual earnings keep base_rate
    declared_wage_type: Mapped[str | None] = mapped_column(String, nullable=True)
    declared_base_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "effective_date", name="pay_profile_employee_date_unique"),
        CheckConstraint(
            "wage_type IN ('MONTHLY', 'DAILY', 'HOURLY')",
            name="pay_profile_wage_type_check",
        ),
        CheckConstraint(
            "pay_frequency IN ('MONTHLY', 'SEMI_MONTHLY', 'BI_WEEKLY', 'WEEKLY')",
            name="pay_profile_frequency_check",
        ),
        CheckConstraint(
            "(declared_wage_type IS NULL) = (declared_base_rate IS NULL)",
            name="pay_profile_declared_wage_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="pay_profiles")
    allowances: Mapped[list[PayProfileAllowance]] = relationship(
        back_populates="pay_profile",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PayProfileAllowance.name",
    )


class PayProfileAllowance(Base):
    """Recurring monthly allowance attached to a pay profile version."""

    __tablename__ = "pay_profile_allowance"

    allowance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pay_profile_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_profile.pay_profile_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    monthly_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("monthly_amount >= 0", name="allowance_amount_check"),
    )

    pay_profile: Mapped[PayProfile] = relationship(back_populates="allowances")


class LeaveRecord(Base, TimestampMixin):
    """Leave request covering a date range."""

    __tablename__ = "leave_record"

    leave_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="leave_record_dates_check"),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'CANCELLED')",
            name="leave_record_status_check",
        ),
    )

    def covers(self, on_date: date) -> bool:
        return self.start_date <= on_date <= self.end_date
