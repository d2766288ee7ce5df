"""Pay period, payroll run, payslip, and adjustment models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from ph_payroll.models.employee import Employee


# ===== Pay Periods =====


class PayPeriod(Base, TimestampMixin):
    """Pay period date range."""

    __tablename__ = "pay_period"

    pay_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String, nullable=False, default="SEMI_MONTHLY")

    __table_args__ = (
        UniqueConstraint("company_id", "start_date", "end_date", name="pay_period_unique"),
        CheckConstraint("end_date >= start_date", name="pay_period_dates_check"),
        CheckConstraint(
            "pay_frequency IN ('MONTHLY', 'SEMI_MONTHLY', 'BI_WEEKLY', 'WEEKLY')",
            name="pay_period_frequency_check",
        ),
    )

    def dates(self) -> list[date]:
        """Every calendar date in the period, in order."""
        days = (self.end_date - self.start_date).days + 1
        return [date.fromordinal(self.start_date.toordinal() + i) for i in range(days)]


# ===== Payroll Runs =====


class PayrollRun(Base, TimestampMixin):
    """Payroll run for one pay period."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    pay_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_period.pay_period_id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")
    created_by: Mapped[UUID] = mapped_column(nullable=False)
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    released_by: Mapped[UUID | None] = mapped_column(nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    computed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    checklist_acknowledged_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Totals (refreshed on every compute)
    total_gross: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total_net: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'COMPUTING', 'REVIEW', 'APPROVED', 'RELEASED', 'CANCELLED')",
            name="payroll_run_status_check",
        ),
        Index(
            "payroll_run_one_final_per_period",
            "pay_period_id",
            unique=True,
            postgresql_where=text("status IN ('APPROVED', 'RELEASED')"),
            sqlite_where=text("status IN ('APPROVED', 'RELEASED')"),
        ),
    )

    # Relationships
    pay_period: Mapped[PayPeriod] = relationship(lazy="selectin")
    payslips: Mapped[list[Payslip]] = relationship(
        back_populates="payroll_run",
        cascade="all, delete-orphan",
    )


class Payslip(Base, TimestampMixin):
    """Computed payslip for one employee in one run.

    Pay profile fields are snapshotted at computation time so later profile
    edits never alter historical payslips.
    """

    __tablename__ = "payslip"

    payslip_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="COMPUTED")

    # Pay profile snapshot
    wage_type: Mapped[str | None] = mapped_column(String, nullable=True)
    base_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    pay_frequency: Mapped[str | None] = mapped_column(String, nullable=True)
    is_benefits_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    daily_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    minute_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 8), nullable=True)
    statutory_version: Mapped[str | None] = mapped_column(String, nullable=True)

    # Totals
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    net_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    basic_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    taxable_income: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    withholding_tax: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    sss_ee: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    sss_er: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    philhealth_ee: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    philhealth_er: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    pagibig_ee: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    pagibig_er: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    ytd_taxable_income: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    ytd_tax_withheld: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total_overtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Idempotency
    lines_hash: Mapped[str | None] = mapped_column(String, nullable=True)

    error_code: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="payslip_one_per_employee"),
        CheckConstraint("status IN ('COMPUTED', 'FAILED')", name="payslip_status_check"),
    )

    # Relationships
    payroll_run: Mapped[PayrollRun] = relationship(back_populates="payslips")
    employee: Mapped[Employee] = relationship(lazy="selectin")
    lines: Mapped[list[PayslipLine]] = relationship(
        back_populates="payslip",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PayslipLine.sort_order",
    )
    issues: Mapped[list[PayslipIssue]] = relationship(
        back_populates="payslip",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def is_failed(self) -> bool:
        return self.status == "FAILED"

    @property
    def employee_name(self) -> str | None:
        return self.employee.full_name if self.employee is not None else None


class PayslipLine(Base):
    """Itemized payslip line. Earnings positive, deductions negative."""

    __tablename__ = "payslip_line"

    payslip_line_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payslip_id: Mapped[UUID] = mapped_column(
        ForeignKey("payslip.payslip_id", ondelete="CASCADE"),
        nullable=False,
    )
    category: Mapped[str] = mapped_column(String, nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 8), nullable=True)
    multiplier: Mapped[Decimal | None] = mapped_column(Numeric(8, 4), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    rule_code: Mapped[str | None] = mapped_column(String, nullable=True)
    # Per-day contributions: [{"date": "YYYY-MM-DD", "amount": "..."}]
    details: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    penalty_installment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("penalty_installment.installment_id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "kind IN ('EARNING', 'DEDUCTION', 'EMPLOYER_CONTRIBUTION')",
            name="payslip_line_kind_check",
        ),
    )

    payslip: Mapped[Payslip] = relationship(back_populates="lines")


class PayslipIssue(Base, TimestampMixin):
    """Error or warning raised while computing one payslip."""

    __tablename__ = "payslip_issue"

    payslip_issue_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payslip_id: Mapped[UUID] = mapped_column(
        ForeignKey("payslip.payslip_id", ondelete="CASCADE"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(String, nullable=False, default="ERROR")
    attendance_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("severity IN ('ERROR', 'WARNING')", name="payslip_issue_severity_check"),
    )

    payslip: Mapped[Payslip] = relationship(back_populates="issues")


# ===== Manual Adjustments =====


class ManualAdjustmentItem(Base, TimestampMixin):
    """Ad-hoc earning or deduction entered outside attendance.

    Belongs to the run rather than the payslip so it survives recompute.
    """

    __tablename__ = "manual_adjustment_item"

    adjustment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    adjustment_type: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="manual_adjustment_amount_check"),
        CheckConstraint(
            "adjustment_type IN ('EARNING', 'COMMISSION', 'INCENTIVE', 'REIMBURSEMENT', "
            "'DEDUCTION', 'CASH_ADVANCE', 'LOAN')",
            name="manual_adjustment_type_check",
        ),
    )
