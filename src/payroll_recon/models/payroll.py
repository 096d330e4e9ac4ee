"""Payroll run, run summary, period and entry models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_recon.models.base import Base, JSONType, TimestampMixin


class PayrollRun(Base, TimestampMixin):
    """Batch of approved labor records for a period, with computed totals.

    Totals are a pure function of the labor records whose
    approved_in_run_id points here.
    """

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_id: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    # {"byEmployee": {employee_id: {"hours", "earnings", "hourlyRate"?}}, ...}
    totals: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_earnings: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    # Set on runs produced by bulk generation
    employee_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employee.employee_id"),
        nullable=True,
    )

    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    summaries: Mapped[list[RunSummary]] = relationship(
        back_populates="payroll_run",
        cascade="all, delete-orphan",
    )


class RunSummary(Base):
    """Derived per-account rollup of a payroll run, keyed by profile id."""

    __tablename__ = "payroll_run_summary"

    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        primary_key=True,
    )
    profile_id: Mapped[UUID] = mapped_column(primary_key=True)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    hours_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    rate_at_time: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    timesheet_refs: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    payroll_run: Mapped[PayrollRun] = relationship(back_populates="summaries")


class PayrollPeriod(Base, TimestampMixin):
    """Semi-monthly payroll period keyed by its pay date (YYYY-MM-DD)."""

    __tablename__ = "payroll_period"

    period_id: Mapped[str] = mapped_column(String, primary_key=True)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    pay_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="open")
    gross: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    deductions: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    net: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('open', 'finalized')", name="payroll_period_status_check"),
    )


class PayrollEntry(Base, TimestampMixin):
    """Earning or deduction line booked against a payroll period."""

    __tablename__ = "payroll_entry"

    payroll_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_id: Mapped[str] = mapped_column(
        ForeignKey("payroll_period.period_id"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id"),
        nullable=False,
    )
    job_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("job.job_id"),
        nullable=True,
        index=True,
    )
    entry_type: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    # Deductions are stored negative
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    hours: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    units: Mapped[int | None] = mapped_column(nullable=True)
    rate_snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    job_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "entry_type IN ('earning', 'deduction')",
            name="payroll_entry_type_check",
        ),
        CheckConstraint(
            "category IN ('per_visit', 'hourly', 'monthly', 'missed_day', 'uniform', "
            "'supplies', 'advance', 'manual_adjustment', 'other')",
            name="payroll_entry_category_check",
        ),
    )
