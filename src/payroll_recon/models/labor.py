"""Labor record (timesheet) model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_recon.models.base import Base, JSONType, TimestampMixin

# Records created from clock-in/clock-out events; approved automatically on job completion
CLOCK_EVENT_SOURCE = "clock_event"


class LaborRecord(Base, TimestampMixin):
    """A single employee's logged work (time or visit)."""

    __tablename__ = "labor_record"

    labor_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employee.employee_id"),
        nullable=True,
        index=True,
    )
    employee_profile_id: Mapped[UUID | None] = mapped_column(nullable=True)
    job_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("job.job_id"),
        nullable=True,
        index=True,
    )
    start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    hours: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    units: Mapped[int | None] = mapped_column(Integer, nullable=True, default=1)

    # {"type": "hourly"|"per_visit"|"monthly", "amount": "22.50"} or legacy {"hourlyRate": ...}
    rate_snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    # Pre-snapshot inline rate
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    employee_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    admin_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approved_in_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id"),
        nullable=True,
        index=True,
    )
    earnings: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    source: Mapped[str] = mapped_column(String, nullable=False, default="manual")
    backfilled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    backfilled_by: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "source IN ('manual', 'clock_event', 'payroll_prep')",
            name="labor_record_source_check",
        ),
    )
