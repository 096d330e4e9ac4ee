"""Employee directory and pay rate models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_recon.models.base import Base, TimestampMixin

OWNER_ROLE = "owner"
FINANCE_ROLES = frozenset({"admin", "owner", "super_admin"})


class Employee(Base, TimestampMixin):
    """Portal user who can be assigned to jobs and log labor."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="employee")
    # Account/profile that labor is summarised under
    profile_id: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "role IN ('employee', 'admin', 'owner', 'super_admin')",
            name="employee_role_check",
        ),
    )

    rates: Mapped[list[EmployeeRate]] = relationship(back_populates="employee")

    @property
    def is_owner(self) -> bool:
        return self.role == OWNER_ROLE


class EmployeeRate(Base, TimestampMixin):
    """Pay rate effective from a point in time.

    Rates are never edited; a change is a new row with a later
    effective_date. Legacy rows predate effective dates and carry only
    created_at and hourly_rate.
    """

    __tablename__ = "employee_rate"

    employee_rate_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    effective_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rate_type: Mapped[str | None] = mapped_column(String, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    # Optional scopes; a scoped rate beats an unscoped one
    location_id: Mapped[UUID | None] = mapped_column(nullable=True)
    client_profile_id: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "rate_type IS NULL OR rate_type IN ('hourly', 'per_visit', 'monthly')",
            name="employee_rate_type_check",
        ),
        Index("ix_employee_rate_employee_effective", "employee_id", "effective_date"),
    )

    employee: Mapped[Employee] = relationship(back_populates="rates")

    @property
    def rate_amount(self) -> Decimal:
        """Amount used for hourly pricing: hourly_rate, else amount, else 0."""
        return self.hourly_rate or self.amount or Decimal("0")
