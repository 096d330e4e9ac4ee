"""Type definitions for the reconciliation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from payroll_recon.calculators.money import ZERO, add_currency, round_currency, to_decimal

if TYPE_CHECKING:
    from payroll_recon.models import PayrollRun


class RateKind(str, Enum):
    """How a rate converts labor into earnings."""

    HOURLY = "hourly"
    PER_VISIT = "per_visit"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class RateSnapshot:
    """Pay rate captured on a labor record.

    Once a record carries a snapshot it is authoritative for that
    record's compensation, whatever the employee's current rate is.
    """

    kind: RateKind
    amount: Decimal
    legacy: bool = False
    monthly_pay_day: int | None = None

    @classmethod
    def from_document(cls, data: Any) -> RateSnapshot | None:
        """Parse a stored snapshot.

        Typed documents are {"type", "amount"}. Anything else is the legacy
        untyped shape ({"hourlyRate": x}), which is always read as hourly.
        """
        if not isinstance(data, dict) or not data:
            return None

        amount = to_decimal(data.get("amount") or data.get("hourlyRate"))
        raw_type = data.get("type")
        pay_day = data.get("monthlyPayDay")
        if raw_type in {k.value for k in RateKind}:
            return cls(
                kind=RateKind(raw_type),
                amount=amount,
                monthly_pay_day=int(pay_day) if pay_day is not None else None,
            )
        return cls(kind=RateKind.HOURLY, amount=amount, legacy=True)

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"type": self.kind.value, "amount": str(self.amount)}
        if self.monthly_pay_day is not None:
            doc["monthlyPayDay"] = self.monthly_pay_day
        return doc

    def earnings_for(self, hours: Decimal, units: int) -> Decimal:
        """Earnings for the given labor, rounded to cents."""
        if self.kind == RateKind.PER_VISIT:
            return round_currency(self.amount * units)
        if self.kind == RateKind.MONTHLY:
            return round_currency(self.amount)
        return round_currency(hours * self.amount)


@dataclass(frozen=True)
class Compensation:
    """Earnings computed for one labor record."""

    hours: Decimal
    earnings: Decimal
    applied_rate: Decimal | None
    snapshot: RateSnapshot | None = None

    @property
    def missing_rate(self) -> bool:
        return self.snapshot is None and not self.applied_rate


@dataclass
class EmployeeTotals:
    """Per-employee accumulation inside a run."""

    hours: Decimal = ZERO
    earnings: Decimal = ZERO
    hourly_rate: Decimal | None = None

    def add(self, comp: Compensation) -> None:
        self.hours = add_currency(self.hours, comp.hours)
        self.earnings = add_currency(self.earnings, comp.earnings)
        if not self.hourly_rate and comp.applied_rate:
            self.hourly_rate = comp.applied_rate

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"hours": str(self.hours), "earnings": str(self.earnings)}
        if self.hourly_rate:
            doc["hourlyRate"] = str(self.hourly_rate)
        return doc


@dataclass
class RunTotals:
    """Run-level totals, plus the per-employee breakdown."""

    by_employee: dict[str, EmployeeTotals] = field(default_factory=dict)
    total_hours: Decimal = ZERO
    total_earnings: Decimal = ZERO

    def add(self, employee_id: UUID | None, comp: Compensation) -> None:
        if employee_id is not None:
            self.by_employee.setdefault(str(employee_id), EmployeeTotals()).add(comp)
        self.total_hours = add_currency(self.total_hours, comp.hours)
        self.total_earnings = add_currency(self.total_earnings, comp.earnings)

    def to_document(self) -> dict[str, Any]:
        return {
            "byEmployee": {k: v.to_document() for k, v in self.by_employee.items()},
            "totalHours": str(self.total_hours),
            "totalEarnings": str(self.total_earnings),
        }


@dataclass
class SummaryAggregate:
    """Per-account rollup before it is written as a RunSummary."""

    hours_total: Decimal = ZERO
    gross_pay: Decimal = ZERO
    rate_at_time: Decimal | None = None
    timesheet_refs: list[str] = field(default_factory=list)

    def add(self, labor_record_id: UUID, comp: Compensation) -> None:
        self.hours_total = add_currency(self.hours_total, comp.hours)
        self.gross_pay = add_currency(self.gross_pay, comp.earnings)
        if not self.rate_at_time and comp.applied_rate:
            self.rate_at_time = comp.applied_rate
        self.timesheet_refs.append(str(labor_record_id))


@dataclass
class RunArtifacts:
    """Output of one aggregation pass. Nothing here is persisted yet."""

    run: PayrollRun
    totals: RunTotals
    summaries: dict[UUID, SummaryAggregate]
    skipped_record_ids: list[UUID] = field(default_factory=list)
