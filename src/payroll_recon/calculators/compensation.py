"""Earnings for a single labor record."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from payroll_recon.calculators.money import round_currency, to_decimal
from payroll_recon.calculators.types import Compensation, RateSnapshot

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from payroll_recon.calculators.rate_resolver import RateResolver


class LaborLike(Protocol):
    """The labor record fields compensation depends on."""

    employee_id: UUID | None
    start: datetime | None
    hours: Decimal | None
    units: int | None
    rate_snapshot: dict | None
    hourly_rate: Decimal | None


def record_units(record: LaborLike) -> int:
    """Visit count; missing or zero counts as one visit."""
    return int(record.units or 1) or 1


class CompensationCalculator:
    """Computes exact-money earnings for labor records.

    Decision order:
    1. Embedded rate snapshot (hourly, per visit, or flat monthly)
    2. Legacy inline hourly rate on the record
    3. Rate resolved for the employee at the record's start
    """

    def __init__(self, resolver: RateResolver):
        self.resolver = resolver

    @staticmethod
    def needs_rate(record: LaborLike) -> bool:
        """True when pricing the record requires a rate lookup."""
        return RateSnapshot.from_document(record.rate_snapshot) is None and not record.hourly_rate

    @staticmethod
    def price(record: LaborLike, resolved_rate: Decimal | None = None) -> Compensation:
        """Price a record. Pure: never touches the store."""
        hours = to_decimal(record.hours)
        snapshot = RateSnapshot.from_document(record.rate_snapshot)

        if snapshot is not None:
            return Compensation(
                hours=hours,
                earnings=snapshot.earnings_for(hours, record_units(record)),
                applied_rate=snapshot.amount,
                snapshot=snapshot,
            )

        rate = to_decimal(record.hourly_rate) or to_decimal(resolved_rate)
        return Compensation(
            hours=hours,
            earnings=round_currency(hours * rate),
            applied_rate=rate or None,
        )

    async def compute(self, record: LaborLike) -> Compensation:
        """Price a record, resolving the employee's rate only when needed."""
        resolved: Decimal | None = None
        if self.needs_rate(record) and record.employee_id is not None and record.start is not None:
            resolved = await self.resolver.resolve(record.employee_id, record.start)
        return self.price(record, resolved)

