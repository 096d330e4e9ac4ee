"""Point-in-time pay rate resolution."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_recon.calculators.money import ZERO
from payroll_recon.calculators.types import RateKind, RateSnapshot
from payroll_recon.models import EmployeeRate

logger = logging.getLogger(__name__)

# Rates below these floors are almost always data-entry mistakes
MIN_EXPECTED_RATES: dict[RateKind, Decimal] = {
    RateKind.PER_VISIT: Decimal("5"),
    RateKind.HOURLY: Decimal("5"),
    RateKind.MONTHLY: Decimal("100"),
}


def normalize_rate_row(rate: EmployeeRate) -> RateSnapshot | None:
    """Convert an EmployeeRate row into a snapshot, or None if it prices nothing."""
    if rate.rate_type in {k.value for k in RateKind}:
        kind = RateKind(rate.rate_type)
    elif rate.hourly_rate is not None:
        kind = RateKind.HOURLY
    else:
        kind = RateKind.PER_VISIT

    amount = rate.amount if rate.amount is not None else rate.hourly_rate
    if amount is None or amount <= 0:
        return None

    floor = MIN_EXPECTED_RATES[kind]
    if amount < floor:
        logger.warning(
            "Suspiciously low %s rate %s (expected at least %s) on rate %s for employee %s",
            kind.value,
            amount,
            floor,
            rate.employee_rate_id,
            rate.employee_id,
        )
    return RateSnapshot(kind=kind, amount=amount)


class RateResolver:
    """Resolves the pay rate in effect for an employee at an instant.

    The applicable rate is the row with the greatest effective_date at or
    before the instant. Rows without an effective date are found through a
    second pass ordered by created_at.

    Results are cached on the instance, keyed by employee and the instant
    truncated to the second. Build a new resolver for every aggregation
    pass so that rate changes between passes are always picked up.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._rate_cache: dict[tuple[UUID, datetime], Decimal] = {}
        self._snapshot_cache: dict[tuple[Any, ...], RateSnapshot | None] = {}

    async def resolve(self, employee_id: UUID, at: datetime) -> Decimal:
        """Return the applicable rate amount, or Decimal("0") when there is none.

        Zero means "missing rate", not "zero pay"; callers must treat it
        that way.
        """
        key = (employee_id, at.replace(microsecond=0))
        if key in self._rate_cache:
            return self._rate_cache[key]

        rate = await self._latest_rate(employee_id, at, EmployeeRate.effective_date)
        if rate is None:
            rate = await self._latest_rate(employee_id, at, EmployeeRate.created_at)

        amount = rate.rate_amount if rate is not None else ZERO
        self._rate_cache[key] = amount
        return amount

    async def resolve_snapshot(
        self,
        employee_id: UUID,
        at: datetime,
        location_id: UUID | None = None,
        client_profile_id: UUID | None = None,
    ) -> RateSnapshot | None:
        """Resolve the applicable rate as a typed snapshot.

        Search order, for effective_date and then for created_at:
        location-scoped, client-scoped, then any rate for the employee.
        """
        key = (employee_id, at.replace(microsecond=0), location_id, client_profile_id)
        if key in self._snapshot_cache:
            return self._snapshot_cache[key]

        snapshot: RateSnapshot | None = None
        for order_column in (EmployeeRate.effective_date, EmployeeRate.created_at):
            scopes: list[dict[str, UUID]] = []
            if location_id is not None:
                scopes.append({"location_id": location_id})
            if client_profile_id is not None:
                scopes.append({"client_profile_id": client_profile_id})
            scopes.append({})

            for scope in scopes:
                rate = await self._latest_rate(employee_id, at, order_column, **scope)
                if rate is not None:
                    snapshot = normalize_rate_row(rate)
                    break
            if snapshot is not None:
                break

        self._snapshot_cache[key] = snapshot
        return snapshot

    async def _latest_rate(
        self,
        employee_id: UUID,
        at: datetime,
        order_column: Any,
        **scope: UUID,
    ) -> EmployeeRate | None:
        """Most recent rate row with order_column <= at."""
        query = select(EmployeeRate).where(
            EmployeeRate.employee_id == employee_id,
            order_column.is_not(None),
            order_column <= at,
        )
        for column_name, value in scope.items():
            query = query.where(getattr(EmployeeRate, column_name) == value)
        query = query.order_by(order_column.desc()).limit(1)

        result = await self.session.execute(query)
        return result.scalars().first()
