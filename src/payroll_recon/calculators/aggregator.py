"""Aggregation of a payroll run's labor records into totals and summaries."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_recon.calculators.compensation import CompensationCalculator
from payroll_recon.calculators.rate_resolver import RateResolver
from payroll_recon.calculators.types import RateSnapshot, RunArtifacts, RunTotals, SummaryAggregate
from payroll_recon.errors import NotFoundError
from payroll_recon.models import Employee, LaborRecord, PayrollRun

logger = logging.getLogger(__name__)


class RunAggregator:
    """Computes a payroll run's totals from the labor records bound to it.

    Membership is explicit: a record belongs to a run when its
    approved_in_run_id points at the run, whatever its dates are.

    Every pass gets its own rate resolver and profile cache, so nothing
    that affects money survives between passes. Aggregation never writes;
    see SummaryWriter and PayrollRunService.recalc_run for persistence.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def aggregate(self, run_id: UUID, run: PayrollRun | None = None) -> RunArtifacts:
        """Aggregate a run.

        Raises:
            NotFoundError: If the run does not exist
        """
        if run is None:
            run = await self.session.get(PayrollRun, run_id)
        if run is None:
            raise NotFoundError("Payroll run", run_id)

        calculator = CompensationCalculator(RateResolver(self.session))
        profile_cache: dict[UUID, UUID | None] = {}

        totals = RunTotals()
        summaries: dict[UUID, SummaryAggregate] = {}
        skipped: list[UUID] = []

        for record in await self._load_records(run_id):
            no_snapshot = RateSnapshot.from_document(record.rate_snapshot) is None
            if no_snapshot and (record.hours is None or record.hours <= 0):
                skipped.append(record.labor_record_id)
                continue

            comp = await calculator.compute(record)
            totals.add(record.employee_id, comp)

            profile_id = await self._resolve_profile_id(record, profile_cache)
            if profile_id is None:
                logger.debug(
                    "Labor record %s has no resolvable profile; left out of summaries",
                    record.labor_record_id,
                )
                continue
            summaries.setdefault(profile_id, SummaryAggregate()).add(record.labor_record_id, comp)

        return RunArtifacts(run=run, totals=totals, summaries=summaries, skipped_record_ids=skipped)

    async def _load_records(self, run_id: UUID) -> list[LaborRecord]:
        result = await self.session.execute(
            select(LaborRecord)
            .where(LaborRecord.approved_in_run_id == run_id)
            .order_by(LaborRecord.start, LaborRecord.labor_record_id)
        )
        return list(result.scalars().all())

    async def _resolve_profile_id(
        self,
        record: LaborRecord,
        cache: dict[UUID, UUID | None],
    ) -> UUID | None:
        """Direct profile id, else the employee's profile (memoised per pass)."""
        if record.employee_profile_id is not None:
            return record.employee_profile_id
        if record.employee_id is None:
            return None
        if record.employee_id not in cache:
            employee = await self.session.get(Employee, record.employee_id)
            cache[record.employee_id] = employee.profile_id if employee is not None else None
        return cache[record.employee_id]
