"""Persistence of per-account run summaries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_recon.calculators.money import round_currency
from payroll_recon.calculators.types import SummaryAggregate
from payroll_recon.errors import BatchCommitFailureError
from payroll_recon.models import PayrollRun, RunSummary
from payroll_recon.services.state_machine import PayrollRunStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryWriteResult:
    """What one persist call changed."""

    deleted: int
    upserted: int

    @property
    def committed(self) -> bool:
        return (self.deleted + self.upserted) > 0


class SummaryWriter:
    """Replaces a run's stored summaries with a freshly computed set.

    Summaries for accounts no longer present are deleted, and every current
    account's row is fully overwritten. All deletes and upserts go out in a
    single transaction, so readers never see a half-refreshed run.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def persist(
        self,
        run: PayrollRun,
        summaries: dict[UUID, SummaryAggregate],
    ) -> SummaryWriteResult:
        """Write summaries for a run.

        Raises:
            BatchCommitFailureError: If the batch could not be committed
        """
        result = await self.session.execute(
            select(RunSummary).where(RunSummary.payroll_run_id == run.payroll_run_id)
        )
        existing = {row.profile_id: row for row in result.scalars().all()}

        stale = [row for profile_id, row in existing.items() if profile_id not in summaries]
        if not stale and not summaries:
            return SummaryWriteResult(deleted=0, upserted=0)

        status = run.status or PayrollRunStatus.DRAFT.value
        try:
            for row in stale:
                await self.session.delete(row)

            for profile_id, aggregate in summaries.items():
                row = existing.get(profile_id)
                if row is None:
                    row = RunSummary(payroll_run_id=run.payroll_run_id, profile_id=profile_id)
                    self.session.add(row)
                row.period_start = run.period_start
                row.period_end = run.period_end
                row.hours_total = round_currency(aggregate.hours_total)
                row.gross_pay = round_currency(aggregate.gross_pay)
                row.rate_at_time = aggregate.rate_at_time
                row.status = status
                row.timesheet_refs = list(aggregate.timesheet_refs)

            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise BatchCommitFailureError("payroll run summaries", exc) from exc

        logger.info(
            "Persisted summaries for run %s: %d upserted, %d deleted",
            run.payroll_run_id,
            len(summaries),
            len(stale),
        )
        return SummaryWriteResult(deleted=len(stale), upserted=len(summaries))
