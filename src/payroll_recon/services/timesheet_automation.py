"""Approval and earnings updates for clock-event labor when a job completes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_recon.calculators.compensation import CompensationCalculator
from payroll_recon.calculators.rate_resolver import RateResolver
from payroll_recon.errors import BatchCommitFailureError, NotFoundError
from payroll_recon.models import Job, LaborRecord
from payroll_recon.models.labor import CLOCK_EVENT_SOURCE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LaborEarningsState:
    """Fields touched by the completion update, as they were before it."""

    admin_approved: bool
    earnings: Decimal | None
    rate_snapshot: dict[str, Any] | None


@dataclass
class EarningsUpdate:
    """Records approved by one completion, with their prior state."""

    timesheet_ids: list[UUID] = field(default_factory=list)
    prior: dict[UUID, LaborEarningsState] = field(default_factory=dict)


class TimesheetEarningsUpdater:
    """Approves a job's clock-event labor and prices it at completion time.

    Each call is one atomic batch. Records that do not yet carry a rate
    snapshot get one captured here, scoped to the job's location and
    client, so later rate changes cannot reprice them.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def update_on_job_completion(self, job_id: UUID) -> EarningsUpdate:
        """Approve and price pending clock-event records for a job.

        Raises:
            NotFoundError: If the job does not exist
            BatchCommitFailureError: If the batch could not be committed
        """
        job = await self.session.get(Job, job_id)
        if job is None:
            raise NotFoundError("Job", job_id)

        result = await self.session.execute(
            select(LaborRecord)
            .where(
                LaborRecord.job_id == job_id,
                LaborRecord.source == CLOCK_EVENT_SOURCE,
                LaborRecord.admin_approved.is_(False),
            )
            .order_by(LaborRecord.start, LaborRecord.labor_record_id)
        )
        records = list(result.scalars().all())
        if not records:
            return EarningsUpdate()

        resolver = RateResolver(self.session)
        calculator = CompensationCalculator(resolver)
        update = EarningsUpdate()
        now = datetime.now(timezone.utc)

        try:
            for record in records:
                update.prior[record.labor_record_id] = LaborEarningsState(
                    admin_approved=record.admin_approved,
                    earnings=record.earnings,
                    rate_snapshot=record.rate_snapshot,
                )

                if record.rate_snapshot is None and record.employee_id is not None:
                    snapshot = await resolver.resolve_snapshot(
                        record.employee_id,
                        record.start or job.service_date,
                        location_id=job.location_id,
                        client_profile_id=job.client_profile_id,
                    )
                    if snapshot is not None:
                        record.rate_snapshot = snapshot.to_document()

                comp = await calculator.compute(record)
                record.earnings = comp.earnings
                record.admin_approved = True
                record.updated_at = now
                update.timesheet_ids.append(record.labor_record_id)

            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise BatchCommitFailureError("timesheet earnings", exc) from exc

        logger.info("Approved %d clock-event record(s) for job %s", len(update.timesheet_ids), job_id)
        return update

    async def rollback_on_job_completion(
        self,
        timesheet_ids: list[UUID],
        prior: dict[UUID, LaborEarningsState] | None = None,
    ) -> int:
        """Undo a completion update.

        With prior state the records are restored exactly; without it,
        clock-event records are only marked unapproved again.

        Raises:
            BatchCommitFailureError: If the batch could not be committed
        """
        if not timesheet_ids:
            return 0

        result = await self.session.execute(
            select(LaborRecord)
            .where(LaborRecord.labor_record_id.in_(timesheet_ids))
            .execution_options(populate_existing=True)
        )
        records = list(result.scalars().all())
        now = datetime.now(timezone.utc)
        reverted = 0

        try:
            for record in records:
                state = (prior or {}).get(record.labor_record_id)
                if state is not None:
                    record.admin_approved = state.admin_approved
                    record.earnings = state.earnings
                    record.rate_snapshot = state.rate_snapshot
                elif record.source == CLOCK_EVENT_SOURCE:
                    record.admin_approved = False
                else:
                    continue
                record.updated_at = now
                reverted += 1

            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise BatchCommitFailureError("timesheet earnings rollback", exc) from exc

        logger.info("Reverted %d timesheet(s) after failed job completion", reverted)
        return reverted
