"""Payroll entry creation for completed jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_recon.calculators.money import ZERO, add_currency, round_currency
from payroll_recon.calculators.rate_resolver import RateResolver
from payroll_recon.calculators.types import RateKind
from payroll_recon.errors import BatchCommitFailureError, NotFoundError
from payroll_recon.models import Job, PayrollEntry, PayrollPeriod
from payroll_recon.services.directory import EmployeeDirectory
from payroll_recon.services.periods import SemiMonthlyPeriod, period_for_work_date

logger = logging.getLogger(__name__)

EARNING = "earning"
DEDUCTION = "deduction"


@dataclass
class PayrollEntriesResult:
    """Entries booked for one job."""

    period_id: str | None = None
    created: int = 0
    skipped: int = 0
    has_monthly_assignments: bool = False
    entry_ids: list[UUID] = field(default_factory=list)


class PayrollEntryCreator:
    """Books earnings for a completed job into its semi-monthly period.

    Per-visit rates pay the flat amount; hourly rates pay the job duration
    in hours (rounded to two places) times the rate. Monthly-rate employees
    are paid through their salary, so they are only flagged. Creating
    entries twice for the same job books nothing new.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_entries_for_job(self, job_id: UUID) -> PayrollEntriesResult:
        """Create earning entries for every payable employee on a job.

        Raises:
            NotFoundError: If the job does not exist
            BatchCommitFailureError: If the batch could not be committed
        """
        job = await self.session.get(Job, job_id)
        if job is None:
            raise NotFoundError("Job", job_id)

        period = period_for_work_date(job.service_date)
        result = PayrollEntriesResult(period_id=period.period_id)
        employee_ids = job.assigned_employee_ids
        if not employee_ids:
            return result

        resolver = RateResolver(self.session)
        directory = EmployeeDirectory(self.session)

        try:
            payroll_period = await self.ensure_period(period)
            booked = await self._booked_earnings(period.period_id, job_id)

            for employee_id in employee_ids:
                if await directory.is_owner(employee_id):
                    result.skipped += 1
                    continue

                snapshot = await resolver.resolve_snapshot(
                    employee_id,
                    job.service_date,
                    location_id=job.location_id,
                    client_profile_id=job.client_profile_id,
                )
                if snapshot is None:
                    logger.warning("No pay rate for employee %s on job %s", employee_id, job_id)
                    result.skipped += 1
                    continue
                if snapshot.kind == RateKind.MONTHLY:
                    result.has_monthly_assignments = True
                    continue

                if snapshot.kind == RateKind.PER_VISIT:
                    hours = None
                    units: int | None = 1
                    amount = round_currency(snapshot.amount)
                else:
                    hours = round_currency(Decimal(job.duration_minutes or 0) / 60)
                    units = None
                    amount = round_currency(hours * snapshot.amount)

                category = snapshot.kind.value
                if amount <= 0 or (employee_id, category) in booked:
                    result.skipped += 1
                    continue

                entry = PayrollEntry(
                    payroll_entry_id=uuid4(),
                    period_id=period.period_id,
                    employee_id=employee_id,
                    job_id=job_id,
                    entry_type=EARNING,
                    category=category,
                    amount=amount,
                    hours=hours,
                    units=units,
                    rate_snapshot=snapshot.to_document(),
                    description=f"{job.location_name or 'Job'} ({category.replace('_', ' ')})",
                    job_completed_at=job.completed_at,
                )
                self.session.add(entry)
                booked.add((employee_id, category))
                result.entry_ids.append(entry.payroll_entry_id)
                result.created += 1

            if result.created:
                await self.session.flush()
                await self.recalculate_period_totals(payroll_period)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise BatchCommitFailureError("payroll entries", exc) from exc

        logger.info(
            "Booked %d payroll entr%s for job %s in period %s",
            result.created,
            "y" if result.created == 1 else "ies",
            job_id,
            period.period_id,
        )
        return result

    async def ensure_period(self, period: SemiMonthlyPeriod) -> PayrollPeriod:
        """Get the stored period, adding it (uncommitted) when absent."""
        payroll_period = await self.session.get(PayrollPeriod, period.period_id)
        if payroll_period is None:
            payroll_period = PayrollPeriod(
                period_id=period.period_id,
                period_start=period.work_period_start,
                period_end=period.work_period_end,
                pay_date=period.pay_date,
                status="open",
                gross=ZERO,
                deductions=ZERO,
                net=ZERO,
            )
            self.session.add(payroll_period)
            await self.session.flush()
        return payroll_period

    async def recalculate_period_totals(self, payroll_period: PayrollPeriod) -> None:
        """Recompute gross, deductions and net from the period's entries."""
        result = await self.session.execute(
            select(PayrollEntry.entry_type, PayrollEntry.amount).where(
                PayrollEntry.period_id == payroll_period.period_id
            )
        )
        gross = ZERO
        deductions = ZERO
        for entry_type, amount in result.all():
            if entry_type == DEDUCTION:
                deductions = add_currency(deductions, abs(amount))
            else:
                gross = add_currency(gross, amount)

        payroll_period.gross = gross
        payroll_period.deductions = deductions
        payroll_period.net = round_currency(gross - deductions)
        payroll_period.updated_at = datetime.now(timezone.utc)

    async def _booked_earnings(self, period_id: str, job_id: UUID) -> set[tuple[UUID, str]]:
        result = await self.session.execute(
            select(PayrollEntry.employee_id, PayrollEntry.category).where(
                PayrollEntry.period_id == period_id,
                PayrollEntry.job_id == job_id,
                PayrollEntry.entry_type == EARNING,
            )
        )
        return {(employee_id, category) for employee_id, category in result.all()}
