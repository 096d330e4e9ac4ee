"""Payroll run service - orchestrator for run-level payroll operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from payroll_recon.calculators import CompensationCalculator, RateResolver, RunAggregator
from payroll_recon.calculators.money import ZERO, add_currency
from payroll_recon.calculators.types import EmployeeTotals, RunArtifacts, RunTotals
from payroll_recon.errors import BatchCommitFailureError, InvalidArgumentError, NotFoundError
from payroll_recon.models import LaborRecord, PayrollRun
from payroll_recon.services.readiness import PayrollReadinessValidator
from payroll_recon.services.state_machine import PayrollRunStatus
from payroll_recon.services.summary_writer import SummaryWriter

logger = logging.getLogger(__name__)


@dataclass
class BulkOperationResult:
    """Counts from a bulk operation.

    `updated` counts written rows of the operation's target kind (records
    for approve/backfill, runs for generate); skipped and errors count
    input records.
    """

    updated: int = 0
    skipped: int = 0
    errors: int = 0
    total: int = 0
    ids: list[UUID] = field(default_factory=list)


@dataclass(frozen=True)
class MissingRate:
    labor_record_id: UUID
    employee_id: UUID | None
    employee_profile_id: UUID | None
    start: datetime | None


@dataclass(frozen=True)
class LaborPreview:
    labor_record_id: UUID
    employee_id: UUID | None
    start: datetime | None
    hours: Decimal
    earnings: Decimal
    applied_rate: Decimal | None
    rate_type: str | None


@dataclass
class PeriodScan:
    """Read-only preview of a period's labor."""

    period_id: str
    timesheet_count: int = 0
    total_hours: Decimal = ZERO
    total_earnings: Decimal = ZERO
    missing_rates: list[MissingRate] = field(default_factory=list)
    timesheets: list[LaborPreview] = field(default_factory=list)


def default_period_id(period_start: datetime, period_end: datetime) -> str:
    """Period key built from the bounds as epoch milliseconds."""
    return f"{int(period_start.timestamp() * 1000)}-{int(period_end.timestamp() * 1000)}"


class PayrollRunService:
    """Service for payroll run lifecycle and period maintenance.

    Operations:
    - create_run: Create a draft run for a period
    - recalc_run: Recompute run totals and summaries from its records
    - scan_period: Preview a period without writing
    - generate_runs: Create one draft run per paid employee in a period
    - approve_records_into_run: Bind labor records to a run, then recalc
    - backfill_rate_snapshots: Capture missing rate snapshots in a range
    - validate_job_readiness: Payroll readiness guard for job completion
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.aggregator = RunAggregator(session)
        self.summary_writer = SummaryWriter(session)

    async def get_run(self, run_id: UUID, load_summaries: bool = True) -> PayrollRun:
        """Load a run, optionally with its summaries.

        Raises:
            NotFoundError: If the run does not exist
        """
        query = select(PayrollRun).where(PayrollRun.payroll_run_id == run_id)
        if load_summaries:
            query = query.options(selectinload(PayrollRun.summaries))
        result = await self.session.execute(query.execution_options(populate_existing=True))
        run = result.scalar_one_or_none()
        if run is None:
            raise NotFoundError("Payroll run", run_id)
        return run

    async def create_run(
        self,
        period_start: datetime | None,
        period_end: datetime | None,
        actor_id: str | None = None,
    ) -> PayrollRun:
        """Create a draft run with zero totals.

        Raises:
            InvalidArgumentError: If a bound is missing or start >= end
        """
        self._validate_period(period_start, period_end)

        run = PayrollRun(
            period_start=period_start,
            period_end=period_end,
            status=PayrollRunStatus.DRAFT.value,
            totals=RunTotals().to_document(),
            total_hours=ZERO,
            total_earnings=ZERO,
            created_by=actor_id,
        )
        self.session.add(run)
        await self._commit("payroll run")

        artifacts = await self.aggregator.aggregate(run.payroll_run_id, run=run)
        await self.summary_writer.persist(run, artifacts.summaries)

        logger.info("Created payroll run %s for %s - %s", run.payroll_run_id, period_start, period_end)
        return run

    async def recalc_run(self, run_id: UUID, actor_id: str | None = None) -> RunArtifacts:
        """Recompute and store a run's totals, then refresh its summaries.

        Safe to repeat: identical inputs produce identical stored values.

        Raises:
            NotFoundError: If the run does not exist
            BatchCommitFailureError: If a write could not be committed
        """
        artifacts = await self.aggregator.aggregate(run_id)
        run = artifacts.run

        run.totals = artifacts.totals.to_document()
        run.total_hours = artifacts.totals.total_hours
        run.total_earnings = artifacts.totals.total_earnings
        run.updated_by = actor_id
        run.updated_at = datetime.now(timezone.utc)
        await self._commit("payroll run totals")

        await self.summary_writer.persist(run, artifacts.summaries)

        if artifacts.skipped_record_ids:
            logger.info(
                "Run %s: skipped %d record(s) with no hours and no snapshot",
                run_id,
                len(artifacts.skipped_record_ids),
            )
        return artifacts

    async def scan_period(self, period_start: datetime, period_end: datetime) -> PeriodScan:
        """Preview the labor whose start falls in [period_start, period_end).

        Records with no snapshot and no resolvable rate are listed under
        missing_rates and left out of the totals.
        """
        self._validate_period(period_start, period_end)

        records = await self._records_in_period(period_start, period_end)
        calculator = CompensationCalculator(RateResolver(self.session))
        scan = PeriodScan(
            period_id=default_period_id(period_start, period_end),
            timesheet_count=len(records),
        )

        for record in records:
            comp = await calculator.compute(record)
            if comp.missing_rate:
                scan.missing_rates.append(
                    MissingRate(
                        labor_record_id=record.labor_record_id,
                        employee_id=record.employee_id,
                        employee_profile_id=record.employee_profile_id,
                        start=record.start,
                    )
                )
                continue

            scan.total_hours = add_currency(scan.total_hours, comp.hours)
            scan.total_earnings = add_currency(scan.total_earnings, comp.earnings)
            scan.timesheets.append(
                LaborPreview(
                    labor_record_id=record.labor_record_id,
                    employee_id=record.employee_id,
                    start=record.start,
                    hours=comp.hours,
                    earnings=comp.earnings,
                    applied_rate=comp.applied_rate,
                    rate_type=comp.snapshot.kind.value if comp.snapshot else None,
                )
            )

        return scan

    async def generate_runs(
        self,
        period_start: datetime,
        period_end: datetime,
        actor_id: str | None = None,
        period_id: str | None = None,
    ) -> BulkOperationResult:
        """Create one draft run per employee with earnings in the period.

        Each run is bound to the priced records it totals, so a later
        recalc_run reproduces the same figures. Records already in a run
        are skipped.

        Raises:
            InvalidArgumentError: If the period is malformed
            BatchCommitFailureError: If the runs could not be committed
        """
        self._validate_period(period_start, period_end)

        records = await self._records_in_period(period_start, period_end)
        calculator = CompensationCalculator(RateResolver(self.session))
        result = BulkOperationResult(total=len(records))
        by_employee: dict[UUID, EmployeeTotals] = {}
        priced: dict[UUID, list[LaborRecord]] = {}

        for record in records:
            try:
                if record.employee_id is None or record.approved_in_run_id is not None:
                    result.skipped += 1
                    continue
                comp = await calculator.compute(record)
                if comp.missing_rate or comp.earnings <= 0:
                    result.skipped += 1
                    continue
                by_employee.setdefault(record.employee_id, EmployeeTotals()).add(comp)
                priced.setdefault(record.employee_id, []).append(record)
            except Exception:
                logger.exception("Failed to price labor record %s", record.labor_record_id)
                result.errors += 1

        period_key = period_id or default_period_id(period_start, period_end)
        runs: list[PayrollRun] = []
        now = datetime.now(timezone.utc)
        for employee_id, employee_totals in by_employee.items():
            if employee_totals.earnings <= 0:
                continue
            totals = RunTotals(
                by_employee={str(employee_id): employee_totals},
                total_hours=employee_totals.hours,
                total_earnings=employee_totals.earnings,
            )
            run = PayrollRun(
                payroll_run_id=uuid4(),
                period_start=period_start,
                period_end=period_end,
                period_id=period_key,
                status=PayrollRunStatus.DRAFT.value,
                employee_id=employee_id,
                totals=totals.to_document(),
                total_hours=totals.total_hours,
                total_earnings=totals.total_earnings,
                created_by=actor_id,
            )
            self.session.add(run)
            for record in priced[employee_id]:
                record.approved_in_run_id = run.payroll_run_id
                record.admin_approved = True
                record.updated_at = now
            runs.append(run)
            result.updated += 1

        if result.updated:
            await self._commit("generated payroll runs")
            result.ids = [run.payroll_run_id for run in runs]

        logger.info(
            "Generated %d payroll run(s) for period %s (%d skipped, %d errors)",
            result.updated,
            period_key,
            result.skipped,
            result.errors,
        )
        return result

    async def approve_records_into_run(
        self,
        run_id: UUID | None,
        record_ids: list[UUID] | None,
        actor_id: str | None = None,
    ) -> BulkOperationResult:
        """Bind labor records to a run as admin-approved, then recalc the run.

        Raises:
            InvalidArgumentError: If no run id is given
            NotFoundError: If the run does not exist
        """
        if run_id is None:
            raise InvalidArgumentError("run_id is required")

        ids = [record_id for record_id in (record_ids or []) if record_id]
        if not ids:
            return BulkOperationResult()

        run = await self.session.get(PayrollRun, run_id)
        if run is None:
            raise NotFoundError("Payroll run", run_id)

        result = await self.session.execute(
            select(LaborRecord).where(LaborRecord.labor_record_id.in_(ids))
        )
        records = {record.labor_record_id: record for record in result.scalars().all()}
        outcome = BulkOperationResult(total=len(ids))
        now = datetime.now(timezone.utc)

        for record_id in ids:
            record = records.get(record_id)
            if record is None:
                logger.warning("Labor record %s not found; not approved into run %s", record_id, run_id)
                outcome.errors += 1
                continue
            record.approved_in_run_id = run_id
            record.admin_approved = True
            record.updated_at = now
            outcome.updated += 1
            outcome.ids.append(record_id)

        if outcome.updated:
            await self._commit("labor record approvals")
        await self.recalc_run(run_id, actor_id)
        return outcome

    async def backfill_rate_snapshots(
        self,
        period_start: datetime,
        period_end: datetime,
        actor_id: str | None = None,
    ) -> BulkOperationResult:
        """Capture a rate snapshot on every record in range that lacks one.

        Raises:
            InvalidArgumentError: If the period is malformed
            BatchCommitFailureError: If the snapshots could not be committed
        """
        self._validate_period(period_start, period_end)

        records = await self._records_in_period(period_start, period_end)
        resolver = RateResolver(self.session)
        result = BulkOperationResult(total=len(records))
        now = datetime.now(timezone.utc)

        for record in records:
            if record.rate_snapshot:
                result.skipped += 1
                continue
            if record.employee_id is None or record.start is None:
                logger.warning(
                    "Labor record %s has no employee or start; cannot backfill",
                    record.labor_record_id,
                )
                result.errors += 1
                continue
            try:
                snapshot = await resolver.resolve_snapshot(record.employee_id, record.start)
                if snapshot is None:
                    result.skipped += 1
                    continue
                record.rate_snapshot = snapshot.to_document()
                record.backfilled_at = now
                record.backfilled_by = actor_id
                record.updated_at = now
                result.updated += 1
                result.ids.append(record.labor_record_id)
            except Exception:
                logger.exception("Failed to backfill rate snapshot for %s", record.labor_record_id)
                result.errors += 1

        if result.updated:
            await self._commit("rate snapshot backfill")

        logger.info(
            "Backfilled %d rate snapshot(s): %d skipped, %d errors of %d",
            result.updated,
            result.skipped,
            result.errors,
            result.total,
        )
        return result

    async def validate_job_readiness(self, job_id: UUID) -> list[UUID]:
        """Employee ids on the job that have no resolvable pay rate."""
        return await PayrollReadinessValidator(self.session).validate_job_payroll_readiness(job_id)

    async def _records_in_period(self, period_start: datetime, period_end: datetime) -> list[LaborRecord]:
        result = await self.session.execute(
            select(LaborRecord)
            .where(LaborRecord.start >= period_start, LaborRecord.start < period_end)
            .order_by(LaborRecord.start, LaborRecord.labor_record_id)
        )
        return list(result.scalars().all())

    async def _commit(self, operation: str) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise BatchCommitFailureError(operation, exc) from exc

    @staticmethod
    def _validate_period(period_start: datetime | None, period_end: datetime | None) -> None:
        if period_start is None or period_end is None:
            raise InvalidArgumentError("period_start and period_end are required")
        if period_start >= period_end:
            raise InvalidArgumentError("period_start must be before period_end")
