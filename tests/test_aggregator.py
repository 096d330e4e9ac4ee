"""Tests for run aggregation and summary persistence."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from payroll_recon.calculators import RunAggregator
from payroll_recon.errors import BatchCommitFailureError, NotFoundError
from payroll_recon.models import RunSummary
from payroll_recon.services.summary_writer import SummaryWriter
from tests.conftest import utc


async def stored_summaries(session, run_id):
    result = await session.execute(
        select(RunSummary)
        .where(RunSummary.payroll_run_id == run_id)
        .execution_options(populate_existing=True)
    )
    return {row.profile_id: row for row in result.scalars().all()}


class TestRunAggregator:
    """Test totals and summaries computed from bound records."""

    @pytest.mark.asyncio
    async def test_mixed_rate_types_for_one_employee(self, session, employee, make_run, make_labor):
        """Hourly 3.5h at 22.50 plus 2 visits at 40 totals 158.75."""
        run = await make_run()
        hourly = await make_labor(
            employee.employee_id,
            hours="3.5",
            rate_snapshot={"type": "hourly", "amount": "22.50"},
            approved_in_run_id=run.payroll_run_id,
        )
        visits = await make_labor(
            employee.employee_id,
            start=utc(2024, 1, 6, 9),
            units=2,
            rate_snapshot={"type": "per_visit", "amount": "40"},
            approved_in_run_id=run.payroll_run_id,
        )

        artifacts = await RunAggregator(session).aggregate(run.payroll_run_id)

        assert artifacts.totals.total_hours == Decimal("3.50")
        assert artifacts.totals.total_earnings == Decimal("158.75")
        employee_totals = artifacts.totals.by_employee[str(employee.employee_id)]
        assert employee_totals.earnings == Decimal("158.75")
        assert employee_totals.hourly_rate == Decimal("22.50")

        summary = artifacts.summaries[employee.profile_id]
        assert summary.gross_pay == Decimal("158.75")
        assert summary.hours_total == Decimal("3.50")
        assert summary.timesheet_refs == [str(hourly.labor_record_id), str(visits.labor_record_id)]

    @pytest.mark.asyncio
    async def test_aggregate_is_idempotent(self, session, employee, make_run, make_labor, make_rate):
        await make_rate(employee.employee_id, "20.00", effective_date=utc(2023, 1, 1))
        run = await make_run()
        await make_labor(employee.employee_id, hours="4", approved_in_run_id=run.payroll_run_id)
        await make_labor(
            employee.employee_id,
            hours="1.25",
            start=utc(2024, 1, 8, 9),
            approved_in_run_id=run.payroll_run_id,
        )

        aggregator = RunAggregator(session)
        first = await aggregator.aggregate(run.payroll_run_id)
        second = await aggregator.aggregate(run.payroll_run_id)

        assert first.totals.to_document() == second.totals.to_document()
        assert first.totals.total_earnings == Decimal("105.00")

    @pytest.mark.asyncio
    async def test_membership_is_by_run_binding_not_dates(self, session, employee, make_run, make_labor):
        run = await make_run()
        other_run = await make_run()
        snapshot = {"type": "hourly", "amount": "10"}
        await make_labor(
            employee.employee_id,
            hours="1",
            start=utc(2023, 11, 1),
            rate_snapshot=snapshot,
            approved_in_run_id=run.payroll_run_id,
        )
        await make_labor(employee.employee_id, hours="5", rate_snapshot=snapshot)
        await make_labor(
            employee.employee_id,
            hours="7",
            rate_snapshot=snapshot,
            approved_in_run_id=other_run.payroll_run_id,
        )

        artifacts = await RunAggregator(session).aggregate(run.payroll_run_id)

        assert artifacts.totals.total_earnings == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_zero_hours_without_snapshot_are_skipped(self, session, employee, make_run, make_labor):
        run = await make_run()
        skipped = await make_labor(
            employee.employee_id,
            hours="0",
            hourly_rate=Decimal("20"),
            approved_in_run_id=run.payroll_run_id,
        )

        artifacts = await RunAggregator(session).aggregate(run.payroll_run_id)

        assert artifacts.skipped_record_ids == [skipped.labor_record_id]
        assert artifacts.summaries == {}
        assert artifacts.totals.total_hours == Decimal("0")

    @pytest.mark.asyncio
    async def test_empty_snapshot_counts_as_no_snapshot(self, session, employee, make_run, make_labor):
        run = await make_run()
        skipped = await make_labor(
            employee.employee_id,
            hours="0",
            rate_snapshot={},
            approved_in_run_id=run.payroll_run_id,
        )

        artifacts = await RunAggregator(session).aggregate(run.payroll_run_id)

        assert artifacts.skipped_record_ids == [skipped.labor_record_id]
        assert artifacts.summaries == {}

    @pytest.mark.asyncio
    async def test_profile_falls_back_to_employee(self, session, employee, make_run, make_labor):
        run = await make_run()
        direct_profile = uuid4()
        await make_labor(
            employee.employee_id,
            hours="1",
            hourly_rate=Decimal("20"),
            approved_in_run_id=run.payroll_run_id,
        )
        await make_labor(
            employee.employee_id,
            hours="1",
            hourly_rate=Decimal("20"),
            employee_profile_id=direct_profile,
            approved_in_run_id=run.payroll_run_id,
        )

        artifacts = await RunAggregator(session).aggregate(run.payroll_run_id)

        assert set(artifacts.summaries) == {employee.profile_id, direct_profile}

    @pytest.mark.asyncio
    async def test_record_without_employee_or_profile(self, session, make_run, make_labor):
        """Counted in run totals, absent from summaries."""
        run = await make_run()
        await make_labor(
            None,
            hours="2",
            rate_snapshot={"type": "hourly", "amount": "15"},
            approved_in_run_id=run.payroll_run_id,
        )

        artifacts = await RunAggregator(session).aggregate(run.payroll_run_id)

        assert artifacts.totals.total_earnings == Decimal("30.00")
        assert artifacts.totals.by_employee == {}
        assert artifacts.summaries == {}

    @pytest.mark.asyncio
    async def test_unknown_run(self, session):
        run_id = uuid4()

        with pytest.raises(NotFoundError) as exc_info:
            await RunAggregator(session).aggregate(run_id)

        assert exc_info.value.entity_id == run_id


class TestSummaryWriter:
    """Test full-overwrite summary persistence."""

    @pytest.mark.asyncio
    async def test_persist_writes_one_row_per_profile(
        self, session, employee, second_employee, make_run, make_labor
    ):
        run = await make_run()
        for emp in (employee, second_employee):
            await make_labor(
                emp.employee_id,
                hours="2",
                rate_snapshot={"type": "hourly", "amount": "20"},
                approved_in_run_id=run.payroll_run_id,
            )
        artifacts = await RunAggregator(session).aggregate(run.payroll_run_id)

        result = await SummaryWriter(session).persist(run, artifacts.summaries)

        assert result.upserted == 2
        assert result.deleted == 0
        rows = await stored_summaries(session, run.payroll_run_id)
        assert set(rows) == {employee.profile_id, second_employee.profile_id}
        assert rows[employee.profile_id].gross_pay == Decimal("40.00")
        assert rows[employee.profile_id].status == "draft"

    @pytest.mark.asyncio
    async def test_stale_profiles_are_deleted(self, session, employee, second_employee, make_run, make_labor):
        run = await make_run()
        records = []
        for emp in (employee, second_employee):
            records.append(
                await make_labor(
                    emp.employee_id,
                    hours="2",
                    rate_snapshot={"type": "hourly", "amount": "20"},
                    approved_in_run_id=run.payroll_run_id,
                )
            )
        writer = SummaryWriter(session)
        await writer.persist(run, (await RunAggregator(session).aggregate(run.payroll_run_id)).summaries)

        records[1].approved_in_run_id = None
        await session.commit()
        result = await writer.persist(run, (await RunAggregator(session).aggregate(run.payroll_run_id)).summaries)

        assert result.deleted == 1
        rows = await stored_summaries(session, run.payroll_run_id)
        assert set(rows) == {employee.profile_id}

    @pytest.mark.asyncio
    async def test_nothing_to_write_is_a_no_op(self, session, make_run):
        run = await make_run()

        result = await SummaryWriter(session).persist(run, {})

        assert not result.committed
        assert await stored_summaries(session, run.payroll_run_id) == {}

    @pytest.mark.asyncio
    async def test_failed_commit_writes_nothing(self, session, employee, make_run, make_labor, monkeypatch):
        run = await make_run()
        run_id = run.payroll_run_id
        await make_labor(
            employee.employee_id,
            hours="2",
            rate_snapshot={"type": "hourly", "amount": "20"},
            approved_in_run_id=run.payroll_run_id,
        )
        artifacts = await RunAggregator(session).aggregate(run.payroll_run_id)

        async def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(session, "commit", failing_commit)

        with pytest.raises(BatchCommitFailureError):
            await SummaryWriter(session).persist(run, artifacts.summaries)

        monkeypatch.undo()
        assert await stored_summaries(session, run_id) == {}
