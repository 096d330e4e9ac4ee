"""Tests for the payroll run service."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from payroll_recon.errors import InvalidArgumentError, NotFoundError
from payroll_recon.models import LaborRecord, PayrollRun
from payroll_recon.services.payroll_run_service import PayrollRunService, default_period_id
from tests.conftest import utc

JAN_START = utc(2024, 1, 1)
JAN_END = utc(2024, 2, 1)


class TestCreateRun:
    """Test run creation and period validation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "start,end",
        [
            (None, JAN_END),
            (JAN_START, None),
            (JAN_END, JAN_START),
            (JAN_START, JAN_START),
        ],
    )
    async def test_invalid_period(self, session, start, end):
        with pytest.raises(InvalidArgumentError):
            await PayrollRunService(session).create_run(start, end, "admin-1")

    @pytest.mark.asyncio
    async def test_creates_draft_with_zero_totals(self, session):
        service = PayrollRunService(session)

        run = await service.create_run(JAN_START, JAN_END, "admin-1")

        stored = await service.get_run(run.payroll_run_id)
        assert stored.status == "draft"
        assert stored.total_earnings == Decimal("0")
        assert stored.totals["byEmployee"] == {}
        assert stored.created_by == "admin-1"
        assert stored.summaries == []

    @pytest.mark.asyncio
    async def test_get_unknown_run(self, session):
        with pytest.raises(NotFoundError):
            await PayrollRunService(session).get_run(uuid4())


class TestRecalcAndApprove:
    """Test binding records to a run and recomputing it."""

    @pytest.mark.asyncio
    async def test_approve_empty_list_touches_nothing(self, session):
        # The run does not exist: an empty request must not even look it up
        result = await PayrollRunService(session).approve_records_into_run(uuid4(), [], "admin-1")

        assert (result.updated, result.skipped, result.errors, result.total) == (0, 0, 0, 0)

    @pytest.mark.asyncio
    async def test_approve_requires_run_id(self, session):
        with pytest.raises(InvalidArgumentError):
            await PayrollRunService(session).approve_records_into_run(None, [uuid4()])

    @pytest.mark.asyncio
    async def test_approve_unknown_run(self, session, employee, make_labor):
        record = await make_labor(employee.employee_id, hours="1")

        with pytest.raises(NotFoundError):
            await PayrollRunService(session).approve_records_into_run(uuid4(), [record.labor_record_id])

    @pytest.mark.asyncio
    async def test_approve_binds_records_and_recalcs(self, session, employee, make_run, make_labor):
        run = await make_run()
        first = await make_labor(
            employee.employee_id,
            hours="3.5",
            rate_snapshot={"type": "hourly", "amount": "22.50"},
        )
        second = await make_labor(
            employee.employee_id,
            start=utc(2024, 1, 9, 9),
            units=2,
            rate_snapshot={"type": "per_visit", "amount": "40"},
        )
        service = PayrollRunService(session)

        result = await service.approve_records_into_run(
            run.payroll_run_id,
            [first.labor_record_id, second.labor_record_id, uuid4()],
            "admin-1",
        )

        assert result.updated == 2
        assert result.errors == 1
        assert result.total == 3

        stored = await service.get_run(run.payroll_run_id)
        assert stored.total_earnings == Decimal("158.75")
        assert stored.total_hours == Decimal("3.50")
        assert stored.updated_by == "admin-1"
        assert stored.totals["totalEarnings"] == "158.75"
        assert [s.profile_id for s in stored.summaries] == [employee.profile_id]

        record = await session.get(LaborRecord, first.labor_record_id)
        assert record.admin_approved is True
        assert record.approved_in_run_id == run.payroll_run_id

    @pytest.mark.asyncio
    async def test_recalc_is_idempotent(self, session, employee, make_run, make_labor):
        run = await make_run()
        await make_labor(
            employee.employee_id,
            hours="8",
            rate_snapshot={"type": "hourly", "amount": "18.75"},
            approved_in_run_id=run.payroll_run_id,
        )
        service = PayrollRunService(session)

        await service.recalc_run(run.payroll_run_id)
        first = dict((await service.get_run(run.payroll_run_id)).totals)
        await service.recalc_run(run.payroll_run_id)
        stored = await service.get_run(run.payroll_run_id)

        assert stored.totals == first
        assert stored.total_earnings == Decimal("150.00")
        assert len(stored.summaries) == 1

    @pytest.mark.asyncio
    async def test_recalc_drops_summaries_of_removed_records(
        self, session, employee, second_employee, make_run, make_labor
    ):
        run = await make_run()
        snapshot = {"type": "hourly", "amount": "20"}
        await make_labor(employee.employee_id, hours="1", rate_snapshot=snapshot, approved_in_run_id=run.payroll_run_id)
        removed = await make_labor(
            second_employee.employee_id,
            hours="1",
            rate_snapshot=snapshot,
            approved_in_run_id=run.payroll_run_id,
        )
        service = PayrollRunService(session)
        await service.recalc_run(run.payroll_run_id)

        removed.approved_in_run_id = None
        await session.commit()
        await service.recalc_run(run.payroll_run_id)

        stored = await service.get_run(run.payroll_run_id)
        assert [s.profile_id for s in stored.summaries] == [employee.profile_id]
        assert stored.total_earnings == Decimal("20.00")


class TestScanPeriod:
    """Test the read-only period preview."""

    @pytest.mark.asyncio
    async def test_rateless_record_is_reported_not_totalled(
        self, session, employee, second_employee, make_labor, make_rate
    ):
        await make_rate(employee.employee_id, "20.00", effective_date=utc(2023, 1, 1))
        await make_labor(employee.employee_id, hours="2")
        rateless = await make_labor(second_employee.employee_id, hours="3")
        # Outside the half-open period
        await make_labor(employee.employee_id, hours="5", start=JAN_END)

        scan = await PayrollRunService(session).scan_period(JAN_START, JAN_END)

        assert scan.timesheet_count == 2
        assert scan.total_earnings == Decimal("40.00")
        assert scan.total_hours == Decimal("2.00")
        assert [m.labor_record_id for m in scan.missing_rates] == [rateless.labor_record_id]
        assert scan.period_id == default_period_id(JAN_START, JAN_END)

    @pytest.mark.asyncio
    async def test_scan_writes_nothing(self, session, employee, make_labor, make_rate):
        await make_rate(employee.employee_id, "20.00", effective_date=utc(2023, 1, 1))
        record = await make_labor(employee.employee_id, hours="2")

        await PayrollRunService(session).scan_period(JAN_START, JAN_END)

        assert not session.dirty
        stored = await session.get(LaborRecord, record.labor_record_id, populate_existing=True)
        assert stored.rate_snapshot is None
        assert stored.earnings is None


class TestGenerateRuns:
    """Test per-employee run generation."""

    @pytest.mark.asyncio
    async def test_one_run_per_paid_employee(
        self, session, employee, second_employee, make_labor, make_rate
    ):
        await make_rate(employee.employee_id, "20.00", effective_date=utc(2023, 1, 1))
        await make_labor(employee.employee_id, hours="2")
        await make_labor(employee.employee_id, hours="1", start=utc(2024, 1, 12, 9))
        await make_labor(second_employee.employee_id, hours="4")
        await make_labor(None, hours="4", hourly_rate=Decimal("20"))

        result = await PayrollRunService(session).generate_runs(
            JAN_START, JAN_END, "admin-1", period_id="2024-01"
        )

        assert result.updated == 1
        assert result.skipped == 2
        assert result.errors == 0
        assert result.total == 4

        runs = (await session.execute(select(PayrollRun))).scalars().all()
        assert len(runs) == 1
        run = runs[0]
        assert run.payroll_run_id == result.ids[0]
        assert run.employee_id == employee.employee_id
        assert run.period_id == "2024-01"
        assert run.total_earnings == Decimal("60.00")
        assert run.totals["byEmployee"][str(employee.employee_id)]["earnings"] == "60.00"

    @pytest.mark.asyncio
    async def test_generated_run_totals_survive_recalc(self, session, employee, make_labor, make_rate):
        await make_rate(employee.employee_id, "20.00", effective_date=utc(2023, 1, 1))
        record = await make_labor(employee.employee_id, hours="2")
        service = PayrollRunService(session)

        result = await service.generate_runs(JAN_START, JAN_END, "admin-1")
        run_id = result.ids[0]
        generated = dict((await service.get_run(run_id)).totals)

        await service.recalc_run(run_id, "admin-1")

        stored = await service.get_run(run_id)
        assert stored.total_earnings == Decimal("40.00")
        assert stored.totals == generated
        assert [s.profile_id for s in stored.summaries] == [employee.profile_id]
        bound = await session.get(LaborRecord, record.labor_record_id, populate_existing=True)
        assert bound.approved_in_run_id == run_id
        assert bound.admin_approved is True

    @pytest.mark.asyncio
    async def test_records_already_in_a_run_are_not_regenerated(
        self, session, employee, make_run, make_labor, make_rate
    ):
        await make_rate(employee.employee_id, "20.00", effective_date=utc(2023, 1, 1))
        existing = await make_run()
        await make_labor(employee.employee_id, hours="2", approved_in_run_id=existing.payroll_run_id)
        await make_labor(employee.employee_id, hours="1", start=utc(2024, 1, 12, 9))
        service = PayrollRunService(session)

        result = await service.generate_runs(JAN_START, JAN_END)

        assert (result.updated, result.skipped) == (1, 1)
        run = await service.get_run(result.ids[0])
        assert run.total_earnings == Decimal("20.00")

        again = await service.generate_runs(JAN_START, JAN_END)
        assert again.updated == 0
        assert again.skipped == 2

    @pytest.mark.asyncio
    async def test_nothing_payable_creates_no_runs(self, session, employee, make_labor):
        await make_labor(employee.employee_id, hours="2")

        result = await PayrollRunService(session).generate_runs(JAN_START, JAN_END)

        assert result.updated == 0
        assert result.ids == []


class TestBackfillRateSnapshots:
    """Test snapshot backfill counts and writes."""

    @pytest.mark.asyncio
    async def test_backfill_counts(self, session, employee, second_employee, make_labor, make_rate):
        await make_rate(employee.employee_id, "25.00", effective_date=utc(2023, 1, 1))
        target = await make_labor(employee.employee_id, hours="2")
        await make_labor(employee.employee_id, hours="2", rate_snapshot={"type": "hourly", "amount": "19"})
        await make_labor(second_employee.employee_id, hours="2")
        await make_labor(None, hours="2")

        result = await PayrollRunService(session).backfill_rate_snapshots(JAN_START, JAN_END, "ops")

        assert (result.updated, result.skipped, result.errors, result.total) == (1, 2, 1, 4)
        assert result.ids == [target.labor_record_id]

        stored = await session.get(LaborRecord, target.labor_record_id, populate_existing=True)
        assert stored.rate_snapshot == {"type": "hourly", "amount": "25.00"}
        assert stored.backfilled_by == "ops"
        assert stored.backfilled_at is not None

    @pytest.mark.asyncio
    async def test_backfill_is_repeatable(self, session, employee, make_labor, make_rate):
        await make_rate(employee.employee_id, "25.00", effective_date=utc(2023, 1, 1))
        await make_labor(employee.employee_id, hours="2")
        service = PayrollRunService(session)

        await service.backfill_rate_snapshots(JAN_START, JAN_END)
        again = await service.backfill_rate_snapshots(JAN_START, JAN_END)

        assert again.updated == 0
        assert again.skipped == 1
