"""Pytest fixtures for payroll reconciliation tests."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payroll_recon.models import (
    Base,
    Employee,
    EmployeeRate,
    Job,
    LaborRecord,
    PayrollRun,
    Photo,
)

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def employee(session: AsyncSession) -> Employee:
    """Hourly cleaner billed under their own profile."""
    emp = Employee(
        employee_id=uuid4(),
        display_name="Alice Cleaner",
        email="alice@example.com",
        role="employee",
        profile_id=uuid4(),
    )
    session.add(emp)
    await session.commit()
    return emp


@pytest_asyncio.fixture
async def second_employee(session: AsyncSession) -> Employee:
    emp = Employee(
        employee_id=uuid4(),
        display_name="Bob Porter",
        email="bob@example.com",
        role="employee",
        profile_id=uuid4(),
    )
    session.add(emp)
    await session.commit()
    return emp


@pytest_asyncio.fixture
async def owner(session: AsyncSession) -> Employee:
    emp = Employee(
        employee_id=uuid4(),
        display_name="Olivia Owner",
        role="owner",
    )
    session.add(emp)
    await session.commit()
    return emp


@pytest.fixture
def make_rate(session: AsyncSession):
    """Factory for employee rate rows."""

    async def _make(
        employee_id: UUID,
        amount: str | None = None,
        rate_type: str | None = "hourly",
        effective_date: datetime | None = None,
        hourly_rate: str | None = None,
        created_at: datetime | None = None,
        **scope: Any,
    ) -> EmployeeRate:
        rate = EmployeeRate(
            employee_rate_id=uuid4(),
            employee_id=employee_id,
            rate_type=rate_type,
            amount=Decimal(amount) if amount is not None else None,
            hourly_rate=Decimal(hourly_rate) if hourly_rate is not None else None,
            effective_date=effective_date,
            **scope,
        )
        if created_at is not None:
            rate.created_at = created_at
        session.add(rate)
        await session.commit()
        return rate

    return _make


@pytest.fixture
def make_run(session: AsyncSession):
    """Factory for draft payroll runs."""

    async def _make(
        period_start: datetime = utc(2024, 1, 1),
        period_end: datetime = utc(2024, 1, 16),
    ) -> PayrollRun:
        run = PayrollRun(
            payroll_run_id=uuid4(),
            period_start=period_start,
            period_end=period_end,
            status="draft",
            totals={},
            total_hours=Decimal("0"),
            total_earnings=Decimal("0"),
        )
        session.add(run)
        await session.commit()
        return run

    return _make


@pytest.fixture
def make_labor(session: AsyncSession):
    """Factory for labor records."""

    async def _make(
        employee_id: UUID | None = None,
        start: datetime | None = utc(2024, 1, 5, 9),
        hours: str | None = None,
        **fields: Any,
    ) -> LaborRecord:
        record = LaborRecord(
            labor_record_id=uuid4(),
            employee_id=employee_id,
            start=start,
            hours=Decimal(hours) if hours is not None else None,
            **fields,
        )
        session.add(record)
        await session.commit()
        return record

    return _make


@pytest.fixture
def make_job(session: AsyncSession):
    """Factory for jobs, optionally with photos."""

    async def _make(
        assigned: list[Employee] | None = None,
        status: str | None = "Scheduled",
        service_date: datetime = utc(2024, 3, 10, 9),
        photos: int = 0,
        **fields: Any,
    ) -> Job:
        job = Job(
            job_id=uuid4(),
            assigned_employees=[str(e.employee_id) for e in (assigned or [])],
            status=status,
            service_date=service_date,
            **fields,
        )
        session.add(job)
        for _ in range(photos):
            session.add(Photo(photo_id=uuid4(), job_id=job.job_id, is_client_visible=False))
        await session.commit()
        return job

    return _make
