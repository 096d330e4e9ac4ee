"""API test fixtures: the app wired to the per-test SQLite database."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_recon.api.app import create_app
from payroll_recon.api.dependencies import get_db_session

ADMIN_HEADERS = {"X-Actor-Id": "admin-1", "X-Actor-Roles": "admin"}
EMPLOYEE_HEADERS = {"X-Actor-Id": "emp-1", "X-Actor-Roles": "employee"}


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests use the test database."""
    app = create_app()

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
