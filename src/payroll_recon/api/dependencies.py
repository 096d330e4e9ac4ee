"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_recon.database import init_db
from payroll_recon.errors import PermissionDeniedError
from payroll_recon.models import FINANCE_ROLES


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, session_factory = init_db()
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


@dataclass(frozen=True)
class Actor:
    """Caller identity as asserted by the upstream authorization layer."""

    actor_id: str
    roles: frozenset[str]

    @property
    def is_finance_admin(self) -> bool:
        return bool(self.roles & FINANCE_ROLES)


async def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_roles: Annotated[str | None, Header()] = None,
) -> Actor:
    """Extract the caller from headers."""
    if not x_actor_id:
        raise PermissionDeniedError("X-Actor-Id header is required")
    roles = frozenset(r.strip().lower() for r in (x_actor_roles or "").split(",") if r.strip())
    return Actor(actor_id=x_actor_id, roles=roles)


async def require_finance_admin(actor: Annotated[Actor, Depends(get_actor)]) -> Actor:
    """Payroll operations are limited to admins, owners and super admins."""
    if not actor.is_finance_admin:
        raise PermissionDeniedError(f"Actor {actor.actor_id} may not manage payroll")
    return actor


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
FinanceAdmin = Annotated[Actor, Depends(require_finance_admin)]
