"""Employee directory lookups used by the guard and the API layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_recon.models import Employee
from payroll_recon.models.employee import OWNER_ROLE


class EmployeeDirectory:
    """Role and display-name lookups, memoised for the life of the instance."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._roles: dict[UUID, str | None] = {}

    async def is_owner(self, employee_id: UUID) -> bool:
        """Owners draw no pay, so they never need a rate."""
        if employee_id not in self._roles:
            employee = await self.session.get(Employee, employee_id)
            self._roles[employee_id] = employee.role if employee is not None else None
        return self._roles[employee_id] == OWNER_ROLE

    async def resolve_display_names(self, employee_ids: list[UUID]) -> list[str]:
        """Display names in input order; falls back to email, then the raw id."""
        if not employee_ids:
            return []

        result = await self.session.execute(
            select(Employee).where(Employee.employee_id.in_(employee_ids))
        )
        by_id = {e.employee_id: e for e in result.scalars().all()}

        names = []
        for employee_id in employee_ids:
            employee = by_id.get(employee_id)
            if employee is not None and employee.display_name:
                names.append(employee.display_name)
            elif employee is not None and employee.email:
                names.append(employee.email)
            else:
                names.append(str(employee_id))
        return names
