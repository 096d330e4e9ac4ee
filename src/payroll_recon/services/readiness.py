"""Payroll readiness guard for job completion."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from payroll_recon.calculators.rate_resolver import RateResolver
from payroll_recon.errors import NotFoundError
from payroll_recon.models import Job
from payroll_recon.services.directory import EmployeeDirectory

logger = logging.getLogger(__name__)


class PayrollReadinessValidator:
    """Finds assigned employees who could not be paid for a job.

    An employee is ready when a rate resolves for the job's service date,
    preferring rates scoped to the job's location, then its client. Owners
    are always ready. The check is read-only.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def validate_job_payroll_readiness(self, job_id: UUID) -> list[UUID]:
        """Return ids of assigned employees missing a rate (empty when ready).

        Raises:
            NotFoundError: If the job does not exist
        """
        job = await self.session.get(Job, job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        return await self.find_missing_rate_employee_ids(job)

    async def find_missing_rate_employee_ids(self, job: Job) -> list[UUID]:
        resolver = RateResolver(self.session)
        directory = EmployeeDirectory(self.session)

        missing: list[UUID] = []
        for employee_id in job.assigned_employee_ids:
            if employee_id in missing or await directory.is_owner(employee_id):
                continue
            snapshot = await resolver.resolve_snapshot(
                employee_id,
                job.service_date,
                location_id=job.location_id,
                client_profile_id=job.client_profile_id,
            )
            if snapshot is None:
                missing.append(employee_id)

        if missing:
            logger.info("Job %s has %d employee(s) without a pay rate", job.job_id, len(missing))
        return missing
