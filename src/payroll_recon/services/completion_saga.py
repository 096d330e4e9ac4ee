"""Job approval and completion with payroll follow-up.

Saving a job's approval state is one atomic write (photos, status and
approval stamp). When that write completes the job, two more writes
follow: clock-event labor is approved and priced, then payroll entries
are booked. Those follow-up writes cannot share the first transaction,
so a failure in either one is compensated: earnings are reverted, the
job and its photos are put back the way they were, and the caller gets
a PartialFailureError.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_recon.errors import (
    BatchCommitFailureError,
    InvalidArgumentError,
    NotFoundError,
    PartialFailureError,
    PayrollNotReadyError,
)
from payroll_recon.models import Job, Photo
from payroll_recon.services.payroll_entries import PayrollEntriesResult, PayrollEntryCreator
from payroll_recon.services.payroll_run_service import PayrollRunService
from payroll_recon.services.state_machine import JobStateMachine
from payroll_recon.services.timesheet_automation import (
    EarningsUpdate,
    LaborEarningsState,
    TimesheetEarningsUpdater,
)

logger = logging.getLogger(__name__)

UPDATE_EARNINGS_STEP = "update_timesheet_earnings"
CREATE_ENTRIES_STEP = "create_payroll_entries"


class ReadinessValidator(Protocol):
    async def validate_job_readiness(self, job_id: UUID) -> list[UUID]: ...


class EarningsUpdater(Protocol):
    async def update_on_job_completion(self, job_id: UUID) -> EarningsUpdate: ...

    async def rollback_on_job_completion(
        self,
        timesheet_ids: list[UUID],
        prior: dict[UUID, LaborEarningsState] | None = None,
    ) -> int: ...


class EntryCreator(Protocol):
    async def create_entries_for_job(self, job_id: UUID) -> PayrollEntriesResult: ...


@dataclass(frozen=True)
class PhotoChange:
    """Requested edit to one of the job's photos.

    None leaves a field unchanged; an empty string clears the notes.
    """

    photo_id: UUID
    is_client_visible: bool | None = None
    notes: str | None = None


@dataclass(frozen=True)
class JobApprovalState:
    status: str | None
    approved_at: datetime | None
    approved_by: str | None
    completed_at: datetime | None

    def as_values(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "approved_at": self.approved_at,
            "approved_by": self.approved_by,
            "completed_at": self.completed_at,
        }


@dataclass
class CompletionResult:
    job_id: UUID
    status: str | None
    completed: bool = False
    photos_updated: int = 0
    timesheet_ids: list[UUID] = field(default_factory=list)
    payroll_entries_created: int = 0
    has_monthly_assignments: bool = False


@dataclass
class _PhotoPlan:
    writes: dict[UUID, dict[str, Any]] = field(default_factory=dict)
    restores: dict[UUID, dict[str, Any]] = field(default_factory=dict)
    any_became_visible: bool = False


class CompensationLog:
    """Undo actions for completed steps, replayed last-in first-out.

    Every action is attempted; failures are logged and collected, never
    raised.
    """

    def __init__(self) -> None:
        self._actions: list[tuple[str, Callable[[], Awaitable[Any]]]] = []

    def register(self, name: str, action: Callable[[], Awaitable[Any]]) -> None:
        self._actions.append((name, action))

    async def unwind(self, job_id: UUID) -> list[str]:
        errors: list[str] = []
        for name, action in reversed(self._actions):
            try:
                await action()
            except Exception as exc:
                logger.exception("Compensation %r failed for job %s", name, job_id)
                errors.append(f"{name}: {exc}")
        self._actions.clear()
        return errors


class CompletionSaga:
    """Saves job approval state and runs payroll follow-up on completion.

    Steps on an Active → Completed transition:
    1. Readiness guard (no writes if any assigned employee lacks a rate)
    2. Atomic commit of photos, status and approval stamp
    3. Earnings update for the job's clock-event labor
    4. Payroll entry creation

    If step 3 or 4 fails, completed steps are compensated in reverse
    order and PartialFailureError is raised. Any other edit is only
    step 2.
    """

    def __init__(
        self,
        session: AsyncSession,
        readiness: ReadinessValidator | None = None,
        earnings: EarningsUpdater | None = None,
        entries: EntryCreator | None = None,
    ):
        self.session = session
        self.readiness = readiness or PayrollRunService(session)
        self.earnings = earnings or TimesheetEarningsUpdater(session)
        self.entries = entries or PayrollEntryCreator(session)

    async def save_approval(
        self,
        job_id: UUID,
        status: str | None,
        photo_changes: Sequence[PhotoChange] = (),
        actor_id: str | None = None,
    ) -> CompletionResult:
        """Save a job's status and photo approvals.

        Raises:
            NotFoundError: If the job does not exist
            InvalidArgumentError: If a photo change names a photo not on the job
            PayrollNotReadyError: If completing and employees lack pay rates
            BatchCommitFailureError: If the approval write failed (nothing changed)
            PartialFailureError: If payroll follow-up failed after the write
        """
        job = await self._load_job(job_id)
        prior = JobApprovalState(
            status=job.status,
            approved_at=job.approved_at,
            approved_by=job.approved_by,
            completed_at=job.completed_at,
        )
        photo_plan = await self._plan_photo_changes(job_id, photo_changes)

        status_changed = (status or "") != (prior.status or "")
        completing = status_changed and JobStateMachine.is_completion(prior.status, status)

        if completing:
            missing = await self.readiness.validate_job_readiness(job_id)
            if missing:
                raise PayrollNotReadyError(job_id, missing)

        now = datetime.now(timezone.utc)
        job_values: dict[str, Any] = {}
        if status_changed:
            job_values["status"] = status or None
        if completing or photo_plan.any_became_visible:
            if prior.approved_at is None:
                job_values["approved_at"] = now
            if prior.approved_by is None and actor_id is not None:
                job_values["approved_by"] = actor_id
        if completing and prior.completed_at is None:
            job_values["completed_at"] = now

        result = CompletionResult(
            job_id=job_id,
            status=status if status_changed else prior.status,
            photos_updated=len(photo_plan.writes),
        )
        if not job_values and not photo_plan.writes:
            return result

        await self._commit_approval(job_id, job_values, photo_plan.writes)
        if not completing:
            return result

        result.completed = True
        await self._run_payroll_follow_up(job_id, prior, photo_plan, result)
        logger.info(
            "Job %s completed: %d timesheet(s) approved, %d payroll entr%s booked",
            job_id,
            len(result.timesheet_ids),
            result.payroll_entries_created,
            "y" if result.payroll_entries_created == 1 else "ies",
        )
        return result

    async def _run_payroll_follow_up(
        self,
        job_id: UUID,
        prior: JobApprovalState,
        photo_plan: _PhotoPlan,
        result: CompletionResult,
    ) -> None:
        compensations = CompensationLog()
        compensations.register("photo state", lambda: self._restore_photos(job_id, photo_plan.restores))
        compensations.register("job approval state", lambda: self._restore_job(job_id, prior))

        step = UPDATE_EARNINGS_STEP
        try:
            earnings_update = await self.earnings.update_on_job_completion(job_id)
            result.timesheet_ids = list(earnings_update.timesheet_ids)
            compensations.register(
                "timesheet earnings",
                lambda: self.earnings.rollback_on_job_completion(
                    earnings_update.timesheet_ids, earnings_update.prior
                ),
            )

            step = CREATE_ENTRIES_STEP
            entries_result = await self.entries.create_entries_for_job(job_id)
            result.payroll_entries_created = entries_result.created
            result.has_monthly_assignments = entries_result.has_monthly_assignments
        except Exception as exc:
            logger.exception("Payroll follow-up step %s failed for job %s", step, job_id)
            await self._discard_pending()
            compensation_errors = await compensations.unwind(job_id)
            raise PartialFailureError(
                job_id,
                failed_step=step,
                cause=exc,
                compensation_errors=compensation_errors,
            ) from exc

    async def _load_job(self, job_id: UUID) -> Job:
        result = await self.session.execute(
            select(Job).where(Job.job_id == job_id).execution_options(populate_existing=True)
        )
        job = result.scalar_one_or_none()
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    async def _plan_photo_changes(
        self,
        job_id: UUID,
        photo_changes: Sequence[PhotoChange],
    ) -> _PhotoPlan:
        plan = _PhotoPlan()
        if not photo_changes:
            return plan

        result = await self.session.execute(
            select(Photo)
            .where(Photo.job_id == job_id)
            .execution_options(populate_existing=True)
        )
        photos = {photo.photo_id: photo for photo in result.scalars().all()}

        for change in photo_changes:
            photo = photos.get(change.photo_id)
            if photo is None:
                raise InvalidArgumentError(f"Photo {change.photo_id} does not belong to job {job_id}")

            writes: dict[str, Any] = {}
            restores: dict[str, Any] = {}
            if change.is_client_visible is not None and change.is_client_visible != photo.is_client_visible:
                writes["is_client_visible"] = change.is_client_visible
                restores["is_client_visible"] = photo.is_client_visible
                if change.is_client_visible:
                    plan.any_became_visible = True
            if change.notes is not None and change.notes != (photo.notes or ""):
                writes["notes"] = change.notes
                restores["notes"] = photo.notes

            if writes:
                plan.writes[photo.photo_id] = writes
                plan.restores[photo.photo_id] = restores
        return plan

    async def _commit_approval(
        self,
        job_id: UUID,
        job_values: dict[str, Any],
        photo_writes: dict[UUID, dict[str, Any]],
    ) -> None:
        try:
            for photo_id, values in photo_writes.items():
                await self.session.execute(
                    update(Photo)
                    .where(Photo.photo_id == photo_id, Photo.job_id == job_id)
                    .values(**values)
                )
            if job_values:
                await self.session.execute(
                    update(Job).where(Job.job_id == job_id).values(**job_values)
                )
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("Approval batch for job %s failed: %s", job_id, exc)
            raise BatchCommitFailureError("job approval", exc) from exc

    async def _restore_job(self, job_id: UUID, prior: JobApprovalState) -> None:
        try:
            await self.session.execute(
                update(Job).where(Job.job_id == job_id).values(**prior.as_values())
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def _restore_photos(self, job_id: UUID, restores: dict[UUID, dict[str, Any]]) -> None:
        if not restores:
            return
        try:
            for photo_id, values in restores.items():
                await self.session.execute(
                    update(Photo)
                    .where(Photo.photo_id == photo_id, Photo.job_id == job_id)
                    .values(**values)
                )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def _discard_pending(self) -> None:
        """Drop whatever a failed step left in the session transaction."""
        try:
            await self.session.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback after failed payroll step raised")
