"""Job and payroll run status definitions with transition checks."""

from __future__ import annotations

from enum import Enum


class PayrollRunStatus(str, Enum):
    """Payroll run status values.

    Runs are created as drafts; every later status belongs to the
    approval workflow outside this package.
    """

    DRAFT = "draft"


class JobStatus(str, Enum):
    """Canonical job status values."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"
    NO_SHOW = "no_show"


# Legacy display strings stored on jobs
COMPLETED_LEGACY_STATUS = "Completed"

LEGACY_TO_CANONICAL: dict[str, JobStatus] = {
    "Scheduled": JobStatus.SCHEDULED,
    "In Progress": JobStatus.IN_PROGRESS,
    # Pending Approval is QA-pending work, still in progress
    "Pending Approval": JobStatus.IN_PROGRESS,
    "Completed": JobStatus.COMPLETED,
    "Cancelled": JobStatus.CANCELED,
}


class JobStateMachine:
    """Completion transition rules for jobs.

    States collapse to Active (anything not completed) and Completed.
    Active → Completed is the only transition with side effects beyond a
    field write: it is guarded by payroll readiness and followed by the
    earnings and payroll-entry steps of the completion saga.
    """

    @classmethod
    def map_legacy_status(cls, status: str | None) -> JobStatus | None:
        """Map a stored status (legacy or canonical spelling) to JobStatus."""
        if not status:
            return None
        if status in LEGACY_TO_CANONICAL:
            return LEGACY_TO_CANONICAL[status]
        normalized = status.strip().lower().replace(" ", "_")
        try:
            return JobStatus(normalized)
        except ValueError:
            return None

    @classmethod
    def is_completed(cls, status: str | None) -> bool:
        return cls.map_legacy_status(status) == JobStatus.COMPLETED

    @classmethod
    def is_active(cls, status: str | None) -> bool:
        return not cls.is_completed(status)

    @classmethod
    def is_completion(cls, from_status: str | None, to_status: str | None) -> bool:
        """Check if this change is the guarded Active → Completed transition."""
        return cls.is_active(from_status) and cls.is_completed(to_status)
