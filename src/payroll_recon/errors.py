"""Error taxonomy for payroll reconciliation and job completion."""

from __future__ import annotations

from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for all payroll reconciliation errors."""

    code = "PAYROLL_ERROR"


class NotFoundError(PayrollError):
    """Raised when a payroll run, job or labor record does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class InvalidArgumentError(PayrollError):
    """Raised for malformed periods and missing required fields."""

    code = "INVALID_ARGUMENT"


class PermissionDeniedError(PayrollError):
    """Raised by the authorization layer when the caller lacks a finance role."""

    code = "PERMISSION_DENIED"


class PayrollNotReadyError(PayrollError):
    """Raised when assigned employees have no resolvable pay rate.

    Carries employee ids only; turning them into display names is the
    caller's job.
    """

    code = "PAYROLL_NOT_READY"

    def __init__(self, job_id: UUID, missing_employee_ids: list[UUID]):
        self.job_id = job_id
        self.missing_employee_ids = list(missing_employee_ids)
        # Filled in by the API layer, which owns the directory lookup
        self.missing_employee_names: list[str] | None = None
        super().__init__(
            f"Cannot complete job {job_id}: missing pay rates for "
            f"{len(self.missing_employee_ids)} employee(s)"
        )


class BatchCommitFailureError(PayrollError):
    """Raised when an atomic batch failed to commit. No state changed."""

    code = "BATCH_COMMIT_FAILED"

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        msg = f"Failed to commit {operation}"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class PartialFailureError(PayrollError):
    """Raised when post-commit payroll follow-up failed after the job commit.

    Compensation has already been attempted by the time this is raised.
    """

    code = "PARTIAL_FAILURE"

    REMEDIATION = "Job marked completed, but payroll updates failed. Please review payroll."

    def __init__(
        self,
        job_id: UUID,
        failed_step: str,
        cause: BaseException | None = None,
        compensation_errors: list[str] | None = None,
    ):
        self.job_id = job_id
        self.failed_step = failed_step
        self.cause = cause
        self.compensation_errors = list(compensation_errors or [])
        super().__init__(self.REMEDIATION)
