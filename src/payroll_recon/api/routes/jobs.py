"""Job approval endpoint."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from payroll_recon.api.dependencies import DbSession, FinanceAdmin
from payroll_recon.api.schemas import ErrorResponse, JobApprovalRequest, JobApprovalResponse
from payroll_recon.errors import PayrollNotReadyError
from payroll_recon.services.completion_saga import CompletionSaga, PhotoChange
from payroll_recon.services.directory import EmployeeDirectory

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post(
    "/{job_id}/approval",
    response_model=JobApprovalResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def save_job_approval(
    db: DbSession,
    actor: FinanceAdmin,
    job_id: Annotated[UUID, Path()],
    payload: JobApprovalRequest,
) -> JobApprovalResponse:
    """Save a job's status and photo approvals.

    Completing a job also approves its clock-event timesheets and books
    payroll entries.
    """
    changes = [
        PhotoChange(
            photo_id=p.photo_id,
            is_client_visible=p.is_client_visible,
            notes=p.notes,
        )
        for p in payload.photos
    ]
    try:
        result = await CompletionSaga(db).save_approval(
            job_id,
            payload.status,
            photo_changes=changes,
            actor_id=actor.actor_id,
        )
    except PayrollNotReadyError as exc:
        exc.missing_employee_names = await EmployeeDirectory(db).resolve_display_names(
            exc.missing_employee_ids
        )
        raise
    return JobApprovalResponse.model_validate(result)
