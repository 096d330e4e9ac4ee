"""Payroll run API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from payroll_recon.api.dependencies import DbSession, FinanceAdmin
from payroll_recon.api.schemas import (
    ApproveRecordsRequest,
    BulkOperationResponse,
    ErrorResponse,
    PayrollRunCreate,
    PayrollRunResponse,
)
from payroll_recon.services.payroll_run_service import PayrollRunService

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])


@router.post(
    "",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_payroll_run(
    db: DbSession,
    actor: FinanceAdmin,
    payload: PayrollRunCreate,
) -> PayrollRunResponse:
    """Create a new payroll run in draft status."""
    service = PayrollRunService(db)
    run = await service.create_run(payload.period_start, payload.period_end, actor.actor_id)
    run = await service.get_run(run.payroll_run_id)
    return PayrollRunResponse.model_validate(run)


@router.get(
    "/{payroll_run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    db: DbSession,
    actor: FinanceAdmin,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Get a payroll run with its summaries."""
    run = await PayrollRunService(db).get_run(payroll_run_id)
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/{payroll_run_id}/recalc",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def recalc_payroll_run(
    db: DbSession,
    actor: FinanceAdmin,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Recompute a run's totals and summaries. Idempotent."""
    service = PayrollRunService(db)
    await service.recalc_run(payroll_run_id, actor.actor_id)
    run = await service.get_run(payroll_run_id)
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/{payroll_run_id}/approve-records",
    response_model=BulkOperationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def approve_records_into_run(
    db: DbSession,
    actor: FinanceAdmin,
    payroll_run_id: Annotated[UUID, Path()],
    payload: ApproveRecordsRequest,
) -> BulkOperationResponse:
    """Approve labor records into a run and recalc it."""
    result = await PayrollRunService(db).approve_records_into_run(
        payroll_run_id, payload.record_ids, actor.actor_id
    )
    return BulkOperationResponse.model_validate(result)
