"""Period-level payroll endpoints."""

from fastapi import APIRouter

from payroll_recon.api.dependencies import DbSession, FinanceAdmin
from payroll_recon.api.schemas import (
    BulkOperationResponse,
    ErrorResponse,
    GenerateRunsRequest,
    PeriodRequest,
    PeriodScanResponse,
)
from payroll_recon.services.payroll_run_service import PayrollRunService

router = APIRouter(prefix="/payroll", tags=["payroll"])


@router.post(
    "/scan",
    response_model=PeriodScanResponse,
    responses={400: {"model": ErrorResponse}},
)
async def scan_period(db: DbSession, actor: FinanceAdmin, payload: PeriodRequest) -> PeriodScanResponse:
    """Preview a period's labor without writing anything."""
    scan = await PayrollRunService(db).scan_period(payload.period_start, payload.period_end)
    return PeriodScanResponse.model_validate(scan)


@router.post(
    "/generate",
    response_model=BulkOperationResponse,
    responses={400: {"model": ErrorResponse}},
)
async def generate_runs(
    db: DbSession,
    actor: FinanceAdmin,
    payload: GenerateRunsRequest,
) -> BulkOperationResponse:
    """Generate one draft run per employee with earnings in the period."""
    result = await PayrollRunService(db).generate_runs(
        payload.period_start,
        payload.period_end,
        actor.actor_id,
        period_id=payload.period_id,
    )
    return BulkOperationResponse.model_validate(result)


@router.post(
    "/backfill-rate-snapshots",
    response_model=BulkOperationResponse,
    responses={400: {"model": ErrorResponse}},
)
async def backfill_rate_snapshots(
    db: DbSession,
    actor: FinanceAdmin,
    payload: PeriodRequest,
) -> BulkOperationResponse:
    """Capture rate snapshots on labor records in the period that lack one."""
    result = await PayrollRunService(db).backfill_rate_snapshots(
        payload.period_start, payload.period_end, actor.actor_id
    )
    return BulkOperationResponse.model_validate(result)
