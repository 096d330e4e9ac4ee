"""Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Payroll run schemas
# ============================================================================


class PeriodRequest(BaseModel):
    """A half-open period [period_start, period_end)."""

    period_start: datetime | None = None
    period_end: datetime | None = None


class PayrollRunCreate(PeriodRequest):
    """Schema for creating a new payroll run."""


class GenerateRunsRequest(PeriodRequest):
    """Schema for generating one run per employee in a period."""

    period_id: str | None = None


class ApproveRecordsRequest(BaseModel):
    """Labor records to approve into a run."""

    record_ids: list[UUID] = Field(default_factory=list)


class RunSummaryResponse(BaseModel):
    """Schema for one per-account run summary."""

    model_config = ConfigDict(from_attributes=True)

    profile_id: UUID
    period_start: datetime
    period_end: datetime
    hours_total: Decimal
    gross_pay: Decimal
    rate_at_time: Decimal | None = None
    status: str
    timesheet_refs: list[str] = Field(default_factory=list)


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    period_start: datetime
    period_end: datetime
    period_id: str | None = None
    status: str
    totals: dict[str, Any] = Field(default_factory=dict)
    total_hours: Decimal
    total_earnings: Decimal
    employee_id: UUID | None = None
    created_by: str | None = None
    updated_by: str | None = None
    summaries: list[RunSummaryResponse] = Field(default_factory=list)


class BulkOperationResponse(BaseModel):
    """Counts from a bulk operation."""

    model_config = ConfigDict(from_attributes=True)

    updated: int
    skipped: int
    errors: int
    total: int
    ids: list[UUID] = Field(default_factory=list)


class MissingRateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    labor_record_id: UUID
    employee_id: UUID | None = None
    employee_profile_id: UUID | None = None
    start: datetime | None = None


class LaborPreviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    labor_record_id: UUID
    employee_id: UUID | None = None
    start: datetime | None = None
    hours: Decimal
    earnings: Decimal
    applied_rate: Decimal | None = None
    rate_type: str | None = None


class PeriodScanResponse(BaseModel):
    """Read-only preview of a period."""

    model_config = ConfigDict(from_attributes=True)

    period_id: str
    timesheet_count: int
    total_hours: Decimal
    total_earnings: Decimal
    missing_rates: list[MissingRateResponse] = Field(default_factory=list)
    timesheets: list[LaborPreviewResponse] = Field(default_factory=list)


# ============================================================================
# Job approval schemas
# ============================================================================


class PhotoChangeRequest(BaseModel):
    """Requested change to one photo; omitted fields are left alone."""

    photo_id: UUID
    is_client_visible: bool | None = None
    notes: str | None = None


class JobApprovalRequest(BaseModel):
    """Schema for saving a job's status and photo approvals."""

    status: str | None = None
    photos: list[PhotoChangeRequest] = Field(default_factory=list)


class JobApprovalResponse(BaseModel):
    """Outcome of a job approval save."""

    model_config = ConfigDict(from_attributes=True)

    job_id: UUID
    status: str | None = None
    completed: bool
    photos_updated: int
    timesheet_ids: list[UUID] = Field(default_factory=list)
    payroll_entries_created: int
    has_monthly_assignments: bool = False


class ErrorResponse(BaseModel):
    """Error response schema."""

    detail: str
    code: str
