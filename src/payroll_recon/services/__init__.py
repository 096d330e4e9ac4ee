"""Payroll reconciliation services."""

from payroll_recon.services.state_machine import JobStateMachine, JobStatus, PayrollRunStatus
from payroll_recon.services.summary_writer import SummaryWriter, SummaryWriteResult
from payroll_recon.services.payroll_run_service import BulkOperationResult, PayrollRunService, PeriodScan
from payroll_recon.services.readiness import PayrollReadinessValidator
from payroll_recon.services.timesheet_automation import EarningsUpdate, TimesheetEarningsUpdater
from payroll_recon.services.payroll_entries import PayrollEntriesResult, PayrollEntryCreator
from payroll_recon.services.directory import EmployeeDirectory
from payroll_recon.services.completion_saga import CompletionResult, CompletionSaga, PhotoChange

__all__ = [
    "JobStateMachine",
    "JobStatus",
    "PayrollRunStatus",
    "SummaryWriter",
    "SummaryWriteResult",
    "BulkOperationResult",
    "PayrollRunService",
    "PeriodScan",
    "PayrollReadinessValidator",
    "EarningsUpdate",
    "TimesheetEarningsUpdater",
    "PayrollEntriesResult",
    "PayrollEntryCreator",
    "EmployeeDirectory",
    "CompletionResult",
    "CompletionSaga",
    "PhotoChange",
]
