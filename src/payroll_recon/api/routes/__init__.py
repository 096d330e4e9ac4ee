"""API routes."""

from payroll_recon.api.routes.health import router as health_router
from payroll_recon.api.routes.jobs import router as jobs_router
from payroll_recon.api.routes.payroll import router as payroll_router
from payroll_recon.api.routes.payroll_runs import router as payroll_runs_router

__all__ = ["health_router", "jobs_router", "payroll_router", "payroll_runs_router"]
