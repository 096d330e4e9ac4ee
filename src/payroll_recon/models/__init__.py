"""ORM models."""

from payroll_recon.models.base import Base, TimestampMixin
from payroll_recon.models.employee import FINANCE_ROLES, OWNER_ROLE, Employee, EmployeeRate
from payroll_recon.models.job import Job, Photo
from payroll_recon.models.labor import LaborRecord
from payroll_recon.models.payroll import PayrollEntry, PayrollPeriod, PayrollRun, RunSummary

__all__ = [
    "Base",
    "TimestampMixin",
    "Employee",
    "EmployeeRate",
    "FINANCE_ROLES",
    "OWNER_ROLE",
    "Job",
    "Photo",
    "LaborRecord",
    "PayrollEntry",
    "PayrollPeriod",
    "PayrollRun",
    "RunSummary",
]
