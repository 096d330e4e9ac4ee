"""Payroll reconciliation engine and job-completion saga."""

__version__ = "0.1.0"
