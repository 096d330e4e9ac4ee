"""HTTP API for payroll runs and job approval."""
