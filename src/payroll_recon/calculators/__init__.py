"""Rate resolution, compensation and run aggregation."""

from payroll_recon.calculators.aggregator import RunAggregator
from payroll_recon.calculators.compensation import CompensationCalculator
from payroll_recon.calculators.money import round_currency
from payroll_recon.calculators.rate_resolver import RateResolver
from payroll_recon.calculators.types import Compensation, RateKind, RateSnapshot

__all__ = [
    "RunAggregator",
    "CompensationCalculator",
    "Compensation",
    "RateKind",
    "RateResolver",
    "RateSnapshot",
    "round_currency",
]
