"""Payroll calculation engine (pure, no I/O)."""

from ph_payroll.calculators.engine import PayrollCalculationResult, PayrollEngine
from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.rates import DerivedRates, RateDeriver
from ph_payroll.calculators.statutory import StatutoryCalculator
from ph_payroll.calculators.time_resolver import resolve_day

__all__ = [
    "PayrollEngine",
    "PayrollCalculationResult",
    "LineItemBuilder",
    "DerivedRates",
    "RateDeriver",
    "StatutoryCalculator",
    "resolve_day",
]
