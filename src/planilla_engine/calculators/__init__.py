"""Payroll calculation pipeline."""

from planilla_engine.calculators.aggregator import CompensationAggregator
from planilla_engine.calculators.css_calculator import CssCalculator
from planilla_engine.calculators.educational_insurance import calculate_educational_insurance
from planilla_engine.calculators.engine import InvalidProfileError, PayrollEngine
from planilla_engine.calculators.income_tax import BracketNotFoundError, IncomeTaxCalculator
from planilla_engine.calculators.rate_resolver import ConfigurationNotFoundError, RateResolver
from planilla_engine.calculators.rounding import round_currency, round_quantity

__all__ = [
    "BracketNotFoundError",
    "CompensationAggregator",
    "ConfigurationNotFoundError",
    "CssCalculator",
    "IncomeTaxCalculator",
    "InvalidProfileError",
    "PayrollEngine",
    "RateResolver",
    "calculate_educational_insurance",
    "round_currency",
    "round_quantity",
]
