"""Payroll calculation and run orchestration engine."""

__version__ = "1.0.0"
