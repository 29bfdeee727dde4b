"""Base exception for the planilla engine."""


class PayrollEngineError(Exception):
    """Base class for domain errors raised by this package."""
