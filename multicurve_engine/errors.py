"""
Exception hierarchy for curve lookup, config resolution, conversion and pricing.

All errors derive from MulticurveError so batch callers can isolate one
instrument's failure without catching unrelated exceptions.
"""
from __future__ import annotations

from typing import Sequence


class MulticurveError(Exception):
    pass


class MissingCurveError(MulticurveError, KeyError):
    """Lookup against a provider for an unmapped currency, index, issuer or curve name."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ""


class MissingFxRateError(MissingCurveError):
    pass


class CyclicConfigError(MulticurveError):
    def __init__(self, cycle: Sequence[str]):
        self.cycle = tuple(cycle)
        super().__init__("Cyclic exogenous config dependency: " + " -> ".join(self.cycle))


class InvalidConfigError(MulticurveError, ValueError):
    pass


class CalibrationError(MulticurveError):
    pass


class MissingFixingError(MulticurveError):
    pass


class StaleValuationError(MulticurveError, ValueError):
    pass


class UnsupportedVisitationError(MulticurveError, NotImplementedError):
    def __init__(self, variant: str, calculator: str):
        self.variant = variant
        self.calculator = calculator
        super().__init__(f"{calculator} does not support {variant}")


class IncompatibleProviderError(MulticurveError, TypeError):
    def __init__(self, calculator: str, variant: str, required: str, provided: str):
        self.required = required
        self.provided = provided
        super().__init__(f"{calculator} pricing {variant} requires a {required}, got {provided}")


class PublishedBundleError(MulticurveError):
    pass
