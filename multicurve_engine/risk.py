from __future__ import annotations

import pandas as pd
from typing import Optional

from .calculators import PresentValueCalculator, PV01CurveParametersCalculator
from .curves import shocked_curve_parallel
from .derivatives import Derivative
from .models import BlackSwaptionProvider, HullWhiteProvider
from .sensitivity import MultipleCurrencyAmount


def bumped_provider(provider, curve_name: str, shift_bp: float):
    """Copy of provider with one named curve shifted in parallel (cc zero rates); provider is untouched."""
    if isinstance(provider, (BlackSwaptionProvider, HullWhiteProvider)):
        multicurve = provider.multicurve
        bumped = multicurve.with_curve_named(curve_name, shocked_curve_parallel(multicurve.curve(curve_name), shift_bp))
        if isinstance(provider, BlackSwaptionProvider):
            return BlackSwaptionProvider(bumped, provider.parameters)
        return HullWhiteProvider(bumped, provider.parameters, provider.currency)

    return provider.with_curve_named(curve_name, shocked_curve_parallel(provider.curve(curve_name), shift_bp))


def bump_and_reprice_pv01(
    derivative: Derivative,
    provider,
    curve_name: str,
    shift_bp: float = 1.0,
    calculator: Optional[PresentValueCalculator] = None,
) -> MultipleCurrencyAmount:
    """PV change for a parallel shift of one curve, scaled back to 1bp."""
    calculator = calculator or PresentValueCalculator()
    base = calculator.visit(derivative, provider)
    shocked = calculator.visit(derivative, bumped_provider(provider, curve_name, shift_bp))
    return shocked.plus(base.multiplied_by(-1.0)).multiplied_by(1.0 / shift_bp)


def pv01_reconciliation(derivative: Derivative, provider, shift_bp: float = 1.0) -> pd.DataFrame:
    """Analytic PV01 next to bump-and-reprice PV01 for every curve the derivative is sensitive to."""
    analytic = PV01CurveParametersCalculator().visit(derivative, provider)

    rows = []
    for (name, ccy), pv01 in analytic.items():
        bumped = bump_and_reprice_pv01(derivative, provider, name, shift_bp).amount(ccy)
        rows.append((name, str(ccy), pv01, bumped))

    out = pd.DataFrame(rows, columns=["curve", "currency", "pv01_analytic", "pv01_bump"])
    out["diff"] = out["pv01_bump"] - out["pv01_analytic"]
    return out
