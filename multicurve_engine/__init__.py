"""
Multi-curve Valuation Engine

Modules:
- conventions: currencies, Ibor/overnight indices, issuer keys
- curves: discount curve object + shift helpers + QC report
- provider: multi-curve bundle, issuer provider, FX matrix
- config / graph / calibration: curve-construction configs, their dependency graph and bootstrap
- definitions: dated instruments and their conversion to derivatives (fixings aware)
- derivatives: time-based derivatives + visitor protocol
- methods / calculators: PV, curve sensitivity, PV01, swaption forward delta
- models: Black swaption and Hull-White one-factor providers
- portfolio: batch pricing and PV01 tables
- risk: bump-and-reprice PV01 and reconciliation
- utils: day count + schedule helpers
"""
from .calculators import (
    PresentValueCalculator,
    PresentValueCurveSensitivityCalculator,
    PV01CurveParametersCalculator,
    SwaptionBlackForwardDeltaCalculator,
    pv01_for_curve,
)
from .conventions import Currency, IborIndex, IssuerKey, OvernightIndex
from .curves import Curve
from .graph import CurveConfigGraph
from .provider import CurveBundle, FxMatrix, IssuerProvider
