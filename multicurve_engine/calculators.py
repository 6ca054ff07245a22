"""
Calculators: visitors over the derivative kinds.

PresentValueCalculator and PresentValueCurveSensitivityCalculator cover every
kind. SwaptionBlackForwardDeltaCalculator only makes sense for swaptions and
inherits the adapter's UnsupportedVisitationError for everything else.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from . import methods
from .conventions import Currency
from .derivatives import Derivative, DerivativeVisitor, DerivativeVisitorAdapter
from .errors import IncompatibleProviderError
from .models import BlackSwaptionProvider, HullWhiteProvider
from .provider import IssuerProvider
from .sensitivity import MultipleCurrencyAmount, MultipleCurrencySensitivity

logger = logging.getLogger(__name__)

ONE_BP = 1.0e-4


def _require(calculator, derivative, provider, required: type):
    if not isinstance(provider, required):
        raise IncompatibleProviderError(
            type(calculator).__name__, type(derivative).__name__, required.__name__, type(provider).__name__
        )
    return provider


class PresentValueCalculator(DerivativeVisitor):
    def visit_fixed_coupon(self, coupon, provider):
        return MultipleCurrencyAmount.of(coupon.currency, methods.fixed_coupon_pv(coupon, provider.multicurve))

    def visit_ibor_coupon(self, coupon, provider):
        return MultipleCurrencyAmount.of(coupon.currency, methods.ibor_coupon_pv(coupon, provider.multicurve))

    def visit_ibor_compounding_coupon(self, coupon, provider):
        return MultipleCurrencyAmount.of(coupon.currency, methods.ibor_compounding_coupon_pv(coupon, provider.multicurve))

    def visit_swap(self, swap, provider):
        return MultipleCurrencyAmount.of(swap.currency, methods.swap_pv(swap, provider.multicurve))

    def visit_bond_transaction(self, bond, provider):
        provider = _require(self, bond, provider, IssuerProvider)
        return MultipleCurrencyAmount.of(bond.currency, methods.bond_transaction_pv(bond, provider))

    def visit_swaption_physical(self, swaption, provider):
        provider = _require(self, swaption, provider, BlackSwaptionProvider)
        return MultipleCurrencyAmount.of(swaption.currency, methods.swaption_physical_pv(swaption, provider))

    def visit_swaption_cash(self, swaption, provider):
        provider = _require(self, swaption, provider, BlackSwaptionProvider)
        return MultipleCurrencyAmount.of(swaption.currency, methods.swaption_cash_pv(swaption, provider))

    def visit_deliverable_swap_future(self, future, provider):
        provider = _require(self, future, provider, HullWhiteProvider)
        return MultipleCurrencyAmount.of(future.currency, methods.swap_future_pv(future, provider))


class PresentValueCurveSensitivityCalculator(DerivativeVisitor):
    def visit_fixed_coupon(self, coupon, provider):
        s = methods.fixed_coupon_sensitivity(coupon, provider.multicurve)
        return MultipleCurrencySensitivity.of(coupon.currency, s)

    def visit_ibor_coupon(self, coupon, provider):
        s = methods.ibor_coupon_sensitivity(coupon, provider.multicurve)
        return MultipleCurrencySensitivity.of(coupon.currency, s)

    def visit_ibor_compounding_coupon(self, coupon, provider):
        s = methods.ibor_compounding_coupon_sensitivity(coupon, provider.multicurve)
        return MultipleCurrencySensitivity.of(coupon.currency, s)

    def visit_swap(self, swap, provider):
        return MultipleCurrencySensitivity.of(swap.currency, methods.swap_sensitivity(swap, provider.multicurve))

    def visit_bond_transaction(self, bond, provider):
        provider = _require(self, bond, provider, IssuerProvider)
        return MultipleCurrencySensitivity.of(bond.currency, methods.bond_transaction_sensitivity(bond, provider))

    def visit_swaption_physical(self, swaption, provider):
        provider = _require(self, swaption, provider, BlackSwaptionProvider)
        s = methods.swaption_physical_sensitivity(swaption, provider)
        return MultipleCurrencySensitivity.of(swaption.currency, s)

    def visit_swaption_cash(self, swaption, provider):
        provider = _require(self, swaption, provider, BlackSwaptionProvider)
        s = methods.swaption_cash_sensitivity(swaption, provider)
        return MultipleCurrencySensitivity.of(swaption.currency, s)

    def visit_deliverable_swap_future(self, future, provider):
        provider = _require(self, future, provider, HullWhiteProvider)
        return MultipleCurrencySensitivity.of(future.currency, methods.swap_future_sensitivity(future, provider))


class PV01CurveParametersCalculator(DerivativeVisitor):
    """
    PV01 per (curve name, currency): the sum of the curve sensitivities
    scaled to one basis point. Curves the derivative does not touch are absent.
    """

    def __init__(self, sensitivity_calculator: Optional[PresentValueCurveSensitivityCalculator] = None):
        self.sensitivity_calculator = sensitivity_calculator or PresentValueCurveSensitivityCalculator()

    def _pv01(self, derivative: Derivative, provider) -> Dict[Tuple[str, Currency], float]:
        sensitivity = self.sensitivity_calculator.visit(derivative, provider)
        out: Dict[Tuple[str, Currency], float] = {}
        for ccy, per_curve in sensitivity.items():
            for name, total in per_curve.totals().items():
                out[(name, ccy)] = total * ONE_BP
        return out

    def visit_fixed_coupon(self, coupon, provider):
        return self._pv01(coupon, provider)

    def visit_ibor_coupon(self, coupon, provider):
        return self._pv01(coupon, provider)

    def visit_ibor_compounding_coupon(self, coupon, provider):
        return self._pv01(coupon, provider)

    def visit_swap(self, swap, provider):
        return self._pv01(swap, provider)

    def visit_bond_transaction(self, bond, provider):
        return self._pv01(bond, provider)

    def visit_swaption_physical(self, swaption, provider):
        return self._pv01(swaption, provider)

    def visit_swaption_cash(self, swaption, provider):
        return self._pv01(swaption, provider)

    def visit_deliverable_swap_future(self, future, provider):
        return self._pv01(future, provider)


class SwaptionBlackForwardDeltaCalculator(DerivativeVisitorAdapter):
    """Forward delta of Black-priced swaptions: d(PV)/d(forward swap rate)."""

    def visit_swaption_physical(self, swaption, provider):
        provider = _require(self, swaption, provider, BlackSwaptionProvider)
        return methods.swaption_physical_forward_delta(swaption, provider)

    def visit_swaption_cash(self, swaption, provider):
        provider = _require(self, swaption, provider, BlackSwaptionProvider)
        return methods.swaption_cash_forward_delta(swaption, provider)


def pv01_for_curve(
    derivative: Derivative,
    provider,
    curve_name: str,
    calculator: Optional[PV01CurveParametersCalculator] = None,
) -> Dict[Tuple[str, Currency], float]:
    """
    PV01 entries of one curve. Returns an empty dict, not a zero entry, when
    the derivative is not sensitive to that curve.
    """
    calculator = calculator or PV01CurveParametersCalculator()
    pv01 = calculator.visit(derivative, provider)
    out = {k: v for k, v in pv01.items() if k[0] == curve_name}
    if not out:
        logger.error("Could not get PV01 for curve %s: %s is not sensitive to it", curve_name, type(derivative).__name__)
    return out
