import logging

import pandas as pd
import pytest

from multicurve_engine.calculators import (
    PresentValueCalculator,
    PresentValueCurveSensitivityCalculator,
    PV01CurveParametersCalculator,
    SwaptionBlackForwardDeltaCalculator,
    pv01_for_curve,
)
from multicurve_engine.conventions import EUR, USD, IborIndex, IssuerKey
from multicurve_engine.curves import Curve
from multicurve_engine.definitions import (
    BondFixedSecurityDefinition,
    BondFixedTransactionDefinition,
    DeliverableSwapFuturesSecurityDefinition,
    DeliverableSwapFuturesTransactionDefinition,
    SwapFixedIborDefinition,
    SwaptionDefinition,
)
from multicurve_engine.derivatives import DerivativeVisitor, FixedCoupon
from multicurve_engine.errors import IncompatibleProviderError, MissingCurveError, UnsupportedVisitationError
from multicurve_engine.methods import annuity, forward_swap_rate, swap_future_price
from multicurve_engine.models import (
    BlackSwaptionParameters,
    BlackSwaptionProvider,
    HullWhiteOneFactorParameters,
    HullWhiteProvider,
)
from multicurve_engine.provider import CurveBundle, IssuerProvider
from multicurve_engine.risk import bump_and_reprice_pv01

USD_LIBOR3M = IborIndex("USD-LIBOR3M", USD, 3)
ACME = IssuerKey("ACME", USD)
TIMES = [0.25, 0.5, 1.0, 2.0, 5.0, 10.0]


@pytest.fixture(scope="module")
def val_date():
    return pd.Timestamp("2026-03-13")


@pytest.fixture(scope="module")
def multicurve():
    b = CurveBundle()
    b.set_curve(USD, Curve.from_zero_rates("USD-DSC", TIMES, [0.030, 0.031, 0.032, 0.034, 0.036, 0.038]))
    b.set_curve(USD_LIBOR3M, Curve.from_zero_rates("USD-LIBOR3M", TIMES, [0.035, 0.036, 0.037, 0.039, 0.041, 0.043]))
    return b.publish()


@pytest.fixture(scope="module")
def issuer_provider(multicurve):
    p = IssuerProvider(multicurve)
    p.set_issuer_curve(ACME, Curve.from_zero_rates("ACME-USD", TIMES, [0.045, 0.046, 0.047, 0.049, 0.051, 0.053]))
    return p.publish()


@pytest.fixture(scope="module")
def black_provider(multicurve):
    vols = pd.DataFrame([[0.25, 0.22], [0.20, 0.18]], index=[0.5, 2.0], columns=[1.0, 10.0])
    return BlackSwaptionProvider(multicurve, BlackSwaptionParameters(vols))


@pytest.fixture(scope="module")
def hw_provider(multicurve):
    return HullWhiteProvider(multicurve, HullWhiteOneFactorParameters(0.03, (0.01, 0.012), (1.0,)), USD)


@pytest.fixture(scope="module")
def swap(val_date):
    d = SwapFixedIborDefinition.from_tenor(pd.Timestamp("2026-03-17"), 5, USD_LIBOR3M, 0.04, 1_000_000.0, is_payer=True)
    return d.to_derivative(val_date)


@pytest.fixture(scope="module")
def bond(val_date):
    sec = BondFixedSecurityDefinition(USD, ACME, pd.Timestamp("2031-02-15"), 0.05)
    return BondFixedTransactionDefinition(sec, 1_000_000.0, pd.Timestamp("2026-03-17"), 0.99).to_derivative(val_date)


def _swaption(val_date, is_payer, is_cash=False):
    swap = SwapFixedIborDefinition.from_tenor(pd.Timestamp("2027-03-17"), 5, USD_LIBOR3M, 0.04, 1_000_000.0, is_payer)
    return SwaptionDefinition(pd.Timestamp("2027-03-15"), swap, is_cash=is_cash).to_derivative(val_date)


@pytest.fixture(scope="module")
def swap_future(val_date):
    sec = DeliverableSwapFuturesSecurityDefinition.from_tenor(
        pd.Timestamp("2026-06-15"), pd.Timestamp("2026-06-17"), 5, USD_LIBOR3M, 0.04, 100_000.0
    )
    return DeliverableSwapFuturesTransactionDefinition(sec, 3, val_date, 1.0).to_derivative(val_date)


def _assert_pv01_reconciles(derivative, provider):
    pv01 = PV01CurveParametersCalculator().visit(derivative, provider)
    assert pv01
    for (name, ccy), value in pv01.items():
        bumped = bump_and_reprice_pv01(derivative, provider, name, shift_bp=0.01).amount(ccy)
        assert abs(bumped - value) < 1e-4 * max(1.0, abs(value)), name


# ---------- dispatch ----------

def test_incomplete_visitor_cannot_be_instantiated():
    class SwapOnly(DerivativeVisitor):
        def visit_swap(self, swap, provider):
            return 0.0

    with pytest.raises(TypeError):
        SwapOnly()


def test_adapter_raises_unsupported(swap, black_provider):
    with pytest.raises(UnsupportedVisitationError) as info:
        SwaptionBlackForwardDeltaCalculator().visit(swap, black_provider)
    msg = str(info.value)
    assert "Swap" in msg and "SwaptionBlackForwardDeltaCalculator" in msg


def test_incompatible_provider(bond, swap_future, val_date, multicurve, black_provider):
    pv = PresentValueCalculator()
    with pytest.raises(IncompatibleProviderError):
        pv.visit(bond, multicurve)
    with pytest.raises(IncompatibleProviderError):
        pv.visit(_swaption(val_date, True), multicurve)
    with pytest.raises(IncompatibleProviderError):
        pv.visit(swap_future, black_provider)


# ---------- coupons and swaps ----------

def test_fixed_coupon_pv_and_sensitivity(multicurve):
    c = FixedCoupon(USD, 1.5, 0.5, 1_000_000.0, 0.04)
    pv = PresentValueCalculator().visit(c, multicurve).amount(USD)
    assert abs(pv - 20_000.0 * multicurve.discount_factor(USD, 1.5)) < 1e-9

    sens = PresentValueCurveSensitivityCalculator().visit(c, multicurve).sensitivity(USD)
    assert sens.curve_names == ["USD-DSC"]
    (t, v), = sens.nodes("USD-DSC")
    assert t == 1.5 and abs(v + 1.5 * pv) < 1e-9


def test_swap_pv_is_legs_sum(swap, multicurve):
    pv = PresentValueCalculator().visit(swap, multicurve).amount(USD)
    a = annuity(swap, multicurve)
    f = forward_swap_rate(swap, multicurve)
    # payer swap: receive float, pay fixed
    assert abs(pv - a * (f - 0.04)) < 1e-6


def test_swap_pv01_reconciles(swap, multicurve):
    _assert_pv01_reconciles(swap, multicurve)


def test_pv01_for_unrelated_curve_is_empty(multicurve, caplog):
    c = FixedCoupon(USD, 1.5, 0.5, 1_000_000.0, 0.04)
    with caplog.at_level(logging.ERROR, logger="multicurve_engine.calculators"):
        out = pv01_for_curve(c, multicurve, "USD-LIBOR3M")
    assert out == {}
    assert "USD-LIBOR3M" in caplog.text


def test_pv01_for_related_curve(swap, multicurve):
    out = pv01_for_curve(swap, multicurve, "USD-LIBOR3M")
    assert list(out) == [("USD-LIBOR3M", USD)]
    assert out[("USD-LIBOR3M", USD)] != 0.0


def test_missing_curve_propagates():
    c = FixedCoupon(EUR, 1.0, 1.0, 100.0, 0.02)
    with pytest.raises(MissingCurveError):
        PresentValueCalculator().visit(c, CurveBundle())


# ---------- bonds ----------

def test_bond_pv(bond, issuer_provider):
    pv = PresentValueCalculator().visit(bond, issuer_provider).amount(USD)
    issuer = issuer_provider.issuer_curve(ACME)
    security = sum(c.amount * issuer.discount_factor(c.payment_time) for c in bond.coupons)
    security += bond.notional * issuer.discount_factor(bond.nominal_time)
    expected = bond.quantity * security + bond.settlement_amount * issuer_provider.discount_factor(USD, bond.settlement_time)
    assert abs(pv - expected) < 1e-6


def test_bond_pv01_on_issuer_and_discount_curves(bond, issuer_provider):
    pv01 = PV01CurveParametersCalculator().visit(bond, issuer_provider)
    assert set(pv01) == {("ACME-USD", USD), ("USD-DSC", USD)}
    assert pv01[("ACME-USD", USD)] < 0
    assert pv01[("USD-DSC", USD)] > 0
    _assert_pv01_reconciles(bond, issuer_provider)


def test_bond_needs_its_issuer_curve(bond, multicurve):
    with pytest.raises(MissingCurveError):
        PresentValueCalculator().visit(bond, IssuerProvider(multicurve))


# ---------- swaptions ----------

def test_swaption_put_call_parity(val_date, black_provider):
    pv = PresentValueCalculator()
    payer = _swaption(val_date, True)
    receiver = _swaption(val_date, False)
    diff = pv.visit(payer, black_provider).amount(USD) - pv.visit(receiver, black_provider).amount(USD)
    swap_value = pv.visit(payer.underlying, black_provider.multicurve).amount(USD)
    assert abs(diff - swap_value) < 1e-6


def test_swaption_forward_delta_parity(val_date, black_provider):
    delta = SwaptionBlackForwardDeltaCalculator()
    payer = _swaption(val_date, True)
    receiver = _swaption(val_date, False)
    a = annuity(payer.underlying, black_provider.multicurve)
    d_payer = delta.visit(payer, black_provider)
    d_receiver = delta.visit(receiver, black_provider)
    assert 0 < d_payer < a
    assert -a < d_receiver < 0
    assert abs((d_payer - d_receiver) - a) < 1e-6


def test_short_swaption_is_negative(val_date, black_provider):
    swap = SwapFixedIborDefinition.from_tenor(pd.Timestamp("2027-03-17"), 5, USD_LIBOR3M, 0.04, 1_000_000.0, True)
    short = SwaptionDefinition(pd.Timestamp("2027-03-15"), swap, is_long=False).to_derivative(val_date)
    long = _swaption(val_date, True)
    pv = PresentValueCalculator()
    assert pv.visit(short, black_provider).amount(USD) == pytest.approx(-pv.visit(long, black_provider).amount(USD))


def test_physical_swaption_pv01_reconciles(val_date, black_provider):
    _assert_pv01_reconciles(_swaption(val_date, True), black_provider)


def test_cash_swaption(val_date, black_provider):
    cash = _swaption(val_date, True, is_cash=True)
    physical = _swaption(val_date, True)
    pv = PresentValueCalculator()
    cash_pv = pv.visit(cash, black_provider).amount(USD)
    assert cash_pv > 0
    # cash annuity at the forward rate is close to the physical annuity
    assert abs(cash_pv / pv.visit(physical, black_provider).amount(USD) - 1.0) < 0.05
    _assert_pv01_reconciles(cash, black_provider)
    assert SwaptionBlackForwardDeltaCalculator().visit(cash, black_provider) > 0


# ---------- deliverable swap futures ----------

def test_swap_future_zero_volatility_price(swap_future, multicurve):
    flat = HullWhiteProvider(multicurve, HullWhiteOneFactorParameters(0.03, (0.0,)), USD)
    swap_value = PresentValueCalculator().visit(swap_future.underlying, multicurve).amount(USD)
    df_delivery = multicurve.discount_factor(USD, swap_future.delivery_time)
    assert abs(swap_future_price(swap_future, flat) - (1.0 + swap_value / df_delivery)) < 1e-12


def test_swap_future_pv(swap_future, hw_provider):
    price = swap_future_price(swap_future, hw_provider)
    pv = PresentValueCalculator().visit(swap_future, hw_provider).amount(USD)
    assert abs(pv - (price - 1.0) * 100_000.0 * 3) < 1e-8


def test_swap_future_convexity_is_small(swap_future, hw_provider, multicurve):
    flat = HullWhiteProvider(multicurve, HullWhiteOneFactorParameters(0.03, (0.0,)), USD)
    with_vol = swap_future_price(swap_future, hw_provider)
    without = swap_future_price(swap_future, flat)
    assert with_vol != without
    assert abs(with_vol - without) < 1e-3


def test_swap_future_pv01_reconciles(swap_future, hw_provider):
    _assert_pv01_reconciles(swap_future, hw_provider)


def test_convexity_factor_is_one_after_last_trading():
    hw = HullWhiteOneFactorParameters(0.03, (0.01,))
    assert hw.futures_convexity_factor(0.0, 2.0, 1.0) == 1.0
    assert hw.futures_convexity_factor(0.5, 2.0, 0.6) != 1.0
