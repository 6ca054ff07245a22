import pandas as pd
import pytest

from multicurve_engine.conventions import USD, IborIndex, IssuerKey
from multicurve_engine.definitions import (
    BondFixedSecurityDefinition,
    BondFixedTransactionDefinition,
    DeliverableSwapFuturesSecurityDefinition,
    DeliverableSwapFuturesTransactionDefinition,
    FixedCouponDefinition,
    IborCouponDefinition,
    SwapFixedIborDefinition,
    SwaptionDefinition,
)
from multicurve_engine.derivatives import (
    BondTransaction,
    FixedCoupon,
    IborCoupon,
    Swap,
    SwaptionCash,
    SwaptionPhysical,
)
from multicurve_engine.errors import MissingFixingError, StaleValuationError
from multicurve_engine.fixings import FixingTimeSeries
from multicurve_engine.utils import time_between

USD_LIBOR3M = IborIndex("USD-LIBOR3M", USD, 3)
ACME = IssuerKey("ACME", USD)


@pytest.fixture(scope="module")
def val_date():
    return pd.Timestamp("2026-03-13")


@pytest.fixture(scope="module")
def ibor_coupon():
    return IborCouponDefinition.from_accrual_dates(
        USD_LIBOR3M, pd.Timestamp("2026-03-17"), pd.Timestamp("2026-06-17"), 1_000_000.0, spread=0.0005
    )


def test_fixed_coupon_definition(val_date):
    c = FixedCouponDefinition.from_accrual_dates(USD, pd.Timestamp("2026-03-17"), pd.Timestamp("2027-03-17"), 100.0, 0.04)
    d = c.to_derivative(val_date)
    assert isinstance(d, FixedCoupon)
    assert d.payment_year_fraction == pytest.approx(1.0)
    assert d.amount == pytest.approx(4.0)
    assert d.payment_time == pytest.approx(369 / 365)
    with pytest.raises(StaleValuationError):
        c.to_derivative(pd.Timestamp("2027-03-18"))


def test_ibor_coupon_before_fixing(ibor_coupon, val_date):
    assert ibor_coupon.fixing_date == pd.Timestamp("2026-03-15")
    d = ibor_coupon.to_derivative(val_date)
    assert isinstance(d, IborCoupon)
    assert d.fixing_time == pytest.approx(2 / 365)
    assert d.fixing_accrual_factor == pytest.approx(92 / 360)


def test_ibor_coupon_after_fixing(ibor_coupon):
    fixings = FixingTimeSeries({pd.Timestamp("2026-03-15"): 0.041})
    d = ibor_coupon.to_derivative(pd.Timestamp("2026-04-01"), fixings)
    assert isinstance(d, FixedCoupon)
    assert d.rate == pytest.approx(0.0415)

    with pytest.raises(MissingFixingError):
        ibor_coupon.to_derivative(pd.Timestamp("2026-04-01"), FixingTimeSeries())
    with pytest.raises(StaleValuationError):
        ibor_coupon.to_derivative(pd.Timestamp("2026-04-01"))


def test_ibor_coupon_on_fixing_date(ibor_coupon):
    fixing_day = pd.Timestamp("2026-03-15 09:00", tz="UTC")
    known = ibor_coupon.to_derivative(fixing_day, FixingTimeSeries({pd.Timestamp("2026-03-15"): 0.04}))
    assert isinstance(known, FixedCoupon)
    unknown = ibor_coupon.to_derivative(pd.Timestamp("2026-03-15"), FixingTimeSeries())
    assert isinstance(unknown, IborCoupon)


@pytest.fixture(scope="module")
def swap():
    return SwapFixedIborDefinition.from_tenor(pd.Timestamp("2026-03-17"), 2, USD_LIBOR3M, 0.04, 1_000_000.0, is_payer=True)


def test_swap_schedule(swap):
    assert len(swap.fixed_leg) == 2
    assert len(swap.ibor_leg) == 8
    assert swap.is_payer and swap.fixed_rate == 0.04
    assert all(c.notional < 0 for c in swap.fixed_leg)
    assert all(c.notional > 0 for c in swap.ibor_leg)


def test_swap_drops_paid_coupons(swap):
    fixings = FixingTimeSeries({d: 0.04 for d in pd.date_range("2026-03-01", "2027-06-30") if d.day == 15})
    d = swap.to_derivative(pd.Timestamp("2026-07-01"), fixings)
    assert isinstance(d, Swap)
    assert len(d.first_leg) == 2
    assert len(d.second_leg) == 7
    # the current period has fixed, the rest are still floating
    assert isinstance(d.second_leg[0], FixedCoupon)
    assert all(isinstance(c, IborCoupon) for c in d.second_leg[1:])


# ---------- bonds ----------

@pytest.fixture(scope="module")
def bond():
    sec = BondFixedSecurityDefinition(USD, ACME, pd.Timestamp("2031-02-15"), 0.05, frequency=2, notional=1.0)
    return BondFixedTransactionDefinition(sec, quantity=1_000_000.0, settlement_date=pd.Timestamp("2026-03-17"), clean_price=0.99)


def test_bond_transaction_before_settlement(bond, val_date):
    d = bond.to_derivative(val_date)
    assert isinstance(d, BondTransaction)
    assert len(d.coupons) == 10
    assert all(c.amount == pytest.approx(0.025) for c in d.coupons)
    assert d.nominal_time == pytest.approx(time_between(val_date, pd.Timestamp("2031-02-15")))

    accrued = 0.05 / 2 * (32 / 180)
    assert bond.dirty_price == pytest.approx(0.99 + accrued)
    assert d.settlement_amount == pytest.approx(-1_000_000.0 * (0.99 + accrued))
    assert d.settlement_time == pytest.approx(4 / 365)


def test_bond_transaction_after_settlement(bond):
    d = bond.to_derivative(pd.Timestamp("2026-03-20"))
    assert d.settlement_amount == 0.0


def test_bond_coupon_before_settlement_stays_with_seller(bond):
    valuation = pd.Timestamp("2026-02-10")
    d = bond.to_derivative(valuation)
    # the 2026-02-15 coupon is paid before the 2026-03-17 settlement
    assert len(d.coupons) == 10
    assert all(c.payment_time > d.settlement_time for c in d.coupons)
    assert d.coupons[0].payment_time == pytest.approx(time_between(valuation, pd.Timestamp("2026-08-15")))


def test_bond_final_coupon_on_maturity_day(bond):
    d = bond.to_derivative(pd.Timestamp("2031-02-15"))
    assert len(d.coupons) == 1
    assert d.coupons[0].payment_time == 0.0
    assert d.coupons[0].amount == pytest.approx(0.025)
    assert d.nominal_time == 0.0


def test_bond_after_maturity_is_stale(bond):
    with pytest.raises(StaleValuationError):
        bond.to_derivative(pd.Timestamp("2031-02-16"))


# ---------- swaptions ----------

@pytest.fixture(scope="module")
def forward_swap():
    return SwapFixedIborDefinition.from_tenor(pd.Timestamp("2027-03-17"), 5, USD_LIBOR3M, 0.04, 1_000_000.0, is_payer=True)


def test_swaption_conversion(forward_swap, val_date):
    physical = SwaptionDefinition(pd.Timestamp("2027-03-15"), forward_swap)
    cash = SwaptionDefinition(pd.Timestamp("2027-03-15"), forward_swap, is_cash=True)
    p = physical.to_derivative(val_date)
    c = cash.to_derivative(val_date)
    assert isinstance(p, SwaptionPhysical) and isinstance(c, SwaptionCash)
    assert p.expiry_time == pytest.approx(time_between(val_date, pd.Timestamp("2027-03-15")))
    assert p.settlement_time == pytest.approx(time_between(val_date, pd.Timestamp("2027-03-17")))
    assert len(p.underlying.first_leg) == 5

    with pytest.raises(StaleValuationError):
        physical.to_derivative(pd.Timestamp("2027-03-16"))
    with pytest.raises(ValueError):
        SwaptionDefinition(pd.Timestamp("2027-04-01"), forward_swap)


# ---------- deliverable swap futures ----------

@pytest.fixture(scope="module")
def dsf():
    sec = DeliverableSwapFuturesSecurityDefinition.from_tenor(
        pd.Timestamp("2026-06-15"), pd.Timestamp("2026-06-17"), 5, USD_LIBOR3M, 0.04, 100_000.0
    )
    return DeliverableSwapFuturesTransactionDefinition(sec, quantity=3, trade_date=pd.Timestamp("2026-03-13"), trade_price=1.01)


def test_swap_futures_underlying_is_unit_receiver(dsf):
    swap = dsf.security.underlying
    assert not swap.is_payer
    assert all(c.notional == 1.0 for c in swap.fixed_leg)
    assert all(c.notional == -1.0 for c in swap.ibor_leg)
    assert dsf.security.delivery_date == pd.Timestamp("2026-06-17")


def test_swap_futures_reference_price(dsf, val_date):
    assert dsf.to_derivative(val_date).reference_price == 1.01
    assert dsf.to_derivative(pd.Timestamp("2026-03-16"), last_margin_price=1.005).reference_price == 1.005
    with pytest.raises(MissingFixingError):
        dsf.to_derivative(pd.Timestamp("2026-03-16"))


def test_swap_futures_after_last_trading_is_stale(dsf):
    with pytest.raises(StaleValuationError):
        dsf.to_derivative(pd.Timestamp("2026-06-16"), last_margin_price=1.0)


def test_swap_futures_rejects_payer_underlying():
    payer = SwapFixedIborDefinition.from_tenor(pd.Timestamp("2026-06-17"), 5, USD_LIBOR3M, 0.04, 1.0, is_payer=True)
    with pytest.raises(ValueError):
        DeliverableSwapFuturesSecurityDefinition(pd.Timestamp("2026-06-15"), payer, 100_000.0)
