"""
Pricing methods per derivative kind.

Present values are in the derivative's currency. Curve sensitivities are
MulticurveSensitivity objects whose (t, value) pairs are dPV/dr(t) for the
continuously-compounded zero rate r of the named curve, so a discount factor
DF(t) contributes -t * DF(t) per unit of cash flow.

The Hull-White swap futures price is a cash-flow-equivalent approximation:
Ibor coupons are projected at today's forwards into fixed amounts at their
payment times and the futures convexity factor is applied to each of those
amounts, not to the floating leg itself.
"""
from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np

from .curves import Curve
from .derivatives import (
    BondTransaction,
    DeliverableSwapFuture,
    FixedCoupon,
    IborCompoundingCoupon,
    IborCoupon,
    Swap,
    SwaptionCash,
    SwaptionPhysical,
)
from .errors import UnsupportedVisitationError
from .models import BlackSwaptionProvider, HullWhiteProvider, black_forward_delta, black_price
from .provider import CurveBundle, IssuerProvider
from .sensitivity import MulticurveSensitivity


def _forward_and_sensitivity(curve: Curve, t_start: float, t_end: float, accrual: float) -> Tuple[float, List[Tuple[float, float]]]:
    """Forward over [t_start, t_end] on curve and its zero-rate sensitivities at both ends."""
    ratio = curve.discount_factor(t_start) / curve.discount_factor(t_end)
    forward = (ratio - 1.0) / accrual
    return forward, [(t_start, -t_start * ratio / accrual), (t_end, t_end * ratio / accrual)]


# ---------- Coupons ----------

def fixed_coupon_pv(coupon: FixedCoupon, multicurve: CurveBundle) -> float:
    return coupon.amount * multicurve.discount_factor(coupon.currency, coupon.payment_time)


def fixed_coupon_sensitivity(coupon: FixedCoupon, multicurve: CurveBundle) -> MulticurveSensitivity:
    disc = multicurve.discounting_curve(coupon.currency)
    t = coupon.payment_time
    return MulticurveSensitivity.of(disc.name, [(t, -t * fixed_coupon_pv(coupon, multicurve))])


def ibor_coupon_forward(coupon: IborCoupon, multicurve: CurveBundle) -> float:
    return multicurve.forward_rate(
        coupon.index, coupon.fixing_period_start_time, coupon.fixing_period_end_time, coupon.fixing_accrual_factor
    )


def ibor_coupon_pv(coupon: IborCoupon, multicurve: CurveBundle) -> float:
    forward = ibor_coupon_forward(coupon, multicurve)
    amount = coupon.notional * (forward + coupon.spread) * coupon.payment_year_fraction
    return amount * multicurve.discount_factor(coupon.currency, coupon.payment_time)


def ibor_coupon_sensitivity(coupon: IborCoupon, multicurve: CurveBundle) -> MulticurveSensitivity:
    disc = multicurve.discounting_curve(coupon.currency)
    fwd = multicurve.forward_curve(coupon.index)
    tp = coupon.payment_time
    df = disc.discount_factor(tp)

    forward, dforward = _forward_and_sensitivity(
        fwd, coupon.fixing_period_start_time, coupon.fixing_period_end_time, coupon.fixing_accrual_factor
    )
    amount = coupon.notional * (forward + coupon.spread) * coupon.payment_year_fraction
    scale = coupon.notional * coupon.payment_year_fraction * df

    out = MulticurveSensitivity.of(disc.name, [(tp, -tp * amount * df)])
    return out.plus(MulticurveSensitivity.of(fwd.name, [(t, v * scale) for t, v in dforward]))


def compounding_coupon_amount(coupon: IborCompoundingCoupon, forwards: Sequence[float]) -> float:
    cpa = coupon.compounding_period_amount_accumulated
    for forward, af in zip(forwards, coupon.subperiods_accrual_factors):
        cpa += cpa * forward * af
        cpa += coupon.notional * (forward + coupon.spread) * af
    return cpa


def _compounding_forwards(coupon: IborCompoundingCoupon, curve: Curve):
    return [
        _forward_and_sensitivity(curve, s, e, af)
        for s, e, af in zip(
            coupon.fixing_period_start_times, coupon.fixing_period_end_times, coupon.fixing_period_accrual_factors
        )
    ]


def ibor_compounding_coupon_pv(coupon: IborCompoundingCoupon, multicurve: CurveBundle) -> float:
    fwd = multicurve.forward_curve(coupon.index)
    forwards = [f for f, _ in _compounding_forwards(coupon, fwd)]
    return compounding_coupon_amount(coupon, forwards) * multicurve.discount_factor(coupon.currency, coupon.payment_time)


def ibor_compounding_coupon_sensitivity(coupon: IborCompoundingCoupon, multicurve: CurveBundle) -> MulticurveSensitivity:
    disc = multicurve.discounting_curve(coupon.currency)
    fwd = multicurve.forward_curve(coupon.index)
    tp = coupon.payment_time
    df = disc.discount_factor(tp)

    projected = _compounding_forwards(coupon, fwd)
    forwards = [f for f, _ in projected]
    afs = coupon.subperiods_accrual_factors
    n = len(forwards)

    # cpa before each step, then growth of every later step
    cpa_before = []
    cpa = coupon.compounding_period_amount_accumulated
    for forward, af in zip(forwards, afs):
        cpa_before.append(cpa)
        cpa += cpa * forward * af
        cpa += coupon.notional * (forward + coupon.spread) * af

    growth_after = np.ones(n)
    for i in range(n - 2, -1, -1):
        growth_after[i] = growth_after[i + 1] * (1.0 + forwards[i + 1] * afs[i + 1])

    nodes = []
    for i, (_, dforward) in enumerate(projected):
        dcpa = (cpa_before[i] * afs[i] + coupon.notional * afs[i]) * growth_after[i]
        nodes.extend((t, v * dcpa * df) for t, v in dforward)

    out = MulticurveSensitivity.of(disc.name, [(tp, -tp * cpa * df)])
    return out.plus(MulticurveSensitivity.of(fwd.name, nodes))


def coupon_pv(coupon, multicurve: CurveBundle) -> float:
    if isinstance(coupon, FixedCoupon):
        return fixed_coupon_pv(coupon, multicurve)
    if isinstance(coupon, IborCoupon):
        return ibor_coupon_pv(coupon, multicurve)
    return ibor_compounding_coupon_pv(coupon, multicurve)


def coupon_sensitivity(coupon, multicurve: CurveBundle) -> MulticurveSensitivity:
    if isinstance(coupon, FixedCoupon):
        return fixed_coupon_sensitivity(coupon, multicurve)
    if isinstance(coupon, IborCoupon):
        return ibor_coupon_sensitivity(coupon, multicurve)
    return ibor_compounding_coupon_sensitivity(coupon, multicurve)


# ---------- Swaps ----------

def leg_pv(leg, multicurve: CurveBundle) -> float:
    return float(sum(coupon_pv(c, multicurve) for c in leg))


def leg_sensitivity(leg, multicurve: CurveBundle) -> MulticurveSensitivity:
    out = MulticurveSensitivity()
    for c in leg:
        out = out.plus(coupon_sensitivity(c, multicurve))
    return out


def swap_pv(swap: Swap, multicurve: CurveBundle) -> float:
    return leg_pv(swap.first_leg, multicurve) + leg_pv(swap.second_leg, multicurve)


def swap_sensitivity(swap: Swap, multicurve: CurveBundle) -> MulticurveSensitivity:
    return leg_sensitivity(swap.first_leg, multicurve).plus(leg_sensitivity(swap.second_leg, multicurve))


def annuity(swap: Swap, multicurve: CurveBundle) -> float:
    """PV of one unit of rate on the fixed (first) leg, unsigned notional."""
    return float(
        sum(abs(c.notional) * c.payment_year_fraction * multicurve.discount_factor(c.currency, c.payment_time) for c in swap.first_leg)
    )


def annuity_sensitivity(swap: Swap, multicurve: CurveBundle) -> MulticurveSensitivity:
    disc = multicurve.discounting_curve(swap.currency)
    nodes = []
    for c in swap.first_leg:
        t = c.payment_time
        nodes.append((t, -t * abs(c.notional) * c.payment_year_fraction * disc.discount_factor(t)))
    return MulticurveSensitivity.of(disc.name, nodes)


def _float_leg_sign(swap: Swap) -> float:
    return 1.0 if swap.second_leg[0].notional > 0 else -1.0


def forward_swap_rate(swap: Swap, multicurve: CurveBundle) -> float:
    return _float_leg_sign(swap) * leg_pv(swap.second_leg, multicurve) / annuity(swap, multicurve)


def _forward_swap_rate_sensitivity(swap: Swap, multicurve: CurveBundle) -> MulticurveSensitivity:
    """dF = (dFloat - F dA) / A."""
    a = annuity(swap, multicurve)
    f = forward_swap_rate(swap, multicurve)
    dfloat = leg_sensitivity(swap.second_leg, multicurve).multiplied_by(_float_leg_sign(swap))
    return dfloat.plus(annuity_sensitivity(swap, multicurve).multiplied_by(-f)).multiplied_by(1.0 / a)


# ---------- Bonds ----------

def bond_transaction_pv(bond: BondTransaction, provider: IssuerProvider) -> float:
    issuer = provider.issuer_curve(bond.issuer)
    security = sum(c.amount * issuer.discount_factor(c.payment_time) for c in bond.coupons)
    security += bond.notional * issuer.discount_factor(bond.nominal_time)
    settlement = bond.settlement_amount * provider.discount_factor(bond.currency, bond.settlement_time)
    return float(bond.quantity * security + settlement)


def bond_transaction_sensitivity(bond: BondTransaction, provider: IssuerProvider) -> MulticurveSensitivity:
    issuer = provider.issuer_curve(bond.issuer)
    q = bond.quantity
    nodes = [(c.payment_time, -c.payment_time * q * c.amount * issuer.discount_factor(c.payment_time)) for c in bond.coupons]
    t = bond.nominal_time
    nodes.append((t, -t * q * bond.notional * issuer.discount_factor(t)))
    out = MulticurveSensitivity.of(issuer.name, nodes)

    if bond.settlement_amount != 0.0:
        disc = provider.multicurve.discounting_curve(bond.currency)
        ts = bond.settlement_time
        out = out.plus(
            MulticurveSensitivity.of(disc.name, [(ts, -ts * bond.settlement_amount * disc.discount_factor(ts))])
        )
    return out


# ---------- Swaptions (Black) ----------

def _swaption_inputs(swaption, provider: BlackSwaptionProvider):
    swap = swaption.underlying
    multicurve = provider.multicurve
    strike = swap.first_leg[0].rate
    is_call = swap.first_leg[0].notional < 0
    tenor = swap.first_leg[-1].payment_time - swaption.settlement_time
    vol = provider.parameters.volatility(swaption.expiry_time, tenor)
    forward = forward_swap_rate(swap, multicurve)
    sign = 1.0 if swaption.is_long else -1.0
    return multicurve, swap, strike, is_call, vol, forward, sign


def swaption_physical_pv(swaption: SwaptionPhysical, provider: BlackSwaptionProvider) -> float:
    multicurve, swap, strike, is_call, vol, forward, sign = _swaption_inputs(swaption, provider)
    price = black_price(forward, strike, swaption.expiry_time, vol, is_call)
    return sign * annuity(swap, multicurve) * price


def swaption_physical_sensitivity(swaption: SwaptionPhysical, provider: BlackSwaptionProvider) -> MulticurveSensitivity:
    """PV = A B(F) with F = Float/A, so dPV = (B - B' F) dA + B' dFloat."""
    multicurve, swap, strike, is_call, vol, forward, sign = _swaption_inputs(swaption, provider)
    price = black_price(forward, strike, swaption.expiry_time, vol, is_call)
    delta = black_forward_delta(forward, strike, swaption.expiry_time, vol, is_call)

    dfloat = leg_sensitivity(swap.second_leg, multicurve).multiplied_by(_float_leg_sign(swap) * delta)
    dannuity = annuity_sensitivity(swap, multicurve).multiplied_by(price - delta * forward)
    return dannuity.plus(dfloat).multiplied_by(sign)


def _cash_annuity(forward: float, periods: int, per_year: int) -> Tuple[float, float]:
    """Cash annuity sum_{i=1..n} (1/m)(1 + F/m)^-i and its derivative in F."""
    base = 1.0 + forward / per_year
    i = np.arange(1, periods + 1)
    value = float(np.sum(base ** -i) / per_year)
    derivative = float(np.sum(-i * base ** (-i - 1)) / per_year ** 2)
    return value, derivative


def _cash_swaption_terms(swaption: SwaptionCash, provider: BlackSwaptionProvider):
    multicurve, swap, strike, is_call, vol, forward, sign = _swaption_inputs(swaption, provider)
    per_year = max(int(round(1.0 / swap.first_leg[0].payment_year_fraction)), 1)
    ca, dca = _cash_annuity(forward, len(swap.first_leg), per_year)
    notional = abs(swap.first_leg[0].notional)
    df_settle = multicurve.discount_factor(swap.currency, swaption.settlement_time)
    return multicurve, swap, strike, is_call, vol, forward, sign, ca, dca, notional, df_settle


def swaption_cash_pv(swaption: SwaptionCash, provider: BlackSwaptionProvider) -> float:
    _, _, strike, is_call, vol, forward, sign, ca, _, notional, df_settle = _cash_swaption_terms(swaption, provider)
    price = black_price(forward, strike, swaption.expiry_time, vol, is_call)
    return sign * notional * df_settle * ca * price


def swaption_cash_sensitivity(swaption: SwaptionCash, provider: BlackSwaptionProvider) -> MulticurveSensitivity:
    multicurve, swap, strike, is_call, vol, forward, sign, ca, dca, notional, df_settle = _cash_swaption_terms(
        swaption, provider
    )
    price = black_price(forward, strike, swaption.expiry_time, vol, is_call)
    delta = black_forward_delta(forward, strike, swaption.expiry_time, vol, is_call)

    disc = multicurve.discounting_curve(swap.currency)
    ts = swaption.settlement_time
    dsettle = MulticurveSensitivity.of(disc.name, [(ts, -ts * df_settle * ca * price)])
    dforward = _forward_swap_rate_sensitivity(swap, multicurve).multiplied_by(df_settle * (dca * price + ca * delta))
    return dsettle.plus(dforward).multiplied_by(sign * notional)


def swaption_physical_forward_delta(swaption: SwaptionPhysical, provider: BlackSwaptionProvider) -> float:
    multicurve, swap, strike, is_call, vol, forward, sign = _swaption_inputs(swaption, provider)
    delta = black_forward_delta(forward, strike, swaption.expiry_time, vol, is_call)
    return sign * annuity(swap, multicurve) * delta


def swaption_cash_forward_delta(swaption: SwaptionCash, provider: BlackSwaptionProvider) -> float:
    _, _, strike, is_call, vol, forward, sign, ca, _, notional, df_settle = _cash_swaption_terms(swaption, provider)
    delta = black_forward_delta(forward, strike, swaption.expiry_time, vol, is_call)
    return sign * notional * df_settle * ca * delta


# ---------- Deliverable swap futures (Hull-White) ----------

def _projected_cash_flows(future: DeliverableSwapFuture, multicurve: CurveBundle):
    """(time, amount, d amount nodes on forward curve or None) for every underlying coupon."""
    flows = []
    for c in future.underlying.coupons:
        if isinstance(c, FixedCoupon):
            flows.append((c.payment_time, c.amount, None))
        elif isinstance(c, IborCoupon):
            fwd = multicurve.forward_curve(c.index)
            forward, dforward = _forward_and_sensitivity(
                fwd, c.fixing_period_start_time, c.fixing_period_end_time, c.fixing_accrual_factor
            )
            scale = c.notional * c.payment_year_fraction
            flows.append(
                (c.payment_time, scale * (forward + c.spread), (fwd.name, [(t, v * scale) for t, v in dforward]))
            )
        else:
            raise UnsupportedVisitationError(type(c).__name__, "swap_future_price")
    return flows


def swap_future_price(future: DeliverableSwapFuture, provider: HullWhiteProvider) -> float:
    multicurve = provider.multicurve
    disc = multicurve.discounting_curve(future.currency)
    hw = provider.parameters
    df_delivery = disc.discount_factor(future.delivery_time)

    price = 1.0
    for t, amount, _ in _projected_cash_flows(future, multicurve):
        gamma = hw.futures_convexity_factor(future.last_trading_time, t, future.delivery_time)
        price += amount * gamma * disc.discount_factor(t) / df_delivery
    return float(price)


def swap_future_price_sensitivity(future: DeliverableSwapFuture, provider: HullWhiteProvider) -> MulticurveSensitivity:
    multicurve = provider.multicurve
    disc = multicurve.discounting_curve(future.currency)
    hw = provider.parameters
    td = future.delivery_time
    df_delivery = disc.discount_factor(td)

    out = MulticurveSensitivity()
    disc_nodes = []
    for t, amount, dflow in _projected_cash_flows(future, multicurve):
        gamma = hw.futures_convexity_factor(future.last_trading_time, t, td)
        weight = gamma * disc.discount_factor(t) / df_delivery
        term = amount * weight
        disc_nodes.append((t, -t * term))
        disc_nodes.append((td, td * term))
        if dflow is not None:
            name, nodes = dflow
            out = out.plus(MulticurveSensitivity.of(name, [(s, v * weight) for s, v in nodes]))
    return out.plus(MulticurveSensitivity.of(disc.name, disc_nodes))


def swap_future_pv(future: DeliverableSwapFuture, provider: HullWhiteProvider) -> float:
    price = swap_future_price(future, provider)
    return (price - future.reference_price) * future.notional * future.quantity


def swap_future_sensitivity(future: DeliverableSwapFuture, provider: HullWhiteProvider) -> MulticurveSensitivity:
    return swap_future_price_sensitivity(future, provider).multiplied_by(future.notional * future.quantity)
