"""
Sequential bootstrap of a config's own curves.

Curves are built one at a time in the config's declared order. Each node
adds one knot whose log discount factor is solved with brentq so that the
node instrument reprices to par, using the curves named by the config's
exposure rules. Curves already in the working provider (exogenous or built
earlier in the same config) are fixed inputs and are never re-solved.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Tuple

import numpy as np
from scipy.optimize import brentq

from .config import CurveCalculationConfig, CurveDefinition, CurveInstrumentExposure, CurveNode
from .curves import Curve
from .errors import CalibrationError, InvalidConfigError, MissingCurveError
from .provider import IssuerProvider

logger = logging.getLogger(__name__)

CurveLookup = Callable[[str], Curve]


@dataclass(frozen=True)
class CalibrationSettings:
    lower_log_df: float = -10.0
    upper_log_df: float = 1.0
    xtol: float = 1e-14
    maxiter: int = 300


def leg_times(maturity: float, period: float) -> Tuple[np.ndarray, np.ndarray]:
    """Payment times ending at maturity every `period` (short stub first) and their accruals."""
    n = int(math.ceil(maturity / period - 1e-9))
    times = np.array([maturity - (n - 1 - i) * period for i in range(n)], dtype=float)
    accruals = np.diff(np.r_[0.0, times])
    return times, accruals


def node_residual(node: CurveNode, quote: float, curve_names: Tuple[str, ...], curves: CurveLookup) -> float:
    kind = node.instrument_type
    T = node.maturity

    if kind == "DISCOUNT_FACTOR":
        return curves(curve_names[0]).discount_factor(T) - quote

    if kind in ("CASH", "LIBOR"):
        c = curves(curve_names[0] if kind == "CASH" else curve_names[-1])
        return c.discount_factor(T) * (1.0 + quote * T) - 1.0

    if kind == "FRA":
        fwd = curves(curve_names[1])
        start = max(T - node.float_period, 0.0)
        return fwd.forward_rate(start, T, T - start) - quote

    if kind == "OIS_SWAP":
        disc = curves(curve_names[0])
        times, accruals = leg_times(T, node.fixed_period)
        annuity = float(np.sum(accruals * disc.discount_factor(times)))
        return quote * annuity - (1.0 - disc.discount_factor(T))

    if kind == "SWAP":
        disc = curves(curve_names[0])
        fwd = curves(curve_names[1])
        fixed_times, fixed_accruals = leg_times(T, node.fixed_period)
        float_times, float_accruals = leg_times(T, node.float_period)
        fixed_pv = quote * float(np.sum(fixed_accruals * disc.discount_factor(fixed_times)))
        starts = float_times - float_accruals
        forwards = (fwd.discount_factor(starts) / fwd.discount_factor(float_times) - 1.0) / float_accruals
        float_pv = float(np.sum(float_accruals * forwards * disc.discount_factor(float_times)))
        return fixed_pv - float_pv

    raise CalibrationError(f"{node.ticker}: unsupported node instrument type {kind}")


def bootstrap_curve(
    definition: CurveDefinition,
    exposure: CurveInstrumentExposure,
    market_data: Mapping[str, float],
    available: Mapping[str, Curve],
    settings: CalibrationSettings = CalibrationSettings(),
) -> Curve:
    """
    Bootstrap one curve knot by knot.

    `available` holds the curves this one may depend on (by name); the curve
    being built is resolved to the current trial curve.
    """
    times: List[float] = []
    log_dfs: List[float] = []

    for node in definition.nodes:
        if node.ticker not in market_data:
            raise CalibrationError(f"No market quote for {node.ticker}")
        quote = float(market_data[node.ticker])
        names = exposure.curves_for(node.instrument_type)

        def residual(log_df_T: float) -> float:
            trial = Curve(definition.name, np.array(times + [node.maturity]), np.array(log_dfs + [log_df_T]))

            def lookup(name: str) -> Curve:
                if name == definition.name:
                    return trial
                try:
                    return available[name]
                except KeyError:
                    raise InvalidConfigError(
                        f"{node.ticker} on curve {definition.name} needs curve {name}, which is not built yet"
                    ) from None

            return node_residual(node, quote, names, lookup)

        a, b = settings.lower_log_df, settings.upper_log_df
        fa, fb = residual(a), residual(b)
        if fa * fb > 0:
            raise CalibrationError(
                f"Root not bracketed for {node.ticker} on {definition.name}: inconsistent market data or exposure."
            )

        root = brentq(residual, a, b, maxiter=settings.maxiter, xtol=settings.xtol)
        times.append(node.maturity)
        log_dfs.append(float(root))
        logger.debug("%s: knot t=%.6f logDF=%.12f from %s", definition.name, node.maturity, root, node.ticker)

    return Curve(definition.name, np.array(times), np.array(log_dfs))


def calibrate_config(
    config: CurveCalculationConfig,
    definitions: Mapping[str, CurveDefinition],
    market_data: Mapping[str, float],
    provider: IssuerProvider,
    settings: CalibrationSettings = CalibrationSettings(),
) -> IssuerProvider:
    """
    Calibrate config's own curves onto `provider` (mutated in place and returned).

    The provider must already hold the config's exogenous curves.
    """
    available: Dict[str, Curve] = {}
    for name in provider.curve_names:
        available[name] = provider.curve(name)

    missing_exogenous = set(config.exogenous_curve_names).difference(available)
    if missing_exogenous:
        raise MissingCurveError(f"{config.name}: exogenous curves not supplied: {sorted(missing_exogenous)}")

    for curve_name in config.curve_names:
        try:
            definition = definitions[curve_name]
        except KeyError:
            raise InvalidConfigError(f"{config.name}: no curve definition for {curve_name}") from None
        if not definition.keys:
            raise InvalidConfigError(f"Curve definition {curve_name} is not mapped to any currency, index or issuer")

        curve = bootstrap_curve(definition, config.exposure(curve_name), market_data, available, settings)
        for key in definition.keys:
            provider.set_curve(key, curve)
        available[curve_name] = curve

    return provider
