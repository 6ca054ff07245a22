"""
Model-specific providers: Black swaption volatilities and Hull-White one-factor parameters.

Each provider wraps a CurveBundle; calculators that need the model check
the provider type before use.
"""
from __future__ import annotations

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Iterable, Tuple

from scipy.stats import norm

from .conventions import Currency
from .provider import CurveBundle


# ---------- Black ----------

def black_price(forward: float, strike: float, expiry: float, vol: float, is_call: bool) -> float:
    """Undiscounted Black price of a call/put on a forward."""
    if expiry <= 0 or vol <= 0:
        intrinsic = forward - strike if is_call else strike - forward
        return max(intrinsic, 0.0)
    sd = vol * np.sqrt(expiry)
    d1 = (np.log(forward / strike) + 0.5 * sd * sd) / sd
    d2 = d1 - sd
    if is_call:
        return float(forward * norm.cdf(d1) - strike * norm.cdf(d2))
    return float(strike * norm.cdf(-d2) - forward * norm.cdf(-d1))


def black_forward_delta(forward: float, strike: float, expiry: float, vol: float, is_call: bool) -> float:
    """d(black_price)/d(forward)."""
    if expiry <= 0 or vol <= 0:
        if is_call:
            return 1.0 if forward > strike else 0.0
        return -1.0 if forward < strike else 0.0
    sd = vol * np.sqrt(expiry)
    d1 = (np.log(forward / strike) + 0.5 * sd * sd) / sd
    return float(norm.cdf(d1)) if is_call else float(norm.cdf(d1) - 1.0)


@dataclass(frozen=True, eq=False)
class BlackSwaptionParameters:
    """
    Black volatilities on an (expiry, tenor) grid, both in years.

    Interpolation is bilinear with flat extrapolation outside the grid.
    """
    volatilities: pd.DataFrame  # index: expiry, columns: underlying tenor

    def __post_init__(self) -> None:
        grid = self.volatilities.sort_index().sort_index(axis=1)
        if grid.isna().to_numpy().any():
            raise ValueError("Volatility grid has missing values.")
        object.__setattr__(self, "volatilities", grid.astype(float))

    @classmethod
    def flat(cls, vol: float) -> "BlackSwaptionParameters":
        return cls(pd.DataFrame([[vol]], index=[1.0], columns=[1.0]))

    def volatility(self, expiry: float, tenor: float) -> float:
        grid = self.volatilities
        expiries = grid.index.to_numpy(dtype=float)
        tenors = grid.columns.to_numpy(dtype=float)
        by_expiry = np.array([np.interp(tenor, tenors, row) for row in grid.to_numpy()], dtype=float)
        return float(np.interp(expiry, expiries, by_expiry))


class BlackSwaptionProvider:
    def __init__(self, multicurve: CurveBundle, parameters: BlackSwaptionParameters):
        self._multicurve = multicurve.multicurve
        self.parameters = parameters

    @property
    def multicurve(self) -> CurveBundle:
        return self._multicurve

    def discount_factor(self, ccy: Currency, t: float) -> float:
        return self._multicurve.discount_factor(ccy, t)

    def __repr__(self) -> str:
        return f"BlackSwaptionProvider({self._multicurve!r})"


# ---------- Hull-White one factor ----------

@dataclass(frozen=True, eq=False)
class HullWhiteOneFactorParameters:
    """
    Piecewise-constant volatility Hull-White model.

    volatilities[i] applies on [volatility_times[i-1], volatility_times[i]) with
    implicit bounds 0 and +inf, so len(volatility_times) == len(volatilities) - 1.
    """
    mean_reversion: float
    volatilities: Tuple[float, ...]
    volatility_times: Tuple[float, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.mean_reversion <= 0:
            raise ValueError("mean_reversion must be positive")
        vols = tuple(float(v) for v in self.volatilities)
        times = tuple(float(t) for t in self.volatility_times)
        if len(vols) != len(times) + 1:
            raise ValueError("Need exactly one more volatility than volatility time.")
        if any(t <= 0 for t in times) or any(b <= a for a, b in zip(times, times[1:])):
            raise ValueError("volatility_times must be positive and strictly increasing")
        object.__setattr__(self, "volatilities", vols)
        object.__setattr__(self, "volatility_times", times)

    def _period_bounds(self, t0: float) -> Iterable[Tuple[float, float, float]]:
        bounds = (0.0,) + self.volatility_times
        for i, vol in enumerate(self.volatilities):
            start = bounds[i]
            if start >= t0:
                break
            end = self.volatility_times[i] if i < len(self.volatility_times) else t0
            yield vol, start, min(end, t0)

    def futures_convexity_factor(self, t0: float, t1: float, t2: float) -> float:
        """
        Convexity adjustment for a futures margined until t0 on a cash flow at t1,
        measured relative to the delivery date t2.
        """
        a = self.mean_reversion
        if t0 <= 0:
            return 1.0
        factor1 = np.exp(-a * t1) - np.exp(-a * t2)
        numerator = 2.0 * a ** 3
        factor2 = 0.0
        for vol, s0, s1 in self._period_bounds(t0):
            factor2 += vol * vol * (np.exp(a * s1) - np.exp(a * s0)) * (
                2.0 - np.exp(-a * (t2 - s1)) - np.exp(-a * (t2 - s0))
            )
        return float(np.exp(factor1 / numerator * factor2))


class HullWhiteProvider:
    def __init__(self, multicurve: CurveBundle, parameters: HullWhiteOneFactorParameters, currency: Currency):
        self._multicurve = multicurve.multicurve
        self.parameters = parameters
        self.currency = currency

    @property
    def multicurve(self) -> CurveBundle:
        return self._multicurve

    def discount_factor(self, ccy: Currency, t: float) -> float:
        return self._multicurve.discount_factor(ccy, t)

    def __repr__(self) -> str:
        return f"HullWhiteProvider({self.currency}, {self._multicurve!r})"
