"""
Time-based discount curves.

A Curve maps time-to-maturity (ACT/365 year fraction from the valuation
instant) to a discount factor. Knots hold log discount factors and are
interpolated linearly in log DF; both ends extrapolate flat in the
continuously-compounded zero rate of the nearest knot. Curves are immutable
and may be shared between bundles.
"""
from __future__ import annotations

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Callable, Iterable, Union

ArrayLike = Union[float, Iterable[float], np.ndarray]


@dataclass(frozen=True, eq=False)
class Curve:
    name: str
    knot_times: np.ndarray
    knot_log_dfs: np.ndarray

    def __post_init__(self) -> None:
        times = np.asarray(self.knot_times, dtype=float)
        log_dfs = np.asarray(self.knot_log_dfs, dtype=float)
        if times.ndim != 1 or times.shape != log_dfs.shape:
            raise ValueError("knot_times and knot_log_dfs must be 1-d arrays of equal length")
        if len(times) == 0:
            raise ValueError(f"Curve {self.name} has no knots")
        if np.any(times <= 0.0):
            raise ValueError("Knot times must be strictly positive.")
        if np.any(np.diff(times) <= 0.0):
            raise ValueError("Knot times must be strictly increasing.")
        # frozen: bypass __setattr__ to store normalised copies
        object.__setattr__(self, "knot_times", times.copy())
        object.__setattr__(self, "knot_log_dfs", log_dfs.copy())

    @classmethod
    def from_zero_rates(cls, name: str, times: Iterable[float], zero_rates: Iterable[float]) -> "Curve":
        t = np.asarray(list(times), dtype=float)
        z = np.asarray(list(zero_rates), dtype=float)
        return cls(name, t, -z * t)

    @classmethod
    def from_discount_factors(cls, name: str, times: Iterable[float], dfs: Iterable[float]) -> "Curve":
        d = np.asarray(list(dfs), dtype=float)
        if np.any(d <= 0.0):
            raise ValueError("Discount factors must be positive.")
        return cls(name, np.asarray(list(times), dtype=float), np.log(d))

    @classmethod
    def flat(cls, name: str, rate: float) -> "Curve":
        return cls.from_zero_rates(name, [1.0], [rate])

    def knot_zero_rates(self) -> np.ndarray:
        return -self.knot_log_dfs / self.knot_times

    def _log_df(self, t: np.ndarray) -> np.ndarray:
        kx = self.knot_times
        kv = self.knot_log_dfs
        zeros = self.knot_zero_rates()

        out = np.interp(t, kx, kv)

        mask_short = t < kx[0]
        if np.any(mask_short):
            out[mask_short] = -zeros[0] * t[mask_short]

        mask_long = t > kx[-1]
        if np.any(mask_long):
            out[mask_long] = -zeros[-1] * t[mask_long]

        return out

    def discount_factor(self, t: ArrayLike):
        """DF(t); scalar in, float out; array in, ndarray out."""
        arr = np.atleast_1d(np.asarray(t, dtype=float))
        dfs = np.exp(self._log_df(arr))
        if np.ndim(t) == 0:
            return float(dfs[0])
        return dfs

    def zero_rate(self, t: ArrayLike):
        arr = np.atleast_1d(np.asarray(t, dtype=float))
        if np.any(arr <= 0):
            raise ValueError("Non-positive time encountered in zero rate computation.")
        zeros = -self._log_df(arr) / arr
        if np.ndim(t) == 0:
            return float(zeros[0])
        return zeros

    def forward_rate(self, t1: float, t2: float, accrual_fraction: float) -> float:
        """Simply-compounded forward over [t1, t2]: (DF(t1)/DF(t2) - 1) / accrual_fraction."""
        if accrual_fraction <= 0:
            raise ValueError("accrual_fraction must be positive")
        return (self.discount_factor(t1) / self.discount_factor(t2) - 1.0) / accrual_fraction


def curve_qc_report(curve: Curve) -> pd.DataFrame:
    taus = curve.knot_times
    dfs = np.exp(curve.knot_log_dfs)
    zeros = -curve.knot_log_dfs / taus

    return pd.DataFrame(
        {
            "curve": curve.name,
            "tau": taus,
            "df": dfs,
            "zero_cc": zeros,
            "df_positive": dfs > 0,
            "df_monotone": np.r_[True, np.diff(dfs) <= 1e-10],
        }
    )


def curve_from_shifted_zeros(curve: Curve, shift_func: Callable[[float], float]) -> Curve:
    """Build a new curve by shifting cc zeros z(t) by shift_func(tau) (decimal)."""
    taus = curve.knot_times
    zeros = curve.knot_zero_rates()

    shifts = np.array([shift_func(t) for t in taus], dtype=float)
    zeros_shifted = zeros + shifts

    return Curve(curve.name, taus.copy(), -zeros_shifted * taus)


def parallel_shift_bp(bp: float) -> Callable[[float], float]:
    s = bp / 10000.0
    return lambda tau: s


def shocked_curve_parallel(curve: Curve, shift_bp: float) -> Curve:
    """Parallel shift in continuously-compounded zero rates by shift_bp."""
    return curve_from_shifted_zeros(curve, parallel_shift_bp(shift_bp))
