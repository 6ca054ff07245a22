from __future__ import annotations

import pandas as pd
from typing import List, Tuple
from functools import lru_cache

_SECONDS_PER_YEAR = 365.0 * 86400.0


def yearfrac(start: pd.Timestamp, end: pd.Timestamp, convention: str) -> float:
    """
    Year fraction between two dates under a day count convention.

    Supported:
    - ACT/365, ACT/365F
    - ACT/360
    - 30/360, 30/360US (US bond basis)
    """
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)

    convention = convention.upper().replace(" ", "")
    if end < start:
        raise ValueError(f"end < start: {start=} {end=}")

    if convention in ("ACT/365", "ACT/365F"):
        return (end - start).days / 365.0

    if convention == "ACT/360":
        return (end - start).days / 360.0

    if convention in ("30/360", "30/360US"):
        y1, m1, d1 = start.year, start.month, start.day
        y2, m2, d2 = end.year, end.month, end.day

        # 30/360 US convention
        if d1 == 31:
            d1 = 30
        if d2 == 31 and d1 == 30:
            d2 = 30

        return ((y2 - y1) * 360 + (m2 - m1) * 30 + (d2 - d1)) / 360.0

    raise ValueError(f"Unsupported day count convention: {convention}")


def _utc_naive(value) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def time_between(start: pd.Timestamp, end: pd.Timestamp) -> float:
    """
    Signed ACT/365 time from start to end, used for every time offset held by a derivative.
    Unlike yearfrac, end may precede start (negative result).
    """
    delta = _utc_naive(end) - _utc_naive(start)
    return delta.total_seconds() / _SECONDS_PER_YEAR


def as_date(value) -> pd.Timestamp:
    """Calendar date (midnight, tz-naive UTC) of a timestamp-like value."""
    return _utc_naive(value).normalize()


def add_months(date: pd.Timestamp, months: int) -> pd.Timestamp:
    return pd.Timestamp(date) + pd.DateOffset(months=months)


def period_end_dates(start: pd.Timestamp, end: pd.Timestamp, months: int) -> List[pd.Timestamp]:
    """
    Period end dates stepping forward from start every `months`, with a short final stub ending at `end`.

    Each date is offset from `start` directly (not chained) so month-end anchors do not drift.
    """
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)

    if months <= 0:
        raise ValueError("months must be positive")
    if end <= start:
        raise ValueError("end must be after start")

    dates: List[pd.Timestamp] = []
    k = 1
    d = add_months(start, months)
    while d < end:
        dates.append(d)
        k += 1
        d = add_months(start, months * k)

    dates.append(end)
    return dates


def fixing_date(accrual_start: pd.Timestamp, spot_lag: int) -> pd.Timestamp:
    """Fixing date of a period starting at accrual_start (calendar-day spot lag)."""
    return pd.Timestamp(accrual_start) - pd.Timedelta(days=spot_lag)


def previous_coupon_date(settle: pd.Timestamp, maturity: pd.Timestamp, freq: int = 2) -> pd.Timestamp:
    """
    Most recent coupon date on or before settlement, schedule anchored at maturity.
    Pragmatic approximation when issue date is unknown.
    """
    if freq <= 0:
        raise ValueError("freq must be positive")

    months = int(12 / freq)
    d = pd.Timestamp(maturity)
    settle = pd.Timestamp(settle)

    while d > settle:
        d = d - pd.DateOffset(months=months)
    return d


def next_coupon_date(settle: pd.Timestamp, maturity: pd.Timestamp, freq: int = 2) -> pd.Timestamp:
    """Next coupon date strictly after settlement."""
    prev = previous_coupon_date(settle, maturity, freq)
    months = int(12 / freq)
    return prev + pd.DateOffset(months=months)


def coupon_schedule_after_settlement(
    settle: pd.Timestamp,
    maturity: pd.Timestamp,
    freq: int = 2,
) -> List[pd.Timestamp]:
    """All coupon payment dates strictly after settlement, ending at maturity."""
    settle = pd.Timestamp(settle)
    maturity = pd.Timestamp(maturity)

    if settle >= maturity:
        return []

    months = int(12 / freq)
    d = next_coupon_date(settle, maturity, freq)

    dates: List[pd.Timestamp] = []
    while d < maturity:
        dates.append(d)
        d = d + pd.DateOffset(months=months)

    dates.append(maturity)
    return dates


def accrued_interest(
    settle: pd.Timestamp,
    maturity: pd.Timestamp,
    coupon_rate: float,
    face: float,
    freq: int,
    day_count: str,
) -> float:
    """
    Accrued interest in currency units (not per 100).
    """
    settle = pd.Timestamp(settle)
    maturity = pd.Timestamp(maturity)

    if settle >= maturity:
        return 0.0

    t_prev = previous_coupon_date(settle, maturity, freq)
    t_next = next_coupon_date(settle, maturity, freq)

    accrual_num = yearfrac(t_prev, settle, day_count)
    accrual_den = yearfrac(t_prev, t_next, day_count)

    if accrual_den <= 0:
        raise ValueError("Invalid coupon period length from schedule/daycount.")

    coupon_per_period = face * (coupon_rate / freq)
    return coupon_per_period * (accrual_num / accrual_den)


@lru_cache(maxsize=100_000)
def cached_schedule(settle: pd.Timestamp, maturity: pd.Timestamp, freq: int) -> Tuple[pd.Timestamp, ...]:
    """Cache schedules by (settle, maturity, freq)."""
    dates = coupon_schedule_after_settlement(pd.Timestamp(settle), pd.Timestamp(maturity), int(freq))
    return tuple(dates)
