from __future__ import annotations

import pandas as pd
from typing import Mapping, Optional, Union

from .utils import as_date


class FixingTimeSeries:
    """
    Ordered date -> rate mapping of observed index fixings.

    Lookups are at date (UTC midnight) granularity: any timestamp is
    normalised to its calendar date before the search.
    """

    def __init__(self, fixings: Union[pd.Series, Mapping, None] = None):
        if fixings is None:
            series = pd.Series(dtype=float, index=pd.DatetimeIndex([]))
        else:
            series = pd.Series(fixings, dtype=float)
        if len(series):
            series.index = pd.DatetimeIndex([as_date(d) for d in series.index])
            if series.index.has_duplicates:
                raise ValueError("Fixing series has duplicate dates.")
            series = series.sort_index()
        self._series = series

    @property
    def series(self) -> pd.Series:
        return self._series.copy()

    def __len__(self) -> int:
        return len(self._series)

    def __contains__(self, date) -> bool:
        return self.get(date) is not None

    def get(self, date) -> Optional[float]:
        """Fixing on the date of `date`, or None when nothing was recorded."""
        key = as_date(date)
        if key not in self._series.index:
            return None
        value = self._series.loc[key]
        if pd.isna(value):
            return None
        return float(value)

    def with_fixing(self, date, rate: float) -> "FixingTimeSeries":
        updated = self._series.copy()
        updated.loc[as_date(date)] = float(rate)
        return FixingTimeSeries(updated)

    def __repr__(self) -> str:
        return f"FixingTimeSeries(n={len(self)})"
