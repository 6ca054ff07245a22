from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .calculators import PresentValueCalculator, PV01CurveParametersCalculator
from .derivatives import Derivative, DerivativeVisitor
from .errors import MulticurveError

logger = logging.getLogger(__name__)


def _trade_currency(derivative: Derivative) -> str:
    ccy = getattr(derivative, "currency", None)
    return str(ccy) if ccy is not None else ""


def _run(trades: Mapping[str, Derivative], func, max_workers: Optional[int]):
    """Apply func(trade_id, derivative) to every trade, keeping input order."""
    items = list(trades.items())
    if max_workers and max_workers > 1 and len(items) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(lambda kv: func(*kv), items))
    return [func(trade_id, d) for trade_id, d in items]


def price_portfolio(
    trades: Mapping[str, Derivative],
    provider,
    calculator: Optional[DerivativeVisitor] = None,
    max_workers: Optional[int] = None,
) -> pd.DataFrame:
    """
    Present value of every trade against one (published) provider.

    One row per (trade, currency). A trade that fails with a MulticurveError
    gets a single row with NaN value and the error text; the rest of the
    batch is still priced.
    """
    calculator = calculator or PresentValueCalculator()

    def price_one(trade_id: str, derivative: Derivative) -> List[Tuple[str, str, float, str]]:
        try:
            pv = calculator.visit(derivative, provider)
        except MulticurveError as exc:
            logger.warning("Pricing failed for trade %s: %s", trade_id, exc)
            return [(trade_id, _trade_currency(derivative), np.nan, f"{type(exc).__name__}: {exc}")]
        return [(trade_id, str(ccy), amount, "") for ccy, amount in pv.items()]

    rows = [r for rs in _run(trades, price_one, max_workers) for r in rs]
    return pd.DataFrame(rows, columns=["trade_id", "currency", "value", "error"])


def pv01_table(
    trades: Mapping[str, Derivative],
    provider,
    max_workers: Optional[int] = None,
) -> pd.DataFrame:
    """Long table of PV01 per (trade, curve, currency); failed trades keep one row with the error."""
    calculator = PV01CurveParametersCalculator()

    def pv01_one(trade_id: str, derivative: Derivative):
        try:
            pv01 = calculator.visit(derivative, provider)
        except MulticurveError as exc:
            logger.warning("PV01 failed for trade %s: %s", trade_id, exc)
            return [(trade_id, "", _trade_currency(derivative), np.nan, f"{type(exc).__name__}: {exc}")]
        return [(trade_id, name, str(ccy), value, "") for (name, ccy), value in pv01.items()]

    rows = [r for rs in _run(trades, pv01_one, max_workers) for r in rs]
    return pd.DataFrame(rows, columns=["trade_id", "curve", "currency", "pv01", "error"])


def pv01_by_curve(table: pd.DataFrame) -> pd.DataFrame:
    """Aggregate a pv01_table over trades."""
    ok = table[table["error"] == ""]
    return ok.groupby(["curve", "currency"], as_index=False)["pv01"].sum()
