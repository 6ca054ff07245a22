"""
Sensitivity and multi-currency amount containers.

MulticurveSensitivity holds, per curve name, an ordered sequence of
(time, value) pairs where value is the derivative of a present value with
respect to the continuously-compounded zero rate of that curve at that time.
Containers are immutable: every operation returns a new object.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from .conventions import Currency

Node = Tuple[float, float]


class MulticurveSensitivity:
    def __init__(self, sensitivities: Optional[Mapping[str, Iterable[Node]]] = None):
        self._sensitivities: Dict[str, Tuple[Node, ...]] = {
            name: tuple((float(t), float(v)) for t, v in nodes)
            for name, nodes in (sensitivities or {}).items()
        }

    @classmethod
    def of(cls, curve_name: str, nodes: Iterable[Node]) -> "MulticurveSensitivity":
        return cls({curve_name: list(nodes)})

    @property
    def curve_names(self) -> List[str]:
        return list(self._sensitivities)

    def nodes(self, curve_name: str) -> Tuple[Node, ...]:
        return self._sensitivities.get(curve_name, ())

    def items(self):
        return self._sensitivities.items()

    def __contains__(self, curve_name: str) -> bool:
        return curve_name in self._sensitivities

    def __len__(self) -> int:
        return len(self._sensitivities)

    def plus(self, other: "MulticurveSensitivity") -> "MulticurveSensitivity":
        merged: Dict[str, List[Node]] = {name: list(nodes) for name, nodes in self._sensitivities.items()}
        for name, nodes in other.items():
            merged.setdefault(name, []).extend(nodes)
        return MulticurveSensitivity(merged)

    def multiplied_by(self, factor: float) -> "MulticurveSensitivity":
        return MulticurveSensitivity(
            {name: [(t, v * factor) for t, v in nodes] for name, nodes in self._sensitivities.items()}
        )

    def cleaned(self) -> "MulticurveSensitivity":
        """Merge entries at identical times and sort each curve's nodes by time."""
        out: Dict[str, List[Node]] = {}
        for name, nodes in self._sensitivities.items():
            acc: Dict[float, float] = defaultdict(float)
            for t, v in nodes:
                acc[t] += v
            out[name] = sorted(acc.items())
        return MulticurveSensitivity(out)

    def totals(self) -> Dict[str, float]:
        """Sum over nodes per curve (sensitivity to a parallel zero-rate move)."""
        return {name: float(sum(v for _, v in nodes)) for name, nodes in self._sensitivities.items()}

    def __add__(self, other: "MulticurveSensitivity") -> "MulticurveSensitivity":
        return self.plus(other)

    def __mul__(self, factor: float) -> "MulticurveSensitivity":
        return self.multiplied_by(factor)

    __rmul__ = __mul__

    def __repr__(self) -> str:
        return f"MulticurveSensitivity({dict(self._sensitivities)!r})"


class MultipleCurrencySensitivity:
    def __init__(self, sensitivities: Optional[Mapping[Currency, MulticurveSensitivity]] = None):
        self._sensitivities: Dict[Currency, MulticurveSensitivity] = dict(sensitivities or {})

    @classmethod
    def of(cls, currency: Currency, sensitivity: MulticurveSensitivity) -> "MultipleCurrencySensitivity":
        return cls({currency: sensitivity})

    @property
    def currencies(self) -> List[Currency]:
        return list(self._sensitivities)

    def sensitivity(self, currency: Currency) -> MulticurveSensitivity:
        return self._sensitivities.get(currency, MulticurveSensitivity())

    def items(self):
        return self._sensitivities.items()

    def plus(self, other: "MultipleCurrencySensitivity") -> "MultipleCurrencySensitivity":
        merged = dict(self._sensitivities)
        for ccy, sens in other.items():
            merged[ccy] = merged[ccy].plus(sens) if ccy in merged else sens
        return MultipleCurrencySensitivity(merged)

    def multiplied_by(self, factor: float) -> "MultipleCurrencySensitivity":
        return MultipleCurrencySensitivity({ccy: s.multiplied_by(factor) for ccy, s in self._sensitivities.items()})

    def cleaned(self) -> "MultipleCurrencySensitivity":
        return MultipleCurrencySensitivity({ccy: s.cleaned() for ccy, s in self._sensitivities.items()})

    def __add__(self, other: "MultipleCurrencySensitivity") -> "MultipleCurrencySensitivity":
        return self.plus(other)

    def to_frame(self) -> pd.DataFrame:
        rows = [
            (str(ccy), name, t, v)
            for ccy, sens in self._sensitivities.items()
            for name, nodes in sens.items()
            for t, v in nodes
        ]
        return pd.DataFrame(rows, columns=["currency", "curve", "time", "sensitivity"])

    def __repr__(self) -> str:
        return f"MultipleCurrencySensitivity({self._sensitivities!r})"


class MultipleCurrencyAmount:
    def __init__(self, amounts: Optional[Mapping[Currency, float]] = None):
        self._amounts: Dict[Currency, float] = {ccy: float(a) for ccy, a in (amounts or {}).items()}

    @classmethod
    def of(cls, currency: Currency, amount: float) -> "MultipleCurrencyAmount":
        return cls({currency: amount})

    @property
    def currencies(self) -> List[Currency]:
        return list(self._amounts)

    def amount(self, currency: Currency) -> float:
        return self._amounts.get(currency, 0.0)

    def items(self):
        return self._amounts.items()

    def plus(self, other: "MultipleCurrencyAmount") -> "MultipleCurrencyAmount":
        merged = dict(self._amounts)
        for ccy, a in other.items():
            merged[ccy] = merged.get(ccy, 0.0) + a
        return MultipleCurrencyAmount(merged)

    def multiplied_by(self, factor: float) -> "MultipleCurrencyAmount":
        return MultipleCurrencyAmount({ccy: a * factor for ccy, a in self._amounts.items()})

    def __add__(self, other: "MultipleCurrencyAmount") -> "MultipleCurrencyAmount":
        return self.plus(other)

    def __repr__(self) -> str:
        return "MultipleCurrencyAmount(" + ", ".join(f"{c}={a}" for c, a in self._amounts.items()) + ")"
