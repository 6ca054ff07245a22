"""
Multi-curve and issuer providers.

CurveBundle maps currencies to discounting curves and Ibor/overnight indices
to forward curves, plus an FX matrix. IssuerProvider wraps a CurveBundle and
adds curves keyed by (issuer, currency).

Bundles are built by mutation (set_curve / set_all) and then published.
A published bundle is read-only: mutating calls raise PublishedBundleError
and callers work on copy() instead. copy() clones the maps but shares the
(immutable) curve objects.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .conventions import Currency, IborIndex, IssuerKey, OvernightIndex
from .curves import Curve
from .errors import MissingCurveError, MissingFxRateError, PublishedBundleError

CurveKey = Union[Currency, IborIndex, OvernightIndex]
ForwardIndex = Union[IborIndex, OvernightIndex]


class FxMatrix:
    """Spot FX rates: rate(c1, c2) is the amount of c2 worth one unit of c1."""

    def __init__(self, rates: Optional[Mapping[Tuple[Currency, Currency], float]] = None):
        self._rates: Dict[Tuple[Currency, Currency], float] = {}
        for (c1, c2), rate in (rates or {}).items():
            self.add(c1, c2, rate)

    def add(self, c1: Currency, c2: Currency, rate: float) -> None:
        if rate <= 0:
            raise ValueError(f"FX rate {c1}/{c2} must be positive")
        self._rates[(c1, c2)] = float(rate)
        self._rates.pop((c2, c1), None)

    def rate(self, c1: Currency, c2: Currency) -> float:
        if c1 == c2:
            return 1.0
        if (c1, c2) in self._rates:
            return self._rates[(c1, c2)]
        if (c2, c1) in self._rates:
            return 1.0 / self._rates[(c2, c1)]
        raise MissingFxRateError(f"No FX rate for {c1}/{c2}")

    def convert(self, amounts, target: Currency) -> float:
        """Total of a MultipleCurrencyAmount (or currency->amount mapping) in `target`."""
        items = amounts.items()
        return float(sum(a * self.rate(ccy, target) for ccy, a in items))

    def items(self):
        return self._rates.items()

    def copy(self) -> "FxMatrix":
        out = FxMatrix()
        out._rates = dict(self._rates)
        return out

    def merge(self, other: "FxMatrix") -> None:
        for (c1, c2), rate in other.items():
            self.add(c1, c2, rate)


class CurveBundle:
    def __init__(
        self,
        discounting: Optional[Mapping[Currency, Curve]] = None,
        forward_ibor: Optional[Mapping[IborIndex, Curve]] = None,
        forward_on: Optional[Mapping[OvernightIndex, Curve]] = None,
        fx_matrix: Optional[FxMatrix] = None,
    ):
        self._discounting: Dict[Currency, Curve] = dict(discounting or {})
        self._forward_ibor: Dict[IborIndex, Curve] = dict(forward_ibor or {})
        self._forward_on: Dict[OvernightIndex, Curve] = dict(forward_on or {})
        self._fx = fx_matrix.copy() if fx_matrix is not None else FxMatrix()
        self._published = False

    # ---- read side ----

    @property
    def multicurve(self) -> "CurveBundle":
        return self

    @property
    def fx_matrix(self) -> FxMatrix:
        return self._fx

    @property
    def is_published(self) -> bool:
        return self._published

    @property
    def currencies(self) -> List[Currency]:
        return list(self._discounting)

    @property
    def ibor_indices(self) -> List[IborIndex]:
        return list(self._forward_ibor)

    @property
    def overnight_indices(self) -> List[OvernightIndex]:
        return list(self._forward_on)

    def _entries(self) -> Iterable[Tuple[CurveKey, Curve]]:
        yield from self._discounting.items()
        yield from self._forward_ibor.items()
        yield from self._forward_on.items()

    @property
    def curve_names(self) -> List[str]:
        """Distinct curve names, derived from the maps on every call."""
        return list(dict.fromkeys(c.name for _, c in self._entries()))

    def keys_for(self, curve_name: str) -> List[CurveKey]:
        return [k for k, c in self._entries() if c.name == curve_name]

    def discounting_curve(self, ccy: Currency) -> Curve:
        try:
            return self._discounting[ccy]
        except KeyError:
            raise MissingCurveError(f"No discounting curve for currency {ccy}") from None

    def forward_curve(self, index: ForwardIndex) -> Curve:
        mapping = self._forward_on if isinstance(index, OvernightIndex) else self._forward_ibor
        try:
            return mapping[index]
        except KeyError:
            raise MissingCurveError(f"No forward curve for index {index}") from None

    def curve(self, name: str) -> Curve:
        for _, c in self._entries():
            if c.name == name:
                return c
        raise MissingCurveError(f"No curve named {name}")

    def discount_factor(self, ccy: Currency, t: float) -> float:
        return self.discounting_curve(ccy).discount_factor(t)

    def forward_rate(self, index: ForwardIndex, t1: float, t2: float, accrual_fraction: float) -> float:
        return self.forward_curve(index).forward_rate(t1, t2, accrual_fraction)

    def fx_rate(self, c1: Currency, c2: Currency) -> float:
        return self._fx.rate(c1, c2)

    # ---- write side ----

    def _check_mutable(self) -> None:
        if self._published:
            raise PublishedBundleError("Bundle is published for concurrent read; mutate a copy() instead.")

    def set_curve(self, key: CurveKey, curve: Curve) -> None:
        self._check_mutable()
        if isinstance(key, Currency):
            self._discounting[key] = curve
        elif isinstance(key, IborIndex):
            self._forward_ibor[key] = curve
        elif isinstance(key, OvernightIndex):
            self._forward_on[key] = curve
        else:
            raise TypeError(f"Unsupported curve key type {type(key).__name__}")

    def set_fx_rate(self, c1: Currency, c2: Currency, rate: float) -> None:
        self._check_mutable()
        self._fx.add(c1, c2, rate)

    def set_all(self, other: "CurveBundle") -> None:
        """Merge other's entries into this bundle; other wins on overlapping keys."""
        self._check_mutable()
        other = other.multicurve
        self._discounting.update(other._discounting)
        self._forward_ibor.update(other._forward_ibor)
        self._forward_on.update(other._forward_on)
        self._fx.merge(other._fx)

    def publish(self) -> "CurveBundle":
        self._published = True
        return self

    def copy(self) -> "CurveBundle":
        return CurveBundle(self._discounting, self._forward_ibor, self._forward_on, self._fx)

    def restricted_to(self, curve_names: Iterable[str]) -> "CurveBundle":
        """New bundle holding only the entries whose curve name is listed (FX matrix kept)."""
        names = set(curve_names)
        missing = names.difference(self.curve_names)
        if missing:
            raise MissingCurveError(f"Curves not in bundle: {sorted(missing)}")
        return CurveBundle(
            {k: c for k, c in self._discounting.items() if c.name in names},
            {k: c for k, c in self._forward_ibor.items() if c.name in names},
            {k: c for k, c in self._forward_on.items() if c.name in names},
            self._fx,
        )

    def with_curve(self, key: CurveKey, curve: Curve) -> "CurveBundle":
        out = self.copy()
        out.set_curve(key, curve)
        return out

    def with_curve_named(self, curve_name: str, curve: Curve) -> "CurveBundle":
        """Copy with every entry currently holding `curve_name` replaced by `curve`."""
        keys = self.keys_for(curve_name)
        if not keys:
            raise MissingCurveError(f"No curve named {curve_name}")
        out = self.copy()
        for k in keys:
            out.set_curve(k, curve)
        return out

    def __repr__(self) -> str:
        return f"CurveBundle(curves={self.curve_names}, published={self._published})"


class IssuerProvider:
    """CurveBundle plus issuer curves. Issuer lookups never fall back to discounting curves."""

    def __init__(
        self,
        multicurve: Optional[CurveBundle] = None,
        issuer_curves: Optional[Mapping[IssuerKey, Curve]] = None,
    ):
        self._multicurve = multicurve if multicurve is not None else CurveBundle()
        self._issuer_curves: Dict[IssuerKey, Curve] = dict(issuer_curves or {})
        self._published = False

    @property
    def multicurve(self) -> CurveBundle:
        return self._multicurve

    @property
    def issuer_provider(self) -> "IssuerProvider":
        return self

    @property
    def is_published(self) -> bool:
        return self._published

    @property
    def issuers(self) -> List[IssuerKey]:
        return list(self._issuer_curves)

    @property
    def fx_matrix(self) -> FxMatrix:
        return self._multicurve.fx_matrix

    @property
    def curve_names(self) -> List[str]:
        names = self._multicurve.curve_names + [c.name for c in self._issuer_curves.values()]
        return list(dict.fromkeys(names))

    def issuer_curve(self, key: IssuerKey) -> Curve:
        try:
            return self._issuer_curves[key]
        except KeyError:
            raise MissingCurveError(f"No issuer curve for {key}") from None

    def issuer_discount_factor(self, key: IssuerKey, t: float) -> float:
        return self.issuer_curve(key).discount_factor(t)

    def discount_factor(self, ccy: Currency, t: float) -> float:
        return self._multicurve.discount_factor(ccy, t)

    def forward_rate(self, index: ForwardIndex, t1: float, t2: float, accrual_fraction: float) -> float:
        return self._multicurve.forward_rate(index, t1, t2, accrual_fraction)

    def fx_rate(self, c1: Currency, c2: Currency) -> float:
        return self._multicurve.fx_rate(c1, c2)

    def curve(self, name: str) -> Curve:
        for c in self._issuer_curves.values():
            if c.name == name:
                return c
        return self._multicurve.curve(name)

    def _check_mutable(self) -> None:
        if self._published:
            raise PublishedBundleError("Provider is published for concurrent read; mutate a copy() instead.")

    def set_curve(self, key: Union[CurveKey, IssuerKey], curve: Curve) -> None:
        self._check_mutable()
        if isinstance(key, IssuerKey):
            self._issuer_curves[key] = curve
        else:
            self._multicurve.set_curve(key, curve)

    def set_issuer_curve(self, key: IssuerKey, curve: Curve) -> None:
        self._check_mutable()
        self._issuer_curves[key] = curve

    def set_all(self, other: Union["IssuerProvider", CurveBundle]) -> None:
        self._check_mutable()
        self._multicurve.set_all(other.multicurve)
        if isinstance(other, IssuerProvider):
            self._issuer_curves.update(other._issuer_curves)

    def publish(self) -> "IssuerProvider":
        self._multicurve.publish()
        self._published = True
        return self

    def copy(self) -> "IssuerProvider":
        return IssuerProvider(self._multicurve.copy(), self._issuer_curves)

    def restricted_to(self, curve_names: Iterable[str]) -> "IssuerProvider":
        names = set(curve_names)
        missing = names.difference(self.curve_names)
        if missing:
            raise MissingCurveError(f"Curves not in provider: {sorted(missing)}")
        multicurve_names = names.intersection(self._multicurve.curve_names)
        return IssuerProvider(
            self._multicurve.restricted_to(multicurve_names),
            {k: c for k, c in self._issuer_curves.items() if c.name in names},
        )

    def with_issuer_currency(self, key: IssuerKey, curve: Curve) -> "IssuerProvider":
        """New provider with one issuer curve replaced; the multicurve is shared, self is untouched."""
        issuer_curves = dict(self._issuer_curves)
        issuer_curves[key] = curve
        return IssuerProvider(self._multicurve, issuer_curves)

    def with_curve_named(self, curve_name: str, curve: Curve) -> "IssuerProvider":
        issuer_keys = [k for k, c in self._issuer_curves.items() if c.name == curve_name]
        multicurve = self._multicurve
        if curve_name in multicurve.curve_names:
            multicurve = multicurve.with_curve_named(curve_name, curve)
        elif not issuer_keys:
            raise MissingCurveError(f"No curve named {curve_name}")
        issuer_curves = dict(self._issuer_curves)
        for k in issuer_keys:
            issuer_curves[k] = curve
        return IssuerProvider(multicurve, issuer_curves)

    def __repr__(self) -> str:
        return f"IssuerProvider(curves={self.curve_names}, published={self._published})"
