"""
Curve-construction configuration.

A CurveCalculationConfig names the curves it builds, how each curve's
calibration instruments are exposed to curves (CurveInstrumentExposure), and
optionally which curves it takes, already built, from other configs
(exogenous suppliers). CurveDefinition gives the calibration nodes of a curve
and the bundle keys its result is stored under.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .conventions import Currency, IborIndex, IssuerKey, OvernightIndex
from .errors import InvalidConfigError

INSTRUMENT_TYPES = ("CASH", "LIBOR", "FRA", "OIS_SWAP", "SWAP", "DISCOUNT_FACTOR")


@dataclass(frozen=True)
class CurveNode:
    ticker: str
    instrument_type: str
    maturity: float              # years from the valuation instant
    fixed_period: float = 1.0    # SWAP / OIS_SWAP fixed leg period, years
    float_period: float = 0.25   # SWAP float leg / FRA period, years

    def __post_init__(self) -> None:
        if self.maturity <= 0:
            raise ValueError(f"{self.ticker}: maturity must be positive")
        if self.fixed_period <= 0 or self.float_period <= 0:
            raise ValueError(f"{self.ticker}: periods must be positive")


@dataclass(frozen=True)
class CurveDefinition:
    name: str
    nodes: Tuple[CurveNode, ...]
    discounting: Tuple[Currency, ...] = ()
    forward_ibor: Tuple[IborIndex, ...] = ()
    forward_on: Tuple[OvernightIndex, ...] = ()
    issuers: Tuple[IssuerKey, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(sorted(self.nodes, key=lambda n: n.maturity)))
        if not self.nodes:
            raise InvalidConfigError(f"Curve {self.name} has no nodes")
        maturities = [n.maturity for n in self.nodes]
        if len(set(maturities)) != len(maturities):
            raise InvalidConfigError(f"Curve {self.name} has two nodes with the same maturity")

    @property
    def keys(self) -> tuple:
        return self.discounting + self.forward_ibor + self.forward_on + self.issuers


@dataclass(frozen=True)
class CurveInstrumentExposure:
    """
    Instrument type -> curve names used to price it.

    Position 0 is the discounting curve, position 1 (if any) the forward curve.
    """
    exposures: Mapping[str, Tuple[str, ...]]

    def __post_init__(self) -> None:
        object.__setattr__(self, "exposures", {k: tuple(v) for k, v in self.exposures.items()})

    def curves_for(self, instrument_type: str) -> Tuple[str, ...]:
        try:
            return self.exposures[instrument_type]
        except KeyError:
            raise InvalidConfigError(f"No exposure rule for instrument type {instrument_type}") from None

    @property
    def instrument_types(self) -> List[str]:
        return list(self.exposures)

    @property
    def referenced_curves(self) -> List[str]:
        return list(dict.fromkeys(n for names in self.exposures.values() for n in names))


@dataclass(frozen=True)
class CurveCalculationConfig:
    name: str
    curve_names: Tuple[str, ...]
    currency: Currency
    calculation_method: str
    exposures: Mapping[str, CurveInstrumentExposure]
    exogenous: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "curve_names", tuple(self.curve_names))
        object.__setattr__(self, "exposures", dict(self.exposures))
        object.__setattr__(self, "exogenous", {k: tuple(v) for k, v in self.exogenous.items()})

        if len(set(self.curve_names)) != len(self.curve_names):
            raise InvalidConfigError(f"{self.name}: duplicate curve names")
        unknown = set(self.exposures).difference(self.curve_names)
        if unknown:
            raise InvalidConfigError(f"{self.name}: exposures for curves it does not own: {sorted(unknown)}")
        overlap = set(self.curve_names).intersection(self.exogenous_curve_names)
        if overlap:
            raise InvalidConfigError(f"{self.name}: curves both owned and imported: {sorted(overlap)}")

    @property
    def exogenous_curve_names(self) -> List[str]:
        return [n for names in self.exogenous.values() for n in names]

    @property
    def has_exogenous(self) -> bool:
        return bool(self.exogenous)

    def exposure(self, curve_name: str) -> CurveInstrumentExposure:
        try:
            return self.exposures[curve_name]
        except KeyError:
            raise InvalidConfigError(f"{self.name}: no exposure rules for curve {curve_name}") from None


class ConfigStore:
    """In-memory store of configs by name; the only capability the graph needs is lookup()."""

    def __init__(self, configs: Optional[Iterable[CurveCalculationConfig]] = None):
        self._configs: Dict[str, CurveCalculationConfig] = {}
        for c in configs or ():
            self.add(c)

    def add(self, config: CurveCalculationConfig) -> None:
        if config.name in self._configs:
            raise InvalidConfigError(f"Duplicate config name {config.name}")
        self._configs[config.name] = config

    def lookup(self, name: str) -> CurveCalculationConfig:
        try:
            return self._configs[name]
        except KeyError:
            raise InvalidConfigError(f"Unknown config {name}") from None

    def names(self) -> List[str]:
        return list(self._configs)

    def __iter__(self):
        return iter(self._configs.values())

    def __len__(self) -> int:
        return len(self._configs)
