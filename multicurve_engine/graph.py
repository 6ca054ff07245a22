"""
Dependency graph over curve calculation configs.

An edge A -> B exists when config A takes exogenous curves from config B.
Configs are resolved in topological order; each result is published and
cached under the config name, and later configs read only the curves their
suppliers declare as supplied.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from .calibration import CalibrationSettings, calibrate_config
from .config import ConfigStore, CurveCalculationConfig, CurveDefinition
from .errors import CyclicConfigError, InvalidConfigError
from .provider import IssuerProvider

logger = logging.getLogger(__name__)


class CurveConfigGraph:
    def __init__(self, configs: Union[ConfigStore, Iterable[CurveCalculationConfig]]):
        self._configs: Dict[str, CurveCalculationConfig] = {}
        for c in configs:
            if c.name in self._configs:
                raise InvalidConfigError(f"Duplicate config name {c.name}")
            self._configs[c.name] = c
        self._validate_edges()

    @classmethod
    def from_store(cls, store: ConfigStore, names: Iterable[str]) -> "CurveConfigGraph":
        """Graph over `names` and, transitively, every supplier they import from."""
        collected: Dict[str, CurveCalculationConfig] = {}
        pending = list(names)
        while pending:
            name = pending.pop(0)
            if name in collected:
                continue
            config = store.lookup(name)
            collected[name] = config
            pending.extend(config.exogenous)
        return cls(collected.values())

    def _validate_edges(self) -> None:
        for c in self._configs.values():
            for supplier in c.exogenous:
                if supplier not in self._configs:
                    raise InvalidConfigError(f"{c.name}: exogenous config {supplier} is not in the graph")

    @property
    def names(self) -> List[str]:
        return list(self._configs)

    def config(self, name: str) -> CurveCalculationConfig:
        try:
            return self._configs[name]
        except KeyError:
            raise InvalidConfigError(f"Unknown config {name}") from None

    def suppliers(self, name: str) -> List[str]:
        return list(self.config(name).exogenous)

    def _find_cycle(self, remaining: Iterable[str]) -> List[str]:
        remaining = set(remaining)
        start = next(n for n in self._configs if n in remaining)
        path: List[str] = []
        seen: Dict[str, int] = {}
        node = start
        while node not in seen:
            seen[node] = len(path)
            path.append(node)
            node = next(s for s in self._configs[node].exogenous if s in remaining)
        return path[seen[node]:] + [node]

    def levels(self) -> List[List[str]]:
        """
        Generations of configs: every config's suppliers sit in earlier generations.

        Raises CyclicConfigError when some configs can never be scheduled.
        """
        in_degree = {n: len(set(c.exogenous)) for n, c in self._configs.items()}
        dependants: Dict[str, List[str]] = {n: [] for n in self._configs}
        for n, c in self._configs.items():
            for s in dict.fromkeys(c.exogenous):
                dependants[s].append(n)

        out: List[List[str]] = []
        ready = [n for n in self._configs if in_degree[n] == 0]
        scheduled = 0
        while ready:
            out.append(ready)
            scheduled += len(ready)
            nxt: List[str] = []
            for n in ready:
                for d in dependants[n]:
                    in_degree[d] -= 1
                    if in_degree[d] == 0:
                        nxt.append(d)
            order = {n: i for i, n in enumerate(self._configs)}
            ready = sorted(nxt, key=order.__getitem__)

        if scheduled != len(self._configs):
            raise CyclicConfigError(self._find_cycle(n for n, d in in_degree.items() if d > 0))
        return out

    def resolution_order(self) -> List[str]:
        order = [n for level in self.levels() for n in level]
        logger.debug("Config resolution order: %s", order)
        return order

    def _validate_supplied_curves(self) -> None:
        for c in self._configs.values():
            for supplier, curve_names in c.exogenous.items():
                provided = self._provided_curves(supplier)
                missing = set(curve_names).difference(provided)
                if missing:
                    raise InvalidConfigError(f"{c.name}: config {supplier} does not provide {sorted(missing)}")

    def _provided_curves(self, name: str) -> List[str]:
        c = self._configs[name]
        return list(c.curve_names) + c.exogenous_curve_names

    def _build_one(
        self,
        name: str,
        resolved: Mapping[str, IssuerProvider],
        definitions: Mapping[str, CurveDefinition],
        market_data: Mapping[str, float],
        settings: CalibrationSettings,
    ) -> IssuerProvider:
        config = self._configs[name]
        logger.info("Resolving curve config %s (%d own curves)", name, len(config.curve_names))

        working = IssuerProvider()
        for supplier, curve_names in config.exogenous.items():
            working.set_all(resolved[supplier].restricted_to(curve_names))

        calibrate_config(config, definitions, market_data, working, settings)
        logger.info("Resolved curve config %s: %s", name, working.curve_names)
        return working.publish()

    def resolve(
        self,
        market_data: Mapping[str, float],
        definitions: Mapping[str, CurveDefinition],
        settings: CalibrationSettings = CalibrationSettings(),
        max_workers: Optional[int] = None,
    ) -> Dict[str, IssuerProvider]:
        """
        Build every config's provider in dependency order.

        Configs in the same level are independent and are calibrated on a
        thread pool when max_workers > 1. Any failure aborts the whole build.
        """
        levels = self.levels()
        self._validate_supplied_curves()

        resolved: Dict[str, IssuerProvider] = {}
        for level in levels:
            if max_workers and max_workers > 1 and len(level) > 1:
                with ThreadPoolExecutor(max_workers=max_workers) as pool:
                    futures = {
                        n: pool.submit(self._build_one, n, resolved, definitions, market_data, settings)
                        for n in level
                    }
                    built = {n: f.result() for n, f in futures.items()}
            else:
                built = {n: self._build_one(n, resolved, definitions, market_data, settings) for n in level}
            resolved.update(built)

        return resolved

    def resolution_summary(self) -> pd.DataFrame:
        rows = []
        for i, level in enumerate(self.levels()):
            for n in level:
                c = self._configs[n]
                rows.append(
                    {
                        "config": n,
                        "level": i,
                        "currency": str(c.currency),
                        "own_curves": ",".join(c.curve_names),
                        "exogenous": ",".join(c.exogenous),
                    }
                )
        return pd.DataFrame(rows, columns=["config", "level", "currency", "own_curves", "exogenous"])
