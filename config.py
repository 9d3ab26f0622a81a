"""
Simulation settings and their YAML loader.

A config file either holds the keys at its top level or nests them under a
``simulation`` mapping:

    simulation:
      propagation_delay: 2.0
      max_wall_time: 5
      convergence_check_probability: 0.25
      seed: 7
      auto_converge: true
      engine: heap
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional
import random

import yaml

from algorithms import DijkstraEngine
from convergence import (
    DEFAULT_CHECK_PROBABILITY,
    DEFAULT_MAX_WALL_TIME,
    DEFAULT_PROPAGATION_DELAY,
)
from dijkstra_engine import ArrayScanDijkstraEngine, SimpleDijkstraEngine

ENGINES = {
    "heap": SimpleDijkstraEngine,
    "array": ArrayScanDijkstraEngine,
}


@dataclass(frozen=True)
class SimulationConfig:
    """Tunables for one Network instance.

    Attributes
    ----------
    propagation_delay : float
        Base unit of simulated time used to stagger recompute events.
    max_wall_time : float
        Real-time budget (seconds) of a single convergence run.
    convergence_check_probability : float
        Chance, after each processed event, that the run checks whether every
        node has been settled.
    seed : int | None
        Seed for the scheduling jitter; ``None`` draws from the OS.
    auto_converge : bool
        When true, each mutation drains its convergence run before returning.
    engine : str
        Shortest-path engine, ``"heap"`` or ``"array"``.
    """

    propagation_delay: float = DEFAULT_PROPAGATION_DELAY
    max_wall_time: float = DEFAULT_MAX_WALL_TIME
    convergence_check_probability: float = DEFAULT_CHECK_PROBABILITY
    seed: Optional[int] = None
    auto_converge: bool = True
    engine: str = "heap"

    def validate(self) -> None:
        """Raise ValueError if any setting is out of range."""
        if self.propagation_delay <= 0:
            raise ValueError("propagation_delay must be positive")
        if self.max_wall_time <= 0:
            raise ValueError("max_wall_time must be positive")
        if not 0 < self.convergence_check_probability <= 1:
            raise ValueError("convergence_check_probability must be in (0, 1]")
        if self.engine not in ENGINES:
            raise ValueError(
                f"Unknown engine '{self.engine}'. Expected one of: {', '.join(sorted(ENGINES))}"
            )

    def make_engine(self) -> DijkstraEngine:
        return ENGINES[self.engine]()

    def make_rng(self) -> random.Random:
        return random.Random(self.seed)


def config_from_mapping(data: Mapping[str, Any]) -> SimulationConfig:
    known = {f.name for f in fields(SimulationConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown simulation settings: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    for key in ("propagation_delay", "max_wall_time", "convergence_check_probability"):
        if key in data:
            kwargs[key] = float(data[key])
    seed = data.get("seed")
    if seed is not None:
        if isinstance(seed, bool) or not isinstance(seed, int):
            raise ValueError(f"seed must be an integer, got {seed!r}")
        kwargs["seed"] = seed
    if "auto_converge" in data:
        if not isinstance(data["auto_converge"], bool):
            raise ValueError(f"auto_converge must be true or false, got {data['auto_converge']!r}")
        kwargs["auto_converge"] = data["auto_converge"]
    if "engine" in data:
        kwargs["engine"] = str(data["engine"])

    cfg = SimulationConfig(**kwargs)
    cfg.validate()
    return cfg


def load_config(path: Path) -> SimulationConfig:
    if not path.exists():
        raise FileNotFoundError(f"config file not found: {path}")
    data = yaml.safe_load(path.read_text())
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("config file must contain a mapping at the root")
    section = data.get("simulation", data)
    if not isinstance(section, dict):
        raise ValueError("'simulation' must be a mapping")
    return config_from_mapping(section)
