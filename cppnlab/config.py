"""Configuration loading utilities for CPPN evolution runs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .population import MutationConfig
from .reproduction import ReproductionConfig
from .species import SpeciesConfig


@dataclass(slots=True)
class EvolutionConfig:
    population_size: int = 300
    mutants_fraction: float = 0.3
    children_fraction: float = 0.06
    node_weight: float = 1.0
    edge_weight: float = 2.0
    compatibility_threshold: float = 4.0
    max_generations: int = 100
    fitness_threshold: float = float("inf")
    seed: int | None = None
    input_count: int = 3
    add_node_rate: float = 0.2
    change_node_rate: float = 0.0
    add_edge_rate: float = 0.2
    collapse_node_rate: float = 0.0
    delete_node_rate: float = 0.0
    change_weight_rate: float = 0.5
    change_enabled_rate: float = 0.1
    new_edge_sigma: float = 2.0
    weight_delta_sigma: float = 10.0

    def __post_init__(self) -> None:
        if self.population_size <= 0:
            msg = "population_size must be positive."
            raise ValueError(msg)
        if self.max_generations <= 0:
            msg = "max_generations must be positive."
            raise ValueError(msg)
        if self.input_count <= 0:
            msg = "input_count must be positive."
            raise ValueError(msg)

    def species_config(self) -> SpeciesConfig:
        return SpeciesConfig(
            node_weight=self.node_weight,
            edge_weight=self.edge_weight,
            threshold=self.compatibility_threshold,
        )

    def reproduction_config(self) -> ReproductionConfig:
        return ReproductionConfig(
            mutants_fraction=self.mutants_fraction,
            children_fraction=self.children_fraction,
        )

    def mutation_config(self) -> MutationConfig:
        return MutationConfig(
            add_node=self.add_node_rate,
            change_node=self.change_node_rate,
            add_edge=self.add_edge_rate,
            collapse_node=self.collapse_node_rate,
            delete_node=self.delete_node_rate,
            change_weight=self.change_weight_rate,
            change_enabled=self.change_enabled_rate,
            new_edge_sigma=self.new_edge_sigma,
            weight_delta_sigma=self.weight_delta_sigma,
        )


@dataclass(slots=True)
class RunConfig:
    evolution_config: Path
    target: str = "product_sine"
    example_count: int = 20
    example_range: tuple[float, float] = (-50.0, 50.0)
    workers: int = 1
    batch_size: int = 1
    timeout_s: float | None = None
    output_dir: Path = field(default_factory=lambda: Path("runs"))

    def __post_init__(self) -> None:
        if self.example_count <= 0:
            msg = "example_count must be positive."
            raise ValueError(msg)
        low, high = self.example_range
        if not low < high:
            msg = "example_range must be an increasing [low, high] pair."
            raise ValueError(msg)
        if self.workers <= 0:
            msg = "workers must be positive."
            raise ValueError(msg)

    def resolve(self, base_path: Path) -> RunConfig:
        return RunConfig(
            evolution_config=(base_path / self.evolution_config).resolve(),
            target=self.target,
            example_count=self.example_count,
            example_range=self.example_range,
            workers=self.workers,
            batch_size=self.batch_size,
            timeout_s=self.timeout_s,
            output_dir=(base_path / self.output_dir).resolve(),
        )


def _load_yaml(path: Path) -> Mapping[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, Mapping):
        msg = f"Expected mapping in YAML file: {path}"
        raise ValueError(msg)
    return data


def _optional_float(data: Mapping[str, Any], key: str) -> float | None:
    value = data.get(key)
    return float(value) if value is not None else None


def load_evolution_config(path: Path) -> EvolutionConfig:
    data = _load_yaml(path)
    defaults = EvolutionConfig()
    return EvolutionConfig(
        population_size=int(data.get("population_size", defaults.population_size)),
        mutants_fraction=float(data.get("mutants_fraction", defaults.mutants_fraction)),
        children_fraction=float(data.get("children_fraction", defaults.children_fraction)),
        node_weight=float(data.get("node_weight", defaults.node_weight)),
        edge_weight=float(data.get("edge_weight", defaults.edge_weight)),
        compatibility_threshold=float(
            data.get("compatibility_threshold", defaults.compatibility_threshold)
        ),
        max_generations=int(data.get("max_generations", defaults.max_generations)),
        fitness_threshold=float(data.get("fitness_threshold", defaults.fitness_threshold)),
        seed=(int(data["seed"]) if data.get("seed") is not None else None),
        input_count=int(data.get("input_count", defaults.input_count)),
        add_node_rate=float(data.get("add_node_rate", defaults.add_node_rate)),
        change_node_rate=float(data.get("change_node_rate", defaults.change_node_rate)),
        add_edge_rate=float(data.get("add_edge_rate", defaults.add_edge_rate)),
        collapse_node_rate=float(
            data.get("collapse_node_rate", defaults.collapse_node_rate)
        ),
        delete_node_rate=float(data.get("delete_node_rate", defaults.delete_node_rate)),
        change_weight_rate=float(
            data.get("change_weight_rate", defaults.change_weight_rate)
        ),
        change_enabled_rate=float(
            data.get("change_enabled_rate", defaults.change_enabled_rate)
        ),
        new_edge_sigma=float(data.get("new_edge_sigma", defaults.new_edge_sigma)),
        weight_delta_sigma=float(
            data.get("weight_delta_sigma", defaults.weight_delta_sigma)
        ),
    )


def load_run_config(path: Path) -> RunConfig:
    data = _load_yaml(path)
    evolution_path = data.get("evolution_config")
    if evolution_path is None:
        msg = "run.yml must specify an 'evolution_config' path"
        raise ValueError(msg)

    raw_range = data.get("example_range", [-50.0, 50.0])
    if not isinstance(raw_range, list | tuple) or len(raw_range) != 2:
        msg = "example_range must be a [low, high] pair"
        raise ValueError(msg)

    run = RunConfig(
        evolution_config=Path(evolution_path),
        target=str(data.get("target", "product_sine")),
        example_count=int(data.get("example_count", 20)),
        example_range=(float(raw_range[0]), float(raw_range[1])),
        workers=int(data.get("workers", 1)),
        batch_size=int(data.get("batch_size", 1)),
        timeout_s=_optional_float(data, "timeout_s"),
        output_dir=Path(data.get("output_dir", "runs")),
    )
    return run.resolve(path.parent)


__all__ = [
    "EvolutionConfig",
    "RunConfig",
    "load_evolution_config",
    "load_run_config",
]
