"""Utilities for recording per-generation metrics to disk."""

from __future__ import annotations

import csv
import math
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from statistics import mean, median
from typing import IO, Any

from .evaluator import EvaluatedPopulation


@dataclass(frozen=True, slots=True)
class MetricsRow:
    """Row of aggregate statistics produced for each generation."""

    generation: int
    population_size: int
    alive_count: int
    species_count: int
    best_fitness: float
    mean_fitness: float
    median_fitness: float
    best_nodes: int
    best_edges: int
    eval_time_s: float


def summarize_generation(
    generation: int,
    population: EvaluatedPopulation,
    *,
    species_count: int,
    eval_time_s: float,
) -> MetricsRow:
    """Build a metrics row from an evaluated generation; dead genomes are excluded."""
    values = [population.fitness(genome_id) for genome_id in population.alive_ids()]
    if values:
        best = population.best()
        best_fitness = max(values)
        mean_fitness = mean(values)
        median_fitness = median(values)
        best_nodes = len(best.inner_nodes())
        best_edges = len(best.enabled_edges())
    else:
        best_fitness = mean_fitness = median_fitness = math.nan
        best_nodes = best_edges = 0

    return MetricsRow(
        generation=generation,
        population_size=population.size,
        alive_count=len(values),
        species_count=species_count,
        best_fitness=best_fitness,
        mean_fitness=mean_fitness,
        median_fitness=median_fitness,
        best_nodes=best_nodes,
        best_edges=best_edges,
        eval_time_s=eval_time_s,
    )


class MetricsWriter:
    """CSV-backed writer that appends metrics rows incrementally."""

    _fieldnames = [item.name for item in fields(MetricsRow)]

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        exists = self._path.exists()
        self._handle: IO[str] = self._path.open(
            "a" if exists else "w", encoding="utf-8", newline=""
        )
        self._writer = csv.DictWriter(self._handle, fieldnames=self._fieldnames)
        if not exists:
            self._writer.writeheader()
            self._handle.flush()

    def __enter__(self) -> MetricsWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def append(self, row: MetricsRow) -> None:
        """Append a metrics row and flush to disk."""
        self._writer.writerow(asdict(row))
        self._handle.flush()

    def close(self) -> None:
        if not self._handle.closed:
            self._handle.close()

    @property
    def path(self) -> Path:
        return self._path


__all__ = ["MetricsRow", "MetricsWriter", "summarize_generation"]
