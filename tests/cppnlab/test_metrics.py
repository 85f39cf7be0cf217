from __future__ import annotations

import csv
import math
from pathlib import Path

from cppnlab.evaluator import EvaluatedPopulation
from cppnlab.genes import EdgeGene
from cppnlab.genome import create_seed_genome
from cppnlab.metrics import MetricsRow, MetricsWriter, summarize_generation

SEED = create_seed_genome(1, 1)


def _row(generation: int) -> MetricsRow:
    return MetricsRow(
        generation=generation,
        population_size=4,
        alive_count=3,
        species_count=2,
        best_fitness=10.0,
        mean_fitness=5.0,
        median_fitness=4.0,
        best_nodes=1,
        best_edges=2,
        eval_time_s=0.5,
    )


def test_metrics_writer_appends_rows(tmp_path: Path) -> None:
    path = tmp_path / "run" / "metrics.csv"
    with MetricsWriter(path) as writer:
        writer.append(_row(0))
    with MetricsWriter(path) as writer:
        writer.append(_row(1))
        assert writer.path == path

    with path.open("r", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert [row["generation"] for row in rows] == ["0", "1"]
    assert rows[0]["alive_count"] == "3"
    assert rows[1]["best_edges"] == "2"


def test_summarize_generation_ignores_dead_genomes() -> None:
    builder = SEED.genome.to_builder()
    builder.set_edge(SEED.inputs[0], SEED.outputs[0], EdgeGene(weight=1.0))
    connected = builder.build()
    population = EvaluatedPopulation(
        genomes={0: SEED.genome, 1: connected, 2: SEED.genome},
        fitnesses={0: 1.0, 1: 5.0, 2: math.nan},
    )

    row = summarize_generation(3, population, species_count=2, eval_time_s=0.25)

    assert row.generation == 3
    assert row.population_size == 3
    assert row.alive_count == 2
    assert row.best_fitness == 5.0
    assert row.mean_fitness == 3.0
    assert row.median_fitness == 3.0
    assert row.best_nodes == 0
    assert row.best_edges == 1
    assert row.eval_time_s == 0.25


def test_summarize_generation_of_dead_population() -> None:
    population = EvaluatedPopulation(genomes={0: SEED.genome}, fitnesses={0: math.nan})
    row = summarize_generation(0, population, species_count=0, eval_time_s=0.0)
    assert row.alive_count == 0
    assert math.isnan(row.best_fitness)
    assert row.best_edges == 0
