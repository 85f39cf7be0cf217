"""Evaluators that score genome populations with a fitness function."""

from __future__ import annotations

import logging
import math
import multiprocessing
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from .cppn import CPPN, CyclicGenomeError
from .genome import Genome
from .innovations import NodeGeneType

logger = logging.getLogger(__name__)

FitnessFunction = Callable[[Genome], float]
TargetFunction = Callable[..., float]


@dataclass(frozen=True, slots=True)
class EvaluatedPopulation:
    """Genomes keyed by id together with their fitness; NaN marks a dead genome."""

    genomes: Mapping[int, Genome]
    fitnesses: Mapping[int, float]

    def __post_init__(self) -> None:
        if set(self.genomes) != set(self.fitnesses):
            msg = "Fitnesses must be provided for every genome."
            raise ValueError(msg)
        object.__setattr__(self, "genomes", MappingProxyType(dict(self.genomes)))
        object.__setattr__(
            self,
            "fitnesses",
            MappingProxyType({key: float(value) for key, value in self.fitnesses.items()}),
        )

    @classmethod
    def evaluate(
        cls,
        genomes: Mapping[int, Genome],
        fitness: FitnessFunction,
    ) -> EvaluatedPopulation:
        """Score every genome with ``fitness`` in the current process."""
        return cls(
            genomes=genomes,
            fitnesses={genome_id: fitness(genome) for genome_id, genome in genomes.items()},
        )

    @property
    def size(self) -> int:
        return len(self.genomes)

    def fitness(self, genome_id: int) -> float:
        return self.fitnesses[genome_id]

    def alive_ids(self) -> list[int]:
        """Return ids whose fitness is not NaN, in population order."""
        return [
            genome_id
            for genome_id in self.genomes
            if not math.isnan(self.fitnesses[genome_id])
        ]

    def alive(self) -> EvaluatedPopulation:
        """Return the sub-population of genomes that could be scored."""
        ids = self.alive_ids()
        return EvaluatedPopulation(
            genomes={genome_id: self.genomes[genome_id] for genome_id in ids},
            fitnesses={genome_id: self.fitnesses[genome_id] for genome_id in ids},
        )

    def ordered_ids(self) -> list[int]:
        """Return alive ids ordered by fitness, best first."""
        return sorted(self.alive_ids(), key=self.fitnesses.__getitem__, reverse=True)

    def best_id(self) -> int:
        ordered = self.ordered_ids()
        if not ordered:
            msg = "No genome in the population has a valid fitness."
            raise ValueError(msg)
        return ordered[0]

    def best(self) -> Genome:
        return self.genomes[self.best_id()]


@dataclass(frozen=True, slots=True)
class TargetFitness:
    """Scores a genome by its worst absolute error against a target function.

    The fitness is ``scale / worst_error``: infinite for an exact match, NaN
    when the genome is cyclic or produces NaN, and zero when it produces an
    infinite output.

    Attributes:
        target: Function approximated by the genome, called with one example.
        examples: Argument tuples passed to ``target`` and the genome.
        inputs: Input vertices; the first receives ``bias`` when it is set.
        outputs: Output vertices; only the first is scored.
        bias: Constant prepended to every example, or ``None``.
        scale: Numerator of the fitness ratio.
    """

    target: TargetFunction
    examples: tuple[tuple[float, ...], ...]
    inputs: tuple[NodeGeneType, ...]
    outputs: tuple[NodeGeneType, ...]
    bias: float | None = 1.0
    scale: float = 1000.0

    def __post_init__(self) -> None:
        if not self.examples:
            msg = "At least one example is required."
            raise ValueError(msg)
        if not self.outputs:
            msg = "At least one output vertex is required."
            raise ValueError(msg)
        if self.scale <= 0.0:
            msg = "scale must be positive."
            raise ValueError(msg)

    def input_values(self, example: Sequence[float]) -> list[float]:
        """Return the input vector fed to the genome for ``example``."""
        if self.bias is None:
            return list(example)
        return [self.bias, *example]

    def __call__(self, genome: Genome) -> float:
        network = CPPN(genome, self.inputs, self.outputs)
        worst = 0.0
        try:
            for example in self.examples:
                result = network.calculate(self.input_values(example))[0]
                if math.isnan(result):
                    return math.nan
                if math.isinf(result):
                    return 0.0
                worst = max(worst, abs(result - self.target(*example)))
        except CyclicGenomeError:
            return math.nan

        if worst == 0.0:
            return math.inf
        return self.scale / worst


@dataclass(slots=True)
class EvaluationStats:
    """Aggregate counters from the most recent evaluation pass."""

    evaluated: int = 0
    failed: int = 0

    def accumulate(self, *, evaluated: int, failed: int) -> None:
        """Add counters to the aggregate totals."""
        self.evaluated += evaluated
        self.failed += failed


def _stats_for(population: EvaluatedPopulation) -> EvaluationStats:
    stats = EvaluationStats()
    stats.accumulate(
        evaluated=population.size,
        failed=population.size - len(population.alive_ids()),
    )
    return stats


class SyncEvaluator:
    """Single-process evaluator that scores genomes sequentially."""

    def __init__(self) -> None:
        self.last_stats = EvaluationStats()

    def __call__(
        self,
        genomes: Mapping[int, Genome],
        fitness: FitnessFunction,
    ) -> EvaluatedPopulation:
        population = EvaluatedPopulation.evaluate(genomes, fitness)
        self.last_stats = _stats_for(population)
        return population


class ParallelEvaluator:
    """Multiprocessing evaluator for concurrent genome scoring.

    ``fitness`` must be picklable: a module-level function or an instance of
    a module-level class such as :class:`TargetFitness`.
    """

    def __init__(
        self,
        *,
        workers: int,
        batch_size: int = 1,
        timeout_s: float | None = None,
    ) -> None:
        if workers <= 0:
            msg = "workers must be positive."
            raise ValueError(msg)
        if batch_size <= 0:
            msg = "batch_size must be positive."
            raise ValueError(msg)
        if timeout_s is not None and timeout_s <= 0.0:
            msg = "timeout_s must be positive when provided."
            raise ValueError(msg)

        self.workers = workers
        self.batch_size = batch_size
        self.timeout_s = timeout_s
        self.last_stats = EvaluationStats()

    def __call__(
        self,
        genomes: Mapping[int, Genome],
        fitness: FitnessFunction,
    ) -> EvaluatedPopulation:
        if not genomes:
            self.last_stats = EvaluationStats()
            return EvaluatedPopulation(genomes={}, fitnesses={})

        ids = list(genomes)
        ctx = multiprocessing.get_context("spawn")
        with ctx.Pool(processes=self.workers) as pool:
            pending = pool.map_async(
                fitness,
                [genomes[genome_id] for genome_id in ids],
                chunksize=self.batch_size,
            )
            scores = pending.get(timeout=self.timeout_s)

        logger.debug("Scored %d genomes on %d workers", len(ids), self.workers)
        population = EvaluatedPopulation(
            genomes=genomes,
            fitnesses=dict(zip(ids, scores, strict=True)),
        )
        self.last_stats = _stats_for(population)
        return population


__all__ = [
    "EvaluatedPopulation",
    "EvaluationStats",
    "FitnessFunction",
    "ParallelEvaluator",
    "SyncEvaluator",
    "TargetFitness",
    "TargetFunction",
]
