"""Training orchestration for the cppnlab CLI."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from random import Random
from time import perf_counter

import yaml

from .config import EvolutionConfig, RunConfig
from .evaluator import ParallelEvaluator, SyncEvaluator, TargetFitness, TargetFunction
from .genome import Genome, create_seed_genome
from .metrics import MetricsWriter, summarize_generation
from .population import MutationPolicy, PopulationState
from .reporters import EventLogger, describe_genome

logger = logging.getLogger(__name__)

TARGET_ARITY = 2

# Fixed arguments used to rank champions across generations.
REFERENCE_EXAMPLES: tuple[tuple[float, float], ...] = (
    (1.0, 2.0),
    (10.0, -2.0),
    (-10.0, -2.0),
    (10.0, 2.0),
    (-10.0, 2.0),
    (2.0, 2.0),
    (0.5, 4.0),
    (100.0, 20.0),
)


def product_sine(x: float, y: float) -> float:
    return x * y + math.sin(x * y)


def add(x: float, y: float) -> float:
    return x + y


def multiply(x: float, y: float) -> float:
    return x * y


TARGETS: Mapping[str, TargetFunction] = {
    "product_sine": product_sine,
    "sum": add,
    "product": multiply,
    "hypot": math.hypot,
}


def get_target(name: str) -> TargetFunction:
    try:
        return TARGETS[name]
    except KeyError as error:
        known = ", ".join(sorted(TARGETS))
        msg = f"Unknown target '{name}'. Expected one of: {known}"
        raise ValueError(msg) from error


@dataclass(frozen=True, slots=True)
class RunArtifacts:
    """Resolved file locations used for a training run."""

    root: Path
    metrics: Path
    events: Path
    champion: Path
    config: Path


@dataclass(frozen=True, slots=True)
class TrainingResult:
    artifacts: RunArtifacts
    generations: int
    best_fitness: float
    champion: Genome | None


def draw_examples(
    rng: Random,
    count: int,
    low: float,
    high: float,
) -> tuple[tuple[float, ...], ...]:
    """Draw ``count`` argument tuples uniformly from ``[low, high)``."""
    return tuple(
        tuple(rng.uniform(low, high) for _ in range(TARGET_ARITY)) for _ in range(count)
    )


def _allocate_run_dir(output_root: Path) -> Path:
    output_root.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    candidate = output_root / timestamp
    suffix = 1
    while candidate.exists():
        candidate = output_root / f"{timestamp}_{suffix:02d}"
        suffix += 1
    candidate.mkdir(parents=True, exist_ok=False)
    return candidate


def _build_artifacts(run_dir: Path) -> RunArtifacts:
    return RunArtifacts(
        root=run_dir,
        metrics=run_dir / "metrics.csv",
        events=run_dir / "events.log",
        champion=run_dir / "champion.txt",
        config=run_dir / "config.yml",
    )


def _run_snapshot(run_config: RunConfig) -> dict[str, object]:
    return {
        "evolution_config": str(run_config.evolution_config),
        "target": run_config.target,
        "example_count": run_config.example_count,
        "example_range": list(run_config.example_range),
        "workers": run_config.workers,
        "batch_size": run_config.batch_size,
        "timeout_s": run_config.timeout_s,
        "output_dir": str(run_config.output_dir),
    }


def _write_config_snapshot(
    artifacts: RunArtifacts,
    run_config: RunConfig,
    evolution_config: EvolutionConfig,
) -> None:
    snapshot = {
        "run": _run_snapshot(run_config),
        "evolution": asdict(evolution_config),
    }
    with artifacts.config.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(snapshot, handle, sort_keys=True)


def _create_evaluator(run_config: RunConfig) -> SyncEvaluator | ParallelEvaluator:
    if run_config.workers > 1:
        return ParallelEvaluator(
            workers=run_config.workers,
            batch_size=run_config.batch_size,
            timeout_s=run_config.timeout_s,
        )
    return SyncEvaluator()


def _write_champion(artifacts: RunArtifacts, fitness: float, genome: Genome) -> None:
    with artifacts.champion.open("w", encoding="utf-8") as handle:
        handle.write(f"reference fitness: {fitness}\n")
        handle.write(describe_genome(genome))
        handle.write("\n")


def run_training(run_config: RunConfig, evolution_config: EvolutionConfig) -> TrainingResult:
    """Evolve genomes towards ``run_config.target`` and record the run on disk.

    Every generation is scored against freshly drawn examples, so fitness
    values of different generations are not directly comparable.
    """
    target = get_target(run_config.target)
    if evolution_config.input_count != TARGET_ARITY + 1:
        msg = (
            f"input_count must be {TARGET_ARITY + 1} "
            f"(a bias input plus {TARGET_ARITY} target arguments)."
        )
        raise ValueError(msg)

    rng = Random(evolution_config.seed)
    policy = MutationPolicy(
        Random(rng.getrandbits(32)),
        evolution_config.mutation_config(),
    )
    seed = create_seed_genome(evolution_config.input_count, 1)
    state = PopulationState.from_seed(
        seed.genome,
        population_size=evolution_config.population_size,
        policy=policy,
        species_config=evolution_config.species_config(),
        reproduction_config=evolution_config.reproduction_config(),
    )

    reference = TargetFitness(
        target=target,
        examples=REFERENCE_EXAMPLES,
        inputs=seed.inputs,
        outputs=seed.outputs,
    )

    artifacts = _build_artifacts(_allocate_run_dir(run_config.output_dir))
    _write_config_snapshot(artifacts, run_config, evolution_config)
    evaluator = _create_evaluator(run_config)
    low, high = run_config.example_range

    print(f"[train] run directory: {artifacts.root}")
    with MetricsWriter(artifacts.metrics) as metrics_writer, EventLogger(
        artifacts.events
    ) as events:
        events.log(f"Training started at {artifacts.root}")
        events.log(
            f"Target={run_config.target} population={evolution_config.population_size} "
            f"workers={run_config.workers}"
        )

        while state.generation < evolution_config.max_generations:
            generation = state.generation
            fitness = TargetFitness(
                target=target,
                examples=draw_examples(rng, run_config.example_count, low, high),
                inputs=seed.inputs,
                outputs=seed.outputs,
            )

            start_time = perf_counter()
            evaluated = state.evaluate(evaluator, fitness, reference=reference)
            eval_time = perf_counter() - start_time

            alive = bool(evaluated.alive_ids())
            species_count = len(state.speciate()) if alive else 0
            row = summarize_generation(
                generation,
                evaluated,
                species_count=species_count,
                eval_time_s=eval_time,
            )
            metrics_writer.append(row)
            events.log_generation(row)
            logger.debug("Generation %d evaluated in %.3fs", generation, eval_time)
            print(
                f"Generation {generation}: best fitness {row.best_fitness:.4g} "
                f"species={species_count}"
            )

            if not alive:
                events.log("Every genome failed evaluation; stopping.")
                print("Every genome failed evaluation, stopping training.")
                break
            if row.best_fitness >= evolution_config.fitness_threshold:
                events.log("Fitness threshold reached; stopping.")
                print("Fitness threshold reached, stopping training.")
                break

            state.advance()

        generations = len(state.history)
        if state.champion is not None:
            _write_champion(artifacts, state.champion_fitness, state.champion)
            events.log(
                f"Champion reference fitness={state.champion_fitness:.4g} "
                f"written to {artifacts.champion.name}."
            )
        events.log(f"Training finished after {generations} generation(s).")

    return TrainingResult(
        artifacts=artifacts,
        generations=generations,
        best_fitness=state.champion_fitness,
        champion=state.champion,
    )


__all__ = [
    "REFERENCE_EXAMPLES",
    "TARGETS",
    "TARGET_ARITY",
    "RunArtifacts",
    "TrainingResult",
    "draw_examples",
    "get_target",
    "run_training",
]
