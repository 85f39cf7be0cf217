"""Core CPPN genome primitives and a NEAT-style evolutionary engine."""

from __future__ import annotations

from .cppn import CPPN, CyclicGenomeError, RoleMismatchError, calculate_outputs, evaluate
from .evaluator import (
    EvaluatedPopulation,
    EvaluationStats,
    ParallelEvaluator,
    SyncEvaluator,
    TargetFitness,
)
from .functions import (
    Activation,
    Aggregation,
    UnknownEnumerantError,
    apply_activation,
    apply_aggregation,
)
from .genes import EdgeGene, NodeGene, NodeRole
from .genome import (
    Genome,
    GenomeBuilder,
    InvalidGenomeError,
    SeedGenome,
    create_seed_genome,
)
from .innovations import EdgeGeneType, NodeGeneType
from .metrics import MetricsRow, MetricsWriter
from .population import (
    MutationConfig,
    MutationPolicy,
    PopulationState,
    create_initial_population,
)
from .reporters import EventLogger, describe_genome, shorten_id
from .reproduction import (
    ReproductionConfig,
    ReproductionPlan,
    SpeciesQuota,
    advance_generation,
    compute_offspring_allocation,
    split_quota,
)
from .species import (
    Species,
    SpeciesConfig,
    SpeciesSet,
    compatibility_distance,
)

__all__ = [
    "Activation",
    "Aggregation",
    "UnknownEnumerantError",
    "apply_activation",
    "apply_aggregation",
    "NodeRole",
    "NodeGene",
    "EdgeGene",
    "NodeGeneType",
    "EdgeGeneType",
    "Genome",
    "GenomeBuilder",
    "InvalidGenomeError",
    "SeedGenome",
    "create_seed_genome",
    "CPPN",
    "CyclicGenomeError",
    "RoleMismatchError",
    "calculate_outputs",
    "evaluate",
    "Species",
    "SpeciesConfig",
    "SpeciesSet",
    "compatibility_distance",
    "ReproductionConfig",
    "ReproductionPlan",
    "SpeciesQuota",
    "advance_generation",
    "compute_offspring_allocation",
    "split_quota",
    "EvaluatedPopulation",
    "EvaluationStats",
    "SyncEvaluator",
    "ParallelEvaluator",
    "TargetFitness",
    "MutationConfig",
    "MutationPolicy",
    "PopulationState",
    "create_initial_population",
    "MetricsRow",
    "MetricsWriter",
    "EventLogger",
    "describe_genome",
    "shorten_id",
]
