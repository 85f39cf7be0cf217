"""Population orchestration for the CPPN evolutionary loop."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from random import Random

from .evaluator import EvaluatedPopulation, FitnessFunction
from .functions import Activation, Aggregation
from .genes import EdgeGene, NodeGene, NodeRole
from .genome import Genome
from .reproduction import ReproductionConfig, advance_generation
from .species import SpeciesConfig, SpeciesSet

logger = logging.getLogger(__name__)

PopulationEvaluator = Callable[[Mapping[int, Genome], FitnessFunction], EvaluatedPopulation]

ACTIVATION_WEIGHTS: dict[Activation, float] = {
    Activation.SINE: 0.05,
    Activation.LOG: 0.05,
    Activation.EXPONENT: 0.05,
    Activation.HEAVISIDE: 0.05,
    Activation.SIGMOID: 0.05,
    Activation.IDENTITY: 0.75,
}

AGGREGATION_WEIGHTS: dict[Aggregation, float] = {
    Aggregation.PRODUCT: 0.2,
    Aggregation.AVERAGE: 0.05,
    Aggregation.MAX: 0.05,
    Aggregation.MAX_ABS: 0.05,
    Aggregation.MIN: 0.05,
    Aggregation.MIN_ABS: 0.05,
    Aggregation.SUM: 0.55,
}


class MutationKind(str, Enum):
    ADD_NODE = "add_node"
    CHANGE_NODE = "change_node"
    ADD_EDGE = "add_edge"
    COLLAPSE_NODE = "collapse_node"
    DELETE_NODE = "delete_node"
    CHANGE_WEIGHT = "change_weight"
    CHANGE_ENABLED = "change_enabled"


@dataclass(frozen=True, slots=True)
class MutationConfig:
    """Relative operator rates and the spread of random weights.

    Rates are relative: each mutation applies exactly one operator, picked
    with probability ``rate / sum(rates)``.
    """

    add_node: float = 0.2
    change_node: float = 0.0
    add_edge: float = 0.2
    collapse_node: float = 0.0
    delete_node: float = 0.0
    change_weight: float = 0.5
    change_enabled: float = 0.1
    new_edge_sigma: float = 2.0
    weight_delta_sigma: float = 10.0

    def __post_init__(self) -> None:
        rates = self.rates()
        if any(rate < 0.0 for rate in rates.values()):
            msg = "Mutation rates must be non-negative."
            raise ValueError(msg)
        if math.fsum(rates.values()) <= 0.0:
            msg = "At least one mutation rate must be positive."
            raise ValueError(msg)
        if self.new_edge_sigma < 0.0 or self.weight_delta_sigma < 0.0:
            msg = "Weight sigmas must be non-negative."
            raise ValueError(msg)

    def rates(self) -> dict[MutationKind, float]:
        return {kind: float(getattr(self, kind.value)) for kind in MutationKind}


class MutationPolicy:
    """Draws every random decision of mutation and crossover from one ``Random``."""

    def __init__(self, rng: Random, config: MutationConfig | None = None) -> None:
        self.rng = rng
        self.config = config or MutationConfig()
        rates = self.config.rates()
        self._kinds = list(rates)
        self._rates = list(rates.values())

    def choose(self, count: int) -> int:
        """Index chooser handed to genome operators."""
        return self.rng.randrange(count)

    def random_activation(self) -> Activation:
        return self.rng.choices(
            list(ACTIVATION_WEIGHTS), weights=list(ACTIVATION_WEIGHTS.values())
        )[0]

    def random_aggregation(self) -> Aggregation:
        return self.rng.choices(
            list(AGGREGATION_WEIGHTS), weights=list(AGGREGATION_WEIGHTS.values())
        )[0]

    def random_node_gene(self) -> NodeGene:
        """Return an inner node gene with random activation and aggregation."""
        return NodeGene(
            activation=self.random_activation(),
            aggregation=self.random_aggregation(),
            role=NodeRole.INNER,
        )

    def pick_kind(self) -> MutationKind:
        return self.rng.choices(self._kinds, weights=self._rates)[0]

    def mutate(self, genome: Genome) -> Genome:
        """Apply one randomly chosen mutation operator to ``genome``."""
        kind = self.pick_kind()
        if kind is MutationKind.ADD_NODE:
            return genome.mutate_add_node(self.choose, self.random_node_gene())
        if kind is MutationKind.CHANGE_NODE:
            return genome.mutate_change_node(
                self.choose, lambda gene: self.random_node_gene()
            )
        if kind is MutationKind.ADD_EDGE:
            return genome.mutate_add_edge(
                self.choose, self.rng.gauss(0.0, self.config.new_edge_sigma)
            )
        if kind is MutationKind.COLLAPSE_NODE:
            return genome.mutate_collapse_node(self.choose)
        if kind is MutationKind.DELETE_NODE:
            return genome.mutate_delete_node(self.choose)
        if kind is MutationKind.CHANGE_WEIGHT:
            return genome.mutate_change_weight(
                self.choose, self.rng.gauss(0.0, self.config.weight_delta_sigma)
            )
        return genome.mutate_change_enabled(self.choose)

    def resolve_node(self, first: NodeGene, second: NodeGene) -> NodeGene:
        """Inherit activation and aggregation independently from either parent."""
        return NodeGene(
            activation=first.activation if self.rng.random() < 0.5 else second.activation,
            aggregation=first.aggregation if self.rng.random() < 0.5 else second.aggregation,
            role=first.role,
        )

    def resolve_edge(self, first: EdgeGene, second: EdgeGene) -> EdgeGene:
        """Average the weights; flip a coin for the flag when the parents disagree."""
        if first.enabled != second.enabled:
            enabled = self.rng.random() < 0.5
        else:
            enabled = first.enabled
        return EdgeGene(weight=first.weight / 2 + second.weight / 2, enabled=enabled)

    def crossover(self, first: Genome, second: Genome) -> Genome:
        return first.crossover(second, self.resolve_node, self.resolve_edge)


def create_initial_population(
    seed: Genome,
    size: int,
    mutate: Callable[[Genome], Genome],
) -> list[Genome]:
    """Return the seed followed by ``size - 1`` single mutations of it."""
    if size <= 0:
        msg = "size must be positive."
        raise ValueError(msg)
    return [seed, *(mutate(seed) for _ in range(size - 1))]


@dataclass(slots=True)
class PopulationState:
    """Mutable state of the evolving population."""

    generation: int
    genomes: dict[int, Genome]
    policy: MutationPolicy
    population_size: int
    species_config: SpeciesConfig
    reproduction_config: ReproductionConfig
    evaluated: EvaluatedPopulation | None = None
    species_set: SpeciesSet | None = None
    champion: Genome | None = None
    champion_fitness: float = float("-inf")
    history: list[float] = field(default_factory=list)

    @classmethod
    def from_seed(
        cls,
        seed: Genome,
        *,
        population_size: int,
        policy: MutationPolicy,
        species_config: SpeciesConfig,
        reproduction_config: ReproductionConfig,
    ) -> PopulationState:
        genomes = create_initial_population(seed, population_size, policy.mutate)
        return cls(
            generation=0,
            genomes=dict(enumerate(genomes)),
            policy=policy,
            population_size=population_size,
            species_config=species_config,
            reproduction_config=reproduction_config,
        )

    def evaluate(
        self,
        evaluator: PopulationEvaluator,
        fitness: FitnessFunction,
        *,
        reference: FitnessFunction | None = None,
    ) -> EvaluatedPopulation:
        """Evaluate all genomes and update champion state.

        When ``fitness`` changes between generations, pass a fixed
        ``reference`` fitness: the generation's best genome is re-scored with it
        and only that score is compared against the current champion.
        """
        evaluated = evaluator(self.genomes, fitness)
        if set(evaluated.genomes) != set(self.genomes):
            msg = "Evaluator must return fitnesses for every genome."
            raise ValueError(msg)
        self.evaluated = evaluated
        self.species_set = None

        ordered = evaluated.ordered_ids()
        if ordered:
            best_fitness = evaluated.fitness(ordered[0])
            self.history.append(best_fitness)
            candidate = evaluated.genomes[ordered[0]]
            score = best_fitness if reference is None else reference(candidate)
            if score > self.champion_fitness:
                self.champion_fitness = score
                self.champion = candidate
        else:
            self.history.append(math.nan)
            logger.warning("Generation %d: every genome failed evaluation", self.generation)
        return evaluated

    def speciate(self) -> SpeciesSet:
        """Partition the alive genomes of the last evaluation."""
        evaluated = self._require_evaluated()
        if self.species_set is None:
            self.species_set = SpeciesSet.build(
                evaluated.alive().genomes, self.species_config
            )
        return self.species_set

    def advance(self) -> None:
        """Replace the genomes with the next generation and clear evaluation state."""
        evaluated = self._require_evaluated()
        offspring = advance_generation(
            evaluated,
            population_size=self.population_size,
            species_config=self.species_config,
            reproduction_config=self.reproduction_config,
            choose=self.policy.choose,
            mutate=self.policy.mutate,
            crossover=self.policy.crossover,
            species_set=self.speciate() if evaluated.alive_ids() else None,
        )
        self.genomes = dict(enumerate(offspring))
        self.generation += 1
        self.evaluated = None
        self.species_set = None

    def _require_evaluated(self) -> EvaluatedPopulation:
        if self.evaluated is None:
            msg = f"Generation {self.generation} has not been evaluated yet."
            raise RuntimeError(msg)
        return self.evaluated


__all__ = [
    "ACTIVATION_WEIGHTS",
    "AGGREGATION_WEIGHTS",
    "MutationConfig",
    "MutationKind",
    "MutationPolicy",
    "PopulationEvaluator",
    "PopulationState",
    "create_initial_population",
]
