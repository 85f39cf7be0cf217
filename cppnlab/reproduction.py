"""Offspring allocation and generation advance for CPPN populations."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .evaluator import EvaluatedPopulation
from .genome import Genome, IndexChooser, choose_from
from .species import SpeciesConfig, SpeciesSet

logger = logging.getLogger(__name__)

MutateFunction = Callable[[Genome], Genome]
CrossoverFunction = Callable[[Genome, Genome], Genome]


@dataclass(frozen=True, slots=True)
class ReproductionConfig:
    """Fractions of each species allocation produced by mutation and crossover."""

    mutants_fraction: float = 0.3
    children_fraction: float = 0.06

    def __post_init__(self) -> None:
        if not 0.0 <= self.mutants_fraction <= 1.0:
            msg = "mutants_fraction must be in [0, 1]."
            raise ValueError(msg)
        if not 0.0 <= self.children_fraction <= 1.0:
            msg = "children_fraction must be in [0, 1]."
            raise ValueError(msg)
        if self.mutants_fraction + self.children_fraction > 1.0:
            msg = "mutants_fraction + children_fraction must not exceed 1."
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class SpeciesQuota:
    """How a species fills its allocated slots."""

    elite: int
    mutants: int
    children: int

    @property
    def total(self) -> int:
        return self.elite + self.mutants + self.children


@dataclass(frozen=True, slots=True)
class ReproductionPlan:
    """Result of distributing the next generation among species."""

    allocations: dict[int, int]
    quotas: dict[int, SpeciesQuota]
    average_fitness: dict[int, float]


def apportion(weights: Mapping[int, float], slots: int) -> dict[int, int]:
    """Split ``slots`` proportionally to ``weights`` with the largest remainder method.

    Negative weights count as zero. When every weight is zero the slots are
    split evenly; when some weights are infinite those share the slots evenly.
    Remainder slots go to the largest fractional parts, ties broken by
    iteration order.

    Raises:
        ValueError: If ``weights`` is empty, ``slots`` is negative or a weight
            is NaN.
    """
    if not weights:
        msg = "At least one weight is required."
        raise ValueError(msg)
    if slots < 0:
        msg = "slots must be >= 0."
        raise ValueError(msg)
    if any(math.isnan(value) for value in weights.values()):
        msg = "Weights must not be NaN."
        raise ValueError(msg)

    shares = {key: max(value, 0.0) for key, value in weights.items()}
    if any(math.isinf(value) for value in shares.values()):
        shares = {key: 1.0 if math.isinf(value) else 0.0 for key, value in shares.items()}

    total = sum(shares.values())
    if total <= 0.0:
        shares = dict.fromkeys(shares, 1.0)
        total = float(len(shares))
    elif math.isinf(total):
        # Finite weights whose sum overflows: rescale by the largest one.
        peak = max(shares.values())
        shares = {key: value / peak for key, value in shares.items()}
        total = sum(shares.values())

    quotas = {key: value / total * slots for key, value in shares.items()}
    allocations = {key: math.floor(value) for key, value in quotas.items()}

    remainder = slots - sum(allocations.values())
    if remainder < 0:
        msg = "Guaranteed slots exceed the number of available slots."
        raise RuntimeError(msg)

    ordering = sorted(
        allocations,
        key=lambda key: quotas[key] - allocations[key],
        reverse=True,
    )
    for index in range(remainder):
        allocations[ordering[index % len(ordering)]] += 1

    if sum(allocations.values()) != slots:
        msg = "Offspring allocation does not sum to the population size."
        raise RuntimeError(msg)
    return allocations


def compute_offspring_allocation(
    species_set: SpeciesSet,
    fitnesses: Mapping[int, float],
    population_size: int,
) -> dict[int, int]:
    """Allocate next-generation slots to species by average member fitness."""
    if population_size <= 0:
        msg = "population_size must be positive."
        raise ValueError(msg)
    if not len(species_set):
        msg = "At least one species is required."
        raise ValueError(msg)

    averages = {species.id: species.average_fitness(fitnesses) for species in species_set}
    return apportion(averages, population_size)


def split_quota(
    allocation: int,
    species_size: int,
    config: ReproductionConfig,
) -> SpeciesQuota:
    """Divide a species allocation into elite, mutant and child slots.

    ``round`` uses banker's rounding. Elites are capped by the species size
    and any slots they cannot fill become mutants, so the parts always sum to
    ``allocation``.
    """
    if allocation < 0:
        msg = "allocation must be >= 0."
        raise ValueError(msg)
    if species_size <= 0:
        msg = "species_size must be positive."
        raise ValueError(msg)

    mutants = round(allocation * config.mutants_fraction)
    children = min(round(allocation * config.children_fraction), allocation)
    elite = max(0, min(species_size, allocation - mutants - children))
    return SpeciesQuota(
        elite=elite,
        mutants=allocation - elite - children,
        children=children,
    )


def plan_reproduction(
    species_set: SpeciesSet,
    fitnesses: Mapping[int, float],
    population_size: int,
    config: ReproductionConfig,
) -> ReproductionPlan:
    """Compute allocations and quotas for every species."""
    allocations = compute_offspring_allocation(species_set, fitnesses, population_size)
    quotas = {
        species.id: split_quota(allocations[species.id], species.size, config)
        for species in species_set
    }
    return ReproductionPlan(
        allocations=allocations,
        quotas=quotas,
        average_fitness={
            species.id: species.average_fitness(fitnesses) for species in species_set
        },
    )


def advance_generation(
    population: EvaluatedPopulation,
    *,
    population_size: int,
    species_config: SpeciesConfig,
    reproduction_config: ReproductionConfig,
    choose: IndexChooser,
    mutate: MutateFunction,
    crossover: CrossoverFunction,
    species_set: SpeciesSet | None = None,
) -> list[Genome]:
    """Produce the next generation from an evaluated population.

    Genomes with NaN fitness are dropped, the survivors are speciated, and
    each species contributes its elites unchanged, mutated copies of members
    drawn with ``choose``, and crossovers of two independently drawn members.

    Args:
        population: Genomes and their fitness values.
        population_size: Number of genomes to return.
        species_config: Parameters for speciation.
        reproduction_config: Mutant and child fractions.
        choose: Index chooser used to draw parents.
        mutate: Applies one mutation to a genome.
        crossover: Combines two parent genomes.
        species_set: Partition of the alive genomes computed by the caller;
            built from ``species_config`` when omitted.

    Returns:
        Exactly ``population_size`` genomes, grouped by species.

    Raises:
        ValueError: If no genome has a valid fitness or there are more
            species than slots.
    """
    alive = population.alive()
    if not alive.size:
        msg = "No genome in the population has a valid fitness."
        raise ValueError(msg)

    if species_set is None:
        species_set = SpeciesSet.build(alive.genomes, species_config)
    if population_size < len(species_set):
        msg = (
            f"population_size {population_size} is smaller than the number of "
            f"species ({len(species_set)})."
        )
        raise ValueError(msg)

    plan = plan_reproduction(
        species_set,
        alive.fitnesses,
        population_size,
        reproduction_config,
    )

    offspring: list[Genome] = []
    for species in species_set:
        quota = plan.quotas[species.id]
        ranked = sorted(species.members, key=alive.fitnesses.__getitem__, reverse=True)
        offspring.extend(alive.genomes[member_id] for member_id in ranked[: quota.elite])

        for _ in range(quota.mutants):
            parent_id = choose_from(choose, species.members)
            offspring.append(mutate(alive.genomes[parent_id]))

        for _ in range(quota.children):
            first_id = choose_from(choose, species.members)
            second_id = choose_from(choose, species.members)
            offspring.append(crossover(alive.genomes[first_id], alive.genomes[second_id]))

        logger.debug(
            "Species %d: size=%d avg=%.4g elite=%d mutants=%d children=%d",
            species.id,
            species.size,
            plan.average_fitness[species.id],
            quota.elite,
            quota.mutants,
            quota.children,
        )

    if len(offspring) != population_size:
        msg = "Generation size does not match the population size."
        raise RuntimeError(msg)
    return offspring


__all__ = [
    "CrossoverFunction",
    "MutateFunction",
    "ReproductionConfig",
    "ReproductionPlan",
    "SpeciesQuota",
    "advance_generation",
    "apportion",
    "compute_offspring_allocation",
    "plan_reproduction",
    "split_quota",
]
