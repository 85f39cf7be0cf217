from __future__ import annotations

import math
from itertools import cycle
from random import Random

import pytest
from cppnlab.evaluator import EvaluatedPopulation
from cppnlab.genes import EdgeGene
from cppnlab.genome import Genome, create_seed_genome
from cppnlab.population import MutationPolicy
from cppnlab.reproduction import (
    ReproductionConfig,
    SpeciesQuota,
    advance_generation,
    apportion,
    compute_offspring_allocation,
    plan_reproduction,
    split_quota,
)
from cppnlab.species import SpeciesConfig, SpeciesSet

SEED = create_seed_genome(2, 1)


def with_edge(weight: float) -> Genome:
    builder = SEED.genome.to_builder()
    builder.set_edge(SEED.inputs[0], SEED.outputs[0], EdgeGene(weight=weight))
    return builder.build()


def keep(genome: Genome) -> Genome:
    return genome


def keep_first(first: Genome, second: Genome) -> Genome:
    return first


def random_population(size: int, seed: int) -> EvaluatedPopulation:
    rng = Random(seed)
    policy = MutationPolicy(Random(seed + 1000))
    genomes: dict[int, Genome] = {}
    for genome_id in range(size):
        genome = SEED.genome
        for _ in range(rng.randrange(1, 12)):
            genome = policy.mutate(genome)
        genomes[genome_id] = genome
    fitnesses = {
        genome_id: (math.nan if rng.random() < 0.1 else rng.uniform(0.0, 50.0))
        for genome_id in genomes
    }
    return EvaluatedPopulation(genomes=genomes, fitnesses=fitnesses)


def test_apportion_is_proportional() -> None:
    assert apportion({0: 1.0, 1: 3.0}, 4) == {0: 1, 1: 3}


def test_apportion_remainder_goes_to_largest_fraction() -> None:
    assert apportion({0: 1.0, 1: 2.0, 2: 3.0}, 10) == {0: 2, 1: 3, 2: 5}


def test_apportion_ties_follow_iteration_order() -> None:
    assert apportion({0: 1.0, 1: 1.0, 2: 1.0}, 10) == {0: 4, 1: 3, 2: 3}
    assert apportion({2: 1.0, 1: 1.0, 0: 1.0}, 10) == {2: 4, 1: 3, 0: 3}


def test_apportion_edge_weights() -> None:
    assert apportion({0: 0.0, 1: 0.0}, 4) == {0: 2, 1: 2}
    assert apportion({0: -5.0, 1: 5.0}, 3) == {0: 0, 1: 3}
    assert apportion({0: math.inf, 1: 1.0, 2: math.inf}, 5) == {0: 3, 1: 0, 2: 2}
    assert apportion({0: 1e308, 1: 1e308}, 2) == {0: 1, 1: 1}
    with pytest.raises(ValueError):
        apportion({0: math.nan}, 2)
    with pytest.raises(ValueError):
        apportion({}, 2)


@pytest.mark.parametrize("slots", [1, 2, 7, 13, 100, 301])
def test_apportion_always_sums_to_slots(slots: int) -> None:
    rng = Random(slots)
    for _ in range(50):
        weights = {index: rng.expovariate(1.0) for index in range(rng.randrange(1, 9))}
        assert sum(apportion(weights, slots).values()) == slots


def test_offspring_allocation_uses_species_averages() -> None:
    genomes = {0: with_edge(1.0), 1: with_edge(1.0), 2: with_edge(20.0)}
    species_set = SpeciesSet.build(genomes, SpeciesConfig())
    fitnesses = {0: 1.0, 1: 3.0, 2: 6.0}

    allocation = compute_offspring_allocation(species_set, fitnesses, population_size=8)

    assert allocation == {0: 2, 1: 6}


def test_reproduction_config_validation() -> None:
    with pytest.raises(ValueError):
        ReproductionConfig(mutants_fraction=1.5)
    with pytest.raises(ValueError):
        ReproductionConfig(children_fraction=-0.1)
    with pytest.raises(ValueError):
        ReproductionConfig(mutants_fraction=0.7, children_fraction=0.4)


def test_split_quota() -> None:
    config = ReproductionConfig(mutants_fraction=0.3, children_fraction=0.06)
    assert split_quota(10, 20, config) == SpeciesQuota(elite=6, mutants=3, children=1)
    assert split_quota(10, 2, config) == SpeciesQuota(elite=2, mutants=7, children=1)
    assert split_quota(1, 1, config) == SpeciesQuota(elite=1, mutants=0, children=0)
    assert split_quota(0, 3, config).total == 0


@pytest.mark.parametrize("allocation", range(0, 40))
def test_split_quota_always_fills_allocation(allocation: int) -> None:
    for mutants, children in [(0.0, 0.0), (0.3, 0.06), (0.5, 0.5), (1.0, 0.0), (0.0, 1.0)]:
        config = ReproductionConfig(mutants_fraction=mutants, children_fraction=children)
        for size in (1, 3, 50):
            quota = split_quota(allocation, size, config)
            assert quota.total == allocation
            assert 0 <= quota.elite <= size
            assert quota.mutants >= 0
            assert quota.children >= 0


def test_plan_reproduction_totals() -> None:
    population = random_population(30, seed=5)
    alive = population.alive()
    species_set = SpeciesSet.build(alive.genomes, SpeciesConfig())
    plan = plan_reproduction(species_set, alive.fitnesses, 30, ReproductionConfig())
    assert sum(quota.total for quota in plan.quotas.values()) == 30
    assert plan.allocations == {
        species_id: quota.total for species_id, quota in plan.quotas.items()
    }


@pytest.mark.parametrize("seed", range(6))
@pytest.mark.parametrize("population_size", [1, 5, 17, 40, 120])
def test_advance_generation_returns_population_size(seed: int, population_size: int) -> None:
    population = random_population(25, seed=seed)
    species_count = len(SpeciesSet.build(population.alive().genomes, SpeciesConfig()))
    policy = MutationPolicy(Random(seed))

    def advance() -> list[Genome]:
        return advance_generation(
            population,
            population_size=population_size,
            species_config=SpeciesConfig(),
            reproduction_config=ReproductionConfig(),
            choose=policy.choose,
            mutate=policy.mutate,
            crossover=policy.crossover,
        )

    if population_size < species_count:
        with pytest.raises(ValueError):
            advance()
        return

    offspring = advance()
    assert len(offspring) == population_size
    assert all(isinstance(genome, Genome) for genome in offspring)


def test_advance_generation_drops_dead_genomes() -> None:
    dead = with_edge(-30.0)
    population = EvaluatedPopulation(
        genomes={0: with_edge(1.0), 1: with_edge(1.2), 2: dead},
        fitnesses={0: 1.0, 1: 2.0, 2: math.nan},
    )

    offspring = advance_generation(
        population,
        population_size=10,
        species_config=SpeciesConfig(),
        reproduction_config=ReproductionConfig(),
        choose=Random(0).randrange,
        mutate=keep,
        crossover=keep_first,
    )

    assert len(offspring) == 10
    assert dead not in offspring


def test_advance_generation_keeps_elites_in_fitness_order() -> None:
    genomes = {index: with_edge(1.0 + index / 10) for index in range(4)}
    population = EvaluatedPopulation(
        genomes=genomes,
        fitnesses={0: 2.0, 1: 8.0, 2: 4.0, 3: 8.0},
    )

    offspring = advance_generation(
        population,
        population_size=4,
        species_config=SpeciesConfig(),
        reproduction_config=ReproductionConfig(mutants_fraction=0.0, children_fraction=0.0),
        choose=Random(0).randrange,
        mutate=keep,
        crossover=keep_first,
    )

    assert offspring == [genomes[1], genomes[3], genomes[2], genomes[0]]


def test_children_use_two_independent_draws() -> None:
    genomes = {index: with_edge(1.0 + index / 10) for index in range(3)}
    population = EvaluatedPopulation(
        genomes=genomes,
        fitnesses={0: 1.0, 1: 1.0, 2: 1.0},
    )
    indices = cycle([0, 1])
    pairs: list[tuple[Genome, Genome]] = []

    def record(first: Genome, second: Genome) -> Genome:
        pairs.append((first, second))
        return first

    offspring = advance_generation(
        population,
        population_size=4,
        species_config=SpeciesConfig(),
        reproduction_config=ReproductionConfig(mutants_fraction=0.0, children_fraction=1.0),
        choose=lambda count: next(indices),
        mutate=keep,
        crossover=record,
    )

    assert len(offspring) == 4
    assert len(pairs) == 4
    assert all(first == genomes[0] and second == genomes[1] for first, second in pairs)


def test_advance_generation_rejects_fully_dead_population() -> None:
    population = EvaluatedPopulation(
        genomes={0: SEED.genome},
        fitnesses={0: math.nan},
    )
    with pytest.raises(ValueError):
        advance_generation(
            population,
            population_size=3,
            species_config=SpeciesConfig(),
            reproduction_config=ReproductionConfig(),
            choose=Random(0).randrange,
            mutate=keep,
            crossover=keep_first,
        )


def test_advance_generation_rejects_more_species_than_slots() -> None:
    population = EvaluatedPopulation(
        genomes={0: with_edge(1.0), 1: with_edge(50.0)},
        fitnesses={0: 1.0, 1: 1.0},
    )
    with pytest.raises(ValueError):
        advance_generation(
            population,
            population_size=1,
            species_config=SpeciesConfig(),
            reproduction_config=ReproductionConfig(),
            choose=Random(0).randrange,
            mutate=keep,
            crossover=keep_first,
        )
