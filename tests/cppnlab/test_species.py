from __future__ import annotations

from random import Random

import pytest
from cppnlab.functions import Activation, Aggregation
from cppnlab.genes import EdgeGene, NodeGene, NodeRole
from cppnlab.genome import Genome, create_seed_genome
from cppnlab.innovations import EdgeGeneType
from cppnlab.population import MutationPolicy
from cppnlab.species import SpeciesConfig, SpeciesSet, compatibility_distance

SEED = create_seed_genome(2, 1)


def with_edge(weight: float, *, enabled: bool = True) -> Genome:
    builder = SEED.genome.to_builder()
    builder.set_edge(SEED.inputs[0], SEED.outputs[0], EdgeGene(weight=weight, enabled=enabled))
    return builder.build()


def distance(left: Genome, right: Genome) -> float:
    return compatibility_distance(left, right, node_weight=1.0, edge_weight=2.0)


def random_genomes(count: int, seed: int) -> list[Genome]:
    policy = MutationPolicy(Random(seed))
    genomes = []
    for _ in range(count):
        genome = SEED.genome
        for _ in range(10):
            genome = policy.mutate(genome)
        genomes.append(genome)
    return genomes


def test_distance_to_self_is_zero() -> None:
    for genome in random_genomes(10, seed=3):
        assert distance(genome, genome) == 0.0


def test_distance_is_symmetric() -> None:
    genomes = random_genomes(10, seed=4)
    for left in genomes:
        for right in genomes:
            assert distance(left, right) == distance(right, left)


def test_unique_edge_costs_its_actual_weight() -> None:
    assert distance(SEED.genome, with_edge(-2.0)) == 4.0
    assert distance(SEED.genome, with_edge(-2.0, enabled=False)) == 0.0


def test_shared_edge_costs_weight_difference() -> None:
    assert distance(with_edge(1.0), with_edge(3.0)) == 4.0
    assert distance(with_edge(1.0), with_edge(3.0, enabled=False)) == 4.0


def test_unique_nodes_are_counted() -> None:
    inner = NodeGene(Activation.SINE, Aggregation.SUM, NodeRole.INNER)
    grown = with_edge(1.0).mutate_add_node(lambda count: 0, inner)
    # One extra node plus two unique edges of weights 1 and 1.
    assert distance(with_edge(1.0), grown) == 1.0 + 2.0 * 2.0


def test_coefficients_scale_terms() -> None:
    value = compatibility_distance(
        SEED.genome, with_edge(3.0), node_weight=0.0, edge_weight=0.5
    )
    assert value == 1.5


def test_species_config_validation() -> None:
    with pytest.raises(ValueError):
        SpeciesConfig(node_weight=-1.0)
    with pytest.raises(ValueError):
        SpeciesConfig(threshold=0.0)


def test_threshold_comparison_is_strict() -> None:
    genomes = {0: SEED.genome, 1: with_edge(2.0)}
    assert len(SpeciesSet.build(genomes, SpeciesConfig(threshold=4.0))) == 2
    assert len(SpeciesSet.build(genomes, SpeciesConfig(threshold=4.5))) == 1


def test_first_member_is_representative_and_duplicates_count() -> None:
    genomes = {
        10: with_edge(1.0),
        11: with_edge(1.0),
        12: with_edge(9.0),
        13: with_edge(1.5),
    }
    species_set = SpeciesSet.build(genomes, SpeciesConfig())

    assert len(species_set) == 2
    first, second = species_set
    assert first.representative_id == 10
    assert first.members == (10, 11, 13)
    assert second.members == (12,)
    assert species_set.species_of(13) is first
    with pytest.raises(KeyError):
        species_set.species_of(99)


def test_partition_depends_on_input_order() -> None:
    a, b, c = with_edge(0.0), with_edge(1.5), with_edge(3.0)
    config = SpeciesConfig(threshold=3.5)
    # a~b and b~c are within threshold, a~c is not.
    assert len(SpeciesSet.build({0: b, 1: a, 2: c}, config)) == 1
    assert len(SpeciesSet.build({0: a, 1: b, 2: c}, config)) == 2


def test_average_fitness() -> None:
    species_set = SpeciesSet.build({0: SEED.genome, 1: SEED.genome}, SpeciesConfig())
    (species,) = species_set
    assert species.average_fitness({0: 1.0, 1: 3.0}) == 2.0
    with pytest.raises(KeyError):
        species.average_fitness({0: 1.0})


def test_duplicate_membership_is_rejected() -> None:
    species_set = SpeciesSet.build({0: SEED.genome}, SpeciesConfig())
    (species,) = species_set
    with pytest.raises(ValueError):
        SpeciesSet(species=(species, species))


def test_seed_edge_identity() -> None:
    (key,) = with_edge(1.0).edges
    assert key == EdgeGeneType(SEED.inputs[0], SEED.outputs[0])
