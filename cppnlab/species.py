"""Compatibility distance and speciation for CPPN genomes."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .genome import Genome

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SpeciesConfig:
    """Configuration parameters controlling speciation behaviour."""

    node_weight: float = 1.0
    edge_weight: float = 2.0
    threshold: float = 4.0

    def __post_init__(self) -> None:
        if self.node_weight < 0 or self.edge_weight < 0:
            msg = "Compatibility coefficients must be non-negative."
            raise ValueError(msg)
        if self.threshold <= 0:
            msg = "threshold must be positive."
            raise ValueError(msg)


def compatibility_distance(
    left: Genome,
    right: Genome,
    *,
    node_weight: float,
    edge_weight: float,
) -> float:
    """Compute the compatibility distance between two genomes.

    Nodes present in only one genome cost ``node_weight`` each. Edges present
    in only one genome cost the magnitude of their actual weight, and edges
    present in both cost the magnitude of their weight difference; the edge
    total is scaled by ``edge_weight``.
    """
    unique_nodes = len(left.nodes.keys() ^ right.nodes.keys())

    terms: list[float] = []
    for key, gene in left.edges.items():
        match = right.edges.get(key)
        if match is None:
            terms.append(abs(gene.actual_weight))
        else:
            terms.append(abs(gene.weight - match.weight))
    for key, gene in right.edges.items():
        if key not in left.edges:
            terms.append(abs(gene.actual_weight))

    # fsum is exactly rounded, so the result does not depend on argument order.
    return node_weight * unique_nodes + edge_weight * math.fsum(terms)


@dataclass(frozen=True, slots=True)
class Species:
    """A group of mutually compatible genomes, identified by integer ids."""

    id: int
    representative_id: int
    representative: Genome
    members: tuple[int, ...]

    @property
    def size(self) -> int:
        return len(self.members)

    def average_fitness(self, fitnesses: Mapping[int, float]) -> float:
        """Return the mean fitness of the members."""
        if not self.members:
            msg = f"Species {self.id} has no members."
            raise ValueError(msg)
        try:
            values = [fitnesses[member_id] for member_id in self.members]
        except KeyError as error:
            msg = f"Missing fitness for genome id {error.args[0]}"
            raise KeyError(msg) from error
        return sum(values) / len(values)


@dataclass(frozen=True, slots=True)
class SpeciesSet:
    """Partition of a population into species plus genome -> species lookup."""

    species: tuple[Species, ...]
    _by_genome: Mapping[int, Species] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        lookup: dict[int, Species] = {}
        for item in self.species:
            for member_id in item.members:
                if member_id in lookup:
                    msg = f"Genome {member_id} belongs to more than one species."
                    raise ValueError(msg)
                lookup[member_id] = item
        object.__setattr__(self, "_by_genome", MappingProxyType(lookup))

    @classmethod
    def build(cls, genomes: Mapping[int, Genome], config: SpeciesConfig) -> SpeciesSet:
        """Cluster genomes greedily in iteration order.

        Each genome joins the first species whose representative (its first
        member) lies strictly closer than ``config.threshold``; otherwise it
        founds a new species. The result depends on the iteration order.
        """
        representatives: list[tuple[int, Genome]] = []
        members: list[list[int]] = []

        for genome_id, genome in genomes.items():
            for index, (_, representative) in enumerate(representatives):
                distance = compatibility_distance(
                    representative,
                    genome,
                    node_weight=config.node_weight,
                    edge_weight=config.edge_weight,
                )
                if distance < config.threshold:
                    members[index].append(genome_id)
                    break
            else:
                representatives.append((genome_id, genome))
                members.append([genome_id])

        species = tuple(
            Species(
                id=index,
                representative_id=representative_id,
                representative=representative,
                members=tuple(member_ids),
            )
            for index, ((representative_id, representative), member_ids) in enumerate(
                zip(representatives, members, strict=True)
            )
        )
        logger.debug("Speciated %d genomes into %d species", len(genomes), len(species))
        return cls(species=species)

    def species_of(self, genome_id: int) -> Species:
        """Return the species containing ``genome_id``."""
        try:
            return self._by_genome[genome_id]
        except KeyError as error:
            msg = f"Genome id {genome_id} is not part of this species set."
            raise KeyError(msg) from error

    def __len__(self) -> int:
        return len(self.species)

    def __iter__(self) -> Iterator[Species]:
        return iter(self.species)


__all__ = [
    "Species",
    "SpeciesConfig",
    "SpeciesSet",
    "compatibility_distance",
]
