"""Genome representation and mutation/crossover operators."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TypeVar

from .functions import Activation, Aggregation
from .genes import EdgeGene, NodeGene, NodeRole
from .innovations import EdgeGeneType, NodeGeneType

logger = logging.getLogger(__name__)

IndexChooser = Callable[[int], int]
NodeTransform = Callable[[NodeGene], NodeGene]
NodeResolver = Callable[[NodeGene, NodeGene], NodeGene]
EdgeResolver = Callable[[EdgeGene, EdgeGene], EdgeGene]

T = TypeVar("T")


class InvalidGenomeError(ValueError):
    """Raised when node and edge maps do not form a valid genome."""


def choose_from(choose: IndexChooser, candidates: Sequence[T]) -> T:
    """Pick one of ``candidates`` using the index returned by ``choose``."""
    index = choose(len(candidates))
    if not 0 <= index < len(candidates):
        msg = f"Chooser returned {index}, expected a value in [0, {len(candidates)})."
        raise IndexError(msg)
    return candidates[index]


@dataclass(slots=True)
class GenomeBuilder:
    """Mutable staging area for node and edge genes, frozen by :meth:`build`."""

    nodes: dict[NodeGeneType, NodeGene] = field(default_factory=dict)
    edges: dict[EdgeGeneType, EdgeGene] = field(default_factory=dict)

    def add_node(self, identity: NodeGeneType, gene: NodeGene) -> NodeGeneType:
        """Register a new node gene."""
        if identity in self.nodes:
            msg = f"Node {identity} already exists."
            raise ValueError(msg)
        self.nodes[identity] = gene
        return identity

    def set_edge(
        self,
        source: NodeGeneType,
        target: NodeGeneType,
        gene: EdgeGene,
    ) -> EdgeGeneType:
        """Insert or overwrite the edge source -> target."""
        key = EdgeGeneType(source, target)
        self.edges[key] = gene
        return key

    def remove_node(self, identity: NodeGeneType) -> None:
        """Remove a node together with every edge touching it."""
        del self.nodes[identity]
        for key in [key for key in self.edges if key.touches(identity)]:
            del self.edges[key]

    def build(self) -> Genome:
        """Freeze the staged genes into an immutable genome."""
        return Genome(nodes=dict(self.nodes), edges=dict(self.edges))


@dataclass(frozen=True, slots=True, eq=False)
class Genome:
    """Immutable CPPN genome: a node map and a directed edge map.

    Every mutation and crossover operator returns a new genome; instances are
    never modified after construction. Equality and hashing are structural.
    """

    nodes: Mapping[NodeGeneType, NodeGene]
    edges: Mapping[EdgeGeneType, EdgeGene] = field(default_factory=dict)
    _hash: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        nodes = dict(self.nodes)
        edges = dict(self.edges)
        for identity, gene in nodes.items():
            if not isinstance(identity, NodeGeneType) or not isinstance(gene, NodeGene):
                msg = f"Invalid node entry: {identity!r} -> {gene!r}"
                raise InvalidGenomeError(msg)
        for key, gene in edges.items():
            if not isinstance(key, EdgeGeneType) or not isinstance(gene, EdgeGene):
                msg = f"Invalid edge entry: {key!r} -> {gene!r}"
                raise InvalidGenomeError(msg)
            if key.source not in nodes or key.target not in nodes:
                msg = f"Edge {key} references unknown node."
                raise InvalidGenomeError(msg)
        object.__setattr__(self, "nodes", MappingProxyType(nodes))
        object.__setattr__(self, "edges", MappingProxyType(edges))
        object.__setattr__(
            self,
            "_hash",
            hash((frozenset(nodes.items()), frozenset(edges.items()))),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Genome):
            return NotImplemented
        if self._hash != other._hash:
            return False
        return dict(self.nodes) == dict(other.nodes) and dict(self.edges) == dict(
            other.edges
        )

    def __hash__(self) -> int:
        return self._hash

    def __reduce__(self) -> tuple[type[Genome], tuple[dict, dict]]:
        return (Genome, (dict(self.nodes), dict(self.edges)))

    def to_builder(self) -> GenomeBuilder:
        """Return a mutable builder pre-populated with this genome's genes."""
        return GenomeBuilder(nodes=dict(self.nodes), edges=dict(self.edges))

    def enabled_edges(self) -> dict[EdgeGeneType, EdgeGene]:
        """Return the enabled subset of the edge map."""
        return {key: gene for key, gene in self.edges.items() if gene.enabled}

    def nodes_with_role(self, role: NodeRole) -> list[NodeGeneType]:
        """Return the identities of nodes with ``role``, sorted."""
        return sorted(
            identity for identity, gene in self.nodes.items() if gene.role is role
        )

    def input_nodes(self) -> list[NodeGeneType]:
        return self.nodes_with_role(NodeRole.INPUT)

    def output_nodes(self) -> list[NodeGeneType]:
        return self.nodes_with_role(NodeRole.OUTPUT)

    def inner_nodes(self) -> list[NodeGeneType]:
        return self.nodes_with_role(NodeRole.INNER)

    def mutate_add_node(self, choose: IndexChooser, node_gene: NodeGene) -> Genome:
        """Split an enabled edge by inserting an inner node.

        The chosen edge is disabled; the new node receives an edge of weight 1
        from the old source and forwards to the old target with the old weight.

        Args:
            choose: Returns an index in ``range(n)`` for ``n`` candidates.
            node_gene: Gene of the inserted node; its role must be INNER.

        Raises:
            ValueError: If ``node_gene`` is not an inner gene. This is a
                caller error, not a property of the genome.
        """
        if node_gene.role is not NodeRole.INNER:
            msg = "Inserted nodes must have the inner role."
            raise ValueError(msg)
        candidates = sorted(key for key, gene in self.edges.items() if gene.enabled)
        if not candidates:
            logger.debug("add-node skipped: no enabled edges")
            return self

        split = choose_from(choose, candidates)
        edge = self.edges[split]
        new_node = NodeGeneType.from_parents(split.source, split.target, node_gene)

        builder = self.to_builder()
        builder.edges[split] = edge.disabled()
        builder.nodes[new_node] = node_gene
        builder.set_edge(split.source, new_node, EdgeGene(weight=1.0))
        builder.set_edge(new_node, split.target, EdgeGene(weight=edge.weight))
        return builder.build()

    def mutate_add_edge(self, choose: IndexChooser, weight: float) -> Genome:
        """Add an enabled edge between two nodes that are not yet connected.

        Only self-loops and the immediate reverse of an existing edge are
        excluded; longer cycles are reported at evaluation time. A non-finite
        ``weight`` leaves the genome unchanged.
        """
        candidates = list(self._iter_edge_candidates())
        if not candidates:
            logger.debug("add-edge skipped: no candidate pairs")
            return self
        if not math.isfinite(weight):
            logger.debug("add-edge skipped: weight %r is not finite", weight)
            return self

        key = choose_from(choose, candidates)
        builder = self.to_builder()
        builder.edges[key] = EdgeGene(weight=weight)
        return builder.build()

    def mutate_change_node(self, choose: IndexChooser, transform: NodeTransform) -> Genome:
        """Replace the gene of an inner node with ``transform(gene)``.

        Raises:
            ValueError: If ``transform`` changes the node role.
        """
        candidates = self.inner_nodes()
        if not candidates:
            logger.debug("change-node skipped: no inner nodes")
            return self

        identity = choose_from(choose, candidates)
        current = self.nodes[identity]
        replacement = transform(current)
        if replacement.role is not current.role:
            msg = "Node transforms must preserve the node role."
            raise ValueError(msg)

        builder = self.to_builder()
        builder.nodes[identity] = replacement
        return builder.build()

    def mutate_delete_node(self, choose: IndexChooser) -> Genome:
        """Remove an inner node and every edge touching it."""
        candidates = self.inner_nodes()
        if not candidates:
            logger.debug("delete-node skipped: no inner nodes")
            return self

        identity = choose_from(choose, candidates)
        builder = self.to_builder()
        builder.remove_node(identity)
        return builder.build()

    def mutate_collapse_node(self, choose: IndexChooser) -> Genome:
        """Remove an inner node, wiring its predecessors straight to its successors.

        The enabled incoming weights are summed when the node aggregates with
        SUM and multiplied otherwise. Every predecessor p and successor s gets
        an enabled edge p -> s carrying that total times the actual weight of
        n -> s, so a disabled n -> s yields weight 0. When p == s the bridge is
        a self-loop, which evaluation reports as a cycle.
        """
        candidates = self.inner_nodes()
        if not candidates:
            logger.debug("collapse-node skipped: no inner nodes")
            return self

        identity = choose_from(choose, candidates)
        gene = self.nodes[identity]
        incoming = [key for key in sorted(self.edges) if key.target == identity]
        outgoing = [key for key in sorted(self.edges) if key.source == identity]
        incoming_weights = [
            self.edges[key].weight for key in incoming if self.edges[key].enabled
        ]
        if gene.aggregation is Aggregation.SUM:
            total = sum(incoming_weights, 0.0)
        else:
            total = math.prod(incoming_weights)

        bridges: dict[EdgeGeneType, EdgeGene] = {}
        for in_key in incoming:
            for out_key in outgoing:
                weight = total * self.edges[out_key].actual_weight
                if not math.isfinite(weight):
                    logger.debug("collapse-node skipped: bridged weight overflows")
                    return self
                bridges[EdgeGeneType(in_key.source, out_key.target)] = EdgeGene(
                    weight=weight
                )

        builder = self.to_builder()
        builder.remove_node(identity)
        builder.edges.update(bridges)
        return builder.build()

    def mutate_change_weight(self, choose: IndexChooser, delta: float) -> Genome:
        """Add ``delta`` to the weight of one edge."""
        candidates = sorted(self.edges)
        if not candidates:
            logger.debug("change-weight skipped: no edges")
            return self

        key = choose_from(choose, candidates)
        edge = self.edges[key]
        if not math.isfinite(edge.weight + delta):
            logger.debug("change-weight skipped: weight would overflow")
            return self

        builder = self.to_builder()
        builder.edges[key] = edge.shifted(delta)
        return builder.build()

    def mutate_change_enabled(self, choose: IndexChooser) -> Genome:
        """Flip the enabled flag of one edge."""
        candidates = sorted(self.edges)
        if not candidates:
            logger.debug("change-enabled skipped: no edges")
            return self

        key = choose_from(choose, candidates)
        builder = self.to_builder()
        builder.edges[key] = self.edges[key].toggled()
        return builder.build()

    def crossover(
        self,
        other: Genome,
        resolve_node: NodeResolver,
        resolve_edge: EdgeResolver,
    ) -> Genome:
        """Create a child genome by aligning both parents gene-by-gene.

        Genes present in one parent only are inherited unchanged; genes whose
        identity appears in both are merged by the resolver callbacks, called
        with this genome's gene first.
        """
        nodes = dict(self.nodes)
        for identity, gene in other.nodes.items():
            mine = self.nodes.get(identity)
            nodes[identity] = gene if mine is None else resolve_node(mine, gene)

        edges = dict(self.edges)
        for key, gene in other.edges.items():
            mine_edge = self.edges.get(key)
            edges[key] = gene if mine_edge is None else resolve_edge(mine_edge, gene)

        return Genome(nodes=nodes, edges=edges)

    def _iter_edge_candidates(self) -> Iterable[EdgeGeneType]:
        """Yield unconnected pairs respecting node role constraints."""
        ordered = sorted(self.nodes)
        for source in ordered:
            if self.nodes[source].role is NodeRole.OUTPUT:
                continue
            for target in ordered:
                if source == target or self.nodes[target].role is NodeRole.INPUT:
                    continue
                key = EdgeGeneType(source, target)
                if key in self.edges or key.reversed() in self.edges:
                    continue
                yield key


@dataclass(frozen=True, slots=True)
class SeedGenome:
    """Minimal genome together with its ordered input and output identities."""

    genome: Genome
    inputs: tuple[NodeGeneType, ...]
    outputs: tuple[NodeGeneType, ...]


def create_seed_genome(
    input_count: int,
    output_count: int,
    *,
    output_activation: Activation = Activation.IDENTITY,
) -> SeedGenome:
    """Build the edgeless starting genome with identity/sum inputs and outputs."""
    if input_count <= 0:
        msg = "input_count must be positive."
        raise ValueError(msg)
    if output_count <= 0:
        msg = "output_count must be positive."
        raise ValueError(msg)

    inputs = tuple(NodeGeneType.from_label(f"input{i}") for i in range(input_count))
    outputs = tuple(NodeGeneType.from_label(f"output{i}") for i in range(output_count))

    builder = GenomeBuilder()
    for identity in inputs:
        builder.add_node(
            identity,
            NodeGene(Activation.IDENTITY, Aggregation.SUM, NodeRole.INPUT),
        )
    for identity in outputs:
        builder.add_node(
            identity,
            NodeGene(output_activation, Aggregation.SUM, NodeRole.OUTPUT),
        )
    return SeedGenome(genome=builder.build(), inputs=inputs, outputs=outputs)


__all__ = [
    "EdgeResolver",
    "Genome",
    "GenomeBuilder",
    "IndexChooser",
    "InvalidGenomeError",
    "NodeResolver",
    "NodeTransform",
    "SeedGenome",
    "choose_from",
    "create_seed_genome",
]
