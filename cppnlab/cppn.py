"""Forward evaluation of CPPN genomes."""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from .functions import apply_activation, apply_aggregation
from .genes import EdgeGene, NodeRole
from .genome import Genome
from .innovations import EdgeGeneType, NodeGeneType


class RoleMismatchError(ValueError):
    """Raised when input/output vertices do not carry the expected role."""


class CyclicGenomeError(ValueError):
    """Raised when the enabled-edge subgraph of a genome contains a cycle."""


def _check_roles(
    genome: Genome,
    vertices: Sequence[NodeGeneType],
    role: NodeRole,
) -> None:
    for vertex in vertices:
        gene = genome.nodes.get(vertex)
        if gene is None:
            msg = f"{role.value.capitalize()} vertex {vertex} is not part of the genome."
            raise RoleMismatchError(msg)
        if gene.role is not role:
            msg = f"Non-{role.value} vertex {vertex} passed as {role.value} (role={gene.role.value})."
            raise RoleMismatchError(msg)


def calculate_outputs(
    genome: Genome,
    external_inputs: Mapping[NodeGeneType, float],
    *,
    lifo: bool = True,
) -> dict[NodeGeneType, float]:
    """Run a topological forward pass and return the output of every node.

    Args:
        genome: Genome to evaluate.
        external_inputs: Values added to the incoming total of the given nodes.
        lifo: Take ready nodes from the back of the work set (stack) when true,
            from the front (queue) otherwise. The result does not depend on it.

    Raises:
        CyclicGenomeError: If some node never becomes ready.
    """
    enabled: dict[EdgeGeneType, EdgeGene] = genome.enabled_edges()
    by_source: dict[NodeGeneType, list[NodeGeneType]] = defaultdict(list)
    by_target: dict[NodeGeneType, list[NodeGeneType]] = defaultdict(list)
    remaining = dict.fromkeys(genome.nodes, 0)
    for key in enabled:
        by_source[key.source].append(key.target)
        by_target[key.target].append(key.source)
        remaining[key.target] += 1

    ready: deque[NodeGeneType] = deque(
        sorted(node for node, degree in remaining.items() if degree == 0)
    )
    outputs: dict[NodeGeneType, float] = {}

    while ready:
        node = ready.pop() if lifo else ready.popleft()
        gene = genome.nodes[node]

        incoming = [
            outputs[source] * enabled[EdgeGeneType(source, node)].actual_weight
            for source in by_target.get(node, ())
        ]
        total = apply_aggregation(gene.aggregation, incoming) if incoming else 0.0
        outputs[node] = apply_activation(
            gene.activation, external_inputs.get(node, 0.0) + total
        )

        for target in by_source.get(node, ()):
            remaining[target] -= 1
            if remaining[target] == 0:
                ready.append(target)

    if len(outputs) != len(genome.nodes):
        stuck = len(genome.nodes) - len(outputs)
        msg = f"Cycle detected in enabled edges: {stuck} node(s) never became ready."
        raise CyclicGenomeError(msg)

    return outputs


@dataclass(frozen=True, slots=True)
class CPPN:
    """Executable view of a genome with a fixed input/output vertex ordering."""

    genome: Genome
    inputs: tuple[NodeGeneType, ...]
    outputs: tuple[NodeGeneType, ...]
    lifo: bool = field(default=True)

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        self.validate()

    def validate(self) -> None:
        """Check that inputs are INPUT nodes and outputs are OUTPUT nodes."""
        _check_roles(self.genome, self.inputs, NodeRole.INPUT)
        _check_roles(self.genome, self.outputs, NodeRole.OUTPUT)

    def calculate(self, input_values: Sequence[float]) -> list[float]:
        """Run a forward pass and return outputs in the configured order."""
        if len(input_values) != len(self.inputs):
            msg = f"Expected {len(self.inputs)} inputs but received {len(input_values)}."
            raise ValueError(msg)
        bound = {
            vertex: float(value)
            for vertex, value in zip(self.inputs, input_values, strict=True)
        }
        node_outputs = calculate_outputs(self.genome, bound, lifo=self.lifo)
        return [node_outputs[vertex] for vertex in self.outputs]


def evaluate(
    genome: Genome,
    input_vertices: Sequence[NodeGeneType],
    output_vertices: Sequence[NodeGeneType],
    input_values: Sequence[float],
    *,
    lifo: bool = True,
) -> list[float]:
    """Evaluate ``genome`` on one input vector.

    Raises:
        RoleMismatchError: If a vertex has the wrong role or is missing.
        CyclicGenomeError: If the enabled edges contain a cycle.
    """
    network = CPPN(genome, tuple(input_vertices), tuple(output_vertices), lifo=lifo)
    return network.calculate(input_values)


__all__ = [
    "CPPN",
    "CyclicGenomeError",
    "RoleMismatchError",
    "calculate_outputs",
    "evaluate",
]
