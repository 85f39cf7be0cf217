from __future__ import annotations

import math

import pytest
from cppnlab.functions import Activation, Aggregation
from cppnlab.genes import EdgeGene, NodeGene, NodeRole


def test_node_gene_coerces_strings() -> None:
    gene = NodeGene("sigmoid", "product", "inner")
    assert gene.activation is Activation.SIGMOID
    assert gene.aggregation is Aggregation.PRODUCT
    assert gene.role is NodeRole.INNER


def test_node_gene_rejects_unknown_role() -> None:
    with pytest.raises(ValueError):
        NodeGene(Activation.IDENTITY, Aggregation.SUM, "hidden")


def test_node_gene_copy_and_fingerprint() -> None:
    gene = NodeGene(Activation.IDENTITY, Aggregation.SUM, NodeRole.INNER)
    changed = gene.copy(activation=Activation.SINE)
    assert changed.activation is Activation.SINE
    assert changed.aggregation is Aggregation.SUM
    assert gene.fingerprint() != changed.fingerprint()
    assert gene == NodeGene("identity", "sum", "inner")


def test_edge_gene_actual_weight_follows_enabled_flag() -> None:
    edge = EdgeGene(weight=2.5)
    assert edge.actual_weight == 2.5
    disabled = edge.disabled()
    assert not disabled.enabled
    assert disabled.weight == 2.5
    assert disabled.actual_weight == 0.0
    assert disabled.toggled() == edge


def test_edge_gene_shifted() -> None:
    assert EdgeGene(weight=1.0).shifted(-3.0).weight == -2.0


@pytest.mark.parametrize("weight", [math.inf, -math.inf, math.nan, "abc"])
def test_edge_gene_rejects_invalid_weights(weight: object) -> None:
    with pytest.raises(ValueError):
        EdgeGene(weight=weight)  # type: ignore[arg-type]
