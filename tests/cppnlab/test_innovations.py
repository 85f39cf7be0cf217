from __future__ import annotations

import pytest
from cppnlab.functions import Activation, Aggregation
from cppnlab.genes import NodeGene, NodeRole
from cppnlab.innovations import EdgeGeneType, NodeGeneType, hash_innovation


def test_label_identities_are_deterministic() -> None:
    assert NodeGeneType.from_label("input0") == NodeGeneType.from_label("input0")
    assert NodeGeneType.from_label("input0") != NodeGeneType.from_label("input1")
    assert NodeGeneType.from_label("input0").innovation_id == hash_innovation("input0")


def test_parent_identity_depends_on_endpoints_and_gene() -> None:
    a = NodeGeneType.from_label("a")
    b = NodeGeneType.from_label("b")
    sine = NodeGene(Activation.SINE, Aggregation.SUM, NodeRole.INNER)
    log = NodeGene(Activation.LOG, Aggregation.SUM, NodeRole.INNER)

    assert NodeGeneType.from_parents(a, b, sine) == NodeGeneType.from_parents(a, b, sine)
    assert NodeGeneType.from_parents(a, b, sine) != NodeGeneType.from_parents(a, b, log)
    assert NodeGeneType.from_parents(a, b, sine) != NodeGeneType.from_parents(b, a, sine)


def test_empty_identity_is_rejected() -> None:
    with pytest.raises(ValueError):
        NodeGeneType("")


def test_edge_identity_is_directed() -> None:
    a = NodeGeneType.from_label("a")
    b = NodeGeneType.from_label("b")
    c = NodeGeneType.from_label("c")
    edge = EdgeGeneType(a, b)

    assert edge != EdgeGeneType(b, a)
    assert edge.reversed() == EdgeGeneType(b, a)
    assert edge == EdgeGeneType(a, b)
    assert edge.touches(a)
    assert edge.touches(b)
    assert not edge.touches(c)
