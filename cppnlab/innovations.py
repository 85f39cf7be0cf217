"""Content-derived innovation identities for genome nodes and edges."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass

from .genes import NodeGene


def hash_innovation(value: str | bytes) -> str:
    """Return the base64-encoded SHA-1 digest of ``value``."""
    buffer = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    digest = hashlib.sha1(buffer).digest()
    return base64.b64encode(digest).decode("ascii")


@dataclass(frozen=True, slots=True, order=True)
class NodeGeneType:
    """Identity of a node, shared by every genome descended from its creation.

    Attributes:
        innovation_id: Content hash naming the structural event that created
            the node. Two genomes that split the same edge with the same
            gene content obtain equal identities.
    """

    innovation_id: str

    def __post_init__(self) -> None:
        if not isinstance(self.innovation_id, str) or not self.innovation_id:
            msg = "innovation_id must be a non-empty string."
            raise ValueError(msg)

    @classmethod
    def from_label(cls, label: str) -> NodeGeneType:
        """Derive an identity from a fixed label such as ``"input0"``."""
        return cls(hash_innovation(label))

    @classmethod
    def from_parents(
        cls,
        source: NodeGeneType,
        target: NodeGeneType,
        node_gene: NodeGene,
    ) -> NodeGeneType:
        """Derive the identity of a node inserted on the edge source -> target."""
        return cls(
            hash_innovation(
                source.innovation_id + target.innovation_id + node_gene.fingerprint()
            )
        )

    def __str__(self) -> str:
        return f"Node[{self.innovation_id}]"


@dataclass(frozen=True, slots=True, order=True)
class EdgeGeneType:
    """Identity of a directed edge: the ordered pair of its endpoints."""

    source: NodeGeneType
    target: NodeGeneType

    def reversed(self) -> EdgeGeneType:
        """Return the identity of the edge pointing the other way."""
        return EdgeGeneType(self.target, self.source)

    def touches(self, node: NodeGeneType) -> bool:
        """Return whether ``node`` is either endpoint of the edge."""
        return node == self.source or node == self.target

    def __str__(self) -> str:
        return f"{self.source} -> {self.target}"


__all__ = ["EdgeGeneType", "NodeGeneType", "hash_innovation"]
