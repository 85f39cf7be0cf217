"""Gene payloads (nodes and edges) for CPPN genomes."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from .functions import Activation, Aggregation


class NodeRole(str, Enum):
    """Enumeration of supported node roles."""

    INPUT = "input"
    OUTPUT = "output"
    INNER = "inner"

    @classmethod
    def coerce(cls, value: NodeRole | str) -> NodeRole:
        """Coerce a string or NodeRole into a NodeRole instance."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            msg = f"Unsupported node role value: {value!r}"
            raise TypeError(msg)
        try:
            return cls(value.lower())
        except ValueError as error:
            valid = ", ".join(member.value for member in cls)
            msg = f"Invalid node role {value!r}. Expected one of: {valid}"
            raise ValueError(msg) from error


@dataclass(frozen=True, slots=True)
class NodeGene:
    """Payload attached to a node identity within a genome."""

    activation: Activation
    aggregation: Aggregation
    role: NodeRole

    def __post_init__(self) -> None:
        object.__setattr__(self, "activation", Activation.coerce(self.activation))
        object.__setattr__(self, "aggregation", Aggregation.coerce(self.aggregation))
        object.__setattr__(self, "role", NodeRole.coerce(self.role))

    def copy(
        self,
        *,
        activation: Activation | None = None,
        aggregation: Aggregation | None = None,
        role: NodeRole | None = None,
    ) -> NodeGene:
        """Return a copy of the node with optional overrides."""
        return NodeGene(
            activation=self.activation if activation is None else activation,
            aggregation=self.aggregation if aggregation is None else aggregation,
            role=self.role if role is None else role,
        )

    def fingerprint(self) -> str:
        """Stable textual form of the gene content, used for identity hashing."""
        return f"{self.role.value}:{self.aggregation.value}:{self.activation.value}"

    def __str__(self) -> str:
        prefix = "" if self.role is NodeRole.INNER else f"{self.role.value.upper()} "
        return f"{prefix}[{self.aggregation.value}, {self.activation.value}]"


@dataclass(frozen=True, slots=True)
class EdgeGene:
    """Payload of a directed edge: a weight and an enabled flag."""

    weight: float
    enabled: bool = True

    def __post_init__(self) -> None:
        try:
            weight = float(self.weight)
        except (TypeError, ValueError) as error:
            msg = f"weight must be convertible to float, got {self.weight!r}"
            raise ValueError(msg) from error
        if not math.isfinite(weight):
            msg = "weight must be a finite number."
            raise ValueError(msg)
        object.__setattr__(self, "weight", weight)
        object.__setattr__(self, "enabled", bool(self.enabled))

    @property
    def actual_weight(self) -> float:
        """Weight contributed to evaluation: zero while the edge is disabled."""
        return self.weight if self.enabled else 0.0

    def copy(
        self,
        *,
        weight: float | None = None,
        enabled: bool | None = None,
    ) -> EdgeGene:
        """Return a copy with optional field overrides."""
        return EdgeGene(
            weight=self.weight if weight is None else float(weight),
            enabled=self.enabled if enabled is None else enabled,
        )

    def toggled(self) -> EdgeGene:
        """Return a copy with the `enabled` flag flipped."""
        return self.copy(enabled=not self.enabled)

    def disabled(self) -> EdgeGene:
        """Return a disabled copy of the edge."""
        return self.copy(enabled=False)

    def shifted(self, delta: float) -> EdgeGene:
        """Return a copy whose weight is moved by ``delta``."""
        return self.copy(weight=self.weight + delta)


__all__ = ["EdgeGene", "NodeGene", "NodeRole"]
