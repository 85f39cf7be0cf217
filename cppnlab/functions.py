"""Activation and aggregation functions available to CPPN nodes."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from enum import Enum

ActivationFunction = Callable[[float], float]
AggregationFunction = Callable[[Sequence[float]], float]

SIGMOID_SLOPE = 4.9


class UnknownEnumerantError(ValueError):
    """Raised when a node carries a function tag outside the known set."""


class Activation(str, Enum):
    """Unary functions applied to a node's total input."""

    IDENTITY = "identity"
    HEAVISIDE = "heaviside"
    SIGMOID = "sigmoid"
    SINE = "sine"
    EXPONENT = "exponent"
    LOG = "log"

    @classmethod
    def coerce(cls, value: Activation | str) -> Activation:
        """Coerce a string or Activation into an Activation instance."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            msg = f"Unsupported activation value: {value!r}"
            raise TypeError(msg)
        try:
            return cls(value.strip().lower())
        except ValueError as error:
            valid = ", ".join(member.value for member in cls)
            msg = f"Invalid activation {value!r}. Expected one of: {valid}"
            raise UnknownEnumerantError(msg) from error


class Aggregation(str, Enum):
    """Functions folding a node's weighted incoming values into one number."""

    SUM = "sum"
    AVERAGE = "average"
    PRODUCT = "product"
    MAX = "max"
    MIN = "min"
    MAX_ABS = "max_abs"
    MIN_ABS = "min_abs"

    @classmethod
    def coerce(cls, value: Aggregation | str) -> Aggregation:
        """Coerce a string or Aggregation into an Aggregation instance."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            msg = f"Unsupported aggregation value: {value!r}"
            raise TypeError(msg)
        try:
            return cls(value.strip().lower())
        except ValueError as error:
            valid = ", ".join(member.value for member in cls)
            msg = f"Invalid aggregation {value!r}. Expected one of: {valid}"
            raise UnknownEnumerantError(msg) from error


def _heaviside(x: float) -> float:
    return 1.0 if x > 0.0 else 0.0


def _sigmoid(x: float) -> float:
    scaled = SIGMOID_SLOPE * x
    if scaled >= 0:
        z = math.exp(-scaled)
        return 1.0 / (1.0 + z)
    z = math.exp(scaled)
    return z / (1.0 + z)


def _sine(x: float) -> float:
    if not math.isfinite(x):
        return math.nan
    return math.sin(x)


def _exponent(x: float) -> float:
    try:
        return math.exp(x)
    except OverflowError:
        return math.inf


def _log(x: float) -> float:
    if x > 0.0:
        return math.log(x)
    return 0.0


def _product(values: Sequence[float]) -> float:
    result = 1.0
    for value in values:
        result *= value
    return result


def _average(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _max_abs(values: Sequence[float]) -> float:
    # Signed value with the largest magnitude; first one wins on ties.
    return max(values, key=abs)


def _min_abs(values: Sequence[float]) -> float:
    return min(values, key=abs)


ACTIVATIONS: dict[Activation, ActivationFunction] = {
    Activation.IDENTITY: lambda x: x,
    Activation.HEAVISIDE: _heaviside,
    Activation.SIGMOID: _sigmoid,
    Activation.SINE: _sine,
    Activation.EXPONENT: _exponent,
    Activation.LOG: _log,
}

AGGREGATIONS: dict[Aggregation, AggregationFunction] = {
    Aggregation.SUM: lambda values: float(sum(values)),
    Aggregation.AVERAGE: _average,
    Aggregation.PRODUCT: _product,
    Aggregation.MAX: max,
    Aggregation.MIN: min,
    Aggregation.MAX_ABS: _max_abs,
    Aggregation.MIN_ABS: _min_abs,
}


def apply_activation(activation: Activation, x: float) -> float:
    """Apply the activation function identified by ``activation`` to ``x``."""
    function = ACTIVATIONS.get(activation)
    if function is None:
        msg = f"Unknown activation function: {activation!r}"
        raise UnknownEnumerantError(msg)
    return function(x)


def apply_aggregation(aggregation: Aggregation, values: Sequence[float]) -> float:
    """Fold ``values`` with the aggregation identified by ``aggregation``.

    Args:
        aggregation: Aggregation tag of the receiving node.
        values: Weighted outputs of the node's enabled predecessors. Must be
            non-empty; callers treat a node without incoming edges as
            receiving a total of zero.

    Returns:
        The aggregated incoming total.
    """
    function = AGGREGATIONS.get(aggregation)
    if function is None:
        msg = f"Unknown aggregation function: {aggregation!r}"
        raise UnknownEnumerantError(msg)
    if not values:
        msg = "Aggregation requires at least one value."
        raise ValueError(msg)
    return function(values)


__all__ = [
    "ACTIVATIONS",
    "AGGREGATIONS",
    "Activation",
    "ActivationFunction",
    "Aggregation",
    "AggregationFunction",
    "SIGMOID_SLOPE",
    "UnknownEnumerantError",
    "apply_activation",
    "apply_aggregation",
]
