"""
transfer.py
~~~~~~~~~~~

Scalar transfer (activation) function pairs.

A pair couples an activation with its derivative written in terms of the
*activated* value. The network hands the derivative a neuron's stored output,
never its pre-activation sum, which is only valid for activations with an
identity like sigmoid's ``s'(x) = s(x) * (1 - s(x))``.
"""

import math
from typing import Callable, Dict, NamedTuple

from mlp_backend.errors import UnknownActivation


class TransferFunction(NamedTuple):
    """A named activation and its derivative with respect to the output."""

    name: str
    function: Callable[[float], float]
    derivative: Callable[[float], float]


def sigmoid(x: float) -> float:
    """Logistic sigmoid, split on sign so large |x| never overflows."""
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def sigmoid_derivative(y: float) -> float:
    """Sigmoid slope given the already activated value y."""
    return y * (1.0 - y)


SIGMOID = TransferFunction('sigmoid', sigmoid, sigmoid_derivative)

TRANSFER_FUNCTIONS: Dict[str, TransferFunction] = {
    SIGMOID.name: SIGMOID,
}


def get_transfer_function(name: str) -> TransferFunction:
    """Look up a registered transfer pair by name."""
    try:
        return TRANSFER_FUNCTIONS[name]
    except KeyError:
        known = ', '.join(sorted(TRANSFER_FUNCTIONS))
        raise UnknownActivation(
            f"Unknown activation '{name}'. Available: {known}"
        ) from None
