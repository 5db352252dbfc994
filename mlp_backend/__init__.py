"""
mlp_backend package
~~~~~~~~~~~~~~~~~~~

Multilayer perceptron trained with online backpropagation, served over a
small REST API. Contains the network core, the transfer functions, the
thread-safe network service, serialization helpers and the API server.
"""

from mlp_backend.errors import (
    DimensionMismatch,
    EmptyPatternSet,
    InvalidEpochCount,
    InvalidPayload,
    InvalidTopology,
    NetworkError,
    UnknownActivation,
)
from mlp_backend.network import Layer, Network, NeuronUnit, Pattern
from mlp_backend.transfer import SIGMOID, TransferFunction

__version__ = "1.0.0"
