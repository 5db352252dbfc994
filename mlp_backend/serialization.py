"""
serialization.py
~~~~~~~~~~~~~~~~

Conversion between the network and JSON-friendly structures.

Snapshots use the keys the browser visualizer reads (``layers``, ``neurons``,
``weights``, ``value``, ``bias``, ``error``, ``epoch``) and training payloads
accept patterns as ``{"features": [...], "multipleExpectation": [...]}``.
"""

import json
import math
from typing import Any, Dict, List, Optional

import numpy as np
from flask.json.provider import DefaultJSONProvider

from mlp_backend.errors import InvalidPayload, InvalidTopology
from mlp_backend.network import Network, Pattern

# Accepted keys for a pattern's expected outputs, in lookup order
TARGET_KEYS = ('multipleExpectation', 'targets')


class NetworkEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles numpy arrays and scalars."""

    def default(self, obj: Any) -> Any:
        """
        Convert numpy values to plain Python for JSON serialization.

        Args:
            obj: Object to serialize

        Returns:
            JSON-serializable representation
        """
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.generic):
            return obj.item()
        return super().default(obj)


def network_snapshot(network: Network, epoch: int = 0, error: float = 0.0) -> Dict[str, Any]:
    """
    Copy the network's externally visible state into plain lists and floats.

    The result shares nothing with the network, so it stays valid after
    the network is trained further.
    """
    return {
        'layers': [
            {
                'neurons': [
                    {
                        'weights': [float(w) for w in neuron.weights],
                        'value': float(neuron.value),
                        'bias': float(neuron.bias)
                    }
                    for neuron in layer
                ]
            }
            for layer in network.layers
        ],
        'error': float(error),
        'epoch': int(epoch),
        'topology': network.sizes,
        'learning_rate': float(network.learning_rate),
        'activation': network.transfer.name
    }


class NetworkJSONProvider(DefaultJSONProvider):
    """Flask JSON provider that serializes numpy values with NetworkEncoder."""

    def dumps(self, obj: Any, **kwargs: Any) -> str:
        kwargs.setdefault('cls', NetworkEncoder)
        kwargs.setdefault('ensure_ascii', self.ensure_ascii)
        kwargs.setdefault('sort_keys', self.sort_keys)
        return json.dumps(obj, **kwargs)


def _parse_vector(value: Any, name: str, index: Optional[int] = None) -> List[float]:
    prefix = f"Pattern {index}: " if index is not None else ""
    if not isinstance(value, (list, tuple)):
        raise InvalidPayload(f"{prefix}'{name}' must be a list of numbers")

    vector = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise InvalidPayload(f"{prefix}'{name}' must be a list of numbers")
        if not math.isfinite(item):
            raise InvalidPayload(f"{prefix}'{name}' contains a non-finite value")
        vector.append(float(item))
    return vector


def parse_pattern(data: Any, index: int = 0) -> Pattern:
    """Build a Pattern from a ``{features, multipleExpectation}`` mapping."""
    if not isinstance(data, dict):
        raise InvalidPayload(f"Pattern {index} must be an object")
    if 'features' not in data:
        raise InvalidPayload(f"Pattern {index} is missing 'features'")

    target_key = next((key for key in TARGET_KEYS if key in data), None)
    if target_key is None:
        raise InvalidPayload(f"Pattern {index} is missing 'multipleExpectation'")

    return Pattern(
        features=_parse_vector(data['features'], 'features', index),
        targets=_parse_vector(data[target_key], target_key, index)
    )


def parse_patterns(data: Any) -> List[Pattern]:
    """
    Build a list of patterns from a JSON array.

    Shape checks against a particular network are left to the network; an
    empty list is returned as-is so training can reject it.
    """
    if not isinstance(data, list):
        raise InvalidPayload("'patterns' must be a list")
    return [parse_pattern(item, index) for index, item in enumerate(data)]


def parse_features(data: Any) -> List[float]:
    return _parse_vector(data, 'features')


def parse_topology(value: Any) -> List[int]:
    """
    Accept a topology as a list of ints or a comma separated string.

    Raises:
        InvalidTopology: Not a list of at least two positive integers
    """
    if isinstance(value, str):
        try:
            value = [int(part) for part in value.split(',') if part.strip()]
        except ValueError:
            raise InvalidTopology(f"Invalid topology string: {value!r}") from None

    if not isinstance(value, (list, tuple)) or len(value) < 2:
        raise InvalidTopology('Invalid architecture. Must have at least 2 layers.')

    for width in value:
        if isinstance(width, bool) or not isinstance(width, int) or width < 1:
            raise InvalidTopology(
                f"Layer sizes must be positive integers, got {list(value)}"
            )
    return list(value)


def parse_learning_rate(value: Any, default: Optional[float] = None) -> float:
    if value is None and default is not None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value > 0:
        raise InvalidPayload('learning_rate must be a positive number')
    if not math.isfinite(value):
        raise InvalidPayload('learning_rate must be finite')
    return float(value)
