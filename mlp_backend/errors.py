"""
errors.py
~~~~~~~~~

Exceptions raised by the network core and the request layer.

Every error here is a caller error detected before the network is touched,
so a rejected request never leaves partially updated weights behind.
"""

from typing import Optional


class NetworkError(Exception):
    """Base class for all validation errors raised by mlp_backend."""

    kind = 'network_error'


class InvalidTopology(NetworkError):
    """Raised when a network is requested with fewer than two layers or a bad width."""

    kind = 'invalid_topology'


class UnknownActivation(NetworkError):
    """Raised when an activation name is not in the transfer function registry."""

    kind = 'unknown_activation'


class DimensionMismatch(NetworkError):
    """
    Raised when a pattern disagrees with the network's input or output width.

    Attributes:
        field: Which vector was wrong ('features' or 'targets')
        expected: Width the network expects
        actual: Width that was supplied
        index: Position of the offending pattern, if it came from a set
    """

    kind = 'dimension_mismatch'

    def __init__(
        self,
        field: str,
        expected: int,
        actual: int,
        index: Optional[int] = None
    ):
        self.field = field
        self.expected = expected
        self.actual = actual
        self.index = index

        where = f" in pattern {index}" if index is not None else ""
        super().__init__(
            f"{field} size mismatch{where}. Expected {expected}, got {actual}"
        )


class EmptyPatternSet(NetworkError):
    """Raised when training is invoked with zero patterns."""

    kind = 'empty_pattern_set'

    def __init__(self, message: str = 'No training patterns provided'):
        super().__init__(message)


class InvalidEpochCount(NetworkError):
    """Raised when the epoch count is not a positive integer."""

    kind = 'invalid_epoch_count'


class InvalidPayload(NetworkError):
    """Raised when a request body cannot be turned into patterns or a topology."""

    kind = 'invalid_payload'
