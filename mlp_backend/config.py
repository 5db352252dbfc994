"""
config.py
~~~~~~~~~

Server configuration read from environment variables.
"""

import os
from typing import List, Mapping, Optional

from mlp_backend.errors import NetworkError
from mlp_backend.network import Pattern
from mlp_backend.serialization import parse_topology
from mlp_backend.transfer import get_transfer_function

# Logical XOR, used when a training request carries no patterns
XOR_PATTERNS = [
    Pattern(features=[0.0, 0.0], targets=[0.0]),
    Pattern(features=[0.0, 1.0], targets=[1.0]),
    Pattern(features=[1.0, 0.0], targets=[1.0]),
    Pattern(features=[1.0, 1.0], targets=[0.0]),
]


def _parse_int(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    raw = env.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {value}")
    return value


def _parse_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if not value > 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


class ServerConfig:
    """
    Settings for the API server and the network it serves.

    Every field has a default suitable for local development; use
    :meth:`from_env` to override them from the process environment.
    """

    def __init__(
        self,
        topology: Optional[List[int]] = None,
        learning_rate: float = 0.5,
        default_epochs: int = 1000,
        max_epochs: int = 100000,
        seed: Optional[int] = None,
        progress_interval: int = 100,
        cors_origins: Optional[List[str]] = None,
        async_mode: Optional[str] = 'gevent',
        log_level: str = 'INFO',
        is_production: bool = False,
        host: str = '0.0.0.0',
        port: int = 8080,
        activation: str = 'sigmoid'
    ):
        if progress_interval < 1:
            raise ValueError(
                f"progress_interval must be at least 1, got {progress_interval}"
            )
        if default_epochs < 1 or default_epochs > max_epochs:
            raise ValueError(
                f"default_epochs must be between 1 and max_epochs ({max_epochs}), "
                f"got {default_epochs}"
            )

        self.topology = topology or [2, 4, 1]
        self.learning_rate = learning_rate
        self.default_epochs = default_epochs
        self.max_epochs = max_epochs
        self.seed = seed
        self.progress_interval = progress_interval
        self.cors_origins = cors_origins or ['http://localhost:3000']
        self.async_mode = async_mode
        self.log_level = log_level
        self.is_production = is_production
        self.host = host
        self.port = port
        self.activation = activation
        self.default_patterns = list(XOR_PATTERNS)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'ServerConfig':
        """
        Build a configuration from environment variables.

        Raises:
            ValueError: A variable is set to an unusable value
        """
        if env is None:
            env = os.environ

        try:
            topology = parse_topology(env.get('MLP_TOPOLOGY', '2,4,1'))
        except NetworkError as e:
            raise ValueError(f"MLP_TOPOLOGY: {e}") from None

        activation = env.get('MLP_ACTIVATION', 'sigmoid')
        try:
            get_transfer_function(activation)
        except NetworkError as e:
            raise ValueError(f"MLP_ACTIVATION: {e}") from None

        seed_raw = env.get('MLP_SEED')
        seed = _parse_int(env, 'MLP_SEED', 0, minimum=0) if seed_raw else None

        origins = [
            origin.strip()
            for origin in env.get('CORS_ORIGINS', 'http://localhost:3000').split(',')
            if origin.strip()
        ]

        default_epochs = _parse_int(env, 'MLP_DEFAULT_EPOCHS', 1000)
        max_epochs = _parse_int(env, 'MLP_MAX_EPOCHS', 100000)
        if default_epochs > max_epochs:
            raise ValueError(
                f"MLP_DEFAULT_EPOCHS ({default_epochs}) exceeds "
                f"MLP_MAX_EPOCHS ({max_epochs})"
            )

        return cls(
            topology=topology,
            learning_rate=_parse_float(env, 'MLP_LEARNING_RATE', 0.5),
            default_epochs=default_epochs,
            max_epochs=max_epochs,
            seed=seed,
            progress_interval=_parse_int(env, 'MLP_PROGRESS_INTERVAL', 100),
            cors_origins=origins,
            async_mode=env.get('SOCKETIO_ASYNC_MODE', 'gevent') or None,
            log_level=env.get('LOG_LEVEL', 'INFO').upper(),
            is_production=env.get('FLASK_ENV') == 'production',
            host=env.get('HOST', '0.0.0.0'),
            port=_parse_int(env, 'PORT', 8080),
            activation=activation
        )

    def __repr__(self) -> str:
        return (
            f"ServerConfig(topology={self.topology}, "
            f"learning_rate={self.learning_rate}, "
            f"default_epochs={self.default_epochs}, seed={self.seed}, "
            f"async_mode={self.async_mode!r})"
        )
