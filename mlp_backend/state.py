"""
state.py
~~~~~~~~

Ownership of the served network.

``NetworkService`` holds the one network the server exposes together with the
epoch count and error of the last training run. Reads take the shared side of
a reader/writer lock and anything that touches the network's cached values or
weights takes the exclusive side, so a snapshot never shows a network halfway
through a pattern.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generator, List, Optional, Sequence

import numpy as np

from mlp_backend.network import Network, Pattern
from mlp_backend.serialization import network_snapshot
from mlp_backend.transfer import SIGMOID, TransferFunction

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """
    Many readers or one writer.

    Waiting writers block new readers so a steady stream of state polls
    cannot starve a training request.
    """

    def __init__(self):
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._condition:
            while self._writer or self._waiting_writers:
                self._condition.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._condition:
            self._readers -= 1
            if self._readers == 0:
                self._condition.notify_all()

    def acquire_write(self) -> None:
        with self._condition:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._condition.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._condition:
            self._writer = False
            self._condition.notify_all()

    @contextmanager
    def read_locked(self) -> Generator[None, None, None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Generator[None, None, None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class NetworkService:
    """
    Thread-safe handle on a single network.

    Args:
        topology: Layer widths used for the initial network and by reset()
        learning_rate: Learning rate used for the initial network and by reset()
        transfer: Activation pair for every network this service builds
        seed: Seed for the random generator shared by all builds
    """

    def __init__(
        self,
        topology: Sequence[int],
        learning_rate: float,
        transfer: TransferFunction = SIGMOID,
        seed: Optional[int] = None
    ):
        self._lock = ReadWriteLock()
        self._rng = np.random.default_rng(seed)
        self._transfer = transfer
        self._network = Network.build(topology, learning_rate, transfer, rng=self._rng)
        self._epoch = 0
        self._error = 0.0

        logger.info(
            f"Created network {self._network.sizes} with "
            f"learning rate {learning_rate}"
        )

    def get_state(self) -> Dict[str, Any]:
        """Snapshot of every layer plus the last epoch count and error."""
        with self._lock.read_locked():
            return network_snapshot(self._network, self._epoch, self._error)

    @property
    def topology(self) -> List[int]:
        with self._lock.read_locked():
            return self._network.sizes

    @property
    def epoch(self) -> int:
        with self._lock.read_locked():
            return self._epoch

    @property
    def error(self) -> float:
        with self._lock.read_locked():
            return self._error

    def train(
        self,
        patterns: Sequence[Pattern],
        epochs: int,
        callback: Optional[Callable[[Dict[str, Any]], None]] = None
    ) -> Dict[str, Any]:
        """
        Train the network in place and return the updated snapshot.

        The epoch counter accumulates across calls until the next reset.
        Validation errors from the network propagate unchanged and leave the
        network, epoch and error untouched.
        """
        with self._lock.write_locked():
            start_epoch = self._epoch

            def on_epoch_complete(progress: Dict[str, Any]) -> None:
                self._epoch = start_epoch + progress['epoch']
                self._error = progress['error']
                if callback:
                    callback(dict(progress, epoch=self._epoch, run_epoch=progress['epoch']))

            self._network.train(patterns, epochs, callback=on_epoch_complete)

            logger.info(
                f"Trained {epochs} epoch(s) on {len(patterns)} pattern(s): "
                f"epoch {self._epoch}, error {self._error:.6f}"
            )
            return network_snapshot(self._network, self._epoch, self._error)

    def predict(self, features: Sequence[float]) -> List[float]:
        """Run a forward pass; exclusive because it rewrites cached values."""
        with self._lock.write_locked():
            return self._network.execute(Pattern(features, []))

    def reset(
        self,
        topology: Optional[Sequence[int]] = None,
        learning_rate: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Replace the network with a freshly initialized one.

        Omitted arguments keep the current topology and learning rate. The
        new network is built before the old one is dropped, so an invalid
        topology leaves the service as it was.
        """
        with self._lock.write_locked():
            if topology is None:
                topology = self._network.sizes
            if learning_rate is None:
                learning_rate = self._network.learning_rate

            self._network = Network.build(
                topology, learning_rate, self._transfer, rng=self._rng
            )
            self._epoch = 0
            self._error = 0.0

            logger.info(
                f"Reset network to {self._network.sizes} with "
                f"learning rate {learning_rate}"
            )
            return network_snapshot(self._network, self._epoch, self._error)
