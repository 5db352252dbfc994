"""
test_state.py
~~~~~~~~~~~~~

Unit tests for the network service and its reader/writer lock.
"""

import threading

import pytest

from mlp_backend.config import XOR_PATTERNS
from mlp_backend.errors import DimensionMismatch, EmptyPatternSet, InvalidTopology
from mlp_backend.network import Pattern
from mlp_backend.state import NetworkService, ReadWriteLock


@pytest.fixture
def service():
    """Create a seeded service with the default [2, 4, 1] topology."""
    return NetworkService([2, 4, 1], 0.5, seed=7)


@pytest.mark.unit
class TestReadWriteLock:
    """Test reader/writer exclusion."""

    def test_readers_share(self):
        """Test that two readers can hold the lock together."""
        lock = ReadWriteLock()
        lock.acquire_read()
        acquired = threading.Event()

        def reader():
            with lock.read_locked():
                acquired.set()

        thread = threading.Thread(target=reader)
        thread.start()
        assert acquired.wait(timeout=2)
        thread.join(timeout=2)
        lock.release_read()

    def test_writer_blocks_readers(self):
        """Test that a held write lock blocks readers."""
        lock = ReadWriteLock()
        lock.acquire_write()
        acquired = threading.Event()

        def reader():
            with lock.read_locked():
                acquired.set()

        thread = threading.Thread(target=reader)
        thread.start()
        assert not acquired.wait(timeout=0.2)

        lock.release_write()
        assert acquired.wait(timeout=2)
        thread.join(timeout=2)

    def test_reader_blocks_writer(self):
        """Test that a held read lock blocks writers."""
        lock = ReadWriteLock()
        lock.acquire_read()
        acquired = threading.Event()

        def writer():
            with lock.write_locked():
                acquired.set()

        thread = threading.Thread(target=writer)
        thread.start()
        assert not acquired.wait(timeout=0.2)

        lock.release_read()
        assert acquired.wait(timeout=2)
        thread.join(timeout=2)

    def test_released_after_exception(self):
        """Test that the write lock is released when the body raises."""
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            with lock.write_locked():
                raise RuntimeError("boom")

        with lock.read_locked():
            pass


@pytest.mark.unit
class TestNetworkService:
    """Test get_state, train, reset and predict."""

    def test_initial_state(self, service):
        """Test the snapshot of a freshly built service."""
        state = service.get_state()

        assert state['epoch'] == 0
        assert state['error'] == 0.0
        assert state['topology'] == [2, 4, 1]
        assert [len(layer['neurons']) for layer in state['layers']] == [2, 4, 1]
        assert all(len(n['weights']) == 0 for n in state['layers'][0]['neurons'])
        assert all(len(n['weights']) == 2 for n in state['layers'][1]['neurons'])

    def test_same_seed_same_state(self):
        """Test that equally seeded services report identical state."""
        first = NetworkService([2, 4, 1], 0.5, seed=3).get_state()
        second = NetworkService([2, 4, 1], 0.5, seed=3).get_state()
        assert first == second

    def test_train_updates_epoch_and_error(self, service):
        """Test that training records epoch and error."""
        state = service.train(XOR_PATTERNS, 25)

        assert state['epoch'] == 25
        assert state['error'] > 0.0
        assert service.epoch == 25
        assert service.error == state['error']

    def test_epochs_accumulate(self, service):
        """Test that epochs add up across training calls."""
        service.train(XOR_PATTERNS, 10)
        state = service.train(XOR_PATTERNS, 15)
        assert state['epoch'] == 25

    def test_snapshot_is_detached(self, service):
        """Test that earlier snapshots do not change after training."""
        before = service.get_state()
        service.train(XOR_PATTERNS, 5)
        after = service.get_state()

        assert before['epoch'] == 0
        assert before['layers'] != after['layers']

    def test_callback_reports_cumulative_epoch(self, service):
        """Test that progress carries both cumulative and run epochs."""
        service.train(XOR_PATTERNS, 3)
        progress = []
        service.train(XOR_PATTERNS, 2, callback=progress.append)

        assert [p['epoch'] for p in progress] == [4, 5]
        assert [p['run_epoch'] for p in progress] == [1, 2]

    def test_rejected_train_leaves_state(self, service):
        """Test that rejected training leaves the state unchanged."""
        service.train(XOR_PATTERNS, 5)
        before = service.get_state()

        with pytest.raises(DimensionMismatch):
            service.train([Pattern([1.0, 0.0, 1.0], [1.0])], 5)
        with pytest.raises(EmptyPatternSet):
            service.train([], 5)

        assert service.get_state() == before

    def test_reset_keeps_topology_by_default(self, service):
        """Test that reset without arguments keeps the topology."""
        service.train(XOR_PATTERNS, 5)
        state = service.reset()

        assert state['topology'] == [2, 4, 1]
        assert state['epoch'] == 0
        assert state['error'] == 0.0

    def test_reset_to_new_topology(self, service):
        """Test resetting to a new topology and learning rate."""
        state = service.reset([3, 5, 2], learning_rate=0.1)

        assert state['topology'] == [3, 5, 2]
        assert state['learning_rate'] == 0.1
        assert service.topology == [3, 5, 2]

    def test_reset_reinitializes_weights(self, service):
        """Test that reset draws new weights."""
        before = service.get_state()
        after = service.reset()
        assert before['layers'][1] != after['layers'][1]

    def test_invalid_reset_leaves_network(self, service):
        """Test that an invalid reset keeps the old network."""
        before = service.get_state()

        with pytest.raises(InvalidTopology):
            service.reset([4])

        assert service.get_state() == before

    def test_predict(self, service):
        """Test that predict writes the output values into the snapshot."""
        outputs = service.predict([1.0, 0.0])

        assert len(outputs) == 1
        assert service.get_state()['layers'][-1]['neurons'][0]['value'] == outputs[0]

    def test_predict_dimension_mismatch(self, service):
        """Test that predict rejects a wrong feature count."""
        with pytest.raises(DimensionMismatch):
            service.predict([1.0])

    def test_concurrent_reads_during_training(self, service):
        """Every snapshot taken while training runs is internally consistent."""
        snapshots = []
        done = threading.Event()

        def poll():
            while not done.is_set():
                snapshots.append(service.get_state())

        poller = threading.Thread(target=poll)
        poller.start()
        try:
            for _ in range(5):
                service.train(XOR_PATTERNS, 20)
        finally:
            done.set()
            poller.join(timeout=5)

        epochs = [s['epoch'] for s in snapshots]
        assert epochs == sorted(epochs)
        assert all(e % 20 == 0 for e in epochs)
