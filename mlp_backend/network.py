"""
network.py
~~~~~~~~~~

A fully-connected feedforward network trained with online backpropagation.

The network is stored neuron by neuron: every layer holds an ordered list of
``NeuronUnit`` objects and neuron ``j`` of layer ``l`` keeps one weight per
neuron of layer ``l - 1``, so ``weights[i]`` always belongs to neuron ``i`` of
the previous layer. Layer 0 is the input layer; its neurons only hold the
features of the pattern being evaluated.

Training is plain per-pattern stochastic gradient descent: every pattern is
evaluated, its error is propagated back, and the weights are updated before
the next pattern is looked at.
"""

import time
import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence

import numpy as np

from mlp_backend.errors import (
    DimensionMismatch,
    EmptyPatternSet,
    InvalidEpochCount,
    InvalidTopology,
)
from mlp_backend.transfer import SIGMOID, TransferFunction

logger = logging.getLogger(__name__)

# Weights and biases are drawn from [-INIT_RANGE, INIT_RANGE)
INIT_RANGE = 1.0

# Per-neuron learning rate, stored but not used by the update rule
DEFAULT_NEURON_LEARNING_RATE = 0.1


class Pattern(NamedTuple):
    """One training example: input features and the expected outputs."""

    features: Sequence[float]
    targets: Sequence[float]


class NeuronUnit:
    """A single unit: incoming weights, bias, last activation and last delta."""

    def __init__(
        self,
        weights: Sequence[float],
        bias: float = 0.0,
        learning_rate: float = DEFAULT_NEURON_LEARNING_RATE
    ):
        self.weights = np.asarray(weights, dtype=float)
        self.bias = bias
        self.learning_rate = learning_rate
        self.value = 0.0
        self.delta = 0.0

    @classmethod
    def random(
        cls,
        num_inputs: int,
        rng: np.random.Generator
    ) -> 'NeuronUnit':
        """Create a unit with weights and bias uniform in the init range."""
        weights = rng.uniform(-INIT_RANGE, INIT_RANGE, size=num_inputs)
        bias = float(rng.uniform(-INIT_RANGE, INIT_RANGE))
        return cls(weights, bias)

    def __repr__(self) -> str:
        return (
            f"NeuronUnit(inputs={len(self.weights)}, bias={self.bias:.4f}, "
            f"value={self.value:.4f})"
        )


class Layer:
    """An ordered group of units fed by the same previous layer."""

    def __init__(self, neurons: List[NeuronUnit]):
        self.neurons = neurons
        self.length = len(neurons)

    @classmethod
    def random(
        cls,
        num_neurons: int,
        num_inputs: int,
        rng: np.random.Generator
    ) -> 'Layer':
        return cls([NeuronUnit.random(num_inputs, rng) for _ in range(num_neurons)])

    def values(self) -> np.ndarray:
        """Cached activations of every unit, in neuron order."""
        return np.array([neuron.value for neuron in self.neurons])

    def __len__(self) -> int:
        return self.length

    def __iter__(self):
        return iter(self.neurons)

    def __getitem__(self, index: int) -> NeuronUnit:
        return self.neurons[index]


class Network:
    """
    Multilayer perceptron with a shared transfer function pair.

    Build instances with :meth:`build`. The object is mutated in place by
    :meth:`execute` (cached values), :meth:`back_propagate` (deltas, weights,
    biases) and :meth:`train`; nothing else ever adds or removes layers.
    """

    def __init__(
        self,
        layers: List[Layer],
        learning_rate: float,
        transfer: TransferFunction = SIGMOID
    ):
        self.layers = layers
        self.learning_rate = learning_rate
        self.transfer = transfer

    @classmethod
    def build(
        cls,
        layer_widths: Sequence[int],
        learning_rate: float,
        transfer: TransferFunction = SIGMOID,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None
    ) -> 'Network':
        """
        Create a network with randomly initialized weights and biases.

        Args:
            layer_widths: Neurons per layer, input layer first
            learning_rate: Step size applied to every weight update
            transfer: Activation pair used by every non-input neuron
            rng: Random generator to draw from (takes precedence over seed)
            seed: Seed for a fresh generator when rng is not given

        Raises:
            InvalidTopology: Fewer than two layers, or a non-positive width
        """
        widths = list(layer_widths)
        if len(widths) < 2:
            raise InvalidTopology(
                f"A network needs at least 2 layers, got {len(widths)}"
            )
        for width in widths:
            if isinstance(width, bool) or not isinstance(width, (int, np.integer)) or width < 1:
                raise InvalidTopology(
                    f"Layer widths must be positive integers, got {widths}"
                )

        if rng is None:
            rng = np.random.default_rng(seed)

        layers = [Layer.random(widths[0], 0, rng)]
        for previous, width in zip(widths, widths[1:]):
            layers.append(Layer.random(width, previous, rng))

        logger.debug(
            f"Built network {widths} with learning rate {learning_rate} "
            f"and {transfer.name} activation"
        )
        return cls(layers, learning_rate, transfer)

    # ------------------------------------------------------------------
    # Shape helpers
    # ------------------------------------------------------------------

    @property
    def sizes(self) -> List[int]:
        """Layer widths, input layer first."""
        return [layer.length for layer in self.layers]

    @property
    def input_layer(self) -> Layer:
        return self.layers[0]

    @property
    def output_layer(self) -> Layer:
        return self.layers[-1]

    def check_features(self, features: Sequence[float], index: Optional[int] = None) -> None:
        if len(features) != self.input_layer.length:
            raise DimensionMismatch(
                'features', self.input_layer.length, len(features), index
            )

    def check_targets(self, targets: Sequence[float], index: Optional[int] = None) -> None:
        if len(targets) != self.output_layer.length:
            raise DimensionMismatch(
                'targets', self.output_layer.length, len(targets), index
            )

    def check_patterns(self, patterns: Sequence[Pattern]) -> None:
        """Validate a whole pattern set before anything is mutated."""
        if len(patterns) == 0:
            raise EmptyPatternSet()
        for index, pattern in enumerate(patterns):
            self.check_features(pattern.features, index)
            self.check_targets(pattern.targets, index)

    # ------------------------------------------------------------------
    # Forward and backward passes
    # ------------------------------------------------------------------

    def execute(self, pattern: Pattern) -> List[float]:
        """
        Run a forward pass and return the output layer's values.

        Every neuron's cached value is overwritten. Layers are visited in
        index order since each one reads the values just written to the
        layer before it.
        """
        self.check_features(pattern.features)

        for neuron, feature in zip(self.input_layer, pattern.features):
            neuron.value = float(feature)

        function = self.transfer.function
        for previous, layer in zip(self.layers, self.layers[1:]):
            inputs = previous.values()
            for neuron in layer:
                total = neuron.bias + float(np.dot(neuron.weights, inputs))
                neuron.value = function(total)

        return [neuron.value for neuron in self.output_layer]

    def back_propagate(self, pattern: Pattern, outputs: Sequence[float]) -> float:
        """
        Propagate the error of the last :meth:`execute` call and update weights.

        Must be called right after ``execute(pattern)``: the deltas and the
        weight updates read the values cached by that forward pass.

        Returns:
            Mean squared error of this pattern, for reporting only
        """
        self.check_targets(pattern.targets)
        if len(outputs) != self.output_layer.length:
            raise DimensionMismatch(
                'outputs', self.output_layer.length, len(outputs)
            )

        derivative = self.transfer.derivative

        squared_error = 0.0
        for neuron, target, output in zip(self.output_layer, pattern.targets, outputs):
            error = target - output
            squared_error += error * error
            neuron.delta = error * derivative(output)

        # Hidden layers, output side first; the input layer has no delta
        for index in range(len(self.layers) - 2, 0, -1):
            layer = self.layers[index]
            next_layer = self.layers[index + 1]
            next_deltas = np.array([neuron.delta for neuron in next_layer])
            for i, neuron in enumerate(layer):
                incoming = np.array([unit.weights[i] for unit in next_layer])
                error = float(np.dot(next_deltas, incoming))
                neuron.delta = error * derivative(neuron.value)

        for previous, layer in zip(self.layers, self.layers[1:]):
            inputs = previous.values()
            for neuron in layer:
                step = self.learning_rate * neuron.delta
                neuron.weights += step * inputs
                neuron.bias += step

        return squared_error / self.output_layer.length

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(
        self,
        patterns: Sequence[Pattern],
        epochs: int,
        callback: Optional[Callable[[Dict[str, Any]], None]] = None
    ) -> float:
        """
        Train with online gradient descent for a fixed number of epochs.

        Patterns are visited in the given order every epoch and weights are
        updated after each one. All validation happens before the first
        update, so a rejected call leaves the network untouched.

        Args:
            patterns: Training set; every pattern must match the network shape
            epochs: Number of passes over the training set (at least 1)
            callback: Called after every epoch with progress information

        Returns:
            Mean of the per-pattern mean squared errors in the final epoch
        """
        if isinstance(epochs, bool) or not isinstance(epochs, (int, np.integer)) or epochs < 1:
            raise InvalidEpochCount(
                f"epochs must be a positive integer, got {epochs!r}"
            )
        self.check_patterns(patterns)

        start_time = time.time()
        epoch_error = 0.0

        for epoch in range(1, epochs + 1):
            total_error = 0.0
            for pattern in patterns:
                outputs = self.execute(pattern)
                total_error += self.back_propagate(pattern, outputs)
            epoch_error = total_error / len(patterns)

            if callback:
                callback({
                    'epoch': epoch,
                    'total_epochs': epochs,
                    'error': epoch_error,
                    'elapsed_time': time.time() - start_time
                })

        logger.debug(
            f"Trained {self.sizes} for {epochs} epoch(s) on "
            f"{len(patterns)} pattern(s): error {epoch_error:.6f}"
        )
        return epoch_error

    def evaluate(self, patterns: Sequence[Pattern]) -> float:
        """Mean of per-pattern mean squared errors, without updating weights."""
        self.check_patterns(patterns)

        total_error = 0.0
        for pattern in patterns:
            outputs = self.execute(pattern)
            total_error += sum(
                (target - output) ** 2
                for target, output in zip(pattern.targets, outputs)
            ) / self.output_layer.length
        return total_error / len(patterns)

    def __repr__(self) -> str:
        return (
            f"Network(sizes={self.sizes}, learning_rate={self.learning_rate}, "
            f"activation={self.transfer.name!r})"
        )
