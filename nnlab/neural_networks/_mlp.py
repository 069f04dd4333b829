"""
Plain feed-forward (multi-layer perceptron) network built from the CNN layers.
"""
import numpy as np

from ..tensor import Dimension
from ._cnn import CNN
from .layers import DropoutLayer, FullyConnectedLayer, SigmoidLayer


class FeedForwardNetwork(CNN):
    """
    Dense network of sigmoid neurons.

    ``FeedForwardNetwork(784, 30, 10)`` builds
    FullyConnected(784 => 30), Sigmoid, FullyConnected(30 => 10), Sigmoid.
    Inputs of any shape are flattened into a single vector.

    Dropout is a DropoutLayer after each hidden sigmoid: a mask applied
    multiplicatively, no weights are ever removed from the matrices.
    """

    def __init__(self, *sizes, momentum=0.0, dropout=0.0, rng=None, **kwargs):
        """
        Args:
            *sizes (int): Number of neurons on each layer, INCLUDING the input
            momentum (float): Momentum factor of every fully-connected layer
            dropout (float): Dropout probability of the hidden layers
                (0.0 disables dropout)
            rng (np.random.Generator, optional): Random number generator
            **kwargs: Logging options forwarded to CNN
        """
        if len(sizes) < 2:
            raise ValueError(
                "You must specify at least two layers (including the initial input layer)")
        if rng is None:
            rng = np.random.default_rng()

        layers = []
        n_hidden = len(sizes) - 2
        for i, (n_in, n_out) in enumerate(zip(sizes[:-1], sizes[1:])):
            layers.append(FullyConnectedLayer(n_in, n_out, momentum=momentum, rng=rng))
            if i < n_hidden:
                layers.append(SigmoidLayer())
                if dropout:
                    layers.append(DropoutLayer(dropout, rng=rng))

        self.sizes = tuple(sizes)
        self.momentum = momentum
        self.dropout = dropout
        super().__init__(Dimension(sizes[0], 1, 1), *layers, **kwargs)

    @property
    def weights(self):
        """Weight Tensors of the fully-connected layers, in order."""
        return [weights for layer in self.layers for weights, _ in layer.parameters()]

    @property
    def biases(self):
        """Bias Tensors of the fully-connected layers, in order."""
        return [biases for layer in self.layers for _, biases in layer.parameters()]

    def __repr__(self):
        return f"FeedForwardNetwork{self.sizes}"
