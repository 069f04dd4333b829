"""
Neural network layers implementation.

Every layer follows the same protocol, driven by the network:

- ``prepare(input_dimension)`` validates the incoming shape, allocates
  parameters on the first call and returns the output shape.
- ``feed_forward(x, training=False)`` returns ``(output, context)``. The
  context carries whatever ``backprop`` needs for this sample.
- ``backprop(delta, context)`` adds this sample's gradient contribution to the
  layer's accumulator and returns the gradient wrt the layer's input.
- ``reset_gradients()`` / ``apply_gradients(reg_term, scale)`` bracket a
  mini-batch.
"""
import numpy as np

from ..common.exceptions import IncompatibleLayerError
from ..tensor import Dimension, Tensor


class Layer:
    """Base class for all neural network layers."""

    has_parameters = False

    def prepare(self, input_dimension):
        """
        Validate the input shape and get the output shape.

        Args:
            input_dimension (Dimension): Shape of the incoming Tensor

        Returns:
            Dimension: Shape of the Tensor this layer emits

        Raises:
            IncompatibleLayerError: If this layer cannot accept the input
        """
        raise NotImplementedError

    def feed_forward(self, x, training=False):
        """Forward pass through the layer."""
        raise NotImplementedError

    def backprop(self, delta, context):
        """Backward pass through the layer."""
        raise NotImplementedError

    def reset_gradients(self):
        """Zero the accumulated gradients (no-op without parameters)."""

    def apply_gradients(self, reg_term, scale):
        """Update the parameters (no-op without parameters)."""

    def parameters(self):
        """List of (weights, biases) Tensor pairs owned by this layer."""
        return []

    def __call__(self, x):
        """Inference shortcut: the output of ``feed_forward`` alone."""
        return self.feed_forward(x)[0]

    def __str__(self):
        return self.__class__.__name__

    def __repr__(self):
        return f"{self.__class__.__name__}()"


# Activation functions
def sigmoid(z):
    """Compute the logistic function."""
    # Clip input to prevent overflow
    z_clipped = np.clip(z, -500, 500)
    return 1 / (1 + np.exp(-z_clipped))


def sigmoid_derivative(z):
    """Derivative of the logistic function at ``z``."""
    s = sigmoid(z)
    return s * (1 - s)


def inplace_relu(x):
    """Compute the rectified linear unit function inplace."""
    np.maximum(x, 0, out=x)


def inplace_relu_derivative(z, delta):
    """Apply the derivative of the relu function inplace."""
    delta[z <= 0] = 0


class ParameterizedLayer(Layer):
    """
    Shared gradient bookkeeping for layers with a weight and a bias Tensor.

    The accumulators ``weight_grad`` / ``bias_grad`` are summed over a
    mini-batch. ``apply_gradients`` scales them in place, so after an update
    they hold the step that was just taken; ``reset_gradients`` keeps
    ``momentum`` times that step and adds it again on the next update.
    """

    has_parameters = True

    def __init__(self, momentum=0.0, rng=None):
        if momentum < 0:
            raise ValueError(f"momentum must be non-negative, got {momentum}")
        if rng is None:
            rng = np.random.default_rng()

        self.momentum = momentum
        self.rng = rng

        # Allocated by prepare()
        self.weights = None
        self.biases = None
        self.weight_grad = None
        self.bias_grad = None
        self._weight_momentum = None
        self._bias_momentum = None

    def _allocate_gradients(self):
        self.weight_grad = Tensor.zeros(self.weights.dimension)
        self.bias_grad = Tensor.zeros(self.biases.dimension)
        self._weight_momentum = Tensor.zeros(self.weights.dimension)
        self._bias_momentum = Tensor.zeros(self.biases.dimension)

    def _gradient_scale(self, scale):
        return scale

    def reset_gradients(self):
        if self.momentum:
            self._weight_momentum = self.weight_grad.copy().times_equals(self.momentum)
            self._bias_momentum = self.bias_grad.copy().times_equals(self.momentum)
        self.weight_grad.zero()
        self.bias_grad.zero()

    def apply_gradients(self, reg_term, scale):
        """
        Update weights and biases from the accumulated gradients.

        Args:
            reg_term (float): L2 weight-decay factor for the weights; 0 skips
                the decay entirely
            scale (float): Step size applied to the accumulated gradients
        """
        scale = -self._gradient_scale(scale)
        if reg_term != 0:
            self.weights.times_equals(reg_term)
        self.weights.plus_equals(self.weight_grad.times_equals(scale))
        self.biases.plus_equals(self.bias_grad.times_equals(scale))
        if self.momentum:
            self.weights.plus_equals(self._weight_momentum)
            self.biases.plus_equals(self._bias_momentum)

    def parameters(self):
        return [(self.weights, self.biases)]


class FullyConnectedLayer(ParameterizedLayer):
    """
    A fully-connected layer contains a number of neurons. Each neuron's output
    is a linear function of all the inputs to this layer: ``y = W x + B``.
    """

    def __init__(self, n_inputs, n_outputs, momentum=0.0, rng=None):
        """
        Args:
            n_inputs (int): Length of the input column vector
            n_outputs (int): Number of neurons
            momentum (float): How much of the previous update is conserved
            rng (np.random.Generator, optional): Random number generator
        """
        if n_inputs < 1 or n_outputs < 1:
            raise ValueError(
                f"Layer sizes must be positive, got {n_inputs} => {n_outputs}")
        super().__init__(momentum=momentum, rng=rng)
        self.n_inputs = n_inputs
        self.n_outputs = n_outputs

    def prepare(self, input_dimension):
        if tuple(input_dimension) != (self.n_inputs, 1, 1):
            raise IncompatibleLayerError(
                self, input_dimension,
                f"a {self.__class__.__name__} can only accept a single column "
                f"vector of {self.n_inputs} entries")

        if self.weights is None:
            self.weights = Tensor.random(self.n_outputs, self.n_inputs, 1, self.rng)
            self.biases = Tensor.random(self.n_outputs, 1, 1, self.rng)
            self._allocate_gradients()

        return Dimension(self.n_outputs, 1, 1)

    def feed_forward(self, x, training=False):
        if x.cols != 1 or x.slices != 1:
            x = Tensor.from_vector(x.data)
        return self.weights.times(x).plus_equals(self.biases), x

    def backprop(self, delta, context):
        x = context
        self.bias_grad.plus_equals(delta)
        self.weight_grad.plus_equals(delta.times_transpose(x))
        return self.weights.transpose_times(delta)

    def __str__(self):
        return (f"{self.__class__.__name__} (input {self.n_inputs} => "
                f"output {self.n_outputs})")

    def __repr__(self):
        return (f"FullyConnectedLayer(n_inputs={self.n_inputs}, "
                f"n_outputs={self.n_outputs}, momentum={self.momentum})")


class SigmoidLayer(Layer):
    """
    Applies the sigmoid function to every entry:
    ``output[r, c, s] = sigmoid(input[r, c, s])``
    """

    def prepare(self, input_dimension):
        return Dimension(*input_dimension)

    def feed_forward(self, x, training=False):
        y = Tensor(x.rows, x.cols, x.slices, sigmoid(x.data))
        return y, x

    def backprop(self, delta, context):
        x = context
        return Tensor(delta.rows, delta.cols, delta.slices,
                      delta.data * sigmoid_derivative(x.data))


class ReLULayer(Layer):
    """A Rectified Linear Unit simply outputs max(0, x) for each input x."""

    def prepare(self, input_dimension):
        return Dimension(*input_dimension)

    def feed_forward(self, x, training=False):
        output = x.data.copy()
        inplace_relu(output)
        return Tensor(x.rows, x.cols, x.slices, output), x

    def backprop(self, delta, context):
        # Only the parts that correspond to positive inputs get backpropagated
        grad_input = delta.data.copy()
        inplace_relu_derivative(context.data, grad_input)
        return Tensor(delta.rows, delta.cols, delta.slices, grad_input)


class MaxPoolingLayer(Layer):
    """
    Combines a stack of feature maps into a single map by selecting the
    highest value found for each pixel across all slices.
    """

    def __init__(self):
        self._input_dimension = None

    def prepare(self, input_dimension):
        self._input_dimension = Dimension(*input_dimension)
        return Dimension(input_dimension.rows, input_dimension.columns, 1)

    def feed_forward(self, x, training=False):
        # argmax keeps the first (lowest) slice index on ties
        winners = np.argmax(x.array, axis=0)
        pooled = np.take_along_axis(x.array, winners[np.newaxis], axis=0)
        return Tensor(x.rows, x.cols, 1, pooled.reshape(-1)), winners

    def backprop(self, delta, context):
        winners = context
        back = Tensor(delta.rows, delta.cols, self._input_dimension.depth)
        np.put_along_axis(back.array, winners[np.newaxis], delta.array, axis=0)
        return back


class FlatteningLayer(Layer):
    """A flattening layer collapses the input into one column vector."""

    def __init__(self):
        self._input_dimension = None

    def prepare(self, input_dimension):
        self._input_dimension = Dimension(*input_dimension)
        return Dimension(self._input_dimension.size, 1, 1)

    def feed_forward(self, x, training=False):
        return Tensor(x.data.shape[0], 1, 1, x.data), None

    def backprop(self, delta, context):
        dim = self._input_dimension
        return Tensor(dim.rows, dim.columns, dim.depth, delta.data)


class DropoutLayer(Layer):
    """
    Dropout layer for regularization during training.

    A fresh boolean mask is drawn on every training forward pass and carried
    in the context, so backprop applies exactly the same mask. Kept entries
    are scaled by 1 / (1 - p); outside training the layer is the identity.
    """

    def __init__(self, p=0.5, rng=None):
        """
        Args:
            p (float): Dropout probability (0.0 to 1.0, exclusive)
            rng (np.random.Generator, optional): Random number generator
        """
        if not 0.0 <= p < 1.0:
            raise ValueError(f"Dropout probability must be in [0, 1), got {p}")
        if rng is None:
            rng = np.random.default_rng()
        self.p = p
        self.rng = rng

    def prepare(self, input_dimension):
        return Dimension(*input_dimension)

    def feed_forward(self, x, training=False):
        if not training or self.p == 0.0:
            return x, None
        mask = self.rng.random(x.data.shape[0]) >= self.p
        output = x.data * mask / (1 - self.p)
        return Tensor(x.rows, x.cols, x.slices, output), mask

    def backprop(self, delta, context):
        mask = context
        if mask is None:
            return delta
        return Tensor(delta.rows, delta.cols, delta.slices,
                      delta.data * mask / (1 - self.p))

    def __repr__(self):
        return f"DropoutLayer(p={self.p})"
