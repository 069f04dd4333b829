"""
Convolutional Neural Network: an ordered stack of independently pluggable
layers, trained with mini-batch SGD and backpropagation.
"""
from ..base import BaseNetwork
from ..common.exceptions import IncompatibleLayerError
from ..common.utils import batches
from ..tensor import Dimension
from .layers import FullyConnectedLayer, SigmoidLayer


class CNN(BaseNetwork):
    """
    Network of heterogeneous layers with a sigmoid output.

    Attention: an extra SigmoidLayer is appended after the given layers. Its
    derivative is never applied during training: with the cross-entropy cost,
    ``prediction - target`` already is the gradient wrt the last
    pre-activation, so backpropagation starts at the layer before it.
    """

    def __init__(self, input_dimension, *layers, verbose=False,
                 log_dimensions=False, log_incorrect_answers=False):
        """
        Args:
            input_dimension (Dimension or tuple): Shape of every input Tensor
            *layers (Layer): The layers, in feed-forward order
            verbose (bool): Whether to print accuracy and training progress
            log_dimensions (bool): Whether to print each layer's output shape
                while preparing
            log_incorrect_answers (bool): Whether ``evaluate`` prints every
                misclassified datum

        Raises:
            IncompatibleLayerError: If the layer configuration is inconsistent
        """
        if not layers:
            raise ValueError("A network needs at least one layer")

        self.layers = tuple(layers) + (SigmoidLayer(),)
        self.verbose = verbose
        self.log_dimensions = log_dimensions
        self.log_incorrect_answers = log_incorrect_answers

        self.input_dimension = Dimension(*input_dimension)
        self.output_dimension = self._prepare(self.input_dimension)

    def _prepare(self, input_dimension):
        """Verify the consistency of the layers and allocate their state."""
        if self.log_dimensions:
            print(f"Input: {input_dimension}")
        dimension = input_dimension
        for layer in self.layers:
            dimension = layer.prepare(dimension)
            if self.log_dimensions:
                print(f"{layer.__class__.__name__} => {dimension}")
        return dimension

    def check_dimensionality(self, input_dimension, output_dimension):
        """
        Re-prepare the network for ``input_dimension`` and make sure it emits
        ``output_dimension``.

        The previous configuration is restored when the check fails.

        Raises:
            IncompatibleLayerError: If a layer rejects its input, or the last
                layer will not produce ``output_dimension``
        """
        input_dimension = Dimension(*input_dimension)
        output_dimension = Dimension(*output_dimension)
        try:
            produced = self._prepare(input_dimension)
            if produced != output_dimension:
                last_layer = self.layers[-2] if len(self.layers) > 1 else self.layers[-1]
                raise IncompatibleLayerError(last_layer, output_dimension, is_output=True)
        except IncompatibleLayerError:
            self._prepare(self.input_dimension)
            raise

        self.input_dimension = input_dimension
        self.output_dimension = produced

    @staticmethod
    def _forward(layers, x, training=False):
        contexts = []
        for layer in layers:
            x, context = layer.feed_forward(x, training=training)
            contexts.append(context)
        return x, contexts

    @staticmethod
    def _backward(layers, contexts, delta):
        for layer, context in zip(reversed(layers), reversed(contexts)):
            delta = layer.backprop(delta, context)
        return delta

    def feed_forward(self, x):
        """
        Get the result of running the given feature maps through this network.

        Args:
            x (Tensor): The initial feature maps

        Returns:
            Tensor: Output of the final sigmoid
        """
        output, _ = self._forward(self.layers, x)
        return output

    def run_batch(self, batch, reg_term, eta):
        for layer in self.layers:
            layer.reset_gradients()

        for datum in batch:
            self._backprop(datum.x, datum.y)

        scale = eta / len(batch)
        for layer in self.layers:
            layer.apply_gradients(reg_term, scale)

    def _backprop(self, x, y):
        output, contexts = self._forward(self.layers, x, training=True)
        deltas = output.minus(y)
        # Cross-entropy cost: skip the terminal sigmoid. For quadratic cost
        # the last layer would be included here.
        self._backward(self.layers[:-1], contexts[:-1], deltas)

    def evaluate(self, data):
        """
        Get the fraction of ``data`` this network classifies correctly.

        Args:
            data (sequence of Datum): Samples with (near) one-hot targets

        Returns:
            float: Fraction correct, between 0 and 1
        """
        if len(data) == 0:
            raise ValueError("Cannot evaluate an empty data set")

        n_correct = 0
        for datum in data:
            result = self.feed_forward(datum.x)
            if self.is_correct(result.data, datum.y.data):
                n_correct += 1
            elif self.log_incorrect_answers:
                print(f"Got this one wrong:\n{datum}")
                print(" ".join(f"{value:.3f}" for value in result.data))

        correct = n_correct / len(data)
        if self.verbose:
            print(f"-------------------> Percent correct: {correct * 100:.3f}")
        return correct

    def pre_train(self, data, batch_size, reg_term, eta):
        """
        Experimental: pre-train the layers up to the first fully-connected one.

        The output of a fully-connected layer is a vector in N-dimensional
        space. Inputs of the same class should land close to each other and
        inputs of different classes far apart, so consecutive outputs of each
        batch are pulled together or pushed apart by backpropagating their
        unit difference vector.

        Args:
            data (sequence of Datum): Samples with ``label`` set
            batch_size (int): Size of each mini-batch
            reg_term (float): L2-regularization term (0 = ignore)
            eta (float): Training rate
        """
        pre_layers = []
        for layer in self.layers:
            pre_layers.append(layer)
            if isinstance(layer, FullyConnectedLayer):
                break

        for batch in batches(data, batch_size):
            self._pre_train_batch(pre_layers, batch, reg_term, eta)

    def _pre_train_batch(self, pre_layers, batch, reg_term, eta):
        for layer in pre_layers:
            layer.reset_gradients()

        previous = batch[-1]
        if previous.label is None:
            raise ValueError("Pre-training needs labelled data")
        y1, _ = self._forward(pre_layers, previous.x)
        for datum in batch:
            if datum.label is None:
                raise ValueError("Pre-training needs labelled data")
            y2, contexts = self._forward(pre_layers, datum.x, training=True)
            diff = y2.minus(y1)
            norm = diff.norm()
            if norm != 0:
                # Descent moves y2 against the delta: towards y1 for the same
                # class, away from it otherwise
                sign = 1.0 if datum.label == previous.label else -1.0
                self._backward(pre_layers, contexts, diff.times_equals(sign / norm))
            previous, y1 = datum, y2

        for layer in pre_layers:
            layer.apply_gradients(reg_term, eta / len(batch))

    def __str__(self):
        return "\n".join(str(layer) for layer in self.layers)

    def __repr__(self):
        return (f"CNN(input_dimension={tuple(self.input_dimension)}, "
                f"layers={len(self.layers)})")
