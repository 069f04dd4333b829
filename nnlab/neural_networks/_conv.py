"""
Convolutional layer for feature extraction with learnable kernels.
"""
import numpy as np

from ..common.exceptions import IncompatibleLayerError
from ..tensor import Dimension, Tensor
from .layers import ParameterizedLayer


# Helper Functions
def conv_output_size(input_size, kernel_size, stride):
    """Number of kernel positions along one axis: floor((n - k) / s) + 1."""
    return (input_size - kernel_size) // stride + 1


def get_patches(arr, patch_shape, strides=(1, 1)):
    """
    Extract sliding window patches from a (slices, rows, cols) array.

    Args:
        arr: Input array of shape (slices, rows, cols)
        patch_shape: Tuple (patch_rows, patch_cols)
        strides: Tuple (stride_rows, stride_cols)

    Returns:
        Read-only view of shape (slices, out_rows, out_cols, patch_rows, patch_cols)
    """
    patch_rows, patch_cols = patch_shape
    stride_rows, stride_cols = strides
    patches = np.lib.stride_tricks.sliding_window_view(
        arr, (patch_rows, patch_cols), axis=(1, 2))
    # Apply stride by slicing
    return patches[:, ::stride_rows, ::stride_cols]


def overlap_counts(input_dimension, kernel_shape, strides):
    """
    Count how many kernel positions cover each input pixel.

    Pixels no position covers get a count of 1 so the count can be used as a
    divisor; their gradient is 0 in any case.

    Returns:
        Tensor: Counts of shape ``input_dimension``, identical in every slice
    """
    kernel_rows, kernel_cols = kernel_shape
    stride_rows, stride_cols = strides
    out_rows = conv_output_size(input_dimension.rows, kernel_rows, stride_rows)
    out_cols = conv_output_size(input_dimension.columns, kernel_cols, stride_cols)

    counts = np.zeros((input_dimension.rows, input_dimension.columns))
    for r in range(out_rows):
        for c in range(out_cols):
            row, col = r * stride_rows, c * stride_cols
            counts[row:row + kernel_rows, col:col + kernel_cols] += 1
    counts[counts == 0] = 1

    stacked = np.broadcast_to(counts, (input_dimension.depth,) + counts.shape)
    return Tensor.from_array(stacked)


class ConvolutionalLayer(ParameterizedLayer):
    """
    A convolutional layer is composed of one or more kernels. Each kernel is a
    small (kernel_rows x kernel_cols x input_depth) cube that acts like a single
    neuron of a fully-connected layer, applied at every position of the input.
    Output slice k is the feature map of kernel k.

    All kernels share one weight Tensor: kernel k owns slices
    ``[k*depth, (k+1)*depth)`` and ``kernel(k)`` is a window onto them.
    """

    def __init__(self, n_kernels, kernel_rows, kernel_cols, stride_rows=1,
                 stride_cols=1, momentum=0.0, rng=None):
        """
        Args:
            n_kernels (int): Number of kernels (output slices)
            kernel_rows (int): Kernel height
            kernel_cols (int): Kernel width
            stride_rows (int): Rows skipped between kernel positions
            stride_cols (int): Columns skipped between kernel positions
            momentum (float): How much of the previous update is conserved
            rng (np.random.Generator, optional): Random number generator
        """
        if min(n_kernels, kernel_rows, kernel_cols) < 1:
            raise ValueError(
                f"Kernel count and size must be positive, got {n_kernels} kernels "
                f"of {kernel_rows}x{kernel_cols}")
        if min(stride_rows, stride_cols) < 1:
            raise ValueError(
                f"Strides must be positive, got {stride_rows}x{stride_cols}")
        super().__init__(momentum=momentum, rng=rng)

        self.n_kernels = n_kernels
        self.kernel_shape = (kernel_rows, kernel_cols)
        self.stride = (stride_rows, stride_cols)

        self.input_depth = None
        self.output_rows = None
        self.output_cols = None
        self._kernels = None
        self._overlap = None

    def prepare(self, input_dimension):
        kernel_rows, kernel_cols = self.kernel_shape
        stride_rows, stride_cols = self.stride

        output_rows = conv_output_size(input_dimension.rows, kernel_rows, stride_rows)
        if input_dimension.rows < kernel_rows or output_rows < 1:
            raise IncompatibleLayerError(
                self, input_dimension, f"we would have {output_rows} output rows")
        output_cols = conv_output_size(input_dimension.columns, kernel_cols, stride_cols)
        if input_dimension.columns < kernel_cols or output_cols < 1:
            raise IncompatibleLayerError(
                self, input_dimension, f"we would have {output_cols} output columns")
        if self.input_depth is not None and input_dimension.depth != self.input_depth:
            raise IncompatibleLayerError(
                self, input_dimension,
                f"kernels were built for input depth {self.input_depth}")

        if self.weights is None:
            self.input_depth = input_dimension.depth
            self.weights = Tensor.random(kernel_rows, kernel_cols,
                                         self.n_kernels * self.input_depth, self.rng)
            self.biases = Tensor.random(self.n_kernels, 1, 1, self.rng)
            self._allocate_gradients()
            self._kernels = [
                self.weights.sub_tensor(0, 0, k * self.input_depth,
                                        kernel_rows, kernel_cols, self.input_depth)
                for k in range(self.n_kernels)
            ]

        self.output_rows = output_rows
        self.output_cols = output_cols
        self._overlap = overlap_counts(input_dimension, self.kernel_shape, self.stride)

        return Dimension(output_rows, output_cols, self.n_kernels)

    def kernel(self, k):
        """Window onto the weights of kernel ``k``."""
        return self._kernels[k]

    def _kernel_array(self):
        kernel_rows, kernel_cols = self.kernel_shape
        return self.weights.array.reshape(
            self.n_kernels, self.input_depth, kernel_rows, kernel_cols)

    def feed_forward(self, x, training=False):
        patches = get_patches(x.array, self.kernel_shape, self.stride)
        # (kernels, depth, kr, kc) . (depth, out_r, out_c, kr, kc) -> (kernels, out_r, out_c)
        output = np.tensordot(self._kernel_array(), patches,
                              axes=([1, 2, 3], [0, 3, 4]))
        output += self.biases.data[:, np.newaxis, np.newaxis]
        return Tensor.from_array(output), patches

    def backprop(self, delta, context):
        patches = context
        kernel_rows, kernel_cols = self.kernel_shape
        stride_rows, stride_cols = self.stride
        kernels = self._kernel_array()

        self.bias_grad.data += delta.array.sum(axis=(1, 2))
        # (kernels, out_r, out_c) . (depth, out_r, out_c, kr, kc) -> (kernels, depth, kr, kc)
        weight_grad = np.tensordot(delta.array, patches, axes=([1, 2], [1, 2]))
        self.weight_grad.array += weight_grad.reshape(self.weight_grad.array.shape)

        back = Tensor(self._overlap.rows, self._overlap.cols, self.input_depth)
        for r in range(self.output_rows):
            for c in range(self.output_cols):
                window = back.sub_tensor(r * stride_rows, c * stride_cols, 0,
                                         kernel_rows, kernel_cols, self.input_depth)
                # Overlapping windows accumulate
                window.array += np.tensordot(delta.array[:, r, c], kernels, axes=1)

        back.data /= self._overlap.data
        return back

    def _gradient_scale(self, scale):
        # Each kernel was applied out_rows*out_cols times per sample
        return scale / (self.output_rows * self.output_cols)

    def __str__(self):
        kernel_rows, kernel_cols = self.kernel_shape
        stride_rows, stride_cols = self.stride
        return (f"{self.__class__.__name__} ({self.n_kernels} kernels of "
                f"{kernel_rows}x{kernel_cols}, skip rows={stride_rows} cols={stride_cols})")

    def __repr__(self):
        kernel_rows, kernel_cols = self.kernel_shape
        stride_rows, stride_cols = self.stride
        return (f"ConvolutionalLayer(n_kernels={self.n_kernels}, "
                f"kernel_rows={kernel_rows}, kernel_cols={kernel_cols}, "
                f"stride_rows={stride_rows}, stride_cols={stride_cols})")
