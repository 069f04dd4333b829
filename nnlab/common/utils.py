import numpy as np

from ..tensor import Dimension, Tensor


class Datum:
    """
    A single training or evaluation sample.

    Args:
        x (Tensor): The input, shaped like the network's input Dimension
        y (Tensor): The expected output
        label (int, optional): Discrete class id of the sample
    """

    __slots__ = ('x', 'y', 'label')

    def __init__(self, x, y, label=None):
        self.x = x
        self.y = y
        self.label = label

    def __iter__(self):
        yield self.x
        yield self.y

    def __repr__(self):
        return f"Datum(x={self.x!r}, y={self.y!r}, label={self.label})"


def one_hot(label, n_classes):
    """Column-vector target with a single 1 at ``label``."""
    target = Tensor(n_classes, 1, 1)
    target.data[label] = 1.0
    return target


def make_data(X, y, input_dimension, n_classes=None):
    """
    Turn numpy arrays into a list of Datum.

    Args:
        X (ndarray): Samples, one per row of shape (N, ...) with
            prod(...) == input_dimension.size. Entries are read in
            (slice, row, col) order.
        y (ndarray): Class ids of shape (N,)
        input_dimension (Dimension or tuple): Shape of each input Tensor
        n_classes (int, optional): Length of the one-hot targets. Defaults
            to max(y) + 1.

    Returns:
        list: One Datum per sample
    """
    input_dimension = Dimension(*input_dimension)
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y).astype(int).ravel()
    if X.shape[0] != y.shape[0]:
        raise ValueError(
            f"X and y have inconsistent numbers of samples: {X.shape[0]} != {y.shape[0]}")
    X = X.reshape(X.shape[0], -1)
    if X.shape[1] != input_dimension.size:
        raise ValueError(
            f"Cannot reshape samples of {X.shape[1]} entries to {input_dimension}")
    if n_classes is None:
        n_classes = int(y.max()) + 1 if y.size else 0

    data = []
    for features, label in zip(X, y):
        x = Tensor(input_dimension.rows, input_dimension.columns,
                   input_dimension.depth, features.copy())
        data.append(Datum(x, one_hot(label, n_classes), int(label)))
    return data


def batches(data, batch_size):
    """
    Yield consecutive full batches of ``data``.

    The incomplete tail (fewer than ``batch_size`` items) is not yielded.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    for start in range(0, len(data) - batch_size + 1, batch_size):
        yield data[start:start + batch_size]
