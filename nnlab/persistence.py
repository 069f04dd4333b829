"""
persistence.py
~~~~~~~~~~~~~~

Binary persistence of network parameters.

Everything is big-endian: int32 headers and float64 payloads, each Tensor
written in buffer order (slice by slice, row-major within a slice).

Two layouts are supported:

- parameters of any prepared network (``save_parameters``/``load_parameters``):
  the number of parameterized layers, then for each weight and bias Tensor its
  (rows, cols, slices) header followed by its entries;
- dense networks (``save_dense``/``load_dense``): the number of layer sizes
  including the input, the input size, then per layer its output size, its
  weights and its biases. This is enough to rebuild the network from scratch.
"""
import logging
from contextlib import contextmanager
from typing import IO, Generator, List, Union

import numpy as np

from .common.exceptions import IncompatibleLayerError
from .neural_networks import FeedForwardNetwork, FullyConnectedLayer
from .tensor import Dimension

# Configure module logger
logger = logging.getLogger(__name__)

_INT = np.dtype('>i4')
_DOUBLE = np.dtype('>f8')

Target = Union[str, IO[bytes]]


@contextmanager
def _open(target: Target, mode: str) -> Generator[IO[bytes], None, None]:
    """
    Context manager yielding a binary stream.

    Args:
        target: Path of a file, or an already open binary stream (left open)
        mode: 'rb' or 'wb'

    Yields:
        Binary stream to read from or write to
    """
    if hasattr(target, 'read') or hasattr(target, 'write'):
        yield target
        return
    with open(target, mode) as fp:
        yield fp


def _write_ints(fp: IO[bytes], *values: int) -> None:
    fp.write(np.array(values, dtype=_INT).tobytes())


def _read_exactly(fp: IO[bytes], n_bytes: int) -> bytes:
    raw = fp.read(n_bytes)
    if len(raw) != n_bytes:
        raise ValueError(
            f"Truncated stream: expected {n_bytes} bytes, got {len(raw)}")
    return raw


def _read_ints(fp: IO[bytes], count: int) -> List[int]:
    raw = _read_exactly(fp, count * _INT.itemsize)
    return [int(v) for v in np.frombuffer(raw, dtype=_INT)]


def _write_payload(fp: IO[bytes], values: np.ndarray) -> None:
    fp.write(np.asarray(values, dtype=_DOUBLE).tobytes())


def _read_payload(fp: IO[bytes], size: int) -> np.ndarray:
    raw = _read_exactly(fp, size * _DOUBLE.itemsize)
    return np.frombuffer(raw, dtype=_DOUBLE).astype(np.float64)


def _parameterized_layers(network):
    return [layer for layer in network.layers if layer.has_parameters]


def save_parameters(network, target: Target) -> None:
    """
    Serialize the weights and biases of every parameterized layer.

    Args:
        network: Prepared network (CNN or subclass)
        target: Path or binary stream to write to
    """
    layers = _parameterized_layers(network)
    with _open(target, 'wb') as fp:
        _write_ints(fp, len(layers))
        for layer in layers:
            for weights, biases in layer.parameters():
                for tensor in (weights, biases):
                    _write_ints(fp, tensor.rows, tensor.cols, tensor.slices)
                    _write_payload(fp, tensor.data)
    logger.info(f"Saved parameters of {len(layers)} layer(s)")


def load_parameters(network, target: Target) -> None:
    """
    Overwrite the parameters of ``network`` with ones saved by
    :func:`save_parameters`.

    Every stored header must match the network's own Tensors exactly. On
    failure the network is left unchanged.

    Args:
        network: Prepared network with the same architecture as the saved one
        target: Path or binary stream to read from

    Raises:
        IncompatibleLayerError: If a stored shape does not match its layer
        ValueError: If the layer count differs or the stream is truncated
    """
    layers = _parameterized_layers(network)
    payloads = []
    with _open(target, 'rb') as fp:
        (count,) = _read_ints(fp, 1)
        if count != len(layers):
            raise ValueError(
                f"Stream holds {count} parameterized layer(s), network has {len(layers)}")

        for layer in layers:
            for weights, biases in layer.parameters():
                for name, tensor in (('weights', weights), ('biases', biases)):
                    stored = Dimension(*_read_ints(fp, 3))
                    if stored != tensor.dimension:
                        raise IncompatibleLayerError(
                            layer, stored,
                            f"stored {name} do not match the layer's {tensor.dimension}")
                    payloads.append((tensor, _read_payload(fp, stored.size)))

    # The network is only touched once the whole stream has been validated
    for tensor, values in payloads:
        tensor.data[:] = values
    for layer in layers:
        logger.debug(f"Loaded parameters of {layer}")
    logger.info(f"Loaded parameters of {len(layers)} layer(s)")


def save_dense(network, target: Target) -> None:
    """
    Serialize a dense network (sizes, weights and biases).

    Args:
        network: Network whose parameterized layers are all fully-connected
        target: Path or binary stream to write to

    Raises:
        ValueError: If the network has a parameterized layer that is not
            fully-connected, or none at all
    """
    layers = _parameterized_layers(network)
    if not layers or not all(isinstance(layer, FullyConnectedLayer) for layer in layers):
        raise ValueError("Only networks of fully-connected layers can be saved as dense")

    with _open(target, 'wb') as fp:
        _write_ints(fp, len(layers) + 1, layers[0].n_inputs)
        for layer in layers:
            _write_ints(fp, layer.n_outputs)
            _write_payload(fp, layer.weights.data)
            _write_payload(fp, layer.biases.data)
    logger.info(
        f"Saved dense network {[layers[0].n_inputs] + [l.n_outputs for l in layers]}")


def load_dense(target: Target, **kwargs) -> FeedForwardNetwork:
    """
    Rebuild a dense network saved by :func:`save_dense`.

    Args:
        target: Path or binary stream to read from
        **kwargs: Options forwarded to FeedForwardNetwork (momentum, verbose...)

    Returns:
        FeedForwardNetwork: Network whose shapes match the stored headers

    Raises:
        ValueError: If the stream is malformed or truncated
    """
    with _open(target, 'rb') as fp:
        n_sizes, input_size = _read_ints(fp, 2)
        if n_sizes < 2 or input_size < 1:
            raise ValueError(
                f"Malformed header: {n_sizes} layer sizes, input size {input_size}")

        sizes = [input_size]
        payloads = []
        for _ in range(n_sizes - 1):
            (size,) = _read_ints(fp, 1)
            if size < 1:
                raise ValueError(f"Malformed header: layer size {size}")
            weights = _read_payload(fp, size * sizes[-1])
            biases = _read_payload(fp, size)
            payloads.append((weights, biases))
            sizes.append(size)

    network = FeedForwardNetwork(*sizes, **kwargs)
    for layer, (weights, biases) in zip(_parameterized_layers(network), payloads):
        layer.weights.data[:] = weights
        layer.biases.data[:] = biases
    logger.info(f"Loaded dense network {sizes}")
    return network
