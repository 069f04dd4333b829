"""
nnlab: neural networks built from pluggable layers, trained with mini-batch SGD.
"""
from .common.exceptions import DimensionMismatchError, IncompatibleLayerError
from .common.utils import Datum, batches, make_data, one_hot
from .tensor import Dimension, SubTensor, Tensor
from .neural_networks import (
    CNN,
    ConvolutionalLayer,
    DropoutLayer,
    FeedForwardNetwork,
    FlatteningLayer,
    FullyConnectedLayer,
    MaxPoolingLayer,
    ReLULayer,
    SGDOptimizer,
    SigmoidLayer
)

__version__ = "0.1.0"

__all__ = [
    'CNN',
    'ConvolutionalLayer',
    'Datum',
    'Dimension',
    'DimensionMismatchError',
    'DropoutLayer',
    'FeedForwardNetwork',
    'FlatteningLayer',
    'FullyConnectedLayer',
    'IncompatibleLayerError',
    'MaxPoolingLayer',
    'ReLULayer',
    'SGDOptimizer',
    'SigmoidLayer',
    'SubTensor',
    'Tensor',
    'batches',
    'make_data',
    'one_hot'
]
