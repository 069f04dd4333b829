"""
Neural networks module: layers, networks and the SGD driver.
"""
from .layers import (
    Layer,
    ParameterizedLayer,
    FullyConnectedLayer,
    SigmoidLayer,
    ReLULayer,
    MaxPoolingLayer,
    FlatteningLayer,
    DropoutLayer
)
from ._conv import ConvolutionalLayer, conv_output_size
from ._cnn import CNN
from ._mlp import FeedForwardNetwork
from .optimizers import SGDOptimizer

__all__ = [
    'Layer',
    'ParameterizedLayer',
    'FullyConnectedLayer',
    'SigmoidLayer',
    'ReLULayer',
    'MaxPoolingLayer',
    'FlatteningLayer',
    'DropoutLayer',
    'ConvolutionalLayer',
    'conv_output_size',
    'CNN',
    'FeedForwardNetwork',
    'SGDOptimizer'
]
