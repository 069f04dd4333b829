"""
Tensor algebra used by the neural network layers.
"""
from ._tensor import Dimension, SubTensor, Tensor

__all__ = [
    'Dimension',
    'SubTensor',
    'Tensor'
]
