"""
Shared helpers: exceptions and data containers (``nnlab.common.utils``).
"""
from .exceptions import DimensionMismatchError, IncompatibleLayerError

__all__ = [
    'DimensionMismatchError',
    'IncompatibleLayerError'
]
