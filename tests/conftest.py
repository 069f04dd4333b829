"""
conftest.py
~~~~~~~~~~~

Shared fixtures and helpers for the nnlab test-suite.
"""

import numpy as np
import pytest

from nnlab.common.utils import Datum
from nnlab.tensor import Tensor

TOLERANCE = 1e-11


def single_datum(value, answer):
    """A single input value that is expected to become a single output value."""
    return Datum(Tensor.from_vector([value]), Tensor.from_vector([answer]), int(value))


def identity(size):
    """Square identity matrix (Tensor of depth 1)."""
    return Tensor.from_array(np.eye(size))


@pytest.fixture
def rng():
    """Seeded generator so parameter initialisation is reproducible."""
    return np.random.default_rng(1234)


@pytest.fixture
def depth_two_tensor():
    """3x3x2 tensor: slice 0 counts up from 1, slice 1 counts down from 9."""
    return Tensor(3, 3, 2, [
        1, 2, 3,
        4, 5, 6,
        7, 8, 9,

        9, 8, 7,
        6, 5, 4,
        3, 2, 1,
    ])
