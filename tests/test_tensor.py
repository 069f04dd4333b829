"""
test_tensor.py
~~~~~~~~~~~~~~

Unit tests for the rank-3 Tensor and its SubTensor windows.
"""

import math

import numpy as np
import pytest

from nnlab.common.exceptions import DimensionMismatchError
from nnlab.tensor import Dimension, SubTensor, Tensor

from conftest import TOLERANCE, identity


@pytest.mark.unit
class TestTensorBasics:
    """Construction, layout and element access."""

    def test_shape_and_buffer(self):
        t = Tensor(10, 20, 1)
        assert t.rows == 10
        assert t.cols == 20
        assert t.slices == 1
        assert t.data.shape == (200,)
        assert t.dimension == Dimension(10, 20, 1)

    def test_linear_index_is_slice_major_row_major(self):
        t = Tensor(2, 3, 4)
        assert t.index(0, 0, 0) == 0
        assert t.index(0, 1, 0) == 1
        assert t.index(1, 0, 0) == 3
        assert t.index(0, 0, 1) == 6
        assert t.index(1, 2, 3) == 3 * 6 + 1 * 3 + 2

    def test_set_and_at_share_the_buffer_with_array(self):
        t = Tensor(2, 3, 2)
        t.set(1, 2, 1, 7.5)
        assert t.at(1, 2, 1) == 7.5
        assert t.data[t.index(1, 2, 1)] == 7.5
        assert t.array[1, 1, 2] == 7.5

    def test_wraps_caller_buffer_without_copy(self):
        buffer = np.zeros(6)
        t = Tensor(3, 2, 1, buffer)
        t.set(2, 1, 0, 4.0)
        assert buffer[5] == 4.0

    def test_wrong_buffer_length_raises(self):
        with pytest.raises(DimensionMismatchError):
            Tensor(2, 2, 2, np.zeros(7))

    def test_from_vector_is_a_column(self):
        t = Tensor.from_vector([1, 2, 3])
        assert t.dimension == Dimension(3, 1, 1)
        assert t.at(2, 0, 0) == 3

    def test_random_is_within_minus_one_and_one(self, rng):
        t = Tensor.random(10, 10, 3, rng)
        assert np.all(t.data > -1)
        assert np.all(t.data < 1)
        assert t.data.std() > 0

    def test_random_is_reproducible_with_a_seed(self):
        a = Tensor.random(4, 4, 2, np.random.default_rng(7))
        b = Tensor.random(4, 4, 2, np.random.default_rng(7))
        assert a == b

    def test_equality(self, rng):
        m = Tensor.random(10, 20, 1, rng)
        m_copy = m.copy()
        assert m == m_copy
        assert m is not m_copy
        m.data[2] += 3
        assert m != m_copy

    def test_different_shapes_are_not_equal(self):
        assert Tensor(2, 3, 1) != Tensor(3, 2, 1)


@pytest.mark.unit
class TestTensorArithmetic:
    """Elementwise operations and per-slice matrix products."""

    def test_plus_equals(self, rng):
        m = Tensor.random(5, 1, 1, rng)
        m_copy = m.copy()
        m.plus_equals(m_copy)
        np.testing.assert_allclose(m.data, m_copy.data * 2, atol=TOLERANCE)

    def test_times_equals(self, rng):
        factor = -1.23
        m = Tensor.random(3, 1, 1, rng)
        n = m.copy().times_equals(factor)
        np.testing.assert_allclose(n.data, m.data * factor, atol=TOLERANCE)

    def test_dot_times_equals(self, rng):
        m = Tensor.random(2, 3, 1, rng)
        n = Tensor.random(2, 3, 1, rng)
        n_copy = n.copy()
        n.dot_times_equals(m)
        np.testing.assert_allclose(n.data, m.data * n_copy.data, atol=TOLERANCE)

    def test_minus_returns_a_new_tensor(self, rng):
        m = Tensor.random(3, 5, 1, rng)
        n = Tensor.random(3, 5, 1, rng)
        m_copy = m.copy()
        difference = m.minus(n)
        np.testing.assert_allclose(difference.data, m.data - n.data, atol=TOLERANCE)
        assert m == m_copy

    @pytest.mark.parametrize("operation", ["plus_equals", "dot_times_equals", "minus"])
    def test_elementwise_shape_mismatch_raises(self, operation):
        with pytest.raises(DimensionMismatchError):
            getattr(Tensor(2, 3, 1), operation)(Tensor(3, 2, 1))

    def test_times_identity(self, rng):
        m = Tensor.random(3, 10, 1, rng)
        assert m.times(identity(10)) == m
        assert identity(3).times(m) == m

    def test_times_into_result_storage(self, rng):
        m = Tensor.random(3, 10, 1, rng)
        result = Tensor(3, 10, 1)
        returned = m.times(identity(10), result)
        assert returned is result
        assert result == m

    def test_transpose_products(self):
        m = Tensor(2, 3, 1)
        n = Tensor(3, 2, 1)
        i = 0
        for r in range(2):
            for c in range(3):
                m.set(r, c, 0, i)
                n.set(c, r, 0, i)
                i += 1

        assert m.transpose_times(identity(2)) == n
        assert n.transpose_times(identity(3)) == m
        assert identity(2).times_transpose(n) == m
        assert identity(3).times_transpose(m) == n

    def test_products_are_per_slice(self):
        a = Tensor.from_array([[[1, 2], [3, 4]], [[0, 1], [1, 0]]])
        b = Tensor.from_array([[[1, 0], [0, 1]], [[5, 6], [7, 8]]])
        product = a.times(b)
        np.testing.assert_array_equal(product.array[0], [[1, 2], [3, 4]])
        np.testing.assert_array_equal(product.array[1], [[7, 8], [5, 6]])

    def test_inner_dimension_mismatch_raises(self):
        with pytest.raises(DimensionMismatchError):
            Tensor(2, 3, 1).times(Tensor(2, 3, 1))
        with pytest.raises(DimensionMismatchError):
            Tensor(2, 3, 1).transpose_times(Tensor(3, 3, 1))
        with pytest.raises(DimensionMismatchError):
            Tensor(2, 3, 1).times_transpose(Tensor(2, 2, 1))

    def test_bad_result_storage_raises(self):
        with pytest.raises(DimensionMismatchError):
            identity(2).times(identity(2), Tensor(3, 3, 1))

    def test_norm(self):
        for i in range(1, 10):
            assert identity(i).norm() == pytest.approx(math.sqrt(i), abs=TOLERANCE)

    def test_zero_and_argmax(self):
        t = Tensor.from_vector([0.1, 0.9, 0.9, 0.2])
        assert t.argmax() == 1
        t.zero()
        assert not t.data.any()

    def test_str_and_draw(self):
        t = identity(2)
        assert str(t) == "Slice 0\n 1.000 0.000\n 0.000 1.000"
        assert t.draw() == "@ \n @\n"

    def test_draw_uses_quarter_thresholds(self):
        ramp = Tensor(2, 2, 1, [0, 1, 2, 3])
        assert ramp.draw() == " .\no@\n"

    def test_draw_selects_a_slice(self):
        t = Tensor(1, 2, 2, [0, 1, 1, 0])
        assert t.draw(0) == " @\n"
        assert t.draw(1) == "@ \n"


@pytest.mark.unit
class TestSubTensor:
    """Windows alias their parent's buffer."""

    def test_inner_product(self, depth_two_tensor):
        u = Tensor(2, 2, 2, [
            1, 0,
            0, 1,

            0, 1,
            1, 0,
        ])
        t = depth_two_tensor
        assert t.sub_matrix(1, 1, 1, 2, 2).inner_product(u, 0) == pytest.approx(6)
        assert t.sub_matrix(1, 1, 1, 2, 2).inner_product(u, 1) == pytest.approx(6)
        assert t.sub_matrix(0, 1, 0, 2, 2).inner_product(u, 0) == pytest.approx(8)
        assert t.sub_matrix(0, 1, 0, 2, 2).inner_product(u, 1) == pytest.approx(8)

    def test_inner_product_cube(self, depth_two_tensor):
        ones = Tensor.from_array(np.ones((2, 2, 2)))
        window = depth_two_tensor.sub_tensor(0, 0, 0, 2, 2, 2)
        assert window.inner_product_cube(ones) == pytest.approx(1 + 2 + 4 + 5 + 9 + 8 + 6 + 5)

    def test_plus_equals_slice_times(self, depth_two_tensor):
        t = depth_two_tensor
        window = t.sub_matrix(1, 1, 1, 2, 2)
        window.plus_equals_slice_times(identity(2), 0, 8)

        for r in range(3):
            for c in range(3):
                assert t.at(r, c, 0) == r * 3 + c + 1

        for r in range(3):
            assert t.at(0, r, 1) == 9 - r
            assert t.at(r, 0, 1) == 9 - 3 * r

        assert t.at(1, 2, 1) == 4
        assert t.at(2, 1, 1) == 2
        assert t.at(1, 1, 1) == 13
        assert t.at(2, 2, 1) == 9

    def test_plus_equals_times(self, depth_two_tensor):
        t = depth_two_tensor
        a = t.sub_matrix(0, 0, 0, 2, 2)
        b = t.sub_matrix(1, 1, 1, 2, 2)

        b.plus_equals_times(a, 3)

        assert t.at(1, 1, 1) == 8
        assert t.at(1, 2, 1) == 10
        assert t.at(2, 1, 1) == 14
        assert t.at(2, 2, 1) == 16

    def test_window_reads_and_writes_through_offsets(self, depth_two_tensor):
        window = depth_two_tensor.sub_tensor(1, 1, 0, 2, 2, 2)
        assert isinstance(window, SubTensor)
        assert window.dimension == Dimension(2, 2, 2)
        assert window.at(0, 0, 0) == 5
        assert window.at(1, 1, 1) == 1
        window.set(0, 1, 1, -1)
        assert depth_two_tensor.at(1, 2, 1) == -1
        assert window.index(0, 1, 1) == depth_two_tensor.index(1, 2, 1)

    def test_copy_detaches_from_parent(self, depth_two_tensor):
        copy = depth_two_tensor.sub_matrix(0, 0, 0, 2, 2).copy()
        copy.set(0, 0, 0, 100)
        assert depth_two_tensor.at(0, 0, 0) == 1
        assert copy.dimension == Dimension(2, 2, 1)

    def test_tensor_plus_equals_times_window(self, depth_two_tensor):
        target = Tensor(2, 2, 1)
        target.plus_equals_times(depth_two_tensor.sub_matrix(1, 1, 0, 2, 2), 2)
        np.testing.assert_array_equal(target.array[0], [[10, 12], [16, 18]])

    def test_window_shape_mismatch_raises(self, depth_two_tensor):
        window = depth_two_tensor.sub_matrix(0, 0, 0, 2, 2)
        with pytest.raises(DimensionMismatchError):
            window.inner_product(identity(3), 0)
        with pytest.raises(DimensionMismatchError):
            window.plus_equals_times(identity(3), 1)
