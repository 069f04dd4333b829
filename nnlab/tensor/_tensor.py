"""
Rank-3 tensor primitive used by every layer.

A Tensor keeps its entries in a flat float64 buffer laid out slice by slice,
row-major within each slice, so entry (r, c, s) lives at
``s*rows*cols + r*cols + c``. ``Tensor.array`` is a (slices, rows, cols) view
of the same buffer and is what the vectorised kernels operate on.
"""
from collections import namedtuple

import numpy as np

from ..common.exceptions import DimensionMismatchError


class Dimension(namedtuple("Dimension", ["rows", "columns", "depth"])):
    """The shape of the input or output of a layer."""

    __slots__ = ()

    @property
    def size(self):
        """Total number of entries."""
        return self.rows * self.columns * self.depth

    def __str__(self):
        return f"rows={self.rows} cols={self.columns} depth={self.depth}"


class Tensor:
    """
    Dense rank-3 array of doubles with shape (rows, cols, slices).

    The shape never changes; the content is mutable. When constructed over a
    caller-supplied buffer the Tensor aliases it instead of copying.
    """

    def __init__(self, rows, cols, slices, data=None):
        """
        Args:
            rows (int): Number of rows per slice
            cols (int): Number of columns per slice
            slices (int): Number of slices (depth)
            data (array-like, optional): Flat buffer of rows*cols*slices
                entries. A float64 ndarray is aliased, anything else is copied.
        """
        self.rows = rows
        self.cols = cols
        self.slices = slices
        size = rows * cols * slices
        if data is None:
            self.data = np.zeros(size)
        else:
            data = np.ascontiguousarray(data, dtype=np.float64)
            if data.ndim != 1:
                data = data.reshape(-1)
            if data.shape[0] != size:
                raise DimensionMismatchError(
                    f"Expected {size} entries for {self.dimension}, got {data.shape[0]}")
            self.data = data
        self.array = self.data.reshape(slices, rows, cols)

    @classmethod
    def from_vector(cls, values):
        """Create a column vector."""
        values = np.asarray(values, dtype=np.float64).reshape(-1)
        return cls(values.shape[0], 1, 1, values)

    @classmethod
    def zeros(cls, dimension):
        """Create an all-zero Tensor of the given Dimension."""
        return cls(dimension.rows, dimension.columns, dimension.depth)

    @classmethod
    def from_array(cls, array):
        """
        Wrap a (slices, rows, cols) or (rows, cols) array.

        Args:
            array (ndarray): Source entries, copied into a new buffer

        Returns:
            Tensor: Tensor with the same entries
        """
        array = np.array(array, dtype=np.float64)
        if array.ndim == 2:
            array = array[np.newaxis]
        if array.ndim != 3:
            raise ValueError(f"Unsupported array shape: {array.shape}")
        slices, rows, cols = array.shape
        return cls(rows, cols, slices, array.reshape(-1))

    @classmethod
    def random(cls, rows, cols, slices, rng=None):
        """
        Get a Tensor filled with random values between -1 and 1.

        Each entry is the difference of two uniform draws from [0, 1).

        Args:
            rows (int): Number of rows
            cols (int): Number of columns
            slices (int): Number of slices
            rng (np.random.Generator, optional): Random number generator

        Returns:
            Tensor: The new random Tensor
        """
        if rng is None:
            rng = np.random.default_rng()
        size = rows * cols * slices
        return cls(rows, cols, slices, rng.random(size) - rng.random(size))

    @property
    def dimension(self):
        return Dimension(self.rows, self.cols, self.slices)

    def _check_dimensions(self, other):
        if (self.rows, self.cols, self.slices) != (other.rows, other.cols, other.slices):
            raise DimensionMismatchError(
                f"Incompatible dimensions: I am {self.dimension}, t is {other.dimension}")

    # Element access. Bounds are the caller's responsibility.

    def index(self, row, col, slice_):
        """Get the index in ``data`` for the given entry."""
        return slice_ * self.rows * self.cols + row * self.cols + col

    def at(self, row, col, slice_):
        return self.data[slice_ * self.rows * self.cols + row * self.cols + col]

    def set(self, row, col, slice_, value):
        self.data[slice_ * self.rows * self.cols + row * self.cols + col] = value

    # Elementwise arithmetic

    def minus(self, t):
        """Get a new Tensor equal to (self - t)."""
        self._check_dimensions(t)
        return Tensor(self.rows, self.cols, self.slices, self.data - t.data)

    def plus_equals(self, t):
        """Set self = self + t and return self."""
        self._check_dimensions(t)
        self.data += t.data
        return self

    def times_equals(self, d):
        """Set self = self * d (for each element) and return self."""
        self.data *= d
        return self

    def dot_times_equals(self, t):
        """Elementwise multiplication with the given Tensor, in place."""
        self._check_dimensions(t)
        self.data *= t.data
        return self

    def plus_equals_times(self, window, d):
        """
        Set self = self + window * d.

        Args:
            window (SubTensor or Tensor): Operand of the same shape as self
            d (float): Scale factor

        Returns:
            Tensor: self
        """
        self._check_dimensions(window)
        self.array += window.array * d
        return self

    # Per-slice matrix products

    def _result(self, rows, cols, result):
        if result is None:
            return Tensor(rows, cols, self.slices)
        if result.dimension != (rows, cols, self.slices):
            raise DimensionMismatchError(
                f"Bad result dimension {result.dimension}, expected "
                f"{Dimension(rows, cols, self.slices)}")
        return result

    def times(self, t, result=None):
        """
        For each slice i, compute self[i] * t[i].

        Args:
            t (Tensor): Right operand with t.rows == self.cols
            result (Tensor, optional): Storage for the result

        Returns:
            Tensor: The result (``result`` when given)
        """
        if t.slices != self.slices or t.rows != self.cols:
            raise DimensionMismatchError(
                f"Bad tensor dimension: I am {self.dimension}, t is {t.dimension}")
        result = self._result(self.rows, t.cols, result)
        np.matmul(self.array, t.array, out=result.array)
        return result

    def transpose_times(self, t, result=None):
        """For each slice i, compute transpose(self[i]) * t[i]."""
        if t.slices != self.slices or t.rows != self.rows:
            raise DimensionMismatchError(
                f"Bad tensor dimension: I am {self.dimension}, t is {t.dimension}")
        result = self._result(self.cols, t.cols, result)
        np.matmul(self.array.transpose(0, 2, 1), t.array, out=result.array)
        return result

    def times_transpose(self, t, result=None):
        """For each slice i, compute self[i] * transpose(t[i])."""
        if t.slices != self.slices or t.cols != self.cols:
            raise DimensionMismatchError(
                f"Bad tensor dimension: I am {self.dimension}, t is {t.dimension}")
        result = self._result(self.rows, t.rows, result)
        np.matmul(self.array, t.array.transpose(0, 2, 1), out=result.array)
        return result

    # Windows

    def sub_matrix(self, row, col, slice_, rows, cols):
        """
        Get a single-slice window into this Tensor.

        Args:
            row (int): Row offset
            col (int): Column offset
            slice_ (int): Slice the window lives in
            rows (int): Rows in the window
            cols (int): Columns in the window

        Returns:
            SubTensor: Window aliasing this Tensor's buffer
        """
        return SubTensor(self, row, col, slice_, rows, cols, 1)

    def sub_tensor(self, row, col, slice_, rows, cols, slices):
        """Get a window spanning ``slices`` consecutive slices."""
        return SubTensor(self, row, col, slice_, rows, cols, slices)

    # Reductions and misc

    def norm(self):
        """Get the euclidean norm of this Tensor."""
        return float(np.sqrt(np.dot(self.data, self.data)))

    def copy(self):
        """Get a Tensor with the same size and entries as this one."""
        return Tensor(self.rows, self.cols, self.slices, self.data.copy())

    def zero(self):
        """Set every entry to 0 and return self."""
        self.data.fill(0.0)
        return self

    def argmax(self):
        """Index into ``data`` of the first maximal entry."""
        return int(np.argmax(self.data))

    def __eq__(self, other):
        if not isinstance(other, Tensor):
            return NotImplemented
        return (self.dimension == other.dimension
                and bool(np.array_equal(self.data, other.data)))

    __hash__ = None

    def draw(self, slice_=0):
        """
        Pretty-print one slice with some ascii art.

        Args:
            slice_ (int): Slice to draw

        Returns:
            str: One line per row, darker characters for larger values
        """
        values = self.array[slice_]
        low, high = float(values.min()), float(values.max())
        step = (high - low) / 4
        x, y, z = low + step, low + 2 * step, low + 3 * step

        lines = []
        for row in values:
            chars = []
            for value in row:
                if value > z:
                    chars.append("@")
                elif value > y:
                    chars.append("o")
                elif value > x:
                    chars.append(".")
                else:
                    chars.append(" ")
            lines.append("".join(chars))
        return "\n".join(lines) + "\n"

    def __str__(self):
        parts = []
        for s in range(self.slices):
            lines = [f"Slice {s}"]
            for row in self.array[s]:
                lines.append("".join(f" {value:.3f}" for value in row))
            parts.append("\n".join(lines))
        return "\n".join(parts)

    def __repr__(self):
        return f"Tensor(rows={self.rows}, cols={self.cols}, slices={self.slices})"


class SubTensor:
    """
    A window into a parent Tensor.

    The window is an index range over the parent's buffer: reads and writes go
    straight to the parent, nothing is copied. It must not be used after the
    parent is discarded.
    """

    def __init__(self, source, row_offset, col_offset, slice_offset, rows, cols, slices=1):
        self.source = source
        self.row_offset = row_offset
        self.col_offset = col_offset
        self.slice_offset = slice_offset
        self.rows = rows
        self.cols = cols
        self.slices = slices
        self.array = source.array[slice_offset:slice_offset + slices,
                                  row_offset:row_offset + rows,
                                  col_offset:col_offset + cols]

    @property
    def dimension(self):
        return Dimension(self.rows, self.cols, self.slices)

    def _check_matrix(self, t):
        if self.rows != t.rows or self.cols != t.cols:
            raise DimensionMismatchError(
                f"Incompatible dimensions: window is {self.dimension}, t is {t.dimension}")

    def _check_cube(self, t):
        if (self.rows, self.cols, self.slices) != (t.rows, t.cols, t.slices):
            raise DimensionMismatchError(
                f"Incompatible dimensions: window is {self.dimension}, t is {t.dimension}")

    def index(self, row, col, slice_=0):
        return self.source.index(row + self.row_offset, col + self.col_offset,
                                 slice_ + self.slice_offset)

    def at(self, row, col, slice_=0):
        return self.source.at(row + self.row_offset, col + self.col_offset,
                              slice_ + self.slice_offset)

    def set(self, row, col, slice_, value):
        self.source.set(row + self.row_offset, col + self.col_offset,
                        slice_ + self.slice_offset, value)

    def inner_product(self, m, m_slice):
        """
        Sum of the products of the entries of this (single-slice) window with
        one slice of the given Tensor.
        """
        self._check_matrix(m)
        return float(np.vdot(self.array[0], m.array[m_slice]))

    def inner_product_cube(self, t):
        """Sum of the products of the entries of this window with ``t``."""
        self._check_cube(t)
        return float(np.vdot(self.array, t.array))

    def plus_equals_slice_times(self, t, slice_, d):
        """Set self = self + t[slice_] * d (single-slice window)."""
        self._check_matrix(t)
        self.array[0] += t.array[slice_] * d
        return self

    def plus_equals_times(self, t, d):
        """Set self = self + t * d for a same-shaped Tensor or window."""
        self._check_cube(t)
        self.array += t.array * d
        return self

    def copy(self):
        """Get an owning Tensor with the entries of this window."""
        return Tensor(self.rows, self.cols, self.slices, self.array.reshape(-1).copy())

    def __repr__(self):
        return (f"SubTensor(rows={self.rows}, cols={self.cols}, slices={self.slices}, "
                f"offset=({self.row_offset}, {self.col_offset}, {self.slice_offset}))")
