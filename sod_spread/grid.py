"""Raster grid of per-cell host counts.

A Grid is a dense (height, width) NumPy array plus the physical cell
size along each axis:
  - ew_res: cell size west-east (along columns, x)
  - ns_res: cell size north-south (along rows, y)

Dimensions and resolutions are fixed at construction. Arithmetic between
two grids is elementwise and requires identical dimensions and
resolution; anything else raises ShapeMismatch. Scalars broadcast.

Host grids hold integer counts (int64). Aggregation produces float64
grids; division always yields a float grid.
"""

from __future__ import annotations

import operator
from typing import Callable, Optional, Tuple, Union

import numpy as np

from .errors import ShapeMismatch

Scalar = Union[int, float, np.number]

HOST_DTYPE = np.int64


class Grid:
    """2-D raster with elementwise arithmetic.

    Args:
        width: Number of columns.
        height: Number of rows.
        ew_res: Cell size along columns (west-east).
        ns_res: Cell size along rows (north-south).
        fill: Initial value for every cell.
        dtype: NumPy dtype of the cell values.
    """

    __hash__ = None

    def __init__(self, width: int, height: int,
                 ew_res: float = 1.0, ns_res: float = 1.0,
                 fill: Scalar = 0, dtype=HOST_DTYPE):
        if width < 0 or height < 0:
            raise ValueError(
                f"Grid dimensions must be non-negative, got {width}x{height}"
            )
        self._width = int(width)
        self._height = int(height)
        self._ew_res = float(ew_res)
        self._ns_res = float(ns_res)
        self._data = np.full((self._height, self._width), fill, dtype=dtype)

    @classmethod
    def from_array(cls, array, ew_res: float = 1.0, ns_res: float = 1.0,
                   dtype=None) -> 'Grid':
        """Build a Grid from a 2-D array-like (copied)."""
        arr = np.array(array, dtype=dtype, copy=True)
        if arr.ndim != 2:
            raise ValueError(f"Grid needs a 2-D array, got ndim={arr.ndim}")
        grid = cls(arr.shape[1], arr.shape[0], ew_res, ns_res, dtype=arr.dtype)
        grid._data[...] = arr
        return grid

    @classmethod
    def like(cls, other: 'Grid', fill: Scalar = 0, dtype=None) -> 'Grid':
        """Empty grid with the same layout as ``other``."""
        return cls(other.width, other.height, other.ew_res, other.ns_res,
                   fill=fill, dtype=other.dtype if dtype is None else dtype)

    # ── Layout ───────────────────────────────────────────────────────

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def ew_res(self) -> float:
        return self._ew_res

    @property
    def ns_res(self) -> float:
        return self._ns_res

    @property
    def shape(self) -> Tuple[int, int]:
        """(height, width), matching the NumPy array shape."""
        return self._data.shape

    @property
    def dtype(self):
        return self._data.dtype

    @property
    def data(self) -> np.ndarray:
        """Underlying array (a live view, not a copy)."""
        return self._data

    def same_layout(self, other: 'Grid') -> bool:
        return (self._width == other._width
                and self._height == other._height
                and self._ew_res == other._ew_res
                and self._ns_res == other._ns_res)

    def require_same_layout(self, other: 'Grid', what: str = "grid") -> None:
        """Raise ShapeMismatch unless ``other`` has this grid's layout."""
        if not self.same_layout(other):
            raise ShapeMismatch(
                f"{what} layout {other._describe()} does not match "
                f"{self._describe()}"
            )

    def _describe(self) -> str:
        return (f"{self._width}x{self._height} "
                f"@ ({self._ew_res:g}, {self._ns_res:g})")

    # ── Cell access ──────────────────────────────────────────────────

    def _check_index(self, index) -> Tuple[int, int]:
        row, col = index
        if __debug__:
            if not (0 <= row < self._height and 0 <= col < self._width):
                raise IndexError(
                    f"cell ({row}, {col}) outside {self._width}x{self._height} grid"
                )
        return row, col

    def __getitem__(self, index):
        return self._data[self._check_index(index)]

    def __setitem__(self, index, value) -> None:
        self._data[self._check_index(index)] = value

    def __array__(self, dtype=None, copy=None):
        if dtype is not None and np.dtype(dtype) != self._data.dtype:
            if copy is False:
                raise ValueError(
                    f"cannot view {self._data.dtype} grid as {np.dtype(dtype)} "
                    "without a copy"
                )
            return self._data.astype(dtype)
        if copy:
            return self._data.copy()
        return self._data

    def copy(self) -> 'Grid':
        return Grid.from_array(self._data, self._ew_res, self._ns_res)

    def zero(self) -> None:
        """Reset every cell to 0."""
        self._data.fill(0)

    def map_in_place(self, func: Callable) -> None:
        """Apply a unary transform to every cell.

        NumPy ufuncs (e.g. ``np.sqrt``) are applied to the whole array;
        other callables are applied cell by cell. The dtype follows the
        transform's output.
        """
        if isinstance(func, np.ufunc):
            result = func(self._data)
        else:
            result = np.vectorize(func)(self._data) if self._data.size else self._data
        self._assign(np.asarray(result))

    def total(self):
        return self._data.sum()

    def any_positive(self) -> bool:
        return bool((self._data > 0).any())

    # ── Arithmetic ───────────────────────────────────────────────────

    def _operand(self, other: Union['Grid', Scalar]):
        if isinstance(other, Grid):
            self.require_same_layout(other, "operand")
            return other._data
        if np.ndim(other) != 0:
            raise TypeError(
                f"Grid arithmetic needs a Grid or scalar, got {type(other).__name__}"
            )
        return other

    def _wrap(self, array: np.ndarray) -> 'Grid':
        out = Grid(self._width, self._height, self._ew_res, self._ns_res,
                   dtype=array.dtype)
        out._data = array
        return out

    def _assign(self, result: np.ndarray) -> None:
        # Keep the buffer when the dtype survives; rebind when it widens
        if result.dtype == self._data.dtype:
            self._data[...] = result
        else:
            self._data = result

    def _binary(self, other, op) -> 'Grid':
        return self._wrap(op(self._data, self._operand(other)))

    def _inplace(self, other, op) -> 'Grid':
        self._assign(op(self._data, self._operand(other)))
        return self

    def __add__(self, other):
        return self._binary(other, operator.add)

    def __radd__(self, other):
        return self._binary(other, operator.add)

    def __sub__(self, other):
        return self._binary(other, operator.sub)

    def __rsub__(self, other):
        return self._wrap(self._operand(other) - self._data)

    def __mul__(self, other):
        return self._binary(other, operator.mul)

    def __rmul__(self, other):
        return self._binary(other, operator.mul)

    def __truediv__(self, other):
        return self._binary(other, operator.truediv)

    def __iadd__(self, other):
        return self._inplace(other, operator.add)

    def __isub__(self, other):
        return self._inplace(other, operator.sub)

    def __imul__(self, other):
        return self._inplace(other, operator.mul)

    def __itruediv__(self, other):
        return self._inplace(other, operator.truediv)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self.same_layout(other) and bool(np.array_equal(self._data, other._data))

    def __repr__(self) -> str:
        return f"Grid({self._describe()}, dtype={self._data.dtype}, total={self.total()})"


def stack_layout(grids, what: str = "grids") -> Optional[Grid]:
    """Check that all grids share one layout; return the first (or None)."""
    first = None
    for i, grid in enumerate(grids):
        if first is None:
            first = grid
        else:
            first.require_same_layout(grid, f"{what}[{i}]")
    return first
