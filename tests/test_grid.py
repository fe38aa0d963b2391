"""Tests for sod_spread.grid — raster container and elementwise arithmetic."""

import numpy as np
import pytest

from sod_spread.errors import ShapeMismatch
from sod_spread.grid import Grid, stack_layout


def _grid(rows, ew_res=1.0, ns_res=1.0):
    return Grid.from_array(np.array(rows), ew_res, ns_res)


class TestConstruction:
    def test_fill_and_layout(self):
        g = Grid(4, 3, 10.0, 20.0, fill=5)
        assert g.width == 4
        assert g.height == 3
        assert g.shape == (3, 4)
        assert g.ew_res == 10.0
        assert g.ns_res == 20.0
        assert (g.data == 5).all()

    def test_from_array_copies(self):
        arr = np.arange(6).reshape(2, 3)
        g = Grid.from_array(arr)
        arr[0, 0] = 99
        assert g[0, 0] == 0

    def test_from_array_rejects_1d(self):
        with pytest.raises(ValueError):
            Grid.from_array([1, 2, 3])

    def test_like_shares_layout(self):
        g = Grid(2, 5, 3.0, 4.0, fill=7)
        other = Grid.like(g, dtype=np.float64)
        assert other.same_layout(g)
        assert other.dtype == np.float64
        assert other.total() == 0


class TestCellAccess:
    def test_get_set(self):
        g = Grid(3, 2)
        g[1, 2] = 8
        assert g[1, 2] == 8
        assert g.data[1, 2] == 8

    @pytest.mark.parametrize("index", [(2, 0), (0, 3), (-1, 0), (0, -1)])
    def test_out_of_bounds(self, index):
        g = Grid(3, 2)
        with pytest.raises(IndexError):
            g[index]


class TestArithmetic:
    def test_add_then_subtract_is_identity(self):
        rng = np.random.default_rng(0)
        a = Grid.from_array(rng.integers(0, 100, size=(6, 7)))
        b = Grid.from_array(rng.integers(0, 100, size=(6, 7)))
        assert (a + b) - b == a

    def test_scalar_ops(self):
        a = _grid([[1, 2], [3, 4]])
        np.testing.assert_array_equal((a * 2).data, [[2, 4], [6, 8]])
        np.testing.assert_array_equal((2 * a).data, [[2, 4], [6, 8]])
        np.testing.assert_array_equal((a + 1).data, [[2, 3], [4, 5]])
        np.testing.assert_array_equal((10 - a).data, [[9, 8], [7, 6]])

    def test_elementwise_product(self):
        a = _grid([[1, 2], [3, 4]])
        np.testing.assert_array_equal((a * a).data, [[1, 4], [9, 16]])

    def test_division_gives_float(self):
        a = _grid([[1, 2], [3, 4]])
        q = a / 2
        assert q.dtype == np.float64
        np.testing.assert_allclose(q.data, [[0.5, 1.0], [1.5, 2.0]])

    def test_inplace_add_keeps_buffer(self):
        a = _grid([[1, 2], [3, 4]])
        b = _grid([[1, 1], [1, 1]])
        buf = a.data
        a += b
        assert a.data is buf
        np.testing.assert_array_equal(a.data, [[2, 3], [4, 5]])

    def test_inplace_divide_widens(self):
        a = _grid([[2, 4]])
        a /= 4
        assert a.dtype == np.float64
        np.testing.assert_allclose(a.data, [[0.5, 1.0]])

    def test_binary_ops_leave_operands_alone(self):
        a = _grid([[1, 2]])
        b = _grid([[3, 4]])
        _ = a + b
        np.testing.assert_array_equal(a.data, [[1, 2]])
        np.testing.assert_array_equal(b.data, [[3, 4]])

    def test_dimension_mismatch(self):
        with pytest.raises(ShapeMismatch):
            Grid(3, 3) + Grid(4, 3)

    def test_resolution_mismatch(self):
        with pytest.raises(ShapeMismatch):
            Grid(3, 3, 1.0, 1.0) - Grid(3, 3, 2.0, 1.0)

    def test_inplace_mismatch(self):
        a = Grid(2, 2)
        with pytest.raises(ShapeMismatch):
            a += Grid(2, 3)

    def test_rejects_raw_arrays(self):
        with pytest.raises(TypeError):
            Grid(2, 2) + np.ones((2, 2))


class TestTransforms:
    def test_zero(self):
        g = _grid([[1, 2], [3, 4]])
        g.zero()
        assert g.total() == 0
        assert g.shape == (2, 2)

    def test_map_in_place_ufunc(self):
        g = _grid([[4, 9], [16, 0]])
        g.map_in_place(np.sqrt)
        np.testing.assert_allclose(g.data, [[2.0, 3.0], [4.0, 0.0]])

    def test_map_in_place_callable(self):
        g = _grid([[1, 2], [3, 4]])
        g.map_in_place(lambda v: v * 3)
        np.testing.assert_array_equal(g.data, [[3, 6], [9, 12]])

    def test_equality_considers_resolution(self):
        a = _grid([[1, 2]], 1.0, 1.0)
        assert a == a.copy()
        assert not a == _grid([[1, 2]], 5.0, 1.0)

    def test_array_copy_is_detached(self):
        g = _grid([[1, 2], [3, 4]])
        arr = np.array(g, copy=True)
        arr[0, 0] = 99
        assert g[0, 0] == 1

    def test_asarray_shares_buffer(self):
        g = _grid([[1, 2]])
        np.asarray(g)[0, 1] = 7
        assert g[0, 1] == 7

    def test_array_cast(self):
        arr = np.asarray(_grid([[1, 2]]), dtype=np.float64)
        assert arr.dtype == np.float64
        np.testing.assert_array_equal(arr, [[1.0, 2.0]])

    def test_any_positive(self):
        assert not Grid(2, 2).any_positive()
        assert _grid([[0, 1]]).any_positive()


class TestStackLayout:
    def test_returns_first(self):
        a, b = Grid(2, 2), Grid(2, 2)
        assert stack_layout([a, b]) is a

    def test_empty(self):
        assert stack_layout([]) is None

    def test_mismatch(self):
        with pytest.raises(ShapeMismatch):
            stack_layout([Grid(2, 2), Grid(2, 2), Grid(3, 2)])
