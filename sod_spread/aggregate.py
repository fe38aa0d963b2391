"""Ensemble statistics across replica grids.

Both functions are pure: they read the replica grids and return new
float64 grids. The standard deviation is the population form (divide by
N, no sample-size correction).
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .grid import Grid, stack_layout


def mean(grids: Sequence[Grid]) -> Grid:
    """Elementwise mean of the replica grids."""
    first = stack_layout(grids, "replica grids")
    if first is None:
        raise ValueError("mean of zero grids is undefined")
    total = Grid.like(first, dtype=np.float64)
    for grid in grids:
        total += grid
    total /= len(grids)
    return total


def stddev(grids: Sequence[Grid], mean_grid: Optional[Grid] = None) -> Grid:
    """Elementwise population standard deviation of the replica grids.

    Args:
        grids: Replica grids.
        mean_grid: Their mean, if already computed.
    """
    if mean_grid is None:
        mean_grid = mean(grids)
    else:
        stack_layout(list(grids) + [mean_grid], "replica grids")
    acc = Grid.like(mean_grid, dtype=np.float64)
    for grid in grids:
        diff = grid - mean_grid
        acc += diff * diff
    acc /= len(grids)
    acc.map_in_place(np.sqrt)
    return acc
