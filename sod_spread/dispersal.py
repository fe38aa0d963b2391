"""Wind-biased spore dispersal kernel.

Each spore gets a distance and a bearing:

  distance:  |Cauchy(0, scale)|, where scale is scale_1 for the single
             Cauchy family; for the two-component mixture, scale_1 with
             probability gamma and scale_2 otherwise.
  bearing:   von Mises(mu = prevailing wind bearing, kappa), in radians
             clockwise from north. With no wind, kappa = 0 (uniform).

The destination cell is the source offset by the rounded displacement
in cells, north being towards row 0:

    row' = row − round(d · cos θ / ns_res)
    col' = col + round(d · sin θ / ew_res)

Destinations outside the grid are discarded.

Random draw order is fixed for reproducibility. Draws are made in blocks
per source cell, not interleaved per spore: for the n spores leaving one
cell, n standard Cauchy variates, then n mixture selectors (cauchy_mix
only), then n von Mises bearings. Only a block of one matches the
per-spore order distance, selector, bearing. The establishment uniforms
drawn by the sporulation engine come after the whole block.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .errors import ConfigurationError

TWO_PI = 2.0 * np.pi


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Direction(enum.IntEnum):
    """Prevailing wind direction as a compass bearing (degrees)."""
    N = 0
    NE = 45
    E = 90
    SE = 135
    S = 180
    SW = 225
    W = 270
    NW = 315
    NONE = -1

    @classmethod
    def parse(cls, text) -> 'Direction':
        if isinstance(text, Direction):
            return text
        try:
            return cls[str(text).strip().upper()]
        except KeyError:
            raise ConfigurationError(
                f"wind must be one of {', '.join(d.name for d in cls)}, "
                f"got '{text}'",
                field='wind',
            ) from None

    @property
    def radians(self) -> Optional[float]:
        if self is Direction.NONE:
            return None
        return math.radians(self.value)


class RadialType(enum.Enum):
    """Distribution family for dispersal distance."""
    CAUCHY = 'cauchy'
    CAUCHY_MIX = 'cauchy_mix'

    @classmethod
    def parse(cls, text) -> 'RadialType':
        if isinstance(text, RadialType):
            return text
        try:
            return cls(str(text).strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"radial_type must be one of "
                f"{', '.join(r.value for r in cls)}, got '{text}'",
                field='radial_type',
            ) from None


# ═══════════════════════════════════════════════════════════════════════
# PARAMETERS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DispersalParameters:
    """Validated dispersal kernel parameters.

    Attributes:
        radial_type: Single Cauchy or two-component Cauchy mixture.
        scale_1: Scale of the first Cauchy component (map units).
        kappa: von Mises concentration around the wind bearing.
        wind: Prevailing wind direction.
        scale_2: Scale of the second component (cauchy_mix only).
        gamma: Probability of using the first component (cauchy_mix only).
    """
    radial_type: RadialType = RadialType.CAUCHY
    scale_1: float = 20.57
    kappa: float = 2.0
    wind: Direction = Direction.NONE
    scale_2: Optional[float] = None
    gamma: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, 'radial_type', RadialType.parse(self.radial_type))
        object.__setattr__(self, 'wind', Direction.parse(self.wind))
        if not self.scale_1 > 0:
            raise ConfigurationError(
                f"scale_1 must be positive, got {self.scale_1}", field='scale_1')
        if self.kappa < 0:
            raise ConfigurationError(
                f"kappa must be non-negative, got {self.kappa}", field='kappa')
        if self.radial_type is RadialType.CAUCHY_MIX:
            if self.scale_2 is None:
                raise ConfigurationError(
                    "scale_2 is required for radial_type=cauchy_mix",
                    field='scale_2')
            if self.gamma is None:
                raise ConfigurationError(
                    "gamma is required for radial_type=cauchy_mix",
                    field='gamma')
        if self.scale_2 is not None and not self.scale_2 > 0:
            raise ConfigurationError(
                f"scale_2 must be positive, got {self.scale_2}", field='scale_2')
        if self.gamma is not None and not 0.0 <= self.gamma <= 1.0:
            raise ConfigurationError(
                f"gamma must be in [0, 1], got {self.gamma}", field='gamma')

    @property
    def is_mixture(self) -> bool:
        return self.radial_type is RadialType.CAUCHY_MIX

    @property
    def effective_kappa(self) -> float:
        """Concentration actually used; no wind means isotropic."""
        return 0.0 if self.wind is Direction.NONE else float(self.kappa)

    @property
    def mean_bearing(self) -> float:
        bearing = self.wind.radians
        return 0.0 if bearing is None else bearing


# ═══════════════════════════════════════════════════════════════════════
# KERNEL
# ═══════════════════════════════════════════════════════════════════════

def _round_half_away(x: np.ndarray) -> np.ndarray:
    return np.sign(x) * np.floor(np.abs(x) + 0.5)


class DispersalKernel:
    """Samples spore destinations for one grid layout.

    Args:
        params: Dispersal parameters.
        width, height: Grid dimensions in cells.
        ew_res, ns_res: Cell size along columns / rows (map units).
    """

    def __init__(self, params: DispersalParameters, width: int, height: int,
                 ew_res: float = 1.0, ns_res: float = 1.0):
        self.params = params
        self.width = width
        self.height = height
        self.ew_res = float(ew_res)
        self.ns_res = float(ns_res)
        self._mu = params.mean_bearing
        self._kappa = params.effective_kappa

    @classmethod
    def for_grid(cls, params: DispersalParameters, grid) -> 'DispersalKernel':
        return cls(params, grid.width, grid.height, grid.ew_res, grid.ns_res)

    def sample_distances(self, rng: np.random.Generator, n: int) -> np.ndarray:
        """Dispersal distances (map units) for n spores."""
        variates = np.abs(rng.standard_cauchy(n))
        if self.params.is_mixture:
            first = rng.random(n) < self.params.gamma
            scale = np.where(first, self.params.scale_1, self.params.scale_2)
        else:
            scale = self.params.scale_1
        return variates * scale

    def sample_bearings(self, rng: np.random.Generator, n: int) -> np.ndarray:
        """Bearings in [0, 2π), clockwise from north, for n spores."""
        return np.mod(rng.vonmises(self._mu, self._kappa, n), TWO_PI)

    def sample_offsets(self, rng: np.random.Generator, n: int
                       ) -> Tuple[np.ndarray, np.ndarray]:
        """Row and column displacements (float, rounded to whole cells)."""
        dist = self.sample_distances(rng, n)
        theta = self.sample_bearings(rng, n)
        with np.errstate(invalid='ignore', over='ignore'):
            d_row = -_round_half_away(dist * np.cos(theta) / self.ns_res)
            d_col = _round_half_away(dist * np.sin(theta) / self.ew_res)
        return d_row, d_col

    def destinations(self, row: int, col: int, rng: np.random.Generator,
                     n: int) -> Tuple[np.ndarray, np.ndarray]:
        """Destination cells of the n spores leaving (row, col).

        Returns:
            (rows, cols) int arrays of the on-grid destinations, in draw
            order; off-grid spores are dropped.
        """
        d_row, d_col = self.sample_offsets(rng, n)
        rows = row + d_row
        cols = col + d_col
        on_grid = ((rows >= 0) & (rows < self.height)
                   & (cols >= 0) & (cols < self.width))
        return rows[on_grid].astype(np.intp), cols[on_grid].astype(np.intp)

    def destination(self, row: int, col: int,
                    rng: np.random.Generator) -> Optional[Tuple[int, int]]:
        """Destination of a single spore, or None when it leaves the grid."""
        rows, cols = self.destinations(row, col, rng, 1)
        if rows.size == 0:
            return None
        return int(rows[0]), int(cols[0])
