"""Host inputs and per-replica host state.

Two host species share each cell:
  - UMCA (bay laurel, Umbellularia californica): canopy host, produces spores
  - oak (tanoak / SOD-susceptible oaks): terminal host, reported output

The all-living-trees raster is each cell's capacity, shared read-only by
all replicas. Per replica and species there is a Susceptible grid and an
Infected grid, with S ≥ 0, I ≥ 0 and S + I ≤ capacity in every cell.

Initial infected bay laurel is derived from the initially infected oaks:
cells with infected oaks get up to twice as many infected bay laurels,
capped at the bay laurel count.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .errors import ConfigurationError
from .grid import Grid


def initial_infected_umca(umca: Grid, infected_oaks: Grid) -> Grid:
    """Infected bay laurel implied by the initially infected oaks.

    Per cell: 0 where no oak is infected; otherwise ``min(umca, 2 × I_oak)``
    when bay laurels outnumber infected oaks, else all bay laurels.
    """
    umca.require_same_layout(infected_oaks, "initial infected oaks")
    u = umca.data
    i_oak = infected_oaks.data
    capped = np.where(u > i_oak, np.minimum(u, 2 * i_oak), u)
    out = Grid.like(umca)
    out.data[...] = np.where(i_oak > 0, capped, 0)
    return out


@dataclass
class HostRasters:
    """The four input rasters, all with one layout.

    Attributes:
        umca: Total bay laurel per cell.
        oaks: Total susceptible-species oaks per cell.
        lvtree: All living trees per cell (capacity).
        infected_oaks: Initially infected oaks per cell.
    """
    umca: Grid
    oaks: Grid
    lvtree: Grid
    infected_oaks: Grid

    def __post_init__(self):
        for name in ('oaks', 'lvtree', 'infected_oaks'):
            self.umca.require_same_layout(getattr(self, name), name)
        for name in ('umca', 'oaks', 'lvtree', 'infected_oaks'):
            if (getattr(self, name).data < 0).any():
                raise ConfigurationError(
                    f"{name} raster has negative counts", field=name)
        if (self.infected_oaks.data > self.oaks.data).any():
            raise ConfigurationError(
                "infected_oaks exceeds oaks in some cells", field='infected_oaks')
        for name in ('umca', 'oaks'):
            if (getattr(self, name).data > self.lvtree.data).any():
                raise ConfigurationError(
                    f"{name} exceeds living trees (lvtree) in some cells",
                    field=name)

    @classmethod
    def from_arrays(cls, umca, oaks, lvtree, infected_oaks,
                    ew_res: float = 1.0, ns_res: float = 1.0) -> 'HostRasters':
        """Build from plain 2-D arrays sharing one resolution.

        Raises:
            ConfigurationError: If a raster holds non-integer counts.
        """
        def grid(name, a):
            arr = np.asarray(a)
            if arr.dtype.kind == 'f' and not (
                    np.isfinite(arr).all() and (arr == np.round(arr)).all()):
                raise ConfigurationError(
                    f"{name} raster has non-integer counts", field=name)
            return Grid.from_array(arr, ew_res, ns_res, dtype=np.int64)
        return cls(grid('umca', umca), grid('oaks', oaks),
                   grid('lvtree', lvtree), grid('infected_oaks', infected_oaks))

    @property
    def layout(self) -> Grid:
        return self.umca

    def initial_state(self) -> 'HostState':
        """Initial susceptible / infected grids for one replica."""
        i_umca = initial_infected_umca(self.umca, self.infected_oaks)
        return HostState(
            susceptible_umca=self.umca - i_umca,
            infected_umca=i_umca,
            susceptible_oaks=self.oaks - self.infected_oaks,
            infected_oaks=self.infected_oaks.copy(),
        )


@dataclass
class HostState:
    """Susceptible / infected grids of both species for one replica."""
    susceptible_umca: Grid
    infected_umca: Grid
    susceptible_oaks: Grid
    infected_oaks: Grid

    def __post_init__(self):
        for name in ('infected_umca', 'susceptible_oaks', 'infected_oaks'):
            self.susceptible_umca.require_same_layout(getattr(self, name), name)

    def copy(self) -> 'HostState':
        return HostState(
            self.susceptible_umca.copy(), self.infected_umca.copy(),
            self.susceptible_oaks.copy(), self.infected_oaks.copy(),
        )

    def all_oaks_infected(self) -> bool:
        """True when no susceptible oak remains anywhere."""
        return not self.susceptible_oaks.any_positive()

    def within_capacity(self, capacity: Grid) -> bool:
        """Check S ≥ 0, I ≥ 0 and S + I ≤ capacity for both species."""
        for s, i in ((self.susceptible_umca, self.infected_umca),
                     (self.susceptible_oaks, self.infected_oaks)):
            if (s.data < 0).any() or (i.data < 0).any():
                return False
            if (s.data + i.data > capacity.data).any():
                return False
        return True
