"""Per-replica weekly spore production, dispersal and infection.

One SporulationEngine owns one replica: its HostState, its own RNG
stream, and a reference to the shared (read-only) capacity grid.

Weekly update (``step``):
  1. generate_spores: every cell with infected bay laurel releases
     Poisson(I_umca × spore_rate × w) spores, w being the cell's weather
     multiplier. Cells without infected hosts release none (no draw).
  2. disperse_and_infect: source cells are visited in row-major order;
     each cell's spores are sent through the DispersalKernel as one
     block. At every on-grid destination that still has a susceptible
     host, one uniform u decides the outcome:

         p_umca = S_umca / capacity × w
         p_oak  = S_oak  / capacity × w
         u < p_umca                  → one bay laurel S → I
         p_umca ≤ u < p_umca + p_oak → one oak S → I
         otherwise                   → no infection

     So each species is chosen in proportion to its share of the living
     trees in the cell. A species with S = 0 has p = 0 and cannot be
     chosen. Destinations with zero capacity are skipped without a draw.
"""

from __future__ import annotations

import numpy as np

from .dispersal import DispersalKernel, DispersalParameters
from .errors import ShapeMismatch
from .grid import Grid
from .hosts import HostState
from .weather import NEUTRAL_WEATHER, WeatherSample, weather_multiplier


class SporulationEngine:
    """One simulation replica.

    Args:
        state: Host state owned by this replica (mutated in place).
        capacity: All-living-trees grid, shared read-only.
        params: Dispersal parameters.
        rng: This replica's random stream.
    """

    def __init__(self, state: HostState, capacity: Grid,
                 params: DispersalParameters, rng: np.random.Generator):
        capacity.require_same_layout(state.susceptible_umca, "host state")
        self.state = state
        self.capacity = capacity
        self.kernel = DispersalKernel.for_grid(params, capacity)
        self.rng = rng

    def _check_weather(self, weather: WeatherSample) -> None:
        if isinstance(weather, np.ndarray) and weather.shape != self.capacity.shape:
            raise ShapeMismatch(
                f"weather array shape {weather.shape} does not match grid "
                f"shape {self.capacity.shape}"
            )

    def generate_spores(self, infected: Grid, weather: WeatherSample,
                        spore_rate: float) -> Grid:
        """Spore counts released by ``infected`` this week.

        Args:
            infected: Infected-host grid (the spore sources).
            weather: Scalar multiplier or per-cell array for the week.
            spore_rate: Expected spores per infected host per week.

        Returns:
            Integer grid of spore counts with mean I × spore_rate × w.
        """
        self.capacity.require_same_layout(infected, "infected grid")
        self._check_weather(weather)
        spores = Grid.like(infected, dtype=np.int64)
        sources = infected.data > 0
        if not sources.any():
            return spores
        w = weather[sources] if isinstance(weather, np.ndarray) else float(weather)
        lam = infected.data[sources] * float(spore_rate) * w
        spores.data[sources] = self.rng.poisson(lam)
        return spores

    def disperse_and_infect(self, spores: Grid,
                            weather: WeatherSample = NEUTRAL_WEATHER) -> int:
        """Disperse ``spores`` and convert susceptible hosts they reach.

        Returns:
            Number of new infections (both species).
        """
        self.capacity.require_same_layout(spores, "spore grid")
        self._check_weather(weather)
        s_umca = self.state.susceptible_umca.data
        i_umca = self.state.infected_umca.data
        s_oak = self.state.susceptible_oaks.data
        i_oak = self.state.infected_oaks.data
        cap = self.capacity.data
        rng = self.rng

        new_infections = 0
        for row, col in np.argwhere(spores.data > 0):
            rows, cols = self.kernel.destinations(
                row, col, rng, int(spores.data[row, col]))
            for r, c in zip(rows, cols):
                su = s_umca[r, c]
                so = s_oak[r, c]
                if su <= 0 and so <= 0:
                    continue
                lv = cap[r, c]
                if lv <= 0:
                    continue
                w = weather_multiplier(weather, r, c)
                p_umca = su / lv * w
                p_oak = so / lv * w
                u = rng.random()
                if u < p_umca:
                    s_umca[r, c] -= 1
                    i_umca[r, c] += 1
                    new_infections += 1
                elif u < p_umca + p_oak:
                    s_oak[r, c] -= 1
                    i_oak[r, c] += 1
                    new_infections += 1
        return new_infections

    def step(self, weather: WeatherSample, spore_rate: float) -> int:
        """One resolved week: spores from infected bay laurel, then spread."""
        spores = self.generate_spores(self.state.infected_umca, weather, spore_rate)
        return self.disperse_and_infect(spores, weather)

    def run_weeks(self, batch, spore_rate: float) -> int:
        """Run every week of a WeatherBatch in order; total new infections."""
        return sum(self.step(weather, spore_rate) for _week, weather in batch)
