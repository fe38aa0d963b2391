"""Ensemble orchestration: weekly schedule, parallel replicas, aggregation.

The ensemble shares one calendar advanced a week at a time from January 1
of the start year to December 31 of the end year:

  Accumulating:  each week before the end date is queued, unless
                 seasonality is on and the month is past the season
                 (months 1..season_end_month are active).
  Resolving:     at a year boundary, or when the end date is reached,
                 weather for every queued week is fetched (single
                 threaded), then every replica runs all queued weeks in
                 order, replicas in parallel on a thread pool. All
                 replicas finish before anything reads their grids.
                 The queue is then cleared.
  Terminated:    the calendar reached the end date (final resolution,
                 final aggregation), or no replica has a susceptible oak
                 left (checked once per week, stops the whole ensemble).

Per-year-boundary mean / stddev grids of infected oaks are produced
when requested, plus once at termination if weeks were resolved there
outside a year boundary. The final mean (and optionally stddev) is
always produced.
"""

from __future__ import annotations

import datetime
import enum
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from . import aggregate
from .config import SimulationConfig, default_config, validate_config
from .dates import SimulationDate
from .errors import ConfigurationError
from .grid import Grid
from .hosts import HostRasters, HostState
from .rng import generate_seed, replica_rng
from .sporulation import SporulationEngine
from .weather import WeatherProvider, make_weather_provider

logger = logging.getLogger(__name__)

# on_output(kind, date, grid); kind is one of OUTPUT_KINDS
OutputCallback = Callable[[str, datetime.date, Grid], None]
OUTPUT_KINDS = ('mean', 'stddev', 'mean_series', 'stddev_series')


class Phase(enum.Enum):
    ACCUMULATING = 'accumulating'
    RESOLVING = 'resolving'
    TERMINATED = 'terminated'


@dataclass
class SeriesEntry:
    """Aggregates of infected oaks at one resolution point."""
    date: datetime.date
    mean: Optional[Grid] = None
    stddev: Optional[Grid] = None


@dataclass
class EnsembleResult:
    """Outputs of one ensemble run.

    Attributes:
        mean: Final mean infected-oak grid.
        stddev: Final population stddev grid (if requested).
        series: Per-resolution-point aggregates (if requested).
        seed: Base seed actually used.
        n_runs: Number of replicas.
        weeks_elapsed: Calendar weeks advanced.
        weeks_resolved: Weeks simulated per replica.
        terminated_early: Date at which all oaks were infected, if any.
        final_states: Host state of every replica at the end.
    """
    mean: Grid
    stddev: Optional[Grid]
    series: List[SeriesEntry] = field(default_factory=list)
    seed: int = 0
    n_runs: int = 1
    weeks_elapsed: int = 0
    weeks_resolved: int = 0
    terminated_early: Optional[datetime.date] = None
    final_states: List[HostState] = field(default_factory=list)


def active_weeks(start_year: int, end_year: int, seasonal: bool,
                 season_end_month: int = 9) -> List[int]:
    """Indices of the calendar weeks that will be simulated."""
    date = SimulationDate.start_of(start_year)
    end = SimulationDate.end_of(end_year)
    weeks = []
    week = 0
    while date < end:
        if not seasonal or date.in_season(season_end_month):
            weeks.append(week)
        week += 1
        date.advance_by_week()
    return weeks


class EnsembleOrchestrator:
    """Drives N replicas through the weekly / seasonal schedule.

    Args:
        hosts: Input rasters (copied per replica; capacity shared).
        config: Validated configuration.
        weather: Weather provider; built from ``config.weather`` if None.
        on_output: Optional callback receiving every aggregate produced.
    """

    def __init__(self, hosts: HostRasters,
                 config: Optional[SimulationConfig] = None,
                 weather: Optional[WeatherProvider] = None,
                 on_output: Optional[OutputCallback] = None):
        if config is None:
            config = default_config()
        else:
            validate_config(config)
        sim = config.simulation
        if weather is None:
            weather = make_weather_provider(
                value=config.weather.value, series=config.weather.series)
        elif config.weather.value is not None or config.weather.series is not None:
            raise ConfigurationError(
                "weather provider given together with weather.value/series",
                field='weather',
            )
        weather.validate_layout(hosts.layout)

        self.config = config
        self.hosts = hosts
        self.weather = weather
        self.on_output = on_output
        self.seasonal = config.seasonal
        self.phase = Phase.ACCUMULATING

        weeks = active_weeks(sim.start_year, sim.end_year, self.seasonal,
                             sim.season_end_month)
        if weeks:
            weather.validate_horizon(weeks[-1])

        if sim.seed is None:
            self.seed = generate_seed()
            logger.info("Generated random seed: %d", self.seed)
        else:
            self.seed = int(sim.seed)

        params = config.dispersal_parameters()
        initial = hosts.initial_state()
        self.engines = [
            SporulationEngine(initial.copy(), hosts.lvtree, params,
                              replica_rng(self.seed, i))
            for i in range(sim.runs)
        ]
        self.pending: List[int] = []
        self.weeks_resolved = 0

    # ── Aggregation ──────────────────────────────────────────────────

    def infected_oaks(self) -> List[Grid]:
        return [engine.state.infected_oaks for engine in self.engines]

    def _emit(self, kind: str, date: SimulationDate, grid: Grid) -> None:
        if self.on_output is not None:
            self.on_output(kind, date.to_date(), grid)

    def _series_entry(self, date: SimulationDate) -> Optional[SeriesEntry]:
        out = self.config.output
        if not (out.series or out.stddev_series):
            return None
        grids = self.infected_oaks()
        mean_grid = aggregate.mean(grids)
        entry = SeriesEntry(date=date.to_date())
        if out.series:
            entry.mean = mean_grid
            self._emit('mean_series', date, mean_grid)
        if out.stddev_series:
            entry.stddev = aggregate.stddev(grids, mean_grid)
            self._emit('stddev_series', date, entry.stddev)
        return entry

    # ── Resolution ───────────────────────────────────────────────────

    def resolve(self, pool: ThreadPoolExecutor) -> None:
        """Run every queued week on every replica, then clear the queue."""
        self.phase = Phase.RESOLVING
        batch = self.weather.fetch_batch(self.pending)
        spore_rate = self.config.simulation.spore_rate
        futures = [pool.submit(engine.run_weeks, batch, spore_rate)
                   for engine in self.engines]
        infections = [f.result() for f in futures]
        logger.info(
            "Resolved weeks %d-%d on %d replicas (%d new infections)",
            self.pending[0], self.pending[-1], len(self.engines), sum(infections),
        )
        self.weeks_resolved += len(self.pending)
        self.pending.clear()
        self.phase = Phase.ACCUMULATING

    def all_infected(self) -> bool:
        """True when no replica has a susceptible oak left."""
        return all(engine.state.all_oaks_infected() for engine in self.engines)

    # ── Main loop ────────────────────────────────────────────────────

    def run(self) -> EnsembleResult:
        sim = self.config.simulation
        date = SimulationDate.start_of(sim.start_year)
        end = SimulationDate.end_of(sim.end_year)
        series: List[SeriesEntry] = []
        terminated_early = None
        week = 0

        logger.info(
            "Starting ensemble: %d replicas, %d threads, seed %d, %s to %s",
            sim.runs, sim.threads, self.seed, date, end,
        )
        with ThreadPoolExecutor(max_workers=sim.threads) as pool:
            while True:
                if date < end and (not self.seasonal
                                   or date.in_season(sim.season_end_month)):
                    self.pending.append(week)
                    logger.debug("Queued week %d (%s)", week, date)

                if self.all_infected():
                    logger.info("All susceptible oaks infected on %s", date)
                    terminated_early = date.to_date()
                    break

                year_end = date.is_year_end()
                if year_end or date >= end:
                    resolved_here = bool(self.pending)
                    if resolved_here:
                        self.resolve(pool)
                    if year_end or resolved_here:
                        entry = self._series_entry(date)
                        if entry is not None:
                            series.append(entry)

                if date >= end:
                    break
                week += 1
                date.advance_by_week()

        self.phase = Phase.TERMINATED
        grids = self.infected_oaks()
        mean_grid = aggregate.mean(grids)
        self._emit('mean', date, mean_grid)
        stddev_grid = None
        if self.config.output.stddev:
            stddev_grid = aggregate.stddev(grids, mean_grid)
            self._emit('stddev', date, stddev_grid)

        return EnsembleResult(
            mean=mean_grid,
            stddev=stddev_grid,
            series=series,
            seed=self.seed,
            n_runs=len(self.engines),
            weeks_elapsed=week,
            weeks_resolved=self.weeks_resolved,
            terminated_early=terminated_early,
            final_states=[engine.state for engine in self.engines],
        )


def run_ensemble(
    hosts: HostRasters,
    config: Optional[SimulationConfig] = None,
    weather: Optional[WeatherProvider] = None,
    on_output: Optional[OutputCallback] = None,
) -> EnsembleResult:
    """Run the full ensemble and return its aggregates.

    Args:
        hosts: Input rasters (bay laurel, oaks, living trees, infected oaks).
        config: SimulationConfig; uses default if None.
        weather: Weather provider (e.g. SpatialWeather); when None it is
            built from ``config.weather`` (default: neutral 1.0).
        on_output: Optional callable(kind, date, grid) for writing outputs.

    Returns:
        EnsembleResult with final and per-boundary aggregates.
    """
    return EnsembleOrchestrator(hosts, config, weather, on_output).run()
