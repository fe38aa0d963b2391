"""Weekly weather multipliers for spore production and establishment.

The weather coefficient for a week is moisture × temperature. It comes
from exactly one of three sources, chosen at setup time:

  - SpatialWeather:  one (height, width) array per week, from
                     time-indexed coefficient stacks
  - WeatherSeries:   one scalar per week since the simulation start
  - ConstantWeather: one scalar for every week (default 1.0, no effect)

Week indices count calendar weeks from the simulation start (week 0 is
the week of January 1 of the start year), whether or not the week is in
season.

Reading NetCDF or text files is left to the caller: providers wrap
decoded arrays, or any object with a ``shape`` that can be indexed by
week (e.g. a netCDF4 variable).

Weather for a resolution batch is fetched once, before any replica
runs, into an immutable WeatherBatch shared by all replicas.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import ConfigurationError, DataSourceError, ShapeMismatch
from .grid import Grid

logger = logging.getLogger(__name__)

WeatherSample = Union[float, np.ndarray]

NEUTRAL_WEATHER = 1.0


def check_multipliers(values, what: str) -> None:
    """Raise DataSourceError unless every multiplier is finite and >= 0."""
    arr = np.asarray(values, dtype=np.float64)
    bad = ~np.isfinite(arr) | (arr < 0)
    if bad.any():
        raise DataSourceError(
            f"{what} must be finite and non-negative, got {arr[bad].flat[0]}"
        )


# ═══════════════════════════════════════════════════════════════════════
# BATCH SNAPSHOT
# ═══════════════════════════════════════════════════════════════════════

class WeatherBatch:
    """Read-only weather samples for the weeks of one resolution batch."""

    def __init__(self, weeks: Sequence[int], samples: Sequence[WeatherSample]):
        if len(weeks) != len(samples):
            raise ValueError(
                f"{len(weeks)} weeks but {len(samples)} weather samples"
            )
        frozen = []
        for sample in samples:
            if isinstance(sample, np.ndarray):
                sample = sample.view()
                sample.flags.writeable = False
            frozen.append(sample)
        self._weeks = tuple(weeks)
        self._samples = tuple(frozen)

    @property
    def weeks(self) -> Tuple[int, ...]:
        return self._weeks

    def __len__(self) -> int:
        return len(self._weeks)

    def __iter__(self) -> Iterator[Tuple[int, WeatherSample]]:
        return iter(zip(self._weeks, self._samples))

    def sample(self, week: int) -> WeatherSample:
        try:
            return self._samples[self._weeks.index(week)]
        except ValueError:
            raise KeyError(f"week {week} not in this weather batch") from None


# ═══════════════════════════════════════════════════════════════════════
# PROVIDERS
# ═══════════════════════════════════════════════════════════════════════

class WeatherProvider:
    """Base class: maps a week index to a weather sample."""

    spatial = False

    def sample(self, week: int) -> WeatherSample:
        raise NotImplementedError

    def fetch_batch(self, weeks: Sequence[int]) -> WeatherBatch:
        """Fetch every queued week's multiplier, in queue order."""
        return WeatherBatch(weeks, [self.sample(w) for w in weeks])

    def validate_layout(self, grid: Grid) -> None:
        """Raise ShapeMismatch if the weather cannot cover ``grid``."""

    def validate_horizon(self, last_week: int) -> None:
        """Raise DataSourceError if week ``last_week`` is unavailable."""


class ConstantWeather(WeatherProvider):
    """The same scalar multiplier for every week and cell."""

    def __init__(self, value: float = NEUTRAL_WEATHER):
        check_multipliers(value, "weather value")
        self.value = float(value)

    def sample(self, week: int) -> float:
        return self.value

    def __repr__(self) -> str:
        return f"ConstantWeather({self.value:g})"


class WeatherSeries(WeatherProvider):
    """One spatially uniform multiplier per calendar week.

    Args:
        values: Per-week multipliers, or (moisture, temperature) pairs
            whose product is used.
    """

    def __init__(self, values: Sequence):
        arr = np.array(values, dtype=np.float64)
        check_multipliers(arr, "weather series")
        if arr.ndim == 2 and arr.shape[1] == 2:
            arr = arr[:, 0] * arr[:, 1]
        elif arr.ndim != 1:
            raise DataSourceError(
                "weather series must be a list of values or of "
                f"(moisture, temperature) pairs, got shape {arr.shape}"
            )
        arr.flags.writeable = False
        self.values = arr

    def __len__(self) -> int:
        return len(self.values)

    def sample(self, week: int) -> float:
        if not 0 <= week < len(self.values):
            raise DataSourceError(
                f"weather series has {len(self.values)} weeks; "
                f"week {week} requested"
            )
        return float(self.values[week])

    def validate_horizon(self, last_week: int) -> None:
        if last_week >= len(self.values):
            raise DataSourceError(
                f"weather series has {len(self.values)} weeks but the "
                f"simulation needs week {last_week}"
            )
        if len(self.values) > last_week + 1:
            logger.warning(
                "Weather series has %d weeks, simulation uses %d; "
                "extra weeks ignored", len(self.values), last_week + 1,
            )


class SpatialWeather(WeatherProvider):
    """Per-cell multipliers from time-indexed coefficient stacks.

    Args:
        moisture: Stack of shape (weeks, height, width); indexing by a
            week must return that week's 2-D coefficients.
        temperature: Optional stack with the same shape. When omitted,
            ``moisture`` is taken as the already-combined coefficient.
    """

    spatial = True

    def __init__(self, moisture, temperature=None):
        self._check_stack(moisture, "moisture")
        if temperature is not None:
            self._check_stack(temperature, "temperature")
            if tuple(temperature.shape) != tuple(moisture.shape):
                raise ShapeMismatch(
                    f"temperature coefficients {tuple(temperature.shape)} do not "
                    f"match moisture coefficients {tuple(moisture.shape)}"
                )
        self._moisture = moisture
        self._temperature = temperature

    @staticmethod
    def _check_stack(stack, name: str) -> None:
        shape = getattr(stack, 'shape', None)
        if shape is None or len(shape) != 3:
            raise DataSourceError(
                f"{name} coefficients must be a (weeks, rows, cols) stack, "
                f"got shape {shape}"
            )

    @property
    def n_weeks(self) -> int:
        return int(self._moisture.shape[0])

    @property
    def grid_shape(self) -> Tuple[int, int]:
        return int(self._moisture.shape[1]), int(self._moisture.shape[2])

    def _read(self, stack, week: int, name: str) -> np.ndarray:
        try:
            arr = np.asarray(stack[week], dtype=np.float64)
        except (IndexError, KeyError, OSError, RuntimeError) as exc:
            raise DataSourceError(
                f"cannot read {name} coefficients for week {week}: {exc}"
            ) from exc
        if arr.shape != self.grid_shape:
            raise DataSourceError(
                f"{name} coefficients for week {week} have shape {arr.shape}, "
                f"expected {self.grid_shape}"
            )
        check_multipliers(arr, f"{name} coefficients for week {week}")
        return arr

    def sample(self, week: int) -> np.ndarray:
        if not 0 <= week < self.n_weeks:
            raise DataSourceError(
                f"spatial weather has {self.n_weeks} weeks; week {week} requested"
            )
        combined = self._read(self._moisture, week, "moisture")
        if self._temperature is not None:
            combined = combined * self._read(self._temperature, week, "temperature")
        return combined

    def validate_layout(self, grid: Grid) -> None:
        if self.grid_shape != grid.shape:
            raise ShapeMismatch(
                f"weather grid {self.grid_shape[1]}x{self.grid_shape[0]} does not "
                f"match simulation grid {grid.width}x{grid.height}"
            )

    def validate_horizon(self, last_week: int) -> None:
        if last_week >= self.n_weeks:
            raise DataSourceError(
                f"spatial weather has {self.n_weeks} weeks but the "
                f"simulation needs week {last_week}"
            )


# ═══════════════════════════════════════════════════════════════════════
# SELECTION
# ═══════════════════════════════════════════════════════════════════════

def weather_multiplier(sample: WeatherSample, row: int, col: int) -> float:
    """Multiplier of ``sample`` at one cell."""
    if isinstance(sample, np.ndarray):
        return float(sample[row, col])
    return float(sample)


def make_weather_provider(
    value: Optional[float] = None,
    series: Optional[Sequence] = None,
    spatial: Optional[Tuple] = None,
) -> WeatherProvider:
    """Pick the single configured weather source.

    Args:
        value: Constant multiplier.
        series: Per-week scalars (or moisture/temperature pairs).
        spatial: ``(moisture, temperature)`` stacks, temperature may be None.

    Returns:
        A WeatherProvider; ConstantWeather(1.0) when nothing is given.

    Raises:
        ConfigurationError: If more than one source is given.
    """
    given = [name for name, src in
             (('spatial', spatial), ('series', series), ('value', value))
             if src is not None]
    if len(given) > 1:
        raise ConfigurationError(
            f"weather sources are mutually exclusive, got {', '.join(given)}",
            field='weather',
        )
    if spatial is not None:
        moisture, temperature = spatial
        return SpatialWeather(moisture, temperature)
    if series is not None:
        return WeatherSeries(series)
    if value is not None:
        return ConstantWeather(value)
    return ConstantWeather(NEUTRAL_WEATHER)
