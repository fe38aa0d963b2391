"""Configuration system for sod-spread.

Layered YAML configuration with deep-merge support:
  base.yaml → scenario override → programmatic overrides

Sections map 1:1 to YAML top-level keys; unknown keys are ignored.
Rasters and spatial weather stacks are not configured here: they are
decoded by the caller and handed to run_ensemble().
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .dispersal import DispersalParameters
from .errors import ConfigurationError, DataSourceError
from .weather import check_multipliers


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Simulation horizon, ensemble size and randomness."""
    start_year: int = 2000
    end_year: int = 2010
    seasonality: Union[bool, str] = True   # True/False or 'yes'/'no'
    season_end_month: int = 9      # last active month when seasonal
    spore_rate: float = 4.4        # spores per infected tree per week
    runs: int = 1                  # replicas
    threads: int = 1               # worker threads for the replica batch
    seed: Optional[int] = None     # None = generate from OS entropy


@dataclass
class DispersalSection:
    """Dispersal kernel parameters."""
    radial_type: str = 'cauchy'    # 'cauchy' or 'cauchy_mix'
    scale_1: float = 20.57         # first Cauchy scale (map units)
    scale_2: Optional[float] = None  # second Cauchy scale (cauchy_mix)
    kappa: float = 2.0             # von Mises concentration
    gamma: Optional[float] = None  # P(first component) (cauchy_mix)
    wind: str = 'NONE'             # N, NE, E, SE, S, SW, W, NW or NONE


@dataclass
class WeatherSection:
    """Scalar weather sources (spatial stacks are passed in directly).

    At most one of ``value`` / ``series``. ``series`` entries are per-week
    multipliers or [moisture, temperature] pairs.
    """
    value: Optional[float] = None
    series: Optional[List[Any]] = None


@dataclass
class OutputSection:
    """Which aggregate grids to produce besides the final mean."""
    series: bool = False           # mean at every year boundary
    stddev: bool = False           # final standard deviation
    stddev_series: bool = False    # stddev at every year boundary


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    dispersal: DispersalSection = field(default_factory=DispersalSection)
    weather: WeatherSection = field(default_factory=WeatherSection)
    output: OutputSection = field(default_factory=OutputSection)

    @property
    def seasonal(self) -> bool:
        return parse_seasonality(self.simulation.seasonality)

    def dispersal_parameters(self) -> DispersalParameters:
        d = self.dispersal
        return DispersalParameters(
            radial_type=d.radial_type,
            scale_1=d.scale_1,
            kappa=d.kappa,
            wind=d.wind,
            scale_2=d.scale_2,
            gamma=d.gamma,
        )


def parse_seasonality(value) -> bool:
    """Accept a bool or the strings 'yes' / 'no'."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('yes', 'no'):
        return value.strip().lower() == 'yes'
    raise ConfigurationError(
        f"simulation.seasonality must be yes/no or a boolean, got '{value}'",
        field='simulation.seasonality',
    )


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    Dict values are merged recursively; everything else is replaced.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


_SECTIONS = {
    'simulation': SimulationSection,
    'dispersal': DispersalSection,
    'weather': WeatherSection,
    'output': OutputSection,
}


def config_from_dict(data: Dict) -> SimulationConfig:
    """Convert a merged YAML dict to a SimulationConfig (not validated)."""
    sections = {}
    for key, cls in _SECTIONS.items():
        if isinstance(data.get(key), dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return SimulationConfig(**sections)


def _fail(field_name: str, message: str):
    raise ConfigurationError(f"{field_name} {message}", field=field_name)


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints.

    Raises:
        ConfigurationError: naming the offending field.
    """
    sim = config.simulation
    if sim.start_year > sim.end_year:
        _fail('simulation.start_year',
              f"({sim.start_year}) must not be after end_year ({sim.end_year})")
    parse_seasonality(sim.seasonality)
    if not 1 <= sim.season_end_month <= 12:
        _fail('simulation.season_end_month',
              f"must be in 1..12, got {sim.season_end_month}")
    if sim.spore_rate < 0:
        _fail('simulation.spore_rate', f"must be >= 0, got {sim.spore_rate}")
    if sim.runs < 1:
        _fail('simulation.runs', f"must be >= 1, got {sim.runs}")
    if sim.threads < 1:
        _fail('simulation.threads', f"must be >= 1, got {sim.threads}")
    if sim.seed is not None and sim.seed < 0:
        _fail('simulation.seed', f"must be non-negative, got {sim.seed}")

    # Enumerations and conditional requirements live on DispersalParameters
    try:
        config.dispersal_parameters()
    except ConfigurationError as exc:
        raise ConfigurationError(
            f"dispersal.{exc}", field=f"dispersal.{exc.field}") from exc

    w = config.weather
    if w.value is not None and w.series is not None:
        _fail('weather', "accepts either value or series, not both")
    if w.series is not None and len(w.series) == 0:
        _fail('weather.series', "must not be empty")
    for name in ('value', 'series'):
        source = getattr(w, name)
        if source is None:
            continue
        try:
            check_multipliers(source, f"weather.{name}")
        except (TypeError, ValueError) as exc:
            _fail(f'weather.{name}', f"must be numeric: {exc}")
        except DataSourceError as exc:
            raise ConfigurationError(str(exc), field=f'weather.{name}') from exc


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge layered YAML configuration.

    Merge order: base → scenario → overrides.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML.
        overrides: Optional dict of overrides (e.g. from a sweep).

    Returns:
        Validated SimulationConfig.

    Raises:
        FileNotFoundError: If base_path or scenario_path doesn't exist.
        ConfigurationError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario file not found: {scenario_path}")
        with open(scenario_path) as f:
            deep_merge(config_dict, yaml.safe_load(f) or {})

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = config_from_dict(config_dict)
    validate_config(config)
    return config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    validate_config(config)
    return config
