"""Tests for sod_spread.weather — weekly weather multipliers."""

import logging

import numpy as np
import pytest

from sod_spread.errors import ConfigurationError, DataSourceError, ShapeMismatch
from sod_spread.grid import Grid
from sod_spread.weather import (
    ConstantWeather,
    SpatialWeather,
    WeatherBatch,
    WeatherSeries,
    make_weather_provider,
    weather_multiplier,
)


class TestConstantWeather:
    def test_default_is_neutral(self):
        w = ConstantWeather()
        assert w.sample(0) == 1.0
        assert w.sample(500) == 1.0

    def test_value(self):
        assert ConstantWeather(0.25).sample(3) == 0.25

    def test_not_spatial(self):
        assert not ConstantWeather().spatial

    @pytest.mark.parametrize("value", [-0.5, float('nan'), float('inf')])
    def test_rejects_bad_value(self, value):
        with pytest.raises(DataSourceError, match="non-negative"):
            ConstantWeather(value)


class TestWeatherSeries:
    def test_per_week_values(self):
        w = WeatherSeries([0.1, 0.2, 0.3])
        assert w.sample(1) == pytest.approx(0.2)
        assert len(w) == 3

    def test_moisture_temperature_pairs(self):
        w = WeatherSeries([[0.5, 0.4], [1.0, 0.9]])
        assert w.sample(0) == pytest.approx(0.2)
        assert w.sample(1) == pytest.approx(0.9)

    @pytest.mark.parametrize("week", [3, 10, -1])
    def test_out_of_range(self, week):
        w = WeatherSeries([0.1, 0.2, 0.3])
        with pytest.raises(DataSourceError):
            w.sample(week)

    def test_bad_shape(self):
        with pytest.raises(DataSourceError):
            WeatherSeries([[1.0, 2.0, 3.0]])

    def test_horizon_too_short(self):
        with pytest.raises(DataSourceError, match="week 5"):
            WeatherSeries([1.0] * 5).validate_horizon(5)

    def test_horizon_longer_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="sod_spread.weather"):
            WeatherSeries([1.0] * 10).validate_horizon(4)
        assert any("ignored" in rec.message for rec in caplog.records)

    def test_values_read_only(self):
        w = WeatherSeries([1.0, 2.0])
        with pytest.raises(ValueError):
            w.values[0] = 5.0

    @pytest.mark.parametrize("values", [
        [1.0, -0.1, 0.5],
        [0.2, float('nan')],
        [[0.5, 0.4], [-1.0, 0.9]],
    ])
    def test_rejects_bad_values(self, values):
        with pytest.raises(DataSourceError, match="weather series"):
            WeatherSeries(values)


class TestSpatialWeather:
    def _stacks(self, weeks=4, rows=2, cols=3):
        moisture = np.full((weeks, rows, cols), 0.5)
        temperature = np.arange(weeks * rows * cols, dtype=float).reshape(
            weeks, rows, cols)
        return moisture, temperature

    def test_product(self):
        m, t = self._stacks()
        w = SpatialWeather(m, t)
        np.testing.assert_allclose(w.sample(2), 0.5 * t[2])
        assert w.spatial
        assert w.n_weeks == 4
        assert w.grid_shape == (2, 3)

    def test_single_combined_stack(self):
        m, _ = self._stacks()
        np.testing.assert_allclose(SpatialWeather(m).sample(0), m[0])

    def test_layout_check(self):
        m, t = self._stacks(rows=2, cols=3)
        w = SpatialWeather(m, t)
        w.validate_layout(Grid(3, 2))
        with pytest.raises(ShapeMismatch):
            w.validate_layout(Grid(2, 3))

    def test_mismatched_stacks(self):
        m, _ = self._stacks(rows=2, cols=3)
        _, t = self._stacks(rows=3, cols=3)
        with pytest.raises(ShapeMismatch):
            SpatialWeather(m, t)

    def test_not_a_stack(self):
        with pytest.raises(DataSourceError):
            SpatialWeather(np.ones((2, 3)))

    def test_week_out_of_range(self):
        w = SpatialWeather(*self._stacks(weeks=2))
        with pytest.raises(DataSourceError):
            w.sample(2)
        with pytest.raises(DataSourceError):
            w.validate_horizon(2)

    def test_unreadable_week(self):
        class Broken:
            shape = (3, 2, 2)

            def __getitem__(self, week):
                raise OSError("disk gone")

        w = SpatialWeather(Broken())
        with pytest.raises(DataSourceError, match="disk gone"):
            w.sample(0)

    @pytest.mark.parametrize("bad", [-0.3, np.nan])
    def test_bad_cell_names_week(self, bad):
        m, t = self._stacks(weeks=3)
        m[2, 1, 0] = bad
        w = SpatialWeather(m, t)
        w.sample(1)
        with pytest.raises(DataSourceError, match="moisture coefficients for week 2"):
            w.sample(2)


class TestWeatherBatch:
    def test_fetch_in_queue_order(self):
        w = WeatherSeries([0.0, 0.1, 0.2, 0.3, 0.4])
        batch = w.fetch_batch([3, 1, 4])
        assert batch.weeks == (3, 1, 4)
        assert [s for _, s in batch] == pytest.approx([0.3, 0.1, 0.4])
        assert len(batch) == 3
        assert batch.sample(1) == pytest.approx(0.1)

    def test_missing_week(self):
        batch = ConstantWeather().fetch_batch([0, 1])
        with pytest.raises(KeyError):
            batch.sample(7)

    def test_spatial_samples_read_only(self):
        w = SpatialWeather(np.ones((2, 2, 2)))
        batch = w.fetch_batch([0, 1])
        sample = batch.sample(0)
        with pytest.raises(ValueError):
            sample[0, 0] = 9.0

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            WeatherBatch([0, 1], [1.0])


class TestSelection:
    def test_default_neutral(self):
        w = make_weather_provider()
        assert isinstance(w, ConstantWeather)
        assert w.value == 1.0

    def test_value(self):
        assert make_weather_provider(value=0.7).sample(0) == 0.7

    def test_series(self):
        assert isinstance(make_weather_provider(series=[1.0, 2.0]), WeatherSeries)

    def test_spatial(self):
        w = make_weather_provider(spatial=(np.ones((1, 2, 2)), None))
        assert isinstance(w, SpatialWeather)

    def test_mutually_exclusive(self):
        with pytest.raises(ConfigurationError, match="mutually exclusive"):
            make_weather_provider(value=1.0, series=[1.0])

    def test_multiplier_lookup(self):
        arr = np.array([[1.0, 2.0], [3.0, 4.0]])
        assert weather_multiplier(arr, 1, 0) == 3.0
        assert weather_multiplier(0.5, 1, 0) == 0.5
