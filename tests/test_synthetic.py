from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from cfbaseline.config import ConfigurationError, SecondaryParams, SignalParams
from cfbaseline.synthetic import (
    ar1_noise,
    daily_dates,
    derive_secondary_variables,
    generate_daily_series,
    generate_monthly_grid,
    generate_signal,
    grid_axis,
    seasonal_component,
    spatial_temperature_base,
    trend_component,
)


def test_daily_dates_are_gap_free_and_unique():
    dates = daily_dates("2012-01-01", "2013-12-31")
    assert len(dates) == 366 + 365
    assert dates.is_unique
    assert (dates[1:] - dates[:-1] == pd.Timedelta(days=1)).all()


def test_daily_dates_rejects_reversed_range():
    with pytest.raises(ConfigurationError):
        daily_dates("2020-01-02", "2020-01-01")


def test_single_day_range_is_allowed():
    assert len(daily_dates("2020-01-01", "2020-01-01")) == 1


@pytest.mark.parametrize("phi", [1.0, -1.0, 1.5])
def test_ar1_rejects_non_stationary_coefficient(phi):
    with pytest.raises(ConfigurationError):
        ar1_noise(10, phi, 1.0, np.random.default_rng(0))


def test_ar1_rejects_negative_sigma():
    with pytest.raises(ConfigurationError):
        ar1_noise(10, 0.5, -1.0, np.random.default_rng(0))


def test_ar1_preserves_marginal_variance_and_lag_one_correlation():
    noise = ar1_noise(200_000, 0.6, 2.0, np.random.default_rng(42))
    assert noise.std() == pytest.approx(2.0, abs=0.05)
    lag_one = np.corrcoef(noise[:-1], noise[1:])[0, 1]
    assert lag_one == pytest.approx(0.6, abs=0.02)


def test_ar1_empty_series():
    assert ar1_noise(0, 0.5, 1.0, np.random.default_rng(0)).size == 0


def test_seasonal_component_peaks_a_quarter_period_in():
    params = SignalParams(amplitude=1.0)
    assert seasonal_component([3.0], params, period=12)[0] == pytest.approx(1.0)


def test_trend_uses_one_based_steps():
    np.testing.assert_allclose(trend_component(3, 0.04, steps_per_year=1), [0.04, 0.08, 0.12])


def test_generate_signal_without_noise_is_deterministic_sum():
    params = SignalParams(baseline=10.0, amplitude=2.0, trend_rate=1.0, sigma=0.0)
    time = np.arange(1, 13)
    expected = 10.0 + seasonal_component(time, params, 12) + trend_component(12, 1.0, 12)
    np.testing.assert_allclose(
        generate_signal(time, params, np.random.default_rng(0), period=12, steps_per_year=12), expected
    )


def test_generate_signal_applies_floor_and_ceiling():
    params = SignalParams(baseline=50.0, sigma=100.0, floor=20.0, ceiling=100.0)
    values = generate_signal(np.arange(1, 1000), params, np.random.default_rng(1))
    assert values.min() >= 20.0
    assert values.max() <= 100.0


def test_generate_daily_series_is_reproducible_for_a_seed():
    params = SignalParams(baseline=15.0, amplitude=10.0, phi=0.6, sigma=2.0)
    first = generate_daily_series("2010-01-01", "2011-12-31", params, np.random.default_rng(7))
    second = generate_daily_series("2010-01-01", "2011-12-31", params, np.random.default_rng(7))
    other = generate_daily_series("2010-01-01", "2011-12-31", params, np.random.default_rng(8))

    pd.testing.assert_frame_equal(first, second)
    assert not np.allclose(first["temperature"], other["temperature"])
    assert list(first.columns) == ["date", "temperature", "is_forced_heatwave"]
    assert not first["is_forced_heatwave"].any()


def _heatwave_frame(n_days: int = 6000) -> pd.DataFrame:
    dates = pd.date_range("2000-01-01", periods=n_days, freq="D")
    rng = np.random.default_rng(3)
    heatwave = (np.arange(n_days) // 5) % 2 == 1
    return pd.DataFrame(
        {
            "date": dates,
            "temperature": 20 + 8 * np.sin(2 * np.pi * dates.dayofyear / 365.25) + rng.normal(0, 2, n_days),
            "is_forced_heatwave": heatwave,
            "is_heatwave": heatwave,
        }
    )


def test_secondary_variables_respect_floors():
    frame = _heatwave_frame(3000)
    params = SecondaryParams(humidity_intercept=-20.0)
    out = derive_secondary_variables(frame, params, np.random.default_rng(11))

    assert (out["humidity_proxy"] >= 0.1).all()
    assert (out["precipitation_mean"] >= 0).all()
    assert (out["precipitation_extreme"] >= 0).all()
    assert (out["convective_energy"] >= 0).all()
    extremes = out["precipitation_extreme"][out["precipitation_extreme"] > 0]
    assert extremes.between(20, 100).all()


def test_extreme_precipitation_is_rare():
    out = derive_secondary_variables(_heatwave_frame(20_000), SecondaryParams(), np.random.default_rng(5))
    share = (out["precipitation_extreme"] > 0).mean()
    assert share == pytest.approx(0.02, abs=0.005)


def test_heatwave_days_suppress_precipitation_and_perturb_convective_energy():
    frame = _heatwave_frame()
    heatwave = frame["is_heatwave"].to_numpy()
    params = SecondaryParams()

    baseline = derive_secondary_variables(frame.assign(is_heatwave=False), params, np.random.default_rng(21))
    scaled = derive_secondary_variables(frame, params, np.random.default_rng(21))

    quiet_columns = ["humidity_proxy", "precipitation_mean", "precipitation_extreme", "convective_energy"]
    pd.testing.assert_frame_equal(
        baseline.loc[~heatwave, quiet_columns], scaled.loc[~heatwave, quiet_columns]
    )

    base_precip = baseline.loc[heatwave, "precipitation_mean"].to_numpy()
    hw_precip = scaled.loc[heatwave, "precipitation_mean"].to_numpy()
    assert (hw_precip <= base_precip + 1e-12).all()
    wet = base_precip > 0.5
    assert (hw_precip[wet] / base_precip[wet]).mean() == pytest.approx(0.25, abs=0.03)

    assert (scaled.loc[heatwave, "humidity_proxy"] <= baseline.loc[heatwave, "humidity_proxy"] + 1e-12).all()

    base_cape = baseline.loc[heatwave, "convective_energy"].to_numpy()
    hw_cape = scaled.loc[heatwave, "convective_energy"].to_numpy()
    assert (hw_cape <= 1.2 * base_cape + 1e-9).all()
    strong = base_cape > 200
    ratio = hw_cape[strong] / base_cape[strong]
    assert 0.85 < ratio.mean() < 1.05
    assert ratio.std() > 0.05


def test_secondary_variables_leave_input_untouched():
    frame = _heatwave_frame(100)
    snapshot = frame.copy()
    derive_secondary_variables(frame, SecondaryParams(), np.random.default_rng(0))
    pd.testing.assert_frame_equal(frame, snapshot)


def test_secondary_variables_require_heatwave_flag():
    frame = _heatwave_frame(10).drop(columns="is_heatwave")
    with pytest.raises(KeyError):
        derive_secondary_variables(frame, SecondaryParams(), np.random.default_rng(0))


def test_grid_axis_is_inclusive():
    np.testing.assert_allclose(grid_axis(28.5, 29.5, 1.0), [28.5, 29.5])
    np.testing.assert_allclose(grid_axis(76.0, 76.5, 0.1), [76.0, 76.1, 76.2, 76.3, 76.4, 76.5])


def test_monthly_grid_shares_the_temporal_signal_across_cells():
    lats, lons = [28.5, 29.5], [76.5, 77.5]
    rng = np.random.default_rng(123)
    base = spatial_temperature_base(lats, lons, rng)
    params = SignalParams(amplitude=10.0, trend_rate=0.012, phi=0.6, sigma=1.5)
    table = generate_monthly_grid(2000, 2002, lats, lons, params, rng, variable="temperature", spatial_base=base)

    assert len(table) == 4 * 3 * 12
    assert list(table.columns) == ["lat", "lon", "year", "month", "temperature"]
    wide = table.pivot_table(index=["year", "month"], columns=["lat", "lon"], values="temperature")
    differences = wide.sub(wide.iloc[:, 0], axis=0)
    assert differences.std().max() == pytest.approx(0.0, abs=1e-9)


def test_monthly_grid_rejects_reversed_years():
    with pytest.raises(ConfigurationError):
        generate_monthly_grid(2001, 2000, [0.0], [0.0], SignalParams(), np.random.default_rng(0), variable="x")
