from __future__ import annotations

from dataclasses import replace
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .config import ConfigurationError, SecondaryParams, SignalParams

DAYS_PER_YEAR = 365.25
MONTHS_PER_YEAR = 12


def daily_dates(start, end) -> pd.DatetimeIndex:
    """Return the gap-free daily sequence from ``start`` to ``end`` inclusive."""
    start = pd.Timestamp(start).normalize()
    end = pd.Timestamp(end).normalize()
    if end < start:
        raise ConfigurationError(f"Empty date range: {start:%Y-%m-%d} to {end:%Y-%m-%d}")
    return pd.date_range(start, end, freq="D", name="date")


def seasonal_component(time, params: SignalParams, period: float = DAYS_PER_YEAR) -> np.ndarray:
    """Annual plus semiannual harmonic evaluated at ``time`` (day-of-year or month)."""
    omega = 2 * np.pi / period
    time = np.asarray(time, dtype=float)
    return params.amplitude * np.sin(omega * time - params.phase) + params.amplitude2 * np.cos(
        2 * omega * time + params.phase2
    )


def trend_component(n: int, trend_rate: float, steps_per_year: float = DAYS_PER_YEAR) -> np.ndarray:
    """Linear trend in elapsed years, using a 1-based step index."""
    return trend_rate * (np.arange(1, n + 1) / steps_per_year)


def ar1_noise(n: int, phi: float, sigma: float, rng: np.random.Generator) -> np.ndarray:
    """
    First-order autoregressive noise with marginal standard deviation ``sigma``.

    ``noise[0] ~ N(0, sigma)`` and ``noise[i] = phi * noise[i-1] + sqrt(1 - phi**2) * N(0, sigma)``.
    """
    if not -1.0 < phi < 1.0:
        raise ConfigurationError(f"AR(1) coefficient must satisfy |phi| < 1, got {phi}")
    if sigma < 0:
        raise ConfigurationError(f"Noise standard deviation must be >= 0, got {sigma}")

    innovations = rng.normal(0.0, sigma, size=n)
    noise = np.empty(n, dtype=float)
    if n == 0:
        return noise
    scale = np.sqrt(1.0 - phi**2)
    noise[0] = innovations[0]
    for i in range(1, n):
        noise[i] = phi * noise[i - 1] + scale * innovations[i]
    return noise


def generate_signal(
    time,
    params: SignalParams,
    rng: np.random.Generator,
    *,
    period: float = DAYS_PER_YEAR,
    steps_per_year: float = DAYS_PER_YEAR,
) -> np.ndarray:
    """baseline + seasonal + trend + AR(1) noise, clipped to the optional floor/ceiling."""
    params.validate()
    time = np.asarray(time, dtype=float)
    n = time.size
    values = (
        params.baseline
        + seasonal_component(time, params, period)
        + trend_component(n, params.trend_rate, steps_per_year)
        + ar1_noise(n, params.phi, params.sigma, rng)
    )
    if params.floor is not None or params.ceiling is not None:
        values = np.clip(values, params.floor, params.ceiling)
    return values


def generate_daily_series(start, end, params: SignalParams, rng: np.random.Generator) -> pd.DataFrame:
    """Daily temperature table with an all-False ``is_forced_heatwave`` column."""
    dates = daily_dates(start, end)
    temperature = generate_signal(dates.dayofyear.to_numpy(), params, rng)
    return pd.DataFrame(
        {
            "date": dates,
            "temperature": temperature,
            "is_forced_heatwave": np.zeros(len(dates), dtype=bool),
        }
    )


def derive_secondary_variables(
    frame: pd.DataFrame,
    params: SecondaryParams,
    rng: np.random.Generator,
) -> pd.DataFrame:
    """
    Add humidity, precipitation and convective energy columns derived from temperature.

    Heatwave scaling factors are drawn for every day and applied only where
    ``is_heatwave`` is true, so the random stream does not depend on how many
    heatwave days the table holds.
    """
    for column in ("date", "temperature", "is_heatwave"):
        if column not in frame.columns:
            raise KeyError(f"Column '{column}' required to derive secondary variables.")
    params.validate()

    out = frame.copy()
    n = len(out)
    temperature = out["temperature"].to_numpy(dtype=float)
    heatwave = out["is_heatwave"].to_numpy(dtype=bool)

    humidity = params.humidity_intercept + params.humidity_slope * temperature
    humidity = np.maximum(humidity + rng.normal(0.0, params.humidity_sigma, n), params.humidity_floor)
    humidity_factor = rng.uniform(params.humidity_factor_min, params.humidity_factor_max, n)
    humidity = np.where(heatwave, np.maximum(humidity * humidity_factor, params.humidity_floor), humidity)

    precip_params = params.precipitation
    if precip_params.floor is None or precip_params.floor < 0:
        precip_params = replace(precip_params, floor=0.0)
    precipitation = generate_signal(out["date"].dt.dayofyear.to_numpy(), precip_params, rng)
    precip_factor = rng.uniform(params.precipitation_factor_min, params.precipitation_factor_max, n)
    precipitation = np.where(heatwave, precipitation * precip_factor, precipitation)

    # Rare extremes, independent of the mean precipitation noise
    occurs = rng.binomial(1, params.extreme_probability, n)
    magnitude = rng.uniform(params.extreme_min, params.extreme_max, n)
    extremes = occurs * magnitude

    cape_mean = (
        params.cape_intercept
        + params.cape_temperature_slope * (temperature - params.cape_temperature_reference)
        + params.cape_humidity_slope * (humidity - params.cape_humidity_reference)
    )
    cape = np.maximum(0.0, rng.normal(cape_mean, params.cape_sigma))
    cape_factor = rng.uniform(params.cape_factor_min, params.cape_factor_max, n)
    cape = np.where(heatwave, cape * cape_factor, cape)

    out["humidity_proxy"] = humidity
    out["precipitation_mean"] = precipitation
    out["precipitation_extreme"] = extremes
    out["convective_energy"] = cape
    return out


# ---------------------------------------------------------------------------
# Monthly gridded series
# ---------------------------------------------------------------------------

def grid_axis(low: float, high: float, step: float) -> np.ndarray:
    """Inclusive coordinate axis from ``low`` to ``high``."""
    count = int(np.floor((high - low) / step + 1e-9)) + 1
    return np.round(low + step * np.arange(count), 6)


def spatial_temperature_base(
    lats: Sequence[float],
    lons: Sequence[float],
    rng: np.random.Generator,
) -> pd.DataFrame:
    """Per-cell base temperature: a mild latitude gradient, a cooler centre and local noise."""
    grid = _expand_grid(lats, lons)
    lat = grid["lat"].to_numpy()
    lon = grid["lon"].to_numpy()
    grid["base"] = (
        30
        - 0.3 * (lat - 28)
        - 1.5 * np.exp(-((lat - 28.5) ** 2 + (lon - 77) ** 2) / 0.5)
        + rng.normal(0.0, 0.5, len(grid))
    )
    return grid


def _expand_grid(lats: Sequence[float], lons: Sequence[float]) -> pd.DataFrame:
    lat_grid, lon_grid = np.meshgrid(np.asarray(lats, dtype=float), np.asarray(lons, dtype=float), indexing="xy")
    return pd.DataFrame({"lat": lat_grid.ravel(), "lon": lon_grid.ravel()})


def generate_monthly_grid(
    start_year: int,
    end_year: int,
    lats: Sequence[float],
    lons: Sequence[float],
    params: SignalParams,
    rng: np.random.Generator,
    *,
    variable: str,
    spatial_base: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Monthly series for every grid cell.

    The temporal signal is shared by all cells; ``spatial_base`` (columns
    ``lat, lon, base``) adds a per-cell offset before the floor/ceiling is applied.
    """
    if end_year < start_year:
        raise ConfigurationError(f"Empty year range: {start_year} to {end_year}")

    years = np.arange(start_year, end_year + 1)
    months = np.tile(np.arange(1, MONTHS_PER_YEAR + 1), len(years))
    clip = {"floor": params.floor, "ceiling": params.ceiling}
    unclipped = replace(params, floor=None, ceiling=None)
    signal = generate_signal(
        months, unclipped, rng, period=MONTHS_PER_YEAR, steps_per_year=MONTHS_PER_YEAR
    )
    time_df = pd.DataFrame(
        {"year": np.repeat(years, MONTHS_PER_YEAR), "month": months, "signal": signal}
    )

    grid = _expand_grid(lats, lons)
    if spatial_base is not None:
        grid = grid.merge(spatial_base[["lat", "lon", "base"]], on=["lat", "lon"], how="left", validate="one_to_one")
        if grid["base"].isna().any():
            raise ValueError("spatial_base does not cover every grid cell.")
    else:
        grid["base"] = 0.0

    table = grid.merge(time_df, how="cross")
    values = table["base"].to_numpy() + table["signal"].to_numpy()
    if clip["floor"] is not None or clip["ceiling"] is not None:
        values = np.clip(values, clip["floor"], clip["ceiling"])
    table[variable] = values
    return table[["lat", "lon", "year", "month", variable]].sort_values(
        ["lat", "lon", "year", "month"], ignore_index=True
    )
