from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np
import pandas as pd
import xarray as xr
import rioxarray  # noqa: F401

from .io import require_columns

ANNUAL_COLUMNS = ["lon", "lat", "year", "temperature_anomaly_annual"]


def subset_anomaly_grid(
    grid: xr.DataArray,
    lon_bounds: Tuple[float, float],
    lat_bounds: Tuple[float, float],
    time_bounds: Tuple[float, float],
) -> xr.DataArray:
    """
    Select cells whose centres, and time steps whose decimal years, fall inside
    the inclusive bounds.
    """
    lon_mask = (grid["lon"] >= lon_bounds[0]) & (grid["lon"] <= lon_bounds[1])
    lat_mask = (grid["lat"] >= lat_bounds[0]) & (grid["lat"] <= lat_bounds[1])
    time_mask = (grid["time"] >= time_bounds[0]) & (grid["time"] <= time_bounds[1])

    subset = grid.isel(
        lon=np.flatnonzero(lon_mask.values),
        lat=np.flatnonzero(lat_mask.values),
        time=np.flatnonzero(time_mask.values),
    )
    if 0 in subset.shape:
        raise ValueError(
            f"Subset is empty for lon {lon_bounds}, lat {lat_bounds}, time {time_bounds}."
        )
    return subset


def decimal_year_to_year_month(time) -> Tuple[np.ndarray, np.ndarray]:
    """Split decimal years (``1980.042``) into integer year and 1-based month."""
    time = np.asarray(time, dtype=float)
    year = np.floor(time)
    month = np.floor((time - year) * 12) + 1
    return year.astype(int), np.clip(month, 1, 12).astype(int)


def grid_to_table(grid: xr.DataArray, value_name: str = "temperature_anomaly") -> pd.DataFrame:
    """Flatten the grid to ``lon, lat, time, <value_name>, year, month`` rows, dropping NaNs."""
    values = grid.drop_vars("spatial_ref", errors="ignore").rename(value_name)
    table = values.to_dataframe().reset_index()[["lon", "lat", "time", value_name]]
    table = table.dropna(subset=[value_name]).reset_index(drop=True)
    table["year"], table["month"] = decimal_year_to_year_month(table["time"])
    return table


def annual_weighted_mean(
    table: pd.DataFrame,
    value_name: str = "temperature_anomaly",
) -> pd.DataFrame:
    """Annual mean per cell, weighting each month by its number of days."""
    require_columns(table, ["lon", "lat", "year", "month", value_name], "anomaly table")

    first_of_month = pd.to_datetime(
        pd.DataFrame({"year": table["year"], "month": table["month"], "day": 1})
    )
    weighted = table.assign(
        days_in_month=first_of_month.dt.days_in_month,
        weighted_value=table[value_name] * first_of_month.dt.days_in_month,
    )
    grouped = weighted.groupby(["lon", "lat", "year"], as_index=False)[["weighted_value", "days_in_month"]].sum()
    grouped[f"{value_name}_annual"] = grouped["weighted_value"] / grouped["days_in_month"]
    return grouped[["lon", "lat", "year", f"{value_name}_annual"]]


def save_subset(grid: xr.DataArray, output_path: str | Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    dataset = grid.to_dataset(name=grid.name or "temperature")
    dataset.attrs["crs"] = "EPSG:4326"
    dataset.attrs["title"] = "Temperature anomaly subset"
    dataset.attrs["description"] = "Bounding-box and decimal-year subset of the input anomaly archive"
    dataset.to_netcdf(output_path)
    return output_path
