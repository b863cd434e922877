from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd
import xarray as xr
import rioxarray  # noqa: F401


class SchemaError(KeyError):
    """Raised when a table is missing columns its consumer declares."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


def require_columns(frame: pd.DataFrame, columns: Iterable[str], source: str) -> pd.DataFrame:
    missing = [column for column in columns if column not in frame.columns]
    if missing:
        raise SchemaError(
            f"{source} is missing required columns {missing}. Available: {list(frame.columns)}"
        )
    return frame


def _existing(path: str | Path) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    return path


def read_table(path: str | Path, **kwargs) -> pd.DataFrame:
    return pd.read_csv(_existing(path), **kwargs)


def read_sheet(path: str | Path, sheet_name: str, **kwargs) -> pd.DataFrame:
    return pd.read_excel(_existing(path), sheet_name=sheet_name, **kwargs)


def write_table(
    frame: pd.DataFrame,
    path: str | Path,
    *,
    delimiter: str = ",",
    columns: Optional[Sequence[str]] = None,
) -> Path:
    """Write ``frame`` as a delimited text file with one header row and no index."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if columns is not None:
        require_columns(frame, columns, str(path.name))
        frame = frame.loc[:, list(columns)]
    frame.to_csv(path, sep=delimiter, index=False, date_format="%Y-%m-%d")
    return path


def load_anomaly_grid(path: str | Path, variable: str = "temperature") -> xr.DataArray:
    """
    Load a gridded anomaly archive as a ``(time, lat, lon)`` DataArray.

    Parameters
    ----------
    path:
        NetCDF file holding longitude/latitude axes and a decimal-year ``time`` axis.
    variable:
        Name of the anomaly variable stored in the file (case sensitive).

    Returns
    -------
    xarray.DataArray
        Loaded array with ``lat``/``lon`` dimensions and EPSG:4326 CRS metadata.
    """
    path = _existing(path)
    ds = xr.open_dataset(path)

    if variable not in ds:
        ds.close()
        raise KeyError(f"Variable '{variable}' not present in dataset. Available: {list(ds.data_vars)}")

    data_array = ds[variable].load()
    ds.close()

    # Normalize spatial dimension names
    dim_renames = {}
    if "latitude" in data_array.dims:
        dim_renames["latitude"] = "lat"
    if "longitude" in data_array.dims:
        dim_renames["longitude"] = "lon"
    if dim_renames:
        data_array = data_array.rename(dim_renames)

    expected = {"time", "lat", "lon"}
    if not expected.issubset(data_array.dims):
        raise ValueError(
            f"Variable '{variable}' must have dimensions {sorted(expected)}, got {data_array.dims}"
        )
    data_array = data_array.transpose("time", "lat", "lon")

    data_array.rio.set_spatial_dims(x_dim="lon", y_dim="lat", inplace=True)
    data_array.rio.write_crs("EPSG:4326", inplace=True)
    data_array.rio.write_nodata(np.nan, encoded=True, inplace=True)
    return data_array
