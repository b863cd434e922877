"""
Greenhouse-gas concentration and emission driver tables.

Concentrations (stock, ppm/ppb) come from the NOAA Mauna Loa monthly records
for the modern era and from Law Dome ice cores before that. Emissions
(flow) come from the Global Carbon Budget historical sheet, joined with
species totals from CEDS. Every join uses declared key lists; a source
missing a declared column raises ``SchemaError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

import pandas as pd

from .io import SchemaError, read_sheet, read_table, require_columns

CONCENTRATION_KEYS = ["year", "month"]
EMISSION_KEYS = ["year"]

# gas -> column carrying the value in the NOAA monthly CSVs
MAUNA_LOA_VALUE_COLUMNS: Dict[str, str] = {
    "co2": "deseasonalized",
    "ch4": "average",
    "n2o": "average",
}

LAW_DOME_COLUMNS: Dict[str, str] = {
    "Year AD": "year",
    "CH4 Spline (ppb)": "conc_ch4",
    "CO2 Spline (ppm)": "conc_co2",
    "N2O Spline (ppb)": "conc_n2o",
}

# last (year, month) taken from the ice core, the month before the NOAA record starts
ICE_CORE_CUTOFFS: Dict[str, Tuple[int, int]] = {
    "conc_co2": (1958, 2),
    "conc_ch4": (1983, 6),
    "conc_n2o": (2000, 12),
}

GCB_COLUMNS: Dict[str, str] = {
    "Year": "year",
    "fossil emissions excluding carbonation": "all_ff_emissions",
    "land-use change emissions": "all_lu_emission",
}

CEDS_SPECIES_COLUMN = "em"
CEDS_YEAR_PREFIX = "X"


def _clean_header(name) -> str:
    return str(name).replace(";", "").strip().lower()


def read_mauna_loa(path: str | Path, gas: str) -> pd.DataFrame:
    """Read one NOAA monthly record as ``year, month, conc_<gas>``."""
    gas = gas.lower()
    if gas not in MAUNA_LOA_VALUE_COLUMNS:
        raise ValueError(f"Unknown gas '{gas}'. Expected one of {sorted(MAUNA_LOA_VALUE_COLUMNS)}")

    raw = read_table(path, comment="#", skipinitialspace=True)
    raw = raw.rename(columns=_clean_header)
    value_column = MAUNA_LOA_VALUE_COLUMNS[gas]
    require_columns(raw, ["year", "month", value_column], f"Mauna Loa {gas.upper()} ({path})")

    frame = raw[["year", "month", value_column]].rename(columns={value_column: f"conc_{gas}"}).copy()
    frame["year"] = pd.to_numeric(frame["year"].astype(str).str.replace(";", "", regex=False)).astype(int)
    frame["month"] = frame["month"].astype(int)
    # NOAA marks missing months with negative sentinels
    frame[f"conc_{gas}"] = frame[f"conc_{gas}"].where(frame[f"conc_{gas}"] >= 0)
    return frame


def combine_concentrations(frames: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """Full outer join of per-gas monthly tables on ``year, month``."""
    if not frames:
        raise ValueError("At least one concentration table is required.")
    for frame in frames:
        require_columns(frame, CONCENTRATION_KEYS, "concentration table")
    combined = frames[0]
    for frame in frames[1:]:
        combined = combined.merge(frame, on=CONCENTRATION_KEYS, how="outer", validate="one_to_one")
    return combined.sort_values(CONCENTRATION_KEYS, ignore_index=True)


def _expand_to_months(frame: pd.DataFrame) -> pd.DataFrame:
    months = pd.DataFrame({"month": range(1, 13)})
    return frame.merge(months, how="cross")


def _through(frame: pd.DataFrame, year: int, month: int) -> pd.DataFrame:
    keep = (frame["year"] < year) | ((frame["year"] == year) & (frame["month"] <= month))
    return frame[keep]


def read_law_dome(path: str | Path, sheet: str = "SplineFit20yr") -> pd.DataFrame:
    """
    Read the Law Dome spline sheet as monthly ``year, month, conc_co2, conc_ch4, conc_n2o``.

    Each annual value is repeated for all twelve months and each gas stops the
    month before its NOAA record begins.
    """
    raw = read_sheet(path, sheet)
    require_columns(raw, list(LAW_DOME_COLUMNS), f"Law Dome sheet '{sheet}' ({path})")
    cores = raw[list(LAW_DOME_COLUMNS)].rename(columns=LAW_DOME_COLUMNS)
    cores = cores.dropna(subset=["year"]).copy()
    cores["year"] = cores["year"].astype(int)

    per_gas: List[pd.DataFrame] = []
    for column, (last_year, last_month) in ICE_CORE_CUTOFFS.items():
        gas = _expand_to_months(cores[["year", column]].dropna(subset=[column]))
        per_gas.append(_through(gas, last_year, last_month)[CONCENTRATION_KEYS + [column]])
    return combine_concentrations(per_gas)


def stitch_concentrations(modern: pd.DataFrame, ice_core: pd.DataFrame) -> pd.DataFrame:
    """Single monthly record: modern observations where present, ice core elsewhere."""
    require_columns(modern, CONCENTRATION_KEYS, "modern concentrations")
    require_columns(ice_core, CONCENTRATION_KEYS, "ice core concentrations")
    stitched = modern.set_index(CONCENTRATION_KEYS).combine_first(ice_core.set_index(CONCENTRATION_KEYS))
    return stitched.sort_index().reset_index()


def read_ceds(paths: Iterable[str | Path], species: Sequence[str]) -> pd.DataFrame:
    """Sum CEDS sector/fuel rows per species and return one ``year`` row per year."""
    paths = list(paths)
    if not paths:
        raise FileNotFoundError("No CEDS files found.")

    raw = pd.concat([read_table(path) for path in paths], ignore_index=True)
    require_columns(raw, [CEDS_SPECIES_COLUMN], "CEDS emissions")
    year_columns = [column for column in raw.columns if str(column).startswith(CEDS_YEAR_PREFIX)]
    if not year_columns:
        raise SchemaError(f"CEDS emissions has no '{CEDS_YEAR_PREFIX}<year>' columns.")

    selected = raw[raw[CEDS_SPECIES_COLUMN].isin(species)]
    missing = sorted(set(species) - set(selected[CEDS_SPECIES_COLUMN]))
    if missing:
        raise SchemaError(f"CEDS emissions has no rows for species {missing}.")

    totals = selected.groupby(CEDS_SPECIES_COLUMN)[year_columns].sum(min_count=1)
    long = totals.reset_index().melt(
        id_vars=CEDS_SPECIES_COLUMN, var_name="year", value_name="value"
    )
    long["year"] = long["year"].str[len(CEDS_YEAR_PREFIX) :].astype(int)
    wide = long.pivot(index="year", columns=CEDS_SPECIES_COLUMN, values="value")
    wide.columns.name = None
    return wide[list(species)].reset_index()


def read_global_carbon_budget(
    path: str | Path,
    sheet: str = "Historical Budget",
    skiprows: int = 0,
) -> pd.DataFrame:
    """Fossil and land-use change emissions (GtC/yr) per year."""
    raw = read_sheet(path, sheet, skiprows=skiprows)
    raw = raw.rename(columns=lambda name: str(name).strip())
    require_columns(raw, list(GCB_COLUMNS), f"Global Carbon Budget sheet '{sheet}' ({path})")
    budget = raw[list(GCB_COLUMNS)].rename(columns=GCB_COLUMNS).dropna(subset=["year"]).copy()
    budget["year"] = budget["year"].astype(int)
    return budget.reset_index(drop=True)


def combine_emissions(budget: pd.DataFrame, ceds: pd.DataFrame) -> pd.DataFrame:
    require_columns(budget, EMISSION_KEYS, "carbon budget")
    require_columns(ceds, EMISSION_KEYS, "CEDS totals")
    return budget.merge(ceds, on=EMISSION_KEYS, how="left", validate="one_to_one")
