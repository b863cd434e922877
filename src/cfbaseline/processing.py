from __future__ import annotations

from glob import glob
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import DriversConfig, GmtaConfig, HeatwaveConfig, HeatwaveEvent, MonthlyGridConfig
from .drivers import (
    combine_concentrations,
    combine_emissions,
    read_ceds,
    read_global_carbon_budget,
    read_law_dome,
    read_mauna_loa,
    stitch_concentrations,
)
from .gmta import ANNUAL_COLUMNS, annual_weighted_mean, grid_to_table, save_subset, subset_anomaly_grid
from .heatwaves import (
    day_of_year_threshold,
    detect_heatwaves,
    inject_heatwaves,
    schedule_heatwaves,
    summarize_heatwaves,
)
from .io import load_anomaly_grid, write_table
from .synthetic import (
    derive_secondary_variables,
    generate_daily_series,
    generate_monthly_grid,
    grid_axis,
    spatial_temperature_base,
)

DAILY_COLUMNS = [
    "date",
    "temperature",
    "is_forced_heatwave",
    "humidity_proxy",
    "precipitation_mean",
    "precipitation_extreme",
    "convective_energy",
    "is_heatwave",
]


def _say(verbose: bool, message: str) -> None:
    if verbose:
        print(message)


def build_heatwave_table(
    config: HeatwaveConfig,
    *,
    rng: Optional[np.random.Generator] = None,
    events: Optional[Sequence[HeatwaveEvent]] = None,
) -> Dict[str, object]:
    """
    Generate, inject, detect and derive: the in-memory daily heatwave table.

    ``events`` replaces the configured event list; random events are only
    drawn when ``config.random_events`` is set and ``events`` is not given.
    """
    config.validate()
    rng = rng if rng is not None else np.random.default_rng(config.seed)

    base = generate_daily_series(config.start_date, config.end_date, config.temperature, rng)

    if events is None:
        events = list(config.events)
        if config.random_events:
            events += schedule_heatwaves(base["date"], config.schedule, rng)
    events = list(events)

    forced = inject_heatwaves(base, events)
    thresholds = day_of_year_threshold(forced, config.quantile)
    detected = detect_heatwaves(
        forced, thresholds, quantile=config.quantile, min_run_length=config.min_run_length
    )
    daily = derive_secondary_variables(detected, config.secondary, rng)[DAILY_COLUMNS]

    return {
        "base": base,
        "events": events,
        "thresholds": thresholds,
        "daily": daily,
    }


def run_heatwave_pipeline(
    config: HeatwaveConfig,
    *,
    save_results: bool = True,
    make_plots: bool = True,
    show_plots: bool = False,
    verbose: bool = False,
) -> Dict[str, object]:
    _say(verbose, f"Generating daily series {config.start_date:%Y-%m-%d} to {config.end_date:%Y-%m-%d} (seed={config.seed})")
    results = build_heatwave_table(config)
    daily = results["daily"]
    summary = summarize_heatwaves(daily)
    _say(verbose, f"Scheduled {len(results['events'])} heatwave event(s); {len(summary)} heatwave block(s) in output")

    output_dir = Path(config.output_dir)
    output_path = None
    if save_results:
        output_path = write_table(
            daily, output_dir / config.output_name, delimiter=config.delimiter, columns=DAILY_COLUMNS
        )
        _say(verbose, f"Saved {len(daily)} rows to {output_path}")

    plot_path = None
    if make_plots:
        from .plotting import plot_heatwave_timeseries

        plot_path = plot_heatwave_timeseries(
            daily,
            results["thresholds"],
            output_path=output_dir / f"{Path(config.output_name).stem}.png",
            show=show_plots,
        )

    results.update({"summary": summary, "output_path": output_path, "plot_path": plot_path})
    return results


def run_monthly_pipeline(
    config: MonthlyGridConfig,
    *,
    save_results: bool = True,
    verbose: bool = False,
) -> Dict[str, object]:
    config.validate()
    lats = grid_axis(config.lat_min, config.lat_max, config.resolution)
    lons = grid_axis(config.lon_min, config.lon_max, config.resolution)
    _say(verbose, f"Generating monthly grid {config.start_year}-{config.end_year} on {len(lats)}x{len(lons)} cells")

    # independent streams per variable
    temp_rng, precip_rng, humidity_rng = [
        np.random.default_rng(child) for child in np.random.SeedSequence(config.seed).spawn(3)
    ]

    span = (config.start_year, config.end_year, lats, lons)
    tables = {
        "temperature": generate_monthly_grid(
            *span,
            config.temperature,
            temp_rng,
            variable="temperature",
            spatial_base=spatial_temperature_base(lats, lons, temp_rng),
        ),
        "precipitation": generate_monthly_grid(
            *span, config.precipitation, precip_rng, variable="precipitation_mm"
        ),
        "humidity": generate_monthly_grid(*span, config.humidity, humidity_rng, variable="humidity_percent"),
    }

    paths: Dict[str, Path] = {}
    if save_results:
        for name, table in tables.items():
            paths[name] = write_table(table, Path(config.output_dir) / f"{name}.csv")
            _say(verbose, f"Saved {len(table)} rows to {paths[name]}")

    return {"tables": tables, "output_paths": paths}


def run_gmta_pipeline(
    config: GmtaConfig,
    *,
    save_results: bool = True,
    make_plots: bool = True,
    show_plots: bool = False,
    verbose: bool = False,
) -> Dict[str, object]:
    config.validate()
    _say(verbose, f"Loading '{config.variable}' from {config.netcdf_path}")
    grid = load_anomaly_grid(config.netcdf_path, config.variable)
    subset = subset_anomaly_grid(
        grid,
        (config.lon_min, config.lon_max),
        (config.lat_min, config.lat_max),
        (config.start_year, config.end_year),
    )
    _say(verbose, f"Subset shape (time, lat, lon): {subset.shape}")

    table = grid_to_table(subset)
    annual = annual_weighted_mean(table)
    _say(verbose, f"Annual table: {len(annual)} rows, {annual['year'].nunique()} years")

    output_dir = Path(config.output_dir)
    output_path = None
    subset_path = None
    if save_results:
        output_path = write_table(annual, output_dir / config.output_name, columns=ANNUAL_COLUMNS)
        _say(verbose, f"Saved annual anomalies to {output_path}")
        if config.save_subset:
            subset_path = save_subset(subset, output_dir / "anomaly_subset.nc")

    plot_path = None
    if make_plots:
        from .plotting import plot_annual_anomalies

        plot_path = plot_annual_anomalies(
            annual, output_path=output_dir / "annual_anomalies.png", show=show_plots
        )

    return {
        "data_shape": grid.shape,
        "subset_shape": subset.shape,
        "monthly": table,
        "annual": annual,
        "output_path": output_path,
        "subset_path": subset_path,
        "plot_path": plot_path,
    }


def run_drivers_pipeline(
    config: DriversConfig,
    *,
    save_results: bool = True,
    verbose: bool = False,
) -> Dict[str, object]:
    config.validate()
    output_dir = Path(config.output_dir)
    results: Dict[str, object] = {}
    to_write: Dict[str, pd.DataFrame] = {}

    modern_sources = {
        "co2": config.mauna_loa_co2,
        "ch4": config.mauna_loa_ch4,
        "n2o": config.mauna_loa_n2o,
    }
    modern_frames: List[pd.DataFrame] = []
    for gas, path in modern_sources.items():
        if path is not None:
            _say(verbose, f"Reading Mauna Loa {gas.upper()} from {path}")
            modern_frames.append(read_mauna_loa(path, gas))
    modern = combine_concentrations(modern_frames) if modern_frames else None

    cores = None
    if config.law_dome is not None:
        _say(verbose, f"Reading Law Dome ice cores from {config.law_dome}")
        cores = read_law_dome(config.law_dome, config.law_dome_sheet)

    if modern is not None:
        to_write["noaa"] = modern
    if cores is not None:
        to_write["cores"] = cores
    if modern is not None and cores is not None:
        to_write["concentrations"] = stitch_concentrations(modern, cores)

    if config.gcb_path is not None:
        _say(verbose, f"Reading Global Carbon Budget from {config.gcb_path}")
        emissions = read_global_carbon_budget(config.gcb_path, config.gcb_sheet, config.gcb_skiprows)
        if config.ceds_dir is not None:
            ceds_files = sorted(glob(str(Path(config.ceds_dir) / config.ceds_pattern)))
            _say(verbose, f"Reading {len(ceds_files)} CEDS file(s) from {config.ceds_dir}")
            emissions = combine_emissions(emissions, read_ceds(ceds_files, config.ceds_species))
        to_write["emissions_data"] = emissions

    paths: Dict[str, Path] = {}
    if save_results:
        for name, table in to_write.items():
            paths[name] = write_table(table, output_dir / f"{name}.csv")
            _say(verbose, f"Saved {len(table)} rows to {paths[name]}")

    results.update({"tables": to_write, "output_paths": paths})
    return results
