from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from cfbaseline.config import HeatwaveConfig, HeatwaveEvent, MonthlyGridConfig
from cfbaseline.processing import (
    DAILY_COLUMNS,
    build_heatwave_table,
    run_heatwave_pipeline,
    run_monthly_pipeline,
)


def _config(tmp_path, **overrides) -> HeatwaveConfig:
    settings = dict(
        start_date="2010-01-01",
        end_date="2019-12-31",
        seed=1234,
        random_events=False,
        events=[HeatwaveEvent("2015-07-01", 7, 8.0)],
        output_dir=tmp_path,
    )
    settings.update(overrides)
    return HeatwaveConfig(**settings)


def test_explicit_event_is_forced_and_detected(tmp_path):
    results = build_heatwave_table(_config(tmp_path))
    daily = results["daily"]
    base = results["base"]

    window = daily["date"].between("2015-07-01", "2015-07-07")
    assert daily.loc[window, "is_forced_heatwave"].all()
    assert daily.loc[window, "is_heatwave"].all()
    assert int(daily["is_forced_heatwave"].sum()) == 7

    midpoint = daily["date"] == pd.Timestamp("2015-07-04")
    lift = daily.loc[midpoint, "temperature"].to_numpy() - base.loc[midpoint, "temperature"].to_numpy()
    assert lift[0] == pytest.approx(8.0)


def test_daily_table_shape_and_invariants(tmp_path):
    daily = build_heatwave_table(_config(tmp_path, random_events=True))["daily"]

    assert list(daily.columns) == DAILY_COLUMNS
    assert len(daily) == (pd.Timestamp("2019-12-31") - pd.Timestamp("2010-01-01")).days + 1
    assert daily["date"].is_unique
    assert (daily["date"].diff().dropna() == pd.Timedelta(days=1)).all()
    # forced days are always heatwave days
    assert not (daily["is_forced_heatwave"] & ~daily["is_heatwave"]).any()
    assert (daily["humidity_proxy"] >= 0.1).all()
    assert (daily["precipitation_mean"] >= 0).all()
    assert (daily["convective_energy"] >= 0).all()


def test_explicit_events_argument_overrides_config(tmp_path):
    results = build_heatwave_table(_config(tmp_path), events=[])
    assert results["events"] == []
    assert not results["daily"]["is_forced_heatwave"].any()


def test_same_seed_writes_identical_files(tmp_path):
    first = run_heatwave_pipeline(
        _config(tmp_path / "a", random_events=True), make_plots=False
    )["output_path"]
    second = run_heatwave_pipeline(
        _config(tmp_path / "b", random_events=True), make_plots=False
    )["output_path"]

    assert first.read_bytes() == second.read_bytes()
    header = first.read_text().splitlines()[0]
    assert header.split(",") == DAILY_COLUMNS


def test_different_seed_changes_output(tmp_path):
    first = build_heatwave_table(_config(tmp_path, seed=1))["daily"]
    second = build_heatwave_table(_config(tmp_path, seed=2))["daily"]
    assert not np.allclose(first["temperature"], second["temperature"])


def test_tab_delimited_output(tmp_path):
    path = run_heatwave_pipeline(
        _config(tmp_path, end_date="2011-12-31", events=[], delimiter="\t", output_name="daily.tsv"),
        make_plots=False,
    )["output_path"]
    frame = pd.read_csv(path, sep="\t", parse_dates=["date"])
    assert list(frame.columns) == DAILY_COLUMNS
    assert len(frame) == 730
    assert frame["date"].iloc[0] == pd.Timestamp("2010-01-01")


def test_heatwave_pipeline_writes_plot(tmp_path):
    results = run_heatwave_pipeline(_config(tmp_path, end_date="2015-12-31"), save_results=False)
    assert results["output_path"] is None
    assert results["plot_path"].exists()
    assert not results["summary"].empty


def test_monthly_pipeline_writes_bounded_tables(tmp_path):
    config = MonthlyGridConfig(start_year=2000, end_year=2001, output_dir=tmp_path)
    results = run_monthly_pipeline(config)
    tables = results["tables"]

    for table in tables.values():
        assert len(table) == 4 * 2 * 12
    assert (tables["precipitation"]["precipitation_mm"] >= 0).all()
    assert tables["humidity"]["humidity_percent"].between(20, 100).all()
    assert sorted(results["output_paths"]) == ["humidity", "precipitation", "temperature"]
    for path in results["output_paths"].values():
        assert path.exists()


def test_monthly_pipeline_is_reproducible(tmp_path):
    config = MonthlyGridConfig(start_year=2000, end_year=2000, output_dir=tmp_path)
    first = run_monthly_pipeline(config, save_results=False)["tables"]
    second = run_monthly_pipeline(config, save_results=False)["tables"]
    for name in first:
        pd.testing.assert_frame_equal(first[name], second[name])
