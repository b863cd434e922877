"""
Synthetic heatwave injection and percentile-based heatwave detection.

A heatwave is a run of at least ``min_run_length`` consecutive days whose
temperature exceeds the day-of-year climatological percentile. Injected
("forced") events are always kept in the final ``is_heatwave`` flag, even when
they do not cross the statistical threshold.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import ConfigurationError, HeatwaveEvent, HeatwaveSchedule

SEGMENT_COLUMNS = ["start_index", "length", "all_above_threshold"]


def schedule_heatwaves(
    dates: Sequence,
    schedule: HeatwaveSchedule,
    rng: np.random.Generator,
) -> List[HeatwaveEvent]:
    """Draw a random event list, between ``events_min`` and ``events_max`` per calendar year."""
    schedule.validate()
    years = sorted(pd.DatetimeIndex(dates).year.unique())

    events: List[HeatwaveEvent] = []
    for year in years:
        n_events = int(rng.integers(schedule.events_min, schedule.events_max + 1))
        for _ in range(n_events):
            offset = int(rng.integers(schedule.start_offset_min, schedule.start_offset_max + 1))
            duration = int(rng.integers(schedule.duration_min, schedule.duration_max + 1))
            peak = float(rng.uniform(schedule.peak_min, schedule.peak_max))
            start = pd.Timestamp(year=int(year), month=1, day=1) + pd.Timedelta(days=offset)
            events.append(HeatwaveEvent(start, duration, peak))
    return events


def heatwave_bump(duration: int, peak_anomaly: float) -> np.ndarray:
    """Half-sine anomaly, zero at both ends and ``peak_anomaly`` at the midpoint."""
    if duration <= 0:
        raise ConfigurationError(f"Heatwave duration must be positive, got {duration}")
    return np.sin(np.pi * np.linspace(0.0, 1.0, duration)) * peak_anomaly


def insert_heatwave(frame: pd.DataFrame, event: HeatwaveEvent) -> pd.DataFrame:
    """
    Return a copy of ``frame`` with ``event`` added to its temperature.

    An event reaching outside the series is discarded entirely and the
    input is returned unchanged (as a copy). Overlapping events add.
    """
    out = frame.copy()
    dates = pd.DatetimeIndex(out["date"])
    if len(dates) == 0 or event.start < dates[0] or event.end > dates[-1]:
        return out

    positions = dates.get_indexer(pd.date_range(event.start, periods=event.duration, freq="D"))
    if (positions < 0).any():
        raise ValueError("Daily series has gaps; cannot place heatwave event.")

    temperature_col = out.columns.get_loc("temperature")
    forced_col = out.columns.get_loc("is_forced_heatwave")
    out.iloc[positions, temperature_col] = (
        out.iloc[positions, temperature_col].to_numpy() + heatwave_bump(event.duration, event.peak_anomaly)
    )
    out.iloc[positions, forced_col] = True
    return out


def inject_heatwaves(frame: pd.DataFrame, events: Iterable[HeatwaveEvent]) -> pd.DataFrame:
    out = frame.copy()
    for event in events:
        out = insert_heatwave(out, event)
    return out


def threshold_column(quantile: float) -> str:
    return f"p{round(quantile * 100):d}_temperature"


def day_of_year_threshold(frame: pd.DataFrame, quantile: float = 0.9) -> pd.DataFrame:
    """
    Day-of-year climatological percentile of temperature, pooled over all years.

    Uses pandas' default linear interpolation between order statistics. Day 366
    pools only leap years and is left as a small-sample estimate.
    """
    if not 0.0 < quantile < 1.0:
        raise ConfigurationError(f"quantile must lie in (0, 1), got {quantile}")
    day_of_year = pd.DatetimeIndex(frame["date"]).dayofyear
    thresholds = (
        frame["temperature"]
        .groupby(np.asarray(day_of_year))
        .quantile(quantile)
        .rename(threshold_column(quantile))
    )
    thresholds.index.name = "day_of_year"
    return thresholds.reset_index()


def run_length_segments(flags) -> pd.DataFrame:
    """Partition ``flags`` into maximal runs of equal consecutive values."""
    values = np.asarray(flags, dtype=bool)
    if values.size == 0:
        return pd.DataFrame(
            {
                "start_index": np.array([], dtype=int),
                "length": np.array([], dtype=int),
                "all_above_threshold": np.array([], dtype=bool),
            }
        )
    change_points = np.flatnonzero(values[1:] != values[:-1]) + 1
    starts = np.concatenate(([0], change_points))
    lengths = np.diff(np.concatenate((starts, [values.size])))
    return pd.DataFrame(
        {"start_index": starts, "length": lengths, "all_above_threshold": values[starts]},
        columns=SEGMENT_COLUMNS,
    )


def heatwave_segment_mask(segments: pd.DataFrame, min_run_length: int = 3) -> np.ndarray:
    """Expand segments back to a per-day mask of runs that are above threshold and long enough."""
    if min_run_length < 1:
        raise ConfigurationError(f"min_run_length must be >= 1, got {min_run_length}")
    is_heatwave = segments["all_above_threshold"].to_numpy(dtype=bool) & (
        segments["length"].to_numpy() >= min_run_length
    )
    return np.repeat(is_heatwave, segments["length"].to_numpy())


def above_threshold(frame: pd.DataFrame, thresholds: pd.DataFrame) -> pd.Series:
    value_column = [column for column in thresholds.columns if column != "day_of_year"]
    if "day_of_year" not in thresholds.columns or len(value_column) != 1:
        raise ValueError("thresholds must have 'day_of_year' and exactly one threshold column.")
    lookup = thresholds.set_index("day_of_year")[value_column[0]]
    day_threshold = pd.Series(pd.DatetimeIndex(frame["date"]).dayofyear.to_numpy(), index=frame.index).map(lookup)
    if day_threshold.isna().any():
        missing = sorted(set(pd.DatetimeIndex(frame["date"][day_threshold.isna()]).dayofyear))
        raise ValueError(f"No threshold for day(s) of year {missing}.")
    return frame["temperature"] > day_threshold


def detect_heatwaves(
    frame: pd.DataFrame,
    thresholds: Optional[pd.DataFrame] = None,
    *,
    quantile: float = 0.9,
    min_run_length: int = 3,
) -> pd.DataFrame:
    """
    Return a copy of ``frame`` with an ``is_heatwave`` column.

    ``is_heatwave`` is the union of detected runs and ``is_forced_heatwave``.
    """
    frame = frame.sort_values("date", ignore_index=True)
    if thresholds is None:
        thresholds = day_of_year_threshold(frame, quantile)

    above = above_threshold(frame, thresholds)
    segments = run_length_segments(above.to_numpy())
    detected = heatwave_segment_mask(segments, min_run_length)

    out = frame.copy()
    out["is_heatwave"] = detected | out["is_forced_heatwave"].to_numpy(dtype=bool)
    return out


def summarize_heatwaves(frame: pd.DataFrame) -> pd.DataFrame:
    """One row per contiguous block of ``is_heatwave`` days."""
    columns = ["start", "end", "length", "peak_temperature", "forced"]
    segments = run_length_segments(frame["is_heatwave"].to_numpy())
    segments = segments[segments["all_above_threshold"]]
    if segments.empty:
        return pd.DataFrame(columns=columns)

    rows = []
    for start_index, length in zip(segments["start_index"], segments["length"]):
        block = frame.iloc[start_index : start_index + length]
        rows.append(
            {
                "start": block["date"].iloc[0],
                "end": block["date"].iloc[-1],
                "length": int(length),
                "peak_temperature": float(block["temperature"].max()),
                "forced": bool(block["is_forced_heatwave"].any()),
            }
        )
    return pd.DataFrame(rows, columns=columns)
