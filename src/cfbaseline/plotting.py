from __future__ import annotations

from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .heatwaves import above_threshold


def _finish(fig, output_path: str | Path | None, show: bool) -> Path | None:
    saved_path: Path | None = None
    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=200, bbox_inches="tight")
        saved_path = output_path

    if show:
        plt.show()
    else:
        plt.close(fig)

    return saved_path


def plot_heatwave_timeseries(
    frame: pd.DataFrame,
    thresholds: pd.DataFrame,
    *,
    year: Optional[int] = None,
    output_path: str | Path | None = None,
    show: bool = False,
) -> Path | None:
    """Temperature with its day-of-year threshold; detected and forced heatwave days marked."""
    threshold_name = [column for column in thresholds.columns if column != "day_of_year"][0]
    lookup = thresholds.set_index("day_of_year")[threshold_name]

    data = frame
    if year is not None:
        data = frame[frame["date"].dt.year == year]
        if data.empty:
            raise ValueError(f"No rows for year {year}.")

    threshold_values = data["date"].dt.dayofyear.map(lookup)
    heatwave = data["is_heatwave"].to_numpy(dtype=bool)
    forced = data["is_forced_heatwave"].to_numpy(dtype=bool)

    fig, ax = plt.subplots(figsize=(14, 5))
    ax.plot(data["date"], data["temperature"], color="0.4", linewidth=0.8, label="Temperature")
    ax.plot(data["date"], threshold_values, color="orange", linewidth=1.0, label=threshold_name)
    ax.scatter(
        data["date"][heatwave & ~forced],
        data["temperature"][heatwave & ~forced],
        color="red",
        s=10,
        label="Detected heatwave day",
        zorder=3,
    )
    ax.scatter(
        data["date"][forced],
        data["temperature"][forced],
        color="purple",
        marker="^",
        s=12,
        label="Forced heatwave day",
        zorder=4,
    )

    exceed = above_threshold(data, thresholds).to_numpy()
    title_span = str(year) if year is not None else (
        f"{data['date'].iloc[0]:%Y-%m-%d} to {data['date'].iloc[-1]:%Y-%m-%d}"
    )
    ax.set_title(
        f"Synthetic daily temperature {title_span} "
        f"({int(exceed.sum())} days above threshold, {int(heatwave.sum())} heatwave days)"
    )
    ax.set_ylabel("Temperature (°C)")
    ax.legend(loc="upper left", fontsize=8)
    ax.grid(alpha=0.3)
    return _finish(fig, output_path, show)


def plot_annual_anomalies(
    annual: pd.DataFrame,
    *,
    value_column: str = "temperature_anomaly_annual",
    output_path: str | Path | None = None,
    show: bool = False,
) -> Path | None:
    """Grid-mean annual anomaly per year with the cell spread shaded."""
    stats = annual.groupby("year")[value_column].agg(["mean", "min", "max"]).reset_index()

    fig, ax = plt.subplots(figsize=(12, 5))
    ax.fill_between(stats["year"], stats["min"], stats["max"], color="tab:blue", alpha=0.2, label="Cell range")
    ax.plot(stats["year"], stats["mean"], color="tab:blue", linewidth=1.2, label="Grid mean")
    ax.axhline(0.0, color="0.3", linewidth=0.8, linestyle="--")

    if len(stats) > 1:
        slope = np.polyfit(stats["year"], stats["mean"], 1)[0]
        ax.set_title(f"Annual temperature anomaly (trend {slope * 100:.2f} °C/century)")
    else:
        ax.set_title("Annual temperature anomaly")
    ax.set_xlabel("Year")
    ax.set_ylabel("Anomaly (°C)")
    ax.legend(loc="upper left")
    ax.grid(alpha=0.3)
    return _finish(fig, output_path, show)
