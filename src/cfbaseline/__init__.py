"""
Counterfactual climate baseline tables for health-impact attribution tutorials.
"""

from .config import ConfigurationError
from .heatwaves import (
    day_of_year_threshold,
    detect_heatwaves,
    inject_heatwaves,
    insert_heatwave,
    run_length_segments,
)
from .io import SchemaError
from .processing import (
    build_heatwave_table,
    run_drivers_pipeline,
    run_gmta_pipeline,
    run_heatwave_pipeline,
    run_monthly_pipeline,
)
from .synthetic import ar1_noise, derive_secondary_variables, generate_daily_series

__all__ = [
    "ConfigurationError",
    "SchemaError",
    "ar1_noise",
    "generate_daily_series",
    "derive_secondary_variables",
    "insert_heatwave",
    "inject_heatwaves",
    "day_of_year_threshold",
    "run_length_segments",
    "detect_heatwaves",
    "build_heatwave_table",
    "run_heatwave_pipeline",
    "run_monthly_pipeline",
    "run_gmta_pipeline",
    "run_drivers_pipeline",
]
