from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import (
    parse_drivers_config,
    parse_gmta_config,
    parse_heatwave_config,
    parse_monthly_config,
)
from .processing import (
    run_drivers_pipeline,
    run_gmta_pipeline,
    run_heatwave_pipeline,
    run_monthly_pipeline,
)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cfbaseline",
        description="Counterfactual climate baseline tables: synthetic heatwaves, GMTA and greenhouse-gas drivers.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    descriptions = {
        "heatwaves": "Synthetic daily series with injected and detected heatwaves.",
        "monthly": "Synthetic monthly temperature, precipitation and humidity grids.",
        "gmta": "Annual day-weighted temperature anomalies from a gridded NetCDF archive.",
        "drivers": "Greenhouse-gas concentration and emission tables.",
    }
    for name, description in descriptions.items():
        command = sub.add_parser(name, help=description, description=description)
        command.add_argument(
            "--config",
            type=Path,
            required=True,
            help="Path to plain-text configuration file (key=value per line).",
        )
        command.add_argument("--no-save", action="store_true", help="Skip writing output tables.")
        command.add_argument("--quiet", action="store_true", help="Only print the final summary.")
        if name in {"heatwaves", "gmta"}:
            command.add_argument("--no-plots", action="store_true", help="Skip plotting.")
            command.add_argument("--show-plots", action="store_true", help="Display plots interactively.")
    return parser


def _handle_heatwaves(args: argparse.Namespace) -> list[str]:
    config = parse_heatwave_config(args.config)
    results = run_heatwave_pipeline(
        config,
        save_results=not args.no_save,
        make_plots=not args.no_plots,
        show_plots=args.show_plots,
        verbose=not args.quiet,
    )
    daily = results["daily"]
    summary = results["summary"]
    lines = [
        f"Daily table shape: {daily.shape}",
        f"Forced heatwave days: {int(daily['is_forced_heatwave'].sum())}",
        f"Heatwave days (detected or forced): {int(daily['is_heatwave'].sum())}",
        f"Heatwave blocks: {len(summary)} ({int(summary['forced'].sum()) if len(summary) else 0} containing forced days)",
    ]
    if results.get("output_path"):
        lines.append(f"Table saved to: {results['output_path']}")
    if results.get("plot_path"):
        lines.append(f"Timeseries plot saved to: {results['plot_path']}")
    return lines


def _handle_monthly(args: argparse.Namespace) -> list[str]:
    config = parse_monthly_config(args.config)
    results = run_monthly_pipeline(config, save_results=not args.no_save, verbose=not args.quiet)
    lines = [f"{name} table shape: {table.shape}" for name, table in results["tables"].items()]
    lines += [f"{name} saved to: {path}" for name, path in results["output_paths"].items()]
    return lines


def _handle_gmta(args: argparse.Namespace) -> list[str]:
    config = parse_gmta_config(args.config)
    results = run_gmta_pipeline(
        config,
        save_results=not args.no_save,
        make_plots=not args.no_plots,
        show_plots=args.show_plots,
        verbose=not args.quiet,
    )
    lines = [
        f"Loaded data shape: {results['data_shape']}",
        f"Subset shape: {results['subset_shape']}",
        f"Annual table shape: {results['annual'].shape}",
    ]
    if results.get("output_path"):
        lines.append(f"Annual anomalies saved to: {results['output_path']}")
    if results.get("subset_path"):
        lines.append(f"Subset saved to: {results['subset_path']}")
    if results.get("plot_path"):
        lines.append(f"Annual anomaly plot saved to: {results['plot_path']}")
    return lines


def _handle_drivers(args: argparse.Namespace) -> list[str]:
    config = parse_drivers_config(args.config)
    results = run_drivers_pipeline(config, save_results=not args.no_save, verbose=not args.quiet)
    lines = [f"{name} table shape: {table.shape}" for name, table in results["tables"].items()]
    lines += [f"{name} saved to: {path}" for name, path in results["output_paths"].items()]
    return lines


HANDLERS = {
    "heatwaves": _handle_heatwaves,
    "monthly": _handle_monthly,
    "gmta": _handle_gmta,
    "drivers": _handle_drivers,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    summary_lines = HANDLERS[args.command](args)
    print("\n".join(summary_lines))
    return 0


if __name__ == "__main__":
    sys.exit(main())
