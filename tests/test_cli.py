from __future__ import annotations

import pandas as pd
import pytest

from cfbaseline.cli import build_arg_parser, main
from cfbaseline.processing import DAILY_COLUMNS


def test_heatwaves_command_writes_table(tmp_path, capsys):
    config = tmp_path / "heatwaves.cfg"
    config.write_text(
        "\n".join(
            [
                "start_date = 2010-01-01",
                "end_date = 2012-12-31",
                "events = 2011-07-01/7/8",
                f"output_dir = {tmp_path / 'out'}",
            ]
        )
    )

    assert main(["heatwaves", "--config", str(config), "--no-plots", "--quiet"]) == 0

    output = tmp_path / "out" / "synthetic_heatwaves.csv"
    frame = pd.read_csv(output)
    assert list(frame.columns) == DAILY_COLUMNS
    assert len(frame) == 366 + 365 + 365

    printed = capsys.readouterr().out
    assert "Daily table shape: (1096, 8)" in printed
    assert f"Table saved to: {output}" in printed


def test_monthly_command_no_save(tmp_path, capsys):
    config = tmp_path / "monthly.cfg"
    config.write_text(f"start_year = 2000\nend_year = 2001\noutput_dir = {tmp_path / 'out'}\n")

    assert main(["monthly", "--config", str(config), "--no-save", "--quiet"]) == 0

    printed = capsys.readouterr().out
    assert "temperature table shape: (96, 5)" in printed
    assert not (tmp_path / "out").exists()


def test_plot_flags_only_on_plotting_commands():
    parser = build_arg_parser()
    args = parser.parse_args(["gmta", "--config", "gmta.cfg", "--no-plots"])
    assert args.no_plots

    with pytest.raises(SystemExit):
        parser.parse_args(["drivers", "--config", "drivers.cfg", "--no-plots"])


def test_config_is_required():
    with pytest.raises(SystemExit):
        build_arg_parser().parse_args(["heatwaves"])
