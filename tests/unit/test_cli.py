"""
Tests for the command-line entry point.
"""

import sys
import os
import json
# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

import pytest

from bus_network.cli import build_parser, config_from_args, main
from bus_network import AttackMode


def test_defaults():
    config = config_from_args(build_parser().parse_args([]))

    assert config.sensor_count == 5
    assert config.sim_time == 60.0
    assert config.attack_mode == AttackMode.JAMMER
    assert config.attack_window is None
    assert config.data_rate_bps == 100e6
    assert config.propagation_delay == pytest.approx(6560e-9)


def test_units_are_converted():
    config = config_from_args(build_parser().parse_args(
        ["--attack-rate", "150", "--bandwidth", "10", "--attack-mode", "flooder"]
    ))

    assert config.attack_send_rate == 150e6
    assert config.data_rate_bps == 10e6
    assert config.attack_mode == AttackMode.FLOODER


def test_benign_run_prints_report(capsys):
    assert main(["--attack-mode", "none", "--n-sensors", "2", "--sim-time", "5"]) == 0

    out = capsys.readouterr().out
    assert "==== Performance Metrics ====" in out
    assert "10. Fairness Index" in out


def test_inverted_window_is_a_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        main(["--attack-start", "5", "--attack-stop", "3"])

    assert excinfo.value.code == 2


def test_window_bounds_must_come_together():
    with pytest.raises(SystemExit) as excinfo:
        main(["--attack-start", "5"])

    assert excinfo.value.code == 2


def test_json_output(tmp_path, capsys):
    path = tmp_path / "metrics.json"
    main(["--sim-time", "4", "--n-sensors", "2", "--attack-start", "2",
          "--attack-stop", "2.5", "--compare", "--json", str(path)])

    data = json.loads(path.read_text())
    assert set(data["roles"]) == {"attacker", "sensor"}
    assert "baseline" in data and "impact" in data
    assert data["metrics"]["hop_count"] == 1
    assert data["metrics"]["collision_count"] is None
