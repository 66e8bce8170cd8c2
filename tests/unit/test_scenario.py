"""
Tests for scenario configuration checks.
"""

import sys
import os
# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

import pytest

from bus_network import AttackMode, ConfigurationError, ScenarioConfig, run_scenario
from bus_network.cli import main


def test_window_covering_the_whole_run_is_rejected():
    with pytest.raises(ConfigurationError):
        ScenarioConfig(sim_time=12.0, attack_window=(0.0, 12.0)).validate()


@pytest.mark.parametrize("window", [(0.0, 6.0), (2.0, 12.0)])
def test_window_touching_either_end_is_rejected(window):
    with pytest.raises(ConfigurationError):
        ScenarioConfig(sim_time=12.0, attack_window=window).validate()


@pytest.mark.parametrize("mode, sim_time, margin", [
    (AttackMode.JAMMER, 10.0, "5 s"),
    (AttackMode.JAMMER, 8.0, "5 s"),
    (AttackMode.FLOODER, 16.0, "8 s"),
])
def test_collapsed_default_window_names_the_margin(mode, sim_time, margin):
    with pytest.raises(ConfigurationError, match=margin):
        ScenarioConfig(sim_time=sim_time, attack_mode=mode).validate()


def test_explicit_zero_length_window_is_benign():
    config = ScenarioConfig(sim_time=10.0, attack_window=(5.0, 5.0))
    config.validate()

    assert config.attack_config().is_empty


def test_default_window_is_accepted_when_the_run_is_long_enough():
    ScenarioConfig(sim_time=10.5).validate()
    ScenarioConfig(sim_time=16.5, attack_mode=AttackMode.FLOODER).validate()


def test_run_shorter_than_sensor_stagger_is_rejected():
    # The fifth sensor starts at 1.8 s
    with pytest.raises(ConfigurationError, match="last sensor"):
        ScenarioConfig(sim_time=1.5, attack_mode=None).validate()

    ScenarioConfig(sim_time=1.5, sensor_count=2, attack_mode=None).validate()


def test_cli_rejects_collapsed_default_window():
    with pytest.raises(SystemExit) as excinfo:
        main(["--sim-time", "10"])

    assert excinfo.value.code == 2


def test_hop_count_comes_from_the_topology():
    result = run_scenario(ScenarioConfig(sim_time=3.0, sensor_count=2, attack_mode=None))

    assert result.report.hop_count == 1
    assert result.role_reports["sensor"].hop_count == 1
