"""
Tests for jammer and flooder attack configurations.
"""

import sys
import os
# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

import pytest

from bus_network import (
    AttackConfig,
    AttackGenerator,
    AttackMode,
    BusTopology,
    ConfigurationError,
    NodeRole,
    PacketType,
    TrafficGenerator,
)
from bus_network.attacks.attacks import ATTACK_PRESETS, default_attack_window


@pytest.fixture
def topology():
    return BusTopology(num_sensors=5)


def test_presets():
    jammer = ATTACK_PRESETS[AttackMode.JAMMER]
    flooder = ATTACK_PRESETS[AttackMode.FLOODER]

    assert (jammer.payload_size, jammer.send_rate) == (1400, 50e6)
    assert (flooder.payload_size, flooder.send_rate) == (32, 10e6)


@pytest.mark.parametrize("mode, window", [
    (AttackMode.JAMMER, (5.0, 55.0)),
    (AttackMode.FLOODER, (8.0, 52.0)),
])
def test_default_windows(mode, window):
    assert default_attack_window(mode, 60.0) == window

    config = AttackConfig.for_mode(mode, 60.0)
    assert (config.start, config.stop) == window


def test_overrides_replace_preset_values():
    config = AttackConfig(mode=AttackMode.JAMMER, send_rate=150e6)

    assert config.parameters.send_rate == 150e6
    assert config.parameters.payload_size == 1400


def test_attack_traffic_is_always_on():
    traffic = AttackConfig.for_mode(AttackMode.FLOODER, 60.0).to_traffic_config()

    assert traffic.always_on
    assert traffic.duty_cycle == 1.0
    assert traffic.payload_size == 32
    assert traffic.packet_interval == pytest.approx(32 * 8 / 10e6)


@pytest.mark.parametrize("start, stop", [
    (-1.0, 10.0),
    (5.0, 70.0),
    (0.0, 10.0),
    (5.0, 60.0),
    (0.0, 60.0),
    (10.0, 5.0),
])
def test_invalid_windows(start, stop):
    with pytest.raises(ConfigurationError):
        AttackConfig(start=start, stop=stop).validate(sim_time=60.0)


def test_invalid_rate():
    with pytest.raises(ConfigurationError):
        AttackConfig(send_rate=0.0).validate()


def test_create_attack(topology):
    traffic = TrafficGenerator()
    generator = AttackGenerator(topology, traffic)
    source = generator.create_attack(AttackConfig(mode=AttackMode.JAMMER), 50000)

    assert source.id == "jammer_5"
    assert source.source == topology.attacker.address
    assert source.destination == topology.gateway.address
    assert source.port == 50000
    assert source.role == NodeRole.ATTACKER
    assert source.packet_type == PacketType.ATTACK
    assert generator.get_attack_sources() == [source]


def test_empty_window_keeps_attacker_silent(topology):
    traffic = TrafficGenerator()
    generator = AttackGenerator(topology, traffic)
    config = AttackConfig(mode=AttackMode.JAMMER, start=5.0, stop=5.0)

    assert config.is_empty
    assert generator.create_attack(config, 50000) is None
    assert len(traffic) == 0


def test_exceeds_capacity(topology):
    generator = AttackGenerator(topology, TrafficGenerator())

    assert not generator.exceeds_capacity(AttackConfig(mode=AttackMode.JAMMER))
    assert generator.exceeds_capacity(AttackConfig(mode=AttackMode.JAMMER, send_rate=150e6))
