"""
DoS Attack Module

This module describes the adversarial source on the bus. The attacker
is an ordinary TrafficSource whose duty cycle degenerates to always-on;
what makes it a jammer or a flooder is only its parameter set:

- Jammer: large payloads at a very high rate, saturating channel capacity
- Flooder: small payloads at a high rate, exhausting per-packet processing

The two modes are alternatives selected at configuration time.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from enum import Enum

from ..core.errors import ConfigurationError
from ..core.topology import BusTopology, NodeRole
from ..core.traffic import TrafficConfig, TrafficGenerator, TrafficSource, make_source


class AttackMode(Enum):
    """Kind of denial-of-service source"""
    JAMMER = "jammer"
    FLOODER = "flooder"


@dataclass(frozen=True)
class AttackParameters:
    """
    Parameter set carried by an attack mode

    Attributes:
        payload_size: Datagram payload size (bytes)
        send_rate: Sending rate (bps)
        window_margin: Default gap between the attack window and the
                       start/end of the simulation (s)
    """
    payload_size: int
    send_rate: float
    window_margin: float


ATTACK_PRESETS: Dict[AttackMode, AttackParameters] = {
    AttackMode.JAMMER: AttackParameters(payload_size=1400, send_rate=50e6, window_margin=5.0),
    AttackMode.FLOODER: AttackParameters(payload_size=32, send_rate=10e6, window_margin=8.0),
}

# Always-on duty cycle: any positive active duration with no idle time
ATTACK_ACTIVE_DURATION = 1.0
ATTACK_IDLE_DURATION = 0.0


def default_attack_window(mode: AttackMode, sim_time: float) -> Tuple[float, float]:
    """Attack window leaving a benign baseline before and after the attack"""
    margin = ATTACK_PRESETS[mode].window_margin
    return margin, sim_time - margin


@dataclass
class AttackConfig:
    """
    Configuration of the attacker

    Attributes:
        mode: Jammer or flooder
        start: Attack start time (s)
        stop: Attack stop time (s), exclusive
        payload_size: Overrides the mode's payload size when set
        send_rate: Overrides the mode's rate when set (bps)
    """
    mode: AttackMode = AttackMode.JAMMER
    start: float = 5.0
    stop: float = 55.0
    payload_size: Optional[int] = None
    send_rate: Optional[float] = None

    @classmethod
    def for_mode(cls, mode: AttackMode, sim_time: float) -> "AttackConfig":
        """Preset configuration with the default window for a run length"""
        start, stop = default_attack_window(mode, sim_time)
        return cls(mode=mode, start=start, stop=stop)

    @property
    def parameters(self) -> AttackParameters:
        preset = ATTACK_PRESETS[self.mode]
        return AttackParameters(
            payload_size=self.payload_size if self.payload_size is not None else preset.payload_size,
            send_rate=self.send_rate if self.send_rate is not None else preset.send_rate,
            window_margin=preset.window_margin
        )

    @property
    def is_empty(self) -> bool:
        """A zero-length window means the attacker stays silent"""
        return self.start == self.stop

    def to_traffic_config(self) -> TrafficConfig:
        params = self.parameters
        return TrafficConfig(
            active_duration=ATTACK_ACTIVE_DURATION,
            idle_duration=ATTACK_IDLE_DURATION,
            payload_size=params.payload_size,
            send_rate=params.send_rate,
            start=self.start,
            stop=self.stop
        )

    def validate(self, sim_time: Optional[float] = None):
        """
        Raise ConfigurationError for unusable attack settings

        Args:
            sim_time: When given, the window must start after the run
                      begins and end before it finishes
        """
        self.to_traffic_config().validate()
        if sim_time is not None and (self.start <= 0 or self.stop >= sim_time):
            raise ConfigurationError(
                f"Attack window [{self.start}, {self.stop}) must lie strictly "
                f"inside (0, {sim_time})"
            )


class AttackGenerator:
    """
    Installs the attacker source of a bus topology

    Attack traffic is aimed at the same sink address and port as the
    sensor telemetry.
    """

    def __init__(self, topology: BusTopology, traffic_generator: TrafficGenerator):
        self.topology = topology
        self.traffic_generator = traffic_generator

    def create_attack(self, config: AttackConfig, port: int) -> Optional[TrafficSource]:
        """
        Create the attacker source

        Args:
            config: Attack configuration
            port: Sink port on the gateway

        Returns:
            The attacker source, or None when the window is empty
        """
        if config.is_empty:
            return None

        source = make_source(
            self.topology.attacker,
            self.topology.gateway.address,
            port,
            config.to_traffic_config(),
            source_id=f"{config.mode.value}_{self.topology.attacker.index}"
        )
        self.traffic_generator.add_source(source)
        return source

    def get_attack_sources(self):
        return self.traffic_generator.get_sources_by_role(NodeRole.ATTACKER)

    def exceeds_capacity(self, config: AttackConfig) -> bool:
        """Whether the attacker alone offers more than the medium can carry"""
        return config.parameters.send_rate > self.topology.medium.data_rate_bps
