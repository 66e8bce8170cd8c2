"""
Traffic Generation Module

This module provides the on/off traffic source used for both benign
sensors and the attacker. The two differ only in their parameters;
the role tag is kept for labeling and reporting.
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional
from enum import Enum

from .errors import ConfigurationError
from .topology import BusNode, BusTopology, NodeRole


# Per-packet header overhead
IP_UDP_HEADER_BYTES = 28        # IPv4 (20) + UDP (8)
ETHERNET_OVERHEAD_BYTES = 18    # Ethernet header (14) + FCS (4)

# Benign sensor telemetry defaults
SENSOR_ACTIVE_DURATION = 0.1    # s
SENSOR_IDLE_DURATION = 5.0      # s
SENSOR_PAYLOAD_SIZE = 64        # bytes
SENSOR_SEND_RATE = 8e3          # bps
SENSOR_FIRST_START = 1.0        # s
SENSOR_START_STAGGER = 0.2      # s per sensor index


class PacketType(Enum):
    """Type of network packet"""
    NORMAL = "normal"
    ATTACK = "attack"


@dataclass
class Packet:
    """
    Represents a UDP datagram crossing the bus

    Attributes:
        id: Unique packet identifier
        source: Source address
        destination: Destination address
        source_port: Sender's UDP port
        destination_port: Receiver's UDP port
        size: Payload size in bytes
        packet_type: Normal or attack packet
        creation_time: Time the packet left the application
        arrival_time: Time the packet reached the sink
    """
    id: int
    source: str
    destination: str
    source_port: int
    destination_port: int
    size: int
    packet_type: PacketType = PacketType.NORMAL
    creation_time: float = 0.0
    arrival_time: float = 0.0

    @property
    def ip_size(self) -> int:
        """Size as seen by the IP layer (payload + IP/UDP headers)"""
        return self.size + IP_UDP_HEADER_BYTES

    @property
    def wire_size(self) -> int:
        """Frame size on the medium"""
        return self.ip_size + ETHERNET_OVERHEAD_BYTES

    def get_delay(self) -> float:
        """Calculate end-to-end delay"""
        return self.arrival_time - self.creation_time


@dataclass(frozen=True)
class TrafficConfig:
    """
    Duty-cycle behaviour of a traffic source

    Attributes:
        active_duration: Length of each active interval (s)
        idle_duration: Length of each idle interval (s); 0 means always on
        payload_size: Datagram payload size (bytes)
        send_rate: Sending rate during active intervals (bps)
        start: Time the source is switched on (s)
        stop: Time the source is switched off (s), exclusive
    """
    active_duration: float
    idle_duration: float
    payload_size: int
    send_rate: float
    start: float
    stop: float

    def validate(self):
        """Raise ConfigurationError if the source cannot be scheduled"""
        if self.send_rate <= 0:
            raise ConfigurationError(f"send_rate must be > 0, got {self.send_rate}")
        if self.payload_size <= 0:
            raise ConfigurationError(
                f"payload_size must be > 0, got {self.payload_size}"
            )
        if self.start >= self.stop:
            raise ConfigurationError(
                f"start ({self.start}) must be earlier than stop ({self.stop})"
            )
        if self.start < 0:
            raise ConfigurationError(f"start must be >= 0, got {self.start}")
        if self.active_duration <= 0:
            raise ConfigurationError(
                f"active_duration must be > 0, got {self.active_duration}"
            )
        if self.idle_duration < 0:
            raise ConfigurationError(
                f"idle_duration must be >= 0, got {self.idle_duration}"
            )

    @property
    def packet_interval(self) -> float:
        """Active time needed to accumulate one payload worth of bits"""
        return self.payload_size * 8 / self.send_rate

    @property
    def cycle_duration(self) -> float:
        return self.active_duration + self.idle_duration

    @property
    def duty_cycle(self) -> float:
        return self.active_duration / self.cycle_duration

    @property
    def always_on(self) -> bool:
        return self.idle_duration == 0


def sensor_config(
    index: int,
    sim_time: float,
    first_start: float = SENSOR_FIRST_START,
    stagger: float = SENSOR_START_STAGGER
) -> TrafficConfig:
    """
    Periodic low duty-cycle telemetry for one sensor

    Start times are staggered by index so sensor bursts do not line up.
    """
    return TrafficConfig(
        active_duration=SENSOR_ACTIVE_DURATION,
        idle_duration=SENSOR_IDLE_DURATION,
        payload_size=SENSOR_PAYLOAD_SIZE,
        send_rate=SENSOR_SEND_RATE,
        start=first_start + index * stagger,
        stop=sim_time
    )


@dataclass(frozen=True)
class TrafficSource:
    """
    An on/off source bound to one sender and one destination

    The source alternates active and idle intervals starting with an
    active one. Bits accumulate only during active time; a datagram
    leaves whenever one payload worth of bits has accumulated, and the
    remainder carries over idle periods. Nothing is emitted outside
    [start, stop).
    """
    id: str
    source: str
    source_index: int
    destination: str
    port: int
    config: TrafficConfig
    role: NodeRole = NodeRole.SENSOR

    @property
    def packet_type(self) -> PacketType:
        if self.role == NodeRole.ATTACKER:
            return PacketType.ATTACK
        return PacketType.NORMAL

    @property
    def start(self) -> float:
        return self.config.start

    @property
    def stop(self) -> float:
        return self.config.stop

    def is_active(self, current_time: float) -> bool:
        """Check if the source is in an active interval at current time"""
        cfg = self.config
        if current_time < cfg.start or current_time >= cfg.stop:
            return False
        if cfg.always_on:
            return True
        return (current_time - cfg.start) % cfg.cycle_duration < cfg.active_duration

    def _active_to_wall(self, active_time: np.ndarray) -> np.ndarray:
        """Map accumulated active time to simulation time"""
        cfg = self.config
        if cfg.always_on:
            return cfg.start + active_time
        cycles = np.floor(active_time / cfg.active_duration)
        offset = np.maximum(active_time - cycles * cfg.active_duration, 0.0)
        return cfg.start + cycles * cfg.cycle_duration + offset

    def iter_emission_times(self, chunk_size: int = 4096) -> Iterator[float]:
        """Lazily yield send times in increasing order"""
        interval = self.config.packet_interval
        first = 1
        while True:
            k = np.arange(first, first + chunk_size, dtype=float)
            times = self._active_to_wall(k * interval)
            in_window = times < self.config.stop
            yield from times[in_window].tolist()
            if not in_window.all():
                return
            first += chunk_size

    def emission_times(self) -> np.ndarray:
        """All send times of this source"""
        return np.fromiter(self.iter_emission_times(), dtype=float)

    def get_offered_load_bps(self) -> float:
        """Long-run average sending rate"""
        return self.config.send_rate * self.config.duty_cycle


def make_source(
    node: BusNode,
    destination: str,
    port: int,
    config: TrafficConfig,
    source_id: Optional[str] = None
) -> TrafficSource:
    """
    Build a schedulable source for a node

    Raises:
        ConfigurationError: if the node is the gateway or the config is invalid
    """
    config.validate()
    if node.role == NodeRole.GATEWAY:
        raise ConfigurationError("The gateway cannot act as a traffic source")
    if not 0 < port < 65536:
        raise ConfigurationError(f"port must be in 1..65535, got {port}")

    if source_id is None:
        source_id = f"{node.role.value}_{node.index}"

    return TrafficSource(
        id=source_id,
        source=node.address,
        source_index=node.index,
        destination=destination,
        port=port,
        config=config,
        role=node.role
    )


class TrafficGenerator:
    """
    Collection of traffic sources for one run

    Holds benign sensor sources and (at most one) attacker source,
    all aimed at the same sink.
    """

    def __init__(self):
        self.sources: Dict[str, TrafficSource] = {}

    def add_source(self, source: TrafficSource):
        """Add a traffic source"""
        if source.id in self.sources:
            raise ConfigurationError(f"Duplicate traffic source id: {source.id}")
        self.sources[source.id] = source

    def create_sensor_sources(
        self,
        topology: BusTopology,
        port: int,
        sim_time: float
    ) -> List[TrafficSource]:
        """
        Create one telemetry source per sensor, all aimed at the gateway

        Args:
            topology: Bus topology
            port: Sink port on the gateway
            sim_time: Sensors stop at the end of the simulation

        Returns:
            Created sources
        """
        created = []
        for node in topology.sensors:
            source = make_source(
                node,
                topology.gateway.address,
                port,
                sensor_config(node.index, sim_time)
            )
            self.add_source(source)
            created.append(source)
        return created

    def get_sources_by_role(self, role: NodeRole) -> List[TrafficSource]:
        return [s for s in self.sources.values() if s.role == role]

    def get_active_sources(self, current_time: float) -> List[TrafficSource]:
        """Get list of sources in an active interval"""
        return [s for s in self.sources.values() if s.is_active(current_time)]

    def get_total_offered_load(self, current_time: float) -> float:
        """Sum of sending rates of the currently active sources (bps)"""
        return sum(s.config.send_rate for s in self.get_active_sources(current_time))

    def get_attack_traffic_ratio(self, current_time: float) -> float:
        """Share of the currently offered load coming from the attacker"""
        active = self.get_active_sources(current_time)
        total = sum(s.config.send_rate for s in active)
        if total <= 0:
            return 0.0
        attack = sum(s.config.send_rate for s in active if s.role == NodeRole.ATTACKER)
        return attack / total

    def __len__(self):
        return len(self.sources)
