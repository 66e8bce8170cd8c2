"""
Bus Topology Module

This module provides classes for modeling a single-segment sensor network
in which every node (benign sensors, one attacker and one gateway) shares
one transmission medium.
"""

import ipaddress
import networkx as nx
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from enum import Enum

from .errors import ConfigurationError


class NodeRole(Enum):
    """Role of a node on the bus"""
    SENSOR = "sensor"
    ATTACKER = "attacker"
    GATEWAY = "gateway"


# RGB colours used when rendering the bus
ROLE_COLORS: Dict[NodeRole, Tuple[int, int, int]] = {
    NodeRole.SENSOR: (0, 255, 0),
    NodeRole.ATTACKER: (255, 0, 255),
    NodeRole.GATEWAY: (255, 0, 0),
}


@dataclass
class BusNode:
    """
    Represents a node attached to the shared medium

    Attributes:
        index: Node index (sensors first, then attacker, then gateway)
        role: Sensor, attacker or gateway
        address: Assigned IPv4 address
        position: (x, y) position in meters, used for visualization only
        description: Label shown in plots
        color: RGB colour shown in plots
    """
    index: int
    role: NodeRole
    address: str
    position: Tuple[float, float] = (0.0, 0.0)
    description: str = ""
    color: Tuple[int, int, int] = (0, 0, 0)


@dataclass
class SharedMedium:
    """
    Represents the shared transmission channel (the "bus")

    Attributes:
        id: Medium identifier
        data_rate_bps: Channel capacity in bits per second
        propagation_delay: End-to-end propagation delay in seconds
    """
    id: str = "BUS"
    data_rate_bps: float = 100e6
    propagation_delay: float = 6560e-9

    def get_transmission_time(self, wire_bytes: int) -> float:
        """Time to serialize a frame of the given size onto the medium"""
        return wire_bytes * 8 / self.data_rate_bps

    def get_capacity_mbps(self) -> float:
        return self.data_rate_bps / 1e6


class BusTopology:
    """
    Bus Topology Model

    Lays out N sensors, one attacker and one gateway (N + 2 nodes) along
    the X axis, assigns each an address from a single subnet and connects
    all of them to one shared medium.
    """

    def __init__(
        self,
        num_sensors: int = 5,
        data_rate_bps: float = 100e6,
        propagation_delay: float = 6560e-9,
        spacing: float = 10.0,
        network: str = "10.1.1.0/24"
    ):
        """
        Initialize bus topology

        Args:
            num_sensors: Number of benign sensor nodes
            data_rate_bps: Medium capacity in bits per second
            propagation_delay: Medium propagation delay in seconds
            spacing: Distance between neighbouring nodes in meters
            network: Subnet used for address assignment
        """
        if num_sensors < 0:
            raise ConfigurationError(f"num_sensors must be >= 0, got {num_sensors}")
        if data_rate_bps <= 0:
            raise ConfigurationError(f"data_rate_bps must be > 0, got {data_rate_bps}")
        if propagation_delay < 0:
            raise ConfigurationError(
                f"propagation_delay must be >= 0, got {propagation_delay}"
            )

        self.num_sensors = num_sensors
        self.spacing = spacing
        self.network = ipaddress.ip_network(network)
        self.medium = SharedMedium(
            data_rate_bps=data_rate_bps,
            propagation_delay=propagation_delay
        )

        # Network components
        self.nodes: List[BusNode] = []
        self._by_address: Dict[str, BusNode] = {}

        # NetworkX graph; every pair of nodes is adjacent through the medium
        self.graph: nx.Graph = nx.Graph()

        self._build_topology()

    def _build_topology(self):
        """Create nodes, assign addresses and build the graph"""
        self._create_nodes()
        self._build_graph()

    def _create_nodes(self):
        """Create sensors, then the attacker, then the gateway"""
        total = self.num_sensors + 2
        hosts = self.network.hosts()

        for index in range(total):
            try:
                address = str(next(hosts))
            except StopIteration:
                raise ConfigurationError(
                    f"Subnet {self.network} cannot address {total} nodes"
                ) from None

            if index < self.num_sensors:
                role = NodeRole.SENSOR
                description = f"Sensor-{index}"
            elif index == self.num_sensors:
                role = NodeRole.ATTACKER
                description = "Attacker"
            else:
                role = NodeRole.GATEWAY
                description = "Gateway"

            node = BusNode(
                index=index,
                role=role,
                address=address,
                position=(index * self.spacing, 0.0),
                description=description,
                color=ROLE_COLORS[role]
            )
            self.nodes.append(node)
            self._by_address[address] = node

    def _build_graph(self):
        """Build NetworkX graph of the shared medium"""
        for node in self.nodes:
            self.graph.add_node(
                node.address,
                index=node.index,
                role=node.role.value,
                pos=node.position
            )

        for i, a in enumerate(self.nodes):
            for b in self.nodes[i + 1:]:
                self.graph.add_edge(a.address, b.address, medium=self.medium.id)

    @property
    def sensors(self) -> List[BusNode]:
        return self.nodes[:self.num_sensors]

    @property
    def attacker(self) -> BusNode:
        return self.nodes[self.num_sensors]

    @property
    def gateway(self) -> BusNode:
        return self.nodes[self.num_sensors + 1]

    def get_node_by_address(self, address: str) -> Optional[BusNode]:
        """Get node by assigned address, None if the address is unknown"""
        return self._by_address.get(address)

    def get_role(self, address: str) -> Optional[NodeRole]:
        """Role of the node owning an address"""
        node = self._by_address.get(address)
        return node.role if node else None

    def hop_count(self, src_address: str, dst_address: str) -> int:
        """Number of hops between two nodes on the bus"""
        return nx.shortest_path_length(self.graph, src_address, dst_address)

    def get_total_nodes(self) -> int:
        return len(self.nodes)

    def get_network_stats(self) -> Dict:
        """Get topology summary"""
        return {
            "num_nodes": self.get_total_nodes(),
            "num_sensors": self.num_sensors,
            "gateway": self.gateway.address,
            "attacker": self.attacker.address,
            "medium_capacity_mbps": self.medium.get_capacity_mbps(),
            "propagation_delay_ns": self.medium.propagation_delay * 1e9,
        }

    def __repr__(self):
        return (
            f"BusTopology(sensors={self.num_sensors}, "
            f"nodes={self.get_total_nodes()}, "
            f"capacity={self.medium.get_capacity_mbps():.0f}Mbps)"
        )
