"""
Bus Sensor Network DoS Simulation Framework

A framework for measuring how a jamming or flooding attacker on a shared
medium degrades a sensor network's delivery to its gateway.

Modules:
- core: Topology, traffic sources, simulator and metrics
- attacks: Jammer and flooder attack configurations
- scenario: Run controller tying them together
"""

# Import from core module
from .core import (
    # Errors
    ConfigurationError,
    EmptyResultWarning,
    # Topology
    NodeRole,
    BusNode,
    SharedMedium,
    BusTopology,
    # Traffic
    Packet,
    PacketType,
    TrafficConfig,
    TrafficSource,
    TrafficGenerator,
    make_source,
    sensor_config,
    # Statistics
    FiveTuple,
    FlowRecord,
    MetricsReport,
    AttackImpact,
    compute_report,
    compute_role_reports,
    compare_reports,
    jain_fairness_index,
    format_report,
    print_report,
    # Simulator
    Simulator
)

# Import from attacks module
from .attacks import (
    AttackMode,
    AttackConfig,
    AttackGenerator
)

from .scenario import (
    ScenarioConfig,
    ScenarioResult,
    run_scenario,
    run_comparison
)

__version__ = "0.1.0"

__all__ = [
    # Core - Errors
    'ConfigurationError',
    'EmptyResultWarning',
    # Core - Topology
    'NodeRole',
    'BusNode',
    'SharedMedium',
    'BusTopology',
    # Core - Traffic
    'Packet',
    'PacketType',
    'TrafficConfig',
    'TrafficSource',
    'TrafficGenerator',
    'make_source',
    'sensor_config',
    # Core - Statistics
    'FiveTuple',
    'FlowRecord',
    'MetricsReport',
    'AttackImpact',
    'compute_report',
    'compute_role_reports',
    'compare_reports',
    'jain_fairness_index',
    'format_report',
    'print_report',
    # Core - Simulator
    'Simulator',
    # Attacks
    'AttackMode',
    'AttackConfig',
    'AttackGenerator',
    # Scenario
    'ScenarioConfig',
    'ScenarioResult',
    'run_scenario',
    'run_comparison'
]
