"""
Bus Sensor Network - Core Module

This module contains the core components for bus network simulation:
- Topology: Nodes on a single shared medium
- Traffic: On/off traffic sources for sensors and the attacker
- Simulator: Event scheduler, shared channel and flow monitor
- Statistics: Metrics aggregation from flow records
- Visualization: Plotting tools
"""

from .errors import (
    ConfigurationError,
    EmptyResultWarning
)

from .topology import (
    NodeRole,
    BusNode,
    SharedMedium,
    BusTopology
)

from .traffic import (
    Packet,
    PacketType,
    TrafficConfig,
    TrafficSource,
    TrafficGenerator,
    make_source,
    sensor_config
)

from .statistics import (
    FiveTuple,
    FlowRecord,
    MetricsReport,
    AttackImpact,
    compute_report,
    compute_role_reports,
    compare_reports,
    jain_fairness_index,
    records_to_dataframe,
    format_report,
    print_report,
    print_comparison,
    save_report_json
)

from .simulator import (
    EventScheduler,
    FlowMonitor,
    Simulator
)

from .visualization import (
    plot_bus_topology,
    plot_flow_throughput,
    plot_throughput_timeline,
    plot_comparison,
    save_all_plots
)

__all__ = [
    # Errors
    'ConfigurationError',
    'EmptyResultWarning',
    # Topology
    'NodeRole',
    'BusNode',
    'SharedMedium',
    'BusTopology',
    # Traffic
    'Packet',
    'PacketType',
    'TrafficConfig',
    'TrafficSource',
    'TrafficGenerator',
    'make_source',
    'sensor_config',
    # Statistics
    'FiveTuple',
    'FlowRecord',
    'MetricsReport',
    'AttackImpact',
    'compute_report',
    'compute_role_reports',
    'compare_reports',
    'jain_fairness_index',
    'records_to_dataframe',
    'format_report',
    'print_report',
    'print_comparison',
    'save_report_json',
    # Simulator
    'EventScheduler',
    'FlowMonitor',
    'Simulator',
    # Visualization
    'plot_bus_topology',
    'plot_flow_throughput',
    'plot_throughput_timeline',
    'plot_comparison',
    'save_all_plots'
]
