"""
Statistics Module

This module turns the per-flow counters produced by a run into
network performance metrics: throughput, packet delivery ratio,
delay, jitter, loss, goodput and Jain's fairness index.

All computations here are pure functions of the flow records, so the
same records always yield the same report.
"""

import json
import warnings
import numpy as np
import pandas as pd
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import EmptyResultWarning


# The bus is a single hop from every sender to the gateway
SINGLE_HOP = 1

UDP_PROTOCOL = 17


@dataclass(frozen=True)
class FiveTuple:
    """Flow identity as seen by the flow classifier"""
    source_address: str
    destination_address: str
    protocol: int
    source_port: int
    destination_port: int


@dataclass(frozen=True)
class FlowRecord:
    """
    Counters of one flow observed during a run

    Attributes:
        flow_id: Identifier assigned by the flow monitor
        five_tuple: Flow identity
        tx_packets: Packets handed to the network by the sender
        rx_packets: Packets received by the destination
        tx_bytes: IP-level bytes sent
        rx_bytes: IP-level bytes received
        delay_sum: Sum of end-to-end delays of received packets (s)
        jitter_sum: Sum of delay variations between consecutive packets (s)
        lost_packets: Packets dropped inside the network
    """
    flow_id: int
    five_tuple: FiveTuple
    tx_packets: int = 0
    rx_packets: int = 0
    tx_bytes: int = 0
    rx_bytes: int = 0
    delay_sum: float = 0.0
    jitter_sum: float = 0.0
    lost_packets: int = 0

    def __post_init__(self):
        counters = (self.tx_packets, self.rx_packets, self.tx_bytes, self.rx_bytes)
        if min(counters) < 0 or self.delay_sum < 0 or self.jitter_sum < 0:
            raise ValueError(f"Flow {self.flow_id} has negative counters")
        if self.rx_packets > self.tx_packets:
            raise ValueError(
                f"Flow {self.flow_id} received more packets than it sent"
            )

    @property
    def destination_port(self) -> int:
        return self.five_tuple.destination_port

    def get_throughput_bps(self, duration: float) -> float:
        """Received bits per second over the whole run"""
        if duration <= 0:
            return 0.0
        return self.rx_bytes * 8 / duration


@dataclass(frozen=True)
class MetricsReport:
    """
    Network performance metrics of one run

    Energy consumption and collision count cannot be derived from flow
    records; they stay None (unmeasured) unless a caller supplies them.
    """
    aggregate_throughput_bps: float = 0.0
    packet_delivery_ratio: float = 0.0
    average_delay: float = 0.0
    average_jitter: float = 0.0
    loss_ratio: float = 0.0
    goodput_bps: float = 0.0
    fairness_index: float = 0.0
    energy_consumption: Optional[float] = None
    collision_count: Optional[int] = None
    hop_count: int = SINGLE_HOP

    # Raw totals behind the ratios
    num_flows: int = 0
    tx_packets: int = 0
    rx_packets: int = 0
    tx_bytes: int = 0
    rx_bytes: int = 0
    per_flow_throughput: Tuple[float, ...] = ()

    @property
    def pdr_percent(self) -> float:
        return self.packet_delivery_ratio * 100.0

    @property
    def loss_percent(self) -> float:
        return self.loss_ratio * 100.0

    @property
    def is_empty(self) -> bool:
        return self.num_flows == 0


def jain_fairness_index(values: Iterable[float]) -> float:
    """
    Jain's fairness index (sum x)^2 / (n * sum x^2)

    Returns 0.0 for an empty list or when every sample is zero.
    """
    x = np.asarray(list(values), dtype=float)
    if x.size == 0:
        return 0.0
    sum_sq = float(np.sum(x * x))
    if sum_sq == 0:
        return 0.0
    total = float(np.sum(x))
    return (total * total) / (x.size * sum_sq)


def filter_records(records: Iterable[FlowRecord], port: int) -> List[FlowRecord]:
    """Keep only flows addressed to the given destination port"""
    return [r for r in records if r.destination_port == port]


def compute_report(
    records: Sequence[FlowRecord],
    port: int,
    duration: float,
    hop_count: int = SINGLE_HOP
) -> MetricsReport:
    """
    Aggregate flow records into a metrics report

    Args:
        records: Every flow record of the run
        port: Sink port; flows to other ports are ignored
        duration: Simulated duration used for throughput (s)
        hop_count: Hops from senders to the sink

    Returns:
        Metrics report; ratios resolve to 0 when their denominator is 0
    """
    matched = filter_records(records, port)
    if not matched:
        warnings.warn(
            f"No flow records addressed to port {port}; reporting zeros",
            EmptyResultWarning,
            stacklevel=2
        )

    tx_packets = rx_packets = tx_bytes = rx_bytes = 0
    total_delay = total_jitter = 0.0
    per_flow = []

    for record in matched:
        per_flow.append(record.get_throughput_bps(duration))
        tx_packets += record.tx_packets
        rx_packets += record.rx_packets
        tx_bytes += record.tx_bytes
        rx_bytes += record.rx_bytes
        total_delay += record.delay_sum
        total_jitter += record.jitter_sum

    aggregate = rx_bytes * 8 / duration if duration > 0 else 0.0

    if tx_packets > 0:
        pdr = rx_packets / tx_packets
        loss = (tx_packets - rx_packets) / tx_packets
    else:
        pdr = loss = 0.0

    if rx_packets > 0:
        avg_delay = total_delay / rx_packets
        avg_jitter = total_jitter / rx_packets
    else:
        avg_delay = avg_jitter = 0.0

    return MetricsReport(
        aggregate_throughput_bps=aggregate,
        packet_delivery_ratio=pdr,
        average_delay=avg_delay,
        average_jitter=avg_jitter,
        loss_ratio=loss,
        goodput_bps=aggregate,
        fairness_index=jain_fairness_index(per_flow),
        hop_count=hop_count,
        num_flows=len(matched),
        tx_packets=tx_packets,
        rx_packets=rx_packets,
        tx_bytes=tx_bytes,
        rx_bytes=rx_bytes,
        per_flow_throughput=tuple(per_flow)
    )


def compute_role_reports(
    records: Sequence[FlowRecord],
    port: int,
    duration: float,
    classify: Callable[[FlowRecord], Optional[str]],
    hop_count: int = SINGLE_HOP
) -> Dict[str, MetricsReport]:
    """
    Split flows by a label (e.g. the sender's role) and report each group

    Args:
        records: Every flow record of the run
        port: Sink port
        duration: Simulated duration (s)
        classify: Maps a record to a group label, None to skip it
        hop_count: Hops from senders to the sink

    Returns:
        Dictionary mapping label to its metrics report
    """
    groups: Dict[str, List[FlowRecord]] = {}
    for record in filter_records(records, port):
        label = classify(record)
        if label is not None:
            groups.setdefault(label, []).append(record)

    return {
        label: compute_report(group, port, duration, hop_count=hop_count)
        for label, group in sorted(groups.items())
    }


@dataclass(frozen=True)
class AttackImpact:
    """
    Degradation of an attacked run relative to a benign baseline

    Positive values mean the attacked run is worse.
    """
    pdr_drop: float
    loss_increase: float
    delay_increase: float
    jitter_increase: float
    fairness_drop: float
    throughput_change_bps: float


def compare_reports(baseline: MetricsReport, attacked: MetricsReport) -> AttackImpact:
    """Compare an attacked run with its baseline"""
    return AttackImpact(
        pdr_drop=baseline.packet_delivery_ratio - attacked.packet_delivery_ratio,
        loss_increase=attacked.loss_ratio - baseline.loss_ratio,
        delay_increase=attacked.average_delay - baseline.average_delay,
        jitter_increase=attacked.average_jitter - baseline.average_jitter,
        fairness_drop=baseline.fairness_index - attacked.fairness_index,
        throughput_change_bps=(
            attacked.aggregate_throughput_bps - baseline.aggregate_throughput_bps
        )
    )


def records_to_dataframe(records: Iterable[FlowRecord], duration: float = 0.0) -> pd.DataFrame:
    """Flow records as a table, one row per flow"""
    rows = []
    for r in records:
        rows.append({
            "flow_id": r.flow_id,
            "source": r.five_tuple.source_address,
            "destination": r.five_tuple.destination_address,
            "protocol": r.five_tuple.protocol,
            "source_port": r.five_tuple.source_port,
            "destination_port": r.five_tuple.destination_port,
            "tx_packets": r.tx_packets,
            "rx_packets": r.rx_packets,
            "tx_bytes": r.tx_bytes,
            "rx_bytes": r.rx_bytes,
            "delay_sum": r.delay_sum,
            "jitter_sum": r.jitter_sum,
            "lost_packets": r.lost_packets,
            "throughput_bps": r.get_throughput_bps(duration),
        })
    columns = [
        "flow_id", "source", "destination", "protocol", "source_port",
        "destination_port", "tx_packets", "rx_packets", "tx_bytes", "rx_bytes",
        "delay_sum", "jitter_sum", "lost_packets", "throughput_bps",
    ]
    return pd.DataFrame(rows, columns=columns)


def throughput_timeline(
    trace: pd.DataFrame,
    duration: float,
    window: float = 1.0,
    by: str = "role"
) -> pd.DataFrame:
    """
    Received throughput per time window

    Args:
        trace: Packet trace with "arrival_time", "ip_size", "received"
               and the grouping column
        duration: Simulated duration (s)
        window: Window width (s)
        by: Column used to split the series

    Returns:
        DataFrame indexed by window start with one bps column per group
    """
    num_windows = max(int(np.ceil(duration / window)), 1)
    edges = np.arange(num_windows + 1) * window
    empty = pd.DataFrame(index=pd.Index(edges[:-1], name="time"))
    if trace.empty:
        return empty

    received = trace[trace["received"]]
    if received.empty:
        return empty

    # Late arrivals (after duration) fall into the last window
    slot = (received["arrival_time"] // window).astype(int).clip(upper=num_windows - 1)
    table = (
        received.groupby([slot.rename("slot"), received[by]])["ip_size"]
        .sum()
        .unstack(fill_value=0)
        .reindex(range(num_windows), fill_value=0)
    )
    table.index = pd.Index(edges[:-1], name="time")
    return table * 8 / window


def report_to_dict(report: MetricsReport) -> Dict:
    """Plain dictionary form of a report, suitable for JSON"""
    data = asdict(report)
    data["per_flow_throughput"] = list(report.per_flow_throughput)
    data["pdr_percent"] = report.pdr_percent
    data["loss_percent"] = report.loss_percent
    return data


def save_report_json(report: MetricsReport, filepath: str, extra: Optional[Dict] = None):
    """Save a report (and optional extra sections) to a JSON file"""

    def convert_numpy(obj):
        """Convert numpy types to Python native types for JSON serialization"""
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, dict):
            return {k: convert_numpy(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [convert_numpy(item) for item in obj]
        return obj

    data = {"metrics": report_to_dict(report)}
    if extra:
        data.update(extra)
    with open(filepath, 'w') as f:
        json.dump(convert_numpy(data), f, indent=2)


def _format_optional(value, unit: str) -> str:
    if value is None:
        return "not measured"
    return f"{value} {unit}".rstrip()


def format_report(report: MetricsReport) -> str:
    """The ten labelled metric lines, preceded by a header"""
    lines = [
        "==== Performance Metrics ====",
        f"1. Aggregate Throughput: {report.aggregate_throughput_bps:.2f} bps",
        f"2. Packet Delivery Ratio: {report.pdr_percent:.2f} %",
        f"3. Average End-to-End Delay: {report.average_delay:.6f} s",
        f"4. Average Jitter: {report.average_jitter:.6f} s",
        f"5. Packet Loss Ratio: {report.loss_percent:.2f} %",
        f"6. Goodput: {report.goodput_bps:.2f} bps",
        f"7. Energy Consumption: {_format_optional(report.energy_consumption, 'J')}",
        f"8. Collision Count: {_format_optional(report.collision_count, '')}",
        f"9. Average Hop Count: {report.hop_count}",
        f"10. Fairness Index: {report.fairness_index:.4f}",
    ]
    return "\n".join(lines)


def print_report(report: MetricsReport):
    """Print the metrics report to standard output"""
    print("\n" + format_report(report))


def print_comparison(reports: Dict[str, MetricsReport]):
    """
    Print a side-by-side comparison of several runs

    Args:
        reports: Dictionary mapping scenario name to its report
    """
    print("\n" + "="*80)
    print("SCENARIO COMPARISON")
    print("="*80)
    print(f"{'Scenario':<20} {'PDR':>9} {'Delay (s)':>12} {'Jitter (s)':>12} "
          f"{'Throughput':>14} {'Fairness':>9}")
    print("-" * 80)

    for name, report in reports.items():
        print(f"{name:<20} {report.packet_delivery_ratio:>8.2%} "
              f"{report.average_delay:>12.6f} {report.average_jitter:>12.6f} "
              f"{report.aggregate_throughput_bps:>10.0f} bps {report.fairness_index:>9.4f}")

    print("\n" + "="*80)
