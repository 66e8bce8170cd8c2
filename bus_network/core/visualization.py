"""
Visualization Module

Provides functions for visualizing the bus topology, per-flow
throughput, received throughput over time and scenario comparisons.
"""

import os
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Tuple

from .topology import BusTopology, NodeRole, ROLE_COLORS
from .statistics import MetricsReport


def _rgb(color: Tuple[int, int, int]) -> Tuple[float, float, float]:
    return tuple(c / 255.0 for c in color)


def plot_bus_topology(
    topology: BusTopology,
    figsize: Tuple[int, int] = (12, 3),
    title: str = "Bus Topology"
) -> plt.Figure:
    """
    Plot nodes along the shared medium, coloured by role

    Args:
        topology: Bus topology to plot
        figsize: Figure size
        title: Plot title

    Returns:
        Matplotlib figure
    """
    fig, ax = plt.subplots(figsize=figsize)

    xs = [node.position[0] for node in topology.nodes]
    bus_y = -1.0
    ax.plot([min(xs), max(xs)], [bus_y, bus_y], c='black', linewidth=3, zorder=1)

    for node in topology.nodes:
        x, y = node.position
        ax.plot([x, x], [bus_y, y], c='gray', linewidth=1, zorder=1)
        ax.scatter([x], [y], c=[_rgb(node.color)], s=200, edgecolors='black', zorder=3)
        ax.annotate(
            f"{node.description}\n{node.address}",
            (x, y), textcoords="offset points", xytext=(0, 12),
            ha='center', fontsize=8
        )

    handles = [
        mpatches.Patch(color=_rgb(ROLE_COLORS[role]), label=role.value.title())
        for role in NodeRole
    ]
    ax.legend(handles=handles, loc='lower right')
    ax.set_xlabel("Position (m)")
    ax.set_yticks([])
    ax.set_ylim(bus_y - 1.0, 2.0)
    ax.set_title(f"{title} ({topology.medium.get_capacity_mbps():.0f} Mbps medium)")

    plt.tight_layout()
    return fig


def plot_flow_throughput(
    report: MetricsReport,
    labels: Optional[List[str]] = None,
    figsize: Tuple[int, int] = (10, 4),
    title: str = "Per-Flow Throughput"
) -> plt.Figure:
    """
    Bar chart of the per-flow throughputs behind the fairness index

    Args:
        report: Metrics report
        labels: Bar labels, one per flow
        figsize: Figure size
        title: Plot title

    Returns:
        Matplotlib figure
    """
    fig, ax = plt.subplots(figsize=figsize)

    values = list(report.per_flow_throughput)
    if not values:
        ax.text(0.5, 0.5, "No flows to the sink", ha='center', va='center')
        return fig

    if labels is None:
        labels = [f"Flow {i + 1}" for i in range(len(values))]
    x = np.arange(len(values))
    ax.bar(x, values, color=plt.cm.Set2(np.linspace(0, 1, len(values))))
    ax.set_yscale('symlog')
    ax.set_xticks(x)
    ax.set_xticklabels(labels, rotation=45, ha='right')
    ax.set_ylabel("Throughput (bps)")
    ax.set_title(f"{title} (Jain index {report.fairness_index:.3f})")
    ax.grid(True, alpha=0.3, axis='y')

    plt.tight_layout()
    return fig


def plot_throughput_timeline(
    timeline: pd.DataFrame,
    attack_window: Optional[Tuple[float, float]] = None,
    figsize: Tuple[int, int] = (12, 4),
    title: str = "Received Throughput Over Time"
) -> plt.Figure:
    """
    Received throughput per window, one line per sender role

    Args:
        timeline: Output of throughput_timeline
        attack_window: Shaded as the attack period when given
        figsize: Figure size
        title: Plot title

    Returns:
        Matplotlib figure
    """
    fig, ax = plt.subplots(figsize=figsize)

    if timeline.empty or timeline.shape[1] == 0:
        ax.text(0.5, 0.5, "No trace data", ha='center', va='center')
        return fig

    for column in timeline.columns:
        ax.step(timeline.index, timeline[column], where='post', label=str(column), linewidth=1)

    if attack_window is not None:
        ax.axvspan(attack_window[0], attack_window[1], color='red', alpha=0.1, label="attack")

    ax.set_yscale('symlog')
    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Throughput (bps)")
    ax.set_title(title)
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def plot_comparison(
    reports: Dict[str, MetricsReport],
    metrics: List[str] = ["packet_delivery_ratio", "average_delay", "average_jitter", "fairness_index"],
    figsize: Tuple[int, int] = (14, 4),
    title: str = "Scenario Comparison"
) -> plt.Figure:
    """
    Plot comparison of several runs

    Args:
        reports: Dictionary mapping scenario name to its report
        metrics: MetricsReport fields to compare
        figsize: Figure size
        title: Plot title

    Returns:
        Matplotlib figure
    """
    num_metrics = len(metrics)
    fig, axes = plt.subplots(1, num_metrics, figsize=figsize)

    if num_metrics == 1:
        axes = [axes]

    names = list(reports.keys())
    x = np.arange(len(names))

    for i, metric in enumerate(metrics):
        ax = axes[i]
        values = [getattr(reports[name], metric) for name in names]

        bars = ax.bar(x, values, color=plt.cm.Set2(np.linspace(0, 1, len(values))))

        ax.set_ylabel(metric.replace("_", " ").title())
        ax.set_title(metric.replace("_", " ").title())
        ax.set_xticks(x)
        ax.set_xticklabels(names, rotation=45, ha='right')
        ax.grid(True, alpha=0.3, axis='y')

        # Add value labels on bars
        for bar, val in zip(bars, values):
            ax.text(
                bar.get_x() + bar.get_width()/2, bar.get_height(),
                f'{val:.3g}', ha='center', va='bottom', fontsize=8
            )

    fig.suptitle(title, fontsize=14, fontweight='bold')
    plt.tight_layout()
    return fig


def save_all_plots(
    result,
    output_dir: str = ".",
    prefix: str = "bus"
):
    """
    Save all standard plots of a scenario result to files

    Args:
        result: ScenarioResult
        output_dir: Output directory
        prefix: Filename prefix
    """
    os.makedirs(output_dir, exist_ok=True)

    fig = plot_bus_topology(result.topology)
    fig.savefig(os.path.join(output_dir, f"{prefix}_topology.png"), dpi=150)
    plt.close(fig)

    labels = []
    for record in result.records:
        if record.destination_port == result.config.port:
            node = result.topology.get_node_by_address(record.five_tuple.source_address)
            labels.append(node.description if node else record.five_tuple.source_address)
    fig = plot_flow_throughput(result.report, labels=labels)
    fig.savefig(os.path.join(output_dir, f"{prefix}_flows.png"), dpi=150)
    plt.close(fig)

    if not result.trace.empty:
        attack = result.config.attack_config()
        window = (attack.start, attack.stop) if attack and not attack.is_empty else None
        fig = plot_throughput_timeline(result.get_timeline(), attack_window=window)
        fig.savefig(os.path.join(output_dir, f"{prefix}_timeline.png"), dpi=150)
        plt.close(fig)

    print(f"Plots saved to {output_dir}/")
