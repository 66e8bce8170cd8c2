#!/usr/bin/env python3
"""
Example: Jammer and Flooder on a Bus Sensor Network

This script demonstrates the basic usage of the bus network simulation
framework, including:
- Building the bus topology
- Running the benign baseline
- Running the jammer and flooder scenarios
- Comparing results and saving plots
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bus_network import (
    AttackMode,
    BusTopology,
    ScenarioConfig,
    compare_reports,
    run_scenario,
)
from bus_network.core.statistics import print_comparison
from bus_network.core.visualization import plot_comparison, save_all_plots
import matplotlib.pyplot as plt


def main():
    print("="*70)
    print("Bus Sensor Network DoS Simulation - Basic Example")
    print("="*70)

    sim_time = 30.0
    output_dir = "output"

    # =====================================================
    # Step 1: Topology
    # =====================================================
    print("\n[1] Building Bus Topology...")

    topology = BusTopology(num_sensors=5)
    print(f"  Created: {topology}")
    for node in topology.nodes:
        print(f"  {node.description:<10} {node.address}")

    # =====================================================
    # Step 2: Benign baseline
    # =====================================================
    print("\n[2] Running Benign Baseline...")

    baseline = run_scenario(ScenarioConfig(sim_time=sim_time, attack_mode=None))
    baseline.print_results()

    # =====================================================
    # Step 3: Attack scenarios
    # =====================================================
    reports = {"baseline": baseline.report}
    for mode in AttackMode:
        print(f"\n[3] Running {mode.value.title()} Scenario...")

        result = run_scenario(ScenarioConfig(
            sim_time=sim_time,
            attack_mode=mode,
            trace=True,
            progress_bar=True
        ))
        result.print_results()

        impact = compare_reports(baseline.report, result.report)
        print(f"  PDR drop:        {impact.pdr_drop * 100:.2f} %")
        print(f"  Delay increase:  {impact.delay_increase * 1e6:.2f} us")
        print(f"  Fairness drop:   {impact.fairness_drop:.4f}")

        reports[mode.value] = result.report
        save_all_plots(result, output_dir=output_dir, prefix=mode.value)

    # =====================================================
    # Step 4: Comparison
    # =====================================================
    print("\n[4] Comparing Scenarios...")
    print_comparison(reports)

    fig = plot_comparison(reports)
    fig.savefig(os.path.join(output_dir, "comparison.png"), dpi=150)
    plt.close(fig)

    print("\n" + "="*70)
    print("Simulation Complete!")
    print("="*70)


if __name__ == "__main__":
    main()
