"""
Command-line entry point

Example:

    bus-network-sim --n-sensors 5 --sim-time 60 --attack-mode jammer
    bus-network-sim --attack-mode flooder --attack-start 8 --attack-stop 52 --compare
"""

import argparse
from dataclasses import asdict
import sys
from typing import List, Optional

from .core.errors import ConfigurationError
from .core.statistics import print_report, records_to_dataframe, report_to_dict, save_report_json
from .attacks.attacks import AttackMode
from .scenario import DEFAULT_PORT, ScenarioConfig, print_scenario_comparison, run_comparison, run_scenario


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bus-network-sim",
        description="Measure the impact of a jammer or flooder on a bus sensor network"
    )
    parser.add_argument("--n-sensors", type=int, default=5, dest="sensor_count",
                        help="Number of sensor nodes (default: 5)")
    parser.add_argument("--sim-time", type=float, default=60.0,
                        help="Simulation time in seconds (default: 60)")
    parser.add_argument("--attack-mode", choices=["jammer", "flooder", "none"], default="jammer",
                        help="Attacker behaviour (default: jammer)")
    parser.add_argument("--attack-start", type=float, default=None,
                        help="Attack window start in seconds (default depends on mode)")
    parser.add_argument("--attack-stop", type=float, default=None,
                        help="Attack window end in seconds (default depends on mode)")
    parser.add_argument("--attack-size", type=int, default=None,
                        help="Override attacker payload size in bytes")
    parser.add_argument("--attack-rate", type=float, default=None,
                        help="Override attacker rate in Mbps")
    parser.add_argument("--bandwidth", type=float, default=100.0,
                        help="Medium capacity in Mbps (default: 100)")
    parser.add_argument("--delay-ns", type=float, default=6560.0,
                        help="Medium propagation delay in ns (default: 6560)")
    parser.add_argument("--queue-size", type=int, default=100,
                        help="Device transmit queue length in packets (default: 100)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT,
                        help=f"Sink UDP port (default: {DEFAULT_PORT})")
    parser.add_argument("--seed", type=int, default=1, help="Random seed (default: 1)")
    parser.add_argument("--compare", action="store_true",
                        help="Also run the benign-only baseline and compare")
    parser.add_argument("--json", metavar="PATH", help="Write metrics to a JSON file")
    parser.add_argument("--flows", metavar="PATH", help="Write per-flow counters to a CSV file")
    parser.add_argument("--trace", metavar="PATH", help="Write a per-packet trace to a CSV file")
    parser.add_argument("--plot-dir", metavar="DIR", help="Save plots to this directory")
    parser.add_argument("--progress", action="store_true", help="Show a progress bar")
    parser.add_argument("--verbose", action="store_true", help="Print run details")
    return parser


def config_from_args(args: argparse.Namespace) -> ScenarioConfig:
    """Translate parsed arguments into a scenario configuration"""
    mode = None if args.attack_mode == "none" else AttackMode(args.attack_mode)

    window = None
    if args.attack_start is not None or args.attack_stop is not None:
        if args.attack_start is None or args.attack_stop is None:
            raise ConfigurationError("--attack-start and --attack-stop must be given together")
        window = (args.attack_start, args.attack_stop)

    return ScenarioConfig(
        sensor_count=args.sensor_count,
        sim_time=args.sim_time,
        attack_mode=mode,
        attack_window=window,
        port=args.port,
        data_rate_bps=args.bandwidth * 1e6,
        propagation_delay=args.delay_ns * 1e-9,
        queue_size=args.queue_size,
        seed=args.seed,
        attack_payload_size=args.attack_size,
        attack_send_rate=args.attack_rate * 1e6 if args.attack_rate is not None else None,
        trace=bool(args.trace or args.plot_dir),
        progress_bar=args.progress,
        verbose=args.verbose
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
        if args.compare:
            baseline, result, impact = run_comparison(config)
        else:
            result = run_scenario(config)
    except ConfigurationError as e:
        parser.error(str(e))

    print_report(result.report)

    extra = {
        "roles": {role: report_to_dict(r) for role, r in result.role_reports.items()},
        "substrate": result.substrate,
    }
    if args.compare:
        print_scenario_comparison(baseline, result)
        extra["baseline"] = report_to_dict(baseline.report)
        extra["impact"] = asdict(impact)

    if args.json:
        save_report_json(result.report, args.json, extra=extra)
    if args.flows:
        records_to_dataframe(result.records, config.sim_time).to_csv(args.flows, index=False)
    if args.trace:
        result.trace.to_csv(args.trace, index=False)
    if args.plot_dir:
        from .core.visualization import save_all_plots
        save_all_plots(result, output_dir=args.plot_dir)

    return 0


if __name__ == "__main__":
    sys.exit(main())
