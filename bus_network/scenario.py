"""
Scenario Runner

Builds a bus topology, starts the sink and every traffic source on
their schedules, advances the clock to the end of the run and turns
the resulting flow records into metrics.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .core.errors import ConfigurationError
from .core.topology import BusTopology
from .core.traffic import TrafficGenerator, sensor_config
from .core.simulator import Simulator
from .core.statistics import (
    SINGLE_HOP,
    AttackImpact,
    FlowRecord,
    MetricsReport,
    compare_reports,
    compute_report,
    compute_role_reports,
    print_comparison,
    print_report,
    throughput_timeline,
)
from .attacks.attacks import AttackConfig, AttackGenerator, AttackMode


DEFAULT_PORT = 50000

# The sink outlives the sources by this margin so in-flight frames land
STOP_MARGIN = 1.0


@dataclass
class ScenarioConfig:
    """
    Configuration of one run

    Attributes:
        sensor_count: Number of benign sensors
        sim_time: Total simulated seconds; sensors stop here
        attack_mode: Jammer, flooder, or None for a benign-only run
        attack_window: (start, stop) of the attack; defaults per mode.
                       A zero-length window keeps the attacker silent.
        port: Sink UDP port on the gateway
        data_rate_bps: Medium capacity (bps)
        propagation_delay: Medium propagation delay (s)
        queue_size: Device transmit queue length (packets)
        seed: Random seed for backoff decisions
        attack_payload_size: Overrides the mode's payload size
        attack_send_rate: Overrides the mode's rate (bps)
        trace: Keep a per-packet trace
        progress_bar: Show a progress bar while running
        verbose: Print run banners
    """
    sensor_count: int = 5
    sim_time: float = 60.0
    attack_mode: Optional[AttackMode] = AttackMode.JAMMER
    attack_window: Optional[Tuple[float, float]] = None
    port: int = DEFAULT_PORT
    data_rate_bps: float = 100e6
    propagation_delay: float = 6560e-9
    queue_size: int = 100
    seed: Optional[int] = 1
    attack_payload_size: Optional[int] = None
    attack_send_rate: Optional[float] = None
    trace: bool = False
    progress_bar: bool = False
    verbose: bool = False

    @property
    def end_time(self) -> float:
        return self.sim_time + STOP_MARGIN

    def attack_config(self) -> Optional[AttackConfig]:
        """Attacker settings, None for a benign-only run"""
        if self.attack_mode is None:
            return None
        config = AttackConfig.for_mode(self.attack_mode, self.sim_time)
        if self.attack_window is not None:
            config.start, config.stop = self.attack_window
        config.payload_size = self.attack_payload_size
        config.send_rate = self.attack_send_rate
        return config

    def validate(self):
        """Raise ConfigurationError before anything is scheduled"""
        if self.sensor_count < 0:
            raise ConfigurationError(f"sensor_count must be >= 0, got {self.sensor_count}")
        if self.sim_time <= 0:
            raise ConfigurationError(f"sim_time must be > 0, got {self.sim_time}")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"port must be in 1..65535, got {self.port}")
        if self.sensor_count > 0:
            last_start = sensor_config(self.sensor_count - 1, self.sim_time).start
            if last_start >= self.sim_time:
                raise ConfigurationError(
                    f"sim_time ({self.sim_time}) must exceed the last sensor's "
                    f"start time ({last_start:g})"
                )

        attack = self.attack_config()
        if attack is None:
            return
        if self.attack_window is None and attack.start >= attack.stop:
            margin = attack.parameters.window_margin
            raise ConfigurationError(
                f"sim_time ({self.sim_time}) is too short for the default "
                f"{self.attack_mode.value} window, which keeps {margin:g} s clear "
                f"at both ends; use sim_time > {2 * margin:g} or set attack_window"
            )
        # An explicit zero-length window is a benign run
        if not attack.is_empty:
            attack.validate(self.sim_time)

    def baseline(self) -> "ScenarioConfig":
        """Same run without the attacker"""
        return replace(self, attack_mode=None)


@dataclass
class ScenarioResult:
    """Everything a run produced"""
    config: ScenarioConfig
    topology: BusTopology
    records: List[FlowRecord]
    report: MetricsReport
    role_reports: Dict[str, MetricsReport]
    substrate: Dict = field(default_factory=dict)
    trace: pd.DataFrame = field(default_factory=pd.DataFrame)

    def get_timeline(self, window: float = 1.0) -> pd.DataFrame:
        """Received throughput per window, split by sender role"""
        return throughput_timeline(self.trace, self.config.sim_time, window)

    def print_results(self):
        print_report(self.report)


def build_traffic(config: ScenarioConfig, topology: BusTopology) -> TrafficGenerator:
    """Sensor sources plus the attacker source (if any)"""
    traffic = TrafficGenerator()
    traffic.create_sensor_sources(topology, config.port, config.sim_time)

    attack = config.attack_config()
    if attack is not None:
        AttackGenerator(topology, traffic).create_attack(attack, config.port)
    return traffic


def run_scenario(config: ScenarioConfig) -> ScenarioResult:
    """
    Execute one run and compute its metrics

    Args:
        config: Scenario configuration

    Returns:
        Scenario result with flow records and reports

    Raises:
        ConfigurationError: before the run starts, on invalid settings
    """
    config.validate()

    topology = BusTopology(
        num_sensors=config.sensor_count,
        data_rate_bps=config.data_rate_bps,
        propagation_delay=config.propagation_delay
    )
    traffic = build_traffic(config, topology)

    sim = Simulator(
        topology,
        seed=config.seed,
        queue_size=config.queue_size,
        trace=config.trace
    )
    sim.verbose = config.verbose

    sim.install_sink(config.port, start=0.0, stop=config.end_time)
    sim.install_traffic(traffic)

    sim.run(config.end_time, progress_bar=config.progress_bar)
    sim.stop()

    records = sim.get_flow_records()
    if topology.sensors:
        hops = topology.hop_count(topology.sensors[0].address, topology.gateway.address)
    else:
        hops = SINGLE_HOP
    report = compute_report(records, config.port, config.sim_time, hop_count=hops)

    def classify(record: FlowRecord) -> Optional[str]:
        role = topology.get_role(record.five_tuple.source_address)
        return role.value if role else None

    role_reports = compute_role_reports(
        records, config.port, config.sim_time, classify, hop_count=hops
    )

    return ScenarioResult(
        config=config,
        topology=topology,
        records=records,
        report=report,
        role_reports=role_reports,
        substrate=sim.get_results(),
        trace=sim.get_trace_dataframe()
    )


def run_comparison(
    config: ScenarioConfig
) -> Tuple[ScenarioResult, ScenarioResult, AttackImpact]:
    """
    Run the benign baseline and the attacked scenario

    Returns:
        (baseline result, attacked result, impact on all sink traffic)
    """
    baseline = run_scenario(config.baseline())
    attacked = run_scenario(config)
    return baseline, attacked, compare_reports(baseline.report, attacked.report)


def print_scenario_comparison(baseline: ScenarioResult, attacked: ScenarioResult):
    """Print baseline and attacked reports side by side"""
    label = attacked.config.attack_mode.value if attacked.config.attack_mode else "attacked"
    reports = {"baseline": baseline.report, label: attacked.report}

    sensor_report = attacked.role_reports.get("sensor")
    if sensor_report is not None:
        reports[f"{label} (sensors)"] = sensor_report
    print_comparison(reports)
