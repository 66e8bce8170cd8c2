"""
Tests for metrics aggregation over flow records.
"""

import sys
import os
import json
# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

import numpy as np
import pandas as pd
import pytest

from bus_network import (
    EmptyResultWarning,
    FiveTuple,
    FlowRecord,
    MetricsReport,
    compare_reports,
    compute_report,
    compute_role_reports,
    format_report,
    jain_fairness_index,
)
from bus_network.core.statistics import (
    records_to_dataframe,
    report_to_dict,
    save_report_json,
    throughput_timeline,
)

PORT = 50000


def _record(flow_id, src, port=PORT, **counters):
    return FlowRecord(
        flow_id=flow_id,
        five_tuple=FiveTuple(src, "10.1.1.7", 17, 49153, port),
        **counters
    )


@pytest.fixture
def records():
    return [
        _record(1, "10.1.1.1", tx_packets=10, rx_packets=8, tx_bytes=1000,
                rx_bytes=800, delay_sum=0.8, jitter_sum=0.08),
        _record(2, "10.1.1.2", tx_packets=10, rx_packets=10, tx_bytes=1000,
                rx_bytes=1000, delay_sum=1.0, jitter_sum=0.1),
        # Unrelated flow to another port
        _record(3, "10.1.1.6", port=9, tx_packets=50, rx_packets=1, tx_bytes=5000,
                rx_bytes=100, delay_sum=5.0, jitter_sum=1.0),
    ]


def test_report_values(records):
    report = compute_report(records, PORT, 10.0)

    assert report.num_flows == 2
    assert report.per_flow_throughput == pytest.approx((640.0, 800.0))
    assert report.aggregate_throughput_bps == pytest.approx(1440.0)
    assert report.goodput_bps == report.aggregate_throughput_bps
    assert report.packet_delivery_ratio == pytest.approx(0.9)
    assert report.loss_ratio == pytest.approx(0.1)
    assert report.average_delay == pytest.approx(0.1)
    assert report.average_jitter == pytest.approx(0.01)
    assert report.fairness_index == pytest.approx(1440.0 ** 2 / (2 * (640.0 ** 2 + 800.0 ** 2)))
    assert report.hop_count == 1
    assert report.tx_packets == 20 and report.rx_packets == 18


def test_other_ports_are_ignored(records):
    only_sink = compute_report(records[:2], PORT, 10.0)

    assert compute_report(records, PORT, 10.0) == only_sink


def test_unmeasured_fields_stay_absent(records):
    report = compute_report(records, PORT, 10.0)

    assert report.energy_consumption is None
    assert report.collision_count is None


def test_zero_tx_packets_resolve_to_zero():
    records = [_record(1, "10.1.1.1"), _record(2, "10.1.1.2")]
    report = compute_report(records, PORT, 60.0)

    assert report.packet_delivery_ratio == 0.0
    assert report.average_delay == 0.0
    assert report.average_jitter == 0.0
    assert report.loss_ratio == 0.0
    assert report.fairness_index == 0.0


def test_empty_records_warn_and_report_zeros():
    with pytest.warns(EmptyResultWarning):
        report = compute_report([], PORT, 60.0)

    assert report.is_empty
    assert report.aggregate_throughput_bps == 0.0
    assert report.packet_delivery_ratio == 0.0
    assert report.average_delay == 0.0
    assert report.average_jitter == 0.0
    assert report.loss_ratio == 0.0
    assert report.goodput_bps == 0.0
    assert report.fairness_index == 0.0
    assert report.hop_count == 1


def test_zero_duration_gives_zero_throughput(records):
    report = compute_report(records, PORT, 0.0)

    assert report.aggregate_throughput_bps == 0.0
    assert report.per_flow_throughput == (0.0, 0.0)
    assert report.packet_delivery_ratio == pytest.approx(0.9)


def test_pdr_and_loss_are_complementary():
    rng = np.random.default_rng(7)
    for _ in range(50):
        tx = rng.integers(0, 1000, size=5)
        rx = [int(rng.integers(0, t + 1)) for t in tx]
        records = [
            _record(i + 1, f"10.1.1.{i + 1}", tx_packets=int(t), rx_packets=r,
                    tx_bytes=int(t) * 92, rx_bytes=r * 92)
            for i, (t, r) in enumerate(zip(tx, rx))
        ]
        report = compute_report(records, PORT, 30.0)

        assert 0.0 <= report.packet_delivery_ratio <= 1.0
        if report.tx_packets > 0:
            assert report.loss_ratio == pytest.approx(1.0 - report.packet_delivery_ratio)
        assert report.aggregate_throughput_bps == pytest.approx(
            sum(r.get_throughput_bps(30.0) for r in records)
        )


def test_report_is_idempotent(records):
    frozen = tuple(records)

    assert compute_report(frozen, PORT, 10.0) == compute_report(frozen, PORT, 10.0)


def test_fairness_index_bounds():
    assert jain_fairness_index([]) == 0.0
    assert jain_fairness_index([0.0, 0.0]) == 0.0
    assert jain_fairness_index([5.0, 5.0, 5.0]) == pytest.approx(1.0)
    assert jain_fairness_index([1e6, 0.0, 0.0, 0.0]) == pytest.approx(0.25)
    assert jain_fairness_index([1e9, 1.0, 1.0, 1.0]) == pytest.approx(0.25, rel=1e-6)

    rng = np.random.default_rng(3)
    for n in range(1, 20):
        values = rng.uniform(0, 1000, size=n)
        index = jain_fairness_index(values)
        assert 1.0 / n - 1e-12 <= index <= 1.0 + 1e-12


def test_flow_record_rejects_impossible_counters():
    with pytest.raises(ValueError):
        _record(1, "10.1.1.1", tx_packets=1, rx_packets=2)
    with pytest.raises(ValueError):
        _record(1, "10.1.1.1", tx_packets=-1)


def test_role_reports(records):
    roles = {"10.1.1.1": "sensor", "10.1.1.2": "sensor", "10.1.1.6": "attacker"}
    reports = compute_role_reports(
        records, PORT, 10.0, lambda r: roles.get(r.five_tuple.source_address)
    )

    # The attacker flow targets another port and is filtered out first
    assert list(reports) == ["sensor"]
    assert reports["sensor"] == compute_report(records[:2], PORT, 10.0)


def test_compare_reports():
    baseline = MetricsReport(packet_delivery_ratio=1.0, average_delay=1e-5,
                             fairness_index=1.0, aggregate_throughput_bps=100.0)
    attacked = MetricsReport(packet_delivery_ratio=0.6, loss_ratio=0.4, average_delay=2e-4,
                             fairness_index=0.3, aggregate_throughput_bps=5e7)
    impact = compare_reports(baseline, attacked)

    assert impact.pdr_drop == pytest.approx(0.4)
    assert impact.loss_increase == pytest.approx(0.4)
    assert impact.delay_increase == pytest.approx(1.9e-4)
    assert impact.fairness_drop == pytest.approx(0.7)
    assert impact.throughput_change_bps == pytest.approx(5e7 - 100.0)


def test_format_report_has_ten_labelled_lines(records):
    text = format_report(compute_report(records, PORT, 10.0))
    lines = text.splitlines()

    assert lines[0] == "==== Performance Metrics ===="
    assert len(lines) == 11
    for number, line in enumerate(lines[1:], start=1):
        assert line.startswith(f"{number}. ")
    assert "Packet Delivery Ratio: 90.00 %" in text
    assert "Energy Consumption: not measured" in text
    assert "Collision Count: not measured" in text
    assert "Average Hop Count: 1" in text


def test_records_to_dataframe(records):
    df = records_to_dataframe(records, 10.0)

    assert len(df) == 3
    assert list(df["destination_port"]) == [PORT, PORT, 9]
    assert df.loc[0, "throughput_bps"] == pytest.approx(640.0)
    assert records_to_dataframe([]).empty


def test_throughput_timeline():
    trace = pd.DataFrame({
        "arrival_time": [0.5, 2.5, np.nan],
        "ip_size": [100, 50, 92],
        "received": [True, True, False],
        "role": ["sensor", "attacker", "sensor"],
    })
    timeline = throughput_timeline(trace, duration=3.0, window=1.0)

    assert list(timeline.index) == [0.0, 1.0, 2.0]
    assert list(timeline["sensor"]) == [800.0, 0.0, 0.0]
    assert list(timeline["attacker"]) == [0.0, 0.0, 400.0]


def test_save_report_json(records, tmp_path):
    report = compute_report(records, PORT, 10.0)
    path = tmp_path / "metrics.json"
    save_report_json(report, str(path), extra={"roles": {"sensor": report_to_dict(report)}})

    data = json.loads(path.read_text())
    assert data["metrics"]["packet_delivery_ratio"] == pytest.approx(0.9)
    assert data["metrics"]["energy_consumption"] is None
    assert data["metrics"]["per_flow_throughput"] == pytest.approx([640.0, 800.0])
    assert "sensor" in data["roles"]
