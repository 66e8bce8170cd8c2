"""
Network Simulator Module

This module provides the discrete-event engine the bus scenarios run on:
an event scheduler with a single simulated clock, a carrier-sense shared
channel with per-device drop-tail queues, a UDP packet sink and a flow
monitor that turns observed packets into per-flow counters.
"""

import heapq
import itertools
import numpy as np
import pandas as pd
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Iterator, List, Optional
from tqdm import tqdm

from .errors import ConfigurationError
from .topology import BusTopology, NodeRole
from .traffic import Packet, TrafficGenerator, TrafficSource
from .statistics import FiveTuple, FlowRecord, UDP_PROTOCOL


# Ephemeral UDP ports are handed out from here on every node
FIRST_EPHEMERAL_PORT = 49153


class EventScheduler:
    """
    Single-clock event scheduler

    Events with equal timestamps run in the order they were scheduled.
    """

    def __init__(self):
        self._queue: List = []
        self._sequence = itertools.count()
        self.now: float = 0.0
        self.events_processed: int = 0
        self._stopped = False

    def schedule(self, at: float, callback: Callable, *args):
        """Schedule callback(*args) at absolute time `at`"""
        if at < self.now:
            raise ValueError(f"Cannot schedule in the past ({at} < {self.now})")
        heapq.heappush(self._queue, (at, next(self._sequence), callback, args))

    def schedule_in(self, delay: float, callback: Callable, *args):
        """Schedule callback(*args) `delay` seconds from now"""
        self.schedule(self.now + delay, callback, *args)

    def stop(self):
        """Halt the run loop after the current event"""
        self._stopped = True

    def is_empty(self) -> bool:
        return not self._queue

    def run(self, until: float, progress_bar: bool = False):
        """
        Process events in time order up to (not including) `until`

        Args:
            until: End of the run in simulated seconds
            progress_bar: Show progress over simulated time
        """
        self._stopped = False
        bar = tqdm(total=until, desc="Simulating", unit="s") if progress_bar else None
        reported = 0.0

        while self._queue and not self._stopped:
            at, _, callback, args = self._queue[0]
            if at >= until:
                break
            heapq.heappop(self._queue)
            self.now = at
            callback(*args)
            self.events_processed += 1

            if bar is not None and self.now - reported >= 0.1:
                bar.update(self.now - reported)
                reported = self.now

        if not self._stopped:
            self.now = max(self.now, until)
        if bar is not None:
            bar.update(max(self.now - reported, 0.0))
            bar.close()


@dataclass
class _FlowStats:
    """Mutable counters of one flow while the run is in progress"""
    tx_packets: int = 0
    rx_packets: int = 0
    tx_bytes: int = 0
    rx_bytes: int = 0
    delay_sum: float = 0.0
    jitter_sum: float = 0.0
    lost_packets: int = 0
    last_delay: Optional[float] = None


class FlowMonitor:
    """
    Per-flow accounting at the IP layer

    A flow is identified by its five-tuple; flow ids are assigned in
    the order flows are first seen, starting at 1.
    """

    def __init__(self):
        self._ids: Dict[FiveTuple, int] = {}
        self._tuples: Dict[int, FiveTuple] = {}
        self._stats: Dict[int, _FlowStats] = {}
        self._in_flight: Dict[int, tuple] = {}  # packet id -> (flow id, sent at)

    @staticmethod
    def five_tuple(packet: Packet) -> FiveTuple:
        return FiveTuple(
            source_address=packet.source,
            destination_address=packet.destination,
            protocol=UDP_PROTOCOL,
            source_port=packet.source_port,
            destination_port=packet.destination_port
        )

    def _flow_id(self, packet: Packet) -> int:
        key = self.five_tuple(packet)
        flow_id = self._ids.get(key)
        if flow_id is None:
            flow_id = len(self._ids) + 1
            self._ids[key] = flow_id
            self._tuples[flow_id] = key
            self._stats[flow_id] = _FlowStats()
        return flow_id

    def record_tx(self, packet: Packet):
        """Packet handed to the network by the sender"""
        flow_id = self._flow_id(packet)
        stats = self._stats[flow_id]
        stats.tx_packets += 1
        stats.tx_bytes += packet.ip_size
        self._in_flight[packet.id] = (flow_id, packet.creation_time)

    def record_rx(self, packet: Packet):
        """Packet delivered to the destination node"""
        entry = self._in_flight.pop(packet.id, None)
        if entry is None:
            return
        stats = self._stats[entry[0]]
        delay = packet.get_delay()
        if stats.last_delay is not None:
            stats.jitter_sum += abs(delay - stats.last_delay)
        stats.last_delay = delay
        stats.rx_packets += 1
        stats.rx_bytes += packet.ip_size
        stats.delay_sum += delay

    def record_drop(self, packet: Packet):
        """Packet discarded inside the network"""
        entry = self._in_flight.pop(packet.id, None)
        if entry is not None:
            self._stats[entry[0]].lost_packets += 1

    def check_for_lost_packets(self, now: float, max_delay: float = 10.0):
        """Declare packets in flight for longer than max_delay lost"""
        expired = [
            pid for pid, (_, sent_at) in self._in_flight.items()
            if now - sent_at > max_delay
        ]
        for pid in expired:
            flow_id, _ = self._in_flight.pop(pid)
            self._stats[flow_id].lost_packets += 1

    def classify(self, flow_id: int) -> FiveTuple:
        """Five-tuple of a flow id"""
        return self._tuples[flow_id]

    def get_flow_stats(self) -> Dict[int, FlowRecord]:
        """Frozen snapshot of every flow's counters, keyed by flow id"""
        return {
            flow_id: FlowRecord(
                flow_id=flow_id,
                five_tuple=self._tuples[flow_id],
                tx_packets=s.tx_packets,
                rx_packets=s.rx_packets,
                tx_bytes=s.tx_bytes,
                rx_bytes=s.rx_bytes,
                delay_sum=s.delay_sum,
                jitter_sum=s.jitter_sum,
                lost_packets=s.lost_packets
            )
            for flow_id, s in self._stats.items()
        }

    def get_flow_records(self) -> List[FlowRecord]:
        stats = self.get_flow_stats()
        return [stats[k] for k in sorted(stats)]


class NetDevice:
    """
    Bus interface of one node with a drop-tail transmit queue

    Attributes:
        address: Owning node's address
        queue_size: Maximum number of queued packets
        retries: Consecutive busy-medium deferrals of the head packet
    """

    def __init__(self, address: str, queue_size: int = 100):
        self.address = address
        self.queue_size = queue_size
        self.queue: Deque[Packet] = deque()
        self.retries: int = 0
        self.pending: bool = False  # a transmit attempt is scheduled or running

        self.packets_sent: int = 0
        self.queue_drops: int = 0
        self.backoff_drops: int = 0
        self.deferrals: int = 0

    def enqueue(self, packet: Packet) -> bool:
        """Add packet to queue, return False if dropped"""
        if len(self.queue) >= self.queue_size:
            self.queue_drops += 1
            return False
        self.queue.append(packet)
        return True


class BusChannel:
    """
    Carrier-sense shared channel

    One frame occupies the medium for its transmission time plus the
    propagation delay. A device that finds the medium busy defers until
    it frees up, then waits a random binary exponential backoff.
    """

    def __init__(
        self,
        scheduler: EventScheduler,
        topology: BusTopology,
        deliver: Callable[[Packet], None],
        drop: Callable[[Packet], None],
        rng: np.random.Generator,
        slot_time: float = 1e-6,
        min_slots: int = 1,
        max_slots: int = 1000,
        backoff_ceiling: int = 10,
        max_retries: int = 1000
    ):
        self.scheduler = scheduler
        self.medium = topology.medium
        self.deliver = deliver
        self.drop = drop
        self.rng = rng
        self.slot_time = slot_time
        self.min_slots = min_slots
        self.max_slots = max_slots
        self.backoff_ceiling = backoff_ceiling
        self.max_retries = max_retries

        self.busy_until: float = 0.0
        self.busy_time: float = 0.0
        self.frames_sent: int = 0

    def is_idle(self) -> bool:
        return self.scheduler.now >= self.busy_until

    def get_backoff_time(self, retries: int) -> float:
        """Random backoff for the given number of deferrals"""
        ceiling = min(retries, self.backoff_ceiling)
        max_slot = min(2 ** ceiling - 1, self.max_slots)
        max_slot = max(max_slot, self.min_slots)
        slots = int(self.rng.integers(self.min_slots, max_slot + 1))
        return slots * self.slot_time

    def request(self, device: NetDevice):
        """Start a transmit attempt for the device's head packet"""
        if device.pending or not device.queue:
            return
        device.pending = True
        self._attempt(device)

    def _attempt(self, device: NetDevice):
        if not device.queue:
            device.pending = False
            return

        if not self.is_idle():
            device.retries += 1
            device.deferrals += 1
            if device.retries > self.max_retries:
                packet = device.queue.popleft()
                device.backoff_drops += 1
                device.retries = 0
                self.drop(packet)
                self.scheduler.schedule_in(0.0, self._attempt, device)
                return
            retry_at = self.busy_until + self.get_backoff_time(device.retries)
            self.scheduler.schedule(retry_at, self._attempt, device)
            return

        packet = device.queue.popleft()
        device.retries = 0
        tx_time = self.medium.get_transmission_time(packet.wire_size)
        occupied = tx_time + self.medium.propagation_delay

        self.busy_until = self.scheduler.now + occupied
        self.busy_time += occupied
        self.frames_sent += 1
        device.packets_sent += 1

        self.scheduler.schedule_in(occupied, self._arrive, packet)
        self.scheduler.schedule_in(tx_time, self._attempt, device)

    def _arrive(self, packet: Packet):
        packet.arrival_time = self.scheduler.now
        self.deliver(packet)

    def get_utilization(self, elapsed_time: float) -> float:
        """Fraction of elapsed time the medium was occupied"""
        if elapsed_time <= 0:
            return 0.0
        return min(self.busy_time / elapsed_time, 1.0)


class PacketSink:
    """UDP sink on the gateway; passively counts datagrams to its port"""

    def __init__(self, address: str, port: int):
        self.address = address
        self.port = port
        self.running = False
        self.total_packets: int = 0
        self.total_bytes: int = 0

    def start(self):
        self.running = True

    def stop(self):
        self.running = False

    def receive(self, packet: Packet):
        if not self.running or packet.destination_port != self.port:
            return
        self.total_packets += 1
        self.total_bytes += packet.size


class SourceApplication:
    """Drives one TrafficSource on the scheduler between its start and stop"""

    def __init__(self, simulator: "Simulator", source: TrafficSource, source_port: int):
        self.simulator = simulator
        self.source = source
        self.source_port = source_port
        self.active = False
        self.packets_sent: int = 0
        self._times: Optional[Iterator[float]] = None

    def start(self):
        self.active = True
        self._times = self.source.iter_emission_times()
        self._schedule_next()

    def stop(self):
        self.active = False

    def _schedule_next(self):
        at = next(self._times, None)
        if at is None:
            return
        self.simulator.scheduler.schedule(max(at, self.simulator.scheduler.now), self._send)

    def _send(self):
        if not self.active:
            return
        self.simulator.send(self.source, self.source_port)
        self.packets_sent += 1
        self._schedule_next()


class Simulator:
    """
    Simulation engine for the bus network

    Provisions one device per node, installs the sink and the traffic
    sources, executes them on one clock and exposes the flow records.
    """

    def __init__(
        self,
        topology: BusTopology,
        seed: Optional[int] = None,
        queue_size: int = 100,
        slot_time: float = 1e-6,
        trace: bool = False
    ):
        """
        Initialize simulator

        Args:
            topology: Bus topology
            seed: Random seed for reproducibility
            queue_size: Transmit queue length of every device (packets)
            slot_time: Backoff slot duration (s)
            trace: Keep a per-packet trace of the run
        """
        if queue_size <= 0:
            raise ConfigurationError(f"queue_size must be > 0, got {queue_size}")

        self.topology = topology
        self.seed = seed
        self.rng = np.random.default_rng(seed)

        self.scheduler = EventScheduler()
        self.monitor = FlowMonitor()
        self.devices: Dict[str, NetDevice] = {
            node.address: NetDevice(node.address, queue_size)
            for node in topology.nodes
        }
        self.channel = BusChannel(
            self.scheduler,
            topology,
            deliver=self._deliver,
            drop=self._drop,
            rng=self.rng,
            slot_time=slot_time
        )

        self.sinks: Dict[int, PacketSink] = {}
        self.applications: List[SourceApplication] = []
        self._next_port: Dict[str, int] = {}
        self._packet_ids = itertools.count()

        self.trace_enabled = trace
        self._trace: List[Packet] = []
        self._dropped: set = set()

        # Configuration
        self.verbose = False

    @property
    def now(self) -> float:
        return self.scheduler.now

    def install_sink(self, port: int, start: float = 0.0, stop: Optional[float] = None) -> PacketSink:
        """Install a UDP sink on the gateway"""
        sink = PacketSink(self.topology.gateway.address, port)
        self.sinks[port] = sink
        self.scheduler.schedule(start, sink.start)
        if stop is not None:
            self.scheduler.schedule(stop, sink.stop)
        return sink

    def install_source(self, source: TrafficSource) -> SourceApplication:
        """Schedule a traffic source between its start and stop times"""
        if source.source not in self.devices:
            raise ConfigurationError(f"Unknown source address: {source.source}")

        port = self._next_port.get(source.source, FIRST_EPHEMERAL_PORT)
        self._next_port[source.source] = port + 1

        app = SourceApplication(self, source, port)
        self.applications.append(app)
        self.scheduler.schedule(source.start, app.start)
        self.scheduler.schedule(source.stop, app.stop)
        return app

    def install_traffic(self, generator: TrafficGenerator) -> List[SourceApplication]:
        """Install every source of a traffic generator"""
        return [self.install_source(s) for s in generator.sources.values()]

    def send(self, source: TrafficSource, source_port: int):
        """Hand one datagram from a source to its node's device"""
        packet = Packet(
            id=next(self._packet_ids),
            source=source.source,
            destination=source.destination,
            source_port=source_port,
            destination_port=source.port,
            size=source.config.payload_size,
            packet_type=source.packet_type,
            creation_time=self.scheduler.now
        )
        self.monitor.record_tx(packet)
        if self.trace_enabled:
            self._trace.append(packet)

        device = self.devices[source.source]
        if device.enqueue(packet):
            self.channel.request(device)
        else:
            self._drop(packet)

    def _deliver(self, packet: Packet):
        if packet.destination != self.topology.gateway.address:
            return
        self.monitor.record_rx(packet)
        sink = self.sinks.get(packet.destination_port)
        if sink is not None:
            sink.receive(packet)

    def _drop(self, packet: Packet):
        self.monitor.record_drop(packet)
        if self.trace_enabled:
            self._dropped.add(packet.id)

    def run(self, until: float, progress_bar: bool = True):
        """
        Run simulation up to the given time

        Args:
            until: End of the run in simulated seconds
            progress_bar: Show progress bar
        """
        if self.verbose:
            print(f"Starting simulation: {until}s")
            print(f"Topology: {self.topology}")
            print(f"Sources: {len(self.applications)}")

        self.scheduler.run(until, progress_bar=progress_bar)
        self.monitor.check_for_lost_packets(self.scheduler.now)

    def stop(self):
        """Halt the run after the current event"""
        self.scheduler.stop()

    def get_flow_records(self) -> List[FlowRecord]:
        return self.monitor.get_flow_records()

    def get_trace_dataframe(self) -> pd.DataFrame:
        """Per-packet trace as a table (empty unless tracing is enabled)"""
        columns = [
            "packet_id", "source", "role", "destination", "source_port",
            "destination_port", "size", "ip_size", "creation_time",
            "arrival_time", "received", "dropped",
        ]
        rows = []
        for p in self._trace:
            role = self.topology.get_role(p.source)
            received = p.arrival_time > 0 and p.id not in self._dropped
            rows.append({
                "packet_id": p.id,
                "source": p.source,
                "role": role.value if role else "unknown",
                "destination": p.destination,
                "source_port": p.source_port,
                "destination_port": p.destination_port,
                "size": p.size,
                "ip_size": p.ip_size,
                "creation_time": p.creation_time,
                "arrival_time": p.arrival_time if received else np.nan,
                "received": received,
                "dropped": p.id in self._dropped,
            })
        return pd.DataFrame(rows, columns=columns)

    def get_device_stats(self) -> Dict[str, Dict]:
        """Per-device transmit statistics"""
        stats = {}
        for address, dev in self.devices.items():
            role = self.topology.get_role(address)
            stats[address] = {
                "role": role.value if role else "unknown",
                "packets_sent": dev.packets_sent,
                "queue_drops": dev.queue_drops,
                "backoff_drops": dev.backoff_drops,
                "deferrals": dev.deferrals,
                "queued": len(dev.queue),
            }
        return stats

    def get_results(self) -> Dict:
        """Get summary of the substrate state after a run"""
        return {
            "simulation_config": {
                "duration": self.scheduler.now,
                "seed": self.seed,
                "num_nodes": self.topology.get_total_nodes(),
                "num_sources": len(self.applications),
                "events_processed": self.scheduler.events_processed,
            },
            "network": self.topology.get_network_stats(),
            "medium_utilization": self.channel.get_utilization(self.scheduler.now),
            "devices": self.get_device_stats(),
            "sinks": {
                port: {"packets": s.total_packets, "bytes": s.total_bytes}
                for port, s in self.sinks.items()
            },
        }
