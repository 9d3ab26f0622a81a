"""
Discrete-event convergence simulator.

After every topology mutation the simulator replays a staggered wave of
per-node routing recomputations instead of recomputing everything at once:

* the mutation seeds recompute events for the affected nodes;
* events are drained in logical-timestamp order, and every recompute schedules
  its not-yet-settled neighbours a random propagation delay later;
* the run stops when the queue empties or when a wall-clock budget runs out;
  a randomly timed check for "every node settled" also runs after each event,
  but a queued node is never settled, so that check can only agree with an
  empty queue and never ends a run early (it still draws from the rng);
* a final pass recomputes every node so the tables are correct regardless of
  how the wave played out.

Only logical timestamps decide ordering. The wall clock is read solely for the
timeout guard, so a seeded run processes the same events in the same order on
any machine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Set
import heapq
import logging
import random
import time

from errors import BusyError
from routers import RoutingTableBuilder
from topology import Topology

LOGGER = logging.getLogger(__name__)

DEFAULT_PROPAGATION_DELAY = 1.0
DEFAULT_MAX_WALL_TIME = 5.0
DEFAULT_CHECK_PROBABILITY = 0.25

# Delay factors, as fractions of the propagation delay.
NEW_NODE_DELAY_FACTOR = 0.1
LINK_ENDPOINT_DELAY_FACTOR = 0.1
FOLLOW_UP_DELAY_RANGE = (0.5, 1.0)


class ConvergenceState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    CONVERGED = "converged"


class MutationKind(Enum):
    """Topology edits that start a convergence run."""

    NODE_ADDED = "node_added"
    NODE_REMOVED = "node_removed"
    LINK_ADDED = "link_added"
    LINK_REMOVED = "link_removed"


@dataclass(order=True)
class RecomputeEvent:
    timestamp: float
    seq: int
    node_id: str = field(compare=False)


@dataclass
class ConvergenceRun:
    """
    Ephemeral state of one run; created by ``start`` and dropped at the end.
    """
    kind: MutationKind
    deadline: float
    started_at: float
    clock: float = 0.0
    queue: List[RecomputeEvent] = field(default_factory=list)
    pending: Set[str] = field(default_factory=set)
    settled: Set[str] = field(default_factory=set)
    seq: int = 0
    events_processed: int = 0
    recomputations: int = 0
    report: Optional[ConvergenceReport] = None


@dataclass(frozen=True)
class ConvergenceReport:
    """Summary handed to listeners when a run finishes."""

    kind: MutationKind
    events_processed: int
    recomputations: int
    logical_time: float
    settled: int
    nodes: int
    timed_out: bool
    wall_time: float


ConvergenceListener = Callable[[ConvergenceReport], None]


class ConvergenceSimulator:
    """
    Owns the run state and drives recomputation through a RoutingTableBuilder.

    The random source and the monotonic clock are injectable so that tests can
    make runs reproducible and force timeouts.
    """

    def __init__(
        self,
        topology: Topology,
        builder: RoutingTableBuilder,
        *,
        propagation_delay: float = DEFAULT_PROPAGATION_DELAY,
        max_wall_time: float = DEFAULT_MAX_WALL_TIME,
        check_probability: float = DEFAULT_CHECK_PROBABILITY,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if propagation_delay <= 0:
            raise ValueError("propagation_delay must be positive")
        if max_wall_time <= 0:
            raise ValueError("max_wall_time must be positive")
        if not 0 < check_probability <= 1:
            raise ValueError("check_probability must be in (0, 1]")

        self._topology = topology
        self._builder = builder
        self.propagation_delay = float(propagation_delay)
        self.max_wall_time = float(max_wall_time)
        self.check_probability = float(check_probability)
        self.rng = rng or random.Random()
        self._clock = clock

        self._state = ConvergenceState.IDLE
        self._run: Optional[ConvergenceRun] = None
        self._listeners: List[ConvergenceListener] = []
        self.last_report: Optional[ConvergenceReport] = None

    # --- Status --------------------------------------------------------------

    @property
    def state(self) -> ConvergenceState:
        return self._state

    def is_converging(self) -> bool:
        return self._state is ConvergenceState.RUNNING

    def ensure_idle(self) -> None:
        if self.is_converging():
            raise BusyError("convergence run in progress; retry once it has finished")

    def add_listener(self, listener: ConvergenceListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ConvergenceListener) -> None:
        self._listeners.remove(listener)

    # --- Run control ---------------------------------------------------------

    def start(self, kind: MutationKind, subjects: Sequence[str] = ()) -> ConvergenceRun:
        """
        Begin a run for a mutation that has already been applied.

        ``subjects`` names the mutated element: the new node for NODE_ADDED,
        the removed node for NODE_REMOVED, the two endpoints for link edits.
        """
        self.ensure_idle()
        now = self._clock()
        run = ConvergenceRun(kind=kind, deadline=now + self.max_wall_time, started_at=now)
        self._run = run
        self._state = ConvergenceState.RUNNING
        self._seed(kind, subjects)
        LOGGER.debug(
            "convergence run started: %s %s (%d events seeded)",
            kind.value,
            ", ".join(subjects),
            len(run.queue),
        )
        if not run.queue:
            self._finish(timed_out=False)
        return run

    def step(self) -> bool:
        """
        Process the earliest pending event.

        Returns True while the run is still in progress afterwards.
        """
        run = self._run
        if run is None:
            return False
        if self._clock() >= run.deadline:
            LOGGER.warning(
                "convergence run exceeded %.2fs wall-clock budget; forcing completion",
                self.max_wall_time,
            )
            self._finish(timed_out=True)
            return False

        event = heapq.heappop(run.queue)
        run.pending.discard(event.node_id)
        run.clock = event.timestamp
        run.events_processed += 1

        if event.node_id in self._topology and event.node_id not in run.settled:
            self._builder.install(self._topology, event.node_id)
            run.settled.add(event.node_id)
            run.recomputations += 1
            LOGGER.debug("t=%.3f recomputed %s", run.clock, event.node_id)
            low, high = FOLLOW_UP_DELAY_RANGE
            for neighbor in self._topology.outgoing(event.node_id):
                if neighbor in run.settled:
                    continue
                delay = self.rng.uniform(low, high) * self.propagation_delay
                self._schedule(neighbor, run.clock + delay)

        if not run.queue:
            self._finish(timed_out=False)
            return False
        if self.rng.random() < self.check_probability and self._all_settled():
            self._finish(timed_out=False)
            return False
        return True

    def drain(self) -> Optional[ConvergenceReport]:
        """
        Step until the current run ends and return its report.

        With nothing running, returns the latest report.
        """
        run = self._run
        if run is None:
            return self.last_report
        return self._drain_run(run)

    def run(self, kind: MutationKind, subjects: Sequence[str] = ()) -> ConvergenceReport:
        return self._drain_run(self.start(kind, subjects))

    # --- Internals -----------------------------------------------------------

    def _drain_run(self, run: ConvergenceRun) -> ConvergenceReport:
        # A listener may start another run from inside _finish; stop at ours.
        while self._run is run and self.step():
            pass
        assert run.report is not None
        return run.report

    def _seed(self, kind: MutationKind, subjects: Sequence[str]) -> None:
        delay = self.propagation_delay
        if kind is MutationKind.NODE_REMOVED:
            for node_id in list(self._topology.nodes()):
                self._schedule(node_id, self.rng.random() * delay)
        elif kind is MutationKind.NODE_ADDED:
            new_id = subjects[0]
            self._schedule(new_id, NEW_NODE_DELAY_FACTOR * delay)
            low, high = FOLLOW_UP_DELAY_RANGE
            for node_id in list(self._topology.nodes()):
                if node_id == new_id:
                    continue
                self._schedule(node_id, self.rng.uniform(low, high) * delay)
        else:
            for node_id in subjects:
                self._schedule(node_id, LINK_ENDPOINT_DELAY_FACTOR * delay)

    def _schedule(self, node_id: str, timestamp: float) -> None:
        run = self._run
        assert run is not None
        if node_id in run.pending:
            return
        run.seq += 1
        heapq.heappush(run.queue, RecomputeEvent(timestamp, run.seq, node_id))
        run.pending.add(node_id)

    def _all_settled(self) -> bool:
        run = self._run
        assert run is not None
        return all(node_id in run.settled for node_id in self._topology.nodes())

    def _finish(self, timed_out: bool) -> None:
        run = self._run
        assert run is not None
        # Final pass: every table is correct no matter how the wave went.
        self._builder.install_all(self._topology)
        report = ConvergenceReport(
            kind=run.kind,
            events_processed=run.events_processed,
            recomputations=run.recomputations,
            logical_time=run.clock,
            settled=len(run.settled),
            nodes=len(self._topology),
            timed_out=timed_out,
            wall_time=self._clock() - run.started_at,
        )
        self._run = None
        self._state = ConvergenceState.CONVERGED
        self.last_report = report
        run.report = report
        LOGGER.info(
            "converged after %s: %d events, t=%.3f, %d/%d nodes settled%s",
            run.kind.value,
            report.events_processed,
            report.logical_time,
            report.settled,
            report.nodes,
            " (timed out)" if timed_out else "",
        )
        for listener in list(self._listeners):
            listener(report)
