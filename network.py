"""
Network facade: the operations the command shell (or any other front end) uses.

Mutations go to the Topology, each successful one starts a convergence run,
and reads return copies so callers cannot edit node state behind the
simulator's back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging
import random
import time

from config import SimulationConfig
from convergence import (
    ConvergenceListener,
    ConvergenceReport,
    ConvergenceSimulator,
    ConvergenceState,
    MutationKind,
)
from message_router import MessageRouter
from routers import RoutingTableBuilder
from routing import Link, Message, RouteEntry
from topology import Topology

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeView:
    id: str
    neighbors: Dict[str, float]
    routing_table: Dict[str, RouteEntry]


@dataclass(frozen=True)
class NetworkSnapshot:
    """Structured copy of the whole network; rendering is left to the caller."""

    nodes: List[NodeView]
    links: List[Link]
    converging: bool


class Network:
    """
    In-process network of link-state routers.

    With ``config.auto_converge`` (the default) every mutation returns only
    after its convergence run has finished. Otherwise the caller drives the run
    through ``step_convergence``/``converge``, and further mutations raise
    BusyError until it ends.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        *,
        rng: random.Random | None = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config or SimulationConfig()
        self.config.validate()

        engine = self.config.make_engine()
        self.topology = Topology()
        self._builder = RoutingTableBuilder(engine)
        self._router = MessageRouter(engine)

        self._simulator = ConvergenceSimulator(
            self.topology,
            self._builder,
            propagation_delay=self.config.propagation_delay,
            max_wall_time=self.config.max_wall_time,
            check_probability=self.config.convergence_check_probability,
            rng=rng or self.config.make_rng(),
            clock=clock or time.monotonic,
        )

    # --- Mutations -----------------------------------------------------------

    def add_node(self, node_id: str) -> Optional[ConvergenceReport]:
        self._simulator.ensure_idle()
        self.topology.add_node(node_id)
        LOGGER.info("node %s added", node_id)
        return self._converge_after(MutationKind.NODE_ADDED, (node_id,))

    def remove_node(self, node_id: str) -> Optional[ConvergenceReport]:
        self._simulator.ensure_idle()
        self.topology.remove_node(node_id)
        LOGGER.info("node %s removed", node_id)
        return self._converge_after(MutationKind.NODE_REMOVED, (node_id,))

    def add_link(self, a: str, b: str, weight: float) -> Optional[ConvergenceReport]:
        self._simulator.ensure_idle()
        link = self.topology.add_link(a, b, weight)
        LOGGER.info("link %s <-> %s added (weight %g)", a, b, link.weight)
        return self._converge_after(MutationKind.LINK_ADDED, (a, b))

    def remove_link(self, a: str, b: str) -> Optional[ConvergenceReport]:
        self._simulator.ensure_idle()
        self.topology.remove_link(a, b)
        LOGGER.info("link %s <-> %s removed", a, b)
        return self._converge_after(MutationKind.LINK_REMOVED, (a, b))

    def _converge_after(self, kind: MutationKind, subjects: Tuple[str, ...]) -> Optional[ConvergenceReport]:
        if self.config.auto_converge:
            return self._simulator.run(kind, subjects)
        self._simulator.start(kind, subjects)
        return None

    # --- Convergence ---------------------------------------------------------

    def is_converging(self) -> bool:
        return self._simulator.is_converging()

    @property
    def convergence_state(self) -> ConvergenceState:
        return self._simulator.state

    @property
    def last_report(self) -> Optional[ConvergenceReport]:
        return self._simulator.last_report

    def step_convergence(self) -> bool:
        """Advance the current run by one event; False once nothing is running."""
        return self._simulator.step()

    def converge(self) -> Optional[ConvergenceReport]:
        """Finish the current run, if any, and return the latest report."""
        return self._simulator.drain()

    def add_convergence_listener(self, listener: ConvergenceListener) -> None:
        self._simulator.add_listener(listener)

    def remove_convergence_listener(self, listener: ConvergenceListener) -> None:
        self._simulator.remove_listener(listener)

    # --- Messages ------------------------------------------------------------

    def send_message(self, source: str, target: str, content: str) -> Message:
        message = self._router.send(self.topology, source, target, content)
        LOGGER.debug("message %s -> %s via %s", source, target, " -> ".join(message.path))
        return message

    # --- Reads ---------------------------------------------------------------

    def list_nodes(self) -> List[str]:
        return self.topology.list_nodes()

    def neighbors(self, node_id: str) -> Dict[str, float]:
        return dict(self.topology.outgoing(node_id))

    def list_links(self) -> List[Link]:
        return self.topology.list_links()

    def get_routing_table(self, node_id: str) -> Dict[str, RouteEntry]:
        return self.topology.routing_table(node_id)

    def snapshot(self) -> NetworkSnapshot:
        nodes = [
            NodeView(
                id=node_id,
                neighbors=self.neighbors(node_id),
                routing_table=self.get_routing_table(node_id),
            )
            for node_id in self.topology.nodes()
        ]
        return NetworkSnapshot(nodes=nodes, links=self.list_links(), converging=self.is_converging())
