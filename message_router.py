"""
End-to-end message routing.

``send`` computes a fresh shortest path from the sender instead of forwarding
hop by hop through the routers' stored next-hop tables. While a convergence
run is in flight the stored tables may be stale; the reported path always
reflects the topology as it is right now.
"""

from typing import List, Optional

from algorithms import DijkstraEngine
from dijkstra_engine import SimpleDijkstraEngine
from errors import NotFoundError, UnreachableError
from routing import Message
from topology import Topology


class MessageRouter:
    """Routes messages over a Topology using a DijkstraEngine."""

    def __init__(self, dijkstra_engine: Optional[DijkstraEngine] = None) -> None:
        self._dijkstra = dijkstra_engine or SimpleDijkstraEngine()

    def send(self, topology: Topology, source: str, target: str, content: str) -> Message:
        if source == target:
            _require_nodes(topology, source)
            return Message(content, source, target, (source,))
        return Message(content, source, target, tuple(self.path(topology, source, target)))

    def path(self, topology: Topology, source: str, target: str) -> List[str]:
        """
        Shortest path from source to target, both ends included.
        """
        _require_nodes(topology, source, target)
        dist, prev = self._dijkstra.shortest_paths(topology, source)
        if dist[target] == float("inf"):
            raise UnreachableError(f"no route from {source!r} to {target!r}")

        path = [target]
        step = prev[target]
        while step is not None:
            path.append(step)
            step = prev[step]
        path.reverse()
        return path

    @staticmethod
    def forward_path(topology: Topology, source: str, target: str) -> List[str]:
        """
        Follow the stored next-hop tables from source towards target.

        Only reads tables; ``send`` never uses it. Raises UnreachableError when
        a hop has no entry for the target or the walk revisits a node.
        """
        _require_nodes(topology, source, target)
        path = [source]
        current = source
        seen = {source}
        while current != target:
            next_hop = topology.node(current).next_hop(target)
            if next_hop is None or next_hop in seen:
                raise UnreachableError(f"no stored route from {current!r} to {target!r}")
            path.append(next_hop)
            seen.add(next_hop)
            current = next_hop
        return path


def _require_nodes(topology: Topology, *node_ids: str) -> None:
    for node_id in node_ids:
        if node_id not in topology:
            raise NotFoundError(f"no route: node {node_id!r} does not exist")
