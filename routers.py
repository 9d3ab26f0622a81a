"""
Routing table construction.

Turns a shortest-path result into a next-hop table for one source node and
installs it on that node.
"""

from typing import Mapping, Optional
import math

from algorithms import DijkstraEngine
from dijkstra_engine import SimpleDijkstraEngine
from graph import Graph
from routing import RouteEntry, RoutingTable
from topology import Topology


class RoutingTableBuilder:
    """
    Builds per-source routing tables from Dijkstra predecessors.
    """

    def __init__(self, dijkstra_engine: Optional[DijkstraEngine] = None) -> None:
        self._dijkstra = dijkstra_engine or SimpleDijkstraEngine()

    def build(self, g: Graph, source: str) -> RoutingTable:
        """
        Compute the routing table for ``source`` over the current graph.

        Unreachable destinations get no entry at all; the source itself is
        never listed.
        """
        dist, parents = self._dijkstra.shortest_paths(g, source)
        routes: RoutingTable = {}
        for dest, cost in dist.items():
            if dest == source or cost == math.inf:
                continue
            next_hop = self.first_hop(source, dest, parents)
            if next_hop is None:
                continue
            routes[dest] = RouteEntry(dest, next_hop, cost)
        return routes

    def install(self, topology: Topology, node_id: str) -> RoutingTable:
        """Recompute ``node_id``'s table and write it into the node."""
        table = self.build(topology, node_id)
        topology.node(node_id).update_routing_table(table)
        return table

    def install_all(self, topology: Topology) -> None:
        for node_id in list(topology.nodes()):
            self.install(topology, node_id)

    @staticmethod
    def first_hop(
        source: str, dest: str, parents: Mapping[str, Optional[str]]
    ) -> Optional[str]:
        """
        Walk parents back from ``dest`` to the node whose parent is ``source``.

        A destination adjacent to the source on its shortest path is its own
        first hop. Returns None when the chain never reaches the source.
        """
        step = dest
        while parents.get(step) is not None:
            parent = parents[step]
            if parent == source:
                return step
            step = parent
        return None
