"""
Node model for the routing simulator.

A node is identified by an opaque string id, knows the weight of the link to
each neighbour, and holds the routing table installed by the last recompute.
"""

from typing import Dict, Optional
import math

from routing import RouteEntry, RoutingTable


class Node:
    """Router node: neighbour weights plus its current routing table."""

    def __init__(self, node_id: str) -> None:
        self._id = node_id
        self.neighbors: Dict[str, float] = {}
        self.routing_table: RoutingTable = {}

    @property
    def id(self) -> str:
        """
        Stable identifier supplied by whoever created the node.
        """
        return self._id

    def add_neighbor(self, node_id: str, weight: float) -> None:
        self.neighbors[node_id] = weight

    def remove_neighbor(self, node_id: str) -> None:
        self.neighbors.pop(node_id, None)

    def update_routing_table(self, table: RoutingTable) -> None:
        """Replace the installed table with the entries of ``table``."""
        self.routing_table.clear()
        self.routing_table.update(table)

    def next_hop(self, dest: str) -> Optional[str]:
        entry = self.routing_table.get(dest)
        return entry.next_hop if entry else None

    def distance(self, dest: str) -> float:
        entry = self.routing_table.get(dest)
        return entry.cost if entry else math.inf

    def __repr__(self) -> str:
        neighbors = ", ".join(f"{n}({w:g})" for n, w in self.neighbors.items())
        return f"Node({self._id!r}, neighbors=[{neighbors}])"
