"""
Topology store for the routing simulator.

Implements the Graph interface over Node objects. Links are not stored as
objects: a link a <-> b exists exactly when a lists b and b lists a as
neighbours with the same weight.
"""

from typing import Dict, Iterable, List, Mapping
import logging
import math
import numbers

from errors import AlreadyExistsError, InvalidWeightError, NotFoundError
from graph import Graph
from nodes import Node
from routing import Link, RouteEntry

LOGGER = logging.getLogger(__name__)


def validate_weight(weight: object) -> float:
    """
    Return ``weight`` as a float, or raise InvalidWeightError.

    Accepts real numbers that are finite and strictly positive. Booleans are
    rejected even though they are ints.
    """
    if isinstance(weight, bool) or not isinstance(weight, numbers.Real):
        raise InvalidWeightError(f"weight must be a number, got {weight!r}")
    value = float(weight)
    if not math.isfinite(value) or value <= 0:
        raise InvalidWeightError(f"weight must be finite and positive, got {weight!r}")
    return value


class Topology(Graph):
    """
    Node store backed by an id -> Node mapping (insertion ordered).
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, Node] = {}

    # --- Mutation API --------------------------------------------------------

    def add_node(self, node_id: str) -> Node:
        if node_id in self._nodes:
            raise AlreadyExistsError(f"node {node_id!r} already exists")
        node = Node(node_id)
        self._nodes[node_id] = node
        LOGGER.debug("added node %s", node_id)
        return node

    def remove_node(self, node_id: str) -> List[str]:
        """
        Sever every link touching ``node_id`` and then delete it.

        Returns the ids of the former neighbours.
        """
        node = self.node(node_id)
        former = list(node.neighbors)
        for neighbor_id in former:
            self._nodes[neighbor_id].remove_neighbor(node_id)
            node.remove_neighbor(neighbor_id)
        del self._nodes[node_id]
        LOGGER.debug("removed node %s (had %d links)", node_id, len(former))
        return former

    def add_link(self, a: str, b: str, weight: float) -> Link:
        """
        Insert the symmetric neighbour entries for a <-> b.

        All checks run before anything is written, so a failed call leaves the
        topology untouched.
        """
        node_a = self.node(a)
        node_b = self.node(b)
        value = validate_weight(weight)
        if b in node_a.neighbors:
            raise AlreadyExistsError(f"link {a!r} <-> {b!r} already exists")
        node_a.add_neighbor(b, value)
        node_b.add_neighbor(a, value)
        LOGGER.debug("added link %s <-> %s (%g)", a, b, value)
        return Link(a, b, value)

    def remove_link(self, a: str, b: str) -> None:
        if not self.has_link(a, b):
            raise NotFoundError(f"link {a!r} <-> {b!r} does not exist")
        self._nodes[a].remove_neighbor(b)
        self._nodes[b].remove_neighbor(a)
        LOGGER.debug("removed link %s <-> %s", a, b)

    # --- Graph interface -----------------------------------------------------

    def nodes(self) -> Iterable[str]:
        return self._nodes.keys()

    def outgoing(self, node_id: str) -> Mapping[str, float]:
        return dict(self.node(node_id).neighbors)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    # --- Lookups -------------------------------------------------------------

    def node(self, node_id: str) -> Node:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NotFoundError(f"node {node_id!r} does not exist") from None

    def has_link(self, a: str, b: str) -> bool:
        node_a = self._nodes.get(a)
        node_b = self._nodes.get(b)
        if node_a is None or node_b is None:
            return False
        return b in node_a.neighbors and a in node_b.neighbors

    def weight(self, a: str, b: str) -> float:
        if not self.has_link(a, b):
            raise NotFoundError(f"link {a!r} <-> {b!r} does not exist")
        return self._nodes[a].neighbors[b]

    def list_nodes(self) -> List[str]:
        return list(self._nodes)

    def list_links(self) -> List[Link]:
        """
        Reconstruct undirected links from the directed neighbour entries.

        Each pair is reported once, oriented the way it is first met while
        walking nodes in insertion order.
        """
        links: List[Link] = []
        processed = set()
        for node_id, node in self._nodes.items():
            for neighbor_id, weight in node.neighbors.items():
                key = (node_id, neighbor_id)
                if key in processed or (neighbor_id, node_id) in processed:
                    continue
                processed.add(key)
                links.append(Link(node_id, neighbor_id, weight))
        return links

    def routing_table(self, node_id: str) -> Dict[str, RouteEntry]:
        return dict(self.node(node_id).routing_table)
