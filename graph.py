"""
Weighted graph abstraction for the routing simulator.

Nodes are referred to by string id.
Edges are directed: u -> v with float weight; an undirected link is two edges.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Mapping


class Graph(ABC):
    """Directed, weighted graph over node ids."""

    @abstractmethod
    def nodes(self) -> Iterable[str]:
        """Return all node ids in the graph, in a stable order."""
        raise NotImplementedError

    @abstractmethod
    def outgoing(self, node_id: str) -> Mapping[str, float]:
        """
        Outgoing neighbours and edge weights for a given node.

        Returns: dict[str, float]
        """
        raise NotImplementedError

    def __contains__(self, node_id: object) -> bool:
        return node_id in set(self.nodes())
