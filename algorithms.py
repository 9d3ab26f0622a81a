"""
Algorithm interfaces for routing.

Keeps graph algorithms separate from the topology store and the convergence
simulator.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from graph import Graph


class DijkstraEngine(ABC):
    """
    Interface for single-source shortest-path computation.
    """

    @abstractmethod
    def shortest_path_costs(self, graph: Graph, source: str) -> Dict[str, float]:
        """
        Compute shortest-path costs from source to all reachable nodes.

        Returns:
            Mapping dest_id -> path_cost(source -> dest_id).
        """
        raise NotImplementedError

    @abstractmethod
    def shortest_paths(
        self, graph: Graph, source: str
    ) -> tuple[Dict[str, float], Dict[str, Optional[str]]]:
        """
        Compute shortest-path costs plus the predecessor of each node.

        Returns:
            (dist, prev) covering every node of the graph. The source has cost
            0.0 and no predecessor; unreached nodes have cost math.inf and no
            predecessor.
        """
        raise NotImplementedError
