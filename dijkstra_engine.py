"""
DijkstraEngine implementations for the routing simulator.

SimpleDijkstraEngine uses Python's heapq; ArrayScanDijkstraEngine is the
classic O(V^2) variant that scans the unvisited set for the minimum. Both work
over any Graph implementation and are deterministic for a given node order.
"""

from typing import Dict, Optional
import heapq
import itertools
import math

from algorithms import DijkstraEngine
from errors import NotFoundError
from graph import Graph


def _check_source(graph: Graph, source: str) -> None:
    if source not in graph:
        raise NotFoundError(f"node {source!r} does not exist")


class SimpleDijkstraEngine(DijkstraEngine):
    """
    Single-source Dijkstra using a binary heap.

    Complexity:
        O(E log V) over the nodes reachable from the source.
    """

    def shortest_path_costs(self, graph: Graph, source: str) -> Dict[str, float]:
        """
        Compute only the cost map for all reachable nodes from source.
        """
        dist, _ = self.shortest_paths(graph, source)
        return {node: cost for node, cost in dist.items() if cost != math.inf}

    def shortest_paths(
        self, graph: Graph, source: str
    ) -> tuple[Dict[str, float], Dict[str, Optional[str]]]:
        """
        Dijkstra variant that also records predecessors for path reconstruction.

        Heap entries carry a discovery counter after the distance, so among
        equal distances the node discovered first is settled first, and node
        ids never need to be compared. Relaxation only replaces a predecessor
        on a strictly shorter path, which keeps the first-discovered parent on
        ties.
        """
        _check_source(graph, source)
        dist: Dict[str, float] = {node: math.inf for node in graph.nodes()}
        prev: Dict[str, Optional[str]] = {node: None for node in dist}
        dist[source] = 0.0

        counter = itertools.count()
        pq = [(0.0, next(counter), source)]  # (distance, discovery order, node)
        visited = set()

        while pq:
            d_u, _, u = heapq.heappop(pq)
            if u in visited:
                continue
            visited.add(u)

            for v, w in graph.outgoing(u).items():
                if v in visited:
                    continue
                alt = d_u + w
                if alt < dist[v]:
                    dist[v] = alt
                    prev[v] = u
                    heapq.heappush(pq, (alt, next(counter), v))

        return dist, prev


class ArrayScanDijkstraEngine(DijkstraEngine):
    """
    Dijkstra with a linear scan for the closest unvisited node.

    Complexity:
        O(V^2). Ties on the minimum go to the first node in graph order.
    """

    def shortest_path_costs(self, graph: Graph, source: str) -> Dict[str, float]:
        dist, _ = self.shortest_paths(graph, source)
        return {node: cost for node, cost in dist.items() if cost != math.inf}

    def shortest_paths(
        self, graph: Graph, source: str
    ) -> tuple[Dict[str, float], Dict[str, Optional[str]]]:
        _check_source(graph, source)
        dist: Dict[str, float] = {}
        prev: Dict[str, Optional[str]] = {}
        unvisited: Dict[str, None] = {}  # ordered set
        for node in graph.nodes():
            dist[node] = 0.0 if node == source else math.inf
            prev[node] = None
            unvisited[node] = None

        while unvisited:
            current: Optional[str] = None
            min_distance = math.inf
            for node in unvisited:
                if dist[node] < min_distance:
                    min_distance = dist[node]
                    current = node

            # Everything left is unreachable.
            if current is None:
                break

            del unvisited[current]
            for neighbor, weight in graph.outgoing(current).items():
                if neighbor not in unvisited:
                    continue
                alt = min_distance + weight
                if alt < dist[neighbor]:
                    dist[neighbor] = alt
                    prev[neighbor] = current

        return dist, prev
