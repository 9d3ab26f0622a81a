"""
Routing value types.

Route entries, reconstructed links and delivered messages are plain frozen
dataclasses; routing tables are dicts keyed by destination id.
"""

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class RouteEntry:
    """
    Single forwarding entry in a node's routing table.

    ``cost`` is the shortest-path weight sum from the owning node to ``dest``;
    ``next_hop`` is the first node on that path after the owner.
    """
    dest: str
    next_hop: str
    cost: float


@dataclass(frozen=True)
class Link:
    """
    Undirected weighted link, reconstructed from the two directed neighbour entries.
    """
    source: str
    target: str
    weight: float


@dataclass(frozen=True)
class Message:
    """
    Result of routing a message end-to-end: endpoints, payload and the full path.
    """
    content: str
    source: str
    target: str
    path: Tuple[str, ...]


RoutingTable = Dict[str, RouteEntry]
