"""
End-to-end tests for the Network facade: mutations, convergence and routing.
"""

import itertools
import random

import pytest

from config import SimulationConfig
from convergence import ConvergenceState, MutationKind
from errors import (
    AlreadyExistsError,
    BusyError,
    InvalidWeightError,
    NotFoundError,
    UnreachableError,
)
from message_router import MessageRouter
from routing import Link, RouteEntry
from network import Network


def _network(**kwargs) -> Network:
    kwargs.setdefault("seed", 11)
    return Network(SimulationConfig(**kwargs))


def _triangle(**kwargs) -> Network:
    net = _network(**kwargs)
    for n in "ABC":
        net.add_node(n)
    net.add_link("A", "B", 5)
    net.add_link("B", "C", 3)
    net.add_link("A", "C", 10)
    return net


def _random_mesh(seed: int, size: int = 10) -> Network:
    rng = random.Random(seed)
    net = _network(seed=seed)
    ids = [f"N{i}" for i in range(size)]
    for node_id in ids:
        net.add_node(node_id)
    # Spanning chain keeps the mesh connected; extra links add alternatives.
    for a, b in zip(ids, ids[1:]):
        net.add_link(a, b, rng.uniform(1.0, 10.0))
    for a, b in itertools.combinations(ids, 2):
        if not net.topology.has_link(a, b) and rng.random() < 0.25:
            net.add_link(a, b, rng.uniform(1.0, 10.0))
    return net


def test_triangle_tables_after_convergence():
    net = _triangle()

    assert not net.is_converging()
    assert net.get_routing_table("A") == {
        "B": RouteEntry("B", "B", 5.0),
        "C": RouteEntry("C", "B", 8.0),
    }
    assert net.send_message("A", "C", "hi").path == ("A", "B", "C")


def test_removing_redundant_link_keeps_route():
    net = _triangle()

    net.remove_link("A", "C")

    assert net.get_routing_table("A")["C"] == RouteEntry("C", "B", 8.0)
    assert net.send_message("A", "C", "hi").path == ("A", "B", "C")


def test_removing_cut_node_makes_endpoints_unreachable():
    net = _triangle()
    net.remove_link("A", "C")

    net.remove_node("B")

    assert net.list_nodes() == ["A", "C"]
    assert net.get_routing_table("A") == {}
    assert net.get_routing_table("C") == {}
    with pytest.raises(UnreachableError):
        net.send_message("A", "C", "hi")


def test_mutations_report_convergence():
    net = _network()
    reports = []
    net.add_convergence_listener(reports.append)

    returned = net.add_node("A")
    net.add_node("B")
    net.add_link("A", "B", 2)
    net.remove_link("A", "B")
    net.remove_node("B")

    assert [r.kind for r in reports] == [
        MutationKind.NODE_ADDED,
        MutationKind.NODE_ADDED,
        MutationKind.LINK_ADDED,
        MutationKind.LINK_REMOVED,
        MutationKind.NODE_REMOVED,
    ]
    assert returned is reports[0]
    assert net.last_report is reports[-1]
    assert net.convergence_state is ConvergenceState.CONVERGED


def test_listener_mutation_keeps_outer_report():
    net = _network()
    net.add_node("A")
    fired = []

    def on_report(report):
        fired.append(report)
        if len(fired) == 1:
            net.add_node("B")

    net.add_convergence_listener(on_report)
    report = net.add_node("C")

    assert report is fired[0]
    assert report.nodes == 2
    assert len(fired) == 2
    assert fired[1].nodes == 3
    assert net.last_report is fired[1]


def test_failed_mutations_do_not_start_runs():
    net = _triangle()
    before = net.last_report

    with pytest.raises(AlreadyExistsError):
        net.add_node("A")
    with pytest.raises(AlreadyExistsError):
        net.add_link("B", "A", 1)
    with pytest.raises(InvalidWeightError):
        net.add_link("A", "B", float("nan"))
    with pytest.raises(NotFoundError):
        net.remove_node("Z")
    with pytest.raises(NotFoundError):
        net.remove_link("A", "Z")

    assert net.last_report is before
    assert net.topology.weight("A", "B") == 5.0


def test_link_symmetry_holds_for_every_link():
    net = _random_mesh(5)

    for link in net.list_links():
        assert net.neighbors(link.source)[link.target] == link.weight
        assert net.neighbors(link.target)[link.source] == link.weight


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_hop_by_hop_forwarding_reaches_destination(seed):
    net = _random_mesh(seed)
    nodes = net.list_nodes()

    for source, dest in itertools.permutations(nodes, 2):
        path = MessageRouter.forward_path(net.topology, source, dest)
        assert path[0] == source and path[-1] == dest
        # Every hop gets strictly closer to the destination
        remaining = [net.get_routing_table(n)[dest].cost for n in path[:-1]] + [0.0]
        assert all(a > b for a, b in zip(remaining, remaining[1:]))
        assert len(path) - 1 == len(net.send_message(source, dest, "x").path) - 1


@pytest.mark.parametrize("seed", [4, 5])
def test_distance_additivity(seed):
    net = _random_mesh(seed)

    for source in net.list_nodes():
        for dest, entry in net.get_routing_table(source).items():
            if entry.next_hop == dest:
                assert entry.cost == pytest.approx(net.neighbors(source)[dest])
                continue
            via = net.get_routing_table(entry.next_hop)[dest].cost
            assert entry.cost == pytest.approx(net.neighbors(source)[entry.next_hop] + via)


def test_no_dangling_next_hops_after_node_removal():
    net = _random_mesh(8)
    victim = "N4"

    net.remove_node(victim)

    for node_id in net.list_nodes():
        for dest, entry in net.get_routing_table(node_id).items():
            assert entry.next_hop != victim
            assert dest != victim
            assert entry.next_hop in net.neighbors(node_id)


def test_self_link_in_core_is_harmless():
    net = _network()
    net.add_node("A")
    net.add_node("B")
    net.add_link("A", "B", 1)

    net.add_link("A", "A", 5)

    assert "A" not in net.get_routing_table("A")
    assert net.get_routing_table("A") == {"B": RouteEntry("B", "B", 1.0)}
    assert net.send_message("A", "A", "me").path == ("A",)
    assert Link("A", "A", 5.0) in net.list_links()


def test_manual_mode_rejects_mutations_while_running():
    net = _network(auto_converge=False)

    assert net.add_node("A") is None
    assert net.is_converging()
    with pytest.raises(BusyError):
        net.add_node("B")
    assert net.list_nodes() == ["A"]

    # Messages are allowed mid-run
    assert net.send_message("A", "A", "x").path == ("A",)

    while net.step_convergence():
        pass
    assert not net.is_converging()
    net.add_node("B")
    report = net.converge()
    assert report.kind is MutationKind.NODE_ADDED
    assert not net.is_converging()


def test_messages_reflect_current_topology_mid_convergence():
    net = _network(auto_converge=False)
    for n in "ABC":
        net.add_node(n)
        net.converge()
    for a, b, w in [("A", "B", 5), ("B", "C", 3), ("A", "C", 10)]:
        net.add_link(a, b, w)
        net.converge()
    assert net.get_routing_table("A")["C"] == RouteEntry("C", "B", 8.0)

    net.remove_link("A", "B")

    assert net.is_converging()
    assert net.send_message("A", "C", "x").path == ("A", "C")
    net.converge()
    assert net.get_routing_table("A")["C"] == RouteEntry("C", "C", 10.0)


def test_timeout_still_yields_correct_tables():
    ticks = itertools.count(0.0, 100.0)
    net = Network(SimulationConfig(seed=1, max_wall_time=1.0), clock=lambda: next(ticks))
    for n in "ABC":
        net.add_node(n)
    net.add_link("A", "B", 5)
    net.add_link("B", "C", 3)

    assert net.last_report.timed_out
    assert net.get_routing_table("A")["C"] == RouteEntry("C", "B", 8.0)


def test_snapshot_is_a_copy():
    net = _triangle()

    snap = net.snapshot()
    snap.nodes[0].routing_table.clear()
    snap.nodes[0].neighbors.clear()

    assert [v.id for v in snap.nodes] == ["A", "B", "C"]
    assert len(snap.links) == 3
    assert not snap.converging
    assert net.get_routing_table("A")
    assert net.neighbors("A") == {"B": 5.0, "C": 10.0}


@pytest.mark.parametrize("engine", ["heap", "array"])
def test_engines_produce_same_tables(engine):
    net = _triangle(engine=engine)
    assert net.get_routing_table("C") == {
        "A": RouteEntry("A", "B", 8.0),
        "B": RouteEntry("B", "B", 3.0),
    }
