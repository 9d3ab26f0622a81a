"""
Tests for the interactive RoutingShell and its network rendering.
"""

import io

from cli import RoutingShell, build_config, format_network, parse_args
from config import SimulationConfig
from network import Network


def _shell(**cfg) -> tuple[RoutingShell, io.StringIO]:
    out = io.StringIO()
    cfg.setdefault("seed", 5)
    return RoutingShell(Network(SimulationConfig(**cfg)), out=out), out


def _run(shell: RoutingShell, *lines: str) -> None:
    for line in lines:
        assert shell.execute(line)


def test_build_triangle_and_send_message():
    shell, out = _shell()

    _run(
        shell,
        "add-node A",
        "add-node B",
        "add-node C",
        "add-link A B 5",
        "add-link B C 3",
        "add-link A C 10",
        "send-message A C hello there",
    )

    text = out.getvalue()
    assert 'Node "A" added successfully' in text
    assert 'Link "A" <--5--> "B" added successfully' in text
    assert "Network converged" in text
    assert 'Content: "hello there"' in text
    assert "Path: A -> B -> C" in text


def test_boundary_rejects_bad_links():
    shell, out = _shell()
    _run(shell, "add-node A", "add-node B")

    _run(shell, "add-link A A 5", "add-link A B 0", "add-link A B abc", "add-link A B inf")

    text = out.getvalue()
    assert "Cannot create a link from a node to itself" in text
    assert text.count("Weight must be a positive number") == 3
    assert shell.network.list_links() == []


def test_core_errors_are_reported_not_raised():
    shell, out = _shell()
    _run(shell, "add-node A", "add-node A", "remove-node Z", "add-node B", "send-message A B hi")

    text = out.getvalue()
    assert "Error: node 'A' already exists" in text
    assert "Error: node 'Z' does not exist" in text
    assert "Error: no route from 'A' to 'B'" in text


def test_usage_and_unknown_commands():
    shell, out = _shell()
    _run(shell, "add-node", "remove-link A", "send-message A B", "frobnicate", "", "help")

    text = out.getvalue()
    assert "Usage: add-node <node-id>" in text
    assert "Usage: remove-link <from> <to>" in text
    assert "Usage: send-message <from> <to> <message>" in text
    assert "Unknown command: frobnicate" in text
    assert "Available commands" in text


def test_exit_stops_the_shell():
    shell, _ = _shell()
    assert not shell.execute("exit")
    assert not shell.execute("QUIT")


def test_run_reads_until_eof():
    shell, out = _shell()
    shell.run(io.StringIO("add-node A\nadd-node B\nadd-link A B 2\nroutes A\n"))

    text = out.getvalue()
    assert "Routing Protocol Simulator" in text
    assert "B -> B (2)" in text


def test_manual_convergence_is_driven_by_shell():
    shell, out = _shell(auto_converge=False)
    _run(shell, "add-node A", "add-node B", "add-link A B 1")

    assert not shell.network.is_converging()
    assert out.getvalue().count("Network converged") == 3
    assert shell.network.get_routing_table("A")["B"].next_hop == "B"


def test_format_network_layout():
    net = Network(SimulationConfig(seed=1))
    assert "No nodes in the network" in format_network(net.snapshot())

    for n in "AB":
        net.add_node(n)
    net.add_link("A", "B", 2.5)
    text = format_network(net.snapshot())

    assert "Node A - Neighbors: [B(2.5)]" in text
    assert "A <--2.5--> B" in text
    assert "B -> B (2.5)" in text


def test_build_config_applies_overrides():
    args = parse_args(["--seed", "9", "--manual-convergence"])
    cfg = build_config(args)
    assert cfg.seed == 9
    assert not cfg.auto_converge
