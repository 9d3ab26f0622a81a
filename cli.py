#!/usr/bin/env python3
"""
Interactive command shell for the routing simulator.

The shell validates user input (weights, self-links), forwards commands to a
Network and prints the outcome. It never exits on a failed command.
"""

from __future__ import annotations

import argparse
import logging
import math
import sys
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Optional, TextIO

from config import SimulationConfig, load_config
from errors import RoutingError
from network import Network, NetworkSnapshot

LOGGER = logging.getLogger(__name__)

PROMPT = "routing> "

HELP_TEXT = """
Available commands:

  Node management:
    add-node <node-id>                  Add a new node to the network
    remove-node <node-id>               Remove a node and all of its links

  Link management:
    add-link <from> <to> <weight>       Add a weighted link between two nodes
    remove-link <from> <to>             Remove the link between two nodes

  Messaging:
    send-message <from> <to> <message>  Route a message and print its path

  Network information:
    show                                Nodes, links and every routing table
    routes <node-id>                    Routing table of a single node

  Utility:
    help                                Show this help message
    exit | quit                         Leave the shell
"""


def format_network(snapshot: NetworkSnapshot) -> str:
    lines = ["", "=== NETWORK STATUS ===", "", "NODES:"]
    if not snapshot.nodes:
        lines.append("  No nodes in the network")
    for view in snapshot.nodes:
        neighbors = ", ".join(f"{n}({w:g})" for n, w in view.neighbors.items())
        lines.append(f"  Node {view.id} - Neighbors: [{neighbors}]")

    lines += ["", "LINKS:"]
    if not snapshot.links:
        lines.append("  No links in the network")
    for link in snapshot.links:
        lines.append(f"  {link.source} <--{link.weight:g}--> {link.target}")

    lines += ["", "ROUTING TABLES:"]
    for view in snapshot.nodes:
        lines += ["", f"  Node {view.id}:"]
        lines += _format_table(view.routing_table)

    if snapshot.converging:
        lines += ["", "(convergence in progress; tables may be stale)"]
    lines.append("")
    return "\n".join(lines)


def _format_table(table) -> List[str]:
    if not table:
        return ["    No routes available"]
    rows = ["    Destination -> Next Hop (Distance)"]
    for dest, entry in table.items():
        rows.append(f"    {dest} -> {entry.next_hop} ({entry.cost:g})")
    return rows


class RoutingShell:
    def __init__(self, network: Network, out: Optional[TextIO] = None) -> None:
        self.network = network
        self._out = out or sys.stdout
        self._commands: Dict[str, Callable[[List[str]], None]] = {
            "add-node": self._cmd_add_node,
            "remove-node": self._cmd_remove_node,
            "add-link": self._cmd_add_link,
            "remove-link": self._cmd_remove_link,
            "send-message": self._cmd_send_message,
            "show": self._cmd_show,
            "routes": self._cmd_routes,
            "help": self._cmd_help,
        }

    def run(self, stdin: Optional[TextIO] = None) -> None:
        self._print("Routing Protocol Simulator")
        self._print('Type "help" for available commands\n')
        stream = stdin or sys.stdin
        while True:
            self._out.write(PROMPT)
            self._out.flush()
            line = stream.readline()
            if not line:
                break
            if not self.execute(line):
                break

    def execute(self, line: str) -> bool:
        """
        Run one command line. Returns False when the shell should stop.
        """
        tokens = line.split()
        if not tokens:
            return True
        command, args = tokens[0].lower(), tokens[1:]
        if command in ("exit", "quit"):
            return False

        handler = self._commands.get(command)
        if handler is None:
            LOGGER.warning("unknown command: %s", command)
            self._print(f'Unknown command: {command}. Type "help" for available commands.')
            return True
        try:
            handler(args)
        except RoutingError as exc:
            self._print(f"Error: {exc}")
        return True

    # --- Commands -----------------------------------------------------------

    def _cmd_add_node(self, args: List[str]) -> None:
        if len(args) != 1:
            self._print("Usage: add-node <node-id>")
            return
        self.network.add_node(args[0])
        self._print(f'Node "{args[0]}" added successfully')
        self._await_convergence()

    def _cmd_remove_node(self, args: List[str]) -> None:
        if len(args) != 1:
            self._print("Usage: remove-node <node-id>")
            return
        self.network.remove_node(args[0])
        self._print(f'Node "{args[0]}" removed successfully')
        self._await_convergence()

    def _cmd_add_link(self, args: List[str]) -> None:
        if len(args) != 3:
            self._print("Usage: add-link <from> <to> <weight>")
            return
        source, target, raw_weight = args
        try:
            weight = float(raw_weight)
        except ValueError:
            weight = math.nan
        if not math.isfinite(weight) or weight <= 0:
            self._print("Weight must be a positive number")
            return
        if source == target:
            self._print("Cannot create a link from a node to itself")
            return
        self.network.add_link(source, target, weight)
        self._print(f'Link "{source}" <--{weight:g}--> "{target}" added successfully')
        self._await_convergence()

    def _cmd_remove_link(self, args: List[str]) -> None:
        if len(args) != 2:
            self._print("Usage: remove-link <from> <to>")
            return
        self.network.remove_link(args[0], args[1])
        self._print(f'Link between "{args[0]}" and "{args[1]}" removed successfully')
        self._await_convergence()

    def _cmd_send_message(self, args: List[str]) -> None:
        if len(args) < 3:
            self._print("Usage: send-message <from> <to> <message>")
            return
        message = self.network.send_message(args[0], args[1], " ".join(args[2:]))
        self._print("Message sent successfully!")
        self._print(f"From: {message.source}")
        self._print(f"To: {message.target}")
        self._print(f'Content: "{message.content}"')
        self._print(f"Path: {' -> '.join(message.path)}")

    def _cmd_show(self, args: List[str]) -> None:
        self._print(format_network(self.network.snapshot()))

    def _cmd_routes(self, args: List[str]) -> None:
        if len(args) != 1:
            self._print("Usage: routes <node-id>")
            return
        table = self.network.get_routing_table(args[0])
        self._print(f"Node {args[0]}:")
        for row in _format_table(table):
            self._print(row)

    def _cmd_help(self, args: List[str]) -> None:
        self._print(HELP_TEXT)

    # --- Helpers ------------------------------------------------------------

    def _await_convergence(self) -> None:
        # Manual mode leaves the run pending; drive it here one event at a time.
        while self.network.is_converging():
            self.network.step_convergence()
        report = self.network.last_report
        if report is None:
            return
        suffix = " (timed out, tables forced)" if report.timed_out else ""
        self._print(
            f"Network converged: {report.events_processed} events, "
            f"simulated time {report.logical_time:.2f}{suffix}"
        )

    def _print(self, text: str) -> None:
        print(text, file=self._out)


def parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Interactive link-state routing simulator.")
    parser.add_argument("--config", type=Path, default=None, help="Simulation settings file (YAML)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the convergence jitter")
    parser.add_argument("--log-level", default="warning", choices=["debug", "info", "warning", "error"])
    parser.add_argument(
        "--manual-convergence",
        action="store_true",
        help="Step convergence runs from the shell instead of inside each mutation",
    )
    return parser.parse_args(argv)


def setup_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)-5s %(name)s: %(message)s",
    )


def build_config(args: argparse.Namespace) -> SimulationConfig:
    cfg = load_config(args.config) if args.config else SimulationConfig()
    overrides = {}
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.manual_convergence:
        overrides["auto_converge"] = False
    if overrides:
        cfg = replace(cfg, **overrides)
    return cfg


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    try:
        cfg = build_config(args)
    except (OSError, ValueError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    shell = RoutingShell(Network(cfg))
    try:
        shell.run()
    except KeyboardInterrupt:
        LOGGER.warning("interrupt received, leaving shell")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
