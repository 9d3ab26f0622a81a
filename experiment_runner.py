"""
CLI to run convergence experiments across multiple seeds and propagation delays.

Reads experiments/experiments.yml, builds each scripted topology, replays its
mutations under every (delay, seed) pair and records how the convergence runs
behaved (events processed, simulated settle time, timeouts, table sizes).
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple
import csv
from concurrent.futures import ProcessPoolExecutor, as_completed
import time

import yaml

from config import SimulationConfig
from convergence import ConvergenceReport
from network import Network

MUTATIONS = ("add_node", "remove_node", "add_link", "remove_link")


@dataclass(frozen=True)
class ExperimentConfig:
    name: str
    nodes: Sequence[str]
    links: Sequence[Tuple[str, str, float]]
    mutations: Sequence[Tuple[str, ...]]


@dataclass(frozen=True)
class Config:
    seed: int
    seed_count: int
    propagation_delays: Sequence[float]
    experiments: Sequence[ExperimentConfig]
    max_wall_time: float = 5.0


def load_config(path: Path) -> Config:
    data = yaml.safe_load(path.read_text())
    experiments = [
        ExperimentConfig(
            name=str(exp["name"]),
            nodes=[str(n) for n in exp["nodes"]],
            links=[(str(a), str(b), float(w)) for a, b, w in exp.get("links", [])],
            mutations=[_parse_mutation(m) for m in exp.get("mutations", [])],
        )
        for exp in data["experiments"]
    ]
    return Config(
        seed=int(data["seed"]),
        seed_count=int(data["seed_count"]),
        propagation_delays=[float(d) for d in data.get("propagation_delays", [1.0])],
        experiments=experiments,
        max_wall_time=float(data.get("max_wall_time", 5.0)),
    )


def _parse_mutation(raw: Sequence[object]) -> Tuple[str, ...]:
    op = str(raw[0])
    if op not in MUTATIONS:
        raise ValueError(f"Unknown mutation '{op}'. Expected one of: {', '.join(MUTATIONS)}")
    return (op, *[str(arg) for arg in raw[1:]])


def run_experiments(
    config_path: Path,
    runs_csv: Path | None = None,
    aggregates_csv: Path | None = None,
    max_workers: int | None = None,
    use_processes: bool = True,
) -> List[Dict[str, object]]:
    cfg = load_config(config_path)
    start = time.time()

    tasks: List[tuple[ExperimentConfig, float, int]] = []
    for exp in cfg.experiments:
        for delay in cfg.propagation_delays:
            for offset in range(cfg.seed_count):
                tasks.append((exp, delay, cfg.seed + offset))

    print(f"[run] queued {len(tasks)} tasks")

    results: List[Dict[str, object]] = []
    if use_processes:
        try:
            with ProcessPoolExecutor(max_workers=max_workers) as executor:
                future_to_task = {
                    executor.submit(_run_task, asdict(exp), delay, seed, cfg.max_wall_time): (exp.name, delay, seed)
                    for exp, delay, seed in tasks
                }
                for future in as_completed(future_to_task):
                    exp_name, delay, seed = future_to_task[future]
                    try:
                        res = future.result()
                        results.append(res)
                        print(f"[run] completed experiment={exp_name} delay={delay} seed={seed} duration={res['duration_sec']:.2f}s")
                    except Exception as exc:
                        print(f"[run] failed experiment={exp_name} delay={delay} seed={seed}: {exc}")
        except (PermissionError, NotImplementedError, OSError) as exc:
            print(f"[run] process pool unavailable ({exc}), falling back to sequential execution")
            use_processes = False
    else:
        print("[run] using sequential execution")

    if not use_processes:
        for exp, delay, seed in tasks:
            res = _run_task(asdict(exp), delay, seed, cfg.max_wall_time)
            results.append(res)
            print(f"[run] completed experiment={exp.name} delay={delay} seed={seed} duration={res['duration_sec']:.2f}s")

    if runs_csv:
        write_results_csv(results, runs_csv)
    if aggregates_csv:
        write_aggregates_csv(aggregate_by_delay(results), aggregates_csv)

    elapsed = time.time() - start
    print(f"[run] completed {len(results)} total runs in {elapsed:.2f}s")
    return results


def _run_task(exp_dict: Mapping[str, object], delay: float, seed: int, max_wall_time: float) -> Dict[str, object]:
    start_run = time.time()
    exp = ExperimentConfig(
        name=str(exp_dict["name"]),
        nodes=list(exp_dict["nodes"]),  # type: ignore[arg-type]
        links=[tuple(link) for link in exp_dict["links"]],  # type: ignore[union-attr]
        mutations=[tuple(m) for m in exp_dict["mutations"]],  # type: ignore[union-attr]
    )
    res = _run_single(exp, delay, seed, max_wall_time)
    res["duration_sec"] = time.time() - start_run
    return res


def _run_single(exp: ExperimentConfig, delay: float, seed: int, max_wall_time: float) -> Dict[str, object]:
    network = Network(SimulationConfig(propagation_delay=delay, max_wall_time=max_wall_time, seed=seed))
    for node_id in exp.nodes:
        network.add_node(node_id)
    for a, b, weight in exp.links:
        network.add_link(a, b, weight)

    # Only the scripted mutations are measured, not the build-up.
    reports: List[ConvergenceReport] = []
    network.add_convergence_listener(reports.append)
    for op, *args in exp.mutations:
        if op == "add_link":
            network.add_link(args[0], args[1], float(args[2]))
        else:
            getattr(network, op)(*args)

    return {
        "experiment": exp.name,
        "propagation_delay": delay,
        "seed": seed,
        "nodes": len(network.list_nodes()),
        "metrics": _summarize_reports(reports, network),
    }


def _summarize_reports(reports: Sequence[ConvergenceReport], network: Network) -> Dict[str, object]:
    events = [r.events_processed for r in reports]
    times = [r.logical_time for r in reports]
    table_sizes = [len(network.get_routing_table(n)) for n in network.list_nodes()]
    return {
        "runs": len(reports),
        "avg_events": sum(events) / len(events) if events else 0.0,
        "max_events": max(events) if events else 0,
        "avg_settle_time": sum(times) / len(times) if times else 0.0,
        "max_settle_time": max(times) if times else 0.0,
        "timeouts": sum(1 for r in reports if r.timed_out),
        "avg_routes": sum(table_sizes) / len(table_sizes) if table_sizes else 0.0,
    }


def aggregate_by_delay(results: Iterable[Dict[str, object]]) -> List[Dict[str, object]]:
    """
    Aggregate metrics per (experiment, propagation_delay), averaging across seeds.
    """
    accum: Dict[tuple[str, float], Dict[str, float]] = {}
    counts: Dict[tuple[str, float], int] = {}

    for res in results:
        key = (str(res["experiment"]), float(res["propagation_delay"]))  # type: ignore[arg-type]
        metrics = res["metrics"]
        counts[key] = counts.get(key, 0) + 1
        bucket = accum.setdefault(
            key, {"avg_events_sum": 0.0, "avg_settle_time_sum": 0.0, "timeouts_sum": 0.0, "avg_routes_sum": 0.0}
        )
        bucket["avg_events_sum"] += float(metrics["avg_events"])  # type: ignore[index]
        bucket["avg_settle_time_sum"] += float(metrics["avg_settle_time"])  # type: ignore[index]
        bucket["timeouts_sum"] += float(metrics["timeouts"])  # type: ignore[index]
        bucket["avg_routes_sum"] += float(metrics["avg_routes"])  # type: ignore[index]

    aggregated_rows: List[Dict[str, object]] = []
    for (exp, delay), sums in accum.items():
        n = counts[(exp, delay)]
        aggregated_rows.append(
            {
                "experiment": exp,
                "propagation_delay": delay,
                "seeds": float(n),
                "avg_events": sums["avg_events_sum"] / n,
                "avg_settle_time": sums["avg_settle_time_sum"] / n,
                "timeouts": sums["timeouts_sum"],
                "avg_routes": sums["avg_routes_sum"] / n,
            }
        )

    return aggregated_rows


def write_results_csv(results: Iterable[Dict[str, object]], path: Path) -> None:
    """
    Write per-run results to CSV for downstream analysis.
    """
    fieldnames = [
        "experiment",
        "propagation_delay",
        "seed",
        "nodes",
        "runs",
        "avg_events",
        "max_events",
        "avg_settle_time",
        "max_settle_time",
        "timeouts",
        "avg_routes",
        "duration_sec",
    ]
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for res in results:
            metrics = res.get("metrics", {})
            row = {
                "experiment": res.get("experiment"),
                "propagation_delay": res.get("propagation_delay"),
                "seed": res.get("seed"),
                "nodes": res.get("nodes"),
                "duration_sec": res.get("duration_sec", 0.0),
            }
            for key in fieldnames[4:-1]:
                row[key] = metrics.get(key)  # type: ignore[union-attr]
            writer.writerow(row)


def write_aggregates_csv(aggregated: Iterable[Mapping[str, object]], path: Path) -> None:
    """
    Write aggregated metrics by propagation delay to CSV.
    """
    fieldnames = [
        "experiment",
        "propagation_delay",
        "seeds",
        "avg_events",
        "avg_settle_time",
        "timeouts",
        "avg_routes",
    ]
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for row in aggregated:
            writer.writerow({key: row.get(key, "") for key in fieldnames})


def main() -> None:
    config_path = Path(__file__).parent / "experiments" / "experiments.yml"
    out_dir = Path(__file__).parent / "experiments" / "results"
    runs_csv = out_dir / "runs.csv"
    aggregates_csv = out_dir / "aggregates.csv"

    results = run_experiments(config_path, runs_csv=runs_csv, aggregates_csv=aggregates_csv)
    print("Aggregated by delay:", aggregate_by_delay(results))
    print(f"Wrote runs to {runs_csv} and aggregates to {aggregates_csv}")


if __name__ == "__main__":
    main()
