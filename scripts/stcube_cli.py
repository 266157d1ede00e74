#!/usr/bin/env python3
"""
Space-time cube CLI

Usage modes:
- Default run: compile YAML, lay out the space-time cube, print a JSON summary
  or write it to a file
- Validation: check mirror graph integrity, print issues
- Stats: print mirror graph statistics and layout quality
- Export: write the mirror graph as GraphML, or the animation as JSONL events
- Utility: list sample graphs, show version, dry-run compile only
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from glob import glob
from pathlib import Path
from typing import Any, Dict, List

from stcube_core import LayoutEngine  # type: ignore
from stcube_core.config import CLUSTER_FORCES, LayoutConfig, load_config  # type: ignore
from stcube_core.compiler import compile_from_file  # type: ignore
from stcube_core.errors import StcubeError  # type: ignore
from stcube_core.metrics import format_running_time, layout_quality  # type: ignore


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Lay out a dynamic graph from YAML as a space-time cube",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # Utilities / meta
    p.add_argument("--version", action="store_true", help="Print version and exit")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v, -vv)")
    p.add_argument("--list-scenes", action="store_true", help="List bundled sample YAML graphs and exit")

    # Primary input
    p.add_argument("yaml", nargs="?", help="Path to YAML graph (e.g., scripts/two_nodes.yaml)")
    p.add_argument("--config", type=str, default="", help="Optional YAML layout configuration")

    # Execution
    p.add_argument("--iterations", type=int, default=None, help="Number of layout iterations")
    p.add_argument("--max-seconds", type=float, default=None, help="Wall-clock budget of the layout")
    p.add_argument("--dry-run", action="store_true", help="Compile and synchronise only; do not iterate")
    p.add_argument("--out", type=str, default="", help="Optional output JSON file path")

    # Layout config overrides
    p.add_argument("--time-factor", type=float, default=None, help="Mirror Z units per time unit")
    p.add_argument("--node-distance", type=float, default=None, help="Desired node-node distance")
    p.add_argument("--edge-distance", type=float, default=None, help="Desired edge-edge distance")
    p.add_argument("--bend-granularity", type=float, default=None, help="Insert a bend every this many time units")
    p.add_argument("--clusters", action="store_true", help="Enable the cluster forces")
    p.add_argument("--pin-poles", action="store_true", help="Keep cluster poles in place")
    p.add_argument("--parallel", action="store_true", help="Compute forces in a thread pool")

    # Analysis / export
    p.add_argument("--validate", action="store_true", help="Validate the mirror graph")
    p.add_argument("--stats", action="store_true", help="Print mirror graph statistics and layout quality")
    p.add_argument("--export-graphml", type=str, default="", help="Export the mirror graph to GraphML at given path")
    p.add_argument("--export-events", type=str, default="", help="Write the animation events to a JSONL file")
    p.add_argument("--frame-step", type=float, default=1.0, help="Time between animation frames")

    return p.parse_args(argv)


def build_config(args: argparse.Namespace) -> LayoutConfig:
    cfg = load_config(args.config) if args.config else LayoutConfig()
    overrides: Dict[str, Any] = {}
    if args.iterations is not None:
        overrides["iterations"] = int(args.iterations)
    if args.max_seconds is not None:
        overrides["max_seconds"] = float(args.max_seconds)
    if args.time_factor is not None:
        overrides["time_factor"] = float(args.time_factor)
    if args.node_distance is not None:
        overrides["node_node_distance"] = float(args.node_distance)
    if args.edge_distance is not None:
        overrides["edge_edge_distance"] = float(args.edge_distance)
    if args.bend_granularity is not None:
        overrides["bend_granularity"] = float(args.bend_granularity)
    if args.clusters:
        overrides["forces"] = tuple(cfg.forces) + tuple(k for k in CLUSTER_FORCES if k not in cfg.forces)
    if args.pin_poles:
        overrides["pin_cluster_poles"] = True
    if args.parallel:
        overrides["parallel_forces"] = True
    return replace(cfg, **overrides)


def setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def find_sample_scenes() -> List[str]:
    # Search relative to repo root and this script location
    here = Path(__file__).resolve()
    repo_root = here.parent.parent
    candidates = []
    for base in [repo_root, here.parent]:
        candidates.extend(sorted(glob(str(base / "*.yaml"))))
        candidates.extend(sorted(glob(str(base / "scripts" / "*.yaml"))))
    # Deduplicate while preserving order
    seen = set()
    result = []
    for c in candidates:
        if c not in seen:
            seen.add(c)
            result.append(c)
    return result


def write_json(data: Dict[str, Any], path: str) -> None:
    if path:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
    else:
        print(json.dumps(data, indent=2))


def run(args: argparse.Namespace) -> int:
    cfg = build_config(args)

    logging.info("Compiling dynamic graph from %s", args.yaml)
    g = compile_from_file(args.yaml)
    engine = LayoutEngine.from_graph(g, cfg)
    mirror = engine.synchroniser.mirror_graph

    if args.validate:
        issues = mirror.validate_graph_integrity()
        logging.info("Validation issues: %d", sum(len(v) for v in issues.values()))
        print(json.dumps(issues, indent=2))
        return 1 if issues else 0

    if args.dry_run:
        # Provide a minimal mirror graph summary
        minimal = {
            "nodes": len(g.nodes),
            "edges": len(g.edges),
            "mirror_nodes": mirror.node_count(),
            "mirror_segments": mirror.edge_count(),
            "connections": len(engine.synchroniser.mirror_connections()),
        }
        write_json(minimal, args.out)
        return 0

    statistics = engine.iterate()
    logging.info("Layout computed in %s s", format_running_time(statistics))

    if args.export_graphml:
        logging.info("Exporting GraphML to %s", args.export_graphml)
        mirror.export_graphml(args.export_graphml)

    if args.export_events:
        from stcube_anim.adapters.jsonl import write_events
        from stcube_anim.adapters.live import SnapshotEventSource

        count = write_events(SnapshotEventSource(g, step=args.frame_step).stream_events(), args.export_events)
        logging.info("Wrote %d events to %s", count, args.export_events)

    summary: Dict[str, Any] = {
        "iterations": statistics.iterations,
        "running_time": statistics.running_time,
        "stop_reason": statistics.stop_reason.name,
        "positions": {
            nid: [float(v) for v in node.pos] for nid, node in sorted(mirror.nodes.items())
        },
    }
    if args.stats:
        summary["graph"] = mirror.get_graph_statistics()
        summary["quality"] = layout_quality(engine.synchroniser)
    write_json(summary, args.out)
    return 0


def main(argv: List[str] | None = None) -> int:
    try:
        from stcube_core import __version__ as stcube_version  # type: ignore
    except ImportError:
        stcube_version = "unknown"

    args = parse_args(argv)
    setup_logging(args.verbose)

    if args.version:
        print(stcube_version)
        return 0

    if args.list_scenes:
        scenes = find_sample_scenes()
        if not scenes:
            print("[]")
            return 0
        print(json.dumps(scenes, indent=2))
        return 0

    if not args.yaml:
        print("error: missing YAML path (try --list-scenes)", file=sys.stderr)
        return 2

    try:
        return run(args)
    except (StcubeError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
