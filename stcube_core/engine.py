"""
Space-time cube layout engine.

This module implements the iteration driver of the force-directed layout. The
engine owns a private array of mirror node positions and, at each iteration:

1. Rebuilds the spatial locator from the current positions
2. Computes the field of every enabled force against the same read-only
   position snapshot (optionally in a thread pool)
3. Sums the fields, checking that every vector is finite
4. Displaces every unpinned node in the XY plane, clamping the displacement
   to `max_movement * temperature`; Z (time) never changes
5. Cools the temperature linearly toward its final value

Positions are published to the mirror graph, and optionally written back into
the original dynamic graph, only once an `iterate` call completes.

Configuration: time scaling, budget, distances, force selection and annealing
are tunable via `LayoutConfig` in `stcube_core.config`.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from .config import LayoutConfig
from .dygraph import DyGraph
from .enums import StopReason
from .errors import LayoutInvariantError
from .forces import Force, ForceContext, build_forces, compute_forces
from .locator import SpatialLocator
from .synchroniser import SpaceTimeCubeSynchroniser

logger = logging.getLogger(__name__)


@dataclass
class LayoutStatistics:
    """
    Outcome of one `iterate` call.

    Attributes:
        iterations: iterations actually executed
        running_time: wall-clock seconds spent in the call
        iteration_times: wall-clock seconds of each iteration
        stop_reason: why the run stopped
    """

    iterations: int = 0
    running_time: float = 0.0
    iteration_times: List[float] = field(default_factory=list)
    stop_reason: StopReason = StopReason.COMPLETED

    @property
    def seconds_per_iteration(self) -> float:
        return self.running_time / self.iterations if self.iterations else 0.0


class LayoutEngine:
    """
    Force-directed layout of a space-time cube mirror graph.

    Args:
        synchroniser: the synchroniser holding the mirror graph to lay out
        config: layout parameters; defaults to `LayoutConfig()` with the
            synchroniser time factor
        forces: explicit force list; defaults to the forces enabled in `config`

    Attributes:
        temperature: temperature of the last executed iteration
        t: total number of iterations executed since construction or reset
        stats: cumulative run statistics
    """

    def __init__(
        self,
        synchroniser: SpaceTimeCubeSynchroniser,
        config: LayoutConfig | None = None,
        forces: Optional[Sequence[Force]] = None,
    ):
        self.synchroniser = synchroniser
        self.config = config or LayoutConfig(time_factor=synchroniser.time_factor)
        self.forces: List[Force] = list(forces) if forces is not None else build_forces(self.config)

        graph = synchroniser.mirror_graph
        self._ids: List[str] = sorted(graph.nodes)
        self._index: Dict[str, int] = {nid: row for row, nid in enumerate(self._ids)}
        self._initial = np.array([graph.nodes[nid].pos for nid in self._ids], dtype=float).reshape(-1, 3)
        self._positions = self._initial.copy()
        self._sizes = np.array([graph.nodes[nid].size for nid in self._ids], dtype=float)
        self._pinned = self._pinned_mask()

        self._cache: Dict[str, object] = {}
        self._run_lock = threading.Lock()
        self._background: ThreadPoolExecutor | None = None
        self.temperature = self.config.initial_temperature
        self.t = 0
        self.stats = self._empty_stats()

    @classmethod
    def from_graph(cls, graph: DyGraph, config: LayoutConfig | None = None) -> "LayoutEngine":
        """Build the synchroniser for `graph` from `config` and wrap it in an engine."""
        config = config or LayoutConfig()
        synchroniser = SpaceTimeCubeSynchroniser.build(graph, config.time_factor, config.bend_granularity)
        return cls(synchroniser, config)

    # ----- helpers -----
    def _empty_stats(self) -> Dict[str, object]:
        return {
            "iterations": 0,
            "running_time": 0.0,
            "runs": 0,
            "last_max_displacement": 0.0,
            "last_force_norms": {},  # force kind name -> largest vector norm
        }

    def _pinned_mask(self) -> np.ndarray:
        pinned = set(self.config.pinned_nodes)
        if self.config.pin_cluster_poles:
            pinned.update(self.synchroniser.original_graph.poles())
        graph = self.synchroniser.mirror_graph
        return np.array([graph.nodes[nid].origin.node_id in pinned for nid in self._ids], dtype=bool)

    def _temperature_at(self, step: int, budget: int) -> float:
        initial, final = self.config.initial_temperature, self.config.final_temperature
        if budget <= 1:
            return initial
        return initial + (final - initial) * step / (budget - 1)

    def _context(self, temperature: float) -> ForceContext:
        snapshot = self._positions.copy()
        snapshot.setflags(write=False)
        return ForceContext(
            synchroniser=self.synchroniser,
            graph=self.synchroniser.mirror_graph,
            index=self._index,
            positions=snapshot,
            sizes=self._sizes,
            locator=SpatialLocator.build(self.synchroniser.mirror_graph, snapshot, self._index),
            temperature=temperature,
            eps=self.config.epsilon,
            cache=self._cache,
        )

    def _compute_fields(self, ctx: ForceContext, pool: ThreadPoolExecutor | None) -> List[np.ndarray]:
        if pool is None:
            return [compute_forces(force, ctx) for force in self.forces]
        return list(pool.map(lambda force: compute_forces(force, ctx), self.forces))

    # ----- iteration -----
    def step(self, temperature: float, pool: ThreadPoolExecutor | None = None) -> float:
        """
        Execute one iteration at the given temperature.

        Returns:
            Largest planar displacement applied to a node

        Raises:
            LayoutInvariantError: if a force produces a non-finite vector
        """
        ctx = self._context(temperature)
        total = ctx.zeros()
        for force, forces_field in zip(self.forces, self._compute_fields(ctx, pool)):
            if not np.all(np.isfinite(forces_field)):
                raise LayoutInvariantError(f"Force {force.kind.name} produced a non-finite vector")
            norms = np.linalg.norm(forces_field, axis=1) if len(forces_field) else np.zeros(0)
            self.stats["last_force_norms"][force.kind.name] = float(norms.max()) if len(norms) else 0.0
            total += forces_field

        displacement = total
        displacement[:, 2] = 0.0
        limit = self.config.max_movement * temperature
        lengths = np.linalg.norm(displacement[:, :2], axis=1)
        scale = np.ones_like(lengths)
        too_long = lengths > limit
        scale[too_long] = limit / lengths[too_long]
        displacement *= scale[:, None]
        displacement[self._pinned] = 0.0

        moved = self._positions + displacement
        if not np.all(np.isfinite(moved)):
            raise LayoutInvariantError("Non-finite mirror node position after displacement")
        self._positions = moved
        self.temperature = temperature
        self.t += 1
        return float(np.max(np.linalg.norm(displacement[:, :2], axis=1))) if len(displacement) else 0.0

    def iterate(
        self,
        n: Optional[int] = None,
        max_seconds: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> LayoutStatistics:
        """
        Run the layout for up to `n` iterations.

        The temperature cools linearly over the `n` iterations. The run stops
        early, without error, when `max_seconds` have elapsed or `stop_event`
        is set; the positions reached so far are kept.

        Args:
            n: iteration budget (defaults to `config.iterations`)
            max_seconds: wall-clock budget (defaults to `config.max_seconds`)
            stop_event: optional cancellation signal checked between iterations

        Returns:
            LayoutStatistics for this call
        """
        budget = self.config.iterations if n is None else n
        if budget < 0:
            raise ValueError(f"Iteration count must be non-negative, got {budget}")
        seconds = self.config.max_seconds if max_seconds is None else max_seconds

        with self._run_lock:
            statistics = LayoutStatistics()
            pool = (
                ThreadPoolExecutor(max_workers=len(self.forces))
                if self.config.parallel_forces and len(self.forces) > 1
                else None
            )
            start = time.perf_counter()
            try:
                for k in range(budget):
                    if stop_event is not None and stop_event.is_set():
                        statistics.stop_reason = StopReason.CANCELLED
                        break
                    if seconds is not None and time.perf_counter() - start >= seconds:
                        statistics.stop_reason = StopReason.TIME_BUDGET
                        break
                    iteration_start = time.perf_counter()
                    max_move = self.step(self._temperature_at(k, budget), pool)
                    statistics.iteration_times.append(time.perf_counter() - iteration_start)
                    statistics.iterations += 1
                    self.stats["last_max_displacement"] = max_move
                    logger.debug(
                        "Iteration %d/%d: temperature %.3f, max displacement %.4f",
                        k + 1, budget, self.temperature, max_move,
                    )
            finally:
                if pool is not None:
                    pool.shutdown()
            statistics.running_time = time.perf_counter() - start
            self._publish()

            self.stats["iterations"] += statistics.iterations
            self.stats["running_time"] += statistics.running_time
            self.stats["runs"] += 1
        logger.info(
            "Layout run: %d iterations in %.3f s (%s)",
            statistics.iterations, statistics.running_time, statistics.stop_reason.name,
        )
        return statistics

    def iterate_in_background(
        self,
        n: Optional[int] = None,
        max_seconds: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> "Future[LayoutStatistics]":
        """Run `iterate` on a worker thread; results are published when the future completes."""
        if self._background is None:
            self._background = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stcube-layout")
        return self._background.submit(self.iterate, n, max_seconds, stop_event)

    def shutdown(self) -> None:
        """Stop the background worker, waiting for a pending run."""
        if self._background is not None:
            self._background.shutdown(wait=True)
            self._background = None

    # ----- state -----
    def _publish(self) -> None:
        graph = self.synchroniser.mirror_graph
        for nid, row in self._index.items():
            graph.nodes[nid].pos = self._positions[row].copy()
        if self.config.sync_original:
            self.synchroniser.update_original_positions()

    def positions(self) -> Dict[str, np.ndarray]:
        """Copy of the current mirror node positions by id."""
        return {nid: self._positions[row].copy() for nid, row in self._index.items()}

    def reset(self):
        """
        Restore the initial mirror node positions and the initial temperature.

        The run-scoped force cache and the statistics are cleared too.
        """
        with self._run_lock:
            self._positions = self._initial.copy()
            self.temperature = self.config.initial_temperature
            self.t = 0
            self._cache.clear()
            self.stats = self._empty_stats()
            self._publish()

    def snapshot(self):
        """
        Create a snapshot of the current layout state.

        Returns:
            dict: Dictionary containing:
                - 't': Iterations executed so far
                - 'temperature': Temperature of the last iteration
                - 'nodes': Mirror node positions and origins
                - 'stats': Cumulative run statistics
        """
        graph = self.synchroniser.mirror_graph
        return {
            "t": self.t,
            "temperature": self.temperature,
            "nodes": {
                nid: {
                    "pos": [float(v) for v in self._positions[row]],
                    "origin": graph.nodes[nid].origin.node_id,
                    "kind": graph.nodes[nid].origin.kind.name,
                    "time": graph.nodes[nid].origin.time,
                    "pinned": bool(self._pinned[row]),
                }
                for nid, row in self._index.items()
            },
            "stats": self.stats,
        }
