from __future__ import annotations

from dataclasses import replace
from typing import Iterator, List, Optional

from stcube_core.config import LayoutConfig
from stcube_core.dygraph import DyGraph
from stcube_core.engine import LayoutEngine, LayoutStatistics

from stcube_anim.adapters.base import StcubeEventSource, StcubeStepper
from stcube_anim.models.events import (
    ClusterPresence,
    EdgePresence,
    Event,
    FrameEnd,
    FrameStart,
    GraphDeclared,
    NodeColor,
    NodeLabel,
    NodePlacement,
    RunMetadata,
)
from stcube_anim.models.graph_spec import dygraph_to_spec


def frame_times(start: float, end: float, step: float) -> List[float]:
    """Frame times from `start` to `end` included, every `step` time units."""
    if step <= 0:
        raise ValueError(f"Frame step must be positive, got {step}")
    if end < start:
        raise ValueError(f"Frame range ends before it starts: [{start}, {end}]")
    count = int((end - start) / step + 1e-9)
    times = [start + k * step for k in range(count + 1)]
    if times[-1] < end - 1e-9:
        times.append(end)
    return times


class SnapshotEventSource(StcubeEventSource):
    """
    Streams one frame per sampled time: the nodes, edges and clusters present
    in `snapshot_at(t)` of the dynamic graph, with their resolved attributes.
    """

    def __init__(self, g: DyGraph, step: float = 1.0, start: Optional[float] = None, end: Optional[float] = None):
        self.g = g
        self.step = step
        span = g.time_span()
        self.start = start if start is not None else (span.left if span is not None else 0.0)
        self.end = end if end is not None else (span.right if span is not None else self.start)

    def stream_events(self) -> Iterator[Event]:
        spec = dygraph_to_spec(self.g)
        yield GraphDeclared(graph={"nodes": spec.nodes, "edges": spec.edges, "clusters": spec.clusters}, seed=0)
        yield from self.stream_frames()

    def stream_frames(self) -> Iterator[Event]:
        labelled = set()
        for idx, t in enumerate(frame_times(self.start, self.end, self.step)):
            snapshot = self.g.snapshot_at(t)
            yield FrameStart(frame_index=idx, t=float(t))
            for nid in sorted(snapshot.nodes):
                n = snapshot.nodes[nid]
                yield NodePlacement(node_id=nid, x=float(n.pos[0]), y=float(n.pos[1]), t=float(t), size=float(n.size))
                yield NodeColor(node_id=nid, rgba=tuple(float(c) for c in n.meta["color"]), t=float(t))
                label = n.meta.get("label")
                if label and (nid, label) not in labelled:
                    labelled.add((nid, label))
                    yield NodeLabel(node_id=nid, text=label)
            for eid in sorted(snapshot.edges):
                e = snapshot.edges[eid]
                yield EdgePresence(edge_id=eid, source=e.source, target=e.target, t=float(t))
            for pole in sorted(snapshot.clusters):
                yield ClusterPresence(pole=pole, members=tuple(snapshot.clusters[pole].members), t=float(t))
            yield FrameEnd(frame_index=idx, t=float(t))


class LayoutStepper(StcubeStepper):
    """
    Runs the space-time cube layout of a dynamic graph, then streams the
    animation frames of the laid out graph.
    """

    def __init__(self, g: DyGraph, config: LayoutConfig | None = None, frame_step: float = 1.0):
        self.g = g
        self.config = replace(config or LayoutConfig(), sync_original=True)
        self.engine = LayoutEngine.from_graph(g, self.config)
        self.frame_step = frame_step
        self.last_statistics: LayoutStatistics | None = None

    def reset(self) -> None:
        self.engine.reset()
        self.last_statistics = None

    def step(self, n: int = 1) -> None:
        self.last_statistics = self.engine.iterate(n)

    def stream_events(self) -> Iterator[Event]:
        # Run the configured budget when no step was taken yet
        if self.last_statistics is None:
            self.step(self.config.iterations)
        source = SnapshotEventSource(self.g, step=self.frame_step)
        events = source.stream_events()
        yield next(events)
        yield RunMetadata(key="iterations", value=self.last_statistics.iterations)
        yield RunMetadata(key="running_time", value=self.last_statistics.running_time)
        yield RunMetadata(key="stop_reason", value=self.last_statistics.stop_reason.name)
        yield from events
