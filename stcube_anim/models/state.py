from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Set, Tuple

from stcube_core.graph import Graph

Point = Tuple[float, float]


@dataclass
class FrameState:
    t: float
    node_position: Dict[str, Point]
    edges: Set[str]

    @classmethod
    def from_snapshot(cls, t: float, snapshot: Graph) -> "FrameState":
        return cls(
            t=t,
            node_position={nid: (float(n.pos[0]), float(n.pos[1])) for nid, n in snapshot.nodes.items()},
            edges=set(snapshot.edges),
        )

    def clone(self) -> "FrameState":
        return FrameState(
            t=self.t,
            node_position=dict(self.node_position),
            edges=set(self.edges),
        )

    def diff(self, other: "FrameState") -> Dict[str, Any]:
        """Return differences from `other` → `self`.

        Returns dict with keys:
        - moved: Dict[node_id, (from, to)] for nodes present in both frames
        - appeared / disappeared: node ids
        - edges_appeared / edges_disappeared: edge ids
        """
        moved: Dict[str, Tuple[Point, Point]] = {}
        for nid, new_pos in self.node_position.items():
            old_pos = other.node_position.get(nid)
            if old_pos is not None and max(abs(new_pos[0] - old_pos[0]), abs(new_pos[1] - old_pos[1])) > 1e-9:
                moved[nid] = (old_pos, new_pos)

        return {
            "moved": moved,
            "appeared": sorted(set(self.node_position) - set(other.node_position)),
            "disappeared": sorted(set(other.node_position) - set(self.node_position)),
            "edges_appeared": sorted(self.edges - other.edges),
            "edges_disappeared": sorted(other.edges - self.edges),
        }
