from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple, Union

Color = Tuple[float, float, float, float]


@dataclass(frozen=True)
class GraphDeclared:
    graph: Dict[str, Any]
    seed: int = 0
    units: Optional[str] = None


@dataclass(frozen=True)
class FrameStart:
    frame_index: int
    t: float


@dataclass(frozen=True)
class FrameEnd:
    frame_index: int
    t: float


@dataclass(frozen=True)
class NodePlacement:
    node_id: str
    x: float
    y: float
    t: Optional[float] = None
    size: Optional[float] = None


@dataclass(frozen=True)
class NodeColor:
    node_id: str
    rgba: Color
    t: Optional[float] = None


@dataclass(frozen=True)
class NodeLabel:
    node_id: str
    text: str


@dataclass(frozen=True)
class EdgePresence:
    edge_id: str
    source: str
    target: str
    t: Optional[float] = None


@dataclass(frozen=True)
class ClusterPresence:
    pole: str
    members: Tuple[str, ...]
    t: Optional[float] = None


@dataclass(frozen=True)
class RunMetadata:
    key: str
    value: Any


Event = Union[
    GraphDeclared,
    FrameStart,
    FrameEnd,
    NodePlacement,
    NodeColor,
    NodeLabel,
    EdgePresence,
    ClusterPresence,
    RunMetadata,
]


def event_to_dict(event: Event) -> Dict[str, Any]:
    """Plain dict of an event with its class name under 'type', ready for JSON."""
    data = asdict(event)
    for key, value in data.items():
        if isinstance(value, tuple):
            data[key] = list(value)
    data["type"] = type(event).__name__
    return data
