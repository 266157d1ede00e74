from __future__ import annotations

import json
from typing import Iterable, Iterator

from stcube_anim.adapters.base import StcubeEventSource
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
    event_to_dict,
)


_TYPE_MAP = {
    "GraphDeclared": GraphDeclared,
    "FrameStart": FrameStart,
    "FrameEnd": FrameEnd,
    "NodePlacement": NodePlacement,
    "NodeColor": NodeColor,
    "NodeLabel": NodeLabel,
    "EdgePresence": EdgePresence,
    "ClusterPresence": ClusterPresence,
    "RunMetadata": RunMetadata,
}

# fields stored as JSON lists that the event classes keep as tuples
_TUPLE_FIELDS = {"rgba", "members"}


class JsonlEventSource(StcubeEventSource):
    def __init__(self, path: str):
        self.path = path

    def stream_events(self) -> Iterator[Event]:
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                obj = json.loads(line)
                typ = obj.pop("type", None)
                cls = _TYPE_MAP.get(typ)
                if cls is None:
                    continue
                for key in _TUPLE_FIELDS & set(obj):
                    obj[key] = tuple(obj[key])
                yield cls(**obj)


def write_events(events: Iterable[Event], path: str) -> int:
    """Write events to a JSONL file, one event per line. Returns the number written."""
    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for event in events:
            f.write(json.dumps(event_to_dict(event)) + "\n")
            count += 1
    return count
