
from .events import (
    GraphDeclared,
    FrameStart,
    FrameEnd,
    NodePlacement,
    NodeColor,
    NodeLabel,
    EdgePresence,
    ClusterPresence,
    RunMetadata,
    event_to_dict,
)
from .graph_spec import GraphSpec, dygraph_to_spec
from .state import FrameState
