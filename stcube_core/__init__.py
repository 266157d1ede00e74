"""
Space-Time Cube Core Package.

This package contains the layout of dynamic graphs as space-time cubes,
including:

- Time intervals, interval trees and attribute timelines (Evolution)
- Static and dynamic graph data structures (Graph, DyGraph)
- The synchroniser building the 3D mirror graph whose Z axis encodes time
- The modular force system and the annealing layout engine
- YAML compilation of dynamic graphs and layout quality metrics

A dynamic graph goes through the synchroniser into a mirror graph; the engine
moves mirror nodes in the plane and writes the result back into the position
timelines of the dynamic graph, whose snapshots give the animation frames.
"""

# Space-Time Cube Core Package

__version__ = "0.1.0"

from .enums import ForceKind, Interpolation, OriginKind, PresenceMode, StopReason
from .errors import LayoutInvariantError, NoSuchElementError, StcubeError, SynchronisationError
from .interval import Interval
from .interval_tree import IntervalTree
from .evolution import Evolution, FunctionConst, FunctionRect, merge_functions
from .graph import Cluster, Edge, Graph, Node, Origin
from .dygraph import DyCluster, DyEdge, DyGraph, DyNode
from .synchroniser import MirrorConnection, MirrorLine, SpaceTimeCubeSynchroniser
from .config import LayoutConfig, load_config
from .engine import LayoutEngine, LayoutStatistics

from .compiler import compile_from_yaml, compile_from_file, compile_from_dict

from .metrics import (
    format_running_time,
    layout_quality,
    total_iterations,
    total_running_time,
    trajectory_movement,
)
