"""
Presence merging and appearance fading for dynamic graphs.

Parsers usually produce one presence function per observed event; before a
layout these are merged into continuous presences, and each presence interval
gets a color timeline that fades the element in and out.
"""

from __future__ import annotations

from .dygraph import TRANSPARENT, Color, DyGraph
from .enums import Interpolation, PresenceMode
from .evolution import Evolution, FunctionConst, FunctionRect, merge_functions, presence_intervals
from .interval import Interval


def _replace_functions(target: Evolution, source: Evolution) -> None:
    target.clear()
    for fn in source:
        target.insert(fn)


def _keep_from_first_appearance(evolution: Evolution, data_end_time: float) -> None:
    intervals = presence_intervals(evolution)
    evolution.clear()
    if intervals:
        start = intervals[0].left
        evolution.insert(FunctionConst(Interval.closed(start, max(start, data_end_time)), True))


def merge_presence_functions(graph: DyGraph, data_end_time: float, mode: PresenceMode = PresenceMode.PLAIN) -> None:
    """
    Merge the presences of every node and edge into non-overlapping functions.

    Args:
        graph: the dynamic graph, modified in place
        data_end_time: time at which the data stops
        mode: PLAIN coalesces presences; KEEP_APPEARED_NODE keeps nodes from
            their first appearance to `data_end_time`; KEEP_APPEARED_EDGES
            does the same for edges as well
    """
    for node in graph.nodes.values():
        if mode is PresenceMode.PLAIN:
            _replace_functions(node.presence, merge_functions(node.presence))
        else:
            _keep_from_first_appearance(node.presence, data_end_time)

    for edge in graph.edges.values():
        if mode is PresenceMode.KEEP_APPEARED_EDGES:
            _keep_from_first_appearance(edge.presence, data_end_time)
        else:
            _replace_functions(edge.presence, merge_functions(edge.presence))


def set_appearance(presence: Evolution, color_evolution: Evolution, color: Color, fading_duration: float) -> None:
    """
    Insert fade-in, solid and fade-out color functions for each presence interval.

    When the two fades would overlap they meet at the midpoint of the interval
    and no solid segment is inserted.
    """
    for interval in presence_intervals(presence):
        end_fade_in = interval.left + fading_duration
        start_fade_out = interval.right - fading_duration
        if start_fade_out <= end_fade_in:
            end_fade_in = (interval.left + interval.right) / 2.0
            start_fade_out = end_fade_in

        color_evolution.insert(
            FunctionRect(Interval.closed(interval.left, end_fade_in), TRANSPARENT, color, Interpolation.SMOOTH_STEP)
        )
        if end_fade_in != start_fade_out:
            color_evolution.insert(FunctionConst(Interval.left_closed(end_fade_in, start_fade_out), color))
        color_evolution.insert(
            FunctionRect(
                Interval.left_closed(start_fade_out, interval.right), color, TRANSPARENT, Interpolation.SMOOTH_STEP
            )
        )


def merge_and_color(
    graph: DyGraph,
    data_end_time: float,
    mode: PresenceMode,
    node_color: Color,
    edge_color: Color,
    fading_duration: float,
) -> None:
    """Merge presences, then give every node and edge a fading color timeline."""
    merge_presence_functions(graph, data_end_time, mode)
    for node in graph.nodes.values():
        set_appearance(node.presence, node.color, node_color, fading_duration)
    for edge in graph.edges.values():
        set_appearance(edge.presence, edge.color, edge_color, fading_duration)
