"""
Space-time cube animation package.

This package provides:
- Event protocol describing the frames of an animated dynamic graph
- Adapters streaming events from a dynamic graph, from a layout run, or from
  a JSONL file, and writing events back to JSONL
- Frame state snapshots with diffs, for consumers that only redraw changes
"""

__all__ = [
    # Subpackages will be imported lazily by users
]
