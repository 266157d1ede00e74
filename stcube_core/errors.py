"""
Exceptions raised by the space-time cube layout system.

Construction problems are reported before any iteration starts, numeric
degeneracies are absorbed locally by the geometry kernel and never raised,
and a non-finite force is treated as a defect of the force that produced it.
"""


class StcubeError(Exception):
    """Base class for all errors raised by stcube."""


class SynchronisationError(StcubeError):
    """Raised when the mirror graph cannot be built from the original graph."""


class LayoutInvariantError(StcubeError, RuntimeError):
    """Raised when a force or a displacement produces a non-finite vector."""


class NoSuchElementError(StcubeError, LookupError):
    """Raised when a requested node, edge, cluster or selection does not exist."""
