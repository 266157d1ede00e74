"""
Geometry kernel for the space-time cube layout.

Coordinates are numpy float arrays. The kernel comes in dimensional variants:
`e2d` works on the first two coordinates only (the drawing plane, time
excluded) and `e3d` on the first three. Shorter inputs are padded with zeros,
longer ones are restricted. All comparisons go through an epsilon instead of
exact equality.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Union

import numpy as np

DEFAULT_EPSILON = 1e-6

Vector = Union[np.ndarray, Iterable[float]]


def coords(*values: float) -> np.ndarray:
    """Build a float coordinate array, e.g. ``coords(1, 2, 0)``."""
    return np.array(values, dtype=float)


def restr(vector: Vector, dims: int) -> np.ndarray:
    """Return the first `dims` coordinates of `vector`, padding with zeros."""
    arr = np.asarray(vector, dtype=float).ravel()
    if arr.size < dims:
        arr = np.concatenate([arr, np.zeros(dims - arr.size)])
    return arr[:dims].copy()


def lift(vector: Vector, z: float = 0.0) -> np.ndarray:
    """Turn a planar vector into a 3D one with the given z."""
    out = restr(vector, 3)
    out[2] = z
    return out


@dataclass(frozen=True)
class PointRelation:
    """
    Relation between a point and a segment.

    Attributes:
        closest_point: point of the segment closest to the point
        projection: orthogonal projection on the supporting line, or None when
            the segment is degenerate
        factor: projection parameter along the segment (0 at start, 1 at end)
        is_projection_included: whether the projection falls within the segment
        distance: Euclidean distance between the point and `closest_point`
    """

    closest_point: np.ndarray
    projection: Optional[np.ndarray]
    factor: float
    is_projection_included: bool
    distance: float


class Geom:
    """
    Dimensional geometry kernel.

    Args:
        dims: number of coordinates the kernel operates on
        eps: tolerance used by every "almost" comparison
    """

    def __init__(self, dims: int, eps: float = DEFAULT_EPSILON):
        self.dims = dims
        self.eps = eps

    def with_epsilon(self, eps: float) -> "Geom":
        return Geom(self.dims, eps)

    def _v(self, vector: Vector) -> np.ndarray:
        return restr(vector, self.dims)

    # ----- comparisons -----
    def almost_zero(self, value: Union[float, Vector]) -> bool:
        if np.isscalar(value):
            return abs(float(value)) <= self.eps
        return bool(np.all(np.abs(self._v(value)) <= self.eps))

    def almost_equal(self, a: Union[float, Vector], b: Union[float, Vector]) -> bool:
        if np.isscalar(a) and np.isscalar(b):
            return abs(float(a) - float(b)) <= self.eps
        return self.almost_zero(self._v(a) - self._v(b))

    # ----- vector primitives -----
    def magnitude(self, vector: Vector) -> float:
        return float(np.linalg.norm(self._v(vector)))

    def distance(self, a: Vector, b: Vector) -> float:
        return self.magnitude(self._v(b) - self._v(a))

    def unit_vector(self, vector: Vector) -> np.ndarray:
        """Unit vector with the direction of `vector`, or the zero vector if it is almost zero."""
        v = self._v(vector)
        m = float(np.linalg.norm(v))
        if m <= self.eps:
            return np.zeros(self.dims)
        return v / m

    def between_angle(self, a: Vector, b: Vector) -> float:
        """Angle between two vectors in [0, pi]; 0 if either is almost zero."""
        va, vb = self._v(a), self._v(b)
        ma, mb = float(np.linalg.norm(va)), float(np.linalg.norm(vb))
        if ma <= self.eps or mb <= self.eps:
            return 0.0
        cos = float(np.dot(va, vb)) / (ma * mb)
        return math.acos(max(-1.0, min(1.0, cos)))

    # ----- point / segment -----
    def point_segment_relation(self, point: Vector, seg_start: Vector, seg_end: Vector) -> PointRelation:
        p, s, e = self._v(point), self._v(seg_start), self._v(seg_end)
        direction = e - s
        length_sq = float(np.dot(direction, direction))
        if length_sq <= self.eps * self.eps:
            return PointRelation(s, None, 0.0, False, float(np.linalg.norm(p - s)))

        factor = float(np.dot(p - s, direction)) / length_sq
        projection = s + direction * factor
        included = -self.eps <= factor <= 1.0 + self.eps
        if included:
            closest = projection
        elif factor < 0:
            closest = s
        else:
            closest = e
        return PointRelation(closest, projection, factor, included, float(np.linalg.norm(p - closest)))

    def are_collinear(self, a: Vector, b: Vector, c: Vector) -> bool:
        """True if the three points are collinear in the first two coordinates."""
        pa, pb, pc = restr(a, 2), restr(b, 2), restr(c, 2)
        cross = (pb[0] - pa[0]) * (pc[1] - pb[1]) - (pb[1] - pa[1]) * (pc[0] - pb[0])
        return abs(cross) <= self.eps


e2d = Geom(2)
e3d = Geom(3)


@dataclass(frozen=True)
class Box:
    """Axis-aligned bounding box in 3D."""

    lower: np.ndarray
    upper: np.ndarray

    @classmethod
    def from_points(cls, *points: Vector) -> "Box":
        arr = np.array([restr(p, 3) for p in points])
        return cls(arr.min(axis=0), arr.max(axis=0))

    def expand(self, amount: float) -> "Box":
        return Box(self.lower - amount, self.upper + amount)

    def contains_point(self, point: Vector) -> bool:
        p = restr(point, 3)
        return bool(np.all(p >= self.lower) and np.all(p <= self.upper))

    def contains_box(self, other: "Box") -> bool:
        return bool(np.all(other.lower >= self.lower) and np.all(other.upper <= self.upper))

    def intersects(self, other: "Box") -> bool:
        return bool(np.all(other.upper >= self.lower) and np.all(other.lower <= self.upper))

    @property
    def center(self) -> np.ndarray:
        return (self.lower + self.upper) / 2.0
