"""
Time intervals with explicit bound closure.

Naming of the constructors follows the timeline vocabulary used across the
package: `right_closed(a, b)` is the half-open interval ``[a, b)`` used for
consecutive time slices, `left_closed(a, b)` is ``(a, b]``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Interval:
    """
    A time interval between `left` and `right`.

    Zero-width intervals are legal when both bounds are closed (instantaneous
    events). Intervals with ``left > right`` are rejected.
    """

    left: float
    right: float
    left_closed: bool = True
    right_closed: bool = True

    def __post_init__(self):
        if self.left > self.right:
            raise ValueError(f"Ill-formed interval: left bound {self.left} > right bound {self.right}")

    @classmethod
    def closed(cls, left: float, right: float) -> "Interval":
        return cls(float(left), float(right), True, True)

    @classmethod
    def open(cls, left: float, right: float) -> "Interval":
        return cls(float(left), float(right), False, False)

    @classmethod
    def right_closed(cls, left: float, right: float) -> "Interval":
        """Half-open time slice ``[left, right)``."""
        return cls(float(left), float(right), True, False)

    @classmethod
    def left_closed(cls, left: float, right: float) -> "Interval":
        """Half-open time slice ``(left, right]``."""
        return cls(float(left), float(right), False, True)

    @property
    def width(self) -> float:
        return self.right - self.left

    def is_empty(self) -> bool:
        return self.left == self.right and not (self.left_closed and self.right_closed)

    def contains(self, t: float) -> bool:
        if t < self.left or t > self.right:
            return False
        if t == self.left and not self.left_closed:
            return False
        if t == self.right and not self.right_closed:
            return False
        return True

    def __contains__(self, t: float) -> bool:
        return self.contains(t)

    def intersection(self, other: "Interval") -> Optional["Interval"]:
        """Common part of the two intervals, or None when they are disjoint."""
        if self.left > other.left:
            left, left_closed = self.left, self.left_closed
        elif self.left < other.left:
            left, left_closed = other.left, other.left_closed
        else:
            left, left_closed = self.left, self.left_closed and other.left_closed

        if self.right < other.right:
            right, right_closed = self.right, self.right_closed
        elif self.right > other.right:
            right, right_closed = other.right, other.right_closed
        else:
            right, right_closed = self.right, self.right_closed and other.right_closed

        if left > right or (left == right and not (left_closed and right_closed)):
            return None
        return Interval(left, right, left_closed, right_closed)

    def overlaps(self, other: "Interval") -> bool:
        return self.intersection(other) is not None

    def touches(self, other: "Interval") -> bool:
        """True if the union of the two intervals is a single connected interval."""
        if self.overlaps(other):
            return True
        if self.right == other.left:
            return self.right_closed or other.left_closed
        if other.right == self.left:
            return other.right_closed or self.left_closed
        return False

    def union(self, other: "Interval") -> "Interval":
        """Smallest interval covering both; callers check `touches` first."""
        if self.left < other.left:
            left, left_closed = self.left, self.left_closed
        elif self.left > other.left:
            left, left_closed = other.left, other.left_closed
        else:
            left, left_closed = self.left, self.left_closed or other.left_closed

        if self.right > other.right:
            right, right_closed = self.right, self.right_closed
        elif self.right < other.right:
            right, right_closed = other.right, other.right_closed
        else:
            right, right_closed = self.right, self.right_closed or other.right_closed
        return Interval(left, right, left_closed, right_closed)

    def scaled(self, factor: float) -> "Interval":
        return Interval(self.left * factor, self.right * factor, self.left_closed, self.right_closed)

    def __str__(self) -> str:
        return "%s%g, %g%s" % (
            "[" if self.left_closed else "(",
            self.left,
            self.right,
            "]" if self.right_closed else ")",
        )
