"""
Timelines of attribute values.

An `Evolution` holds a default value and a set of time-stamped functions.
Sampling it at a time returns the value of the function covering that time,
or the default when no function does. Functions may overlap while a timeline
is being assembled; the most recently inserted covering function wins, and
`merge_functions` produces the disjoint view of boolean presences.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from bisect import bisect_right
from dataclasses import dataclass
from typing import Any, Generic, Iterator, List, Optional, TypeVar

import numpy as np

from .enums import Interpolation
from .interval import Interval

V = TypeVar("V")


def blend(start: Any, end: Any, fraction: float) -> Any:
    """Interpolate between two numbers, numpy vectors or RGBA tuples."""
    if isinstance(start, tuple):
        return tuple(s + (e - s) * fraction for s, e in zip(start, end))
    if isinstance(start, np.ndarray) or isinstance(end, np.ndarray):
        a = np.asarray(start, dtype=float)
        b = np.asarray(end, dtype=float)
        return a + (b - a) * fraction
    return start + (end - start) * fraction


class Function(ABC, Generic[V]):
    """A value defined over an `Interval`."""

    interval: Interval

    @abstractmethod
    def value_at(self, t: float) -> V:
        ...

    @property
    def left(self) -> float:
        return self.interval.left


@dataclass(frozen=True)
class FunctionConst(Function[V]):
    """A constant value over its interval."""

    interval: Interval
    value: V

    def value_at(self, t: float) -> V:
        return self.value


@dataclass(frozen=True)
class FunctionRect(Function[V]):
    """
    A transition from `start_value` at the left bound to `end_value` at the
    right bound. Zero-width transitions evaluate to `end_value`.
    """

    interval: Interval
    start_value: V
    end_value: V
    interpolation: Interpolation = Interpolation.LINEAR

    def value_at(self, t: float) -> V:
        width = self.interval.width
        fraction = 1.0 if width == 0 else (t - self.interval.left) / width
        return blend(self.start_value, self.end_value, self.interpolation.apply(fraction))


class Evolution(Generic[V]):
    """
    Default-valued timeline of functions kept in ascending left-bound order.

    Args:
        default_value: value returned where no function is defined
        functions: optional initial functions, inserted in the given order
    """

    def __init__(self, default_value: V, functions: Optional[List[Function[V]]] = None):
        self._default = default_value
        self._functions: List[Function[V]] = []
        self._lefts: List[float] = []
        self._seqs: List[int] = []
        self._next_seq = 0
        self._disjoint = True
        for fn in functions or []:
            self.insert(fn)

    @property
    def default_value(self) -> V:
        return self._default

    def insert(self, function: Function[V]) -> None:
        """Add a function. Overlaps are kept; the latest insertion wins when sampling."""
        idx = bisect_right(self._lefts, function.interval.left)
        if self._disjoint:
            # Disjoint and sorted by left means sorted by right too, so only
            # the neighbours (and entries sharing their left bound) can overlap.
            candidates = [idx] if idx < len(self._functions) else []
            j = idx - 1
            while j >= 0:
                candidates.append(j)
                if j == 0 or self._lefts[j - 1] != self._lefts[j]:
                    break
                j -= 1
            if any(self._functions[j].interval.overlaps(function.interval) for j in candidates):
                self._disjoint = False
        self._functions.insert(idx, function)
        self._lefts.insert(idx, function.interval.left)
        self._seqs.insert(idx, self._next_seq)
        self._next_seq += 1

    def clear(self) -> None:
        self._functions.clear()
        self._lefts.clear()
        self._seqs.clear()
        self._disjoint = True

    def is_disjoint(self) -> bool:
        return self._disjoint

    def value_at(self, t: float) -> V:
        k = bisect_right(self._lefts, t)
        if self._disjoint:
            for i in range(k - 1, -1, -1):
                interval = self._functions[i].interval
                if interval.contains(t):
                    return self._functions[i].value_at(t)
                # Rights are sorted among disjoint intervals, except between a
                # zero-width interval and another starting at the same time.
                if interval.right < t and (i == 0 or self._lefts[i - 1] != interval.left):
                    break
            return self._default

        best = None
        best_seq = -1
        for i in range(k):
            fn = self._functions[i]
            if self._seqs[i] > best_seq and fn.interval.contains(t):
                best, best_seq = fn, self._seqs[i]
        return best.value_at(t) if best is not None else self._default

    def first_function(self) -> Function[V]:
        if not self._functions:
            raise IndexError("Evolution has no functions")
        return self._functions[0]

    def copy(self) -> "Evolution[V]":
        clone: Evolution[V] = Evolution(self._default)
        ordered = sorted(zip(self._seqs, self._functions), key=lambda pair: pair[0])
        for _, fn in ordered:
            clone.insert(fn)
        return clone

    def __iter__(self) -> Iterator[Function[V]]:
        return iter(list(self._functions))

    def __len__(self) -> int:
        return len(self._functions)

    def __repr__(self) -> str:
        parts = ", ".join(str(fn.interval) for fn in self._functions)
        return f"Evolution(default={self._default!r}, functions=[{parts}])"


def merge_functions(evolution: Evolution) -> Evolution:
    """
    Coalesce the presence of `evolution` into disjoint true intervals.

    The timeline is resolved the way `value_at` resolves it, so a later
    function overriding an earlier one is honoured: the bounds of every
    function split the time axis into points and open gaps, each piece is
    sampled once, and the true pieces are joined. Returns a new Evolution
    with the same default whose functions are the minimal set of
    `FunctionConst(interval, True)`. The input is not modified.
    """
    bounds = sorted({b for fn in evolution for b in (fn.interval.left, fn.interval.right)})
    pieces: List[Interval] = []
    for i, bound in enumerate(bounds):
        if bool(evolution.value_at(bound)):
            pieces.append(Interval.closed(bound, bound))
        if i + 1 < len(bounds):
            following = bounds[i + 1]
            if bool(evolution.value_at((bound + following) / 2.0)):
                pieces.append(Interval.open(bound, following))

    merged: List[Interval] = []
    for interval in pieces:
        if merged and merged[-1].touches(interval):
            merged[-1] = merged[-1].union(interval)
        else:
            merged.append(interval)
    return Evolution(evolution.default_value, [FunctionConst(iv, True) for iv in merged])


def presence_intervals(evolution: Evolution) -> List[Interval]:
    """Disjoint intervals over which a presence evolution is true."""
    return [fn.interval for fn in merge_functions(evolution)]
