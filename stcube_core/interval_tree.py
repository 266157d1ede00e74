"""
Interval tree for stabbing and overlap queries over time intervals.

The tree is an AVL tree ordered by left bound (ties broken by insertion
order) and augmented with the maximum right bound of each subtree, so that
queries can skip subtrees that end before the queried time.
"""

from __future__ import annotations

from typing import Generic, Iterator, List, Optional, Tuple, TypeVar

from .interval import Interval

T = TypeVar("T")


class _TreeNode(Generic[T]):
    __slots__ = ("interval", "value", "seq", "left", "right", "height", "max_right")

    def __init__(self, interval: Interval, value: T, seq: int):
        self.interval = interval
        self.value = value
        self.seq = seq
        self.left: Optional[_TreeNode[T]] = None
        self.right: Optional[_TreeNode[T]] = None
        self.height = 1
        self.max_right = interval.right

    @property
    def key(self) -> Tuple[float, int]:
        return (self.interval.left, self.seq)


def _height(node) -> int:
    return node.height if node is not None else 0


def _update(node: _TreeNode) -> None:
    node.height = 1 + max(_height(node.left), _height(node.right))
    node.max_right = node.interval.right
    if node.left is not None:
        node.max_right = max(node.max_right, node.left.max_right)
    if node.right is not None:
        node.max_right = max(node.max_right, node.right.max_right)


def _rotate_right(node: _TreeNode) -> _TreeNode:
    pivot = node.left
    node.left = pivot.right
    pivot.right = node
    _update(node)
    _update(pivot)
    return pivot


def _rotate_left(node: _TreeNode) -> _TreeNode:
    pivot = node.right
    node.right = pivot.left
    pivot.left = node
    _update(node)
    _update(pivot)
    return pivot


def _rebalance(node: _TreeNode) -> _TreeNode:
    _update(node)
    balance = _height(node.left) - _height(node.right)
    if balance > 1:
        if _height(node.left.left) < _height(node.left.right):
            node.left = _rotate_left(node.left)
        return _rotate_right(node)
    if balance < -1:
        if _height(node.right.right) < _height(node.right.left):
            node.right = _rotate_right(node.right)
        return _rotate_left(node)
    return node


class IntervalTree(Generic[T]):
    """
    Balanced collection of values keyed by `Interval`.

    Iteration yields values in ascending order of left bound; entries with the
    same left bound keep their insertion order.
    """

    def __init__(self):
        self._root: Optional[_TreeNode[T]] = None
        self._size = 0
        self._seq = 0

    def insert(self, interval: Interval, value: T) -> None:
        if not isinstance(interval, Interval):
            raise TypeError("IntervalTree keys must be Interval instances")
        node = _TreeNode(interval, value, self._seq)
        self._seq += 1
        self._root = self._insert(self._root, node)
        self._size += 1

    def _insert(self, root: Optional[_TreeNode[T]], node: _TreeNode[T]) -> _TreeNode[T]:
        if root is None:
            return node
        if node.key < root.key:
            root.left = self._insert(root.left, node)
        else:
            root.right = self._insert(root.right, node)
        return _rebalance(root)

    # ----- queries -----
    def at(self, t: float) -> List[T]:
        """Stabbing query: values whose interval contains `t`."""
        found: List[T] = []
        self._stab(self._root, t, found)
        return found

    def _stab(self, node: Optional[_TreeNode[T]], t: float, found: List[T]) -> None:
        if node is None or node.max_right < t:
            return
        self._stab(node.left, t, found)
        if node.interval.left > t:
            return
        if node.interval.contains(t):
            found.append(node.value)
        self._stab(node.right, t, found)

    def overlapping(self, interval: Interval) -> List[T]:
        """Overlap query: values whose interval intersects `interval`."""
        found: List[T] = []
        self._overlap(self._root, interval, found)
        return found

    def _overlap(self, node: Optional[_TreeNode[T]], interval: Interval, found: List[T]) -> None:
        if node is None or node.max_right < interval.left:
            return
        self._overlap(node.left, interval, found)
        if node.interval.left > interval.right:
            return
        if node.interval.overlaps(interval):
            found.append(node.value)
        self._overlap(node.right, interval, found)

    # ----- iteration -----
    def items(self) -> Iterator[Tuple[Interval, T]]:
        stack: List[_TreeNode[T]] = []
        node = self._root
        while stack or node is not None:
            while node is not None:
                stack.append(node)
                node = node.left
            node = stack.pop()
            yield node.interval, node.value
            node = node.right

    def __iter__(self) -> Iterator[T]:
        for _, value in self.items():
            yield value

    def __len__(self) -> int:
        return self._size

    @property
    def height(self) -> int:
        return _height(self._root)
