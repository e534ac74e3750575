"""Ordered unique collections for transitive dependency aggregation.

A UniqueSet is built once from direct elements plus the sets of its children
and never changes afterwards. Iteration order is fully determined by the
construction inputs, so two sets built from the same inputs flatten to the
same sequence.

Two merge strategies are supported:

    STABLE       Direct elements first, then each child set in the order it
                 was given. Used where the consumer only cares about
                 membership (crate sets, static libraries, inputs).
    TOPOLOGICAL  Each child set first, then the direct elements, so a
                 dependency always precedes the target that pulled it in.
                 Used for dynamic libraries, where link order matters.

In both strategies the first occurrence of a duplicate wins.
"""

from enum import Enum
from typing import Generic, Iterable, Iterator, Optional, TypeVar

T = TypeVar("T")


class MergeOrder(Enum):
    """Merge strategy for a UniqueSet."""

    STABLE = "stable"
    TOPOLOGICAL = "topological"


class UniqueSet(Generic[T]):
    """Immutable, deduplicated, deterministically ordered collection.

    Elements must be hashable.

    Example:
        >>> c = UniqueSet(["libc.so"], order=MergeOrder.TOPOLOGICAL)
        >>> b = UniqueSet(["libb.so"], transitive=[c], order=MergeOrder.TOPOLOGICAL)
        >>> UniqueSet(["liba.so"], transitive=[b], order=MergeOrder.TOPOLOGICAL).to_list()
        ['libc.so', 'libb.so', 'liba.so']
    """

    __slots__ = ("_items", "_order")

    def __init__(
        self,
        direct: Iterable[T] = (),
        transitive: Iterable["UniqueSet[T]"] = (),
        order: MergeOrder = MergeOrder.STABLE,
    ) -> None:
        direct_items = tuple(direct)
        children = tuple(transitive)

        if order is MergeOrder.TOPOLOGICAL:
            sequences: list[Iterable[T]] = [child._items for child in children]
            sequences.append(direct_items)
        else:
            sequences = [direct_items]
            sequences.extend(child._items for child in children)

        seen: dict[T, None] = {}
        for sequence in sequences:
            for item in sequence:
                if item not in seen:
                    seen[item] = None

        self._items: tuple[T, ...] = tuple(seen)
        self._order = order

    @property
    def order(self) -> MergeOrder:
        """Merge strategy this set was built with."""
        return self._order

    def to_list(self) -> list[T]:
        """Flatten to a list."""
        return list(self._items)

    def union(self, *others: "UniqueSet[T]", order: Optional[MergeOrder] = None) -> "UniqueSet[T]":
        """Return a new set containing this set followed by ``others``."""
        return UniqueSet(transitive=(self,) + others, order=order or self._order)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __repr__(self) -> str:
        return f"UniqueSet({list(self._items)!r}, order={self._order.value})"
