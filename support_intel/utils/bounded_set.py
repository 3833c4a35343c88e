"""
Insertion-ordered set with bulk eviction of the oldest entries
"""
from collections import OrderedDict
from typing import Hashable, Iterator, Optional


class BoundedOrderedSet:
    """
    Best-effort dedup guard for notifications.

    Adding never evicts on its own; the owner calls evict_to_bound()
    once per batch so a whole batch is deduplicated against the same view.
    """

    def __init__(self, bound: int = 1000):
        if bound < 0:
            raise ValueError("bound must be non-negative")
        self.bound = bound
        self._items: "OrderedDict[Hashable, None]" = OrderedDict()

    def contains(self, item: Hashable) -> bool:
        return item in self._items

    def add(self, item: Hashable) -> None:
        # Re-adding keeps the original insertion position
        if item not in self._items:
            self._items[item] = None

    def evict_to_bound(self, bound: Optional[int] = None) -> int:
        """
        Evict oldest entries until at most `bound` remain

        Returns:
            Number of evicted entries
        """
        limit = self.bound if bound is None else bound
        evicted = 0
        while len(self._items) > limit:
            self._items.popitem(last=False)
            evicted += 1
        return evicted

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, item: Hashable) -> bool:
        return self.contains(item)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._items)
