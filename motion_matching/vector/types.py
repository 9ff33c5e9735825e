"""
Result and predicate types of the spatial indexes.
"""

from typing import NamedTuple


class Neighbor(NamedTuple):
    """One search hit: the database row and its distance to the query."""

    row: int
    distance: float


class CategoryPredicate:
    """Accepts rows whose categories are a subset of ``include`` and disjoint from ``exclude``."""

    MASK_64 = (1 << 64) - 1

    def __init__(self, include: int, exclude: int = 0):
        self.include = int(include) & self.MASK_64
        self.exclude = int(exclude) & self.MASK_64

    def accepts(self, category: int) -> bool:
        category = int(category) & self.MASK_64
        return (category & self.include) == category and (category & self.exclude) == 0

    def __call__(self, row: int, category: int) -> bool:
        return self.accepts(category)

    def __repr__(self):
        return f"CategoryPredicate(include={self.include:#x}, exclude={self.exclude:#x})"
