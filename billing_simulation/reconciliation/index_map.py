"""
Index Map - explicit old → new line index translation.

Every structural edit of a bill's line list (removal, reordering,
insertion) produces an IndexMap. Ground-truth references are rewritten
through it; a reference to a removed line becomes a DeletedLine marker.

Lines are never re-matched by value: two lines with the same code and
date are indistinguishable by content, but not by position.

Example:
    >>> m = IndexMap.from_kept(4, kept=[0, 2, 3])   # line 1 removed
    >>> m.remap([1, 3])
    [DeletedLine(original_index=1), 2]
"""

from typing import Dict, List

from billing_simulation.core.models import DeletedLine, LineRef


class IndexMap:
    def __init__(self, mapping: Dict[int, LineRef]):
        self._mapping = dict(mapping)

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def identity(cls, size: int) -> "IndexMap":
        return cls({i: i for i in range(size)})

    @classmethod
    def from_kept(cls, size: int, kept: List[int]) -> "IndexMap":
        """
        Map for a filter/reorder step.

        Args:
            size: Number of lines before the step
            kept: Old indices of the surviving lines, in their new order
        """
        mapping: Dict[int, LineRef] = {old: DeletedLine(old) for old in range(size)}
        for new, old in enumerate(kept):
            mapping[old] = new
        return cls(mapping)

    @classmethod
    def insertion(cls, size: int, at: int) -> "IndexMap":
        """Map for inserting one new line at position `at`."""
        return cls({old: (old if old < at else old + 1) for old in range(size)})

    # -------------------------------------------------------------------------
    # Translation
    # -------------------------------------------------------------------------

    def resolve(self, old: int) -> LineRef:
        return self._mapping.get(old, DeletedLine(old))

    def remap(self, refs: List[LineRef]) -> List[LineRef]:
        """Rewrite references; existing DeletedLine markers pass through unchanged."""
        return [ref if isinstance(ref, DeletedLine) else self.resolve(ref) for ref in refs]

    def then(self, later: "IndexMap") -> "IndexMap":
        """Composition: apply this map, then `later`."""
        mapping: Dict[int, LineRef] = {}
        for old, mid in self._mapping.items():
            if isinstance(mid, DeletedLine):
                mapping[old] = mid
            else:
                new = later.resolve(mid)
                mapping[old] = DeletedLine(old) if isinstance(new, DeletedLine) else new
        return IndexMap(mapping)

    @property
    def deleted(self) -> List[int]:
        return sorted(old for old, new in self._mapping.items() if isinstance(new, DeletedLine))

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:
        return f"IndexMap({self._mapping})"
