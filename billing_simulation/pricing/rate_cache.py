"""
Rate Cache - tier 1 of the reference rate lookup.

An injected, append-only map from base code to reference rate. Only tier-3
(oracle) answers are written here. Writes are idempotent: the first value
stored for a code wins, so concurrent readers never observe a rate change.
"""

from typing import Dict, Iterator, Optional


class RateCache:
    """
    Append-only reference rate cache.

    Example:
        >>> cache = RateCache()
        >>> cache.put("99213", 92.05)
        >>> cache.put("99213", 120.00)   # ignored, first write wins
        >>> cache.get("99213")
        92.05
    """

    def __init__(self, initial: Optional[Dict[str, float]] = None):
        self._rates: Dict[str, float] = dict(initial or {})

    def get(self, code: str) -> Optional[float]:
        return self._rates.get(code)

    def put(self, code: str, rate: float) -> float:
        """Store a rate unless one exists; return the stored value."""
        return self._rates.setdefault(code, rate)

    def __contains__(self, code: str) -> bool:
        return code in self._rates

    def __len__(self) -> int:
        return len(self._rates)

    def __iter__(self) -> Iterator[str]:
        return iter(dict(self._rates))

    def snapshot(self) -> Dict[str, float]:
        return dict(self._rates)
