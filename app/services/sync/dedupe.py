"""First-wins deduplication by match id.

Upstream feeds (and occasionally the store, after a race between two writers)
can contain several entries for the same match. Only the first entry per key
is kept; entries whose key is empty or a stringified null are dropped.

    for match in dedupe(records, key_of=lambda m: m.match_id):
        ...

The result is lazy and restartable: each iteration walks the input again
from the start with a fresh seen-set.
"""
from typing import Any, Callable, Generic, Iterable, Iterator, Optional, TypeVar

T = TypeVar("T")

INVALID_KEYS = frozenset({"", "null", "undefined", "none"})


def normalize_key(value: Any) -> Optional[str]:
    """Return the key as a stripped string, or None if it is not usable."""
    if value is None:
        return None
    key = str(value).strip()
    if key.lower() in INVALID_KEYS:
        return None
    return key


class Deduplicated(Generic[T]):
    """Lazy, restartable view of `records` with repeated keys removed."""

    def __init__(self, records: Iterable[T], key_of: Callable[[T], Any]):
        self._records = records
        self._key_of = key_of

    def __iter__(self) -> Iterator[T]:
        seen = set()
        for record in self._records:
            key = normalize_key(self._key_of(record))
            if key is None or key in seen:
                continue
            seen.add(key)
            yield record


def dedupe(records: Iterable[T], key_of: Callable[[T], Any]) -> Deduplicated[T]:
    """
    Drop records whose key was already seen, keeping input order.

    Args:
        records: Re-iterable sequence (list, tuple, query result)
        key_of: Extracts the identifying key from a record

    Returns:
        Iterable yielding the first record for each valid key
    """
    return Deduplicated(records, key_of)


def match_id_of(item: Any) -> Any:
    """Key extractor that works for stored records and raw provider dicts."""
    if isinstance(item, dict):
        for field in ("match_id", "id", "matchId"):
            value = item.get(field)
            if normalize_key(value) is not None:
                return value
        return None
    return getattr(item, "match_id", None)
