"""
Exact-duplicate detection for parsed line items.

Exports that repeat a section (or a paste that includes the same block twice)
produce identical account/amount pairs. Only exact repeats are merged: the
same account with a different amount is a different line.
"""

from dataclasses import dataclass, field
from typing import List, Set, Tuple

from .models import LineItem


@dataclass
class DedupeResult:
    unique: List[LineItem] = field(default_factory=list)
    duplicates: List[LineItem] = field(default_factory=list)


def dedupe_key(item: LineItem) -> Tuple[str, float]:
    return item.account_name.strip().lower(), item.amount


def deduplicate(items: List[LineItem]) -> DedupeResult:
    """Keep the first occurrence of every (name, amount) pair, in order."""
    result = DedupeResult()
    seen: Set[Tuple[str, float]] = set()
    for item in items:
        key = dedupe_key(item)
        if key in seen:
            result.duplicates.append(item)
            continue
        seen.add(key)
        result.unique.append(item)
    return result
