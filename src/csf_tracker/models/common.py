"""
Shared helpers for tracker models.
"""

from datetime import datetime, timezone
from typing import Iterable


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def unique_ids(values: Iterable[str]) -> list[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen: set[str] = set()
    result = []
    for value in values:
        if value is None:
            continue
        value = str(value).strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def percentage(part: int, total: int) -> int:
    """Whole percentage of ``part`` in ``total``, halves rounded up."""
    if not total:
        return 0
    return (part * 200 + total) // (2 * total)
