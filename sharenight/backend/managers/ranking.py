"""Leaderboard ordering rules.

Pure functions over ordered sequences; persistence lives in
:mod:`sharenight.backend.managers.screenshots`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

T = TypeVar("T")


def reorder(items: Sequence[T], source_id: str, target_id: str, *, key: Callable[[T], str]) -> list[T]:
    """Move the item *source_id* onto the position of *target_id*.

    Standard list-reorder semantics: moving down inserts the source right
    after the target, moving up inserts it right before.  Unknown ids or a
    drop onto itself return an unchanged copy.
    """
    ids = [key(item) for item in items]
    if source_id == target_id or source_id not in ids or target_id not in ids:
        return list(items)

    from_index = ids.index(source_id)
    to_index = ids.index(target_id)
    result = list(items)
    moved = result.pop(from_index)
    # After the pop, the target sits at to_index - 1 when moving down; inserting
    # at to_index therefore lands right after it.
    result.insert(to_index, moved)
    return result


def assign_ranks(ids: Iterable[str]) -> dict[str, int]:
    """Map each id to its 1-based position."""
    return {item_id: position for position, item_id in enumerate(ids, start=1)}


def next_rank(ranks: Iterable[int]) -> int:
    """Rank for a newcomer: one past the current maximum (1 for an empty board)."""
    return max(ranks, default=0) + 1


def is_contiguous(ranks: Iterable[int]) -> bool:
    """True if *ranks* is exactly a permutation of ``1..N``."""
    ordered = sorted(ranks)
    return ordered == list(range(1, len(ordered) + 1))
