from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar


T = TypeVar("T")


def _check_cap(cap: int) -> None:
    if cap < 1:
        raise ValueError(f"history cap must be >= 1, got {cap}")


def append_message(items: Sequence[T], item: T, cap: int) -> tuple[T, ...]:
    """Append a chat entry while always keeping the first (seed) entry.

    When the buffer is full the oldest entries after the seed are dropped. With
    ``cap == 1`` only the seed survives, so the new entry is discarded.
    """
    _check_cap(cap)
    if not items:
        return (item,)
    if len(items) + 1 <= cap:
        return (*items, item)
    if cap == 1:
        return (items[0],)
    tail = (*items[1:], item)
    return (items[0], *tail[-(cap - 1):])


def append_execution(items: Sequence[T], item: T, cap: int) -> tuple[T, ...]:
    """Sliding window: keep only the most recent ``cap`` entries."""
    _check_cap(cap)
    return (*items, item)[-cap:]
