"""Dense integer positions over a group of sibling entities.

Siblings are any objects exposing ``id`` and a writable integer ``position``
(ORM rows in practice). Functions mutate positions in place and return the
siblings whose position changed, so callers know what to persist. Nothing
here touches storage.
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from typing import Protocol, TypeVar

from kanban.errors import IndexOutOfRangeError, InvalidReorderError


class Positioned(Protocol):
    id: Hashable
    position: int


P = TypeVar("P", bound=Positioned)


def append_at(siblings: Sequence[Positioned]) -> int:
    if not siblings:
        return 0
    return max(item.position for item in siblings) + 1


def reorder(siblings: Sequence[P], ordered_ids: Sequence[Hashable]) -> list[P]:
    by_id = {item.id: item for item in siblings}
    if len(ordered_ids) != len(siblings) or len(set(ordered_ids)) != len(ordered_ids):
        raise InvalidReorderError("Ordered ids must list every sibling exactly once")
    if set(ordered_ids) != set(by_id):
        raise InvalidReorderError("Ordered ids do not match the current siblings")

    changed: list[P] = []
    for index, item_id in enumerate(ordered_ids):
        item = by_id[item_id]
        if item.position != index:
            item.position = index
            changed.append(item)
    return changed


def remove_and_compact(siblings: Sequence[P], removed_position: int) -> list[P]:
    changed: list[P] = []
    for item in siblings:
        if item.position > removed_position:
            item.position -= 1
            changed.append(item)
    return changed


def insert_and_shift(siblings: Sequence[P], at_index: int) -> list[P]:
    if not 0 <= at_index <= len(siblings):
        raise IndexOutOfRangeError(f"Index {at_index} is outside [0, {len(siblings)}]")
    changed: list[P] = []
    for item in siblings:
        if item.position >= at_index:
            item.position += 1
            changed.append(item)
    return changed


def move_within_same_group(siblings: Sequence[P], moved: P, target_index: int) -> list[P]:
    if not 0 <= target_index < len(siblings):
        raise IndexOutOfRangeError(f"Index {target_index} is outside [0, {len(siblings)})")
    current = moved.position
    if target_index == current:
        return []

    changed: list[P] = []
    for item in siblings:
        if item is moved:
            continue
        if target_index > current and current < item.position <= target_index:
            item.position -= 1
            changed.append(item)
        elif target_index < current and target_index <= item.position < current:
            item.position += 1
            changed.append(item)
    moved.position = target_index
    changed.append(moved)
    return changed


def is_dense(siblings: Sequence[Positioned]) -> bool:
    return sorted(item.position for item in siblings) == list(range(len(siblings)))


def in_position_order(siblings: Sequence[P]) -> list[P]:
    return sorted(siblings, key=lambda item: item.position)
