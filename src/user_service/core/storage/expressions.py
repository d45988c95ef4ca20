"""Conditions and update actions for the table store.

Both are plain values. ``evaluate_condition`` and ``apply_update`` are the only
interpreters, and every backend uses them, so the in-memory store used in tests
and the Redis store agree on conditional semantics.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

Item = dict[str, Any]


@dataclass(frozen=True)
class Condition:
    """Conjunction of predicates over the item currently stored at a key.

    Attributes:
        item_absent: require that no item exists at the key.
        version_equals: require an item whose ``version`` equals this value.
        attribute_not_equals: require ``item[name] != value`` for each entry.
    """

    item_absent: bool = False
    version_equals: int | None = None
    attribute_not_equals: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def absent(cls) -> Condition:
        return cls(item_absent=True)

    @classmethod
    def version(cls, expected: int) -> Condition:
        return cls(version_equals=expected)

    def and_not_equal(self, name: str, value: Any) -> Condition:
        return Condition(
            item_absent=self.item_absent,
            version_equals=self.version_equals,
            attribute_not_equals=self.attribute_not_equals + ((name, value),),
        )


def evaluate_condition(condition: Condition | None, current: Item | None) -> bool:
    """Return True if ``condition`` holds for the stored item (or its absence)."""
    if condition is None:
        return True

    if condition.item_absent:
        return current is None

    if condition.version_equals is not None:
        if current is None or current.get("version") != condition.version_equals:
            return False

    for name, value in condition.attribute_not_equals:
        # A missing item has nothing to compare against; the predicate fails.
        if current is None or current.get(name) == value:
            return False

    return True


@dataclass(frozen=True)
class ItemUpdate:
    """SET, REMOVE and ADD actions applied to one item in a single step."""

    set: dict[str, Any] = field(default_factory=dict)
    remove: tuple[str, ...] = ()
    add: dict[str, int] = field(default_factory=dict)

    def attribute_names(self) -> set[str]:
        return set(self.set) | set(self.remove) | set(self.add)


def apply_update(current: Item, update: ItemUpdate) -> Item:
    """Return a new item with ``update`` applied to ``current``."""
    overlap = (set(update.set) & set(update.remove)) | (set(update.add) & set(update.set))
    if overlap:
        raise ValueError(f"Conflicting actions for attributes: {sorted(overlap)}")

    item = copy.deepcopy(current)
    for name, value in update.set.items():
        item[name] = value
    for name in update.remove:
        item.pop(name, None)
    for name, delta in update.add.items():
        item[name] = item.get(name, 0) + delta
    return item


@dataclass(frozen=True)
class Put:
    """A whole-item write inside a transaction."""

    item: Item
    condition: Condition | None = None

    @property
    def key(self) -> tuple[str, str]:
        return self.item["PK"], self.item["SK"]
