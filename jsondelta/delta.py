"""Structural delta between two preprocessed documents."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Union

from .keypath import resolve_key, validate_key_path
from .models import MISSING, ArrayStrategy, DiffOptions
from .utils import format_key_value, is_missing, scrub_missing, values_equal


@dataclass(frozen=True)
class Unchanged:
    pass


UNCHANGED = Unchanged()


@dataclass(frozen=True)
class Added:
    value: Any


@dataclass(frozen=True)
class Removed:
    value: Any


@dataclass(frozen=True)
class Modified:
    before: Any
    after: Any


@dataclass(frozen=True)
class ObjectDelta:
    """Per-member changes of an object, as (key, delta) pairs."""
    changes: tuple


@dataclass(frozen=True)
class ArrayChange:
    """
    One changed array element.

    ``segment`` is the rendered bracket part of the element path, ``[3]``
    for positional elements or ``[?(@.id==1)]`` for keyed ones.
    """
    segment: str
    delta: "Delta"
    moved_from: Optional[int] = None


@dataclass(frozen=True)
class ArrayDelta:
    changes: tuple
    strategy: ArrayStrategy
    moves: tuple = ()


Delta = Union[Unchanged, Added, Removed, Modified, ObjectDelta, ArrayDelta]


@dataclass(frozen=True)
class DeltaConfig:
    """Per-call settings for a delta computation."""
    strategy: ArrayStrategy = ArrayStrategy.INDEX
    key_path: Optional[str] = None

    @classmethod
    def from_options(cls, options: DiffOptions) -> DeltaConfig:
        """
        Derive the effective config. A keyed strategy without a usable key
        path falls back to positional matching.
        """
        key_path = options.array_key_path
        if (
            options.array_strategy is ArrayStrategy.KEYED
            and key_path
            and validate_key_path(key_path) is None
        ):
            return cls(strategy=ArrayStrategy.KEYED, key_path=key_path)
        return cls()


def is_unchanged(delta: Delta) -> bool:
    return isinstance(delta, Unchanged)


def _is_container(value: Any) -> bool:
    return isinstance(value, (dict, list))


class DeltaStrategy(ABC):
    """
    Computes deltas for any JSON value; subclasses decide how array
    elements are paired.
    """

    def diff(self, a: Any, b: Any, config: DeltaConfig) -> Delta:
        a_missing = is_missing(a)
        b_missing = is_missing(b)
        if a_missing and b_missing:
            return UNCHANGED
        if a_missing:
            return Added(scrub_missing(b))
        if b_missing:
            return Removed(scrub_missing(a))

        if isinstance(a, dict) and isinstance(b, dict):
            return self.diff_objects(a, b, config)

        if isinstance(a, list) and isinstance(b, list):
            return self.diff_arrays(a, b, config)

        if _is_container(a) or _is_container(b):
            # Type change involving a container
            return Modified(scrub_missing(a), scrub_missing(b))

        if values_equal(a, b):
            return UNCHANGED
        return Modified(a, b)

    def diff_objects(self, a: dict, b: dict, config: DeltaConfig) -> Delta:
        """Compare two objects: keys of ``a`` in order, then keys only in ``b``."""
        changes = []
        for key, value in a.items():
            child = self.diff(value, b.get(key, MISSING), config)
            if not is_unchanged(child):
                changes.append((key, child))

        for key, value in b.items():
            if key in a:
                continue
            child = self.diff(MISSING, value, config)
            if not is_unchanged(child):
                changes.append((key, child))

        if not changes:
            return UNCHANGED
        return ObjectDelta(changes=tuple(changes))

    @abstractmethod
    def diff_arrays(self, a: list, b: list, config: DeltaConfig) -> Delta:
        """Compare two arrays."""


def _index_segment(i: int) -> str:
    return f"[{i}]"


class IndexDeltaStrategy(DeltaStrategy):
    """Pairs array elements by position. Surplus elements are added or removed."""

    def diff_arrays(self, a: list, b: list, config: DeltaConfig) -> Delta:
        changes = []
        for i in range(max(len(a), len(b))):
            old = a[i] if i < len(a) else MISSING
            new = b[i] if i < len(b) else MISSING
            child = self.diff(old, new, config)
            if not is_unchanged(child):
                changes.append(ArrayChange(_index_segment(i), child))

        if not changes:
            return UNCHANGED
        return ArrayDelta(changes=tuple(changes), strategy=ArrayStrategy.INDEX)


def _key_selector(key_path: str) -> str:
    """Key path as written after '@.' in a filter segment."""
    if key_path.startswith("$."):
        return key_path[2:]
    return key_path


class KeyedDeltaStrategy(DeltaStrategy):
    """
    Pairs array elements by the value at ``config.key_path``.

    Elements without a key, or whose key was already taken earlier in the
    same array, are paired by their own position instead.
    """

    def _index_keys(self, items: list, key_path: str) -> tuple[dict, list]:
        keyed: dict[str, tuple[int, Any]] = {}
        keyless: list[int] = []
        for i, item in enumerate(items):
            key = resolve_key(item, key_path)
            if is_missing(key):
                keyless.append(i)
                continue
            ident = format_key_value(key)
            if ident in keyed:
                keyless.append(i)
                continue
            keyed[ident] = (i, key)
        return keyed, keyless

    def diff_arrays(self, a: list, b: list, config: DeltaConfig) -> Delta:
        key_path = config.key_path
        selector = _key_selector(key_path)
        old_keyed, old_keyless = self._index_keys(a, key_path)
        new_keyed, new_keyless = self._index_keys(b, key_path)

        changes = []
        moves = []

        # Matched and added, in new-array order
        for ident, (new_index, _) in new_keyed.items():
            segment = f"[?(@.{selector}=={ident})]"
            if ident not in old_keyed:
                changes.append(ArrayChange(segment, Added(scrub_missing(b[new_index]))))
                continue

            old_index, _ = old_keyed[ident]
            child = self.diff(a[old_index], b[new_index], config)
            moved = old_index != new_index
            if not is_unchanged(child):
                changes.append(ArrayChange(
                    segment, child, moved_from=old_index if moved else None
                ))
            elif moved:
                moves.append((old_index, new_index))

        # Removed, in old-array order
        for ident, (old_index, _) in old_keyed.items():
            if ident not in new_keyed:
                segment = f"[?(@.{selector}=={ident})]"
                changes.append(ArrayChange(segment, Removed(scrub_missing(a[old_index]))))

        # Elements without a usable key
        old_rest = set(old_keyless)
        new_rest = set(new_keyless)
        for i in sorted(old_rest | new_rest):
            old = a[i] if i in old_rest else MISSING
            new = b[i] if i in new_rest else MISSING
            child = self.diff(old, new, config)
            if not is_unchanged(child):
                changes.append(ArrayChange(_index_segment(i), child))

        if not changes and not moves:
            return UNCHANGED

        strategy = ArrayStrategy.KEYED if (old_keyed or new_keyed) else ArrayStrategy.INDEX
        return ArrayDelta(changes=tuple(changes), strategy=strategy, moves=tuple(moves))


_STRATEGIES: dict[ArrayStrategy, DeltaStrategy] = {
    ArrayStrategy.INDEX: IndexDeltaStrategy(),
    ArrayStrategy.KEYED: KeyedDeltaStrategy(),
}


def get_strategy(config: DeltaConfig) -> DeltaStrategy:
    return _STRATEGIES[config.strategy]


def compute_delta(a: Any, b: Any, config: Optional[DeltaConfig] = None) -> Delta:
    """Compute the delta between two documents."""
    config = config or DeltaConfig()
    return get_strategy(config).diff(a, b, config)
