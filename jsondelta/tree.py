"""Conversion of deltas into the renderable diff tree."""

from __future__ import annotations

from typing import Optional

from .delta import (
    Added,
    ArrayDelta,
    Delta,
    Modified,
    ObjectDelta,
    Removed,
)
from .models import ArrayStrategy, ChangeKind, DiffNode, DiffNodeMeta
from .utils import join_path, join_segment

# Composite nodes with more children than this are flagged for lazy rendering
TRUNCATION_THRESHOLD = 100


class DiffTreeBuilder:
    """
    Builds a DiffNode tree from a delta.

    Unchanged subtrees are never materialized: only changed members and
    elements become children.
    """

    def __init__(self, default_strategy: ArrayStrategy = ArrayStrategy.INDEX):
        self.default_strategy = default_strategy

    def build(self, delta: Delta) -> DiffNode:
        return self._build(delta, "", None)

    def _build(
        self,
        delta: Delta,
        path: str,
        inherited: Optional[ArrayStrategy],
        moved_from: Optional[int] = None,
    ) -> DiffNode:
        if isinstance(delta, Added):
            node = DiffNode(path=path, kind=ChangeKind.ADDED, after=delta.value)
        elif isinstance(delta, Removed):
            node = DiffNode(path=path, kind=ChangeKind.REMOVED, before=delta.value)
        elif isinstance(delta, Modified):
            node = DiffNode(
                path=path,
                kind=ChangeKind.MODIFIED,
                before=delta.before,
                after=delta.after,
            )
        elif isinstance(delta, ObjectDelta):
            children = [
                self._build(child, join_path(path, key), inherited)
                for key, child in delta.changes
            ]
            node = self._composite(path, children, inherited or self.default_strategy)
        elif isinstance(delta, ArrayDelta):
            children = [
                self._build(
                    change.delta,
                    join_segment(path, change.segment),
                    delta.strategy,
                    change.moved_from,
                )
                for change in delta.changes
            ]
            # Elements whose changes collapsed away still count as moved
            moved_count = len(delta.moves) + sum(
                1 for child in children
                if child.kind is ChangeKind.UNCHANGED
                and child.meta is not None
                and child.meta.moved_from is not None
            )
            node = self._composite(path, children, delta.strategy, moved_count)
        else:
            node = DiffNode(path=path, kind=ChangeKind.UNCHANGED)

        if moved_from is not None:
            if node.meta is None:
                node.meta = DiffNodeMeta()
            node.meta.moved_from = moved_from
        return node

    def _composite(
        self,
        path: str,
        children: list[DiffNode],
        strategy: ArrayStrategy,
        moved_count: int = 0,
    ) -> DiffNode:
        changed = [c for c in children if c.kind is not ChangeKind.UNCHANGED]
        if not changed:
            return DiffNode(path=path, kind=ChangeKind.UNCHANGED)

        meta = DiffNodeMeta(
            count_changed=len(changed),
            is_truncated=len(changed) > TRUNCATION_THRESHOLD,
            array_strategy=strategy,
            moved_count=moved_count,
        )
        return DiffNode(
            path=path,
            kind=ChangeKind.MODIFIED,
            children=changed,
            meta=meta,
        )


def count_nodes(root: DiffNode) -> int:
    """Count every node reachable from root, inclusive."""
    count = 0
    stack = [root]
    while stack:
        node = stack.pop()
        count += 1
        if node.children:
            stack.extend(node.children)
    return count


def build_tree(
    delta: Delta,
    default_strategy: ArrayStrategy = ArrayStrategy.INDEX,
) -> DiffNode:
    """Convenience function to build a tree with a fresh builder."""
    return DiffTreeBuilder(default_strategy).build(delta)
