"""
Tree: Nested Set Operations over a Node Store
=============================================

Every node carries a (left, right) interval; a node's descendants are
exactly the nodes whose intervals lie strictly inside its own:

    1 ┌─ Comment 1 ─────────────────────────────────┐ 8
      2 ┌─ Comment 1.1 ────────────────────────┐ 7
        3 ┌─ Comment 1.1.1 ─┐ 4  5 ┌─ Comment 1.1.2 ─┐ 6

Reads (subtree, path, children, position) are single range queries.
Writes renumber intervals through the ShiftEngine:

┌──────────────┬──────────────────────────────────────────────────────────────┐
│ insert       │ open a 2-wide gap at the parent's right end                   │
│ remove       │ drop the subtree, close its gap                               │
│ move_to      │ park the subtree below zero, close/open the gap it crosses,   │
│              │ place it at the end of the new parent                         │
│ change_scope │ park in the old scope (retagged), close the old gap,          │
│              │ open a gap in the new scope, place                            │
│ move_up/down │ swap two adjacent sibling blocks                              │
└──────────────┴──────────────────────────────────────────────────────────────┘

Concurrency contract: one writer per scope at a time. Each operation reads
boundary values first and then issues several bulk updates; nothing is
rolled back internally, so callers wrap operations in store.transaction()
when a partial failure must be undone.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union
import logging

from .config import TreeConfig
from .constants import ASC, CHILDREN_MODES, DESC, LEAF_WIDTH, MODE_COUNT
from .errors import (
    ConfigurationError,
    InvalidMove,
    NodeNotFound,
    ParentNotFound,
    TreeError,
)
from .nesting import NestedNode, nest
from .scope import Scope, resolve_scope, same_scope
from .shift import ShiftEngine
from .store import Node, NodeStore
from .verify import Finding, Verifier


logger = logging.getLogger(__name__)

NodeRef = Union[Node, Any]


class Tree:
    """
    Nested set service wrapping a NodeStore.

    Usage:
        tree = Tree(store, scope=["image_id"])
        root = tree.insert(store.create(image_id=1))
        child = tree.insert(store.create(image_id=1, parent_id=root.key))
        tree.move(child, 0)
        assert tree.verify(root) == []
    """

    def __init__(self, store: Optional[NodeStore] = None, config: Optional[TreeConfig] = None, **options):
        if store is None:
            raise ConfigurationError("`store` option needs to be defined")
        if config is None:
            config = TreeConfig.from_options(options)
        elif options:
            raise ConfigurationError("Pass either a TreeConfig or options, not both.")

        self.store = store
        self.config = config
        self.shift = ShiftEngine(store, config.left_field, config.right_field)
        self.verifier = Verifier(store, config)

        self._parent = config.parent_field
        self._left = config.left_field
        self._right = config.right_field

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def scope(self, node: Node) -> Scope:
        """Partition key of a node."""
        return resolve_scope(self.config.scope, node)

    @staticmethod
    def _key(ref: NodeRef) -> Any:
        return ref.key if isinstance(ref, Node) else ref

    def _load(self, ref: NodeRef) -> Node:
        """Fresh stored copy of a node."""
        key = self._key(ref)
        stored = self.store.get(key)
        if stored is None:
            raise NodeNotFound(key)
        return stored

    def _load_parent(self, ref: NodeRef) -> Node:
        key = self._key(ref)
        stored = self.store.get(key)
        if stored is None:
            raise ParentNotFound(key, self._parent)
        return stored

    def _bounds(self, node: Node) -> Tuple[int, int]:
        return node[self._left], node[self._right]

    def _sync(self, node: NodeRef, stored: Node):
        """Copy the stored tree columns onto the caller's node object."""
        if not isinstance(node, Node) or node is stored:
            return
        for name in self.config.tree_fields:
            if name in stored:
                node[name] = stored[name]

    def max_right(self, scope: Optional[Scope] = None) -> int:
        """Highest right index in a scope, 0 when the scope is empty."""
        node = self.store.find_one(
            scope, [(self._right, '!=', None)], order_by=[(self._right, DESC)]
        )
        return node[self._right] if node else 0

    def roots(self, scope: Optional[Scope] = None) -> List[Node]:
        """Top-level nodes of a scope, in left order."""
        return self.store.find_many(
            scope, [(self._parent, '=', None)], order_by=[(self._left, ASC)]
        )

    # -------------------------------------------------------------------------
    # Index Allocation
    # -------------------------------------------------------------------------

    def insert(self, node: Node) -> Node:
        """
        Store a new node as the last child of its parent, or as the last
        top-level node of its scope when it has no parent.

        Children take their scope attributes from the parent.

        Raises:
            ParentNotFound: parent key doesn't resolve (nothing is shifted)
            ScopeAttributeMissing: a root lacks a scope attribute
            TreeError: the node is already stored
        """
        if node.key is not None and self.store.get(node.key) is not None:
            raise TreeError(f"Node `{node.key}` is already stored; use update() or move_to().")

        parent_key = node.get(self._parent)
        if parent_key is not None:
            parent = self._load_parent(parent_key)
            scope = self.scope(parent)
            boundary = parent[self._right]
            self.shift.from_boundary(boundary, LEAF_WIDTH, scope)
            node.set({self._left: boundary, self._right: boundary + 1})
        else:
            scope = self.scope(node)
            top = self.max_right(scope)
            node.set({self._parent: None, self._left: top + 1, self._right: top + 2})

        node.set(scope)
        self.store.save(node)
        logger.info("inserted node %s at [%d, %d] in %s",
                    node.key, node[self._left], node[self._right], scope)
        return node

    def update(self, node: Node) -> Node:
        """
        Persist a stored node's own fields without moving it.

        Stored tree columns (parent, left, right, scope) win over any
        in-memory change to them.
        """
        stored = self._load(node)
        self._sync(node, stored)
        return self.store.save(node)

    def save(self, node: Node) -> Node:
        """
        Insert, move or update a node depending on what changed.

        - not stored yet        → insert
        - scope or parent moved → relocate (move_to semantics)
        - otherwise             → update
        """
        if node.key is None or self.store.get(node.key) is None:
            return self.insert(node)

        parent_key = node.get(self._parent)
        if parent_key is not None and parent_key == node.key:
            raise InvalidMove(node.key, parent_key)

        stored = self._load(node)
        target_scope = None if parent_key is not None else self.scope(node)
        changed_scope = target_scope is not None and not same_scope(target_scope, self.scope(stored))
        if changed_scope or parent_key != stored.get(self._parent):
            self._relocate(node, parent_key, target_scope)
        return self.update(node)

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    def remove(self, node: NodeRef) -> int:
        """
        Delete a node with its whole subtree and close the gap.

        Returns:
            Number of nodes deleted
        """
        stored = self._load(node)
        scope = self.scope(stored)
        left, right = self._bounds(stored)

        removed = 0
        if right - left > 1:
            removed = self.store.delete_many(
                scope, [(self._left, '>', left), (self._right, '<', right)]
            )
        removed += self.store.delete_many(scope, [(self.store.key_field, '=', stored.key)])
        self.shift.from_boundary(right, -(right - left + 1), scope)

        logger.info("removed node %s and %d descendant(s) from %s", stored.key, removed - 1, scope)
        return removed

    # -------------------------------------------------------------------------
    # Reparenting
    # -------------------------------------------------------------------------

    def move_to(self, node: NodeRef, parent: Optional[NodeRef] = None) -> NodeRef:
        """
        Make node the last child of parent (or the last top-level node of
        its scope when parent is None). Crosses scopes when the parent
        lives in another one.

        Raises:
            InvalidMove: parent is the node itself or one of its descendants
            ParentNotFound: parent doesn't resolve
        """
        parent_key = self._key(parent) if parent is not None else None
        return self._relocate(node, parent_key, None)

    def change_scope(self, node: NodeRef, **values) -> NodeRef:
        """Move a node with its subtree to the end of the top level of another scope."""
        stored = self._load(node)
        unknown = set(values) - set(self.config.scope.attributes)
        if unknown:
            raise TreeError(f"Not scope attributes: {sorted(unknown)}")
        target = stored.copy().set(values)
        return self._relocate(node, None, self.scope(target))

    def _relocate(self, node: NodeRef, parent_key: Any, target_scope: Optional[Scope]) -> NodeRef:
        stored = self._load(node)
        old_scope = self.scope(stored)
        parent = self._load_parent(parent_key) if parent_key is not None else None
        if parent is not None:
            target_scope = self.scope(parent)
        elif target_scope is None:
            target_scope = old_scope

        if same_scope(old_scope, target_scope):
            if parent_key == stored.get(self._parent):
                self._sync(node, stored)
                return node
            self._check_cycle(stored, parent)
            self._move_within(stored, parent, old_scope)
        else:
            self._move_across(stored, parent, old_scope, target_scope)

        self._sync(node, self._load(stored))
        logger.info("moved node %s under %s in %s", stored.key, parent_key, target_scope)
        return node

    def _check_cycle(self, stored: Node, parent: Optional[Node]):
        if parent is None:
            return
        left, right = self._bounds(stored)
        if parent.key == stored.key or (left < parent[self._left] and parent[self._right] < right):
            raise InvalidMove(stored.key, parent.key)

    def _move_within(self, stored: Node, parent: Optional[Node], scope: Scope):
        left, right = self._bounds(stored)
        span = right - left
        if parent is not None:
            boundary = parent[self._right]
        else:
            boundary = self.max_right(scope) + 1

        self.shift.park(left, right, scope)
        if right < boundary:
            # Moving forward: close the hole behind the block
            self.shift.between(right + 1, boundary - 1, -(span + 1), scope)
            offset = boundary - right - 1
        else:
            # Moving backward: open room in front of the old position
            self.shift.between(boundary, left - 1, span + 1, scope)
            offset = boundary - left
        self.shift.unpark(span, right + offset, scope)

        stored.set({
            self._left: left + offset,
            self._right: right + offset,
            self._parent: parent.key if parent is not None else None,
        })
        self.store.save(stored)

    def _move_across(self, stored: Node, parent: Optional[Node], old_scope: Scope, new_scope: Scope):
        left, right = self._bounds(stored)
        span = right - left

        self.shift.park(left, right, old_scope, assign=new_scope)
        self.shift.from_boundary(right, -(span + 1), old_scope)

        if parent is not None:
            boundary = parent[self._right]
            self.shift.from_boundary(boundary, span + 1, new_scope)
        else:
            boundary = self.max_right(new_scope) + 1
        self.shift.unpark(span, boundary + span, new_scope)

        stored.set(new_scope)
        stored.set({
            self._left: boundary,
            self._right: boundary + span,
            self._parent: parent.key if parent is not None else None,
        })
        self.store.save(stored)

    # -------------------------------------------------------------------------
    # Sibling Order
    # -------------------------------------------------------------------------

    def move_down(self, node: NodeRef) -> bool:
        """Swap node with its next sibling; no-op for the last sibling."""
        stored = self._load(node)
        scope = self.scope(stored)
        left, right = self._bounds(stored)
        following = self.store.find_one(scope, [
            (self._parent, '=', stored.get(self._parent)),
            (self._left, '=', right + 1),
        ])
        if following is None:
            return True

        width = right - left + 1
        next_left, next_right = self._bounds(following)
        self.shift.park(left, right, scope)
        self.shift.between(next_left, next_right, -width, scope)
        self.shift.unpark(width - 1, right + next_right - next_left + 1, scope)

        self._sync(node, self._load(stored))
        return True

    def move_up(self, node: NodeRef) -> bool:
        """Swap node with its previous sibling; no-op for the first sibling."""
        stored = self._load(node)
        scope = self.scope(stored)
        left, right = self._bounds(stored)
        previous = self.store.find_one(scope, [
            (self._parent, '=', stored.get(self._parent)),
            (self._right, '=', left - 1),
        ])
        if previous is None:
            return True

        width = right - left + 1
        prev_left, prev_right = self._bounds(previous)
        self.shift.park(left, right, scope)
        self.shift.between(prev_left, prev_right, width, scope)
        self.shift.unpark(width - 1, right - (prev_right - prev_left + 1), scope)

        self._sync(node, self._load(stored))
        return True

    def move(self, node: NodeRef, position: int, parent: Optional[NodeRef] = None) -> bool:
        """
        Move node to a 0-based position among its siblings, reparenting
        first when parent is given.

        Positions outside [0, sibling_count - 1] are clamped to the
        nearest end. Returns False (and changes nothing) when parent is
        the node itself or one of its descendants.
        """
        if parent is not None:
            try:
                self.move_to(node, parent)
            except InvalidMove as exc:
                logger.info("move rejected: %s", exc)
                return False

        stored = self._load(node)
        current = self.position(stored)
        if current is None:
            return True
        target = max(0, min(position, self._sibling_count(stored) - 1))

        step = self.move_down if target > current else self.move_up
        for _ in range(abs(target - current)):
            step(node)
        return True

    # -------------------------------------------------------------------------
    # Position & Path Queries
    # -------------------------------------------------------------------------

    def _sibling_count(self, stored: Node) -> int:
        return self.store.count(self.scope(stored), [(self._parent, '=', stored.get(self._parent))])

    def position(self, node: NodeRef) -> Optional[int]:
        """0-based position among siblings, None if it can't be located."""
        stored = self._load(node)
        left, right = self._bounds(stored)
        parent_key = stored.get(self._parent)

        if parent_key is None:
            siblings = self.roots(self.scope(stored))
        else:
            parent = self._load_parent(parent_key)
            if left == parent[self._left] + 1:
                return 0
            if right + 1 == parent[self._right]:
                return self.children(parent, recursive=False, mode=MODE_COUNT) - 1
            siblings = self.children(parent, recursive=False)

        for index, sibling in enumerate(siblings):
            if sibling.key == stored.key:
                return index
        return None

    def iter_ancestors(self, node: NodeRef) -> Iterator[Node]:
        """Yield the node, then each ancestor up to the root (one lookup per step)."""
        current = self._load(node)
        seen = set()
        while True:
            if current.key in seen:
                raise TreeError(f"Parent cycle detected at node `{current.key}`.")
            seen.add(current.key)
            yield current
            parent_key = current.get(self._parent)
            if parent_key is None:
                return
            current = self._load_parent(parent_key)

    def path(self, node: NodeRef) -> List[Node]:
        """Nodes from the root down to node (inclusive)."""
        lineage = list(self.iter_ancestors(node))
        lineage.reverse()
        return lineage

    def children(self, node: NodeRef, recursive: Optional[bool] = None, mode: str = "all"):
        """
        Children of a node.

        Args:
            recursive: whole subtree instead of direct children
                       (defaults to the configured value)
            mode: "all" returns nodes in left order, "count" their number

        Returns:
            List of nodes, or an int in count mode
        """
        if mode not in CHILDREN_MODES:
            raise ValueError(f"Unknown children mode: {mode}")
        if recursive is None:
            recursive = self.config.recursive

        stored = self._load(node)
        scope = self.scope(stored)
        left, right = self._bounds(stored)

        if recursive:
            if mode == MODE_COUNT:
                return (right - left - 1) // 2
            where = [(self._left, '>', left), (self._right, '<', right)]
        else:
            where = [(self._parent, '=', stored.key)]

        if mode == MODE_COUNT:
            return self.store.count(scope, where)
        return self.store.find_many(scope, where, order_by=[(self._left, ASC)])

    def subtree(self, node: NodeRef) -> NestedNode:
        """The node with all its descendants attached as nested children."""
        stored = self._load(node)
        nodes = [stored] + self.children(stored, recursive=True)
        return nest(nodes, self._parent)[0]

    # -------------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------------

    def scopes(self) -> List[Scope]:
        """Distinct scopes present in the store, in key order of their first node."""
        spec = self.config.scope
        literals = dict(spec.literals)
        found: Dict[Tuple[Any, ...], Scope] = {}
        for node in self.store.find_many(literals):
            values = tuple(node.get(name) for name in spec.attributes)
            if values not in found:
                scope = dict(zip(spec.attributes, values))
                scope.update(literals)
                found[values] = scope
        return list(found.values())

    def verify(self, target: Union[Node, Mapping[str, Any], None] = None) -> List[Finding]:
        """
        Audit the scope of a node (or an explicit scope mapping).

        Without a target every scope is audited on its own and the
        findings are concatenated in scope order.

        Returns:
            Findings in report order; empty when the tree is valid
        """
        if isinstance(target, Node):
            return self.verifier.verify(self.scope(target))
        if target is not None:
            return self.verifier.verify(dict(target))
        if not self.config.scope:
            return self.verifier.verify({})

        findings: List[Finding] = []
        for scope in self.scopes():
            findings.extend(self.verifier.verify(scope))
        return findings

    def is_valid(self, target: Union[Node, Mapping[str, Any], None] = None) -> bool:
        return not self.verify(target)
