"""
Node Store: Range-Queryable Backend for Nested Set Trees
========================================================

Design Principles:
1. The tree algorithm never touches storage directly, only this interface
2. Bulk updates are arithmetic (field += delta) and atomic per call
3. Filters are plain (field, op, value) conditions ANDed with the scope
4. Supports both memory and disk

Architecture:
┌─────────────────────────────────────────────────────────────────────────────┐
│                              NodeStore                                      │
│                                                                             │
│  ┌───────────────────────────────────────────────────────────────────────┐  │
│  │                          Reads                                        │  │
│  │  get(key), find_one / find_many(scope, where, order_by), count        │  │
│  └───────────────────────────────────────────────────────────────────────┘  │
│                                                                             │
│  ┌───────────────────────────────────────────────────────────────────────┐  │
│  │                          Writes                                       │  │
│  │  update(scope, where, field, delta)  →  field += delta on all matches │  │
│  │  delete_many(scope, where), save(node)                                │  │
│  └───────────────────────────────────────────────────────────────────────┘  │
└─────────────────────────────────────────────────────────────────────────────┘

Condition format:
    ("lft", ">=", 3)          lft >= 3
    ("parent_id", "=", None)  parent_id IS NULL

Backends:
- MemoryNodeStore: In-memory (testing/temporary)
- DuckDBNodeStore: Embedded SQL database (see duckdb_store.py)
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
import copy
import logging
import operator

from .constants import ASC, DEFAULT_KEY_FIELD, DESC


logger = logging.getLogger(__name__)


# =============================================================================
# SECTION 1: Node Record and Conditions
# =============================================================================

@dataclass
class Node:
    """
    A stored record seen by the tree.

    The tree only reads and rewrites its own columns (parent, left,
    right, scope attributes); every other column is carried along.
    """
    data: Dict[str, Any] = field(default_factory=dict)
    key_field: str = DEFAULT_KEY_FIELD

    @property
    def key(self) -> Any:
        return self.data.get(self.key_field)

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)

    def set(self, values: Optional[Dict[str, Any]] = None, **kwargs) -> 'Node':
        """Update fields in memory (not persisted until saved)."""
        if values:
            self.data.update(values)
        self.data.update(kwargs)
        return self

    def copy(self) -> 'Node':
        return Node(data=dict(self.data), key_field=self.key_field)

    def __getitem__(self, name: str) -> Any:
        return self.data[name]

    def __setitem__(self, name: str, value: Any):
        self.data[name] = value

    def __contains__(self, name: str) -> bool:
        return name in self.data


Condition = Tuple[str, str, Any]
Order = Sequence[Tuple[str, str]]

OPERATORS = {
    '=': operator.eq,
    '!=': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}


def scope_conditions(scope: Optional[Dict[str, Any]], where: Optional[Sequence[Condition]] = None) -> List[Condition]:
    """Combine a scope mapping and extra conditions into one AND-list."""
    conditions = [(name, '=', value) for name, value in (scope or {}).items()]
    for cond in where or ():
        name, op, _ = cond
        if op not in OPERATORS:
            raise ValueError(f"Unknown operator: {op}")
        conditions.append(tuple(cond))
    return conditions


def check_order(order_by: Optional[Order]) -> List[Tuple[str, str]]:
    """Validate an order_by sequence."""
    checked = []
    for name, direction in order_by or ():
        direction = direction.lower()
        if direction not in (ASC, DESC):
            raise ValueError(f"Unknown sort direction: {direction}")
        checked.append((name, direction))
    return checked


# =============================================================================
# SECTION 2: Abstract Store Interface
# =============================================================================

class NodeStore(ABC):
    """
    Abstract interface for nested set storage.

    Every method taking a scope restricts itself to rows whose scope
    columns equal the given values.
    """

    key_field: str = DEFAULT_KEY_FIELD

    def create(self, data: Optional[Dict[str, Any]] = None, **kwargs) -> Node:
        """Build an unsaved node bound to this store's key field."""
        values = dict(data or {})
        values.update(kwargs)
        return Node(data=values, key_field=self.key_field)

    @abstractmethod
    def get(self, key: Any) -> Optional[Node]:
        """Fetch node by key."""
        pass

    @abstractmethod
    def find_many(
        self,
        scope: Optional[Dict[str, Any]] = None,
        where: Optional[Sequence[Condition]] = None,
        order_by: Optional[Order] = None,
    ) -> List[Node]:
        """Fetch all matching nodes, ordered."""
        pass

    def find_one(
        self,
        scope: Optional[Dict[str, Any]] = None,
        where: Optional[Sequence[Condition]] = None,
        order_by: Optional[Order] = None,
    ) -> Optional[Node]:
        """Fetch the first matching node, or None."""
        nodes = self.find_many(scope, where, order_by)
        return nodes[0] if nodes else None

    @abstractmethod
    def count(
        self,
        scope: Optional[Dict[str, Any]] = None,
        where: Optional[Sequence[Condition]] = None,
    ) -> int:
        """Count matching nodes."""
        pass

    @abstractmethod
    def update(
        self,
        scope: Optional[Dict[str, Any]],
        where: Sequence[Condition],
        field: str,
        delta: int,
        assign: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Apply field += delta to every matching row in one atomic step.

        Args:
            scope: Partition filter
            where: Extra conditions
            field: Numeric column to shift
            delta: Amount to add (may be negative)
            assign: Extra columns set to fixed values on the same rows

        Returns:
            Number of rows updated
        """
        pass

    @abstractmethod
    def delete_many(
        self,
        scope: Optional[Dict[str, Any]],
        where: Sequence[Condition],
    ) -> int:
        """Delete matching rows, return how many were removed."""
        pass

    @abstractmethod
    def save(self, node: Node) -> Node:
        """Insert or update the node; assigns a key to new nodes."""
        pass

    @contextmanager
    def transaction(self) -> Iterator['NodeStore']:
        """Run a block atomically (commit on success, roll back on error)."""
        yield self

    def close(self):
        """Close store and release resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


# =============================================================================
# SECTION 3: Memory Store (Testing/Temporary)
# =============================================================================

def _sort_rows(rows: List[Dict[str, Any]], name: str, direction: str = ASC):
    # NULLs sort last in both directions
    present = [row for row in rows if row.get(name) is not None]
    missing = [row for row in rows if row.get(name) is None]
    present.sort(key=lambda row: row[name], reverse=(direction == DESC))
    rows[:] = present + missing


class MemoryNodeStore(NodeStore):
    """
    In-memory node store.

    Useful for testing or temporary trees.
    Data is lost when store is closed.
    """

    def __init__(self, key_field: str = DEFAULT_KEY_FIELD):
        self.key_field = key_field
        self._rows: Dict[Any, Dict[str, Any]] = {}

    def _matches(self, row: Dict[str, Any], conditions: List[Condition]) -> bool:
        for name, op, value in conditions:
            current = row.get(name)
            # SQL semantics: NULL only matches IS NULL / IS NOT NULL
            if value is None:
                matched = (current is None) if op == '=' else (op == '!=' and current is not None)
            elif current is None:
                matched = False
            else:
                matched = OPERATORS[op](current, value)
            if not matched:
                return False
        return True

    def _select(self, scope, where) -> List[Dict[str, Any]]:
        conditions = scope_conditions(scope, where)
        return [row for row in self._rows.values() if self._matches(row, conditions)]

    def get(self, key: Any) -> Optional[Node]:
        row = self._rows.get(key)
        if row is None:
            return None
        return Node(data=dict(row), key_field=self.key_field)

    def find_many(self, scope=None, where=None, order_by=None) -> List[Node]:
        rows = self._select(scope, where)
        # Stable sorts applied from the last key to the first
        _sort_rows(rows, self.key_field)
        for name, direction in reversed(check_order(order_by)):
            _sort_rows(rows, name, direction)
        return [Node(data=dict(row), key_field=self.key_field) for row in rows]

    def count(self, scope=None, where=None) -> int:
        return len(self._select(scope, where))

    def update(self, scope, where, field, delta, assign=None) -> int:
        rows = self._select(scope, where)
        for row in rows:
            row[field] = row[field] + delta
            if assign:
                row.update(assign)
        logger.debug("memory update %s += %d on %d rows", field, delta, len(rows))
        return len(rows)

    def delete_many(self, scope, where) -> int:
        rows = self._select(scope, where)
        for row in rows:
            del self._rows[row[self.key_field]]
        return len(rows)

    def save(self, node: Node) -> Node:
        key = node.key
        if key is None:
            key = max(self._rows, default=0) + 1
            node[self.key_field] = key
        self._rows[key] = dict(node.data)
        return node

    @contextmanager
    def transaction(self) -> Iterator['MemoryNodeStore']:
        snapshot = copy.deepcopy(self._rows)
        try:
            yield self
        except Exception:
            self._rows = snapshot
            raise

    def close(self):
        self._rows.clear()

    @property
    def stats(self) -> Dict[str, int]:
        return {'nodes': len(self._rows)}


# =============================================================================
# SECTION 4: Factory Functions
# =============================================================================

def create_memory_store(key_field: str = DEFAULT_KEY_FIELD) -> MemoryNodeStore:
    """Create in-memory node store."""
    return MemoryNodeStore(key_field=key_field)
