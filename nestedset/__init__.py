"""
Nested Set - Hierarchies in a Flat, Range-Queryable Store

Maintains trees inside one table using the nested set (modified preorder
tree traversal) encoding: every node stores a (left, right) interval and
its descendants are exactly the nodes whose intervals lie inside it.

Components:
1. NodeStore: Storage boundary (MemoryNodeStore, DuckDBNodeStore)
2. ScopeSpec: Partitions one table into independent trees
3. ShiftEngine: Range-restricted index arithmetic
4. Tree: Insert, remove, reparent, reorder, path/children queries
5. Verifier: Invariant audit of one scope
"""

__version__ = "0.1.0"

from .config import TreeConfig
from .errors import (
    ConfigurationError,
    InvalidMove,
    NodeNotFound,
    ParentNotFound,
    ScopeAttributeMissing,
    TreeError,
)
from .nesting import NestedNode, nest
from .scope import ScopeSpec, resolve_scope, same_scope
from .shift import ShiftEngine
from .store import MemoryNodeStore, Node, NodeStore, create_memory_store
from .tree import Tree
from .verify import Finding, Verifier

__all__ = [
    "TreeConfig",
    "ConfigurationError",
    "InvalidMove",
    "NodeNotFound",
    "ParentNotFound",
    "ScopeAttributeMissing",
    "TreeError",
    "NestedNode",
    "nest",
    "ScopeSpec",
    "resolve_scope",
    "same_scope",
    "ShiftEngine",
    "MemoryNodeStore",
    "Node",
    "NodeStore",
    "create_memory_store",
    "Tree",
    "Finding",
    "Verifier",
]
