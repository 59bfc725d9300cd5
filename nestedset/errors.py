"""Exceptions raised by tree operations.

Store errors (``duckdb.Error`` and friends) are never wrapped; they reach
the caller as raised by the backend.
"""

from typing import Any, Optional


class TreeError(Exception):
    """Base class for all nested set errors."""


class ConfigurationError(TreeError):
    """A required option is missing or invalid at setup time."""


class ScopeAttributeMissing(TreeError):
    """A scope attribute does not resolve on the node."""

    def __init__(self, attribute: str, key: Any = None):
        self.attribute = attribute
        self.key = key
        super().__init__(f"The `{attribute}` scope is not present in the node `{key}`.")


class NodeNotFound(TreeError):
    """A node key does not resolve to a stored record."""

    def __init__(self, key: Any, message: Optional[str] = None):
        self.key = key
        super().__init__(message or f"The node with id `{key}` doesn't exist.")


class ParentNotFound(NodeNotFound):
    """A referenced parent key does not resolve to a stored record."""

    def __init__(self, key: Any, field: str = "parent_id"):
        self.field = field
        super().__init__(key, f"The `{field}` with id `{key}` doesn't exist.")


class InvalidMove(TreeError):
    """Moving a node under itself or under one of its descendants."""

    def __init__(self, key: Any, parent_key: Any):
        self.key = key
        self.parent_key = parent_key
        super().__init__(
            f"Cannot move node `{key}` under `{parent_key}`: "
            "the target is the node itself or one of its descendants."
        )
