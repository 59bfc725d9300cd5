"""
Tree configuration, resolved once when a Tree is built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .constants import DEFAULT_LEFT_FIELD, DEFAULT_PARENT_FIELD, DEFAULT_RIGHT_FIELD
from .errors import ConfigurationError
from .scope import ScopeSpec


# Option names accepted by from_options, mapped to TreeConfig fields
_OPTION_NAMES = {
    'parent': 'parent_field',
    'left': 'left_field',
    'right': 'right_field',
    'recursive': 'recursive',
    'scope': 'scope',
}


@dataclass(frozen=True)
class TreeConfig:
    """
    Configuration for a nested set tree.

    - parent_field: column holding the parent key (None for roots)
    - left_field / right_field: interval columns
    - recursive: default mode of Tree.children (direct vs. whole subtree)
    - scope: partition attributes (see ScopeSpec.parse)
    """
    parent_field: str = DEFAULT_PARENT_FIELD
    left_field: str = DEFAULT_LEFT_FIELD
    right_field: str = DEFAULT_RIGHT_FIELD
    recursive: bool = False
    scope: ScopeSpec = field(default_factory=ScopeSpec)

    def __post_init__(self):
        """Validate configuration."""
        names = (self.parent_field, self.left_field, self.right_field)
        for name in names:
            if not isinstance(name, str) or not name:
                raise ConfigurationError(f"Invalid tree field name: {name!r}")
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Tree field names must be distinct, got {names}")
        # Accept raw scope options for convenience
        if not isinstance(self.scope, ScopeSpec):
            object.__setattr__(self, 'scope', ScopeSpec.parse(self.scope))
        overlap = set(self.scope.fields) & set(names)
        if overlap:
            raise ConfigurationError(f"Scope cannot use tree fields: {sorted(overlap)}")

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> 'TreeConfig':
        """
        Build a config from option names (parent, left, right, recursive, scope).

        Raises:
            ConfigurationError: unknown option name
        """
        kwargs: Dict[str, Any] = {}
        for name, value in (options or {}).items():
            if name in _OPTION_NAMES:
                kwargs[_OPTION_NAMES[name]] = value
            elif name in _OPTION_NAMES.values():
                kwargs[name] = value
            else:
                raise ConfigurationError(f"Unknown tree option `{name}`.")
        return cls(**kwargs)

    @property
    def tree_fields(self):
        """Columns rewritten by structural mutations."""
        return (self.parent_field, self.left_field, self.right_field) + self.scope.fields
