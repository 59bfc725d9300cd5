"""
Scope Resolver: Partition Keys for Independent Trees
====================================================

Several trees can share one table. A scope names the attributes that tell
them apart, e.g. comments partitioned by ``image_id``. Every query and
bulk update issued for a node is filtered by the node's resolved scope.

Two kinds of entries:
- attribute: copy the value from the node (``"image_id"``)
- literal:   fixed column value for every node (``{"published": "Y"}``)

``ScopeSpec.parse`` accepts a mapping (integer keys name node attributes,
string keys carry literals) or a plain sequence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, TYPE_CHECKING

from .errors import ConfigurationError, ScopeAttributeMissing

if TYPE_CHECKING:
    from .store import Node


Scope = Dict[str, Any]


@dataclass(frozen=True)
class ScopeSpec:
    """Resolved scope configuration: attribute names plus fixed literals."""
    attributes: Tuple[str, ...] = ()
    literals: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def parse(cls, raw: Any = None) -> 'ScopeSpec':
        """
        Build a ScopeSpec from user options.

        Args:
            raw: None, a ScopeSpec, a mapping ({0: "image_id", "kind": "x"})
                 or a sequence (["image_id", {"kind": "x"}])

        Returns:
            ScopeSpec with attributes kept in declaration order
        """
        if raw is None:
            return cls()
        if isinstance(raw, ScopeSpec):
            return raw

        attributes = []
        literals = []
        if isinstance(raw, Mapping):
            for key, value in raw.items():
                if isinstance(key, int):
                    attributes.append(value)
                else:
                    literals.append((key, value))
        elif isinstance(raw, (list, tuple)):
            for item in raw:
                if isinstance(item, str):
                    attributes.append(item)
                elif isinstance(item, Mapping):
                    literals.extend(item.items())
                else:
                    raise ConfigurationError(f"Invalid scope entry: {item!r}")
        else:
            raise ConfigurationError(f"Invalid scope option: {raw!r}")

        for name in attributes:
            if not isinstance(name, str) or not name:
                raise ConfigurationError(f"Invalid scope attribute: {name!r}")
        return cls(attributes=tuple(attributes), literals=tuple(literals))

    @property
    def fields(self) -> Tuple[str, ...]:
        """Every column taking part in the partition key."""
        return self.attributes + tuple(name for name, _ in self.literals)

    def __bool__(self) -> bool:
        return bool(self.attributes or self.literals)


def resolve_scope(spec: ScopeSpec, node: 'Node') -> Scope:
    """
    Resolve the partition key of a node.

    Raises:
        ScopeAttributeMissing: an attribute is absent (or None) on the node
    """
    scope: Scope = {}
    for name in spec.attributes:
        value = node.get(name)
        if value is None:
            raise ScopeAttributeMissing(name, node.key)
        scope[name] = value
    for name, value in spec.literals:
        scope[name] = value
    return scope


def same_scope(a: Optional[Scope], b: Optional[Scope]) -> bool:
    """Scopes are equal as sets of key/value pairs."""
    return dict(a or {}) == dict(b or {})
