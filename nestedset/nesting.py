"""
Nested rendering of flat, left-ordered node lists.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from .constants import DEFAULT_PARENT_FIELD
from .store import Node


@dataclass
class NestedNode:
    """A node with its direct children attached."""
    node: Node
    children: List['NestedNode'] = field(default_factory=list)

    @property
    def key(self) -> Any:
        return self.node.key

    def walk(self, depth: int = 0) -> Iterator[Tuple[int, Node]]:
        """Depth-first (depth, node) pairs, in left order."""
        yield depth, self.node
        for child in self.children:
            yield from child.walk(depth + 1)

    def to_dict(self, children_key: str = "children") -> Dict[str, Any]:
        data = dict(self.node.data)
        data[children_key] = [child.to_dict(children_key) for child in self.children]
        return data


def nest(nodes: Iterable[Node], parent_field: str = DEFAULT_PARENT_FIELD) -> List[NestedNode]:
    """
    Link nodes to their parents through parent_field.

    Nodes must come in left order so that a parent is seen before its
    children. Nodes whose parent is not in the input are returned as
    top-level entries.
    """
    refs: Dict[Any, NestedNode] = {}
    top: List[NestedNode] = []
    for node in nodes:
        entry = NestedNode(node)
        refs[node.key] = entry
        parent = refs.get(node.get(parent_field))
        if parent is not None:
            parent.children.append(entry)
        else:
            top.append(entry)
    return top
