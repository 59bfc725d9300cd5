"""
Verifier: Auditing Nested Set Invariants
========================================

Reads one scope and reports everything that breaks the interval
structure. Nothing is repaired.

Checks, in report order:
1. Per node:    left/right present, left < right, odd span
2. Boundaries:  every index in [min_left, max_right] used exactly once
3. Nesting:     no partial overlaps; the parent field names the closest
                enclosing node (and is blank only for top-level nodes)

Index usage is counted in one pass with numpy.unique instead of one
COUNT query per index. A run of more than MISSING_RUN_LIMIT unused
indices is reported once, with a (first, last) subject.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

import numpy as np

from .config import TreeConfig
from .constants import ASC, KIND_BOUNDARY, KIND_NODE, KIND_ROOT, MISSING_RUN_LIMIT
from .store import Node, NodeStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Finding:
    """One verification problem: kind, offending key or index, description."""
    kind: str
    subject: Any
    message: str

    def as_tuple(self):
        return (self.kind, self.subject, self.message)


class Verifier:
    """Diagnostic pass over one partition of a store."""

    def __init__(self, store: NodeStore, config: TreeConfig):
        self.store = store
        self.config = config

    def verify(self, scope: Optional[Dict[str, Any]] = None) -> List[Finding]:
        """
        Verify a scope.

        Returns:
            Ordered findings; an empty list means the tree is valid
        """
        left_f, right_f = self.config.left_field, self.config.right_field
        nodes = self.store.find_many(scope, order_by=[(left_f, ASC)])
        if not nodes:
            return []

        findings: List[Finding] = []
        sound: List[Node] = []
        for node in nodes:
            problem = self._interval_problem(node)
            if problem:
                kind = KIND_ROOT if node.get(self.config.parent_field) is None else KIND_NODE
                findings.append(Finding(kind, node.key, problem))
            else:
                sound.append(node)

        findings.extend(self._boundary_findings(nodes))
        findings.extend(self._nesting_findings(sound))

        if findings:
            logger.warning("tree in scope %s has %d problem(s)", scope, len(findings))
        return findings

    def _interval_problem(self, node: Node) -> Optional[str]:
        left = node.get(self.config.left_field)
        right = node.get(self.config.right_field)
        if left is None or right is None:
            return "has invalid left or right values"
        if left == right:
            return "left and right values identical"
        if right < left:
            return "has left greater than right"
        if (right - left) % 2 == 0:
            return "has an even span"
        return None

    def _boundary_findings(self, nodes: List[Node]) -> List[Finding]:
        endpoints = [
            value
            for node in nodes
            for value in (node.get(self.config.left_field), node.get(self.config.right_field))
            if value is not None
        ]
        if not endpoints:
            return []
        values, counts = np.unique(np.asarray(endpoints, dtype=np.int64), return_counts=True)
        gaps = np.diff(values) - 1

        findings = []
        for position, value in enumerate(values.tolist()):
            if counts[position] > 1:
                findings.append(Finding(KIND_BOUNDARY, value, "duplicate"))
            if position == len(gaps) or gaps[position] == 0:
                continue
            first, last = value + 1, value + int(gaps[position])
            if last - first < MISSING_RUN_LIMIT:
                findings.extend(Finding(KIND_BOUNDARY, index, "missing") for index in range(first, last + 1))
            else:
                findings.append(Finding(KIND_BOUNDARY, (first, last), "missing range"))
        return findings

    def _nesting_findings(self, nodes: List[Node]) -> List[Finding]:
        parent_f = self.config.parent_field
        left_f, right_f = self.config.left_field, self.config.right_field
        by_key = {node.key: node for node in nodes}

        # Closest enclosing node of each node, found with a stack over left order
        container: Dict[Any, Any] = {}
        findings: List[Finding] = []
        stack: List[Node] = []
        for node in nodes:
            while stack and stack[-1][right_f] < node[right_f]:
                top = stack.pop()
                if top[right_f] > node[left_f]:
                    findings.append(Finding(
                        KIND_NODE, node.key, f"overlaps node {top.key} without nesting"
                    ))
            container[node.key] = stack[-1].key if stack else None
            stack.append(node)

        for node in nodes:
            parent_key = node.get(parent_f)
            enclosing = container.get(node.key)
            if parent_key is None:
                if enclosing is not None:
                    findings.append(Finding(
                        KIND_NODE, node.key, "the parent field is blank, but has a parent"
                    ))
                continue
            parent = by_key.get(parent_key)
            if parent is None:
                if self.store.get(parent_key) is None:
                    message = f"The parent node {parent_key} doesn't exist"
                else:
                    message = f"The parent node {parent_key} is outside the scope or invalid"
                findings.append(Finding(KIND_NODE, node.key, message))
            elif node[left_f] <= parent[left_f]:
                findings.append(Finding(
                    KIND_NODE, node.key, f"left less than parent (node {parent.key})."
                ))
            elif node[right_f] >= parent[right_f]:
                findings.append(Finding(
                    KIND_NODE, node.key, f"right greater than parent (node {parent.key})."
                ))
            elif enclosing != parent_key:
                findings.append(Finding(
                    KIND_NODE, node.key,
                    f"nested under node {enclosing}, not under its parent (node {parent.key})."
                ))
        return findings
