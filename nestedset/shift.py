"""
Shift Engine: Moving Blocks of Indices
======================================

Every structural change of a nested set is a composition of
"add a constant to every index in a range" steps. Each step is two bulk
updates, one per column, because a node may have only one endpoint in
the range:

    right pass:  rght += delta  WHERE floor <= rght <= ceiling
    left pass:   lft  += delta  WHERE floor <= lft  <= ceiling

A block being moved is first parked below zero (its right end lands on
0), where no shift aimed at positive indices can touch it, then placed
at its final position once the gaps around it are settled.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
import logging

from .store import NodeStore


logger = logging.getLogger(__name__)


class ShiftEngine:
    """Range-restricted arithmetic on the left/right columns of one store."""

    def __init__(self, store: NodeStore, left_field: str, right_field: str):
        self.store = store
        self.left_field = left_field
        self.right_field = right_field

    def between(
        self,
        floor: int,
        ceiling: int,
        delta: int,
        scope: Dict[str, Any],
        assign: Optional[Dict[str, Any]] = None,
    ):
        """
        Shift every endpoint inside [floor, ceiling] by delta.

        Args:
            floor, ceiling: Inclusive index range
            delta: Amount to add (negative moves left)
            scope: Partition to restrict the update to
            assign: Columns rewritten on every node whose left end moved
                    (used to retag a subtree with a new scope)
        """
        if delta == 0 and not assign:
            return
        logger.debug("shift [%d, %d] by %+d in %s", floor, ceiling, delta, scope)
        self.store.update(
            scope,
            [(self.right_field, '>=', floor), (self.right_field, '<=', ceiling)],
            self.right_field,
            delta,
        )
        self.store.update(
            scope,
            [(self.left_field, '>=', floor), (self.left_field, '<=', ceiling)],
            self.left_field,
            delta,
            assign,
        )

    def from_boundary(self, boundary: int, delta: int, scope: Dict[str, Any]):
        """
        Open (delta > 0) or close (delta < 0) a gap at boundary.

        Rights at or after the boundary move, so the node whose right end
        sits on the boundary grows or shrinks; lefts strictly after it move.
        """
        if delta == 0:
            return
        logger.debug("shift from %d by %+d in %s", boundary, delta, scope)
        self.store.update(scope, [(self.right_field, '>=', boundary)], self.right_field, delta)
        self.store.update(scope, [(self.left_field, '>', boundary)], self.left_field, delta)

    def park(self, left: int, right: int, scope: Dict[str, Any], assign=None) -> int:
        """
        Move the block [left, right] below zero so that it ends on 0.

        Returns:
            The offset subtracted (the block's old right index)
        """
        self.between(left, right, -right, scope, assign)
        return right

    def unpark(self, span: int, offset: int, scope: Dict[str, Any]):
        """Move a parked block [-span, 0] up by offset."""
        self.between(-span, 0, offset, scope)
