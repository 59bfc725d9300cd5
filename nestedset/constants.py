# nestedset/constants.py
"""
Nested Set Constants

This module defines constants used throughout the nested set system:

STORAGE: Default field names
- DEFAULT_KEY_FIELD: Primary key column of a node record
- DEFAULT_PARENT_FIELD / DEFAULT_LEFT_FIELD / DEFAULT_RIGHT_FIELD:
  Tree columns, named after the classic MPTT layout (parent_id, lft, rght)

VERIFIER: Finding kinds
- KIND_NODE: Problem with a single node (or its parent link)
- KIND_BOUNDARY: Index in [min_left, max_right] used zero or several times
- KIND_ROOT: Problem with a root node
- MISSING_RUN_LIMIT: Longest run of unused indices listed index by index
"""


# =============================================================================
# STORAGE: Default field names
# =============================================================================

DEFAULT_KEY_FIELD = "id"
DEFAULT_PARENT_FIELD = "parent_id"
DEFAULT_LEFT_FIELD = "lft"
DEFAULT_RIGHT_FIELD = "rght"

# Every new leaf occupies two consecutive indices: [left, left + 1]
LEAF_WIDTH = 2


# =============================================================================
# VERIFIER: Finding kinds
# =============================================================================

KIND_NODE = "node"
KIND_BOUNDARY = "node boundary"
KIND_ROOT = "root node"

# Longer runs of unused indices are reported as one (first, last) finding
MISSING_RUN_LIMIT = 64


# =============================================================================
# QUERY: Children modes and sort directions
# =============================================================================

MODE_ALL = "all"
MODE_COUNT = "count"
CHILDREN_MODES = (MODE_ALL, MODE_COUNT)

ASC = "asc"
DESC = "desc"
