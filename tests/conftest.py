"""
Shared fixtures: two comment trees (one per image) in one table.

    image 1                         image 2
    1 Comment 1        (1, 8)       5 Comment 2      (1, 6)
    └ 2 Comment 1.1    (2, 7)       ├ 6 Comment 2.1  (2, 3)
      ├ 3 Comment 1.1.1 (3, 4)      └ 7 Comment 2.2  (4, 5)
      └ 4 Comment 1.1.2 (5, 6)
"""

import pytest

from nestedset import MemoryNodeStore, Tree
from nestedset.duckdb_store import DuckDBNodeStore


COMMENT_COLUMNS = {
    "image_id": "INTEGER",
    "body": "VARCHAR",
    "published": "VARCHAR",
}

COMMENTS = [
    {"id": 1, "image_id": 1, "body": "Comment 1", "parent_id": None, "lft": 1, "rght": 8, "published": "Y"},
    {"id": 2, "image_id": 1, "body": "Comment 1.1", "parent_id": 1, "lft": 2, "rght": 7, "published": "Y"},
    {"id": 3, "image_id": 1, "body": "Comment 1.1.1", "parent_id": 2, "lft": 3, "rght": 4, "published": "N"},
    {"id": 4, "image_id": 1, "body": "Comment 1.1.2", "parent_id": 2, "lft": 5, "rght": 6, "published": "Y"},
    {"id": 5, "image_id": 2, "body": "Comment 2", "parent_id": None, "lft": 1, "rght": 6, "published": "Y"},
    {"id": 6, "image_id": 2, "body": "Comment 2.1", "parent_id": 5, "lft": 2, "rght": 3, "published": "Y"},
    {"id": 7, "image_id": 2, "body": "Comment 2.2", "parent_id": 5, "lft": 4, "rght": 5, "published": "N"},
]


@pytest.fixture(params=["memory", "duckdb"])
def store(request):
    if request.param == "memory":
        backend = MemoryNodeStore()
    else:
        backend = DuckDBNodeStore(":memory:", table="comments", columns=COMMENT_COLUMNS)
    yield backend
    backend.close()


@pytest.fixture
def comments(store):
    for row in COMMENTS:
        store.save(store.create(row))
    return store


@pytest.fixture
def tree(comments):
    return Tree(comments, scope=["image_id"])


@pytest.fixture
def intervals():
    """Snapshot {key: (parent, lft, rght)} of a store, optionally one scope."""
    def snapshot(store, scope=None):
        return {
            node.key: (node["parent_id"], node["lft"], node["rght"])
            for node in store.find_many(scope)
        }
    return snapshot
