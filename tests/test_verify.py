"""
Tests for the tree verifier
"""

import logging

import pytest

from nestedset import Finding, Tree
from nestedset.constants import KIND_BOUNDARY, KIND_NODE, KIND_ROOT, MISSING_RUN_LIMIT


IMAGE_1 = {"image_id": 1}


def corrupt(store, key, **values):
    node = store.get(key)
    node.set(values)
    store.save(node)


class TestVerifier:
    def test_valid_trees(self, tree):
        assert tree.verify(IMAGE_1) == []
        assert tree.verify({"image_id": 2}) == []
        assert tree.verify(tree.store.get(6)) == []
        assert tree.is_valid(IMAGE_1)

    def test_empty_scope(self, tree):
        assert tree.verify({"image_id": 42}) == []

    def test_unscoped_view_of_two_trees(self, comments):
        findings = Tree(comments).verify()
        assert Finding(KIND_BOUNDARY, 1, "duplicate") in findings

    def test_scoped_tree_without_target(self, tree):
        assert tree.scopes() == [{"image_id": 1}, {"image_id": 2}]
        assert tree.verify() == []
        assert tree.is_valid()

        corrupt(tree.store, 7, parent_id=None)
        assert tree.verify() == [
            Finding(KIND_NODE, 7, "the parent field is blank, but has a parent"),
        ]

    def test_literal_scope_without_target(self, store):
        tree = Tree(store, scope=["image_id", {"published": "Y"}])
        for image_id in (1, 2):
            root = tree.insert(store.create(image_id=image_id))
            tree.insert(store.create(parent_id=root.key))
        # a row outside the literal scope is not audited
        store.save(store.create(image_id=1, published="N", lft=50, rght=40))

        assert tree.scopes() == [
            {"image_id": 1, "published": "Y"},
            {"image_id": 2, "published": "Y"},
        ]
        assert tree.verify() == []

    def test_gap(self, tree):
        corrupt(tree.store, 1, rght=10)
        assert tree.verify(IMAGE_1) == [
            Finding(KIND_BOUNDARY, 8, "missing"),
            Finding(KIND_BOUNDARY, 9, "missing"),
        ]

    def test_huge_right_reports_one_range(self, tree):
        corrupt(tree.store, 1, rght=2_000_000_000)
        assert tree.verify(IMAGE_1) == [
            Finding(KIND_BOUNDARY, (8, 1_999_999_999), "missing range"),
        ]

    def test_short_gap_lists_each_index(self, tree):
        corrupt(tree.store, 1, rght=7 + MISSING_RUN_LIMIT + 1)
        findings = tree.verify(IMAGE_1)
        assert len(findings) == MISSING_RUN_LIMIT
        assert findings[0] == Finding(KIND_BOUNDARY, 8, "missing")
        assert findings[-1] == Finding(KIND_BOUNDARY, 7 + MISSING_RUN_LIMIT, "missing")

    def test_duplicate_index(self, tree):
        corrupt(tree.store, 4, lft=4, rght=5)
        findings = [f.as_tuple() for f in tree.verify(IMAGE_1)]
        assert findings == [
            (KIND_BOUNDARY, 4, "duplicate"),
            (KIND_BOUNDARY, 6, "missing"),
        ]

    def test_left_greater_than_right(self, tree):
        corrupt(tree.store, 3, lft=4, rght=3)
        assert tree.verify(IMAGE_1) == [
            Finding(KIND_NODE, 3, "has left greater than right"),
        ]

    def test_identical_left_and_right(self, tree):
        corrupt(tree.store, 3, rght=3)
        findings = tree.verify(IMAGE_1)
        assert findings[0] == Finding(KIND_NODE, 3, "left and right values identical")

    def test_even_span(self, tree):
        corrupt(tree.store, 4, rght=7)
        findings = tree.verify(IMAGE_1)
        assert findings[0] == Finding(KIND_NODE, 4, "has an even span")

    def test_root_without_left(self, tree):
        corrupt(tree.store, 1, lft=None)
        findings = tree.verify(IMAGE_1)
        assert findings[0] == Finding(KIND_ROOT, 1, "has invalid left or right values")
        assert Finding(KIND_NODE, 2, "The parent node 1 is outside the scope or invalid") in findings

    def test_blank_parent(self, tree):
        corrupt(tree.store, 3, parent_id=None)
        assert tree.verify(IMAGE_1) == [
            Finding(KIND_NODE, 3, "the parent field is blank, but has a parent"),
        ]

    def test_missing_parent(self, tree):
        corrupt(tree.store, 3, parent_id=99)
        assert tree.verify(IMAGE_1) == [
            Finding(KIND_NODE, 3, "The parent node 99 doesn't exist"),
        ]

    def test_parent_in_other_scope(self, tree):
        corrupt(tree.store, 3, parent_id=5)
        assert tree.verify(IMAGE_1) == [
            Finding(KIND_NODE, 3, "The parent node 5 is outside the scope or invalid"),
        ]

    def test_left_less_than_parent(self, tree):
        corrupt(tree.store, 2, parent_id=4)
        assert tree.verify(IMAGE_1) == [
            Finding(KIND_NODE, 2, "left less than parent (node 4)."),
        ]

    def test_right_greater_than_parent(self, tree):
        corrupt(tree.store, 4, parent_id=3)
        assert tree.verify(IMAGE_1) == [
            Finding(KIND_NODE, 4, "right greater than parent (node 3)."),
        ]

    def test_wrong_parent(self, tree):
        corrupt(tree.store, 4, parent_id=1)
        assert tree.verify(IMAGE_1) == [
            Finding(KIND_NODE, 4, "nested under node 2, not under its parent (node 1)."),
        ]

    def test_partial_overlap(self, store):
        tree = Tree(store, scope=["image_id"])
        first = store.save(store.create(image_id=3, lft=1, rght=4))
        second = store.save(store.create(image_id=3, lft=2, rght=5))
        findings = tree.verify({"image_id": 3})
        assert Finding(KIND_BOUNDARY, 3, "missing") in findings
        assert Finding(KIND_NODE, second.key, f"overlaps node {first.key} without nesting") in findings

    def test_findings_are_logged(self, tree, caplog):
        corrupt(tree.store, 3, parent_id=99)
        with caplog.at_level(logging.WARNING, logger="nestedset.verify"):
            assert not tree.is_valid(IMAGE_1)
        assert "1 problem(s)" in caplog.text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
