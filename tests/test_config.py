"""
Tests for tree configuration and scope resolution
"""

import pytest

from nestedset import (
    ConfigurationError,
    MemoryNodeStore,
    Node,
    ScopeAttributeMissing,
    ScopeSpec,
    Tree,
    TreeConfig,
    resolve_scope,
    same_scope,
)


class TestScopeSpec:
    def test_parse_empty(self):
        spec = ScopeSpec.parse(None)
        assert spec.attributes == ()
        assert not spec

    def test_parse_sequence(self):
        spec = ScopeSpec.parse(["image_id", {"published": "Y"}])
        assert spec.attributes == ("image_id",)
        assert spec.literals == (("published", "Y"),)
        assert spec.fields == ("image_id", "published")

    def test_parse_mapping_with_numeric_keys(self):
        spec = ScopeSpec.parse({0: "image_id", "published": "Y"})
        assert spec.attributes == ("image_id",)
        assert spec.literals == (("published", "Y"),)

    def test_parse_invalid(self):
        with pytest.raises(ConfigurationError):
            ScopeSpec.parse([42])
        with pytest.raises(ConfigurationError):
            ScopeSpec.parse("image_id")

    def test_resolve(self):
        spec = ScopeSpec.parse(["image_id", {"published": "Y"}])
        node = Node({"id": 1, "image_id": 3})
        assert resolve_scope(spec, node) == {"image_id": 3, "published": "Y"}

    def test_resolve_missing_attribute(self):
        spec = ScopeSpec.parse(["image_id"])
        with pytest.raises(ScopeAttributeMissing) as excinfo:
            resolve_scope(spec, Node({"id": 7}))
        assert excinfo.value.attribute == "image_id"
        assert "image_id" in str(excinfo.value)

    def test_same_scope(self):
        assert same_scope({"a": 1, "b": 2}, {"b": 2, "a": 1})
        assert not same_scope({"a": 1}, {"a": 2})
        assert same_scope(None, {})


class TestTreeConfig:
    def test_defaults(self):
        config = TreeConfig()
        assert config.parent_field == "parent_id"
        assert config.left_field == "lft"
        assert config.right_field == "rght"
        assert config.recursive is False
        assert config.tree_fields == ("parent_id", "lft", "rght")

    def test_from_options(self):
        config = TreeConfig.from_options({"left": "l", "right": "r", "scope": ["image_id"]})
        assert config.left_field == "l"
        assert config.right_field == "r"
        assert config.scope.attributes == ("image_id",)

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError):
            TreeConfig.from_options({"model": "Comment", "colour": "red"})

    def test_duplicate_field_names(self):
        with pytest.raises(ConfigurationError):
            TreeConfig(left_field="pos", right_field="pos")

    def test_scope_cannot_use_tree_fields(self):
        with pytest.raises(ConfigurationError):
            TreeConfig(scope=["lft"])


class TestTreeSetup:
    def test_store_required(self):
        with pytest.raises(ConfigurationError, match="`store` option needs to be defined"):
            Tree()

    def test_config_and_options_exclusive(self):
        with pytest.raises(ConfigurationError):
            Tree(MemoryNodeStore(), TreeConfig(), recursive=True)

    def test_custom_field_names(self):
        store = MemoryNodeStore()
        tree = Tree(store, parent="up", left="l", right="r")
        root = tree.insert(store.create())
        child = tree.insert(store.create(up=root.key))
        assert (store.get(root.key)["l"], store.get(root.key)["r"]) == (1, 4)
        assert (child["l"], child["r"]) == (2, 3)
        assert tree.verify() == []

    def test_literal_scope_is_stored(self):
        store = MemoryNodeStore()
        tree = Tree(store, scope=["image_id", {"published": "Y"}])
        root = tree.insert(store.create(image_id=1))
        assert store.get(root.key)["published"] == "Y"
        assert tree.children(root, mode="count") == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
