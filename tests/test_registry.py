# tests/test_registry.py
"""
Tests for the method registry and the type graph it is resolved against.
"""

import pytest

from subindex.errors import TypeGraphError
from subindex.model import (
    SubscriberDeclaration,
    TypeGraph,
    Visibility,
    walk_ancestors,
)
from subindex.registry import MethodRegistry
from tests.conftest import type_node


def _decl(owner, method, event="app.Ping"):
    return SubscriberDeclaration(owner, method, event)


class TestMethodRegistry:

    def test_groups_by_declaring_type(self):
        reg = MethodRegistry()
        reg.register(_decl("app.A", "one"))
        reg.register(_decl("app.B", "two"))
        reg.register(_decl("app.A", "three"))
        assert reg.types() == ["app.A", "app.B"]
        assert [d.method_name for d in reg.methods_of("app.A")] == ["one", "three"]
        assert len(reg) == 2

    def test_unknown_type_is_empty_without_side_effect(self):
        reg = MethodRegistry()
        assert reg.methods_of("app.Nope") == ()
        assert "app.Nope" not in reg
        assert len(reg) == 0

    def test_snapshot_is_detached(self):
        reg = MethodRegistry()
        reg.register(_decl("app.A", "one"))
        snap = reg.snapshot()
        reg.register(_decl("app.A", "two"))
        assert len(snap["app.A"]) == 1
        assert len(reg.methods_of("app.A")) == 2

    def test_declarations_in_order(self):
        reg = MethodRegistry()
        reg.register(_decl("app.A", "one"))
        reg.register(_decl("app.B", "two"))
        assert [d.method_name for d in reg.declarations()] == ["one", "two"]


class TestDeclaration:

    def test_location_does_not_affect_equality(self):
        from tests.conftest import loc
        a = SubscriberDeclaration("app.A", "m", "app.Ping", location=loc(1))
        b = SubscriberDeclaration("app.A", "m", "app.Ping", location=loc(9))
        assert a == b

    def test_signature_ignores_declaring_type(self):
        assert _decl("app.A", "m").signature == _decl("app.B", "m").signature


class TestVisibility:

    @pytest.mark.parametrize("name, public", [
        ("app.Foo", True),
        ("app._Foo", False),
        ("app.__Foo", False),
        ("__call__", True),
        ("builtins.str", True),
    ])
    def test_of_name(self, name, public):
        assert Visibility.of_name(name).is_public is public

    def test_parse(self):
        assert Visibility.parse("PUBLIC") is Visibility.PUBLIC
        assert Visibility.parse("private") is Visibility.NON_PUBLIC
        with pytest.raises(ValueError):
            Visibility.parse("friend")


class TestTypeGraph:

    def test_ancestor_inside_application(self):
        graph = TypeGraph()
        graph.add_all([type_node("app.Base"), type_node("app.Child", "app.Base")])
        assert graph.ancestor_of("app.Child") == "app.Base"
        assert graph.ancestor_of("app.Base") is None

    def test_platform_ancestor_ends_walk(self):
        graph = TypeGraph()
        graph.add(type_node("app.Err", "builtins.Exception"))
        assert graph.ancestor_of("app.Err") is None

    def test_application_prefixes_restrict_walk(self):
        graph = TypeGraph(application_prefixes=("app",))
        graph.add_all([
            type_node("lib.Base"),
            type_node("app.Child", "lib.Base"),
        ])
        assert graph.is_platform("lib.Base")
        assert not graph.is_platform("app.Child")
        assert graph.ancestor_of("app.Child") is None

    def test_undeclared_ancestor_ends_walk(self):
        graph = TypeGraph()
        graph.add(type_node("app.Child", "other.Base"))
        assert graph.ancestor_of("app.Child") is None

    def test_unknown_type_is_an_error(self):
        with pytest.raises(TypeGraphError):
            TypeGraph().ancestor_of("app.Ghost")

    def test_redeclared_type_replaces_node(self):
        graph = TypeGraph()
        graph.add(type_node("app.A"))
        graph.add(type_node("app.A", "app.B"))
        assert graph.get("app.A").ancestor == "app.B"
        assert len(graph) == 1

    def test_module_of_prefers_declared_module(self):
        graph = TypeGraph()
        graph.add(type_node("app.mod.Outer.Inner", module="app.mod"))
        assert graph.module_of("app.mod.Outer.Inner") == "app.mod"
        assert graph.module_of("app.events.Ping") == "app.events"

    def test_visibility_falls_back_to_name(self):
        graph = TypeGraph()
        assert graph.visibility_of("app._Secret") is Visibility.NON_PUBLIC


class TestWalkAncestors:

    def test_nearest_first(self):
        parents = {"c": "b", "b": "a", "a": None}
        assert list(walk_ancestors("c", parents.get)) == ["c", "b", "a"]

    def test_cycle_raises(self):
        parents = {"a": "b", "b": "a"}
        with pytest.raises(TypeGraphError, match="Cyclic"):
            list(walk_ancestors("a", parents.get))
