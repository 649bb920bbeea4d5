# tests/test_codegen.py
"""
Tests for table emission: merged index → Python source.
Verifies the output is valid Python, structurally correct and deterministic.
"""

import json
import os

import pytest

from subindex.annotations import SubscriberIndex, SubscriberMethod, ThreadMode
from subindex.codegen import CodeEmitter, TableEmitter, render_index
from subindex.config import IndexerConfig
from subindex.errors import EmitError
from subindex.merger import IndexEntry, MergedIndex
from subindex.model import SubscriberDeclaration, TypeGraph
from tests.conftest import type_node


def _index(*rows):
    """rows: (subscriber, method, event, inherited_from)"""
    table = {}
    for subscriber, method, event, inherited in rows:
        owner = inherited or subscriber
        decl = SubscriberDeclaration(owner, method, event, ThreadMode.POSTING, 1, True)
        table.setdefault(subscriber, []).append(IndexEntry(decl, subscriber, inherited))
    return MergedIndex({k: tuple(v) for k, v in table.items()})


SIMPLE_INDEX_TEXT = '''\
"""Subscriber index generated by subindex, do not edit."""

import app.listeners
import builtins
from subindex.annotations import SubscriberIndex, ThreadMode, create_subscriber_method


class GeneratedSubscriberIndex(SubscriberIndex):

    def create_subscribers_for(self, subscriber_class):
        if subscriber_class is app.listeners.Foo:
            return (
                create_subscriber_method(subscriber_class, "on_event", builtins.str, ThreadMode.MAIN, 0, False),
            )
        return None
'''


def _exec(code: str) -> dict:
    namespace: dict = {}
    exec(compile(code, "<generated>", "exec"), namespace)
    return namespace


class TestRenderText:

    def test_exact_output(self):
        decl = SubscriberDeclaration("app.listeners.Foo", "on_event", "builtins.str")
        index = MergedIndex({"app.listeners.Foo": (IndexEntry(decl, "app.listeners.Foo"),)})
        graph = TypeGraph()
        graph.add(type_node("app.listeners.Foo", module="app.listeners"))
        code = render_index(index, graph, IndexerConfig(line_width=200))
        assert code == SIMPLE_INDEX_TEXT

    def test_empty_index_is_valid(self):
        code = render_index(MergedIndex({}))
        ns = _exec(code)
        assert ns["GeneratedSubscriberIndex"]().create_subscribers_for(int) is None

    def test_custom_names(self):
        cfg = IndexerConfig(index_class_name="AppIndex", runtime_module="subindex.annotations")
        code = render_index(MergedIndex({}), config=cfg)
        assert "class AppIndex(SubscriberIndex):" in code

    def test_inherited_entry_names_ancestor(self):
        index = _index(
            ("app.m.Child", "on_ping", "app.m.Ping", None),
            ("app.m.Child", "on_pong", "app.m.Pong", "app.m.Base"),
        )
        code = render_index(index, config=IndexerConfig(line_width=200))
        assert "create_subscriber_method(subscriber_class, \"on_ping\"" in code
        assert "create_subscriber_method(app.m.Base, \"on_pong\"" in code
        assert code.count("import app.m\n") == 1

    def test_deterministic(self):
        rows = [
            ("app.b.Two", "m", "app.e.Ping", None),
            ("app.a.One", "m", "app.e.Pong", None),
        ]
        assert render_index(_index(*rows)) == render_index(_index(*reversed(rows)))

    def test_long_lines_wrap(self):
        index = _index(("pkg.mod.Subscriber", "on_a_rather_long_handler_name",
                        "pkg.events.SomeRatherLongEventName", None))
        code = render_index(index, config=IndexerConfig(line_width=60))
        entry_lines = [ln for ln in code.splitlines() if "ThreadMode.POSTING" in ln]
        assert entry_lines and entry_lines[0].lstrip().startswith("ThreadMode.")
        compile(code, "<test>", "exec")


class TestRenderErrors:

    def test_invalid_method_name(self):
        with pytest.raises(EmitError):
            render_index(_index(("app.m.A", "not-valid", "app.m.Ping", None)))

    def test_unreferencable_type(self):
        with pytest.raises(EmitError):
            render_index(_index(("Bare", "m", "app.m.Ping", None)))

    def test_keyword_in_path(self):
        with pytest.raises(EmitError):
            render_index(_index(("app.class.A", "m", "app.m.Ping", None)))


class TestGeneratedModuleRuns:

    def test_lookup_returns_entries(self):
        index = _index(("json.JSONDecoder", "decode", "builtins.str", None))
        ns = _exec(render_index(index))
        generated = ns["GeneratedSubscriberIndex"]()
        assert isinstance(generated, SubscriberIndex)
        (method,) = generated.get_subscriber_methods(json.JSONDecoder)
        assert isinstance(method, SubscriberMethod)
        assert method.subscriber_class is json.JSONDecoder
        assert method.method_name == "decode"
        assert method.event_type is str
        assert method.thread_mode is ThreadMode.POSTING
        assert (method.priority, method.sticky) == (1, True)

    def test_unknown_type_returns_none(self):
        index = _index(("json.JSONDecoder", "decode", "builtins.str", None))
        generated = _exec(render_index(index))["GeneratedSubscriberIndex"]()
        assert generated.create_subscribers_for(json.JSONEncoder) is None


class TestWrite:

    def test_write_creates_file(self, tmp_path):
        target = tmp_path / "out" / "index.py"
        artifact = TableEmitter().write(MergedIndex({}), target)
        assert artifact.path == target.resolve()
        assert target.read_text(encoding="utf-8") == artifact.code
        assert os.listdir(target.parent) == ["index.py"]

    def test_write_failure_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        with pytest.raises(EmitError):
            TableEmitter().write(MergedIndex({}), blocker / "index.py")

    def test_failed_render_leaves_no_file(self, tmp_path):
        target = tmp_path / "index.py"
        with pytest.raises(EmitError):
            TableEmitter().write(_index(("Bare", "m", "x.E", None)), target)
        assert not target.exists()


class TestCodeEmitter:

    def test_block_indents(self):
        out = CodeEmitter()
        with out.block("if x:"):
            out.emit("pass")
        assert out.get_code() == "if x:\n    pass\n"

    def test_blank_lines_and_wrapping(self):
        out = CodeEmitter(width=12)
        out.emit("a = 1")
        out.emit_blank(2)
        out.emit_wrapped("call(first,", "second)")
        assert out.get_code() == "a = 1\n\n\ncall(first,\n        second)\n"

    def test_escape_string(self):
        assert CodeEmitter.escape_string('a"b\\c') == '"a\\"b\\\\c"'

    @pytest.mark.parametrize("name, ok", [
        ("app.Foo", True),
        ("app.class", False),
        ("app..Foo", False),
        ("", False),
    ])
    def test_is_dotted_path(self, name, ok):
        assert CodeEmitter.is_dotted_path(name) is ok
