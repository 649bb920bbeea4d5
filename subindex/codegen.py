#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
subindex/codegen.py
===================

Table emitter: turns a :class:`~subindex.merger.MergedIndex` into a Python
module the run-time imports instead of scanning subscribers reflectively.

The generated module:

1. Imports every module that defines a referenced subscriber or event type
2. Imports ``SubscriberIndex``, ``ThreadMode`` and
   ``create_subscriber_method`` from the configured run-time module
3. Defines one ``SubscriberIndex`` subclass whose
   ``create_subscribers_for(subscriber_class)`` holds one ``if`` block per
   indexed type and returns ``None`` for everything else

Own entries are created against ``subscriber_class``; inherited entries
name the ancestor that declares the method so the dispatcher resolves the
right function.

Output depends only on the index and the configuration, so indexing the
same declarations twice gives byte-identical files.
"""

from __future__ import annotations

import contextlib
import keyword
import logging
import os
import tempfile
from dataclasses import dataclass, replace
from io import StringIO
from pathlib import Path
from typing import Any, List, Optional, Set, Union

from subindex.config import IndexerConfig
from subindex.errors import EmitError
from subindex.merger import IndexEntry, MergedIndex
from subindex.model import TypeGraph

_log = logging.getLogger(__name__)

__all__ = [
    "CodeEmitter",
    "IndexArtifact",
    "TableEmitter",
    "render_index",
]

# Wrapped continuation lines never indent deeper than this many levels.
_MAX_WRAP_LEVEL = 12


# ═══════════════════════════════════════════════════════════════════════════
# CODE EMITTER
# ═══════════════════════════════════════════════════════════════════════════

class CodeEmitter:
    """Low-level code emission with indentation management.

    Provides:
    - Automatic indentation tracking
    - Block context managers
    - Width-limited line wrapping
    """

    def __init__(self, indent_str: str = "    ", width: int = 100) -> None:
        self._buffer = StringIO()
        self._indent_str = indent_str
        self._indent_level = 0
        self._width = width

    def emit(self, code: str) -> None:
        """Emit a line of code at the current indentation."""
        if code.strip():  # Non-empty line
            self._buffer.write(self._indent_str * self._indent_level)
            self._buffer.write(code)
        self._buffer.write("\n")

    def emit_wrapped(self, *parts: str) -> None:
        """Emit *parts* separated by spaces, breaking before a part that
        would run past the width.  Continuation lines get two extra
        indentation levels."""
        level = self._indent_level
        line = self._indent_str * level
        for i, part in enumerate(parts):
            if i != 0 and len(line) + 1 + len(part) > self._width:
                self._emit_physical(line)
                if level < _MAX_WRAP_LEVEL:
                    level += 2
                line = self._indent_str * level
            elif i != 0:
                line += " "
            line += part
        self._emit_physical(line)

    def _emit_physical(self, text: str) -> None:
        self._buffer.write(text.rstrip())
        self._buffer.write("\n")

    def emit_blank(self, count: int = 1) -> None:
        """Emit blank lines."""
        self._buffer.write("\n" * count)

    def emit_docstring(self, text: str) -> None:
        """Emit a docstring."""
        lines = text.strip().split("\n")
        if len(lines) == 1:
            self.emit(f'"""{lines[0]}"""')
        else:
            self.emit('"""')
            for line in lines:
                self.emit(line)
            self.emit('"""')

    def indent(self) -> None:
        """Increase indentation level."""
        self._indent_level += 1

    def dedent(self) -> None:
        """Decrease indentation level."""
        self._indent_level = max(0, self._indent_level - 1)

    def block(self, header: str) -> "CodeEmitter._BlockContext":
        """Context manager for indented blocks."""
        return self._BlockContext(self, header)

    class _BlockContext:
        """Context manager for code blocks."""

        def __init__(self, emitter: "CodeEmitter", header: str) -> None:
            self._emitter = emitter
            self._header = header

        def __enter__(self) -> "CodeEmitter":
            self._emitter.emit(self._header)
            self._emitter.indent()
            return self._emitter

        def __exit__(self, *args: Any) -> None:
            self._emitter.dedent()

    def get_code(self) -> str:
        """Get the generated code."""
        return self._buffer.getvalue()

    @staticmethod
    def escape_string(s: str) -> str:
        """Escape a string for Python code."""
        return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'

    @staticmethod
    def is_dotted_path(name: str) -> bool:
        return bool(name) and all(
            part.isidentifier() and not keyword.iskeyword(part)
            for part in name.split(".")
        )


# ═══════════════════════════════════════════════════════════════════════════
# GENERATED ARTIFACT
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class IndexArtifact:
    """Generated index source plus metadata."""

    code: str
    class_name: str
    type_count: int
    entry_count: int
    path: Optional[Path] = None


# ═══════════════════════════════════════════════════════════════════════════
# TABLE EMITTER
# ═══════════════════════════════════════════════════════════════════════════

class TableEmitter:
    """Serialises a merged index into a Python module."""

    def __init__(self, config: Optional[IndexerConfig] = None) -> None:
        self.config = config or IndexerConfig()

    # -- rendering ---------------------------------------------------------

    def render(
        self, index: MergedIndex, graph: Optional[TypeGraph] = None
    ) -> IndexArtifact:
        if graph is None:
            graph = TypeGraph()
        cfg = self.config
        out = CodeEmitter(indent_str=cfg.indent, width=cfg.line_width)

        out.emit_docstring("Subscriber index generated by subindex, do not edit.")
        out.emit_blank()
        for module in self._imports(index, graph):
            out.emit(f"import {module}")
        out.emit(
            f"from {cfg.runtime_module} import SubscriberIndex, ThreadMode, "
            f"create_subscriber_method"
        )
        out.emit_blank(2)

        with out.block(f"class {cfg.index_class_name}(SubscriberIndex):"):
            out.emit_blank()
            with out.block("def create_subscribers_for(self, subscriber_class):"):
                for subscriber, entries in index.items():
                    self._render_type(out, subscriber, entries)
                out.emit("return None")

        return IndexArtifact(
            code=out.get_code(),
            class_name=cfg.index_class_name,
            type_count=len(index),
            entry_count=index.entry_count(),
        )

    def _render_type(
        self,
        out: CodeEmitter,
        subscriber: str,
        entries: tuple,
    ) -> None:
        with out.block(f"if subscriber_class is {subscriber}:"):
            with out.block("return ("):
                for entry in entries:
                    self._render_entry(out, entry)
            out.emit(")")

    def _render_entry(self, out: CodeEmitter, entry: IndexEntry) -> None:
        decl = entry.declaration
        if not decl.method_name.isidentifier():
            raise EmitError(
                f"Cannot index method with invalid name {decl.method_name!r}",
                location=decl.location,
            )
        target = entry.inherited_from or "subscriber_class"
        out.emit_wrapped(
            f"create_subscriber_method({target},",
            f"{CodeEmitter.escape_string(decl.method_name)},",
            f"{decl.parameter_type},",
            f"ThreadMode.{decl.thread_mode.name}, {decl.priority}, {decl.sticky}),",
        )

    def _imports(self, index: MergedIndex, graph: TypeGraph) -> List[str]:
        modules: Set[str] = set()
        for name in index.referenced_types():
            if not CodeEmitter.is_dotted_path(name):
                raise EmitError(f"Cannot reference type {name!r} from generated code")
            module = graph.module_of(name)
            if module is None or not (name == module or name.startswith(module + ".")):
                raise EmitError(
                    f"Cannot determine the module defining {name}",
                    location=graph.location_of(name),
                )
            modules.add(module)
        return sorted(modules)

    # -- writing -----------------------------------------------------------

    def write(
        self,
        index: MergedIndex,
        path: Union[str, Path],
        graph: Optional[TypeGraph] = None,
    ) -> IndexArtifact:
        """Render and atomically write the module to *path*.

        The text is rendered completely before the file is touched, and it
        lands under its final name only after a successful write, so a
        failure never leaves a partial table behind.
        """
        artifact = self.render(index, graph)
        target = Path(path).expanduser().resolve()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
            )
        except OSError as exc:
            raise EmitError(
                f"Could not write subscriber index {target}: {exc}", cause=exc
            ) from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(artifact.code)
            os.replace(tmp_name, target)
        except OSError as exc:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise EmitError(
                f"Could not write subscriber index {target}: {exc}", cause=exc
            ) from exc
        _log.info(
            "Wrote %s: %d subscriber type(s), %d entr%s",
            target, artifact.type_count, artifact.entry_count,
            "y" if artifact.entry_count == 1 else "ies",
        )
        return replace(artifact, path=target)


def render_index(
    index: MergedIndex,
    graph: Optional[TypeGraph] = None,
    config: Optional[IndexerConfig] = None,
) -> str:
    """Render *index* and return the module source."""
    return TableEmitter(config).render(index, graph).code
