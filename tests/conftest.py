# tests/conftest.py
"""
Shared fixtures, sample sources and record builders for the subindex tests.
"""

import sys
import textwrap
from pathlib import Path

import pytest

from subindex.annotations import Subscribe, ThreadMode
from subindex.diagnostics import DiagnosticCollector, SourceLocation
from subindex.model import (
    DiscoveryPass,
    ElementKind,
    MethodCandidate,
    ParameterInfo,
    TypeNode,
    Visibility,
)


# ═══════════════════════════════════════════════════════════════════════════
# PYTHON SOURCES
# ═══════════════════════════════════════════════════════════════════════════

EVENTS_SRC = textwrap.dedent('''\
    class Ping:
        pass


    class Pong:
        pass


    class _Secret:
        pass
''')

# One public subscriber taking a builtin event type.
SIMPLE_SRC = textwrap.dedent('''\
    from subindex.annotations import subscribe


    class Foo:
        @subscribe
        def on_event(self, s: str) -> None:
            self.last = s
''')

# Child overrides on_ping, inherits on_pong.
INHERITANCE_SRC = textwrap.dedent('''\
    from subindex.annotations import ThreadMode, subscribe
    from app.events import Ping, Pong


    class Base:
        @subscribe(thread_mode=ThreadMode.BACKGROUND, priority=5)
        def on_ping(self, event: Ping) -> None:
            pass

        @subscribe(sticky=True)
        def on_pong(self, event: Pong) -> None:
            pass


    class Child(Base):
        @subscribe
        def on_ping(self, event: Ping) -> None:
            pass
''')

# Every validation rule broken once, plus one valid method.
INVALID_SRC = textwrap.dedent('''\
    from subindex.annotations import subscribe
    from app.events import Ping


    @subscribe
    def loose_function(event: Ping) -> None:
        pass


    class Listener:
        @staticmethod
        @subscribe
        def on_static(event: Ping) -> None:
            pass

        @subscribe
        def _on_private(self, event: Ping) -> None:
            pass

        @subscribe
        def on_two(self, first: Ping, second: Ping) -> None:
            pass

        @subscribe
        def on_untyped(self, event) -> None:
            pass

        @subscribe
        def on_ping(self, event: Ping) -> None:
            pass
''')

# A public subscriber whose ancestor is private.
PRIVATE_BASE_SRC = textwrap.dedent('''\
    from subindex.annotations import subscribe
    from app.events import Ping, Pong


    class _Hidden:
        @subscribe
        def on_ping(self, event: Ping) -> None:
            pass


    class Visible(_Hidden):
        @subscribe
        def on_pong(self, event: Pong) -> None:
            pass
''')


# ═══════════════════════════════════════════════════════════════════════════
# TYPE-MODEL DUMPS
# ═══════════════════════════════════════════════════════════════════════════

MODEL_SIDX = textwrap.dedent('''\
    ;; two types, one subscriber method each
    (type "app.model.Base" (visibility public) (module "app.model") (loc "model.py" 1))
    (type "app.model.Child" (extends "app.model.Base") (module "app.model")
          (loc "model.py" 8))
    (method "on_ping" (in "app.model.Base") (params "app.events.Ping")
            (modifiers public)
            (subscribe (thread-mode ASYNC) (priority -2) (sticky true))
            (loc "model.py" 3))
    (method "on_pong" (in "app.model.Child") (params "app.events.Pong")
            (loc "model.py" 10))
''')


# ═══════════════════════════════════════════════════════════════════════════
# RECORD BUILDERS
# ═══════════════════════════════════════════════════════════════════════════

def loc(line: int, file: str = "test.py") -> SourceLocation:
    return SourceLocation(file, line)


def type_node(name, ancestor=None, visibility=None, module=None, line=1):
    """TypeNode with the visibility implied by the name unless given."""
    if visibility is None:
        visibility = Visibility.of_name(name)
    return TypeNode(
        name=name,
        visibility=visibility,
        ancestor=ancestor,
        location=loc(line),
        module=module,
    )


def candidate(
    owner,
    name,
    *event_types,
    kind=ElementKind.METHOD,
    is_static=False,
    visibility=Visibility.PUBLIC,
    thread_mode=ThreadMode.MAIN,
    priority=0,
    sticky=False,
    line=1,
):
    """MethodCandidate with one parameter per event type (None = untyped)."""
    params = tuple(
        ParameterInfo(f"arg{i}", t) for i, t in enumerate(event_types)
    )
    return MethodCandidate(
        declaring_type=owner,
        name=name,
        kind=kind,
        is_static=is_static,
        visibility=visibility,
        parameters=params,
        subscribe=Subscribe(thread_mode, priority, sticky),
        location=loc(line),
    )


def make_pass(*items, source="<test>"):
    """Split TypeNodes and MethodCandidates into one DiscoveryPass."""
    return DiscoveryPass(
        types=tuple(i for i in items if isinstance(i, TypeNode)),
        candidates=tuple(i for i in items if isinstance(i, MethodCandidate)),
        source=source,
    )


def write_package(root: Path, package: str, modules: dict) -> Path:
    """Write ``package/<name>.py`` for each entry of *modules* under *root*."""
    parts = package.split(".")
    for depth in range(1, len(parts) + 1):
        directory = root.joinpath(*parts[:depth])
        directory.mkdir(parents=True, exist_ok=True)
        init = directory / "__init__.py"
        if not init.exists():
            init.write_text("", encoding="utf-8")
    pkg_dir = root.joinpath(*parts)
    for name, text in modules.items():
        (pkg_dir / f"{name}.py").write_text(text, encoding="utf-8")
    return pkg_dir


# ═══════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def sink():
    return DiagnosticCollector()


@pytest.fixture
def importable(tmp_path, monkeypatch):
    """tmp_path on sys.path; modules imported during the test are dropped."""
    monkeypatch.syspath_prepend(str(tmp_path))
    yield tmp_path
    for name, module in list(sys.modules.items()):
        origin = getattr(module, "__file__", None) or ""
        if origin.startswith(str(tmp_path)):
            del sys.modules[name]
