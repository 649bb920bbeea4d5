"""subindex/scanner.py – Python source front-end.

Reads one Python module with :mod:`ast` and turns it into a
:class:`~subindex.model.DiscoveryPass`:

* every class becomes a :class:`~subindex.model.TypeNode` whose ancestor is
  the first base class;
* every element decorated with the marker (``@subscribe`` by default)
  becomes a :class:`~subindex.model.MethodCandidate`.

Names are resolved statically: imports, module-level classes, classes
nested in the enclosing class body and builtins.  Nothing is imported or
executed.

Public API
----------
``scan_source(text, module, ...) -> DiscoveryPass``
``scan_file(path, source_root=None, ...) -> DiscoveryPass``
``module_name_for(path, source_root=None) -> str``
"""

from __future__ import annotations

import ast
import builtins
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from subindex.annotations import Subscribe, ThreadMode
from subindex.config import IndexerConfig
from subindex.diagnostics import DiagnosticSink, SourceLocation
from subindex.errors import E, InputError
from subindex.model import (
    DiscoveryPass,
    ElementKind,
    MethodCandidate,
    ParameterInfo,
    TypeNode,
    Visibility,
)

__all__ = ["scan_source", "scan_file", "module_name_for"]

_STATIC_DECORATORS = frozenset({"staticmethod", "classmethod"})
_FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


class _Unsupported(Exception):
    """Marker payload the scanner cannot evaluate statically."""


def module_name_for(path: Union[str, Path], source_root: Optional[Union[str, Path]] = None) -> str:
    """Dotted module name of *path* relative to *source_root*.

    Without a root the file name alone is used.
    """
    p = Path(path).resolve()
    if source_root is not None:
        try:
            rel = p.relative_to(Path(source_root).resolve())
        except ValueError:
            raise InputError(f"{p} is not under source root {source_root}") from None
    else:
        rel = Path(p.name)
    parts = list(rel.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    if not parts or not all(part.isidentifier() for part in parts):
        raise InputError(f"Cannot derive a module name for {p}")
    return ".".join(parts)


def _module_statements(body: List[ast.stmt]) -> Iterator[ast.stmt]:
    """Module-level statements, including those under ``if``/``try``
    (``if TYPE_CHECKING:`` imports, optional-dependency fallbacks)."""
    for node in body:
        yield node
        if isinstance(node, ast.If):
            yield from _module_statements(node.body)
            yield from _module_statements(node.orelse)
        elif isinstance(node, ast.Try):
            yield from _module_statements(node.body)
            for handler in node.handlers:
                yield from _module_statements(handler.body)
            yield from _module_statements(node.orelse)
            yield from _module_statements(node.finalbody)


def _decorator_name(dec: ast.expr) -> Optional[str]:
    target = dec.func if isinstance(dec, ast.Call) else dec
    if isinstance(target, ast.Name):
        return target.id
    if isinstance(target, ast.Attribute):
        return target.attr
    return None


class _ModuleScanner:

    def __init__(
        self,
        module: str,
        filename: str,
        config: IndexerConfig,
        sink: Optional[DiagnosticSink],
        is_package: bool,
    ) -> None:
        self.module = module
        self.filename = filename
        self.config = config
        self.sink = sink
        self.is_package = is_package
        self.aliases: Dict[str, str] = {}
        self.types: List[TypeNode] = []
        self.candidates: List[MethodCandidate] = []

    # -- name resolution ---------------------------------------------------

    def _bind_imports(self, tree: ast.Module) -> None:
        for node in _module_statements(tree.body):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.asname:
                        self.aliases[alias.asname] = alias.name
                    else:
                        head = alias.name.split(".")[0]
                        self.aliases[head] = head
            elif isinstance(node, ast.ImportFrom):
                base = self._import_base(node)
                for alias in node.names:
                    if alias.name == "*":
                        continue
                    self.aliases[alias.asname or alias.name] = f"{base}.{alias.name}"
            elif isinstance(node, ast.ClassDef):
                self.aliases[node.name] = f"{self.module}.{node.name}"

    def _import_base(self, node: ast.ImportFrom) -> str:
        if not node.level:
            return node.module or ""
        package = self.module if self.is_package else self.module.rpartition(".")[0]
        for _ in range(node.level - 1):
            package = package.rpartition(".")[0]
        if node.module:
            return f"{package}.{node.module}" if package else node.module
        return package

    def resolve(self, expr: Optional[ast.expr], local: Dict[str, str]) -> Optional[str]:
        """Qualified name *expr* refers to, or ``None`` if it is not a plain
        (possibly dotted) class reference."""
        if expr is None:
            return None
        if isinstance(expr, ast.Name):
            name = expr.id
            if name in local:
                return local[name]
            if name in self.aliases:
                return self.aliases[name]
            if isinstance(getattr(builtins, name, None), type):
                return f"builtins.{name}"
            return f"{self.module}.{name}"
        if isinstance(expr, ast.Attribute):
            head = self.resolve(expr.value, local)
            return f"{head}.{expr.attr}" if head else None
        if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
            try:
                parsed = ast.parse(expr.value.strip(), mode="eval")
            except SyntaxError:
                return None
            return self.resolve(parsed.body, local)
        return None

    def _ancestor(self, node: ast.ClassDef, local: Dict[str, str]) -> Optional[str]:
        if not node.bases:
            return None
        first = node.bases[0]
        if isinstance(first, ast.Subscript):
            first = first.value
        return self.resolve(first, local)

    def _loc(self, node: ast.AST) -> SourceLocation:
        return SourceLocation(
            self.filename,
            getattr(node, "lineno", 0),
            getattr(node, "col_offset", -1) + 1,
        )

    # -- traversal ---------------------------------------------------------

    def scan(self, tree: ast.Module) -> DiscoveryPass:
        self._bind_imports(tree)
        for node in tree.body:
            if isinstance(node, ast.ClassDef):
                self._scan_class(node, self.module, {})
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._scan_marked_element(node, self.module, ElementKind.FUNCTION)
        return DiscoveryPass(
            types=tuple(self.types),
            candidates=tuple(self.candidates),
            source=self.filename,
        )

    def _scan_class(self, node: ast.ClassDef, outer: str, local: Dict[str, str]) -> None:
        qualified = f"{outer}.{node.name}"
        self._scan_marked_element(node, outer, ElementKind.CLASS)
        self.types.append(
            TypeNode(
                name=qualified,
                visibility=Visibility.of_name(node.name),
                ancestor=self._ancestor(node, local),
                location=self._loc(node),
                module=self.module,
            )
        )

        inner_local = dict(local)
        for child in node.body:
            if isinstance(child, ast.ClassDef):
                inner_local[child.name] = f"{qualified}.{child.name}"

        # Later definitions of a name replace earlier ones, as at run time.
        methods: Dict[str, _FunctionNode] = {}
        for child in node.body:
            if isinstance(child, ast.ClassDef):
                self._scan_class(child, qualified, inner_local)
            elif isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)):
                methods[child.name] = child
        for fn in methods.values():
            self._scan_method(fn, qualified, inner_local)

    def _marker(self, decorators: List[ast.expr]) -> Optional[ast.expr]:
        for dec in decorators:
            if _decorator_name(dec) == self.config.marker:
                return dec
        return None

    def _scan_marked_element(
        self,
        node: Union[ast.ClassDef, _FunctionNode],
        owner: str,
        kind: ElementKind,
    ) -> None:
        marker = self._marker(node.decorator_list)
        if marker is None:
            return
        payload = self._payload(marker)
        if payload is None:
            return
        self.candidates.append(
            MethodCandidate(
                declaring_type=owner,
                name=node.name,
                kind=kind,
                visibility=Visibility.of_name(node.name),
                subscribe=payload,
                location=self._loc(node),
            )
        )

    def _scan_method(self, fn: _FunctionNode, owner: str, local: Dict[str, str]) -> None:
        marker = self._marker(fn.decorator_list)
        if marker is None:
            return
        payload = self._payload(marker)
        if payload is None:
            return
        is_static = any(
            _decorator_name(dec) in _STATIC_DECORATORS for dec in fn.decorator_list
        )
        args = fn.args
        positional = list(args.posonlyargs) + list(args.args)
        if not is_static:
            positional = positional[1:]  # receiver
        params = positional
        if args.vararg is not None:
            params.append(args.vararg)
        params.extend(args.kwonlyargs)
        if args.kwarg is not None:
            params.append(args.kwarg)

        self.candidates.append(
            MethodCandidate(
                declaring_type=owner,
                name=fn.name,
                kind=ElementKind.METHOD,
                is_static=is_static,
                visibility=Visibility.of_name(fn.name),
                parameters=tuple(
                    ParameterInfo(a.arg, self.resolve(a.annotation, local))
                    for a in params
                ),
                subscribe=payload,
                location=self._loc(fn),
            )
        )

    # -- marker payload ----------------------------------------------------

    def _payload(self, marker: ast.expr) -> Optional[Subscribe]:
        if not isinstance(marker, ast.Call):
            return Subscribe()
        try:
            if marker.args:
                raise _Unsupported("positional arguments are not supported")
            values: Dict[str, object] = {}
            for kw in marker.keywords:
                if kw.arg is None:
                    raise _Unsupported("**kwargs are not supported")
                values[kw.arg] = self._keyword_value(kw.arg, kw.value)
            return Subscribe(**values)  # type: ignore[arg-type]
        except _Unsupported as exc:
            if self.sink is not None:
                self.sink.report(
                    E.UNSUPPORTED_ANNOTATION.code,
                    f"Cannot read @{self.config.marker} arguments: {exc}",
                    E.UNSUPPORTED_ANNOTATION.default_severity,
                    self._loc(marker),
                )
            return None

    def _keyword_value(self, key: str, value: ast.expr) -> object:
        if key == "thread_mode":
            if isinstance(value, ast.Attribute):
                raw: object = value.attr
            elif isinstance(value, ast.Name):
                raw = value.id
            elif isinstance(value, ast.Constant) and isinstance(value.value, str):
                raw = value.value
            else:
                raise _Unsupported("thread_mode must be a ThreadMode member")
            try:
                return ThreadMode.parse(str(raw))
            except ValueError as exc:
                raise _Unsupported(str(exc)) from None
        if key == "priority":
            number = _int_literal(value)
            if number is None:
                raise _Unsupported("priority must be an integer literal")
            return number
        if key == "sticky":
            if isinstance(value, ast.Constant) and isinstance(value.value, bool):
                return value.value
            raise _Unsupported("sticky must be True or False")
        raise _Unsupported(f"unknown argument '{key}'")


def _int_literal(node: ast.expr) -> Optional[int]:
    if isinstance(node, ast.Constant) and type(node.value) is int:
        return node.value
    if (
        isinstance(node, ast.UnaryOp)
        and isinstance(node.op, (ast.USub, ast.UAdd))
        and isinstance(node.operand, ast.Constant)
        and type(node.operand.value) is int
    ):
        return -node.operand.value if isinstance(node.op, ast.USub) else node.operand.value
    return None


def scan_source(
    text: str,
    module: str,
    filename: str = "<string>",
    config: Optional[IndexerConfig] = None,
    sink: Optional[DiagnosticSink] = None,
    is_package: bool = False,
) -> DiscoveryPass:
    """Scan Python source *text* as module *module*."""
    try:
        tree = ast.parse(text, filename=filename)
    except SyntaxError as exc:
        raise InputError(
            f"Python syntax error: {exc.msg}",
            E.INPUT_SYNTAX,
            SourceLocation(filename, exc.lineno or 0, exc.offset or 0),
            cause=exc,
        ) from exc
    scanner = _ModuleScanner(module, filename, config or IndexerConfig(), sink, is_package)
    return scanner.scan(tree)


def scan_file(
    path: Union[str, Path],
    source_root: Optional[Union[str, Path]] = None,
    config: Optional[IndexerConfig] = None,
    sink: Optional[DiagnosticSink] = None,
) -> DiscoveryPass:
    """Read and scan one ``.py`` file; its module name comes from
    :func:`module_name_for`."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InputError(f"Cannot read {p}: {exc}", cause=exc) from exc
    return scan_source(
        text,
        module_name_for(p, source_root),
        filename=str(p),
        config=config,
        sink=sink,
        is_package=p.name == "__init__.py",
    )
