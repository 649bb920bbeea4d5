"""subindex/parser.py – S-expression type-model front-end.

Reads a type-model dump (``*.sidx``) written by some other host and turns
it into a :class:`~subindex.model.DiscoveryPass`.  This is how declarations
from code the Python scanner cannot see (generated classes, other
toolchains, test fixtures) enter a session.

Design principles
-----------------
* **Head-symbol dispatch** – every top-level form ``(tag ...)`` goes to the
  ``_parse_<tag>`` helper registered for it.
* **Strict shapes** – unknown forms, unknown fields and wrong value types
  raise :class:`~subindex.errors.InputError`; nothing is silently skipped.
* **Plain data out** – the result holds only model records, so a parsed
  model and a scanned module are indistinguishable to the session.

Surface syntax
--------------
::

    ;; a declared type
    (type "app.Foo"
      (visibility public)          ;; public | non-public | private | ...
      (extends "app.Base")         ;; first ancestor, optional
      (module "app")               ;; defining module, optional
      (loc "foo.py" 3))

    ;; an annotated method
    (method "on_event"
      (in "app.Foo")
      (params "app.Ping")          ;; one entry per parameter; _ = untyped
      (modifiers public static)    ;; visibility defaults to public
      (subscribe (thread-mode MAIN) (priority 0) (sticky false))
      (loc "foo.py" 7))

    ;; annotation on something that is not a method
    (element "CONSTANT" (in "app.Foo") (kind field) (loc "foo.py" 2))

``(loc ...)`` takes ``file line [column]`` or just ``line [column]``, in
which case the dump's own file name is used.

Public API
----------
``parse_model(text, filename="<string>") -> DiscoveryPass``
``parse_file(path) -> DiscoveryPass``
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, NoReturn, Optional, Tuple, Union

import sexpdata
from sexpdata import Symbol

from subindex.annotations import Subscribe, ThreadMode
from subindex.diagnostics import SourceLocation
from subindex.errors import InputError
from subindex.model import (
    DiscoveryPass,
    ElementKind,
    MethodCandidate,
    ParameterInfo,
    TypeNode,
    Visibility,
)

__all__ = ["parse_model", "parse_file"]

# Raw sexpdata output: list, Symbol, str, int, float
Sexp = Any


# ═══════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════

class _Context:
    """Per-parse state: the dump's file name and collected records."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        self.types: List[TypeNode] = []
        self.candidates: List[MethodCandidate] = []

    def fail(self, message: str, location: Optional[SourceLocation] = None) -> NoReturn:
        raise InputError(message, location=location or SourceLocation(self.filename))


def _sym_name(ctx: _Context, s: Sexp) -> str:
    if isinstance(s, Symbol):
        return s.value()
    ctx.fail(f"Expected symbol, got {type(s).__name__}: {s!r}")


def _expect_list(ctx: _Context, s: Sexp, *, min_len: int = 0) -> list:
    if not isinstance(s, list):
        ctx.fail(f"Expected a (tag ...) form, got {type(s).__name__}: {s!r}")
    if len(s) < min_len:
        ctx.fail(
            f"Form too short: expected at least {min_len} elements, got {len(s)}: "
            f"{sexpdata.dumps(s)}"
        )
    return s


def _head(ctx: _Context, s: list) -> str:
    if not s:
        ctx.fail("Unexpected empty form")
    return _sym_name(ctx, s[0])


def _as_str(ctx: _Context, s: Sexp) -> str:
    """Accepts a Symbol or a string literal."""
    if isinstance(s, Symbol):
        return s.value()
    if isinstance(s, str):
        return s
    ctx.fail(f"Expected string or symbol, got {type(s).__name__}: {s!r}")


def _as_int(ctx: _Context, s: Sexp) -> int:
    if isinstance(s, int) and not isinstance(s, bool):
        return s
    ctx.fail(f"Expected integer, got {type(s).__name__}: {s!r}")


def _as_bool(ctx: _Context, s: Sexp) -> bool:
    if isinstance(s, bool):
        return s
    if isinstance(s, Symbol):
        v = s.value().lower()
        if v in ("true", "#t", "t"):
            return True
        if v in ("false", "#f", "nil"):
            return False
    ctx.fail(f"Expected boolean, got {type(s).__name__}: {s!r}")


def _fields(ctx: _Context, form: list, allowed: Tuple[str, ...]) -> Dict[str, list]:
    """Split ``(field value...)`` sub-forms after the name into a dict."""
    out: Dict[str, list] = {}
    for sub in form[2:]:
        sub = _expect_list(ctx, sub, min_len=1)
        tag = _head(ctx, sub)
        if tag not in allowed:
            ctx.fail(f"Unknown field ({tag} ...) in ({_head(ctx, form)} ...)")
        if tag in out:
            ctx.fail(f"Field ({tag} ...) given twice in ({_head(ctx, form)} ...)")
        out[tag] = sub[1:]
    return out


def _single(ctx: _Context, values: list, tag: str) -> Sexp:
    if len(values) != 1:
        ctx.fail(f"({tag} ...) takes exactly one value, got {len(values)}")
    return values[0]


def _parse_loc(ctx: _Context, values: Optional[list]) -> SourceLocation:
    if values is None:
        return SourceLocation(ctx.filename)
    items = list(values)
    file = ctx.filename
    if items and isinstance(items[0], str):
        file = items.pop(0)
    if not 1 <= len(items) <= 2:
        ctx.fail("(loc ...) takes [file] line [column]")
    line = _as_int(ctx, items[0])
    column = _as_int(ctx, items[1]) if len(items) > 1 else 0
    return SourceLocation(file, line, column)


# ═══════════════════════════════════════════════════════════════════════
#  Dispatch registry
# ═══════════════════════════════════════════════════════════════════════

_FORM_DISPATCH: Dict[str, Callable[[_Context, list], None]] = {}


def _register(table: dict, tag: str):
    """Decorator: register a parser function under *tag* in *table*."""
    def deco(fn):
        table[tag] = fn
        return fn
    return deco


# ═══════════════════════════════════════════════════════════════════════
#  Form parsers
# ═══════════════════════════════════════════════════════════════════════

@_register(_FORM_DISPATCH, "type")
def _parse_type(ctx: _Context, form: list) -> None:
    name = _as_str(ctx, form[1])
    f = _fields(ctx, form, ("visibility", "extends", "module", "loc"))
    location = _parse_loc(ctx, f.get("loc"))

    visibility = Visibility.of_name(name)
    if "visibility" in f:
        raw = _as_str(ctx, _single(ctx, f["visibility"], "visibility"))
        try:
            visibility = Visibility.parse(raw)
        except ValueError as exc:
            ctx.fail(str(exc), location)

    ancestor = None
    if "extends" in f:
        ancestor = _as_str(ctx, _single(ctx, f["extends"], "extends"))
    module = None
    if "module" in f:
        module = _as_str(ctx, _single(ctx, f["module"], "module"))

    ctx.types.append(
        TypeNode(
            name=name,
            visibility=visibility,
            ancestor=ancestor,
            location=location,
            module=module,
        )
    )


_MODIFIER_VISIBILITY = {
    "public": Visibility.PUBLIC,
    "non-public": Visibility.NON_PUBLIC,
    "private": Visibility.NON_PUBLIC,
    "protected": Visibility.NON_PUBLIC,
    "package": Visibility.NON_PUBLIC,
}


@_register(_FORM_DISPATCH, "method")
def _parse_method(ctx: _Context, form: list) -> None:
    name = _as_str(ctx, form[1])
    f = _fields(ctx, form, ("in", "params", "modifiers", "subscribe", "loc"))
    location = _parse_loc(ctx, f.get("loc"))
    if "in" not in f:
        ctx.fail(f"(method {name!r} ...) needs an (in ...) field", location)
    owner = _as_str(ctx, _single(ctx, f["in"], "in"))

    params = []
    for i, raw in enumerate(f.get("params", [])):
        if isinstance(raw, Symbol) and raw.value() == "_":
            params.append(ParameterInfo(f"arg{i}"))
        else:
            params.append(ParameterInfo(f"arg{i}", _as_str(ctx, raw)))

    visibility = Visibility.PUBLIC
    is_static = False
    for raw in f.get("modifiers", []):
        modifier = _sym_name(ctx, raw)
        if modifier == "static":
            is_static = True
        elif modifier in _MODIFIER_VISIBILITY:
            visibility = _MODIFIER_VISIBILITY[modifier]
        else:
            ctx.fail(f"Unknown modifier {modifier!r}", location)

    ctx.candidates.append(
        MethodCandidate(
            declaring_type=owner,
            name=name,
            kind=ElementKind.METHOD,
            is_static=is_static,
            visibility=visibility,
            parameters=tuple(params),
            subscribe=_parse_subscribe(ctx, f.get("subscribe", []), location),
            location=location,
        )
    )


_ELEMENT_KINDS = {
    "field": ElementKind.OTHER,
    "other": ElementKind.OTHER,
    "class": ElementKind.CLASS,
    "function": ElementKind.FUNCTION,
}


@_register(_FORM_DISPATCH, "element")
def _parse_element(ctx: _Context, form: list) -> None:
    name = _as_str(ctx, form[1])
    f = _fields(ctx, form, ("in", "kind", "subscribe", "loc"))
    location = _parse_loc(ctx, f.get("loc"))
    owner = _as_str(ctx, _single(ctx, f["in"], "in")) if "in" in f else ""

    kind = ElementKind.OTHER
    if "kind" in f:
        raw = _sym_name(ctx, _single(ctx, f["kind"], "kind"))
        if raw not in _ELEMENT_KINDS:
            ctx.fail(f"Unknown element kind {raw!r}", location)
        kind = _ELEMENT_KINDS[raw]

    ctx.candidates.append(
        MethodCandidate(
            declaring_type=owner,
            name=name,
            kind=kind,
            subscribe=_parse_subscribe(ctx, f.get("subscribe", []), location),
            location=location,
        )
    )


def _parse_subscribe(ctx: _Context, items: list, location: SourceLocation) -> Subscribe:
    values: Dict[str, Any] = {}
    for sub in items:
        sub = _expect_list(ctx, sub, min_len=2)
        tag = _head(ctx, sub)
        value = _single(ctx, sub[1:], tag)
        if tag == "thread-mode":
            try:
                values["thread_mode"] = ThreadMode.parse(_as_str(ctx, value))
            except ValueError as exc:
                ctx.fail(str(exc), location)
        elif tag == "priority":
            values["priority"] = _as_int(ctx, value)
        elif tag == "sticky":
            values["sticky"] = _as_bool(ctx, value)
        else:
            ctx.fail(f"Unknown subscribe option ({tag} ...)", location)
    return Subscribe(**values)


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

def parse_model(text: str, filename: str = "<string>") -> DiscoveryPass:
    """Parse a type-model dump into one discovery pass.

    Raises
    ------
    InputError
        If the text is not valid S-expression syntax or holds an unknown
        or malformed form.

    Example
    -------
    >>> src = '''
    ... (type "app.Foo" (loc "foo.py" 1))
    ... (method "on_event" (in "app.Foo") (params "builtins.str"))
    ... '''
    >>> len(parse_model(src).candidates)
    1
    """
    ctx = _Context(filename)
    # Wrap everything in one list so sexpdata reads every top-level form;
    # the newline keeps a trailing comment from eating the closing paren.
    try:
        forms = sexpdata.loads("(" + text + "\n)", nil=None, true=None, false=None)
    except Exception as exc:
        raise InputError(
            f"S-expression syntax error: {exc}",
            location=SourceLocation(filename),
            cause=exc,
        ) from exc

    for form in forms:
        form = _expect_list(ctx, form, min_len=2)
        tag = _head(ctx, form)
        handler = _FORM_DISPATCH.get(tag)
        if handler is None:
            ctx.fail(f"Unknown form ({tag} ...)")
        handler(ctx, form)

    return DiscoveryPass(
        types=tuple(ctx.types),
        candidates=tuple(ctx.candidates),
        source=filename,
    )


def parse_file(path: Union[str, Path]) -> DiscoveryPass:
    """Read and parse one ``.sidx`` file."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InputError(f"Cannot read {p}: {exc}", cause=exc) from exc
    return parse_model(text, filename=str(p))
