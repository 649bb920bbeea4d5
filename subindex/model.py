"""
subindex data model

Types shared by every stage of the indexer:

* declared types (``TypeNode``) and the session's ``TypeGraph``
* raw annotated elements delivered by a front-end (``MethodCandidate``)
* admitted subscriber declarations (``SubscriberDeclaration``)
* one front-end pass (``DiscoveryPass``)

Types are identified by their qualified name (``"app.listeners.Foo"``).
A ``TypeNode`` refers to its ancestor by name only; resolving that name is
the graph's job, so a node never owns its parent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import (
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from subindex.annotations import Subscribe, ThreadMode
from subindex.config import DEFAULT_PLATFORM_PREFIXES
from subindex.diagnostics import SourceLocation
from subindex.errors import TypeGraphError

_log = logging.getLogger(__name__)

__all__ = [
    "Visibility",
    "ElementKind",
    "TypeNode",
    "ParameterInfo",
    "MethodCandidate",
    "SubscriberDeclaration",
    "DiscoveryPass",
    "TypeGraph",
    "walk_ancestors",
    "simple_name",
    "ThreadMode",
    "Subscribe",
]


def simple_name(qualified: str) -> str:
    """``"app.events.Ping"`` -> ``"Ping"``."""
    return qualified.rsplit(".", 1)[-1]


def _under(name: str, prefix: str) -> bool:
    # "builtins." matches by plain prefix, "app" matches "app" and "app.*"
    if prefix.endswith("."):
        return name.startswith(prefix)
    return name == prefix or name.startswith(prefix + ".")


class Visibility(Enum):
    PUBLIC = "public"
    NON_PUBLIC = "non-public"

    @classmethod
    def of_name(cls, name: str) -> "Visibility":
        """Python naming convention: ``_x`` is private, ``__x__`` is not."""
        short = simple_name(name)
        if short.startswith("__") and short.endswith("__") and len(short) > 4:
            return cls.PUBLIC
        if short.startswith("_"):
            return cls.NON_PUBLIC
        return cls.PUBLIC

    @classmethod
    def parse(cls, value: str) -> "Visibility":
        lowered = value.lower()
        if lowered == "public":
            return cls.PUBLIC
        if lowered in ("non-public", "private", "protected", "package"):
            return cls.NON_PUBLIC
        raise ValueError(f"Unknown visibility: {value!r}")

    @property
    def is_public(self) -> bool:
        return self is Visibility.PUBLIC


class ElementKind(Enum):
    """What the marker was attached to."""
    METHOD = auto()
    FUNCTION = auto()
    CLASS = auto()
    OTHER = auto()


@dataclass(frozen=True)
class TypeNode:
    """A declared type."""
    name: str
    visibility: Visibility = Visibility.PUBLIC
    ancestor: Optional[str] = None
    location: Optional[SourceLocation] = None
    module: Optional[str] = None

    @property
    def simple_name(self) -> str:
        return simple_name(self.name)

    @property
    def module_name(self) -> Optional[str]:
        """Importable module defining the type (nested classes need it set)."""
        if self.module:
            return self.module
        if "." in self.name:
            return self.name.rsplit(".", 1)[0]
        return None


@dataclass(frozen=True)
class ParameterInfo:
    name: str
    type_name: Optional[str] = None


@dataclass(frozen=True)
class MethodCandidate:
    """
    An annotated element exactly as a front-end saw it.

    Nothing here has been checked yet; the validator decides whether it
    becomes a ``SubscriberDeclaration``.
    """
    declaring_type: str
    name: str
    kind: ElementKind = ElementKind.METHOD
    is_static: bool = False
    visibility: Visibility = Visibility.PUBLIC
    parameters: Tuple[ParameterInfo, ...] = ()
    subscribe: Subscribe = field(default_factory=Subscribe)
    location: Optional[SourceLocation] = None

    @property
    def identity(self) -> Tuple[str, str, Tuple[Optional[str], ...]]:
        """Key for recognising the same element delivered twice."""
        return (
            self.declaring_type,
            self.name,
            tuple(p.type_name for p in self.parameters),
        )

    def display_name(self) -> str:
        params = ", ".join(p.type_name or p.name for p in self.parameters)
        return f"{simple_name(self.declaring_type)}.{self.name}({params})"


@dataclass(frozen=True)
class SubscriberDeclaration:
    """A validated subscriber method.  Immutable once created."""
    declaring_type: str
    method_name: str
    parameter_type: str
    thread_mode: ThreadMode = ThreadMode.MAIN
    priority: int = 0
    sticky: bool = False
    location: Optional[SourceLocation] = field(default=None, compare=False)

    @property
    def signature(self) -> Tuple[str, str]:
        """Deduplication key: overriding methods share it."""
        return (self.method_name, self.parameter_type)

    def display_name(self) -> str:
        return (
            f"{simple_name(self.declaring_type)}.{self.method_name}"
            f"({simple_name(self.parameter_type)})"
        )


@dataclass(frozen=True)
class DiscoveryPass:
    """Everything one front-end pass delivered."""
    types: Tuple[TypeNode, ...] = ()
    candidates: Tuple[MethodCandidate, ...] = ()
    source: str = "<pass>"

    @property
    def has_candidates(self) -> bool:
        return bool(self.candidates)


# ============================================================================
# ANCESTOR WALK
# ============================================================================

ParentLookup = Callable[[str], Optional[str]]


def walk_ancestors(start: str, parent_of: ParentLookup) -> Iterator[str]:
    """Yield *start*, then each ancestor nearest-first.

    *parent_of* returns ``None`` where the walk must stop (no parent, or a
    parent outside the application namespace).  A type seen twice means the
    chain is cyclic, which no real class hierarchy allows.
    """
    seen: Set[str] = set()
    current: Optional[str] = start
    while current is not None:
        if current in seen:
            raise TypeGraphError(
                f"Cyclic ancestor chain through {current} (starting at {start})"
            )
        seen.add(current)
        yield current
        current = parent_of(current)


class TypeGraph:
    """
    The session's universe of declared types.

    Accumulates across passes; a type delivered again replaces the earlier
    node.  ``ancestor_of`` is the parent lookup used by the resolver and the
    merger.
    """

    def __init__(
        self,
        platform_prefixes: Sequence[str] = DEFAULT_PLATFORM_PREFIXES,
        application_prefixes: Sequence[str] = (),
    ) -> None:
        self._nodes: Dict[str, TypeNode] = {}
        self._platform = tuple(platform_prefixes)
        self._application = tuple(application_prefixes)

    def add(self, node: TypeNode) -> None:
        previous = self._nodes.get(node.name)
        if previous is not None and previous != node:
            _log.debug("Type %s redeclared; keeping latest", node.name)
        self._nodes[node.name] = node

    def add_all(self, nodes: Iterable[TypeNode]) -> None:
        for node in nodes:
            self.add(node)

    def get(self, name: str) -> Optional[TypeNode]:
        return self._nodes.get(name)

    def require(self, name: str) -> TypeNode:
        node = self._nodes.get(name)
        if node is None:
            raise TypeGraphError(f"Type {name} is not declared in this session")
        return node

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def names(self) -> List[str]:
        return list(self._nodes)

    def is_platform(self, name: str) -> bool:
        """True for types outside the application namespace."""
        if any(_under(name, p) for p in self._platform):
            return True
        if self._application:
            return not any(_under(name, p) for p in self._application)
        return False

    def ancestor_of(self, name: str) -> Optional[str]:
        node = self.require(name)
        parent = node.ancestor
        if parent is None or self.is_platform(parent):
            return None
        if parent not in self._nodes:
            _log.debug("Ancestor %s of %s is not indexed; stopping walk", parent, name)
            return None
        return parent

    def visibility_of(self, name: str) -> Visibility:
        node = self._nodes.get(name)
        if node is not None:
            return node.visibility
        return Visibility.of_name(name)

    def location_of(self, name: str) -> Optional[SourceLocation]:
        node = self._nodes.get(name)
        return node.location if node is not None else None

    def module_of(self, name: str) -> Optional[str]:
        node = self._nodes.get(name)
        if node is None:
            node = TypeNode(name)
        return node.module_name
