"""
subindex/resolver.py
====================

Decides, per subscriber type, whether the generated index may refer to it
or whether the run-time must fall back to reflective discovery.

A subscriber type is skipped when, walking from the type itself outward
through its application-namespace ancestors, one of these is found first:

1. the visited type is not public;
2. a declaration registered directly on the visited type takes an event
   type that is not public.

Both checks run on the starting type too, node check before declaration
check, so a public subscriber with a private event type is caught on the
first step.  Only the first violation per subscriber type is recorded and
reported.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional

from subindex.diagnostics import DiagnosticSink
from subindex.errors import E, ErrorCode
from subindex.model import ParentLookup, TypeGraph, walk_ancestors
from subindex.registry import MethodRegistry

_log = logging.getLogger(__name__)

__all__ = ["SkipSet", "VisibilityResolver"]


class SkipSet:
    """Subscriber types flagged for reflective fall-back, in flag order."""

    def __init__(self) -> None:
        self._members: dict = {}

    def add(self, type_name: str) -> bool:
        """Add *type_name*; ``False`` if it was already present."""
        if type_name in self._members:
            return False
        self._members[type_name] = None
        return True

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._members))

    def __len__(self) -> int:
        return len(self._members)

    def as_set(self) -> frozenset:
        return frozenset(self._members)


class VisibilityResolver:
    """Builds the ``SkipSet`` for every type present in the registry."""

    def __init__(
        self,
        registry: MethodRegistry,
        graph: TypeGraph,
        sink: DiagnosticSink,
        parent_of: Optional[ParentLookup] = None,
    ) -> None:
        self._registry = registry
        self._graph = graph
        self._sink = sink
        self._parent_of = parent_of or graph.ancestor_of

    def resolve(self) -> SkipSet:
        skip = SkipSet()
        for candidate in self._registry.types():
            self._check(candidate, skip)
        _log.debug(
            "Visibility resolution: %d of %d subscriber type(s) skipped",
            len(skip), len(self._registry),
        )
        return skip

    def _check(self, candidate: str, skip: SkipSet) -> None:
        for current in walk_ancestors(candidate, self._parent_of):
            if not self._graph.visibility_of(current).is_public:
                if current == candidate:
                    msg = "Falling back to reflection because class is not public"
                    code = E.CLASS_NOT_PUBLIC
                else:
                    msg = (
                        f"Falling back to reflection because {candidate} "
                        f"has a non-public super class"
                    )
                    code = E.SUPERCLASS_NOT_PUBLIC
                self._flag(skip, candidate, current, code, msg)
                return

            private_events = self._non_public_event_types(current)
            if private_events:
                if current == candidate:
                    msg = (
                        "Falling back to reflection because event type is not "
                        "public"
                    )
                    code = E.EVENT_TYPE_NOT_PUBLIC
                else:
                    msg = (
                        f"Falling back to reflection because {candidate} has "
                        f"a super class using a non-public event type"
                    )
                    code = E.SUPERCLASS_EVENT_TYPE_NOT_PUBLIC
                self._flag(
                    skip, candidate, current, code,
                    f"{msg} ({private_events[0]})",
                )
                return

    def _non_public_event_types(self, type_name: str) -> List[str]:
        return [
            decl.parameter_type
            for decl in self._registry.methods_of(type_name)
            if not self._graph.visibility_of(decl.parameter_type).is_public
        ]

    def _flag(
        self,
        skip: SkipSet,
        candidate: str,
        culprit: str,
        code: ErrorCode,
        message: str,
    ) -> None:
        if skip.add(candidate):
            self._sink.report(
                code.code,
                message,
                code.default_severity,
                self._graph.location_of(culprit),
            )
