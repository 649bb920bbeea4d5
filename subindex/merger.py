"""
subindex/merger.py
==================

Combines each eligible subscriber type's own declarations with the ones it
inherits, producing the ``MergedIndex`` the table emitter serialises.

Ordering per type:

1. own declarations, in discovery order;
2. declarations of each ancestor, nearest first.

A declaration whose ``(method_name, parameter_type)`` was already taken by
a more derived type is an overridden method and is dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set, Tuple

from subindex.model import ParentLookup, SubscriberDeclaration, TypeGraph, walk_ancestors
from subindex.registry import MethodRegistry
from subindex.resolver import SkipSet

_log = logging.getLogger(__name__)

__all__ = ["IndexEntry", "MergedIndex", "HierarchyMerger"]


@dataclass(frozen=True)
class IndexEntry:
    """One row of a subscriber type's entry list."""
    declaration: SubscriberDeclaration
    subscriber_type: str
    inherited_from: Optional[str] = None

    @property
    def is_inherited(self) -> bool:
        return self.inherited_from is not None

    @property
    def declaring_type(self) -> str:
        """The type the dispatcher must look the method up on."""
        return self.inherited_from or self.subscriber_type

    def to_dict(self) -> Dict[str, Any]:
        decl = self.declaration
        return {
            "declaringType": self.declaring_type,
            "methodName": decl.method_name,
            "eventType": decl.parameter_type,
            "threadMode": decl.thread_mode.name,
            "priority": decl.priority,
            "sticky": decl.sticky,
        }


class MergedIndex(Mapping[str, Tuple[IndexEntry, ...]]):
    """Immutable mapping subscriber type -> entries, keys sorted by name."""

    def __init__(self, entries: Mapping[str, Tuple[IndexEntry, ...]]) -> None:
        self._entries: Dict[str, Tuple[IndexEntry, ...]] = {
            name: tuple(entries[name]) for name in sorted(entries)
        }

    def __getitem__(self, type_name: str) -> Tuple[IndexEntry, ...]:
        return self._entries[type_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MergedIndex):
            return list(self._entries.items()) == list(other._entries.items())
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def lookup(self, type_name: str) -> Optional[Tuple[IndexEntry, ...]]:
        """Entries for *type_name*, or ``None`` when it is not indexed."""
        return self._entries.get(type_name)

    def referenced_types(self) -> Set[str]:
        """Every type a generated table has to name."""
        names: Set[str] = set()
        for subscriber, entries in self._entries.items():
            names.add(subscriber)
            for entry in entries:
                names.add(entry.declaring_type)
                names.add(entry.declaration.parameter_type)
        return names

    def entry_count(self) -> int:
        return sum(len(v) for v in self._entries.values())

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            name: [entry.to_dict() for entry in entries]
            for name, entries in self._entries.items()
        }


class HierarchyMerger:
    """Builds the ``MergedIndex`` for all non-skipped registry types."""

    def __init__(
        self,
        registry: MethodRegistry,
        graph: TypeGraph,
        skip: SkipSet,
        parent_of: Optional[ParentLookup] = None,
    ) -> None:
        self._registry = registry
        self._skip = skip
        self._parent_of = parent_of or graph.ancestor_of

    def merge(self) -> MergedIndex:
        merged: Dict[str, Tuple[IndexEntry, ...]] = {}
        for subscriber in self._registry.types():
            if subscriber in self._skip:
                continue
            entries = self.entries_for(subscriber)
            if entries:
                merged[subscriber] = entries
            else:
                _log.debug("No entries left for %s after merging", subscriber)
        return MergedIndex(merged)

    def entries_for(self, subscriber: str) -> Tuple[IndexEntry, ...]:
        seen: Set[Tuple[str, str]] = set()
        entries: List[IndexEntry] = []
        for current in walk_ancestors(subscriber, self._parent_of):
            inherited_from = None if current == subscriber else current
            for decl in self._registry.methods_of(current):
                if decl.signature in seen:
                    continue
                seen.add(decl.signature)
                entries.append(IndexEntry(decl, subscriber, inherited_from))
        return tuple(entries)

