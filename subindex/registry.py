"""subindex/registry.py — accepted declarations grouped by declaring type."""

from __future__ import annotations

from typing import Dict, Iterator, List, Mapping, Tuple

from subindex.model import SubscriberDeclaration

__all__ = ["MethodRegistry"]


class MethodRegistry:
    """Per-type lists of subscriber declarations.

    Append-only: repeated passes add to the lists, nothing is ever reset or
    deduplicated here.  Types iterate in first-registration order.
    """

    def __init__(self) -> None:
        self._by_type: Dict[str, List[SubscriberDeclaration]] = {}

    def register(self, declaration: SubscriberDeclaration) -> None:
        methods = self._by_type.get(declaration.declaring_type)
        if methods is None:
            methods = []
            self._by_type[declaration.declaring_type] = methods
        methods.append(declaration)

    def methods_of(self, type_name: str) -> Tuple[SubscriberDeclaration, ...]:
        """Declarations registered directly on *type_name* (empty if none)."""
        methods = self._by_type.get(type_name)
        if methods is None:
            return ()
        return tuple(methods)

    def types(self) -> List[str]:
        return list(self._by_type)

    def snapshot(self) -> Mapping[str, Tuple[SubscriberDeclaration, ...]]:
        """Frozen copy of the current contents."""
        return {name: tuple(methods) for name, methods in self._by_type.items()}

    def declarations(self) -> Iterator[SubscriberDeclaration]:
        for methods in self._by_type.values():
            yield from methods

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._by_type

    def __len__(self) -> int:
        return len(self._by_type)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._by_type))
