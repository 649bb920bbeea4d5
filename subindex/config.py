"""subindex/config.py — tuning knobs shared by the front-ends, the resolver
and the table emitter."""

from __future__ import annotations

import keyword
from dataclasses import dataclass, field, replace
from typing import Any, List, Tuple

DEFAULT_PLATFORM_PREFIXES: Tuple[str, ...] = (
    "builtins.",
    "typing.",
    "abc.",
    "collections.",
    "enum.",
    "dataclasses.",
)


@dataclass(frozen=True)
class IndexerConfig:
    """Configuration for one indexing session."""
    marker: str = "subscribe"
    platform_prefixes: Tuple[str, ...] = DEFAULT_PLATFORM_PREFIXES
    application_prefixes: Tuple[str, ...] = ()
    runtime_module: str = "subindex.annotations"
    index_class_name: str = "GeneratedSubscriberIndex"
    line_width: int = 100
    indent: str = field(default="    ")

    def validate(self) -> List[str]:
        """Return a list of validation problems (empty if valid)."""
        problems: List[str] = []
        if not self.marker.isidentifier():
            problems.append(f"marker must be an identifier, got {self.marker!r}")
        if not self.index_class_name.isidentifier() or keyword.iskeyword(
            self.index_class_name
        ):
            problems.append(
                f"index_class_name must be a valid class name, got "
                f"{self.index_class_name!r}"
            )
        if not all(p.isidentifier() for p in self.runtime_module.split(".")):
            problems.append(
                f"runtime_module must be a dotted module path, got "
                f"{self.runtime_module!r}"
            )
        if self.line_width < 40:
            problems.append("line_width must be at least 40")
        if not self.indent or self.indent.strip():
            problems.append("indent must be non-empty whitespace")
        return problems

    def with_overrides(self, **overrides: Any) -> "IndexerConfig":
        """Copy with every non-``None`` override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
