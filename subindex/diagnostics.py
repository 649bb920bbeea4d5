"""
subindex diagnostics

The message sink every component reports through:

1. ``DiagnosticSeverity`` - the three severities the indexer uses
2. ``SourceLocation`` - file/line/column of the offending declaration
3. ``Diagnostic`` - one structured message
4. ``DiagnosticCollector`` - ordered accumulation, mirrored to ``logging``

Components never print; they call ``sink.report(...)``.  Anything with a
compatible ``report`` method can stand in for the collector (see
``DiagnosticSink``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

_log = logging.getLogger(__name__)


# ============================================================================
# SEVERITY / LOCATION
# ============================================================================


class DiagnosticSeverity(Enum):
    """
    Severity levels used by the indexer.

    INFORMATION covers progress notes and reflection fall-backs, WARNING is
    reserved for "nothing to index", ERROR for validation failures and
    session invariant violations.
    """
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"

    def is_error(self) -> bool:
        return self is DiagnosticSeverity.ERROR

    def log_level(self) -> int:
        return _LOG_LEVELS[self]


_LOG_LEVELS = {
    DiagnosticSeverity.ERROR: logging.ERROR,
    DiagnosticSeverity.WARNING: logging.WARNING,
    DiagnosticSeverity.INFORMATION: logging.INFO,
}


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """Immutable source location for diagnostics."""
    file: str
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.line <= 0:
            return self.file
        if self.column > 0:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


# ============================================================================
# DIAGNOSTIC
# ============================================================================


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """
    Structured diagnostic produced while indexing.

    Attributes:
        error_id: ``SIDX-NNNN`` code of the rule that fired
        message: Human-readable description
        severity: How serious the issue is
        location: Primary source location, if known
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: Optional[SourceLocation] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            "errorId": self.error_id,
            "message": self.message,
            "severity": self.severity.value,
        }
        if self.location:
            result["location"] = {
                "file": self.location.file,
                "line": self.location.line,
                "column": self.location.column,
            }
        return result

    def to_gcc_format(self) -> str:
        """Format as GCC-style diagnostic string."""
        loc_str = str(self.location) if self.location else "<unknown>"
        return f"{loc_str}: {self.severity.value}: [{self.error_id}] {self.message}"

    def __str__(self) -> str:
        return self.to_gcc_format()


# ============================================================================
# SINKS
# ============================================================================


@runtime_checkable
class DiagnosticSink(Protocol):
    """Anything that accepts indexer diagnostics."""

    def report(
        self,
        error_id: str,
        message: str,
        severity: DiagnosticSeverity = DiagnosticSeverity.ERROR,
        location: Optional[SourceLocation] = None,
    ) -> None:
        ...


class DiagnosticCollector:
    """
    Collects diagnostics in the order they are reported.

    Every diagnostic is also forwarded to the ``subindex`` logger at the
    matching level, so a host that only configures logging still sees them.
    Pass ``mirror=False`` when the caller prints the diagnostics itself.
    """

    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        mirror: bool = True,
    ) -> None:
        self._diagnostics: List[Diagnostic] = []
        self._logger = logger or _log
        self._mirror = mirror

    def report(
        self,
        error_id: str,
        message: str,
        severity: DiagnosticSeverity = DiagnosticSeverity.ERROR,
        location: Optional[SourceLocation] = None,
    ) -> None:
        """Record a diagnostic."""
        diag = Diagnostic(
            error_id=error_id,
            message=message,
            severity=severity,
            location=location,
        )
        self._diagnostics.append(diag)
        if self._mirror:
            self._logger.log(severity.log_level(), "%s", diag.to_gcc_format())

    @property
    def diagnostics(self) -> List[Diagnostic]:
        """Get all collected diagnostics."""
        return list(self._diagnostics)

    @property
    def errors(self) -> List[Diagnostic]:
        """Get only ERROR severity diagnostics."""
        return [d for d in self._diagnostics if d.severity == DiagnosticSeverity.ERROR]

    @property
    def warnings(self) -> List[Diagnostic]:
        """Get WARNING severity diagnostics."""
        return [d for d in self._diagnostics if d.severity == DiagnosticSeverity.WARNING]

    @property
    def notes(self) -> List[Diagnostic]:
        return [
            d for d in self._diagnostics
            if d.severity == DiagnosticSeverity.INFORMATION
        ]

    def with_id(self, error_id: str) -> List[Diagnostic]:
        """Diagnostics carrying the given code."""
        return [d for d in self._diagnostics if d.error_id == error_id]

    def has_errors(self) -> bool:
        """Check if any ERROR diagnostics were collected."""
        return any(d.severity == DiagnosticSeverity.ERROR for d in self._diagnostics)

    def error_count(self) -> int:
        """Count ERROR severity diagnostics."""
        return sum(1 for d in self._diagnostics if d.severity == DiagnosticSeverity.ERROR)

    def __len__(self) -> int:
        return len(self._diagnostics)
