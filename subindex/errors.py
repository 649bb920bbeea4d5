# subindex/errors.py
"""
subindex Error Types and Codes

Error handling infrastructure for the subscriber indexer.

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│                          Error Hierarchy                                     │
├─────────────────────────────────────────────────────────────────────────────┤
│  IndexerError (base)                                                        │
│  ├── InputError         - Unreadable source / type-model input              │
│  ├── ValidationError    - A candidate breaks a structural rule              │
│  ├── TypeGraphError     - Malformed type information (cycles, unknown)      │
│  ├── SessionStateError  - Host/session contract violations                  │
│  └── EmitError          - Artifact rendering or writing failures            │
└─────────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each diagnostic carries a code ``SIDX-NNNN``:
  - 0001-0999: Progress notes
  - 1000-1999: Declaration validation
  - 2000-2999: Reflection fall-back (visibility)
  - 3000-3999: Indexing outcome
  - 4000-4999: Session invariant violations
  - 5000-5999: Emission
  - 6000-6999: Input front-ends
  - 9000-9999: Internal / structural faults

Validation problems and fall-backs are reported through the diagnostic sink
and never raised; the exceptions below cross component boundaries only for
input, structural and session faults.
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Optional

from subindex.diagnostics import DiagnosticSeverity, SourceLocation


@unique
class ErrorPhase(Enum):
    """Processing phase where a diagnostic originates."""

    INPUT = "input"            # Front-end parsing
    VALIDATION = "validation"  # Candidate admission
    RESOLUTION = "resolution"  # Visibility walk / merge
    SESSION = "session"        # State machine
    EMISSION = "emission"      # Table writing
    INTERNAL = "internal"


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES
# ═══════════════════════════════════════════════════════════════════════════════

class ErrorCode:
    """
    Structured diagnostic code.

    Codes follow the pattern PREFIX-NNNN; the default severity is what the
    indexer reports the code with.
    """

    __slots__ = ("prefix", "number", "phase", "default_severity")

    def __init__(
        self,
        prefix: str,
        number: int,
        phase: ErrorPhase,
        default_severity: DiagnosticSeverity = DiagnosticSeverity.ERROR,
    ) -> None:
        self.prefix = prefix
        self.number = number
        self.phase = phase
        self.default_severity = default_severity

    @property
    def code(self) -> str:
        """Get the full error code string."""
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.phase.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


_INFO = DiagnosticSeverity.INFORMATION
_WARN = DiagnosticSeverity.WARNING


class IndexerErrorCodes:
    """Predefined codes for the subscriber indexer."""

    # ═══════════════════════════════════════════════════════════════════════════
    # PROGRESS (0001-0999)
    # ═══════════════════════════════════════════════════════════════════════════

    PROCESSING_ROUND = ErrorCode("SIDX", 1, ErrorPhase.SESSION, _INFO)
    INDEXED_METHOD = ErrorCode("SIDX", 2, ErrorPhase.EMISSION, _INFO)
    DUPLICATE_DELIVERY = ErrorCode("SIDX", 3, ErrorPhase.SESSION, _INFO)

    # ═══════════════════════════════════════════════════════════════════════════
    # VALIDATION (1000-1999)
    # ═══════════════════════════════════════════════════════════════════════════

    NOT_A_METHOD = ErrorCode("SIDX", 1000, ErrorPhase.VALIDATION)
    STATIC_METHOD = ErrorCode("SIDX", 1001, ErrorPhase.VALIDATION)
    NON_PUBLIC_METHOD = ErrorCode("SIDX", 1002, ErrorPhase.VALIDATION)
    WRONG_PARAMETER_COUNT = ErrorCode("SIDX", 1003, ErrorPhase.VALIDATION)
    UNTYPED_PARAMETER = ErrorCode("SIDX", 1004, ErrorPhase.VALIDATION)

    # ═══════════════════════════════════════════════════════════════════════════
    # REFLECTION FALL-BACK (2000-2999)
    # ═══════════════════════════════════════════════════════════════════════════

    CLASS_NOT_PUBLIC = ErrorCode("SIDX", 2000, ErrorPhase.RESOLUTION, _INFO)
    SUPERCLASS_NOT_PUBLIC = ErrorCode("SIDX", 2001, ErrorPhase.RESOLUTION, _INFO)
    EVENT_TYPE_NOT_PUBLIC = ErrorCode("SIDX", 2002, ErrorPhase.RESOLUTION, _INFO)
    SUPERCLASS_EVENT_TYPE_NOT_PUBLIC = ErrorCode(
        "SIDX", 2003, ErrorPhase.RESOLUTION, _INFO
    )

    # ═══════════════════════════════════════════════════════════════════════════
    # OUTCOME (3000-3999)
    # ═══════════════════════════════════════════════════════════════════════════

    NO_SUBSCRIBERS = ErrorCode("SIDX", 3000, ErrorPhase.SESSION, _WARN)

    # ═══════════════════════════════════════════════════════════════════════════
    # SESSION INVARIANTS (4000-4999)
    # ═══════════════════════════════════════════════════════════════════════════

    DECLARATIONS_AFTER_FINISH = ErrorCode("SIDX", 4000, ErrorPhase.SESSION)
    RESOLVED_TWICE = ErrorCode("SIDX", 4001, ErrorPhase.SESSION)

    # ═══════════════════════════════════════════════════════════════════════════
    # EMISSION (5000-5999)
    # ═══════════════════════════════════════════════════════════════════════════

    EMIT_FAILURE = ErrorCode("SIDX", 5000, ErrorPhase.EMISSION)

    # ═══════════════════════════════════════════════════════════════════════════
    # INPUT (6000-6999)
    # ═══════════════════════════════════════════════════════════════════════════

    INPUT_SYNTAX = ErrorCode("SIDX", 6000, ErrorPhase.INPUT)
    UNSUPPORTED_ANNOTATION = ErrorCode("SIDX", 6001, ErrorPhase.INPUT)

    # ═══════════════════════════════════════════════════════════════════════════
    # INTERNAL (9000-9999)
    # ═══════════════════════════════════════════════════════════════════════════

    INTERNAL_ERROR = ErrorCode("SIDX", 9000, ErrorPhase.INTERNAL)
    MALFORMED_TYPE_GRAPH = ErrorCode("SIDX", 9001, ErrorPhase.INTERNAL)


# Convenient access to error codes
E = IndexerErrorCodes


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class IndexerError(Exception):
    """
    Base exception for all indexer errors.

    Carries the code and location needed to turn the exception into a
    diagnostic at the session boundary.
    """

    default_code: ErrorCode = E.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        location: Optional[SourceLocation] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.location = location
        self.cause = cause

    def to_gcc_format(self) -> str:
        loc = str(self.location) if self.location else "<unknown>"
        return f"{loc}: error: [{self.code}] {self.message}"

    def __str__(self) -> str:
        if self.location is not None:
            return f"{self.location}: {self.message}"
        return self.message


class InputError(IndexerError):
    """A source file or type-model dump cannot be turned into a pass."""

    default_code = E.INPUT_SYNTAX


class ValidationError(IndexerError):
    """A candidate method breaks a structural rule."""

    default_code = E.NOT_A_METHOD


class TypeGraphError(IndexerError):
    """The type graph is malformed (ancestor cycle, undeclared type)."""

    default_code = E.MALFORMED_TYPE_GRAPH


class SessionStateError(IndexerError):
    """The host drove the processing session through an illegal transition."""

    default_code = E.DECLARATIONS_AFTER_FINISH


class EmitError(IndexerError):
    """The lookup-table artifact could not be produced."""

    default_code = E.EMIT_FAILURE
