"""Structural checks applied to every annotated element before it may enter
the registry."""

from __future__ import annotations

from typing import Optional

from subindex.diagnostics import DiagnosticSink
from subindex.errors import E, ValidationError
from subindex.model import ElementKind, MethodCandidate, SubscriberDeclaration

__all__ = ["check", "validate"]


def check(candidate: MethodCandidate) -> SubscriberDeclaration:
    """Return the declaration for *candidate* or raise ``ValidationError``.

    Rules are tried in order and the first violation is the one raised.
    """
    loc = candidate.location
    if candidate.kind is not ElementKind.METHOD:
        raise ValidationError(
            "@subscribe is only valid for methods", E.NOT_A_METHOD, loc
        )
    if candidate.is_static:
        raise ValidationError(
            "Subscriber method must not be static", E.STATIC_METHOD, loc
        )
    if not candidate.visibility.is_public:
        raise ValidationError(
            "Subscriber method must be public", E.NON_PUBLIC_METHOD, loc
        )
    if len(candidate.parameters) != 1:
        raise ValidationError(
            "Subscriber method must have exactly 1 parameter",
            E.WRONG_PARAMETER_COUNT,
            loc,
        )
    param = candidate.parameters[0]
    if not param.type_name:
        raise ValidationError(
            f"Subscriber method parameter '{param.name}' must be annotated "
            f"with an event class",
            E.UNTYPED_PARAMETER,
            loc,
        )
    payload = candidate.subscribe
    return SubscriberDeclaration(
        declaring_type=candidate.declaring_type,
        method_name=candidate.name,
        parameter_type=param.type_name,
        thread_mode=payload.thread_mode,
        priority=payload.priority,
        sticky=payload.sticky,
        location=loc,
    )


def validate(
    candidate: MethodCandidate, sink: DiagnosticSink
) -> Optional[SubscriberDeclaration]:
    """Admit *candidate* or report why not.

    Returns ``None`` after reporting exactly one ERROR diagnostic when a rule
    is broken.
    """
    try:
        return check(candidate)
    except ValidationError as exc:
        sink.report(
            exc.code.code,
            f"{exc.message}: {candidate.display_name()}",
            exc.code.default_severity,
            exc.location,
        )
        return None
