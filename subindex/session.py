"""
subindex/session.py
===================

One indexing run, from the first discovery pass to the written table.

States::

    IDLE ──pass with candidates──▶ COLLECTING ──finish()──▶ RESOLVING
                                                          │
                          ┌───────────── fault ───────────┤
                          ▼                               ▼
                       FAULTED                  EMITTED ──▶ DONE

The host may deliver declarations in any number of passes; nothing is
resolved before :meth:`ProcessingSession.finish`.  Resolution runs exactly
once.  A pass carrying declarations after ``finish()``, or a second
``finish()``, is a broken host contract: it is reported as an error and
``SessionStateError`` is raised.  Structural faults while resolving or
emitting end the session in ``FAULTED`` without an artifact.
"""

from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import Iterable, Optional, Set, Tuple, Union

from subindex.codegen import IndexArtifact, TableEmitter
from subindex.config import IndexerConfig
from subindex.diagnostics import (
    DiagnosticCollector,
    DiagnosticSink,
    SourceLocation,
)
from subindex.errors import E, ErrorCode, IndexerError, SessionStateError
from subindex.merger import HierarchyMerger, MergedIndex
from subindex.model import DiscoveryPass, TypeGraph
from subindex.registry import MethodRegistry
from subindex.resolver import SkipSet, VisibilityResolver
from subindex.validator import validate

_log = logging.getLogger(__name__)

__all__ = ["SessionState", "ProcessingSession", "run_session"]


class SessionState(enum.Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    RESOLVING = "resolving"
    EMITTED = "emitted"
    DONE = "done"
    FAULTED = "faulted"


_OPEN_STATES = (SessionState.IDLE, SessionState.COLLECTING)


class ProcessingSession:
    """
    Owns the registry, type graph, skip set and merged index of one run.

    Parameters
    ----------
    config:
        Indexer configuration; defaults to ``IndexerConfig()``.
    sink:
        Diagnostic sink; defaults to a fresh ``DiagnosticCollector``.
    emitter:
        Table emitter; defaults to ``TableEmitter(config)``.
    output:
        Where to write the generated module.  ``None`` renders the table
        without writing it.
    """

    def __init__(
        self,
        config: Optional[IndexerConfig] = None,
        sink: Optional[DiagnosticSink] = None,
        emitter: Optional[TableEmitter] = None,
        output: Optional[Union[str, Path]] = None,
    ) -> None:
        self.config = config or IndexerConfig()
        self.sink: DiagnosticSink = sink if sink is not None else DiagnosticCollector()
        self.emitter = emitter or TableEmitter(self.config)
        self.output = Path(output) if output is not None else None

        self.graph = TypeGraph(
            self.config.platform_prefixes, self.config.application_prefixes
        )
        self.registry = MethodRegistry()
        self.skip_set: Optional[SkipSet] = None
        self.merged: Optional[MergedIndex] = None
        self.artifact: Optional[IndexArtifact] = None

        self._state = SessionState.IDLE
        self._round = 0
        self._seen: Set[Tuple[str, str, Tuple[Optional[str], ...]]] = set()
        self._finish_called = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def rounds(self) -> int:
        return self._round

    # -- collection --------------------------------------------------------

    def process_pass(self, discovery: DiscoveryPass) -> None:
        """Accept one discovery pass."""
        self._round += 1
        self._report(
            E.PROCESSING_ROUND,
            f"Processing round {self._round} ({discovery.source}), "
            f"new annotations: {discovery.has_candidates}, processing over: False",
        )

        if self._finish_called:
            if discovery.has_candidates:
                self._violation(
                    E.DECLARATIONS_AFTER_FINISH,
                    "Unexpected processing state: annotations still available "
                    f"after processing over ({discovery.source})",
                    discovery.candidates[0].location,
                )
            _log.debug("Ignoring empty pass %s after finish()", discovery.source)
            return

        self.graph.add_all(discovery.types)
        for candidate in discovery.candidates:
            if candidate.identity in self._seen:
                self._report(
                    E.DUPLICATE_DELIVERY,
                    f"{candidate.display_name()} delivered again by "
                    f"{discovery.source}; already processed",
                )
                continue
            self._seen.add(candidate.identity)
            declaration = validate(candidate, self.sink)
            if declaration is not None:
                self.registry.register(declaration)

        if discovery.has_candidates and self._state is SessionState.IDLE:
            self._enter(SessionState.COLLECTING)

    def process_all(self, passes: Iterable[DiscoveryPass]) -> None:
        for discovery in passes:
            self.process_pass(discovery)

    # -- resolution --------------------------------------------------------

    def finish(self) -> Optional[IndexArtifact]:
        """Final-pass signal: resolve, merge and emit exactly once.

        Returns the artifact, or ``None`` when there was nothing to index or
        the session faulted.
        """
        if self._finish_called or self._state not in _OPEN_STATES:
            self._violation(
                E.RESOLVED_TWICE,
                "Unexpected processing state: resolution already ran "
                f"(state {self._state.value})",
            )
        self._finish_called = True
        self._report(
            E.PROCESSING_ROUND,
            f"Processing over after {self._round} round(s), "
            f"{len(self.registry)} subscriber type(s) collected",
        )
        self._enter(SessionState.RESOLVING)

        if not len(self.registry):
            self._report(
                E.NO_SUBSCRIBERS, f"No @{self.config.marker} annotations found"
            )
            self._enter(SessionState.DONE)
            return None

        try:
            self.skip_set = VisibilityResolver(
                self.registry, self.graph, self.sink
            ).resolve()
            self.merged = HierarchyMerger(
                self.registry, self.graph, self.skip_set
            ).merge()
            if self.output is not None:
                artifact = self.emitter.write(self.merged, self.output, self.graph)
            else:
                artifact = self.emitter.render(self.merged, self.graph)
        except IndexerError as exc:
            return self._fault(exc.code, exc.message, exc.location, exc)
        except Exception as exc:
            return self._fault(
                E.INTERNAL_ERROR,
                f"Unexpected error in subscriber indexer: {exc!r}",
                None,
                exc,
            )

        self.artifact = artifact
        self._enter(SessionState.EMITTED)
        self._report_indexed(self.merged)
        self._enter(SessionState.DONE)
        return artifact

    # -- helpers -----------------------------------------------------------

    def _enter(self, state: SessionState) -> None:
        _log.debug("Session state %s -> %s", self._state.value, state.value)
        self._state = state

    def _report(
        self,
        code: ErrorCode,
        message: str,
        location: Optional[SourceLocation] = None,
    ) -> None:
        self.sink.report(code.code, message, code.default_severity, location)

    def _report_indexed(self, index: MergedIndex) -> None:
        for subscriber, entries in index.items():
            for entry in entries:
                self._report(
                    E.INDEXED_METHOD,
                    f"Indexed @{self.config.marker} at "
                    f"{entry.declaration.display_name()} for {subscriber}",
                    entry.declaration.location,
                )

    def _violation(
        self,
        code: ErrorCode,
        message: str,
        location: Optional[SourceLocation] = None,
    ) -> None:
        self.sink.report(code.code, message, code.default_severity, location)
        self._enter(SessionState.FAULTED)
        raise SessionStateError(message, code, location)

    def _fault(
        self,
        code: ErrorCode,
        message: str,
        location: Optional[SourceLocation],
        exc: BaseException,
    ) -> None:
        _log.error(
            "Indexing failed during %s: %s", code.phase.value, message, exc_info=exc
        )
        self.sink.report(code.code, message, code.default_severity, location)
        self.skip_set = None
        self.merged = None
        self.artifact = None
        self._enter(SessionState.FAULTED)
        return None


def run_session(
    passes: Iterable[DiscoveryPass],
    config: Optional[IndexerConfig] = None,
    sink: Optional[DiagnosticSink] = None,
    output: Optional[Union[str, Path]] = None,
) -> ProcessingSession:
    """Feed every pass to a fresh session, then finish it."""
    session = ProcessingSession(config=config, sink=sink, output=output)
    session.process_all(passes)
    session.finish()
    return session
