#!/usr/bin/env python3
"""subindex/main.py — CLI entry-point for the subscriber indexer.

Usage examples
--------------
    # Index a source tree and write the generated lookup table
    python -m subindex index src/ -o src/app/_subscriber_index.py

    # Same session, but print the merged index instead of writing it
    python -m subindex check src/ --format json

    # Mix scanned modules with a type-model dump from another host
    python -m subindex index src/ vendor/types.sidx -o build/index.py

    # Show version and exit
    python -m subindex --version

Inputs
------
Every input is one discovery pass.  ``.py`` files go through
:mod:`subindex.scanner`, anything else through :mod:`subindex.parser`.
Directories are walked for ``*.py`` and ``*.sidx`` in sorted order; module
names of files found there are relative to the directory unless
``--source-root`` says otherwise.

Exit codes
----------
    0   Success (no ERROR diagnostics).
    1   One or more diagnostics with severity ERROR were emitted.
    2   Infrastructure failure (missing input, bad configuration, etc.).

The module doubles as ``python -m subindex`` via the companion
``subindex/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, TextIO, Tuple

from subindex import __version__
from subindex.config import IndexerConfig
from subindex.diagnostics import Diagnostic, DiagnosticCollector, DiagnosticSeverity
from subindex.errors import InputError
from subindex.merger import MergedIndex
from subindex.model import DiscoveryPass
from subindex.parser import parse_file
from subindex.scanner import scan_file
from subindex.session import ProcessingSession, SessionState

_log = logging.getLogger("subindex")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2

_HANDLER_NAME = "subindex-cli"
_SOURCE_SUFFIXES = (".py", ".sidx")


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the root ``subindex`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("subindex")
    for old in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(old)
    root.setLevel(level)
    root.addHandler(handler)


def _resolve_path(raw: str, label: str = "file") -> Path:
    """Resolve *raw* to an absolute ``Path``, raising on missing files."""
    p = Path(raw).expanduser().resolve()
    if not p.exists():
        _log.error("%s not found: %s", label, p)
        raise SystemExit(EXIT_INFRA)
    return p


def _emit_diagnostics(
    diagnostics: List[Diagnostic],
    fmt: str,
    stream: TextIO,
    min_severity: DiagnosticSeverity = DiagnosticSeverity.WARNING,
) -> int:
    """Write *diagnostics* at or above *min_severity* to *stream*.

    Returns the count of ERROR-severity diagnostics.
    """
    shown = {
        DiagnosticSeverity.ERROR: (DiagnosticSeverity.ERROR,),
        DiagnosticSeverity.WARNING: (DiagnosticSeverity.ERROR, DiagnosticSeverity.WARNING),
        DiagnosticSeverity.INFORMATION: tuple(DiagnosticSeverity),
    }[min_severity]

    error_count = 0
    for diag in diagnostics:
        if diag.severity.is_error():
            error_count += 1
        if diag.severity not in shown:
            continue
        if fmt == "json":
            stream.write(json.dumps(diag.to_dict()) + "\n")
        else:
            # GCC-style: file:line:col: severity: [id] message
            stream.write(diag.to_gcc_format() + "\n")
    return error_count


def _walk_inputs(
    raw_inputs: Sequence[str], source_root: Optional[Path]
) -> Iterator[Tuple[Path, Optional[Path]]]:
    """Yield ``(file, module root)`` for every input, directories expanded."""
    for raw in raw_inputs:
        path = _resolve_path(raw, "input")
        if path.is_dir():
            found = sorted(
                p for p in path.rglob("*")
                if p.is_file() and p.suffix in _SOURCE_SUFFIXES
            )
            if not found:
                _log.warning("No *.py or *.sidx files under %s", path)
            for p in found:
                yield p, source_root or path
        else:
            yield path, source_root


def _load_pass(
    path: Path,
    root: Optional[Path],
    config: IndexerConfig,
    sink: DiagnosticCollector,
) -> Optional[DiscoveryPass]:
    try:
        if path.suffix == ".py":
            return scan_file(path, root, config=config, sink=sink)
        return parse_file(path)
    except InputError as exc:
        sink.report(
            exc.code.code, exc.message, exc.code.default_severity, exc.location
        )
        return None


def _build_config(args: argparse.Namespace) -> IndexerConfig:
    config = IndexerConfig().with_overrides(
        marker=args.marker,
        runtime_module=args.runtime_module,
        index_class_name=args.class_name,
        line_width=args.line_width,
        platform_prefixes=tuple(args.platform_prefix) if args.platform_prefix else None,
        application_prefixes=(
            tuple(args.application_prefix) if args.application_prefix else None
        ),
    )
    problems = config.validate()
    if problems:
        for problem in problems:
            _log.error("Invalid configuration: %s", problem)
        raise SystemExit(EXIT_INFRA)
    return config


def _run(
    args: argparse.Namespace, output: Optional[Path]
) -> Tuple[ProcessingSession, DiagnosticCollector]:
    config = _build_config(args)
    source_root = (
        _resolve_path(args.source_root, "source root") if args.source_root else None
    )
    sink = DiagnosticCollector(mirror=False)
    session = ProcessingSession(config=config, sink=sink, output=output)

    for path, root in _walk_inputs(args.inputs, source_root):
        _log.debug("Reading %s", path)
        discovery = _load_pass(path, root, config, sink)
        if discovery is not None:
            session.process_pass(discovery)
    session.finish()

    min_severity = (
        DiagnosticSeverity.INFORMATION if args.verbose else DiagnosticSeverity.WARNING
    )
    _emit_diagnostics(sink.diagnostics, args.diagnostics_format, sys.stderr, min_severity)
    return session, sink


def _exit_code(session: ProcessingSession, sink: DiagnosticCollector) -> int:
    if sink.has_errors() or session.state is SessionState.FAULTED:
        return EXIT_ERROR
    return EXIT_OK


def _format_summary(index: Optional[MergedIndex]) -> str:
    lines: List[str] = []
    entries = 0
    for subscriber, rows in (index or {}).items():
        lines.append(subscriber)
        for entry in rows:
            decl = entry.declaration
            line = (
                f"  {decl.method_name}({decl.parameter_type}) "
                f"{decl.thread_mode.name} priority={decl.priority} sticky={decl.sticky}"
            )
            if entry.is_inherited:
                line += f" [from {entry.inherited_from}]"
            lines.append(line)
            entries += 1
    count = len(index) if index is not None else 0
    lines.append(f"--- {count} subscriber type(s), {entries} entries ---")
    return "\n".join(lines) + "\n"


# ===========================================================================
# Subcommands
# ===========================================================================

# ---------------------------------------------------------------------------
# index
# ---------------------------------------------------------------------------

def cmd_index(args: argparse.Namespace) -> int:
    """Run one session over the inputs and write the generated module."""
    output = Path(args.output).expanduser().resolve()
    _log.info("Indexing %d input(s) -> %s", len(args.inputs), output)
    session, sink = _run(args, output)
    if session.artifact is None and session.state is SessionState.DONE:
        _log.warning("Nothing indexed; %s was not written", output)
    return _exit_code(session, sink)


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------

def cmd_check(args: argparse.Namespace) -> int:
    """Run one session over the inputs and print the merged index."""
    session, sink = _run(args, None)
    if args.format == "json":
        payload = session.merged.to_dict() if session.merged is not None else {}
        sys.stdout.write(json.dumps(payload, indent=2, sort_keys=True) + "\n")
    else:
        sys.stdout.write(_format_summary(session.merged))
    return _exit_code(session, sink)


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="subindex",
        description=(
            "subindex: build a compile-time lookup table of @subscribe methods.\n\n"
            "Scans Python modules (and optional type-model dumps), validates\n"
            "every subscriber declaration and writes a module the event bus\n"
            "can query instead of reflecting over subscriber classes."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              subindex index src/ -o src/app/_subscriber_index.py
              subindex check src/ --format json
              subindex index src/ extra.sidx -o build/index.py --class-name AppIndex
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # Shared argument groups (reusable) ------------------------------------

    def _add_input_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "inputs",
            nargs="+",
            metavar="INPUT",
            help="Python files, .sidx type models or directories to scan.",
        )
        p.add_argument(
            "--source-root",
            default=None,
            metavar="DIR",
            help="Directory module names are computed from.",
        )
        p.add_argument(
            "--diagnostics-format",
            choices=["gcc", "json"],
            default="gcc",
            help="Format of diagnostics written to stderr (default: gcc).",
        )
        p.add_argument(
            "-v", "--verbose",
            dest="command_verbose",
            action="count",
            default=0,
            help="Increase verbosity; adds to -v given before the command.",
        )

    def _add_config_args(p: argparse.ArgumentParser) -> None:
        g = p.add_argument_group("indexer configuration")
        g.add_argument(
            "--marker",
            default=None,
            metavar="NAME",
            help="Decorator name marking subscribers (default: subscribe).",
        )
        g.add_argument(
            "--platform-prefix",
            action="append",
            default=None,
            metavar="PREFIX",
            help="Namespace treated as platform code; repeatable. "
                 "Replaces the default builtins./typing./... list.",
        )
        g.add_argument(
            "--application-prefix",
            action="append",
            default=None,
            metavar="PREFIX",
            help="Restrict ancestor walks to these namespaces; repeatable.",
        )
        g.add_argument(
            "--runtime-module",
            default=None,
            metavar="MODULE",
            help="Module the generated code imports from "
                 "(default: subindex.annotations).",
        )
        g.add_argument(
            "--class-name",
            default=None,
            metavar="NAME",
            help="Name of the generated index class "
                 "(default: GeneratedSubscriberIndex).",
        )
        g.add_argument(
            "--line-width",
            type=int,
            default=None,
            metavar="N",
            help="Wrap generated lines longer than N characters (default: 100).",
        )

    # --- index -------------------------------------------------------------
    p_index = subparsers.add_parser(
        "index",
        help="Index subscribers and write the generated module.",
        description=(
            "Feed every input to one session as a separate pass, resolve "
            "visibility and inheritance, and write the lookup table."
        ),
    )
    _add_input_args(p_index)
    p_index.add_argument(
        "-o", "--output",
        required=True,
        metavar="FILE",
        help="Path of the generated Python module.",
    )
    _add_config_args(p_index)
    p_index.set_defaults(func=cmd_index)

    # --- check -------------------------------------------------------------
    p_check = subparsers.add_parser(
        "check",
        help="Validate subscribers and print the merged index.",
        description="Run the same session as 'index' without writing anything.",
    )
    _add_input_args(p_check)
    p_check.add_argument(
        "-f", "--format",
        choices=["summary", "json"],
        default="summary",
        help="Output format of the merged index (default: summary).",
    )
    _add_config_args(p_check)
    p_check.set_defaults(func=cmd_check)

    return parser


# ===========================================================================
# Entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the subindex CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    args.verbose += getattr(args, "command_verbose", 0)

    _configure_logging(args.verbose)

    # No subcommand given → print help.
    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130  # Standard UNIX convention for SIGINT
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
