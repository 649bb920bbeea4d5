"""subindex — compile-time index of event-bus subscriber methods.

Scans application code for methods marked with ``@subscribe``, validates
them, works out which subscriber types can be looked up without
reflection, merges inherited handlers, and writes a Python module holding
the resulting lookup table.

Submodules
----------
annotations
    Run-time side: the ``subscribe`` decorator, ``ThreadMode``,
    ``SubscriberMethod`` and the ``SubscriberIndex`` base class that
    generated modules subclass.

scanner / parser
    Front-ends.  ``scanner`` reads Python source with :mod:`ast`;
    ``parser`` reads S-expression type-model dumps (``*.sidx``).

validator, registry, resolver, merger
    Admission rules, per-type method registry, visibility fall-back walk
    and inheritance merge.

codegen
    ``TableEmitter``: merged index → Python module, written atomically.

session
    ``ProcessingSession``: the multi-pass lifecycle tying it together.

errors / diagnostics / config
    ``SIDX-NNNN`` codes and exceptions, the diagnostic sink, and
    ``IndexerConfig``.

main
    CLI entry-point with subcommands ``index`` and ``check``.

Usage
-----
Command-line::

    python -m subindex index src/ -o src/app/_subscriber_index.py
    python -m subindex check src/ --format json

Programmatic::

    from subindex.scanner import scan_file
    from subindex.session import run_session

    passes = [scan_file("app/listeners.py", source_root=".")]
    session = run_session(passes, output="app/_subscriber_index.py")
    print(session.state, session.artifact.entry_count)

"""

from __future__ import annotations

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
    "annotations",
    "codegen",
    "config",
    "diagnostics",
    "errors",
    "merger",
    "model",
    "parser",
    "registry",
    "resolver",
    "scanner",
    "session",
    "validator",
]
