# tests/test_validator.py
"""
Tests for the admission rules applied to annotated elements.
"""

import pytest

from subindex.annotations import ThreadMode
from subindex.errors import E, ValidationError
from subindex.model import ElementKind, Visibility
from subindex.validator import check, validate
from tests.conftest import candidate


class TestAccepted:

    def test_valid_method_becomes_declaration(self):
        decl = check(candidate("app.Foo", "on_event", "builtins.str"))
        assert decl.declaring_type == "app.Foo"
        assert decl.method_name == "on_event"
        assert decl.parameter_type == "builtins.str"
        assert decl.thread_mode is ThreadMode.MAIN
        assert decl.priority == 0
        assert decl.sticky is False

    def test_payload_is_copied(self):
        decl = check(candidate(
            "app.Foo", "on_event", "app.Ping",
            thread_mode=ThreadMode.ASYNC, priority=7, sticky=True,
        ))
        assert (decl.thread_mode, decl.priority, decl.sticky) == (
            ThreadMode.ASYNC, 7, True,
        )

    def test_validate_reports_nothing_for_valid(self, sink):
        assert validate(candidate("app.Foo", "on_event", "app.Ping"), sink)
        assert len(sink) == 0


class TestRejected:

    @pytest.mark.parametrize("cand, code", [
        (candidate("app.Foo", "FIELD", kind=ElementKind.OTHER), E.NOT_A_METHOD),
        (candidate("app", "handler", "app.Ping", kind=ElementKind.FUNCTION),
         E.NOT_A_METHOD),
        (candidate("app.Foo", "on_event", "app.Ping", is_static=True),
         E.STATIC_METHOD),
        (candidate("app.Foo", "_on_event", "app.Ping",
                   visibility=Visibility.NON_PUBLIC), E.NON_PUBLIC_METHOD),
        (candidate("app.Foo", "on_event"), E.WRONG_PARAMETER_COUNT),
        (candidate("app.Foo", "on_event", "app.Ping", "app.Pong"),
         E.WRONG_PARAMETER_COUNT),
        (candidate("app.Foo", "on_event", None), E.UNTYPED_PARAMETER),
    ], ids=[
        "field", "function", "static", "non_public", "no_params",
        "two_params", "untyped",
    ])
    def test_rule(self, cand, code):
        with pytest.raises(ValidationError) as info:
            check(cand)
        assert info.value.code == code

    def test_exactly_one_diagnostic(self, sink):
        cand = candidate(
            "app.Foo", "_on_event", "app.Ping", "app.Pong",
            is_static=True, visibility=Visibility.NON_PUBLIC, line=12,
        )
        assert validate(cand, sink) is None
        assert len(sink.errors) == 1
        diag = sink.errors[0]
        # static is checked before visibility and arity
        assert diag.error_id == E.STATIC_METHOD.code
        assert diag.location.line == 12
        assert "Foo._on_event" in diag.message

    def test_untyped_message_names_parameter(self, sink):
        validate(candidate("app.Foo", "on_event", None), sink)
        assert "'arg0'" in sink.errors[0].message
