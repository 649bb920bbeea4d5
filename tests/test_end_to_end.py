# tests/test_end_to_end.py
"""
End-to-end: scan real modules, write the index, import it and look up
subscribers through the generated class.
"""

import importlib

from subindex.annotations import SUBSCRIBE_ATTR, Subscribe, ThreadMode, subscribe
from subindex.scanner import scan_file
from subindex.session import SessionState, run_session
from tests.conftest import EVENTS_SRC, INHERITANCE_SRC, PRIVATE_BASE_SRC, write_package


def _build(root, modules):
    pkg = write_package(root, "app", modules)
    passes = [scan_file(pkg / f"{name}.py", root) for name in sorted(modules)]
    return run_session(passes, output=pkg / "_index.py")


class TestE2EGeneratedIndex:

    def test_lookup_through_generated_module(self, importable):
        session = _build(importable, {"events": EVENTS_SRC, "listeners": INHERITANCE_SRC})
        assert session.state is SessionState.DONE

        generated = importlib.import_module("app._index")
        listeners = importlib.import_module("app.listeners")
        events = importlib.import_module("app.events")
        index = generated.GeneratedSubscriberIndex()

        own, inherited = index.get_subscriber_methods(listeners.Child)
        assert own.subscriber_class is listeners.Child
        assert own.event_type is events.Ping
        assert own.thread_mode is ThreadMode.MAIN
        assert inherited.subscriber_class is listeners.Base
        assert inherited.event_type is events.Pong
        assert inherited.sticky is True

        base_ping, _ = index.get_subscriber_methods(listeners.Base)
        assert (base_ping.thread_mode, base_ping.priority) == (ThreadMode.BACKGROUND, 5)

    def test_bound_method_dispatch(self, importable):
        _build(importable, {"events": EVENTS_SRC, "listeners": INHERITANCE_SRC})
        generated = importlib.import_module("app._index")
        listeners = importlib.import_module("app.listeners")
        child = listeners.Child()
        methods = generated.GeneratedSubscriberIndex().get_subscriber_methods(
            listeners.Child
        )
        assert methods[1].bind(child) == child.on_pong

    def test_skipped_types_fall_back(self, importable):
        session = _build(importable, {"events": EVENTS_SRC, "listeners": PRIVATE_BASE_SRC})
        assert session.skip_set.as_set() == {
            "app.listeners._Hidden", "app.listeners.Visible",
        }
        generated = importlib.import_module("app._index")
        listeners = importlib.import_module("app.listeners")
        index = generated.GeneratedSubscriberIndex()
        assert index.get_subscriber_methods(listeners.Visible) is None
        assert index.get_subscriber_methods(listeners._Hidden) is None


class TestSubscribeDecorator:

    def test_bare(self):
        @subscribe
        def handler(self, event):
            pass
        assert getattr(handler, SUBSCRIBE_ATTR) == Subscribe()

    def test_called(self):
        @subscribe(thread_mode="background", priority=2, sticky=True)
        def handler(self, event):
            pass
        assert getattr(handler, SUBSCRIBE_ATTR) == Subscribe(
            ThreadMode.BACKGROUND, 2, True,
        )
