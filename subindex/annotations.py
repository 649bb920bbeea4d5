"""subindex/annotations.py – run-time side of the subscriber index.

Subscriber code marks its handlers with :func:`subscribe`; the module
generated by :mod:`subindex.codegen` imports :class:`SubscriberIndex`,
:class:`ThreadMode` and :func:`create_subscriber_method` from here.

Example
-------
::

    from subindex.annotations import ThreadMode, subscribe

    class Listener:
        @subscribe(thread_mode=ThreadMode.BACKGROUND, priority=5)
        def on_ping(self, event: Ping) -> None:
            ...
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar, Union

__all__ = [
    "SUBSCRIBE_ATTR",
    "Subscribe",
    "SubscriberIndex",
    "SubscriberMethod",
    "ThreadMode",
    "create_subscriber_method",
    "subscribe",
]

SUBSCRIBE_ATTR = "__subindex_subscribe__"

F = TypeVar("F", bound=Callable[..., Any])


class ThreadMode(enum.Enum):
    """Dispatch policy attached to a subscriber method."""
    POSTING = "POSTING"        # on the thread that posted the event
    MAIN = "MAIN"              # on the designated main thread
    BACKGROUND = "BACKGROUND"  # on a single background thread
    ASYNC = "ASYNC"            # on a pooled thread, never the poster's

    @classmethod
    def parse(cls, value: Union[str, "ThreadMode"]) -> "ThreadMode":
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise ValueError(
                f"Unknown thread mode {value!r}. "
                f"Expected one of: {[m.name for m in cls]}"
            ) from None


@dataclass(frozen=True, slots=True)
class Subscribe:
    """Payload of the ``@subscribe`` marker."""
    thread_mode: ThreadMode = ThreadMode.MAIN
    priority: int = 0
    sticky: bool = False


def subscribe(
    func: Optional[F] = None,
    *,
    thread_mode: Union[str, ThreadMode] = ThreadMode.MAIN,
    priority: int = 0,
    sticky: bool = False,
) -> Any:
    """Mark a method as an event subscriber.

    Usable bare (``@subscribe``) or called (``@subscribe(priority=1)``).
    Only attaches metadata; nothing is registered anywhere.
    """
    payload = Subscribe(
        thread_mode=ThreadMode.parse(thread_mode),
        priority=int(priority),
        sticky=bool(sticky),
    )

    def deco(fn: F) -> F:
        setattr(fn, SUBSCRIBE_ATTR, payload)
        return fn

    if func is not None:
        return deco(func)
    return deco


@dataclass(frozen=True, slots=True)
class SubscriberMethod:
    """One entry of the generated lookup table."""
    subscriber_class: type
    method_name: str
    event_type: type
    thread_mode: ThreadMode
    priority: int
    sticky: bool

    def bind(self, subscriber: Any) -> Callable[[Any], Any]:
        return getattr(subscriber, self.method_name)


def create_subscriber_method(
    subscriber_class: type,
    method_name: str,
    event_type: type,
    thread_mode: ThreadMode = ThreadMode.MAIN,
    priority: int = 0,
    sticky: bool = False,
) -> SubscriberMethod:
    return SubscriberMethod(
        subscriber_class=subscriber_class,
        method_name=method_name,
        event_type=event_type,
        thread_mode=thread_mode,
        priority=priority,
        sticky=sticky,
    )


class SubscriberIndex:
    """Base class of generated indexes.

    ``create_subscribers_for`` returns ``None`` for a type the index does
    not cover; callers then fall back to reflective discovery.
    """

    def __init__(self) -> None:
        self._cache: Dict[type, Optional[Tuple[SubscriberMethod, ...]]] = {}

    def create_subscribers_for(
        self, subscriber_class: type
    ) -> Optional[Tuple[SubscriberMethod, ...]]:
        return None

    def get_subscriber_methods(
        self, subscriber_class: type
    ) -> Optional[Tuple[SubscriberMethod, ...]]:
        if subscriber_class not in self._cache:
            self._cache[subscriber_class] = self.create_subscribers_for(subscriber_class)
        return self._cache[subscriber_class]
