"""EventBus (sync in-process).

Two kinds of subscription:
  - subscribe(event_name, handler(payload)) for one event name
  - subscribe_all(handler(name, payload)) for every event; the lifecycle
    metrics collector and the any-subscriber bridge in `core.events` use it

emit() stamps `ts` when missing and hands each handler its own shallow copy.
A failing handler is logged at debug level and counted in
handler_exceptions_total{event}; the remaining handlers still run.
Dispatch time lands in the event_dispatch_ms{event} histogram.

Handlers run on the emitting thread / event loop; keep them cheap.
"""
from __future__ import annotations

import logging
from threading import RLock
from time import perf_counter, time
from typing import Any, Callable, Dict, List

from core import metrics

Handler = Callable[[Dict[str, Any]], None]
AnyHandler = Callable[[str, Dict[str, Any]], None]

_log = logging.getLogger("pocketai.eventbus")


def _remover(items: list, item: Any, lock: RLock) -> Callable[[], None]:
    def _unsub() -> None:
        with lock:
            if item in items:
                items.remove(item)

    return _unsub


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Handler]] = {}
        self._any: List[AnyHandler] = []
        self._lock = RLock()

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            subs = self._subs.setdefault(event, [])
            subs.append(handler)
        return _remover(subs, handler, self._lock)

    def subscribe_all(self, handler: AnyHandler) -> Callable[[], None]:
        with self._lock:
            self._any.append(handler)
        return _remover(self._any, handler, self._lock)

    def subscriber_count(self, event: str) -> int:
        with self._lock:
            return len(self._subs.get(event, ())) + len(self._any)

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        start = perf_counter()
        payload.setdefault("ts", time())
        with self._lock:
            named = list(self._subs.get(event, ()))
            wildcard = list(self._any)
        metrics.inc("events_emitted_total", {"event": event})
        calls: List[Callable[[], None]] = [
            (lambda h=h: h(dict(payload))) for h in named
        ]
        calls += [(lambda h=h: h(event, dict(payload))) for h in wildcard]
        for call in calls:
            try:
                call()
            except Exception:  # noqa: BLE001
                _log.debug("handler failed for %s", event, exc_info=True)
                metrics.inc("handler_exceptions_total", {"event": event})
        metrics.observe(
            "event_dispatch_ms",
            (perf_counter() - start) * 1000.0,
            {"event": event},
        )

    def reset_for_tests(self) -> None:  # pragma: no cover
        with self._lock:
            self._subs.clear()
            self._any.clear()


_BUS = EventBus()


def subscribe(event: str, handler: Handler) -> Callable[[], None]:
    return _BUS.subscribe(event, handler)


def subscribe_all(handler: AnyHandler) -> Callable[[], None]:
    return _BUS.subscribe_all(handler)


def subscriber_count(event: str) -> int:
    return _BUS.subscriber_count(event)


def emit(event: str, payload: Dict[str, Any]) -> None:
    _BUS.emit(event, payload)


def reset_for_tests() -> None:  # pragma: no cover
    _BUS.reset_for_tests()


__all__ = [
    "emit",
    "subscribe",
    "subscribe_all",
    "subscriber_count",
    "EventBus",
    "reset_for_tests",
]
