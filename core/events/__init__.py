"""Lifecycle event dataclasses + any-subscriber bridge.

Events are plain dataclasses; `emit(event)` publishes them on
`core.eventbus` under the class name. `subscribe(handler)` registers a
handler(name, payload) for every event; the lifecycle metrics collector
below is one such subscriber.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from time import time
from typing import Any, Callable, Dict, Protocol

from core import metrics as _metrics
import core.eventbus as _bus

EventHandler = Callable[[str, Dict[str, Any]], None]


class SupportsEvent(Protocol):  # pragma: no cover
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        ...


@dataclass(slots=True)
class BaseEvent:
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        data = asdict(self)
        data["ts"] = data.get("ts") or time()
        return data


@dataclass(slots=True)
class ModelRegistered(BaseEvent):
    model_id: str
    modality: str
    files: int


@dataclass(slots=True)
class DownloadStarted(BaseEvent):
    model_id: str
    category: str
    files: int


@dataclass(slots=True)
class DownloadCompleted(BaseEvent):
    model_id: str
    category: str
    duration_ms: int


@dataclass(slots=True)
class DownloadFailed(BaseEvent):
    model_id: str
    category: str
    error_type: str
    message: str | None = None
    progress: float | None = None


@dataclass(slots=True)
class ModelLoaded(BaseEvent):
    model_id: str
    category: str
    load_ms: int


@dataclass(slots=True)
class ModelLoadFailed(BaseEvent):
    model_id: str
    category: str
    error_type: str
    message: str | None = None


@dataclass(slots=True)
class ModelUnloaded(BaseEvent):
    category: str
    reason: str  # unload_all


@dataclass(slots=True)
class ModelUnloadFailed(BaseEvent):
    category: str
    error_type: str
    message: str | None = None
    suppressed: bool = False  # best-effort categories (multimodal)


@dataclass(slots=True)
class CategoryStateChanged(BaseEvent):
    """Snapshot of one category after a transition.

    phase: idle|downloading|loading|loaded|failed
    progress: last known download progress in [0, 1]
    """
    category: str
    phase: str
    progress: float
    loaded: bool
    reason: str | None = None


@dataclass(slots=True)
class ErrorRaised(BaseEvent):
    message: str
    category: str | None = None
    error_type: str | None = None


@dataclass(slots=True)
class ErrorCleared(BaseEvent):
    previous: str | None = None


def _metrics_collector(name: str, payload: Dict[str, Any]) -> None:
    category = payload.get("category", "unknown")
    if name in _OUTCOME_COUNTERS:
        counter, status = _OUTCOME_COUNTERS[name]
        _metrics.inc(counter, {"category": category, "status": status})
    if name == "ModelLoaded":
        _metrics.observe(
            "model_load_ms",
            payload.get("load_ms", 0),
            {"category": category},
        )
    elif name == "ErrorRaised":
        _metrics.inc(
            "lifecycle_errors_total",
            {
                "category": payload.get("category") or "none",
                "error_type": payload.get("error_type") or "unknown",
            },
        )


# event name -> (counter, status label)
_OUTCOME_COUNTERS = {
    "DownloadCompleted": ("model_downloads_total", "ok"),
    "DownloadFailed": ("model_downloads_total", "error"),
    "ModelLoaded": ("model_loads_total", "ok"),
    "ModelLoadFailed": ("model_loads_total", "error"),
    "ModelUnloaded": ("model_unloads_total", "ok"),
    "ModelUnloadFailed": ("model_unloads_total", "error"),
}

_bus.subscribe_all(_metrics_collector)


def emit(ev: BaseEvent | SupportsEvent) -> None:
    _bus.emit(ev.__class__.__name__, ev.to_event())


def subscribe(handler: EventHandler) -> Callable[[], None]:
    """Receive every lifecycle event as handler(name, payload)."""
    return _bus.subscribe_all(handler)


def on(handler: EventHandler) -> None:
    _bus.subscribe_all(handler)


def reset_listeners_for_tests() -> None:  # pragma: no cover
    _bus.reset_for_tests()
    _bus.subscribe_all(_metrics_collector)


__all__ = [
    "emit",
    "on",
    "subscribe",
    "ModelRegistered",
    "DownloadStarted",
    "DownloadCompleted",
    "DownloadFailed",
    "ModelLoaded",
    "ModelLoadFailed",
    "ModelUnloaded",
    "ModelUnloadFailed",
    "CategoryStateChanged",
    "ErrorRaised",
    "ErrorCleared",
    "reset_listeners_for_tests",
]
