"""In-memory metrics for the lifecycle service.

Counters and latency histograms keyed by (name, sorted labels). Histograms
keep a bounded window of recent samples plus all-time count/sum, so a long
running service does not grow without limit.

    inc(name, labels=None, value=1)
    observe(name, value, labels=None)
    snapshot() -> plain dict, served as-is by GET /metrics

Thread-safety: coarse RLock; runtime loads run in worker threads while the
event loop records API and lifecycle metrics.

Lifecycle metric names:
    - model_downloads_total{category,status}
    - model_loads_total{category,status}
    - model_load_ms{category}
    - model_unloads_total{category,status}
    - lifecycle_errors_total{category,error_type}
    - api_request_total{route,method}, api_request_latency_ms{route,method}
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from threading import RLock
from time import time
from typing import Any, Deque, Dict, Tuple

Labels = Tuple[Tuple[str, str], ...]
Key = Tuple[str, Labels]

WINDOW = 512


@dataclass(slots=True)
class _Histogram:
    samples: Deque[float] = field(
        default_factory=lambda: deque(maxlen=WINDOW)
    )
    count: int = 0
    total: float = 0.0

    def add(self, value: float) -> None:
        self.samples.append(value)
        self.count += 1
        self.total += value

    def summary(self) -> Dict[str, Any]:
        ordered = sorted(self.samples)
        n = len(ordered)
        return {
            "count": self.count,
            "sum": self.total,
            "min": ordered[0],
            "max": ordered[-1],
            "p50": ordered[n // 2],
            "p95": ordered[min(n - 1, int(n * 0.95))],
            "last": self.samples[-1],
        }


_COUNTERS: Dict[Key, float] = {}
_HIST: Dict[Key, _Histogram] = {}
_LOCK = RLock()


def _key(name: str, labels: dict[str, Any] | None) -> Key:
    if not labels:
        return name, ()
    return name, tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _render(key: Key) -> str:
    name, labels = key
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in labels) + "}"


def inc(
    name: str,
    labels: dict[str, Any] | None = None,
    value: float = 1.0,
) -> None:
    key = _key(name, labels)
    with _LOCK:
        _COUNTERS[key] = _COUNTERS.get(key, 0.0) + value


def observe(
    name: str,
    value: float,
    labels: dict[str, Any] | None = None,
) -> None:
    key = _key(name, labels)
    with _LOCK:
        hist = _HIST.get(key)
        if hist is None:
            hist = _HIST[key] = _Histogram()
        hist.add(value)


def snapshot() -> dict[str, Any]:
    with _LOCK:
        return {
            "ts": time(),
            "counters": {_render(k): v for k, v in _COUNTERS.items()},
            "histograms": {
                _render(k): h.summary() for k, h in _HIST.items()
            },
        }


def counter_value(name: str, labels: dict[str, Any] | None = None) -> float:
    """Return current value of one counter (0.0 if never incremented)."""
    with _LOCK:
        return _COUNTERS.get(_key(name, labels), 0.0)


def reset_for_tests() -> None:  # pragma: no cover
    with _LOCK:
        _COUNTERS.clear()
        _HIST.clear()


__all__ = [
    "inc",
    "observe",
    "snapshot",
    "counter_value",
    "reset_for_tests",
    "WINDOW",
]
