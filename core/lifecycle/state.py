"""Per-category lifecycle state.

A category is in exactly one phase at a time; the boolean views
(`downloading`, `loading`) are derived from it so both can never be true
together. `loaded` is tracked separately: a failed download or load never
changes what the engine already holds.

    idle -> downloading -> loading -> loaded
                 |             |
                 +-> failed <--+
    loaded -> (unload) -> idle

idle, loaded and failed are rest phases; only rest phases are reconciled
against the engine.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict

from core.engine.types import ALL_CATEGORIES, VOICE_CATEGORIES, Category


class Phase(str, Enum):
    IDLE = "idle"
    DOWNLOADING = "downloading"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


_BUSY = (Phase.DOWNLOADING, Phase.LOADING)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True, slots=True)
class CategoryState:
    phase: Phase = Phase.IDLE
    progress: float = 0.0
    loaded: bool = False
    reason: str | None = None

    # flag views -------------------------------------------------------------
    @property
    def downloading(self) -> bool:
        return self.phase == Phase.DOWNLOADING

    @property
    def loading(self) -> bool:
        return self.phase == Phase.LOADING

    @property
    def download_progress(self) -> float:
        return self.progress

    @property
    def busy(self) -> bool:
        return self.phase in _BUSY

    # transitions ------------------------------------------------------------
    def start_download(self) -> "CategoryState":
        return replace(
            self, phase=Phase.DOWNLOADING, progress=0.0, reason=None
        )

    def progressed(self, progress: float) -> "CategoryState":
        return replace(self, progress=_clamp(progress))

    def start_load(self) -> "CategoryState":
        return replace(self, phase=Phase.LOADING, reason=None)

    def load_succeeded(self) -> "CategoryState":
        return replace(self, phase=Phase.LOADED, loaded=True, reason=None)

    def failed(self, reason: str) -> "CategoryState":
        # progress and loaded are kept as they were
        return replace(self, phase=Phase.FAILED, reason=reason)

    def reconciled(self, engine_loaded: bool) -> "CategoryState":
        """Adopt the engine's view of `loaded`; busy phases are left alone."""
        if self.busy:
            return self
        if self.phase == Phase.FAILED:
            return replace(self, loaded=engine_loaded)
        return replace(
            self,
            phase=Phase.LOADED if engine_loaded else Phase.IDLE,
            loaded=engine_loaded,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "downloading": self.downloading,
            "loading": self.loading,
            "download_progress": round(self.progress, 4),
            "loaded": self.loaded,
            "reason": self.reason,
        }


__all__ = [
    "ALL_CATEGORIES",
    "VOICE_CATEGORIES",
    "Category",
    "CategoryState",
    "Phase",
]
