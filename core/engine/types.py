"""Value types exchanged with the inference engine."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from core.registry.descriptor import Modality


class Category(str, Enum):
    """Model role tracked independently by the lifecycle layer."""

    LLM = "llm"
    STT = "stt"
    TTS = "tts"
    VLM = "vlm"

    @property
    def label(self) -> str:
        return self.value.upper()

    @property
    def modality(self) -> Modality:
        return _MODALITY[self]

    @classmethod
    def parse(cls, raw: "str | Category") -> "Category":
        if isinstance(raw, Category):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValueError(f"unknown category: {raw!r}") from None


_MODALITY = {
    Category.LLM: Modality.LANGUAGE,
    Category.STT: Modality.SPEECH_RECOGNITION,
    Category.TTS: Modality.SPEECH_SYNTHESIS,
    Category.VLM: Modality.MULTIMODAL,
}

# unload order; VLM last (best-effort)
ALL_CATEGORIES: tuple[Category, ...] = (
    Category.LLM,
    Category.STT,
    Category.TTS,
    Category.VLM,
)
VOICE_CATEGORIES: tuple[Category, ...] = (
    Category.LLM,
    Category.STT,
    Category.TTS,
)


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Overall download progress of one model (all files)."""

    model_id: str
    progress: float
    downloaded_bytes: int = 0
    total_bytes: int = 0
    filename: str | None = None


@dataclass(frozen=True, slots=True)
class AvailableModel:
    id: str
    local_path: Path | None = None

    @property
    def is_downloaded(self) -> bool:
        return self.local_path is not None
