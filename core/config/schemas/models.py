"""Model catalog schema: defaults, YAML registry dir, category assignments."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AssignmentsConfig(BaseModel):
    """Model id served by each category (default: built-in catalog)."""

    llm: str = "smollm2-360m-instruct-q8_0"
    stt: str = "sherpa-onnx-whisper-tiny.en"
    tts: str = "vits-piper-en_US-lessac-medium"
    vlm: str = "smolvlm-256m-instruct"

    model_config = ConfigDict(extra="forbid")


class ModelsConfig(BaseModel):
    register_defaults: bool = True
    registry_dir: str | None = None
    assignments: AssignmentsConfig = Field(default_factory=AssignmentsConfig)

    model_config = ConfigDict(extra="forbid")
