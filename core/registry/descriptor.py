"""Model descriptor schema."""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Modality(str, Enum):
    LANGUAGE = "language"
    SPEECH_RECOGNITION = "speech_recognition"
    SPEECH_SYNTHESIS = "speech_synthesis"
    MULTIMODAL = "multimodal"


class InferenceFramework(str, Enum):
    LLAMA_CPP = "llama_cpp"
    ONNX = "onnx"


ARCHIVE_SUFFIXES = (".tar.gz", ".tgz", ".tar.bz2", ".tar.xz", ".tar")


class ModelFile(BaseModel):
    url: str
    filename: str

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("filename")
    @classmethod
    def _plain_name(cls, v: str) -> str:  # noqa: D401
        v = v.strip()
        if not v or "/" in v or "\\" in v or v in {".", ".."}:
            raise ValueError(f"invalid filename: {v!r}")
        return v

    @property
    def is_archive(self) -> bool:
        return self.filename.lower().endswith(ARCHIVE_SUFFIXES)


class ModelDescriptor(BaseModel):
    id: str
    name: str
    modality: Modality
    framework: InferenceFramework
    files: List[ModelFile] = Field(min_length=1)
    memory_requirement: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("id")
    @classmethod
    def _id_not_empty(cls, v: str) -> str:  # noqa: D401
        if not v.strip():
            raise ValueError("id cannot be empty")
        return v

    @field_validator("files")
    @classmethod
    def _unique_filenames(cls, v: List[ModelFile]) -> List[ModelFile]:
        names = [f.filename for f in v]
        if len(set(names)) != len(names):
            raise ValueError("filenames must be unique within a descriptor")
        return v

    @property
    def is_multi_file(self) -> bool:
        return len(self.files) > 1

    @property
    def primary_file(self) -> ModelFile:
        return self.files[0]

    @classmethod
    def single(
        cls,
        id: str,
        name: str,
        url: str,
        modality: Modality,
        framework: InferenceFramework,
        memory_requirement: int | None = None,
        filename: str | None = None,
    ) -> "ModelDescriptor":
        """Build a one-file descriptor; filename defaults to the URL tail."""
        fname = filename or url.rstrip("/").rsplit("/", 1)[-1]
        return cls(
            id=id,
            name=name,
            modality=modality,
            framework=framework,
            files=[ModelFile(url=url, filename=fname)],
            memory_requirement=memory_requirement,
        )
