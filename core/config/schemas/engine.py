"""Local engine schema: download transport + runtime backend tuning."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class DownloadConfig(BaseModel):
    chunk_size: int = 1024 * 1024
    timeout_s: float = 30.0
    user_agent: str = "pocketai/0.1 (model downloader)"
    # env var holding a bearer token for gated hubs (sent to huggingface.co)
    token_env: str = "HF_TOKEN"

    model_config = ConfigDict(extra="forbid")


class LlamaRuntimeConfig(BaseModel):
    n_ctx: int = 2048
    n_gpu_layers: str | int = "auto"
    n_threads: int | None = None

    model_config = ConfigDict(extra="forbid")


class OnnxRuntimeConfig(BaseModel):
    providers: List[str] = Field(
        default_factory=lambda: ["CPUExecutionProvider"]
    )

    model_config = ConfigDict(extra="forbid")


class EngineConfig(BaseModel):
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    llama: LlamaRuntimeConfig = Field(default_factory=LlamaRuntimeConfig)
    onnx: OnnxRuntimeConfig = Field(default_factory=OnnxRuntimeConfig)

    model_config = ConfigDict(extra="forbid")
