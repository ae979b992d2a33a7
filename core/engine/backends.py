"""Runtime backends: turn present artifacts into live inference handles.

* LlamaCppBackend  - language (.gguf) and multimodal (.gguf + mmproj
  projector through the LLaVA chat handler).
* OnnxRuntimeBackend - speech recognition / synthesis bundles (one
  InferenceSession per .onnx file in the model directory).

Runtime libraries are imported on load, not on import, so the lifecycle
layer stays importable without them; a missing library is a LoadError
(`runtime-missing`). Both backends block; the gateway calls them through
`asyncio.to_thread`.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from core.registry.descriptor import ModelDescriptor, Modality
from .exceptions import LoadError

_log = logging.getLogger("pocketai.runtime")


@dataclass(slots=True)
class RuntimeHandle:
    model_id: str
    runtime: Any
    paths: List[Path] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


class RuntimeBackend(ABC):
    @abstractmethod
    def load(
        self, descriptor: ModelDescriptor, model_dir: Path
    ) -> RuntimeHandle:
        """Build a runtime from artifacts under model_dir (LoadError)."""

    def unload(self, handle: RuntimeHandle) -> None:
        """Release runtime resources (default: drop the reference)."""
        handle.runtime = None


def _require(path: Path) -> Path:
    if not path.is_file():
        raise LoadError(
            f"Model file not found: {path}", error_type="file-not-found"
        )
    return path


def _resolve_n_gpu_layers(raw: Any) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered == "auto":
            return -1
        if not lowered:
            return None
        try:
            return int(lowered)
        except ValueError:
            return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


class LlamaCppBackend(RuntimeBackend):
    def __init__(
        self,
        n_ctx: int = 2048,
        n_gpu_layers: int | str | None = "auto",
        n_threads: int | None = None,
    ) -> None:
        self._n_ctx = n_ctx
        self._n_gpu_layers = _resolve_n_gpu_layers(n_gpu_layers)
        self._n_threads = n_threads

    @classmethod
    def from_config(cls, llama_cfg) -> "LlamaCppBackend":
        return cls(
            n_ctx=llama_cfg.n_ctx,
            n_gpu_layers=llama_cfg.n_gpu_layers,
            n_threads=llama_cfg.n_threads,
        )

    @staticmethod
    def split_files(descriptor: ModelDescriptor) -> tuple[str, str | None]:
        """Return (weights filename, projector filename or None)."""
        names = [f.filename for f in descriptor.files]
        if len(names) == 1:
            return names[0], None
        proj = next((n for n in names if "mmproj" in n.lower()), names[-1])
        weights = next(n for n in names if n != proj)
        return weights, proj

    def _build_kwargs(self, model_path: Path) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model_path": str(model_path),
            "n_ctx": self._n_ctx,
            "verbose": False,
        }
        if self._n_gpu_layers is not None:
            kwargs["n_gpu_layers"] = self._n_gpu_layers
        if self._n_threads:
            kwargs["n_threads"] = int(self._n_threads)
        return kwargs

    def load(
        self, descriptor: ModelDescriptor, model_dir: Path
    ) -> RuntimeHandle:
        weights_name, proj_name = self.split_files(descriptor)
        weights = _require(model_dir / weights_name)
        proj = _require(model_dir / proj_name) if proj_name else None
        try:
            from llama_cpp import Llama  # type: ignore
        except ImportError as e:
            raise LoadError(
                "llama_cpp is not installed", error_type="runtime-missing"
            ) from e
        kwargs = self._build_kwargs(weights)
        if descriptor.modality == Modality.MULTIMODAL and proj is not None:
            try:
                from llama_cpp.llama_chat_format import (  # type: ignore
                    Llava15ChatHandler,
                )
            except ImportError as e:
                raise LoadError(
                    "llama_cpp build lacks multimodal support",
                    error_type="runtime-missing",
                ) from e
            kwargs["chat_handler"] = Llava15ChatHandler(
                clip_model_path=str(proj), verbose=False
            )
        try:
            llama = Llama(**kwargs)
        except Exception as gpu_exc:  # noqa: BLE001
            # GPU offload failures are common on small devices: retry on CPU
            if kwargs.get("n_gpu_layers") in (None, 0):
                raise LoadError(str(gpu_exc)) from gpu_exc
            _log.warning(
                "gpu load failed for %s, retrying on cpu: %s",
                descriptor.id,
                gpu_exc,
            )
            kwargs["n_gpu_layers"] = 0
            try:
                llama = Llama(**kwargs)
            except Exception as e:  # noqa: BLE001
                raise LoadError(str(e)) from e
        paths = [weights] + ([proj] if proj else [])
        return RuntimeHandle(
            model_id=descriptor.id,
            runtime=llama,
            paths=paths,
            metadata={"n_gpu_layers": kwargs.get("n_gpu_layers")},
        )

    def unload(self, handle: RuntimeHandle) -> None:
        runtime = handle.runtime
        handle.runtime = None
        close = getattr(runtime, "close", None)
        if callable(close):
            close()


class OnnxRuntimeBackend(RuntimeBackend):
    def __init__(self, providers: List[str] | None = None) -> None:
        self._providers = providers or ["CPUExecutionProvider"]

    def load(
        self, descriptor: ModelDescriptor, model_dir: Path
    ) -> RuntimeHandle:
        if not model_dir.is_dir():
            raise LoadError(
                f"Model directory not found: {model_dir}",
                error_type="file-not-found",
            )
        onnx_files = sorted(model_dir.rglob("*.onnx"))
        if not onnx_files:
            raise LoadError(
                f"No .onnx files under {model_dir}",
                error_type="file-not-found",
            )
        try:
            import onnxruntime as ort  # type: ignore
        except ImportError as e:
            raise LoadError(
                "onnxruntime is not installed", error_type="runtime-missing"
            ) from e
        sessions: Dict[str, Any] = {}
        try:
            for path in onnx_files:
                sessions[path.stem] = ort.InferenceSession(
                    str(path), providers=self._providers
                )
        except Exception as e:  # noqa: BLE001
            raise LoadError(f"{descriptor.id}: {e}") from e
        return RuntimeHandle(
            model_id=descriptor.id,
            runtime=sessions,
            paths=onnx_files,
            metadata={"sessions": sorted(sessions)},
        )


__all__ = [
    "RuntimeBackend",
    "RuntimeHandle",
    "LlamaCppBackend",
    "OnnxRuntimeBackend",
]
