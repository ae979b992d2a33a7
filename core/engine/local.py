"""Local engine gateway: artifact store + HTTP downloader + runtimes.

One runtime slot per category. Loading a different model into an occupied
slot releases the previous runtime first; loading the same model again is a
no-op.
"""
from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import AsyncIterator, Dict, List, Mapping

from core.registry.descriptor import InferenceFramework, ModelDescriptor
from .backends import (
    LlamaCppBackend,
    OnnxRuntimeBackend,
    RuntimeBackend,
    RuntimeHandle,
)
from .downloader import HttpDownloader
from .exceptions import (
    DownloadError,
    DuplicateIdError,
    LoadError,
    UnloadError,
)
from .gateway import EngineGateway
from .storage import ArtifactStore
from .types import (
    AvailableModel,
    Category,
    ProgressEvent,
    VOICE_CATEGORIES,
)

_log = logging.getLogger("pocketai.gateway")

# composite capability -> categories whose runtimes must all be held
_COMPOSITES: Dict[str, tuple[Category, ...]] = {
    "voice_agent": VOICE_CATEGORIES,
}


class LocalEngineGateway(EngineGateway):
    def __init__(
        self,
        store: ArtifactStore,
        downloader: HttpDownloader,
        backends: Mapping[InferenceFramework, RuntimeBackend] | None = None,
    ) -> None:
        self._store = store
        self._downloader = downloader
        self._backends: Dict[InferenceFramework, RuntimeBackend] = dict(
            backends or {}
        )
        self._descriptors: Dict[str, ModelDescriptor] = {}
        self._handles: Dict[Category, RuntimeHandle] = {}

    @classmethod
    def from_config(cls, cfg, **downloader_kwargs) -> "LocalEngineGateway":
        store = ArtifactStore(cfg.storage.paths.models)
        downloader = HttpDownloader.from_config(
            store, cfg.engine.download, **downloader_kwargs
        )
        return cls(
            store,
            downloader,
            backends={
                InferenceFramework.LLAMA_CPP: LlamaCppBackend.from_config(
                    cfg.engine.llama
                ),
                InferenceFramework.ONNX: OnnxRuntimeBackend(
                    cfg.engine.onnx.providers
                ),
            },
        )

    @property
    def store(self) -> ArtifactStore:
        return self._store

    # registration ------------------------------------------------------------
    async def register_model(self, descriptor: ModelDescriptor) -> None:
        if descriptor.id in self._descriptors:
            raise DuplicateIdError(
                f"Model id already registered: {descriptor.id}"
            )
        self._descriptors[descriptor.id] = descriptor

    # artifacts ---------------------------------------------------------------
    async def is_artifact_present(self, model_id: str) -> bool:
        desc = self._descriptors.get(model_id)
        if desc is None:
            return False
        return self._store.is_present(desc)

    async def download(self, model_id: str) -> AsyncIterator[ProgressEvent]:
        desc = self._descriptors.get(model_id)
        if desc is None:
            raise DownloadError(
                f"Model not registered with engine: {model_id}",
                error_type="unknown-model",
            )
        async for event in self._downloader.download(desc):
            yield event

    async def list_available_models(self) -> List[AvailableModel]:
        return [
            AvailableModel(id=d.id, local_path=self._store.local_path(d))
            for d in self._descriptors.values()
        ]

    # runtimes ----------------------------------------------------------------
    def _backend_for(self, desc: ModelDescriptor) -> RuntimeBackend:
        backend = self._backends.get(desc.framework)
        if backend is None:
            raise LoadError(
                f"No runtime backend for framework {desc.framework.value}",
                error_type="no-backend",
            )
        return backend

    async def load(self, category: Category, model_id: str) -> None:
        desc = self._descriptors.get(model_id)
        if desc is None:
            raise LoadError(
                f"Model not registered with engine: {model_id}",
                error_type="unknown-model",
            )
        if desc.modality != category.modality:
            raise LoadError(
                f"{model_id} is a {desc.modality.value} model, "
                f"cannot serve {category.label}"
            )
        current = self._handles.get(category)
        if current is not None and current.model_id == model_id:
            return
        if not self._store.is_present(desc):
            missing = ", ".join(
                f.filename for f in self._store.missing_files(desc)
            )
            raise LoadError(
                f"Artifacts missing for {model_id}: {missing}",
                error_type="file-not-found",
            )
        backend = self._backend_for(desc)
        if current is not None:
            await self.unload(category)
        start = perf_counter()
        handle = await asyncio.to_thread(
            backend.load, desc, self._store.model_dir(model_id)
        )
        self._handles[category] = handle
        _log.info(
            "loaded %s into %s in %dms",
            model_id,
            category.label,
            int((perf_counter() - start) * 1000),
        )

    async def unload(self, category: Category) -> None:
        handle = self._handles.pop(category, None)
        if handle is None:
            return
        desc = self._descriptors.get(handle.model_id)
        backend = self._backends.get(desc.framework) if desc else None
        if backend is None:
            return
        try:
            await asyncio.to_thread(backend.unload, handle)
        except Exception as e:  # noqa: BLE001
            raise UnloadError(f"{category.label}: {e}") from e
        _log.info("unloaded %s from %s", handle.model_id, category.label)

    async def is_loaded(self, category: Category) -> bool:
        return category in self._handles

    async def is_composite_ready(self, capability: str) -> bool:
        required = _COMPOSITES.get(capability)
        if not required:
            return False
        return all(c in self._handles for c in required)


__all__ = ["LocalEngineGateway"]
