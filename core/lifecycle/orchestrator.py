"""ModelOrchestrator: download-then-load lifecycle per category.

Drives the engine gateway for the four categories (LLM, STT, TTS, VLM)
and keeps an observable state per category plus a single error slot
(`StatusChannel`). Failures never escape `download_and_load` /
`unload_all`; they land in the error slot and as events.

Concurrency model (one asyncio loop owns the orchestrator):
 - each category has its own lock; a request for a busy category is a
   silent no-op (check + acquire happen without an await in between)
 - categories run independently; download progress is consumed with
   `async for` so other categories advance between chunks
 - `download_and_load_all` schedules tasks and returns them without
   awaiting; callers observe state or await the handles
"""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from time import perf_counter
from typing import Any, Dict, List, Mapping

from core.engine.exceptions import DuplicateIdError, ModelNotRegisteredError
from core.engine.gateway import EngineGateway
from core.errors import map_exception
from core.events import (
    DownloadCompleted,
    DownloadFailed,
    DownloadStarted,
    ModelLoaded,
    ModelLoadFailed,
    ModelUnloaded,
    ModelUnloadFailed,
    emit,
)
from core.registry import ModelDescriptor, ModelRegistry
from core.registry.defaults import (
    LLM_MODEL_ID,
    STT_MODEL_ID,
    TTS_MODEL_ID,
    VLM_MODEL_ID,
)
from .readiness import ReadinessAggregator
from .state import (
    ALL_CATEGORIES,
    VOICE_CATEGORIES,
    Category,
    CategoryState,
)
from .status import StatusChannel

_log = logging.getLogger("pocketai.orchestrator")

DEFAULT_ASSIGNMENTS: Dict[Category, str] = {
    Category.LLM: LLM_MODEL_ID,
    Category.STT: STT_MODEL_ID,
    Category.TTS: TTS_MODEL_ID,
    Category.VLM: VLM_MODEL_ID,
}

# unload failures here are logged only, never reported in the error slot
_BEST_EFFORT_UNLOAD = (Category.VLM,)


def _detail(e: BaseException) -> str:
    return str(e) or e.__class__.__name__


def assignments_from_config(assignments_cfg: Any) -> Dict[Category, str]:
    """Map the `models.assignments` section onto categories."""
    out = dict(DEFAULT_ASSIGNMENTS)
    if assignments_cfg is None:
        return out
    for category in ALL_CATEGORIES:
        model_id = getattr(assignments_cfg, category.value, None)
        if model_id:
            out[category] = model_id
    return out


class ModelOrchestrator:
    def __init__(
        self,
        gateway: EngineGateway,
        registry: ModelRegistry,
        assignments: Mapping[Category, str] | None = None,
        readiness: ReadinessAggregator | None = None,
    ) -> None:
        self._gateway = gateway
        self._registry = registry
        self._assignments: Dict[Category, str] = dict(DEFAULT_ASSIGNMENTS)
        if assignments:
            self._assignments.update(
                {Category.parse(k): v for k, v in assignments.items()}
            )
        self._readiness = readiness or ReadinessAggregator()
        self._status = StatusChannel(ALL_CATEGORIES)
        self._locks: Dict[Category, asyncio.Lock] = {
            c: asyncio.Lock() for c in ALL_CATEGORIES
        }
        # strong refs for scheduled tasks (the loop keeps only weak ones)
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls, cfg: Any, gateway: EngineGateway
    ) -> "ModelOrchestrator":
        return cls(
            gateway,
            ModelRegistry.from_config(cfg.models),
            assignments=assignments_from_config(cfg.models.assignments),
        )

    # --- accessors -----------------------------------------------------------
    @property
    def gateway(self) -> EngineGateway:
        return self._gateway

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    @property
    def status(self) -> StatusChannel:
        return self._status

    @property
    def error(self) -> str | None:
        return self._status.error

    def assignment(self, category: Category | str) -> str:
        return self._assignments[Category.parse(category)]

    def state(self, category: Category | str) -> CategoryState:
        return self._status.state(Category.parse(category))

    def snapshot(self) -> Dict[str, Any]:
        snap = self._status.snapshot()
        for category in ALL_CATEGORIES:
            snap["categories"][category.value]["model_id"] = (
                self._assignments[category]
            )
        return snap

    # --- setup ---------------------------------------------------------------
    async def bootstrap(self) -> None:
        """Register every catalog descriptor with the engine, then refresh."""
        for desc in self._registry.list():
            try:
                await self._gateway.register_model(desc)
            except DuplicateIdError:
                _log.debug("%s already registered with engine", desc.id)
        await self.refresh()

    async def refresh(self) -> None:
        """Reconcile `loaded` of every resting category with the engine."""
        for category in ALL_CATEGORIES:
            try:
                engine_loaded = await self._gateway.is_loaded(category)
            except Exception:  # noqa: BLE001
                _log.warning(
                    "is_loaded(%s) failed; state kept",
                    category.label,
                    exc_info=True,
                )
                continue
            current = self._status.state(category)
            self._status.update(category, current.reconciled(engine_loaded))

    # --- download + load -----------------------------------------------------
    async def download_and_load(self, category: Category | str) -> None:
        category = Category.parse(category)
        lock = self._locks[category]
        if lock.locked() or self._status.state(category).busy:
            _log.debug("%s busy; request ignored", category.label)
            return
        async with lock:
            await self._download_and_load(category)

    async def _download_and_load(self, category: Category) -> None:
        label = category.label
        self._status.clear_error()
        model_id = self._assignments[category]
        try:
            desc = self._registry.get(model_id)
        except ModelNotRegisteredError as e:
            self._status.raise_error(
                f"{label} lookup failed: {_detail(e)}",
                category,
                e.error_type,
            )
            return

        try:
            already = await self._gateway.is_loaded(category)
            present = already or await self._gateway.is_artifact_present(
                model_id
            )
        except Exception as e:  # noqa: BLE001
            self._fail(
                category,
                f"{label} download failed: {_detail(e)}",
                map_exception(e, "model.download"),
            )
            return

        if already:
            status = self._status
            status.update(category, status.state(category).load_succeeded())
        else:
            if not present and not await self._download(category, desc):
                return
            if not await self._load(category, desc):
                return
        await self.refresh()

    async def _download(
        self, category: Category, desc: ModelDescriptor
    ) -> bool:
        status = self._status
        status.update(category, status.state(category).start_download())
        emit(
            DownloadStarted(
                model_id=desc.id,
                category=category.value,
                files=len(desc.files),
            )
        )
        start = perf_counter()
        try:
            async for event in self._gateway.download(desc.id):
                state = status.state(category)
                status.update(category, state.progressed(event.progress))
        except asyncio.CancelledError:
            status.update(
                category, status.state(category).failed("download cancelled")
            )
            raise
        except Exception as e:  # noqa: BLE001
            message = f"{category.label} download failed: {_detail(e)}"
            error_type = map_exception(e, "model.download")
            self._fail(category, message, error_type)
            emit(
                DownloadFailed(
                    model_id=desc.id,
                    category=category.value,
                    error_type=error_type,
                    message=_detail(e),
                    progress=status.state(category).progress,
                )
            )
            return False
        emit(
            DownloadCompleted(
                model_id=desc.id,
                category=category.value,
                duration_ms=int((perf_counter() - start) * 1000),
            )
        )
        return True

    async def _load(self, category: Category, desc: ModelDescriptor) -> bool:
        status = self._status
        status.update(category, status.state(category).start_load())
        start = perf_counter()
        try:
            await self._gateway.load(category, desc.id)
        except asyncio.CancelledError:
            status.update(
                category, status.state(category).failed("load cancelled")
            )
            raise
        except Exception as e:  # noqa: BLE001
            error_type = map_exception(e, "model.load")
            self._fail(
                category,
                f"{category.label} load failed: {_detail(e)}",
                error_type,
            )
            emit(
                ModelLoadFailed(
                    model_id=desc.id,
                    category=category.value,
                    error_type=error_type,
                    message=_detail(e),
                )
            )
            return False
        status.update(category, status.state(category).load_succeeded())
        emit(
            ModelLoaded(
                model_id=desc.id,
                category=category.value,
                load_ms=int((perf_counter() - start) * 1000),
            )
        )
        return True

    def _fail(self, category: Category, message: str, error_type: str) -> None:
        state = self._status.state(category)
        self._status.update(category, state.failed(message))
        self._status.raise_error(message, category, error_type)

    def schedule(self, category: Category | str) -> asyncio.Task:
        """Run download_and_load(category) as a task on the running loop."""
        category = Category.parse(category)
        task = asyncio.get_running_loop().create_task(
            self.download_and_load(category),
            name=f"download-and-load-{category.value}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def download_and_load_all(self) -> List[asyncio.Task]:
        """Schedule download_and_load for LLM, STT and TTS (not VLM).

        Categories already loaded are skipped. Must be called from a
        running loop; the returned tasks are not awaited here.
        """
        return [
            self.schedule(category)
            for category in VOICE_CATEGORIES
            if not self._status.state(category).loaded
        ]

    async def load_all(self) -> None:
        tasks = self.download_and_load_all()
        if tasks:
            await asyncio.gather(*tasks)

    # --- unload --------------------------------------------------------------
    async def unload_all(self) -> None:
        """Unload LLM, STT, TTS, VLM (in that order), attempting each one.

        VLM failures are logged only; the others are collected into one
        error message. State is refreshed from the engine afterwards.
        """
        self._status.clear_error()
        failures: List[str] = []
        for category in ALL_CATEGORIES:
            held = self._status.state(category).loaded
            try:
                await self._gateway.unload(category)
            except Exception as e:  # noqa: BLE001
                suppressed = category in _BEST_EFFORT_UNLOAD
                emit(
                    ModelUnloadFailed(
                        category=category.value,
                        error_type=map_exception(e, "model.unload"),
                        message=_detail(e),
                        suppressed=suppressed,
                    )
                )
                if suppressed:
                    _log.info(
                        "%s unload failed (ignored): %s",
                        category.label,
                        _detail(e),
                    )
                else:
                    failures.append(f"{category.label}: {_detail(e)}")
                continue
            if held:
                emit(
                    ModelUnloaded(category=category.value, reason="unload_all")
                )
        if failures:
            self._status.raise_error(
                "Failed to unload models: " + "; ".join(failures),
                None,
                "unload-failed",
            )
        await self.refresh()

    async def aclose(self) -> None:
        """Cancel scheduled work, unload every runtime, close the engine."""
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            _log.info("cancelled %d pending task(s)", len(pending))
        await self.unload_all()
        await self._gateway.aclose()

    def clear_error(self) -> None:
        self._status.clear_error()

    # --- queries -------------------------------------------------------------
    async def is_downloaded(self, category: Category | str) -> bool:
        return await self._gateway.is_artifact_present(
            self.assignment(category)
        )

    async def is_ready(self, name: str) -> bool:
        cap = self._readiness.capability(name)
        engine_ready: bool | None = None
        if cap.requires_engine_check:
            try:
                engine_ready = await self._gateway.is_composite_ready(name)
            except Exception:  # noqa: BLE001
                _log.warning(
                    "is_composite_ready(%s) failed", name, exc_info=True
                )
                engine_ready = False
        return self._readiness.is_ready(
            name, self._status.states(), engine_ready
        )

    async def readiness(self) -> Dict[str, bool]:
        return {
            name: await self.is_ready(name)
            for name in self._readiness.names()
        }


def build_orchestrator(cfg: Any = None, **gateway_kwargs) -> ModelOrchestrator:
    """Orchestrator over the local gateway, wired from configuration."""
    from core.config import get_config
    from core.engine.local import LocalEngineGateway

    cfg = cfg or get_config()
    gateway = LocalEngineGateway.from_config(cfg, **gateway_kwargs)
    return ModelOrchestrator.from_config(cfg, gateway)


@lru_cache(maxsize=1)
def get_orchestrator() -> ModelOrchestrator:
    return build_orchestrator()


__all__ = [
    "DEFAULT_ASSIGNMENTS",
    "ModelOrchestrator",
    "assignments_from_config",
    "build_orchestrator",
    "get_orchestrator",
]
