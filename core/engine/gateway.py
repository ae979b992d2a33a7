"""EngineGateway interface.

The gateway owns everything physical: network transfer, on-disk placement,
runtime handles. The lifecycle layer only calls these methods and observes
outcomes. Implementations must not allocate heavy resources on construction.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, List

from core.registry.descriptor import ModelDescriptor
from .types import AvailableModel, Category, ProgressEvent


class EngineGateway(ABC):
    @abstractmethod
    async def register_model(self, descriptor: ModelDescriptor) -> None:
        """Make a descriptor known to the engine (DuplicateIdError)."""

    @abstractmethod
    async def is_artifact_present(self, model_id: str) -> bool:
        """True only if every file of the descriptor exists locally."""

    @abstractmethod
    def download(self, model_id: str) -> AsyncIterator[ProgressEvent]:
        """Lazy, ordered progress stream; raises DownloadError on failure."""

    @abstractmethod
    async def load(self, category: Category, model_id: str) -> None:
        """Load model into the category's runtime (LoadError)."""

    @abstractmethod
    async def unload(self, category: Category) -> None:
        """Release the category's runtime (UnloadError)."""

    @abstractmethod
    async def is_loaded(self, category: Category) -> bool:
        """Authoritative loaded status for the category."""

    @abstractmethod
    async def is_composite_ready(self, capability: str) -> bool:
        """Engine-side cross-model readiness (e.g. voice_agent)."""

    @abstractmethod
    async def list_available_models(self) -> List[AvailableModel]:
        """Registered models with their local path (None if absent)."""

    async def aclose(self) -> None:  # optional hook
        """Release network clients etc. (default no-op)."""
        return None
