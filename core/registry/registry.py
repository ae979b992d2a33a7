"""In-memory model registry.

Populated once (defaults and/or YAML files) and handed to the
orchestrator explicitly; no process-wide instance lives here.
"""
from __future__ import annotations

from threading import RLock
from typing import Any, Dict, Iterable, Iterator, List

from core.engine.exceptions import DuplicateIdError, ModelNotRegisteredError
from core.events import emit, ModelRegistered
from .defaults import DEFAULT_DESCRIPTORS
from .descriptor import ModelDescriptor, Modality
from .loader import load_descriptors


class ModelRegistry:
    def __init__(self, descriptors: Iterable[ModelDescriptor] = ()) -> None:
        self._items: Dict[str, ModelDescriptor] = {}
        self._lock = RLock()
        for desc in descriptors:
            self.register(desc)

    @classmethod
    def from_config(cls, models_cfg: Any) -> "ModelRegistry":
        """Build from the `models` config section.

        Built-in defaults first (when enabled), then every descriptor found
        in `registry_dir`. An id clash between the two raises
        DuplicateIdError.
        """
        reg = cls()
        if getattr(models_cfg, "register_defaults", True):
            reg.register_defaults()
        registry_dir = getattr(models_cfg, "registry_dir", None)
        if registry_dir:
            for desc in load_descriptors(registry_dir).values():
                reg.register(desc)
        return reg

    def register(self, descriptor: ModelDescriptor) -> ModelDescriptor:
        with self._lock:
            if descriptor.id in self._items:
                raise DuplicateIdError(
                    f"Model id already registered: {descriptor.id}"
                )
            self._items[descriptor.id] = descriptor
        emit(
            ModelRegistered(
                model_id=descriptor.id,
                modality=descriptor.modality.value,
                files=len(descriptor.files),
            )
        )
        return descriptor

    def register_defaults(self) -> None:
        """Register the four built-in descriptors.

        Not idempotent: a second call raises DuplicateIdError.
        """
        for desc in DEFAULT_DESCRIPTORS:
            self.register(desc)

    def lookup(self, model_id: str) -> ModelDescriptor | None:
        with self._lock:
            return self._items.get(model_id)

    def get(self, model_id: str) -> ModelDescriptor:
        desc = self.lookup(model_id)
        if desc is None:
            raise ModelNotRegisteredError(f"Unknown model id: {model_id}")
        return desc

    def list(self, modality: Modality | None = None) -> List[ModelDescriptor]:
        with self._lock:
            items = list(self._items.values())
        if modality is None:
            return items
        return [d for d in items if d.modality == modality]

    def __contains__(self, model_id: object) -> bool:
        with self._lock:
            return model_id in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[ModelDescriptor]:
        return iter(self.list())


__all__ = ["ModelRegistry"]
