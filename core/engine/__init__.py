"""Inference engine gateway: contract, value types, exceptions.

The concrete local gateway lives in `core.engine.local` and is imported
explicitly by entrypoints (it pulls in httpx and the runtime backends).
"""

from .exceptions import (  # noqa: F401
    ModelError,
    DuplicateIdError,
    ModelNotRegisteredError,
    DownloadError,
    LoadError,
    UnloadError,
)
from .gateway import EngineGateway  # noqa: F401
from .types import (  # noqa: F401
    ALL_CATEGORIES,
    VOICE_CATEGORIES,
    AvailableModel,
    Category,
    ProgressEvent,
)

__all__ = [
    "ModelError",
    "DuplicateIdError",
    "ModelNotRegisteredError",
    "DownloadError",
    "LoadError",
    "UnloadError",
    "EngineGateway",
    "ALL_CATEGORIES",
    "VOICE_CATEGORIES",
    "AvailableModel",
    "Category",
    "ProgressEvent",
]
