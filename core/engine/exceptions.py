"""Model lifecycle exception hierarchy.

Each class carries a default taxonomy code (`core.errors`); raisers may
pass a more specific one.
"""
from __future__ import annotations

from core.errors import validate_error_type


class ModelError(Exception):
    """Base model exception."""

    default_error_type = "provider-internal"

    def __init__(self, message: str = "", *, error_type: str | None = None):
        super().__init__(message)
        self.error_type = validate_error_type(
            error_type or self.default_error_type
        )


class DuplicateIdError(ModelError):
    """Raised when a descriptor id is registered twice."""

    default_error_type = "duplicate-id"


class ModelNotRegisteredError(ModelError, LookupError):
    """Raised when a model id has no descriptor in the registry."""

    default_error_type = "unknown-model"


class DownloadError(ModelError):
    """Raised mid-stream when transport or storage fails.

    Typical reasons: HTTP error status, connection drop, short read,
    disk write failure, archive extraction failure.
    """

    default_error_type = "transport"


class LoadError(ModelError):
    """Raised when the engine cannot materialize a runtime.

    Typical reasons: missing artifacts, runtime library absent, corrupt
    weights, no backend for the category.
    """

    default_error_type = "provider-internal"


class UnloadError(ModelError):
    """Raised when the engine fails to release a runtime."""

    default_error_type = "unload-failed"
