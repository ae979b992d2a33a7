"""Central Error Taxonomy enforcement.

Every failure surfaced by the lifecycle layer carries one of these codes
(events, metrics labels, HTTP payloads). Unknown codes are a programming
error, hence the assert.
"""
from __future__ import annotations

_ALLOWED_ERROR_TYPES = {
    # registry
    "duplicate-id",
    "unknown-model",
    # model.download
    "http-status",
    "transport",
    "incomplete",
    "storage",
    # model.load
    "file-not-found",
    "no-backend",
    "runtime-missing",
    "provider-internal",
    # model.unload
    "unload-failed",
    # config
    "config-out-of-range",
    "config-invalid",
    # infra
    "event-handler-error",
}


def validate_error_type(code: str) -> str:
    assert (
        code in _ALLOWED_ERROR_TYPES
    ), f"Unknown error_type '{code}' (not in taxonomy)"
    return code


def map_exception(e: Exception, phase: str) -> str:
    code = getattr(e, "error_type", None)
    if isinstance(code, str) and code in _ALLOWED_ERROR_TYPES:
        return code
    name = e.__class__.__name__.lower()
    msg = str(e).lower()
    if phase == "model.download":
        if isinstance(e, OSError) and "timeout" not in name:
            return "storage"
        return "transport"
    if phase == "model.load":
        if isinstance(e, FileNotFoundError) or "not found" in msg:
            return "file-not-found"
        if isinstance(e, ImportError):
            return "runtime-missing"
        return "provider-internal"
    if phase == "model.unload":
        return "unload-failed"
    return "provider-internal"


__all__ = ["validate_error_type", "map_exception"]
