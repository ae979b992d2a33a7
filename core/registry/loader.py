"""Registry loader: reads extra descriptor YAML files from a directory."""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict

import yaml
from pydantic import ValidationError
from yaml import YAMLError

from core.engine.exceptions import DuplicateIdError, ModelError
from .descriptor import ModelDescriptor

_log = logging.getLogger("pocketai.registry")

_registry_lock = threading.Lock()
_descriptor_cache: Dict[Path, Dict[str, ModelDescriptor]] = {}


def _iter_descriptor_files(registry_dir: Path):
    for pattern in ("*.yaml", "*.yml"):
        for path in sorted(registry_dir.glob(pattern)):
            if path.is_file():
                yield path


def _load_descriptor_file(path: Path) -> ModelDescriptor:
    """Load a single descriptor file.

    If YAML contains tab characters (common accidental edit on Windows), we
    re-try after replacing tabs with two spaces so that a single bad file
    does not take the whole catalog down.
    """
    raw_text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw_text) or {}
    except YAMLError as e:
        if "\t" not in raw_text:
            raise ModelError(
                f"Invalid descriptor {path.name}: {e}",
                error_type="config-invalid",
            ) from e
        _log.warning("re-parsing descriptor tabs->spaces: %s", path.name)
        try:
            data = yaml.safe_load(raw_text.replace("\t", "  ")) or {}
        except YAMLError as e2:
            raise ModelError(
                f"Invalid descriptor {path.name}: {e2}",
                error_type="config-invalid",
            ) from e2
    try:
        return ModelDescriptor.model_validate(data)
    except ValidationError as e:
        raise ModelError(
            f"Invalid descriptor {path.name}: {e}",
            error_type="config-invalid",
        ) from e


def load_descriptors(registry_dir: str | Path) -> Dict[str, ModelDescriptor]:
    """Load all descriptors into an index keyed by id (thread-safe cache)."""
    root = Path(registry_dir).resolve()
    with _registry_lock:
        if root in _descriptor_cache:
            return dict(_descriptor_cache[root])
        if not root.exists():
            _descriptor_cache[root] = {}
            return {}
        index: Dict[str, ModelDescriptor] = {}
        for path in _iter_descriptor_files(root):
            desc = _load_descriptor_file(path)
            if desc.id in index:
                raise DuplicateIdError(
                    f"Duplicate model id in registry dir: {desc.id}"
                )
            index[desc.id] = desc
        _descriptor_cache[root] = index
        return dict(index)


def clear_descriptor_cache(registry_dir: str | Path | None = None) -> None:
    """Clear cached descriptor index.

    If registry_dir provided, clear only that entry; else clear all.
    """
    with _registry_lock:
        if registry_dir is None:
            _descriptor_cache.clear()
        else:
            _descriptor_cache.pop(Path(registry_dir).resolve(), None)
