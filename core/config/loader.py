"""Configuration loading & validation.

Precedence (last wins): base.yaml → overrides.local.yaml → ENV
(POCKETAI__SECTION__KEY).

- `schema_version` missing → assume 1, print a migration notice.
- Each known section validated by its pydantic schema (unknown keys
  rejected); unknown top-level sections rejected as well.
- Cross-field bounds checked in `_normalize_and_validate`.
"""
from __future__ import annotations

import os
import pathlib
import threading
from functools import lru_cache
from typing import Any, Dict, Type

import yaml
from core import metrics
from core.errors import validate_error_type
from pydantic import BaseModel, ConfigDict, Field

from .schemas.core import StorageConfig
from .schemas.engine import EngineConfig
from .schemas.models import ModelsConfig
from .schemas.observability import LoggingConfig


class AggregatedConfig(BaseModel):
    schema_version: int = 1
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid")


DEFAULT_CONFIG_DIR = "configs"
ENV_PREFIX = "POCKETAI__"

SUB_SCHEMA_CLASSES: Dict[str, Type[BaseModel]] = {
    "models": ModelsConfig,
    "storage": StorageConfig,
    "engine": EngineConfig,
    "logging": LoggingConfig,
}


class ConfigError(Exception):
    pass


def _load_yaml_if_exists(path: pathlib.Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _merge_dict(
    base: Dict[str, Any], override: Dict[str, Any]
) -> Dict[str, Any]:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k] = _merge_dict(base[k], v)
        else:
            base[k] = v
    return base


def _apply_env(cfg: Dict[str, Any]) -> None:
    prefix_len = len(ENV_PREFIX)
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        path_parts = env_key[prefix_len:].lower().split("__")
        target = cfg
        for part in path_parts[:-1]:
            if part not in target or not isinstance(target[part], dict):
                target[part] = {}
            target = target[part]
        leaf = path_parts[-1]
        if value.lower() in {"true", "false"}:
            cast_val: Any = value.lower() == "true"
        else:
            try:
                cast_val = int(value)
            except ValueError:
                try:
                    cast_val = float(value)
                except ValueError:
                    cast_val = value
        target[leaf] = cast_val
        dotted_path = ".".join(path_parts)
        metrics.inc("env_override_total", {"path": dotted_path})
        print(
            f"[config-env-override] path={dotted_path} value=*** source=env"
        )  # noqa: T201


_lock = threading.Lock()


def _resolve_config_dir() -> pathlib.Path:
    """Resolve config directory each call honoring env var changes."""
    return pathlib.Path(os.getenv("POCKETAI_CONFIG_DIR", DEFAULT_CONFIG_DIR))


def _migrate_legacy(data: Dict[str, Any]) -> Dict[str, Any]:
    if "schema_version" not in data:
        print(
            "[config-migration] schema_version missing → assuming 1"
        )  # noqa: T201
        data["schema_version"] = 1
    return data


def _validate_sub_schemas(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Validate each known section via its schema class."""
    validated: Dict[str, Any] = {}
    for name, cls in SUB_SCHEMA_CLASSES.items():
        if name in raw:
            try:
                validated[name] = cls.model_validate(raw[name] or {})
            except Exception as e:  # noqa: BLE001
                metrics.inc(
                    "config_validation_errors_total",
                    {"path": name, "code": "config-invalid"},
                )
                raise ConfigError(
                    f"Validation failed for section '{name}': {e}"
                ) from e
    return validated


def _normalize_and_validate(raw: Dict[str, Any]) -> None:
    """Apply cross-field normalizations and bounds validation.

    Normalizations:
      - engine.llama.n_gpu_layers: int < 0 -> 0 (clip); 'auto' kept.
    Validations (error → raise):
      - engine.download.chunk_size > 0
      - engine.download.timeout_s > 0
      - engine.llama.n_ctx > 0
    """
    errors: list[tuple[str, str, str]] = []  # (path, code, msg)
    engine = raw.get("engine") or {}
    if not isinstance(engine, dict):
        return
    llama = engine.get("llama") or {}
    download = engine.get("download") or {}

    ngl = llama.get("n_gpu_layers") if isinstance(llama, dict) else None
    if isinstance(ngl, int) and ngl < 0:
        raw["engine"]["llama"]["n_gpu_layers"] = 0

    if isinstance(download, dict):
        chunk = download.get("chunk_size")
        if isinstance(chunk, (int, float)) and chunk <= 0:
            errors.append(
                ("engine.download.chunk_size", "config-out-of-range", ">0")
            )
        timeout = download.get("timeout_s")
        if isinstance(timeout, (int, float)) and timeout <= 0:
            errors.append(
                ("engine.download.timeout_s", "config-out-of-range", ">0")
            )
    if isinstance(llama, dict):
        n_ctx = llama.get("n_ctx")
        if isinstance(n_ctx, int) and n_ctx <= 0:
            errors.append(
                ("engine.llama.n_ctx", "config-out-of-range", ">0")
            )

    if errors:
        for path, code, _ in errors:
            validate_error_type(code)
            metrics.inc(
                "config_validation_errors_total",
                {"path": path, "code": code},
            )
        details = ", ".join(f"{p}:{c}:{m}" for p, c, m in errors)
        raise ConfigError(f"config validation failed: {details}")


@lru_cache(maxsize=1)
def get_config() -> AggregatedConfig:  # noqa: D401
    with _lock:
        cfg_dir = _resolve_config_dir()
        base_cfg = _load_yaml_if_exists(cfg_dir / "base.yaml")
        overrides_cfg = _load_yaml_if_exists(cfg_dir / "overrides.local.yaml")
        merged = _merge_dict(base_cfg, overrides_cfg)
        _apply_env(merged)
        migrated = _migrate_legacy(merged)
        _normalize_and_validate(migrated)
        validated_sub = _validate_sub_schemas(migrated)
        try:
            return AggregatedConfig.model_validate(
                {**migrated, **validated_sub}
            )
        except Exception as e:  # noqa: BLE001
            raise ConfigError(str(e)) from e


def clear_config_cache() -> None:
    """Clear cached config (primarily for tests)."""
    get_config.cache_clear()


def as_dict() -> Dict[str, Any]:
    return get_config().model_dump(mode="json")
