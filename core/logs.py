"""Logging setup driven by the `logging` config section.

Library modules only call `logging.getLogger("pocketai.<area>")`; the
entrypoint (API app, scripts) calls `configure_logging()` once.
"""
from __future__ import annotations

import json
import logging
import sys
from typing import Any

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

ROOT_LOGGER = "pocketai"


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, msg (+ exc)."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        data: dict[str, Any] = {
            "ts": round(record.created, 3),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            data["exc"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def configure_logging(
    level: str = "info", fmt: str = "text"
) -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_LEVELS.get(level.lower(), logging.INFO))
    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    # replace previous handler so repeated calls (tests, reload) don't stack
    for h in list(logger.handlers):
        if getattr(h, "_pocketai", False):
            logger.removeHandler(h)
    handler._pocketai = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def configure_from_config(cfg: Any) -> logging.Logger:
    log_cfg = getattr(cfg, "logging", None)
    level = getattr(log_cfg, "level", "info") if log_cfg else "info"
    fmt = getattr(log_cfg, "format", "text") if log_cfg else "text"
    return configure_logging(level, fmt)


__all__ = [
    "configure_logging",
    "configure_from_config",
    "JsonFormatter",
    "ROOT_LOGGER",
]
