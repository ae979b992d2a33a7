"""Pytest configuration ensuring project root is importable.

Adds repository root (and src/) to sys.path explicitly to avoid
interpreter/path quirks.
"""
from __future__ import annotations

import sys
from pathlib import Path
import os
import pytest


@pytest.fixture(autouse=True)
def _isolate_config_env():  # noqa: D401
    """Ensure global config/env side effects do not leak between tests.

    - Clear aggregated config cache between tests
    - Restore POCKETAI_CONFIG_DIR to original value
    """
    from core.config import clear_config_cache  # local import
    from core.lifecycle import get_orchestrator  # local import

    prev = os.environ.get("POCKETAI_CONFIG_DIR")
    clear_config_cache()
    get_orchestrator.cache_clear()
    try:
        yield
    finally:
        clear_config_cache()
        get_orchestrator.cache_clear()
        if prev is None:
            os.environ.pop("POCKETAI_CONFIG_DIR", None)
        else:
            os.environ["POCKETAI_CONFIG_DIR"] = prev


ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
TESTS = Path(__file__).resolve().parent
if str(TESTS) not in sys.path:
    sys.path.insert(0, str(TESTS))
