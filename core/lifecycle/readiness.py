"""Capability readiness derived from category states.

A capability is ready when every category it needs is loaded; composite
capabilities additionally require the engine to confirm the combination
(`EngineGateway.is_composite_ready`). Nothing is cached: callers pass the
current states on every query.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

from .state import Category, CategoryState, VOICE_CATEGORIES


@dataclass(frozen=True, slots=True)
class Capability:
    name: str
    categories: tuple[Category, ...]
    requires_engine_check: bool = False


BUILTIN_CAPABILITIES: tuple[Capability, ...] = (
    Capability("chat", (Category.LLM,)),
    Capability("transcription", (Category.STT,)),
    Capability("speech", (Category.TTS,)),
    Capability("vision", (Category.VLM,)),
    Capability("voice_agent", VOICE_CATEGORIES, requires_engine_check=True),
)


class ReadinessAggregator:
    def __init__(self, capabilities: Iterable[Capability] | None = None):
        caps = BUILTIN_CAPABILITIES if capabilities is None else capabilities
        self._caps: Dict[str, Capability] = {c.name: c for c in caps}

    def capability(self, name: str) -> Capability:
        try:
            return self._caps[name]
        except KeyError:
            raise KeyError(f"unknown capability: {name}") from None

    def names(self) -> List[str]:
        return list(self._caps)

    def is_ready(
        self,
        name: str,
        states: Mapping[Category, CategoryState],
        engine_ready: bool | None = None,
    ) -> bool:
        cap = self.capability(name)
        if not all(c in states and states[c].loaded for c in cap.categories):
            return False
        if cap.requires_engine_check:
            # no answer from the engine counts as not ready
            return bool(engine_ready)
        return True


__all__ = ["Capability", "BUILTIN_CAPABILITIES", "ReadinessAggregator"]
