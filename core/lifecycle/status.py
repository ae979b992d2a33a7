"""Observable lifecycle status: per-category state cells + the error slot.

Every mutation is published through `core.events` (CategoryStateChanged,
ErrorRaised, ErrorCleared); observers subscribe there instead of polling.
The error slot holds a single message: the most recent failure across all
categories wins.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from core.events import (
    CategoryStateChanged,
    ErrorCleared,
    ErrorRaised,
    emit,
)
from .state import ALL_CATEGORIES, Category, CategoryState

_log = logging.getLogger("pocketai.status")


class StatusChannel:
    def __init__(self, categories: Iterable[Category] = ALL_CATEGORIES):
        self._states: Dict[Category, CategoryState] = {
            c: CategoryState() for c in categories
        }
        self._error: str | None = None

    def state(self, category: Category) -> CategoryState:
        return self._states[category]

    def states(self) -> Dict[Category, CategoryState]:
        return dict(self._states)

    def update(self, category: Category, new: CategoryState) -> None:
        if self._states[category] == new:
            return
        self._states[category] = new
        emit(
            CategoryStateChanged(
                category=category.value,
                phase=new.phase.value,
                progress=new.progress,
                loaded=new.loaded,
                reason=new.reason,
            )
        )

    @property
    def error(self) -> str | None:
        return self._error

    def raise_error(
        self,
        message: str,
        category: Category | None = None,
        error_type: str | None = None,
    ) -> None:
        self._error = message
        _log.warning("%s", message)
        emit(
            ErrorRaised(
                message=message,
                category=category.value if category else None,
                error_type=error_type,
            )
        )

    def clear_error(self) -> None:
        previous, self._error = self._error, None
        if previous is not None:
            emit(ErrorCleared(previous=previous))

    def snapshot(self) -> Dict[str, Any]:
        return {
            "categories": {
                c.value: s.as_dict() for c, s in self._states.items()
            },
            "error": self._error,
        }


__all__ = ["StatusChannel"]
