"""Model lifecycle: per-category state, readiness, orchestration."""
from .orchestrator import (
    DEFAULT_ASSIGNMENTS,
    ModelOrchestrator,
    assignments_from_config,
    build_orchestrator,
    get_orchestrator,
)
from .readiness import BUILTIN_CAPABILITIES, Capability, ReadinessAggregator
from .state import (
    ALL_CATEGORIES,
    VOICE_CATEGORIES,
    Category,
    CategoryState,
    Phase,
)
from .status import StatusChannel

__all__ = [
    "ALL_CATEGORIES",
    "BUILTIN_CAPABILITIES",
    "Capability",
    "Category",
    "CategoryState",
    "DEFAULT_ASSIGNMENTS",
    "ModelOrchestrator",
    "Phase",
    "ReadinessAggregator",
    "StatusChannel",
    "VOICE_CATEGORIES",
    "assignments_from_config",
    "build_orchestrator",
    "get_orchestrator",
]
