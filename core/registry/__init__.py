"""Model registry.

Responsibilities:
- Describe downloadable models (single-file or multi-file artifacts)
- Hold the catalog of known ids (built-in defaults + YAML descriptors)
- Lookup by id / modality; duplicate ids rejected
"""
from .descriptor import (  # noqa: F401
    InferenceFramework,
    Modality,
    ModelDescriptor,
    ModelFile,
)
from .registry import ModelRegistry  # noqa: F401

__all__ = [
    "InferenceFramework",
    "Modality",
    "ModelDescriptor",
    "ModelFile",
    "ModelRegistry",
]
