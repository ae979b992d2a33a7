"""Storage schemas: where model artifacts live."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StoragePathsConfig(BaseModel):
    models: str = "models"

    model_config = ConfigDict(extra="forbid")


class StorageConfig(BaseModel):
    paths: StoragePathsConfig = StoragePathsConfig()

    model_config = ConfigDict(extra="forbid")

