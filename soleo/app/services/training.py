"""Application wiring for the training catalog."""
from __future__ import annotations

from functools import lru_cache

from ..training import PostgresTrainingRepository, TrainingCatalog


@lru_cache(maxsize=1)
def get_training_catalog() -> TrainingCatalog:
    return TrainingCatalog(repository=PostgresTrainingRepository())


__all__ = ["get_training_catalog"]
