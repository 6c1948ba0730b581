"""Persistence layer for flowstate workflow runs."""

from __future__ import annotations

import os
from typing import Optional

from ..cache import get_cache_store
from ..config import FlowstateConfig, load_config
from .cache import CacheWorkflowStateRepository
from .database import DatabaseWorkflowStateRepository, build_state_table
from .repository import WorkflowStateRepository

_repository_instance: WorkflowStateRepository | None = None


def get_repository(
    driver: Optional[str] = None, config: Optional[FlowstateConfig] = None
) -> WorkflowStateRepository:
    """Factory function to obtain a workflow state repository.

    The backend is selected by ``driver``, the ``FLOWSTATE_PERSISTENCE_DRIVER``
    environment variable, or the loaded configuration. Without explicit
    arguments the previously created repository is reused.
    """

    global _repository_instance
    if _repository_instance is not None and driver is None and config is None:
        return _repository_instance

    config = config or load_config()
    driver = (
        driver
        or os.getenv("FLOWSTATE_PERSISTENCE_DRIVER")
        or config.persistence.driver
    ).lower()
    persistence = config.persistence

    if driver == "database":
        _repository_instance = DatabaseWorkflowStateRepository(
            persistence.database_url,
            table=persistence.table,
            ttl=persistence.ttl,
        )
    elif driver == "cache":
        _repository_instance = CacheWorkflowStateRepository(
            get_cache_store(config=config),
            ttl=persistence.ttl,
            prefix=persistence.cache.prefix,
        )
    else:
        raise ValueError(f"Unsupported persistence driver: {driver}")

    return _repository_instance


__all__ = [
    "WorkflowStateRepository",
    "DatabaseWorkflowStateRepository",
    "CacheWorkflowStateRepository",
    "build_state_table",
    "get_repository",
]
