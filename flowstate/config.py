from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel

DEFAULT_TTL = 86400 * 7


class RedisConfig(BaseModel):
    """Connection settings for the Redis cache store."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class CacheConfig(BaseModel):
    """Cache store settings for the cache persistence driver."""

    backend: Literal["memory", "redis"] = "memory"
    prefix: str = "flowstate"
    redis: RedisConfig = RedisConfig()


class PersistenceConfig(BaseModel):
    """Workflow state persistence settings."""

    driver: Literal["database", "cache"] = "database"
    database_url: str = "sqlite+aiosqlite:///flowstate.db"
    table: str = "workflow_states"
    ttl: int = DEFAULT_TTL
    cache: CacheConfig = CacheConfig()


class EventsConfig(BaseModel):
    enabled: bool = True
    disabled: List[str] = []


class ExecutorConfig(BaseModel):
    max_steps: int = 1000


class FlowstateConfig(BaseModel):
    """Top-level configuration model."""

    log_level: str = "INFO"
    persistence: PersistenceConfig = PersistenceConfig()
    events: EventsConfig = EventsConfig()
    executor: ExecutorConfig = ExecutorConfig()


def load_config(path: Optional[str] = None) -> FlowstateConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to FLOWSTATE_CONFIG env
            variable or 'flowstate.yaml' in the current directory.
    """

    config_path = path or os.getenv("FLOWSTATE_CONFIG", "flowstate.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = FlowstateConfig(**data)
    else:
        config = FlowstateConfig()

    env_db_url = os.getenv("FLOWSTATE_DATABASE_URL")
    if env_db_url:
        config.persistence.database_url = env_db_url
    env_driver = os.getenv("FLOWSTATE_PERSISTENCE_DRIVER")
    if env_driver:
        config.persistence.driver = env_driver.lower()
    return config
