"""
Back-office configuration loader (store backend, search session cache,
search paging and logging).

Values come from config/backoffice.yml and can be overridden from the
environment (a .env file is honoured through python-dotenv):

- DATABASE_URL              -> store.database_url
- BACKOFFICE_STORE_BACKEND  -> store.backend ("memory" or "sql")
- REDIS_URL                 -> cache.redis_url (and selects the redis cache)
- BACKOFFICE_LOG_LEVEL      -> logging.level
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "backoffice.yml"


class StoreConfig(BaseModel):
    backend: Literal["memory", "sql"] = "memory"
    database_url: Optional[str] = None
    create_tables: bool = True

    @model_validator(mode="after")
    def _sql_needs_url(self) -> "StoreConfig":
        if self.backend == "sql" and not self.database_url:
            raise ValueError("store.database_url is required when store.backend is 'sql'")
        return self


class CacheConfig(BaseModel):
    backend: Literal["memory", "redis"] = "memory"
    redis_url: Optional[str] = None
    session_ttl_seconds: int = Field(default=1800, ge=1)


class SearchConfig(BaseModel):
    default_page_size: int = Field(default=10, ge=1, le=500)
    max_page_size: int = Field(default=100, ge=1, le=500)
    # Upper bound on rows assembled concurrently; defaults to the page size.
    fan_out_concurrency: Optional[int] = Field(default=None, ge=1)
    recent_claims_limit: int = Field(default=5, ge=1)
    recent_payments_limit: int = Field(default=10, ge=1)


class LoggingConfig(BaseModel):
    level: str = "INFO"


class BackOfficeConfig(BaseModel):
    store: StoreConfig = Field(default_factory=StoreConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    store = dict(data.get("store") or {})
    cache = dict(data.get("cache") or {})
    log_cfg = dict(data.get("logging") or {})

    if os.getenv("DATABASE_URL"):
        store["database_url"] = os.environ["DATABASE_URL"]
    if os.getenv("BACKOFFICE_STORE_BACKEND"):
        store["backend"] = os.environ["BACKOFFICE_STORE_BACKEND"].strip().lower()
    if os.getenv("REDIS_URL"):
        cache["redis_url"] = os.environ["REDIS_URL"]
        cache["backend"] = "redis"
    if os.getenv("BACKOFFICE_LOG_LEVEL"):
        log_cfg["level"] = os.environ["BACKOFFICE_LOG_LEVEL"].strip().upper()

    return {**data, "store": store, "cache": cache, "logging": log_cfg}


def load_backoffice_config(config_path: Optional[Path] = None, use_env: bool = True) -> BackOfficeConfig:
    if use_env:
        load_dotenv()

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
        if not config_path.exists():
            logger.info("No back-office config at %s; using defaults", config_path)
            data: Dict[str, Any] = {}
        else:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
    else:
        if not config_path.exists():
            raise FileNotFoundError(f"Back-office config file not found: {config_path}")
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    if use_env:
        data = _apply_env_overrides(data)

    try:
        cfg = BackOfficeConfig(**data)
        logger.info("Successfully loaded back-office config from %s", config_path)
        return cfg
    except ValidationError as e:
        logger.error("Back-office config validation failed: %s", e)
        raise
