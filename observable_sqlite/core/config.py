"""
Configuration for observable-sqlite.

Only the store wrapper is configurable; queries and mutations are configured
per call through their ``(sql, parameters, dependencies/changes)`` triples.

Usage:
    ```python
    config = ObservableConfig(database="./app.db", async_workers=2)
    db = init(config.database, config=config)

    # Or from the environment (OBSERVABLE_SQLITE_DATABASE, ...)
    config = ObservableConfig.from_env()
    ```
"""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, Field


ENV_PREFIX = "OBSERVABLE_SQLITE_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ObservableConfig(BaseModel):
    """Settings for the SQLite store behind an ``ObservableDB``."""

    database: str = Field(default=":memory:", description="Database file path or ':memory:'")
    timeout: float = Field(default=30.0, gt=0, description="Connection timeout in seconds")
    journal_mode: str = Field(default="WAL", description="SQLite journal mode pragma")
    foreign_keys: bool = Field(default=True, description="Enforce foreign key constraints")
    async_workers: int = Field(
        default=1,
        ge=1,
        description="Thread pool size used by execute_async",
    )

    model_config = {"extra": "forbid"}

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, **overrides: Any) -> "ObservableConfig":
        """
        Build a config from environment variables.

        Reads ``<prefix>DATABASE``, ``<prefix>TIMEOUT``, ``<prefix>JOURNAL_MODE``,
        ``<prefix>FOREIGN_KEYS`` and ``<prefix>ASYNC_WORKERS``. Explicit keyword
        overrides win over the environment.
        """
        values: dict[str, Any] = {}

        database = os.getenv(f"{prefix}DATABASE")
        if database:
            values["database"] = database

        timeout = os.getenv(f"{prefix}TIMEOUT")
        if timeout:
            values["timeout"] = float(timeout)

        journal_mode = os.getenv(f"{prefix}JOURNAL_MODE")
        if journal_mode:
            values["journal_mode"] = journal_mode

        foreign_keys = os.getenv(f"{prefix}FOREIGN_KEYS")
        if foreign_keys:
            values["foreign_keys"] = foreign_keys.strip().lower() in _TRUE_VALUES

        async_workers = os.getenv(f"{prefix}ASYNC_WORKERS")
        if async_workers:
            values["async_workers"] = int(async_workers)

        values.update(overrides)
        return cls(**values)
