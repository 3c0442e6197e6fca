"""Runtime configuration read from the environment.

Scheduling behavior that deployments disagree on (pending reservations,
auto-publish on approval) is grouped in ``SchedulingPolicy`` so services can
be handed an explicit policy instead of reading globals.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class SchedulingPolicy:
    pending_reserves: bool = False
    auto_publish_on_approve: bool = False
    max_occurrences: int = 10_000
    conflict_horizon_days: int = 365


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite+pysqlite:///./local.db"
    log_level: str = "INFO"
    cors_allow_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    policy: SchedulingPolicy = field(default_factory=SchedulingPolicy)


@lru_cache
def get_settings() -> Settings:
    # Respect existing env (override=False); opt-in only.
    if _env_bool("APP_LOAD_DOTENV"):  # pragma: no cover
        load_dotenv(override=False)

    origins_env = os.getenv("CORS_ALLOW_ORIGINS")
    if origins_env:
        origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    else:
        origins = ["http://localhost:3000"]

    policy = SchedulingPolicy(
        pending_reserves=_env_bool("ROOMFLOW_PENDING_RESERVES"),
        auto_publish_on_approve=_env_bool("ROOMFLOW_AUTO_PUBLISH_ON_APPROVE"),
        max_occurrences=_env_int("ROOMFLOW_MAX_OCCURRENCES", 10_000),
        conflict_horizon_days=_env_int("ROOMFLOW_CONFLICT_HORIZON_DAYS", 365),
    )
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite+pysqlite:///./local.db"),
        log_level=os.getenv("ROOMFLOW_LOG_LEVEL", "INFO").upper(),
        cors_allow_origins=origins,
        policy=policy,
    )
