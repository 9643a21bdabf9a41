"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from typing import NamedTuple

from refurbflow.core.config import AppSettings
from refurbflow.core.protocols import IStepCatalog, ITransitionLog, IUnitLock, IUnitStore
from refurbflow.persistence.dynamodb_backend import (
    DynamoDBStepCatalog,
    DynamoDBTransitionLog,
    DynamoDBUnitStore,
)
from refurbflow.persistence.memory_backend import LocalUnitLock, MemoryTransitionLog, MemoryUnitStore
from refurbflow.persistence.redis_backend import RedisUnitLock
from refurbflow.workflow.catalog import StaticStepCatalog


class Persistence(NamedTuple):
    unit_store: IUnitStore
    transition_log: ITransitionLog
    catalog: IStepCatalog
    lock: IUnitLock


def create_persistence(settings: AppSettings | None = None) -> Persistence:
    """Create wired-up persistence backends from application settings."""
    if settings is None:
        settings = AppSettings()

    if settings.backend == "dynamodb":
        ddb = dict(
            table_suffix=settings.dynamodb.table_suffix,
            region=settings.dynamodb.region,
            endpoint_url=settings.dynamodb.endpoint_url,
        )
        unit_store: IUnitStore = DynamoDBUnitStore(**ddb)
        transition_log: ITransitionLog = DynamoDBTransitionLog(**ddb)
        catalog: IStepCatalog = DynamoDBStepCatalog(**ddb)
    else:
        unit_store = MemoryUnitStore()
        transition_log = MemoryTransitionLog()
        catalog = StaticStepCatalog()

    if settings.lock == "redis":
        lock: IUnitLock = RedisUnitLock(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            ttl_ms=settings.redis.lock_ttl_ms,
            blocking_timeout=settings.redis.lock_blocking_timeout,
            poll_interval=settings.redis.lock_poll_interval,
        )
    else:
        lock = LocalUnitLock()

    return Persistence(unit_store, transition_log, catalog, lock)
