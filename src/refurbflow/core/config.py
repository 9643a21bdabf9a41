"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class WorkflowConfig(BaseSettings):
    """Workflow engine defaults."""

    model_config = {"env_prefix": "REFURBFLOW_WORKFLOW_"}

    default_max_attempts: int = 2
    default_priority: Literal["LOW", "NORMAL", "HIGH", "URGENT"] = "NORMAL"
    conflict_retries: int = 3


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "REFURBFLOW_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis configuration for the per-unit writer lock."""

    model_config = {"env_prefix": "REFURBFLOW_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    lock_ttl_ms: int = 10_000
    lock_blocking_timeout: float = 2.0  # seconds
    lock_poll_interval: float = 0.05  # seconds


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "REFURBFLOW_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    backend: Literal["memory", "dynamodb"] = "memory"
    lock: Literal["local", "redis"] = "local"

    workflow: WorkflowConfig = WorkflowConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
    redis: RedisConfig = RedisConfig()
