"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class LibraryConfig(BaseSettings):
    """Task/decision library location."""

    model_config = {"env_prefix": "MESFLOW_LIBRARY_"}

    data_dir: str = "data"
    domain: str = "mes"  # partition key for the DynamoDB library table


class LocalStoreConfig(BaseSettings):
    """On-disk JSON state for single-host deployments."""

    model_config = {"env_prefix": "MESFLOW_LOCAL_"}

    state_dir: str = "data"
    exports_dir: str = "exports"


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "MESFLOW_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis cache configuration."""

    model_config = {"env_prefix": "MESFLOW_REDIS_"}

    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    db: int = 0


class S3Config(BaseSettings):
    """S3 export storage configuration."""

    model_config = {"env_prefix": "MESFLOW_S3_"}

    bucket: str = "mesflow-workflow-exports"
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RendererConfig(BaseSettings):
    """Mermaid CLI renderer configuration."""

    model_config = {"env_prefix": "MESFLOW_RENDER_"}

    command: str = "mmdc"
    width: int = 2400
    height: int = 3000
    background: str = "white"
    timeout: int = 120


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "MESFLOW_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    backend: Literal["local", "aws"] = "local"

    library: LibraryConfig = LibraryConfig()
    local: LocalStoreConfig = LocalStoreConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
    redis: RedisConfig = RedisConfig()
    s3: S3Config = S3Config()
    renderer: RendererConfig = RendererConfig()
