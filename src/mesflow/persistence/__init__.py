"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from mesflow.core.config import AppSettings
from mesflow.persistence.dynamodb_backend import (
    DynamoDBAnswerStore,
    DynamoDBLibraryStore,
    DynamoDBWorkflowStore,
)
from mesflow.persistence.file_backend import (
    JsonAnswerStore,
    JsonLibraryStore,
    JsonWorkflowStore,
    LocalFileStore,
)
from mesflow.persistence.redis_backend import RedisCacheBackend
from mesflow.persistence.s3_backend import S3FileStore


def create_persistence(settings: AppSettings | None = None):
    """Create wired-up persistence backends from application settings.

    Returns:
        Tuple of (library_store, answer_store, workflow_store, file_store).
    """
    if settings is None:
        settings = AppSettings()

    if settings.backend == "local":
        return (
            JsonLibraryStore(settings.library.data_dir),
            JsonAnswerStore(settings.local.state_dir),
            JsonWorkflowStore(settings.local.state_dir),
            LocalFileStore(settings.local.exports_dir),
        )

    cache = None
    if settings.redis.enabled:
        cache = RedisCacheBackend(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
        )

    ddb = settings.dynamodb
    library_store = DynamoDBLibraryStore(
        domain=settings.library.domain,
        table_suffix=ddb.table_suffix,
        region=ddb.region,
        endpoint_url=ddb.endpoint_url,
        cache=cache,
    )
    answer_store = DynamoDBAnswerStore(
        table_suffix=ddb.table_suffix, region=ddb.region, endpoint_url=ddb.endpoint_url,
    )
    workflow_store = DynamoDBWorkflowStore(
        table_suffix=ddb.table_suffix, region=ddb.region, endpoint_url=ddb.endpoint_url,
    )
    file_store = S3FileStore(
        bucket=settings.s3.bucket,
        region=settings.s3.region,
        endpoint_url=settings.s3.endpoint_url,
    )

    return library_store, answer_store, workflow_store, file_store
