"""DynamoDB backends: library store with Redis caching, versioned answers, saved workflows."""

from __future__ import annotations

import json
import logging
from typing import Any

import boto3
from botocore.exceptions import ClientError

from mesflow.core.exceptions import LibraryError, StaleAnswerSetError, StorageError
from mesflow.models.answers import ClientAnswer, ClientAnswerSet
from mesflow.models.library import Library
from mesflow.models.workflow import SavedWorkflow

logger = logging.getLogger(__name__)

LIBRARY_TABLE = "mesflow-library"
ANSWERS_TABLE = "mesflow-client-answers"
WORKFLOWS_TABLE = "mesflow-client-workflows"


def _resource(region: str, endpoint_url: str | None):
    kwargs: dict = {"region_name": region}
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    return boto3.resource("dynamodb", **kwargs)


def _query_pk(table, pk: str) -> list[dict[str, Any]]:
    """Query all items with a given partition key, following pagination."""
    items: list[dict[str, Any]] = []
    kwargs: dict[str, Any] = {
        "KeyConditionExpression": "PK = :pk",
        "ExpressionAttributeValues": {":pk": pk},
    }
    while True:
        resp = table.query(**kwargs)
        items.extend(resp.get("Items", []))
        if "LastEvaluatedKey" not in resp:
            return items
        kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]


def library_items(library: Library, domain: str) -> list[dict[str, Any]]:
    """Flatten a Library into PK/SK items; sort keys preserve document order."""
    pk = f"LIBRARY#{domain}"
    items: list[dict[str, Any]] = []
    for i, task in enumerate(library.tasks):
        items.append({"PK": pk, "SK": f"TASK#{i:05d}", "id": task.id,
                      "data": task.model_dump_json()})
    for i, decision in enumerate(library.decisions):
        items.append({"PK": pk, "SK": f"DECISION#{i:05d}", "id": decision.id,
                      "data": decision.model_dump_json()})
    for i, override in enumerate(library.routing):
        items.append({"PK": pk, "SK": f"ROUTE#{i:05d}", "data": override.model_dump_json()})
    items.append({"PK": pk, "SK": "LAYOUT", "data": json.dumps({
        "stages": library.stages, "process_areas": library.process_areas,
    })})
    items.append({"PK": pk, "SK": "SKIN", "data": library.skin.model_dump_json()})
    return items


class DynamoDBLibraryStore:
    """Production ILibraryStore backed by DynamoDB + optional Redis cache."""

    CACHE_TTL = 300  # 5 minutes

    def __init__(self, domain: str = "mes", table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None, cache: Any = None) -> None:
        self._domain = domain
        self._cache = cache
        self._table = _resource(region, endpoint_url).Table(f"{LIBRARY_TABLE}{table_suffix}")

    @property
    def cache_key(self) -> str:
        return f"library:{self._domain}"

    def get_library(self) -> Library:
        if self._cache is not None:
            cached = self._cache.get(self.cache_key)
            if cached is not None:
                return Library.model_validate_json(cached)

        try:
            items = _query_pk(self._table, f"LIBRARY#{self._domain}")
        except ClientError as exc:
            raise StorageError(f"Library query failed for domain={self._domain!r}: {exc}") from exc
        if not items:
            raise LibraryError(f"No library seeded for domain={self._domain!r}")

        doc: dict[str, Any] = {"tasks": [], "decisions": [], "routing": []}
        for item in sorted(items, key=lambda x: x["SK"]):
            kind = item["SK"].split("#", 1)[0]
            data = json.loads(item["data"])
            if kind == "TASK":
                doc["tasks"].append(data)
            elif kind == "DECISION":
                doc["decisions"].append(data)
            elif kind == "ROUTE":
                doc["routing"].append(data)
            elif kind == "LAYOUT":
                doc.update(data)
            elif kind == "SKIN":
                doc["skin"] = data
        library = Library.model_validate(doc)

        if self._cache is not None:
            self._cache.setex(self.cache_key, self.CACHE_TTL, library.model_dump_json())
        return library

    def put_library(self, library: Library) -> int:
        """Replace the domain's library items. Returns the number of items written.

        Items left over from a larger previous library are deleted so sort keys
        never carry stale records.
        """
        pk = f"LIBRARY#{self._domain}"
        items = library_items(library, self._domain)
        try:
            stale = {item["SK"] for item in _query_pk(self._table, pk)} - {item["SK"] for item in items}
            with self._table.batch_writer() as batch:
                for item in items:
                    batch.put_item(Item=item)
                for sk in sorted(stale):
                    batch.delete_item(Key={"PK": pk, "SK": sk})
        except ClientError as exc:
            raise StorageError(f"Library write failed for domain={self._domain!r}: {exc}") from exc
        if stale:
            logger.info("Removed %d stale library items for domain=%r", len(stale), self._domain)
        if self._cache is not None:
            self._cache.delete(self.cache_key)
        return len(items)


class DynamoDBAnswerStore:
    """Production IAnswerStore: one item per answer plus a versioned META item.

    Every save bumps META.version in the same transaction as the answer write.
    With ``expected_version`` the bump is conditional, so a save based on a
    stale read is cancelled instead of overwriting a concurrent change.
    """

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_name = f"{ANSWERS_TABLE}{table_suffix}"
        self._table = _resource(region, endpoint_url).Table(self._table_name)
        self._client = self._table.meta.client

    def get_answers(self, client: str) -> ClientAnswerSet:
        try:
            items = _query_pk(self._table, f"CLIENT#{client}")
        except ClientError as exc:
            raise StorageError(f"Answer query failed for client={client!r}: {exc}") from exc

        answer_set = ClientAnswerSet(client=client)
        for item in items:
            if item["SK"] == "META":
                answer_set.version = int(item.get("version", 0))
            elif item["SK"].startswith("ANSWER#"):
                answer_set.answers[item["SK"].removeprefix("ANSWER#")] = ClientAnswer(
                    selected_outcome=item["selected_outcome"],
                    rationale=item.get("rationale", ""),
                    timestamp=item["timestamp"],
                )
        return answer_set

    def save_answer(
        self,
        client: str,
        decision_id: str,
        answer: ClientAnswer,
        expected_version: int | None = None,
    ) -> ClientAnswerSet:
        pk = f"CLIENT#{client}"
        bump: dict[str, Any] = {
            "TableName": self._table_name,
            "Key": {"PK": pk, "SK": "META"},
            "UpdateExpression": "ADD #v :one",
            "ExpressionAttributeNames": {"#v": "version"},
            "ExpressionAttributeValues": {":one": 1},
        }
        if expected_version is not None:
            if expected_version == 0:
                bump["ConditionExpression"] = "attribute_not_exists(#v)"
            else:
                bump["ConditionExpression"] = "#v = :expected"
                bump["ExpressionAttributeValues"][":expected"] = expected_version
        put = {
            "TableName": self._table_name,
            "Item": {
                "PK": pk,
                "SK": f"ANSWER#{decision_id}",
                "selected_outcome": answer.selected_outcome,
                "rationale": answer.rationale,
                "timestamp": answer.timestamp.isoformat(),
            },
        }

        try:
            self._client.transact_write_items(TransactItems=[{"Update": bump}, {"Put": put}])
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "TransactionCanceledException" and expected_version is not None:
                actual = self.get_answers(client).version
                logger.warning(
                    "Rejected stale answer save for %s (expected v%d, actual v%d)",
                    client, expected_version, actual,
                )
                raise StaleAnswerSetError(client, expected_version, actual) from exc
            raise StorageError(f"Answer save failed for client={client!r}: {exc}") from exc

        return self.get_answers(client)

    def list_clients(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        kwargs: dict[str, Any] = {}
        try:
            while True:
                resp = self._table.scan(**kwargs)
                for item in resp.get("Items", []):
                    client = item["PK"].removeprefix("CLIENT#")
                    counts.setdefault(client, 0)
                    if item["SK"].startswith("ANSWER#"):
                        counts[client] += 1
                if "LastEvaluatedKey" not in resp:
                    return counts
                kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except ClientError as exc:
            raise StorageError(f"Client scan failed: {exc}") from exc


class DynamoDBWorkflowStore:
    """Production IWorkflowStore; the version counter is incremented atomically."""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table = _resource(region, endpoint_url).Table(f"{WORKFLOWS_TABLE}{table_suffix}")

    def get_workflow(self, client: str) -> SavedWorkflow | None:
        try:
            resp = self._table.get_item(Key={"PK": f"CLIENT#{client}", "SK": "WORKFLOW"})
        except ClientError as exc:
            raise StorageError(f"Workflow read failed for client={client!r}: {exc}") from exc
        item = resp.get("Item")
        if not item or "data" not in item:
            return None
        workflow = SavedWorkflow.model_validate_json(item["data"])
        return workflow.model_copy(update={"version": int(item["version"])})

    def save_workflow(self, workflow: SavedWorkflow) -> SavedWorkflow:
        try:
            resp = self._table.update_item(
                Key={"PK": f"CLIENT#{workflow.client}", "SK": "WORKFLOW"},
                UpdateExpression="SET #d = :data ADD #v :one",
                ExpressionAttributeNames={"#d": "data", "#v": "version"},
                ExpressionAttributeValues={
                    ":data": workflow.model_dump_json(exclude={"version"}),
                    ":one": 1,
                },
                ReturnValues="UPDATED_NEW",
            )
        except ClientError as exc:
            raise StorageError(f"Workflow save failed for client={workflow.client!r}: {exc}") from exc
        return workflow.model_copy(update={"version": int(resp["Attributes"]["version"])})
