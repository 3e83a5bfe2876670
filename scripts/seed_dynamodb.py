"""Create the mesflow DynamoDB tables and load the task/decision library into them.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

import boto3

from mesflow.models.library import Library
from mesflow.persistence.dynamodb_backend import (
    ANSWERS_TABLE,
    LIBRARY_TABLE,
    WORKFLOWS_TABLE,
    DynamoDBLibraryStore,
)
from mesflow.persistence.file_backend import JsonLibraryStore

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": LIBRARY_TABLE},
    {"name": ANSWERS_TABLE},
    {"name": WORKFLOWS_TABLE},
]

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create the three mesflow tables. Skips if table already exists."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        print(f"  Created table {table_name}")


def seed_library(ddb: Any, library: Library, domain: str = "mes", suffix: str = "") -> int:
    """Replace the library items under ``LIBRARY#<domain>``. Returns the item count."""
    meta = ddb.meta.client.meta
    store = DynamoDBLibraryStore(
        domain=domain, table_suffix=suffix,
        region=meta.region_name, endpoint_url=meta.endpoint_url,
    )
    count = store.put_library(library)
    print(
        f"  Seeded {len(library.tasks)} tasks, {len(library.decisions)} decisions, "
        f"{len(library.routing)} routing overrides for domain {domain!r}"
    )
    return count


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed DynamoDB tables for mesflow")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--data-dir", default=str(DEFAULT_DATA_DIR), help="Directory holding the library JSON")
    parser.add_argument("--domain", default="mes", help="Library partition name")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    print("Seeding library...")
    library = JsonLibraryStore(args.data_dir).get_library()
    seed_library(ddb, library, domain=args.domain, suffix=args.table_suffix)

    print("Done!")


if __name__ == "__main__":
    main()
