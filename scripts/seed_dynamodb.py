"""Create RefurbFlow DynamoDB tables and seed the step catalog from the built-in SOPs.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
from typing import Any

import boto3

from refurbflow.core.logging import configure_logging
from refurbflow.persistence.dynamodb_backend import (
    CATALOG_TABLE,
    STEPS_TABLE,
    TRANSITIONS_TABLE,
    UNITS_TABLE,
    DynamoDBStepCatalog,
)
from refurbflow.workflow.sops import SOPS

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": UNITS_TABLE},
    {"name": STEPS_TABLE},
    {"name": TRANSITIONS_TABLE},
    {"name": CATALOG_TABLE},
]


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create all 4 DynamoDB tables. Skips if table already exists."""
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


def seed_catalog(ddb: Any, suffix: str = "") -> int:
    """Write every SOP step into the catalog table. Returns the number of items."""
    tbl = ddb.Table(f"{CATALOG_TABLE}{suffix}")
    count = 0
    with tbl.batch_writer() as batch:
        for sop_name, stages in SOPS.items():
            for stage, steps in stages.items():
                for step in steps:
                    batch.put_item(Item=DynamoDBStepCatalog.item_for(sop_name, stage, step))
                    count += 1
    print(f"  Seeded {count} catalog steps")
    return count


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (LocalStack)")
    parser.add_argument("--region", default="us-east-1")
    parser.add_argument("--suffix", default="", help="Table name suffix, e.g. -dev")
    args = parser.parse_args()
    configure_logging()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url
    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.suffix)
    print("Seeding step catalog...")
    seed_catalog(ddb, suffix=args.suffix)
    print("Done.")


if __name__ == "__main__":
    main()
