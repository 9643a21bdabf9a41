"""DynamoDB backends: unit store, transition log and step catalog."""

from __future__ import annotations

import itertools
import json
import logging
import uuid
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from refurbflow.core.exceptions import ConflictError, RefurbFlowError, UnitNotFoundError
from refurbflow.models.events import TransitionEvent
from refurbflow.models.steps import CompletedStepRecord, StepDescriptor
from refurbflow.models.unit import JobPriority, ProductCategory, RefurbState, Unit
from refurbflow.workflow.catalog import build_descriptors
from refurbflow.workflow.sops import sop_name_for

logger = logging.getLogger(__name__)

UNITS_TABLE = "refurbflow-units"
STEPS_TABLE = "refurbflow-step-completions"
TRANSITIONS_TABLE = "refurbflow-transitions"
CATALOG_TABLE = "refurbflow-step-catalog"


def to_dynamodb(obj: Any) -> Any:
    """Convert JSON-compatible floats to Decimal for DynamoDB."""
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: to_dynamodb(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [to_dynamodb(i) for i in obj]
    return obj


def _decode_value(v: Any) -> Any:
    if isinstance(v, Decimal):
        return int(v) if v == int(v) else float(v)
    if isinstance(v, dict):
        return decode_decimals(v)
    if isinstance(v, list):
        return [_decode_value(i) for i in v]
    return v


def decode_decimals(item: dict[str, Any]) -> dict[str, Any]:
    """Convert Decimal values in a DynamoDB item to int/float."""
    return {k: _decode_value(v) for k, v in item.items()}


def _strip_keys(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in item.items() if k not in ("PK", "SK")}


class _DynamoDBBackend:
    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)

    def _table(self, base: str):
        return self._ddb.Table(f"{base}{self._table_suffix}")

    def _query(self, table_base: str, pk: str, sk_prefix: str = "") -> list[dict[str, Any]]:
        """Query all items of a partition, optionally narrowed by sort-key prefix."""
        tbl = self._table(table_base)
        kwargs: dict[str, Any] = {
            "KeyConditionExpression": "PK = :pk",
            "ExpressionAttributeValues": {":pk": pk},
        }
        if sk_prefix:
            kwargs["KeyConditionExpression"] = "PK = :pk AND begins_with(SK, :prefix)"
            kwargs["ExpressionAttributeValues"][":prefix"] = sk_prefix
        items: list[dict[str, Any]] = []
        try:
            while True:
                resp = tbl.query(**kwargs)
                items.extend(decode_decimals(i) for i in resp.get("Items", []))
                if "LastEvaluatedKey" not in resp:
                    return items
                kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except ClientError as exc:
            raise RefurbFlowError(f"DynamoDB query failed on {table_base} for {pk!r}: {exc}") from exc

    def _scan(self, table_base: str, filter_expression: Any) -> list[dict[str, Any]]:
        """Scan a whole table through ``filter_expression``, following pagination."""
        tbl = self._table(table_base)
        kwargs: dict[str, Any] = {"FilterExpression": filter_expression}
        items: list[dict[str, Any]] = []
        try:
            while True:
                resp = tbl.scan(**kwargs)
                items.extend(decode_decimals(i) for i in resp.get("Items", []))
                if "LastEvaluatedKey" not in resp:
                    return items
                kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except ClientError as exc:
            raise RefurbFlowError(f"DynamoDB scan failed on {table_base}: {exc}") from exc


class DynamoDBUnitStore(_DynamoDBBackend):
    """Production IUnitStore. Unit writes are conditional on the stored version."""

    @staticmethod
    def _unit_pk(qlid: str) -> str:
        return f"UNIT#{qlid}"

    @staticmethod
    def _step_prefix(state: RefurbState, attempt: int) -> str:
        return f"STEP#{state.value}#{attempt:03d}#"

    def load_unit(self, qlid: str) -> Unit:
        try:
            resp = self._table(UNITS_TABLE).get_item(Key={"PK": self._unit_pk(qlid), "SK": "STATE"})
        except ClientError as exc:
            raise RefurbFlowError(f"DynamoDB get_item failed for unit {qlid!r}: {exc}") from exc
        item = resp.get("Item")
        if item is None:
            raise UnitNotFoundError(qlid)
        return Unit.model_validate(_strip_keys(decode_decimals(item)))

    def save_unit(self, unit: Unit, expected_version: int | None) -> Unit:
        saved = unit.model_copy(update={"version": (expected_version or 0) + 1})
        item = {"PK": self._unit_pk(unit.qlid), "SK": "STATE", **to_dynamodb(saved.model_dump(mode="json"))}
        kwargs: dict[str, Any] = {"Item": item}
        if expected_version is None:
            kwargs["ConditionExpression"] = "attribute_not_exists(PK)"
        else:
            kwargs["ConditionExpression"] = "#v = :expected"
            kwargs["ExpressionAttributeNames"] = {"#v": "version"}
            kwargs["ExpressionAttributeValues"] = {":expected": expected_version}
        try:
            self._table(UNITS_TABLE).put_item(**kwargs)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise ConflictError(unit.qlid, context={"expected_version": expected_version}) from exc
            raise RefurbFlowError(f"DynamoDB put_item failed for unit {unit.qlid!r}: {exc}") from exc
        return saved

    def load_completed_steps(self, qlid: str, state: RefurbState, attempt: int) -> list[CompletedStepRecord]:
        items = self._query(STEPS_TABLE, self._unit_pk(qlid), self._step_prefix(state, attempt))
        records = [CompletedStepRecord.model_validate(_strip_keys(i)) for i in items]
        return sorted(records, key=lambda r: r.completed_at)

    def save_completed_step(self, record: CompletedStepRecord) -> None:
        item = {
            "PK": self._unit_pk(record.qlid),
            "SK": f"{self._step_prefix(record.state, record.attempt)}{record.step_code}",
            **to_dynamodb(record.model_dump(mode="json")),
        }
        try:
            self._table(STEPS_TABLE).put_item(Item=item)
        except ClientError as exc:
            raise RefurbFlowError(
                f"DynamoDB put_item failed for step {record.step_code!r} of {record.qlid!r}: {exc}"
            ) from exc

    def list_units(
        self,
        state: RefurbState | None = None,
        technician_id: str | None = None,
        category: ProductCategory | None = None,
        priority: JobPriority | None = None,
    ) -> list[Unit]:
        condition = Attr("SK").eq("STATE")
        if state is not None:
            condition &= Attr("current_state").eq(state.value)
        if technician_id is not None:
            condition &= Attr("assigned_technician_id").eq(technician_id)
        if category is not None:
            condition &= Attr("category").eq(category.value)
        if priority is not None:
            condition &= Attr("priority").eq(priority.value)
        units = [Unit.model_validate(_strip_keys(i)) for i in self._scan(UNITS_TABLE, condition)]
        return sorted(units, key=lambda u: u.created_at, reverse=True)


class DynamoDBTransitionLog(_DynamoDBBackend):
    """Production ITransitionLog: one item per event, sorted by timestamp.

    Events sharing a timestamp (certify emits two) keep their emission order
    through a per-instance sequence number in the sort key.
    """

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        super().__init__(table_suffix=table_suffix, region=region, endpoint_url=endpoint_url)
        self._seq = itertools.count()

    def record(self, event: TransitionEvent) -> None:
        item = {
            "PK": f"UNIT#{event.qlid}",
            "SK": f"EVENT#{event.timestamp.isoformat()}#{next(self._seq):06d}#{uuid.uuid4().hex[:8]}",
            **event.model_dump(mode="json"),
        }
        try:
            self._table(TRANSITIONS_TABLE).put_item(Item=item)
        except ClientError as exc:
            raise RefurbFlowError(f"DynamoDB put_item failed for event of {event.qlid!r}: {exc}") from exc

    def list_for_unit(self, qlid: str) -> list[TransitionEvent]:
        items = self._query(TRANSITIONS_TABLE, f"UNIT#{qlid}", "EVENT#")
        return [TransitionEvent.model_validate(_strip_keys(i)) for i in items]


class DynamoDBStepCatalog(_DynamoDBBackend):
    """IStepCatalog backed by the catalog table. Each stage list is read once."""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        super().__init__(table_suffix=table_suffix, region=region, endpoint_url=endpoint_url)
        self._loaded: dict[tuple[str, RefurbState], tuple[StepDescriptor, ...]] = {}

    @staticmethod
    def item_for(sop_name: str, stage: str, step: dict[str, Any]) -> dict[str, Any]:
        """Catalog table item for one raw SOP step."""
        return {
            "PK": f"SOP#{sop_name}",
            "SK": f"STAGE#{stage}#STEP#{int(step.get('order', 0)):04d}#{step['code']}",
            "stage": stage,
            "definition": json.dumps(step),
        }

    def get_steps_for_stage(
        self, stage: RefurbState, category: ProductCategory = ProductCategory.OTHER
    ) -> tuple[StepDescriptor, ...]:
        key = (sop_name_for(category.value), stage)
        if key not in self._loaded:
            items = self._query(CATALOG_TABLE, f"SOP#{key[0]}", f"STAGE#{stage.value}#")
            self._loaded[key] = build_descriptors(json.loads(i["definition"]) for i in items)
            logger.debug("Loaded %d catalog steps for %s/%s", len(self._loaded[key]), key[0], stage.value)
        return self._loaded[key]
