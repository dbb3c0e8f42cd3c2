"""
DynamoDB Store Module
=====================

Persistence for scans, scores, alerts and user configuration.

Tables
------
scans   : hash ``scan_id``; GSI ``UserIdTimestampIndex`` (user_id, timestamp)
scores  : hash ``scan_id``; GSI ``UserIdTimestampIndex``
alerts  : hash ``alert_id``; GSI ``UserIdTimestampIndex``
users   : hash ``user_id``

Scans, scores and alerts carry a ``ttl`` attribute (epoch seconds).
DynamoDB has no float type, so items are written with ``Decimal`` numbers
and converted back on read.

Any boto3 ``ClientError`` or ``BotoCoreError`` is raised as
``PersistenceError``.

Example
-------
>>> from cloudhygiene.storage import create_stores
>>>
>>> stores = create_stores(AWSClient(), get_settings())
>>> stores.scans.put_scan(scan)
>>> latest = stores.scans.get_latest_scan("user-1")
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from cloudhygiene.core.exceptions import PersistenceError
from cloudhygiene.models.alert import Alert, UserConfig
from cloudhygiene.models.base import ttl_from, utc_now
from cloudhygiene.models.scan import ScanResult
from cloudhygiene.models.score import ScoreResult

# Module logger
logger = logging.getLogger(__name__)

USER_TIMESTAMP_INDEX = "UserIdTimestampIndex"


def to_dynamo(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a plain dict into a DynamoDB-safe item (floats become Decimal)."""
    return json.loads(json.dumps(data), parse_float=Decimal)


def from_dynamo(value: Any) -> Any:
    """Convert a DynamoDB item back to plain Python numbers."""
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def user_timestamp_index() -> Dict[str, Any]:
    return {
        "IndexName": USER_TIMESTAMP_INDEX,
        "KeySchema": [
            {"AttributeName": "user_id", "KeyType": "HASH"},
            {"AttributeName": "timestamp", "KeyType": "RANGE"},
        ],
        "Projection": {"ProjectionType": "ALL"},
    }


def table_definitions(settings) -> List[Dict[str, Any]]:
    """``create_table`` arguments for every table the stores use."""
    user_time_attrs = [
        {"AttributeName": "user_id", "AttributeType": "S"},
        {"AttributeName": "timestamp", "AttributeType": "S"},
    ]
    return [
        {
            "TableName": settings.scans_table,
            "KeySchema": [{"AttributeName": "scan_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "scan_id", "AttributeType": "S"}
            ] + user_time_attrs,
            "GlobalSecondaryIndexes": [user_timestamp_index()],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": settings.scores_table,
            "KeySchema": [{"AttributeName": "scan_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "scan_id", "AttributeType": "S"}
            ] + user_time_attrs,
            "GlobalSecondaryIndexes": [user_timestamp_index()],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": settings.alerts_table,
            "KeySchema": [{"AttributeName": "alert_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "alert_id", "AttributeType": "S"}
            ] + user_time_attrs,
            "GlobalSecondaryIndexes": [user_timestamp_index()],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": settings.users_table,
            "KeySchema": [{"AttributeName": "user_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "user_id", "AttributeType": "S"}],
            "BillingMode": "PAY_PER_REQUEST",
        },
    ]


def create_tables(dynamodb_resource, settings) -> None:
    """Create every table (used by local setups and the test suite)."""
    for definition in table_definitions(settings):
        table = dynamodb_resource.create_table(**definition)
        table.wait_until_exists()
        logger.info(f"Created table {definition['TableName']}")


# =============================================================================
# Base Store
# =============================================================================


class DynamoStore:
    """
    Shared plumbing for one DynamoDB table.

    Parameters
    ----------
    dynamodb_resource : boto3 DynamoDB service resource
        Resource used to open the table.
    table_name : str
        Name of the backing table.
    """

    def __init__(self, dynamodb_resource, table_name: str) -> None:
        self.table_name = table_name
        self.table = dynamodb_resource.Table(table_name)

    def _call(self, operation: str, func: Callable[[], Any]) -> Any:
        try:
            return func()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"{operation} on {self.table_name} failed: {e}")
            raise PersistenceError(
                f"DynamoDB {operation} failed: {e}",
                table=self.table_name,
                operation=operation,
            )

    def _put(self, operation: str, item: Dict[str, Any]) -> None:
        self._call(operation, lambda: self.table.put_item(Item=to_dynamo(item)))

    def _get(self, operation: str, key: Dict[str, str]) -> Optional[Dict[str, Any]]:
        response = self._call(operation, lambda: self.table.get_item(Key=key))
        item = response.get("Item")
        return from_dynamo(item) if item else None

    def _query_user(
        self,
        operation: str,
        user_id: str,
        start: Optional[str] = None,
        end: Optional[str] = None,
        newest_first: bool = True,
        limit: Optional[int] = None,
        filter_expression=None,
    ) -> List[Dict[str, Any]]:
        """
        Query the user/timestamp index, following pagination.

        ``limit`` is only passed to DynamoDB when there is no filter, since
        DynamoDB applies ``Limit`` before filtering.
        """
        condition = Key("user_id").eq(user_id)
        if start and end:
            condition = condition & Key("timestamp").between(start, end)
        elif start:
            condition = condition & Key("timestamp").gte(start)
        elif end:
            condition = condition & Key("timestamp").lte(end)

        kwargs: Dict[str, Any] = {
            "IndexName": USER_TIMESTAMP_INDEX,
            "KeyConditionExpression": condition,
            "ScanIndexForward": not newest_first,
        }
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        elif limit:
            kwargs["Limit"] = limit

        items: List[Dict[str, Any]] = []
        while True:
            response = self._call(operation, lambda: self.table.query(**kwargs))
            items.extend(response.get("Items", []))
            if limit and len(items) >= limit:
                items = items[:limit]
                break
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key

        return [from_dynamo(item) for item in items]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(table='{self.table_name}')"


# =============================================================================
# Stores
# =============================================================================


class ScanStore(DynamoStore):
    """Scan snapshots, retained for ``ttl_days`` (90 by default)."""

    def __init__(self, dynamodb_resource, table_name: str, ttl_days: int = 90) -> None:
        super().__init__(dynamodb_resource, table_name)
        self.ttl_days = ttl_days

    def put_scan(self, scan: ScanResult, now: Optional[datetime] = None) -> None:
        item = scan.to_dict()
        item["ttl"] = ttl_from(now or utc_now(), self.ttl_days)
        self._put("put_scan", item)
        logger.debug(f"Stored scan {scan.scan_id}")

    def get_scan(self, scan_id: str) -> Optional[ScanResult]:
        item = self._get("get_scan", {"scan_id": scan_id})
        return ScanResult.from_dict(item) if item else None

    def query_scans(
        self,
        user_id: str,
        start: Optional[str] = None,
        end: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ScanResult]:
        """Scans for ``user_id`` in [start, end], newest first."""
        items = self._query_user("query_scans", user_id, start, end, limit=limit)
        return [ScanResult.from_dict(item) for item in items]

    def get_latest_scan(self, user_id: str) -> Optional[ScanResult]:
        scans = self.query_scans(user_id, limit=1)
        return scans[0] if scans else None


class ScoreStore(DynamoStore):
    """Hygiene scores, keyed by the scan they belong to."""

    def __init__(self, dynamodb_resource, table_name: str, ttl_days: int = 90) -> None:
        super().__init__(dynamodb_resource, table_name)
        self.ttl_days = ttl_days

    def put_score(self, score: ScoreResult, now: Optional[datetime] = None) -> None:
        item = score.to_dict()
        item["ttl"] = ttl_from(now or utc_now(), self.ttl_days)
        self._put("put_score", item)

    def get_score(self, scan_id: str) -> Optional[ScoreResult]:
        item = self._get("get_score", {"scan_id": scan_id})
        return ScoreResult.from_dict(item) if item else None

    def query_scores(
        self,
        user_id: str,
        start: Optional[str] = None,
        end: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ScoreResult]:
        items = self._query_user("query_scores", user_id, start, end, limit=limit)
        return [ScoreResult.from_dict(item) for item in items]


class AlertStore(DynamoStore):
    """Alert history, used for display and for 24-hour deduplication."""

    def __init__(self, dynamodb_resource, table_name: str, ttl_days: int = 30) -> None:
        super().__init__(dynamodb_resource, table_name)
        self.ttl_days = ttl_days

    def put_alert(self, alert: Alert, now: Optional[datetime] = None) -> None:
        item = alert.to_dict()
        item["ttl"] = ttl_from(now or utc_now(), self.ttl_days)
        self._put("put_alert", item)

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        item = self._get("get_alert", {"alert_id": alert_id})
        return Alert.from_dict(item) if item else None

    def query_alerts(
        self,
        user_id: str,
        start: Optional[str] = None,
        end: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        items = self._query_user("query_alerts", user_id, start, end, limit=limit)
        return [Alert.from_dict(item) for item in items]

    def has_recent(self, user_id: str, deduplication_key: str, since: str) -> bool:
        """
        Check for an alert with ``deduplication_key`` stored after ``since``.

        Parameters
        ----------
        since : str
            Exclusive lower bound on the alert timestamp.
        """
        kwargs = {
            "IndexName": USER_TIMESTAMP_INDEX,
            "KeyConditionExpression": Key("user_id").eq(user_id) & Key("timestamp").gt(since),
            "FilterExpression": Attr("deduplication_key").eq(deduplication_key),
        }
        while True:
            response = self._call("has_recent", lambda: self.table.query(**kwargs))
            if response.get("Items"):
                return True
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return False
            kwargs["ExclusiveStartKey"] = last_key


class UserConfigStore(DynamoStore):
    """Per-user role, regions, alert and schedule settings."""

    def get_user_config(self, user_id: str) -> Optional[UserConfig]:
        item = self._get("get_user_config", {"user_id": user_id})
        return UserConfig.from_dict(item) if item else None

    def put_user_config(self, config: UserConfig) -> None:
        self._put("put_user_config", config.to_dict())


@dataclass
class Stores:
    scans: ScanStore
    scores: ScoreStore
    alerts: AlertStore
    users: UserConfigStore


def create_stores(aws_client, settings) -> Stores:
    """Open every store on the DynamoDB resource of ``aws_client``."""
    resource = aws_client.get_dynamodb_resource()
    return Stores(
        scans=ScanStore(resource, settings.scans_table, settings.scan_retention_days),
        scores=ScoreStore(resource, settings.scores_table, settings.scan_retention_days),
        alerts=AlertStore(resource, settings.alerts_table, settings.alert_retention_days),
        users=UserConfigStore(resource, settings.users_table),
    )
