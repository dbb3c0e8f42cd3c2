"""
Database Collector Module
=========================

Collects RDS DB instances, RDS/Aurora DB clusters and DynamoDB tables
for one region. Each is its own resource kind.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from cloudhygiene.core.base_collector import BaseCollector, tags_to_dict
from cloudhygiene.models.base import to_iso
from cloudhygiene.models.resource import (
    DatabaseClusterDetails,
    DatabaseDetails,
    Resource,
    ResourceType,
    TableDetails,
)

# Module logger
logger = logging.getLogger(__name__)


class DatabaseCollector(BaseCollector):
    """
    Collector for managed databases.

    DynamoDB tables are listed first and then described one by one; a
    failed ``describe_table`` records an error and keeps the table with
    unknown details.
    """

    service = "database"

    def __init__(self, aws_client) -> None:
        super().__init__(aws_client)
        self._rds_client = None
        self._dynamodb_client = None

    @property
    def rds_client(self):
        if self._rds_client is None:
            self._rds_client = self.aws_client.get_rds_client()
        return self._rds_client

    @property
    def dynamodb_client(self):
        if self._dynamodb_client is None:
            self._dynamodb_client = self.aws_client.get_dynamodb_client()
        return self._dynamodb_client

    def get_operations(self) -> List[Tuple[str, Callable[[], List[Resource]]]]:
        return [
            ("describe_db_instances", self._collect_db_instances),
            ("describe_db_clusters", self._collect_db_clusters),
            ("list_tables", self._collect_tables),
        ]

    def _collect_db_instances(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.rds_client.get_paginator("describe_db_instances")

        for page in paginator.paginate():
            for db in page.get("DBInstances", []):
                tags = tags_to_dict(db.get("TagList"))
                identifier = db["DBInstanceIdentifier"]
                resources.append(
                    Resource(
                        resource_id=identifier,
                        name=identifier,
                        resource_type=ResourceType.DB_INSTANCE,
                        region=self.region,
                        state=db.get("DBInstanceStatus", "unknown"),
                        details=DatabaseDetails(
                            engine=db.get("Engine", ""),
                            engine_version=db.get("EngineVersion", ""),
                            instance_class=db.get("DBInstanceClass", ""),
                            storage_encrypted=db.get("StorageEncrypted"),
                            backup_retention_period=db.get("BackupRetentionPeriod", 0),
                            multi_az=db.get("MultiAZ", False),
                            publicly_accessible=db.get("PubliclyAccessible", False),
                            cluster_id=db.get("DBClusterIdentifier"),
                        ),
                        tags=tags,
                        creation_date=to_iso(db.get("InstanceCreateTime")),
                    )
                )

        return resources

    def _collect_db_clusters(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.rds_client.get_paginator("describe_db_clusters")

        for page in paginator.paginate():
            for cluster in page.get("DBClusters", []):
                tags = tags_to_dict(cluster.get("TagList"))
                identifier = cluster["DBClusterIdentifier"]
                resources.append(
                    Resource(
                        resource_id=identifier,
                        name=identifier,
                        resource_type=ResourceType.DB_CLUSTER,
                        region=self.region,
                        state=cluster.get("Status", "unknown"),
                        details=DatabaseClusterDetails(
                            engine=cluster.get("Engine", ""),
                            engine_version=cluster.get("EngineVersion", ""),
                            storage_encrypted=cluster.get("StorageEncrypted"),
                            backup_retention_period=cluster.get("BackupRetentionPeriod", 0),
                            members=[
                                m["DBInstanceIdentifier"]
                                for m in cluster.get("DBClusterMembers", [])
                            ],
                        ),
                        tags=tags,
                        creation_date=to_iso(cluster.get("ClusterCreateTime")),
                    )
                )

        return resources

    def _collect_tables(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.dynamodb_client.get_paginator("list_tables")

        for page in paginator.paginate():
            for table_name in page.get("TableNames", []):
                table = self.attempt(
                    "describe_table",
                    lambda: self.dynamodb_client.describe_table(TableName=table_name)["Table"],
                    default=None,
                )
                resources.append(self._build_table(table_name, table))

        return resources

    def _build_table(self, table_name: str, table: Optional[dict]) -> Resource:
        if table is None:
            return Resource(
                resource_id=table_name,
                name=table_name,
                resource_type=ResourceType.WIDE_TABLE,
                region=self.region,
                state="unknown",
                details=TableDetails(status="unknown"),
            )

        billing = table.get("BillingModeSummary", {}).get("BillingMode", "PROVISIONED")
        status = table.get("TableStatus", "unknown")
        return Resource(
            resource_id=table_name,
            name=table_name,
            resource_type=ResourceType.WIDE_TABLE,
            region=self.region,
            state=status,
            details=TableDetails(
                status=status,
                item_count=table.get("ItemCount", 0),
                size_bytes=table.get("TableSizeBytes", 0),
                billing_mode=billing,
            ),
            creation_date=to_iso(table.get("CreationDateTime")),
        )
