"""
Monitoring Collector Module
===========================

Collects CloudWatch Logs log groups and CloudWatch metric alarms for one
region.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Tuple

from cloudhygiene.core.base_collector import BaseCollector
from cloudhygiene.models.base import format_timestamp, to_iso
from cloudhygiene.models.resource import (
    AlarmDetails,
    LogGroupDetails,
    Resource,
    ResourceType,
)

# Module logger
logger = logging.getLogger(__name__)


class MonitoringCollector(BaseCollector):
    """Collector for log groups and alarms."""

    service = "monitoring"

    def __init__(self, aws_client) -> None:
        super().__init__(aws_client)
        self._logs_client = None
        self._cloudwatch_client = None

    @property
    def logs_client(self):
        if self._logs_client is None:
            self._logs_client = self.aws_client.get_logs_client()
        return self._logs_client

    @property
    def cloudwatch_client(self):
        if self._cloudwatch_client is None:
            self._cloudwatch_client = self.aws_client.get_cloudwatch_client()
        return self._cloudwatch_client

    def get_operations(self) -> List[Tuple[str, Callable[[], List[Resource]]]]:
        return [
            ("describe_log_groups", self._collect_log_groups),
            ("describe_alarms", self._collect_alarms),
        ]

    def _collect_log_groups(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.logs_client.get_paginator("describe_log_groups")

        for page in paginator.paginate():
            for group in page.get("logGroups", []):
                name = group["logGroupName"]
                created = group.get("creationTime")
                resources.append(
                    Resource(
                        resource_id=name,
                        name=name,
                        resource_type=ResourceType.LOG_GROUP,
                        region=self.region,
                        state="active",
                        details=LogGroupDetails(
                            retention_days=group.get("retentionInDays"),
                            stored_bytes=group.get("storedBytes", 0),
                        ),
                        # creationTime is epoch milliseconds
                        creation_date=(
                            format_timestamp(
                                datetime.fromtimestamp(created / 1000, tz=timezone.utc)
                            )
                            if created
                            else None
                        ),
                    )
                )

        return resources

    def _collect_alarms(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.cloudwatch_client.get_paginator("describe_alarms")

        for page in paginator.paginate(AlarmTypes=["MetricAlarm"]):
            for alarm in page.get("MetricAlarms", []):
                name = alarm["AlarmName"]
                resources.append(
                    Resource(
                        resource_id=alarm.get("AlarmArn", name),
                        name=name,
                        resource_type=ResourceType.ALARM,
                        region=self.region,
                        state=alarm.get("StateValue", "INSUFFICIENT_DATA"),
                        details=AlarmDetails(
                            metric_name=alarm.get("MetricName"),
                            namespace=alarm.get("Namespace"),
                            actions_enabled=alarm.get("ActionsEnabled", True),
                        ),
                        creation_date=to_iso(alarm.get("AlarmConfigurationUpdatedTimestamp")),
                    )
                )

        return resources
