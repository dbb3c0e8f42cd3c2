"""
Compute Collector Module
========================

Collects EC2 instances, EBS volumes and Elastic IPs for one region.

Classes
-------
ComputeCollector
    Regional collector for the 'compute' service family.

Example
-------
>>> from cloudhygiene.collectors import ComputeCollector
>>> from cloudhygiene.core import AWSClient
>>>
>>> collector = ComputeCollector(AWSClient(region="us-east-1"))
>>> result = collector.collect()
>>> print(f"{len(result.resources)} compute resources, {len(result.errors)} errors")

Enrichment
----------
- **Stop time**: parsed from ``StateTransitionReason`` of stopped
  instances (``"User initiated (2024-01-15 10:30:00 GMT)"``).
- **CPU utilization**: 14-day average of ``AWS/EC2 CPUUtilization`` for
  running instances. Left as None when CloudWatch has no datapoints.
- **Snapshots**: one ``describe_snapshots(OwnerIds=["self"])`` call marks
  which volumes have at least one snapshot. When that call fails every
  volume's ``has_snapshot`` is None rather than False.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Set, Tuple

from cloudhygiene.core.base_collector import BaseCollector, tags_to_dict
from cloudhygiene.models.base import format_timestamp, to_iso, utc_now
from cloudhygiene.models.resource import (
    FloatingIpDetails,
    InstanceDetails,
    Resource,
    ResourceType,
    VolumeDetails,
)

# Module logger
logger = logging.getLogger(__name__)

TRANSITION_TIME_PATTERN = re.compile(r"\((\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})")


def parse_transition_time(reason: Optional[str]) -> Optional[str]:
    """
    Extract the timestamp from an EC2 ``StateTransitionReason``.

    Example
    -------
    >>> parse_transition_time("User initiated (2024-01-15 10:30:00 GMT)")
    '2024-01-15T10:30:00.000Z'
    """
    if not reason:
        return None
    match = TRANSITION_TIME_PATTERN.search(reason)
    if not match:
        return None
    moment = datetime.strptime(match.group(1), "%Y-%m-%d %H:%M:%S")
    return format_timestamp(moment.replace(tzinfo=timezone.utc))


class ComputeCollector(BaseCollector):
    """
    Collector for EC2 instances, EBS volumes and Elastic IPs.

    Parameters
    ----------
    aws_client : AWSClient
        Client for the target region.
    collect_utilization : bool, default=True
        Query CloudWatch for the CPU average of each running instance.
    """

    service = "compute"
    UTILIZATION_LOOKBACK_DAYS = 14

    def __init__(self, aws_client, collect_utilization: bool = True) -> None:
        super().__init__(aws_client)
        self.collect_utilization = collect_utilization

        # Lazy-loaded service clients
        self._ec2_client = None
        self._cloudwatch_client = None

    # =========================================================================
    # Service Client Properties (Lazy Loading)
    # =========================================================================

    @property
    def ec2_client(self):
        if self._ec2_client is None:
            self._ec2_client = self.aws_client.get_ec2_client()
        return self._ec2_client

    @property
    def cloudwatch_client(self):
        if self._cloudwatch_client is None:
            self._cloudwatch_client = self.aws_client.get_cloudwatch_client()
        return self._cloudwatch_client

    def get_operations(self) -> List[Tuple[str, Callable[[], List[Resource]]]]:
        return [
            ("describe_instances", self._collect_instances),
            ("describe_volumes", self._collect_volumes),
            ("describe_addresses", self._collect_addresses),
        ]

    # =========================================================================
    # Instances
    # =========================================================================

    def _collect_instances(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.ec2_client.get_paginator("describe_instances")

        for page in paginator.paginate():
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    state = instance.get("State", {}).get("Name", "unknown")
                    if state == "terminated":
                        continue
                    resources.append(self._build_instance(instance, state))

        return resources

    def _build_instance(self, instance: dict, state: str) -> Resource:
        instance_id = instance["InstanceId"]
        tags = tags_to_dict(instance.get("Tags"))

        stopped_at = None
        if state == "stopped":
            stopped_at = parse_transition_time(instance.get("StateTransitionReason"))

        cpu = None
        if state == "running" and self.collect_utilization:
            cpu = self.attempt(
                "get_metric_statistics",
                lambda: self._average_cpu(instance_id),
                default=None,
            )

        details = InstanceDetails(
            instance_type=instance.get("InstanceType", ""),
            platform=instance.get("PlatformDetails") or instance.get("Platform"),
            launch_time=to_iso(instance.get("LaunchTime")),
            monitoring_state=instance.get("Monitoring", {}).get("State", "disabled"),
            stopped_at=stopped_at,
            cpu_utilization=cpu,
            vpc_id=instance.get("VpcId"),
            subnet_id=instance.get("SubnetId"),
            public_ip=instance.get("PublicIpAddress"),
            security_group_ids=[g["GroupId"] for g in instance.get("SecurityGroups", [])],
        )
        return Resource(
            resource_id=instance_id,
            name=tags.get("Name", instance_id),
            resource_type=ResourceType.COMPUTE_INSTANCE,
            region=self.region,
            state=state,
            details=details,
            tags=tags,
            creation_date=details.launch_time,
        )

    def _average_cpu(self, instance_id: str) -> Optional[float]:
        end = utc_now()
        start = end - timedelta(days=self.UTILIZATION_LOOKBACK_DAYS)
        response = self.cloudwatch_client.get_metric_statistics(
            Namespace="AWS/EC2",
            MetricName="CPUUtilization",
            Dimensions=[{"Name": "InstanceId", "Value": instance_id}],
            StartTime=start,
            EndTime=end,
            Period=86400,
            Statistics=["Average"],
        )
        datapoints = response.get("Datapoints", [])
        if not datapoints:
            return None
        average = sum(dp["Average"] for dp in datapoints) / len(datapoints)
        return round(average, 2)

    # =========================================================================
    # Volumes
    # =========================================================================

    def _snapshotted_volume_ids(self) -> Set[str]:
        volume_ids: Set[str] = set()
        paginator = self.ec2_client.get_paginator("describe_snapshots")
        for page in paginator.paginate(OwnerIds=["self"]):
            for snapshot in page.get("Snapshots", []):
                if snapshot.get("VolumeId"):
                    volume_ids.add(snapshot["VolumeId"])
        return volume_ids

    def _collect_volumes(self) -> List[Resource]:
        snapshotted = self.attempt(
            "describe_snapshots", self._snapshotted_volume_ids, default=None
        )

        resources: List[Resource] = []
        paginator = self.ec2_client.get_paginator("describe_volumes")

        for page in paginator.paginate():
            for volume in page.get("Volumes", []):
                volume_id = volume["VolumeId"]
                tags = tags_to_dict(volume.get("Tags"))
                details = VolumeDetails(
                    size_gb=volume.get("Size", 0),
                    volume_type=volume.get("VolumeType", ""),
                    encrypted=volume.get("Encrypted"),
                    iops=volume.get("Iops"),
                    attached_instance_ids=[
                        a["InstanceId"]
                        for a in volume.get("Attachments", [])
                        if a.get("InstanceId")
                    ],
                    has_snapshot=None if snapshotted is None else volume_id in snapshotted,
                )
                resources.append(
                    Resource(
                        resource_id=volume_id,
                        name=tags.get("Name", volume_id),
                        resource_type=ResourceType.BLOCK_VOLUME,
                        region=self.region,
                        state=volume.get("State", "unknown"),
                        details=details,
                        tags=tags,
                        creation_date=to_iso(volume.get("CreateTime")),
                    )
                )

        return resources

    # =========================================================================
    # Elastic IPs
    # =========================================================================

    def _collect_addresses(self) -> List[Resource]:
        resources: List[Resource] = []
        response = self.ec2_client.describe_addresses()

        for address in response.get("Addresses", []):
            resource_id = address.get("AllocationId") or address.get("PublicIp")
            tags = tags_to_dict(address.get("Tags"))
            details = FloatingIpDetails(
                public_ip=address.get("PublicIp"),
                allocation_id=address.get("AllocationId"),
                association_id=address.get("AssociationId"),
                instance_id=address.get("InstanceId"),
                network_interface_id=address.get("NetworkInterfaceId"),
                domain=address.get("Domain", "vpc"),
            )
            resources.append(
                Resource(
                    resource_id=resource_id,
                    name=tags.get("Name", address.get("PublicIp", resource_id)),
                    resource_type=ResourceType.FLOATING_IP,
                    region=self.region,
                    state="associated" if details.is_associated else "unassociated",
                    details=details,
                    tags=tags,
                )
            )

        return resources
