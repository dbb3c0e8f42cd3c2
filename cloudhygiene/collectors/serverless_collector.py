"""
Serverless Collector Module
===========================

Collects Lambda functions, ECS services and EKS clusters for one region.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Tuple

from cloudhygiene.core.base_collector import BaseCollector, tags_to_dict
from cloudhygiene.models.base import to_iso
from cloudhygiene.models.resource import (
    ContainerServiceDetails,
    FunctionDetails,
    ManagedClusterDetails,
    Resource,
    ResourceType,
)

# Module logger
logger = logging.getLogger(__name__)

# DescribeServices accepts at most 10 services per call
ECS_DESCRIBE_BATCH = 10


class ServerlessCollector(BaseCollector):
    """Collector for functions and container platforms."""

    service = "serverless"

    def __init__(self, aws_client) -> None:
        super().__init__(aws_client)
        self._lambda_client = None
        self._ecs_client = None
        self._eks_client = None

    @property
    def lambda_client(self):
        if self._lambda_client is None:
            self._lambda_client = self.aws_client.get_lambda_client()
        return self._lambda_client

    @property
    def ecs_client(self):
        if self._ecs_client is None:
            self._ecs_client = self.aws_client.get_ecs_client()
        return self._ecs_client

    @property
    def eks_client(self):
        if self._eks_client is None:
            self._eks_client = self.aws_client.get_eks_client()
        return self._eks_client

    def get_operations(self) -> List[Tuple[str, Callable[[], List[Resource]]]]:
        return [
            ("list_functions", self._collect_functions),
            ("list_services", self._collect_container_services),
            ("list_clusters", self._collect_managed_clusters),
        ]

    def _collect_functions(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.lambda_client.get_paginator("list_functions")

        for page in paginator.paginate():
            for fn in page.get("Functions", []):
                arn = fn["FunctionArn"]
                tags = self.attempt(
                    "list_tags",
                    lambda: self.lambda_client.list_tags(Resource=arn).get("Tags", {}),
                    default={},
                )
                resources.append(
                    Resource(
                        resource_id=arn,
                        name=fn.get("FunctionName", arn),
                        resource_type=ResourceType.FUNCTION,
                        region=self.region,
                        state=fn.get("State", "Active"),
                        details=FunctionDetails(
                            runtime=fn.get("Runtime"),
                            memory_mb=fn.get("MemorySize", 0),
                            timeout_seconds=fn.get("Timeout", 0),
                            code_size=fn.get("CodeSize", 0),
                            last_modified=fn.get("LastModified"),
                        ),
                        tags=dict(tags or {}),
                    )
                )

        return resources

    def _collect_container_services(self) -> List[Resource]:
        resources: List[Resource] = []
        cluster_paginator = self.ecs_client.get_paginator("list_clusters")

        for cluster_page in cluster_paginator.paginate():
            for cluster_arn in cluster_page.get("clusterArns", []):
                service_arns = self.attempt(
                    "list_services",
                    lambda: self._list_service_arns(cluster_arn),
                    default=[],
                )
                for start in range(0, len(service_arns), ECS_DESCRIBE_BATCH):
                    batch = service_arns[start:start + ECS_DESCRIBE_BATCH]
                    services = self.attempt(
                        "describe_services",
                        lambda: self.ecs_client.describe_services(
                            cluster=cluster_arn, services=batch, include=["TAGS"]
                        ).get("services", []),
                        default=[],
                    )
                    for svc in services:
                        resources.append(self._build_container_service(cluster_arn, svc))

        return resources

    def _list_service_arns(self, cluster_arn: str) -> List[str]:
        arns: List[str] = []
        paginator = self.ecs_client.get_paginator("list_services")
        for page in paginator.paginate(cluster=cluster_arn):
            arns.extend(page.get("serviceArns", []))
        return arns

    def _build_container_service(self, cluster_arn: str, svc: dict) -> Resource:
        tags = {t["key"]: t.get("value", "") for t in svc.get("tags", []) if "key" in t}
        return Resource(
            resource_id=svc["serviceArn"],
            name=svc.get("serviceName", svc["serviceArn"]),
            resource_type=ResourceType.CONTAINER_SERVICE,
            region=self.region,
            state=svc.get("status", "unknown"),
            details=ContainerServiceDetails(
                cluster_arn=cluster_arn,
                launch_type=svc.get("launchType"),
                desired_count=svc.get("desiredCount", 0),
                running_count=svc.get("runningCount", 0),
            ),
            tags=tags,
            creation_date=to_iso(svc.get("createdAt")),
        )

    def _collect_managed_clusters(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.eks_client.get_paginator("list_clusters")

        for page in paginator.paginate():
            for name in page.get("clusters", []):
                cluster = self.attempt(
                    "describe_cluster",
                    lambda: self.eks_client.describe_cluster(name=name)["cluster"],
                    default=None,
                ) or {}
                vpc_config = cluster.get("resourcesVpcConfig", {})
                resources.append(
                    Resource(
                        resource_id=name,
                        name=name,
                        resource_type=ResourceType.MANAGED_CLUSTER,
                        region=self.region,
                        state=cluster.get("status", "unknown"),
                        details=ManagedClusterDetails(
                            version=cluster.get("version"),
                            endpoint_public_access=vpc_config.get("endpointPublicAccess"),
                            role_arn=cluster.get("roleArn"),
                        ),
                        tags=dict(cluster.get("tags") or {}),
                        creation_date=to_iso(cluster.get("createdAt")),
                    )
                )

        return resources
