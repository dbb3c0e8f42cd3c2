"""
Resource Collectors
===================

One collector per service family. Regional collectors run once per
target region; global collectors run once per scan.

Regional
--------
ComputeCollector
    EC2 instances, EBS volumes, Elastic IPs.
NetworkCollector
    Security groups, VPCs, subnets, NAT gateways, load balancers,
    VPN connections, transit gateways.
DatabaseCollector
    RDS instances and clusters, DynamoDB tables.
ServerlessCollector
    Lambda functions, ECS services, EKS clusters.
MonitoringCollector
    CloudWatch log groups and alarms.

Global
------
StorageCollector
    S3 buckets.
IdentityCollector
    IAM users, roles and customer-managed policies.
CostCollector
    Cost Explorer totals.
"""

from cloudhygiene.collectors.compute_collector import ComputeCollector
from cloudhygiene.collectors.cost_collector import CostCollector
from cloudhygiene.collectors.database_collector import DatabaseCollector
from cloudhygiene.collectors.identity_collector import IdentityCollector
from cloudhygiene.collectors.monitoring_collector import MonitoringCollector
from cloudhygiene.collectors.network_collector import NetworkCollector
from cloudhygiene.collectors.serverless_collector import ServerlessCollector
from cloudhygiene.collectors.storage_collector import StorageCollector

REGIONAL_COLLECTORS = (
    ComputeCollector,
    NetworkCollector,
    DatabaseCollector,
    ServerlessCollector,
    MonitoringCollector,
)

GLOBAL_COLLECTORS = (
    StorageCollector,
    IdentityCollector,
    CostCollector,
)

__all__ = [
    "ComputeCollector",
    "CostCollector",
    "DatabaseCollector",
    "IdentityCollector",
    "MonitoringCollector",
    "NetworkCollector",
    "ServerlessCollector",
    "StorageCollector",
    "REGIONAL_COLLECTORS",
    "GLOBAL_COLLECTORS",
]
