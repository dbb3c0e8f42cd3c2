"""
Network Collector Module
========================

Collects security groups, VPCs, subnets, NAT gateways, load balancers,
VPN connections and transit gateways for one region.

Security group ingress permissions are normalised to ``FirewallRule``
records so the scoring rules can ask whether a given port is reachable
from any address without touching the raw EC2 response shape.

Example
-------
>>> collector = NetworkCollector(AWSClient(region="eu-west-1"))
>>> result = collector.collect()
>>> groups = [r for r in result.resources if r.firewall is not None]
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Tuple

from cloudhygiene.core.base_collector import BaseCollector, tags_to_dict
from cloudhygiene.models.base import to_iso
from cloudhygiene.models.resource import (
    FirewallDetails,
    FirewallRule,
    LoadBalancerDetails,
    NatGatewayDetails,
    NetworkDetails,
    Resource,
    ResourceType,
    SubnetDetails,
    TransitGatewayDetails,
    VpnConnectionDetails,
)

# Module logger
logger = logging.getLogger(__name__)


def normalize_permission(permission: Dict[str, Any]) -> FirewallRule:
    """
    Convert one EC2 ``IpPermissions`` entry into a ``FirewallRule``.

    Example
    -------
    >>> normalize_permission({
    ...     "IpProtocol": "tcp", "FromPort": 22, "ToPort": 22,
    ...     "IpRanges": [{"CidrIp": "0.0.0.0/0"}],
    ... }).opens_port_to_world(22)
    True
    """
    return FirewallRule(
        protocol=str(permission.get("IpProtocol", "-1")),
        from_port=permission.get("FromPort"),
        to_port=permission.get("ToPort"),
        cidr_ranges=[
            r["CidrIp"] for r in permission.get("IpRanges", []) if "CidrIp" in r
        ],
        ipv6_ranges=[
            r["CidrIpv6"] for r in permission.get("Ipv6Ranges", []) if "CidrIpv6" in r
        ],
    )


class NetworkCollector(BaseCollector):
    """Collector for VPC networking resources and load balancers."""

    service = "network"

    def __init__(self, aws_client) -> None:
        super().__init__(aws_client)
        self._ec2_client = None
        self._elbv2_client = None

    @property
    def ec2_client(self):
        if self._ec2_client is None:
            self._ec2_client = self.aws_client.get_ec2_client()
        return self._ec2_client

    @property
    def elbv2_client(self):
        if self._elbv2_client is None:
            self._elbv2_client = self.aws_client.get_elbv2_client()
        return self._elbv2_client

    def get_operations(self) -> List[Tuple[str, Callable[[], List[Resource]]]]:
        return [
            ("describe_security_groups", self._collect_security_groups),
            ("describe_vpcs", self._collect_vpcs),
            ("describe_subnets", self._collect_subnets),
            ("describe_nat_gateways", self._collect_nat_gateways),
            ("describe_load_balancers", self._collect_load_balancers),
            ("describe_vpn_connections", self._collect_vpn_connections),
            ("describe_transit_gateways", self._collect_transit_gateways),
        ]

    def _collect_security_groups(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.ec2_client.get_paginator("describe_security_groups")

        for page in paginator.paginate():
            for sg in page["SecurityGroups"]:
                tags = tags_to_dict(sg.get("Tags"))
                details = FirewallDetails(
                    group_name=sg.get("GroupName", ""),
                    description=sg.get("Description", ""),
                    vpc_id=sg.get("VpcId"),
                    ingress_rules=[
                        normalize_permission(p) for p in sg.get("IpPermissions", [])
                    ],
                )
                resources.append(
                    Resource(
                        resource_id=sg["GroupId"],
                        name=sg.get("GroupName", sg["GroupId"]),
                        resource_type=ResourceType.FIREWALL_RULE_SET,
                        region=self.region,
                        state="active",
                        details=details,
                        tags=tags,
                    )
                )

        return resources

    def _collect_vpcs(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.ec2_client.get_paginator("describe_vpcs")

        for page in paginator.paginate():
            for vpc in page["Vpcs"]:
                tags = tags_to_dict(vpc.get("Tags"))
                resources.append(
                    Resource(
                        resource_id=vpc["VpcId"],
                        name=tags.get("Name", vpc["VpcId"]),
                        resource_type=ResourceType.VIRTUAL_NETWORK,
                        region=self.region,
                        state=vpc.get("State", "unknown"),
                        details=NetworkDetails(
                            cidr_block=vpc.get("CidrBlock"),
                            is_default=vpc.get("IsDefault", False),
                        ),
                        tags=tags,
                    )
                )

        return resources

    def _collect_subnets(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.ec2_client.get_paginator("describe_subnets")

        for page in paginator.paginate():
            for subnet in page["Subnets"]:
                tags = tags_to_dict(subnet.get("Tags"))
                resources.append(
                    Resource(
                        resource_id=subnet["SubnetId"],
                        name=tags.get("Name", subnet["SubnetId"]),
                        resource_type=ResourceType.SUBNET,
                        region=self.region,
                        state=subnet.get("State", "unknown"),
                        details=SubnetDetails(
                            vpc_id=subnet.get("VpcId"),
                            cidr_block=subnet.get("CidrBlock"),
                            availability_zone=subnet.get("AvailabilityZone"),
                            available_ip_count=subnet.get("AvailableIpAddressCount"),
                            map_public_ip_on_launch=subnet.get("MapPublicIpOnLaunch", False),
                        ),
                        tags=tags,
                    )
                )

        return resources

    def _collect_nat_gateways(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.ec2_client.get_paginator("describe_nat_gateways")

        for page in paginator.paginate():
            for nat in page.get("NatGateways", []):
                state = nat.get("State", "unknown")
                if state == "deleted":
                    continue
                tags = tags_to_dict(nat.get("Tags"))
                resources.append(
                    Resource(
                        resource_id=nat["NatGatewayId"],
                        name=tags.get("Name", nat["NatGatewayId"]),
                        resource_type=ResourceType.NAT_GATEWAY,
                        region=self.region,
                        state=state,
                        details=NatGatewayDetails(
                            vpc_id=nat.get("VpcId"),
                            subnet_id=nat.get("SubnetId"),
                            connectivity_type=nat.get("ConnectivityType", "public"),
                        ),
                        tags=tags,
                        creation_date=to_iso(nat.get("CreateTime")),
                    )
                )

        return resources

    def _collect_load_balancers(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.elbv2_client.get_paginator("describe_load_balancers")

        for page in paginator.paginate():
            for lb in page.get("LoadBalancers", []):
                resources.append(
                    Resource(
                        resource_id=lb["LoadBalancerArn"],
                        name=lb.get("LoadBalancerName", ""),
                        resource_type=ResourceType.LOAD_BALANCER,
                        region=self.region,
                        state=lb.get("State", {}).get("Code", "unknown"),
                        details=LoadBalancerDetails(
                            lb_type=lb.get("Type", "application"),
                            scheme=lb.get("Scheme", ""),
                            dns_name=lb.get("DNSName", ""),
                            vpc_id=lb.get("VpcId"),
                        ),
                        creation_date=to_iso(lb.get("CreatedTime")),
                    )
                )

        return resources

    def _collect_vpn_connections(self) -> List[Resource]:
        resources: List[Resource] = []
        response = self.ec2_client.describe_vpn_connections()

        for vpn in response.get("VpnConnections", []):
            state = vpn.get("State", "unknown")
            if state == "deleted":
                continue
            tags = tags_to_dict(vpn.get("Tags"))
            resources.append(
                Resource(
                    resource_id=vpn["VpnConnectionId"],
                    name=tags.get("Name", vpn["VpnConnectionId"]),
                    resource_type=ResourceType.VPN_CONNECTION,
                    region=self.region,
                    state=state,
                    details=VpnConnectionDetails(
                        vpn_type=vpn.get("Type", ""),
                        customer_gateway_id=vpn.get("CustomerGatewayId"),
                        vpn_gateway_id=vpn.get("VpnGatewayId"),
                        transit_gateway_id=vpn.get("TransitGatewayId"),
                    ),
                    tags=tags,
                )
            )

        return resources

    def _collect_transit_gateways(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.ec2_client.get_paginator("describe_transit_gateways")

        for page in paginator.paginate():
            for tgw in page.get("TransitGateways", []):
                state = tgw.get("State", "unknown")
                if state == "deleted":
                    continue
                tags = tags_to_dict(tgw.get("Tags"))
                resources.append(
                    Resource(
                        resource_id=tgw["TransitGatewayId"],
                        name=tags.get("Name", tgw["TransitGatewayId"]),
                        resource_type=ResourceType.TRANSIT_GATEWAY,
                        region=self.region,
                        state=state,
                        details=TransitGatewayDetails(
                            owner_id=tgw.get("OwnerId"),
                            description=tgw.get("Description", ""),
                        ),
                        tags=tags,
                        creation_date=to_iso(tgw.get("CreationTime")),
                    )
                )

        return resources
