"""
Resource Model
==============

One discovered cloud object, frozen at collection time.

Each ``ResourceType`` has its own detail record. The scoring rules read
details only through the typed accessors on ``Resource`` (``instance``,
``volume``, ...) which return None for any other kind, so a rule can never
confuse one resource kind's fields with another's.

Example
-------
>>> from cloudhygiene.models import Resource, ResourceType, VolumeDetails
>>>
>>> vol = Resource(
...     resource_id="vol-0abc",
...     name="data",
...     resource_type=ResourceType.BLOCK_VOLUME,
...     region="us-east-1",
...     state="available",
...     details=VolumeDetails(size_gb=100, encrypted=False),
... )
>>> vol.volume.is_attached
False
>>> vol.instance is None
True
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class ResourceType(str, Enum):
    """Closed set of resource kinds."""

    COMPUTE_INSTANCE = "compute_instance"
    BLOCK_VOLUME = "block_volume"
    FLOATING_IP = "floating_ip"
    FIREWALL_RULE_SET = "firewall_rule_set"
    VIRTUAL_NETWORK = "virtual_network"
    SUBNET = "subnet"
    NAT_GATEWAY = "nat_gateway"
    LOAD_BALANCER = "load_balancer"
    VPN_CONNECTION = "vpn_connection"
    TRANSIT_GATEWAY = "transit_gateway"
    DB_INSTANCE = "db_instance"
    DB_CLUSTER = "db_cluster"
    WIDE_TABLE = "wide_table"
    FUNCTION = "function"
    CONTAINER_SERVICE = "container_service"
    MANAGED_CLUSTER = "managed_cluster"
    OBJECT_BUCKET = "object_bucket"
    IDENTITY_PRINCIPAL = "identity_principal"
    IDENTITY_ROLE = "identity_role"
    IDENTITY_POLICY = "identity_policy"
    LOG_GROUP = "log_group"
    ALARM = "alarm"


# =============================================================================
# Detail Records
# =============================================================================


@dataclass(frozen=True)
class InstanceDetails:
    instance_type: str = ""
    platform: Optional[str] = None
    launch_time: Optional[str] = None
    monitoring_state: str = "disabled"
    stopped_at: Optional[str] = None
    cpu_utilization: Optional[float] = None
    vpc_id: Optional[str] = None
    subnet_id: Optional[str] = None
    public_ip: Optional[str] = None
    security_group_ids: List[str] = field(default_factory=list)

    @property
    def detailed_monitoring(self) -> bool:
        return self.monitoring_state == "enabled"


@dataclass(frozen=True)
class VolumeDetails:
    size_gb: int = 0
    volume_type: str = ""
    encrypted: Optional[bool] = None
    iops: Optional[int] = None
    attached_instance_ids: List[str] = field(default_factory=list)
    # None when the snapshot lookup failed
    has_snapshot: Optional[bool] = None

    @property
    def is_attached(self) -> bool:
        return len(self.attached_instance_ids) > 0


@dataclass(frozen=True)
class FloatingIpDetails:
    public_ip: Optional[str] = None
    allocation_id: Optional[str] = None
    association_id: Optional[str] = None
    instance_id: Optional[str] = None
    network_interface_id: Optional[str] = None
    domain: str = "vpc"

    @property
    def is_associated(self) -> bool:
        return bool(self.association_id or self.instance_id)


WORLD_CIDRS = ("0.0.0.0/0", "::/0")


@dataclass(frozen=True)
class FirewallRule:
    """
    One normalised ingress permission.

    ``protocol == "-1"`` means all traffic; its ports are None and it
    covers every port.
    """

    protocol: str
    from_port: Optional[int] = None
    to_port: Optional[int] = None
    cidr_ranges: List[str] = field(default_factory=list)
    ipv6_ranges: List[str] = field(default_factory=list)

    @property
    def is_open_to_world(self) -> bool:
        return any(c in WORLD_CIDRS for c in self.cidr_ranges + self.ipv6_ranges)

    def covers_port(self, port: int) -> bool:
        if self.protocol == "-1":
            return True
        if self.from_port is None or self.to_port is None:
            return False
        return self.from_port <= port <= self.to_port

    def opens_port_to_world(self, port: int) -> bool:
        return self.is_open_to_world and self.covers_port(port)


@dataclass(frozen=True)
class FirewallDetails:
    group_name: str = ""
    description: str = ""
    vpc_id: Optional[str] = None
    ingress_rules: List[FirewallRule] = field(default_factory=list)

    def first_world_open_port(self, ports) -> Optional[int]:
        """Return the first of ``ports`` reachable from any address, if any."""
        for port in ports:
            if any(rule.opens_port_to_world(port) for rule in self.ingress_rules):
                return port
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FirewallDetails:
        rules = [FirewallRule(**r) for r in data.get("ingress_rules", [])]
        return cls(**{**data, "ingress_rules": rules})


@dataclass(frozen=True)
class NetworkDetails:
    cidr_block: Optional[str] = None
    is_default: bool = False


@dataclass(frozen=True)
class SubnetDetails:
    vpc_id: Optional[str] = None
    cidr_block: Optional[str] = None
    availability_zone: Optional[str] = None
    available_ip_count: Optional[int] = None
    map_public_ip_on_launch: bool = False


@dataclass(frozen=True)
class NatGatewayDetails:
    vpc_id: Optional[str] = None
    subnet_id: Optional[str] = None
    connectivity_type: str = "public"


@dataclass(frozen=True)
class LoadBalancerDetails:
    lb_type: str = "application"
    scheme: str = ""
    dns_name: str = ""
    vpc_id: Optional[str] = None


@dataclass(frozen=True)
class VpnConnectionDetails:
    vpn_type: str = ""
    customer_gateway_id: Optional[str] = None
    vpn_gateway_id: Optional[str] = None
    transit_gateway_id: Optional[str] = None


@dataclass(frozen=True)
class TransitGatewayDetails:
    owner_id: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class DatabaseDetails:
    engine: str = ""
    engine_version: str = ""
    instance_class: str = ""
    storage_encrypted: Optional[bool] = None
    backup_retention_period: int = 0
    multi_az: bool = False
    publicly_accessible: bool = False
    cluster_id: Optional[str] = None


@dataclass(frozen=True)
class DatabaseClusterDetails:
    engine: str = ""
    engine_version: str = ""
    storage_encrypted: Optional[bool] = None
    backup_retention_period: int = 0
    members: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class TableDetails:
    status: str = ""
    item_count: int = 0
    size_bytes: int = 0
    billing_mode: str = "PROVISIONED"


@dataclass(frozen=True)
class FunctionDetails:
    runtime: Optional[str] = None
    memory_mb: int = 0
    timeout_seconds: int = 0
    code_size: int = 0
    last_modified: Optional[str] = None


@dataclass(frozen=True)
class ContainerServiceDetails:
    cluster_arn: str = ""
    launch_type: Optional[str] = None
    desired_count: int = 0
    running_count: int = 0


@dataclass(frozen=True)
class ManagedClusterDetails:
    version: Optional[str] = None
    endpoint_public_access: Optional[bool] = None
    role_arn: Optional[str] = None


@dataclass(frozen=True)
class BucketDetails:
    location: str = "us-east-1"
    # None when the corresponding lookup failed
    encrypted: Optional[bool] = None
    encryption_algorithm: Optional[str] = None
    is_public: Optional[bool] = None


class PolicyStatementsMixin:
    """Wildcard-permission checks over a list of policy statements."""

    policy_statements: List[Dict[str, Any]]

    def has_wildcard_allow(self) -> bool:
        """True when any Allow statement grants Action "*" on Resource "*"."""
        for statement in self.policy_statements:
            if statement.get("Effect") != "Allow":
                continue
            if _contains_wildcard(statement.get("Action")) and _contains_wildcard(
                statement.get("Resource")
            ):
                return True
        return False


def _contains_wildcard(value: Union[str, List[str], None]) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value == "*"
    return "*" in value


@dataclass(frozen=True)
class PrincipalDetails(PolicyStatementsMixin):
    arn: str = ""
    # None when the MFA lookup failed
    mfa_enabled: Optional[bool] = None
    password_last_used: Optional[str] = None
    policy_statements: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class RoleDetails(PolicyStatementsMixin):
    arn: str = ""
    path: str = "/"
    policy_statements: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class PolicyDetails(PolicyStatementsMixin):
    arn: str = ""
    default_version_id: Optional[str] = None
    attachment_count: int = 0
    policy_statements: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class LogGroupDetails:
    retention_days: Optional[int] = None
    stored_bytes: int = 0


@dataclass(frozen=True)
class AlarmDetails:
    metric_name: Optional[str] = None
    namespace: Optional[str] = None
    actions_enabled: bool = True


ResourceDetails = Union[
    InstanceDetails,
    VolumeDetails,
    FloatingIpDetails,
    FirewallDetails,
    NetworkDetails,
    SubnetDetails,
    NatGatewayDetails,
    LoadBalancerDetails,
    VpnConnectionDetails,
    TransitGatewayDetails,
    DatabaseDetails,
    DatabaseClusterDetails,
    TableDetails,
    FunctionDetails,
    ContainerServiceDetails,
    ManagedClusterDetails,
    BucketDetails,
    PrincipalDetails,
    RoleDetails,
    PolicyDetails,
    LogGroupDetails,
    AlarmDetails,
]

DETAILS_BY_TYPE = {
    ResourceType.COMPUTE_INSTANCE: InstanceDetails,
    ResourceType.BLOCK_VOLUME: VolumeDetails,
    ResourceType.FLOATING_IP: FloatingIpDetails,
    ResourceType.FIREWALL_RULE_SET: FirewallDetails,
    ResourceType.VIRTUAL_NETWORK: NetworkDetails,
    ResourceType.SUBNET: SubnetDetails,
    ResourceType.NAT_GATEWAY: NatGatewayDetails,
    ResourceType.LOAD_BALANCER: LoadBalancerDetails,
    ResourceType.VPN_CONNECTION: VpnConnectionDetails,
    ResourceType.TRANSIT_GATEWAY: TransitGatewayDetails,
    ResourceType.DB_INSTANCE: DatabaseDetails,
    ResourceType.DB_CLUSTER: DatabaseClusterDetails,
    ResourceType.WIDE_TABLE: TableDetails,
    ResourceType.FUNCTION: FunctionDetails,
    ResourceType.CONTAINER_SERVICE: ContainerServiceDetails,
    ResourceType.MANAGED_CLUSTER: ManagedClusterDetails,
    ResourceType.OBJECT_BUCKET: BucketDetails,
    ResourceType.IDENTITY_PRINCIPAL: PrincipalDetails,
    ResourceType.IDENTITY_ROLE: RoleDetails,
    ResourceType.IDENTITY_POLICY: PolicyDetails,
    ResourceType.LOG_GROUP: LogGroupDetails,
    ResourceType.ALARM: AlarmDetails,
}


def details_from_dict(resource_type: ResourceType, data: Optional[Dict[str, Any]]):
    """Rebuild the typed detail record for ``resource_type`` from stored data."""
    details_cls = DETAILS_BY_TYPE[resource_type]
    data = data or {}
    if hasattr(details_cls, "from_dict"):
        return details_cls.from_dict(data)
    known = details_cls.__dataclass_fields__
    return details_cls(**{k: v for k, v in data.items() if k in known})


# =============================================================================
# Resource
# =============================================================================


@dataclass(frozen=True)
class Resource:
    """
    A single discovered cloud object.

    Parameters
    ----------
    resource_id : str
        Provider identifier, unique within one snapshot.
    name : str
        Display name (Name tag or provider name).
    resource_type : ResourceType
        Kind of resource; determines the type of ``details``.
    region : str
        Region name, or 'global' for account-wide services.
    state : str
        Provider lifecycle state. The comparison engine treats a state
        change as the only signal that a resource changed.
    details : ResourceDetails
        Typed per-kind attributes.
    tags : dict
        Tag key/value pairs.
    creation_date : str, optional
        ISO-8601 creation timestamp when the provider reports one.
    """

    resource_id: str
    name: str
    resource_type: ResourceType
    region: str
    state: str
    details: ResourceDetails
    tags: Dict[str, str] = field(default_factory=dict)
    creation_date: Optional[str] = None

    def __post_init__(self) -> None:
        expected = DETAILS_BY_TYPE[self.resource_type]
        if not isinstance(self.details, expected):
            raise TypeError(
                f"{self.resource_type.value} requires {expected.__name__}, "
                f"got {type(self.details).__name__}"
            )

    # -------------------------------------------------------------------------
    # Typed accessors
    # -------------------------------------------------------------------------

    def _details_if(self, resource_type: ResourceType):
        return self.details if self.resource_type is resource_type else None

    @property
    def instance(self) -> Optional[InstanceDetails]:
        return self._details_if(ResourceType.COMPUTE_INSTANCE)

    @property
    def volume(self) -> Optional[VolumeDetails]:
        return self._details_if(ResourceType.BLOCK_VOLUME)

    @property
    def floating_ip(self) -> Optional[FloatingIpDetails]:
        return self._details_if(ResourceType.FLOATING_IP)

    @property
    def firewall(self) -> Optional[FirewallDetails]:
        return self._details_if(ResourceType.FIREWALL_RULE_SET)

    @property
    def database(self) -> Optional[DatabaseDetails]:
        return self._details_if(ResourceType.DB_INSTANCE)

    @property
    def database_cluster(self) -> Optional[DatabaseClusterDetails]:
        return self._details_if(ResourceType.DB_CLUSTER)

    @property
    def bucket(self) -> Optional[BucketDetails]:
        return self._details_if(ResourceType.OBJECT_BUCKET)

    @property
    def principal(self) -> Optional[PrincipalDetails]:
        return self._details_if(ResourceType.IDENTITY_PRINCIPAL)

    @property
    def policy_holder(self) -> Optional[PolicyStatementsMixin]:
        """Details of any identity kind that carries policy statements."""
        if self.resource_type in (
            ResourceType.IDENTITY_PRINCIPAL,
            ResourceType.IDENTITY_ROLE,
            ResourceType.IDENTITY_POLICY,
        ):
            return self.details
        return None

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "name": self.name,
            "resource_type": self.resource_type.value,
            "region": self.region,
            "state": self.state,
            "creation_date": self.creation_date,
            "tags": dict(self.tags),
            "details": asdict(self.details),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Resource:
        resource_type = ResourceType(data["resource_type"])
        return cls(
            resource_id=data["resource_id"],
            name=data.get("name", ""),
            resource_type=resource_type,
            region=data.get("region", "global"),
            state=data.get("state", "unknown"),
            details=details_from_dict(resource_type, data.get("details")),
            tags=dict(data.get("tags") or {}),
            creation_date=data.get("creation_date"),
        )

    def __repr__(self) -> str:
        return (
            f"Resource(id='{self.resource_id}', "
            f"type='{self.resource_type.value}', "
            f"region='{self.region}', state='{self.state}')"
        )
