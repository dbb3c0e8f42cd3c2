"""
Data Models
===========

Record types shared by every stage of the pipeline.

- :class:`Resource` and its typed detail records
- :class:`ScanResult`, :class:`ScanError`, :class:`CostData`
- :class:`ScoreResult`, :class:`Issue`, :class:`FixGuide`
- :class:`Delta`
- :class:`Alert` and the per-user configuration records
"""

from cloudhygiene.models.alert import (
    Alert,
    AlertConfig,
    AlertThresholds,
    AlertType,
    EmailChannelConfig,
    ScheduleConfig,
    ScheduleFrequency,
    SlackChannelConfig,
    UserConfig,
    deduplication_key,
    generate_alert_id,
)
from cloudhygiene.models.base import format_timestamp, parse_timestamp, utc_now
from cloudhygiene.models.delta import Delta
from cloudhygiene.models.resource import (
    AlarmDetails,
    BucketDetails,
    ContainerServiceDetails,
    DatabaseClusterDetails,
    DatabaseDetails,
    FirewallDetails,
    FirewallRule,
    FloatingIpDetails,
    FunctionDetails,
    InstanceDetails,
    LoadBalancerDetails,
    LogGroupDetails,
    ManagedClusterDetails,
    NatGatewayDetails,
    NetworkDetails,
    PolicyDetails,
    PrincipalDetails,
    Resource,
    ResourceType,
    RoleDetails,
    SubnetDetails,
    TableDetails,
    TransitGatewayDetails,
    VolumeDetails,
    VpnConnectionDetails,
)
from cloudhygiene.models.scan import (
    CostData,
    ErrorKind,
    ScanError,
    ScanResult,
    ScanSummary,
    generate_scan_id,
)
from cloudhygiene.models.score import (
    CategoryScore,
    FixGuide,
    Issue,
    ScoreBreakdown,
    ScoreResult,
    Severity,
)

__all__ = [
    "Alert",
    "AlertConfig",
    "AlertThresholds",
    "AlertType",
    "EmailChannelConfig",
    "ScheduleConfig",
    "ScheduleFrequency",
    "SlackChannelConfig",
    "UserConfig",
    "deduplication_key",
    "generate_alert_id",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
    "Delta",
    "AlarmDetails",
    "BucketDetails",
    "ContainerServiceDetails",
    "DatabaseClusterDetails",
    "DatabaseDetails",
    "FirewallDetails",
    "FirewallRule",
    "FloatingIpDetails",
    "FunctionDetails",
    "InstanceDetails",
    "LoadBalancerDetails",
    "LogGroupDetails",
    "ManagedClusterDetails",
    "NatGatewayDetails",
    "NetworkDetails",
    "PolicyDetails",
    "PrincipalDetails",
    "Resource",
    "ResourceType",
    "RoleDetails",
    "SubnetDetails",
    "TableDetails",
    "TransitGatewayDetails",
    "VolumeDetails",
    "VpnConnectionDetails",
    "CostData",
    "ErrorKind",
    "ScanError",
    "ScanResult",
    "ScanSummary",
    "generate_scan_id",
    "CategoryScore",
    "FixGuide",
    "Issue",
    "ScoreBreakdown",
    "ScoreResult",
    "Severity",
]
