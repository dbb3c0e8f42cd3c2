"""
Core Infrastructure Components
==============================

- :class:`AWSClient` - AWS sessions, clients and role assumption
- :class:`BaseCollector` - Base class for resource collectors
- :class:`RegionManager` - Region resolution and parallel fan-out
- Exception hierarchy, settings and logging

The scan orchestrator lives in :mod:`cloudhygiene.core.orchestrator` and
is imported from there directly.

Example
-------
>>> from cloudhygiene.core import AWSClient, RegionManager
>>>
>>> client = AWSClient(region="us-east-1", profile="production")
>>> manager = RegionManager(client, max_workers=10)
>>> manager.resolve_regions().regions
['ap-northeast-1', ...]
"""

from cloudhygiene.core.aws_client import AWSClient, CredentialBundle
from cloudhygiene.core.base_collector import BaseCollector, CollectorResult, collect_into
from cloudhygiene.core.config import Settings, get_settings
from cloudhygiene.core.exceptions import (
    AWSClientError,
    CloudHygieneError,
    CollectionError,
    CredentialsError,
    NotificationError,
    PersistenceError,
    RegionError,
    ServiceError,
    SetupError,
)
from cloudhygiene.core.region_manager import RegionManager, RegionResolution

__all__ = [
    # Client
    "AWSClient",
    "CredentialBundle",
    # Collector base
    "BaseCollector",
    "CollectorResult",
    "collect_into",
    # Settings
    "Settings",
    "get_settings",
    # Region management
    "RegionManager",
    "RegionResolution",
    # Exceptions
    "CloudHygieneError",
    "AWSClientError",
    "ServiceError",
    "SetupError",
    "CredentialsError",
    "RegionError",
    "CollectionError",
    "PersistenceError",
    "NotificationError",
]
