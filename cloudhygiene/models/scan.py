"""
Scan Result Model
=================

The inventory snapshot produced by one scan run, together with its
non-fatal errors and optional cost data.

Classes
-------
ErrorKind
    Category of a recorded scan error.
ScanError
    One non-fatal failure, stored alongside the snapshot.
ScanSummary
    Resource counts by type and region.
CostData
    Cost Explorer totals for the last 30 days.
ScanResult
    Aggregate root for one scan.

Notes
-----
``ScanSummary.from_resources`` is the only way the orchestrator builds a
summary, so ``total_resources``, ``sum(by_type)`` and ``sum(by_region)``
always equal ``len(resources)``.
"""

from __future__ import annotations

import random
import string
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from cloudhygiene.models.base import format_timestamp, utc_now
from cloudhygiene.models.resource import Resource

SCAN_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_scan_id(now: Optional[datetime] = None) -> str:
    """
    Build a scan ID of the form ``scan_YYYYMMDD_xxxxxx``.

    Example
    -------
    >>> generate_scan_id()
    'scan_20240115_k3x9qa'
    """
    now = now or utc_now()
    suffix = "".join(random.choices(SCAN_ID_ALPHABET, k=6))
    return f"scan_{now.strftime('%Y%m%d')}_{suffix}"


class ErrorKind(str, Enum):
    COLLECTION = "collection_error"
    SETUP = "setup_error"
    PERSISTENCE = "persistence_error"


@dataclass(frozen=True)
class ScanError:
    """
    A non-fatal failure recorded inside a scan.

    Parameters
    ----------
    kind : ErrorKind
        Error category.
    service : str
        Collector service family or backing AWS service.
    region : str
        Region name or 'global'.
    message : str
        Error message.
    timestamp : str
        When the error occurred.
    operation : str, optional
        Sub-operation that failed (e.g. 'describe_volumes').
    """

    kind: ErrorKind
    service: str
    region: str
    message: str
    timestamp: str = field(default_factory=lambda: format_timestamp(utc_now()))
    operation: Optional[str] = None

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        service: str,
        region: str,
        kind: ErrorKind = ErrorKind.COLLECTION,
        operation: Optional[str] = None,
    ) -> ScanError:
        message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
        return cls(
            kind=kind,
            service=service,
            region=region,
            message=message,
            operation=operation,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "service": self.service,
            "region": self.region,
            "message": self.message,
            "timestamp": self.timestamp,
            "operation": self.operation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ScanError:
        return cls(
            kind=ErrorKind(data.get("kind", ErrorKind.COLLECTION.value)),
            service=data.get("service", "unknown"),
            region=data.get("region", "global"),
            message=data.get("message", ""),
            timestamp=data.get("timestamp") or format_timestamp(utc_now()),
            operation=data.get("operation"),
        )


@dataclass(frozen=True)
class ScanSummary:
    total_resources: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    by_region: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_resources(cls, resources: Iterable[Resource]) -> ScanSummary:
        """Count resources by type and by region in a single pass."""
        total = 0
        by_type: Counter = Counter()
        by_region: Counter = Counter()
        for resource in resources:
            total += 1
            by_type[resource.resource_type.value] += 1
            by_region[resource.region] += 1
        return cls(
            total_resources=total,
            by_type=dict(by_type),
            by_region=dict(by_region),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_resources": self.total_resources,
            "by_type": dict(self.by_type),
            "by_region": dict(self.by_region),
        }


@dataclass(frozen=True)
class CostData:
    """
    Cost Explorer totals (unblended cost, last 30 days).

    Parameters
    ----------
    estimated_monthly : float
        Total cost over the period.
    by_service, by_region, by_tag : dict
        Breakdowns; empty when the breakdown query failed.
    currency : str, default="USD"
        Cost unit reported by Cost Explorer.
    """

    estimated_monthly: float = 0.0
    by_service: Dict[str, float] = field(default_factory=dict)
    by_region: Dict[str, float] = field(default_factory=dict)
    by_tag: Dict[str, float] = field(default_factory=dict)
    currency: str = "USD"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "estimated_monthly": self.estimated_monthly,
            "by_service": dict(self.by_service),
            "by_region": dict(self.by_region),
            "by_tag": dict(self.by_tag),
            "currency": self.currency,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CostData:
        return cls(
            estimated_monthly=float(data.get("estimated_monthly", 0.0)),
            by_service={k: float(v) for k, v in (data.get("by_service") or {}).items()},
            by_region={k: float(v) for k, v in (data.get("by_region") or {}).items()},
            by_tag={k: float(v) for k, v in (data.get("by_tag") or {}).items()},
            currency=data.get("currency", "USD"),
        )


@dataclass
class ScanResult:
    """
    One complete inventory snapshot for a user.

    Parameters
    ----------
    scan_id : str
        Identifier (``scan_YYYYMMDD_xxxxxx``).
    user_id : str
        Owner of the scan.
    timestamp : str
        When the scan started.
    resources : list of Resource
        All collected resources, in no particular order.
    summary : ScanSummary
        Counts derived from ``resources``.
    cost_data : CostData, optional
        Cost totals; None when Cost Explorer was unavailable.
    errors : list of ScanError
        Non-fatal failures.
    regions : list of str
        Regions targeted by the scan.
    correlation_id : str, optional
        ID of the pipeline run that produced the scan.

    Examples
    --------
    >>> result = ScanResult.build(
    ...     scan_id="scan_20240115_abc123",
    ...     user_id="user-1",
    ...     resources=resources,
    ... )
    >>> result.summary.total_resources == len(result.resources)
    True
    """

    scan_id: str
    user_id: str
    timestamp: str
    resources: List[Resource]
    summary: ScanSummary
    cost_data: Optional[CostData] = None
    errors: List[ScanError] = field(default_factory=list)
    regions: List[str] = field(default_factory=list)
    correlation_id: Optional[str] = None

    @classmethod
    def build(
        cls,
        scan_id: str,
        user_id: str,
        resources: List[Resource],
        timestamp: Optional[str] = None,
        cost_data: Optional[CostData] = None,
        errors: Optional[List[ScanError]] = None,
        regions: Optional[List[str]] = None,
        correlation_id: Optional[str] = None,
    ) -> ScanResult:
        """Create a ScanResult whose summary is computed from ``resources``."""
        return cls(
            scan_id=scan_id,
            user_id=user_id,
            timestamp=timestamp or format_timestamp(utc_now()),
            resources=list(resources),
            summary=ScanSummary.from_resources(resources),
            cost_data=cost_data,
            errors=list(errors or []),
            regions=list(regions or []),
            correlation_id=correlation_id,
        )

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def estimated_monthly_cost(self) -> float:
        return self.cost_data.estimated_monthly if self.cost_data else 0.0

    def resources_by_type(self, resource_type) -> List[Resource]:
        return [r for r in self.resources if r.resource_type is resource_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "user_id": self.user_id,
            "timestamp": self.timestamp,
            "resources": [r.to_dict() for r in self.resources],
            "summary": self.summary.to_dict(),
            "cost_data": self.cost_data.to_dict() if self.cost_data else None,
            "errors": [e.to_dict() for e in self.errors],
            "regions": list(self.regions),
            "correlation_id": self.correlation_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ScanResult:
        """
        Rebuild a stored scan.

        The summary is recomputed from the resources rather than trusted
        from storage.
        """
        resources = [Resource.from_dict(r) for r in data.get("resources", [])]
        cost = data.get("cost_data")
        return cls.build(
            scan_id=data["scan_id"],
            user_id=data["user_id"],
            timestamp=data.get("timestamp"),
            resources=resources,
            cost_data=CostData.from_dict(cost) if cost else None,
            errors=[ScanError.from_dict(e) for e in data.get("errors", [])],
            regions=list(data.get("regions") or []),
            correlation_id=data.get("correlation_id"),
        )

    def __repr__(self) -> str:
        return (
            f"ScanResult(scan_id='{self.scan_id}', user_id='{self.user_id}', "
            f"resources={len(self.resources)}, errors={len(self.errors)})"
        )
