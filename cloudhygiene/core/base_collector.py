"""
Base Collector Module
=====================

Provides the abstract base class for all resource collectors and the
single error-isolation combinator they share.

Classes
-------
CollectorResult
    Resources and errors produced by one collector run.
BaseCollector
    Abstract base class for service-family collectors.

Functions
---------
collect_into
    Run a callable, recording any exception as a ``CollectionError`` turned
    into a ``ScanError``.

Example
-------
>>> from cloudhygiene.core.base_collector import BaseCollector
>>>
>>> class QueueCollector(BaseCollector):
...     service = "messaging"
...
...     def get_operations(self):
...         return [("list_queues", self._collect_queues)]
...
...     def _collect_queues(self):
...         return []

Notes
-----
``collect()`` never raises. Each operation returned by
``get_operations()`` runs through ``collect_into`` so one failing API
call becomes one ``ScanError`` and the remaining operations still run.
Per-item enrichment inside an operation uses ``self.attempt`` for the
same isolation at item level.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from cloudhygiene.core.config import GLOBAL_REGION
from cloudhygiene.core.exceptions import CollectionError
from cloudhygiene.models.resource import Resource
from cloudhygiene.models.scan import CostData, ErrorKind, ScanError

# Module logger
logger = logging.getLogger(__name__)

T = TypeVar("T")


def collect_into(
    errors: List[ScanError],
    service: str,
    region: str,
    func: Callable[[], T],
    operation: Optional[str] = None,
    default: Any = None,
    kind: ErrorKind = ErrorKind.COLLECTION,
) -> T:
    """
    Run ``func`` and capture any exception into ``errors``.

    Parameters
    ----------
    errors : list of ScanError
        Accumulator that receives one record on failure.
    service : str
        Service family recorded on the error.
    region : str
        Region name or 'global'.
    func : callable
        Zero-argument callable to run.
    operation : str, optional
        Sub-operation name recorded on the error.
    default : any, optional
        Value returned when ``func`` raises.
    kind : ErrorKind, default=ErrorKind.COLLECTION
        Category recorded on the error.

    Returns
    -------
    any
        ``func()`` on success, ``default`` on failure.

    Example
    -------
    >>> errors = []
    >>> volumes = collect_into(errors, "compute", "us-east-1",
    ...                        fetch_volumes, operation="describe_volumes",
    ...                        default=[])
    """
    try:
        return func()
    except Exception as e:
        failure = CollectionError(
            getattr(e, "message", None) or str(e) or e.__class__.__name__,
            service=service,
            region=region,
            operation=operation,
            details={"error_type": e.__class__.__name__},
        )
        errors.append(
            ScanError.from_exception(
                failure,
                service=failure.service,
                region=failure.region,
                kind=kind,
                operation=failure.operation,
            )
        )
        logger.warning(f"Collection failed: {failure.to_dict()}")
        return default


def tags_to_dict(tags: Optional[Iterable[Dict[str, str]]]) -> Dict[str, str]:
    """Convert an AWS ``[{"Key": k, "Value": v}]`` tag list to a dict."""
    return {t["Key"]: t.get("Value", "") for t in (tags or []) if "Key" in t}


@dataclass
class CollectorResult:
    resources: List[Resource] = field(default_factory=list)
    errors: List[ScanError] = field(default_factory=list)
    cost_data: Optional[CostData] = None

    def merge(self, other: CollectorResult) -> None:
        self.resources.extend(other.resources)
        self.errors.extend(other.errors)
        if other.cost_data is not None:
            self.cost_data = other.cost_data

    def __repr__(self) -> str:
        return (
            f"CollectorResult(resources={len(self.resources)}, "
            f"errors={len(self.errors)})"
        )


class BaseCollector(ABC):
    """
    Abstract base class for all resource collectors.

    Parameters
    ----------
    aws_client : AWSClient
        Client scoped to the target region (or the home region for
        global collectors).

    Attributes
    ----------
    service : str
        Service family name recorded on errors (class attribute).
    is_global : bool
        True for account-wide collectors (class attribute).
    region : str
        Region label put on resources and errors; 'global' for
        account-wide collectors.
    """

    service: str = "unknown"
    is_global: bool = False

    def __init__(self, aws_client) -> None:
        self.aws_client = aws_client
        self.region = GLOBAL_REGION if self.is_global else aws_client.region
        self.errors: List[ScanError] = []
        logger.debug(f"Initialized {self.__class__.__name__} for {self.region}")

    @abstractmethod
    def get_operations(self) -> List[Tuple[str, Callable[[], List[Resource]]]]:
        """
        Return the independent sub-operations of this collector.

        Returns
        -------
        list of (str, callable)
            Operation name and a zero-argument callable returning
            resources.
        """

    def attempt(
        self,
        operation: str,
        func: Callable[[], T],
        default: Any = None,
    ) -> T:
        """Run one enrichment call, recording a failure on this collector."""
        return collect_into(
            self.errors,
            self.service,
            self.region,
            func,
            operation=operation,
            default=default,
        )

    def collect(self) -> CollectorResult:
        """
        Run every operation and return the combined result.

        Returns
        -------
        CollectorResult
            All resources gathered plus one error per failed operation.
        """
        self.errors = []
        resources: List[Resource] = []

        for operation, fetch_func in self.get_operations():
            found = self.attempt(operation, fetch_func, default=[])
            resources.extend(found)
            logger.debug(f"{operation}: {len(found)} resources in {self.region}")

        logger.info(
            f"{self.service} collection complete in {self.region}: "
            f"{len(resources)} resources, {len(self.errors)} errors"
        )
        return CollectorResult(resources=resources, errors=list(self.errors))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(service='{self.service}', region='{self.region}')"
