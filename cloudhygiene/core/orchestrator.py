"""
Scan Orchestrator Module
========================

Runs one complete scan for a user:

1. Resolve credentials (fatal on failure)
2. Resolve target regions (discovery degrades to defaults)
3. Run the regional collectors, one parallel task per region
4. Run the global collectors once, as one more task
5. Merge everything into a ``ScanResult``
6. Persist it (a failure is recorded on the result, not raised)

Example
-------
>>> from cloudhygiene.core.orchestrator import ScanOrchestrator
>>>
>>> orchestrator = ScanOrchestrator(AWSClient(), scan_store=scan_store)
>>> scan = orchestrator.run_scan(
...     user_id="user-1",
...     role_arn="arn:aws:iam::123456789012:role/HygieneScanner",
...     regions=["us-east-1", "eu-west-1"],
... )
>>> print(scan.summary.total_resources, len(scan.errors))
"""

from __future__ import annotations

import functools
from typing import Callable, List, Optional, Sequence

from cloudhygiene.collectors import GLOBAL_COLLECTORS, REGIONAL_COLLECTORS, ComputeCollector
from cloudhygiene.core.aws_client import AWSClient, CredentialBundle
from cloudhygiene.core.base_collector import BaseCollector, CollectorResult, collect_into
from cloudhygiene.core.config import GLOBAL_REGION, Settings, get_settings
from cloudhygiene.core.exceptions import PersistenceError
from cloudhygiene.core.logging import get_logger, new_correlation_id
from cloudhygiene.core.region_manager import RegionManager
from cloudhygiene.models.base import format_timestamp, utc_now
from cloudhygiene.models.scan import ErrorKind, ScanError, ScanResult, generate_scan_id

CollectorFactory = Callable[[AWSClient], BaseCollector]


def collector_service(factory: CollectorFactory) -> str:
    """Service name of a collector class or ``functools.partial`` of one."""
    target = factory.func if isinstance(factory, functools.partial) else factory
    return getattr(target, "service", getattr(target, "__name__", "unknown"))


def default_regional_collectors(settings: Settings) -> List[CollectorFactory]:
    factories: List[CollectorFactory] = []
    for collector_cls in REGIONAL_COLLECTORS:
        if collector_cls is ComputeCollector:
            factories.append(
                functools.partial(
                    ComputeCollector, collect_utilization=settings.collect_utilization
                )
            )
        else:
            factories.append(collector_cls)
    return factories


class ScanOrchestrator:
    """
    Coordinates credential resolution, collection and persistence.

    Parameters
    ----------
    base_client : AWSClient
        Client for the scanning identity; its region is used for STS,
        region discovery and the global collectors.
    scan_store : ScanStore, optional
        Where finished scans are persisted. Nothing is persisted when None.
    settings : Settings, optional
        Runtime settings; defaults to ``get_settings()``.
    regional_collectors : sequence of callables, optional
        Factories ``(AWSClient) -> BaseCollector`` run once per region.
    global_collectors : sequence of callables, optional
        Factories run once per scan with region 'global'.
    max_workers : int, optional
        Thread pool size; defaults to ``settings.max_workers``.
    """

    def __init__(
        self,
        base_client: AWSClient,
        scan_store=None,
        settings: Optional[Settings] = None,
        regional_collectors: Optional[Sequence[CollectorFactory]] = None,
        global_collectors: Optional[Sequence[CollectorFactory]] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.base_client = base_client
        self.scan_store = scan_store
        self.settings = settings or get_settings()
        self.regional_collectors = list(
            regional_collectors
            if regional_collectors is not None
            else default_regional_collectors(self.settings)
        )
        self.global_collectors = list(
            global_collectors if global_collectors is not None else GLOBAL_COLLECTORS
        )
        self.region_manager = RegionManager(
            base_client, max_workers=max_workers or self.settings.max_workers
        )

    # =========================================================================
    # Setup
    # =========================================================================

    def resolve_credentials(
        self,
        user_id: str,
        role_arn: Optional[str] = None,
    ) -> Optional[CredentialBundle]:
        """
        Obtain the credentials to scan with.

        Returns
        -------
        CredentialBundle or None
            Assumed-role credentials, or None when the ambient identity is
            used (after validating it).

        Raises
        ------
        CredentialsError
            If the role cannot be assumed or the ambient identity is invalid.
        """
        if role_arn:
            return self.base_client.assume_role(
                role_arn,
                session_name=f"{self.settings.role_session_prefix}-{user_id}",
                duration_seconds=self.settings.role_session_duration,
            )
        self.base_client.validate_credentials()
        return None

    # =========================================================================
    # Collection
    # =========================================================================

    def _run_collectors(
        self,
        factories: Sequence[CollectorFactory],
        client: AWSClient,
        scope: str,
    ) -> CollectorResult:
        combined = CollectorResult()
        for factory in factories:
            service = collector_service(factory)
            outcome = collect_into(
                combined.errors,
                service,
                scope,
                lambda: factory(client).collect(),
                default=None,
            )
            if outcome is not None:
                combined.merge(outcome)
        return combined

    def _collect_region(
        self,
        region: str,
        credentials: Optional[CredentialBundle],
    ) -> CollectorResult:
        client = self.region_manager.get_client_for_region(region, credentials)
        return self._run_collectors(self.regional_collectors, client, region)

    def _collect_global(self, credentials: Optional[CredentialBundle]) -> CollectorResult:
        client = self.region_manager.get_client_for_region(
            self.base_client.region, credentials
        )
        return self._run_collectors(self.global_collectors, client, GLOBAL_REGION)

    # =========================================================================
    # Entry Point
    # =========================================================================

    def run_scan(
        self,
        user_id: str,
        role_arn: Optional[str] = None,
        regions: Optional[Sequence[str]] = None,
        correlation_id: Optional[str] = None,
        progress_callback: Optional[Callable[[str, str], None]] = None,
    ) -> ScanResult:
        """
        Run a full scan.

        Parameters
        ----------
        user_id : str
            Owner of the scan.
        role_arn : str, optional
            Role to assume in the target account; the ambient identity is
            used when omitted.
        regions : sequence of str, optional
            Explicit region list; discovered when omitted.
        correlation_id : str, optional
            ID threaded through the logs of this run; generated if omitted.
        progress_callback : callable, optional
            Called with (scope, status) as region tasks progress.

        Returns
        -------
        ScanResult
            Complete result, including any non-fatal errors.

        Raises
        ------
        SetupError
            If credentials cannot be resolved or an explicit region is invalid.
        """
        correlation_id = correlation_id or new_correlation_id()
        log = get_logger(__name__, correlation_id)
        started = utc_now()
        scan_id = generate_scan_id(started)

        log.info(f"Starting scan {scan_id} for user {user_id}")

        credentials = self.resolve_credentials(user_id, role_arn)
        resolution = self.region_manager.resolve_regions(regions)
        log.info(f"Scanning {len(resolution.regions)} regions")

        tasks = {
            region: functools.partial(self._collect_region, region, credentials)
            for region in resolution.regions
        }
        if self.global_collectors:
            tasks[GLOBAL_REGION] = functools.partial(self._collect_global, credentials)

        results = self.region_manager.run_tasks(tasks, progress_callback)

        merged = CollectorResult()
        if resolution.error is not None:
            merged.errors.append(resolution.error)
        for scope in list(resolution.regions) + [GLOBAL_REGION]:
            if scope in results:
                merged.merge(results[scope])

        scan = ScanResult.build(
            scan_id=scan_id,
            user_id=user_id,
            timestamp=format_timestamp(started),
            resources=merged.resources,
            cost_data=merged.cost_data,
            errors=merged.errors,
            regions=resolution.regions,
            correlation_id=correlation_id,
        )

        self._persist(scan, log)

        log.info(
            f"Scan {scan_id} complete: {scan.summary.total_resources} resources, "
            f"{len(scan.errors)} errors"
        )
        return scan

    def _persist(self, scan: ScanResult, log) -> None:
        if self.scan_store is None:
            return
        try:
            self.scan_store.put_scan(scan)
            log.info(f"Persisted scan {scan.scan_id}")
        except PersistenceError as e:
            log.error(f"Failed to persist scan {scan.scan_id}: {e.message}")
            scan.errors.append(
                ScanError.from_exception(
                    e,
                    service="dynamodb",
                    region=GLOBAL_REGION,
                    kind=ErrorKind.PERSISTENCE,
                    operation="put_scan",
                )
            )

    def __repr__(self) -> str:
        return (
            f"ScanOrchestrator(regional={len(self.regional_collectors)}, "
            f"global={len(self.global_collectors)})"
        )
