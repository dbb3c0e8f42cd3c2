"""
Region Manager Module
=====================

Resolves the set of regions a scan targets and runs per-region work in
parallel.

This module handles:
- Validation of explicitly requested regions
- Discovery of enabled regions, with a fixed fallback set
- Parallel execution of one task per region using a thread pool

Classes
-------
RegionResolution
    Regions to scan plus the discovery error, if any.
RegionManager
    Region discovery and fan-out.

Example
-------
>>> from cloudhygiene.core.region_manager import RegionManager
>>>
>>> manager = RegionManager(AWSClient(region="us-east-1"), max_workers=8)
>>> resolution = manager.resolve_regions()
>>> results = manager.run_tasks(
...     {region: make_task(region) for region in resolution.regions}
... )

Notes
-----
``run_tasks`` waits for every task regardless of failures. Each task
owns its own ``AWSClient`` and result lists, and results are merged only
after all tasks have settled.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from cloudhygiene.core.aws_client import AWSClient, CredentialBundle
from cloudhygiene.core.base_collector import CollectorResult
from cloudhygiene.core.config import DEFAULT_REGIONS, GLOBAL_REGION
from cloudhygiene.core.exceptions import AWSClientError, RegionError
from cloudhygiene.models.scan import ErrorKind, ScanError

# Module logger
logger = logging.getLogger(__name__)

REGION_PATTERN = re.compile(r"^[a-z]{2,3}-[a-z]+-\d+$")
ENABLED_OPT_IN_STATUSES = ("opt-in-not-required", "opted-in")


def is_valid_region(name: str) -> bool:
    """
    Check that ``name`` looks like an AWS region.

    Example
    -------
    >>> is_valid_region("eu-west-1")
    True
    >>> is_valid_region("moon-base")
    False
    """
    return bool(REGION_PATTERN.match(name or ""))


@dataclass
class RegionResolution:
    regions: List[str]
    discovered: bool = False
    error: Optional[ScanError] = None


class RegionManager:
    """
    Manages region discovery and multi-region execution.

    Parameters
    ----------
    base_client : AWSClient
        Client used for region discovery (typically us-east-1).
    max_workers : int, default=10
        Maximum number of parallel region tasks.

    Examples
    --------
    >>> manager = RegionManager(AWSClient())
    >>> manager.discover_regions()
    ['ap-northeast-1', 'ap-south-1', ...]
    """

    def __init__(self, base_client: AWSClient, max_workers: int = 10) -> None:
        self.base_client = base_client
        self.max_workers = max_workers
        logger.debug(f"Initialized RegionManager with max_workers={max_workers}")

    def discover_regions(self) -> List[str]:
        """
        Fetch the regions enabled for the account.

        Returns
        -------
        list of str
            Sorted region names.

        Raises
        ------
        AWSClientError
            If the region list cannot be fetched.
        """
        try:
            ec2 = self.base_client.get_ec2_client()
            response = ec2.describe_regions(AllRegions=False)
        except Exception as e:
            raise AWSClientError(f"Failed to fetch AWS regions: {e}", service="ec2")

        regions = sorted(
            r["RegionName"]
            for r in response.get("Regions", [])
            if r.get("OptInStatus", "opt-in-not-required") in ENABLED_OPT_IN_STATUSES
        )
        logger.info(f"Discovered {len(regions)} enabled AWS regions")
        return regions

    def resolve_regions(self, explicit: Optional[Sequence[str]] = None) -> RegionResolution:
        """
        Decide which regions to scan.

        An explicit list wins. Otherwise enabled regions are discovered;
        an empty or failed discovery falls back to ``DEFAULT_REGIONS`` so
        the result is never empty.

        Parameters
        ----------
        explicit : sequence of str, optional
            Regions requested by the caller.

        Returns
        -------
        RegionResolution
            Regions plus a setup ``ScanError`` when discovery failed.

        Raises
        ------
        RegionError
            If an explicit region name is malformed.
        """
        if explicit:
            invalid = [r for r in explicit if not is_valid_region(r)]
            if invalid:
                raise RegionError(
                    f"Invalid region name(s): {', '.join(invalid)}",
                    details={"invalid_regions": invalid},
                )
            # Preserve order, drop duplicates
            return RegionResolution(regions=list(dict.fromkeys(explicit)))

        try:
            regions = self.discover_regions()
        except AWSClientError as e:
            logger.warning(f"Region discovery failed, using defaults: {e.message}")
            return RegionResolution(
                regions=list(DEFAULT_REGIONS),
                error=ScanError.from_exception(
                    e,
                    service="ec2",
                    region=GLOBAL_REGION,
                    kind=ErrorKind.SETUP,
                    operation="describe_regions",
                ),
            )

        if not regions:
            logger.warning("Region discovery returned no regions, using defaults")
            return RegionResolution(regions=list(DEFAULT_REGIONS))

        return RegionResolution(regions=regions, discovered=True)

    def get_client_for_region(
        self,
        region: str,
        credentials: Optional[CredentialBundle] = None,
    ) -> AWSClient:
        """Create an AWSClient for ``region`` carrying ``credentials``."""
        return self.base_client.with_region(region, credentials=credentials)

    @staticmethod
    def _notify(
        progress_callback: Optional[Callable[[str, str], None]],
        key: str,
        status: str,
    ) -> None:
        """Report progress; a failing callback never fails the task."""
        if not progress_callback:
            return
        try:
            progress_callback(key, status)
        except Exception as e:
            logger.warning(f"Progress callback failed for {key} ({status}): {e}")

    def _run_task(
        self,
        key: str,
        task: Callable[[], CollectorResult],
        progress_callback: Optional[Callable[[str, str], None]] = None,
    ) -> tuple:
        """
        Run one task (internal method).

        Returns
        -------
        tuple
            (key, CollectorResult)
        """
        self._notify(progress_callback, key, "scanning")
        try:
            result = task()
            status = "complete"
        except Exception as e:
            logger.error(f"Error scanning {key}: {e}")
            result = CollectorResult(
                errors=[ScanError.from_exception(e, service="orchestrator", region=key)]
            )
            status = "error"
        self._notify(progress_callback, key, status)
        return key, result

    def run_tasks(
        self,
        tasks: Dict[str, Callable[[], CollectorResult]],
        progress_callback: Optional[Callable[[str, str], None]] = None,
    ) -> Dict[str, CollectorResult]:
        """
        Run tasks in parallel and wait for all of them.

        Parameters
        ----------
        tasks : dict
            Mapping of key (region name or 'global') to a zero-argument
            task returning a CollectorResult.
        progress_callback : callable, optional
            Called with (key, status); status is one of 'scanning',
            'complete', 'error'.

        Returns
        -------
        dict
            Mapping of key to CollectorResult, one entry per task.
        """
        results: Dict[str, CollectorResult] = {}
        if not tasks:
            return results

        logger.info(f"Starting parallel scan of {len(tasks)} scopes")

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._run_task, key, task, progress_callback): key
                for key, task in tasks.items()
            }
            for future in as_completed(futures):
                key, result = future.result()
                results[key] = result
                if result.errors:
                    logger.debug(f"{key} finished with {len(result.errors)} errors")

        return results

    def __repr__(self) -> str:
        return (
            f"RegionManager(base_region='{self.base_client.region}', "
            f"max_workers={self.max_workers})"
        )
