"""
Entry Points
============

Event handlers for the two ways a scan is started:

- ``handle_scan_request``: on-demand scan, answers with a response envelope
- ``handle_scheduled_event``: scheduled pipeline run, returns nothing

Both build their collaborators from ``Settings`` unless they are passed in.

Response envelope
-----------------
::

    {"success": True, "data": {...scan...}}
    {"success": False, "error": {"code": ..., "message": ..., "details": {...}}}
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from cloudhygiene.alerts.engine import AlertEngine
from cloudhygiene.alerts.notifier import NotificationService
from cloudhygiene.core.aws_client import AWSClient
from cloudhygiene.core.config import Settings, get_settings
from cloudhygiene.core.exceptions import (
    CloudHygieneError,
    CredentialsError,
    RegionError,
    SetupError,
)
from cloudhygiene.core.logging import get_logger, new_correlation_id
from cloudhygiene.core.orchestrator import ScanOrchestrator
from cloudhygiene.models.alert import ScheduleConfig
from cloudhygiene.scheduler import run_scheduled_scan
from cloudhygiene.storage.dynamodb_store import Stores, create_stores

# Module logger
logger = logging.getLogger(__name__)


def success_response(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data}


def error_response(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details or {}},
    }


def error_code(error: CloudHygieneError) -> str:
    """
    Map an exception to its response error code.

    Example
    -------
    >>> error_code(CredentialsError("expired"))
    'CREDENTIALS_ERROR'
    """
    if isinstance(error, CredentialsError):
        return "CREDENTIALS_ERROR"
    if isinstance(error, RegionError):
        return "INVALID_REGION"
    if isinstance(error, SetupError):
        return "SETUP_ERROR"
    return "INTERNAL_ERROR"


def _base_client(settings: Settings) -> AWSClient:
    return AWSClient(
        region=settings.aws_region,
        profile=settings.aws_profile,
        max_retries=settings.max_retries,
        timeout=settings.request_timeout,
    )


def handle_scan_request(
    event: Dict[str, Any],
    orchestrator: Optional[ScanOrchestrator] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Run an on-demand scan.

    Parameters
    ----------
    event : dict
        ``{"userId": str, "roleArn": str (optional), "regions": list (optional)}``.
    orchestrator : ScanOrchestrator, optional
        Built from settings when omitted.
    settings : Settings, optional
        Defaults to ``get_settings()``.

    Returns
    -------
    dict
        Success envelope carrying the scan (errors included), or a failure
        envelope when the scan could not start.
    """
    user_id = event.get("userId")
    if not user_id:
        return error_response("INVALID_REQUEST", "userId is required")

    correlation_id = event.get("correlationId") or new_correlation_id()
    log = get_logger(__name__, correlation_id)

    try:
        if orchestrator is None:
            settings = settings or get_settings()
            client = _base_client(settings)
            orchestrator = ScanOrchestrator(
                client,
                scan_store=create_stores(client, settings).scans,
                settings=settings,
            )
        scan = orchestrator.run_scan(
            user_id=user_id,
            role_arn=event.get("roleArn"),
            regions=event.get("regions"),
            correlation_id=correlation_id,
        )
    except SetupError as e:
        log.error(f"Scan setup failed for {user_id}: {e.message}")
        return error_response(error_code(e), e.message, e.details)
    except CloudHygieneError as e:
        log.exception(f"Scan failed for {user_id}")
        return error_response(error_code(e), e.message, e.details)

    return success_response(scan.to_dict())


def handle_scheduled_event(
    event: Dict[str, Any],
    stores: Optional[Stores] = None,
    orchestrator: Optional[ScanOrchestrator] = None,
    alert_engine: Optional[AlertEngine] = None,
    settings: Optional[Settings] = None,
) -> None:
    """
    Run the scheduled pipeline for ``event["userId"]``.

    Failures are logged; nothing is returned to the scheduler.

    Raises
    ------
    SetupError
        Re-raised so the scheduler marks the invocation as failed.
    """
    user_id = event.get("userId")
    if not user_id:
        logger.error("Scheduled event without userId, ignoring")
        return None

    correlation_id = event.get("correlationId") or new_correlation_id()
    log = get_logger(__name__, correlation_id)
    settings = settings or get_settings()

    if stores is None or orchestrator is None or alert_engine is None:
        client = _base_client(settings)
        stores = stores or create_stores(client, settings)
        orchestrator = orchestrator or ScanOrchestrator(
            client, scan_store=stores.scans, settings=settings
        )
        alert_engine = alert_engine or AlertEngine(
            stores.alerts, NotificationService.from_settings(client, settings)
        )

    try:
        report = run_scheduled_scan(
            user_id,
            ScheduleConfig.from_dict(event.get("scheduleConfig")),
            stores,
            orchestrator,
            alert_engine,
            correlation_id=correlation_id,
        )
    except SetupError as e:
        log.error(f"Scheduled scan failed for {user_id}: {e.message}")
        raise

    if report is not None:
        log.info(f"Scheduled scan {report.scan_id} complete")
    return None
