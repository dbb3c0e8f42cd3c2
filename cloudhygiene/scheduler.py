"""
Scheduled Scan Pipeline
=======================

One scheduled run for one user: scan, score, compare with the previous
run, then evaluate and deliver alerts.

The previous scan is read before the new one is persisted, so the
comparison always sees the run that came before this one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from cloudhygiene.alerts.engine import AlertEngine, AlertOutcome
from cloudhygiene.alerts.rules import evaluate_alert_rules
from cloudhygiene.analysis.comparison import compare_scans
from cloudhygiene.core.exceptions import PersistenceError
from cloudhygiene.core.logging import get_logger, new_correlation_id
from cloudhygiene.core.orchestrator import ScanOrchestrator
from cloudhygiene.models.alert import ScheduleConfig
from cloudhygiene.models.delta import Delta
from cloudhygiene.models.scan import ScanResult
from cloudhygiene.models.score import ScoreResult
from cloudhygiene.scoring.calculator import calculate_hygiene_score
from cloudhygiene.storage.dynamodb_store import Stores


@dataclass
class ScheduledRunReport:
    scan_id: str
    score: ScoreResult
    delta: Delta
    outcomes: List[AlertOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "overall_score": self.score.overall_score,
            "delta": self.delta.to_dict(),
            "alerts": [outcome.to_dict() for outcome in self.outcomes],
        }


def _previous_score(
    stores: Stores,
    previous: Optional[ScanResult],
    log,
) -> Optional[ScoreResult]:
    if previous is None:
        return None
    try:
        stored = stores.scores.get_score(previous.scan_id)
    except PersistenceError as e:
        log.warning(f"Could not load score for {previous.scan_id}: {e.message}")
        stored = None
    if stored is not None:
        return stored
    log.info(f"Recomputing score for previous scan {previous.scan_id}")
    return calculate_hygiene_score(previous)


def run_scheduled_scan(
    user_id: str,
    schedule_config: ScheduleConfig,
    stores: Stores,
    orchestrator: ScanOrchestrator,
    alert_engine: AlertEngine,
    correlation_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[ScheduledRunReport]:
    """
    Run the full pipeline for one user.

    Parameters
    ----------
    user_id : str
        User to scan.
    schedule_config : ScheduleConfig
        Schedule from the triggering event; a disabled schedule is skipped.
    stores : Stores
        Scan, score, alert and user-config stores.
    orchestrator : ScanOrchestrator
        Runs the scan and persists it.
    alert_engine : AlertEngine
        Deduplicates and delivers alerts.
    correlation_id : str, optional
        ID threaded through every log line of this run.
    now : datetime, optional
        Reference time for scoring and alerts.

    Returns
    -------
    ScheduledRunReport or None
        None when the run was skipped.

    Raises
    ------
    SetupError
        If the scan cannot start (credentials, invalid regions).
    """
    correlation_id = correlation_id or new_correlation_id()
    log = get_logger(__name__, correlation_id)

    if not schedule_config.enabled:
        log.info(f"Schedule disabled for user {user_id}, skipping")
        return None

    user_config = stores.users.get_user_config(user_id)
    if user_config is None:
        log.warning(f"No configuration found for user {user_id}, skipping")
        return None

    previous = stores.scans.get_latest_scan(user_id)

    scan = orchestrator.run_scan(
        user_id=user_id,
        role_arn=user_config.role_arn,
        regions=user_config.regions or None,
        correlation_id=correlation_id,
    )

    score = calculate_hygiene_score(scan, now=now)
    try:
        stores.scores.put_score(score)
    except PersistenceError as e:
        log.error(f"Failed to persist score for {scan.scan_id}: {e.message}")

    previous_score = _previous_score(stores, previous, log)
    delta = compare_scans(scan, previous, score, previous_score)
    log.info(f"Comparison for {scan.scan_id}: {delta.summary}")

    alerts = evaluate_alert_rules(
        user_id, delta, score, previous_score, user_config.alert_config, now=now
    )
    outcomes = alert_engine.process(
        alerts, user_config.alert_config, correlation_id=correlation_id, now=now
    )

    log.info(
        f"Scheduled run for {user_id} finished: score {score.overall_score}, "
        f"{len(alerts)} alerts"
    )
    return ScheduledRunReport(
        scan_id=scan.scan_id,
        score=score,
        delta=delta,
        outcomes=outcomes,
    )
