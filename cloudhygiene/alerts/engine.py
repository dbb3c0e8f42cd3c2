"""
Alert Engine
============

Deduplicates, persists and dispatches alerts produced by the rules.

For each alert:

1. Suppress it when an alert with the same deduplication key was stored
   within the last 24 hours
2. Persist it (a failed write means the alert is not dispatched)
3. Dispatch it to every enabled channel
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from cloudhygiene.alerts.notifier import NotificationService
from cloudhygiene.core.exceptions import PersistenceError
from cloudhygiene.core.logging import get_logger
from cloudhygiene.models.alert import Alert, AlertConfig
from cloudhygiene.models.base import format_timestamp, utc_now

DEDUP_WINDOW = timedelta(hours=24)

STATUS_DISPATCHED = "dispatched"
STATUS_SUPPRESSED = "suppressed"
STATUS_FAILED = "failed"


@dataclass
class AlertOutcome:
    alert: Alert
    status: str
    failed_channels: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_id": self.alert.alert_id,
            "alert_type": self.alert.alert_type.value,
            "status": self.status,
            "failed_channels": list(self.failed_channels),
            "error": self.error,
        }


class AlertEngine:
    """
    Process alerts for delivery.

    Parameters
    ----------
    alert_store : AlertStore
        Alert history, used for deduplication and persistence.
    notifier : NotificationService
        Channel dispatcher.
    """

    def __init__(self, alert_store, notifier: NotificationService) -> None:
        self.alert_store = alert_store
        self.notifier = notifier

    def process(
        self,
        alerts: List[Alert],
        alert_config: AlertConfig,
        correlation_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[AlertOutcome]:
        """
        Deduplicate, persist and dispatch ``alerts``.

        Returns
        -------
        list of AlertOutcome
            One outcome per alert, in input order.

        Raises
        ------
        PersistenceError
            If the deduplication lookup itself fails.
        """
        log = get_logger(__name__, correlation_id)
        now = now or utc_now()
        since = format_timestamp(now - DEDUP_WINDOW)
        outcomes: List[AlertOutcome] = []

        for alert in alerts:
            if self.alert_store.has_recent(alert.user_id, alert.deduplication_key, since):
                log.info(f"Suppressed duplicate alert {alert.deduplication_key}")
                outcomes.append(AlertOutcome(alert=alert, status=STATUS_SUPPRESSED))
                continue

            try:
                self.alert_store.put_alert(alert)
            except PersistenceError as e:
                log.error(f"Failed to persist alert {alert.alert_id}: {e.message}")
                outcomes.append(
                    AlertOutcome(alert=alert, status=STATUS_FAILED, error=e.message)
                )
                continue

            result = self.notifier.dispatch(alert, alert_config)
            if result.failed:
                log.warning(
                    f"Alert {alert.alert_id} failed on channels: {', '.join(result.failed)}"
                )
            else:
                log.info(f"Dispatched alert {alert.alert_id} to {len(result.sent)} channels")
            outcomes.append(
                AlertOutcome(
                    alert=alert,
                    status=STATUS_DISPATCHED,
                    failed_channels=result.failed,
                )
            )

        return outcomes
