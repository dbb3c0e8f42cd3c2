"""Alert rules, deduplication and delivery."""

from cloudhygiene.alerts.engine import AlertEngine, AlertOutcome
from cloudhygiene.alerts.notifier import EmailChannel, NotificationService, SlackChannel
from cloudhygiene.alerts.rules import evaluate_alert_rules

__all__ = [
    "AlertEngine",
    "AlertOutcome",
    "EmailChannel",
    "NotificationService",
    "SlackChannel",
    "evaluate_alert_rules",
]
