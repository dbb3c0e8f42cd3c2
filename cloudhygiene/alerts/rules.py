"""
Alert Rules
===========

Three independent rules evaluated after every comparison:

- New security issues appeared
- The hygiene score dropped by at least the configured threshold
- The estimated monthly cost rose by more than the configured percentage

Each rule yields at most one alert per run. Evaluation has no side
effects; persistence and delivery happen in ``AlertEngine``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from cloudhygiene.models.alert import (
    Alert,
    AlertConfig,
    AlertType,
    deduplication_key,
    generate_alert_id,
)
from cloudhygiene.models.base import format_timestamp, utc_now
from cloudhygiene.models.delta import Delta
from cloudhygiene.models.score import ScoreResult, Severity

HIGH_SCORE_DROP = 20
HIGH_COST_INCREASE = 50


def _make_alert(
    user_id: str,
    alert_type: AlertType,
    severity: Severity,
    message: str,
    details: Dict[str, Any],
    alert_config: AlertConfig,
    now: datetime,
) -> Alert:
    return Alert(
        alert_id=generate_alert_id(),
        user_id=user_id,
        timestamp=format_timestamp(now),
        alert_type=alert_type,
        severity=severity,
        message=message,
        details=details,
        channels=alert_config.enabled_channels(),
        deduplication_key=deduplication_key(alert_type, user_id, now),
    )


def evaluate_alert_rules(
    user_id: str,
    delta: Delta,
    current_score: ScoreResult,
    previous_score: Optional[ScoreResult],
    alert_config: AlertConfig,
    now: Optional[datetime] = None,
) -> List[Alert]:
    """
    Evaluate the alert rules for one scheduled run.

    Parameters
    ----------
    user_id : str
        User the alerts belong to.
    delta : Delta
        Comparison of the current scan with the previous one.
    current_score : ScoreResult
        Score of the current scan.
    previous_score : ScoreResult, optional
        Score of the previous scan; the score-drop rule is skipped when None.
    alert_config : AlertConfig
        Thresholds and enabled channels.
    now : datetime, optional
        Alert timestamp and deduplication day; defaults to now (UTC).

    Returns
    -------
    list of Alert
        Zero to three alerts, in rule order.
    """
    now = now or utc_now()
    thresholds = alert_config.thresholds
    alerts: List[Alert] = []

    if delta.new_security_issues:
        issues = delta.new_security_issues
        alerts.append(
            _make_alert(
                user_id,
                AlertType.NEW_SECURITY_ISSUES,
                issues[0].severity,
                f"{len(issues)} new security issue(s) detected",
                {
                    "new_issues": [issue.to_dict() for issue in issues],
                    "change_summary": delta.summary,
                },
                alert_config,
                now,
            )
        )

    if previous_score is not None:
        drop = previous_score.overall_score - current_score.overall_score
        if drop > 0 and drop >= thresholds.hygiene_score_drop:
            alerts.append(
                _make_alert(
                    user_id,
                    AlertType.HYGIENE_SCORE_DROP,
                    Severity.HIGH if drop > HIGH_SCORE_DROP else Severity.MEDIUM,
                    f"Hygiene score dropped by {drop:.1f} points",
                    {
                        "previous_score": previous_score.overall_score,
                        "current_score": current_score.overall_score,
                        "score_change": -drop,
                        "change_summary": delta.summary,
                    },
                    alert_config,
                    now,
                )
            )

    if delta.cost_change > thresholds.cost_increase_percent:
        alerts.append(
            _make_alert(
                user_id,
                AlertType.COST_INCREASE,
                Severity.HIGH if delta.cost_change > HIGH_COST_INCREASE else Severity.MEDIUM,
                f"Estimated monthly cost increased by {delta.cost_change:.1f}%",
                {
                    "cost_change": delta.cost_change,
                    "cost_difference": delta.cost_difference,
                    "change_summary": delta.summary,
                },
                alert_config,
                now,
            )
        )

    return alerts
