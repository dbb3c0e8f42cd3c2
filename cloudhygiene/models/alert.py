"""
Alert and User Configuration Models
===================================

Classes
-------
AlertType
    Kinds of alerts raised by the rule engine.
Alert
    Immutable alert record, persisted for history and deduplication.
AlertThresholds, EmailChannelConfig, SlackChannelConfig, AlertConfig
    Per-user alert settings.
ScheduleConfig
    Per-user scheduled scan settings.
UserConfig
    Everything stored for one user.

Notes
-----
Every ``from_dict`` tolerates missing keys and falls back to defaults:
email and Slack disabled, score-drop threshold 10 points, cost-increase
threshold 20%, schedule disabled, daily at 00:00 UTC.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from cloudhygiene.models.score import Severity


class AlertType(str, Enum):
    NEW_SECURITY_ISSUES = "new_security_issues"
    HYGIENE_SCORE_DROP = "hygiene_score_drop"
    COST_INCREASE = "cost_increase"


def generate_alert_id() -> str:
    return f"alert_{uuid.uuid4()}"


def deduplication_key(alert_type: AlertType, user_id: str, moment: datetime) -> str:
    """
    Key shared by alerts of one type for one user on one calendar day (UTC).

    Example
    -------
    >>> deduplication_key(AlertType.COST_INCREASE, "user-1", datetime(2024, 1, 15))
    'cost_increase_user-1_2024-01-15'
    """
    return f"{alert_type.value}_{user_id}_{moment.strftime('%Y-%m-%d')}"


@dataclass(frozen=True)
class Alert:
    """
    A generated alert.

    Parameters
    ----------
    alert_id : str
        ``alert_<uuid4>``.
    user_id : str
        Recipient user.
    timestamp : str
        Creation time (UTC ISO-8601).
    alert_type : AlertType
        Which rule fired.
    severity : Severity
        Alert severity.
    message : str
        One-line summary.
    details : dict
        Rule-specific context (issues, score and cost changes).
    channels : list of str
        Enabled channels at creation time ('email', 'slack').
    deduplication_key : str
        Identity used to suppress repeats within 24 hours.
    """

    alert_id: str
    user_id: str
    timestamp: str
    alert_type: AlertType
    severity: Severity
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    channels: List[str] = field(default_factory=list)
    deduplication_key: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "user_id": self.user_id,
            "timestamp": self.timestamp,
            "alert_type": self.alert_type.value,
            "severity": self.severity.value,
            "message": self.message,
            "details": self.details,
            "channels": list(self.channels),
            "deduplication_key": self.deduplication_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Alert:
        return cls(
            alert_id=data["alert_id"],
            user_id=data["user_id"],
            timestamp=data["timestamp"],
            alert_type=AlertType(data["alert_type"]),
            severity=Severity(data["severity"]),
            message=data.get("message", ""),
            details=dict(data.get("details") or {}),
            channels=list(data.get("channels") or []),
            deduplication_key=data.get("deduplication_key", ""),
        )

    def __repr__(self) -> str:
        return (
            f"Alert(alert_id='{self.alert_id}', type='{self.alert_type.value}', "
            f"severity='{self.severity.value}')"
        )


# =============================================================================
# User Configuration
# =============================================================================


@dataclass(frozen=True)
class AlertThresholds:
    hygiene_score_drop: float = 10
    cost_increase_percent: float = 20


@dataclass(frozen=True)
class EmailChannelConfig:
    enabled: bool = False
    address: str = ""


@dataclass(frozen=True)
class SlackChannelConfig:
    enabled: bool = False
    webhook_url: str = ""


@dataclass(frozen=True)
class AlertConfig:
    email: EmailChannelConfig = field(default_factory=EmailChannelConfig)
    slack: SlackChannelConfig = field(default_factory=SlackChannelConfig)
    thresholds: AlertThresholds = field(default_factory=AlertThresholds)

    def enabled_channels(self) -> List[str]:
        channels = []
        if self.email.enabled:
            channels.append("email")
        if self.slack.enabled:
            channels.append("slack")
        return channels

    def to_dict(self) -> Dict[str, Any]:
        return {
            "email": {"enabled": self.email.enabled, "address": self.email.address},
            "slack": {
                "enabled": self.slack.enabled,
                "webhook_url": self.slack.webhook_url,
            },
            "thresholds": {
                "hygiene_score_drop": self.thresholds.hygiene_score_drop,
                "cost_increase_percent": self.thresholds.cost_increase_percent,
            },
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> AlertConfig:
        data = data or {}
        email = data.get("email") or {}
        slack = data.get("slack") or {}
        thresholds = data.get("thresholds") or {}
        defaults = AlertThresholds()
        return cls(
            email=EmailChannelConfig(
                enabled=bool(email.get("enabled", False)),
                address=email.get("address", ""),
            ),
            slack=SlackChannelConfig(
                enabled=bool(slack.get("enabled", False)),
                webhook_url=slack.get("webhook_url", ""),
            ),
            thresholds=AlertThresholds(
                hygiene_score_drop=float(
                    thresholds.get("hygiene_score_drop", defaults.hygiene_score_drop)
                ),
                cost_increase_percent=float(
                    thresholds.get(
                        "cost_increase_percent", defaults.cost_increase_percent
                    )
                ),
            ),
        )


class ScheduleFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class ScheduleConfig:
    enabled: bool = False
    frequency: ScheduleFrequency = ScheduleFrequency.DAILY
    time: str = "00:00"
    timezone: str = "UTC"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "frequency": self.frequency.value,
            "time": self.time,
            "timezone": self.timezone,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> ScheduleConfig:
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            frequency=ScheduleFrequency(data.get("frequency", "daily")),
            time=data.get("time", "00:00"),
            timezone=data.get("timezone", "UTC"),
        )


@dataclass(frozen=True)
class UserConfig:
    user_id: str
    role_arn: Optional[str] = None
    regions: List[str] = field(default_factory=list)
    alert_config: AlertConfig = field(default_factory=AlertConfig)
    schedule_config: ScheduleConfig = field(default_factory=ScheduleConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "role_arn": self.role_arn,
            "regions": list(self.regions),
            "alert_config": self.alert_config.to_dict(),
            "schedule_config": self.schedule_config.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> UserConfig:
        return cls(
            user_id=data["user_id"],
            role_arn=data.get("role_arn") or None,
            regions=list(data.get("regions") or []),
            alert_config=AlertConfig.from_dict(data.get("alert_config")),
            schedule_config=ScheduleConfig.from_dict(data.get("schedule_config")),
        )
