"""
Notification Channels
=====================

Delivery of alerts to the channels a user has enabled.

Classes
-------
EmailChannel
    Sends alerts through Amazon SES.
SlackChannel
    Posts alerts to a Slack incoming webhook.
NotificationService
    Dispatches one alert to every enabled channel, isolating failures.

Every channel implements ``send(alert, alert_config)`` and raises
``NotificationError`` when delivery fails.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from botocore.exceptions import BotoCoreError, ClientError

from cloudhygiene.core.exceptions import NotificationError
from cloudhygiene.models.alert import Alert, AlertConfig, AlertType
from cloudhygiene.models.base import parse_timestamp
from cloudhygiene.models.score import Severity

# Module logger
logger = logging.getLogger(__name__)

SEVERITY_COLORS = {
    Severity.CRITICAL: "#d32f2f",
    Severity.HIGH: "#f57c00",
    Severity.MEDIUM: "#fbc02d",
    Severity.LOW: "#388e3c",
}


def email_subject(alert: Alert) -> str:
    """
    Example
    -------
    >>> email_subject(alert)
    '[HIGH] Cloud Hygiene Alert: Hygiene score dropped by 25.0 points'
    """
    return f"[{alert.severity.value.upper()}] Cloud Hygiene Alert: {alert.message}"


def email_text_body(alert: Alert) -> str:
    lines = [
        alert.message,
        f"Severity: {alert.severity.value.upper()}",
        "",
    ]
    summary = alert.details.get("change_summary")
    if summary:
        lines.extend([summary, ""])
    for issue in alert.details.get("new_issues", []):
        lines.append(f"- {issue.get('description', '')}")
    lines.extend(["", f"Alert ID: {alert.alert_id}", f"Time: {alert.timestamp}"])
    return "\n".join(lines)


def email_html_body(alert: Alert) -> str:
    issues = alert.details.get("new_issues", [])
    issues_html = ""
    if issues:
        items = "".join(f"<li>{html.escape(i.get('description', ''))}</li>" for i in issues)
        issues_html = f"<h3>New Issues Detected:</h3><ul>{items}</ul>"

    summary = html.escape(alert.details.get("change_summary", ""))
    return (
        "<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif;\">"
        f"<h2>{html.escape(alert.message)}</h2>"
        f"<p>Severity: <strong>{alert.severity.value.upper()}</strong></p>"
        f"<p>{summary}</p>"
        f"{issues_html}"
        f"<p><strong>Alert ID:</strong> {alert.alert_id}<br>"
        f"<strong>Time:</strong> {alert.timestamp}</p>"
        "<p style=\"color: #999; font-size: 12px;\">"
        "This is an automated alert. Please do not reply to this email.</p>"
        "</body></html>"
    )


def slack_payload(alert: Alert) -> Dict[str, Any]:
    """Build the Slack attachment payload for ``alert``."""
    fields: List[Dict[str, Any]] = [
        {"title": "Severity", "value": alert.severity.value.upper(), "short": True},
        {"title": "Alert Type", "value": alert.alert_type.value.replace("_", " "), "short": True},
    ]

    if alert.alert_type is AlertType.HYGIENE_SCORE_DROP and "score_change" in alert.details:
        fields.append(
            {"title": "Score Change", "value": f"{alert.details['score_change']:+}", "short": True}
        )
    if alert.alert_type is AlertType.COST_INCREASE and "cost_change" in alert.details:
        fields.append(
            {
                "title": "Cost Change",
                "value": f"{alert.details['cost_change']:+.1f}%",
                "short": True,
            }
        )

    created = parse_timestamp(alert.timestamp)
    return {
        "attachments": [
            {
                "color": SEVERITY_COLORS[alert.severity],
                "title": alert.message,
                "text": alert.details.get("change_summary", ""),
                "fields": fields,
                "footer": "Cloud Hygiene",
                "ts": int(created.timestamp()) if created else None,
            }
        ]
    }


# =============================================================================
# Channels
# =============================================================================


class EmailChannel:
    """
    Email delivery through SES.

    Parameters
    ----------
    ses_client : boto3 SES client
        Client used for ``send_email``.
    from_email : str
        Verified sender address.
    """

    name = "email"

    def __init__(self, ses_client, from_email: str) -> None:
        self.ses_client = ses_client
        self.from_email = from_email

    def send(self, alert: Alert, alert_config: AlertConfig) -> None:
        address = alert_config.email.address
        if not address:
            raise NotificationError("No email address configured", channel=self.name)

        try:
            self.ses_client.send_email(
                Source=self.from_email,
                Destination={"ToAddresses": [address]},
                Message={
                    "Subject": {"Data": email_subject(alert), "Charset": "UTF-8"},
                    "Body": {
                        "Html": {"Data": email_html_body(alert), "Charset": "UTF-8"},
                        "Text": {"Data": email_text_body(alert), "Charset": "UTF-8"},
                    },
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise NotificationError(
                f"Failed to send email alert: {e}",
                channel=self.name,
                details={"alert_id": alert.alert_id},
            )
        logger.info(f"Sent email alert {alert.alert_id}")


class SlackChannel:
    """
    Slack delivery through an incoming webhook.

    Parameters
    ----------
    timeout : int, default=10
        HTTP timeout in seconds.
    session : requests.Session, optional
        Session to post with; module-level ``requests`` when omitted.
    """

    name = "slack"

    def __init__(self, timeout: int = 10, session: Optional[requests.Session] = None) -> None:
        self.timeout = timeout
        self.session = session

    def send(self, alert: Alert, alert_config: AlertConfig) -> None:
        webhook_url = alert_config.slack.webhook_url
        if not webhook_url:
            raise NotificationError("No Slack webhook URL configured", channel=self.name)

        poster = self.session or requests
        try:
            response = poster.post(webhook_url, json=slack_payload(alert), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise NotificationError(
                f"Failed to send Slack alert: {e}",
                channel=self.name,
                details={"alert_id": alert.alert_id},
            )
        logger.info(f"Sent Slack alert {alert.alert_id}")


@dataclass
class DispatchResult:
    sent: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class NotificationService:
    """
    Fan one alert out to its channels.

    A failing channel is logged and reported in the result; it never stops
    delivery on the other channels.

    Parameters
    ----------
    channels : list
        Channel objects exposing ``name`` and ``send``.

    Examples
    --------
    >>> service = NotificationService([EmailChannel(ses, "alerts@example.com")])
    >>> service.dispatch(alert, alert_config).failed
    []
    """

    def __init__(self, channels) -> None:
        self.channels = {channel.name: channel for channel in channels}

    @classmethod
    def from_settings(cls, aws_client, settings) -> NotificationService:
        return cls(
            [
                EmailChannel(aws_client.get_ses_client(), settings.from_email),
                SlackChannel(timeout=settings.webhook_timeout),
            ]
        )

    def dispatch(self, alert: Alert, alert_config: AlertConfig) -> DispatchResult:
        result = DispatchResult()
        enabled = set(alert_config.enabled_channels())

        for name in alert.channels:
            channel = self.channels.get(name)
            if name not in enabled or channel is None:
                continue
            try:
                channel.send(alert, alert_config)
                result.sent.append(name)
            except NotificationError as e:
                logger.error(f"Channel {name} failed for alert {alert.alert_id}: {e.message}")
                result.failed.append(name)

        return result
