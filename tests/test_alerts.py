"""
Tests for alert rules, the deduplicating engine and notification channels.
"""

from dataclasses import replace
from datetime import timedelta
from unittest.mock import MagicMock

import boto3
import pytest
import requests

from cloudhygiene.alerts import (
    AlertEngine,
    EmailChannel,
    NotificationService,
    SlackChannel,
    evaluate_alert_rules,
)
from cloudhygiene.alerts.engine import STATUS_DISPATCHED, STATUS_FAILED, STATUS_SUPPRESSED
from cloudhygiene.alerts.notifier import email_subject, slack_payload
from cloudhygiene.core.exceptions import NotificationError, PersistenceError
from cloudhygiene.models import (
    AlertConfig,
    AlertType,
    Delta,
    EmailChannelConfig,
    Severity,
    SlackChannelConfig,
    deduplication_key,
    format_timestamp,
)


class RecordingChannel:
    """Channel double that records deliveries or fails on demand."""

    def __init__(self, name, fail=False):
        self.name = name
        self.fail = fail
        self.sent = []

    def send(self, alert, alert_config):
        if self.fail:
            raise NotificationError(f"{self.name} is down", channel=self.name)
        self.sent.append(alert.alert_id)


@pytest.fixture
def alert_config():
    return AlertConfig(
        email=EmailChannelConfig(enabled=True, address="ops@example.com"),
        slack=SlackChannelConfig(enabled=True, webhook_url="https://hooks.slack.test/T000/B000"),
    )


@pytest.fixture
def baseline_score(make_scan, make_score):
    """A perfect score to compare against."""
    return make_score(make_scan(scan_id="scan_20240114_aaaaaa"))


def _with_score(score, overall):
    return replace(score, overall_score=overall)


class TestAlertRules:
    """Tests for evaluate_alert_rules."""

    def test_no_alerts_without_changes(self, baseline_score, alert_config, now):
        """Test that an unchanged run raises nothing."""
        alerts = evaluate_alert_rules(
            "user-1", Delta(), baseline_score, baseline_score, alert_config, now=now
        )

        assert alerts == []

    def test_new_security_issues(
        self, make_scan, make_score, open_ssh_group, baseline_score, alert_config, now
    ):
        """Test that new security issues raise one alert with their severity."""
        current = make_score(make_scan([open_ssh_group]))
        delta = Delta(new_security_issues=current.security_issues(), summary="1 new")

        alerts = evaluate_alert_rules("user-1", delta, current, None, alert_config, now=now)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.alert_type == AlertType.NEW_SECURITY_ISSUES
        assert alert.severity == Severity.CRITICAL
        assert alert.message == "1 new security issue(s) detected"
        assert alert.details["new_issues"][0]["resource_id"] == "sg-0ssh"
        assert alert.details["change_summary"] == "1 new"
        assert alert.channels == ["email", "slack"]
        assert alert.deduplication_key == "new_security_issues_user-1_2024-01-15"
        assert alert.alert_id.startswith("alert_")

    def test_large_score_drop_is_high(self, baseline_score, alert_config, now):
        """Test that a 25 point drop raises a high severity alert."""
        current = _with_score(baseline_score, 75)

        alerts = evaluate_alert_rules(
            "user-1", Delta(score_change=-25), current, baseline_score, alert_config, now=now
        )

        assert len(alerts) == 1
        assert alerts[0].alert_type == AlertType.HYGIENE_SCORE_DROP
        assert alerts[0].severity == Severity.HIGH
        assert alerts[0].message == "Hygiene score dropped by 25.0 points"
        assert alerts[0].details["previous_score"] == 100
        assert alerts[0].details["current_score"] == 75
        assert alerts[0].details["score_change"] == -25

    def test_moderate_score_drop_is_medium(self, baseline_score, alert_config, now):
        """Test that a drop at the threshold raises a medium alert."""
        current = _with_score(baseline_score, 90)

        alerts = evaluate_alert_rules(
            "user-1", Delta(score_change=-10), current, baseline_score, alert_config, now=now
        )

        assert [a.severity for a in alerts] == [Severity.MEDIUM]

    def test_small_score_drop_is_ignored(self, baseline_score, alert_config, now):
        """Test that a drop below the threshold raises nothing."""
        current = _with_score(baseline_score, 95)

        alerts = evaluate_alert_rules(
            "user-1", Delta(score_change=-5), current, baseline_score, alert_config, now=now
        )

        assert alerts == []

    def test_score_rule_needs_previous_score(self, baseline_score, alert_config, now):
        """Test that the score rule is skipped without a previous score."""
        current = _with_score(baseline_score, 10)

        alerts = evaluate_alert_rules("user-1", Delta(), current, None, alert_config, now=now)

        assert alerts == []

    @pytest.mark.parametrize(
        "cost_change,expected",
        [(20.0, []), (35.0, [Severity.MEDIUM]), (60.0, [Severity.HIGH])],
    )
    def test_cost_increase(self, baseline_score, alert_config, now, cost_change, expected):
        """Test that only increases above the threshold alert."""
        delta = Delta(cost_change=cost_change, cost_difference=cost_change * 10)

        alerts = evaluate_alert_rules(
            "user-1", delta, baseline_score, baseline_score, alert_config, now=now
        )

        assert [a.severity for a in alerts] == expected
        for alert in alerts:
            assert alert.alert_type == AlertType.COST_INCREASE
            assert alert.details["cost_change"] == cost_change

    def test_custom_thresholds(self, baseline_score, now):
        """Test that per-user thresholds are honoured."""
        config = AlertConfig.from_dict(
            {"thresholds": {"hygiene_score_drop": 3, "cost_increase_percent": 5}}
        )
        current = _with_score(baseline_score, 96)

        alerts = evaluate_alert_rules(
            "user-1", Delta(cost_change=6.0), current, baseline_score, config, now=now
        )

        assert [a.alert_type for a in alerts] == [
            AlertType.HYGIENE_SCORE_DROP,
            AlertType.COST_INCREASE,
        ]
        assert alerts[0].channels == []


class TestDeduplicationKey:
    """Tests for the alert deduplication key."""

    def test_key_format(self, now):
        """Test the type_user_day key layout."""
        assert deduplication_key(AlertType.COST_INCREASE, "user-1", now) == (
            "cost_increase_user-1_2024-01-15"
        )


class TestAlertEngine:
    """Tests for AlertEngine deduplication, persistence and dispatch."""

    def _alerts(self, baseline_score, alert_config, now, cost_change=60.0):
        return evaluate_alert_rules(
            "user-1",
            Delta(cost_change=cost_change),
            baseline_score,
            baseline_score,
            alert_config,
            now=now,
        )

    def test_dispatch_and_persist(self, stores, baseline_score, alert_config, now):
        """Test that a fresh alert is stored and sent on every channel."""
        email, slack = RecordingChannel("email"), RecordingChannel("slack")
        engine = AlertEngine(stores.alerts, NotificationService([email, slack]))
        alerts = self._alerts(baseline_score, alert_config, now)

        outcomes = engine.process(alerts, alert_config, now=now)

        assert [o.status for o in outcomes] == [STATUS_DISPATCHED]
        assert email.sent == [alerts[0].alert_id]
        assert slack.sent == [alerts[0].alert_id]
        assert stores.alerts.get_alert(alerts[0].alert_id) == alerts[0]

    def test_duplicate_within_24h_is_suppressed(self, stores, baseline_score, alert_config, now):
        """Test that the same key an hour later is not re-sent."""
        email = RecordingChannel("email")
        engine = AlertEngine(stores.alerts, NotificationService([email]))

        engine.process(self._alerts(baseline_score, alert_config, now), alert_config, now=now)
        later = now + timedelta(hours=1)
        outcomes = engine.process(
            self._alerts(baseline_score, alert_config, now), alert_config, now=later
        )

        assert [o.status for o in outcomes] == [STATUS_SUPPRESSED]
        assert len(email.sent) == 1
        assert len(stores.alerts.query_alerts("user-1")) == 1

    @pytest.mark.parametrize("hours", [24, 30])
    def test_same_key_after_window_is_sent_again(
        self, stores, baseline_score, alert_config, now, hours
    ):
        """Test that the same key 24 hours or more later is dispatched again."""
        email = RecordingChannel("email")
        engine = AlertEngine(stores.alerts, NotificationService([email]))

        engine.process(self._alerts(baseline_score, alert_config, now), alert_config, now=now)
        later = now + timedelta(hours=hours)
        outcomes = engine.process(
            self._alerts(baseline_score, alert_config, now), alert_config, now=later
        )

        assert [o.status for o in outcomes] == [STATUS_DISPATCHED]
        assert len(email.sent) == 2
        assert len(stores.alerts.query_alerts("user-1")) == 2

    def test_duplicates_in_one_batch(self, stores, baseline_score, alert_config, now):
        """Test that the second of two same-key alerts is suppressed."""
        engine = AlertEngine(stores.alerts, NotificationService([RecordingChannel("email")]))
        first = self._alerts(baseline_score, alert_config, now)
        second = self._alerts(baseline_score, alert_config, now, cost_change=70.0)

        outcomes = engine.process(first + second, alert_config, now=now)

        assert [o.status for o in outcomes] == [STATUS_DISPATCHED, STATUS_SUPPRESSED]

    def test_channel_failure_is_isolated(self, stores, baseline_score, alert_config, now):
        """Test that a failing channel does not block the other."""
        email, slack = RecordingChannel("email", fail=True), RecordingChannel("slack")
        engine = AlertEngine(stores.alerts, NotificationService([email, slack]))

        outcomes = engine.process(
            self._alerts(baseline_score, alert_config, now), alert_config, now=now
        )

        assert outcomes[0].status == STATUS_DISPATCHED
        assert outcomes[0].failed_channels == ["email"]
        assert len(slack.sent) == 1

    def test_persist_failure_skips_dispatch(self, baseline_score, alert_config, now):
        """Test that an alert that cannot be stored is not sent."""
        alert_store = MagicMock()
        alert_store.has_recent.return_value = False
        alert_store.put_alert.side_effect = PersistenceError("throttled", table="alerts")
        email = RecordingChannel("email")
        engine = AlertEngine(alert_store, NotificationService([email]))

        outcomes = engine.process(
            self._alerts(baseline_score, alert_config, now), alert_config, now=now
        )

        assert outcomes[0].status == STATUS_FAILED
        assert outcomes[0].error == "throttled"
        assert email.sent == []

    def test_dedup_lookup_failure_propagates(self, baseline_score, alert_config, now):
        """Test that a failed deduplication query is raised."""
        alert_store = MagicMock()
        alert_store.has_recent.side_effect = PersistenceError("unavailable")
        engine = AlertEngine(alert_store, NotificationService([]))

        with pytest.raises(PersistenceError):
            engine.process(self._alerts(baseline_score, alert_config, now), alert_config, now=now)

    def test_dedup_window_lower_bound(self, baseline_score, alert_config, now):
        """Test that the lookup covers exactly the last 24 hours."""
        alert_store = MagicMock()
        alert_store.has_recent.return_value = True
        engine = AlertEngine(alert_store, NotificationService([]))
        alerts = self._alerts(baseline_score, alert_config, now)

        engine.process(alerts, alert_config, now=now)

        alert_store.has_recent.assert_called_once_with(
            "user-1", alerts[0].deduplication_key, "2024-01-14T12:00:00.000Z"
        )


class TestNotificationService:
    """Tests for channel dispatch."""

    def test_disabled_channels_are_skipped(self, baseline_score, now):
        """Test that only channels enabled in the config receive the alert."""
        config = AlertConfig(slack=SlackChannelConfig(enabled=True, webhook_url="https://x.test"))
        email, slack = RecordingChannel("email"), RecordingChannel("slack")
        alert = evaluate_alert_rules(
            "user-1", Delta(cost_change=60.0), baseline_score, None, config, now=now
        )[0]

        result = NotificationService([email, slack]).dispatch(alert, config)

        assert result.sent == ["slack"]
        assert result.failed == []
        assert email.sent == []


class TestSlackChannel:
    """Tests for Slack webhook delivery."""

    def _alert(self, baseline_score, alert_config, now):
        return evaluate_alert_rules(
            "user-1",
            Delta(score_change=-25),
            _with_score(baseline_score, 75),
            baseline_score,
            alert_config,
            now=now,
        )[0]

    def test_posts_payload(self, baseline_score, alert_config, now):
        """Test that the webhook receives the attachment payload."""
        session = MagicMock()
        alert = self._alert(baseline_score, alert_config, now)

        SlackChannel(timeout=5, session=session).send(alert, alert_config)

        session.post.assert_called_once_with(
            "https://hooks.slack.test/T000/B000", json=slack_payload(alert), timeout=5
        )
        session.post.return_value.raise_for_status.assert_called_once()

    def test_payload_layout(self, baseline_score, alert_config, now):
        """Test the colour, fields and timestamp of the payload."""
        attachment = slack_payload(self._alert(baseline_score, alert_config, now))[
            "attachments"
        ][0]

        assert attachment["color"] == "#f57c00"
        assert attachment["footer"] == "Cloud Hygiene"
        assert attachment["ts"] == int(now.timestamp())
        assert {"title": "Score Change", "value": "-25", "short": True} in attachment["fields"]

    def test_http_error_raises_notification_error(self, baseline_score, alert_config, now):
        """Test that a non-2xx response becomes a NotificationError."""
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("500")

        with pytest.raises(NotificationError) as exc_info:
            SlackChannel(session=session).send(
                self._alert(baseline_score, alert_config, now), alert_config
            )

        assert exc_info.value.channel == "slack"

    def test_missing_webhook(self, baseline_score, now):
        """Test that a channel without a URL fails."""
        config = AlertConfig(slack=SlackChannelConfig(enabled=True))
        alert = self._alert(baseline_score, config, now)

        with pytest.raises(NotificationError):
            SlackChannel(session=MagicMock()).send(alert, config)


class TestEmailChannel:
    """Tests for SES email delivery."""

    def _alert(self, baseline_score, alert_config, now):
        return evaluate_alert_rules(
            "user-1", Delta(cost_change=60.0), baseline_score, None, alert_config, now=now
        )[0]

    def test_sends_through_ses(self, mock_aws_environment, baseline_score, alert_config, now):
        """Test delivery from a verified sender."""
        ses = boto3.client("ses", region_name="us-east-1")
        ses.verify_email_identity(EmailAddress="alerts@example.com")

        EmailChannel(ses, "alerts@example.com").send(
            self._alert(baseline_score, alert_config, now), alert_config
        )

        assert ses.get_send_quota()["SentLast24Hours"] == 1

    def test_unverified_sender_raises(self, mock_aws_environment, baseline_score, alert_config, now):
        """Test that an SES rejection becomes a NotificationError."""
        ses = boto3.client("ses", region_name="us-east-1")

        with pytest.raises(NotificationError) as exc_info:
            EmailChannel(ses, "nobody@example.com").send(
                self._alert(baseline_score, alert_config, now), alert_config
            )

        assert exc_info.value.channel == "email"

    def test_subject(self, baseline_score, alert_config, now):
        """Test the severity-prefixed subject line."""
        alert = self._alert(baseline_score, alert_config, now)

        assert email_subject(alert) == (
            "[HIGH] Cloud Hygiene Alert: Estimated monthly cost increased by 60.0%"
        )

    def test_missing_address(self, baseline_score, now):
        """Test that a channel without an address fails before calling SES."""
        config = AlertConfig(email=EmailChannelConfig(enabled=True))
        ses = MagicMock()

        with pytest.raises(NotificationError):
            EmailChannel(ses, "alerts@example.com").send(
                self._alert(baseline_score, config, now), config
            )
        ses.send_email.assert_not_called()


class TestAlertStoreWindow:
    """Tests for the stored-alert lookup used by deduplication."""

    def test_window_is_exclusive(self, stores, baseline_score, alert_config, now):
        """Test that an alert stored exactly at the bound is outside the window."""
        alert = evaluate_alert_rules(
            "user-1", Delta(cost_change=60.0), baseline_score, None, alert_config, now=now
        )[0]
        stores.alerts.put_alert(alert)
        key = alert.deduplication_key

        assert stores.alerts.has_recent("user-1", key, format_timestamp(now)) is False
        earlier = format_timestamp(now - timedelta(milliseconds=1))
        assert stores.alerts.has_recent("user-1", key, earlier) is True
        assert stores.alerts.has_recent("user-2", key, earlier) is False
