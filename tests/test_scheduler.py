"""
Tests for the scheduled scan pipeline.
"""

from dataclasses import replace
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from cloudhygiene.alerts import AlertEngine, NotificationService
from cloudhygiene.alerts.engine import STATUS_DISPATCHED, STATUS_SUPPRESSED
from cloudhygiene.core.exceptions import PersistenceError
from cloudhygiene.models import (
    AlertConfig,
    AlertType,
    EmailChannelConfig,
    ScheduleConfig,
    SlackChannelConfig,
    UserConfig,
)
from cloudhygiene.scheduler import run_scheduled_scan


class StubOrchestrator:
    """Returns prepared scans in order and persists them like the real one."""

    def __init__(self, scan_store, scans):
        self.scan_store = scan_store
        self.scans = list(scans)
        self.calls = []

    def run_scan(self, user_id, role_arn=None, regions=None, correlation_id=None):
        self.calls.append({"user_id": user_id, "role_arn": role_arn, "regions": regions})
        scan = self.scans.pop(0)
        if self.scan_store is not None:
            self.scan_store.put_scan(scan)
        return scan


class RecordingChannel:
    def __init__(self, name):
        self.name = name
        self.sent = []

    def send(self, alert, alert_config):
        self.sent.append(alert.alert_type)


@pytest.fixture
def schedule():
    return ScheduleConfig(enabled=True)


@pytest.fixture
def user_config():
    return UserConfig(
        user_id="user-1",
        role_arn="arn:aws:iam::123456789012:role/HygieneScanner",
        regions=["us-east-1"],
        alert_config=AlertConfig(
            email=EmailChannelConfig(enabled=True, address="ops@example.com"),
            slack=SlackChannelConfig(enabled=True, webhook_url="https://hooks.slack.test/x"),
        ),
        schedule_config=ScheduleConfig(enabled=True),
    )


@pytest.fixture
def channels():
    return [RecordingChannel("email"), RecordingChannel("slack")]


@pytest.fixture
def engine(stores, channels):
    return AlertEngine(stores.alerts, NotificationService(channels))


@pytest.fixture
def history(make_scan, healthy_instance, public_bucket, open_ssh_group):
    """A clean scan, a degraded one, then one with a further new issue."""
    buckets = [
        replace(public_bucket, resource_id=f"bucket-{i}", name=f"bucket-{i}") for i in range(9)
    ]
    return [
        make_scan(
            [healthy_instance],
            scan_id="scan_20240115_first0",
            timestamp="2024-01-15T10:00:00.000Z",
        ),
        make_scan(
            [healthy_instance] + buckets,
            scan_id="scan_20240115_second",
            timestamp="2024-01-15T11:00:00.000Z",
        ),
        make_scan(
            [healthy_instance, open_ssh_group] + buckets,
            scan_id="scan_20240115_third0",
            timestamp="2024-01-15T12:00:00.000Z",
        ),
    ]


class TestSkippedRuns:
    """Tests for runs that never start a scan."""

    def test_disabled_schedule(self, stores, engine, now):
        """Test that a disabled schedule is skipped."""
        orchestrator = StubOrchestrator(stores.scans, [])

        report = run_scheduled_scan(
            "user-1", ScheduleConfig(enabled=False), stores, orchestrator, engine, now=now
        )

        assert report is None
        assert orchestrator.calls == []

    def test_missing_user_config(self, stores, engine, schedule, now):
        """Test that a user without configuration is skipped."""
        orchestrator = StubOrchestrator(stores.scans, [])

        report = run_scheduled_scan("user-1", schedule, stores, orchestrator, engine, now=now)

        assert report is None
        assert orchestrator.calls == []


class TestScheduledRun:
    """Tests for the full scan, score, compare and alert pipeline."""

    def test_first_run_is_initial(
        self, stores, engine, channels, schedule, user_config, history, now
    ):
        """Test that the first run is an initial scan without alerts."""
        stores.users.put_user_config(user_config)
        orchestrator = StubOrchestrator(stores.scans, history[:1])

        report = run_scheduled_scan("user-1", schedule, stores, orchestrator, engine, now=now)

        assert report.scan_id == "scan_20240115_first0"
        assert report.delta.is_initial_scan is True
        assert report.outcomes == []
        assert orchestrator.calls == [
            {
                "user_id": "user-1",
                "role_arn": "arn:aws:iam::123456789012:role/HygieneScanner",
                "regions": ["us-east-1"],
            }
        ]
        assert stores.scores.get_score("scan_20240115_first0").overall_score == 100

    def test_degradation_raises_alerts(
        self, stores, engine, channels, schedule, user_config, history, now
    ):
        """Test that new issues and a score drop are alerted on both channels."""
        stores.users.put_user_config(user_config)
        orchestrator = StubOrchestrator(stores.scans, history[:2])

        run_scheduled_scan("user-1", schedule, stores, orchestrator, engine, now=now)
        report = run_scheduled_scan("user-1", schedule, stores, orchestrator, engine, now=now)

        assert report.delta.is_initial_scan is False
        assert report.score.overall_score == 60
        assert [o.alert.alert_type for o in report.outcomes] == [
            AlertType.NEW_SECURITY_ISSUES,
            AlertType.HYGIENE_SCORE_DROP,
        ]
        assert all(o.status == STATUS_DISPATCHED for o in report.outcomes)
        assert channels[0].sent == [AlertType.NEW_SECURITY_ISSUES, AlertType.HYGIENE_SCORE_DROP]
        assert len(stores.alerts.query_alerts("user-1")) == 2

    def test_repeat_alert_is_suppressed(
        self, stores, engine, channels, schedule, user_config, history, now
    ):
        """Test that a second alert of the same type within a day is suppressed."""
        stores.users.put_user_config(user_config)
        orchestrator = StubOrchestrator(stores.scans, history)

        run_scheduled_scan("user-1", schedule, stores, orchestrator, engine, now=now)
        run_scheduled_scan("user-1", schedule, stores, orchestrator, engine, now=now)
        report = run_scheduled_scan(
            "user-1", schedule, stores, orchestrator, engine, now=now + timedelta(hours=1)
        )

        assert [(o.alert.alert_type, o.status) for o in report.outcomes] == [
            (AlertType.NEW_SECURITY_ISSUES, STATUS_SUPPRESSED)
        ]
        assert len(channels[0].sent) == 2

    def test_previous_scan_read_before_new_scan(self, make_scan, schedule, user_config):
        """Test that the latest stored scan is fetched before scanning."""
        calls = MagicMock()
        stores = MagicMock()
        stores.users.get_user_config.return_value = user_config
        stores.scans.get_latest_scan = calls.get_latest_scan
        stores.scans.get_latest_scan.return_value = None
        orchestrator = MagicMock()
        orchestrator.run_scan = calls.run_scan
        orchestrator.run_scan.return_value = make_scan()
        engine = MagicMock()
        engine.process.return_value = []

        run_scheduled_scan("user-1", schedule, stores, orchestrator, engine)

        assert [c[0] for c in calls.mock_calls] == ["get_latest_scan", "run_scan"]

    def test_previous_score_is_recomputed(
        self, stores, engine, schedule, user_config, history, now
    ):
        """Test that a missing stored score is recomputed from the previous scan."""
        stores.users.put_user_config(user_config)
        stores.scans.put_scan(history[0])
        orchestrator = StubOrchestrator(stores.scans, history[1:2])

        report = run_scheduled_scan("user-1", schedule, stores, orchestrator, engine, now=now)

        assert report.delta.score_change == -40

    def test_score_persist_failure_is_not_fatal(
        self, stores, engine, schedule, user_config, history, now
    ):
        """Test that a failed score write still completes the run."""
        stores.users.put_user_config(user_config)
        stores.scores = MagicMock(wraps=stores.scores)
        stores.scores.put_score.side_effect = PersistenceError("throttled", table="scores")
        orchestrator = StubOrchestrator(stores.scans, history[:1])

        report = run_scheduled_scan("user-1", schedule, stores, orchestrator, engine, now=now)

        assert report.score.overall_score == 100
