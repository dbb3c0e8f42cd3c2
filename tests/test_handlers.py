"""
Tests for the scan entry points.
"""

from unittest.mock import MagicMock

import pytest

from cloudhygiene.core.exceptions import (
    CredentialsError,
    PersistenceError,
    RegionError,
    SetupError,
)
from cloudhygiene.handlers import error_code, handle_scan_request, handle_scheduled_event
from cloudhygiene.models import ScheduleConfig, UserConfig


@pytest.fixture
def orchestrator(make_scan):
    stub = MagicMock()
    stub.run_scan.return_value = make_scan()
    return stub


class TestScanRequest:
    """Tests for handle_scan_request."""

    def test_missing_user_id(self, orchestrator):
        """Test that a request without userId is rejected."""
        response = handle_scan_request({}, orchestrator=orchestrator)

        assert response["success"] is False
        assert response["error"]["code"] == "INVALID_REQUEST"
        orchestrator.run_scan.assert_not_called()

    def test_success_envelope(self, orchestrator):
        """Test that a finished scan is returned as data."""
        response = handle_scan_request(
            {
                "userId": "user-1",
                "roleArn": "arn:aws:iam::123456789012:role/R",
                "regions": ["us-east-1"],
                "correlationId": "corr-1",
            },
            orchestrator=orchestrator,
        )

        assert response["success"] is True
        assert response["data"]["scan_id"] == "scan_20240115_aaaaaa"
        orchestrator.run_scan.assert_called_once_with(
            user_id="user-1",
            role_arn="arn:aws:iam::123456789012:role/R",
            regions=["us-east-1"],
            correlation_id="corr-1",
        )

    @pytest.mark.parametrize(
        "error,code",
        [
            (CredentialsError("expired token", service="sts"), "CREDENTIALS_ERROR"),
            (RegionError("bad region", details={"invalid_regions": ["xx"]}), "INVALID_REGION"),
            (SetupError("cannot start"), "SETUP_ERROR"),
            (PersistenceError("table missing", table="scans"), "INTERNAL_ERROR"),
        ],
    )
    def test_failure_envelope(self, orchestrator, error, code):
        """Test that setup failures map to their error codes."""
        orchestrator.run_scan.side_effect = error

        response = handle_scan_request({"userId": "user-1"}, orchestrator=orchestrator)

        assert response["success"] is False
        assert response["error"]["code"] == code
        assert response["error"]["message"] == error.message

    def test_region_error_details(self, orchestrator):
        """Test that error details are passed through."""
        orchestrator.run_scan.side_effect = RegionError(
            "bad region", details={"invalid_regions": ["xx"]}
        )

        response = handle_scan_request({"userId": "user-1"}, orchestrator=orchestrator)

        assert response["error"]["details"] == {"invalid_regions": ["xx"]}

    def test_failure_log_carries_correlation_id(self, orchestrator, caplog):
        """Test that failure logs are bound to the request's correlation ID."""
        orchestrator.run_scan.side_effect = CredentialsError("expired token")

        with caplog.at_level("ERROR", logger="cloudhygiene.handlers"):
            handle_scan_request(
                {"userId": "user-1", "correlationId": "corr-7"}, orchestrator=orchestrator
            )

        (record,) = caplog.records
        assert record.correlation_id == "corr-7"
        assert record.getMessage() == "[corr-7] Scan setup failed for user-1: expired token"

    def test_error_code(self):
        """Test the exception to code mapping."""
        assert error_code(CredentialsError("x")) == "CREDENTIALS_ERROR"
        assert error_code(RegionError("x")) == "INVALID_REGION"


class TestScheduledEvent:
    """Tests for handle_scheduled_event."""

    @pytest.fixture
    def stores(self):
        stub = MagicMock()
        stub.users.get_user_config.return_value = UserConfig(
            user_id="user-1", schedule_config=ScheduleConfig(enabled=True)
        )
        stub.scans.get_latest_scan.return_value = None
        return stub

    def test_missing_user_id(self, stores, orchestrator, settings):
        """Test that an event without userId is ignored."""
        result = handle_scheduled_event(
            {}, stores=stores, orchestrator=orchestrator, alert_engine=MagicMock(),
            settings=settings,
        )

        assert result is None
        orchestrator.run_scan.assert_not_called()

    def test_runs_pipeline(self, stores, orchestrator, settings):
        """Test that an enabled schedule runs the scan and the alert engine."""
        engine = MagicMock()
        engine.process.return_value = []

        result = handle_scheduled_event(
            {"userId": "user-1", "scheduleConfig": {"enabled": True}, "correlationId": "c-9"},
            stores=stores,
            orchestrator=orchestrator,
            alert_engine=engine,
            settings=settings,
        )

        assert result is None
        assert orchestrator.run_scan.call_args.kwargs["correlation_id"] == "c-9"
        engine.process.assert_called_once()

    def test_disabled_schedule(self, stores, orchestrator, settings):
        """Test that a missing schedule config means disabled."""
        handle_scheduled_event(
            {"userId": "user-1"},
            stores=stores,
            orchestrator=orchestrator,
            alert_engine=MagicMock(),
            settings=settings,
        )

        orchestrator.run_scan.assert_not_called()

    def test_setup_error_is_reraised(self, stores, orchestrator, settings):
        """Test that a scan that cannot start fails the invocation."""
        orchestrator.run_scan.side_effect = CredentialsError("role not assumable")

        with pytest.raises(CredentialsError):
            handle_scheduled_event(
                {"userId": "user-1", "scheduleConfig": {"enabled": True}},
                stores=stores,
                orchestrator=orchestrator,
                alert_engine=MagicMock(),
                settings=settings,
            )
