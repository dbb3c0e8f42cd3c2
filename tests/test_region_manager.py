"""
Tests for the Region Manager module.
"""

import threading
from unittest.mock import patch

import pytest

from cloudhygiene.core.base_collector import CollectorResult
from cloudhygiene.core.config import DEFAULT_REGIONS
from cloudhygiene.core.exceptions import AWSClientError, RegionError
from cloudhygiene.core.region_manager import RegionManager, is_valid_region
from cloudhygiene.models import ErrorKind


class TestRegionValidation:
    """Tests for region name validation."""

    @pytest.mark.parametrize("name", ["us-east-1", "eu-central-2", "ap-southeast-3", "me-south-1"])
    def test_valid_names(self, name):
        """Test that real region names are accepted."""
        assert is_valid_region(name) is True

    @pytest.mark.parametrize("name", ["", "moon-base", "US-EAST-1", "us-east"])
    def test_invalid_names(self, name):
        """Test that malformed names are rejected."""
        assert is_valid_region(name) is False


class TestRegionResolution:
    """Tests for RegionManager.resolve_regions."""

    def test_initialization(self, aws_client):
        """Test basic initialization."""
        manager = RegionManager(aws_client)
        assert manager.max_workers == 10
        assert manager.base_client is aws_client

    def test_discover_regions(self, aws_client):
        """Test fetching enabled AWS regions."""
        regions = RegionManager(aws_client).discover_regions()

        assert "us-east-1" in regions
        assert regions == sorted(regions)

    def test_explicit_regions_win(self, aws_client):
        """Test that an explicit list is used as given, without duplicates."""
        resolution = RegionManager(aws_client).resolve_regions(
            ["eu-west-1", "us-east-1", "eu-west-1"]
        )

        assert resolution.regions == ["eu-west-1", "us-east-1"]
        assert resolution.error is None

    def test_invalid_explicit_region(self, aws_client):
        """Test that a malformed explicit region aborts."""
        with pytest.raises(RegionError) as exc_info:
            RegionManager(aws_client).resolve_regions(["us-east-1", "not-a-region"])

        assert exc_info.value.details["invalid_regions"] == ["not-a-region"]

    def test_discovery(self, aws_client):
        """Test that regions are discovered when none are given."""
        resolution = RegionManager(aws_client).resolve_regions()

        assert resolution.discovered is True
        assert "us-east-1" in resolution.regions

    def test_discovery_failure_falls_back(self, aws_client):
        """Test that a failed discovery uses the defaults and records an error."""
        manager = RegionManager(aws_client)
        with patch.object(
            manager, "discover_regions", side_effect=AWSClientError("denied", service="ec2")
        ):
            resolution = manager.resolve_regions()

        assert resolution.regions == list(DEFAULT_REGIONS)
        assert resolution.error.kind == ErrorKind.SETUP
        assert resolution.error.service == "ec2"
        assert resolution.error.region == "global"

    def test_empty_discovery_falls_back(self, aws_client):
        """Test that an empty discovery uses the defaults without an error."""
        manager = RegionManager(aws_client)
        with patch.object(manager, "discover_regions", return_value=[]):
            resolution = manager.resolve_regions()

        assert resolution.regions == list(DEFAULT_REGIONS)
        assert resolution.error is None


class TestRunTasks:
    """Tests for parallel task execution."""

    def test_all_tasks_complete(self, aws_client):
        """Test that every task result is returned by key."""
        manager = RegionManager(aws_client, max_workers=2)
        tasks = {r: (lambda: CollectorResult()) for r in ("us-east-1", "us-west-2", "global")}

        results = manager.run_tasks(tasks)

        assert set(results) == {"us-east-1", "us-west-2", "global"}

    def test_failing_task_is_isolated(self, aws_client):
        """Test that one raising task does not affect the others."""

        def boom():
            raise RuntimeError("worker crashed")

        manager = RegionManager(aws_client, max_workers=2)
        results = manager.run_tasks({"us-east-1": boom, "us-west-2": CollectorResult})

        assert results["us-west-2"].errors == []
        assert len(results["us-east-1"].errors) == 1
        assert results["us-east-1"].errors[0].message == "worker crashed"
        assert results["us-east-1"].errors[0].region == "us-east-1"

    def test_progress_callback(self, aws_client):
        """Test that the callback sees start and end of each task."""
        seen = []
        lock = threading.Lock()

        def callback(key, status):
            with lock:
                seen.append((key, status))

        def boom():
            raise RuntimeError("no")

        RegionManager(aws_client).run_tasks(
            {"us-east-1": CollectorResult, "eu-west-1": boom}, progress_callback=callback
        )

        assert sorted(seen) == [
            ("eu-west-1", "error"),
            ("eu-west-1", "scanning"),
            ("us-east-1", "complete"),
            ("us-east-1", "scanning"),
        ]

    def test_failing_callback_keeps_results(self, aws_client):
        """Test that a raising progress callback does not lose any task result."""
        east, west = CollectorResult(), CollectorResult()

        def callback(key, status):
            if (key, status) == ("us-east-1", "complete"):
                raise RuntimeError("display broke")

        results = RegionManager(aws_client).run_tasks(
            {"us-east-1": lambda: east, "eu-west-1": lambda: west},
            progress_callback=callback,
        )

        assert results["us-east-1"] is east
        assert results["eu-west-1"] is west
        assert east.errors == []

    def test_no_tasks(self, aws_client):
        """Test that an empty task map returns an empty result."""
        assert RegionManager(aws_client).run_tasks({}) == {}

    def test_client_for_region(self, aws_client):
        """Test that per-region clients keep the base configuration."""
        client = RegionManager(aws_client).get_client_for_region("eu-west-1")

        assert client.region == "eu-west-1"
        assert client.max_retries == aws_client.max_retries
