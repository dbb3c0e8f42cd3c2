"""
Tests for the DynamoDB stores.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from cloudhygiene.core.exceptions import PersistenceError
from cloudhygiene.models import AlertConfig, EmailChannelConfig, ScheduleConfig, UserConfig
from cloudhygiene.models.base import ttl_from
from cloudhygiene.storage import ScanStore, table_definitions
from cloudhygiene.storage.dynamodb_store import from_dynamo, to_dynamo


class TestConversion:
    """Tests for the Decimal conversion helpers."""

    def test_floats_become_decimal(self):
        """Test that floats are written as Decimal."""
        item = to_dynamo({"cost": 12.5, "count": 3, "nested": {"cpu": [1.25]}})

        assert item["cost"] == Decimal("12.5")
        assert item["count"] == 3
        assert item["nested"]["cpu"] == [Decimal("1.25")]

    def test_decimals_become_numbers(self):
        """Test that integral Decimals read back as int, others as float."""
        data = from_dynamo({"a": Decimal("4"), "b": Decimal("4.5"), "c": [Decimal("1")]})

        assert data == {"a": 4, "b": 4.5, "c": [1]}
        assert isinstance(data["a"], int)
        assert isinstance(data["b"], float)


class TestTableDefinitions:
    """Tests for the table layout."""

    def test_user_timestamp_index(self, settings):
        """Test that the history tables share the user/timestamp index."""
        definitions = {d["TableName"]: d for d in table_definitions(settings)}

        for name in (settings.scans_table, settings.scores_table, settings.alerts_table):
            index = definitions[name]["GlobalSecondaryIndexes"][0]
            assert index["IndexName"] == "UserIdTimestampIndex"
            assert [k["AttributeName"] for k in index["KeySchema"]] == ["user_id", "timestamp"]
        assert "GlobalSecondaryIndexes" not in definitions[settings.users_table]


class TestScanStore:
    """Tests for ScanStore."""

    def test_round_trip(self, stores, make_scan, public_bucket, open_ssh_group, healthy_instance):
        """Test that a stored scan reads back unchanged."""
        scan = make_scan([public_bucket, open_ssh_group, healthy_instance], cost=1234.56)

        stores.scans.put_scan(scan)
        loaded = stores.scans.get_scan(scan.scan_id)

        assert loaded.to_dict() == scan.to_dict()
        assert loaded.resources[1].firewall.first_world_open_port([22]) == 22
        assert loaded.cost_data.estimated_monthly == 1234.56

    def test_missing_scan(self, stores):
        """Test that an unknown scan ID returns None."""
        assert stores.scans.get_scan("scan_19990101_nope00") is None

    def test_ttl_attribute(self, stores, make_scan, now):
        """Test that scans are written with a 90 day TTL."""
        scan = make_scan()

        stores.scans.put_scan(scan, now=now)
        item = stores.scans.table.get_item(Key={"scan_id": scan.scan_id})["Item"]

        assert int(item["ttl"]) == ttl_from(now, 90)

    def test_latest_scan(self, stores, make_scan):
        """Test that the newest scan of the user is returned."""
        for day in ("13", "15", "14"):
            stores.scans.put_scan(
                make_scan(
                    scan_id=f"scan_202401{day}_aaaaaa",
                    timestamp=f"2024-01-{day}T08:00:00.000Z",
                )
            )
        stores.scans.put_scan(
            make_scan(
                scan_id="scan_20240116_other0",
                user_id="user-2",
                timestamp="2024-01-16T08:00:00.000Z",
            )
        )

        latest = stores.scans.get_latest_scan("user-1")

        assert latest.scan_id == "scan_20240115_aaaaaa"

    def test_latest_scan_without_history(self, stores):
        """Test that a user with no scans has no latest scan."""
        assert stores.scans.get_latest_scan("nobody") is None

    def test_query_range(self, stores, make_scan):
        """Test the inclusive time range query, newest first."""
        for day in ("10", "12", "14", "16"):
            stores.scans.put_scan(
                make_scan(
                    scan_id=f"scan_202401{day}_aaaaaa",
                    timestamp=f"2024-01-{day}T08:00:00.000Z",
                )
            )

        scans = stores.scans.query_scans(
            "user-1", start="2024-01-12T08:00:00.000Z", end="2024-01-14T08:00:00.000Z"
        )

        assert [s.scan_id for s in scans] == ["scan_20240114_aaaaaa", "scan_20240112_aaaaaa"]

    def test_client_error_becomes_persistence_error(self):
        """Test that DynamoDB failures are raised as PersistenceError."""
        resource = MagicMock()
        resource.Table.return_value.put_item.side_effect = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow"}},
            "PutItem",
        )
        store = ScanStore(resource, "scans")

        with pytest.raises(PersistenceError) as exc_info:
            store.put_scan(MagicMock(to_dict=MagicMock(return_value={"scan_id": "s"})))

        assert exc_info.value.table == "scans"
        assert exc_info.value.operation == "put_scan"


class TestScoreStore:
    """Tests for ScoreStore."""

    def test_round_trip(self, stores, make_scan, make_score, public_bucket, mfa_less_user):
        """Test that a stored score reads back with its issues."""
        score = make_score(make_scan([public_bucket, mfa_less_user]))

        stores.scores.put_score(score)
        loaded = stores.scores.get_score(score.scan_id)

        assert loaded == score
        assert [i.type for i in loaded.security_issues()] == [
            "public_s3_bucket_unencrypted",
            "iam_user_no_mfa",
        ]

    def test_query_scores(self, stores, make_scan, make_score):
        """Test listing a user's scores."""
        stores.scores.put_score(make_score(make_scan()))

        assert len(stores.scores.query_scores("user-1")) == 1
        assert stores.scores.query_scores("user-2") == []


class TestUserConfigStore:
    """Tests for UserConfigStore."""

    def test_round_trip(self, stores):
        """Test that a stored configuration reads back unchanged."""
        config = UserConfig(
            user_id="user-1",
            role_arn="arn:aws:iam::123456789012:role/Scanner",
            regions=["us-east-1", "eu-west-1"],
            alert_config=AlertConfig(email=EmailChannelConfig(enabled=True, address="a@b.test")),
            schedule_config=ScheduleConfig(enabled=True),
        )

        stores.users.put_user_config(config)

        assert stores.users.get_user_config("user-1") == config

    def test_missing_config(self, stores):
        """Test that an unknown user has no configuration."""
        assert stores.users.get_user_config("nobody") is None

    def test_partial_config_uses_defaults(self, stores):
        """Test that missing keys fall back to defaults."""
        stores.users.table.put_item(Item={"user_id": "user-3"})

        config = stores.users.get_user_config("user-3")

        assert config.role_arn is None
        assert config.alert_config.thresholds.hygiene_score_drop == 10
        assert config.alert_config.thresholds.cost_increase_percent == 20
        assert config.schedule_config.enabled is False
