"""
Tests for the command-line interface.
"""

import json
import logging

import pytest
from click.testing import CliRunner

from cloudhygiene.main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestCLI:
    """Tests for the click commands."""

    def test_version(self, runner):
        """Test the version option."""
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_validate(self, runner, mock_aws_environment):
        """Test credential validation against moto."""
        result = runner.invoke(cli, ["validate"])

        assert result.exit_code == 0
        assert "123456789012" in result.output

    def test_regions(self, runner, mock_aws_environment):
        """Test listing enabled regions."""
        result = runner.invoke(cli, ["regions"])

        assert result.exit_code == 0
        assert "us-east-1" in result.output

    def test_invalid_region_option(self, runner):
        """Test that malformed region names are rejected before scanning."""
        result = runner.invoke(cli, ["scan", "--regions", "us-east-1,moon-base"])

        assert result.exit_code == 2
        assert "Invalid region name(s): moon-base" in result.output

    def test_scan_json(self, runner, mock_aws_environment, s3_client):
        """Test that JSON output is a single parseable document."""
        s3_client.create_bucket(Bucket="cli-bucket")

        result = runner.invoke(
            cli,
            ["--log-level", "CRITICAL", "scan", "--regions", "us-east-1", "--format", "json"],
        )

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["metadata"]["regions"] == ["us-east-1"]
        assert data["metadata"]["user_id"] == "local"
        assert "cli-bucket" in [r["resource_id"] for r in data["scan"]["resources"]]

    def test_score_table(self, runner, mock_aws_environment, s3_client, tmp_path):
        """Test the score table and the JSON file export."""
        s3_client.create_bucket(Bucket="cli-bucket")
        output_file = tmp_path / "score.json"

        result = runner.invoke(
            cli,
            [
                "--log-level",
                "CRITICAL",
                "score",
                "--regions",
                "us-east-1",
                "--output",
                str(output_file),
            ],
        )

        assert result.exit_code == 0
        assert "Hygiene Score:" in result.output
        assert "Scan complete!" in result.output
        with open(output_file) as f:
            assert "overall_score" in json.load(f)["metadata"]
