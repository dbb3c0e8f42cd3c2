"""
Tests for the Reporter modules.
"""

import json

import pytest
from rich.console import Console

from cloudhygiene.analysis import compare_scans
from cloudhygiene.models import ErrorKind, ScanError
from cloudhygiene.reporters import CLIReporter, JSONReporter
from cloudhygiene.reporters.cli_reporter import score_style


@pytest.fixture
def console():
    return Console(record=True, width=200)


@pytest.fixture
def reporter(console):
    return CLIReporter(console=console)


@pytest.fixture
def scan(make_scan, public_bucket, open_ssh_group, healthy_instance):
    return make_scan([public_bucket, open_ssh_group, healthy_instance], cost=1234.5)


class TestCLIReporter:
    """Tests for CLIReporter."""

    def test_report_scan(self, reporter, console, scan):
        """Test that the scan header, counts and cost are shown."""
        reporter.report_scan(scan)
        output = console.export_text()

        assert "scan_20240115_aaaaaa" in output
        assert "Resources by Type" in output
        assert "object bucket" in output
        assert "1,234.50" in output

    def test_report_empty_scan(self, reporter, console, make_scan):
        """Test the message for a scan without resources or cost."""
        reporter.report_scan(make_scan())
        output = console.export_text()

        assert "No resources found." in output
        assert "unavailable" in output

    def test_report_score(self, reporter, console, scan, make_score):
        """Test the breakdown and issue table."""
        reporter.report_score(make_score(scan))
        output = console.export_text()

        assert "Hygiene Score:" in output
        assert "Security" in output
        assert "Cost Efficiency" in output
        assert "public_s3_bucket_unencrypted" in output
        assert "sg-0ssh" in output
        assert "Fix" not in output

    def test_report_score_with_fixes(self, reporter, console, scan, make_score):
        """Test that the first fix command is shown on request."""
        reporter.report_score(make_score(scan), show_fixes=True)
        output = console.export_text()

        assert "Fix" in output
        assert "aws " in output

    def test_clean_score(self, reporter, console, make_scan, make_score):
        """Test the message for a score without issues."""
        reporter.report_score(make_score(make_scan()))

        assert "No issues found." in console.export_text()

    def test_report_delta(self, reporter, console, scan, make_scan, make_score):
        """Test that new security issues are listed under the summary."""
        previous = make_scan(scan_id="scan_20240114_aaaaaa", timestamp="2024-01-14T12:00:00.000Z")
        delta = compare_scans(scan, previous, make_score(scan), make_score(previous))

        reporter.report_delta(delta)
        output = console.export_text()

        assert "Changes" in output
        assert "New security issues:" in output
        assert "open-data" in output

    def test_print_errors(self, reporter, console):
        """Test the error table."""
        reporter.print_errors(
            [
                ScanError(
                    kind=ErrorKind.COLLECTION,
                    service="compute",
                    region="eu-west-1",
                    message="Rate exceeded",
                    operation="describe_instances",
                )
            ]
        )
        output = console.export_text()

        assert "Errors encountered" in output
        assert "describe_instances" in output
        assert "Rate exceeded" in output

    def test_print_no_errors(self, reporter, console):
        """Test that an empty error list prints nothing."""
        reporter.print_errors([])

        assert console.export_text() == ""

    def test_truncate(self):
        """Test text truncation."""
        assert CLIReporter._truncate("short", 10) == "short"
        assert CLIReporter._truncate("a" * 20, 10) == "aaaaaaa..."

    @pytest.mark.parametrize("score,style", [(95, "green"), (60, "yellow"), (59, "red")])
    def test_score_style(self, score, style):
        """Test the colour bands for the overall score."""
        assert score_style(score) == style


class TestJSONReporter:
    """Tests for JSONReporter."""

    def test_to_dict(self, scan):
        """Test the metadata block."""
        data = JSONReporter().to_dict(scan)

        assert data["metadata"]["scan_id"] == scan.scan_id
        assert data["metadata"]["total_resources"] == 3
        assert data["metadata"]["errors"] == 0
        assert data["scan"] == scan.to_dict()
        assert "score" not in data
        assert "delta" not in data

    def test_to_dict_with_score(self, scan, make_score):
        """Test that a score adds its section and overall value."""
        score = make_score(scan)

        data = JSONReporter().to_dict(scan, score=score)

        assert data["metadata"]["overall_score"] == score.overall_score
        assert data["score"] == score.to_dict()

    def test_report_writes_file(self, scan, make_score, tmp_path):
        """Test that the report file is valid JSON."""
        output_file = tmp_path / "report.json"

        path = JSONReporter(output_path=str(output_file)).report(scan, score=make_score(scan))

        assert path == str(output_file)
        with open(output_file) as f:
            data = json.load(f)
        assert data["metadata"]["regions"] == ["us-east-1"]
        assert len(data["scan"]["resources"]) == 3

    def test_default_filename(self, scan, tmp_path, monkeypatch):
        """Test the timestamped default filename."""
        monkeypatch.chdir(tmp_path)

        path = JSONReporter().report(scan)

        assert path.startswith(f"hygiene_{scan.scan_id}_")
        assert path.endswith(".json")
        assert (tmp_path / path).exists()

    def test_to_string_is_compact_without_indent(self, scan):
        """Test compact output."""
        text = JSONReporter(indent=None).to_string(scan)

        assert "\n" not in text
        assert json.loads(text)["metadata"]["user_id"] == "user-1"
