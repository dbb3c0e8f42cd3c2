"""
Tests for the scan comparison engine.
"""

from dataclasses import replace

from cloudhygiene.analysis import build_summary, compare_scans
from cloudhygiene.analysis.comparison import NO_CHANGES_SUMMARY


class TestInitialScan:
    """Tests for comparisons without a previous scan."""

    def test_no_previous_scan(self, make_scan, make_score, healthy_instance, open_ssh_group):
        """Test that everything counts as new on the first scan."""
        current = make_scan([healthy_instance, open_ssh_group], cost=250.0)
        delta = compare_scans(current, None, make_score(current), None)

        assert delta.is_initial_scan is True
        assert delta.new_resources == ["i-0healthy", "sg-0ssh"]
        assert delta.deleted_resources == []
        assert delta.changed_resources == []
        assert [i.resource_id for i in delta.new_security_issues] == ["sg-0ssh"]
        assert delta.resource_count_change == 2
        assert delta.score_change == 0
        assert delta.cost_change == 0.0
        assert delta.cost_difference == 250.0
        assert delta.summary == "Initial scan completed with 2 resources detected."

    def test_previous_scan_without_score(self, make_scan, make_score, healthy_instance):
        """Test that a missing previous score is treated as an initial scan."""
        previous = make_scan([healthy_instance], scan_id="scan_20240114_aaaaaa")
        current = make_scan([healthy_instance])

        delta = compare_scans(current, previous, make_score(current), None)

        assert delta.is_initial_scan is True


class TestResourceChanges:
    """Tests for resource-level diffs."""

    def test_new_deleted_and_changed(
        self, make_scan, make_score, healthy_instance, healthy_volume, public_bucket
    ):
        """Test detection of new, deleted and state-changed resources."""
        previous = make_scan(
            [healthy_instance, healthy_volume], scan_id="scan_20240114_aaaaaa"
        )
        stopped = replace(healthy_instance, state="stopped")
        current = make_scan([stopped, public_bucket])

        delta = compare_scans(current, previous, make_score(current), make_score(previous))

        assert delta.is_initial_scan is False
        assert delta.new_resources == ["open-data"]
        assert delta.deleted_resources == ["vol-0healthy"]
        assert delta.changed_resources == ["i-0healthy"]
        assert delta.resource_count_change == 0

    def test_tag_change_alone_is_not_a_change(self, make_scan, make_score, healthy_instance):
        """Test that only the state field marks a resource as changed."""
        previous = make_scan([healthy_instance], scan_id="scan_20240114_aaaaaa")
        retagged = replace(healthy_instance, tags={"Environment": "dev"})
        current = make_scan([retagged])

        delta = compare_scans(current, previous, make_score(current), make_score(previous))

        assert delta.changed_resources == []

    def test_identical_scans(self, make_scan, make_score, healthy_instance):
        """Test that identical scans produce the no-change summary."""
        previous = make_scan([healthy_instance], scan_id="scan_20240114_aaaaaa")
        current = make_scan([healthy_instance])

        delta = compare_scans(current, previous, make_score(current), make_score(previous))

        assert delta.has_changes is False
        assert delta.summary == NO_CHANGES_SUMMARY


class TestIssueChanges:
    """Tests for security issue diffs."""

    def test_new_and_resolved_issues(
        self, make_scan, make_score, open_ssh_group, public_bucket, mfa_less_user
    ):
        """Test that issues are matched by type and resource."""
        previous = make_scan([open_ssh_group, mfa_less_user], scan_id="scan_20240114_aaaaaa")
        current = make_scan([open_ssh_group, public_bucket])

        delta = compare_scans(current, previous, make_score(current), make_score(previous))

        assert [i.type for i in delta.new_security_issues] == ["public_s3_bucket_unencrypted"]
        assert [i.type for i in delta.resolved_security_issues] == ["iam_user_no_mfa"]

    def test_score_change(self, make_scan, make_score, public_bucket):
        """Test the signed score difference."""
        previous = make_scan([], scan_id="scan_20240114_aaaaaa")
        current = make_scan([public_bucket])

        delta = compare_scans(current, previous, make_score(current), make_score(previous))

        assert delta.score_change == -5
        assert "hygiene score decreased by 5.0 points" in delta.summary


class TestCostChanges:
    """Tests for cost diffs."""

    def test_cost_increase_percentage(self, make_scan, make_score):
        """Test that 1000 -> 1200 is a 20% increase of 200."""
        previous = make_scan(scan_id="scan_20240114_aaaaaa", cost=1000.0)
        current = make_scan(cost=1200.0)

        delta = compare_scans(current, previous, make_score(current), make_score(previous))

        assert delta.cost_change == 20.0
        assert delta.cost_difference == 200.0
        assert "estimated monthly cost increased by 20.0%" in delta.summary

    def test_no_previous_cost(self, make_scan, make_score):
        """Test that a zero previous cost yields a zero percentage."""
        previous = make_scan(scan_id="scan_20240114_aaaaaa")
        current = make_scan(cost=300.0)

        delta = compare_scans(current, previous, make_score(current), make_score(previous))

        assert delta.cost_change == 0.0
        assert delta.cost_difference == 300.0


class TestBuildSummary:
    """Tests for the change summary text."""

    def test_all_parts(self):
        """Test the order and wording of every summary part."""
        summary = build_summary(2, 1, 3, 1, 2, 5, -12.5)

        assert summary == (
            "2 new resource(s) detected, 1 resource(s) deleted, "
            "3 resource(s) changed state, 1 new security issue(s), "
            "2 security issue(s) resolved, hygiene score increased by 5.0 points, "
            "estimated monthly cost decreased by 12.5%."
        )

    def test_no_changes(self):
        """Test the summary when nothing changed."""
        assert build_summary(0, 0, 0, 0, 0, 0, 0.0) == NO_CHANGES_SUMMARY
