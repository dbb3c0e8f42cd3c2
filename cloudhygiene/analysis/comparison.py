"""
Scan Comparison Engine
======================

Diffs two consecutive (scan, score) pairs into a ``Delta``.

Resources are matched by ``resource_id``; a resource present in both
scans counts as changed only when its ``state`` differs. Security issues
are matched by ``(type, resource_id)``.

Example
-------
>>> from cloudhygiene.analysis import compare_scans
>>>
>>> delta = compare_scans(current, previous, current_score, previous_score)
>>> delta.summary
'2 new resource(s) detected, 1 new security issue(s).'
"""

from __future__ import annotations

import logging
from typing import List, Optional

from cloudhygiene.models.delta import Delta
from cloudhygiene.models.scan import ScanResult
from cloudhygiene.models.score import ScoreResult

# Module logger
logger = logging.getLogger(__name__)

NO_CHANGES_SUMMARY = "No significant changes detected since last scan."


def _initial_delta(current: ScanResult, current_score: ScoreResult) -> Delta:
    count = len(current.resources)
    return Delta(
        new_resources=[r.resource_id for r in current.resources],
        new_security_issues=current_score.security_issues(),
        resource_count_change=count,
        cost_change=0.0,
        cost_difference=current.estimated_monthly_cost,
        score_change=0,
        summary=f"Initial scan completed with {count} resources detected.",
        is_initial_scan=True,
    )


def build_summary(
    new_resources: int,
    deleted_resources: int,
    changed_resources: int,
    new_security_issues: int,
    resolved_security_issues: int,
    score_change: float,
    cost_change: float,
) -> str:
    """
    Render the human-readable change summary.

    Example
    -------
    >>> build_summary(1, 0, 0, 0, 0, -5, 0.0)
    '1 new resource(s) detected, hygiene score decreased by 5.0 points.'
    """
    parts: List[str] = []

    if new_resources > 0:
        parts.append(f"{new_resources} new resource(s) detected")
    if deleted_resources > 0:
        parts.append(f"{deleted_resources} resource(s) deleted")
    if changed_resources > 0:
        parts.append(f"{changed_resources} resource(s) changed state")
    if new_security_issues > 0:
        parts.append(f"{new_security_issues} new security issue(s)")
    if resolved_security_issues > 0:
        parts.append(f"{resolved_security_issues} security issue(s) resolved")
    if score_change != 0:
        direction = "increased" if score_change > 0 else "decreased"
        parts.append(f"hygiene score {direction} by {abs(score_change):.1f} points")
    if cost_change != 0:
        direction = "increased" if cost_change > 0 else "decreased"
        parts.append(f"estimated monthly cost {direction} by {abs(cost_change):.1f}%")

    if not parts:
        return NO_CHANGES_SUMMARY
    return ", ".join(parts) + "."


def compare_scans(
    current: ScanResult,
    previous: Optional[ScanResult],
    current_score: ScoreResult,
    previous_score: Optional[ScoreResult],
) -> Delta:
    """
    Compare the current scan against the previous one.

    Parameters
    ----------
    current : ScanResult
        The newest scan.
    previous : ScanResult, optional
        The scan before it; None for a user's first scan.
    current_score : ScoreResult
        Score of ``current``.
    previous_score : ScoreResult, optional
        Score of ``previous``.

    Returns
    -------
    Delta
        The difference. When either previous input is missing the delta
        treats every current resource and security issue as new.
    """
    if previous is None or previous_score is None:
        logger.debug(f"No previous scan for {current.scan_id}, treating as initial scan")
        return _initial_delta(current, current_score)

    current_by_id = {r.resource_id: r for r in current.resources}
    previous_by_id = {r.resource_id: r for r in previous.resources}

    new_resources: List[str] = []
    changed_resources: List[str] = []
    for resource_id, resource in current_by_id.items():
        before = previous_by_id.get(resource_id)
        if before is None:
            new_resources.append(resource_id)
        elif before.state != resource.state:
            changed_resources.append(resource_id)

    deleted_resources = [rid for rid in previous_by_id if rid not in current_by_id]

    current_issues = current_score.security_issues()
    previous_issues = previous_score.security_issues()
    current_keys = {issue.key for issue in current_issues}
    previous_keys = {issue.key for issue in previous_issues}
    new_issues = [i for i in current_issues if i.key not in previous_keys]
    resolved_issues = [i for i in previous_issues if i.key not in current_keys]

    current_cost = current.estimated_monthly_cost
    previous_cost = previous.estimated_monthly_cost
    cost_difference = current_cost - previous_cost
    cost_change = cost_difference * 100 / previous_cost if previous_cost > 0 else 0.0

    score_change = current_score.overall_score - previous_score.overall_score

    return Delta(
        new_resources=new_resources,
        deleted_resources=deleted_resources,
        changed_resources=changed_resources,
        new_security_issues=new_issues,
        resolved_security_issues=resolved_issues,
        resource_count_change=len(current.resources) - len(previous.resources),
        cost_change=cost_change,
        cost_difference=cost_difference,
        score_change=score_change,
        summary=build_summary(
            len(new_resources),
            len(deleted_resources),
            len(changed_resources),
            len(new_issues),
            len(resolved_issues),
            score_change,
            cost_change,
        ),
    )
