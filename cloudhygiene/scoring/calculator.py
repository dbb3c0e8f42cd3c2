"""
Hygiene Score Calculator
========================

Scores a scan on a 0-100 scale split into three categories:

- Security (40 points)
- Cost efficiency (30 points)
- Best practices (30 points)

Each category starts at its maximum and loses a fixed number of points per
issue found, floored at zero. The overall score is the rounded sum.

Scoring is a pure function of the scan and the reference time ``now``:
the same inputs always produce an equal ``ScoreResult``.

Example
-------
>>> from cloudhygiene.scoring import calculate_hygiene_score
>>>
>>> score = calculate_hygiene_score(scan)
>>> score.overall_score
87
>>> [i.type for i in score.breakdown.security.issues]
['unencrypted_ebs_volume']
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Sequence

from cloudhygiene.core.config import (
    BEST_PRACTICES_WEIGHT,
    COST_EFFICIENCY_WEIGHT,
    REQUIRED_TAGS,
    SECURITY_WEIGHT,
    SENSITIVE_PORTS,
)
from cloudhygiene.models.base import format_timestamp, parse_timestamp, utc_now
from cloudhygiene.models.resource import Resource, ResourceType
from cloudhygiene.models.scan import ScanResult
from cloudhygiene.models.score import (
    CategoryScore,
    Issue,
    ScoreBreakdown,
    ScoreResult,
    Severity,
)
from cloudhygiene.scoring.fix_guides import fix_guide_for

# Module logger
logger = logging.getLogger(__name__)

STOPPED_INSTANCE_MAX_DAYS = 7
LOW_CPU_THRESHOLD = 20.0
MIN_BACKUP_RETENTION_DAYS = 7

TAGGABLE_TYPES = (
    ResourceType.COMPUTE_INSTANCE,
    ResourceType.BLOCK_VOLUME,
    ResourceType.DB_INSTANCE,
    ResourceType.DB_CLUSTER,
    ResourceType.FUNCTION,
    ResourceType.OBJECT_BUCKET,
)


def _issue(
    issue_type: str,
    severity: Severity,
    resource: Resource,
    description: str,
    deduction: int,
    **guide_kwargs,
) -> Issue:
    return Issue(
        type=issue_type,
        severity=severity,
        resource_id=resource.resource_id,
        description=description,
        deduction=deduction,
        fix_guide=fix_guide_for(issue_type, resource, **guide_kwargs),
    )


class RuleContext:
    """Inputs shared by every rule during one scoring pass."""

    def __init__(self, now: datetime, required_tags: Sequence[str]) -> None:
        self.now = now
        self.required_tags = tuple(required_tags)


Rule = Callable[[Resource, RuleContext], Optional[Issue]]


# =============================================================================
# Security Rules
# =============================================================================


def public_unencrypted_bucket(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    bucket = resource.bucket
    if bucket is None or bucket.is_public is not True or bucket.encrypted is not False:
        return None
    return _issue(
        "public_s3_bucket_unencrypted",
        Severity.HIGH,
        resource,
        f'S3 bucket "{resource.name}" is publicly accessible and not encrypted',
        5,
    )


def open_security_group(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    firewall = resource.firewall
    if firewall is None:
        return None
    port = firewall.first_world_open_port(SENSITIVE_PORTS)
    if port is None:
        return None
    return _issue(
        "open_security_group",
        Severity.CRITICAL,
        resource,
        f'Security group "{resource.name}" allows access from 0.0.0.0/0 on port {port}',
        4,
        port=port,
    )


def unencrypted_volume(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    volume = resource.volume
    if volume is None or volume.encrypted is not False:
        return None
    return _issue(
        "unencrypted_ebs_volume",
        Severity.MEDIUM,
        resource,
        f'EBS volume "{resource.name}" is not encrypted',
        3,
    )


def user_without_mfa(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    principal = resource.principal
    if principal is None or principal.mfa_enabled is not False:
        return None
    return _issue(
        "iam_user_no_mfa",
        Severity.HIGH,
        resource,
        f'IAM user "{resource.name}" does not have MFA enabled',
        3,
    )


def wildcard_policy(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    holder = resource.policy_holder
    if holder is None or not holder.has_wildcard_allow():
        return None
    kind = {
        ResourceType.IDENTITY_PRINCIPAL: "IAM user",
        ResourceType.IDENTITY_ROLE: "IAM role",
        ResourceType.IDENTITY_POLICY: "IAM policy",
    }[resource.resource_type]
    return _issue(
        "overly_permissive_iam_policy",
        Severity.CRITICAL,
        resource,
        f'{kind} "{resource.name}" has overly permissive policy with Action: "*" and Resource: "*"',
        5,
    )


# =============================================================================
# Cost Efficiency Rules
# =============================================================================


def old_stopped_instance(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    instance = resource.instance
    if instance is None or resource.state != "stopped":
        return None
    stopped_at = parse_timestamp(instance.stopped_at)
    if stopped_at is None:
        return None
    stopped_for = ctx.now - stopped_at
    if stopped_for <= timedelta(days=STOPPED_INSTANCE_MAX_DAYS):
        return None
    return _issue(
        "stopped_instance_old",
        Severity.MEDIUM,
        resource,
        f'EC2 instance "{resource.name}" has been stopped for {stopped_for.days} days',
        3,
    )


def unattached_volume(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    volume = resource.volume
    if volume is None or volume.is_attached:
        return None
    return _issue(
        "unattached_ebs_volume",
        Severity.LOW,
        resource,
        f'EBS volume "{resource.name}" is not attached to any instance',
        2,
    )


def underused_instance(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    instance = resource.instance
    if instance is None or resource.state != "running":
        return None
    if instance.cpu_utilization is None or instance.cpu_utilization >= LOW_CPU_THRESHOLD:
        return None
    return _issue(
        "oversized_instance",
        Severity.MEDIUM,
        resource,
        f'EC2 instance "{resource.name}" ({instance.instance_type}) has low CPU '
        f"utilization ({instance.cpu_utilization:.1f}%)",
        4,
    )


def unassociated_address(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    address = resource.floating_ip
    if address is None or address.is_associated:
        return None
    label = resource.name or address.public_ip or resource.resource_id
    return _issue(
        "unassociated_elastic_ip",
        Severity.LOW,
        resource,
        f'Elastic IP "{label}" is not associated with any instance',
        2,
    )


# =============================================================================
# Best Practice Rules
# =============================================================================


def missing_tags(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    if resource.resource_type not in TAGGABLE_TYPES:
        return None
    missing = [tag for tag in ctx.required_tags if tag not in resource.tags]
    if not missing:
        return None
    return _issue(
        "missing_tags",
        Severity.LOW,
        resource,
        f'{resource.resource_type.value} "{resource.name}" is missing required tags: '
        f"{', '.join(missing)}",
        2,
        missing=missing,
    )


def short_database_backups(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    details = resource.database or resource.database_cluster
    if details is None:
        return None
    retention = details.backup_retention_period or 0
    if retention >= MIN_BACKUP_RETENTION_DAYS:
        return None
    kind = "RDS cluster" if resource.database_cluster is not None else "RDS instance"
    return _issue(
        "missing_backup_policy_rds",
        Severity.MEDIUM,
        resource,
        f'{kind} "{resource.name}" has insufficient backup retention ({retention} days)',
        3,
    )


def volume_without_snapshot(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    volume = resource.volume
    # None means the snapshot lookup failed; no evidence either way
    if volume is None or volume.has_snapshot is not False:
        return None
    return _issue(
        "missing_backup_policy_ebs",
        Severity.LOW,
        resource,
        f'EBS volume "{resource.name}" has no snapshots for backup',
        2,
    )


def basic_monitoring_only(resource: Resource, ctx: RuleContext) -> Optional[Issue]:
    instance = resource.instance
    if instance is None or instance.detailed_monitoring:
        return None
    return _issue(
        "disabled_cloudwatch_monitoring",
        Severity.LOW,
        resource,
        f'EC2 instance "{resource.name}" does not have detailed CloudWatch monitoring enabled',
        2,
    )


SECURITY_RULES: List[Rule] = [
    public_unencrypted_bucket,
    open_security_group,
    unencrypted_volume,
    user_without_mfa,
    wildcard_policy,
]

COST_EFFICIENCY_RULES: List[Rule] = [
    old_stopped_instance,
    unattached_volume,
    underused_instance,
    unassociated_address,
]

BEST_PRACTICE_RULES: List[Rule] = [
    missing_tags,
    short_database_backups,
    volume_without_snapshot,
    basic_monitoring_only,
]


# =============================================================================
# Scoring
# =============================================================================


def score_category(
    resources: Iterable[Resource],
    rules: Sequence[Rule],
    max_score: int,
    ctx: RuleContext,
) -> CategoryScore:
    """
    Apply ``rules`` to every resource and deduct from ``max_score``.

    Issues are ordered by resource, then by rule.
    """
    issues: List[Issue] = []
    for resource in resources:
        for rule in rules:
            issue = rule(resource, ctx)
            if issue is not None:
                issues.append(issue)

    deducted = sum(issue.deduction for issue in issues)
    return CategoryScore(
        score=max(0, max_score - deducted),
        max_score=max_score,
        issues=issues,
    )


def calculate_hygiene_score(
    scan: ScanResult,
    now: Optional[datetime] = None,
    required_tags: Sequence[str] = REQUIRED_TAGS,
) -> ScoreResult:
    """
    Score a scan.

    Parameters
    ----------
    scan : ScanResult
        Snapshot to score.
    now : datetime, optional
        Reference time for age-based rules and the result timestamp.
        Defaults to the current UTC time.
    required_tags : sequence of str, default=REQUIRED_TAGS
        Tag keys every taggable resource must carry.

    Returns
    -------
    ScoreResult
        Overall score in [0, 100] with per-category issues.
    """
    now = now or utc_now()
    ctx = RuleContext(now, required_tags)

    breakdown = ScoreBreakdown(
        security=score_category(scan.resources, SECURITY_RULES, SECURITY_WEIGHT, ctx),
        cost_efficiency=score_category(
            scan.resources, COST_EFFICIENCY_RULES, COST_EFFICIENCY_WEIGHT, ctx
        ),
        best_practices=score_category(
            scan.resources, BEST_PRACTICE_RULES, BEST_PRACTICES_WEIGHT, ctx
        ),
    )
    overall = round(
        breakdown.security.score
        + breakdown.cost_efficiency.score
        + breakdown.best_practices.score
    )

    logger.debug(
        f"Scored {scan.scan_id}: {overall} "
        f"({len(breakdown.security.issues)} security issues)"
    )

    return ScoreResult(
        scan_id=scan.scan_id,
        user_id=scan.user_id,
        timestamp=format_timestamp(now),
        overall_score=overall,
        breakdown=breakdown,
    )
