"""
Pytest configuration and shared fixtures for testing.
"""

from datetime import datetime, timezone

import boto3
import pytest
from moto import mock_aws

from cloudhygiene.core.aws_client import AWSClient
from cloudhygiene.core.config import Settings
from cloudhygiene.models import (
    BucketDetails,
    CostData,
    FirewallDetails,
    FirewallRule,
    InstanceDetails,
    PrincipalDetails,
    Resource,
    ResourceType,
    ScanResult,
    VolumeDetails,
)
from cloudhygiene.scoring import calculate_hygiene_score
from cloudhygiene.storage import create_stores, create_tables

# Fixed reference time for age-based rules
NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def mock_aws_environment(aws_credentials):
    """Create a mocked AWS environment."""
    with mock_aws():
        yield


@pytest.fixture
def aws_client(mock_aws_environment):
    """Create an AWSClient instance for testing."""
    return AWSClient(region="us-east-1")


@pytest.fixture
def ec2_client(mock_aws_environment):
    """Create a boto3 EC2 client for setting up test resources."""
    return boto3.client("ec2", region_name="us-east-1")


@pytest.fixture
def s3_client(mock_aws_environment):
    """Create a boto3 S3 client for setting up test resources."""
    return boto3.client("s3", region_name="us-east-1")


@pytest.fixture
def iam_client(mock_aws_environment):
    """Create a boto3 IAM client for setting up test resources."""
    return boto3.client("iam", region_name="us-east-1")


@pytest.fixture
def settings():
    """Settings with utilization lookups disabled."""
    return Settings(collect_utilization=False, max_workers=4)


@pytest.fixture
def stores(aws_client, settings):
    """All stores over freshly created moto DynamoDB tables."""
    create_tables(aws_client.get_dynamodb_resource(), settings)
    return create_stores(aws_client, settings)


@pytest.fixture
def vpc(ec2_client):
    """Create a VPC for testing."""
    response = ec2_client.create_vpc(CidrBlock="10.0.0.0/16")
    return response["Vpc"]["VpcId"]


# =============================================================================
# Record Builders
# =============================================================================


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_scan():
    """Factory for ScanResult records."""

    def _make_scan(
        resources=None,
        scan_id="scan_20240115_aaaaaa",
        user_id="user-1",
        cost=None,
        timestamp="2024-01-15T12:00:00.000Z",
    ):
        return ScanResult.build(
            scan_id=scan_id,
            user_id=user_id,
            resources=resources or [],
            timestamp=timestamp,
            cost_data=CostData(estimated_monthly=cost) if cost is not None else None,
            regions=["us-east-1"],
        )

    return _make_scan


@pytest.fixture
def make_score(now):
    """Factory scoring a scan at the fixed reference time."""

    def _make_score(scan):
        return calculate_hygiene_score(scan, now=now)

    return _make_score


@pytest.fixture
def tagged():
    return {"Environment": "prod", "Owner": "team-a", "Project": "web"}


@pytest.fixture
def public_bucket():
    """A public, unencrypted bucket."""
    return Resource(
        resource_id="open-data",
        name="open-data",
        resource_type=ResourceType.OBJECT_BUCKET,
        region="global",
        state="active",
        details=BucketDetails(location="us-east-1", encrypted=False, is_public=True),
        tags={"Environment": "prod", "Owner": "team-a", "Project": "web"},
    )


@pytest.fixture
def open_ssh_group():
    """A security group with SSH open to the world."""
    return Resource(
        resource_id="sg-0ssh",
        name="ssh-open",
        resource_type=ResourceType.FIREWALL_RULE_SET,
        region="us-east-1",
        state="active",
        details=FirewallDetails(
            group_name="ssh-open",
            ingress_rules=[
                FirewallRule(protocol="tcp", from_port=22, to_port=22, cidr_ranges=["0.0.0.0/0"])
            ],
        ),
    )


@pytest.fixture
def healthy_instance(tagged):
    """A running, tagged, monitored instance with reasonable CPU."""
    return Resource(
        resource_id="i-0healthy",
        name="web-1",
        resource_type=ResourceType.COMPUTE_INSTANCE,
        region="us-east-1",
        state="running",
        details=InstanceDetails(
            instance_type="t3.micro",
            monitoring_state="enabled",
            cpu_utilization=55.0,
        ),
        tags=tagged,
    )


@pytest.fixture
def healthy_volume(tagged):
    """An encrypted, attached, snapshotted volume."""
    return Resource(
        resource_id="vol-0healthy",
        name="data",
        resource_type=ResourceType.BLOCK_VOLUME,
        region="us-east-1",
        state="in-use",
        details=VolumeDetails(
            size_gb=50,
            encrypted=True,
            attached_instance_ids=["i-0healthy"],
            has_snapshot=True,
        ),
        tags=tagged,
    )


@pytest.fixture
def mfa_less_user():
    return Resource(
        resource_id="AIDA0NOMFA",
        name="alice",
        resource_type=ResourceType.IDENTITY_PRINCIPAL,
        region="global",
        state="active",
        details=PrincipalDetails(arn="arn:aws:iam::123456789012:user/alice", mfa_enabled=False),
    )
