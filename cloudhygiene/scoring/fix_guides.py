"""
Fix Guides
==========

Remediation guidance attached to every scoring issue. Each builder takes
the offending resource and returns a ``FixGuide`` with concrete steps and
the CLI commands to run.
"""

from __future__ import annotations

from typing import Callable, Dict, Sequence

from cloudhygiene.models.resource import Resource
from cloudhygiene.models.score import FixGuide

EC2_DOCS = "https://docs.aws.amazon.com/AWSEC2/latest/UserGuide"
IAM_DOCS = "https://docs.aws.amazon.com/IAM/latest/UserGuide"


def secure_bucket(resource: Resource) -> FixGuide:
    bucket = resource.resource_id
    return FixGuide(
        title="Secure S3 Bucket",
        steps=[
            "Enable Block Public Access on the bucket",
            "Turn on default server-side encryption (SSE-S3 or SSE-KMS)",
            "Review the bucket policy and ACLs for public grants",
        ],
        cli_commands=[
            f"aws s3api put-public-access-block --bucket {bucket} "
            "--public-access-block-configuration "
            "BlockPublicAcls=true,IgnorePublicAcls=true,"
            "BlockPublicPolicy=true,RestrictPublicBuckets=true",
            f"aws s3api put-bucket-encryption --bucket {bucket} "
            "--server-side-encryption-configuration "
            "'{\"Rules\":[{\"ApplyServerSideEncryptionByDefault\":{\"SSEAlgorithm\":\"AES256\"}}]}'",
        ],
        documentation_url=(
            "https://docs.aws.amazon.com/AmazonS3/latest/userguide/security-best-practices.html"
        ),
    )


def restrict_security_group(resource: Resource, port: int = 22) -> FixGuide:
    group = resource.resource_id
    return FixGuide(
        title="Restrict Security Group Access",
        steps=[
            f"Remove the 0.0.0.0/0 and ::/0 ingress rules for port {port}",
            "Allow only the CIDR ranges or security groups that need access",
            "Prefer Session Manager or a bastion host for administrative access",
        ],
        cli_commands=[
            f"aws ec2 revoke-security-group-ingress --group-id {group} "
            f"--protocol tcp --port {port} --cidr 0.0.0.0/0",
            f"aws ec2 authorize-security-group-ingress --group-id {group} "
            f"--protocol tcp --port {port} --cidr <trusted-cidr>",
        ],
        documentation_url="https://docs.aws.amazon.com/vpc/latest/userguide/vpc-security-groups.html",
    )


def encrypt_volume(resource: Resource) -> FixGuide:
    volume = resource.resource_id
    return FixGuide(
        title="Enable EBS Encryption",
        steps=[
            "Create a snapshot of the volume",
            "Copy the snapshot with encryption enabled",
            "Create a new volume from the encrypted snapshot and swap it in",
            "Enable EBS encryption by default for the region",
        ],
        cli_commands=[
            f"aws ec2 create-snapshot --volume-id {volume}",
            "aws ec2 copy-snapshot --source-snapshot-id <snapshot-id> "
            f"--source-region {resource.region} --encrypted",
            "aws ec2 enable-ebs-encryption-by-default",
        ],
        documentation_url=f"{EC2_DOCS}/EBSEncryption.html",
    )


def enable_mfa(resource: Resource) -> FixGuide:
    return FixGuide(
        title="Enable MFA for IAM User",
        steps=[
            f"Sign in to the IAM console and open user {resource.name}",
            "Assign a virtual or hardware MFA device",
            "Add a policy that denies actions when MFA is not present",
        ],
        cli_commands=[
            f"aws iam create-virtual-mfa-device --virtual-mfa-device-name {resource.name} "
            "--outfile qrcode.png --bootstrap-method QRCodePNG",
            f"aws iam enable-mfa-device --user-name {resource.name} "
            "--serial-number <mfa-arn> --authentication-code1 <code1> "
            "--authentication-code2 <code2>",
        ],
        documentation_url=f"{IAM_DOCS}/id_credentials_mfa.html",
    )


def least_privilege(resource: Resource) -> FixGuide:
    return FixGuide(
        title="Apply Least Privilege Principle",
        steps=[
            f"Review the policies attached to {resource.name}",
            'Replace Action "*" and Resource "*" with the specific actions and ARNs needed',
            "Use IAM Access Analyzer to generate a policy from recorded activity",
        ],
        cli_commands=[
            "aws accessanalyzer validate-policy --policy-type IDENTITY_POLICY "
            "--policy-document file://policy.json",
        ],
        documentation_url=f"{IAM_DOCS}/best-practices.html#grant-least-privilege",
    )


def remove_stopped_instance(resource: Resource) -> FixGuide:
    instance = resource.resource_id
    return FixGuide(
        title="Remove or Terminate Stopped Instance",
        steps=[
            "Confirm the instance is no longer needed",
            "Create an AMI if the configuration must be kept",
            "Terminate the instance",
        ],
        cli_commands=[
            f"aws ec2 create-image --instance-id {instance} --name {instance}-backup",
            f"aws ec2 terminate-instances --instance-ids {instance}",
        ],
        documentation_url=f"{EC2_DOCS}/terminating-instances.html",
    )


def remove_unattached_volume(resource: Resource) -> FixGuide:
    volume = resource.resource_id
    return FixGuide(
        title="Remove Unattached EBS Volume",
        steps=[
            "Confirm the volume holds no data that is still needed",
            "Snapshot it if the data must be retained",
            "Delete the volume",
        ],
        cli_commands=[
            f"aws ec2 create-snapshot --volume-id {volume}",
            f"aws ec2 delete-volume --volume-id {volume}",
        ],
        documentation_url=f"{EC2_DOCS}/ebs-deleting-volume.html",
    )


def rightsize_instance(resource: Resource) -> FixGuide:
    instance = resource.resource_id
    return FixGuide(
        title="Right-Size EC2 Instance",
        steps=[
            "Review CPU and memory metrics over at least two weeks",
            "Pick a smaller instance type in the same family",
            "Stop the instance, change its type and start it again",
        ],
        cli_commands=[
            f"aws ec2 stop-instances --instance-ids {instance}",
            f"aws ec2 modify-instance-attribute --instance-id {instance} "
            "--instance-type Value=<smaller-type>",
            f"aws ec2 start-instances --instance-ids {instance}",
        ],
        documentation_url=f"{EC2_DOCS}/ec2-instance-resize.html",
    )


def release_elastic_ip(resource: Resource) -> FixGuide:
    details = resource.floating_ip
    allocation = (details.allocation_id if details else None) or resource.resource_id
    return FixGuide(
        title="Release Unassociated Elastic IP",
        steps=[
            "Confirm the address is not reserved for a planned workload",
            "Release the address",
        ],
        cli_commands=[f"aws ec2 release-address --allocation-id {allocation}"],
        documentation_url=(
            f"{EC2_DOCS}/elastic-ip-addresses-eip.html"
            "#using-instance-addressing-eips-releasing"
        ),
    )


def add_tags(resource: Resource, missing: Sequence[str] = ()) -> FixGuide:
    tag_args = " ".join(f"Key={key},Value=<value>" for key in missing)
    return FixGuide(
        title="Add Required Tags",
        steps=[
            f"Add the missing tags: {', '.join(missing)}",
            "Enforce tagging with AWS Organizations tag policies",
        ],
        cli_commands=[
            f"aws resourcegroupstaggingapi tag-resources --resource-arn-list <arn> "
            f"--tags {tag_args}".rstrip(),
        ],
        documentation_url="https://docs.aws.amazon.com/general/latest/gr/aws_tagging.html",
    )


def enable_rds_backups(resource: Resource) -> FixGuide:
    if resource.database_cluster is not None:
        command = (
            f"aws rds modify-db-cluster --db-cluster-identifier {resource.resource_id} "
            "--backup-retention-period 7 --apply-immediately"
        )
    else:
        command = (
            f"aws rds modify-db-instance --db-instance-identifier {resource.resource_id} "
            "--backup-retention-period 7 --apply-immediately"
        )
    return FixGuide(
        title="Enable RDS Backup Policy",
        steps=[
            "Set the automated backup retention period to at least 7 days",
            "Choose a backup window outside peak hours",
        ],
        cli_commands=[command],
        documentation_url=(
            "https://docs.aws.amazon.com/AmazonRDS/latest/UserGuide/"
            "USER_WorkingWithAutomatedBackups.html"
        ),
    )


def snapshot_volume(resource: Resource) -> FixGuide:
    return FixGuide(
        title="Create EBS Volume Snapshots",
        steps=[
            "Take an initial snapshot of the volume",
            "Automate snapshots with Amazon Data Lifecycle Manager",
        ],
        cli_commands=[
            f"aws ec2 create-snapshot --volume-id {resource.resource_id} "
            f"--description 'Backup of {resource.resource_id}'",
        ],
        documentation_url=f"{EC2_DOCS}/ebs-snapshots.html",
    )


def enable_monitoring(resource: Resource) -> FixGuide:
    return FixGuide(
        title="Enable CloudWatch Monitoring",
        steps=["Enable detailed (1-minute) monitoring on the instance"],
        cli_commands=[f"aws ec2 monitor-instances --instance-ids {resource.resource_id}"],
        documentation_url=f"{EC2_DOCS}/using-cloudwatch-new.html",
    )


FIX_GUIDES: Dict[str, Callable[..., FixGuide]] = {
    "public_s3_bucket_unencrypted": secure_bucket,
    "open_security_group": restrict_security_group,
    "unencrypted_ebs_volume": encrypt_volume,
    "iam_user_no_mfa": enable_mfa,
    "overly_permissive_iam_policy": least_privilege,
    "stopped_instance_old": remove_stopped_instance,
    "unattached_ebs_volume": remove_unattached_volume,
    "oversized_instance": rightsize_instance,
    "unassociated_elastic_ip": release_elastic_ip,
    "missing_tags": add_tags,
    "missing_backup_policy_rds": enable_rds_backups,
    "missing_backup_policy_ebs": snapshot_volume,
    "disabled_cloudwatch_monitoring": enable_monitoring,
}


def fix_guide_for(issue_type: str, resource: Resource, **kwargs) -> FixGuide:
    """
    Build the fix guide for ``issue_type``.

    Raises
    ------
    KeyError
        If no guide is registered for ``issue_type``.
    """
    return FIX_GUIDES[issue_type](resource, **kwargs)
