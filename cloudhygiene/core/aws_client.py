"""
AWS Client Module
=================

Provides a wrapper around boto3 for managing AWS connections with
built-in retry logic, credential validation, cross-account role
assumption and multi-region support.

Classes
-------
CredentialBundle
    Temporary credentials obtained from STS AssumeRole.
AWSClient
    Main client class for AWS operations.

Example
-------
>>> from cloudhygiene.core.aws_client import AWSClient
>>>
>>> base = AWSClient(region="us-east-1")
>>> bundle = base.assume_role(
...     "arn:aws:iam::123456789012:role/HygieneScanner",
...     session_name="cloudhygiene-scan-user-1",
... )
>>> eu = base.with_region("eu-west-1", credentials=bundle)
>>> ec2 = eu.get_ec2_client()

Notes
-----
Sessions and service clients are created lazily and cached per instance.
Credentials are only ever passed by argument. ``CredentialBundle`` masks
its secrets in ``repr`` and has no serializer, so it cannot end up in logs
or in the store by accident.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    NoRegionError,
    ProfileNotFound,
)

from cloudhygiene.core.exceptions import (
    AWSClientError,
    CredentialsError,
    RegionError,
    ServiceError,
)

# Module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialBundle:
    """
    Temporary AWS credentials for a delegated (cross-account) scan.

    Parameters
    ----------
    access_key_id : str
        Temporary access key.
    secret_access_key : str
        Temporary secret key.
    session_token : str
        STS session token.
    expiration : datetime, optional
        When the credentials stop working.
    """

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: str = field(repr=False)
    expiration: Optional[datetime] = None

    def session_kwargs(self) -> Dict[str, str]:
        """Keyword arguments for ``boto3.Session``."""
        return {
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
            "aws_session_token": self.session_token,
        }

    def __repr__(self) -> str:
        masked = f"{self.access_key_id[:4]}****" if self.access_key_id else "****"
        return f"CredentialBundle(access_key_id='{masked}', expiration={self.expiration!r})"


class AWSClient:
    """
    AWS client wrapper with retry logic and credential management.

    Parameters
    ----------
    region : str, default="us-east-1"
        AWS region to connect to.
    profile : str, optional
        AWS profile name from ~/.aws/credentials. Ignored when
        ``credentials`` is given.
    credentials : CredentialBundle, optional
        Explicit temporary credentials (from ``assume_role``).
    max_retries : int, default=3
        Maximum number of attempts for failed API calls.
    timeout : int, default=30
        Request timeout in seconds.

    Examples
    --------
    >>> client = AWSClient(region="us-east-1")
    >>> client.validate_credentials()
    True

    >>> eu_client = client.with_region("eu-west-1")

    Raises
    ------
    CredentialsError
        If AWS credentials are not found or invalid.
    RegionError
        If the specified region is invalid.
    ServiceError
        If unable to create a service client.
    """

    SUPPORTED_SERVICES = {
        "ec2": "Amazon EC2",
        "rds": "Amazon RDS",
        "dynamodb": "Amazon DynamoDB",
        "elbv2": "Elastic Load Balancing (v2)",
        "lambda": "AWS Lambda",
        "ecs": "Amazon ECS",
        "eks": "Amazon EKS",
        "logs": "Amazon CloudWatch Logs",
        "cloudwatch": "Amazon CloudWatch",
        "s3": "Amazon S3",
        "iam": "AWS Identity and Access Management",
        "ce": "AWS Cost Explorer",
        "ses": "Amazon SES",
        "sts": "AWS Security Token Service",
    }

    def __init__(
        self,
        region: str = "us-east-1",
        profile: Optional[str] = None,
        credentials: Optional[CredentialBundle] = None,
        max_retries: int = 3,
        timeout: int = 30,
    ) -> None:
        """Initialize AWS client with the specified configuration."""
        self.region = region
        self.profile = profile
        self.credentials = credentials
        self.max_retries = max_retries
        self.timeout = timeout

        # Lazy-loaded components
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}
        self._resources: Dict[str, Any] = {}

        self._config = self._create_config()

        logger.debug(
            "Initialized AWSClient",
            extra={"region": region, "profile": profile},
        )

    def _create_config(self) -> Config:
        """
        Create boto3 configuration with retry and timeout settings.

        Returns
        -------
        Config
            Boto3 configuration object using adaptive retry mode.
        """
        return Config(
            retries={
                "max_attempts": self.max_retries,
                "mode": "adaptive",
            },
            connect_timeout=self.timeout,
            read_timeout=self.timeout,
        )

    @property
    def session(self) -> boto3.Session:
        """Get or create the boto3 session (lazy initialization)."""
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> boto3.Session:
        """
        Create a new boto3 session.

        Explicit credentials take precedence over a named profile.

        Raises
        ------
        CredentialsError
            If the specified profile is not found.
        RegionError
            If the region is invalid or missing.
        AWSClientError
            For other session creation failures.
        """
        try:
            session_kwargs: Dict[str, Any] = {"region_name": self.region}
            if self.credentials is not None:
                session_kwargs.update(self.credentials.session_kwargs())
            elif self.profile:
                session_kwargs["profile_name"] = self.profile

            session = boto3.Session(**session_kwargs)
            logger.debug(f"Created boto3 session for region {self.region}")
            return session

        except ProfileNotFound:
            raise CredentialsError(
                f"AWS profile '{self.profile}' not found",
                details={
                    "profile": self.profile,
                    "hint": "Check ~/.aws/credentials for available profiles",
                },
            )
        except NoRegionError:
            raise RegionError(
                f"Invalid or missing region: {self.region}",
                region=self.region,
            )
        except Exception as e:
            logger.exception("Failed to create AWS session")
            raise AWSClientError(
                f"Failed to create AWS session: {e}",
                region=self.region,
            )

    def _get_client(self, service_name: str, region: Optional[str] = None) -> Any:
        """
        Get or create a cached boto3 client for the specified service.

        Parameters
        ----------
        service_name : str
            Name of the AWS service (e.g., 'ec2', 'rds').
        region : str, optional
            Override the endpoint region (used for Cost Explorer, which
            only has a us-east-1 endpoint).

        Raises
        ------
        CredentialsError
            If credentials are not found.
        ServiceError
            If unable to create the client.
        """
        cache_key = f"{service_name}:{region or self.region}"
        if cache_key in self._clients:
            return self._clients[cache_key]

        try:
            kwargs: Dict[str, Any] = {"config": self._config}
            if region:
                kwargs["region_name"] = region
            client = self.session.client(service_name, **kwargs)
            self._clients[cache_key] = client
            logger.debug(f"Created {service_name} client for {region or self.region}")
            return client

        except NoCredentialsError:
            raise CredentialsError(
                "AWS credentials not found",
                details={
                    "hint": (
                        "Configure credentials using 'aws configure' or set "
                        "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY environment variables"
                    ),
                },
            )
        except Exception as e:
            logger.exception(f"Failed to create {service_name} client")
            raise ServiceError(
                f"Failed to create {service_name} client: {e}",
                service=service_name,
                region=self.region,
            )

    # =========================================================================
    # Service Client Accessors
    # =========================================================================

    def get_ec2_client(self) -> Any:
        """
        Get the EC2 client.

        Example
        -------
        >>> ec2 = client.get_ec2_client()
        >>> response = ec2.describe_instances()
        """
        return self._get_client("ec2")

    def get_rds_client(self) -> Any:
        """Get the RDS client."""
        return self._get_client("rds")

    def get_dynamodb_client(self) -> Any:
        """Get the DynamoDB client."""
        return self._get_client("dynamodb")

    def get_elbv2_client(self) -> Any:
        """Get the Elastic Load Balancing v2 client (ALB/NLB/GWLB)."""
        return self._get_client("elbv2")

    def get_lambda_client(self) -> Any:
        """Get the Lambda client."""
        return self._get_client("lambda")

    def get_ecs_client(self) -> Any:
        """Get the ECS client."""
        return self._get_client("ecs")

    def get_eks_client(self) -> Any:
        """Get the EKS client."""
        return self._get_client("eks")

    def get_logs_client(self) -> Any:
        """Get the CloudWatch Logs client."""
        return self._get_client("logs")

    def get_cloudwatch_client(self) -> Any:
        """Get the CloudWatch (metrics and alarms) client."""
        return self._get_client("cloudwatch")

    def get_s3_client(self) -> Any:
        """Get the S3 client."""
        return self._get_client("s3")

    def get_iam_client(self) -> Any:
        """Get the IAM client."""
        return self._get_client("iam")

    def get_ce_client(self) -> Any:
        """
        Get the Cost Explorer client.

        Notes
        -----
        Cost Explorer is served only from us-east-1 regardless of the
        client's configured region.
        """
        return self._get_client("ce", region="us-east-1")

    def get_ses_client(self) -> Any:
        """Get the SES client."""
        return self._get_client("ses")

    def get_dynamodb_resource(self) -> Any:
        """
        Get the DynamoDB service resource (used by the stores).

        Example
        -------
        >>> table = client.get_dynamodb_resource().Table("cloudhygiene-scans")
        """
        if "dynamodb" not in self._resources:
            self._resources["dynamodb"] = self.session.resource(
                "dynamodb", config=self._config
            )
        return self._resources["dynamodb"]

    # =========================================================================
    # Credential and Account Operations
    # =========================================================================

    def validate_credentials(self) -> bool:
        """
        Validate AWS credentials by calling STS GetCallerIdentity.

        Returns
        -------
        bool
            True if credentials are valid.

        Raises
        ------
        CredentialsError
            If credentials are invalid, expired, or missing.
        """
        try:
            sts = self._get_client("sts")
            identity = sts.get_caller_identity()
            logger.info(
                "Credentials validated",
                extra={
                    "account": identity["Account"],
                    "arn": identity["Arn"],
                },
            )
            return True

        except CredentialsError:
            raise
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code in ("InvalidClientTokenId", "SignatureDoesNotMatch"):
                raise CredentialsError(
                    "Invalid AWS credentials",
                    service="sts",
                    details={
                        "error_code": error_code,
                        "hint": "Check your access key and secret key",
                    },
                )
            raise CredentialsError(f"Failed to validate credentials: {e}", service="sts")

        except Exception as e:
            logger.exception("Credential validation failed")
            raise CredentialsError(f"Failed to validate credentials: {e}", service="sts")

    def assume_role(
        self,
        role_arn: str,
        session_name: str,
        duration_seconds: int = 3600,
    ) -> CredentialBundle:
        """
        Exchange the current identity for temporary role credentials.

        Parameters
        ----------
        role_arn : str
            ARN of the role to assume in the target account.
        session_name : str
            STS RoleSessionName (truncated to 64 characters).
        duration_seconds : int, default=3600
            Requested credential lifetime.

        Returns
        -------
        CredentialBundle
            Temporary credentials for ``with_region``.

        Raises
        ------
        CredentialsError
            If the role cannot be assumed or STS returns no credentials.
        """
        try:
            sts = self._get_client("sts")
            response = sts.assume_role(
                RoleArn=role_arn,
                RoleSessionName=session_name[:64],
                DurationSeconds=duration_seconds,
            )
        except CredentialsError:
            raise
        except (ClientError, BotoCoreError) as e:
            raise CredentialsError(
                f"Failed to assume role: {e}",
                service="sts",
                details={"role_arn": role_arn},
            )

        creds = response.get("Credentials")
        if not creds:
            raise CredentialsError(
                "AssumeRole returned no credentials",
                service="sts",
                details={"role_arn": role_arn},
            )

        logger.info(f"Assumed role {role_arn} (session {session_name[:64]})")
        return CredentialBundle(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds["SessionToken"],
            expiration=creds.get("Expiration"),
        )

    def get_account_id(self) -> str:
        """
        Get the AWS account ID for the current credentials.

        Raises
        ------
        AWSClientError
            If unable to retrieve the account ID.
        """
        try:
            sts = self._get_client("sts")
            identity = sts.get_caller_identity()
            return identity["Account"]
        except Exception as e:
            logger.exception("Failed to get account ID")
            raise AWSClientError(f"Failed to get account ID: {e}")

    # =========================================================================
    # Factory Methods
    # =========================================================================

    def with_region(
        self,
        region: str,
        credentials: Optional[CredentialBundle] = None,
    ) -> AWSClient:
        """
        Create a new AWSClient instance for a different region.

        Parameters
        ----------
        region : str
            The AWS region for the new client.
        credentials : CredentialBundle, optional
            Credentials for the new client. Defaults to this client's.

        Returns
        -------
        AWSClient
            A new client with the same profile, retries and timeout.
        """
        return AWSClient(
            region=region,
            profile=self.profile,
            credentials=credentials if credentials is not None else self.credentials,
            max_retries=self.max_retries,
            timeout=self.timeout,
        )

    # =========================================================================
    # Context Manager Support
    # =========================================================================

    def __enter__(self) -> AWSClient:
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager and cleanup resources."""
        self._clients.clear()
        self._resources.clear()
        self._session = None

    def __repr__(self) -> str:
        """Return string representation of the client."""
        return (
            f"AWSClient(region='{self.region}', "
            f"profile={self.profile!r}, "
            f"delegated={self.credentials is not None}, "
            f"max_retries={self.max_retries})"
        )
