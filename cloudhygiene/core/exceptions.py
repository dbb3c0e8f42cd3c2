"""
Custom Exceptions for Cloud Hygiene
===================================

This module defines the hierarchy of exceptions used throughout the
application for consistent error handling and reporting.

Exception Hierarchy
-------------------
::

    CloudHygieneError (base)
    ├── AWSClientError
    │   ├── ServiceError
    │   └── SetupError
    │       ├── CredentialsError
    │       └── RegionError
    ├── CollectionError
    ├── PersistenceError
    └── NotificationError

Only ``SetupError`` is allowed to abort a scan. The other classes are
captured as data (``ScanError`` records, alert outcomes) by the code that
catches them.

Example
-------
>>> from cloudhygiene.core.exceptions import CredentialsError, SetupError
>>>
>>> try:
...     orchestrator.run_scan(user_id="user-1")
... except CredentialsError as e:
...     print(f"Cannot assume role: {e}")
... except SetupError as e:
...     print(f"Scan setup failed: {e}")
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CloudHygieneError(Exception):
    """
    Base exception for all Cloud Hygiene errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    details : dict, optional
        Additional context about the error.

    Attributes
    ----------
    message : str
        The error message.
    details : dict
        Additional error details.

    Example
    -------
    >>> raise CloudHygieneError("Something went wrong", details={"code": 500})
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns
        -------
        dict
            Dictionary representation of the error.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# AWS Client Exceptions
# =============================================================================


class AWSClientError(CloudHygieneError):
    """
    Base exception for AWS client-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    service : str, optional
        The AWS service that caused the error.
    region : str, optional
        The AWS region where the error occurred.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        region: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.region = region
        full_details = details or {}
        if service:
            full_details["service"] = service
        if region:
            full_details["region"] = region
        super().__init__(message, full_details)


class ServiceError(AWSClientError):
    """
    Raised when a boto3 client for a service cannot be created.

    Example
    -------
    >>> raise ServiceError(
    ...     "Failed to create ec2 client",
    ...     service="ec2",
    ...     region="us-east-1"
    ... )
    """

    pass


class SetupError(AWSClientError):
    """
    Raised when a scan cannot be started at all.

    Credential resolution and explicit region validation raise subclasses
    of this error. Region discovery failures never do; discovery degrades
    to the default region set.
    """

    pass


class CredentialsError(SetupError):
    """
    Raised when AWS credentials are invalid, missing, or cannot be assumed.

    Example
    -------
    >>> raise CredentialsError(
    ...     "Failed to assume role",
    ...     service="sts",
    ...     details={"role_arn": "arn:aws:iam::123456789012:role/Scanner"}
    ... )
    """

    pass


class RegionError(SetupError):
    """
    Raised when an explicitly requested region name is invalid.

    Example
    -------
    >>> raise RegionError("Invalid region specified", region="us-invalid")
    """

    pass


# =============================================================================
# Pipeline Exceptions
# =============================================================================


class CollectionError(CloudHygieneError):
    """
    Raised when one collector sub-operation fails.

    Never fatal: collectors convert it into a ``ScanError`` record and keep
    going with their other operations.

    Parameters
    ----------
    message : str
        Human-readable error message.
    service : str, optional
        Collector service family (e.g. 'compute', 'storage').
    region : str, optional
        Region name or 'global'.
    operation : str, optional
        Name of the failed sub-operation.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        region: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.region = region
        self.operation = operation
        full_details = details or {}
        if service:
            full_details["service"] = service
        if region:
            full_details["region"] = region
        if operation:
            full_details["operation"] = operation
        super().__init__(message, full_details)


class PersistenceError(CloudHygieneError):
    """
    Raised when a store read or write fails.

    Parameters
    ----------
    message : str
        Human-readable error message.
    table : str, optional
        DynamoDB table involved.
    operation : str, optional
        Store operation (e.g. 'put_scan').
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.table = table
        self.operation = operation
        full_details = details or {}
        if table:
            full_details["table"] = table
        if operation:
            full_details["operation"] = operation
        super().__init__(message, full_details)


class NotificationError(CloudHygieneError):
    """
    Raised when an alert cannot be delivered on one channel.

    Example
    -------
    >>> raise NotificationError("Slack webhook returned 500", channel="slack")
    """

    def __init__(
        self,
        message: str,
        channel: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.channel = channel
        full_details = details or {}
        if channel:
            full_details["channel"] = channel
        super().__init__(message, full_details)
