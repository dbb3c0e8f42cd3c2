"""
Storage Collector Module
========================

Collects S3 buckets. S3 bucket listing is account-wide, so this is a
global collector and every bucket carries region 'global'; the bucket's
home region is kept in ``BucketDetails.location``.

Per-bucket Lookups
------------------
=========================  ==============================================
Call                       Interpretation
=========================  ==============================================
get_bucket_location        ``None`` constraint means us-east-1
get_bucket_encryption      ``ServerSideEncryptionConfigurationNotFoundError``
                           means not encrypted
get_public_access_block    public unless all four block flags are true;
                           ``NoSuchPublicAccessBlockConfiguration`` means
                           public
get_bucket_tagging         ``NoSuchTagSet`` means no tags
=========================  ==============================================

Any other failure of a lookup is recorded as an error for that operation
and leaves the corresponding field unknown (None).
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from botocore.exceptions import ClientError

from cloudhygiene.core.base_collector import BaseCollector, tags_to_dict
from cloudhygiene.models.base import to_iso
from cloudhygiene.models.resource import BucketDetails, Resource, ResourceType

# Module logger
logger = logging.getLogger(__name__)

PUBLIC_ACCESS_FLAGS = (
    "BlockPublicAcls",
    "IgnorePublicAcls",
    "BlockPublicPolicy",
    "RestrictPublicBuckets",
)


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class StorageCollector(BaseCollector):
    """Global collector for S3 buckets."""

    service = "storage"
    is_global = True

    def __init__(self, aws_client) -> None:
        super().__init__(aws_client)
        self._s3_client = None

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = self.aws_client.get_s3_client()
        return self._s3_client

    def get_operations(self) -> List[Tuple[str, Callable[[], List[Resource]]]]:
        return [("list_buckets", self._collect_buckets)]

    def _collect_buckets(self) -> List[Resource]:
        resources: List[Resource] = []
        response = self.s3_client.list_buckets()

        for bucket in response.get("Buckets", []):
            name = bucket["Name"]
            location = self.attempt(
                "get_bucket_location", lambda: self._bucket_location(name), default=None
            )
            encrypted, algorithm = self.attempt(
                "get_bucket_encryption",
                lambda: self._bucket_encryption(name),
                default=(None, None),
            )
            is_public = self.attempt(
                "get_public_access_block", lambda: self._is_public(name), default=None
            )
            tags = self.attempt(
                "get_bucket_tagging", lambda: self._bucket_tags(name), default={}
            )

            resources.append(
                Resource(
                    resource_id=name,
                    name=name,
                    resource_type=ResourceType.OBJECT_BUCKET,
                    region=self.region,
                    state="active",
                    details=BucketDetails(
                        location=location or "unknown",
                        encrypted=encrypted,
                        encryption_algorithm=algorithm,
                        is_public=is_public,
                    ),
                    tags=tags,
                    creation_date=to_iso(bucket.get("CreationDate")),
                )
            )

        return resources

    def _bucket_location(self, name: str) -> str:
        response = self.s3_client.get_bucket_location(Bucket=name)
        return response.get("LocationConstraint") or "us-east-1"

    def _bucket_encryption(self, name: str) -> Tuple[bool, Optional[str]]:
        try:
            response = self.s3_client.get_bucket_encryption(Bucket=name)
        except ClientError as e:
            if _error_code(e) == "ServerSideEncryptionConfigurationNotFoundError":
                return False, None
            raise
        rules = response.get("ServerSideEncryptionConfiguration", {}).get("Rules", [])
        if not rules:
            return False, None
        default = rules[0].get("ApplyServerSideEncryptionByDefault", {})
        return True, default.get("SSEAlgorithm")

    def _is_public(self, name: str) -> bool:
        try:
            response = self.s3_client.get_public_access_block(Bucket=name)
        except ClientError as e:
            if _error_code(e) == "NoSuchPublicAccessBlockConfiguration":
                return True
            raise
        config = response.get("PublicAccessBlockConfiguration", {})
        return not all(config.get(flag, False) for flag in PUBLIC_ACCESS_FLAGS)

    def _bucket_tags(self, name: str) -> Dict[str, str]:
        try:
            response = self.s3_client.get_bucket_tagging(Bucket=name)
        except ClientError as e:
            if _error_code(e) == "NoSuchTagSet":
                return {}
            raise
        return tags_to_dict(response.get("TagSet"))
