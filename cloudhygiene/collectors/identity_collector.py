"""
Identity Collector Module
=========================

Collects IAM users, roles and customer-managed policies (global).

Users carry their MFA status and the statements of their inline
policies; roles carry their inline policy statements; customer-managed
policies carry the statements of their default version. The scoring
rules check these statements for ``Allow`` on Action ``*`` and
Resource ``*``.

Notes
-----
IAM returns policy documents URL-encoded. botocore normally decodes them
into dicts, but both forms are accepted by ``policy_statements``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Tuple, Union
from urllib.parse import unquote

from cloudhygiene.core.base_collector import BaseCollector, tags_to_dict
from cloudhygiene.models.base import to_iso
from cloudhygiene.models.resource import (
    PolicyDetails,
    PrincipalDetails,
    Resource,
    ResourceType,
    RoleDetails,
)

# Module logger
logger = logging.getLogger(__name__)


def policy_statements(document: Union[str, Dict[str, Any], None]) -> List[Dict[str, Any]]:
    """
    Normalise a policy document into a list of statement dicts.

    Example
    -------
    >>> policy_statements('%7B%22Statement%22%3A%7B%22Effect%22%3A%22Allow%22%7D%7D')
    [{'Effect': 'Allow'}]
    """
    if not document:
        return []
    if isinstance(document, str):
        document = json.loads(unquote(document))
    statements = document.get("Statement", [])
    if isinstance(statements, dict):
        return [statements]
    return list(statements)


class IdentityCollector(BaseCollector):
    """Global collector for IAM identities and policies."""

    service = "identity"
    is_global = True

    def __init__(self, aws_client) -> None:
        super().__init__(aws_client)
        self._iam_client = None

    @property
    def iam_client(self):
        if self._iam_client is None:
            self._iam_client = self.aws_client.get_iam_client()
        return self._iam_client

    def get_operations(self) -> List[Tuple[str, Callable[[], List[Resource]]]]:
        return [
            ("list_users", self._collect_users),
            ("list_roles", self._collect_roles),
            ("list_policies", self._collect_policies),
        ]

    # =========================================================================
    # Users
    # =========================================================================

    def _collect_users(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.iam_client.get_paginator("list_users")

        for page in paginator.paginate():
            for user in page.get("Users", []):
                name = user["UserName"]
                mfa_enabled = self.attempt(
                    "list_mfa_devices", lambda: self._has_mfa(name), default=None
                )
                statements = self.attempt(
                    "get_user_policy", lambda: self._user_inline_statements(name), default=[]
                )
                resources.append(
                    Resource(
                        resource_id=user.get("UserId", name),
                        name=name,
                        resource_type=ResourceType.IDENTITY_PRINCIPAL,
                        region=self.region,
                        state="active",
                        details=PrincipalDetails(
                            arn=user.get("Arn", ""),
                            mfa_enabled=mfa_enabled,
                            password_last_used=to_iso(user.get("PasswordLastUsed")),
                            policy_statements=statements,
                        ),
                        tags=tags_to_dict(user.get("Tags")),
                        creation_date=to_iso(user.get("CreateDate")),
                    )
                )

        return resources

    def _has_mfa(self, user_name: str) -> bool:
        response = self.iam_client.list_mfa_devices(UserName=user_name)
        return len(response.get("MFADevices", [])) > 0

    def _user_inline_statements(self, user_name: str) -> List[Dict[str, Any]]:
        statements: List[Dict[str, Any]] = []
        paginator = self.iam_client.get_paginator("list_user_policies")
        for page in paginator.paginate(UserName=user_name):
            for policy_name in page.get("PolicyNames", []):
                response = self.iam_client.get_user_policy(
                    UserName=user_name, PolicyName=policy_name
                )
                statements.extend(policy_statements(response.get("PolicyDocument")))
        return statements

    # =========================================================================
    # Roles
    # =========================================================================

    def _collect_roles(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.iam_client.get_paginator("list_roles")

        for page in paginator.paginate():
            for role in page.get("Roles", []):
                name = role["RoleName"]
                statements = self.attempt(
                    "get_role_policy", lambda: self._role_inline_statements(name), default=[]
                )
                resources.append(
                    Resource(
                        resource_id=role.get("RoleId", name),
                        name=name,
                        resource_type=ResourceType.IDENTITY_ROLE,
                        region=self.region,
                        state="active",
                        details=RoleDetails(
                            arn=role.get("Arn", ""),
                            path=role.get("Path", "/"),
                            policy_statements=statements,
                        ),
                        tags=tags_to_dict(role.get("Tags")),
                        creation_date=to_iso(role.get("CreateDate")),
                    )
                )

        return resources

    def _role_inline_statements(self, role_name: str) -> List[Dict[str, Any]]:
        statements: List[Dict[str, Any]] = []
        paginator = self.iam_client.get_paginator("list_role_policies")
        for page in paginator.paginate(RoleName=role_name):
            for policy_name in page.get("PolicyNames", []):
                response = self.iam_client.get_role_policy(
                    RoleName=role_name, PolicyName=policy_name
                )
                statements.extend(policy_statements(response.get("PolicyDocument")))
        return statements

    # =========================================================================
    # Customer-managed Policies
    # =========================================================================

    def _collect_policies(self) -> List[Resource]:
        resources: List[Resource] = []
        paginator = self.iam_client.get_paginator("list_policies")

        for page in paginator.paginate(Scope="Local"):
            for policy in page.get("Policies", []):
                arn = policy["Arn"]
                version_id = policy.get("DefaultVersionId")
                statements = self.attempt(
                    "get_policy_version",
                    lambda: self._policy_statements(arn, version_id),
                    default=[],
                )
                resources.append(
                    Resource(
                        resource_id=policy.get("PolicyId", arn),
                        name=policy.get("PolicyName", arn),
                        resource_type=ResourceType.IDENTITY_POLICY,
                        region=self.region,
                        state="active",
                        details=PolicyDetails(
                            arn=arn,
                            default_version_id=version_id,
                            attachment_count=policy.get("AttachmentCount", 0),
                            policy_statements=statements,
                        ),
                        creation_date=to_iso(policy.get("CreateDate")),
                    )
                )

        return resources

    def _policy_statements(self, arn: str, version_id: str) -> List[Dict[str, Any]]:
        if not version_id:
            return []
        response = self.iam_client.get_policy_version(PolicyArn=arn, VersionId=version_id)
        return policy_statements(response.get("PolicyVersion", {}).get("Document"))
