"""Role sanitizing and deletion helpers."""
from __future__ import annotations

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from . import credentials
from .errors import RemoteOperationError
from .types import SanitizeResult

LOGGER = logging.getLogger(__name__)


def sanitize_role(iam, *, account_id: str, role_name: str) -> SanitizeResult:
    """Detach every managed policy, then delete every inline policy of a role.

    Managed policies are always handled before inline ones. The first failed
    call raises; policies already removed stay removed.
    """
    result = SanitizeResult(role_name=role_name)

    for policy_arn in _attached_policy_arns(iam, account_id, role_name):
        LOGGER.info("Detaching %s from role %s in %s", policy_arn, role_name, account_id)
        try:
            iam.detach_role_policy(RoleName=role_name, PolicyArn=policy_arn)
        except (ClientError, BotoCoreError) as exc:
            raise RemoteOperationError(
                "DetachRolePolicy",
                f"error detaching policy {policy_arn} from role {role_name} in account {account_id}",
                account_id=account_id,
                role_name=role_name,
                cause=exc,
            ) from exc
        result.detached_policy_arns.append(policy_arn)

    for policy_name in _inline_policy_names(iam, account_id, role_name):
        LOGGER.info("Deleting inline policy %s from role %s in %s", policy_name, role_name, account_id)
        try:
            iam.delete_role_policy(RoleName=role_name, PolicyName=policy_name)
        except (ClientError, BotoCoreError) as exc:
            raise RemoteOperationError(
                "DeleteRolePolicy",
                f"error deleting inline policy {policy_name} from role {role_name} in account {account_id}",
                account_id=account_id,
                role_name=role_name,
                cause=exc,
            ) from exc
        result.deleted_inline_policies.append(policy_name)

    if not result.changed:
        LOGGER.info("Role %s in %s has no policies left to remove", role_name, account_id)
    return result


def detach_policies(
    session: boto3.Session,
    *,
    account_id: str,
    role_to_assume: str,
    role_name: str,
    session_name: str = credentials.DEFAULT_SESSION_NAME,
) -> str:
    """Strip all policies from ``role_name`` without deleting the role."""
    assumed = credentials.assume_role(session, account_id, role_to_assume, session_name=session_name)
    sanitize_role(_iam_client(assumed), account_id=account_id, role_name=role_name)
    return f"Policies detached from role {role_name} in account {account_id}"


def delete_role(
    session: boto3.Session,
    *,
    account_id: str,
    role_to_assume: str,
    role_name: str,
    session_name: str = credentials.DEFAULT_SESSION_NAME,
) -> str:
    """Strip all policies from ``role_name`` and delete it.

    Deleting the role also invalidates its active sessions.
    """
    assumed = credentials.assume_role(session, account_id, role_to_assume, session_name=session_name)
    iam = _iam_client(assumed)
    sanitize_role(iam, account_id=account_id, role_name=role_name)

    LOGGER.info("Deleting role %s in %s", role_name, account_id)
    try:
        iam.delete_role(RoleName=role_name)
    except (ClientError, BotoCoreError) as exc:
        raise RemoteOperationError(
            "DeleteRole",
            f"error deleting role {role_name} in account {account_id}",
            account_id=account_id,
            role_name=role_name,
            cause=exc,
        ) from exc
    return f"Role {role_name} and its policies are detached and deleted in account {account_id}"


def _attached_policy_arns(iam, account_id: str, role_name: str) -> list[str]:
    try:
        paginator = iam.get_paginator("list_attached_role_policies")
        return [
            policy["PolicyArn"]
            for page in paginator.paginate(RoleName=role_name)
            for policy in page.get("AttachedPolicies", [])
        ]
    except (ClientError, BotoCoreError) as exc:
        raise RemoteOperationError(
            "ListAttachedRolePolicies",
            f"error listing attached policies for role {role_name} in account {account_id}",
            account_id=account_id,
            role_name=role_name,
            cause=exc,
        ) from exc


def _inline_policy_names(iam, account_id: str, role_name: str) -> list[str]:
    try:
        paginator = iam.get_paginator("list_role_policies")
        return [name for page in paginator.paginate(RoleName=role_name) for name in page.get("PolicyNames", [])]
    except (ClientError, BotoCoreError) as exc:
        raise RemoteOperationError(
            "ListRolePolicies",
            f"error listing inline policies for role {role_name} in account {account_id}",
            account_id=account_id,
            role_name=role_name,
            cause=exc,
        ) from exc


def _iam_client(session: boto3.Session):
    return session.client("iam")
