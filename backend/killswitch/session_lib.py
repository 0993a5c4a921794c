"""Session revocation through time-boxed deny policies."""
from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Mapping, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from . import credentials, metrics
from .errors import RemoteOperationError
from .types import ALL_ROLES, RevocationOutcome

LOGGER = logging.getLogger(__name__)

POLICY_NAME_PREFIX = "TokenInvalidationPolicy"
POLICY_DESCRIPTION = "Policy to invalidate all tokens at time of creation"


def build_revocation_policy(issued_before: datetime) -> Mapping[str, object]:
    """Deny everything to sessions whose token was issued before ``issued_before``."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Deny",
                "Action": "*",
                "Resource": "*",
                "Condition": {"DateLessThan": {"aws:TokenIssueTime": _rfc3339(issued_before)}},
            }
        ],
    }


def revocation_policy_name(when: datetime) -> str:
    return f"{POLICY_NAME_PREFIX}-{_utc(when):%Y%m%d-%H%M%S}"


def revoke_sessions(
    session: boto3.Session,
    *,
    account_id: str,
    role_to_assume: str,
    target_role_name: str,
    now: datetime | None = None,
    max_workers: int = 1,
    session_name: str = credentials.DEFAULT_SESSION_NAME,
) -> str:
    """Create a revocation policy and attach it to one role or to every role.

    With ``target_role_name == "ALL"`` the attach step is best effort; see
    :func:`revoke_all_roles`. A single named role fails hard.
    """
    assumed = credentials.assume_role(session, account_id, role_to_assume, session_name=session_name)
    iam = _iam_client(assumed)
    timestamp = now or metrics.now()
    policy_arn = _create_revocation_policy(iam, account_id, timestamp)

    if target_role_name == ALL_ROLES:
        outcome = revoke_all_roles(
            iam,
            account_id=account_id,
            policy_arn=policy_arn,
            assumed_role_name=role_to_assume,
            max_workers=max_workers,
        )
        return outcome.render()

    LOGGER.info("Attaching %s to role %s in %s", policy_arn, target_role_name, account_id)
    try:
        iam.attach_role_policy(RoleName=target_role_name, PolicyArn=policy_arn)
    except (ClientError, BotoCoreError) as exc:
        raise RemoteOperationError(
            "AttachRolePolicy",
            f"error attaching new policy to role {target_role_name} in account {account_id}",
            account_id=account_id,
            role_name=target_role_name,
            cause=exc,
        ) from exc
    return f"New token revocation policy attached to role {target_role_name} in account {account_id}"


def revoke_all_roles(
    iam,
    *,
    account_id: str,
    policy_arn: str,
    assumed_role_name: str,
    max_workers: int = 1,
) -> RevocationOutcome:
    """Attach ``policy_arn`` to every role in the account except the assumed one.

    Listing failures raise. Attach failures are logged and recorded per role
    and never stop the remaining attachments. Roles are reported in listing
    order regardless of ``max_workers``.
    """
    role_names = [name for name in _list_role_names(iam, account_id) if name != assumed_role_name]
    LOGGER.info("Attaching %s to %d roles in %s", policy_arn, len(role_names), account_id)
    start = time.perf_counter()

    if max_workers > 1 and len(role_names) > 1:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(role_names))) as pool:
            errors = list(pool.map(lambda name: _attach_one(iam, name, policy_arn), role_names))
    else:
        errors = [_attach_one(iam, name, policy_arn) for name in role_names]

    attached: list[str] = []
    failed: dict[str, str] = {}
    for name, error in zip(role_names, errors):
        if error is None:
            attached.append(name)
        else:
            LOGGER.error("Error attaching policy to role %s in %s: %s", name, account_id, error)
            failed[name] = error

    outcome = RevocationOutcome(account_id=account_id, policy_arn=policy_arn, attached=attached, failed=failed)
    if outcome.partial:
        LOGGER.warning(
            "Revocation policy attached to %d of %d roles in %s",
            len(attached),
            len(role_names),
            account_id,
        )
    metrics.put_metric(
        action="bulk-attach",
        account_id=account_id,
        result="partial" if outcome.partial else "success",
        latency_ms=(time.perf_counter() - start) * 1000,
        roles_modified=len(attached),
        roles_failed=len(failed),
    )
    return outcome


def _create_revocation_policy(iam, account_id: str, timestamp: datetime) -> str:
    name = revocation_policy_name(timestamp)
    LOGGER.info("Creating revocation policy %s in %s", name, account_id)
    try:
        response = iam.create_policy(
            PolicyName=name,
            PolicyDocument=json.dumps(build_revocation_policy(timestamp)),
            Description=POLICY_DESCRIPTION,
        )
    except (ClientError, BotoCoreError) as exc:
        raise RemoteOperationError(
            "CreatePolicy",
            f"error creating revocation policy {name} in account {account_id}",
            account_id=account_id,
            cause=exc,
        ) from exc
    return response["Policy"]["Arn"]


def _list_role_names(iam, account_id: str) -> Sequence[str]:
    try:
        paginator = iam.get_paginator("list_roles")
        return [role["RoleName"] for page in paginator.paginate() for role in page.get("Roles", [])]
    except (ClientError, BotoCoreError) as exc:
        raise RemoteOperationError(
            "ListRoles",
            f"error listing roles in account {account_id}",
            account_id=account_id,
            cause=exc,
        ) from exc


def _attach_one(iam, role_name: str, policy_arn: str) -> str | None:
    try:
        iam.attach_role_policy(RoleName=role_name, PolicyArn=policy_arn)
    except (ClientError, BotoCoreError) as exc:
        return str(exc)
    return None


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _rfc3339(value: datetime) -> str:
    return _utc(value).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _iam_client(session: boto3.Session):
    return session.client("iam")
