"""Service control policy creation and attachment."""
from __future__ import annotations

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from . import credentials
from .errors import RemoteOperationError

LOGGER = logging.getLogger(__name__)

SCP_NAME = "HighlyRestrictiveSCP"
SCP_DESCRIPTION = "Highly Restrictive SCP"
SCP_TYPE = "SERVICE_CONTROL_POLICY"


def apply_scp(
    session: boto3.Session,
    *,
    management_account_id: str,
    target_account_id: str,
    role_to_assume: str,
    policy_content: str,
    session_name: str = credentials.DEFAULT_SESSION_NAME,
) -> str:
    """Create the restrictive SCP in the organization and attach it to the target account.

    A policy that was created but could not be attached is left in place.
    """
    assumed = credentials.assume_role(
        session, management_account_id, role_to_assume, session_name=session_name
    )
    org = _organizations_client(assumed)

    LOGGER.info("Creating SCP %s via management account %s", SCP_NAME, management_account_id)
    try:
        response = org.create_policy(
            Content=policy_content,
            Description=SCP_DESCRIPTION,
            Name=SCP_NAME,
            Type=SCP_TYPE,
        )
    except (ClientError, BotoCoreError) as exc:
        LOGGER.error("Failed to create SCP in %s: %s", management_account_id, exc)
        raise RemoteOperationError(
            "CreatePolicy",
            f"error creating SCP in organization of account {management_account_id}",
            account_id=management_account_id,
            role_name=role_to_assume,
            cause=exc,
        ) from exc
    policy_id = response["Policy"]["PolicySummary"]["Id"]

    LOGGER.info("Attaching SCP %s to account %s", policy_id, target_account_id)
    try:
        org.attach_policy(PolicyId=policy_id, TargetId=target_account_id)
    except (ClientError, BotoCoreError) as exc:
        LOGGER.error("SCP %s created but not attached to %s: %s", policy_id, target_account_id, exc)
        raise RemoteOperationError(
            "AttachPolicy",
            f"error attaching SCP {policy_id} to account {target_account_id}",
            account_id=target_account_id,
            role_name=role_to_assume,
            cause=exc,
        ) from exc

    return f"SCP applied to account {target_account_id} with policy ID {policy_id}"


def _organizations_client(session: boto3.Session):
    return session.client("organizations")
