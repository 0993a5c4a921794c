"""Cross-account credential acquisition through STS AssumeRole."""
from __future__ import annotations

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import CredentialError

LOGGER = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "aws-killswitch"


def role_arn(account_id: str, role_name: str) -> str:
    return f"arn:aws:iam::{account_id}:role/{role_name}"


def assume_role(
    session: boto3.Session,
    account_id: str,
    role_name: str,
    *,
    session_name: str = DEFAULT_SESSION_NAME,
) -> boto3.Session:
    """Assume ``role_name`` in ``account_id`` and return a session scoped to it.

    The returned session carries temporary credentials and is meant for the
    clients of a single action; nothing is cached or refreshed.
    """
    arn = role_arn(account_id, role_name)
    LOGGER.info("Assuming role %s", arn)
    sts = session.client("sts")
    try:
        response = sts.assume_role(RoleArn=arn, RoleSessionName=session_name)
    except (ClientError, BotoCoreError) as exc:
        LOGGER.error("Failed to assume role %s: %s", arn, exc)
        raise CredentialError(account_id, role_name, exc) from exc
    creds = response["Credentials"]
    return boto3.Session(
        aws_access_key_id=creds["AccessKeyId"],
        aws_secret_access_key=creds["SecretAccessKey"],
        aws_session_token=creds["SessionToken"],
        region_name=session.region_name,
    )


__all__ = ["DEFAULT_SESSION_NAME", "assume_role", "role_arn"]
