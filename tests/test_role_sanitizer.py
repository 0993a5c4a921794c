"""Role sanitizing, detach and delete tests."""
from __future__ import annotations

import json

import pytest

boto3 = pytest.importorskip("boto3")
pytest.importorskip("botocore")
from botocore.stub import Stubber

pytest.importorskip("moto")
from moto import mock_aws

from backend.killswitch import credentials, role_lib
from backend.killswitch.errors import RemoteOperationError

ACCOUNT_ID = "123456789012"
REGION = "us-east-1"
ASSUMED_ROLE = "KillSwitchRole"
TRUST_POLICY = json.dumps(
    {
        "Version": "2012-10-17",
        "Statement": [
            {"Effect": "Allow", "Principal": {"AWS": f"arn:aws:iam::{ACCOUNT_ID}:root"}, "Action": "sts:AssumeRole"}
        ],
    }
)

ROLE = "CompromisedRole"
INLINE_DOCUMENT = json.dumps(
    {"Version": "2012-10-17", "Statement": [{"Effect": "Allow", "Action": "s3:*", "Resource": "*"}]}
)


@pytest.fixture
def direct_session(monkeypatch):
    """Skip STS and hand the caller's own session to the role helpers."""
    assumed: list[tuple[str, str]] = []

    def _assume(session, account_id, role_name, **_kwargs):
        assumed.append((account_id, role_name))
        return session

    monkeypatch.setattr(credentials, "assume_role", _assume)
    return assumed


def _seed_role(iam, managed: int, inline: int) -> list[str]:
    iam.create_role(RoleName=ROLE, AssumeRolePolicyDocument=TRUST_POLICY)
    arns = []
    for index in range(managed):
        arn = iam.create_policy(PolicyName=f"managed-{index}", PolicyDocument=INLINE_DOCUMENT)["Policy"]["Arn"]
        iam.attach_role_policy(RoleName=ROLE, PolicyArn=arn)
        arns.append(arn)
    for index in range(inline):
        iam.put_role_policy(RoleName=ROLE, PolicyName=f"inline-{index}", PolicyDocument=INLINE_DOCUMENT)
    return arns


@mock_aws
def test_detach_removes_managed_and_inline_policies(direct_session):
    session = boto3.Session(region_name=REGION)
    iam = session.client("iam")
    _seed_role(iam, managed=3, inline=2)

    result = role_lib.detach_policies(session, account_id=ACCOUNT_ID, role_to_assume=ASSUMED_ROLE, role_name=ROLE)

    assert result == f"Policies detached from role {ROLE} in account {ACCOUNT_ID}"
    assert iam.list_attached_role_policies(RoleName=ROLE)["AttachedPolicies"] == []
    assert iam.list_role_policies(RoleName=ROLE)["PolicyNames"] == []
    assert iam.get_role(RoleName=ROLE)["Role"]["RoleName"] == ROLE
    assert direct_session == [(ACCOUNT_ID, ASSUMED_ROLE)]


@mock_aws
def test_detach_twice_is_idempotent(direct_session):
    session = boto3.Session(region_name=REGION)
    iam = session.client("iam")
    _seed_role(iam, managed=2, inline=1)
    expected = f"Policies detached from role {ROLE} in account {ACCOUNT_ID}"

    first = role_lib.detach_policies(session, account_id=ACCOUNT_ID, role_to_assume=ASSUMED_ROLE, role_name=ROLE)
    second = role_lib.detach_policies(session, account_id=ACCOUNT_ID, role_to_assume=ASSUMED_ROLE, role_name=ROLE)

    assert first == second == expected
    assert iam.list_attached_role_policies(RoleName=ROLE)["AttachedPolicies"] == []
    assert iam.list_role_policies(RoleName=ROLE)["PolicyNames"] == []
    assert not role_lib.sanitize_role(iam, account_id=ACCOUNT_ID, role_name=ROLE).changed


@mock_aws
def test_sanitize_reports_removed_policies():
    iam = boto3.client("iam", region_name=REGION)
    arns = _seed_role(iam, managed=2, inline=1)

    result = role_lib.sanitize_role(iam, account_id=ACCOUNT_ID, role_name=ROLE)

    assert sorted(result.detached_policy_arns) == sorted(arns)
    assert result.deleted_inline_policies == ["inline-0"]
    assert result.changed


@mock_aws
def test_delete_role_removes_role(direct_session):
    session = boto3.Session(region_name=REGION)
    iam = session.client("iam")
    _seed_role(iam, managed=1, inline=1)

    result = role_lib.delete_role(session, account_id=ACCOUNT_ID, role_to_assume=ASSUMED_ROLE, role_name=ROLE)

    assert result == f"Role {ROLE} and its policies are detached and deleted in account {ACCOUNT_ID}"
    assert ROLE not in [role["RoleName"] for role in iam.list_roles()["Roles"]]


def _listing(stubber, arns):
    stubber.add_response(
        "list_attached_role_policies",
        {
            "AttachedPolicies": [{"PolicyName": arn.rsplit("/", 1)[-1], "PolicyArn": arn} for arn in arns],
            "IsTruncated": False,
        },
        {"RoleName": ROLE},
    )


def test_managed_policies_are_removed_before_inline_then_role_deleted(monkeypatch, direct_session):
    iam = boto3.client("iam", region_name=REGION)
    monkeypatch.setattr(role_lib, "_iam_client", lambda _session: iam)
    arn = f"arn:aws:iam::{ACCOUNT_ID}:policy/managed-0"

    with Stubber(iam) as stubber:
        _listing(stubber, [arn])
        stubber.add_response("detach_role_policy", {}, {"RoleName": ROLE, "PolicyArn": arn})
        stubber.add_response(
            "list_role_policies", {"PolicyNames": ["inline-0"], "IsTruncated": False}, {"RoleName": ROLE}
        )
        stubber.add_response("delete_role_policy", {}, {"RoleName": ROLE, "PolicyName": "inline-0"})
        stubber.add_response("delete_role", {}, {"RoleName": ROLE})

        role_lib.delete_role(object(), account_id=ACCOUNT_ID, role_to_assume=ASSUMED_ROLE, role_name=ROLE)
        stubber.assert_no_pending_responses()


def test_detach_failure_stops_before_delete(monkeypatch, direct_session):
    iam = boto3.client("iam", region_name=REGION)
    monkeypatch.setattr(role_lib, "_iam_client", lambda _session: iam)
    arns = [f"arn:aws:iam::{ACCOUNT_ID}:policy/managed-{index}" for index in range(3)]

    with Stubber(iam) as stubber:
        _listing(stubber, arns)
        stubber.add_response("detach_role_policy", {}, {"RoleName": ROLE, "PolicyArn": arns[0]})
        stubber.add_client_error(
            "detach_role_policy",
            service_error_code="AccessDenied",
            service_message="denied",
            http_status_code=403,
            expected_params={"RoleName": ROLE, "PolicyArn": arns[1]},
        )

        with pytest.raises(RemoteOperationError) as excinfo:
            role_lib.delete_role(object(), account_id=ACCOUNT_ID, role_to_assume=ASSUMED_ROLE, role_name=ROLE)
        stubber.assert_no_pending_responses()

    assert excinfo.value.operation == "DetachRolePolicy"
    assert excinfo.value.role_name == ROLE
    assert arns[1] in str(excinfo.value)


def test_listing_failure_is_reported(monkeypatch, direct_session):
    iam = boto3.client("iam", region_name=REGION)
    monkeypatch.setattr(role_lib, "_iam_client", lambda _session: iam)

    with Stubber(iam) as stubber:
        stubber.add_client_error(
            "list_attached_role_policies",
            service_error_code="NoSuchEntity",
            service_message="role not found",
            http_status_code=404,
        )
        with pytest.raises(RemoteOperationError) as excinfo:
            role_lib.detach_policies(object(), account_id=ACCOUNT_ID, role_to_assume=ASSUMED_ROLE, role_name=ROLE)

    assert excinfo.value.operation == "ListAttachedRolePolicies"


def test_inline_delete_failure_stops_before_role_delete(monkeypatch, direct_session):
    iam = boto3.client("iam", region_name=REGION)
    monkeypatch.setattr(role_lib, "_iam_client", lambda _session: iam)

    with Stubber(iam) as stubber:
        _listing(stubber, [])
        stubber.add_response(
            "list_role_policies", {"PolicyNames": ["inline-0", "inline-1"], "IsTruncated": False}, {"RoleName": ROLE}
        )
        stubber.add_client_error(
            "delete_role_policy",
            service_error_code="UnmodifiableEntity",
            service_message="cannot modify",
            expected_params={"RoleName": ROLE, "PolicyName": "inline-0"},
        )

        with pytest.raises(RemoteOperationError) as excinfo:
            role_lib.delete_role(object(), account_id=ACCOUNT_ID, role_to_assume=ASSUMED_ROLE, role_name=ROLE)
        stubber.assert_no_pending_responses()

    assert excinfo.value.operation == "DeleteRolePolicy"
    assert "inline-0" in str(excinfo.value)
