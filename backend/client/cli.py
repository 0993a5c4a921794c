"""Command-line client that invokes the kill switch Lambda function."""
from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..killswitch.errors import ValidationError
from ..killswitch.types import Action, Request

LOGGER = logging.getLogger(__name__)


class InvocationError(Exception):
    """The function ran but reported an error, or its payload was unreadable."""


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    _configure_logging(args.log_level)

    if not args.action or not args.lambda_name or not args.target_account or not args.role_to_assume:
        print("Required flags not provided. 'action', 'lambda', 'target_account', and 'role_to_assume' are mandatory.")
        return 1
    try:
        request = build_request(args)
    except ValidationError as exc:
        print(_flag_message(exc))
        return 1

    try:
        result = invoke_lambda(args.lambda_name, request, region=args.region)
    except (ClientError, BotoCoreError) as exc:
        print(f"Error invoking Lambda function: {exc}")
        return 1
    except InvocationError as exc:
        print(f"Lambda function returned an error: {exc}")
        return 1

    print("Lambda invocation result:")
    print(result)
    return 0


def build_request(args: argparse.Namespace) -> Request:
    """Turn parsed flags into a validated request."""
    request = Request(
        action=Action.parse(args.action),
        target_account_id=args.target_account or "",
        role_to_assume=args.role_to_assume or "",
        target_role_name=args.target_role or "",
        org_management_account_id=args.org_management_account or "",
        region=args.region or "",
    )
    return request.validate()


def invoke_lambda(function_name: str, request: Request, *, region: str | None = None, session=None) -> str:
    """Invoke the function synchronously and return its decoded string result."""
    session = session or boto3.Session(region_name=region or None)
    client = session.client("lambda")
    payload = json.dumps(request.to_payload()).encode("utf-8")
    LOGGER.debug("Invoking %s with %s", function_name, payload)
    response = client.invoke(
        FunctionName=function_name,
        Payload=payload,
        InvocationType="RequestResponse",
    )
    body = response["Payload"].read()
    if response.get("FunctionError"):
        raise InvocationError(_error_message(body))
    try:
        result: Any = json.loads(body)
    except ValueError as exc:
        raise InvocationError(f"unreadable Lambda result: {exc}") from exc
    if not isinstance(result, str):
        raise InvocationError(f"unexpected Lambda result: {result!r}")
    return result


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Invoke the AWS kill switch Lambda function")
    parser.add_argument(
        "-action",
        "--action",
        choices=[action.value for action in Action],
        default="",
        help="Action to perform",
    )
    parser.add_argument("-lambda", "--lambda", dest="lambda_name", default="", help="Lambda function name or ARN")
    parser.add_argument(
        "-target_account",
        "--target-account",
        dest="target_account",
        default="",
        help="AWS target account ID to perform the action on",
    )
    parser.add_argument(
        "-role_to_assume",
        "--role-to-assume",
        dest="role_to_assume",
        default="",
        help="Role to assume when performing the action",
    )
    parser.add_argument(
        "-target_role",
        "--target-role",
        dest="target_role",
        default="",
        help=(
            "IAM role name to delete, detach, or revoke sessions on (required for every action except apply_scp). "
            "Specify ALL to revoke sessions on all roles when using revoke_sessions."
        ),
    )
    parser.add_argument(
        "-org_management_account",
        "--org-management-account",
        dest="org_management_account",
        default="",
        help="AWS Org Management Account ID (for apply_scp only)",
    )
    parser.add_argument("-region", "--region", default="", help="AWS region of the Lambda function")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    return parser


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")


def _flag_message(exc: ValidationError) -> str:
    message = str(exc)
    if message.startswith("org_management_account is required"):
        return "For 'apply_scp' action, 'org_management_account' flag is also required."
    if message.startswith("target_role_name is required"):
        return "The 'target_role' flag is required for actions other than 'apply_scp'."
    return message


def _error_message(body: bytes) -> str:
    try:
        payload = json.loads(body)
    except ValueError:
        return body.decode("utf-8", errors="replace")
    if isinstance(payload, dict):
        return f"{payload.get('errorType', 'Error')}: {payload.get('errorMessage', '')}"
    return str(payload)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
