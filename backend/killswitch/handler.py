"""AWS Lambda entrypoint that validates a kill switch request and runs one action."""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Mapping

import boto3

from . import config, metrics, role_lib, scp_lib, session_lib
from .errors import KillSwitchError, ValidationError
from .types import Action, Event, Request

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.INFO)


def lambda_handler(event: Event, context: Any) -> str:
    """AWS Lambda handler for direct (RequestResponse) invocations.

    Returns the human-readable result; failures are raised so the invocation
    is reported as a function error.
    """
    LOGGER.debug("Received event: %s", json.dumps(event, default=str))
    request = parse_request(event)
    return dispatch(request, settings=config.Settings.from_env())


def parse_request(event: Mapping[str, Any] | str) -> Request:
    """Parse and validate the request envelope."""
    if isinstance(event, (str, bytes)):
        try:
            event = json.loads(event)
        except ValueError as exc:
            raise ValidationError(f"request payload is not valid JSON: {exc}") from exc
    return Request.from_event(event).validate()


def dispatch(
    request: Request,
    *,
    settings: config.Settings | None = None,
    session: boto3.Session | None = None,
) -> str:
    """Run the handler registered for ``request.action``.

    ``session`` is the base session used for STS; a fresh one is created for
    the request's region when omitted.
    """
    request.validate()
    settings = settings or config.Settings.from_env()
    session = session or _base_session(request.effective_region)
    run = _HANDLERS[request.action]

    LOGGER.info(
        "Running %s against account %s as %s",
        request.action.value,
        request.target_account_id,
        request.role_to_assume,
    )
    start = time.perf_counter()
    try:
        result = run(request, session, settings)
    except Exception as exc:
        duration_ms = (time.perf_counter() - start) * 1000
        if isinstance(exc, KillSwitchError):
            LOGGER.error("%s failed for account %s: %s", request.action.value, request.target_account_id, exc)
        else:
            LOGGER.exception(
                "%s raised unexpectedly for account %s", request.action.value, request.target_account_id
            )
        metrics.put_metric(
            action=request.action.value,
            account_id=request.target_account_id,
            result="error",
            latency_ms=duration_ms,
        )
        raise
    duration_ms = (time.perf_counter() - start) * 1000
    metrics.put_metric(
        action=request.action.value,
        account_id=request.target_account_id,
        result="success",
        latency_ms=duration_ms,
    )
    LOGGER.info("%s completed for account %s", request.action.value, request.target_account_id)
    return result


def _apply_scp(request: Request, session: boto3.Session, settings: config.Settings) -> str:
    switch_config = config.load_switch_config(settings, session)
    return scp_lib.apply_scp(
        session,
        management_account_id=request.org_management_account_id,
        target_account_id=request.target_account_id,
        role_to_assume=request.role_to_assume,
        policy_content=switch_config.scp_policy,
        session_name=settings.session_name,
    )


def _detach_policies(request: Request, session: boto3.Session, settings: config.Settings) -> str:
    return role_lib.detach_policies(
        session,
        account_id=request.target_account_id,
        role_to_assume=request.role_to_assume,
        role_name=request.target_role_name,
        session_name=settings.session_name,
    )


def _delete_role(request: Request, session: boto3.Session, settings: config.Settings) -> str:
    return role_lib.delete_role(
        session,
        account_id=request.target_account_id,
        role_to_assume=request.role_to_assume,
        role_name=request.target_role_name,
        session_name=settings.session_name,
    )


def _revoke_sessions(request: Request, session: boto3.Session, settings: config.Settings) -> str:
    return session_lib.revoke_sessions(
        session,
        account_id=request.target_account_id,
        role_to_assume=request.role_to_assume,
        target_role_name=request.target_role_name,
        max_workers=settings.bulk_workers,
        session_name=settings.session_name,
    )


_HANDLERS: Mapping[Action, Callable[[Request, boto3.Session, config.Settings], str]] = {
    Action.APPLY_SCP: _apply_scp,
    Action.DETACH_POLICIES: _detach_policies,
    Action.DELETE_ROLE: _delete_role,
    Action.REVOKE_SESSIONS: _revoke_sessions,
}


def _base_session(region: str) -> boto3.Session:
    return boto3.Session(region_name=region)


__all__ = ["dispatch", "lambda_handler", "parse_request"]
