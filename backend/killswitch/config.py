"""Runtime settings and switch configuration loading."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .credentials import DEFAULT_SESSION_NAME
from .errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

CONFIG_PATH_ENV = "KILLSWITCH_CONFIG_PATH"
CONFIG_SSM_PARAM_ENV = "KILLSWITCH_CONFIG_SSM_PARAM"
BULK_WORKERS_ENV = "KILLSWITCH_BULK_WORKERS"
SESSION_NAME_ENV = "KILLSWITCH_SESSION_NAME"
DEFAULT_CONFIG_PATH = "config/switch.conf"
MAX_BULK_WORKERS = 32


@dataclass(frozen=True, slots=True)
class Settings:
    """Invocation settings resolved from the environment."""

    config_path: str = DEFAULT_CONFIG_PATH
    config_ssm_param: str | None = None
    bulk_workers: int = 1
    session_name: str = DEFAULT_SESSION_NAME

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            config_path=env.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH,
            config_ssm_param=env.get(CONFIG_SSM_PARAM_ENV) or None,
            bulk_workers=_parse_workers(env.get(BULK_WORKERS_ENV)),
            session_name=env.get(SESSION_NAME_ENV) or DEFAULT_SESSION_NAME,
        )


@dataclass(frozen=True, slots=True)
class SwitchConfig:
    """The versioned switch configuration document."""

    version: str
    scp_policy: str


def parse_switch_config(payload: Mapping[str, Any]) -> SwitchConfig:
    """Extract the SCP content from a switch configuration document.

    The policy is kept as an opaque JSON string; a string value is passed
    through untouched.
    """
    if not isinstance(payload, Mapping):
        raise ConfigurationError("switch configuration must be a JSON object")
    policies = payload.get("switchPolicies")
    if not isinstance(policies, Mapping) or policies.get("scpPolicy") in (None, "", {}):
        raise ConfigurationError("switch configuration has no switchPolicies.scpPolicy")
    policy = policies["scpPolicy"]
    content = policy if isinstance(policy, str) else json.dumps(policy)
    return SwitchConfig(version=str(payload.get("switchConfigVersion") or ""), scp_policy=content)


def load_switch_config(settings: Settings, session: boto3.Session | None = None) -> SwitchConfig:
    """Load the switch configuration from SSM when configured, else from disk."""
    if settings.config_ssm_param:
        raw = _read_ssm_parameter(settings.config_ssm_param, session)
        source = f"ssm:{settings.config_ssm_param}"
    else:
        raw = _read_local_file(settings.config_path)
        source = settings.config_path
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"invalid switch configuration JSON in {source}: {exc}") from exc
    config = parse_switch_config(payload)
    LOGGER.info("Loaded switch configuration %s from %s", config.version or "(unversioned)", source)
    return config


def _read_local_file(path: str) -> str:
    file_path = Path(path)
    try:
        return file_path.read_text()
    except OSError as exc:
        raise ConfigurationError(f"error loading config file {path}: {exc}") from exc


def _read_ssm_parameter(name: str, session: boto3.Session | None) -> str:
    client = (session or boto3.Session()).client("ssm")
    try:
        response = client.get_parameter(Name=name, WithDecryption=True)
    except (ClientError, BotoCoreError) as exc:
        raise ConfigurationError(f"error reading SSM parameter {name}: {exc}") from exc
    return response["Parameter"]["Value"]


def _parse_workers(value: str | None) -> int:
    if not value:
        return 1
    try:
        workers = int(value)
    except ValueError:
        LOGGER.warning("Ignoring non-numeric %s=%s", BULK_WORKERS_ENV, value)
        return 1
    return max(1, min(workers, MAX_BULK_WORKERS))


__all__ = [
    "Settings",
    "SwitchConfig",
    "load_switch_config",
    "parse_switch_config",
]
