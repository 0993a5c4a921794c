"""Typed value objects shared across kill switch modules."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, MutableMapping, Sequence

from .errors import ValidationError

DEFAULT_REGION = "us-east-1"
ALL_ROLES = "ALL"


class Action(str, Enum):
    """The closed set of actions the switch can perform."""

    APPLY_SCP = "apply_scp"
    DETACH_POLICIES = "detach_policies"
    DELETE_ROLE = "delete_role"
    REVOKE_SESSIONS = "revoke_sessions"

    @property
    def required_fields(self) -> tuple[str, ...]:
        return _REQUIRED_FIELDS[self]

    @classmethod
    def parse(cls, value: object) -> "Action":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or ""))
        except ValueError:
            raise ValidationError(f"invalid action: {value!r}") from None


_REQUIRED_FIELDS: Mapping[Action, tuple[str, ...]] = {
    Action.APPLY_SCP: ("org_management_account_id",),
    Action.DETACH_POLICIES: ("target_role_name",),
    Action.DELETE_ROLE: ("target_role_name",),
    Action.REVOKE_SESSIONS: ("target_role_name",),
}

# Envelope keys that differ from the attribute names.
_ENVELOPE_KEYS = {
    "org_management_account_id": "org_management_account",
}

_FIELD_LABELS = {
    "target_role_name": "target_role_name",
    "org_management_account_id": "org_management_account",
}


@dataclass(frozen=True, slots=True)
class Request:
    """A single kill switch invocation as received from the caller."""

    action: Action
    target_account_id: str
    role_to_assume: str
    target_role_name: str = ""
    org_management_account_id: str = ""
    region: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", Action.parse(self.action))

    @classmethod
    def from_event(cls, event: Mapping[str, Any]) -> "Request":
        """Build a request from the JSON envelope, parsing the action kind."""
        if not isinstance(event, Mapping):
            raise ValidationError("request payload must be a JSON object")
        return cls(
            action=Action.parse(event.get("action")),
            target_account_id=_text(event.get("target_account_id")),
            role_to_assume=_text(event.get("role_to_assume")),
            target_role_name=_text(event.get("target_role_name")),
            org_management_account_id=_text(event.get("org_management_account")),
            region=_text(event.get("region")),
        )

    def to_payload(self) -> dict[str, str]:
        """Return the envelope form, omitting empty optional fields."""
        payload = {
            "action": self.action.value,
            "target_account_id": self.target_account_id,
            "role_to_assume": self.role_to_assume,
        }
        for name in ("target_role_name", "org_management_account_id", "region"):
            value = getattr(self, name)
            if value:
                payload[_ENVELOPE_KEYS.get(name, name)] = value
        return payload

    def validate(self) -> "Request":
        """Raise ValidationError when a field required by the action is empty."""
        if not self.target_account_id or not self.role_to_assume:
            raise ValidationError("target_account_id and role_to_assume are required")
        for name in self.action.required_fields:
            if not getattr(self, name):
                raise ValidationError(f"{_FIELD_LABELS[name]} is required for {self.action.value} action")
        if self.target_role_name == ALL_ROLES and self.action is not Action.REVOKE_SESSIONS:
            raise ValidationError(f"target_role_name {ALL_ROLES} is only valid for {Action.REVOKE_SESSIONS.value}")
        return self

    @property
    def effective_region(self) -> str:
        return self.region or DEFAULT_REGION


@dataclass(slots=True)
class SanitizeResult:
    """Policies removed from a role by the sanitizer."""

    role_name: str
    detached_policy_arns: list[str] = field(default_factory=list)
    deleted_inline_policies: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.detached_policy_arns or self.deleted_inline_policies)


@dataclass(slots=True)
class RevocationOutcome:
    """Aggregated result of attaching the revocation policy to many roles."""

    account_id: str
    policy_arn: str
    attached: Sequence[str]
    failed: Mapping[str, str] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return bool(self.failed)

    def render(self) -> str:
        if not self.attached:
            return f"No roles were modified in account {self.account_id}"
        return "\n".join(f"Policy attached to role {name}" for name in self.attached)


Event = MutableMapping[str, Any]
"""Alias for raw Lambda invocation payloads."""


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()
