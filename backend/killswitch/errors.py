"""Exception hierarchy raised by the kill switch actions."""
from __future__ import annotations


class KillSwitchError(Exception):
    """Base class for every failure surfaced to the invoker."""


class ValidationError(KillSwitchError):
    """The request is missing fields or names an unknown action."""


class ConfigurationError(KillSwitchError):
    """The switch configuration could not be loaded or is malformed."""


class CredentialError(KillSwitchError):
    """Assuming the requested role failed."""

    def __init__(self, account_id: str, role_name: str, cause: object) -> None:
        self.account_id = account_id
        self.role_name = role_name
        super().__init__(f"error assuming role {role_name} in account {account_id}: {cause}")


AssumeRoleError = CredentialError


class RemoteOperationError(KillSwitchError):
    """An IAM or Organizations API call failed."""

    def __init__(
        self,
        operation: str,
        message: str,
        *,
        account_id: str,
        role_name: str | None = None,
        cause: object | None = None,
    ) -> None:
        self.operation = operation
        self.account_id = account_id
        self.role_name = role_name
        text = message if cause is None else f"{message}: {cause}"
        super().__init__(text)
