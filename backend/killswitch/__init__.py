"""Kill switch package running incident-response actions against AWS accounts."""

__all__ = [
    "handler",
    "scp_lib",
    "role_lib",
    "session_lib",
    "credentials",
    "config",
    "errors",
    "metrics",
    "types",
]
