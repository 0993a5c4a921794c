"""Utility helpers for emitting AWS EMF metrics."""
from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone

LOGGER = logging.getLogger(__name__)

NAMESPACE = "AwsKillSwitch"
DIMENSIONS = [["Action", "Result"]]


def now() -> datetime:
    """Return a timezone-aware timestamp used for revocation cutoffs."""
    return datetime.now(timezone.utc)


def put_metric(
    *,
    action: str,
    account_id: str,
    result: str,
    latency_ms: float,
    roles_modified: int | None = None,
    roles_failed: int | None = None,
) -> None:
    """Emit an Embedded Metric Format (EMF) log entry for one switch invocation."""
    metric = {
        "_aws": {
            "Timestamp": int(time.time() * 1000),
            "CloudWatchMetrics": [
                {
                    "Namespace": NAMESPACE,
                    "Dimensions": DIMENSIONS,
                    "Metrics": [
                        {"Name": "Latency", "Unit": "Milliseconds"},
                        {"Name": "RolesModified", "Unit": "Count"},
                        {"Name": "RolesFailed", "Unit": "Count"},
                    ],
                }
            ],
        },
        "Action": action,
        "Result": result,
        "AccountId": str(account_id or "unknown"),
        "Latency": latency_ms,
        "RolesModified": roles_modified,
        "RolesFailed": roles_failed,
    }
    LOGGER.info("EMF %s", json.dumps({k: v for k, v in metric.items() if v is not None}))
