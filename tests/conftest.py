"""Shared fixtures for kill switch tests."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

REGION = "us-east-1"


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials so no test can reach a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    for name in (
        "AWS_PROFILE",
        "KILLSWITCH_CONFIG_PATH",
        "KILLSWITCH_CONFIG_SSM_PARAM",
        "KILLSWITCH_BULK_WORKERS",
        "KILLSWITCH_SESSION_NAME",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def frozen_now() -> datetime:
    return datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)
