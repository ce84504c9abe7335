from __future__ import annotations

import pytest

from sqlazure_resilience.errors import SqlDriverError, SqlError
from tests.sqlazure_resilience.support.fakes import FakeLogger


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def throttled_error() -> SqlDriverError:
    """Provide a driver error reporting 40501 with a RejectAllWrites reason code."""
    return SqlDriverError(
        "The service is currently busy.",
        [
            SqlError(
                number=40501,
                message=(
                    "The service is currently busy. Retry the request after 10 "
                    "seconds. Incident ID: 1234. Code: 131330."
                ),
            )
        ],
    )
