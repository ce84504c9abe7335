from __future__ import annotations

import asyncio
import socket

import pytest

from sqlazure_resilience.classifier import (
    THROTTLING_CONDITION_KEY,
    THROTTLING_MODE_KEY,
    TransientErrorClassifier,
    is_transient,
)
from sqlazure_resilience.errors import SqlDriverError, SqlError
from sqlazure_resilience.settings import ClassifierSettings
from sqlazure_resilience.throttling import (
    UNKNOWN_CONDITION,
    ThrottlingCondition,
    ThrottlingMode,
)
from tests.sqlazure_resilience.support.fakes import FakeLogger

_TRANSIENT_NUMBERS = [
    40540,
    40613,
    10928,
    10929,
    40143,
    40197,
    233,
    10053,
    10054,
    10060,
    20,
    64,
]


def _driver_error(*numbers: int, message: str = "sql failure") -> SqlDriverError:
    return SqlDriverError(
        message,
        [SqlError(number=number, message=message) for number in numbers],
    )


@pytest.mark.parametrize("number", _TRANSIENT_NUMBERS)
def test_known_transient_numbers_are_transient(
    number: int, fake_logger: FakeLogger
) -> None:
    classifier = TransientErrorClassifier(logger=fake_logger)

    assert classifier.is_transient(_driver_error(number))
    assert classifier.is_transient(_driver_error(99999, 3621, number))


def test_unknown_number_is_not_transient(fake_logger: FakeLogger) -> None:
    classifier = TransientErrorClassifier(logger=fake_logger)

    assert not classifier.is_transient(_driver_error(99999))
    assert not classifier.is_transient(_driver_error(99999, 2627))


@pytest.mark.parametrize(
    "error",
    [TimeoutError("timed out"), asyncio.TimeoutError(), socket.timeout()],
)
def test_foreign_timeout_errors_are_transient(error: BaseException) -> None:
    assert TransientErrorClassifier().is_transient(error)


@pytest.mark.parametrize(
    "error",
    [
        ValueError("timeout while parsing"),
        ConnectionResetError("reset"),
        RuntimeError("Code: 131330"),
    ],
)
def test_foreign_non_timeout_errors_are_not_transient(error: BaseException) -> None:
    assert not TransientErrorClassifier().is_transient(error)


def test_none_is_not_transient() -> None:
    assert not TransientErrorClassifier().is_transient(None)
    assert not is_transient(None)


def test_timeouts_can_be_configured_as_permanent() -> None:
    classifier = TransientErrorClassifier(timeout_is_transient=False)

    assert not classifier.is_transient(TimeoutError())
    assert classifier.is_transient(_driver_error(40613))


def test_throttling_error_is_transient_and_decoded(
    throttled_error: SqlDriverError, fake_logger: FakeLogger
) -> None:
    classifier = TransientErrorClassifier(logger=fake_logger)

    result = classifier.classify(throttled_error)

    assert result.transient
    assert result
    assert result.throttling == ThrottlingCondition.from_reason_code(131330)
    assert result.throttling is not None
    assert result.throttling.mode is ThrottlingMode.REJECT_ALL_WRITES
    assert throttled_error.data == {}


def test_is_transient_attaches_throttling_data(
    throttled_error: SqlDriverError, fake_logger: FakeLogger
) -> None:
    classifier = TransientErrorClassifier(logger=fake_logger)

    assert classifier.is_transient(throttled_error)

    assert throttled_error.data[THROTTLING_MODE_KEY] == "RejectAllWrites"
    assert throttled_error.data[THROTTLING_CONDITION_KEY] == (
        ThrottlingCondition.from_reason_code(131330)
    )
    assert set(throttled_error.data) == {"ThrottlingMode", "ThrottlingCondition"}


def test_is_transient_attaches_decoded_11512_condition(
    fake_logger: FakeLogger,
) -> None:
    error = _driver_error(40501, message="The service is busy. Code: 11512.")

    assert TransientErrorClassifier(logger=fake_logger).is_transient(error)

    condition = error.data[THROTTLING_CONDITION_KEY]
    assert condition == ThrottlingCondition.from_reason_code(11512)
    assert error.data[THROTTLING_MODE_KEY] == "NoThrottling"


def test_throttling_error_without_reason_code_decodes_unknown(
    fake_logger: FakeLogger,
) -> None:
    error = _driver_error(40501, message="The service is currently busy.")

    assert TransientErrorClassifier(logger=fake_logger).is_transient(error)
    assert error.data[THROTTLING_CONDITION_KEY] == UNKNOWN_CONDITION
    assert error.data[THROTTLING_MODE_KEY] == "Unknown"


def test_attachment_is_last_write_wins(fake_logger: FakeLogger) -> None:
    error = _driver_error(40501, message="Code: 131330")
    error.data[THROTTLING_MODE_KEY] = "stale"
    classifier = TransientErrorClassifier(logger=fake_logger)

    classifier.is_transient(error)
    classifier.is_transient(error)

    assert error.data[THROTTLING_MODE_KEY] == "RejectAllWrites"


def test_first_matching_sub_error_decides(fake_logger: FakeLogger) -> None:
    error = SqlDriverError(
        "multiple errors",
        [
            SqlError(number=40613, message="Database unavailable."),
            SqlError(number=40501, message="Code: 131330"),
        ],
    )
    classifier = TransientErrorClassifier(logger=fake_logger)

    result = classifier.classify(error)

    assert result.transient
    assert result.throttling is None
    assert fake_logger.calls == []


def test_throttling_detection_is_logged(
    throttled_error: SqlDriverError, fake_logger: FakeLogger
) -> None:
    TransientErrorClassifier(logger=fake_logger).classify(throttled_error)

    assert fake_logger.calls == [
        (
            "warning",
            "sql_throttling_detected",
            {
                "error_number": 40501,
                "throttling_mode": "RejectAllWrites",
                "throttling_condition": str(
                    ThrottlingCondition.from_reason_code(131330)
                ),
            },
        )
    ]


def test_additional_error_numbers_extend_table(fake_logger: FakeLogger) -> None:
    classifier = TransientErrorClassifier(
        additional_error_numbers=[4060], logger=fake_logger
    )

    assert classifier.is_transient(_driver_error(4060))
    assert 40501 in classifier.error_numbers
    assert not TransientErrorClassifier().is_transient(_driver_error(4060))


def test_from_settings_applies_configuration(fake_logger: FakeLogger) -> None:
    settings = ClassifierSettings(
        additional_error_numbers=frozenset({4221}),
        timeout_is_transient=False,
    )

    classifier = TransientErrorClassifier.from_settings(settings, logger=fake_logger)

    assert classifier.is_transient(_driver_error(4221))
    assert not classifier.is_transient(TimeoutError())


def test_module_level_is_transient_uses_default_table() -> None:
    assert is_transient(_driver_error(10054))
    assert not is_transient(_driver_error(99999))


def test_throttling_error_with_oversized_reason_code_decodes_unknown(
    fake_logger: FakeLogger,
) -> None:
    error = _driver_error(40501, message="The service is busy. Code: " + "9" * 5000)

    assert TransientErrorClassifier(logger=fake_logger).is_transient(error)
    assert error.data[THROTTLING_CONDITION_KEY] == UNKNOWN_CONDITION
