"""Transient error detection for SQL Server and Azure SQL Database."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlazure_resilience.errors import SqlDriverError
from sqlazure_resilience.logging import LoggerLike, get_logger, log_warning
from sqlazure_resilience.settings import ClassifierSettings
from sqlazure_resilience.throttling import (
    THROTTLING_ERROR_NUMBER,
    ThrottlingCondition,
    ThrottlingMode,
)

THROTTLING_MODE_KEY = ThrottlingMode.__name__
THROTTLING_CONDITION_KEY = ThrottlingCondition.__name__

TRANSIENT_ERROR_NUMBERS = frozenset(
    {
        THROTTLING_ERROR_NUMBER,
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
    }
)


@dataclass(frozen=True)
class TransientClassification:
    """Outcome of classifying one error.

    Attributes:
        transient: Whether retrying the failed operation is worthwhile.
        throttling: Decoded condition when the server reported error 40501.
    """

    transient: bool
    throttling: ThrottlingCondition | None = None

    def __bool__(self) -> bool:
        return self.transient


_NOT_TRANSIENT = TransientClassification(transient=False)
_TRANSIENT = TransientClassification(transient=True)


class TransientErrorClassifier:
    """Decide whether a caught error is worth retrying."""

    def __init__(
        self,
        *,
        additional_error_numbers: Iterable[int] = (),
        timeout_is_transient: bool = True,
        logger: LoggerLike | None = None,
    ) -> None:
        self._error_numbers = TRANSIENT_ERROR_NUMBERS | frozenset(
            additional_error_numbers
        )
        self._timeout_is_transient = timeout_is_transient
        self._logger = logger if logger is not None else get_logger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: ClassifierSettings,
        *,
        logger: LoggerLike | None = None,
    ) -> TransientErrorClassifier:
        """Build a classifier from environment-backed settings."""
        return cls(
            additional_error_numbers=settings.additional_error_numbers,
            timeout_is_transient=settings.timeout_is_transient,
            logger=logger,
        )

    @property
    def error_numbers(self) -> frozenset[int]:
        """SQL error numbers treated as transient."""
        return self._error_numbers

    def classify(self, error: BaseException | None) -> TransientClassification:
        """Classify ``error`` without touching it.

        The first sub-error whose number is known decides the outcome.
        Errors that are not driver errors are transient only when they are
        timeouts.
        """
        if error is None:
            return _NOT_TRANSIENT
        if not isinstance(error, SqlDriverError):
            if self._timeout_is_transient and isinstance(error, TimeoutError):
                return _TRANSIENT
            return _NOT_TRANSIENT

        for sql_error in error.errors:
            if sql_error.number not in self._error_numbers:
                continue
            if sql_error.number != THROTTLING_ERROR_NUMBER:
                return _TRANSIENT
            condition = ThrottlingCondition.from_error(sql_error)
            log_warning(
                self._logger,
                "sql_throttling_detected",
                error_number=sql_error.number,
                throttling_mode=str(condition.mode),
                throttling_condition=str(condition),
            )
            return TransientClassification(transient=True, throttling=condition)
        return _NOT_TRANSIENT

    def is_transient(self, error: BaseException | None) -> bool:
        """Classify ``error`` and record any throttling condition on it."""
        result = self.classify(error)
        if result.throttling is not None and isinstance(error, SqlDriverError):
            attach_throttling_condition(error, result.throttling)
        return result.transient


def attach_throttling_condition(
    error: SqlDriverError, condition: ThrottlingCondition
) -> None:
    """Store ``condition`` and its mode in ``error.data`` under their type names."""
    error.data[THROTTLING_MODE_KEY] = str(condition.mode)
    error.data[THROTTLING_CONDITION_KEY] = condition


_DEFAULT_CLASSIFIER = TransientErrorClassifier()


def is_transient(error: BaseException | None) -> bool:
    """Classify ``error`` with the default classifier."""
    return _DEFAULT_CLASSIFIER.is_transient(error)
