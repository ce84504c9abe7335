"""Adapters plugging the classifier into tenacity retry loops.

These only answer "retry or not" and report what happened; attempt limits
and backoff stay with the caller's ``Retrying``/``AsyncRetrying``.
"""

from __future__ import annotations

from collections.abc import Callable

from tenacity import RetryCallState, retry_if_exception

from sqlazure_resilience.classifier import (
    THROTTLING_CONDITION_KEY,
    TransientErrorClassifier,
    is_transient,
)
from sqlazure_resilience.errors import SqlDriverError
from sqlazure_resilience.logging import LoggerLike, log_info
from sqlazure_resilience.throttling import ThrottlingCondition


def retry_if_transient_sql_error(
    classifier: TransientErrorClassifier | None = None,
) -> retry_if_exception:
    """Build a tenacity ``retry`` strategy backed by the transient classifier."""
    predicate = is_transient if classifier is None else classifier.is_transient
    return retry_if_exception(predicate)


def log_transient_retry(logger: LoggerLike) -> Callable[[RetryCallState], None]:
    """Build a ``before_sleep`` hook logging the error being retried."""

    def _log_transient_retry(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed:
            return
        exception = outcome.exception()
        fields: dict[str, object] = {
            "attempt": retry_state.attempt_number,
            "error_type": type(exception).__name__,
        }
        if retry_state.next_action is not None:
            fields["sleep_seconds"] = retry_state.next_action.sleep
        if isinstance(exception, SqlDriverError):
            fields["error_numbers"] = [error.number for error in exception.errors]
            condition = exception.data.get(THROTTLING_CONDITION_KEY)
            if isinstance(condition, ThrottlingCondition):
                fields["throttling_mode"] = str(condition.mode)
                fields["throttling_condition"] = str(condition)
        log_info(logger, "sql_transient_retry", **fields)

    return _log_transient_retry
