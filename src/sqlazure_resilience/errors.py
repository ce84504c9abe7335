"""SQL Server driver error model shared by the classifier and decoder."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

_ODBC_NATIVE_ERROR_RE = re.compile(r"\((\d+)\)", re.ASCII)


@dataclass(frozen=True)
class SqlError:
    """One error or warning reported by SQL Server for a failed request."""

    number: int
    message: str

    def __str__(self) -> str:
        return self.message


class SqlDriverError(RuntimeError):
    """Driver exception carrying the ordered SQL Server sub-errors.

    Attributes:
        errors: Sub-errors in the order the server reported them.
        data: Auxiliary key/value data attached by callers after the fact.
    """

    def __init__(self, message: str, errors: Iterable[SqlError]) -> None:
        """Initialize the driver error.

        Args:
            message: Human-readable summary of the failure.
            errors: Sub-errors reported by the server, at least one.
        """
        self.errors: tuple[SqlError, ...] = tuple(errors)
        if not self.errors:
            raise ValueError("errors must contain at least one SqlError")
        self.data: dict[str, object] = {}
        super().__init__(message)

    @property
    def number(self) -> int:
        """Error number of the first reported sub-error."""
        return self.errors[0].number

    @classmethod
    def from_dbapi_error(cls, exc: BaseException) -> SqlDriverError | None:
        """Adapt a pymssql- or pyodbc-style DB-API exception.

        Returns ``None`` when no SQL Server error number can be recovered.
        """
        if isinstance(exc, SqlDriverError):
            return exc

        errors = _errors_from_number_message(exc.args)
        if errors is None and exc.args and isinstance(exc.args[0], tuple):
            errors = _errors_from_number_message(exc.args[0])
        if errors is None:
            errors = _errors_from_odbc_message(exc.args)
        if not errors:
            return None

        adapted = cls(str(exc), errors)
        adapted.__cause__ = exc
        return adapted


def _decode_message(value: object) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _errors_from_number_message(args: tuple[object, ...]) -> list[SqlError] | None:
    if len(args) != 2:
        return None
    number, message = args
    if isinstance(number, bool) or not isinstance(number, int):
        return None
    return [SqlError(number=number, message=_decode_message(message))]


def _errors_from_odbc_message(args: tuple[object, ...]) -> list[SqlError]:
    errors: list[SqlError] = []
    for arg in args:
        if not isinstance(arg, str):
            continue
        for match in _ODBC_NATIVE_ERROR_RE.finditer(arg):
            errors.append(SqlError(number=int(match.group(1)), message=arg))
    return errors
