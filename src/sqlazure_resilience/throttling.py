"""Decoding of SQL Database throttling reason codes.

Error 40501 ("The service is currently busy") embeds a reason code in its
message text, e.g. ``Code: 131330``. The code is a packed bit field:

  - bits 0-1: the server-wide throttling mode.
  - bits 8-25: nine 2-bit severities, one per governed resource, in the
    order given by ``_RESOURCE_LAYOUT``.

Decoded conditions are immutable and compared by value. Anything that cannot
be decoded resolves to ``UNKNOWN_CONDITION`` instead of raising.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

from sqlazure_resilience.errors import SqlDriverError

THROTTLING_ERROR_NUMBER = 40501

_REASON_CODE_RE = re.compile(
    r"Code:\s*(\d{1,10})(?!\d)", re.IGNORECASE | re.ASCII
)
_INT32_MAX = 2**31 - 1
_MODE_MASK = 0b11
_RESOURCE_FIELD_OFFSET = 8
_RESOURCE_FIELD_WIDTH = 2
_RESOURCE_FIELD_MASK = 0b11


class ThrottledResourceType(StrEnum):
    """Resource dimensions governed by SQL Database."""

    PHYSICAL_DATABASE_SPACE = "PhysicalDatabaseSpace"
    PHYSICAL_LOG_SPACE = "PhysicalLogSpace"
    LOG_WRITE_IO_DELAY = "LogWriteIoDelay"
    DATA_READ_IO_DELAY = "DataReadIoDelay"
    CPU = "Cpu"
    DATABASE_SIZE = "DatabaseSize"
    INTERNAL = "Internal"
    WORKER_THREADS = "WorkerThreads"
    UNKNOWN = "Unknown"


class ThrottlingType(StrEnum):
    """Throttling severity applied to one resource, least severe first."""

    NONE = "None"
    SOFT = "Soft"
    HARD = "Hard"
    UNKNOWN = "Unknown"


class ThrottlingMode(StrEnum):
    """Server-wide request posture implied by a reason code."""

    NO_THROTTLING = "NoThrottling"
    REJECT_UPDATE_INSERT = "RejectUpdateInsert"
    REJECT_ALL_WRITES = "RejectAllWrites"
    REJECT_ALL = "RejectAll"
    UNKNOWN = "Unknown"


_MODE_BY_BITS: tuple[ThrottlingMode, ...] = (
    ThrottlingMode.NO_THROTTLING,
    ThrottlingMode.REJECT_UPDATE_INSERT,
    ThrottlingMode.REJECT_ALL_WRITES,
    ThrottlingMode.REJECT_ALL,
)
_SEVERITY_BY_BITS: tuple[ThrottlingType, ...] = (
    ThrottlingType.NONE,
    ThrottlingType.SOFT,
    ThrottlingType.HARD,
    ThrottlingType.UNKNOWN,
)
_RESOURCE_LAYOUT: tuple[ThrottledResourceType, ...] = (
    ThrottledResourceType.PHYSICAL_DATABASE_SPACE,
    ThrottledResourceType.PHYSICAL_LOG_SPACE,
    ThrottledResourceType.LOG_WRITE_IO_DELAY,
    ThrottledResourceType.DATA_READ_IO_DELAY,
    ThrottledResourceType.CPU,
    ThrottledResourceType.DATABASE_SIZE,
    ThrottledResourceType.INTERNAL,
    ThrottledResourceType.WORKER_THREADS,
    ThrottledResourceType.INTERNAL,
)

ThrottledResource = tuple[ThrottledResourceType, ThrottlingType]


@dataclass(frozen=True)
class ThrottlingCondition:
    """Decoded throttling mode and per-resource severities.

    Attributes:
        mode: Server-wide throttling mode.
        resources: ``(resource, severity)`` pairs. Nine entries in layout
            order for decoded codes, one ``(UNKNOWN, UNKNOWN)`` entry for the
            unknown condition.
    """

    mode: ThrottlingMode
    resources: tuple[ThrottledResource, ...]

    @classmethod
    def unknown(cls) -> ThrottlingCondition:
        """Return the condition used when throttling cannot be determined."""
        return UNKNOWN_CONDITION

    @classmethod
    def from_reason_code(cls, reason_code: int) -> ThrottlingCondition:
        """Decode a numeric reason code reported with error 40501."""
        if reason_code <= 0:
            return UNKNOWN_CONDITION

        fields = reason_code >> _RESOURCE_FIELD_OFFSET
        resources = tuple(
            (
                resource,
                _SEVERITY_BY_BITS[
                    (fields >> (index * _RESOURCE_FIELD_WIDTH)) & _RESOURCE_FIELD_MASK
                ],
            )
            for index, resource in enumerate(_RESOURCE_LAYOUT)
        )
        return cls(mode=_MODE_BY_BITS[reason_code & _MODE_MASK], resources=resources)

    @classmethod
    def from_error(cls, error: object) -> ThrottlingCondition:
        """Decode the reason code embedded in an error's message text."""
        if error is None:
            return UNKNOWN_CONDITION

        message = getattr(error, "message", None)
        if not isinstance(message, str):
            message = str(error)
        match = _REASON_CODE_RE.search(message)
        if match is None:
            return UNKNOWN_CONDITION
        reason_code = int(match.group(1))
        if reason_code > _INT32_MAX:
            return UNKNOWN_CONDITION
        return cls.from_reason_code(reason_code)

    @classmethod
    def from_exception(cls, error: SqlDriverError | None) -> ThrottlingCondition:
        """Decode the first 40501 sub-error of a driver exception."""
        if error is None:
            return UNKNOWN_CONDITION
        for sql_error in error.errors:
            if sql_error.number == THROTTLING_ERROR_NUMBER:
                return cls.from_error(sql_error)
        return UNKNOWN_CONDITION

    @property
    def is_unknown(self) -> bool:
        """Whether the condition could not be determined with certainty."""
        return self.mode is ThrottlingMode.UNKNOWN

    def severity_of(self, resource: ThrottledResourceType) -> ThrottlingType | None:
        """Return the severity of the first entry for ``resource``, if any."""
        for entry_resource, severity in self.resources:
            if entry_resource is resource:
                return severity
        return None

    def is_throttled_on(self, resource: ThrottledResourceType) -> bool:
        """Whether ``resource`` is present with a severity other than none."""
        return any(
            entry_resource is resource and severity is not ThrottlingType.NONE
            for entry_resource, severity in self.resources
        )

    @property
    def is_throttled_on_data_space(self) -> bool:
        """Whether SQL Database reported throttling on physical data file space."""
        return self.is_throttled_on(ThrottledResourceType.PHYSICAL_DATABASE_SPACE)

    @property
    def is_throttled_on_log_space(self) -> bool:
        """Whether SQL Database reported throttling on physical log space."""
        return self.is_throttled_on(ThrottledResourceType.PHYSICAL_LOG_SPACE)

    @property
    def is_throttled_on_log_write(self) -> bool:
        """Whether SQL Database reported throttling on log write I/O delay."""
        return self.is_throttled_on(ThrottledResourceType.LOG_WRITE_IO_DELAY)

    @property
    def is_throttled_on_data_read(self) -> bool:
        """Whether SQL Database reported throttling on data read I/O delay."""
        return self.is_throttled_on(ThrottledResourceType.DATA_READ_IO_DELAY)

    @property
    def is_throttled_on_cpu(self) -> bool:
        """Whether SQL Database reported throttling on CPU."""
        return self.is_throttled_on(ThrottledResourceType.CPU)

    @property
    def is_throttled_on_database_size(self) -> bool:
        """Whether SQL Database reported throttling on database size."""
        return self.is_throttled_on(ThrottledResourceType.DATABASE_SIZE)

    @property
    def is_throttled_on_worker_threads(self) -> bool:
        """Whether SQL Database reported throttling on concurrent requests."""
        return self.is_throttled_on(ThrottledResourceType.WORKER_THREADS)

    def __str__(self) -> str:
        rendered = sorted(
            (
                f"{resource}: {severity}"
                for resource, severity in self.resources
                if resource is not ThrottledResourceType.INTERNAL
            ),
            key=str.casefold,
        )
        return f"Mode: {self.mode} | {', '.join(rendered)}"


UNKNOWN_CONDITION = ThrottlingCondition(
    mode=ThrottlingMode.UNKNOWN,
    resources=((ThrottledResourceType.UNKNOWN, ThrottlingType.UNKNOWN),),
)
