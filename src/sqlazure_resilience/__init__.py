"""Transient error detection and throttling decoding for Azure SQL Database."""

from sqlazure_resilience.classifier import (
    THROTTLING_CONDITION_KEY,
    THROTTLING_MODE_KEY,
    TRANSIENT_ERROR_NUMBERS,
    TransientClassification,
    TransientErrorClassifier,
    is_transient,
)
from sqlazure_resilience.errors import SqlDriverError, SqlError
from sqlazure_resilience.settings import ClassifierSettings
from sqlazure_resilience.throttling import (
    THROTTLING_ERROR_NUMBER,
    UNKNOWN_CONDITION,
    ThrottledResourceType,
    ThrottlingCondition,
    ThrottlingMode,
    ThrottlingType,
)

__all__ = [
    "THROTTLING_CONDITION_KEY",
    "THROTTLING_ERROR_NUMBER",
    "THROTTLING_MODE_KEY",
    "TRANSIENT_ERROR_NUMBERS",
    "UNKNOWN_CONDITION",
    "ClassifierSettings",
    "SqlDriverError",
    "SqlError",
    "ThrottledResourceType",
    "ThrottlingCondition",
    "ThrottlingMode",
    "ThrottlingType",
    "TransientClassification",
    "TransientErrorClassifier",
    "is_transient",
]
