"""
Error types raised by the timeline engine.
"""

from typing import Any


class TimelineEngineError(Exception):
    """Base class for timeline engine errors."""


class ConfigValidationError(TimelineEngineError, ValueError):
    """A frequency configuration field is missing or invalid for its cadence."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class DateComputationError(TimelineEngineError):
    """A due date could not be constructed from the configuration."""


class MaterializationConflict(TimelineEngineError):
    """The store rejected an insert because the timeline key already exists."""

    def __init__(self, key: Any):
        self.key = key
        super().__init__(f"Timeline already materialized for {key}")


class BatchItemFailure(TimelineEngineError):
    """One client/sub-obligation item failed during a fail-fast batch run."""

    def __init__(self, failure: Any, cause: BaseException):
        self.failure = failure
        self.cause = cause
        super().__init__(
            f"{failure.cadence} item failed for client {failure.client_id}, "
            f"obligation {failure.obligation_id}: {failure.error_type}: {failure.message}"
        )
