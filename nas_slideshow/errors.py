# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Failure kinds for the download pipeline.

Every failure carries a stable ``kind`` string so callers (the web layer in
particular) can tell one failure from another without parsing messages.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class SlideshowError(Exception):
    """Base class for all pipeline failures."""
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationFailed(SlideshowError):
    """Login did not produce a usable session token."""
    kind = "authentication_failed"


class InvalidApiVersion(SlideshowError):
    """The NAS advertised no usable version for an API."""
    kind = "invalid_api_version"

    def __init__(self, api_version: int):
        super().__init__(f"Invalid API version received from server: {api_version}")
        self.api_version = api_version


class FailedToInitiateSearch(SlideshowError):
    """The search start call returned no task id."""
    kind = "failed_to_initiate_search"

    def __init__(self, message: str = "Failed to initiate search operation: no task ID returned"):
        super().__init__(message)


class SearchTimedOut(SlideshowError):
    """The search job did not finish in time."""
    kind = "search_timed_out"

    @classmethod
    def after_attempts(cls, max_attempts: int) -> "SearchTimedOut":
        return cls(f"Search operation did not complete after {max_attempts} attempts")

    @classmethod
    def after_seconds(cls, timeout_seconds: float) -> "SearchTimedOut":
        return cls(f"Search operation did not complete within {timeout_seconds:g} seconds")


class TransportError(SlideshowError):
    """Network, HTTP status or deserialization failure talking to a remote API."""
    kind = "transport_error"


class FileSystemError(SlideshowError):
    """Local file system failure while storing or processing photos."""
    kind = "io_error"


class OperationCancelled(SlideshowError):
    """The operation was cancelled or its deadline passed."""
    kind = "cancelled"

    def __init__(self, message: str = "Operation cancelled", deadline_exceeded: bool = False):
        super().__init__(message)
        self.deadline_exceeded = deadline_exceeded


@dataclass
class Result(Generic[T]):
    """Outcome of a pipeline stage: a value or exactly one failure."""
    value: Optional[T] = None
    error: Optional[SlideshowError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: SlideshowError) -> "Result[T]":
        return cls(error=error)
