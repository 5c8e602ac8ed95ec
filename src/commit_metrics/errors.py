"""Error taxonomy for Commit Metrics."""

from typing import Optional


class CommitMetricsError(Exception):
    """Base class for all errors raised by this package."""


class InvalidRepositoryIdentifier(CommitMetricsError):
    """The repository identifier is not a recognised repository URL."""


class NetworkUnavailable(CommitMetricsError):
    """The device is offline; no request was attempted."""


class TransientFailure(CommitMetricsError):
    """Network failure or timeout that persisted through every retry."""


class ProtocolFailure(CommitMetricsError):
    """The upstream server rejected the request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NoDataAvailable(CommitMetricsError):
    """Nothing has been analyzed yet and nothing is cached."""


class StorageFailure(CommitMetricsError):
    """The persistent store could not be read or written."""
