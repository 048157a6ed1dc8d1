# src/sync_s3/exceptions.py
"""Custom exceptions for the sync-s3 application."""

from typing import Optional


class SyncS3Error(Exception):
    """Base exception for all application-specific errors."""

    pass


class ConfigError(SyncS3Error):
    """Raised for configuration-related issues."""

    pass


class StageError(SyncS3Error):
    """
    Raised when one stage of a sync run fails.

    Attributes:
        stage (str): The stage that failed (connect, list, get or put).
        bucket (str, optional): The bucket involved, if any.
        key (str, optional): The object key involved, if any.
        cause (BaseException, optional): The underlying exception.
    """

    stage: str = "sync"

    def __init__(
        self,
        message: str,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.bucket: Optional[str] = bucket
        self.key: Optional[str] = key
        self.cause: Optional[BaseException] = cause
        location: str = ""
        if bucket is not None:
            location = f" [s3://{bucket}/{key or ''}]"
        detail: str = f": {cause}" if cause is not None else ""
        super().__init__(f"{self.stage} failed{location} {message}{detail}")


class ConnectError(StageError):
    """Raised when a client cannot be created for a credential profile."""

    stage = "connect"

    def __init__(self, profile: str, cause: Optional[BaseException] = None) -> None:
        self.profile: str = profile
        super().__init__(f"for profile '{profile}'", cause=cause)


class ListError(StageError):
    """Raised when a bucket listing fails."""

    stage = "list"


class TransferError(StageError):
    """Raised when an object transfer fails permanently."""

    pass


class GetError(TransferError):
    """Raised when an object cannot be fetched from the source."""

    stage = "get"


class PutError(TransferError):
    """Raised when an object cannot be written to the destination."""

    stage = "put"
