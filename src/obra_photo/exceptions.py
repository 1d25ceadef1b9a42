"""Exception hierarchy for the photo processing core."""

from typing import Optional


class ObraPhotoError(Exception):
    """Base exception for all processing errors."""

    def __init__(
        self, message: str, original_error: Optional[Exception] = None
    ) -> None:
        """
        Initialize the error.

        Args:
            message: Error message.
            original_error: Original exception that caused this error.
        """
        super().__init__(message)
        self.original_error = original_error


class HashingError(ObraPhotoError):
    """Raised when an input image cannot be read for hashing."""


class AlreadyRunningError(ObraPhotoError):
    """Raised when a queue run is started while another one is in flight."""


class ClassifierError(ObraPhotoError):
    """Base exception for remote classifier failures."""


class TransientRemoteError(ClassifierError):
    """Network or service failure that may succeed on retry."""


class RateLimitedError(TransientRemoteError):
    """The remote service asked the caller to slow down."""

    def __init__(
        self,
        message: str = "Rate limit",
        retry_after: Optional[float] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, original_error=original_error)
        self.retry_after = retry_after


class CreditExhaustedError(ClassifierError):
    """The metered AI provider has no credits left for this session."""


class MalformedRemoteResponseError(ClassifierError):
    """The remote service answered with something that is not a batch payload."""
