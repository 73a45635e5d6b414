"""Custom exception classes for the publisher engine."""

from typing import Iterable, Optional


class PublisherError(Exception):
    """
    Base exception class for all publishing errors.
    """
    pass


class MissingCredentialsError(PublisherError):
    """
    Raised when no auth token is configured for the service.
    """
    pass


class ApiError(PublisherError):
    """
    Raised when the service answers with a non-success status.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    @property
    def is_transient(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class ApiConnectionError(ApiError):
    """
    Raised when the service cannot be reached after all retries.
    """
    pass


class MalformedResponseError(ApiError):
    """
    Raised when a response body is not the JSON the endpoint promises.
    """
    pass


class CapabilityError(PublisherError):
    """
    Raised when chunk upload options are missing, malformed or unusable.
    """
    pass


class ChunkTooLargeError(CapabilityError):
    """
    Raised when a single chunk exceeds the server's request size limit.
    """
    pass


class ChunkUploadError(PublisherError):
    """
    Raised when one or more chunk batches could not be uploaded.
    """

    def __init__(self, message: str, chunk_hashes: Iterable[str] = ()):
        self.chunk_hashes = tuple(chunk_hashes)
        if self.chunk_hashes:
            message = f"{message} (unresolved chunks: {', '.join(self.chunk_hashes)})"
        super().__init__(message)


class AssembleError(PublisherError):
    """
    Raised when the service reports that an artifact cannot be assembled.
    """

    def __init__(self, checksum: str, detail: Optional[str] = None):
        self.checksum = checksum
        self.detail = detail
        super().__init__(f"Assembling {checksum} failed: {detail or 'unknown error'}")


class AssembleTimeoutError(PublisherError, TimeoutError):
    """
    Raised when an artifact did not reach a terminal state within the round or wait budget.
    """
    pass


class UploadCancelledError(PublisherError):
    """
    Raised when publishing was interrupted before an artifact finished.
    """
    pass


class PublishFailedError(PublisherError):
    """
    Raised when every artifact of a run failed.
    """

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


class PartialFailureError(PublishFailedError):
    """
    Raised when some artifacts completed and others failed.
    """
    pass
