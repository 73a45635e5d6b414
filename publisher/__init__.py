"""Content-addressed chunk upload and assembly client."""

from publisher.api_client import ApiClient
from publisher.capabilities import ChunkUploadCapability, ServerCapabilities
from publisher.exceptions import (
    ApiError,
    AssembleError,
    AssembleTimeoutError,
    CapabilityError,
    ChunkUploadError,
    PartialFailureError,
    PublishFailedError,
    PublisherError,
    UploadCancelledError,
)
from publisher.publisher import Publisher
from publisher.types import (
    ArtifactKind,
    ArtifactResult,
    ArtifactSource,
    ArtifactState,
    PublishReport,
    UploadOptions,
    UploadTarget,
)

__all__ = [
    "ApiClient",
    "ChunkUploadCapability",
    "ServerCapabilities",
    "ApiError",
    "AssembleError",
    "AssembleTimeoutError",
    "CapabilityError",
    "ChunkUploadError",
    "PartialFailureError",
    "PublishFailedError",
    "PublisherError",
    "UploadCancelledError",
    "Publisher",
    "ArtifactKind",
    "ArtifactResult",
    "ArtifactSource",
    "ArtifactState",
    "PublishReport",
    "UploadOptions",
    "UploadTarget",
]
