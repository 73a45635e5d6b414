"""Data types shared by the chunker, uploader and assemble coordinator."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from publisher.capabilities import ChunkUploadCapability
from publisher.exceptions import PartialFailureError, PublishFailedError, PublisherError


class ArtifactKind(str, Enum):
    """What is being published; decides which assemble variant is used."""
    DEBUG_FILE = "debug_file"
    ARTIFACT_BUNDLE = "artifact_bundle"


class ArtifactState(str, Enum):
    """Per-artifact position in the assemble state machine."""
    PENDING = "pending"
    SUBMITTED = "submitted"
    AWAITING_CHUNKS = "awaiting_chunks"
    ASSEMBLING = "assembling"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ArtifactState.COMPLETE, ArtifactState.FAILED, ArtifactState.CANCELLED, ArtifactState.SKIPPED
        )


@dataclass(frozen=True)
class ArtifactSource:
    """
    Caller supplied artifact: identifying metadata plus raw bytes.
    """
    name: str
    data: bytes = field(repr=False)
    debug_id: Optional[str] = None
    required_feature: Optional[ChunkUploadCapability] = None


@dataclass(frozen=True)
class Chunk:
    """
    A content-addressed slice of an artifact.

    The view shares the artifact's buffer; it never owns a copy of the bytes.
    """
    hash: str
    offset: int
    size: int
    view: memoryview = field(repr=False, compare=False)

    def read(self) -> bytes:
        return self.view.tobytes()


@dataclass(frozen=True)
class Artifact:
    """
    A chunked artifact ready for assembly.
    """
    name: str
    checksum: str
    size: int
    chunks: tuple[Chunk, ...]
    debug_id: Optional[str] = None
    required_feature: Optional[ChunkUploadCapability] = None

    @property
    def chunk_hashes(self) -> list[str]:
        return [chunk.hash for chunk in self.chunks]


@dataclass(frozen=True)
class UploadBatch:
    """
    Chunks sent together in one multipart request.
    """
    chunks: tuple[Chunk, ...]

    @property
    def total_size(self) -> int:
        return sum(chunk.size for chunk in self.chunks)

    @property
    def chunk_hashes(self) -> list[str]:
        return [chunk.hash for chunk in self.chunks]


@dataclass(frozen=True)
class UploadTarget:
    """
    Where artifacts are published to.
    """
    org: str
    project: str
    kind: ArtifactKind = ArtifactKind.DEBUG_FILE
    release: Optional[str] = None
    dist: Optional[str] = None


@dataclass(frozen=True)
class UploadOptions:
    """
    Client-side knobs for retries, round budget and assembly polling.
    """
    max_retries: int = 3
    initial_backoff: float = 0.5
    max_backoff: float = 10.0
    max_assemble_rounds: int = 10
    wait: bool = False
    max_wait: Optional[float] = None
    poll_interval: float = 1.0
    deadline: Optional[float] = None
    timeout: float = 30.0
    no_upload: bool = False


@dataclass
class ArtifactResult:
    """
    Final outcome of one artifact.
    """
    artifact: Artifact
    state: ArtifactState
    error: Optional[PublisherError] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state in (ArtifactState.COMPLETE, ArtifactState.SKIPPED)


@dataclass
class PublishReport:
    """
    Per-artifact results of a publish run, in input order.
    """
    results: list[ArtifactResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[ArtifactResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[ArtifactResult]:
        return [r for r in self.results if not r.ok]

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def raise_for_failures(self) -> None:
        """
        Raise if any artifact did not complete.

        Raises:
            PartialFailureError: Some artifacts completed, others did not
            PublishFailedError: No artifact completed
        """
        failed = self.failed
        if not failed:
            return
        if self.succeeded:
            raise PartialFailureError(
                f"{len(failed)} of {len(self.results)} artifact(s) failed to publish", report=self
            )
        raise PublishFailedError(f"All {len(failed)} artifact(s) failed to publish", report=self)
