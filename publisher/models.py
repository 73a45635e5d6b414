"""Pydantic models for the chunk upload and assemble wire formats."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChunkedFileState(str, Enum):
    """Assemble state reported by the service for one checksum."""
    NOT_FOUND = "not_found"
    CREATED = "created"
    ASSEMBLING = "assembling"
    OK = "ok"
    ERROR = "error"


class ChunkUploadOptionsResponse(BaseModel):
    """Response model for the chunk upload options endpoint."""
    url: str
    chunk_size: int = Field(alias="chunkSize", gt=0)
    chunks_per_request: int = Field(alias="chunksPerRequest", gt=0)
    max_request_size: int = Field(alias="maxRequestSize", gt=0)
    concurrency: int = Field(gt=0)
    hash_algorithm: str = Field(alias="hashAlgorithm")
    accept: List[str] = Field(default_factory=list)
    max_file_size: Optional[int] = Field(default=None, alias="maxFileSize", gt=0)
    max_wait: Optional[float] = Field(default=None, alias="maxWait", ge=0)


class DifAssembleRequestEntry(BaseModel):
    """Request model for one debug file in a DIF assemble request."""
    name: str
    debug_id: Optional[str] = None
    chunks: List[str]


class ArtifactBundleAssembleRequest(BaseModel):
    """Request model for the organization artifact bundle assemble endpoint."""
    checksum: str
    chunks: List[str]
    projects: List[str]
    version: Optional[str] = None
    dist: Optional[str] = None


class ReleaseFilesAssembleRequest(BaseModel):
    """Request model for the legacy release files assemble endpoint."""
    checksum: str
    chunks: List[str]


class ReleaseCreateRequest(BaseModel):
    """Request model for creating (or re-announcing) a release."""
    version: str
    projects: List[str]


class AssembleResponseEntry(BaseModel):
    """Response model for the assemble state of one checksum."""
    model_config = ConfigDict(populate_by_name=True)

    state: ChunkedFileState
    missing_chunks: List[str] = Field(default_factory=list, alias="missingChunks")
    detail: Optional[str] = None


AssembleResponseMap = Dict[str, AssembleResponseEntry]
