"""Chunk upload capability negotiation."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from common.checksum import SUPPORTED_HASH_ALGORITHMS, is_supported_algorithm
from common.constants import CHUNK_UPLOAD_PATH
from common.logging_config import get_logger
from publisher.exceptions import ApiError, CapabilityError, MalformedResponseError
from publisher.models import ChunkUploadOptionsResponse

logger = get_logger(__name__)


class ChunkUploadCapability(str, Enum):
    """Feature variants a server lists in its `accept` field."""
    DEBUG_FILES = "debug_files"
    RELEASE_FILES = "release_files"
    ARTIFACT_BUNDLES = "artifact_bundles"
    ARTIFACT_BUNDLES_V2 = "artifact_bundles_v2"
    PDBS = "pdbs"
    PORTABLE_PDBS = "portablepdbs"
    SOURCES = "sources"
    BCSYMBOLMAPS = "bcsymbolmaps"
    IL2CPP = "il2cpp"
    PROGUARD = "proguard"


@dataclass(frozen=True)
class ServerCapabilities:
    """
    Upload limits and features negotiated once per run.
    """
    url: str
    chunk_size: int
    chunks_per_request: int
    max_request_size: int
    concurrency: int
    hash_algorithm: str
    accept: frozenset[ChunkUploadCapability]
    max_file_size: Optional[int] = None
    max_wait: Optional[float] = None

    def supports(self, feature: ChunkUploadCapability) -> bool:
        return feature in self.accept


def parse_capabilities(payload) -> ServerCapabilities:
    """
    Validate a chunk upload options payload.

    Args:
        payload: Decoded JSON body of the options endpoint

    Returns:
        ServerCapabilities for the rest of the run

    Raises:
        CapabilityError: If a field is missing or invalid, or the hash
            algorithm cannot be computed locally
    """
    try:
        options = ChunkUploadOptionsResponse.model_validate(payload)
    except ValidationError as e:
        raise CapabilityError(f"Invalid chunk upload options from server: {e}") from e

    if not is_supported_algorithm(options.hash_algorithm):
        raise CapabilityError(
            f"Server requires hash algorithm '{options.hash_algorithm}', "
            f"supported: {', '.join(SUPPORTED_HASH_ALGORITHMS)}"
        )

    if options.chunk_size > options.max_request_size:
        raise CapabilityError(
            f"Server chunk size {options.chunk_size} exceeds its maximum request size {options.max_request_size}"
        )

    accept = set()
    for name in options.accept:
        try:
            accept.add(ChunkUploadCapability(name))
        except ValueError:
            logger.debug(f"Ignoring unknown chunk upload feature: {name}")

    return ServerCapabilities(
        url=options.url,
        chunk_size=options.chunk_size,
        chunks_per_request=options.chunks_per_request,
        max_request_size=options.max_request_size,
        concurrency=options.concurrency,
        hash_algorithm=options.hash_algorithm.lower(),
        accept=frozenset(accept),
        max_file_size=options.max_file_size,
        max_wait=options.max_wait,
    )


async def fetch_capabilities(client, org: str) -> ServerCapabilities:
    """
    Fetch chunk upload options for an organization.

    Args:
        client: ApiClient used for the request
        org: Organization slug

    Returns:
        Negotiated ServerCapabilities

    Raises:
        CapabilityError: If the server does not support chunk uploads or
            answers with unusable options
        ApiError: If the request itself failed
    """
    endpoint = CHUNK_UPLOAD_PATH.format(org=org)
    try:
        payload = await client.get_json(endpoint)
    except MalformedResponseError as e:
        raise CapabilityError(f"Invalid chunk upload options from server: {e}") from e
    except ApiError as e:
        if e.status_code == 404:
            raise CapabilityError("Server does not support chunked uploads") from e
        raise

    capabilities = parse_capabilities(payload)
    logger.info(
        f"Negotiated chunk upload options [chunk_size={capabilities.chunk_size} "
        f"chunks_per_request={capabilities.chunks_per_request} "
        f"max_request_size={capabilities.max_request_size} "
        f"concurrency={capabilities.concurrency} hash={capabilities.hash_algorithm} "
        f"accept={sorted(f.value for f in capabilities.accept)}]"
    )
    return capabilities
