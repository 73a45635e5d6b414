"""Assemble request variants, selected once from the negotiated feature set."""

from typing import Iterable

from pydantic import ValidationError

from common.constants import (
    ARTIFACT_BUNDLE_ASSEMBLE_PATH,
    DIF_ASSEMBLE_PATH,
    RELEASE_FILES_ASSEMBLE_PATH,
    RELEASES_PATH,
)
from common.logging_config import get_logger
from publisher.capabilities import ChunkUploadCapability, ServerCapabilities
from publisher.exceptions import CapabilityError, MalformedResponseError
from publisher.models import (
    ArtifactBundleAssembleRequest,
    AssembleResponseEntry,
    AssembleResponseMap,
    DifAssembleRequestEntry,
    ReleaseCreateRequest,
    ReleaseFilesAssembleRequest,
)
from publisher.types import Artifact, ArtifactKind, UploadTarget

logger = get_logger(__name__)


def _parse_entry(checksum: str, payload) -> AssembleResponseEntry:
    try:
        return AssembleResponseEntry.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(f"Malformed assemble response for {checksum}: {e}") from e


class AssembleTransport:
    """
    Sends one round of assemble requests and returns the state per checksum.

    Subclasses decide the endpoint and the body shape.
    """

    name = "assemble"

    def __init__(self, client, target: UploadTarget):
        self.client = client
        self.target = target

    @property
    def endpoint(self) -> str:
        raise NotImplementedError

    async def assemble(self, artifacts: Iterable[Artifact]) -> AssembleResponseMap:
        raise NotImplementedError


class DebugFilesAssemble(AssembleTransport):
    """All debug files of a round go into one request keyed by checksum."""

    name = "debug_files"

    @property
    def endpoint(self) -> str:
        return DIF_ASSEMBLE_PATH.format(org=self.target.org, project=self.target.project)

    def build_body(self, artifacts: Iterable[Artifact]) -> dict:
        return {
            artifact.checksum: DifAssembleRequestEntry(
                name=artifact.name,
                debug_id=artifact.debug_id,
                chunks=artifact.chunk_hashes,
            ).model_dump(exclude_none=True)
            for artifact in artifacts
        }

    async def assemble(self, artifacts: Iterable[Artifact]) -> AssembleResponseMap:
        body = self.build_body(artifacts)
        payload = await self.client.post_json(self.endpoint, body)
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"Expected an object from {self.endpoint}, got {type(payload).__name__}")
        return {checksum: _parse_entry(checksum, entry) for checksum, entry in payload.items()}


class _SingleArtifactAssemble(AssembleTransport):
    """One request per artifact, issued sequentially within a round."""

    def build_body(self, artifact: Artifact) -> dict:
        raise NotImplementedError

    async def assemble(self, artifacts: Iterable[Artifact]) -> AssembleResponseMap:
        responses = {}
        for artifact in artifacts:
            payload = await self.client.post_json(self.endpoint, self.build_body(artifact))
            responses[artifact.checksum] = _parse_entry(artifact.checksum, payload)
        return responses


class ArtifactBundleAssemble(_SingleArtifactAssemble):
    """Organization level artifact bundle assembly."""

    name = "artifact_bundles"

    @property
    def endpoint(self) -> str:
        return ARTIFACT_BUNDLE_ASSEMBLE_PATH.format(org=self.target.org)

    def build_body(self, artifact: Artifact) -> dict:
        return ArtifactBundleAssembleRequest(
            checksum=artifact.checksum,
            chunks=artifact.chunk_hashes,
            projects=[self.target.project],
            version=self.target.release,
            dist=self.target.dist,
        ).model_dump(exclude_none=True)


class ReleaseFilesAssemble(_SingleArtifactAssemble):
    """
    Legacy release bound assembly.

    The release must exist before files can be assembled into it, so the
    first round creates it. The service answers 208 when it already exists.
    """

    name = "release_files"

    def __init__(self, client, target: UploadTarget):
        super().__init__(client, target)
        self.release_ensured = False

    @property
    def endpoint(self) -> str:
        return RELEASE_FILES_ASSEMBLE_PATH.format(org=self.target.org, release=self.target.release)

    @property
    def releases_endpoint(self) -> str:
        return RELEASES_PATH.format(org=self.target.org, project=self.target.project)

    async def ensure_release(self) -> None:
        """
        Create the target release once per run.

        Raises:
            ApiError: If the service refuses to create the release
        """
        if self.release_ensured:
            return
        body = ReleaseCreateRequest(version=self.target.release, projects=[self.target.project]).model_dump()
        response = await self.client.post(self.releases_endpoint, body)
        logger.info(f"Release {self.target.release} ready [status={response.status_code}]")
        self.release_ensured = True

    async def assemble(self, artifacts: Iterable[Artifact]) -> AssembleResponseMap:
        await self.ensure_release()
        return await super().assemble(artifacts)

    def build_body(self, artifact: Artifact) -> dict:
        return ReleaseFilesAssembleRequest(
            checksum=artifact.checksum,
            chunks=artifact.chunk_hashes,
        ).model_dump()


def select_assemble_transport(client, capabilities: ServerCapabilities, target: UploadTarget) -> AssembleTransport:
    """
    Pick the assemble variant for this run.

    Args:
        client: ApiClient shared with the uploader
        capabilities: Negotiated server capabilities
        target: Organization, project and release being published to

    Returns:
        AssembleTransport for the whole run

    Raises:
        CapabilityError: If the server accepts no variant usable for the target
    """
    if target.kind is ArtifactKind.DEBUG_FILE:
        transport = DebugFilesAssemble(client, target)
    elif capabilities.supports(ChunkUploadCapability.ARTIFACT_BUNDLES_V2):
        transport = ArtifactBundleAssemble(client, target)
    elif capabilities.supports(ChunkUploadCapability.ARTIFACT_BUNDLES):
        if not target.release:
            raise CapabilityError("This server requires a release to upload artifact bundles")
        transport = ArtifactBundleAssemble(client, target)
    elif capabilities.supports(ChunkUploadCapability.RELEASE_FILES):
        if not target.release:
            raise CapabilityError("This server requires a release to upload release files")
        transport = ReleaseFilesAssemble(client, target)
    else:
        raise CapabilityError("Server does not accept artifact bundle uploads")

    logger.info(f"Using assemble variant '{transport.name}' [endpoint={transport.endpoint}]")
    return transport
