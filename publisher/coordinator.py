"""Drives artifacts through rounds of assemble requests and chunk uploads."""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

from common.constants import DEFAULT_MAX_WAIT_SECONDS
from common.logging_config import get_logger
from publisher.assemble import AssembleTransport
from publisher.capabilities import ServerCapabilities
from publisher.chunk_uploader import ChunkUploader
from publisher.exceptions import (
    ApiError,
    AssembleError,
    AssembleTimeoutError,
    PublisherError,
    UploadCancelledError,
)
from publisher.models import AssembleResponseEntry, ChunkedFileState
from publisher.types import Artifact, ArtifactResult, ArtifactState, Chunk, UploadOptions

logger = get_logger(__name__)

RESUBMITTED_STATES = (ArtifactState.PENDING, ArtifactState.AWAITING_CHUNKS, ArtifactState.ASSEMBLING)


@dataclass
class ArtifactSlot:
    """Mutable state machine slot for one checksum."""
    artifact: Artifact
    state: ArtifactState = ArtifactState.PENDING
    error: Optional[PublisherError] = None
    detail: Optional[str] = None

    def fail(self, error: PublisherError, state: ArtifactState = ArtifactState.FAILED) -> None:
        self.state = state
        self.error = error
        logger.warning(f"{self.artifact.name} ({self.artifact.checksum}): {state.value}: {error}")


class AssembleCoordinator:
    """
    Owns the per-artifact state machines and runs the assemble round loop.

    Each round submits every non-terminal artifact in one assemble call,
    uploads the union of reported missing chunks, and repeats until all
    artifacts are terminal or the round budget is spent.
    """

    def __init__(
        self,
        transport: AssembleTransport,
        uploader: ChunkUploader,
        capabilities: ServerCapabilities,
        options: Optional[UploadOptions] = None,
        cancel_event: Optional[asyncio.Event] = None
    ):
        self.transport = transport
        self.uploader = uploader
        self.capabilities = capabilities
        self.options = options or UploadOptions()
        self.cancel_event = cancel_event or uploader.cancel_event
        self.assemble_calls = 0
        self._slots: dict[str, ArtifactSlot] = {}

    def _preflight(self, slot: ArtifactSlot) -> None:
        artifact = slot.artifact
        max_file_size = self.capabilities.max_file_size
        if max_file_size is not None and artifact.size > max_file_size:
            slot.fail(AssembleError(
                artifact.checksum,
                f"{artifact.name} is {artifact.size} bytes, the server accepts at most {max_file_size}"
            ))
        elif artifact.required_feature is not None and not self.capabilities.supports(artifact.required_feature):
            slot.fail(AssembleError(
                artifact.checksum,
                f"server does not accept {artifact.required_feature.value} uploads"
            ))

    def _max_wait(self) -> float:
        if self.options.max_wait is not None:
            return self.options.max_wait
        if self.capabilities.max_wait is not None:
            return self.capabilities.max_wait
        return DEFAULT_MAX_WAIT_SECONDS

    def _apply_response(
        self,
        slot: ArtifactSlot,
        entry: Optional[AssembleResponseEntry],
        chunk_index: dict[str, Chunk],
        missing: dict[str, Chunk]
    ) -> None:
        """
        Move one submitted slot to its next state from its response entry.

        Missing chunk hashes are added to `missing`, keyed by hash so a chunk
        shared by several artifacts is uploaded once.
        """
        artifact = slot.artifact
        if entry is None:
            slot.fail(AssembleError(artifact.checksum, "server response did not include this artifact"))
            return

        slot.detail = entry.detail

        if entry.state is ChunkedFileState.ERROR:
            slot.fail(AssembleError(artifact.checksum, entry.detail))
            return

        if entry.missing_chunks:
            own = {chunk.hash for chunk in artifact.chunks}
            unknown = [h for h in entry.missing_chunks if h not in own]
            if unknown:
                slot.fail(AssembleError(
                    artifact.checksum,
                    f"server requested unknown chunk(s): {', '.join(unknown)}"
                ))
                return
            for chunk_hash in entry.missing_chunks:
                missing.setdefault(chunk_hash, chunk_index[chunk_hash])
            slot.state = ArtifactState.AWAITING_CHUNKS
            return

        if entry.state is ChunkedFileState.OK:
            slot.state = ArtifactState.COMPLETE
        elif entry.state is ChunkedFileState.NOT_FOUND:
            slot.fail(AssembleError(artifact.checksum, entry.detail or "server reported not_found without missing chunks"))
        elif self.options.wait:
            slot.state = ArtifactState.ASSEMBLING
        else:
            slot.state = ArtifactState.COMPLETE

    def _cancel_remaining(self) -> None:
        for slot in self._slots.values():
            if not slot.state.is_terminal:
                slot.fail(UploadCancelledError("Publishing was cancelled"), ArtifactState.CANCELLED)

    async def run(self, artifacts: list[Artifact]) -> list[ArtifactResult]:
        """
        Publish artifacts until each one is terminal.

        Args:
            artifacts: Chunked artifacts; duplicates (same checksum) share one slot

        Returns:
            One ArtifactResult per input artifact, in input order
        """
        self._slots = {}
        chunk_index: dict[str, Chunk] = {}
        for artifact in artifacts:
            if artifact.checksum in self._slots:
                continue
            slot = ArtifactSlot(artifact)
            self._preflight(slot)
            self._slots[artifact.checksum] = slot
            for chunk in artifact.chunks:
                chunk_index.setdefault(chunk.hash, chunk)

        upload_rounds = 0
        wait_started: Optional[float] = None

        while True:
            active = [s for s in self._slots.values() if s.state in RESUBMITTED_STATES]
            if not active:
                break

            if self.cancel_event.is_set():
                self._cancel_remaining()
                break

            needs_upload_round = any(s.state is not ArtifactState.ASSEMBLING for s in active)
            if needs_upload_round:
                if upload_rounds >= self.options.max_assemble_rounds:
                    for slot in active:
                        slot.fail(AssembleTimeoutError(
                            f"{slot.artifact.name} did not assemble within "
                            f"{self.options.max_assemble_rounds} round(s)"
                        ))
                    break
                upload_rounds += 1
            else:
                max_wait = self._max_wait()
                if wait_started is None:
                    wait_started = time.monotonic()
                elif time.monotonic() - wait_started >= max_wait:
                    for slot in active:
                        slot.fail(AssembleTimeoutError(
                            f"{slot.artifact.name} was still assembling after {max_wait:g}s"
                        ))
                    break
                await asyncio.sleep(self.options.poll_interval)
                if self.cancel_event.is_set():
                    self._cancel_remaining()
                    break

            for slot in active:
                slot.state = ArtifactState.SUBMITTED

            logger.info(f"Assemble round {upload_rounds}: submitting {len(active)} artifact(s)")
            self.assemble_calls += 1
            try:
                responses = await self.transport.assemble([s.artifact for s in active])
            except ApiError as e:
                for slot in active:
                    slot.fail(e)
                break

            missing: dict[str, Chunk] = {}
            for slot in active:
                self._apply_response(slot, responses.get(slot.artifact.checksum), chunk_index, missing)

            if not missing:
                continue

            awaiting = [s for s in active if s.state is ArtifactState.AWAITING_CHUNKS]
            try:
                await self.uploader.upload(missing.values())
            except UploadCancelledError as e:
                for slot in awaiting:
                    slot.fail(e, ArtifactState.CANCELLED)
            except PublisherError as e:
                for slot in awaiting:
                    slot.fail(e)

        return [self._result_for(artifact) for artifact in artifacts]

    def _result_for(self, artifact: Artifact) -> ArtifactResult:
        slot = self._slots[artifact.checksum]
        return ArtifactResult(artifact=artifact, state=slot.state, error=slot.error, detail=slot.detail)
