"""Blocking publish entry point wiring negotiation, chunking and assembly."""

import asyncio
import signal
from typing import Iterable, Optional

from common.constants import DEFAULT_CHUNK_SIZE, DEFAULT_HASH_ALGORITHM
from common.logging_config import get_logger
from publisher.api_client import ApiClient
from publisher.assemble import select_assemble_transport
from publisher.capabilities import fetch_capabilities
from publisher.chunk_uploader import ChunkUploader
from publisher.chunker import chunk_artifacts
from publisher.coordinator import AssembleCoordinator
from publisher.exceptions import PublisherError, UploadCancelledError
from publisher.types import (
    ArtifactResult,
    ArtifactSource,
    ArtifactState,
    PublishReport,
    UploadOptions,
    UploadTarget,
)

logger = get_logger(__name__)


class Publisher:
    """
    Publishes artifacts to one organization/project.

    Usage:
        publisher = Publisher(client, UploadTarget(org="acme", project="app"))
        report = publisher.publish(sources)
        report.raise_for_failures()
    """

    def __init__(self, client: ApiClient, target: UploadTarget, options: Optional[UploadOptions] = None):
        self.client = client
        self.target = target
        self.options = options or client.options
        self._cancel_event = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def cancel(self) -> None:
        """
        Stop issuing new batches and rounds. Safe to call from any thread.

        Cancellation sticks to this Publisher: called before a run, the run
        reports every artifact as cancelled without sending anything.
        """
        if self._loop is None or self._loop.is_closed():
            self._cancel_event.set()
            return
        self._loop.call_soon_threadsafe(self._cancel_event.set)

    def _on_signal(self, signum: int) -> None:
        logger.warning(f"Received signal {signum}, finishing in-flight uploads and cancelling the rest")
        self._cancel_event.set()

    def _on_deadline(self) -> None:
        logger.warning(f"Deadline of {self.options.deadline:g}s reached, cancelling")
        self._cancel_event.set()

    def _local_report(
        self,
        sources: list[ArtifactSource],
        state: ArtifactState,
        error: Optional[PublisherError] = None,
        detail: Optional[str] = None
    ) -> PublishReport:
        """Report every source in one state without talking to the server."""
        artifacts = chunk_artifacts(sources, DEFAULT_CHUNK_SIZE, DEFAULT_HASH_ALGORITHM)
        for artifact in artifacts:
            logger.info(f"{artifact.name}: {artifact.checksum} ({len(artifact.chunks)} chunk(s)) {state.value}")
        return PublishReport(results=[
            ArtifactResult(artifact=artifact, state=state, error=error, detail=detail)
            for artifact in artifacts
        ])

    async def publish_async(self, sources: Iterable[ArtifactSource]) -> PublishReport:
        """
        Publish artifacts and report per-artifact outcomes.

        Args:
            sources: Artifacts to publish

        Returns:
            PublishReport in input order

        Raises:
            CapabilityError: If negotiation failed; nothing was uploaded
            ApiError: If the options request itself failed
        """
        sources = list(sources)
        self._loop = asyncio.get_running_loop()

        if not sources:
            logger.info("Nothing to publish")
            return PublishReport()

        if self.options.no_upload:
            logger.info(f"Upload disabled, checksumming {len(sources)} artifact(s) locally")
            return self._local_report(sources, ArtifactState.SKIPPED, detail="upload skipped")

        if self._cancel_event.is_set():
            logger.warning("Publisher was cancelled before the run started")
            return self._local_report(
                sources, ArtifactState.CANCELLED, error=UploadCancelledError("Publishing was cancelled")
            )

        deadline_handle = None
        if self.options.deadline is not None:
            deadline_handle = self._loop.call_later(self.options.deadline, self._on_deadline)

        try:
            capabilities = await fetch_capabilities(self.client, self.target.org)
            transport = select_assemble_transport(self.client, capabilities, self.target)
            artifacts = chunk_artifacts(sources, capabilities.chunk_size, capabilities.hash_algorithm)
            logger.info(
                f"Publishing {len(artifacts)} artifact(s), "
                f"{sum(len(a.chunks) for a in artifacts)} chunk(s) total"
            )

            uploader = ChunkUploader(self.client, capabilities, self._cancel_event)
            coordinator = AssembleCoordinator(
                transport, uploader, capabilities, self.options, self._cancel_event
            )
            results = await coordinator.run(artifacts)
        finally:
            if deadline_handle is not None:
                deadline_handle.cancel()

        report = PublishReport(results=results)
        logger.info(
            f"Publish finished: {len(report.succeeded)} succeeded, {len(report.failed)} failed "
            f"[assemble_calls={coordinator.assemble_calls} batches={uploader.batches_sent}]"
        )
        return report

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list:
        installed = []
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._on_signal, signum)
                installed.append(signum)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug(f"Could not install handler for signal {signum}")
        return installed

    def publish(self, sources: Iterable[ArtifactSource]) -> PublishReport:
        """
        Blocking wrapper around publish_async. Closes the API client when done.
        """
        async def _run() -> PublishReport:
            loop = asyncio.get_running_loop()
            installed = self._install_signal_handlers(loop)
            try:
                return await self.publish_async(sources)
            finally:
                for signum in installed:
                    loop.remove_signal_handler(signum)
                await self.client.close()

        return asyncio.run(_run())
