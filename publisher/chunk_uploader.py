"""Batches missing chunks and uploads them with bounded concurrency."""

import asyncio
from typing import Iterable, Optional

from common.logging_config import get_logger
from publisher.capabilities import ServerCapabilities
from publisher.exceptions import ChunkTooLargeError, ChunkUploadError, PublisherError, UploadCancelledError
from publisher.types import Chunk, UploadBatch

logger = get_logger(__name__)


def make_batches(chunks: Iterable[Chunk], max_chunks: int, max_bytes: int) -> list[UploadBatch]:
    """
    Greedily pack chunks into batches, preserving input order.

    A batch is closed as soon as adding the next chunk would exceed either
    the chunk count or the byte limit.

    Args:
        chunks: Chunks in discovery order
        max_chunks: Maximum chunks per request
        max_bytes: Maximum summed chunk bytes per request

    Returns:
        List of UploadBatch

    Raises:
        ChunkTooLargeError: If a single chunk is larger than max_bytes
    """
    batches = []
    current: list[Chunk] = []
    current_bytes = 0

    for chunk in chunks:
        if chunk.size > max_bytes:
            raise ChunkTooLargeError(
                f"Chunk {chunk.hash} is {chunk.size} bytes, larger than the server's "
                f"maximum request size of {max_bytes} bytes"
            )
        if current and (len(current) >= max_chunks or current_bytes + chunk.size > max_bytes):
            batches.append(UploadBatch(chunks=tuple(current)))
            current = []
            current_bytes = 0
        current.append(chunk)
        current_bytes += chunk.size

    if current:
        batches.append(UploadBatch(chunks=tuple(current)))

    return batches


class ChunkUploader:
    """
    Uploads chunk batches to the server's chunk upload URL.

    At most `capabilities.concurrency` batches are in flight at once.
    """

    def __init__(
        self,
        client,
        capabilities: ServerCapabilities,
        cancel_event: Optional[asyncio.Event] = None
    ):
        self.client = client
        self.capabilities = capabilities
        self.cancel_event = cancel_event or asyncio.Event()
        self.batches_sent = 0

    def make_batches(self, chunks: Iterable[Chunk]) -> list[UploadBatch]:
        return make_batches(
            chunks,
            self.capabilities.chunks_per_request,
            self.capabilities.max_request_size
        )

    async def _send_batch(self, semaphore: asyncio.Semaphore, index: int, batch: UploadBatch) -> bool:
        """
        Send one batch once a slot is free.

        Returns:
            True if sent, False if skipped because of cancellation
        """
        async with semaphore:
            if self.cancel_event.is_set():
                logger.debug(f"Skipping batch {index} after cancellation")
                return False
            logger.debug(
                f"Uploading batch {index}: {len(batch.chunks)} chunk(s), {batch.total_size} bytes"
            )
            await self.client.upload_chunks(self.capabilities.url, batch)
            self.batches_sent += 1
            return True

    async def upload(self, chunks: Iterable[Chunk]) -> None:
        """
        Upload every chunk, succeeding only if all batches are acknowledged.

        Args:
            chunks: Deduplicated chunks in discovery order

        Raises:
            ChunkTooLargeError: If a chunk cannot fit in any request
            ChunkUploadError: If any batch failed after its retries
            UploadCancelledError: If cancellation left batches unsent
        """
        batches = self.make_batches(chunks)
        if not batches:
            return

        total = sum(len(batch.chunks) for batch in batches)
        logger.info(
            f"Uploading {total} missing chunk(s) in {len(batches)} batch(es) "
            f"[concurrency={self.capabilities.concurrency}]"
        )

        semaphore = asyncio.Semaphore(self.capabilities.concurrency)
        tasks = [self._send_batch(semaphore, i, batch) for i, batch in enumerate(batches)]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        failed_hashes = []
        skipped_hashes = []
        errors = []
        for batch, result in zip(batches, results):
            if isinstance(result, PublisherError):
                logger.warning(f"Chunk batch failed: {result}")
                failed_hashes.extend(batch.chunk_hashes)
                errors.append(result)
            elif isinstance(result, BaseException):
                raise result
            elif result is False:
                skipped_hashes.extend(batch.chunk_hashes)

        if failed_hashes:
            raise ChunkUploadError(
                f"{len(errors)} of {len(batches)} chunk batch(es) failed: {errors[0]}",
                chunk_hashes=failed_hashes
            ) from errors[0]
        if skipped_hashes:
            raise UploadCancelledError(f"Upload cancelled with {len(skipped_hashes)} chunk(s) not sent")

        logger.info(f"Uploaded {total} chunk(s)")
