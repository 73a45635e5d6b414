"""Splits artifacts into fixed-size, content-addressed chunks."""

from common.checksum import IncrementalChecksumCalculator, compute_checksum
from publisher.types import Artifact, ArtifactSource, Chunk


def chunk_artifact(source: ArtifactSource, chunk_size: int, hash_algorithm: str) -> Artifact:
    """
    Split an artifact's bytes into ordered chunks and hash them.

    Chunks are laid out back to back starting at offset 0; only the last
    one may be shorter than chunk_size. Identical content always produces
    the same checksum and chunk hash sequence.

    Args:
        source: Artifact metadata and content
        chunk_size: Negotiated chunk size in bytes
        hash_algorithm: Negotiated hash algorithm

    Returns:
        Artifact with its checksum and chunk list

    Raises:
        ValueError: If chunk_size is not positive or the algorithm is unsupported
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    buffer = memoryview(source.data)
    total = IncrementalChecksumCalculator(hash_algorithm)
    chunks = []

    for offset in range(0, len(buffer), chunk_size):
        view = buffer[offset:offset + chunk_size]
        total.update(view)
        chunks.append(Chunk(
            hash=compute_checksum(view, hash_algorithm),
            offset=offset,
            size=len(view),
            view=view,
        ))

    return Artifact(
        name=source.name,
        checksum=total.finalize(),
        size=len(buffer),
        chunks=tuple(chunks),
        debug_id=source.debug_id,
        required_feature=source.required_feature,
    )


def chunk_artifacts(sources, chunk_size: int, hash_algorithm: str) -> list[Artifact]:
    """Chunk every source in order."""
    return [chunk_artifact(source, chunk_size, hash_algorithm) for source in sources]
