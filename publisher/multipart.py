"""Multipart form helpers for chunk upload requests."""

import secrets
import string

from common.constants import MULTIPART_BOUNDARY_LENGTH, MULTIPART_FIELD_NAME

# Subset of the RFC 1341 7.2 bchars that needs no quoting in a header parameter.
BOUNDARY_CHARS = string.ascii_letters + string.digits + "-_."
MAX_BOUNDARY_LENGTH = 70


def make_boundary(length: int = MULTIPART_BOUNDARY_LENGTH) -> str:
    """
    Generate a random multipart boundary.

    Args:
        length: Number of characters, 1 to 70

    Returns:
        Boundary string drawn from the RFC 1341 bchars set
    """
    if not 1 <= length <= MAX_BOUNDARY_LENGTH:
        raise ValueError(f"Boundary length must be between 1 and {MAX_BOUNDARY_LENGTH}, got {length}")
    return ''.join(secrets.choice(BOUNDARY_CHARS) for _ in range(length))


def multipart_content_type(boundary: str) -> str:
    return f"multipart/form-data; boundary={boundary}"


def batch_to_files(batch) -> list[tuple[str, tuple[str, bytes, str]]]:
    """
    Build httpx `files` entries for a batch: one part per chunk, named by its hash.

    Args:
        batch: UploadBatch to encode

    Returns:
        List of (field, (filename, content, content_type)) tuples
    """
    return [
        (MULTIPART_FIELD_NAME, (chunk.hash, chunk.read(), "application/octet-stream"))
        for chunk in batch.chunks
    ]
