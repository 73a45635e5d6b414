"""Content hashing helpers for chunks and whole artifacts."""

import hashlib

SUPPORTED_HASH_ALGORITHMS = ("sha1", "sha256")


def is_supported_algorithm(algorithm: str) -> bool:
    """Return True if the client can compute digests with this algorithm."""
    return algorithm.lower() in SUPPORTED_HASH_ALGORITHMS


def _new_hasher(algorithm: str):
    name = algorithm.lower()
    if name not in SUPPORTED_HASH_ALGORITHMS:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    return hashlib.new(name)


def compute_checksum(data, algorithm: str = "sha1") -> str:
    """
    Compute the hex digest of data.

    Args:
        data: Bytes-like object to hash
        algorithm: Hash algorithm name advertised by the server

    Returns:
        Lowercase hexadecimal digest
    """
    hasher = _new_hasher(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


class IncrementalChecksumCalculator:
    """
    Calculate a checksum incrementally over consecutive pieces of data.

    Usage:
        calculator = IncrementalChecksumCalculator("sha1")
        calculator.update(chunk1)
        calculator.update(chunk2)
        final_checksum = calculator.finalize()
    """

    def __init__(self, algorithm: str = "sha1"):
        self.algorithm = algorithm
        self._hasher = _new_hasher(algorithm)
        self._finalized = False

    def update(self, data) -> None:
        """
        Update checksum with new data.

        Args:
            data: Bytes to add to checksum calculation
        """
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        self._hasher.update(data)

    def finalize(self) -> str:
        """
        Finalize checksum calculation and return result.

        Returns:
            Hexadecimal digest
        """
        self._finalized = True
        return self._hasher.hexdigest()
