"""File fingerprinting for nassync.

Fingerprints are SHA-256 hex digests of the file content.
"""

import hashlib
from pathlib import Path

HASH_BLOCK_SIZE = 1024 * 1024  # 1 MB


def compute_file_hash(path: Path) -> str:
    """Compute SHA-256 hash of a file.

    Reads the file in blocks to handle large files efficiently.

    Args:
        path: Path to the file to hash.

    Returns:
        Hexadecimal SHA-256 hash string.
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(HASH_BLOCK_SIZE), b""):
            hasher.update(block)
    return hasher.hexdigest()


def file_mtime(path: Path) -> int:
    """Return the modification time of a file in whole seconds since epoch."""
    return int(Path(path).stat().st_mtime)
