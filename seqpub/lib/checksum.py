"""Content digests for local files.

The archive compares local and remote content by md5, the digest both the
local-archive store and S3 (single-part ETag) expose.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

__all__ = ["compute_file_md5", "compute_bytes_md5"]

CHUNK_SIZE = 1024 * 1024


def compute_file_md5(path: Union[str, Path]) -> str:
    """Compute the md5 hex digest of a file.

    Reads file in 1MB chunks to handle large alignment files.
    """
    hasher = hashlib.md5()
    with Path(path).open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
    digest = hasher.hexdigest()
    logger.debug("md5 of %s is %s", path, digest)
    return digest


def compute_bytes_md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()
