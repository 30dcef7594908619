"""Archive store abstraction for the publisher.

Provides a unified interface to the archive that run files are published
to: a directory tree on the local filesystem, or an S3 bucket.

Usage:
    from seqpub.lib.storage import get_store

    # Local filesystem
    store = get_store("/archive")

    # AWS S3 (or MinIO via AWS_ENDPOINT_URL)
    store = get_store("s3://archive-bucket/irods")
"""

from typing import Any, Tuple

from seqpub.lib.storage.base import RemoteStore
from seqpub.lib.storage.local import LocalArchiveStore
from seqpub.lib.storage.s3 import S3ArchiveStore

__all__ = [
    "RemoteStore",
    "LocalArchiveStore",
    "S3ArchiveStore",
    "get_store",
    "parse_uri",
]


def parse_uri(path: str) -> Tuple[str, str]:
    """Parse an archive URI into scheme and path.

    Examples:
        >>> parse_uri("/archive")
        ('local', '/archive')
        >>> parse_uri("s3://archive-bucket/irods")
        ('s3', 'archive-bucket/irods')
        >>> parse_uri("file:///archive")
        ('local', '/archive')
    """
    if path.startswith("s3://"):
        return ("s3", path[5:])
    elif path.startswith("file://"):
        return ("local", path[7:])
    else:
        return ("local", path)


def get_store(path: str, **options: Any) -> RemoteStore:
    """Get the archive store for a location.

    Args:
        path: Archive location (local path or s3:// URI)
        **options: Backend-specific options (credentials, retry, etc.)
    """
    scheme, rest = parse_uri(path)

    if scheme == "s3":
        return S3ArchiveStore(path, **options)
    return LocalArchiveStore(rest, **options)
