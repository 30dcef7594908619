"""Abstract base class for archive stores.

Defines the interface the publisher needs from the remote archive: content
existence and digest, content transfer, and per-object metadata and
permissions.
"""

from __future__ import annotations

import logging
import posixpath
from abc import ABC, abstractmethod
from typing import Any, Iterable, List

from seqpub.lib.metadata import AccessGrant, Tag

logger = logging.getLogger(__name__)

__all__ = ["RemoteStore"]


class RemoteStore(ABC):
    """Abstract base class for archive stores.

    Remote paths are absolute POSIX-style paths within the archive, such as
    ``/seq/26291/26291_1#1.cram``; each backend maps them onto its own
    storage below ``base_path``.

    Subclasses must implement all abstract methods.
    """

    def __init__(self, base_path: str, **options: Any) -> None:
        """Initialize the store.

        Args:
            base_path: Root of the archive for this backend
            **options: Backend-specific options
        """
        self.base_path = base_path
        self.options = options

    @property
    @abstractmethod
    def scheme(self) -> str:
        """Return the URI scheme for this backend (e.g., 'local', 's3')."""
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check if an object exists at a remote path."""
        pass

    @abstractmethod
    def digest(self, path: str) -> str:
        """Return the md5 digest of the object's content.

        Raises:
            FileNotFoundError: if there is no object at the path
        """
        pass

    @abstractmethod
    def put(self, path: str, local_file: str) -> None:
        """Create or overwrite the object at a remote path with a local file."""
        pass

    @abstractmethod
    def get_metadata(self, path: str) -> List[Tag]:
        """Return the tags currently attached to an object."""
        pass

    @abstractmethod
    def set_metadata(self, path: str, tags: Iterable[Tag]) -> None:
        """Replace the tags attached to an object."""
        pass

    @abstractmethod
    def get_permissions(self, path: str) -> List[AccessGrant]:
        """Return the access grants on an object."""
        pass

    @abstractmethod
    def set_permissions(self, path: str, acl: Iterable[AccessGrant]) -> None:
        """Replace the access grants on an object."""
        pass

    @staticmethod
    def join(collection: str, name: str) -> str:
        """Remote path of ``name`` inside ``collection``.

        Example:
            >>> RemoteStore.join("/seq/26291", "26291_1#1.cram")
            '/seq/26291/26291_1#1.cram'
        """
        return posixpath.join(collection, name)

    @staticmethod
    def normalize(path: str) -> str:
        """Relative form of a remote path, without leading or duplicate slashes."""
        return posixpath.normpath("/" + path).lstrip("/")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(base_path={self.base_path!r})"
