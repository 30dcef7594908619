"""Local filesystem archive store.

Objects are regular files below the store root. Tags and access grants live
in a JSON sidecar tree under ``<root>/.avu/``, one document per object:

```json
{"metadata": [{"attribute": "id_run", "value": "26291"}],
 "acl": [{"owner": "ss_5392", "level": "read"}]}
```

Every write goes to a temporary file in the target directory and is then
renamed into place.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List

from seqpub.lib.checksum import compute_file_md5
from seqpub.lib.metadata import (
    AccessGrant,
    Tag,
    acl_from_dicts,
    acl_to_dicts,
    tags_from_dicts,
    tags_to_dicts,
)
from seqpub.lib.storage.base import RemoteStore

logger = logging.getLogger(__name__)

__all__ = ["LocalArchiveStore"]

SIDECAR_DIR = ".avu"


class LocalArchiveStore(RemoteStore):
    """Archive store on the local filesystem.

    Example:
        >>> store = LocalArchiveStore("/archive")
        >>> store.put("/seq/26291/26291_1#1.cram", "/runs/26291/26291_1#1.cram")
        >>> store.exists("/seq/26291/26291_1#1.cram")
        True
    """

    def __init__(self, base_path: str, **options: Any) -> None:
        super().__init__(base_path, **options)
        self.root = Path(base_path).expanduser().resolve()

    @property
    def scheme(self) -> str:
        return "local"

    def _resolve_path(self, path: str) -> Path:
        return self.root / self.normalize(path)

    def _sidecar_path(self, path: str) -> Path:
        return self.root / SIDECAR_DIR / f"{self.normalize(path)}.json"

    def _require(self, path: str) -> Path:
        resolved = self._resolve_path(path)
        if not resolved.is_file():
            raise FileNotFoundError(f"No archive object at {path}")
        return resolved

    def _atomic_write(self, target: Path, write: Any) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
        os.close(fd)
        try:
            write(tmp_name)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _read_sidecar(self, path: str) -> Dict[str, Any]:
        sidecar = self._sidecar_path(path)
        if not sidecar.exists():
            return {}
        return json.loads(sidecar.read_text(encoding="utf-8"))

    def _write_sidecar(self, path: str, data: Dict[str, Any]) -> None:
        def write(tmp_name: str) -> None:
            Path(tmp_name).write_text(json.dumps(data, indent=2), encoding="utf-8")

        self._atomic_write(self._sidecar_path(path), write)

    def exists(self, path: str) -> bool:
        return self._resolve_path(path).is_file()

    def digest(self, path: str) -> str:
        return compute_file_md5(self._require(path))

    def put(self, path: str, local_file: str) -> None:
        target = self._resolve_path(path)
        self._atomic_write(target, lambda tmp: shutil.copyfile(local_file, tmp))
        logger.debug("Stored %s at %s", local_file, target)

    def get_metadata(self, path: str) -> List[Tag]:
        self._require(path)
        return tags_from_dicts(self._read_sidecar(path).get("metadata", []))

    def set_metadata(self, path: str, tags: Iterable[Tag]) -> None:
        self._require(path)
        data = self._read_sidecar(path)
        data["metadata"] = tags_to_dicts(tags)
        self._write_sidecar(path, data)

    def get_permissions(self, path: str) -> List[AccessGrant]:
        self._require(path)
        return acl_from_dicts(self._read_sidecar(path).get("acl", []))

    def set_permissions(self, path: str, acl: Iterable[AccessGrant]) -> None:
        self._require(path)
        data = self._read_sidecar(path)
        data["acl"] = acl_to_dicts(acl)
        self._write_sidecar(path, data)
