"""Restart state for publishing runs.

The checkpoint file records, for every local file the publisher has
attempted, where it went, the digest of the content last confirmed in the
archive and the outcome of the last attempt. It is what makes re-running a
publication cheap: files whose content is unchanged are not transferred
again.

Checkpoint file structure (keyed by local path):
```json
{
  "/runs/26291/26291_1#1.cram": {
    "remotePath": "/seq/26291/26291_1#1.cram",
    "digest": "2b4a8d0c6ad2b55a4b2bc31a4bf3a1f7",
    "timestamp": "2025-01-15T10:30:00Z",
    "status": "published"
  }
}
```

Records are only ever added or overwritten. The file is rewritten after each
file outcome by writing a temporary file in the same directory and renaming
it over the old one, so a crash leaves either the old or the new state.
A checkpoint file must have a single writer; concurrent jobs need their own
restart files.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from seqpub.lib.errors import BudgetExceeded, IntegrityError

logger = logging.getLogger(__name__)

__all__ = [
    "CheckpointStatus",
    "CheckpointRecord",
    "CheckpointStore",
    "ErrorBudget",
]


class CheckpointStatus(str, Enum):
    """Outcome of the last publish attempt for a file."""

    PUBLISHED = "published"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class CheckpointRecord:
    """Last known state of one local file in the archive."""

    local_path: str
    remote_path: Optional[str]
    digest: Optional[str]
    timestamp: str
    status: CheckpointStatus
    error: Optional[str] = None

    @property
    def is_confirmed(self) -> bool:
        """True when the record holds a digest confirmed in the archive."""
        return self.digest is not None and self.remote_path is not None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "remotePath": self.remote_path,
            "digest": self.digest,
            "timestamp": self.timestamp,
            "status": self.status.value,
        }
        if self.error:
            result["error"] = self.error
        return result

    @classmethod
    def from_dict(cls, local_path: str, data: Dict[str, Any]) -> "CheckpointRecord":
        status_str = data.get("status", CheckpointStatus.FAILED.value)
        try:
            status = CheckpointStatus(status_str)
        except ValueError:
            logger.warning("Unknown checkpoint status '%s' for %s", status_str, local_path)
            status = CheckpointStatus.FAILED

        return cls(
            local_path=local_path,
            remote_path=data.get("remotePath"),
            digest=data.get("digest"),
            timestamp=data.get("timestamp", ""),
            status=status,
            error=data.get("error"),
        )


class CheckpointStore:
    """Durable mapping of local path to CheckpointRecord.

    The file is read on first use. A missing file is an empty store; an
    unreadable or corrupt file is an IntegrityError, since silently starting
    afresh would republish everything.

    Args:
        path: checkpoint JSON file
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._records: Optional[Dict[str, CheckpointRecord]] = None

    def load(self) -> Dict[str, CheckpointRecord]:
        if self._records is not None:
            return self._records

        records: Dict[str, CheckpointRecord] = {}
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            except (OSError, json.JSONDecodeError) as exc:
                raise IntegrityError(
                    "Failed to read restart file", file_path=str(self.path), cause=exc
                ) from exc
            if not isinstance(data, dict):
                raise IntegrityError(
                    "Restart file is not a JSON object", file_path=str(self.path)
                )
            for local_path, entry in data.items():
                records[local_path] = CheckpointRecord.from_dict(local_path, entry)
            logger.info("Loaded %d restart records from %s", len(records), self.path)

        self._records = records
        return records

    def get(self, local_path: str) -> Optional[CheckpointRecord]:
        return self.load().get(local_path)

    def record(self, record: CheckpointRecord, flush: bool = True) -> None:
        """Add or overwrite the record for a local path."""
        self.load()[record.local_path] = record
        if flush:
            self.flush()

    def flush(self) -> None:
        """Write the store atomically."""
        records = self.load()
        data = {k: records[k].to_dict() for k in sorted(records)}

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            json.dump(data, tmp, indent=2)
            tmp.flush()
            os.fsync(tmp.fileno())
        try:
            os.replace(tmp.name, self.path)
        except OSError:
            os.unlink(tmp.name)
            raise
        logger.debug("Wrote %d restart records to %s", len(data), self.path)

    def __len__(self) -> int:
        return len(self.load())

    def __iter__(self) -> Iterator[CheckpointRecord]:
        return iter(self.load().values())


class ErrorBudget:
    """Cumulative failure counter for a whole run.

    Args:
        max_errors: failures tolerated before publishing stops; None means
            unlimited
    """

    def __init__(self, max_errors: Optional[int] = None) -> None:
        if max_errors is not None and max_errors < 0:
            raise ValueError("max_errors must be non-negative")
        self.max_errors = max_errors
        self.count = 0

    def record_failure(self, n: int = 1) -> None:
        self.count += n

    @property
    def exceeded(self) -> bool:
        return self.max_errors is not None and self.count > self.max_errors

    def ensure_available(self) -> None:
        """Raise BudgetExceeded once more failures than allowed were counted."""
        if self.exceeded:
            assert self.max_errors is not None
            raise BudgetExceeded(self.count, self.max_errors)

    def __repr__(self) -> str:
        return f"ErrorBudget(count={self.count}, max_errors={self.max_errors})"
