"""Batch publisher: idempotent transfer of files into an archive collection.

For every file in a batch the engine decides whether content must be
transferred, transfers it when needed, and then reconciles the object's
metadata and permissions. Content is compared by md5; metadata and
permissions are reconciled on every attempt whether or not content moved,
so changes to sample information reach the archive on the next run.
A transfer is checkpointed and counted before the metadata step; audit tags
missing from an object after a failed metadata step are added next time.

Per-file failures are logged, counted against the run's error budget and
recorded in the restart file; the batch carries on with the next file.
Once the budget is exceeded the remaining files are left unattempted.

Example:
    engine = SyncEngine(store, CheckpointStore("published.json"), ErrorBudget(10))
    result = engine.publish_batch(
        ["/runs/26291/RunInfo.xml"],
        "/seq/26291",
        lambda ctx: [Tag.of("id_run", 26291)],
    )
    considered, published, errors = result.as_tuple()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from seqpub.lib.checkpoint import (
    CheckpointRecord,
    CheckpointStatus,
    CheckpointStore,
    ErrorBudget,
)
from seqpub.lib.checksum import compute_file_md5
from seqpub.lib.errors import BudgetExceeded, PublishError, TransferError
from seqpub.lib.metadata import FILE_MD5, AccessGrant, Tag, audit_tags, merge_tags
from seqpub.lib.storage.base import RemoteStore

logger = logging.getLogger(__name__)

__all__ = [
    "PublishContext",
    "BatchResult",
    "SyncEngine",
    "PrimaryTagsFn",
    "SecondaryTagsFn",
]


@dataclass(frozen=True)
class PublishContext:
    """The object a tag callback is asked about."""

    local_path: str
    remote_path: str
    overwritten: bool = False


PrimaryTagsFn = Callable[[PublishContext], Iterable[Tag]]
SecondaryTagsFn = Callable[
    [PublishContext], Tuple[Iterable[Tag], Iterable[AccessGrant]]
]


@dataclass(frozen=True)
class _Transfer:
    """Content outcome for one file, recorded before metadata is touched."""

    status: CheckpointStatus
    digest: str
    # When the archived content was written, for audit tags
    timestamp: str
    overwritten: bool = False


@dataclass(frozen=True)
class BatchResult:
    """Outcome counts of one or more batches."""

    considered: int = 0
    published: int = 0
    errors: int = 0
    skipped: int = 0
    unattempted: int = 0

    def as_tuple(self) -> Tuple[int, int, int]:
        """(files considered, files transferred, errors)"""
        return (self.considered, self.published, self.errors)

    def __add__(self, other: "BatchResult") -> "BatchResult":
        if not isinstance(other, BatchResult):
            return NotImplemented
        return BatchResult(
            considered=self.considered + other.considered,
            published=self.published + other.published,
            errors=self.errors + other.errors,
            skipped=self.skipped + other.skipped,
            unattempted=self.unattempted + other.unattempted,
        )

    def to_dict(self) -> dict:
        return {
            "considered": self.considered,
            "published": self.published,
            "errors": self.errors,
            "skipped": self.skipped,
            "unattempted": self.unattempted,
        }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")


def file_type(path: str) -> str:
    """Last extension of a file name, e.g. ``crai`` for ``x.cram.crai``."""
    return PurePath(path).suffix.lstrip(".")


class SyncEngine:
    """Transfer files to an archive collection and reconcile their metadata.

    Args:
        store: archive store objects are published to
        checkpoints: restart state shared by every batch of the run
        budget: error budget shared by every batch of the run
        force: transfer content even when the archived digest matches
        clock: source of timestamps, UTC ``datetime.now`` by default
    """

    def __init__(
        self,
        store: RemoteStore,
        checkpoints: CheckpointStore,
        budget: ErrorBudget,
        force: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.checkpoints = checkpoints
        self.budget = budget
        self.force = force
        self.clock = clock or _utc_now

    def publish_batch(
        self,
        files: Sequence[str],
        collection: str,
        primary_tags_fn: PrimaryTagsFn,
        secondary_tags_fn: Optional[SecondaryTagsFn] = None,
    ) -> BatchResult:
        """Publish local files into a collection.

        Args:
            files: local file paths
            collection: remote collection; each file goes to
                ``collection/<basename>``
            primary_tags_fn: tags derived from the run and the file's category
            secondary_tags_fn: identity tags and permissions

        Returns:
            BatchResult; ``as_tuple()`` gives (considered, published, errors)
        """
        files = list(files)
        if not files:
            return BatchResult()

        if self.budget.exceeded:
            logger.warning(
                "Error budget exceeded (%d errors); not attempting %d files for %s",
                self.budget.count,
                len(files),
                collection,
            )
            return BatchResult(considered=len(files), unattempted=len(files))

        published = skipped = errors = unattempted = 0

        for i, local_path in enumerate(files):
            try:
                self.budget.ensure_available()
            except BudgetExceeded as exc:
                unattempted = len(files) - i
                logger.error("%s; leaving %d files unattempted", exc.message, unattempted)
                break

            remote_path = self.store.join(collection, PurePath(local_path).name)
            try:
                transfer = self._transfer(local_path, remote_path)
            except Exception as exc:
                errors += 1
                self.budget.record_failure()
                logger.error("Failed to publish '%s' to '%s': %s", local_path, remote_path, exc)
                self._record_failure(local_path, remote_path, exc)
                continue

            if transfer.status == CheckpointStatus.PUBLISHED:
                published += 1
            else:
                skipped += 1

            ctx = PublishContext(local_path, remote_path, overwritten=transfer.overwritten)
            try:
                self._reconcile(ctx, transfer, primary_tags_fn, secondary_tags_fn)
            except Exception as exc:
                errors += 1
                self.budget.record_failure()
                logger.error("Failed to update metadata on '%s': %s", remote_path, exc)
                self._record_failure(local_path, remote_path, exc)

        result = BatchResult(
            considered=len(files),
            published=published,
            errors=errors,
            skipped=skipped,
            unattempted=unattempted,
        )
        logger.info(
            "Published %d of %d files to '%s' (%d unchanged, %d errors)",
            published,
            len(files),
            collection,
            skipped,
            errors,
        )
        return result

    def _store_call(
        self, operation: str, remote_path: str, fn: Callable[..., Any], *args: Any
    ) -> Any:
        try:
            return fn(*args)
        except PublishError:
            raise
        except Exception as exc:
            raise TransferError(
                f"Archive {operation} failed",
                operation=operation,
                remote_path=remote_path,
                cause=exc,
            ) from exc

    def _archived_digest(self, local_path: str, remote_path: str) -> Optional[str]:
        """Digest of the archived content, or None when there is no object.

        The restart record is trusted when it refers to the same object; the
        store is asked otherwise.
        """
        if not self._store_call("exists", remote_path, self.store.exists, remote_path):
            return None

        record = self.checkpoints.get(local_path)
        if record is not None and record.is_confirmed and record.remote_path == remote_path:
            return record.digest
        return self._store_call("digest", remote_path, self.store.digest, remote_path)

    def _transfer(self, local_path: str, remote_path: str) -> _Transfer:
        """Put the file unless the archive already holds its content.

        The outcome is checkpointed before returning, so a transfer stays
        recorded even when the metadata update that follows fails.
        """
        local_digest = compute_file_md5(local_path)
        archived_digest = self._archived_digest(local_path, remote_path)
        exists = archived_digest is not None
        timestamp = _isoformat(self.clock())
        previous = self.checkpoints.get(local_path)

        if exists and archived_digest == local_digest and not self.force:
            logger.debug("Skipping '%s': content unchanged at '%s'", local_path, remote_path)
            recorded = (
                previous is not None
                and previous.remote_path == remote_path
                and previous.digest == local_digest
            )
            archived_at = previous.timestamp if recorded else timestamp

            if recorded and previous.status != CheckpointStatus.FAILED:
                # Already recorded for this content
                self.checkpoints.flush()
            else:
                self.checkpoints.record(
                    CheckpointRecord(
                        local_path=local_path,
                        remote_path=remote_path,
                        digest=local_digest,
                        timestamp=timestamp,
                        status=CheckpointStatus.SKIPPED,
                    )
                )
            return _Transfer(CheckpointStatus.SKIPPED, local_digest, archived_at)

        self._store_call("put", remote_path, self.store.put, remote_path, local_path)
        logger.debug("%s '%s' to '%s'", "Overwrote" if exists else "Put", local_path, remote_path)
        self.checkpoints.record(
            CheckpointRecord(
                local_path=local_path,
                remote_path=remote_path,
                digest=local_digest,
                timestamp=timestamp,
                status=CheckpointStatus.PUBLISHED,
            )
        )
        return _Transfer(
            CheckpointStatus.PUBLISHED,
            local_digest,
            timestamp,
            overwritten=exists and archived_digest != local_digest,
        )

    def _reconcile(
        self,
        ctx: PublishContext,
        transfer: _Transfer,
        primary_tags_fn: PrimaryTagsFn,
        secondary_tags_fn: Optional[SecondaryTagsFn],
    ) -> None:
        """Replace-by-attribute metadata update plus full permission update.

        Permissions are only touched when identity information is supplied.
        """
        remote_path = ctx.remote_path
        tags: List[Tag] = list(primary_tags_fn(ctx))
        acl: Optional[List[AccessGrant]] = None

        if secondary_tags_fn is not None:
            secondary_tags, grants = secondary_tags_fn(ctx)
            tags.extend(secondary_tags)
            acl = list(grants)

        existing = self._store_call(
            "get_metadata", remote_path, self.store.get_metadata, remote_path
        )
        tags.extend(_missing_audit(existing, ctx.local_path, transfer))
        merged = merge_tags(existing, tags)
        self._store_call(
            "set_metadata", remote_path, self.store.set_metadata, remote_path, merged
        )
        logger.debug("Reconciled metadata on '%s' (%d tags)", remote_path, len(merged))

        if acl is not None:
            self._store_call(
                "set_permissions", remote_path, self.store.set_permissions, remote_path, acl
            )

    def _record_failure(self, local_path: str, remote_path: str, exc: Exception) -> None:
        previous = self.checkpoints.get(local_path)
        self.checkpoints.record(
            CheckpointRecord(
                local_path=local_path,
                remote_path=previous.remote_path if previous else remote_path,
                digest=previous.digest if previous else None,
                timestamp=_isoformat(self.clock()),
                status=CheckpointStatus.FAILED,
                error=str(exc).splitlines()[0] if str(exc) else type(exc).__name__,
            )
        )


def _missing_audit(existing: Sequence[Tag], local_path: str, transfer: _Transfer) -> List[Tag]:
    """Audit tags the archived object still lacks for its current content.

    An object with no ``md5`` tag has never been audited and gets the
    first-publication tags; one whose ``md5`` differs from the content now
    in place was overwritten without an audit. Either state is left behind
    when a metadata update fails after the transfer.
    """
    recorded = {tag.value for tag in existing if tag.attribute == FILE_MD5}
    if transfer.digest in recorded:
        return []
    return list(
        audit_tags(
            transfer.digest,
            file_type(local_path),
            transfer.timestamp,
            overwritten=bool(recorded),
        )
    )
