"""Integrity facts for a product: read count and content digest.

Both are taken from summary files written alongside the product's
alignment, ``<name>.bam_flagstats.json`` and ``<name>.seqchksum``, and are
recomputed on every request.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List

from seqpub.lib.catalog import match_exactly_one
from seqpub.lib.errors import DiscoveryError, IntegrityError
from seqpub.lib.seqchksum import Seqchksum

logger = logging.getLogger(__name__)

__all__ = ["IntegrityFacts", "IntegrityResolver", "NUM_READS_JSON_PROPERTY"]

NUM_READS_JSON_PROPERTY = "num_total_reads"
FLAGSTATS_EXT = "bam_flagstats.json"
SEQCHKSUM_EXT = "seqchksum"


@dataclass(frozen=True)
class IntegrityFacts:
    num_reads: int
    digest: str


class IntegrityResolver:
    """Locate and read a product's summary files.

    Args:
        run_files: every file in the run directory
        num_reads_property: flagstats JSON property holding the read count
    """

    def __init__(
        self,
        run_files: Iterable[str],
        num_reads_property: str = NUM_READS_JSON_PROPERTY,
    ) -> None:
        self.run_files: List[str] = list(run_files)
        self.num_reads_property = num_reads_property

    def _find(self, name: str, ext: str) -> str:
        """Path of a product's summary file.

        A missing file is an integrity failure; several candidates remain a
        DiscoveryError.
        """
        pattern = rf"(^|/){re.escape(f'{name}.{ext}')}$"
        try:
            return match_exactly_one(pattern, self.run_files)
        except DiscoveryError as exc:
            if exc.candidates:
                raise
            raise IntegrityError(
                f"No {ext} file found", product=name, cause=exc
            ) from exc

    def _read(self, name: str, path: str) -> str:
        try:
            return Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise IntegrityError(
                "Failed to read summary file", file_path=path, cause=exc, product=name
            ) from exc

    def num_reads(self, name: str) -> int:
        """Total number of reads for a product."""
        path = self._find(name, FLAGSTATS_EXT)
        logger.debug("Finding num_reads for '%s' in '%s'", name, path)

        text = self._read(name, path)
        if not text.strip():
            raise IntegrityError("Invalid stats file: file is empty", file_path=path, product=name)

        try:
            stats = json.loads(text)
        except json.JSONDecodeError as exc:
            raise IntegrityError(
                "Failed to parse JSON from stats file", file_path=path, cause=exc, product=name
            ) from exc

        if not isinstance(stats, dict) or self.num_reads_property not in stats:
            raise IntegrityError(
                f"Stats file has no '{self.num_reads_property}' property",
                file_path=path,
                product=name,
            )

        value = stats[self.num_reads_property]
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise IntegrityError(
                f"'{self.num_reads_property}' is not a non-negative integer: {value!r}",
                file_path=path,
                product=name,
            )
        return value

    def digest(self, name: str) -> str:
        """Aggregate seqchksum digest over all read groups of a product."""
        path = self._find(name, SEQCHKSUM_EXT)
        logger.debug("Finding seqchksum for '%s' in '%s'", name, path)

        seqchksum = Seqchksum.from_text(self._read(name, path))
        read_groups = seqchksum.read_groups
        if not read_groups:
            raise IntegrityError("Failed to find any read groups", file_path=path, product=name)

        logger.debug(
            "Creating seqchksum digest from '%s' for %d read groups: %s",
            path,
            len(read_groups),
            read_groups,
        )
        try:
            return seqchksum.digest(seqchksum.all_group)
        except KeyError as exc:
            raise IntegrityError(
                "No aggregate records in seqchksum file", file_path=path, cause=exc, product=name
            ) from exc

    def facts(self, name: str) -> IntegrityFacts:
        return IntegrityFacts(num_reads=self.num_reads(name), digest=self.digest(name))
