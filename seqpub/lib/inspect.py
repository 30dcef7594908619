"""Alignment file inspection.

Reads the header and the first record of an alignment file to decide
whether it is aligned, whether its reads are paired, and which reference it
was aligned to. ``SamtoolsInspector`` shells out to ``samtools``; anything
implementing ``AlignmentInspector`` can stand in for it.
"""

from __future__ import annotations

import logging
import subprocess
from typing import List, Optional, Protocol, Sequence

from seqpub.lib.errors import IntegrityError
from seqpub.lib.metadata import AlignmentInfo

logger = logging.getLogger(__name__)

__all__ = ["AlignmentInspector", "SamtoolsInspector", "parse_header"]

FLAG_PAIRED = 0x1


class AlignmentInspector(Protocol):
    def inspect(self, path: str) -> AlignmentInfo:
        ...


def parse_header(header: str) -> tuple[bool, Optional[str]]:
    """Return (is_aligned, reference) from SAM header text.

    The file is aligned when the header declares reference sequences. The
    reference is the first @SQ ``UR`` field, falling back to the ``AS``
    assembly name.

    Example:
        >>> parse_header("@HD\\tVN:1.6\\n@SQ\\tSN:chr1\\tLN:100\\tUR:/ref/hs38.fa\\n")
        (True, '/ref/hs38.fa')
    """
    is_aligned = False
    reference: Optional[str] = None
    assembly: Optional[str] = None

    for line in header.splitlines():
        if not line.startswith("@SQ"):
            continue
        is_aligned = True
        for field in line.split("\t")[1:]:
            tag, _, value = field.partition(":")
            if tag == "UR" and reference is None:
                reference = value
            elif tag == "AS" and assembly is None:
                assembly = value

    return is_aligned, reference or assembly


class SamtoolsInspector:
    """Inspect alignment files with ``samtools view``.

    Args:
        samtools: samtools executable
        extra_args: arguments added to every invocation, e.g. a reference
            for CRAM decoding
    """

    def __init__(self, samtools: str = "samtools", extra_args: Sequence[str] = ()) -> None:
        self.samtools = samtools
        self.extra_args = list(extra_args)

    def _command(self, *args: str) -> List[str]:
        return [self.samtools, "view", *self.extra_args, *args]

    def _header(self, path: str) -> str:
        try:
            result = subprocess.run(
                self._command("-H", path),
                capture_output=True,
                text=True,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError) as exc:
            raise IntegrityError(
                "Failed to read alignment header", file_path=path, cause=exc
            ) from exc
        return result.stdout

    def _first_flag(self, path: str) -> Optional[int]:
        try:
            with subprocess.Popen(
                self._command(path),
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
            ) as proc:
                assert proc.stdout is not None
                line = proc.stdout.readline()
                proc.kill()
        except OSError as exc:
            raise IntegrityError(
                "Failed to read alignment records", file_path=path, cause=exc
            ) from exc

        if not line:
            return None
        fields = line.split("\t")
        try:
            return int(fields[1])
        except (IndexError, ValueError) as exc:
            raise IntegrityError(
                "Malformed alignment record", file_path=path, cause=exc
            ) from exc

    def inspect(self, path: str) -> AlignmentInfo:
        is_aligned, reference = parse_header(self._header(path))
        flag = self._first_flag(path)
        is_paired = flag is not None and bool(flag & FLAG_PAIRED)

        logger.debug(
            "Inspected %s: aligned=%s paired=%s reference=%s",
            path,
            is_aligned,
            is_paired,
            reference,
        )
        return AlignmentInfo(
            is_aligned=is_aligned,
            is_paired_read=is_paired,
            reference=reference if is_aligned else None,
        )
