"""Parser for seqchksum summary files.

A seqchksum file is a tab-separated table written by the sequencing
pipeline. The first column names the read group (``set``), the second
whether the row covers all reads or passed reads only; the remaining
columns are the counts and checksums. Rows whose set is ``all`` aggregate
every read group; rows with an empty set cover reads without a group.

    ###  set  count  b_seq     name_b_seq  b_seq_qual  b_seq_tags(BC,FI,QT,RT,TC)
    1#1  all  100    3a58186f  29528f83    45f2cad1    2a2f66d3
    1#1  pass 100    3a58186f  29528f83    45f2cad1    2a2f66d3
    all  all  100    3a58186f  29528f83    45f2cad1    2a2f66d3
    all  pass 100    3a58186f  29528f83    45f2cad1    2a2f66d3

The digest of a group is an equality token only; nothing downstream
interprets it.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence, Union

logger = logging.getLogger(__name__)

__all__ = ["Seqchksum", "SeqchksumRecord", "ALL_GROUP"]

ALL_GROUP = "all"
HEADER_PREFIX = "###"
DEFAULT_COLUMNS = (
    "set",
    "count",
    "b_seq",
    "name_b_seq",
    "b_seq_qual",
    "b_seq_tags(BC,FI,QT,RT,TC)",
)


@dataclass(frozen=True)
class SeqchksumRecord:
    """One row of a seqchksum table."""

    read_group: str
    values: Dict[str, str] = field(default_factory=dict)

    def canonical(self, columns: Sequence[str]) -> str:
        return "\t".join([self.read_group] + [self.values.get(c, "") for c in columns])


class Seqchksum:
    """Parsed seqchksum file."""

    def __init__(self, records: List[SeqchksumRecord], columns: Sequence[str]) -> None:
        self.records = records
        self.columns = tuple(columns)

    @classmethod
    def from_text(cls, text: str) -> "Seqchksum":
        columns: Sequence[str] = DEFAULT_COLUMNS
        records: List[SeqchksumRecord] = []

        for line in text.splitlines():
            if not line.strip():
                continue
            fields = line.rstrip("\n").split("\t")
            if fields[0].startswith(HEADER_PREFIX):
                # Header: "###" over the read group, then one name per column
                columns = tuple(fields[1:]) if len(fields) > 1 else columns
                continue
            read_group, rest = fields[0], fields[1:]
            records.append(SeqchksumRecord(read_group, dict(zip(columns, rest))))

        return cls(records, columns)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Seqchksum":
        return cls.from_text(Path(path).read_text(encoding="utf-8"))

    @property
    def read_groups(self) -> List[str]:
        """Named read groups, excluding the aggregate and ungrouped rows."""
        return sorted({r.read_group for r in self.records if r.read_group not in ("", ALL_GROUP)})

    @property
    def all_group(self) -> str:
        return ALL_GROUP

    def group_records(self, read_group: str) -> List[SeqchksumRecord]:
        return [r for r in self.records if r.read_group == read_group]

    def digest(self, read_group: str = ALL_GROUP) -> str:
        """md5 of the canonical rows of one group."""
        rows = sorted(r.canonical(self.columns) for r in self.group_records(read_group))
        if not rows:
            raise KeyError(f"No seqchksum records for read group '{read_group}'")
        return hashlib.md5("\n".join(rows).encode("utf-8")).hexdigest()
