"""Pytest configuration and fixtures.

Builds small run directories on disk: composition files, alignment and
index placeholders, flagstats JSON and seqchksum tables.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest

SEQCHKSUM_HEADER = "###\tset\tcount\tb_seq\tname_b_seq\tb_seq_qual\tb_seq_tags(BC,FI,QT,RT,TC)"


def seqchksum_text(read_groups: List[str], reads_per_group: int = 500) -> str:
    """A seqchksum table with one all/pass pair per read group plus the aggregate."""
    lines = [SEQCHKSUM_HEADER]
    for i, rg in enumerate(read_groups):
        for subset in ("all", "pass"):
            lines.append(
                f"{rg}\t{subset}\t{reads_per_group}\t{i + 1:08x}\t{i + 11:08x}\t{i + 21:08x}\t{i + 31:08x}"
            )
    total = reads_per_group * len(read_groups)
    for subset in ("all", "pass"):
        lines.append(f"all\t{subset}\t{total}\t3a58186f\t29528f83\t45f2cad1\t2a2f66d3")
    return "\n".join(lines) + "\n"


class RunDirectory:
    """Helper writing run files below a root directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def write(self, relative: str, content: str = "") -> str:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return str(path)

    def composition(self, name: str, components: Optional[List[Dict]] = None) -> str:
        components = components or [{"id_run": 26291, "position": 1, "tag_index": 1}]
        return self.write(f"{name}.composition.json", json.dumps({"components": components}))

    def flagstats(self, name: str, num_reads: int) -> str:
        return self.write(
            f"{name}.bam_flagstats.json",
            json.dumps({"num_total_reads": num_reads, "library": name}),
        )

    def seqchksum(self, name: str, read_groups: Optional[List[str]] = None) -> str:
        return self.write(f"{name}.seqchksum", seqchksum_text(read_groups or ["1#1", "1#2"]))

    def product(self, name: str, num_reads: int = 1000, file_format: str = "cram") -> None:
        """Composition, alignment, index and summary files for one product."""
        self.composition(name)
        self.write(f"{name}.{file_format}", f"{file_format} data for {name}\n")
        index = "cram.crai" if file_format == "cram" else "bai"
        self.write(f"{name}.{index}", f"index for {name}\n")
        self.flagstats(name, num_reads)
        self.seqchksum(name)

    def files(self) -> List[str]:
        return sorted(str(p) for p in self.root.rglob("*") if p.is_file())


@pytest.fixture
def run_dir(tmp_path: Path) -> RunDirectory:
    return RunDirectory(tmp_path / "run")


@pytest.fixture
def archive_dir(tmp_path: Path) -> Path:
    path = tmp_path / "archive"
    path.mkdir()
    return path
