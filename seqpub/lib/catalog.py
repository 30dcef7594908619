"""File catalog for a sequencing run directory.

Classifies the flat list of files found under a run folder into the
categories that are published separately:

 - xml       run-level instrument metadata (RunInfo.xml, RunParameters.xml)
 - interop   run-level binary metrics under InterOp/
 - alignment per-product reads, <name>.cram or <name>.bam (either format)
 - index     per-product alignment index, <name>.cram.crai or <name>.bai
 - ancillary per-product summaries and statistics
 - genotype  per-product genotype calls
 - qc        per-product QC JSON under qc/

Files belong to a product when their name starts with the product name
followed by "." or "_". Product names come from the run's composition files;
where two product names both prefix a file the longest one owns it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from seqpub.lib.composition import (
    COMPOSITION_SUFFIX,
    Composition,
    parse_composition_filename,
    read_composition_file,
)
from seqpub.lib.errors import ConfigurationError, DiscoveryError

logger = logging.getLogger(__name__)

__all__ = [
    "Category",
    "RunFile",
    "Product",
    "FileCatalog",
    "match_exactly_one",
    "DEFAULT_ANCILLARY_SUFFIXES",
    "DEFAULT_GENOTYPE_SUFFIXES",
    "ALIGNMENT_FORMATS",
]


class Category(str, Enum):
    """Publication category of a run file."""

    XML = "xml"
    INTEROP = "interop"
    ALIGNMENT = "alignment"
    INDEX = "index"
    ANCILLARY = "ancillary"
    GENOTYPE = "genotype"
    QC = "qc"

    @property
    def is_run_level(self) -> bool:
        return self in (Category.XML, Category.INTEROP)


PRODUCT_CATEGORIES = (
    Category.ALIGNMENT,
    Category.INDEX,
    Category.ANCILLARY,
    Category.GENOTYPE,
    Category.QC,
)

# Index file extensions for each alignment format
ALIGNMENT_FORMATS: Dict[str, Tuple[str, ...]] = {
    "cram": ("cram.crai",),
    "bam": ("bam.bai", "bai"),
}

DEFAULT_ANCILLARY_SUFFIXES: Tuple[str, ...] = (
    "bam_stats",
    "bamcheck",
    "bed",
    "composition.json",
    "cram.md5",
    "flagstat",
    "json",
    "seqchksum",
    "sha512primesums512.seqchksum",
    "stats",
    "txt",
    "tsv",
)

DEFAULT_GENOTYPE_SUFFIXES: Tuple[str, ...] = ("bcf", "geno", "vcf")


@dataclass(frozen=True)
class RunFile:
    """A discovered local file and the category it was assigned."""

    path: str
    category: Category
    product: Optional[str] = None

    @property
    def name(self) -> str:
        return PurePath(self.path).name


@dataclass(frozen=True)
class Product:
    """A named group of files described by a composition file."""

    name: str
    composition_file: str
    composition: Optional[Composition] = None


def match_exactly_one(pattern: str, files: Iterable[str]) -> str:
    """Return the single path matching a regular expression.

    Raises:
        DiscoveryError: when no path or more than one path matches
    """
    regex = re.compile(pattern)
    matches = [f for f in files if regex.search(f)]

    if len(matches) != 1:
        raise DiscoveryError(
            f"Found {len(matches)} files matching '{pattern}' where one was expected",
            pattern=pattern,
            candidates=matches,
        )
    return matches[0]


class FileCatalog:
    """Classify run files into publication categories.

    Args:
        file_format: alignment format published, "cram" or "bam"
        ancillary_suffixes: file suffixes published as ancillary files
        genotype_suffixes: file suffixes published as genotype files
        qc_dir: name of the per-run QC directory
        interop_dir: name of the instrument metrics directory

    Example:
        >>> catalog = FileCatalog(file_format="cram")
        >>> groups = catalog.classify(paths)
        >>> [f.name for f in groups[Category.ALIGNMENT]]
        ['26291_1#1.cram', '26291_1#2.cram']
    """

    def __init__(
        self,
        file_format: str = "cram",
        ancillary_suffixes: Sequence[str] = DEFAULT_ANCILLARY_SUFFIXES,
        genotype_suffixes: Sequence[str] = DEFAULT_GENOTYPE_SUFFIXES,
        qc_dir: str = "qc",
        interop_dir: str = "InterOp",
    ) -> None:
        if file_format not in ALIGNMENT_FORMATS:
            raise ConfigurationError(
                f"Unsupported alignment format '{file_format}'",
                field="file_format",
                value=file_format,
                suggestion=f"Use one of: {', '.join(sorted(ALIGNMENT_FORMATS))}",
            )
        self.file_format = file_format
        self.index_suffixes = ALIGNMENT_FORMATS[file_format]
        # Longest first so that e.g. "sha512primesums512.seqchksum" wins over "seqchksum"
        self.ancillary_suffixes = tuple(
            sorted((s.lstrip(".") for s in ancillary_suffixes), key=len, reverse=True)
        )
        self.genotype_suffixes = tuple(s.lstrip(".") for s in genotype_suffixes)
        self.qc_dir = qc_dir
        self.interop_dir = interop_dir

    # Products

    @staticmethod
    def parse_product_name(composition_file: str) -> Tuple[str, str, str]:
        """Return (name, directory, suffix) for a composition file path."""
        return parse_composition_filename(composition_file)

    def composition_files(self, paths: Iterable[str]) -> List[str]:
        return sorted(p for p in paths if PurePath(p).name.endswith(COMPOSITION_SUFFIX))

    def product_names(self, paths: Iterable[str]) -> List[str]:
        return sorted(
            {self.parse_product_name(p)[0] for p in self.composition_files(paths)}
        )

    def products(self, paths: Iterable[str], read: bool = True) -> List[Product]:
        """Products described by the composition files in ``paths``.

        Args:
            paths: run file paths
            read: parse each composition file as well as naming the product
        """
        products = []
        for cfile in self.composition_files(paths):
            name, _, _ = self.parse_product_name(cfile)
            composition = read_composition_file(cfile) if read else None
            products.append(Product(name=name, composition_file=cfile, composition=composition))
        return products

    # Classification

    def classify(self, paths: Iterable[str]) -> Dict[Category, List[RunFile]]:
        """Group run files by category.

        Every category is present in the result, possibly with an empty list.
        Files matching no rule are left out.
        """
        paths = list(paths)
        # Longest first so the most specific product owns a file
        names = sorted(self.product_names(paths), key=len, reverse=True)

        groups: Dict[Category, List[RunFile]] = {c: [] for c in Category}
        unmatched = 0
        for path in sorted(paths):
            run_file = self._classify_one(path, names)
            if run_file is None:
                unmatched += 1
                continue
            groups[run_file.category].append(run_file)

        logger.debug(
            "Classified %d files (%d unmatched): %s",
            len(paths),
            unmatched,
            {c.value: len(files) for c, files in groups.items()},
        )
        return groups

    def files_for(
        self,
        groups: Dict[Category, List[RunFile]],
        category: Category,
        product: Optional[str] = None,
    ) -> List[str]:
        """Paths of one category, restricted to a product when given."""
        return [
            f.path
            for f in groups.get(category, [])
            if product is None or f.product == product
        ]

    def _owner(self, basename: str, names: Sequence[str]) -> Optional[str]:
        for name in names:
            if basename.startswith(name + ".") or basename.startswith(name + "_"):
                return name
        return None

    def _classify_one(self, path: str, names: Sequence[str]) -> Optional[RunFile]:
        pure = PurePath(path)
        basename = pure.name
        dirs = pure.parts[:-1]

        if self.interop_dir in dirs:
            if basename.endswith(".bin"):
                return RunFile(path, Category.INTEROP)
            return None

        product = self._owner(basename, names)

        if product is None:
            if basename.endswith(".xml"):
                return RunFile(path, Category.XML)
            return None

        if self.qc_dir in dirs:
            if basename.endswith(".json"):
                return RunFile(path, Category.QC, product)
            return None

        remainder = basename[len(product):]
        # All alignment formats are catalogued; publication filters by format
        if any(remainder == f".{fmt}" for fmt in ALIGNMENT_FORMATS):
            return RunFile(path, Category.ALIGNMENT, product)
        if any(remainder == f".{s}" for s in self.index_suffixes):
            return RunFile(path, Category.INDEX, product)
        if any(remainder == f".{s}" for s in self.genotype_suffixes):
            return RunFile(path, Category.GENOTYPE, product)
        if any(basename.endswith(f".{s}") for s in self.ancillary_suffixes):
            return RunFile(path, Category.ANCILLARY, product)
        return None
