"""Archive metadata: attribute/value/unit tags and access grants.

Tags are set-valued per archived object. Reconciliation is by attribute:
publishing a tag set replaces every previous value of each attribute it
mentions and leaves the other attributes alone, so re-publishing never
accumulates stale values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple

from seqpub.lib.catalog import Category, Product
from seqpub.lib.errors import IntegrityError
from seqpub.lib.integrity import IntegrityFacts

if TYPE_CHECKING:
    from seqpub.lib.identity import IdentityProvider

logger = logging.getLogger(__name__)

__all__ = [
    "Tag",
    "AccessGrant",
    "AlignmentInfo",
    "MetadataSynthesizer",
    "audit_tags",
    "merge_tags",
    "tags_to_dicts",
    "tags_from_dicts",
    "acl_to_dicts",
    "acl_from_dicts",
]

# Attribute names
ID_RUN = "id_run"
POSITION = "position"
TAG_INDEX = "tag_index"
COMPOSITION = "composition"
COMPONENT = "component"
ALT_PROCESS = "alt_process"
ALIGNMENT = "alignment"
IS_PAIRED_READ = "is_paired_read"
REFERENCE = "reference"
NUM_READS = "num_reads"
SEQCHKSUM = "seqchksum"
FILE_MD5 = "md5"
FILE_TYPE = "type"
DCTERMS_CREATED = "dcterms:created"
DCTERMS_MODIFIED = "dcterms:modified"

SAMPLE_NAME = "sample"
SAMPLE_ID = "sample_id"
SAMPLE_COMMON_NAME = "sample_common_name"
SAMPLE_SUPPLIER_NAME = "sample_supplier_name"
STUDY_ID = "study_id"
STUDY_NAME = "study"
STUDY_TITLE = "study_title"
LIBRARY_ID = "library_id"
LIBRARY_TYPE = "library_type"

ACCESS_LEVELS = ("null", "read", "write", "own")


@dataclass(frozen=True, order=True)
class Tag:
    """An attribute/value(/unit) triple attached to an archived object."""

    attribute: str
    value: str
    units: str = ""

    @classmethod
    def of(cls, attribute: str, value: Any, units: Optional[str] = None) -> "Tag":
        if isinstance(value, bool):
            value = int(value)
        return cls(attribute, str(value), units or "")

    def to_dict(self) -> Dict[str, str]:
        data = {"attribute": self.attribute, "value": self.value}
        if self.units:
            data["units"] = self.units
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tag":
        return cls(str(data["attribute"]), str(data["value"]), data.get("units") or "")


@dataclass(frozen=True, order=True)
class AccessGrant:
    """Permission for an owner (user or group) on an archived object."""

    owner: str
    level: str = "read"

    def __post_init__(self) -> None:
        if self.level not in ACCESS_LEVELS:
            raise ValueError(f"Invalid access level '{self.level}'")

    def to_dict(self) -> Dict[str, str]:
        return {"owner": self.owner, "level": self.level}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccessGrant":
        return cls(str(data["owner"]), str(data.get("level", "read")))


@dataclass(frozen=True)
class AlignmentInfo:
    """Facts read from an alignment file's header and first records."""

    is_aligned: bool
    is_paired_read: bool
    reference: Optional[str] = None


def merge_tags(existing: Iterable[Tag], new: Iterable[Tag]) -> List[Tag]:
    """Replace-by-attribute reconciliation of two tag sets."""
    new_set = set(new)
    replaced = {t.attribute for t in new_set}
    kept = {t for t in existing if t.attribute not in replaced}
    return sorted(kept | new_set)


def tags_to_dicts(tags: Iterable[Tag]) -> List[Dict[str, str]]:
    return [t.to_dict() for t in sorted(set(tags))]


def tags_from_dicts(data: Iterable[Dict[str, Any]]) -> List[Tag]:
    return sorted({Tag.from_dict(d) for d in data})


def acl_to_dicts(acl: Iterable[AccessGrant]) -> List[Dict[str, str]]:
    return [g.to_dict() for g in sorted(set(acl))]


def acl_from_dicts(data: Iterable[Dict[str, Any]]) -> List[AccessGrant]:
    return sorted({AccessGrant.from_dict(d) for d in data})


class MetadataSynthesizer:
    """Build the tag sets attached to published files.

    Primary tags describe the run and the product's own data; secondary tags
    and permissions describe the sample, library and study, and come from an
    identity provider.

    Args:
        id_run: run identifier attached to every file
        alt_process: name of a non-standard process, or None
    """

    def __init__(self, id_run: Optional[int], alt_process: Optional[str] = None) -> None:
        self.id_run = id_run
        self.alt_process = alt_process

    def run_tags(self) -> List[Tag]:
        tags = []
        if self.id_run is not None:
            tags.append(Tag.of(ID_RUN, self.id_run))
        return tags

    def product_tags(self, product: Product) -> List[Tag]:
        tags: List[Tag] = []
        composition = product.composition
        if composition is None:
            return tags

        if self.id_run is None:
            tags.extend(Tag.of(ID_RUN, r) for r in composition.id_runs)
        tags.append(Tag.of(COMPOSITION, composition.freeze()))
        tags.extend(Tag.of(COMPONENT, c.freeze()) for c in composition)

        if len(composition) == 1:
            component = composition.components[0]
            tags.append(Tag.of(POSITION, component.position))
            if component.tag_index is not None:
                tags.append(Tag.of(TAG_INDEX, component.tag_index))
        return tags

    def primary_tags(
        self,
        category: Category,
        product: Optional[Product] = None,
        facts: Optional[IntegrityFacts] = None,
        alignment_info: Optional[AlignmentInfo] = None,
    ) -> List[Tag]:
        """Tags derived from the run and the category's own facts."""
        tags = self.run_tags()

        if category.is_run_level:
            return sorted(set(tags))

        if product is not None:
            tags.extend(self.product_tags(product))

        if self.alt_process:
            tags.append(Tag.of(ALT_PROCESS, self.alt_process))

        if category == Category.ALIGNMENT:
            if facts is None:
                raise IntegrityError(
                    "Alignment metadata requires read count and digest",
                    product=product.name if product else None,
                )
            tags.append(Tag.of(NUM_READS, facts.num_reads))
            tags.append(Tag.of(SEQCHKSUM, facts.digest))
            if alignment_info is not None:
                tags.append(Tag.of(ALIGNMENT, alignment_info.is_aligned))
                tags.append(Tag.of(IS_PAIRED_READ, alignment_info.is_paired_read))
                if alignment_info.reference:
                    tags.append(Tag.of(REFERENCE, alignment_info.reference))

        return sorted(set(tags))

    def secondary_tags(
        self,
        product: Product,
        identity_provider: "IdentityProvider",
        with_spiked_control: bool = False,
    ) -> Tuple[List[Tag], List[AccessGrant]]:
        """Sample/library/study tags and permissions for a product."""
        tags, acl = identity_provider.tags_and_permissions(product, with_spiked_control)
        return sorted(set(tags)), sorted(set(acl))


def audit_tags(
    local_md5: str,
    file_type: str,
    timestamp: str,
    overwritten: bool,
) -> Sequence[Tag]:
    """Tags recording a content transfer."""
    if overwritten:
        return [Tag.of(FILE_MD5, local_md5), Tag.of(DCTERMS_MODIFIED, timestamp)]
    return [
        Tag.of(FILE_MD5, local_md5),
        Tag.of(FILE_TYPE, file_type),
        Tag.of(DCTERMS_CREATED, timestamp),
    ]
