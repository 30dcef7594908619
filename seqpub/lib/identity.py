"""Identity providers: sample, library and study facts for products.

The laboratory information system is reached through the
``IdentityProvider`` protocol. ``SampleSheetIdentityProvider`` implements it
from a YAML sample sheet exported for the run:

```yaml
studies:
  "5392":
    name: Human variation
    title: Whole genome sequencing of ...
    access_group: ss_5392
components:
  "26291:1:4":
    sample: SC_WES5674123
    sample_id: 3301234
    sample_common_name: Homo sapiens
    sample_supplier_name: ABC-001
    library_id: 21345678
    library_type: Standard
    study_id: "5392"
```

Spiked-control components (tag index 888 by default, or subset "phix")
contribute their facts only when asked to.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

import yaml

from seqpub.lib.catalog import Product
from seqpub.lib.composition import Component
from seqpub.lib.errors import ConfigurationError
from seqpub.lib.metadata import (
    LIBRARY_ID,
    LIBRARY_TYPE,
    SAMPLE_COMMON_NAME,
    SAMPLE_ID,
    SAMPLE_NAME,
    SAMPLE_SUPPLIER_NAME,
    STUDY_ID,
    STUDY_NAME,
    STUDY_TITLE,
    AccessGrant,
    Tag,
)

logger = logging.getLogger(__name__)

__all__ = [
    "IdentityProvider",
    "NullIdentityProvider",
    "SampleSheetIdentityProvider",
    "DEFAULT_SPIKED_CONTROL_INDEX",
]

DEFAULT_SPIKED_CONTROL_INDEX = 888
SPIKED_CONTROL_SUBSET = "phix"

# Sample sheet field -> tag attribute
_COMPONENT_FIELDS = (
    ("sample", SAMPLE_NAME),
    ("sample_id", SAMPLE_ID),
    ("sample_common_name", SAMPLE_COMMON_NAME),
    ("sample_supplier_name", SAMPLE_SUPPLIER_NAME),
    ("library_id", LIBRARY_ID),
    ("library_type", LIBRARY_TYPE),
)


class IdentityProvider(Protocol):
    def tags_and_permissions(
        self, product: Product, with_spiked_control: bool
    ) -> Tuple[List[Tag], List[AccessGrant]]:
        ...


class NullIdentityProvider:
    """Provider used when no sample information is available."""

    def tags_and_permissions(
        self, product: Product, with_spiked_control: bool
    ) -> Tuple[List[Tag], List[AccessGrant]]:
        return [], []


class SampleSheetIdentityProvider:
    """Identity facts read from a YAML sample sheet.

    Args:
        components: sample facts keyed by ``id_run:position:tag_index``
        studies: study facts keyed by study id
        spiked_control_index: tag index of the spiked-in control library
    """

    def __init__(
        self,
        components: Dict[str, Dict[str, Any]],
        studies: Optional[Dict[str, Dict[str, Any]]] = None,
        spiked_control_index: int = DEFAULT_SPIKED_CONTROL_INDEX,
    ) -> None:
        self.components = {str(k): v or {} for k, v in components.items()}
        self.studies = {str(k): v or {} for k, v in (studies or {}).items()}
        self.spiked_control_index = spiked_control_index

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        spiked_control_index: int = DEFAULT_SPIKED_CONTROL_INDEX,
    ) -> "SampleSheetIdentityProvider":
        path = Path(path)
        try:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(
                f"Cannot read sample sheet: {exc}", field="sample_sheet", value=path
            ) from exc

        if not isinstance(data, dict) or not isinstance(data.get("components", {}), dict):
            raise ConfigurationError(
                "Sample sheet must be a mapping with a 'components' mapping",
                field="sample_sheet",
                value=path,
            )

        logger.info("Loaded sample sheet %s (%d components)", path, len(data.get("components", {})))
        return cls(
            components=data.get("components", {}),
            studies=data.get("studies", {}),
            spiked_control_index=spiked_control_index,
        )

    def is_spiked_control(self, component: Component) -> bool:
        return (
            component.tag_index == self.spiked_control_index
            or component.subset == SPIKED_CONTROL_SUBSET
        )

    def tags_and_permissions(
        self, product: Product, with_spiked_control: bool
    ) -> Tuple[List[Tag], List[AccessGrant]]:
        tags: set = set()
        acl: set = set()

        if product.composition is None:
            logger.warning("Product %s has no composition; no identity metadata", product.name)
            return [], []

        for component in product.composition:
            if self.is_spiked_control(component) and not with_spiked_control:
                logger.debug("Skipping spiked control component %s", component.key)
                continue

            facts = self.components.get(component.key)
            if facts is None:
                logger.warning(
                    "No sample sheet entry for component %s of %s", component.key, product.name
                )
                continue

            for field_name, attribute in _COMPONENT_FIELDS:
                value = facts.get(field_name)
                if value is not None:
                    tags.add(Tag.of(attribute, value))

            study_id = facts.get("study_id")
            if study_id is None:
                continue
            study_id = str(study_id)
            tags.add(Tag.of(STUDY_ID, study_id))

            study = self.studies.get(study_id, {})
            if study.get("name"):
                tags.add(Tag.of(STUDY_NAME, study["name"]))
            if study.get("title"):
                tags.add(Tag.of(STUDY_TITLE, study["title"]))
            if study.get("access_group"):
                acl.add(AccessGrant(str(study["access_group"]), "read"))

        return sorted(tags), sorted(acl)
