"""Composition descriptors.

A product is described by ``<name>.composition.json``, listing the
sequencing components (run, lane, tag) whose reads it contains:

```json
{"components": [{"id_run": 26291, "position": 1, "tag_index": 4}]}
```
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from seqpub.lib.errors import DiscoveryError, IntegrityError

logger = logging.getLogger(__name__)

__all__ = [
    "COMPOSITION_SUFFIX",
    "Component",
    "Composition",
    "parse_composition_filename",
    "read_composition_file",
]

COMPOSITION_SUFFIX = ".composition.json"

_COMPOSITION_RE = re.compile(r"^(?P<name>.+)(?P<suffix>\.composition\.json)$")


@dataclass(frozen=True)
class Component:
    """One sequencing entity: a run, a lane and optionally a tag."""

    id_run: int
    position: int
    tag_index: Optional[int] = None
    subset: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id_run": self.id_run, "position": self.position}
        if self.tag_index is not None:
            data["tag_index"] = self.tag_index
        if self.subset is not None:
            data["subset"] = self.subset
        return data

    def freeze(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @property
    def key(self) -> str:
        """Lookup key used by sample sheets, ``id_run:position:tag_index``."""
        tag = "" if self.tag_index is None else str(self.tag_index)
        return f"{self.id_run}:{self.position}:{tag}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Component":
        tag_index = data.get("tag_index")
        return cls(
            id_run=int(data["id_run"]),
            position=int(data["position"]),
            tag_index=None if tag_index is None else int(tag_index),
            subset=data.get("subset"),
        )


@dataclass(frozen=True)
class Composition:
    """An ordered, immutable set of components."""

    components: Tuple[Component, ...]

    def __post_init__(self) -> None:
        if not self.components:
            raise ValueError("A composition requires at least one component")

    def __len__(self) -> int:
        return len(self.components)

    def __iter__(self):
        return iter(self.components)

    @property
    def id_runs(self) -> Tuple[int, ...]:
        return tuple(sorted({c.id_run for c in self.components}))

    def freeze(self) -> str:
        """Canonical JSON text, stable across runs."""
        return json.dumps(
            {"components": [c.to_dict() for c in self.components]},
            sort_keys=True,
            separators=(",", ":"),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Composition":
        components = data.get("components")
        if not isinstance(components, list):
            raise ValueError("'components' must be a list")
        return cls(tuple(Component.from_dict(c) for c in components))


def parse_composition_filename(path: Union[str, Path]) -> Tuple[str, str, str]:
    """Split a composition file path into (name, directory, suffix).

    Example:
        >>> parse_composition_filename("/runs/26291/26291_1#4.composition.json")
        ('26291_1#4', '/runs/26291', '.composition.json')
    """
    p = Path(path)
    match = _COMPOSITION_RE.match(p.name)
    if not match:
        raise DiscoveryError(
            f"Not a composition file: {path}",
            pattern=_COMPOSITION_RE.pattern,
        )
    return match.group("name"), str(p.parent), match.group("suffix")


def read_composition_file(path: Union[str, Path]) -> Composition:
    """Parse a composition file."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        composition = Composition.from_dict(data)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise IntegrityError(
            "Invalid composition file",
            file_path=str(path),
            cause=exc,
        ) from exc

    logger.debug("Read composition %s from %s", composition.freeze(), path)
    return composition
