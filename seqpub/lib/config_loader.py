"""YAML configuration loader for run publication.

Example YAML (run_26291.yaml):
    source_directory: /lustre/runs/26291/Latest_Summary
    id_run: 26291
    file_format: cram
    max_errors: 10

    archive:
      location: s3://seq-archive/irods
      endpoint_url: ${ARCHIVE_ENDPOINT}
      retry:
        max_attempts: 5

    sample_sheet: ./samplesheet_26291.yaml

Usage:
    # Command line
    seqpub publish --config run_26291.yaml --max-errors 5

    # Python API
    from seqpub.lib.config_loader import load_settings
    settings = load_settings("run_26291.yaml")
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from seqpub.lib.catalog import (
    ALIGNMENT_FORMATS,
    DEFAULT_ANCILLARY_SUFFIXES,
    DEFAULT_GENOTYPE_SUFFIXES,
)
from seqpub.lib.env import expand_config, load_env_file
from seqpub.lib.errors import ConfigurationError
from seqpub.lib.identity import DEFAULT_SPIKED_CONTROL_INDEX
from seqpub.lib.integrity import NUM_READS_JSON_PROPERTY

logger = logging.getLogger(__name__)

__all__ = [
    "PublisherSettings",
    "load_settings",
    "settings_from_dict",
    "DEFAULT_COLLECTION_ROOT",
    "DEFAULT_RESTART_FILE",
]

DEFAULT_COLLECTION_ROOT = "/seq"
DEFAULT_RESTART_FILE = "published.json"
DEFAULT_QC_COLLECTION = "qc"

_SECTION_KEYS = {"archive", "catalog", "inspection"}


@dataclass
class PublisherSettings:
    """Everything a publishing run is configured with.

    Validated on construction; a bad value raises ConfigurationError.
    """

    source_directory: str
    id_run: Optional[int] = None
    dest_collection: Optional[str] = None
    alt_process: Optional[str] = None
    file_format: str = "cram"
    restart_file: Optional[str] = None
    force: bool = False
    max_errors: Optional[int] = None
    with_spiked_control: bool = False

    archive_location: str = "."
    archive_options: Dict[str, Any] = field(default_factory=dict)

    sample_sheet: Optional[str] = None
    spiked_control_index: int = DEFAULT_SPIKED_CONTROL_INDEX

    ancillary_suffixes: List[str] = field(
        default_factory=lambda: list(DEFAULT_ANCILLARY_SUFFIXES)
    )
    genotype_suffixes: List[str] = field(
        default_factory=lambda: list(DEFAULT_GENOTYPE_SUFFIXES)
    )
    qc_dir: str = "qc"
    interop_dir: str = "InterOp"
    qc_collection: str = DEFAULT_QC_COLLECTION
    num_reads_property: str = NUM_READS_JSON_PROPERTY

    inspect_alignments: bool = True
    samtools: str = "samtools"
    samtools_args: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.source_directory:
            raise ConfigurationError(
                "source_directory is required", field="source_directory"
            )

        if self.file_format not in ALIGNMENT_FORMATS:
            raise ConfigurationError(
                f"Unsupported alignment format '{self.file_format}'",
                field="file_format",
                value=self.file_format,
                suggestion=f"Use one of: {', '.join(sorted(ALIGNMENT_FORMATS))}",
            )

        if self.id_run is not None:
            try:
                self.id_run = int(self.id_run)
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(
                    "id_run must be an integer", field="id_run", value=self.id_run
                ) from exc
            if self.id_run <= 0:
                raise ConfigurationError(
                    "id_run must be positive", field="id_run", value=self.id_run
                )

        if self.dest_collection is None and self.id_run is None:
            raise ConfigurationError(
                "Either dest_collection or id_run is required",
                field="dest_collection",
                suggestion="Set id_run to publish to /seq/<id_run>",
            )

        if self.max_errors is not None:
            try:
                self.max_errors = int(self.max_errors)
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(
                    "max_errors must be an integer", field="max_errors", value=self.max_errors
                ) from exc
            if self.max_errors < 0:
                raise ConfigurationError(
                    "max_errors must be non-negative",
                    field="max_errors",
                    value=self.max_errors,
                )

    @property
    def collection(self) -> str:
        """Destination collection, ``/seq/<id_run>`` unless configured."""
        if self.dest_collection:
            return self.dest_collection.rstrip("/") or "/"
        return f"{DEFAULT_COLLECTION_ROOT}/{self.id_run}"

    @property
    def restart_path(self) -> str:
        """Restart file, ``<source_directory>/published.json`` unless configured."""
        if self.restart_file:
            return self.restart_file
        return os.path.join(self.source_directory, DEFAULT_RESTART_FILE)

    def with_overrides(self, **overrides: Any) -> "PublisherSettings":
        """Copy with the non-None overrides applied (and re-validated)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _resolve_path(path: Optional[str], config_dir: Path) -> Optional[str]:
    """Resolve ``./`` and ``../`` paths relative to the config file."""
    if not path:
        return path
    if path.startswith(("s3://", "file://")) or os.path.isabs(path):
        return path
    if path.startswith("./") or path.startswith("../"):
        return str(config_dir / path)
    return path


def settings_from_dict(
    config: Dict[str, Any],
    config_dir: Optional[Path] = None,
) -> PublisherSettings:
    """Build PublisherSettings from a parsed configuration mapping."""
    config_dir = config_dir or Path.cwd()
    known = {f.name for f in fields(PublisherSettings)}

    unknown = set(config) - known - _SECTION_KEYS
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            field=sorted(unknown)[0],
        )

    values: Dict[str, Any] = {k: v for k, v in config.items() if k in known}

    archive = dict(config.get("archive") or {})
    if archive:
        values["archive_location"] = _resolve_path(
            archive.pop("location", values.get("archive_location", ".")), config_dir
        )
        values["archive_options"] = archive

    catalog = config.get("catalog") or {}
    for key in ("ancillary_suffixes", "genotype_suffixes", "qc_dir", "interop_dir", "qc_collection"):
        if key in catalog:
            values[key] = catalog[key]

    inspection = config.get("inspection") or {}
    if "enabled" in inspection:
        values["inspect_alignments"] = bool(inspection["enabled"])
    if "samtools" in inspection:
        values["samtools"] = inspection["samtools"]
    if "args" in inspection:
        values["samtools_args"] = list(inspection["args"])

    for key in ("source_directory", "restart_file", "sample_sheet", "archive_location"):
        if key in values:
            values[key] = _resolve_path(values[key], config_dir)

    if "source_directory" not in values:
        raise ConfigurationError("source_directory is required", field="source_directory")

    return PublisherSettings(**values)


def load_settings(
    path: Union[str, Path],
    env_file: Optional[Union[str, Path]] = None,
) -> PublisherSettings:
    """Load publisher settings from a YAML file.

    ``${VAR}`` references are expanded from the environment after an
    optional ``.env`` file has been loaded.

    Raises:
        ConfigurationError: if the file cannot be read or is invalid
    """
    path = Path(path)
    if env_file is not None:
        load_env_file(env_file)

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise ConfigurationError(
            f"Configuration file not found: {path}", field="config", value=path
        ) from exc
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(
            f"Cannot read configuration file: {exc}", field="config", value=path
        ) from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(
            "Configuration must be a YAML mapping", field="config", value=path
        )

    try:
        config = expand_config(raw, strict=True)
    except KeyError as exc:
        raise ConfigurationError(
            f"Configuration refers to an unset variable: {exc.args[0]}",
            field="config",
            value=path,
        ) from exc

    settings = settings_from_dict(config, path.parent)
    logger.debug("Loaded settings from %s: %s", path, settings.to_dict())
    return settings
