"""Publisher library modules.

This package contains the file catalog, integrity and metadata derivation,
the batch publisher and the run publisher, together with their storage,
configuration, logging and retry support.
"""

from seqpub.lib.batch import BatchResult, PublishContext, SyncEngine
from seqpub.lib.catalog import (
    ALIGNMENT_FORMATS,
    Category,
    FileCatalog,
    Product,
    RunFile,
    match_exactly_one,
)
from seqpub.lib.checkpoint import (
    CheckpointRecord,
    CheckpointStatus,
    CheckpointStore,
    ErrorBudget,
)
from seqpub.lib.checksum import compute_bytes_md5, compute_file_md5
from seqpub.lib.composition import (
    Component,
    Composition,
    parse_composition_filename,
    read_composition_file,
)
from seqpub.lib.config_loader import PublisherSettings, load_settings, settings_from_dict
from seqpub.lib.env import expand_config, expand_env_vars, load_env_file
from seqpub.lib.errors import (
    BudgetExceeded,
    ConfigurationError,
    DiscoveryError,
    IntegrityError,
    PublishError,
    TransferError,
)
from seqpub.lib.identity import (
    IdentityProvider,
    NullIdentityProvider,
    SampleSheetIdentityProvider,
)
from seqpub.lib.inspect import AlignmentInspector, SamtoolsInspector
from seqpub.lib.integrity import IntegrityFacts, IntegrityResolver
from seqpub.lib.logging import JSONFormatter, PublishLogger, setup_logging
from seqpub.lib.metadata import (
    AccessGrant,
    AlignmentInfo,
    MetadataSynthesizer,
    Tag,
    merge_tags,
)
from seqpub.lib.publisher import RunPublisher
from seqpub.lib.resilience import RetryConfig, retry_operation, with_retry
from seqpub.lib.seqchksum import Seqchksum
from seqpub.lib.storage import (
    LocalArchiveStore,
    RemoteStore,
    S3ArchiveStore,
    get_store,
)

__all__ = [
    # Catalog
    "ALIGNMENT_FORMATS",
    "Category",
    "FileCatalog",
    "Product",
    "RunFile",
    "match_exactly_one",
    "Component",
    "Composition",
    "parse_composition_filename",
    "read_composition_file",
    # Integrity
    "IntegrityFacts",
    "IntegrityResolver",
    "Seqchksum",
    "compute_file_md5",
    "compute_bytes_md5",
    # Metadata
    "AccessGrant",
    "AlignmentInfo",
    "MetadataSynthesizer",
    "Tag",
    "merge_tags",
    "IdentityProvider",
    "NullIdentityProvider",
    "SampleSheetIdentityProvider",
    "AlignmentInspector",
    "SamtoolsInspector",
    # Publishing
    "BatchResult",
    "PublishContext",
    "SyncEngine",
    "RunPublisher",
    "CheckpointRecord",
    "CheckpointStatus",
    "CheckpointStore",
    "ErrorBudget",
    # Storage
    "RemoteStore",
    "LocalArchiveStore",
    "S3ArchiveStore",
    "get_store",
    # Configuration
    "PublisherSettings",
    "load_settings",
    "settings_from_dict",
    "expand_config",
    "expand_env_vars",
    "load_env_file",
    # Errors
    "PublishError",
    "ConfigurationError",
    "DiscoveryError",
    "IntegrityError",
    "TransferError",
    "BudgetExceeded",
    # Support
    "JSONFormatter",
    "PublishLogger",
    "setup_logging",
    "RetryConfig",
    "retry_operation",
    "with_retry",
]
