"""Publish sequencing run output to a long-term archive.

This package classifies the files of a run directory, derives metadata
from the run's summary files and sample information, and publishes both
to an archive store, once per distinct content version.

Usage:
    python -m seqpub publish --config run_26291.yaml
    python -m seqpub status --restart-file /runs/26291/published.json
"""

from seqpub.lib.config_loader import PublisherSettings, load_settings
from seqpub.lib.publisher import RunPublisher
from seqpub.lib.storage import get_store

__all__ = [
    "PublisherSettings",
    "RunPublisher",
    "get_store",
    "load_settings",
]

__version__ = "0.1.0"
