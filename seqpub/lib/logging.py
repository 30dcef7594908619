"""Logging for publishing runs.

Records logged through a :class:`PublishLogger` carry the run being
published and, while one category of a product is being published, the
product name and category. :class:`JSONFormatter` lifts those fields to the
top level of each line so a log aggregator can filter on them.

Example:
    setup_logging(json_format=True)
    logger = PublishLogger(__name__)
    logger.set_context(id_run=26291)
    with logger.scope(product="26291_1#1", category="alignment"):
        logger.info("Publishing %d files", 2)
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, MutableMapping, Optional, Tuple

__all__ = [
    "CONTEXT_FIELDS",
    "JSONFormatter",
    "PublishLogger",
    "setup_logging",
]

CONTEXT_FIELDS = ("id_run", "product", "category")

# Libraries whose debug output drowns the publisher's own
_QUIET_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Example output:
        {"timestamp": "2025-01-15T10:30:00.123000Z", "level": "INFO",
         "logger": "seqpub.lib.publisher", "message": "METRIC files_published=2",
         "id_run": 26291, "metric": {"name": "files_published", "value": 2,
         "unit": "files"}}
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        metric = getattr(record, "metric", None)
        if metric is not None:
            entry["metric"] = metric

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class PublishLogger(logging.LoggerAdapter):
    """Logger adding the run, product and category to every record."""

    def __init__(self, name: str) -> None:
        super().__init__(logging.getLogger(name), {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def set_context(self, **fields: Any) -> None:
        """Set context fields, e.g. ``id_run``, for all later records."""
        self.extra.update(fields)

    @contextmanager
    def scope(
        self, product: Optional[str] = None, category: Optional[str] = None
    ) -> Iterator[None]:
        """Attach a product and category to records logged in the block."""
        saved = dict(self.extra)
        self.extra.update(product=product, category=category)
        try:
            yield
        finally:
            self.extra = saved

    def metric(self, name: str, value: Any, unit: Optional[str] = None) -> None:
        """Log a run total, e.g. ``files_published``."""
        self.info(
            "METRIC %s=%s",
            name,
            value,
            extra={"metric": {"name": name, "value": value, "unit": unit}},
        )


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure the root logger for a publishing run.

    Args:
        verbose: log at debug level
        json_format: one JSON object per line instead of plain text
        log_file: also write records to this file
    """
    level = logging.DEBUG if verbose else logging.INFO
    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
