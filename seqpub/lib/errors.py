"""Structured exception hierarchy for run publication.

Each failure mode of the publisher has its own type so that callers can
decide where a failure stops: configuration errors are fatal, discovery and
integrity errors are fatal to the category that needed them, transfer errors
are counted per file and budget exhaustion ends the run's publishing.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

__all__ = [
    "PublishError",
    "ConfigurationError",
    "DiscoveryError",
    "IntegrityError",
    "TransferError",
    "BudgetExceeded",
]


class PublishError(Exception):
    """Base exception for all publisher errors.

    Provides structured error information for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        product: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.product = product
        self.details = details or {}
        self.suggestion = suggestion

        parts = [message]

        if product:
            parts.insert(0, f"[{product}]")

        if details:
            detail_lines = [f"  {k}: {v}" for k, v in details.items()]
            parts.append("\nDetails:")
            parts.extend(detail_lines)

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts) if len(parts) > 1 else message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "product": self.product,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class ConfigurationError(PublishError):
    """Invalid or incomplete publisher configuration.

    Raised at construction time and never caught by the publisher itself.
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value

        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details=details, **kwargs)


class DiscoveryError(PublishError):
    """An expected-unique file lookup matched zero or several files."""

    def __init__(
        self,
        message: str,
        *,
        pattern: Optional[str] = None,
        candidates: Optional[Sequence[str]] = None,
        **kwargs: Any,
    ) -> None:
        self.pattern = pattern
        self.candidates: List[str] = list(candidates or [])

        details = kwargs.pop("details", {})
        if pattern:
            details["pattern"] = pattern
        if candidates is not None:
            details["matches"] = len(self.candidates)
        if self.candidates:
            details["candidates"] = ", ".join(self.candidates)

        super().__init__(message, details=details, **kwargs)


class IntegrityError(PublishError):
    """A read-count or digest summary file is missing, empty or malformed."""

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.file_path = file_path
        self.cause = cause

        details = kwargs.pop("details", {})
        if file_path:
            details["file_path"] = file_path
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class TransferError(PublishError):
    """The remote store rejected a content, metadata or permission operation."""

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        remote_path: Optional[str] = None,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.operation = operation
        self.remote_path = remote_path
        self.cause = cause

        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if remote_path:
            details["remote_path"] = remote_path
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class BudgetExceeded(PublishError):
    """Cumulative failures in the run went past the configured maximum."""

    def __init__(self, count: int, max_errors: int, **kwargs: Any) -> None:
        self.count = count
        self.max_errors = max_errors

        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = (
                "Fix the reported failures and re-run; files already "
                "published are recorded in the restart file."
            )

        super().__init__(
            f"Error budget exceeded: {count} errors (maximum {max_errors})",
            suggestion=suggestion,
            **kwargs,
        )
