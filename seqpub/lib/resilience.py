"""Retry support for remote-store calls.

The publisher itself never retries: a failed file is counted and the batch
moves on. Transient failures are absorbed one level down, inside the storage
backends, which wrap their network calls with the helpers here.

Implementation: uses the tenacity library.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

import tenacity
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

__all__ = ["RetryConfig", "with_retry", "retry_operation"]

F = TypeVar("F", bound=Callable[..., Any])


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        exponential: bool = True,
        jitter: bool = True,
        max_backoff_seconds: float = 30.0,
    ):
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.exponential = exponential
        self.jitter = jitter
        self.max_backoff_seconds = max_backoff_seconds

    @classmethod
    def none(cls) -> "RetryConfig":
        """No retry - fail immediately."""
        return cls(max_attempts=1)

    @classmethod
    def default(cls) -> "RetryConfig":
        """3 attempts with exponential backoff."""
        return cls()

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RetryConfig":
        data = data or {}
        return cls(
            max_attempts=int(data.get("max_attempts", 3)),
            backoff_seconds=float(data.get("backoff_seconds", 1.0)),
            exponential=bool(data.get("exponential", True)),
            jitter=bool(data.get("jitter", True)),
            max_backoff_seconds=float(data.get("max_backoff_seconds", 30.0)),
        )

    def wait_strategy(self) -> wait_base:
        wait: wait_base
        if self.exponential:
            wait = tenacity.wait_exponential(
                multiplier=self.backoff_seconds,
                min=self.backoff_seconds,
                max=self.max_backoff_seconds,
            )
        else:
            wait = tenacity.wait_fixed(self.backoff_seconds)

        if self.jitter:
            wait = wait + tenacity.wait_random(0, self.backoff_seconds * 0.5)
        return wait

    def __repr__(self) -> str:
        return (
            f"RetryConfig(max_attempts={self.max_attempts}, "
            f"backoff_seconds={self.backoff_seconds})"
        )


def _before_sleep(
    log: logging.Logger, operation_name: str, max_attempts: int
) -> Callable[[tenacity.RetryCallState], None]:
    def handler(retry_state: tenacity.RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        log.warning(
            "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
            operation_name,
            retry_state.attempt_number,
            max_attempts,
            exception,
            retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    return handler


def with_retry(
    config: Optional[RetryConfig] = None,
    retry_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable[[F], F]:
    """Retry decorator for flaky remote operations.

    Example:
        @with_retry(RetryConfig(max_attempts=5), retry_exceptions=(ClientError,))
        def head(key):
            return client.head_object(Bucket=bucket, Key=key)
    """
    cfg = config or RetryConfig.default()

    def decorator(fn: F) -> F:
        fn_logger = logging.getLogger(fn.__module__)
        retrying = tenacity.retry(
            stop=tenacity.stop_after_attempt(cfg.max_attempts),
            wait=cfg.wait_strategy(),
            retry=tenacity.retry_if_exception_type(retry_exceptions),
            before_sleep=_before_sleep(fn_logger, fn.__name__, cfg.max_attempts),
            reraise=True,
        )(fn)

        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return retrying(*args, **kwargs)

        return wrapper  # type: ignore

    return decorator


def retry_operation(
    operation: Callable[[], Any],
    config: RetryConfig,
    operation_name: str = "operation",
    retry_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
) -> Any:
    """Execute a zero-argument callable with retry.

    Example:
        retry_operation(
            lambda: client.upload_file(local, bucket, key),
            RetryConfig.default(),
            "upload",
        )
    """
    retryer = tenacity.Retrying(
        stop=tenacity.stop_after_attempt(config.max_attempts),
        wait=config.wait_strategy(),
        retry=tenacity.retry_if_exception_type(retry_exceptions),
        before_sleep=_before_sleep(logger, operation_name, config.max_attempts),
        reraise=True,
    )

    try:
        return retryer(operation)
    except retry_exceptions:
        logger.error(
            "%s failed after %d attempts", operation_name, config.max_attempts
        )
        raise
