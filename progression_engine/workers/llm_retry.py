# ABOUTME: Exponential backoff retry decorator for callers of engine AI operations.
# ABOUTME: Retries TransientAIFailure (narration failures and timeouts) with structured logging.

import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from progression_engine.config.settings import get_settings
from progression_engine.exceptions import TransientAIFailure

# Type variable for generic function decoration
F = TypeVar("F", bound=Callable[..., Any])


def retry_transient_ai(
    attempts: int | None = None,
    min_wait: float = 1,
    max_wait: float = 60
) -> Callable[[F], F]:
    """
    Retry decorator for calls that may raise TransientAIFailure.

    The engine never retries AI calls itself; hosts wrap narration (or their
    own AI calls) with this to back off:
    - `attempts` tries in total
    - Wait: exponential between min_wait and max_wait seconds
    - Only TransientAIFailure is retried; every other error raises immediately

    Usage:
        @retry_transient_ai(attempts=3)
        async def narrate(...):
            return await engine.narrate(...)

    Args:
        attempts: Maximum number of attempts (default: settings.llm_retry_attempts)
        min_wait: Minimum backoff in seconds
        max_wait: Maximum backoff in seconds

    Returns:
        Decorator producing a wrapper with retry behavior
    """
    if attempts is None:
        attempts = get_settings().llm_retry_attempts
    if attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}")

    retrying_decorator = retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(TransientAIFailure),
        before_sleep=before_sleep_log(logger, "WARNING"),
        reraise=True,
    )

    def decorator(func: F) -> F:
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            @retrying_decorator
            async def _retry_call() -> Any:
                try:
                    return await func(*args, **kwargs)
                except TransientAIFailure as e:
                    logger.warning(f"AI call failed in {func.__name__}: {e}")
                    raise

            return await _retry_call()

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            @retrying_decorator
            def _retry_call() -> Any:
                try:
                    return func(*args, **kwargs)
                except TransientAIFailure as e:
                    logger.warning(f"AI call failed in {func.__name__}: {e}")
                    raise

            return _retry_call()

        if inspect.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
