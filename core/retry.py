"""Bounded retry policy shared by the operation executor and the service
transport.

A :class:`RetryPolicy` is an immutable value describing how many times to
retry and how long to wait in between.  :func:`retry_async` applies a
policy to any coroutine factory.

Two growth curves are supported:

* ``exponential`` -- ``base * 2**attempt`` (1 s base gives 2 s, 4 s, 8 s).
* ``linear`` -- ``base * attempt`` (2 s base gives 2 s, 4 s, 6 s).

``attempt`` counts failures so far, starting at 1.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from core.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

EXPONENTIAL = "exponential"
LINEAR = "linear"


@dataclass(frozen=True)
class RetryPolicy:
    """How a failed call is retried.

    Attributes:
        max_retries: Retries after the first attempt; a call is tried at
            most ``max_retries + 1`` times.
        base_delay: Base delay in seconds.
        backoff: ``"exponential"`` or ``"linear"``.
        jitter: Upper bound (seconds) of uniform random jitter added to
            each delay.  ``0`` disables jitter.
        max_delay: Optional cap on a single delay.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    backoff: str = EXPONENTIAL
    jitter: float = 0.0
    max_delay: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff not in (EXPONENTIAL, LINEAR):
            raise ValueError(f"Unknown backoff curve: {self.backoff}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay(self, attempt: int) -> float:
        """Delay in seconds before retry number *attempt* (1-based)."""
        if self.backoff == LINEAR:
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay * (2 ** attempt)
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay


async def retry_async(
    policy: RetryPolicy,
    name: str,
    thunk: Callable[[], Awaitable[T]],
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    give_up_on: Tuple[Type[BaseException], ...] = (),
    reraise: bool = False,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """Await ``thunk()`` until it succeeds or *policy* is exhausted.

    Args:
        policy: Retry policy to apply.
        name: Operation name used in log lines and the terminal error.
        thunk: Zero-argument callable returning a fresh awaitable per
            attempt.
        retry_on: Exception types that trigger a retry.
        give_up_on: Exception types re-raised immediately, even when they
            also match *retry_on*.
        reraise: Re-raise the last error itself on exhaustion instead of
            wrapping it in :class:`RetryExhaustedError`.
        sleep: Awaitable sleep function (defaults to ``asyncio.sleep``).

    Returns:
        Whatever ``thunk()`` resolves to.

    Raises:
        RetryExhaustedError: After ``policy.max_attempts`` failures (unless
            *reraise* is set).
    """
    sleep = sleep or asyncio.sleep
    attempt = 0
    while True:
        try:
            return await thunk()
        except give_up_on:
            raise
        except retry_on as exc:
            attempt += 1
            if attempt > policy.max_retries:
                logger.error(
                    "%s failed after %d retries: %s",
                    name, policy.max_retries, exc,
                )
                if reraise:
                    raise
                raise RetryExhaustedError(name, attempt, exc) from exc
            delay = policy.delay(attempt)
            logger.warning(
                "%s attempt %d failed: %s. Retrying in %.1fs...",
                name, attempt, exc, delay,
            )
            await sleep(delay)
