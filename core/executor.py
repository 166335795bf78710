"""Retryable execution of single ledger operations.

:class:`OperationExecutor` wraps one ledger call at a time with the
exponential :class:`~core.retry.RetryPolicy` and computes the randomized
amounts each iteration sends.  A failed operation surfaces as
:class:`~core.errors.RetryExhaustedError`; the orchestrator records it and
moves on.
"""

import logging
import random
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Awaitable, Callable, Optional, TypeVar, Union

from core.retry import EXPONENTIAL, RetryPolicy, retry_async

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Amount literals meaning "the entire balance".
ALL_BALANCE = ("all", "max")

DEFAULT_POLICY = RetryPolicy(max_retries=3, base_delay=1.0, backoff=EXPONENTIAL)


def fraction_digits(literal: str) -> int:
    """Number of fractional digits *literal* is written with.

    Scientific notation counts too: ``"5.342e-6"`` has 9.
    """
    return max(0, -Decimal(literal).as_tuple().exponent)


class OperationExecutor:
    """Bounded retry with exponential backoff plus amount randomization.

    Args:
        policy: Retry policy; defaults to 3 retries at 2 s, 4 s, 8 s.
        randomize: When ``False`` amounts are used exactly as configured.
        variance: Default relative variance for :meth:`randomized_amount`.
        sleep: Optional awaitable sleep, mainly for tests.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        randomize: bool = True,
        variance: float = 0.1,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self.policy = policy or DEFAULT_POLICY
        self.randomize = randomize
        self.variance = variance
        self._sleep = sleep

    async def execute(self, name: str, thunk: Callable[[], Awaitable[T]]) -> T:
        """Run *thunk* with bounded retries.

        Raises:
            RetryExhaustedError: Once ``policy.max_retries + 1`` attempts
                have all failed.
        """
        return await retry_async(self.policy, name, thunk, sleep=self._sleep)

    def randomized_amount(
        self, base: str, variance: Optional[float] = None,
    ) -> Union[str, Decimal]:
        """Scale *base* by a random factor in ``[1-variance, 1+variance]``.

        The result keeps as many fractional digits as the *base* literal
        and never leaves the ``[1-variance, 1+variance] * base`` band.

        Args:
            base: Amount literal in ether units (``"0.000005342"``), or a
                sentinel from :data:`ALL_BALANCE`.
            variance: Relative variance; defaults to the executor's.

        Returns:
            The sentinel string unchanged, otherwise a :class:`Decimal`.
        """
        if isinstance(base, str) and base.strip().lower() in ALL_BALANCE:
            return base
        literal = str(base).strip()
        amount = Decimal(literal)
        if not self.randomize:
            return amount

        variance = self.variance if variance is None else variance
        variance_d = Decimal(str(variance))
        quantum = Decimal(1).scaleb(-fraction_digits(literal))

        factor = Decimal(str(random.uniform(1 - variance, 1 + variance)))
        result = (amount * factor).quantize(quantum, rounding=ROUND_HALF_UP)

        low = (amount * (1 - variance_d)).quantize(quantum, rounding=ROUND_CEILING)
        high = (amount * (1 + variance_d)).quantize(quantum, rounding=ROUND_FLOOR)
        if low <= high:
            result = min(max(result, low), high)
        return result
