"""Error taxonomy for the Pharos interaction bot.

Exceptions are grouped by how the orchestration layer reacts to them:

* :class:`ConfigurationError` -- fatal at startup (no wallet secrets).
* :class:`TransientError` -- retryable; the service transport and the
  operation executor retry these with bounded backoff.
* :class:`RetryExhaustedError` -- terminal; raised once a bounded retry
  loop gives up.  Callers turn it into a failed-step outcome.
* :class:`TransactionRejectedError` -- the chain mined the transaction
  but reverted it.
* :class:`WalletContextError` -- the wallet's network/signing context
  could not be established; aborts the remaining steps for that wallet.

:class:`ErrorType` is the coarse classification attached to failed
:class:`~core.models.OperationOutcome` rows for reporting.
"""

from enum import Enum
from typing import Any, Optional


class ErrorType(Enum):
    """Classification of a failed operation.

    Members:
        TRANSIENT: Network/API hiccup that survived every retry.
        INSUFFICIENT_FUNDS: Pre-flight balance check refused the send.
        REJECTED: On-chain revert or service-side refusal.
        RATE_LIMIT: Faucet not yet available for this address.
        AUTH: Login or session problem with the off-chain service.
        UNKNOWN: Anything else.
    """

    TRANSIENT = "transient"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    REJECTED = "rejected"
    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    UNKNOWN = "unknown"


class BotError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(BotError):
    """Startup configuration is unusable."""


class TransientError(BotError):
    """An error worth retrying."""


class TransportError(TransientError):
    """Base class for categorized HTTP transport failures."""


class HttpStatusError(TransportError):
    """The service answered with a non-success HTTP status."""

    def __init__(self, status: int, body: Any = None) -> None:
        self.status = status
        self.body = body
        super().__init__(f"API error {status}: {body}")


class NoResponseError(TransportError):
    """The request was sent but no response came back."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"No response from API: {reason}")


class ClientRequestError(TransportError):
    """The request could not be built or sent."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"API request failed: {reason}")


class UnauthorizedError(HttpStatusError):
    """HTTP 401 -- the session token is missing or no longer valid."""

    def __init__(self, body: Any = None) -> None:
        super().__init__(401, body)


class ResponseFormatError(BotError):
    """A service payload did not match its expected schema."""


class RetryExhaustedError(BotError):
    """Terminal failure after a bounded retry loop gave up.

    Attributes:
        operation: Name of the operation that was retried.
        attempts: Number of attempts performed.
        last_error: The exception raised by the final attempt.
    """

    def __init__(
        self,
        operation: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_error}"
        )


class TransactionRejectedError(BotError):
    """A transaction was mined with a failed status."""

    def __init__(self, tx_hash: str, operation: str = "transaction") -> None:
        self.tx_hash = tx_hash
        super().__init__(f"{operation} reverted on-chain (tx {tx_hash})")


class WalletContextError(BotError):
    """The wallet's relay/provider/signer context could not be built."""


class AuthenticationError(BotError):
    """The off-chain service refused the signed login."""
