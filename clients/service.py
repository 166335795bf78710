"""Client for the Pharos off-chain REST service.

The client moves through two states::

    UNAUTHENTICATED --login()--> AUTHENTICATED

``login()`` signs a fixed challenge with the wallet key and exchanges it
for a bearer token that every later request carries.  ``claim_faucet()``
and ``daily_check_in()`` log in lazily.

Transport failures are retried by the shared
:class:`~core.retry.RetryPolicy` (linear, ``2 s * attempt``) and, once
exhausted, surface as :class:`~core.errors.HttpStatusError`,
:class:`~core.errors.NoResponseError` or
:class:`~core.errors.ClientRequestError`.

An HTTP 401 is never retried by the transport.  Instead the token is
dropped, the client logs in again and the request is replayed once.
"""

import asyncio
import logging
import re
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
from eth_account.messages import encode_defunct
from web3 import Web3

from clients.responses import ApiFailure, FaucetStatus, LoginData, decode
from core.config import BotSettings
from core.errors import (
    AuthenticationError,
    BotError,
    ClientRequestError,
    ErrorType,
    HttpStatusError,
    NoResponseError,
    TransportError,
    UnauthorizedError,
)
from core.models import OperationKind, OperationOutcome, WalletIdentity
from core.relay_selector import RelayEndpoint
from core.retry import retry_async

logger = logging.getLogger(__name__)

ALREADY_DONE_PATTERN = re.compile(r"already", re.IGNORECASE)


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


def _error_type_for(exc: BaseException) -> ErrorType:
    if isinstance(exc, (AuthenticationError, UnauthorizedError)):
        return ErrorType.AUTH
    if isinstance(exc, TransportError):
        return ErrorType.TRANSIENT
    return ErrorType.UNKNOWN


class ServiceClient:
    """Session-holding client for login, faucet and check-in calls.

    Args:
        identity: Wallet that signs the login challenge.
        settings: Bot settings (API endpoints, retry policy, user agents).
        relay: Optional relay to route requests through.
        session: Optional pre-built ``aiohttp`` session (tests).
        sleep: Optional awaitable sleep used between retries (tests).
    """

    def __init__(
        self,
        identity: WalletIdentity,
        settings: BotSettings,
        relay: Optional[RelayEndpoint] = None,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self.identity = identity
        self.settings = settings
        self.api = settings.api
        self.relay = relay
        self.policy = settings.retry.request_policy()
        self.token: Optional[str] = None
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep

    @property
    def state(self) -> SessionState:
        if self.token:
            return SessionState.AUTHENTICATED
        return SessionState.UNAUTHENTICATED

    @property
    def proxy(self) -> Optional[str]:
        return self.relay.uri if self.relay else None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.api.timeout_seconds),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "accept": "application/json, text/plain, */*",
            "accept-language": "en-US,en;q=0.8",
            "sec-fetch-dest": "empty",
            "sec-fetch-mode": "cors",
            "sec-fetch-site": "same-site",
            "Origin": self.api.origin,
            "Referer": f"{self.api.origin}/",
        }
        user_agent = self.settings.random_user_agent()
        if user_agent:
            headers["User-Agent"] = user_agent
        if self.token:
            headers["authorization"] = f"Bearer {self.token}"
        return headers

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(
        self, method: str, path: str, params: Optional[Dict[str, str]],
    ) -> Any:
        """Perform a single HTTP attempt and return the decoded JSON body."""
        session = await self._get_session()
        url = f"{self.api.base_url}{path}"
        try:
            async with session.request(
                method, url, params=params, headers=self._headers(), proxy=self.proxy,
            ) as resp:
                if resp.status == 401:
                    raise UnauthorizedError(await resp.text())
                if resp.status >= 400:
                    raise HttpStatusError(resp.status, await resp.text())
                return await resp.json(content_type=None)
        except TransportError:
            raise
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise NoResponseError(str(e) or type(e).__name__) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise ClientRequestError(str(e) or type(e).__name__) from e

    async def _request(
        self, method: str, path: str, params: Optional[Dict[str, str]] = None,
    ) -> Any:
        logger.debug("%s %s", method, path)
        return await retry_async(
            self.policy,
            f"{method} {path}",
            lambda: self._send(method, path, params),
            retry_on=(TransportError,),
            give_up_on=(UnauthorizedError,),
            reraise=True,
            sleep=self._sleep,
        )

    async def _authed_request(
        self, method: str, path: str, params: Optional[Dict[str, str]] = None,
    ) -> Any:
        await self.ensure_authenticated()
        try:
            return await self._request(method, path, params)
        except UnauthorizedError:
            logger.info("Session token rejected, signing in again")
            self.token = None
            await self.login()
            return await self._request(method, path, params)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def login(self) -> str:
        """Sign the challenge and obtain a session token.

        Returns:
            The bearer token.

        Raises:
            AuthenticationError: The service refused the login.
            ResponseFormatError: The login payload carried no token.
            TransportError: The request failed after every retry.
        """
        logger.info("Signing in with wallet: %s", self.identity.short)
        signed = self.identity.signer.sign_message(
            encode_defunct(text=self.api.login_message),
        )
        params = {
            "address": self.identity.address,
            "signature": Web3.to_hex(signed.signature),
            "invite_code": self.api.invite_code,
        }
        result = decode(await self._request("POST", "/user/login", params), LoginData)
        if isinstance(result, ApiFailure):
            raise AuthenticationError(f"Login failed: {result.message}")
        self.token = result.data.token
        logger.info("Login successful")
        return self.token

    async def ensure_authenticated(self) -> None:
        if self.state is SessionState.UNAUTHENTICATED:
            await self.login()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def claim_faucet(self) -> OperationOutcome:
        """Claim the daily faucet if this address is eligible."""
        kind = OperationKind.FAUCET
        address = {"address": self.identity.address}
        try:
            logger.info("Checking faucet eligibility")
            status = decode(
                await self._authed_request("GET", "/faucet/status", address),
                FaucetStatus,
            )
            if isinstance(status, ApiFailure):
                return OperationOutcome.failed(
                    kind, f"Faucet status check failed: {status.message}",
                    ErrorType.REJECTED,
                )
            if not status.data.is_able_to_faucet:
                when = status.data.next_available
                return OperationOutcome.failed(
                    kind,
                    f"Faucet not available until {when:%Y-%m-%d %H:%M:%S}",
                    ErrorType.RATE_LIMIT,
                    next_available=when,
                )

            logger.info("Eligible for faucet claim, submitting request...")
            claim = decode(await self._authed_request("POST", "/faucet/daily", address))
            if isinstance(claim, ApiFailure):
                return OperationOutcome.failed(
                    kind, f"Faucet claim failed: {claim.message}", ErrorType.REJECTED,
                )
            return OperationOutcome.ok(kind, "Faucet claimed successfully")
        except BotError as e:
            return OperationOutcome.failed(
                kind, f"Faucet claim error: {e}", _error_type_for(e),
            )

    async def daily_check_in(self) -> OperationOutcome:
        """Perform the daily check-in; "already checked in" counts as done."""
        kind = OperationKind.CHECKIN
        try:
            logger.info("Performing daily check-in")
            result = decode(
                await self._authed_request(
                    "POST", "/sign/in", {"address": self.identity.address},
                )
            )
            if not isinstance(result, ApiFailure):
                return OperationOutcome.ok(kind, "Daily check-in successful")
            if ALREADY_DONE_PATTERN.search(result.message):
                return OperationOutcome.ok(kind, "Already checked in today")
            return OperationOutcome.failed(
                kind, f"Check-in failed: {result.message}", ErrorType.REJECTED,
            )
        except BotError as e:
            return OperationOutcome.failed(
                kind, f"Check-in error: {e}", _error_type_for(e),
            )
