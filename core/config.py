"""Application configuration for the Pharos interaction bot.

Settings are loaded with Pydantic v2 / ``pydantic-settings`` from
environment variables (with ``.env`` file support).  Nested sections use
``__`` as the environment delimiter, e.g. ``TIMING__CYCLE_INTERVAL_MINUTES=15``
or ``PARAMS__TRANSFER_COUNT=3``.

Key exports:
    BotSettings: Root settings model (instantiate once per run).
    NetworkSettings / ApiSettings / TimingSettings / InteractionParams /
    RetrySettings: Nested sections.
"""

# pylint: disable=no-member

import logging
import random
from typing import Any, List, Optional, Tuple

from fake_useragent import UserAgent
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.retry import EXPONENTIAL, LINEAR, RetryPolicy

logger: logging.Logger = logging.getLogger(__name__)


class NetworkSettings(BaseModel):
    """Ledger network and contract addresses."""

    name: str = "Pharos Testnet"
    chain_id: int = 688688
    rpc_url: str = "https://testnet.dplabs-internal.com"
    wrapped_token: str = "0x76aaada469d23216be5f7c596fa25f282ff9b364"
    native_token: str = "0xf6a07fe10e28a70d1b0f36c7eb7745d2bae2a312"
    # Native amount kept aside on top of every send (ether units)
    gas_buffer: str = "0.0000001"
    gas_price: int = 0
    transfer_gas_limit: int = 21000
    wrap_gas_limit: int = 100000
    unwrap_gas_limit: int = 120000
    approve_gas_limit: int = 100000
    receipt_timeout_seconds: float = 120.0
    request_timeout_seconds: float = 30.0


class ApiSettings(BaseModel):
    """Off-chain REST service."""

    base_url: str = "https://api.pharosnetwork.xyz"
    invite_code: str = "pcDSvtHJeoqTPMAU"
    login_message: str = "pharos"
    origin: str = "https://testnet.pharosnetwork.xyz"
    timeout_seconds: float = 30.0


class TimingSettings(BaseModel):
    """Pacing delays, all in seconds except the cycle interval."""

    between_interactions: Tuple[float, float] = (2.0, 5.0)
    between_wallets: Tuple[float, float] = (5.0, 15.0)
    cycle_interval_minutes: float = 30.0

    @field_validator("between_interactions", "between_wallets")
    @classmethod
    def _ordered_range(cls, value: Tuple[float, float]) -> Tuple[float, float]:
        low, high = value
        if low < 0 or high < low:
            raise ValueError(f"Invalid delay range: {value}")
        return value


class InteractionParams(BaseModel):
    """Amounts (ether-unit literals) and iteration counts per wallet."""

    transfer_amount: str = "0.000001234"
    wrap_amount: str = "0.000005342"
    unwrap_amount: str = "0.000004321"
    transfer_count: int = Field(default=10, ge=0)
    wrap_count: int = Field(default=10, ge=0)
    unwrap_count: int = Field(default=10, ge=0)
    randomize: bool = True
    variation: float = Field(default=0.1, ge=0.0, lt=1.0)


class RetrySettings(BaseModel):
    """Retry policies for ledger operations and service requests."""

    operation_max_retries: int = 3
    operation_base_delay: float = 1.0
    request_max_retries: int = 3
    request_base_delay: float = 2.0

    def operation_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.operation_max_retries,
            base_delay=self.operation_base_delay,
            backoff=EXPONENTIAL,
        )

    def request_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.request_max_retries,
            base_delay=self.request_base_delay,
            backoff=LINEAR,
        )


class BotSettings(BaseSettings):
    """Root configuration model.

    Section overview:
        * **Core** -- log level, optional file logging.
        * **Inputs** -- paths of the wallet-secret, relay and target
          address files.
        * **network / api** -- endpoints, contract and gas constants.
        * **timing** -- pacing and cycle interval.
        * **params** -- amounts, counts and randomization.
        * **retry** -- executor and transport retry policies.
    """

    # Core
    log_level: str = "INFO"
    # Activity is reported on the console only unless enabled
    log_to_file: bool = False
    log_file: str = "logs/pharos_bot.log"

    # Inputs
    private_keys_file: str = "privatekeys.txt"
    proxies_file: str = "proxies.txt"
    wallets_file: str = "wallets.txt"

    network: NetworkSettings = Field(default_factory=NetworkSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    timing: TimingSettings = Field(default_factory=TimingSettings)
    params: InteractionParams = Field(default_factory=InteractionParams)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    # Stop after this many cycles (None = run until interrupted)
    max_cycles: Optional[int] = None

    user_agents: List[str] = Field(default_factory=list)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    def model_post_init(self, __context: Any) -> None:
        """Generate a pool of user-agent strings if none were supplied."""
        if not self.user_agents:
            try:
                ua = UserAgent()
                self.user_agents = [ua.random for _ in range(50)]
            except Exception as exc:
                logger.warning("Could not build user-agent pool: %s", exc)

    def random_user_agent(self) -> Optional[str]:
        if not self.user_agents:
            return None
        return random.choice(self.user_agents)
