"""Signed ledger access for one wallet: balances, transfer, wrap, unwrap.

Built on ``web3``'s :class:`AsyncWeb3` with an :class:`AsyncHTTPProvider`
that can be routed through a relay.  Transactions are signed locally by the
wallet's ``eth_account`` signer and every write blocks until its receipt
arrives.  Gas price is fixed at zero (testnet).

Balance-dependent writes read a fresh :class:`~core.models.BalanceSnapshot`
first and return a non-fatal outcome instead of submitting when the
balance cannot cover the send.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Union

import aiohttp
from web3 import AsyncWeb3, Web3
from web3.providers.rpc import AsyncHTTPProvider

from core.config import BotSettings
from core.errors import ErrorType, TransactionRejectedError
from core.executor import ALL_BALANCE
from core.models import (
    BalanceSnapshot,
    OperationKind,
    OperationOutcome,
    WalletIdentity,
    short_address,
    short_hash,
)
from core.relay_selector import RelayEndpoint

logger = logging.getLogger(__name__)

MAX_UINT256 = 2 ** 256 - 1

WRAPPED_TOKEN_ABI = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "deposit",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [],
        "outputs": [],
    },
    {
        "name": "withdraw",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "amount", "type": "uint256"}],
        "outputs": [],
    },
]

Amount = Union[Decimal, str]


def build_web3(settings: BotSettings, relay: Optional[RelayEndpoint] = None) -> AsyncWeb3:
    """Create an :class:`AsyncWeb3` bound to the configured RPC endpoint."""
    headers = {"Content-Type": "application/json"}
    user_agent = settings.random_user_agent()
    if user_agent:
        headers["User-Agent"] = user_agent
    request_kwargs: Dict[str, Any] = {
        "headers": headers,
        "timeout": aiohttp.ClientTimeout(total=settings.network.request_timeout_seconds),
    }
    if relay is not None:
        request_kwargs["proxy"] = relay.uri
    provider = AsyncHTTPProvider(settings.network.rpc_url, request_kwargs=request_kwargs)
    return AsyncWeb3(provider)


class LedgerClient:
    """Chain operations for a single wallet.

    Args:
        identity: Wallet whose signer authorizes every write.
        settings: Bot settings (network, contract and gas constants).
        relay: Optional relay for the RPC connection.
        web3: Optional pre-built :class:`AsyncWeb3` (tests).
    """

    def __init__(
        self,
        identity: WalletIdentity,
        settings: BotSettings,
        relay: Optional[RelayEndpoint] = None,
        web3: Optional[AsyncWeb3] = None,
    ) -> None:
        self.identity = identity
        self.network = settings.network
        self.relay = relay
        self.w3 = web3 if web3 is not None else build_web3(settings, relay)
        self.wrapped_address = Web3.to_checksum_address(self.network.wrapped_token)
        self.wrapped = self.w3.eth.contract(
            address=self.wrapped_address, abi=WRAPPED_TOKEN_ABI,
        )
        self.gas_buffer = Web3.to_wei(Decimal(self.network.gas_buffer), "ether")

    async def close(self) -> None:
        provider = self.w3.provider
        disconnect = getattr(provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def balances(self) -> BalanceSnapshot:
        """Read native and wrapped balances concurrently."""
        address = self.identity.address
        native, wrapped = await asyncio.gather(
            self.w3.eth.get_balance(address),
            self.wrapped.functions.balanceOf(address).call(),
        )
        return BalanceSnapshot(native=int(native), wrapped=int(wrapped))

    async def allowance(self, owner: str, spender: str) -> int:
        return int(await self.wrapped.functions.allowance(owner, spender).call())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _base_tx(self, gas: int, value: int = 0) -> Dict[str, Any]:
        nonce = await self.w3.eth.get_transaction_count(self.identity.address, "pending")
        tx = {
            "from": self.identity.address,
            "nonce": nonce,
            "gas": gas,
            "gasPrice": self.network.gas_price,
            "chainId": self.network.chain_id,
        }
        if value:
            tx["value"] = value
        return tx

    async def _sign_and_wait(self, tx: Dict[str, Any], operation: str) -> str:
        """Sign *tx*, submit it and wait for a successful receipt.

        Returns:
            The transaction hash as a ``0x`` hex string.

        Raises:
            TransactionRejectedError: The receipt reports failure.
        """
        signed = self.identity.signer.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hex = Web3.to_hex(tx_hash)
        logger.info("Tx hash: %s", short_hash(tx_hex))
        receipt = await self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self.network.receipt_timeout_seconds,
        )
        if receipt["status"] != 1:
            raise TransactionRejectedError(tx_hex, operation)
        return tx_hex

    def _spendable(self, balances: BalanceSnapshot, amount: Amount) -> int:
        """Wei to send for *amount*; the sentinel means all but the buffer."""
        if isinstance(amount, str) and amount.strip().lower() in ALL_BALANCE:
            return max(0, balances.native - self.gas_buffer)
        return Web3.to_wei(Decimal(amount), "ether")

    async def transfer(self, to: str, amount: Amount) -> OperationOutcome:
        """Send native value to *to* after a fresh balance check."""
        kind = OperationKind.TRANSFER
        balances = await self.balances()
        required = self._spendable(balances, amount)
        if required == 0 or balances.native < required + self.gas_buffer:
            return OperationOutcome.failed(
                kind,
                f"Insufficient PHRS for transfer: {balances.native_ether} < {amount}",
                ErrorType.INSUFFICIENT_FUNDS,
            )
        tx = await self._base_tx(self.network.transfer_gas_limit, value=required)
        tx.pop("from")
        tx["to"] = Web3.to_checksum_address(to)
        tx_hash = await self._sign_and_wait(tx, "Transfer")
        sent = Web3.from_wei(required, "ether")
        return OperationOutcome.ok(
            kind, f"Sent {sent} PHRS to {short_address(to)}",
            amount=sent, tx_hash=tx_hash,
        )

    async def wrap_deposit(self, amount: Amount) -> OperationOutcome:
        """Wrap native value through the token's payable ``deposit()``."""
        kind = OperationKind.WRAP
        balances = await self.balances()
        required = self._spendable(balances, amount)
        if required == 0 or balances.native < required + self.gas_buffer:
            return OperationOutcome.failed(
                kind,
                f"Insufficient PHRS for wrap: {balances.native_ether} < {amount}",
                ErrorType.INSUFFICIENT_FUNDS,
            )
        params = await self._base_tx(self.network.wrap_gas_limit, value=required)
        tx = await self.wrapped.functions.deposit().build_transaction(params)
        tx_hash = await self._sign_and_wait(tx, "Wrap")
        wrapped = Web3.from_wei(required, "ether")
        return OperationOutcome.ok(
            kind, f"Wrapped {wrapped} PHRS", amount=wrapped, tx_hash=tx_hash,
        )

    async def approve(self, spender: str, amount: int) -> str:
        """Approve *spender* for *amount* wei of the wrapped token."""
        params = await self._base_tx(self.network.approve_gas_limit)
        tx = await self.wrapped.functions.approve(
            Web3.to_checksum_address(spender), amount,
        ).build_transaction(params)
        return await self._sign_and_wait(tx, "Approve")

    async def unwrap_withdraw(
        self, index: int, total: int, amount: Optional[Amount] = None,
    ) -> OperationOutcome:
        """Unwrap wrapped tokens back to native value.

        The last configured iteration (``index == total - 1``) always
        unwraps the entire wrapped balance so no dust is left behind.
        Other iterations unwrap *amount*, clamped to the balance.

        Args:
            index: Zero-based iteration index.
            total: Number of unwrap iterations configured for the cycle.
            amount: Target amount in ether units (or a full-balance
                sentinel).
        """
        kind = OperationKind.UNWRAP
        balances = await self.balances()
        if balances.wrapped == 0:
            return OperationOutcome.failed(
                kind, "No WPHRS balance to unwrap", ErrorType.INSUFFICIENT_FUNDS,
            )

        if index == total - 1 or amount is None or (
            isinstance(amount, str) and amount.strip().lower() in ALL_BALANCE
        ):
            to_unwrap = balances.wrapped
            logger.info(
                "Current WPHRS balance: %s - unwrapping all", balances.wrapped_ether,
            )
        else:
            to_unwrap = Web3.to_wei(Decimal(amount), "ether")
            if to_unwrap > balances.wrapped:
                to_unwrap = balances.wrapped
                logger.info(
                    "Requested amount exceeds balance, unwrapping all remaining: %s",
                    balances.wrapped_ether,
                )

        allowance = await self.allowance(self.identity.address, self.wrapped_address)
        if allowance < to_unwrap:
            logger.info("Approving WPHRS for unwrapping...")
            await self.approve(self.wrapped_address, MAX_UINT256)
            logger.info("WPHRS approval completed")

        params = await self._base_tx(self.network.unwrap_gas_limit)
        tx = await self.wrapped.functions.withdraw(to_unwrap).build_transaction(params)
        tx_hash = await self._sign_and_wait(tx, "Unwrap")
        unwrapped = Web3.from_wei(to_unwrap, "ether")
        return OperationOutcome.ok(
            kind, f"Unwrapped {unwrapped} WPHRS", amount=unwrapped, tx_hash=tx_hash,
        )
