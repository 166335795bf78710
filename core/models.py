"""Plain data types shared by the clients, the executor and the orchestrator."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from core.errors import ErrorType

logger = logging.getLogger(__name__)


def short_address(address: str) -> str:
    """Shorten ``0x1234...abcd`` style for console output."""
    if not address or len(address) < 12:
        return address or ""
    return f"{address[:6]}...{address[-4:]}"


def short_hash(tx_hash: str) -> str:
    if not tx_hash or len(tx_hash) < 12:
        return tx_hash or ""
    return f"0x{tx_hash[2:6]}...{tx_hash[-4:]}"


class OperationKind(Enum):
    """The five operations a wallet performs each cycle."""

    FAUCET = "faucet"
    CHECKIN = "checkin"
    TRANSFER = "transfer"
    WRAP = "wrap"
    UNWRAP = "unwrap"


@dataclass
class WalletIdentity:
    """A wallet secret, its derived address and the bound signer.

    The secret is kept out of ``repr`` so that logging a wallet never
    leaks it.
    """

    secret: str = field(repr=False)
    address: str
    signer: LocalAccount = field(repr=False)

    @classmethod
    def from_secret(cls, secret: str) -> "WalletIdentity":
        account: LocalAccount = Account.from_key(secret)
        return cls(secret=secret, address=account.address, signer=account)

    @property
    def short(self) -> str:
        return short_address(self.address)


@dataclass
class BalanceSnapshot:
    """Native and wrapped balances (wei) read at one point in time."""

    native: int
    wrapped: int

    @property
    def native_ether(self) -> Decimal:
        return Web3.from_wei(self.native, "ether")

    @property
    def wrapped_ether(self) -> Decimal:
        return Web3.from_wei(self.wrapped, "ether")

    def __str__(self) -> str:
        return f"PHRS: {self.native_ether} | WPHRS: {self.wrapped_ether}"


@dataclass
class OperationOutcome:
    """Outcome of a single operation or iteration.

    Attributes:
        kind: Which of the five operations produced this outcome.
        success: Whether the operation achieved its goal.
        message: Human-readable status line.
        amount: Amount moved, in ether units, when relevant.
        tx_hash: Hex transaction hash for on-chain operations.
        error_type: Coarse failure classification (failures only).
        next_available: When a rate-limited operation opens up again.
    """

    kind: OperationKind
    success: bool
    message: str
    amount: Optional[Decimal] = None
    tx_hash: Optional[str] = None
    error_type: Optional[ErrorType] = None
    next_available: Optional[datetime] = None

    @classmethod
    def ok(
        cls,
        kind: OperationKind,
        message: str,
        amount: Optional[Decimal] = None,
        tx_hash: Optional[str] = None,
    ) -> "OperationOutcome":
        return cls(kind, True, message, amount=amount, tx_hash=tx_hash)

    @classmethod
    def failed(
        cls,
        kind: OperationKind,
        message: str,
        error_type: ErrorType = ErrorType.UNKNOWN,
        amount: Optional[Decimal] = None,
        next_available: Optional[datetime] = None,
    ) -> "OperationOutcome":
        return cls(
            kind, False, message, amount=amount, error_type=error_type,
            next_available=next_available,
        )


@dataclass
class WalletResult:
    """Per-wallet counters for one cycle."""

    address: str
    faucet_success: bool = False
    checkin_success: bool = False
    transfer_count: int = 0
    wrap_count: int = 0
    unwrap_count: int = 0
    aborted: bool = False

    def record(self, outcome: OperationOutcome) -> None:
        if not outcome.success:
            return
        if outcome.kind is OperationKind.FAUCET:
            self.faucet_success = True
        elif outcome.kind is OperationKind.CHECKIN:
            self.checkin_success = True
        elif outcome.kind is OperationKind.TRANSFER:
            self.transfer_count += 1
        elif outcome.kind is OperationKind.WRAP:
            self.wrap_count += 1
        elif outcome.kind is OperationKind.UNWRAP:
            self.unwrap_count += 1
