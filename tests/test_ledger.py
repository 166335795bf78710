# pylint: disable=protected-access
"""
Tests for LedgerClient against a mocked AsyncWeb3.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from web3 import Web3

from clients.ledger import MAX_UINT256, LedgerClient
from core.errors import ErrorType, TransactionRejectedError
from core.models import OperationKind

TARGET = "0x000000000000000000000000000000000000dEaD"
TX_HASH = b"\x12" * 32


def make_web3(native=10 ** 18, wrapped=0, allowance=MAX_UINT256, status=1):
    w3 = MagicMock()
    w3.eth.get_balance = AsyncMock(return_value=native)
    w3.eth.get_transaction_count = AsyncMock(return_value=5)
    w3.eth.send_raw_transaction = AsyncMock(return_value=TX_HASH)
    w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": status})

    contract = MagicMock()
    contract.functions.balanceOf.return_value.call = AsyncMock(return_value=wrapped)
    contract.functions.allowance.return_value.call = AsyncMock(return_value=allowance)
    for name in ("deposit", "withdraw", "approve"):
        getattr(contract.functions, name).return_value.build_transaction = AsyncMock(
            side_effect=lambda params, name=name: {**params, "data": name},
        )
    w3.eth.contract.return_value = contract
    return w3, contract


@pytest.fixture
def signer_identity(identity):
    signer = MagicMock()
    signer.sign_transaction.return_value.raw_transaction = b"signed"
    identity.signer = signer
    return identity


def signed_txs(identity):
    return [c.args[0] for c in identity.signer.sign_transaction.call_args_list]


@pytest.mark.asyncio
async def test_balances_reads_native_and_wrapped(identity, settings):
    w3, contract = make_web3(native=3 * 10 ** 18, wrapped=10 ** 17)
    ledger = LedgerClient(identity, settings, web3=w3)

    snapshot = await ledger.balances()

    assert snapshot.native == 3 * 10 ** 18
    assert snapshot.wrapped == 10 ** 17
    assert str(snapshot) == "PHRS: 3 | WPHRS: 0.1"
    contract.functions.balanceOf.assert_called_with(identity.address)


@pytest.mark.asyncio
async def test_transfer_builds_signed_value_transfer(signer_identity, settings):
    w3, _ = make_web3()
    ledger = LedgerClient(signer_identity, settings, web3=w3)

    outcome = await ledger.transfer(TARGET, Decimal("0.000001234"))

    assert outcome.success
    assert outcome.kind is OperationKind.TRANSFER
    assert outcome.amount == Decimal("0.000001234")
    assert outcome.tx_hash == Web3.to_hex(TX_HASH)
    tx = signed_txs(signer_identity)[0]
    assert "from" not in tx
    assert tx["to"] == Web3.to_checksum_address(TARGET)
    assert tx["value"] == 1234000000000
    assert tx["gas"] == 21000
    assert tx["gasPrice"] == 0
    assert tx["chainId"] == 688688
    assert tx["nonce"] == 5
    w3.eth.send_raw_transaction.assert_awaited_once_with(b"signed")


@pytest.mark.asyncio
async def test_transfer_insufficient_balance_is_not_submitted(signer_identity, settings):
    w3, _ = make_web3(native=1000)
    ledger = LedgerClient(signer_identity, settings, web3=w3)

    outcome = await ledger.transfer(TARGET, Decimal("0.000001234"))

    assert not outcome.success
    assert outcome.error_type is ErrorType.INSUFFICIENT_FUNDS
    w3.eth.send_raw_transaction.assert_not_awaited()


@pytest.mark.asyncio
async def test_transfer_all_keeps_gas_buffer(signer_identity, settings):
    w3, _ = make_web3(native=10 ** 15)
    ledger = LedgerClient(signer_identity, settings, web3=w3)

    outcome = await ledger.transfer(TARGET, "all")

    assert outcome.success
    assert signed_txs(signer_identity)[0]["value"] == 10 ** 15 - ledger.gas_buffer


@pytest.mark.asyncio
async def test_wrap_deposit_sends_value(signer_identity, settings):
    w3, contract = make_web3()
    ledger = LedgerClient(signer_identity, settings, web3=w3)

    outcome = await ledger.wrap_deposit(Decimal("0.000005342"))

    assert outcome.success
    assert outcome.kind is OperationKind.WRAP
    params = contract.functions.deposit.return_value.build_transaction.await_args.args[0]
    assert params["value"] == 5342000000000
    assert params["gas"] == settings.network.wrap_gas_limit


@pytest.mark.asyncio
async def test_receipt_failure_raises_rejected(signer_identity, settings):
    w3, _ = make_web3(status=0)
    ledger = LedgerClient(signer_identity, settings, web3=w3)

    with pytest.raises(TransactionRejectedError):
        await ledger.wrap_deposit(Decimal("0.000005342"))


class TestUnwrap:

    @pytest.mark.asyncio
    async def test_last_iteration_unwraps_full_balance(self, signer_identity, settings):
        w3, contract = make_web3(wrapped=7777777777777)
        ledger = LedgerClient(signer_identity, settings, web3=w3)

        outcome = await ledger.unwrap_withdraw(9, 10, Decimal("0.000000001"))

        assert outcome.success
        contract.functions.withdraw.assert_called_once_with(7777777777777)
        assert outcome.amount == Web3.from_wei(7777777777777, "ether")

    @pytest.mark.asyncio
    async def test_zero_balance_is_nothing_to_unwrap(self, signer_identity, settings):
        w3, contract = make_web3(wrapped=0)
        ledger = LedgerClient(signer_identity, settings, web3=w3)

        outcome = await ledger.unwrap_withdraw(9, 10, Decimal("0.000004321"))

        assert not outcome.success
        assert outcome.error_type is ErrorType.INSUFFICIENT_FUNDS
        assert outcome.message == "No WPHRS balance to unwrap"
        contract.functions.withdraw.assert_not_called()
        w3.eth.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_partial_unwrap_uses_requested_amount(self, signer_identity, settings):
        w3, contract = make_web3(wrapped=10 ** 16)
        ledger = LedgerClient(signer_identity, settings, web3=w3)

        await ledger.unwrap_withdraw(0, 10, Decimal("0.000004321"))

        contract.functions.withdraw.assert_called_once_with(4321000000000)

    @pytest.mark.asyncio
    async def test_partial_unwrap_clamped_to_balance(self, signer_identity, settings):
        w3, contract = make_web3(wrapped=1000)
        ledger = LedgerClient(signer_identity, settings, web3=w3)

        await ledger.unwrap_withdraw(0, 10, Decimal("0.000004321"))

        contract.functions.withdraw.assert_called_once_with(1000)

    @pytest.mark.asyncio
    async def test_low_allowance_triggers_approve(self, signer_identity, settings):
        w3, contract = make_web3(wrapped=10 ** 12, allowance=0)
        ledger = LedgerClient(signer_identity, settings, web3=w3)

        outcome = await ledger.unwrap_withdraw(0, 1)

        assert outcome.success
        contract.functions.approve.assert_called_once_with(
            ledger.wrapped_address, MAX_UINT256,
        )
        assert w3.eth.send_raw_transaction.await_count == 2
        assert [tx["data"] for tx in signed_txs(signer_identity)] == ["approve", "withdraw"]

    @pytest.mark.asyncio
    async def test_sufficient_allowance_skips_approve(self, signer_identity, settings):
        w3, contract = make_web3(wrapped=10 ** 12)
        ledger = LedgerClient(signer_identity, settings, web3=w3)

        await ledger.unwrap_withdraw(0, 1)

        contract.functions.approve.assert_not_called()
        assert w3.eth.send_raw_transaction.await_count == 1
