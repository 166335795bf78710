"""Cycle orchestration for the Pharos interaction bot.

One :class:`CycleOrchestrator` drives the whole run:

1. Every cycle walks the wallets strictly in order.
2. Each wallet moves through ``INIT -> FAUCET -> CHECKIN -> TRANSFERS ->
   WRAPS -> UNWRAPS -> DONE``.  Every step (and every iteration inside the
   ledger steps) is failure-isolated: its outcome is recorded and the
   wallet moves on.
3. After the last wallet the per-cycle summary is printed and a countdown
   runs until the next cycle.

Shared run state lives in a :class:`RunContext` built once per process and
passed in explicitly.  A :class:`CancellationToken` is checked between
cycles, between wallets, between steps and during every pause.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from clients.ledger import LedgerClient
from clients.service import ServiceClient
from core.config import BotSettings
from core.errors import (
    ErrorType,
    RetryExhaustedError,
    TransactionRejectedError,
    WalletContextError,
)
from core.executor import OperationExecutor
from core.models import (
    OperationKind,
    OperationOutcome,
    WalletIdentity,
    WalletResult,
)
from core.relay_selector import RelayEndpoint, RelaySelector
from core.tracker import ResultTracker

logger = logging.getLogger(__name__)

LedgerFactory = Callable[[WalletIdentity, BotSettings, Optional[RelayEndpoint]], LedgerClient]
ServiceFactory = Callable[[WalletIdentity, BotSettings, Optional[RelayEndpoint]], ServiceClient]


class CancellationToken:
    """Cooperative stop flag backed by an :class:`asyncio.Event`."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep for *timeout* seconds, returning early on cancellation.

        Returns:
            ``True`` if the token was cancelled.
        """
        if timeout is None:
            await self._event.wait()
            return True
        if timeout <= 0:
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            pass
        return self.cancelled


@dataclass
class RunContext:
    """Everything shared across wallets and cycles for one process run."""

    settings: BotSettings
    relays: RelaySelector
    executor: OperationExecutor
    tracker: ResultTracker
    cancel_token: CancellationToken = field(default_factory=CancellationToken)

    @classmethod
    def build(cls, settings: BotSettings, relay_uris: Sequence[str] = ()) -> "RunContext":
        params = settings.params
        return cls(
            settings=settings,
            relays=RelaySelector(relay_uris),
            executor=OperationExecutor(
                policy=settings.retry.operation_policy(),
                randomize=params.randomize,
                variance=params.variation,
            ),
            tracker=ResultTracker(params),
        )


class WalletStep(Enum):
    INIT = "init"
    FAUCET = "faucet"
    CHECKIN = "checkin"
    TRANSFERS = "transfers"
    WRAPS = "wraps"
    UNWRAPS = "unwraps"
    DONE = "done"


class CycleOrchestrator:
    """Run the per-wallet interaction sequence in unending cycles.

    Args:
        context: Shared run state.
        wallets: Wallet identities, processed in order.
        targets: Transfer destinations; may be empty.
        ledger_factory: Builds a :class:`LedgerClient` per wallet.
        service_factory: Builds a :class:`ServiceClient` per wallet.
    """

    def __init__(
        self,
        context: RunContext,
        wallets: Sequence[WalletIdentity],
        targets: Sequence[str] = (),
        ledger_factory: Optional[LedgerFactory] = None,
        service_factory: Optional[ServiceFactory] = None,
    ) -> None:
        self.context = context
        self.settings = context.settings
        self.wallets = list(wallets)
        self.targets = list(targets)
        self.ledger_factory = ledger_factory or LedgerClient
        self.service_factory = service_factory or ServiceClient

    @property
    def token(self) -> CancellationToken:
        return self.context.cancel_token

    async def pause(self, bounds: Tuple[float, float]) -> bool:
        """Random delay within *bounds*; ``True`` if cancelled meanwhile."""
        return await self.token.wait(random.uniform(*bounds))

    async def countdown(self, minutes: float) -> None:
        """Wait *minutes* before the next cycle, showing the time left."""
        remaining = int(minutes * 60)
        console = self.context.tracker.console
        logger.info("Waiting %s minutes before next cycle...", minutes)
        with console.status("") as status:
            while remaining > 0:
                mins, secs = divmod(remaining, 60)
                status.update(f"Next cycle in {mins:02d}:{secs:02d}")
                if await self.token.wait(1):
                    return
                remaining -= 1

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """Loop cycles until cancelled or ``max_cycles`` is reached.

        Returns:
            Number of cycles completed.
        """
        max_cycles = self.settings.max_cycles
        cycles = 0
        while not self.token.cancelled:
            logger.info("=== STARTING NEW CYCLE ===")
            await self.run_cycle()
            cycles += 1
            self.context.tracker.display()
            if self.token.cancelled:
                break
            if max_cycles is not None and cycles >= max_cycles:
                logger.info("Reached max cycles (%d), stopping", max_cycles)
                break
            await self.countdown(self.settings.timing.cycle_interval_minutes)
        return cycles

    async def run_cycle(self) -> Dict[str, WalletResult]:
        """Process every wallet once and return the per-wallet summary."""
        tracker = self.context.tracker
        tracker.start_cycle()
        tracker.console.rule(f"[bold cyan]Cycle {tracker.cycle}[/bold cyan]")
        total = len(self.wallets)
        for index, identity in enumerate(self.wallets):
            if self.token.cancelled:
                logger.info("Cancellation requested, stopping cycle")
                break
            await self.process_wallet(index, total, identity)
            if index < total - 1:
                if await self.pause(self.settings.timing.between_wallets):
                    break
        return tracker.summary()

    # ------------------------------------------------------------------
    # Wallet
    # ------------------------------------------------------------------

    async def process_wallet(
        self, index: int, total: int, identity: WalletIdentity,
    ) -> WalletResult:
        """Run the full step sequence for one wallet."""
        tracker = self.context.tracker
        relays = self.context.relays
        result = tracker.start_wallet(identity.address)
        logger.info("[%d/%d] Processing wallet %s", index + 1, total, identity.short)

        relay = relays.next()
        if relay is not None:
            logger.info("Using proxy: %s", relay.masked)
        ledger: Optional[LedgerClient] = None
        service: Optional[ServiceClient] = None
        step = WalletStep.INIT
        try:
            try:
                ledger = self.ledger_factory(identity, self.settings, relay)
                service = self.service_factory(identity, self.settings, relay)
            except Exception as e:
                raise WalletContextError(f"Could not initialize wallet: {e}") from e
            await self._log_balances("Initial", ledger)

            steps: List[Tuple[WalletStep, Callable[[], Awaitable[None]]]] = [
                (WalletStep.FAUCET, functools.partial(
                    self._service_step, identity, OperationKind.FAUCET, service.claim_faucet)),
                (WalletStep.CHECKIN, functools.partial(
                    self._service_step, identity, OperationKind.CHECKIN, service.daily_check_in)),
                (WalletStep.TRANSFERS, functools.partial(self._transfers, identity, ledger)),
                (WalletStep.WRAPS, functools.partial(self._wraps, identity, ledger)),
                (WalletStep.UNWRAPS, functools.partial(self._unwraps, identity, ledger)),
            ]
            for step, run_step in steps:
                if self.token.cancelled:
                    logger.info("Cancellation requested, leaving %s", identity.short)
                    return result
                await run_step()
                if await self.pause(self.settings.timing.between_interactions):
                    return result

            step = WalletStep.DONE
            relays.record_success(relay)
            tracker.finish_wallet(identity.address)
            await self._log_balances("Final", ledger)
        except WalletContextError as e:
            logger.error("%s aborted: %s", identity.short, e)
            result.aborted = True
            relays.record_failure(relay)
        except Exception as e:
            logger.error("Error processing %s at %s: %s", identity.short, step.value, e)
            relays.record_failure(relay)
        finally:
            await self._close(ledger, service)
        return result

    async def _log_balances(self, label: str, ledger: LedgerClient) -> None:
        """Log the wallet's balances; a failed read only costs the log line."""
        try:
            balances = await self.context.executor.execute("Balance check", ledger.balances)
        except RetryExhaustedError as e:
            logger.warning("%s balances unavailable: %s", label, e.last_error)
            return
        logger.info("%s balances - %s", label, balances)

    async def _pause_between(self, index: int, count: int) -> bool:
        """Pacing delay between iterations; none after the last one."""
        if index >= count - 1:
            return False
        return await self.pause(self.settings.timing.between_interactions)

    async def _close(self, *clients) -> None:
        for client in clients:
            if client is None:
                continue
            try:
                await client.close()
            except Exception as e:
                logger.debug("Error closing %s: %s", type(client).__name__, e)

    def _record(self, identity: WalletIdentity, outcome: OperationOutcome) -> None:
        if outcome.success:
            logger.info("%s: %s", outcome.kind.value, outcome.message)
        else:
            logger.warning("%s: %s", outcome.kind.value, outcome.message)
        self.context.tracker.record(identity.address, outcome)

    async def _service_step(
        self,
        identity: WalletIdentity,
        kind: OperationKind,
        call: Callable[[], Awaitable[OperationOutcome]],
    ) -> None:
        try:
            outcome = await call()
        except Exception as e:
            outcome = OperationOutcome.failed(kind, f"Unexpected error: {e}")
        self._record(identity, outcome)

    async def _ledger_iteration(
        self,
        identity: WalletIdentity,
        kind: OperationKind,
        name: str,
        thunk: Callable[[], Awaitable[OperationOutcome]],
    ) -> None:
        try:
            outcome = await self.context.executor.execute(name, thunk)
        except RetryExhaustedError as e:
            error_type = (
                ErrorType.REJECTED
                if isinstance(e.last_error, TransactionRejectedError)
                else ErrorType.TRANSIENT
            )
            outcome = OperationOutcome.failed(kind, f"{name} failed: {e}", error_type)
        self._record(identity, outcome)

    async def _transfers(self, identity: WalletIdentity, ledger: LedgerClient) -> None:
        params = self.settings.params
        if not self.targets:
            logger.warning("No target addresses loaded, skipping transfers")
            return
        executor = self.context.executor
        for i in range(params.transfer_count):
            target = random.choice(self.targets)
            amount = executor.randomized_amount(params.transfer_amount)
            logger.info("Transfer %d/%d: %s PHRS", i + 1, params.transfer_count, amount)
            await self._ledger_iteration(
                identity, OperationKind.TRANSFER, "Transfer",
                functools.partial(ledger.transfer, target, amount),
            )
            if await self._pause_between(i, params.transfer_count):
                return

    async def _wraps(self, identity: WalletIdentity, ledger: LedgerClient) -> None:
        params = self.settings.params
        executor = self.context.executor
        for i in range(params.wrap_count):
            amount = executor.randomized_amount(params.wrap_amount)
            logger.info("Wrap %d/%d: %s PHRS", i + 1, params.wrap_count, amount)
            await self._ledger_iteration(
                identity, OperationKind.WRAP, "Wrap",
                functools.partial(ledger.wrap_deposit, amount),
            )
            if await self._pause_between(i, params.wrap_count):
                return

    async def _unwraps(self, identity: WalletIdentity, ledger: LedgerClient) -> None:
        params = self.settings.params
        executor = self.context.executor
        count = params.unwrap_count
        for i in range(count):
            amount = executor.randomized_amount(params.unwrap_amount)
            logger.info("Unwrap %d/%d", i + 1, count)
            await self._ledger_iteration(
                identity, OperationKind.UNWRAP, "Unwrap",
                functools.partial(ledger.unwrap_withdraw, i, count, amount),
            )
            if await self._pause_between(i, count):
                return
