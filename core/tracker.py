"""Per-cycle result aggregation and the console summary.

:class:`ResultTracker` keeps one :class:`~core.models.WalletResult` per
wallet plus global interaction totals for the running cycle.  It is reset
at the start of every cycle and rendered as a ``rich`` table once all
wallets have been processed.
"""

import logging
from typing import Dict, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from core.config import InteractionParams
from core.models import OperationKind, OperationOutcome, WalletResult, short_address

logger = logging.getLogger(__name__)

INTERACTION_KEYS: Dict[OperationKind, str] = {
    OperationKind.FAUCET: "faucets",
    OperationKind.CHECKIN: "checkins",
    OperationKind.TRANSFER: "transfers",
    OperationKind.WRAP: "wraps",
    OperationKind.UNWRAP: "unwraps",
}


class ResultTracker:
    """Accumulate wallet outcomes for one cycle.

    Args:
        params: Configured iteration counts, used for ``done/total`` columns.
        console: Optional ``rich`` console (defaults to a new one).
    """

    def __init__(
        self,
        params: Optional[InteractionParams] = None,
        console: Optional[Console] = None,
    ) -> None:
        self.params = params or InteractionParams()
        self.console = console or Console()
        self.cycle = 0
        self.reset()

    def reset(self) -> None:
        """Clear every counter; called at the start of each cycle."""
        self.wallets_processed = 0
        self.interactions: Dict[str, int] = {key: 0 for key in INTERACTION_KEYS.values()}
        self.successful_ops = 0
        self.total_ops = 0
        self.wallet_results: Dict[str, WalletResult] = {}

    def start_cycle(self) -> None:
        self.cycle += 1
        self.reset()

    def start_wallet(self, address: str) -> WalletResult:
        result = WalletResult(address=address)
        self.wallet_results[address] = result
        return result

    def record(self, address: str, outcome: OperationOutcome) -> None:
        self.interactions[INTERACTION_KEYS[outcome.kind]] += 1
        self.total_ops += 1
        if outcome.success:
            self.successful_ops += 1
        result = self.wallet_results.get(address)
        if result is None:
            result = self.start_wallet(address)
        result.record(outcome)

    def finish_wallet(self, address: str) -> None:
        self.wallets_processed += 1

    def summary(self) -> Dict[str, WalletResult]:
        """Per-wallet results keyed by wallet address."""
        return dict(self.wallet_results)

    def totals(self) -> Dict[str, int]:
        return {
            **self.interactions,
            "wallets": self.wallets_processed,
            "successful": self.successful_ops,
            "total": self.total_ops,
        }

    @property
    def success_rate(self) -> float:
        if self.total_ops == 0:
            return 0.0
        return (self.successful_ops / self.total_ops) * 100

    def render(self) -> Table:
        """Build the per-wallet results table for the current cycle."""
        p = self.params
        table = Table(
            title=f"Interaction Results - Cycle {self.cycle}", box=box.ROUNDED,
        )
        table.add_column("Wallet", style="cyan", no_wrap=True)
        table.add_column("Faucet", justify="center")
        table.add_column("Check-in", justify="center")
        table.add_column("Transfers", justify="right")
        table.add_column("Wraps", justify="right")
        table.add_column("Unwraps", justify="right")

        def flag(ok: bool) -> str:
            return "[green]OK[/green]" if ok else "[red]FAIL[/red]"

        for result in self.wallet_results.values():
            table.add_row(
                short_address(result.address),
                flag(result.faucet_success),
                flag(result.checkin_success),
                f"{result.transfer_count}/{p.transfer_count}",
                f"{result.wrap_count}/{p.wrap_count}",
                f"{result.unwrap_count}/{p.unwrap_count}",
            )
        table.caption = (
            f"{self.wallets_processed} wallets | "
            f"{self.successful_ops}/{self.total_ops} operations succeeded "
            f"({self.success_rate:.1f}%)"
        )
        return table

    def display(self) -> None:
        self.console.print()
        self.console.print(self.render())
        self.console.print()
