"""
Pharos Testnet Interaction Bot - Main Entry Point

Loads wallet secrets, relays and transfer targets, then runs the
CycleOrchestrator until interrupted.

Usage:
    python main.py                  # Run cycles until Ctrl+C
    python main.py --cycles 1       # Run a single cycle and exit
    python main.py --log-level DEBUG
"""
from dotenv import load_dotenv

# Load environment variables from .env file into os.environ
load_dotenv()

import asyncio
import argparse
import logging
import signal
import sys
from typing import List, Optional

from core.config import BotSettings
from core.inputs import load_private_keys, load_proxies, load_target_addresses
from core.logging_setup import setup_logging
from core.models import WalletIdentity
from core.orchestrator import CycleOrchestrator, RunContext

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pharos Testnet Interaction Bot")
    parser.add_argument("--cycles", type=int, help="Stop after this many cycles")
    parser.add_argument("--log-level", type=str, help="Override LOG_LEVEL (e.g. DEBUG)")
    return parser.parse_args(argv)


def load_wallets(secrets: List[str]) -> List[WalletIdentity]:
    wallets = []
    for position, secret in enumerate(secrets, start=1):
        try:
            wallets.append(WalletIdentity.from_secret(secret))
        except Exception as e:
            # Never log the secret itself
            logger.warning("Skipping invalid private key on line %d: %s", position, type(e).__name__)
    return wallets


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Main execution flow.

    1. Parses command line arguments and loads settings.
    2. Loads wallet secrets (fatal if none), relays and target addresses.
    3. Builds the RunContext and CycleOrchestrator.
    4. Runs cycles until SIGINT/SIGTERM or ``--cycles`` is reached.
    """
    args = parse_args(argv)
    settings = BotSettings()
    if args.cycles is not None:
        settings.max_cycles = args.cycles
    if args.log_level:
        settings.log_level = args.log_level.upper()

    setup_logging(settings.log_level, settings.log_to_file, settings.log_file)

    wallets = load_wallets(load_private_keys(settings.private_keys_file))
    if not wallets:
        logger.error("No private keys found in %s", settings.private_keys_file)
        return 1

    relays = load_proxies(settings.proxies_file)
    targets = load_target_addresses(settings.wallets_file)
    logger.info(
        "Loaded %d wallets, %d proxies, %d target addresses",
        len(wallets), len(relays), len(targets),
    )
    if not relays:
        logger.info("No proxies loaded, connecting directly")

    context = RunContext.build(settings, relays)
    orchestrator = CycleOrchestrator(context, wallets, targets)

    main_task = asyncio.current_task()

    def handle_signal():
        if context.cancel_token.cancelled:
            logger.info("Second stop signal received, exiting now")
            if main_task is not None:
                main_task.cancel()
            return
        logger.info("Stop signal received. Finishing current step before shutdown...")
        context.cancel_token.cancel()

    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, handle_signal)

    cycles = await orchestrator.run()
    logger.info("Stopped after %d cycle(s)", cycles)
    return 0


def run() -> None:
    try:
        code = asyncio.run(main())
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Bot stopped by user")
        code = 0
    except Exception:
        logger.exception("Fatal error")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    run()
