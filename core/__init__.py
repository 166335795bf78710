"""
Core module for the Pharos Testnet Interaction Bot.

This package contains the cycle orchestration, configuration, retry and
relay selection components that drive every wallet through its daily
interaction sequence.

Submodules:
    config: Application settings (``BotSettings`` and nested sections) via Pydantic.
    orchestrator: ``CycleOrchestrator`` wallet state machine, ``RunContext``
        and ``CancellationToken``.
    executor: ``OperationExecutor`` bounded retry and amount randomization.
    retry: ``RetryPolicy`` and ``retry_async`` shared with the REST client.
    relay_selector: Score-based relay pool with exclusion and reset.
    tracker: ``ResultTracker`` per-cycle results and the Rich summary table.
    models: Wallet identity, balances and operation outcomes.
    errors: ``BotError`` hierarchy and ``ErrorType`` classification.
    inputs: Line-oriented loaders for keys, relays and target addresses.
    logging_setup: Compressed rotating file + safe console logging.
"""
