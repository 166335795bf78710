"""Network clients for the Pharos interaction bot.

Submodules:
    ledger: ``LedgerClient`` -- signed JSON-RPC access to the chain
        (balances, transfer, wrap, unwrap, approve) via ``web3``.
    service: ``ServiceClient`` -- the off-chain REST API (login, faucet,
        daily check-in) via ``aiohttp``.
    responses: Pydantic schemas and tagged results for REST payloads.
"""
