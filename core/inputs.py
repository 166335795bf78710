"""Flat-file inputs: wallet secrets, relays and transfer targets.

Each file holds one entry per line.  Lines are trimmed, blanks dropped,
and entries that fail validation are skipped.  A missing file yields an
empty list.
"""

import logging
import os
from typing import List

from web3 import Web3

logger = logging.getLogger(__name__)

SECRET_PREFIX = "0x"


def load_lines(filepath: str) -> List[str]:
    """Read trimmed, non-empty lines from *filepath*."""
    if not os.path.exists(filepath):
        return []
    try:
        with open(filepath, "r", encoding="utf-8") as fh:
            return [line.strip() for line in fh if line.strip()]
    except OSError as e:
        logger.error("Failed to load %s: %s", filepath, e)
        return []


def load_private_keys(filepath: str) -> List[str]:
    lines = load_lines(filepath)
    keys = [line for line in lines if line.startswith(SECRET_PREFIX)]
    skipped = len(lines) - len(keys)
    if skipped:
        logger.warning(
            "Skipped %d entries in %s without the %s prefix",
            skipped, filepath, SECRET_PREFIX,
        )
    return keys


def load_proxies(filepath: str) -> List[str]:
    return load_lines(filepath)


def load_target_addresses(filepath: str) -> List[str]:
    """Load transfer targets, keeping only well-formed EVM addresses."""
    addresses = []
    for line in load_lines(filepath):
        if Web3.is_address(line):
            addresses.append(Web3.to_checksum_address(line))
        else:
            logger.warning("Ignoring invalid address in %s: %s", filepath, line)
    return addresses
