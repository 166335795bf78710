"""Logging configuration for the Pharos interaction bot.

Console output is the only default sink:

1. **Console** -- :class:`SafeStreamHandler` that survives narrow Windows
   code pages by falling back to ``cp1252`` replacement encoding.
2. **File** (opt-in via ``LOG_TO_FILE=true``) --
   :class:`CompressedRotatingFileHandler` with gzip rotation (5 MiB per
   file, 3 backups) so long runs cannot grow the disk without bound.

Usage::

    from core.logging_setup import setup_logging
    setup_logging("DEBUG")
"""

import gzip
import logging
import os
import shutil
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Chatty third-party loggers kept at WARNING
NOISY_LOGGERS = ("web3", "urllib3", "aiohttp.access", "asyncio")


class CompressedRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that gzip-compresses rotated log files."""

    def rotation_filename(self, default_name: str) -> str:
        return f"{default_name}.gz"

    def rotate(self, source: str, dest: str) -> None:
        """Compress *source* into *dest* and remove *source*."""
        with open(source, "rb") as f_in:
            with gzip.open(dest, "wb") as f_out:
                shutil.copyfileobj(f_in, f_out)
        os.remove(source)


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that never crashes on unencodable characters."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            stream = self.stream
            try:
                stream.write(msg + self.terminator)
            except UnicodeEncodeError:
                safe_msg = msg.encode("cp1252", errors="replace").decode("cp1252")
                stream.write(safe_msg + self.terminator)
            self.flush()
        except Exception:
            self.handleError(record)


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure the root logger.

    Args:
        log_level: Logging level name (``"DEBUG"``, ``"INFO"``...).
        log_to_file: Also write a compressed rotating log file.
        log_file: Path of that file (default ``logs/pharos_bot.log``).
    """
    if sys.platform == "win32" and hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: List[logging.Handler] = [SafeStreamHandler(sys.stdout)]
    if log_to_file:
        log_path = log_file or os.path.join("logs", "pharos_bot.log")
        directory = os.path.dirname(log_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers.append(
            CompressedRotatingFileHandler(
                log_path,
                maxBytes=5 * 1024 * 1024,
                backupCount=3,
                encoding="utf-8",
            )
        )

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
