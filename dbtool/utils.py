"""
Utility functions for dbtool.
"""

import logging
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional


def setup_logging(log_settings: dict[str, Any]) -> None:
    """Setup logging configuration."""
    log_level = getattr(logging, log_settings.get('level', 'INFO').upper())
    log_file = log_settings.get('file')

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


@contextmanager
def interrupt_handler(cleanup: Optional[Callable[[], None]] = None) -> Iterator[None]:
    """Run cleanup when SIGINT arrives inside the block.

    The interrupt still propagates as KeyboardInterrupt. The previous handler
    is restored when the block exits.
    """
    def handle(signum, frame):
        logging.warning("Interrupted")
        if cleanup is not None:
            cleanup()
        raise KeyboardInterrupt

    # signal handlers can only be installed from the main thread
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.signal(signal.SIGINT, handle)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def format_size(size: int) -> str:
    """Human readable byte size."""
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def format_table_rows(rows: list[dict[str, Optional[str]]], columns: list[str]) -> list[str]:
    """Format query rows as aligned text lines."""
    widths = {
        col: max([len(col)] + [len(row.get(col) or "") for row in rows])
        for col in columns
    }
    lines = ["  ".join(col.ljust(widths[col]) for col in columns).rstrip()]
    for row in rows:
        lines.append("  ".join((row.get(col) or "").ljust(widths[col]) for col in columns).rstrip())
    return lines
