"""
Logging utilities for the gateway.

Provides a consistent logging format and keeps secrets out of log lines.
"""

import logging
import sys

_NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # httpx logs full request lines at INFO; keep them out of normal output.
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def mask_secret(value: str | None, visible: int = 4) -> str:
    """Return a short, non-reversible preview of an opaque value for logs."""
    if not value:
        return "<empty>"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}…({len(value)} chars)"


__all__ = ["configure_logging", "mask_secret"]
