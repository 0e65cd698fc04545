"""
Process-wide logging setup for the sync service.
"""

import logging
import sys
from typing import Iterable

# Third-party loggers that echo request URLs (including presigned upload URLs)
# or cache warnings at INFO.
_NOISY_LOGGERS = ("httpx", "botocore", "googleapiclient.discovery_cache")


def configure_logging(level: str = "INFO", *, quiet: Iterable[str] = _NOISY_LOGGERS) -> None:
    """Send ``level`` and above to stdout in the pipe-separated service format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["configure_logging"]
