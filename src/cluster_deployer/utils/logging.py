"""Logging helpers."""

from __future__ import annotations

import logging
from typing import List, Optional

_LOGGING_CONFIGURED = False


def get_logger(name: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
    global _LOGGING_CONFIGURED
    if not _LOGGING_CONFIGURED:
        logging.basicConfig(
            level=level,
            format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
        )
        _LOGGING_CONFIGURED = True
    return logging.getLogger(name)


class LogSink:
    """Append-only status/error line sink for one deployment run.

    Every line is kept in memory (for the run log) and forwarded to the
    standard ``logging`` tree.
    """

    def __init__(self, name: str = "cluster_deployer.run") -> None:
        self._logger = logging.getLogger(name)
        self.lines: List[str] = []

    def status(self, message: str) -> None:
        self.lines.append(message)
        self._logger.info(message)

    def error(self, message: str) -> None:
        self.lines.append(f"ERROR: {message}")
        self._logger.error(message)
