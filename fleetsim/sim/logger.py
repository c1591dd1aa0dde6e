from __future__ import annotations

"""
File: fleetsim/sim/logger.py
Purpose: Logging setup and an in-memory log sink for simulation runs.
Key responsibilities:
- Configure the process-wide log format used by the service.
- Buffer formatted records so a run's log can be inspected or dumped later.
"""

from datetime import datetime, timezone
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s fleet-sim %(message)s"


class SimLogHandler(logging.Handler):
    """Logging handler that keeps formatted lines in memory."""
    def __init__(self, level: int = logging.INFO, enabled: bool = True) -> None:
        super().__init__(level=level)
        self.enabled = enabled
        self._buffer: list[str] = []

    @property
    def lines(self) -> list[str]:
        return list(self._buffer)

    def emit(self, record: logging.LogRecord) -> None:
        if not self.enabled:
            return
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        try:
            message = record.getMessage()
        except Exception:  # noqa: BLE001
            self.handleError(record)
            return
        self._buffer.append(f"[{stamp} UTC] [{record.levelname}] {message}")

    def clear(self) -> None:
        self._buffer.clear()

    def dump_to_string(self) -> str:
        return "".join(f"{line}\n" for line in self._buffer)


def configure_logging(level: str | int = "INFO", buffer_handler: SimLogHandler | None = None) -> None:
    """Set up root logging and optionally attach a buffering handler to the fleet-sim loggers."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if buffer_handler is not None:
        sim_logger = logging.getLogger("fleet-sim")
        if buffer_handler not in sim_logger.handlers:
            sim_logger.addHandler(buffer_handler)
