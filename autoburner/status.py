"""
Status snapshot and log ring buffer consumed by an external dashboard bridge.
"""
import logging
import re
from collections import deque
from dataclasses import asdict, dataclass
from typing import Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

LOG_BUFFER_SIZE = 300
LOG_LINE_FORMAT = "%(asctime)s %(message)s"
LOG_TIME_FORMAT = "%H:%M:%S"

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


@dataclass
class StatusSnapshot:
    """Display fields, kept as the strings shown to the operator."""
    wallet: str = "-"
    mint: str = "-"
    sol: str = "-"
    claimed: str = "-"
    last_action: str = "-"
    next: str = "-"
    sol_usd: str = "-"
    token_usd: str = "-"
    burned: str = "-"
    burn_value: str = "-"


StatusListener = Callable[[StatusSnapshot], None]


class StatusReporter:
    """Holds the current snapshot and pushes every update to listeners."""

    def __init__(self, wallet: str = "-", mint: str = "-"):
        self.snapshot = StatusSnapshot(wallet=wallet, mint=mint)
        self._listeners: List[StatusListener] = []

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def update(self, **fields: str) -> StatusSnapshot:
        """
        Set snapshot fields and notify listeners.

        Raises:
            AttributeError: If a field name is not part of the snapshot
        """
        for name, value in fields.items():
            if not hasattr(self.snapshot, name):
                raise AttributeError(f"Unknown status field: {name}")
            setattr(self.snapshot, name, str(value))
        self._emit()
        return self.snapshot

    def as_dict(self) -> Dict[str, str]:
        return asdict(self.snapshot)

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.snapshot)
            except Exception as e:
                logger.debug(f"Status listener failed: {e}")


class LogBuffer(logging.Handler):
    """
    Logging handler keeping the most recent records in memory.

    Records are stored as {"level": ..., "text": "HH:MM:SS message"} with
    ANSI colors stripped.
    """

    def __init__(self, capacity: int = LOG_BUFFER_SIZE, level: int = logging.INFO):
        super().__init__(level=level)
        self.records: Deque[Dict[str, str]] = deque(maxlen=capacity)
        self.setFormatter(logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_TIME_FORMAT))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = _ANSI_ESCAPE.sub("", self.format(record))
        except Exception:
            self.handleError(record)
            return
        self.records.append({"level": record.levelname.lower(), "text": text})

    def snapshot(self, limit: Optional[int] = None) -> List[Dict[str, str]]:
        """Buffered entries, oldest first (optionally only the last `limit`)."""
        entries = list(self.records)
        if limit is not None:
            entries = entries[-limit:]
        return entries
