# FILE: netperf/pidstat.py
# PURPOSE: Byte counters for a single tracked process.
from threading import Lock
from typing import Tuple


class PidStat:
    """Received/transmitted bytes seen since the last read.

    Capture threads add to the counters, the process list drains them once
    per tick. Both sides go through the same lock so a byte is reported
    exactly once.
    """

    def __init__(self):
        self._lock = Lock()
        self.tx_bytes = 0
        self.rx_bytes = 0

    def add_tx(self, nbytes: int):
        with self._lock:
            self.tx_bytes += nbytes

    def add_rx(self, nbytes: int):
        with self._lock:
            self.rx_bytes += nbytes

    def get(self) -> Tuple[int, int]:
        """Returns (tx, rx) and resets both counters to zero."""
        with self._lock:
            tx, rx = self.tx_bytes, self.rx_bytes
            self.tx_bytes = 0
            self.rx_bytes = 0
        return tx, rx
