# FILE: dashboard/processes.py
# PURPOSE: Builds the process list rows, draining per-process network counters every tick.
import logging
import time
from dataclasses import dataclass, asdict
from threading import Lock
from typing import Dict, List, Optional, Tuple

import psutil

from netperf import NetPerf, NetPerfError

logger = logging.getLogger(__name__)

PROCESS_PREFIX = "sam-"
SORT_METHODS = {
    'c': ('cpu', True),
    'p': ('pid', False),
    'm': ('mem', True),
}


def bytes_to_mb(nbytes) -> float:
    return nbytes / 1024 / 1024


@dataclass
class ProcessRow:
    pid: int
    command: str
    cpu: float
    mem: float
    in_mbps: float
    out_mbps: float
    write_mbps: float
    read_mbps: float


def sort_rows(rows: List[ProcessRow], method: str) -> List[ProcessRow]:
    key, reverse = SORT_METHODS[method]
    return sorted(rows, key=lambda row: getattr(row, key), reverse=reverse)


class ProcessList:
    """The tracked processes and their per-tick rates.

    Processes whose name starts with ``prefix`` are tracked, or every process
    once show-all is toggled on.
    """

    def __init__(self, prefix=PROCESS_PREFIX, interval=1.0, show_all=False,
                 netperf_factory=NetPerf.init):
        self.prefix = prefix
        self.interval = interval
        self.show_all = show_all
        self.sort_method = 'c'
        self.cpu_count = psutil.cpu_count(logical=False) or psutil.cpu_count() or 1
        self.rows: List[ProcessRow] = []
        self._disk: Dict[int, Tuple[int, int]] = {}
        self._lock = Lock()
        # one refresh at a time: ticker and toggle_all both drain counters and touch _disk
        self._refresh_lock = Lock()

        try:
            self.netperf: Optional[NetPerf] = netperf_factory([p.pid for p in self._tracked()])
        except NetPerfError as e:
            logger.error("per-process network stats disabled: %s", e)
            self.netperf = None

    def _wanted(self, name) -> bool:
        return self.show_all or bool(name and name.startswith(self.prefix))

    def _tracked(self) -> List[psutil.Process]:
        return [p for p in psutil.process_iter(['name']) if self._wanted(p.info['name'])]

    def _disk_rates(self, proc) -> Tuple[float, float]:
        try:
            counters = proc.io_counters()
        except (psutil.AccessDenied, psutil.NoSuchProcess, AttributeError):
            return -1.0, -1.0
        previous = self._disk.get(proc.pid)
        self._disk[proc.pid] = (counters.write_bytes, counters.read_bytes)
        if previous is None:
            return 0.0, 0.0
        return (bytes_to_mb(counters.write_bytes - previous[0]) / self.interval,
                bytes_to_mb(counters.read_bytes - previous[1]) / self.interval)

    def update(self):
        with self._refresh_lock:
            self._refresh()

    def _refresh(self):
        procs = self._tracked()
        if self.netperf is not None:
            try:
                self.netperf.update([p.pid for p in procs])
            except NetPerfError as e:
                logger.warning("socket table refresh failed, keeping previous: %s", e)

        rows = []
        for proc in procs:
            try:
                with proc.oneshot():
                    cpu = proc.cpu_percent() / self.cpu_count
                    mem = proc.memory_percent()
            except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                logger.debug("skipping pid %s: %s", proc.pid, e)
                continue
            write_mbps, read_mbps = self._disk_rates(proc)
            tx, rx = self.netperf.stats(proc.pid) if self.netperf is not None else (0, 0)
            rows.append(ProcessRow(
                pid=proc.pid,
                command=proc.info['name'] or "",
                cpu=cpu,
                mem=mem,
                in_mbps=bytes_to_mb(rx) / self.interval,
                out_mbps=bytes_to_mb(tx) / self.interval,
                write_mbps=write_mbps,
                read_mbps=read_mbps,
            ))

        live = {row.pid for row in rows}
        self._disk = {pid: io for pid, io in self._disk.items() if pid in live}
        with self._lock:
            self.rows = sort_rows(rows, self.sort_method)

    def set_sort(self, method: str):
        if method not in SORT_METHODS:
            raise ValueError(f"unknown sort method: {method!r}")
        with self._lock:
            self.sort_method = method
            self.rows = sort_rows(self.rows, method)

    def toggle_all(self) -> bool:
        with self._refresh_lock:
            self.show_all = not self.show_all
            self._refresh()
            if not self.show_all and self.netperf is not None:
                with self._lock:
                    tracked = [row.pid for row in self.rows]
                self.netperf.prune(tracked)
            return self.show_all

    def snapshot(self) -> dict:
        with self._lock:
            return {
                'type': 'update',
                'sort': self.sort_method,
                'show_all': self.show_all,
                'network': self.netperf is not None,
                'processes': [asdict(row) for row in self.rows],
            }

    def run(self, stop):
        """Ticker thread body: refreshes every ``interval`` seconds until ``stop`` is set."""
        next_tick = time.monotonic()
        while not stop.is_set():
            next_tick += self.interval
            try:
                self.update()
            except psutil.Error as e:
                logger.warning("process list refresh failed: %s", e)
            except Exception:
                logger.exception("process list refresh failed")
            stop.wait(max(0, next_tick - time.monotonic()))

    def close(self, wait=False):
        if self.netperf is not None:
            self.netperf.shutdown(wait=wait, timeout=self.interval * 2)
