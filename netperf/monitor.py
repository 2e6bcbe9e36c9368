# FILE: netperf/monitor.py
# PURPOSE: Owns the per-pid counters and socket table; refreshed once per tick.
import logging
from threading import Event, Lock
from typing import Dict, Iterable, Tuple

from .config import NetPerfConfig
from .devices import DeviceCaptureManager, list_interface_addresses
from .pidstat import PidStat
from .processor import RX, TX, classify, decode
from .sniffer import PacketSource
from .socket_table import SocketTable, build_socket_table

logger = logging.getLogger(__name__)


class NetPerf:
    """Per-process network byte accounting.

    Lifecycle:
        1. NetPerf.init(pids) builds the first socket table and starts capture
        2. update(pids) is called every tick with the current tracked pids
        3. stats(pid) drains a process's counters
        4. shutdown() stops every capture thread
    """

    def __init__(self, config: NetPerfConfig = None, source_factory=PacketSource,
                 list_devices=list_interface_addresses):
        self.config = config or NetPerfConfig()
        self.pstats: Dict[int, PidStat] = {}
        self._table = SocketTable()
        self._cancel = Event()
        # guards pstats membership and the table swap; packet readers never take it
        self._lock = Lock()
        # held for a whole update so an older rebuild can never replace a newer table
        self._update_lock = Lock()
        self.devices = DeviceCaptureManager(
            self.account, self._cancel, self.config,
            source_factory=source_factory, list_devices=list_devices,
        )

    @classmethod
    def init(cls, pids: Iterable[int], config: NetPerfConfig = None, **kwargs) -> "NetPerf":
        """Builds a ready NetPerf. Raises SocketTableError if the TCP table can't be read."""
        netperf = cls(config, **kwargs)
        netperf.update(pids)
        return netperf

    @property
    def table(self) -> SocketTable:
        return self._table

    @property
    def started_devices(self):
        return self.devices.started

    def update(self, pids: Iterable[int]):
        """Tracks any new pids, rebuilds the socket table and starts newly needed captures.

        On SocketTableError the previous table is kept.
        """
        pids = list(pids)
        with self._update_lock:
            with self._lock:
                for pid in pids:
                    if pid not in self.pstats:
                        self.pstats[pid] = PidStat()

            table = build_socket_table(pids, self.config.tcp_path, self.config.proc_root)
            with self._lock:
                self._table = table
            self.devices.discover(table)

    def prune(self, pids: Iterable[int]):
        """Forgets counters for every pid not in ``pids``."""
        keep = set(pids)
        with self._lock:
            for pid in [p for p in self.pstats if p not in keep]:
                del self.pstats[pid]

    def account(self, packet):
        """Capture callback: credits one packet to its process, if it has one."""
        segment = decode(packet)
        if segment is None:
            return
        attribution = classify(segment, self._table)
        if attribution is None:
            return
        pstat = self.pstats.get(attribution.pid)
        if pstat is None:
            return
        if attribution.direction == TX:
            pstat.add_tx(segment.length)
        elif attribution.direction == RX:
            pstat.add_rx(segment.length)

    def stats(self, pid: int) -> Tuple[int, int]:
        """Returns (tx, rx) bytes since the last call for ``pid``; (0, 0) if untracked."""
        pstat = self.pstats.get(pid)
        if pstat is None:
            return 0, 0
        return pstat.get()

    def shutdown(self, wait=False, timeout=None) -> bool:
        """Signals every capture thread to stop.

        Waiting is opt-in: a capture blocked in a read only notices the signal
        after its poll interval, and some drivers take longer than that.
        """
        self._cancel.set()
        if not wait:
            return True
        stopped = self.devices.join(timeout)
        if not stopped:
            logger.warning("some capture threads did not stop within %ss", timeout)
        return stopped
