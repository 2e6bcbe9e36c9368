# FILE: netperf/devices.py
# PURPOSE: Starts one capture thread per network device our sockets live on.
import logging
import socket
import time
from threading import Lock, Thread
from typing import Dict, List

import psutil

from .config import NetPerfConfig
from .errors import NetPerfError
from .sniffer import PacketSource, capture_loop
from .tcp_table import address_to_key

logger = logging.getLogger(__name__)

# Sockets bound to 0.0.0.0 show up under this key and can be reached on any device.
ANY_ADDRESS = 0


def list_interface_addresses() -> Dict[str, List[str]]:
    """Returns {interface name: [IPv4 addresses]} for every local interface."""
    try:
        interfaces_addrs = psutil.net_if_addrs()
    except (OSError, psutil.Error) as e:
        raise NetPerfError(f"cannot list network interfaces: {e}") from e
    return {
        name: [addr.address for addr in addrs if addr.family == socket.AF_INET]
        for name, addrs in interfaces_addrs.items()
    }


class DeviceCaptureManager:
    """Keeps exactly one capture thread running per relevant device.

    Devices are only ever added. Once a device is being captured it stays
    captured for the life of the manager, even if no tracked socket needs it
    any more; all threads stop together when ``cancel`` is set.
    """

    def __init__(self, on_packet, cancel, config: NetPerfConfig = None,
                 source_factory=PacketSource, list_devices=list_interface_addresses):
        self.config = config or NetPerfConfig()
        self._on_packet = on_packet
        self._cancel = cancel
        self._source_factory = source_factory
        self._list_devices = list_devices
        self._threads: Dict[str, Thread] = {}
        self._lock = Lock()

    @property
    def started(self):
        with self._lock:
            return set(self._threads)

    def discover(self, table) -> List[str]:
        """Starts capture on devices with an address in ``table``. Returns the newly started names."""
        local_addresses = table.by_local_address
        wildcard = ANY_ADDRESS in local_addresses
        started = []
        for name, addresses in self._list_devices().items():
            if name in self.config.skip_devices or not addresses:
                continue
            if not wildcard and not any(address_to_key(a) in local_addresses for a in addresses):
                continue
            with self._lock:
                if name in self._threads:
                    continue
                self._threads[name] = self._start(name)
            started.append(name)
        if started:
            logger.info("started capture on %s", ", ".join(started))
        return started

    def _start(self, name) -> Thread:
        thread = Thread(
            target=capture_loop,
            args=(name, self._on_packet, self._cancel, self._source_factory),
            kwargs={
                'bpf_filter': self.config.bpf_filter,
                'promiscuous': self.config.promiscuous,
                'poll_interval': self.config.poll_interval,
            },
            name=f"capture-{name}",
            daemon=True,
        )
        thread.start()
        return thread

    def join(self, timeout=None) -> bool:
        """Waits for the capture threads to exit. Returns False if any is still running."""
        with self._lock:
            threads = list(self._threads.values())
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
        return not any(thread.is_alive() for thread in threads)
