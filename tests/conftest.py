import os
import time
from queue import Empty, Queue
from threading import Lock

import pytest

from netperf.tcp_table import address_to_key

TCP_HEADER = ("  sl  local_address rem_address   st tx_queue rx_queue tr tm->when retrnsmt"
              "   uid  timeout inode\n")


def tcp_line(slot, local_ip, local_port, remote_ip, remote_port, inode):
    return (f"{slot:4d}: {address_to_key(local_ip):08X}:{local_port:04X} "
            f"{address_to_key(remote_ip):08X}:{remote_port:04X} 01 00000000:00000000 "
            f"00:00000000 00000000  1000        0 {inode} 1 ffff8800733a2140 20 4 30 10 -1\n")


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def proc_root(tmp_path):
    """Builds a fake /proc: add_process(pid, {fd: link target})."""
    root = tmp_path / "proc"
    root.mkdir()

    def add_process(pid, fds):
        fd_dir = root / str(pid) / "fd"
        fd_dir.mkdir(parents=True)
        for fd, target in fds.items():
            os.symlink(target, fd_dir / str(fd))

    add_process.root = str(root)
    return add_process


@pytest.fixture
def tcp_table(tmp_path):
    """Writes a fake /proc/net/tcp from tcp_line() strings and returns its path."""
    path = tmp_path / "tcp"

    def write(*lines):
        path.write_text(TCP_HEADER + "".join(lines))
        return str(path)

    return write


class FakeSource:
    """Stands in for a live capture; packets put on ``packets`` reach the callback."""

    def __init__(self, device):
        self.device = device
        self.options = {}
        self.packets = Queue()
        self.consumed = 0
        self.closed = False
        self.running = False

    def run(self, callback, cancel):
        self.running = True
        while not cancel.is_set():
            try:
                packet = self.packets.get(timeout=0.02)
            except Empty:
                continue
            callback(packet)
            self.consumed += 1

    def close(self):
        self.closed = True


class FakeSources:
    """source_factory that hands out one FakeSource per device."""

    def __init__(self):
        self.by_device = {}
        self.opened = []
        self._lock = Lock()

    def get(self, device):
        with self._lock:
            if device not in self.by_device:
                self.by_device[device] = FakeSource(device)
            return self.by_device[device]

    def __call__(self, device, **options):
        source = self.get(device)
        source.options = options
        self.opened.append(device)
        return source


@pytest.fixture
def sources():
    return FakeSources()
