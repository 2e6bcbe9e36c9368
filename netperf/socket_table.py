# FILE: netperf/socket_table.py
# PURPOSE: Snapshot of tracked TCP sockets, keyed three ways for packet lookups.
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping

from .config import PROC_ROOT, TCP_TABLE_PATH
from .errors import SocketTableError
from .inventory import scan_socket_inodes
from .tcp_table import TcpRow, parse_tcp_table

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SocketTable:
    """Which pid owns a local address, a local port or a remote port.

    Instances are never modified once built; a refresh replaces the whole
    table. ``by_remote_port`` is approximate: two connections to different
    hosts on the same remote port collapse into one entry, so traffic can be
    credited to the wrong process when both talk to e.g. port 443.
    """
    by_local_address: Mapping[int, int] = field(default_factory=dict)
    by_local_port: Mapping[int, int] = field(default_factory=dict)
    by_remote_port: Mapping[int, int] = field(default_factory=dict)

    def __len__(self):
        return len(self.by_local_port)


def table_from_rows(rows: Iterable[TcpRow], inode_to_pid: Dict[int, int]) -> SocketTable:
    by_local_address, by_local_port, by_remote_port = {}, {}, {}
    for row in rows:
        pid = inode_to_pid.get(row.inode)
        if pid is None:
            continue
        by_local_address[row.local_address] = pid
        by_local_port[row.local_port] = pid
        by_remote_port[row.remote_port] = pid
    return SocketTable(by_local_address, by_local_port, by_remote_port)


def build_socket_table(pids: Iterable[int], tcp_path: str = TCP_TABLE_PATH,
                       proc_root: str = PROC_ROOT) -> SocketTable:
    """Reads the TCP table and the tracked processes' fds into a fresh SocketTable."""
    try:
        with open(tcp_path) as f:
            rows = parse_tcp_table(f)
    except OSError as e:
        raise SocketTableError(f"cannot read {tcp_path}: {e}") from e

    inode_to_pid = scan_socket_inodes(pids, proc_root)
    table = table_from_rows(rows, inode_to_pid)
    logger.debug("socket table: %d rows, %d tracked local ports", len(rows), len(table))
    return table
