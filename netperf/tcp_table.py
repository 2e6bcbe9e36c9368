# FILE: netperf/tcp_table.py
# PURPOSE: Parses the kernel's IPv4 TCP connection table (/proc/net/tcp).
import re
import socket
import struct
from typing import Iterable, List, NamedTuple, Optional

#   sl  local_address rem_address   st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode
#   0: 00000000:1BC1 00000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 1417548 1 ...
_ENDPOINT_RE = re.compile(r"^([0-9A-Fa-f]{8}):([0-9A-Fa-f]{4})$")
_MIN_FIELDS = 10
_INODE_FIELD = 9


class TcpRow(NamedTuple):
    local_address: int
    local_port: int
    remote_address: int
    remote_port: int
    inode: int


def _parse_endpoint(field: str):
    match = _ENDPOINT_RE.match(field)
    if not match:
        return None
    return int(match.group(1), 16), int(match.group(2), 16)


def parse_tcp_line(line: str) -> Optional[TcpRow]:
    """Returns the row for one data line, or None if the line doesn't fit the table layout."""
    fields = line.split()
    if len(fields) < _MIN_FIELDS:
        return None
    local = _parse_endpoint(fields[1])
    remote = _parse_endpoint(fields[2])
    if local is None or remote is None or not fields[_INODE_FIELD].isdigit():
        return None
    return TcpRow(local[0], local[1], remote[0], remote[1], int(fields[_INODE_FIELD]))


def parse_tcp_table(lines: Iterable[str]) -> List[TcpRow]:
    rows = []
    lines = iter(lines)
    next(lines, None)  # header
    for line in lines:
        row = parse_tcp_line(line)
        if row is not None:
            rows.append(row)
    return rows


# The kernel prints each address as the raw 32-bit word in host byte order.
def address_to_key(ip: str) -> int:
    """Encodes a dotted IPv4 address the way it appears in the TCP table."""
    return struct.unpack("=I", socket.inet_aton(ip))[0]

