# FILE: netperf/processor.py
# PURPOSE: Turns captured packets into per-process tx/rx byte counts.
from typing import NamedTuple, Optional

from scapy.all import TCP

from .socket_table import SocketTable

TX = "tx"
RX = "rx"


class TCPSegment(NamedTuple):
    src_port: int
    dst_port: int
    length: int


class Attribution(NamedTuple):
    pid: int
    direction: str


def decode(packet) -> Optional[TCPSegment]:
    """Pulls the ports and frame length out of a captured packet; None if it carries no TCP."""
    if TCP not in packet:
        return None
    tcp = packet[TCP]
    # Whole frame, headers included. Slight overcount, but stable.
    length = packet.wirelen or len(packet)
    return TCPSegment(int(tcp.sport), int(tcp.dport), length)


def classify(segment: TCPSegment, table: SocketTable) -> Optional[Attribution]:
    """Decides which tracked process a segment belongs to, and in which direction."""
    if segment.src_port in table.by_local_port:
        pid = table.by_remote_port.get(segment.dst_port)
        if pid is not None:
            return Attribution(pid, TX)
    pid = table.by_remote_port.get(segment.src_port)
    if pid is not None and segment.dst_port in table.by_local_port:
        return Attribution(pid, RX)
    return None
