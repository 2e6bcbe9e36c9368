import pytest
from scapy.all import IP, TCP, UDP, Raw

from netperf.processor import RX, TX, Attribution, TCPSegment, classify, decode
from netperf.socket_table import SocketTable


@pytest.fixture
def table():
    return SocketTable(by_local_address={0: 42}, by_local_port={5000: 42}, by_remote_port={6000: 42})


def tcp_packet(sport, dport, size=1000):
    header = IP(src="10.0.0.5", dst="10.0.0.9") / TCP(sport=sport, dport=dport)
    return header / Raw(b"\x00" * (size - len(header)))


def test_decode_tcp_uses_whole_frame_length():
    assert decode(tcp_packet(5000, 6000)) == TCPSegment(5000, 6000, 1000)


def test_decode_prefers_wire_length():
    packet = tcp_packet(5000, 6000, size=100)
    packet.wirelen = 1514
    assert decode(packet).length == 1514


def test_decode_non_tcp():
    assert decode(IP(src="10.0.0.5", dst="10.0.0.9") / UDP(sport=5000, dport=6000)) is None


def test_outbound_is_transmit(table):
    assert classify(TCPSegment(5000, 6000, 1000), table) == Attribution(42, TX)


def test_inbound_is_receive(table):
    assert classify(TCPSegment(6000, 5000, 1000), table) == Attribution(42, RX)


@pytest.mark.parametrize("src, dst", [(5000, 7000), (7000, 5000), (6000, 7000), (1, 2), (6000, 6000)])
def test_untracked_traffic_is_dropped(table, src, dst):
    assert classify(TCPSegment(src, dst, 1000), table) is None


def test_transmit_credits_the_remote_port_owner():
    table = SocketTable(by_local_port={5000: 42}, by_remote_port={6000: 43})
    assert classify(TCPSegment(5000, 6000, 10), table) == Attribution(43, TX)
