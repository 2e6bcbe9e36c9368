import logging
from threading import Event, Thread, Timer

import pytest
from scapy.all import IP, TCP
from scapy.automaton import ObjectPipe
from scapy.error import Scapy_Exception

from netperf import sniffer
from netperf.sniffer import PacketSource, capture_loop


class FakeListenSocket(ObjectPipe):
    """In-memory stand-in for a live L2 listen socket."""

    def __init__(self, **kwargs):
        super().__init__()
        self.kwargs = kwargs
        self.was_closed = False

    def close(self):
        self.was_closed = True
        super().close()


@pytest.fixture
def listen_sockets(monkeypatch):
    opened = []

    def l2listen(**kwargs):
        sock = FakeListenSocket(**kwargs)
        opened.append(sock)
        return sock

    monkeypatch.setattr(sniffer.conf, "L2listen", l2listen)
    return opened


def packet(sport, dport):
    return IP(src="10.0.0.5", dst="10.0.0.9") / TCP(sport=sport, dport=dport)


def test_opens_non_promiscuous_tcp_capture(listen_sockets):
    PacketSource("eth0", bpf_filter="tcp", promiscuous=False)

    assert len(listen_sockets) == 1
    assert listen_sockets[0].kwargs == {'iface': "eth0", 'promisc': False, 'filter': "tcp"}


def test_packets_reach_callback_until_cancelled(listen_sockets):
    source = PacketSource("eth0", poll_interval=0.05)
    sock = listen_sockets[0]
    for port in (5000, 5001, 5002):
        sock.send(packet(port, 6000))
    cancel = Event()
    seen = []

    def callback(pkt):
        seen.append(pkt[TCP].sport)
        if len(seen) == 3:
            cancel.set()

    runner = Thread(target=source.run, args=(callback, cancel))
    runner.start()
    runner.join(5)

    assert not runner.is_alive()
    assert seen == [5000, 5001, 5002]

    source.close()
    assert sock.was_closed


def test_idle_capture_returns_after_cancel(listen_sockets):
    source = PacketSource("eth0", poll_interval=0.05)
    cancel = Event()
    timer = Timer(0.2, cancel.set)
    timer.start()

    runner = Thread(target=source.run, args=(lambda pkt: None, cancel))
    runner.start()
    runner.join(5)
    timer.cancel()

    assert not runner.is_alive()


def test_capture_loop_closes_socket_on_cancel(listen_sockets):
    cancel = Event()
    cancel.set()

    capture_loop("eth0", lambda pkt: None, cancel, poll_interval=0.05)

    assert listen_sockets[0].was_closed


def test_bad_filter_gives_up_on_device(monkeypatch, caplog):
    def l2listen(**kwargs):
        raise Scapy_Exception("Failed to compile filter expression tcpp")

    monkeypatch.setattr(sniffer.conf, "L2listen", l2listen)

    with caplog.at_level(logging.WARNING, logger="netperf.sniffer"):
        capture_loop("eth0", lambda pkt: None, Event(), bpf_filter="tcpp")

    assert "capture on eth0 not started" in caplog.text
