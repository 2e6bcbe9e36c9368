# FILE: netperf/sniffer.py
# PURPOSE: Live packet capture on one network device using Scapy.
# ==============================================================================
import logging

from scapy.all import conf, sniff
from scapy.error import Scapy_Exception

from .config import CAPTURE_FILTER

logger = logging.getLogger(__name__)


class PacketSource:
    """A live, non-promiscuous capture on one device restricted by a BPF filter."""

    def __init__(self, device, bpf_filter=CAPTURE_FILTER, promiscuous=False, poll_interval=1.0):
        self.device = device
        self.poll_interval = poll_interval
        self._sock = conf.L2listen(iface=device, promisc=promiscuous, filter=bpf_filter)

    def run(self, callback, cancel):
        """Feeds every captured packet to ``callback`` until ``cancel`` is set."""
        while not cancel.is_set():
            sniff(opened_socket=self._sock, prn=callback, store=False,
                  timeout=self.poll_interval, stop_filter=lambda _pkt: cancel.is_set())

    def close(self):
        self._sock.close()


def capture_loop(device, callback, cancel, source_factory=PacketSource, **source_options):
    """Target function for one capture thread.

    A device that can't be opened (no permission, interface down, bad filter)
    is logged and given up on; there is no retry.
    """
    try:
        source = source_factory(device, **source_options)
    except (OSError, Scapy_Exception) as e:
        logger.warning("capture on %s not started: %s", device, e)
        return
    logger.info("capturing on %s", device)
    try:
        source.run(callback, cancel)
    except (OSError, Scapy_Exception) as e:
        logger.warning("capture on %s stopped: %s", device, e)
    finally:
        source.close()
        logger.debug("capture on %s closed", device)
