# FILE: netperf/config.py
# PURPOSE: Tunables for the per-process network accounting engine.
from dataclasses import dataclass
from typing import Tuple

TCP_TABLE_PATH = "/proc/net/tcp"
PROC_ROOT = "/proc"
# Only enough of the traffic to read TCP ports is needed.
CAPTURE_FILTER = "tcp"


@dataclass
class NetPerfConfig:
    tcp_path: str = TCP_TABLE_PATH
    proc_root: str = PROC_ROOT
    bpf_filter: str = CAPTURE_FILTER
    promiscuous: bool = False
    # Seconds a capture read waits before re-checking for shutdown.
    poll_interval: float = 1.0
    skip_devices: Tuple[str, ...] = ("lo",)
