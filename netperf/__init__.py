"""netperf: per-process network accounting from /proc and live packet capture."""

from .config import NetPerfConfig
from .errors import NetPerfError, SocketTableError
from .monitor import NetPerf
from .pidstat import PidStat
from .socket_table import SocketTable, build_socket_table

__all__ = [
    "NetPerf", "NetPerfConfig", "NetPerfError", "PidStat",
    "SocketTable", "SocketTableError", "build_socket_table",
]
