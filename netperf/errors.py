# FILE: netperf/errors.py
# PURPOSE: Exceptions raised by the accounting engine.


class NetPerfError(Exception):
    pass


class SocketTableError(NetPerfError):
    """The kernel TCP table could not be read; the previous table stays in use."""
