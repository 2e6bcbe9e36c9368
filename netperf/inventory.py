# FILE: netperf/inventory.py
# PURPOSE: Finds which open file descriptors of the tracked processes are sockets.
import os
import re
from typing import Dict, Iterable

from .config import PROC_ROOT

# socket:[1349011]
_SOCKET_LINK_RE = re.compile(r"^socket:\[(\d+)\]$")


def scan_socket_inodes(pids: Iterable[int], proc_root: str = PROC_ROOT) -> Dict[int, int]:
    """Maps socket inode -> pid for every socket held open by one of ``pids``.

    Processes that exited or whose fd directory we may not read are skipped
    for this pass; the next tick works from a fresh pid list anyway.
    """
    inode_to_pid = {}
    for pid in pids:
        fd_dir = os.path.join(proc_root, str(pid), "fd")
        try:
            names = os.listdir(fd_dir)
        except OSError:
            continue
        for name in names:
            try:
                target = os.readlink(os.path.join(fd_dir, name))
            except OSError:
                # fd closed between listdir and readlink
                continue
            match = _SOCKET_LINK_RE.match(target)
            if match:
                inode_to_pid[int(match.group(1))] = pid
    return inode_to_pid
