"""Host helpers: download folder, network addresses and timestamps."""

import socket
from datetime import datetime
from pathlib import Path
from typing import List

import psutil


def download_dir() -> Path:
    """Return ``~/Downloads`` when it exists, otherwise the home directory."""
    home = Path.home()
    downloads = home / "Downloads"
    if downloads.is_dir():
        return downloads
    return home


def lan_addresses() -> List[str]:
    """IPv4 addresses of every non-loopback network interface."""
    addresses: List[str] = []
    for interface in psutil.net_if_addrs().values():
        for addr in interface:
            if addr.family == socket.AF_INET and not addr.address.startswith("127."):
                addresses.append(addr.address)
    return addresses


def timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")
