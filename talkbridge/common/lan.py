"""LAN address discovery for connection banners and share links"""

import logging
import socket
from typing import List

logger = logging.getLogger(__name__)


def lanAddresses_get() -> List[str]:
    """
    Collect non-loopback IPv4 addresses of this machine

    The default-route address comes first, followed by any other addresses
    the hostname resolves to.

    Returns:
        Deduplicated list of dotted-quad addresses
    """
    addresses: List[str] = []

    try:
        probe = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            # No packet is sent; connect only selects the outbound interface
            probe.connect(("8.8.8.8", 80))
            addresses.append(probe.getsockname()[0])
        finally:
            probe.close()
    except OSError as e:
        logger.debug(f"Default-route probe failed: {e}")

    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
        addresses.extend(info[4][0] for info in infos)
    except OSError as e:
        logger.debug(f"Hostname address lookup failed: {e}")

    unique: List[str] = []
    for address in addresses:
        if address.startswith("127.") or address == "0.0.0.0" or address in unique:
            continue
        unique.append(address)
    return unique


def lanLinks_get(port: int) -> List[str]:
    """
    Build http links a phone on the same network can use

    Args:
        port: Relay port

    Returns:
        Deduplicated list of http://<ip>:<port> links
    """
    return [f"http://{address}:{port}" for address in lanAddresses_get()]
