import socket
from typing import Optional, Tuple

from .utils import logger

DEFAULT_PROBE_TARGET = ("8.8.8.8", 53)
DEFAULT_PROBE_TIMEOUT = 1.0


def detect_local_address(
    probe: Tuple[str, int] = DEFAULT_PROBE_TARGET,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
) -> Optional[str]:
    """
    Return the local IP of the interface the OS would use to reach ``probe``.

    Connecting a UDP socket only asks the routing table for a source address;
    no packet is sent. Not foolproof: it finds the address used for default
    routing, not every address assigned to the host. Returns None when no
    address can be determined.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.settimeout(timeout)
            sock.connect(probe)
            address = sock.getsockname()[0]
    except OSError as exc:
        logger.debug(f"Local address detection failed: {exc}")
        return None

    if not address or address == "0.0.0.0":
        return None
    return address
