import ipaddress
from dataclasses import dataclass
from typing import Union

from .errors import InvalidPolicyInput

_ALL_ONES = 0xFFFFFFFF


@dataclass(frozen=True)
class Cidr:
    network: int
    prefix_length: int
    text: str = ""

    def __str__(self):
        return self.text or f"{ipaddress.IPv4Address(self.network)}/{self.prefix_length}"


def parse_cidr(text) -> Cidr:
    """Parse ``a.b.c.d/len`` (or a bare address, meaning /32).

    Host bits beyond the prefix are kept as given; matching masks both sides.
    """
    if not isinstance(text, str):
        raise InvalidPolicyInput(f"CIDR must be a string, got {type(text).__name__}")
    raw = text.strip()
    address, sep, prefix = raw.partition("/")
    try:
        network = int(ipaddress.IPv4Address(address.strip()))
    except ValueError as exc:
        raise InvalidPolicyInput(f"Invalid IPv4 CIDR: {text!r}") from exc

    if not sep:
        return Cidr(network, 32, raw)
    prefix = prefix.strip()
    if not (prefix.isascii() and prefix.isdigit()):
        raise InvalidPolicyInput(f"Invalid CIDR prefix length: {text!r}")
    prefix_length = int(prefix)
    if prefix_length > 32:
        raise InvalidPolicyInput(f"CIDR prefix length out of range 0..32: {text!r}")
    return Cidr(network, prefix_length, raw)


def prefix_mask(prefix_length: int) -> int:
    # /0 matches everything, /32 is an exact match.
    if prefix_length <= 0:
        return 0
    if prefix_length >= 32:
        return _ALL_ONES
    return ~((1 << (32 - prefix_length)) - 1) & _ALL_ONES


def ip_to_int(ip) -> Union[int, None]:
    if isinstance(ip, int) and not isinstance(ip, bool):
        return ip & _ALL_ONES
    try:
        return int(ipaddress.IPv4Address(str(ip).strip()))
    except ValueError:
        return None


def cidr_match(ip, cidr: Cidr) -> bool:
    value = ip_to_int(ip)
    if value is None:
        return False
    mask = prefix_mask(cidr.prefix_length)
    return (value & mask) == (cidr.network & mask)
