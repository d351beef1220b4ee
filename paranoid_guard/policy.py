import socket
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .cidr import cidr_match, ip_to_int, parse_cidr
from .errors import InvalidPolicyInput, RejectionKind
from .local_address import detect_local_address
from .utils import is_truthy

DEFAULT_IP_BLACKLIST = (
    "0.0.0.0/8",
    "10.0.0.0/8",
    "100.64.0.0/10",
    "127.0.0.0/8",
    "169.254.0.0/16",
    "172.16.0.0/12",
    "192.0.0.0/29",
    "192.0.2.0/24",
    "192.88.99.0/24",
    "192.168.0.0/16",
    "198.18.0.0/15",
    "198.51.100.0/24",
    "203.0.113.0/24",
    "224.0.0.0/4",
    "240.0.0.0/4",
)
DEFAULT_PORT_WHITELIST = (80, 443, 8080, 8443)


class FailureMode(str, Enum):
    SILENT = "silent"
    RAISE = "raise"


@dataclass(frozen=True)
class CandidateAddress:
    family: int
    socket_type: int
    protocol: int
    ip: str
    port: int

    @classmethod
    def from_addrinfo(cls, addrinfo):
        family, socket_type, protocol, _canonname, sockaddr = addrinfo
        return cls(family, socket_type, protocol, sockaddr[0], sockaddr[1])

    @property
    def sockaddr(self):
        return (self.ip, self.port)


@dataclass(frozen=True)
class ValidationOutcome:
    accepted: bool
    reason: Optional[str] = None
    kind: Optional[RejectionKind] = None

    @classmethod
    def accept(cls):
        return cls(True)

    @classmethod
    def reject(cls, kind, reason):
        return cls(False, reason, kind)


def _as_sequence(name, value, default):
    if value is None:
        return tuple(default)
    if isinstance(value, (str, bytes, bytearray)) or not isinstance(value, Sequence):
        raise InvalidPolicyInput(
            f"{name} must be a list-like sequence, got {type(value).__name__}"
        )
    return tuple(value)


def _normalize_cidrs(name, value, default):
    cidrs = []
    for entry in _as_sequence(name, value, default):
        cidr = parse_cidr(entry)
        if cidr not in cidrs:
            cidrs.append(cidr)
    return tuple(cidrs)


def _normalize_ports(name, value, default):
    ports = set()
    for entry in _as_sequence(name, value, default):
        if isinstance(entry, bool) or not isinstance(entry, int):
            raise InvalidPolicyInput(f"{name} entries must be integers, got {entry!r}")
        if not 0 <= entry <= 65535:
            raise InvalidPolicyInput(f"{name} entry out of range 0..65535: {entry}")
        ports.add(entry)
    return frozenset(ports)


def _normalize_failure_mode(value):
    if isinstance(value, FailureMode):
        return value
    try:
        return FailureMode(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidPolicyInput(
            f"failure_mode must be one of 'silent', 'raise', got {value!r}"
        ) from exc


class AddressPolicy:
    """
    Accept/reject decisions for concrete (IP, port) connection candidates.

    The IP whitelist punches holes through the IP blacklist. For ports the
    blacklist always applies, even to whitelisted ports.
    """

    def __init__(
        self,
        ip_whitelist=None,
        ip_blacklist=None,
        port_whitelist=None,
        port_blacklist=None,
        detect_local_addresses=True,
        failure_mode=FailureMode.SILENT,
        local_address_detector=None,
    ):
        self._ip_whitelist = _normalize_cidrs("ip_whitelist", ip_whitelist, ())
        self._ip_blacklist = _normalize_cidrs("ip_blacklist", ip_blacklist, DEFAULT_IP_BLACKLIST)
        self._port_whitelist = _normalize_ports("port_whitelist", port_whitelist, DEFAULT_PORT_WHITELIST)
        self._port_blacklist = _normalize_ports("port_blacklist", port_blacklist, ())
        self._detect_local_addresses = bool(detect_local_addresses)
        self._failure_mode = _normalize_failure_mode(failure_mode)
        self._local_address_detector = local_address_detector or detect_local_address

    @classmethod
    def from_mapping(cls, mapping, **overrides):
        if mapping is None:
            mapping = {}
        if not isinstance(mapping, Mapping):
            raise InvalidPolicyInput(
                f"Policy configuration must be a mapping, got {type(mapping).__name__}"
            )
        options = {
            "ip_whitelist": mapping.get("ip_whitelist"),
            "ip_blacklist": mapping.get("ip_blacklist"),
            "port_whitelist": mapping.get("port_whitelist"),
            "port_blacklist": mapping.get("port_blacklist"),
            "detect_local_addresses": is_truthy(mapping.get("detect_local_addresses", True)),
            "failure_mode": mapping.get("failure_mode", FailureMode.SILENT),
        }
        options.update(overrides)
        return cls(**options)

    @property
    def ip_whitelist(self):
        return self._ip_whitelist

    @property
    def ip_blacklist(self):
        return self._ip_blacklist

    @property
    def port_whitelist(self):
        return self._port_whitelist

    @property
    def port_blacklist(self):
        return self._port_blacklist

    @property
    def detect_local_addresses(self):
        return self._detect_local_addresses

    @property
    def failure_mode(self):
        return self._failure_mode

    def validate_port(self, port):
        if self._port_whitelist and port not in self._port_whitelist:
            return False
        if port in self._port_blacklist:
            return False
        return True

    def validate_ip(self, ip):
        # Anything that is not an IPv4 address (IPv6, hostnames, None) is rejected.
        if ip_to_int(ip) is None:
            return False
        for cidr in self._ip_whitelist:
            if cidr_match(ip, cidr):
                return True
        for cidr in self._ip_blacklist:
            if cidr_match(ip, cidr):
                return False
        if self._detect_local_addresses:
            if self._local_address_detector() == ip:
                return False
        return True

    def validate_candidate(self, candidate: CandidateAddress) -> ValidationOutcome:
        if candidate.family != socket.AF_INET:
            return ValidationOutcome.reject(
                RejectionKind.INVALID_ADDRESS_FAMILY,
                f"Invalid address family {int(candidate.family)}",
            )
        if candidate.socket_type != socket.SOCK_STREAM:
            return ValidationOutcome.reject(
                RejectionKind.INVALID_SOCKET_TYPE,
                f"Invalid socket type {int(candidate.socket_type)}",
            )
        if candidate.protocol != socket.IPPROTO_TCP:
            return ValidationOutcome.reject(
                RejectionKind.INVALID_TRANSPORT_PROTOCOL,
                f"Invalid protocol {int(candidate.protocol)}",
            )
        if not self.validate_port(candidate.port):
            return ValidationOutcome.reject(
                RejectionKind.PORT_NOT_ALLOWED,
                f"Invalid port {candidate.port}",
            )
        if not self.validate_ip(candidate.ip):
            return ValidationOutcome.reject(
                RejectionKind.IP_NOT_ALLOWED,
                f"Invalid IP {candidate.ip}",
            )
        return ValidationOutcome.accept()

    def __repr__(self):
        return (
            f"AddressPolicy(ip_whitelist={[str(c) for c in self._ip_whitelist]}, "
            f"ip_blacklist={[str(c) for c in self._ip_blacklist]}, "
            f"port_whitelist={sorted(self._port_whitelist)}, "
            f"port_blacklist={sorted(self._port_blacklist)}, "
            f"detect_local_addresses={self._detect_local_addresses}, "
            f"failure_mode={self._failure_mode.value!r})"
        )
