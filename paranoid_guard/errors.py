from enum import Enum


class RejectionKind(str, Enum):
    INVALID_ADDRESS_FAMILY = "invalid_address_family"
    INVALID_SOCKET_TYPE = "invalid_socket_type"
    INVALID_TRANSPORT_PROTOCOL = "invalid_transport_protocol"
    PORT_NOT_ALLOWED = "port_not_allowed"
    IP_NOT_ALLOWED = "ip_not_allowed"


class ParanoidGuardError(Exception):
    """Base class for errors raised by paranoid-guard."""


class PolicyViolation(ParanoidGuardError, PermissionError):
    """Raised by the execution wrapper when a connection was rejected and the
    policy asks for errors instead of silent failures."""

    def __init__(self, reason, *, kind=None):
        super().__init__(reason)
        self.reason = str(reason)
        self.kind = kind


class InvalidPolicyInput(ParanoidGuardError, ValueError):
    """Raised when a policy is built from malformed whitelist/blacklist input."""


class InterceptorStateError(ParanoidGuardError, RuntimeError):
    """Raised when a hook is called in a state the connection protocol forbids."""


class ProxyNotAllowed(ParanoidGuardError):
    """Raised when a protected transfer is routed through an HTTP proxy."""


class ConnectionRejected(OSError):
    """Aborts a connection attempt whose candidate address was rejected.

    Being an ``OSError`` lets urllib3 report it like any other failed
    connection, so a rejected transfer looks like an ordinary network failure
    unless the caller inspects the rejection reason.
    """

    def __init__(self, reason, *, kind=None):
        super().__init__(reason)
        self.reason = str(reason)
        self.kind = kind
