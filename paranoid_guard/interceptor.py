"""
Connection interception protocol.

Every candidate address goes through two hooks, mirroring the connection
path of the transfer engine:

1. ``open_socket`` validates the candidate. On rejection it records the reason
   on the per-request ``ConnectionContext`` and still returns a harmless
   placeholder socket. Some engines hang if socket creation fails outright,
   so the hook never fails at creation time.
2. ``check_socket`` runs before ``connect()`` and reports whether the context
   holds a rejection, which makes the engine abort before any bytes move.

Per attempt the state goes Unvalidated -> Accepted (real socket, no reason)
or Unvalidated -> Rejected (placeholder socket, reason set). The check hook is
terminal. The placeholder is never connected and is closed like any other
socket.
"""

import socket
from dataclasses import dataclass
from typing import Optional

from .errors import ConnectionRejected, InterceptorStateError, RejectionKind
from .policy import AddressPolicy, CandidateAddress
from .utils import audit, logger


@dataclass
class ConnectionContext:
    """Rejection state of one logical request. Reset before reuse."""

    reason: Optional[str] = None
    kind: Optional[RejectionKind] = None

    @property
    def rejected(self):
        return self.reason is not None

    def record(self, reason, kind=None):
        self.reason = str(reason)
        self.kind = kind

    def reset(self):
        self.reason = None
        self.kind = None


class ConnectionInterceptor:
    def __init__(self, policy: AddressPolicy):
        self.policy = policy

    def open_socket(self, context: ConnectionContext, candidate: CandidateAddress) -> socket.socket:
        if context.rejected:
            raise InterceptorStateError(
                f"Socket requested after a rejection was already recorded: {context.reason}"
            )

        outcome = self.policy.validate_candidate(candidate)
        if outcome.accepted:
            return socket.socket(candidate.family, candidate.socket_type, candidate.protocol)

        context.record(outcome.reason, outcome.kind)
        audit("CONNECT", f"{candidate.ip}:{candidate.port} - {outcome.reason}", "BLOCKED")
        # Benign IPv4 TCP socket; it is never connected.
        return socket.socket(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)

    def check_socket(self, context: ConnectionContext, sock: socket.socket) -> bool:
        return context.rejected

    def create_connection(
        self,
        context: ConnectionContext,
        address,
        timeout=None,
        source_address=None,
        socket_options=None,
    ) -> socket.socket:
        """Resolve ``address`` to IPv4 candidates and connect the first one
        that passes both hooks.

        A rejected candidate aborts the whole attempt with
        ``ConnectionRejected``; ordinary connect errors move on to the next
        candidate.
        """
        host, port = address
        if host.startswith("["):
            host = host.strip("[]")

        err = None
        addrinfos = socket.getaddrinfo(
            host, port, socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP
        )
        for addrinfo in addrinfos:
            candidate = CandidateAddress.from_addrinfo(addrinfo)
            sock = self.open_socket(context, candidate)
            if self.check_socket(context, sock):
                sock.close()
                raise ConnectionRejected(context.reason, kind=context.kind)

            try:
                if socket_options is not None:
                    for opt in socket_options:
                        sock.setsockopt(*opt)
                if timeout is not None:
                    sock.settimeout(timeout)
                if source_address:
                    sock.bind(source_address)
                sock.connect(candidate.sockaddr)
                return sock
            except OSError as exc:
                logger.debug(f"Connect to {candidate.ip}:{candidate.port} failed: {exc}")
                err = exc
                sock.close()

        if err is not None:
            raise err
        raise OSError("getaddrinfo returns an empty list")
