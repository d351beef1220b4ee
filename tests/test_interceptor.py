import os
import socket
import sys
import unittest
from unittest import mock


sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from paranoid_guard.errors import ConnectionRejected, InterceptorStateError, RejectionKind
from paranoid_guard.interceptor import ConnectionContext, ConnectionInterceptor
from paranoid_guard.policy import AddressPolicy, CandidateAddress


def _no_local_address():
    return None


def _candidate(ip, port=443, family=socket.AF_INET):
    return CandidateAddress(family, socket.SOCK_STREAM, socket.IPPROTO_TCP, ip, port)


def _addrinfo(ip, port):
    return (socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP, "", (ip, port))


def _closed_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class ConnectionContextTests(unittest.TestCase):
    def test_record_and_reset(self):
        context = ConnectionContext()
        self.assertFalse(context.rejected)

        context.record("Invalid IP 10.0.0.1", RejectionKind.IP_NOT_ALLOWED)
        self.assertTrue(context.rejected)
        self.assertEqual(context.reason, "Invalid IP 10.0.0.1")

        context.reset()
        self.assertFalse(context.rejected)
        self.assertIsNone(context.kind)


class SocketHookTests(unittest.TestCase):
    def setUp(self):
        self.policy = AddressPolicy(
            ip_whitelist=["203.0.113.0/24"],
            local_address_detector=_no_local_address,
        )
        self.interceptor = ConnectionInterceptor(self.policy)
        self.context = ConnectionContext()

    def test_accepted_candidate_gets_real_socket(self):
        sock = self.interceptor.open_socket(self.context, _candidate("203.0.113.5"))
        try:
            self.assertEqual(sock.family, socket.AF_INET)
            self.assertEqual(sock.type, socket.SOCK_STREAM)
            self.assertFalse(self.context.rejected)
            self.assertFalse(self.interceptor.check_socket(self.context, sock))
        finally:
            sock.close()

    def test_rejected_candidate_gets_placeholder_and_reason(self):
        sock = self.interceptor.open_socket(self.context, _candidate("169.254.169.254", port=80))
        try:
            self.assertEqual(sock.family, socket.AF_INET)
            self.assertEqual(sock.type, socket.SOCK_STREAM)
            self.assertEqual(self.context.reason, "Invalid IP 169.254.169.254")
            self.assertIs(self.context.kind, RejectionKind.IP_NOT_ALLOWED)
            self.assertTrue(self.interceptor.check_socket(self.context, sock))
        finally:
            sock.close()

    def test_ipv6_candidate_gets_ipv4_placeholder(self):
        sock = self.interceptor.open_socket(self.context, _candidate("::1", family=socket.AF_INET6))
        try:
            self.assertEqual(sock.family, socket.AF_INET)
            self.assertIs(self.context.kind, RejectionKind.INVALID_ADDRESS_FAMILY)
        finally:
            sock.close()

    def test_second_socket_after_rejection_is_refused(self):
        sock = self.interceptor.open_socket(self.context, _candidate("127.0.0.1"))
        sock.close()

        with self.assertRaises(InterceptorStateError):
            self.interceptor.open_socket(self.context, _candidate("203.0.113.5"))


class CreateConnectionTests(unittest.TestCase):
    def test_rejected_address_aborts_before_connect(self):
        interceptor = ConnectionInterceptor(AddressPolicy(local_address_detector=_no_local_address))
        context = ConnectionContext()

        with mock.patch.object(socket, "getaddrinfo", return_value=[_addrinfo("10.0.0.7", 443)]):
            with self.assertRaises(ConnectionRejected) as ctx:
                interceptor.create_connection(context, ("internal.example", 443))

        self.assertEqual(ctx.exception.reason, "Invalid IP 10.0.0.7")
        self.assertIs(ctx.exception.kind, RejectionKind.IP_NOT_ALLOWED)
        self.assertEqual(context.reason, "Invalid IP 10.0.0.7")

    def test_resolution_is_ipv4_only(self):
        interceptor = ConnectionInterceptor(AddressPolicy(local_address_detector=_no_local_address))
        context = ConnectionContext()

        with mock.patch.object(socket, "getaddrinfo", return_value=[_addrinfo("10.0.0.7", 80)]) as gai:
            with self.assertRaises(ConnectionRejected):
                interceptor.create_connection(context, ("[internal.example]", 80))

        gai.assert_called_once_with(
            "internal.example", 80, socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP
        )

    def test_rejection_after_failed_candidate_wins(self):
        port = _closed_port()
        interceptor = ConnectionInterceptor(
            AddressPolicy(
                ip_whitelist=["127.0.0.1/32"],
                port_whitelist=[port],
                local_address_detector=_no_local_address,
            )
        )
        context = ConnectionContext()
        addrinfos = [_addrinfo("127.0.0.1", port), _addrinfo("10.0.0.7", port)]

        with mock.patch.object(socket, "getaddrinfo", return_value=addrinfos):
            with self.assertRaises(ConnectionRejected):
                interceptor.create_connection(context, ("rebinding.example", port), timeout=2)

        self.assertEqual(context.reason, "Invalid IP 10.0.0.7")

    def test_connect_errors_surface_when_nothing_was_rejected(self):
        port = _closed_port()
        interceptor = ConnectionInterceptor(
            AddressPolicy(
                ip_whitelist=["127.0.0.1/32"],
                port_whitelist=[port],
                local_address_detector=_no_local_address,
            )
        )
        context = ConnectionContext()

        with self.assertRaises(ConnectionRefusedError):
            interceptor.create_connection(context, ("127.0.0.1", port), timeout=2)
        self.assertFalse(context.rejected)


if __name__ == "__main__":
    unittest.main()
