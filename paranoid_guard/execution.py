from dataclasses import dataclass
from typing import Optional

import requests

from .adapters import ParanoidHTTPAdapter
from .errors import PolicyViolation
from .interceptor import ConnectionContext, ConnectionInterceptor
from .policy import AddressPolicy, FailureMode
from .utils import audit

ALLOWED_SCHEMES = ("http://", "https://")


@dataclass
class TransferResult:
    response: Optional[requests.Response] = None
    error: Optional[Exception] = None
    rejection_reason: Optional[str] = None

    @property
    def ok(self):
        return self.response is not None and self.error is None


class TransferHandle:
    """
    One logical request: the ``requests`` request, the session it is sent
    on, and the connection context shared by both interceptor hooks.

    A handle may be reused; ``reset()`` (called by ``execute``) clears any
    rejection left over from the previous request.
    """

    def __init__(self, request, session=None, **send_kwargs):
        self.request = request
        self._owns_session = session is None
        self.session = requests.Session() if session is None else session
        self.send_kwargs = send_kwargs
        self.context = ConnectionContext()
        self.adapter = None

    @property
    def protected(self):
        if self.adapter is None:
            return False
        adapters = self.session.adapters
        return (
            len(adapters) == len(ALLOWED_SCHEMES)
            and all(adapters.get(prefix) is self.adapter for prefix in ALLOWED_SCHEMES)
        )

    def reset(self, request=None):
        if request is not None:
            self.request = request
        self.context.reset()

    def prepare(self):
        if isinstance(self.request, requests.PreparedRequest):
            return self.request
        return self.session.prepare_request(self.request)

    def close(self):
        if self._owns_session:
            self.session.close()
        elif self.adapter is not None:
            self.adapter.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class ParanoidGuard:
    def __init__(self, policy: Optional[AddressPolicy] = None):
        self.policy = policy if policy is not None else AddressPolicy()
        self.interceptor = ConnectionInterceptor(self.policy)

    def validate_port(self, port):
        return self.policy.validate_port(port)

    def validate_ip(self, ip):
        return self.policy.validate_ip(ip)

    def get_rejection_reason(self, handle: TransferHandle):
        return handle.context.reason

    def make_protected(self, handle: TransferHandle):
        """Install the interceptor on the handle's session without sending anything.

        Only http:// and https:// stay mounted, and environment proxies are
        ignored so the validated address is the one actually dialed.
        """
        session = handle.session
        session.trust_env = False
        session.proxies.clear()
        if handle.protected and handle.adapter.interceptor is self.interceptor:
            return handle

        for adapter in session.adapters.values():
            adapter.close()
        session.adapters.clear()
        handle.adapter = ParanoidHTTPAdapter(self.interceptor, handle.context)
        for prefix in ALLOWED_SCHEMES:
            session.mount(prefix, handle.adapter)
        return handle

    def execute(self, handle: TransferHandle) -> TransferResult:
        """Send the handle's request through the interceptor.

        Engine failures are returned in the result, never raised. A rejected
        connection raises ``PolicyViolation`` only when the policy's failure
        mode is ``raise``.
        """
        handle.reset()
        self.make_protected(handle)

        result = TransferResult()
        try:
            prepared = handle.prepare()
            result.response = handle.session.send(prepared, **handle.send_kwargs)
        except requests.RequestException as exc:
            result.error = exc

        reason = self.get_rejection_reason(handle)
        result.rejection_reason = reason
        if reason:
            if self.policy.failure_mode is FailureMode.RAISE:
                raise PolicyViolation(reason, kind=handle.context.kind)
        elif result.error is not None:
            audit("TRANSFER", f"{handle.request.url}: {result.error}", "ERROR")
        return result

    def request(self, method, url, *, session=None, **kwargs):
        """Build a handle for ``method url`` and execute it.

        ``kwargs`` are split the way ``requests.Session.request`` splits them:
        request fields go to ``requests.Request``, transport options to ``send``.
        """
        send_keys = ("timeout", "allow_redirects", "proxies", "verify", "cert", "stream")
        send_kwargs = {key: kwargs.pop(key) for key in send_keys if key in kwargs}
        send_kwargs.setdefault("allow_redirects", True)
        request = requests.Request(method=method.upper(), url=url, **kwargs)
        with TransferHandle(request, session=session, **send_kwargs) as handle:
            return self.execute(handle)
