import socket

from requests.adapters import DEFAULT_POOLBLOCK, HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.exceptions import ConnectTimeoutError, NameResolutionError, NewConnectionError
from urllib3.poolmanager import PoolManager
from urllib3.util.timeout import _DEFAULT_TIMEOUT

from .errors import ProxyNotAllowed


class _ParanoidConnectionMixin:
    """Routes urllib3's socket creation through a ``ConnectionInterceptor``."""

    def __init__(self, *args, paranoid_interceptor=None, paranoid_context=None, **kwargs):
        if paranoid_interceptor is None or paranoid_context is None:
            raise ValueError("Paranoid connections need an interceptor and a context.")
        self._paranoid_interceptor = paranoid_interceptor
        self._paranoid_context = paranoid_context
        super().__init__(*args, **kwargs)

    def _new_conn(self):
        context = self._paranoid_context
        if context.rejected:
            # The attempt already ended on a rejected address; retries stay failed.
            raise NewConnectionError(self, f"Failed to establish a new connection: {context.reason}")

        timeout = None if self.timeout is _DEFAULT_TIMEOUT else self.timeout
        try:
            return self._paranoid_interceptor.create_connection(
                context,
                (self._dns_host, self.port),
                timeout,
                source_address=self.source_address,
                socket_options=self.socket_options,
            )
        except socket.gaierror as e:
            raise NameResolutionError(self.host, self, e) from e
        except socket.timeout as e:
            raise ConnectTimeoutError(
                self,
                f"Connection to {self.host} timed out. (connect timeout={self.timeout})",
            ) from e
        except OSError as e:
            raise NewConnectionError(self, f"Failed to establish a new connection: {e}") from e


class ParanoidHTTPConnection(_ParanoidConnectionMixin, HTTPConnection):
    pass


class ParanoidHTTPSConnection(_ParanoidConnectionMixin, HTTPSConnection):
    pass


class ParanoidHTTPConnectionPool(HTTPConnectionPool):
    ConnectionCls = ParanoidHTTPConnection


class ParanoidHTTPSConnectionPool(HTTPSConnectionPool):
    ConnectionCls = ParanoidHTTPSConnection


class ParanoidPoolManager(PoolManager):
    """PoolManager whose pools build connections bound to one interceptor and
    one request context."""

    def __init__(self, interceptor, context, num_pools=10, headers=None, **connection_pool_kw):
        super().__init__(num_pools=num_pools, headers=headers, **connection_pool_kw)
        self.interceptor = interceptor
        self.context = context
        self.pool_classes_by_scheme = {
            "http": ParanoidHTTPConnectionPool,
            "https": ParanoidHTTPSConnectionPool,
        }

    def _new_pool(self, scheme, host, port, request_context=None):
        pool = super()._new_pool(scheme, host, port, request_context=request_context)
        pool.conn_kw.update(
            paranoid_interceptor=self.interceptor,
            paranoid_context=self.context,
        )
        return pool


class ParanoidHTTPAdapter(HTTPAdapter):
    def __init__(self, interceptor, context, *args, **kwargs):
        # HTTPAdapter.__init__ builds the pool manager, which needs both.
        self.interceptor = interceptor
        self.context = context
        super().__init__(*args, **kwargs)

    def init_poolmanager(self, connections, maxsize, block=DEFAULT_POOLBLOCK, **pool_kwargs):
        self._pool_connections = connections
        self._pool_maxsize = maxsize
        self._pool_block = block
        self.poolmanager = ParanoidPoolManager(
            self.interceptor,
            self.context,
            num_pools=connections,
            maxsize=maxsize,
            block=block,
            **pool_kwargs,
        )

    def send(self, request, *args, **kwargs):
        # Each request (and each redirect hop) starts with a clean context; a
        # rejection raises and ends the redirect chain, so none is lost.
        self.context.reset()
        return super().send(request, *args, **kwargs)

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        raise ProxyNotAllowed(
            f"Refusing to route a protected request through proxy {proxy}: "
            "the proxy's address would be validated instead of the target's."
        )
