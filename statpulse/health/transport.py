"""
Health transport - requests session whose in-flight request can be aborted.

A probe arms a threading.Timer that calls CancellableAdapter.cancel() at the
deadline. Cancelling shuts down every socket the adapter has opened, which
wakes up any read blocked inside requests (headers or body) with a
connection error. Sockets opened after cancellation are shut down at once.
"""

import logging
import socket
import threading
from typing import Callable, List

import requests  # type: ignore
from requests.adapters import HTTPAdapter  # type: ignore
from urllib3.connection import HTTPConnection, HTTPSConnection  # type: ignore
from urllib3.connectionpool import (  # type: ignore
    HTTPConnectionPool,
    HTTPSConnectionPool,
)
from urllib3.poolmanager import ProxyManager  # type: ignore

logger = logging.getLogger(__name__)


class CancellableAdapter(HTTPAdapter):
    """HTTPAdapter that tracks its sockets so a request can be aborted."""

    def __init__(self, *args, **kwargs):
        self._lock = threading.Lock()
        self._sockets: List[socket.socket] = []
        self._cancelled = False
        super().__init__(*args, **kwargs)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self._install_pools(self.poolmanager)

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        manager = super().proxy_manager_for(proxy, **proxy_kwargs)
        # SOCKS managers bring their own pool classes
        if type(manager) is ProxyManager:
            self._install_pools(manager)
        return manager

    def cancel(self) -> None:
        """Abort every open connection. Safe to call more than once."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            sockets = list(self._sockets)
        logger.debug("Aborting %d open connection(s)", len(sockets))
        for sock in sockets:
            _shutdown(sock)

    def _track(self, sock: socket.socket) -> None:
        with self._lock:
            self._sockets.append(sock)
            cancelled = self._cancelled
        if cancelled:
            _shutdown(sock)

    def _install_pools(self, manager) -> None:
        track = self._track

        class TrackedHTTPConnection(HTTPConnection):
            def _new_conn(self):
                sock = super()._new_conn()
                track(sock)
                return sock

        class TrackedHTTPSConnection(HTTPSConnection):
            def _new_conn(self):
                sock = super()._new_conn()
                track(sock)
                return sock

        class TrackedHTTPConnectionPool(HTTPConnectionPool):
            ConnectionCls = TrackedHTTPConnection

        class TrackedHTTPSConnectionPool(HTTPSConnectionPool):
            ConnectionCls = TrackedHTTPSConnection

        manager.pool_classes_by_scheme = {
            "http": TrackedHTTPConnectionPool,
            "https": TrackedHTTPSConnectionPool,
        }


def _shutdown(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        # already closed by the peer or by requests
        pass


def build_session(
    adapter: CancellableAdapter,
    session_factory: Callable[[], requests.Session] = requests.Session,
) -> requests.Session:
    """New session routing http:// and https:// through adapter."""
    session = session_factory()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
