"""A TCP server that answers requests for files under a web root."""

from __future__ import annotations

import argparse
import logging
import os
import selectors
import socket
import sys
import threading
from typing import Any

from webpool.protocol import DEFAULT_ROOT, BadRequest, handle_request
from webpool.threadpool import ThreadPool

logger = logging.getLogger(__name__)

DEFAULT_PORT = 6969
BACKLOG = 66
RECV_SIZE = 4096

POOL_MAX_THREADS = 8
POOL_MIN_THREADS = 2
POOL_QUEUE_CAPACITY = 100


class Server:
    """Accept connections and hand each readable one to a thread pool.

    A connection is watched until it first has data; from then on a pool
    worker serves requests on it until the peer closes it.
    """

    def __init__(
        self,
        host: str = "",
        port: int = DEFAULT_PORT,
        root: str | os.PathLike[str] = DEFAULT_ROOT,
        pool: ThreadPool | None = None,
    ) -> None:
        self.root = root
        self._owns_pool = pool is None
        self.pool = pool if pool is not None else ThreadPool(
            POOL_MAX_THREADS, POOL_MIN_THREADS, POOL_QUEUE_CAPACITY
        )
        try:
            self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                self._listener.bind((host, port))
                self._listener.listen(BACKLOG)
                self._listener.setblocking(False)
            except OSError:
                self._listener.close()
                raise
        except OSError:
            if self._owns_pool:
                self.pool.shutdown()
            raise
        self.address: tuple[str, int] = self._listener.getsockname()
        self._wake_r, self._wake_w = socket.socketpair()
        self._state_lock = threading.Lock()
        self._active: set[socket.socket] = set()
        self._closed = False
        self._stopping = threading.Event()
        self._serving = threading.Event()
        self._finished = threading.Event()

    def serve_forever(self) -> None:
        """Accept and dispatch connections until shutdown() is called."""
        with self._state_lock:
            if self._closed:
                return
            self._serving.set()
        try:
            with selectors.DefaultSelector() as selector:
                selector.register(self._listener, selectors.EVENT_READ)
                selector.register(self._wake_r, selectors.EVENT_READ)
                try:
                    while not self._stopping.is_set():
                        for key, _ in selector.select():
                            self._dispatch(selector, key)
                finally:
                    for key in list(selector.get_map().values()):
                        if key.fileobj not in (self._listener, self._wake_r):
                            key.fileobj.close()
        finally:
            self._finished.set()

    def _dispatch(self, selector: selectors.BaseSelector, key: selectors.SelectorKey) -> None:
        sock = key.fileobj
        if sock is self._wake_r:
            try:
                self._wake_r.recv(64)
            except OSError:
                pass
        elif sock is self._listener:
            try:
                conn, addr = self._listener.accept()
            except (BlockingIOError, InterruptedError):
                return
            except OSError as exc:
                logger.error("accept: %s", exc)
                return
            conn.setblocking(True)
            selector.register(conn, selectors.EVENT_READ, addr)
            logger.info("client ip: %s    port: %d", addr[0], addr[1])
        else:
            selector.unregister(sock)
            if not self.pool.submit(self.handle_connection, sock, key.data):
                sock.close()

    def handle_connection(self, conn: socket.socket, addr: Any) -> None:
        """Serve requests on ``conn`` until the peer closes it, then close it."""
        with self._state_lock:
            self._active.add(conn)
        try:
            with conn:
                while True:
                    try:
                        data = conn.recv(RECV_SIZE)
                    except OSError as exc:
                        logger.error("receive from %s: %s", addr, exc)
                        break
                    if not data:
                        logger.info("link has breaked")
                        break
                    try:
                        response = handle_request(data, self.root)
                    except BadRequest as exc:
                        logger.warning("bad request from %s: %s", addr, exc)
                        break
                    try:
                        conn.sendall(response)
                    except OSError as exc:
                        logger.error("send to %s: %s", addr, exc)
                        break
        finally:
            with self._state_lock:
                self._active.discard(conn)

    def shutdown(self) -> None:
        """Stop serving, close the listening socket and any open connections."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            active = list(self._active)
        self._stopping.set()
        try:
            self._wake_w.send(b"\0")
        except OSError:
            pass
        if self._serving.is_set():
            self._finished.wait()
        for conn in active:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        self._listener.close()
        self._wake_r.close()
        self._wake_w.close()
        if self._owns_pool:
            self.pool.shutdown()

    def __enter__(self) -> Server:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


def main(argv: list[str] | None = None) -> int:
    """Run the server until interrupted."""
    parser = argparse.ArgumentParser(description="Serve files under a web root.")
    parser.add_argument("--host", default="", help="address to listen on (default: all)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    parser.add_argument("--root", default=DEFAULT_ROOT, help="directory to serve")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        server = Server(args.host, args.port, args.root)
    except OSError as exc:
        print(f"cannot listen on port {args.port}: {exc}", file=sys.stderr)
        return 1
    with server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())