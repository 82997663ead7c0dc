import socket
import threading

import pytest

from webpool.protocol import DEFAULT_PAGE, handle_request
from webpool.server import Server, main
from webpool.threadpool import ThreadPool


def read_response(sock):
    data = b""
    while b"\r\n\r\n" not in data:
        chunk = sock.recv(4096)
        if not chunk:
            return data
        data += chunk
    head, sep, body = data.partition(b"\r\n\r\n")
    length = 0
    for line in head.split(b"\r\n")[1:]:
        name, _, value = line.partition(b":")
        if name.strip().lower() == b"content-length":
            length = int(value.strip())
    while len(body) < length:
        chunk = sock.recv(4096)
        if not chunk:
            break
        body += chunk
    return head + sep + body


def read_all(sock):
    data = b""
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return data
        data += chunk


@pytest.fixture
def pool():
    p = ThreadPool(4, 2, 10)
    yield p
    p.shutdown()


@pytest.fixture
def web_root(tmp_path):
    (tmp_path / "index.html").write_text("<html></html>")
    (tmp_path / "security").mkdir()
    (tmp_path / "security" / "key.txt").write_text("hidden")
    return tmp_path


@pytest.fixture
def running(web_root, pool):
    server = Server("127.0.0.1", 0, web_root, pool)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    thread.join(timeout=5)


def connect(server):
    sock = socket.create_connection(server.address, timeout=5)
    return sock


def served_directly(server, request):
    client, conn = socket.socketpair()
    client.settimeout(5)
    client.sendall(request)
    client.shutdown(socket.SHUT_WR)
    server.handle_connection(conn, ("127.0.0.1", 1234))
    reply = read_all(client)
    client.close()
    return reply, conn


def test_handle_connection_get_existing_file(web_root, pool):
    with Server("127.0.0.1", 0, web_root, pool) as server:
        request = b"GET /index.html HTTP/1.1\r\nHost: x\r\n\r\n"
        reply, _ = served_directly(server, request)
    assert reply.startswith(b"HTTP/1.1 200 ok\r\nserver:zlj\r\n")
    assert reply.endswith(b"index.html\n")
    assert reply == handle_request(request, web_root)


def test_handle_connection_missing_file(web_root, pool):
    with Server("127.0.0.1", 0, web_root, pool) as server:
        reply, _ = served_directly(server, b"GET /nope.html HTTP/1.1\r\n\r\n")
    assert reply == b"HTTP/1.1 404 Not Found\r\nserver:zlj\r\ncontent-length:0\r\n\r\n"


def test_handle_connection_closes_socket(web_root, pool):
    with Server("127.0.0.1", 0, web_root, pool) as server:
        _, conn = served_directly(server, b"GET / HTTP/1.1\r\n\r\n")
    assert conn.fileno() == -1


def test_handle_connection_drops_bad_request(web_root, pool):
    with Server("127.0.0.1", 0, web_root, pool) as server:
        reply, conn = served_directly(server, b"garbage\r\n\r\n")
    assert reply == b""
    assert conn.fileno() == -1


def test_get_default_page_over_network(running):
    with connect(running) as sock:
        sock.sendall(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")
        reply = read_response(sock)
    assert reply.startswith(b"HTTP/1.1 200 ok\r\n")
    assert reply.endswith(b"\r\n\r\n" + DEFAULT_PAGE)


def test_forbidden_over_network(running):
    with connect(running) as sock:
        sock.sendall(b"GET /security/key.txt HTTP/1.1\r\n\r\n")
        reply = read_response(sock)
    assert reply.startswith(b"HTTP/1.1 403 forbidden\r\n")


def test_several_requests_on_one_connection(running, web_root):
    first = b"GET /index.html HTTP/1.1\r\n\r\n"
    second = b"GET /missing HTTP/1.1\r\n\r\n"
    with connect(running) as sock:
        sock.sendall(first)
        reply_one = read_response(sock)
        sock.sendall(second)
        reply_two = read_response(sock)
    assert reply_one == handle_request(first, web_root)
    assert reply_two == handle_request(second, web_root)


def test_post_echoes_body_over_network(running):
    request = b"POST /index.html HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello"
    with connect(running) as sock:
        sock.sendall(request)
        reply = read_response(sock)
    assert reply.startswith(b"HTTP/1.1 200 ok\r\nserver:zlj\r\n")
    assert reply.endswith(b"\r\n\r\nhello")


def test_several_clients(running, web_root):
    request = b"GET /index.html HTTP/1.1\r\n\r\n"
    socks = [connect(running) for _ in range(3)]
    try:
        for sock in socks:
            sock.sendall(request)
        replies = [read_response(sock) for sock in socks]
    finally:
        for sock in socks:
            sock.close()
    assert replies == [handle_request(request, web_root)] * 3


def test_shutdown_stops_serve_forever(web_root, pool):
    server = Server("127.0.0.1", 0, web_root, pool)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    server.shutdown()
    thread.join(timeout=5)
    assert not thread.is_alive()
    with pytest.raises(OSError):
        socket.create_connection(server.address, timeout=1)


def test_shutdown_before_serving_returns_immediately(web_root, pool):
    server = Server("127.0.0.1", 0, web_root, pool)
    server.shutdown()
    server.serve_forever()
    assert pool.submit(len, "abc") is True


def test_owned_pool_is_shut_down(web_root):
    with Server("127.0.0.1", 0, web_root) as server:
        owned = server.pool
        assert owned.submit(len, "abc") is True
    assert owned.submit(len, "abc") is False


def test_main_rejects_bad_port():
    with pytest.raises(SystemExit) as info:
        main(["--port", "abc"])
    assert info.value.code == 2


def test_main_reports_port_in_use(tmp_path):
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]
        result = main(["--host", "127.0.0.1", "--port", str(port), "--root", str(tmp_path)])
    finally:
        blocker.close()
    assert result == 1