# webpool

webpool is a small HTTP server. It listens on a TCP port and watches each
new connection until it has data. It then hands the connection to a pool of
worker threads, and one worker serves requests on that connection until the
client closes it. The pool adds and removes workers as demand changes.

## How requests are answered

Requests are answered from a document root directory (`myweb` by default).
The path in the request is looked up under that directory, and a query
string after `?` is ignored.

- A path that does not exist under the root gets `404 Not Found`.
- An existing path that contains `/security/` gets `403 forbidden`.
- `GET /` gets a default page: `welcome to default page`.
- `GET /<path>` to any other existing path gets `welcome to visit <name>`,
  where `<name>` is the last part of the path.
- Any other method is handled as a POST. If the path exists, the server
  echoes the request's `Content-Length` header and its body back.

A response has a status line that repeats the request's protocol version
(for example `HTTP/1.1 200 ok`), a `server:zlj` header, a content-length
header and a blank line, followed by the body, if there is one.

If a request cannot be parsed, or a POST has no `Content-Length` header or
no blank line after its headers, the server closes the connection.

## What it does not do

- It does not send the contents of files. A GET only confirms that the file
  exists and names it.
- It does not set content types or other headers, and it does not support
  HTTPS.
- Each read from a connection (up to 4096 bytes) is handled as one complete
  request. Requests that arrive in several pieces, or several requests sent
  in one piece, are not handled correctly.
- A worker stays with its connection until the client closes it. The number
  of clients that can be served at the same time is therefore limited by the
  size of the pool (8 workers by default).

## Installation

```
pip install .
```

## Running the server

```
webpool
```

By default the server listens on port 6969 on all interfaces and serves
`myweb` in the current directory. The options are:

- `--host` is the address to listen on. By default, the server listens on
  all addresses.
- `--port` is the port to listen on (6969 by default).
- `--root` is the directory to serve (`myweb` by default).

The server logs the address of each client that connects. Stop it with
Ctrl-C. If it cannot listen on the port, it prints an error and exits with
status 1.

`python -m webpool.server` starts the same command.

## Using it from Python

```python
from webpool.threadpool import ThreadPool
from webpool.server import Server

with ThreadPool(8, 2, 100) as pool:
    with Server("127.0.0.1", 6969, "myweb", pool) as server:
        server.serve_forever()
```

`Server(host, port, root, pool)` binds and listens as soon as you create it.
Its `address` attribute holds the address it is bound to. Use port 0 to have
the system choose a free port. If you pass no pool, the server creates a
pool of 2 to 8 threads with a queue of 100 tasks, and shuts it down when the
server shuts down. `serve_forever()` runs until `shutdown()` is called from
another thread. `shutdown()` closes the listening socket and any open
connections.

### The thread pool

The thread pool also works on its own:

```python
from webpool.threadpool import ThreadPool

with ThreadPool(max_threads=4, min_threads=1, queue_capacity=10) as pool:
    pool.submit(print, "hello from a worker")
```

- `submit(func, *args)` queues a call and blocks while the queue is full. It
  returns `True` when the call is queued. After `shutdown()`, it returns
  `False` and does not queue the call.
- Once a second (`ThreadPool.MANAGER_INTERVAL`), a manager thread checks the
  pool. It adds a worker when more tasks are queued than there are idle
  workers. It removes a worker when fewer than half of the workers are busy.
  The pool always stays between `min_threads` and `max_threads` workers.
- `busy_count()` returns how many workers are running a task.
  `thread_count()` returns how many workers exist.
- Exceptions raised by tasks are logged, and the worker carries on.
- `shutdown()` drops any queued tasks and waits for the threads to finish.
  Leaving the `with` block calls it.

### Request handling without sockets

`webpool.protocol` does no network I/O. `handle_request(data, root)` takes
the raw bytes of a request and a document root, and returns the bytes of
the response. It raises `BadRequest` when the request cannot be answered.
`parse_request`, `get_response` and `post_response` expose the separate
steps.

## Tests

```
pip install .[test]
pytest
```