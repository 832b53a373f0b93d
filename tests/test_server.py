import asyncio
import socket

from servedir.fs import MemoryFileSystem
from servedir.http.model import HTTPBodyWriter, HTTPRequest, HTTPResponse
from servedir.model import Application, mount
from servedir.server import (
	OPTIONS,
	SERVER_BAD_REQUEST,
	SERVER_ERROR,
	Connection,
	keepsAlive,
	respond,
)
from servedir.services.files import FileService

OPTIONS_QUIET = OPTIONS._replace(logRequests=False, keepalive=5.0)


class BufferWriter(HTTPBodyWriter):
	def __init__(self) -> None:
		self.data = bytearray()

	async def _writeBytes(self, chunk, more: bool = False) -> bool:
		if chunk:
			self.data += chunk
		return True


class Broken(Application):
	def process(self, request: HTTPRequest) -> HTTPResponse:
		raise RuntimeError("Broken")


def files() -> tuple[Application, MemoryFileSystem]:
	fs = MemoryFileSystem({"/hello.txt": "Hello!\n"}, modtime=784111777)
	return mount(FileService(fs=fs)), fs


def test_canned_responses():
	assert SERVER_ERROR.endswith(b"\r\n\r\n500 Internal Server Error\n")
	assert b"Content-Length: 26\r\n" in SERVER_ERROR
	assert b"Content-Length: 16\r\n" in SERVER_BAD_REQUEST


def test_keeps_alive():
	assert keepsAlive(HTTPRequest("GET", "/"))
	assert not keepsAlive(HTTPRequest("GET", "/", headers={"Connection": "close"}))
	assert not keepsAlive(HTTPRequest("GET", "/", protocol="HTTP/1.0"))


def test_respond_streams_and_closes():
	app, fs = files()
	writer = BufferWriter()
	res = asyncio.run(respond(HTTPRequest("GET", "/hello.txt"), app, writer))
	assert res is not None and res.status == 200
	assert bytes(writer.data).startswith(b"HTTP/1.1 200 OK\r\n")
	assert bytes(writer.data).endswith(b"\r\n\r\nHello!\n")
	assert not fs.opened


def test_respond_head_has_no_body():
	app, fs = files()
	writer = BufferWriter()
	asyncio.run(respond(HTTPRequest("HEAD", "/hello.txt"), app, writer))
	head, _, body = bytes(writer.data).partition(b"\r\n\r\n")
	assert b"Content-Length: 7" in head
	assert body == b""
	assert not fs.opened


def test_respond_failure():
	writer = BufferWriter()
	res = asyncio.run(respond(HTTPRequest("GET", "/"), Broken(), writer))
	assert res is not None and res.status == 500
	assert bytes(writer.data).endswith(b"500 Internal Server Error\n")


def exchange(app: Application, data: bytes) -> bytes:
	"""Sends the raw `data` through a socket pair served by a connection,
	returning everything the connection wrote back."""

	async def main() -> bytes:
		server, client = socket.socketpair()
		server.setblocking(False)
		client.sendall(data)
		client.shutdown(socket.SHUT_WR)
		loop = asyncio.get_running_loop()
		await Connection(app, server, loop, OPTIONS_QUIET).run()
		received = b""
		while chunk := client.recv(4096):
			received += chunk
		client.close()
		return received

	return asyncio.run(main())


def test_connection_pipelined():
	app, fs = files()
	received = exchange(
		app,
		b"GET /hello.txt HTTP/1.1\r\nHost: localhost\r\n\r\n"
		b"GET /missing HTTP/1.1\r\nHost: localhost\r\n\r\n",
	)
	assert received.count(b"HTTP/1.1 ") == 2
	assert b"HTTP/1.1 200 OK\r\n" in received
	assert received.endswith(b"404 page not found\n")
	assert not fs.opened


def test_connection_close():
	app, _ = files()
	received = exchange(
		app,
		b"GET /hello.txt HTTP/1.0\r\n\r\n" b"GET /hello.txt HTTP/1.0\r\n\r\n",
	)
	# The second request is ignored, as the first one closed the connection
	assert received.count(b"HTTP/1.0 200 OK\r\n") == 1


def test_connection_malformed():
	app, _ = files()
	assert exchange(app, b"NONSENSE\r\n\r\n") == SERVER_BAD_REQUEST


# EOF
