import asyncio
import errno
import socket
import threading
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, Callable, Literal, NamedTuple

from .config import HOST, LOG_REQUESTS, PORT
from .http.model import (
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import Application, Service, mount
from .utils.limits import LimitType, unlimit
from .utils.logging import (
	LogLevel,
	debug,
	error,
	event,
	exception,
	info,
	logged,
	warning,
)

# --
# == Server
#
# A single-threaded asyncio server working directly on non-blocking
# sockets. Each accepted client gets a `Connection` task that parses the
# incoming requests, has the application process them and writes the
# responses back, in order, until the client or the response asks for
# the connection to be closed.


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8000
	backlog: int = 10_000
	# How often the accept loop checks if the server should stop
	polling: float = 1.0
	readsize: int = 4_096
	# How long an idle connection is kept open
	keepalive: float = 60.0
	logRequests: bool = True
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()


def canned(status: str, body: bytes | None = None) -> bytes:
	"""Returns a complete response that closes the connection, used when the
	application can't produce one."""
	head: list[str] = [f"HTTP/1.1 {status}"]
	if body:
		head.append("Content-Type: text/plain; charset=utf-8")
		head.append("X-Content-Type-Options: nosniff")
		head.append(f"Content-Length: {len(body)}")
	head.append("Connection: close")
	return ("\r\n".join(head) + "\r\n\r\n").encode("ascii") + (body or b"")


SERVER_NOCONTENT: bytes = canned("204 No Content")
SERVER_ERROR: bytes = canned("500 Internal Server Error", b"500 Internal Server Error\n")
SERVER_BAD_REQUEST: bytes = canned("400 Bad Request", b"400 Bad Request\n")


def keepsAlive(request: HTTPRequest) -> bool:
	"""Tells if the connection can be reused after answering the request."""
	# HTTP/1.0 clients get one response per connection
	return (
		request.protocol == "HTTP/1.1"
		and (request.header("Connection") or "").lower() != "close"
	)


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		if e := context.get("exception"):
			exception(e)


# -----------------------------------------------------------------------------
#
# CONNECTION
#
# -----------------------------------------------------------------------------


class SocketWriter(HTTPBodyWriter):
	"""Writes bodies to a non-blocking socket."""

	def __init__(self, client: socket.socket, loop: asyncio.AbstractEventLoop):
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if chunk:
			await self.loop.sock_sendall(self.client, chunk)
		return True


class Connection:
	"""Serves the requests sent by one client, HTTP/1.1 clients may send
	more than one, possibly pipelined in the same chunk."""

	def __init__(
		self,
		app: Application,
		client: socket.socket,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	):
		self.app: Application = app
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop
		self.options: ServerOptions = options
		self.writer: SocketWriter = SocketWriter(client, loop)
		self.parser: HTTPParser = HTTPParser()
		self.requests: int = 0
		self.responses: int = 0
		self.read: int = 0
		self.isOpen: bool = True

	async def run(self) -> None:
		buffer = bytearray(self.options.readsize)
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		try:
			while self.isOpen:
				try:
					n = await asyncio.wait_for(
						self.loop.sock_recv_into(self.client, buffer),
						timeout=self.options.keepalive,
					)
				except asyncio.TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				if not n:
					# The client closed its side
					status = HTTPProcessingStatus.NoData
					break
				self.read += n
				if logged(LogLevel.Debug):
					debug("Reading request(s)", Client=f"{id(self.client):x}", Read=n)
				await self.feed(bytes(buffer[:n]))
			if self.responses != self.requests:
				warning(
					"Incomplete responses",
					Requests=self.requests,
					Responses=self.responses,
				)
			if status is HTTPProcessingStatus.NoData and self.read and not self.requests:
				warning("Client did not send a complete request", Read=self.read)
		except (BrokenPipeError, ConnectionResetError):
			debug("Client closed the connection", Client=f"{id(self.client):x}")
		except Exception as e:
			exception(e)
		finally:
			self.client.close()

	async def feed(self, chunk: bytes) -> None:
		for atom in self.parser.feed(chunk):
			if atom is HTTPProcessingStatus.BadFormat:
				warning("Malformed request", Client=f"{id(self.client):x}")
				await self.writer.write(SERVER_BAD_REQUEST)
				self.isOpen = False
			elif isinstance(atom, HTTPRequest):
				self.requests += 1
				if self.options.logRequests:
					event(atom.method, atom.path)
				res = await respond(atom, self.app, self.writer)
				if res:
					self.responses += 1
				if not keepsAlive(atom) or (res and res.shouldClose):
					self.isOpen = False
			if not self.isOpen:
				# Pipelined requests after a close are ignored
				break


async def respond(
	request: HTTPRequest, app: Application, writer: HTTPBodyWriter
) -> HTTPResponse | None:
	"""Processes the request and writes the response with the given writer.
	The response is always closed, which releases what its body reads
	from, even when it could not be sent."""
	try:
		r = app.process(request)
		res: HTTPResponse | None = r if isinstance(r, HTTPResponse) else await r
	except Exception as e:
		exception(e, f"Request failed: {request.method} {request.path}")
		res = request.fail()
	if res is None:
		warning("No response", Method=request.method, Path=request.path)
		await writer.write(SERVER_NOCONTENT)
		return None
	sent: bool = False
	try:
		await writer.write(res.head())
		sent = True
		# The response to HEAD has the headers of GET, never its body
		if request.method != "HEAD":
			await writer.write(res.body)
	except (BrokenPipeError, ConnectionResetError):
		res.shouldClose = True
	except Exception as e:
		exception(e)
		res.shouldClose = True
	finally:
		try:
			res.close()
		except Exception as e:
			exception(e)
	if not sent:
		warning("Response was not sent", Method=request.method, Path=request.path)
		await writer.write(SERVER_ERROR)
	return res


# -----------------------------------------------------------------------------
#
# SERVER
#
# -----------------------------------------------------------------------------


def bind(options: ServerOptions) -> socket.socket:
	"""Returns a listening, non-blocking server socket."""
	server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
	server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
	server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
	try:
		server.bind((options.host, options.port))
	except OSError:
		error(f"Unable to bind to {options.host}:{options.port}, aborting.", "HOSTPORTERR")
		server.close()
		raise
	server.listen(options.backlog)
	server.setblocking(False)
	return server


async def serve(app: Application, options: ServerOptions = OPTIONS) -> None:
	"""Accepts clients until the server is stopped, either by a signal or
	because `options.condition` returned false."""
	server = bind(options)
	loop = asyncio.get_running_loop()
	state = ServerState()
	# Signal handlers can only be registered from the main thread
	if options.stopSignals and threading.current_thread() is threading.main_thread():
		loop.add_signal_handler(SIGINT, state.stop)
		loop.add_signal_handler(SIGTERM, state.stop)
	loop.set_exception_handler(state.onException)

	tasks: set[asyncio.Task[None]] = set()
	await app.start()
	info("Serving files", Host=options.host, Port=options.port)
	try:
		while state.isRunning:
			if options.condition and not options.condition():
				break
			try:
				client, _ = await asyncio.wait_for(
					loop.sock_accept(server), timeout=options.polling or 1.0
				)
			except asyncio.TimeoutError:
				continue
			except OSError as e:
				if e.errno == errno.EMFILE:
					# Out of file descriptors, we let some connections end
					await asyncio.sleep(0.1)
				else:
					exception(e)
				continue
			task = loop.create_task(Connection(app, client, loop, options).run())
			tasks.add(task)
			task.add_done_callback(tasks.discard)
	finally:
		server.close()
		for task in tasks:
			task.cancel()
		await asyncio.gather(*tasks, return_exceptions=True)
		await app.stop()


def run(
	*components: Application | Service,
	host: str = HOST,
	port: int = PORT,
	backlog: int = OPTIONS.backlog,
	condition: Callable[[], bool] | None = None,
	polling: float = OPTIONS.polling,
	logRequests: bool = LOG_REQUESTS,
	keepalive: float = OPTIONS.keepalive,
) -> None:
	"""Serves the given services until interrupted."""
	unlimit(LimitType.Files)
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		condition=condition,
		polling=polling,
		logRequests=logRequests,
		keepalive=keepalive,
	)
	try:
		asyncio.run(serve(mount(*components), options))
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
